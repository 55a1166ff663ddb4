"""Entity wrappers: stored records bound to the caller that fetched them."""

from crowdfund.entities.application import Application
from crowdfund.entities.base import Entity, get_data_from_object
from crowdfund.entities.category import Category
from crowdfund.entities.image import Image
from crowdfund.entities.project import Project
from crowdfund.entities.session import Session
from crowdfund.entities.task import Task
from crowdfund.entities.user import User

__all__ = [
    "Application",
    "Category",
    "Entity",
    "Image",
    "Project",
    "Session",
    "Task",
    "User",
    "get_data_from_object",
]

"""Project wrapper."""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from crowdfund.domain.options import ListOptions
from crowdfund.domain.visibility import Policy, RecordState, visible
from crowdfund.entities.base import BoundEntity, scoped_options

if TYPE_CHECKING:
    from crowdfund.entities.category import Category
    from crowdfund.entities.image import Image
    from crowdfund.entities.task import Task
    from crowdfund.entities.user import User
    from crowdfund.repos.projects import ProjectRepository


class Project(BoundEntity):
    """
    A crowdfunding project.

    Unless the project is PUBLIC, everything but its id and timestamps is
    hidden from callers other than its creator and admins; `get_data`
    returns None for them.
    """

    entity_name = "project"

    @property
    def _gate(self) -> "ProjectRepository":
        return self._platform.projects

    def _state(self) -> RecordState:
        data = self._binding.data
        return RecordState(owner_id=data["creator_id"], status=data["status"])

    def is_visible(self) -> bool:
        """Whether the caller may see this project's fields at all."""
        if not self.is_authenticated:
            return self.is_system
        return visible(Policy.STATUS, self._state(), self.caller)

    async def get_data(self, filtered: bool | None = None) -> dict[str, Any] | None:
        filtered = self._binding.resolve_filtered(filtered)
        if filtered and not visible(Policy.STATUS, self._state(), self.caller):
            return None
        return {
            **self._base_data(),
            "title": self._get("title", filtered),
            "description": self._get("description", filtered),
            "status": self._get("status", filtered),
            "money_goal": self._get("money_goal", filtered),
            "money_pledged": self._get("money_pledged", filtered),
            "lat": self._get("lat", filtered),
            "lon": self._get("lon", filtered),
            "creator_id": self._get("creator_id", filtered),
            "category_id": self._get("category_id", filtered),
        }

    def get_title(self, filtered: bool | None = None) -> str | None:
        return self._getter("title", filtered)

    def get_description(self, filtered: bool | None = None) -> str | None:
        return self._getter("description", filtered)

    def get_status(self, filtered: bool | None = None) -> str | None:
        return self._getter("status", filtered)

    def get_money_goal(self, filtered: bool | None = None):
        return self._getter("money_goal", filtered)

    def get_money_pledged(self, filtered: bool | None = None):
        return self._getter("money_pledged", filtered)

    def get_lat(self, filtered: bool | None = None) -> float | None:
        return self._getter("lat", filtered)

    def get_lon(self, filtered: bool | None = None) -> float | None:
        return self._getter("lon", filtered)

    def get_creator_id(self, filtered: bool | None = None) -> str | None:
        return self._getter("creator_id", filtered)

    def get_category_id(self, filtered: bool | None = None) -> str | None:
        return self._getter("category_id", filtered)

    # Traversal

    async def get_creator(self) -> "User | None":
        creator_id = self.get_creator_id()
        if creator_id is None:
            return None
        return await self._platform.users.get(self.caller_token, creator_id)

    async def get_category(self) -> "Category | None":
        category_id = self.get_category_id()
        if category_id is None:
            return None
        return await self._platform.categories.get(self.caller_token, category_id)

    async def get_tasks(self, options: ListOptions | Mapping[str, Any] | None = None) -> list["Task"]:
        if not self.is_visible():
            return []
        return await self._platform.tasks.list(
            self.caller_token, scoped_options(options, project_id=self.get_id())
        )

    async def get_images(
        self, options: ListOptions | Mapping[str, Any] | None = None
    ) -> list["Image"]:
        if not self.is_visible():
            return []
        return await self._platform.images.list_for_project(
            self.caller_token, self.get_id(), options
        )

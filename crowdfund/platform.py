"""
Entry point of the crowdfunding core.

A Platform bundles the identity resolver and one repository gate per
entity type around a single async session factory. Wrappers returned by
the gates keep a reference to the platform so traversal re-enters the
gates with the wrapper's own token.

Usage:
    platform = Platform()
    user = await platform.users.create(None, {...})
    projects = await platform.projects.list(user.caller_token)
"""

import logging
from contextlib import AbstractContextManager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crowdfund.core.config import settings
from crowdfund.core.db import get_async_sessionmaker
from crowdfund.core.observability import configure_structured_logging, correlation_context
from crowdfund.domain.identity import IdentityResolver
from crowdfund.repos.applications import ApplicationRepository
from crowdfund.repos.categories import CategoryRepository
from crowdfund.repos.images import ImageRepository
from crowdfund.repos.projects import ProjectRepository
from crowdfund.repos.sessions import SessionRepository
from crowdfund.repos.tasks import TaskRepository
from crowdfund.repos.users import UserRepository

logger = logging.getLogger(__name__)


class Platform:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self.session_factory = session_factory or get_async_sessionmaker()
        self.identity = IdentityResolver(self.session_factory)

        self.users = UserRepository(self)
        self.sessions = SessionRepository(self)
        self.projects = ProjectRepository(self)
        self.categories = CategoryRepository(self)
        self.tasks = TaskRepository(self)
        self.applications = ApplicationRepository(self)
        self.images = ImageRepository(self)

    @classmethod
    def from_settings(cls) -> "Platform":
        """Build a platform from environment settings, configuring logging on the way."""
        if settings.observability_structured_logs:
            configure_structured_logging(settings.app_log_level)
        else:
            logging.basicConfig(level=settings.app_log_level.upper())
        logger.info("Starting %s (%s)", settings.app_name, settings.app_env.value)
        return cls()

    def request_context(self, request_id: str | None = None) -> AbstractContextManager[str]:
        """
        Scope the gate calls of one request under a single request ID.

        Usage:
            with platform.request_context(incoming_id) as request_id:
                await platform.projects.list(token)
        """
        return correlation_context(request_id)

"""Task wrapper. Every task field is public."""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from crowdfund.domain.options import ListOptions
from crowdfund.entities.base import BoundEntity, scoped_options

if TYPE_CHECKING:
    from crowdfund.entities.application import Application
    from crowdfund.entities.project import Project
    from crowdfund.entities.user import User
    from crowdfund.repos.tasks import TaskRepository

Options = ListOptions | Mapping[str, Any] | None


class Task(BoundEntity):
    entity_name = "task"

    @property
    def _gate(self) -> "TaskRepository":
        return self._platform.tasks

    async def get_data(self, filtered: bool | None = None) -> dict[str, Any]:
        filtered = self._binding.resolve_filtered(filtered)
        return {
            **self._base_data(),
            "title": self._get("title", filtered),
            "description": self._get("description", filtered),
            "supporter_goal": self._get("supporter_goal", filtered),
            "project_id": self._get("project_id", filtered),
        }

    def get_title(self, filtered: bool | None = None) -> str | None:
        return self._getter("title", filtered)

    def get_description(self, filtered: bool | None = None) -> str | None:
        return self._getter("description", filtered)

    def get_supporter_goal(self, filtered: bool | None = None) -> int | None:
        return self._getter("supporter_goal", filtered)

    def get_project_id(self, filtered: bool | None = None) -> str | None:
        return self._getter("project_id", filtered)

    async def get_project(self) -> "Project":
        return await self._platform.projects.get(self.caller_token, self._binding.data["project_id"])

    async def get_applications(self, options: Options = None) -> list["Application"]:
        return await self._platform.applications.list(
            self.caller_token, scoped_options(options, task_id=self.get_id())
        )

    async def get_supporters(self, options: Options = None) -> list["User"]:
        """Users whose application to this task was accepted."""
        return await self._platform.users.list(
            self.caller_token, scoped_options(options, supporting_task_id=self.get_id())
        )

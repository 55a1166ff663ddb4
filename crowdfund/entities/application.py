"""Application wrapper."""

from typing import TYPE_CHECKING, Any

from crowdfund.domain.visibility import RecordState
from crowdfund.entities.base import BoundEntity

if TYPE_CHECKING:
    from crowdfund.entities.task import Task
    from crowdfund.entities.user import User
    from crowdfund.repos.applications import ApplicationRepository


class Application(BoundEntity):
    """
    A user's application to support a task.

    text and user_id are chain-gated: visible to the applicant, to admins,
    and to the creator of the project the task belongs to. Finding that
    creator takes two hops (task, then project) through the gates with the
    wrapper's own token; the result is cached on the wrapper.
    """

    entity_name = "application"

    def __init__(self, platform, data, token=None):
        super().__init__(platform, data, token)
        self._chain_owner_id: str | None = None
        self._chain_resolved = False

    @property
    def _gate(self) -> "ApplicationRepository":
        return self._platform.applications

    def _state(self) -> RecordState:
        return RecordState(
            owner_id=self._binding.data["user_id"], chain_owner_id=self._chain_owner_id
        )

    async def _resolve_chain(self) -> str | None:
        if not self._chain_resolved:
            task = await self._platform.tasks.get(self.caller_token, self._binding.data["task_id"])
            project = await task.get_project()
            self._chain_owner_id = project.get_creator_id()
            self._chain_resolved = True
        return self._chain_owner_id

    async def _chain_state(self, filtered: bool) -> RecordState:
        caller = self.caller
        user_id = self._binding.data["user_id"]
        if filtered and caller is not None and not caller.is_admin and caller.id != user_id:
            await self._resolve_chain()
        return self._state()

    async def _chain_field(self, name: str, filtered: bool | None) -> Any:
        filtered = self._binding.resolve_filtered(filtered)
        return self._binding.field(name, await self._chain_state(filtered), filtered)

    async def get_data(self, filtered: bool | None = None) -> dict[str, Any]:
        filtered = self._binding.resolve_filtered(filtered)
        state = await self._chain_state(filtered)
        return {
            **self._base_data(),
            "text": self._binding.field("text", state, filtered),
            "accepted": self._get("accepted", filtered),
            "user_id": self._binding.field("user_id", state, filtered),
            "task_id": self._get("task_id", filtered),
        }

    async def get_text(self, filtered: bool | None = None) -> str | None:
        return await self._chain_field("text", filtered)

    async def get_user_id(self, filtered: bool | None = None) -> str | None:
        return await self._chain_field("user_id", filtered)

    def get_accepted(self, filtered: bool | None = None) -> bool | None:
        return self._getter("accepted", filtered)

    def get_task_id(self, filtered: bool | None = None) -> str | None:
        return self._getter("task_id", filtered)

    async def get_user(self) -> "User | None":
        user_id = await self.get_user_id()
        if user_id is None:
            return None
        return await self._platform.users.get(self.caller_token, user_id)

    async def get_task(self) -> "Task":
        return await self._platform.tasks.get(self.caller_token, self._binding.data["task_id"])

    async def reload(self):
        self._chain_owner_id = None
        self._chain_resolved = False
        return await super().reload()

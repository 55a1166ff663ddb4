"""Session wrapper. Session data is only visible to its owner and to admins."""

from typing import TYPE_CHECKING, Any

from crowdfund.domain.visibility import Policy, RecordState, visible
from crowdfund.entities.base import BoundEntity

if TYPE_CHECKING:
    from crowdfund.entities.user import User
    from crowdfund.repos.sessions import SessionRepository


class Session(BoundEntity):
    entity_name = "session"

    @property
    def _gate(self) -> "SessionRepository":
        return self._platform.sessions

    def _state(self) -> RecordState:
        return RecordState(owner_id=self._binding.data["user_id"])

    async def get_data(self, filtered: bool | None = None) -> dict[str, Any] | None:
        filtered = self._binding.resolve_filtered(filtered)
        if filtered and not visible(Policy.OWNER, self._state(), self.caller):
            return None
        return {
            **self._base_data(),
            "token": self._get("token", filtered),
            "user_id": self._get("user_id", filtered),
        }

    def get_token(self, filtered: bool | None = None) -> str | None:
        return self._getter("token", filtered)

    def get_user_id(self, filtered: bool | None = None) -> str | None:
        return self._getter("user_id", filtered)

    async def get_user(self) -> "User | None":
        user_id = self.get_user_id()
        if user_id is None:
            return None
        return await self._platform.users.get(self.caller_token, user_id)

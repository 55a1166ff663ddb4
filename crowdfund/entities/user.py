"""User wrapper."""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from crowdfund.core.errors import InvariantError
from crowdfund.domain.options import ListOptions
from crowdfund.domain.visibility import RecordState
from crowdfund.entities.base import BoundEntity, scoped_options

if TYPE_CHECKING:
    from crowdfund.entities.application import Application
    from crowdfund.entities.project import Project
    from crowdfund.entities.session import Session
    from crowdfund.entities.task import Task
    from crowdfund.repos.users import UserRepository

Options = ListOptions | Mapping[str, Any] | None


class User(BoundEntity):
    """
    A registered user.

    mail is only visible to the user and to admins. The password hash is
    never part of a filtered projection.
    """

    entity_name = "user"

    @property
    def _gate(self) -> "UserRepository":
        return self._platform.users

    def _state(self) -> RecordState:
        return RecordState(owner_id=self._binding.data["id"])

    async def get_data(self, filtered: bool | None = None) -> dict[str, Any]:
        filtered = self._binding.resolve_filtered(filtered)
        return {
            **self._base_data(),
            "fullname": self._get("fullname", filtered),
            "mail": self._get("mail", filtered),
            "gender": self._get("gender", filtered),
            "role": self._get("role", filtered),
            "password": self._get("password", filtered),
        }

    def get_fullname(self, filtered: bool | None = None) -> str | None:
        return self._getter("fullname", filtered)

    def get_mail(self, filtered: bool | None = None) -> str | None:
        return self._getter("mail", filtered)

    def get_gender(self, filtered: bool | None = None) -> str | None:
        return self._getter("gender", filtered)

    def get_role(self, filtered: bool | None = None) -> str | None:
        return self._getter("role", filtered)

    def get_password(self, filtered: bool | None = None) -> str | None:
        return self._getter("password", filtered)

    async def logout(self) -> None:
        """Delete the session this wrapper is bound to and detach the caller."""
        if not self.is_authenticated:
            raise InvariantError("Unauthenticated instances can not be logged out")

        await self._platform.sessions.delete_by_token(self.caller_token, self.caller_token)
        self.make_system()

    async def get_sessions(self, options: Options = None) -> list["Session"]:
        return await self._platform.sessions.list(
            self.caller_token, scoped_options(options, user_id=self.get_id())
        )

    async def get_projects(self, options: Options = None) -> list["Project"]:
        scoped = scoped_options(options, creator_id=self.get_id())
        scoped.setdefault("include_hidden", True)
        return await self._platform.projects.list(self.caller_token, scoped)

    async def get_supported_tasks(self, options: Options = None) -> list["Task"]:
        return await self._platform.tasks.list(
            self.caller_token, scoped_options(options, supporter_id=self.get_id())
        )

    async def get_applications(self, options: Options = None) -> list["Application"]:
        return await self._platform.applications.list(
            self.caller_token, scoped_options(options, user_id=self.get_id())
        )

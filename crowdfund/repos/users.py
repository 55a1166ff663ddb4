"""
Repository gate for users.

- list: admins, or anyone listing the supporters of a task
- create: anonymous self-registration (never as ADMIN) or admin
- update: the user themself or an admin; only admins may grant ADMIN
- delete: the user themself or an admin
"""

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from crowdfund.core.errors import ValidationError
from crowdfund.core.security import generate_session_token, hash_password
from crowdfund.db.models import Application, Session, User
from crowdfund.domain.enums import UserRole, UserSortField, UserValidationErrorCode
from crowdfund.domain.identity import Identity
from crowdfund.domain.options import ListOptions
from crowdfund.domain.validation import validate_user
from crowdfund.entities.user import User as UserEntity
from crowdfund.repos.common import Repository

logger = logging.getLogger(__name__)

MAIL_ALREADY_USED_MESSAGE = "This mail address is already used"


class UserRepository(Repository):
    entity_name = "user"
    model = User
    wrapper = UserEntity
    sort_fields = UserSortField
    filter_fields = frozenset({"role", "supporting_task_id"})
    writable_fields = frozenset({"fullname", "mail", "gender", "role", "password"})
    validator = staticmethod(validate_user)
    integrity_codes = (
        (("users.mail", "users_mail_key"), UserValidationErrorCode.MAIL_ALREADY_USED),
    )

    async def _authorize_list(
        self, db: AsyncSession, caller: Identity, options: ListOptions
    ) -> None:
        if caller.is_admin or options.filter.get("supporting_task_id") is not None:
            return
        raise self._deny("list", caller, "only admins may list users without a task filter")

    def _apply_filter(self, stmt: Select, field: str, value: Any) -> Select:
        if field == "supporting_task_id":
            supporters = select(Application.user_id).where(
                Application.task_id == value, Application.accepted.is_(True)
            )
            return stmt.where(User.id.in_(supporters))
        return super()._apply_filter(stmt, field, value)

    async def _authorize_update(
        self, db: AsyncSession, caller: Identity, row: User, changes: dict[str, Any]
    ) -> None:
        if caller.is_admin:
            return
        if caller.id != row.id:
            raise self._deny("update", caller, "users may only update themselves")
        if changes.get("role") == UserRole.ADMIN.value:
            raise self._deny("update", caller, "only admins may grant the ADMIN role")

    async def _authorize_delete(self, db: AsyncSession, caller: Identity, row: User) -> None:
        if not caller.is_admin and caller.id != row.id:
            raise self._deny("delete", caller, "users may only delete themselves")

    def _candidate(self, row: User, changes: Mapping[str, Any]) -> dict[str, Any]:
        candidate = super()._candidate(row, changes)
        # the stored hash is not a candidate password
        if "password" not in changes:
            candidate.pop("password", None)
        return candidate

    async def _prepare_update(
        self, db: AsyncSession, caller: Identity, row: User, changes: dict[str, Any]
    ) -> dict[str, Any]:
        if "mail" in changes:
            await self._check_mail_free(db, changes["mail"])
        if "password" in changes:
            changes = {**changes, "password": hash_password(changes["password"])}
        return changes

    async def _check_mail_free(self, db: AsyncSession, mail: str) -> None:
        result = await db.execute(select(User.id).where(User.mail == mail))
        if result.first() is not None:
            raise ValidationError(
                MAIL_ALREADY_USED_MESSAGE, UserValidationErrorCode.MAIL_ALREADY_USED
            )

    async def get_by_mail(self, db: AsyncSession, mail: str) -> User | None:
        result = await db.execute(select(User).where(User.mail == mail))
        return result.scalar_one_or_none()

    async def create(self, token: Any, values: Mapping[str, Any]) -> UserEntity:
        """
        Register a user.

        Without a token (or with one that matches no session) this is a
        self-registration: the new user gets a session and the returned
        wrapper is bound to it. Admins may create users of any role and get
        a wrapper bound to their own token.

        Raises:
            AuthorizationError: If a non-admin asks for the ADMIN role
            ValidationError: If the candidate is invalid or the mail is taken
        """
        caller = await self.platform.identity.resolve(token) if token is not None else None
        values = {"password": None, **self._writable(values)}

        if values.get("role") == UserRole.ADMIN.value and not (caller and caller.is_admin):
            raise self._deny("create", caller, "only admins may create admins")

        self._validate(values)

        async with self._storage("create", caller) as db:
            await self._check_mail_free(db, values["mail"])
            row = await self._insert(db, {**values, "password": hash_password(values["password"])})

            if caller is None:
                session_token = generate_session_token()
                db.add(Session(token=session_token, user_id=row.id))
                await db.flush()
                logger.info("Issued session for newly registered user %s", row.id)
                wrapped = await self._wrap(row, session_token, Identity.from_user(row))
            else:
                wrapped = await self._wrap(row, token, caller)

        self._record("create", "success")
        return wrapped

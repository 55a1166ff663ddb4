"""
Repository gate for sessions.

Creating a session is a login: the caller presents a mail address and a
password and receives a fresh token. Sessions have no writable fields.
Only the owner of a session or an admin may see or remove it.
"""

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from crowdfund.core.errors import NotFoundError
from crowdfund.core.security import generate_session_token, verify_password
from crowdfund.db.models import Session
from crowdfund.domain.enums import SessionSortField
from crowdfund.domain.identity import Identity, check_token_shape
from crowdfund.domain.options import ListOptions
from crowdfund.entities.session import Session as SessionEntity
from crowdfund.repos.common import Repository

logger = logging.getLogger(__name__)


class SessionRepository(Repository):
    entity_name = "session"
    model = Session
    wrapper = SessionEntity
    sort_fields = SessionSortField
    filter_fields = frozenset({"user_id"})

    def _require_owner(self, operation: str, caller: Identity, row: Session) -> None:
        if not caller.is_admin and caller.id != row.user_id:
            raise self._deny(operation, caller, "not the owner of this session")

    async def _authorize_list(
        self, db: AsyncSession, caller: Identity, options: ListOptions
    ) -> None:
        if caller.is_admin:
            return
        requested = options.filter.get("user_id")
        if requested is not None and requested != caller.id:
            raise self._deny("list", caller, "sessions of other users requested")
        # non-admins only ever see their own sessions
        options.filter["user_id"] = caller.id

    async def _authorize_get(self, db: AsyncSession, caller: Identity, row: Session) -> None:
        self._require_owner("get", caller, row)

    async def _authorize_update(
        self, db: AsyncSession, caller: Identity, row: Session, changes: dict[str, Any]
    ) -> None:
        self._require_owner("update", caller, row)

    async def _authorize_delete(self, db: AsyncSession, caller: Identity, row: Session) -> None:
        self._require_owner("delete", caller, row)

    async def create(self, token: Any, credentials: Mapping[str, Any]) -> SessionEntity:
        """
        Log in with a mail address and password.

        Args:
            token: Ignored; logging in does not require an existing session
            credentials: Mapping with "mail" and "password"

        Returns:
            The new session, bound to and authenticated with its own token

        Raises:
            AuthorizationError: If the credentials do not match a user
        """
        mail = credentials.get("mail") if isinstance(credentials, Mapping) else None
        password = credentials.get("password") if isinstance(credentials, Mapping) else None
        if not isinstance(mail, str) or not isinstance(password, str):
            raise self._deny("create", None, "malformed credentials")

        async with self._storage("create") as db:
            user = await self.platform.users.get_by_mail(db, mail)
            if user is None or not verify_password(password, user.password):
                raise self._deny("create", None, "invalid credentials")

            row = await self._insert(db, {"token": generate_session_token(), "user_id": user.id})
            wrapped = await self._wrap(row, row.token, Identity.from_user(user))

        self._record("create", "success")
        return wrapped

    async def delete_by_token(self, token: Any, session_token: Any) -> None:
        """
        Log out: delete the session identified by `session_token`.

        Raises:
            AuthorizationError: If the caller is not registered or not the owner
            NotFoundError: If no session has this token
        """
        caller = await self._caller(token)
        session_token = check_token_shape(session_token)

        async with self._storage("delete", caller) as db:
            result = await db.execute(select(Session).where(Session.token == session_token))
            row = result.scalar_one_or_none()
            if row is None:
                raise NotFoundError("Session not found")
            self._require_owner("delete", caller, row)
            await db.execute(delete(Session).where(Session.id == row.id))

        self._record("delete", "success")
        logger.info("Session %s closed", row.id)

"""
Identity resolver: maps an opaque session token to the caller behind it.

`resolve` distinguishes a malformed token (AuthorizationError) from a
well-formed token that matches no session (None). `require_auth` turns
the latter into an AuthorizationError as well.
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crowdfund.core.errors import AuthorizationError, StorageError
from crowdfund.db.models import Session, User
from crowdfund.domain.enums import UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """A resolved caller."""

    id: str
    role: UserRole
    mail: str
    fullname: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_initiator(self) -> bool:
        return self.role == UserRole.INITIATOR

    @property
    def is_supporter(self) -> bool:
        return self.role == UserRole.SUPPORTER

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(id=user.id, role=UserRole(user.role), mail=user.mail, fullname=user.fullname)


def check_token_shape(token: Any) -> str:
    """Reject anything that is not a non-empty string."""
    if not isinstance(token, str) or not token:
        raise AuthorizationError("The provided token was not a non-empty string.")
    return token


class IdentityResolver:
    """Looks up sessions by exact token match and joins them to their owner."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def resolve(self, token: Any) -> Identity | None:
        """
        Resolve a token to the identity that owns it.

        Args:
            token: Opaque session token

        Returns:
            The caller identity, or None when no session matches

        Raises:
            AuthorizationError: If the token is not a non-empty string
            StorageError: If the session store cannot be queried
        """
        token = check_token_shape(token)

        stmt = select(User).join(Session, Session.user_id == User.id).where(Session.token == token)
        try:
            async with self._session_factory() as db:
                result = await db.execute(stmt)
                user = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Session lookup failed", exc_info=True)
            raise StorageError(str(e)) from e

        if user is None:
            logger.debug("Token did not match any session")
            return None

        return Identity.from_user(user)

    async def require_auth(self, token: Any) -> Identity:
        """Resolve a token, failing when it does not identify anyone."""
        identity = await self.resolve(token)
        if identity is None:
            raise AuthorizationError("The provided token was invalid.")
        return identity

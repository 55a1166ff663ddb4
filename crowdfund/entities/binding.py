"""
Caller binding shared by every entity wrapper.

A binding owns one snapshot of a stored record together with the token the
record was fetched with and, once resolved, the caller identity. It knows
the three wrapper states:

- system: no token. Internal use only, projections are never filtered.
- unauthenticated: a token, but no identity attached yet.
- authenticated: identity resolved and attached.
"""

import logging
import warnings
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from crowdfund.core.errors import FilterMisuseWarning, InvariantError
from crowdfund.core.observability import metrics
from crowdfund.domain.identity import Identity
from crowdfund.domain.visibility import RecordState, policy_for, visible

if TYPE_CHECKING:
    from crowdfund.platform import Platform

logger = logging.getLogger(__name__)


class CallerBinding:
    def __init__(
        self, platform: "Platform", entity: str, data: Mapping[str, Any], token: str | None = None
    ):
        self.platform = platform
        self.entity = entity
        self.data = dict(data)
        self.token = token if isinstance(token, str) else None
        self.identity: Identity | None = None

    @property
    def is_system(self) -> bool:
        return self.token is None

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    async def authenticate(self, identity: Identity | None = None) -> None:
        """
        Attach the caller identity.

        A pre-fetched identity is reused as is; otherwise the token is
        resolved through the identity resolver.

        Raises:
            InvariantError: If this is a system binding
            AuthorizationError: If the token does not identify a caller
        """
        if self.is_system:
            raise InvariantError(
                f"{self.entity} system instances cannot be authenticated",
                details={"entity": self.entity},
            )
        if self.is_authenticated:
            return

        if identity is None:
            identity = await self.platform.identity.require_auth(self.token)
        self.identity = identity

    def unauthenticate(self) -> None:
        if not self.is_authenticated:
            raise InvariantError(f"{self.entity} instance is not authenticated")
        self.identity = None

    def make_system(self) -> None:
        self.identity = None
        self.token = None

    def resolve_filtered(self, filtered: bool | None) -> bool:
        """Turn the caller's `filtered` request into a decision, flagging probable misuse."""
        if filtered is None:
            return self.is_authenticated

        if filtered and not self.is_authenticated:
            self._misuse(
                "filtered",
                f"{self.entity} was asked for filtered output, but the instance is "
                "unauthenticated so nothing caller-specific can be shown. "
                "Did you mean filtered=False?",
            )
        elif not filtered and self.is_authenticated:
            self._misuse(
                "unfiltered",
                f"{self.entity} was asked for unfiltered output, but the instance is "
                "authenticated so this may leak sensitive data. Did you mean filtered=True?",
            )
        return filtered

    def _misuse(self, kind: str, message: str) -> None:
        metrics.visibility_misuse_total.labels(entity=self.entity, kind=kind).inc()
        logger.warning(message, extra={"entity": self.entity, "kind": kind})
        warnings.warn(message, FilterMisuseWarning, stacklevel=4)

    def field(self, name: str, state: RecordState, filtered: bool) -> Any:
        """Value of one field under an already resolved `filtered` decision."""
        value = self.data.get(name)
        if not filtered:
            return value
        return value if visible(policy_for(self.entity, name), state, self.identity) else None

    def replace(self, data: Mapping[str, Any]) -> None:
        self.data = dict(data)

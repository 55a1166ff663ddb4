"""
Shared capability set of the entity wrappers.

Every wrapper composes a CallerBinding and exposes the same surface:
authenticate, get_data, get_id/get_created_at/get_updated_at, update,
delete and reload. `BoundEntity` supplies the parts of that surface that
are identical for every entity type; it keeps no state of its own.
"""

import inspect
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from crowdfund.domain.identity import Identity
from crowdfund.domain.options import ListOptions
from crowdfund.domain.visibility import RecordState
from crowdfund.entities.binding import CallerBinding

if TYPE_CHECKING:
    from crowdfund.platform import Platform
    from crowdfund.repos.common import Repository


@runtime_checkable
class Entity(Protocol):
    entity_name: str

    async def authenticate(self, identity: Identity | None = None) -> Any: ...

    async def get_data(self, filtered: bool | None = None) -> dict[str, Any] | None: ...

    def get_id(self, filtered: bool | None = None) -> str: ...

    async def update(self, patch: Mapping[str, Any]) -> Any: ...

    async def delete(self) -> None: ...

    async def reload(self) -> Any: ...


def scoped_options(
    options: ListOptions | Mapping[str, Any] | None, **filters: Any
) -> dict[str, Any]:
    """Copy list options and pin the given filter fields."""
    if options is None:
        scoped: dict[str, Any] = {}
    elif isinstance(options, ListOptions):
        scoped = options.model_dump(exclude_none=True)
    else:
        scoped = dict(options)

    scoped["filter"] = {**(scoped.get("filter") or {}), **filters}
    return scoped


async def get_data_from_object(
    obj: Any, filtered: bool | None = None, depth: int = 0, max_depth: int = 3
) -> Any:
    """
    Project every wrapper found in `obj`.

    Walks lists, tuples and mappings up to `max_depth` levels, awaiting any
    awaitable on the way, and replaces each wrapper by its `get_data`.
    """
    if depth > max_depth:
        return obj

    if inspect.isawaitable(obj):
        obj = await obj

    if isinstance(obj, Entity):
        return await obj.get_data(filtered)

    if isinstance(obj, (list, tuple)):
        return [await get_data_from_object(item, filtered, depth + 1, max_depth) for item in obj]

    if isinstance(obj, Mapping):
        return {
            key: await get_data_from_object(value, filtered, depth + 1, max_depth)
            for key, value in obj.items()
        }

    return obj


class BoundEntity:
    """Delegations shared by all wrappers. Subclasses set `entity_name` and `_gate`."""

    entity_name: str
    _binding: CallerBinding

    def __init__(
        self, platform: "Platform", data: Mapping[str, Any], token: str | None = None
    ) -> None:
        self._platform = platform
        self._binding = CallerBinding(platform, self.entity_name, data, token)

    @property
    def _gate(self) -> "Repository":
        raise NotImplementedError

    def _state(self) -> RecordState:
        return RecordState()

    def _get(self, name: str, filtered: bool) -> Any:
        return self._binding.field(name, self._state(), filtered)

    def _getter(self, name: str, filtered: bool | None) -> Any:
        return self._get(name, self._binding.resolve_filtered(filtered))

    def __repr__(self) -> str:
        state = (
            "system"
            if self.is_system
            else "authenticated" if self.is_authenticated else "unauthenticated"
        )
        return f"<{type(self).__name__}(id={self._binding.data.get('id')}, {state})>"

    # State

    @property
    def is_system(self) -> bool:
        return self._binding.is_system

    @property
    def is_authenticated(self) -> bool:
        return self._binding.is_authenticated

    @property
    def caller(self) -> Identity | None:
        return self._binding.identity

    @property
    def caller_token(self) -> str | None:
        return self._binding.token

    async def authenticate(self, identity: Identity | None = None):
        await self._binding.authenticate(identity)
        return self

    def unauthenticate(self):
        self._binding.unauthenticate()
        return self

    def make_system(self):
        self._binding.make_system()
        return self

    # Universally visible fields

    def get_id(self, filtered: bool | None = None) -> str:
        return self._binding.data["id"]

    def get_created_at(self, filtered: bool | None = None) -> datetime:
        return self._binding.data["created_at"]

    def get_updated_at(self, filtered: bool | None = None) -> datetime:
        return self._binding.data["updated_at"]

    def _base_data(self) -> dict[str, Any]:
        return {
            "id": self.get_id(),
            "created_at": self.get_created_at(),
            "updated_at": self.get_updated_at(),
        }

    # Lifecycle

    async def reload(self):
        """Re-read the stored record behind this wrapper."""
        self._binding.replace(await self._gate.snapshot(self.get_id()))
        return self

    async def update(self, patch: Mapping[str, Any]):
        await self._gate.update(self.caller_token, self.get_id(), patch)
        return await self.reload()

    async def delete(self) -> None:
        await self._gate.delete(self.caller_token, self.get_id())

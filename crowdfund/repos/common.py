"""
Common repository gate plumbing shared by every entity type.

A gate resolves the caller, loads what it needs, authorizes, validates and
only then writes. Each public method runs in its own AsyncSession that is
committed once at the end and rolled back on failure. Storage failures are
translated here, once, into domain errors.

All methods are async - use AsyncSession from SQLAlchemy.
"""

import logging
from collections.abc import AsyncIterator, Callable, Iterable, Mapping
from contextlib import asynccontextmanager
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy import Select, delete, inspect, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crowdfund.core.errors import (
    AuthorizationError,
    CrowdfundError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from crowdfund.core.observability import metrics, reset_caller_id, set_caller_id
from crowdfund.db.models import Base, Project, Task
from crowdfund.domain.enums import PayloadValidationErrorCode, SortDirection
from crowdfund.domain.identity import Identity
from crowdfund.domain.options import ListOptions, parse_list_options
from crowdfund.entities.base import BoundEntity

if TYPE_CHECKING:
    from crowdfund.platform import Platform

logger = logging.getLogger(__name__)

__all__ = [
    "Repository",
    "snapshot_row",
    "project_creator_id",
    "task_project_creator_id",
]


def snapshot_row(
    row: Any, *, include: Iterable[str] | None = None, exclude: Iterable[str] | None = None
) -> dict[str, Any]:
    """Snapshot an ORM row into a plain dict of its mapped column values.

    Args:
        row: SQLAlchemy ORM instance.
        include: Optional whitelist of field names.
        exclude: Optional blacklist of field names.
    """
    column_names = [attr.key for attr in inspect(row).mapper.column_attrs]

    if include is not None:
        include_set = set(include)
        column_names = [n for n in column_names if n in include_set]

    if exclude is not None:
        exclude_set = set(exclude)
        column_names = [n for n in column_names if n not in exclude_set]

    return {name: getattr(row, name) for name in column_names}


async def project_creator_id(db: AsyncSession, project_id: str) -> str | None:
    """Return the creator of a project, or None when the project does not exist."""
    result = await db.execute(select(Project.creator_id).where(Project.id == project_id))
    return result.scalar_one_or_none()


async def task_project_creator_id(db: AsyncSession, task_id: str) -> str | None:
    """Follow Task -> Project -> creator in one query."""
    stmt = (
        select(Project.creator_id)
        .join(Task, Task.project_id == Project.id)
        .where(Task.id == task_id)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


class Repository:
    """
    Base class of the per-entity repository gates.

    Subclasses describe their entity with class attributes and override the
    `_authorize_*` hooks where the entity's rules differ from the defaults
    (any registered caller may read, only admins may mutate).
    """

    entity_name: ClassVar[str]
    model: ClassVar[type[Base]]
    wrapper: ClassVar[type[BoundEntity]]
    sort_fields: ClassVar[type[Enum]]
    filter_fields: ClassVar[frozenset[str]] = frozenset()
    writable_fields: ClassVar[frozenset[str]] = frozenset()
    validator: ClassVar[Callable[[Mapping[str, Any]], None] | None] = None
    # (substrings of the driver message, validation code) pairs
    integrity_codes: ClassVar[tuple[tuple[tuple[str, ...], Enum], ...]] = ()

    def __init__(self, platform: "Platform"):
        self.platform = platform

    # ------------------------------------------------------------------
    # Storage boundary
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _storage(
        self, operation: str, caller: Identity | None = None
    ) -> AsyncIterator[AsyncSession]:
        """
        Open a session, commit on success and translate storage failures.

        Log lines emitted inside the block carry the caller\x27s id, or none
        for anonymous and system calls.
        """
        caller_token = set_caller_id(caller.id if caller else "")
        try:
            async with self.platform.session_factory() as db:
                yield db
                await db.commit()
        except IntegrityError as e:
            error = self._translate_integrity_error(e)
            if error is None:
                raise self._storage_error(operation, e) from e
            self._record(operation, "invalid")
            raise error from e
        except SQLAlchemyError as e:
            raise self._storage_error(operation, e) from e
        finally:
            reset_caller_id(caller_token)

    def _translate_integrity_error(self, error: IntegrityError) -> CrowdfundError | None:
        message = str(error.orig)
        for needles, code in self.integrity_codes:
            if any(needle in message for needle in needles):
                return ValidationError(f"{self.entity_name}: {message}", code)
        return None

    def _storage_error(self, operation: str, error: SQLAlchemyError) -> StorageError:
        metrics.storage_errors_total.labels(entity=self.entity_name, operation=operation).inc()
        self._record(operation, "error")
        logger.error(
            "Storage failure during %s.%s",
            self.entity_name,
            operation,
            exc_info=True,
            extra={"entity": self.entity_name, "operation": operation},
        )
        message = str(getattr(error, "orig", None) or error)
        return StorageError(message, details={"entity": self.entity_name, "operation": operation})

    def _record(self, operation: str, outcome: str) -> None:
        metrics.gate_operations_total.labels(
            entity=self.entity_name, operation=operation, outcome=outcome
        ).inc()

    # ------------------------------------------------------------------
    # Caller and authorization helpers
    # ------------------------------------------------------------------

    async def _caller(self, token: Any) -> Identity:
        return await self.platform.identity.require_auth(token)

    def _deny(self, operation: str, caller: Identity | None, reason: str) -> AuthorizationError:
        metrics.authorization_denials_total.labels(
            entity=self.entity_name, operation=operation
        ).inc()
        self._record(operation, "denied")
        logger.warning(
            "Authorization denied for %s.%s",
            self.entity_name,
            operation,
            extra={
                "entity": self.entity_name,
                "operation": operation,
                "caller_id": caller.id if caller else None,
                "reason": reason,
            },
        )
        return AuthorizationError()

    def _require_admin(self, operation: str, caller: Identity) -> None:
        if not caller.is_admin:
            raise self._deny(operation, caller, "admin role required")

    async def _authorize_list(
        self, db: AsyncSession, caller: Identity, options: ListOptions
    ) -> None:
        return None

    async def _authorize_get(self, db: AsyncSession, caller: Identity, row: Any) -> None:
        return None

    async def _authorize_update(
        self, db: AsyncSession, caller: Identity, row: Any, changes: dict[str, Any]
    ) -> None:
        self._require_admin("update", caller)

    async def _authorize_delete(self, db: AsyncSession, caller: Identity, row: Any) -> None:
        self._require_admin("delete", caller)

    # ------------------------------------------------------------------
    # Loading, wrapping and querying
    # ------------------------------------------------------------------

    async def _load(
        self,
        db: AsyncSession,
        entity_id: Any,
        *,
        model: type[Base] | None = None,
        for_update: bool = False,
    ) -> Any:
        model = model or self.model
        row = None
        if isinstance(entity_id, str):
            stmt = select(model).where(model.id == entity_id)
            if for_update:
                stmt = stmt.with_for_update()
            result = await db.execute(stmt)
            row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(
                f"{model.__name__} not found", details={"id": str(entity_id)}
            )
        return row

    async def _exists(self, db: AsyncSession, model: type[Base], entity_id: Any) -> bool:
        if not isinstance(entity_id, str):
            return False
        result = await db.execute(select(model.id).where(model.id == entity_id))
        return result.first() is not None

    async def _wrap(self, row: Any, token: str | None, caller: Identity | None = None):
        wrapped = self.wrapper(self.platform, snapshot_row(row), token)
        if token is not None:
            await wrapped.authenticate(caller)
        return wrapped

    async def _wrap_all(self, rows: Iterable[Any], token: str, caller: Identity) -> list:
        return [await self._wrap(row, token, caller) for row in rows]

    def _parse_options(
        self, options: ListOptions | Mapping[str, Any] | None, **kwargs: Any
    ) -> ListOptions:
        return parse_list_options(
            options, filter_fields=self.filter_fields, sort_fields=self.sort_fields, **kwargs
        )

    async def _query(
        self, db: AsyncSession, options: ListOptions, token: str, caller: Identity
    ) -> list:
        stmt = self._apply_filters(select(self.model), options.filter)
        stmt = self._apply_sort(stmt, options)
        result = await db.execute(stmt)
        rows = result.scalars().all()
        logger.debug("Listed %d %s rows", len(rows), self.entity_name)
        return await self._wrap_all(rows, token, caller)

    def _apply_filter(self, stmt: Select, field: str, value: Any) -> Select:
        return stmt.where(getattr(self.model, field) == value)

    def _apply_filters(self, stmt: Select, filters: Mapping[str, Any]) -> Select:
        for field, value in filters.items():
            if isinstance(value, Enum):
                value = value.value
            stmt = self._apply_filter(stmt, field, value)
        return stmt

    def _apply_sort(self, stmt: Select, options: ListOptions) -> Select:
        if options.sort is None:
            return stmt.order_by(self.model.created_at, self.model.id)

        column = getattr(self.model, options.sort.field)
        if options.sort.direction == SortDirection.DESC:
            return stmt.order_by(column.desc(), self.model.id)
        return stmt.order_by(column.asc(), self.model.id)

    def _writable(self, patch: Mapping[str, Any]) -> dict[str, Any]:
        """Keep only the fields callers may write; identifiers and timestamps are dropped."""
        if not isinstance(patch, Mapping):
            raise self._malformed(patch)
        return {
            key: value.value if isinstance(value, Enum) else value
            for key, value in patch.items()
            if key in self.writable_fields
        }

    def _malformed(self, payload: Any) -> ValidationError:
        return ValidationError(
            f"{self.entity_name} payload must be a mapping of fields",
            PayloadValidationErrorCode.PAYLOAD_NOT_MAPPING,
            {"received": type(payload).__name__},
        )

    def _candidate(self, row: Any, changes: Mapping[str, Any]) -> dict[str, Any]:
        current = snapshot_row(row, include=self.writable_fields)
        return {**current, **changes}

    def _validate(self, candidate: Mapping[str, Any]) -> None:
        if self.validator is not None:
            self.validator(candidate)

    async def _prepare_update(
        self, db: AsyncSession, caller: Identity, row: Any, changes: dict[str, Any]
    ) -> dict[str, Any]:
        """Last chance to check references or transform values before they are written."""
        return changes

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def snapshot(self, entity_id: Any) -> dict[str, Any]:
        """Read the stored record without any caller. For wrapper reloads only."""
        async with self._storage("snapshot") as db:
            return snapshot_row(await self._load(db, entity_id))

    async def list(self, token: Any, options: ListOptions | Mapping[str, Any] | None = None):
        """
        List entities visible to a registered caller.

        Args:
            token: Caller session token
            options: Filter and sort specification

        Returns:
            Wrappers bound to the caller's token, in the requested order
        """
        caller = await self._caller(token)
        options = self._parse_options(options)

        async with self._storage("list", caller) as db:
            await self._authorize_list(db, caller, options)
            wrapped = await self._query(db, options, token, caller)

        self._record("list", "success")
        return wrapped

    async def get(self, token: Any, entity_id: Any):
        """
        Get one entity by id.

        Raises:
            AuthorizationError: If the caller is not registered or not permitted
            NotFoundError: If no entity has this id
        """
        caller = await self._caller(token)

        async with self._storage("get", caller) as db:
            row = await self._load(db, entity_id)
            await self._authorize_get(db, caller, row)
            wrapped = await self._wrap(row, token, caller)

        self._record("get", "success")
        return wrapped

    async def update(self, token: Any, entity_id: Any, patch: Mapping[str, Any]):
        """
        Merge `patch` into the stored entity.

        Unknown and immutable keys are ignored; an empty patch writes nothing.
        The merged candidate is validated before anything is written.

        Raises:
            AuthorizationError: If the caller may not update this entity
            NotFoundError: If no entity has this id
            ValidationError: If the patch is not a mapping or the merged candidate is invalid
        """
        caller = await self._caller(token)

        async with self._storage("update", caller) as db:
            row = await self._load(db, entity_id, for_update=True)
            requested = self._writable(patch) if isinstance(patch, Mapping) else {}
            changes = {
                key: value for key, value in requested.items() if getattr(row, key) != value
            }
            await self._authorize_update(db, caller, row, changes)
            if not isinstance(patch, Mapping):
                raise self._malformed(patch)

            if changes:
                self._validate(self._candidate(row, changes))
                changes = await self._prepare_update(db, caller, row, changes)
                for key, value in changes.items():
                    setattr(row, key, value)
                await db.flush()
                await db.refresh(row)
                logger.info(
                    "Updated %s %s", self.entity_name, row.id, extra={"fields": sorted(changes)}
                )

            wrapped = await self._wrap(row, token, caller)

        self._record("update", "success" if changes else "noop")
        return wrapped

    async def delete(self, token: Any, entity_id: Any) -> None:
        """
        Delete one entity. Dependent rows cascade or detach at the storage layer.

        Raises:
            AuthorizationError: If the caller may not delete this entity
            NotFoundError: If no entity has this id
        """
        caller = await self._caller(token)

        async with self._storage("delete", caller) as db:
            row = await self._load(db, entity_id)
            await self._authorize_delete(db, caller, row)
            await db.execute(delete(self.model).where(self.model.id == row.id))
            logger.info("Deleted %s %s", self.entity_name, row.id)

        self._record("delete", "success")

    async def _insert(self, db: AsyncSession, values: Mapping[str, Any]) -> Any:
        row = self.model(**values)
        db.add(row)
        await db.flush()
        # reload so callers see what the columns stored, e.g. money at cent scale
        await db.refresh(row)
        logger.info("Created %s %s", self.entity_name, row.id)
        return row

"""
Repository gate for applications.

Any registered caller may apply to a task, as themself and at most once
per task, and list applications. Only admins may filter on another
user's id. Accepting, editing and removing applications is reserved to
admins and the creator of the project reached through the task.
"""

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crowdfund.core.errors import ValidationError
from crowdfund.db.models import Application, Task
from crowdfund.domain.enums import ApplicationSortField, ApplicationValidationErrorCode
from crowdfund.domain.identity import Identity
from crowdfund.domain.options import ListOptions
from crowdfund.domain.validation import validate_application
from crowdfund.entities.application import Application as ApplicationEntity
from crowdfund.repos.common import Repository, task_project_creator_id

logger = logging.getLogger(__name__)

ALREADY_APPLIED_MESSAGE = "The user already applied to this task"


class ApplicationRepository(Repository):
    entity_name = "application"
    model = Application
    wrapper = ApplicationEntity
    sort_fields = ApplicationSortField
    filter_fields = frozenset({"task_id", "user_id", "accepted"})
    writable_fields = frozenset({"text", "accepted"})
    validator = staticmethod(validate_application)
    integrity_codes = (
        (
            ("uq_applications_user_task", "applications.user_id, applications.task_id"),
            ApplicationValidationErrorCode.ALREADY_APPLIED,
        ),
    )

    async def _authorize_list(
        self, db: AsyncSession, caller: Identity, options: ListOptions
    ) -> None:
        # user_id is chain-gated, so filtering on someone else's would reveal it
        user_id = options.filter.get("user_id")
        if user_id is not None and user_id != caller.id and not caller.is_admin:
            raise self._deny("list", caller, "user_id filter names another user")

    async def _require_chain_owner(
        self, db: AsyncSession, operation: str, caller: Identity, row: Application
    ) -> None:
        if caller.is_admin:
            return
        if await task_project_creator_id(db, row.task_id) != caller.id:
            raise self._deny(operation, caller, "not the creator of the task's project")

    async def create(self, token: Any, values: Mapping[str, Any]) -> ApplicationEntity:
        """
        Apply to a task as the caller.

        The application always belongs to the caller and starts out not
        accepted. The (user, task) pair is unique at the storage layer too,
        so a concurrent duplicate fails the same way.

        Raises:
            NotFoundError: If the task does not exist
            ValidationError: TEXT_NOT_STRING, or ALREADY_APPLIED for a second application
        """
        caller = await self._caller(token)
        task_id = values.get("task_id") if isinstance(values, Mapping) else None
        candidate = {"text": values.get("text") if isinstance(values, Mapping) else None}
        candidate["accepted"] = False

        async with self._storage("create", caller) as db:
            task = await self._load(db, task_id, model=Task)
            self._validate(candidate)

            existing = await db.execute(
                select(Application.id).where(
                    Application.user_id == caller.id, Application.task_id == task.id
                )
            )
            if existing.first() is not None:
                raise ValidationError(
                    ALREADY_APPLIED_MESSAGE, ApplicationValidationErrorCode.ALREADY_APPLIED
                )

            row = await self._insert(db, {**candidate, "user_id": caller.id, "task_id": task.id})
            wrapped = await self._wrap(row, token, caller)

        self._record("create", "success")
        return wrapped

    async def _authorize_update(
        self, db: AsyncSession, caller: Identity, row: Application, changes: dict[str, Any]
    ) -> None:
        await self._require_chain_owner(db, "update", caller, row)

    async def _authorize_delete(self, db: AsyncSession, caller: Identity, row: Application) -> None:
        await self._require_chain_owner(db, "delete", caller, row)

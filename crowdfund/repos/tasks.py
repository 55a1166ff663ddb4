"""
Repository gate for tasks.

Creating, updating and deleting a task is reserved to admins and the
creator of the project the task belongs to. A task never moves between
projects.
"""

from collections.abc import Mapping
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from crowdfund.db.models import Application, Project, Task
from crowdfund.domain.enums import TaskSortField
from crowdfund.domain.identity import Identity
from crowdfund.domain.validation import validate_task
from crowdfund.entities.task import Task as TaskEntity
from crowdfund.repos.common import Repository, project_creator_id


class TaskRepository(Repository):
    entity_name = "task"
    model = Task
    wrapper = TaskEntity
    sort_fields = TaskSortField
    filter_fields = frozenset({"project_id", "supporter_id"})
    writable_fields = frozenset({"title", "description", "supporter_goal"})
    validator = staticmethod(validate_task)

    def _apply_filter(self, stmt: Select, field: str, value: Any) -> Select:
        if field == "supporter_id":
            supported = select(Application.task_id).where(
                Application.user_id == value, Application.accepted.is_(True)
            )
            return stmt.where(Task.id.in_(supported))
        return super()._apply_filter(stmt, field, value)

    async def _require_project_owner(
        self, db: AsyncSession, operation: str, caller: Identity, project_id: str
    ) -> None:
        if caller.is_admin:
            return
        if await project_creator_id(db, project_id) != caller.id:
            raise self._deny(operation, caller, "not the creator of the owning project")

    async def create(self, token: Any, values: Mapping[str, Any]) -> TaskEntity:
        """
        Create a task under an existing project.

        Raises:
            AuthorizationError: If the caller is neither admin nor the project's creator
            NotFoundError: If the project does not exist
            ValidationError: If the candidate is invalid
        """
        caller = await self._caller(token)
        project_id = values.get("project_id") if isinstance(values, Mapping) else None

        async with self._storage("create", caller) as db:
            project = await self._load(db, project_id, model=Project)
            await self._require_project_owner(db, "create", caller, project.id)
            candidate = self._writable(values)
            self._validate(candidate)
            row = await self._insert(db, {**candidate, "project_id": project.id})
            wrapped = await self._wrap(row, token, caller)

        self._record("create", "success")
        return wrapped

    async def _authorize_update(
        self, db: AsyncSession, caller: Identity, row: Task, changes: dict[str, Any]
    ) -> None:
        await self._require_project_owner(db, "update", caller, row.project_id)

    async def _authorize_delete(self, db: AsyncSession, caller: Identity, row: Task) -> None:
        await self._require_project_owner(db, "delete", caller, row.project_id)

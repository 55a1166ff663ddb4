"""
Repository gate for projects.

Listings only ever contain PUBLIC projects unless `include_hidden` is
set; with it, admins see everything and other callers additionally see
their own projects. A location turns the listing into a nearest-first
proximity search.
"""

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import Select, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from crowdfund.core.config import settings
from crowdfund.core.errors import ValidationError
from crowdfund.db.models import Category, Project, User, project_images
from crowdfund.domain.enums import ProjectSortField, ProjectStatus, ProjectValidationErrorCode
from crowdfund.domain.identity import Identity
from crowdfund.domain.options import ListOptions, LocationSpec, haversine_km
from crowdfund.domain.validation import validate_project
from crowdfund.entities.project import Project as ProjectEntity
from crowdfund.repos.common import Repository

logger = logging.getLogger(__name__)

PUBLIC = ProjectStatus.PUBLIC.value
NEEDS_VERIFICATION = ProjectStatus.NEEDS_VERIFICATION.value


class ProjectRepository(Repository):
    entity_name = "project"
    model = Project
    wrapper = ProjectEntity
    sort_fields = ProjectSortField
    filter_fields = frozenset({"category_id", "creator_id", "image_id", "status"})
    writable_fields = frozenset(
        {
            "title",
            "description",
            "status",
            "money_goal",
            "money_pledged",
            "lat",
            "lon",
            "creator_id",
            "category_id",
        }
    )
    validator = staticmethod(validate_project)
    integrity_codes = (
        (("projects_creator_id_fkey",), ProjectValidationErrorCode.CREATOR_INVALID),
        (("projects_category_id_fkey",), ProjectValidationErrorCode.CATEGORY_INVALID),
    )

    def _apply_filter(self, stmt: Select, field: str, value: Any) -> Select:
        if field == "image_id":
            with_image = select(project_images.c.project_id).where(
                project_images.c.image_id == value
            )
            return stmt.where(Project.id.in_(with_image))
        return super()._apply_filter(stmt, field, value)

    async def list(
        self, token: Any, options: ListOptions | Mapping[str, Any] | None = None
    ) -> list[ProjectEntity]:
        """
        List projects.

        Without `include_hidden` the listing is pinned to PUBLIC projects; a
        request for any other status returns an empty list. With a location
        the requested sort is ignored and results come nearest first.
        """
        caller = await self._caller(token)
        options = self._parse_options(options, allow_location=True, allow_hidden=True)
        filters = dict(options.filter)

        if not options.include_hidden:
            requested = getattr(filters.get("status"), "value", filters.get("status"))
            if requested is not None and requested != PUBLIC:
                logger.warning(
                    "Hidden project status %s requested without include_hidden",
                    requested,
                    extra={"caller_id": caller.id},
                )
                self._record("list", "empty")
                return []
            filters["status"] = PUBLIC

        async with self._storage("list", caller) as db:
            stmt = self._apply_filters(select(Project), filters)
            if options.include_hidden and not caller.is_admin:
                stmt = stmt.where(or_(Project.status == PUBLIC, Project.creator_id == caller.id))

            if options.location is None:
                result = await db.execute(self._apply_sort(stmt, options))
                rows = list(result.scalars().all())
            else:
                result = await db.execute(stmt)
                rows = self._nearest(result.scalars().all(), options.location)

            logger.debug("Listed %d projects", len(rows))
            wrapped = await self._wrap_all(rows, token, caller)

        self._record("list", "success")
        return wrapped

    def _nearest(self, rows, location: LocationSpec) -> "list[Project]":
        max_distance = location.max_distance or settings.default_max_distance_km
        ranked = []
        for row in rows:
            distance = haversine_km(location.lat, location.lon, row.lat, row.lon)
            if distance <= max_distance:
                ranked.append((distance, row.id, row))
        ranked.sort(key=lambda item: (item[0], item[1]))
        return [row for _, _, row in ranked[: settings.location_result_limit]]

    async def _check_references(self, db: AsyncSession, values: Mapping[str, Any]) -> None:
        if "creator_id" in values and not await self._exists(db, User, values["creator_id"]):
            raise ValidationError(
                "creator_id does not reference a user", ProjectValidationErrorCode.CREATOR_INVALID
            )
        category_id = values.get("category_id")
        if category_id is not None and not await self._exists(db, Category, category_id):
            raise ValidationError(
                "category_id does not reference a category",
                ProjectValidationErrorCode.CATEGORY_INVALID,
            )

    async def create(self, token: Any, values: Mapping[str, Any]) -> ProjectEntity:
        """
        Create a project.

        Admins and initiators may create projects. A non-admin always
        becomes the creator and the project always starts out
        NEEDS_VERIFICATION, whatever the payload says.

        Raises:
            AuthorizationError: If the caller is neither admin nor initiator
            ValidationError: If the candidate is invalid
        """
        caller = await self._caller(token)
        if not (caller.is_admin or caller.is_initiator):
            raise self._deny("create", caller, "admin or initiator role required")

        candidate = {
            "status": NEEDS_VERIFICATION,
            "money_pledged": 0,
            "category_id": None,
            "creator_id": caller.id,
            **self._writable(values),
        }
        if not caller.is_admin:
            candidate["creator_id"] = caller.id
            candidate["status"] = NEEDS_VERIFICATION

        self._validate(candidate)

        async with self._storage("create", caller) as db:
            await self._check_references(db, candidate)
            row = await self._insert(db, candidate)
            wrapped = await self._wrap(row, token, caller)

        self._record("create", "success")
        return wrapped

    async def _authorize_update(
        self, db: AsyncSession, caller: Identity, row: Project, changes: dict[str, Any]
    ) -> None:
        if caller.is_admin:
            return
        if caller.id != row.creator_id:
            raise self._deny("update", caller, "not the creator of this project")
        if "creator_id" in changes:
            raise self._deny("update", caller, "only admins may reassign a project")
        if "status" in changes and NEEDS_VERIFICATION in (row.status, changes["status"]):
            raise self._deny("update", caller, "verification status is set by admins")

    async def _prepare_update(
        self, db: AsyncSession, caller: Identity, row: Project, changes: dict[str, Any]
    ) -> dict[str, Any]:
        await self._check_references(db, changes)
        return changes

    async def _authorize_delete(self, db: AsyncSession, caller: Identity, row: Project) -> None:
        if not caller.is_admin and caller.id != row.creator_id:
            raise self._deny("delete", caller, "not the creator of this project")

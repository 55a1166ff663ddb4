"""
Repository gate for images and their project associations.

Images are admin-managed and only admins list them freely. Everyone else
reaches images through `list_for_project`, which requires the project to
be visible to the caller. Admins and a project's creator may attach
images to the project, up to `max_images_per_project`.
"""

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import Select, delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from crowdfund.core.config import settings
from crowdfund.core.errors import ValidationError
from crowdfund.db.models import Image, Project, project_images
from crowdfund.domain.enums import ImageSortField, ProjectValidationErrorCode
from crowdfund.domain.identity import Identity
from crowdfund.domain.options import ListOptions
from crowdfund.domain.validation import validate_image
from crowdfund.domain.visibility import Policy, RecordState, visible
from crowdfund.entities.base import scoped_options
from crowdfund.entities.image import Image as ImageEntity
from crowdfund.repos.common import Repository

logger = logging.getLogger(__name__)


class ImageRepository(Repository):
    entity_name = "image"
    model = Image
    wrapper = ImageEntity
    sort_fields = ImageSortField
    filter_fields = frozenset({"project_id"})
    writable_fields = frozenset({"extension"})
    validator = staticmethod(validate_image)

    async def _authorize_list(
        self, db: AsyncSession, caller: Identity, options: ListOptions
    ) -> None:
        self._require_admin("list", caller)

    async def list_for_project(
        self,
        token: Any,
        project_id: Any,
        options: ListOptions | Mapping[str, Any] | None = None,
    ) -> list[ImageEntity]:
        """
        List the images attached to one project.

        The project must be visible to the caller: public, or created by the
        caller, or any project for admins.

        Raises:
            AuthorizationError: If the caller may not see the project
            NotFoundError: If the project does not exist
        """
        caller = await self._caller(token)
        options = self._parse_options(scoped_options(options, project_id=project_id))

        async with self._storage("list", caller) as db:
            project = await self._load(db, project_id, model=Project)
            state = RecordState(owner_id=project.creator_id, status=project.status)
            if not visible(Policy.STATUS, state, caller):
                raise self._deny("list", caller, "project is not visible to the caller")
            wrapped = await self._query(db, options, token, caller)

        self._record("list", "success")
        return wrapped

    def _apply_filter(self, stmt: Select, field: str, value: Any) -> Select:
        if field == "project_id":
            attached = select(project_images.c.image_id).where(
                project_images.c.project_id == value
            )
            return stmt.where(Image.id.in_(attached))
        return super()._apply_filter(stmt, field, value)

    async def create(self, token: Any, values: Mapping[str, Any]) -> ImageEntity:
        """Record an uploaded image. Only the file extension is stored."""
        caller = await self._caller(token)
        self._require_admin("create", caller)

        candidate = self._writable(values)
        self._validate(candidate)

        async with self._storage("create", caller) as db:
            row = await self._insert(db, {"extension": candidate["extension"].lower()})
            wrapped = await self._wrap(row, token, caller)

        self._record("create", "success")
        return wrapped

    async def _prepare_update(
        self, db: AsyncSession, caller: Identity, row: Image, changes: dict[str, Any]
    ) -> dict[str, Any]:
        return {**changes, "extension": changes["extension"].lower()}

    async def _load_association(
        self, db: AsyncSession, operation: str, caller: Identity, image_id: Any, project_id: Any
    ) -> tuple[Image, Project, bool]:
        image = await self._load(db, image_id)
        project = await self._load(db, project_id, model=Project, for_update=True)

        if not caller.is_admin and caller.id != project.creator_id:
            raise self._deny(operation, caller, "not the creator of this project")

        result = await db.execute(
            select(project_images.c.image_id).where(
                project_images.c.project_id == project.id,
                project_images.c.image_id == image.id,
            )
        )
        return image, project, result.first() is not None

    async def assign(self, token: Any, image_id: Any, project_id: Any) -> None:
        """
        Attach an image to a project.

        The project row is locked while the images are counted, so two
        concurrent assigns cannot both pass the cap.

        Raises:
            AuthorizationError: If the caller is neither admin nor the project's creator
            NotFoundError: If the image or the project does not exist
            ValidationError: TOO_MANY_IMAGES when the project is full
        """
        caller = await self._caller(token)

        async with self._storage("assign", caller) as db:
            image, project, attached = await self._load_association(
                db, "assign", caller, image_id, project_id
            )
            if attached:
                return

            result = await db.execute(
                select(func.count())
                .select_from(project_images)
                .where(project_images.c.project_id == project.id)
            )
            if result.scalar_one() >= settings.max_images_per_project:
                raise ValidationError(
                    f"Too many images (max: {settings.max_images_per_project})",
                    ProjectValidationErrorCode.TOO_MANY_IMAGES,
                )

            await db.execute(insert(project_images).values(project_id=project.id, image_id=image.id))
            logger.info("Assigned image %s to project %s", image.id, project.id)

        self._record("assign", "success")

    async def unassign(self, token: Any, image_id: Any, project_id: Any) -> None:
        """Detach an image from a project. Detaching an unattached image is a no-op."""
        caller = await self._caller(token)

        async with self._storage("unassign", caller) as db:
            image, project, attached = await self._load_association(
                db, "unassign", caller, image_id, project_id
            )
            if attached:
                await db.execute(
                    delete(project_images).where(
                        project_images.c.project_id == project.id,
                        project_images.c.image_id == image.id,
                    )
                )
                logger.info("Unassigned image %s from project %s", image.id, project.id)

        self._record("unassign", "success")

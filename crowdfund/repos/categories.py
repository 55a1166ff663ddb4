"""Repository gate for categories. Any registered caller may read; only admins may mutate."""

from collections.abc import Mapping
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from crowdfund.core.errors import ValidationError
from crowdfund.db.models import Category, Image
from crowdfund.domain.enums import CategorySortField, CategoryValidationErrorCode
from crowdfund.domain.identity import Identity
from crowdfund.domain.validation import validate_category
from crowdfund.entities.category import Category as CategoryEntity
from crowdfund.repos.common import Repository


class CategoryRepository(Repository):
    entity_name = "category"
    model = Category
    wrapper = CategoryEntity
    sort_fields = CategorySortField
    writable_fields = frozenset({"name", "image_id"})
    validator = staticmethod(validate_category)
    integrity_codes = (
        (("categories_image_id_fkey",), CategoryValidationErrorCode.IMAGE_INVALID),
    )

    async def _check_image(self, db: AsyncSession, values: Mapping[str, Any]) -> None:
        image_id = values.get("image_id")
        if image_id is not None and not await self._exists(db, Image, image_id):
            raise ValidationError(
                "image_id does not reference an image", CategoryValidationErrorCode.IMAGE_INVALID
            )

    async def create(self, token: Any, values: Mapping[str, Any]) -> CategoryEntity:
        caller = await self._caller(token)
        self._require_admin("create", caller)

        candidate = {"image_id": None, **self._writable(values)}
        self._validate(candidate)

        async with self._storage("create", caller) as db:
            await self._check_image(db, candidate)
            row = await self._insert(db, candidate)
            wrapped = await self._wrap(row, token, caller)

        self._record("create", "success")
        return wrapped

    async def _prepare_update(
        self, db: AsyncSession, caller: Identity, row: Category, changes: dict[str, Any]
    ) -> dict[str, Any]:
        await self._check_image(db, changes)
        return changes

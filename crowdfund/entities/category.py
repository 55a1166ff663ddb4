"""Category wrapper. Every category field is public."""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from crowdfund.domain.options import ListOptions
from crowdfund.entities.base import BoundEntity, scoped_options

if TYPE_CHECKING:
    from crowdfund.entities.image import Image
    from crowdfund.entities.project import Project
    from crowdfund.repos.categories import CategoryRepository


class Category(BoundEntity):
    entity_name = "category"

    @property
    def _gate(self) -> "CategoryRepository":
        return self._platform.categories

    async def get_data(self, filtered: bool | None = None) -> dict[str, Any]:
        filtered = self._binding.resolve_filtered(filtered)
        return {
            **self._base_data(),
            "name": self._get("name", filtered),
            "image_id": self._get("image_id", filtered),
        }

    def get_name(self, filtered: bool | None = None) -> str | None:
        return self._getter("name", filtered)

    def get_image_id(self, filtered: bool | None = None) -> str | None:
        return self._getter("image_id", filtered)

    async def get_image(self) -> "Image | None":
        image_id = self.get_image_id()
        if image_id is None:
            return None
        return await self._platform.images.get(self.caller_token, image_id)

    async def get_projects(
        self, options: ListOptions | Mapping[str, Any] | None = None
    ) -> list["Project"]:
        return await self._platform.projects.list(
            self.caller_token, scoped_options(options, category_id=self.get_id())
        )

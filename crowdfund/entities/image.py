"""Image wrapper. Only the file extension is stored; upload mechanics live elsewhere."""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from crowdfund.domain.options import ListOptions
from crowdfund.entities.base import BoundEntity, scoped_options

if TYPE_CHECKING:
    from crowdfund.entities.project import Project
    from crowdfund.repos.images import ImageRepository


class Image(BoundEntity):
    entity_name = "image"

    @property
    def _gate(self) -> "ImageRepository":
        return self._platform.images

    async def get_data(self, filtered: bool | None = None) -> dict[str, Any]:
        filtered = self._binding.resolve_filtered(filtered)
        return {**self._base_data(), "extension": self._get("extension", filtered)}

    def get_extension(self, filtered: bool | None = None) -> str | None:
        return self._getter("extension", filtered)

    def get_filename(self) -> str:
        return f"{self.get_id()}.{self._binding.data['extension']}"

    async def get_projects(
        self, options: ListOptions | Mapping[str, Any] | None = None
    ) -> list["Project"]:
        return await self._platform.projects.list(
            self.caller_token, scoped_options(options, image_id=self.get_id())
        )

    async def assign(self, project_id: str) -> None:
        await self._gate.assign(self.caller_token, self.get_id(), project_id)

    async def unassign(self, project_id: str) -> None:
        await self._gate.unassign(self.caller_token, self.get_id(), project_id)

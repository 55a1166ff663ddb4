"""
Unit tests for the category and image gates.

Tests cover:
- Admin-only category and image management
- Image references from categories, detached when the image goes away
- Admin-only image listing, with project-scoped listing for visible projects
- Attaching images to projects, including the per-project cap
"""

import pytest

from crowdfund.core.config import settings
from crowdfund.core.errors import AuthorizationError, NotFoundError, ValidationError


class TestCategories:
    @pytest.mark.anyio
    async def test_admin_creates_category(self, platform, admin, supporter):
        created = await platform.categories.create(admin.token, {"name": "Education"})

        fetched = await platform.categories.get(supporter.token, created.get_id())

        assert fetched.get_name() == "Education"
        assert fetched.get_image_id() is None
        assert await fetched.get_image() is None

    @pytest.mark.anyio
    async def test_initiator_cannot_create(self, platform, initiator, admin):
        with pytest.raises(AuthorizationError):
            await platform.categories.create(initiator.token, {"name": "Education"})

        assert await platform.categories.list(admin.token) == []

    @pytest.mark.anyio
    async def test_name_too_short(self, platform, admin):
        with pytest.raises(ValidationError) as exc_info:
            await platform.categories.create(admin.token, {"name": "Ed"})

        assert exc_info.value.code == "NAME_TOO_SHORT"

    @pytest.mark.anyio
    async def test_unknown_image(self, platform, admin):
        with pytest.raises(ValidationError) as exc_info:
            await platform.categories.create(admin.token, {"name": "Education", "image_id": "nope"})

        assert exc_info.value.code == "IMAGE_INVALID"

    @pytest.mark.anyio
    async def test_image_reference_is_detached_on_image_delete(
        self, platform, make_image, admin, supporter
    ):
        image = await make_image()
        category = await platform.categories.create(
            admin.token, {"name": "Education", "image_id": image.id}
        )
        assert (await category.get_image()).get_id() == image.id

        await platform.images.delete(admin.token, image.id)

        await category.reload()
        assert category.get_image_id() is None

    @pytest.mark.anyio
    async def test_update_image_reference(self, platform, make_category, make_image, admin):
        category = await make_category()
        image = await make_image()

        updated = await platform.categories.update(admin.token, category.id, {"image_id": image.id})
        assert updated.get_image_id() == image.id

        with pytest.raises(ValidationError):
            await platform.categories.update(admin.token, category.id, {"image_id": "nope"})

    @pytest.mark.anyio
    async def test_only_admins_update(self, platform, make_category, initiator):
        category = await make_category()

        with pytest.raises(AuthorizationError):
            await platform.categories.update(initiator.token, category.id, {"name": "Renamed"})

    @pytest.mark.anyio
    async def test_category_projects(
        self, platform, make_category, make_project, initiator, supporter
    ):
        category = await make_category()
        project = await make_project(initiator, category_id=category.id)
        await make_project(initiator, category_id=category.id, status="UNLISTED")

        wrapped = await platform.categories.get(supporter.token, category.id)

        assert [p.get_id() for p in await wrapped.get_projects()] == [project.id]

    @pytest.mark.anyio
    async def test_delete_detaches_projects(
        self, platform, make_category, make_project, initiator, admin
    ):
        category = await make_category()
        project = await make_project(initiator, category_id=category.id)

        await platform.categories.delete(admin.token, category.id)

        assert (await platform.projects.snapshot(project.id))["category_id"] is None


class TestImages:
    @pytest.mark.anyio
    async def test_admin_creates_image(self, platform, admin):
        image = await platform.images.create(admin.token, {"extension": "JPG"})

        assert image.get_extension() == "jpg"
        assert image.get_filename() == f"{image.get_id()}.jpg"

    @pytest.mark.anyio
    async def test_unsupported_extension(self, platform, admin):
        with pytest.raises(ValidationError) as exc_info:
            await platform.images.create(admin.token, {"extension": "gif"})

        assert exc_info.value.code == "EXTENSION_INVALID"

    @pytest.mark.anyio
    async def test_initiator_cannot_create(self, platform, initiator):
        with pytest.raises(AuthorizationError):
            await platform.images.create(initiator.token, {"extension": "png"})

    @pytest.mark.anyio
    async def test_update_lowercases(self, platform, make_image, admin):
        image = await make_image()

        updated = await platform.images.update(admin.token, image.id, {"extension": "JPEG"})

        assert updated.get_extension() == "jpeg"

    @pytest.mark.anyio
    async def test_list_requires_admin(self, platform, make_image, supporter, admin):
        await make_image()

        with pytest.raises(AuthorizationError):
            await platform.images.list(supporter.token)
        assert len(await platform.images.list(admin.token)) == 1

    @pytest.mark.anyio
    async def test_list_images_of_public_project(
        self, platform, make_project, make_image, initiator, supporter
    ):
        project = await make_project(initiator)
        attached = await make_image(project=project)
        await make_image()

        wrapped = await platform.projects.get(supporter.token, project.id)

        assert [image.get_id() for image in await wrapped.get_images()] == [attached.id]

    @pytest.mark.anyio
    async def test_list_images_of_hidden_project(
        self, platform, make_project, make_image, initiator, supporter
    ):
        project = await make_project(initiator, status="UNLISTED")
        await make_image(project=project)

        with pytest.raises(AuthorizationError):
            await platform.images.list_for_project(supporter.token, project.id)

        own = await platform.images.list_for_project(initiator.token, project.id)
        assert len(own) == 1

    @pytest.mark.anyio
    async def test_project_filter_does_not_open_the_image_list(
        self, platform, make_project, make_image, initiator, supporter
    ):
        public = await make_project(initiator)
        await make_image(project=public)

        with pytest.raises(AuthorizationError):
            await platform.images.list(supporter.token, {"filter": {"project_id": public.id}})
        with pytest.raises(AuthorizationError):
            await platform.images.list(initiator.token, {"filter": {"project_id": public.id}})

    @pytest.mark.anyio
    async def test_hidden_project_images_for_creator_and_admin(
        self, platform, make_project, make_image, initiator, admin
    ):
        project = await make_project(initiator, status="NEEDS_VERIFICATION")
        await make_image(project=project)

        as_creator = await platform.projects.get(initiator.token, project.id)
        as_admin = await platform.projects.get(admin.token, project.id)

        assert len(await as_creator.get_images()) == 1
        assert len(await as_admin.get_images()) == 1

    @pytest.mark.anyio
    async def test_images_of_unknown_project(self, platform, supporter):
        with pytest.raises(NotFoundError):
            await platform.images.list_for_project(supporter.token, "missing")


class TestImageAssignment:
    @pytest.mark.anyio
    async def test_assign_and_unassign(self, platform, make_project, make_image, initiator, admin):
        project = await make_project(initiator)
        image = await platform.images.get(initiator.token, (await make_image()).id)

        await image.assign(project.id)
        assert [p.get_id() for p in await image.get_projects()] == [project.id]

        await image.unassign(project.id)
        assert await image.get_projects() == []

    @pytest.mark.anyio
    async def test_assign_twice_is_noop(self, platform, make_project, make_image, initiator, admin):
        project = await make_project(initiator)
        image = await make_image()

        await platform.images.assign(initiator.token, image.id, project.id)
        await platform.images.assign(initiator.token, image.id, project.id)

        listed = await platform.images.list(admin.token, {"filter": {"project_id": project.id}})
        assert len(listed) == 1

    @pytest.mark.anyio
    async def test_unassign_unattached_is_noop(self, platform, make_project, make_image, initiator):
        project = await make_project(initiator)
        image = await make_image()

        await platform.images.unassign(initiator.token, image.id, project.id)

    @pytest.mark.anyio
    async def test_too_many_images(
        self, platform, make_project, make_image, initiator, admin, monkeypatch
    ):
        monkeypatch.setattr(settings, "max_images_per_project", 2)
        project = await make_project(initiator)
        await make_image(project=project)
        await make_image(project=project)
        extra = await make_image()

        with pytest.raises(ValidationError) as exc_info:
            await platform.images.assign(initiator.token, extra.id, project.id)

        assert exc_info.value.code == "TOO_MANY_IMAGES"
        listed = await platform.images.list(admin.token, {"filter": {"project_id": project.id}})
        assert extra.id not in {image.get_id() for image in listed}

    @pytest.mark.anyio
    async def test_stranger_cannot_assign(
        self, platform, make_project, make_image, initiator, other_initiator
    ):
        project = await make_project(initiator)
        image = await make_image()

        with pytest.raises(AuthorizationError):
            await platform.images.assign(other_initiator.token, image.id, project.id)

    @pytest.mark.anyio
    async def test_assign_to_unknown_project(self, platform, make_image, admin):
        image = await make_image()

        with pytest.raises(NotFoundError):
            await platform.images.assign(admin.token, image.id, "missing")

    @pytest.mark.anyio
    async def test_projects_filtered_by_image(
        self, platform, make_project, make_image, initiator, supporter
    ):
        project = await make_project(initiator)
        await make_project(initiator)
        image = await make_image(project=project)

        listed = await platform.projects.list(supporter.token, {"filter": {"image_id": image.id}})

        assert [p.get_id() for p in listed] == [project.id]

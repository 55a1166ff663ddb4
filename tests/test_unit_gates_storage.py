"""Unit tests for storage failure translation at the gate boundary."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from crowdfund.core.errors import StorageError, ValidationError
from crowdfund.core.observability import metrics
from crowdfund.platform import Platform


def _failing_factory(error: Exception) -> MagicMock:
    session = MagicMock()
    session.__aenter__.side_effect = error
    return MagicMock(return_value=session)


def _storage_errors(entity: str, operation: str) -> float:
    value = metrics.registry.get_sample_value(
        "storage_errors_total", {"entity": entity, "operation": operation}
    )
    return value or 0.0


class TestStorageFailures:
    @pytest.mark.anyio
    async def test_unreachable_store(self, platform, supporter):
        before = _storage_errors("project", "list")
        platform.session_factory = _failing_factory(
            OperationalError("SELECT", {}, Exception("connection refused"))
        )

        with pytest.raises(StorageError) as exc_info:
            await platform.projects.list(supporter.token)

        assert "connection refused" in exc_info.value.message
        assert exc_info.value.details == {"entity": "project", "operation": "list"}
        assert _storage_errors("project", "list") == before + 1

    @pytest.mark.anyio
    async def test_unrecognized_integrity_error(self, platform, admin):
        platform.session_factory = _failing_factory(
            IntegrityError("INSERT", {}, Exception("CHECK constraint failed: something"))
        )

        with pytest.raises(StorageError):
            await platform.categories.create(admin.token, {"name": "Education"})

    @pytest.mark.anyio
    async def test_recognized_integrity_error(self, platform, admin):
        platform.session_factory = _failing_factory(
            IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: users.mail"))
        )

        with pytest.raises(ValidationError) as exc_info:
            await platform.users.update(admin.token, admin.id, {"fullname": "Ada Lovelace"})

        assert exc_info.value.code == "MAIL_ALREADY_USED"


class TestIntegrityTranslation:
    @pytest.fixture
    def offline_platform(self):
        return Platform(MagicMock())

    @pytest.mark.parametrize(
        ("gate", "message", "code"),
        [
            (
                "users",
                'duplicate key value violates unique constraint "users_mail_key"',
                "MAIL_ALREADY_USED",
            ),
            (
                "applications",
                "UNIQUE constraint failed: applications.user_id, applications.task_id",
                "ALREADY_APPLIED",
            ),
            (
                "applications",
                'duplicate key value violates unique constraint "uq_applications_user_task"',
                "ALREADY_APPLIED",
            ),
            (
                "projects",
                'insert violates foreign key constraint "projects_category_id_fkey"',
                "CATEGORY_INVALID",
            ),
            (
                "categories",
                'insert violates foreign key constraint "categories_image_id_fkey"',
                "IMAGE_INVALID",
            ),
        ],
    )
    def test_known_constraints(self, offline_platform, gate, message, code):
        error = IntegrityError("INSERT", {}, Exception(message))

        translated = getattr(offline_platform, gate)._translate_integrity_error(error)

        assert isinstance(translated, ValidationError)
        assert translated.code == code

    def test_unknown_constraint(self, offline_platform):
        error = IntegrityError("INSERT", {}, Exception("NOT NULL constraint failed: tasks.title"))
        assert offline_platform.tasks._translate_integrity_error(error) is None

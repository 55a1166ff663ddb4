"""
Unit tests for the user and session gates.

Tests cover:
- Self-registration and admin-created users
- Role escalation checks
- Mail uniqueness
- Update and delete authorization, no-op patches
- Login, logout and session visibility
"""

import pytest

from crowdfund.core.errors import AuthorizationError, NotFoundError, ValidationError
from crowdfund.domain.enums import UserRole
from crowdfund.entities import Session, User
from tests.conftest import DEFAULT_PASSWORD


def _registration(**overrides):
    return {
        "fullname": "Nora Newcomer",
        "mail": "nora@example.com",
        "gender": "FEMALE",
        "role": "SUPPORTER",
        "password": "long-enough-secret",
        **overrides,
    }


class TestUserCreate:
    @pytest.mark.anyio
    async def test_self_registration_issues_session(self, platform):
        user = await platform.users.create(None, _registration())

        assert isinstance(user, User)
        assert user.is_authenticated
        assert user.caller.id == user.get_id()
        assert user.get_mail() == "nora@example.com"
        assert user.get_password() is None

        identity = await platform.identity.resolve(user.caller_token)
        assert identity.id == user.get_id()

    @pytest.mark.anyio
    async def test_password_is_stored_hashed(self, platform):
        user = await platform.users.create(None, _registration())

        stored = await platform.users.snapshot(user.get_id())
        assert stored["password"] != "long-enough-secret"
        assert stored["password"].startswith("pbkdf2_sha256$")

    @pytest.mark.anyio
    async def test_created_user_round_trips_through_get(self, platform, admin):
        created = await platform.users.create(None, _registration(role=UserRole.INITIATOR))

        fetched = await platform.users.get(admin.token, created.get_id())

        assert fetched.get_fullname() == "Nora Newcomer"
        assert fetched.get_role() == "INITIATOR"
        assert fetched.get_gender() == "FEMALE"

    @pytest.mark.anyio
    async def test_anonymous_admin_registration_is_denied(self, platform, admin):
        with pytest.raises(AuthorizationError):
            await platform.users.create(None, _registration(role="ADMIN"))

        admins = await platform.users.list(admin.token, {"filter": {"role": "ADMIN"}})
        assert [user.get_id() for user in admins] == [admin.id]

    @pytest.mark.anyio
    async def test_supporter_cannot_create_admin(self, platform, supporter):
        with pytest.raises(AuthorizationError):
            await platform.users.create(supporter.token, _registration(role="ADMIN"))

    @pytest.mark.anyio
    async def test_admin_creates_user_without_session(self, platform, admin):
        created = await platform.users.create(admin.token, _registration(role="ADMIN"))

        assert created.caller_token == admin.token
        assert created.caller.id == admin.id
        sessions = await platform.sessions.list(
            admin.token, {"filter": {"user_id": created.get_id()}}
        )
        assert sessions == []

    @pytest.mark.anyio
    async def test_mail_already_used(self, platform, supporter):
        with pytest.raises(ValidationError) as exc_info:
            await platform.users.create(None, _registration(mail=supporter.mail))

        assert exc_info.value.code == "MAIL_ALREADY_USED"

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        ("overrides", "code"),
        [
            ({"password": "short"}, "PASSWORD_TOO_SHORT"),
            ({"password": None}, "PASSWORD_NOT_STRING"),
            ({"mail": 42}, "MAIL_NOT_STRING"),
            ({"fullname": "Al"}, "FULLNAME_TOO_SHORT"),
            ({"role": "OWNER"}, "ROLE_INVALID"),
            ({"gender": "OTHER"}, "GENDER_INVALID"),
        ],
    )
    async def test_invalid_registration(self, platform, overrides, code):
        with pytest.raises(ValidationError) as exc_info:
            await platform.users.create(None, _registration(**overrides))

        assert exc_info.value.code == code

    @pytest.mark.anyio
    async def test_missing_password_is_rejected(self, platform):
        values = _registration()
        del values["password"]

        with pytest.raises(ValidationError) as exc_info:
            await platform.users.create(None, values)

        assert exc_info.value.code == "PASSWORD_NOT_STRING"


class TestUserReadAndList:
    @pytest.mark.anyio
    async def test_get_requires_registered_caller(self, platform, supporter):
        with pytest.raises(AuthorizationError):
            await platform.users.get("not-a-session", supporter.id)

    @pytest.mark.anyio
    async def test_get_unknown_id(self, platform, supporter):
        with pytest.raises(NotFoundError):
            await platform.users.get(supporter.token, "no-such-user")

    @pytest.mark.anyio
    async def test_list_requires_admin(self, platform, supporter):
        with pytest.raises(AuthorizationError):
            await platform.users.list(supporter.token)

    @pytest.mark.anyio
    async def test_admin_lists_sorted(self, platform, admin, initiator, supporter):
        users = await platform.users.list(
            admin.token, {"sort": {"field": "fullname", "direction": "DESC"}}
        )

        assert [user.get_fullname() for user in users] == [
            "Sam Supporter",
            "Ivo Initiator",
            "Ada Admin",
        ]

    @pytest.mark.anyio
    async def test_supporters_of_task(
        self, platform, make_project, make_task, make_application, make_user, initiator, supporter
    ):
        task = await make_task(await make_project(initiator))
        rejected = await make_user(fullname="Rita Rejected")
        await make_application(task, supporter, accepted=True)
        await make_application(task, rejected, accepted=False)

        supporters = await platform.users.list(
            supporter.token, {"filter": {"supporting_task_id": task.id}}
        )

        assert [user.get_id() for user in supporters] == [supporter.id]


class TestUserUpdate:
    @pytest.mark.anyio
    async def test_update_self(self, platform, supporter):
        user = await platform.users.update(supporter.token, supporter.id, {"fullname": "Samira"})
        assert user.get_fullname() == "Samira"

    @pytest.mark.anyio
    async def test_update_other_is_denied(self, platform, supporter, initiator):
        with pytest.raises(AuthorizationError):
            await platform.users.update(supporter.token, initiator.id, {"fullname": "Hacked"})

        stored = await platform.users.snapshot(initiator.id)
        assert stored["fullname"] == "Ivo Initiator"

    @pytest.mark.anyio
    async def test_self_promotion_to_admin_is_denied(self, platform, supporter):
        with pytest.raises(AuthorizationError):
            await platform.users.update(supporter.token, supporter.id, {"role": UserRole.ADMIN})

    @pytest.mark.anyio
    async def test_self_switch_to_initiator(self, platform, supporter):
        user = await platform.users.update(supporter.token, supporter.id, {"role": "INITIATOR"})
        assert user.get_role() == "INITIATOR"

    @pytest.mark.anyio
    async def test_admin_grants_admin(self, platform, admin, supporter):
        user = await platform.users.update(admin.token, supporter.id, {"role": "ADMIN"})
        assert user.get_role() == "ADMIN"

    @pytest.mark.anyio
    async def test_empty_patch_is_noop(self, platform, supporter):
        before = await platform.users.snapshot(supporter.id)

        user = await platform.users.update(supporter.token, supporter.id, {})

        after = await platform.users.snapshot(supporter.id)
        assert after == before
        assert user.get_fullname() == "Sam Supporter"

    @pytest.mark.anyio
    async def test_immutable_keys_are_ignored(self, platform, supporter):
        before = await platform.users.snapshot(supporter.id)

        user = await platform.users.update(
            supporter.token, supporter.id, {"id": "other", "created_at": None, "unknown": 1}
        )

        assert user.get_id() == supporter.id
        assert await platform.users.snapshot(supporter.id) == before

    @pytest.mark.anyio
    async def test_invalid_patch_writes_nothing(self, platform, supporter):
        with pytest.raises(ValidationError) as exc_info:
            await platform.users.update(supporter.token, supporter.id, {"fullname": "X"})

        assert exc_info.value.code == "FULLNAME_TOO_SHORT"
        assert (await platform.users.snapshot(supporter.id))["fullname"] == "Sam Supporter"

    @pytest.mark.anyio
    async def test_mail_taken_on_update(self, platform, supporter, initiator):
        with pytest.raises(ValidationError) as exc_info:
            await platform.users.update(supporter.token, supporter.id, {"mail": initiator.mail})

        assert exc_info.value.code == "MAIL_ALREADY_USED"

    @pytest.mark.anyio
    async def test_password_change_allows_new_login(self, platform, supporter):
        await platform.users.update(supporter.token, supporter.id, {"password": "brand-new-secret"})

        session = await platform.sessions.create(
            None, {"mail": supporter.mail, "password": "brand-new-secret"}
        )
        assert session.get_user_id() == supporter.id

        with pytest.raises(AuthorizationError):
            await platform.sessions.create(
                None, {"mail": supporter.mail, "password": DEFAULT_PASSWORD}
            )

    @pytest.mark.anyio
    async def test_patch_must_be_mapping(self, platform, supporter):
        with pytest.raises(ValidationError) as exc_info:
            await platform.users.update(supporter.token, supporter.id, ["fullname"])

        assert exc_info.value.code == "PAYLOAD_NOT_MAPPING"
        assert exc_info.value.details["received"] == "list"

    @pytest.mark.anyio
    async def test_malformed_patch_from_stranger_is_unauthorized(
        self, platform, supporter, initiator
    ):
        with pytest.raises(AuthorizationError):
            await platform.users.update(initiator.token, supporter.id, "fullname")

    @pytest.mark.anyio
    async def test_malformed_registration(self, platform):
        with pytest.raises(ValidationError) as exc_info:
            await platform.users.create(None, None)

        assert exc_info.value.code == "PAYLOAD_NOT_MAPPING"


class TestUserDelete:
    @pytest.mark.anyio
    async def test_delete_self_removes_sessions(self, platform, supporter, admin):
        await platform.users.delete(supporter.token, supporter.id)

        assert await platform.identity.resolve(supporter.token) is None
        with pytest.raises(NotFoundError):
            await platform.users.get(admin.token, supporter.id)

    @pytest.mark.anyio
    async def test_delete_other_is_denied(self, platform, supporter, initiator):
        with pytest.raises(AuthorizationError):
            await platform.users.delete(supporter.token, initiator.id)

    @pytest.mark.anyio
    async def test_delete_cascades_to_projects(self, platform, make_project, initiator, admin):
        project = await make_project(initiator)

        await platform.users.delete(admin.token, initiator.id)

        with pytest.raises(NotFoundError):
            await platform.projects.get(admin.token, project.id)


class TestSessions:
    @pytest.mark.anyio
    async def test_login(self, platform, supporter):
        session = await platform.sessions.create(
            None, {"mail": supporter.mail, "password": DEFAULT_PASSWORD}
        )

        assert isinstance(session, Session)
        assert session.is_authenticated
        assert session.get_token() == session.caller_token
        assert session.get_token() != supporter.token
        assert (await platform.identity.resolve(session.get_token())).id == supporter.id

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "credentials",
        [
            {"mail": "user0@example.com", "password": "wrong-password"},
            {"mail": "nobody@example.com", "password": DEFAULT_PASSWORD},
            {"mail": "user0@example.com"},
            {"mail": 1, "password": 2},
            "user0@example.com",
        ],
    )
    async def test_login_failures_are_indistinguishable(self, platform, supporter, credentials):
        with pytest.raises(AuthorizationError) as exc_info:
            await platform.sessions.create(None, credentials)

        assert exc_info.value.message == "Not authorized"

    @pytest.mark.anyio
    async def test_list_own_sessions_only(self, platform, supporter, initiator):
        await platform.sessions.create(None, {"mail": supporter.mail, "password": DEFAULT_PASSWORD})

        sessions = await platform.sessions.list(supporter.token)

        assert len(sessions) == 2
        assert {session.get_user_id() for session in sessions} == {supporter.id}

    @pytest.mark.anyio
    async def test_list_other_users_sessions_is_denied(self, platform, supporter, initiator):
        with pytest.raises(AuthorizationError):
            await platform.sessions.list(supporter.token, {"filter": {"user_id": initiator.id}})

    @pytest.mark.anyio
    async def test_admin_lists_all_sessions(self, platform, admin, supporter, initiator):
        sessions = await platform.sessions.list(admin.token)
        assert {session.get_user_id() for session in sessions} == {
            admin.id,
            supporter.id,
            initiator.id,
        }

    @pytest.mark.anyio
    async def test_get_other_users_session_is_denied(self, platform, supporter, initiator):
        own = (await platform.sessions.list(initiator.token))[0]
        with pytest.raises(AuthorizationError):
            await platform.sessions.get(supporter.token, own.get_id())

    @pytest.mark.anyio
    async def test_logout_by_token(self, platform, supporter):
        await platform.sessions.delete_by_token(supporter.token, supporter.token)
        assert await platform.identity.resolve(supporter.token) is None

    @pytest.mark.anyio
    async def test_logout_other_users_token_is_denied(self, platform, supporter, initiator):
        with pytest.raises(AuthorizationError):
            await platform.sessions.delete_by_token(supporter.token, initiator.token)

        assert await platform.identity.resolve(initiator.token) is not None

    @pytest.mark.anyio
    async def test_logout_unknown_token(self, platform, supporter):
        with pytest.raises(NotFoundError):
            await platform.sessions.delete_by_token(supporter.token, "no-such-session")

    @pytest.mark.anyio
    async def test_user_sessions_traversal(self, platform, supporter):
        user = await platform.users.get(supporter.token, supporter.id)

        sessions = await user.get_sessions()

        assert [session.get_token() for session in sessions] == [supporter.token]

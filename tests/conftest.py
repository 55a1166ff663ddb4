"""
Pytest configuration and shared fixtures.

Provides:
- A file-backed SQLite database per test (async SQLAlchemy + aiosqlite)
- A Platform bound to that database
- Seed helpers that write users, sessions, projects, tasks, categories and
  images straight to storage, bypassing the gates

Fixtures:
- session_factory: async_sessionmaker over a fresh schema
- platform: Platform using session_factory
- make_user / make_project / make_task / make_image / make_category /
  make_application: async factories
- admin / initiator / supporter / other_initiator: seeded callers with a session
"""

from __future__ import annotations

import itertools
import os
import sys
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Set test environment variables before importing crowdfund
os.environ.setdefault("APP_ENV", "test")
os.environ["PASSWORD_HASH_ITERATIONS"] = "1000"
os.environ.setdefault("OBSERVABILITY_STRUCTURED_LOGS", "false")

import pytest  # noqa: E402 (import after env setup)
from sqlalchemy import insert  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from crowdfund.core.db import create_fresh_async_engine, create_sessionmaker  # noqa: E402
from crowdfund.core.security import generate_session_token, hash_password  # noqa: E402
from crowdfund.db.models import (  # noqa: E402
    Application,
    Base,
    Category,
    Image,
    Project,
    Session,
    Task,
    User,
    project_images,
)
from crowdfund.domain.enums import ProjectStatus, UserRole  # noqa: E402
from crowdfund.platform import Platform  # noqa: E402

DEFAULT_PASSWORD = "correct-horse-battery"


@dataclass
class SeededUser:
    id: str
    token: str
    role: str
    mail: str


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_fresh_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'crowdfund.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield create_sessionmaker(engine)

    await engine.dispose()


@pytest.fixture
def platform(session_factory) -> Platform:
    return Platform(session_factory)


async def _add(session_factory: async_sessionmaker[AsyncSession], row: Any) -> Any:
    async with session_factory() as db:
        db.add(row)
        await db.commit()
    return row


@pytest.fixture
def make_user(session_factory):
    counter = itertools.count()

    async def _make(
        role: UserRole | str = UserRole.SUPPORTER,
        *,
        fullname: str = "Test User",
        password: str = DEFAULT_PASSWORD,
        with_session: bool = True,
    ) -> SeededUser:
        role = getattr(role, "value", role)
        mail = f"user{next(counter)}@example.com"
        user = await _add(
            session_factory,
            User(
                fullname=fullname,
                mail=mail,
                gender="NONE",
                role=role,
                password=hash_password(password),
            ),
        )
        token = ""
        if with_session:
            token = generate_session_token()
            await _add(session_factory, Session(token=token, user_id=user.id))
        return SeededUser(id=user.id, token=token, role=role, mail=mail)

    return _make


@pytest.fixture
async def admin(make_user) -> SeededUser:
    return await make_user(UserRole.ADMIN, fullname="Ada Admin")


@pytest.fixture
async def initiator(make_user) -> SeededUser:
    return await make_user(UserRole.INITIATOR, fullname="Ivo Initiator")


@pytest.fixture
async def other_initiator(make_user) -> SeededUser:
    return await make_user(UserRole.INITIATOR, fullname="Olga Initiator")


@pytest.fixture
async def supporter(make_user) -> SeededUser:
    return await make_user(UserRole.SUPPORTER, fullname="Sam Supporter")


@pytest.fixture
def make_project(session_factory):
    async def _make(
        creator: SeededUser,
        *,
        status: ProjectStatus | str = ProjectStatus.PUBLIC,
        **overrides: Any,
    ) -> Project:
        values = {
            "title": "Community Garden",
            "description": "Raised beds for the neighbourhood",
            "status": getattr(status, "value", status),
            "money_goal": 1000,
            "money_pledged": 0,
            "lat": 52.52,
            "lon": 13.405,
            "creator_id": creator.id,
            **overrides,
        }
        return await _add(session_factory, Project(**values))

    return _make


@pytest.fixture
def make_task(session_factory):
    async def _make(project: Project, **overrides: Any) -> Task:
        values = {
            "title": "Build beds",
            "description": "Carry wood",
            "supporter_goal": 5,
            "project_id": project.id,
            **overrides,
        }
        return await _add(session_factory, Task(**values))

    return _make


@pytest.fixture
def make_application(session_factory):
    async def _make(
        task: Task, applicant: SeededUser, *, text: str = "I can help", accepted: bool = False
    ) -> Application:
        return await _add(
            session_factory,
            Application(text=text, accepted=accepted, user_id=applicant.id, task_id=task.id),
        )

    return _make


@pytest.fixture
def make_image(session_factory):
    async def _make(extension: str = "png", *, project: Project | None = None) -> Image:
        image = await _add(session_factory, Image(extension=extension))
        if project is not None:
            async with session_factory() as db:
                await db.execute(
                    insert(project_images).values(project_id=project.id, image_id=image.id)
                )
                await db.commit()
        return image

    return _make


@pytest.fixture
def make_category(session_factory):
    async def _make(name: str = "Gardening", image: Image | None = None) -> Category:
        return await _add(
            session_factory, Category(name=name, image_id=image.id if image else None)
        )

    return _make

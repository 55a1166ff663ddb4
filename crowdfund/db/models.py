"""
SQLAlchemy 2.x ORM models for the crowdfunding core.

Models use the Mapped[] type annotation syntax and mapped_column.
Identifiers are string UUIDs assigned at insert; timestamps are owned
by the ORM (write-once on create, refreshed on every update).
"""

import uuid
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from crowdfund.domain.enums import ProjectStatus


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class TimestampedMixin:
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, onupdate=_now
    )


project_images = Table(
    "project_images",
    Base.metadata,
    Column("project_id", ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    Column("image_id", ForeignKey("images.id", ondelete="CASCADE"), primary_key=True),
)


class User(TimestampedMixin, Base):
    __tablename__ = "users"

    fullname: Mapped[str] = mapped_column(String(255), nullable=False)
    mail: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    gender: Mapped[str] = mapped_column(String(16), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    password: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, mail={self.mail}, role={self.role})>"


class Session(TimestampedMixin, Base):
    __tablename__ = "sessions"

    token: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<Session(id={self.id}, user_id={self.user_id})>"


class Image(TimestampedMixin, Base):
    __tablename__ = "images"

    extension: Mapped[str] = mapped_column(String(8), nullable=False)

    def __repr__(self) -> str:
        return f"<Image(id={self.id}, extension={self.extension})>"


class Category(TimestampedMixin, Base):
    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    image_id: Mapped[str | None] = mapped_column(
        ForeignKey("images.id", ondelete="SET NULL"), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name={self.name})>"


class Project(TimestampedMixin, Base):
    __tablename__ = "projects"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=ProjectStatus.NEEDS_VERIFICATION.value
    )
    money_goal: Mapped[Decimal] = mapped_column(Numeric(13, 2), nullable=False, default=0)
    money_pledged: Mapped[Decimal] = mapped_column(Numeric(13, 2), nullable=False, default=0)
    lat: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    lon: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    creator_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[str | None] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, title={self.title}, status={self.status})>"


class Task(TimestampedMixin, Base):
    __tablename__ = "tasks"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    supporter_goal: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    project_id: Mapped[str] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<Task(id={self.id}, title={self.title}, project_id={self.project_id})>"


class Application(TimestampedMixin, Base):
    """
    A user's application to support a task.

    At most one application per (user, task) pair, enforced by a unique
    constraint so concurrent duplicate inserts fail at the storage layer.
    """

    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("user_id", "task_id", name="uq_applications_user_task"),
    )

    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    accepted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    task_id: Mapped[str] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<Application(id={self.id}, user_id={self.user_id}, task_id={self.task_id})>"

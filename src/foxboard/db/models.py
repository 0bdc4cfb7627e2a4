"""SQLAlchemy ORM models: single source of truth for the database schema.

Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table.

Key concepts:
- UUID primary keys via the portable Uuid type (native on PostgreSQL,
  CHAR(32) on SQLite, which the test suite runs against)
- Foreign keys to a project declare ON DELETE CASCADE; the services also
  delete children explicitly so SQLite without FK enforcement stays clean
- Tasks form a tree through a nullable parent_id; there are no in-memory
  back-pointers, a subtree is found by querying parent_id
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


# ══════════════════════════════════════════════════════════════
# Value types
# ══════════════════════════════════════════════════════════════


class Permission(enum.Enum):
    """Permission lattice: ADMIN > OWNER > EDITOR > READER > NONE.

    Lower value = more power. Comparisons follow power, not value, so
    `effective >= required` reads the way access checks are phrased.
    """

    ADMIN = 0
    OWNER = 1
    EDITOR = 2
    READER = 3
    NONE = 4

    def __ge__(self, other):
        if not isinstance(other, Permission):
            return NotImplemented
        return self.value <= other.value

    def __gt__(self, other):
        if not isinstance(other, Permission):
            return NotImplemented
        return self.value < other.value

    def __le__(self, other):
        if not isinstance(other, Permission):
            return NotImplemented
        return self.value >= other.value

    def __lt__(self, other):
        if not isinstance(other, Permission):
            return NotImplemented
        return self.value > other.value


class TaskType(str, enum.Enum):
    STANDARD = "standard"
    REPEATABLE = "repeatable"


# ══════════════════════════════════════════════════════════════
# Users and sessions
# ══════════════════════════════════════════════════════════════


class User(Base):
    """A person who can log in. Admins bypass every permission check."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    def intrinsic_permission(self, caller_id: uuid.UUID) -> Optional[Permission]:
        """A user owns their own record and nobody else has a say."""
        return Permission.OWNER if caller_id == self.id else Permission.NONE


class UserSession(Base):
    """Bearer-token session created at login.

    The token is the primary key: one token, at most one live session.
    user_agent / ip_addr are refreshed on every authenticated request.
    """

    __tablename__ = "user_sessions"
    __table_args__ = (
        Index("idx_user_sessions_user", "user_id"),
    )

    token: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    user_agent: Mapped[str] = mapped_column(Text, nullable=False, default="")
    ip_addr: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )


# ══════════════════════════════════════════════════════════════
# Projects and their children
# ══════════════════════════════════════════════════════════════


class Project(Base):
    """A board. Exactly one owner; public boards are readable by everyone."""

    __tablename__ = "projects"
    __table_args__ = (
        Index("idx_projects_owner", "owner_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    def intrinsic_permission(self, caller_id: uuid.UUID) -> Optional[Permission]:
        """Ownership and visibility decide without a grant lookup.

        Returns None when neither applies, meaning: ask the grants table.
        """
        if caller_id == self.owner_id:
            return Permission.OWNER
        if self.public:
            return Permission.READER
        return None


class ProjectPermission(Base):
    """Explicit (user, project) grant for collaborators."""

    __tablename__ = "project_permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "project_id", name="uq_project_permissions"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    perms: Mapped[Permission] = mapped_column(
        Enum(Permission, name="permission"), nullable=False, default=Permission.READER
    )


class ProjectColumn(Base):
    """A kanban column. card_limit 0 means unlimited."""

    __tablename__ = "project_columns"
    __table_args__ = (
        Index("idx_project_columns_project", "project_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    card_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Label(Base):
    __tablename__ = "labels"
    __table_args__ = (
        Index("idx_labels_project", "project_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)


class State(Base):
    __tablename__ = "states"
    __table_args__ = (
        Index("idx_states_project", "project_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)


# ══════════════════════════════════════════════════════════════
# Tasks
# ══════════════════════════════════════════════════════════════


# Many-to-many: tasks <-> labels
labels_tasks = Table(
    "labels_tasks",
    Base.metadata,
    Column(
        "task_id",
        Uuid,
        ForeignKey("tasks.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "label_id",
        Uuid,
        ForeignKey("labels.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Task(Base):
    """A card on a board. Everything but title and project is optional."""

    __tablename__ = "tasks"
    __table_args__ = (
        Index("idx_tasks_project", "project_id"),
        Index("idx_tasks_parent", "parent_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    column_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("project_columns.id", ondelete="SET NULL"), nullable=True
    )
    state_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("states.id", ondelete="SET NULL"), nullable=True
    )
    assignee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    creator_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True
    )
    deadline: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    estimation: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    task_type: Mapped[TaskType] = mapped_column(
        Enum(TaskType, name="task_type"), nullable=False, default=TaskType.STANDARD
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

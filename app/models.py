from datetime import datetime, timezone
from enum import Enum

from pydantic import field_validator
from sqlalchemy import JSON, DateTime
from sqlmodel import Column, Field, SQLModel


def get_utc_now():
    """Helper function to get current UTC time with timezone"""
    return datetime.now(timezone.utc)


def _created_at_column():
    return Column(DateTime(timezone=True), nullable=False, index=True)


def _updated_at_column():
    return Column(DateTime(timezone=True), nullable=True)


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"


# Users


class UserBase(SQLModel):
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=320)


class User(UserBase, table=True):
    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(max_length=320, unique=True, index=True)
    created_at: datetime = Field(
        default_factory=get_utc_now, sa_column=_created_at_column()
    )
    updated_at: datetime | None = Field(default=None, sa_column=_updated_at_column())


class UserCreate(UserBase):
    pass


class UserUpdate(SQLModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    email: str | None = Field(default=None, min_length=3, max_length=320)


class UserResponse(UserBase):
    id: int
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


# Boards


class BoardBase(SQLModel):
    name: str = Field(min_length=1, max_length=200)
    owner_id: int = Field(foreign_key="users.id", index=True)
    member_ids: list[int] = Field(default_factory=list, sa_type=JSON)

    @field_validator("member_ids")
    @classmethod
    def _dedupe_members(cls, value):
        if value is None:
            return value
        # ordered set: keep the first occurrence of each member
        return list(dict.fromkeys(value))


class Board(BoardBase, table=True):
    __tablename__ = "boards"

    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime = Field(
        default_factory=get_utc_now, sa_column=_created_at_column()
    )
    updated_at: datetime | None = Field(default=None, sa_column=_updated_at_column())


class BoardCreate(BoardBase):
    pass


class BoardUpdate(SQLModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    owner_id: int | None = None
    member_ids: list[int] | None = None

    @field_validator("member_ids")
    @classmethod
    def _dedupe_members(cls, value):
        if value is None:
            return value
        return list(dict.fromkeys(value))

    @field_validator("name", "owner_id", "member_ids")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("field cannot be null")
        return value


class BoardResponse(BoardBase):
    id: int
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


# Tasks


class TaskBase(SQLModel):
    board_id: int = Field(foreign_key="boards.id", index=True)
    title: str = Field(min_length=1, max_length=200, index=True)
    description: str | None = Field(default=None)
    status: TaskStatus = Field(default=TaskStatus.TODO)
    assignee_id: int | None = Field(default=None, foreign_key="users.id", index=True)


class Task(TaskBase, table=True):
    __tablename__ = "tasks"

    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime = Field(
        default_factory=get_utc_now, sa_column=_created_at_column()
    )
    updated_at: datetime | None = Field(default=None, sa_column=_updated_at_column())


class TaskCreate(TaskBase):
    pass


class TaskUpdate(SQLModel):
    """Schema for updating a task - all fields optional except the acting user"""

    board_id: int | None = None
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus | None = None
    assignee_id: int | None = None
    changed_by_user_id: int

    @field_validator("board_id", "title", "status")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("field cannot be null")
        return value


class TaskResponse(TaskBase):
    id: int
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


# Comments


class CommentBase(SQLModel):
    task_id: int = Field(foreign_key="tasks.id", index=True)
    user_id: int
    text: str = Field(min_length=1)


class Comment(CommentBase, table=True):
    __tablename__ = "comments"

    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime = Field(
        default_factory=get_utc_now, sa_column=_created_at_column()
    )
    updated_at: datetime | None = Field(default=None, sa_column=_updated_at_column())


class CommentCreate(CommentBase):
    pass


class CommentUpdate(SQLModel):
    text: str = Field(min_length=1)


class CommentResponse(CommentBase):
    id: int
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


# History


class HistoryLogEntry(SQLModel, table=True):
    """Append-only record of one field change on a task."""

    __tablename__ = "task_history_logs"

    id: int | None = Field(default=None, primary_key=True)
    task_id: int = Field(index=True)
    field: str = Field(max_length=64)
    old_value: str | None = None
    new_value: str | None = None
    changed_by_user_id: int
    created_at: datetime = Field(
        default_factory=get_utc_now, sa_column=_created_at_column()
    )


class HistoryLogEntryResponse(SQLModel):
    id: int
    task_id: int
    field: str
    old_value: str | None = None
    new_value: str | None = None
    changed_by_user_id: int
    created_at: datetime

    model_config = {"from_attributes": True}

from typing import Optional
from datetime import datetime
from .utils import now_utc
from sqlmodel import SQLModel, Field
from sqlalchemy import Index


class User(SQLModel, table=True):
    """Account that owns checklists and tasks; password stored as a passlib hash."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = ""
    # stored lower-cased; uniqueness is case-insensitive in practice
    email: str = Field(index=True, sa_column_kwargs={"unique": True})
    password_hash: str
    created_at: datetime | None = Field(default_factory=now_utc)


class Checklist(SQLModel, table=True):
    __table_args__ = (
        Index("ix_checklist_user_order", "user_id", "order"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    title: str
    color: str = Field(default="#80D8FF")
    # Sort key among the owner's checklists; not required to be contiguous.
    order: int = Field(default=0)
    created_at: datetime | None = Field(default_factory=now_utc)
    updated_at: datetime | None = Field(default_factory=now_utc)


class Task(SQLModel, table=True):
    __table_args__ = (
        Index("ix_task_checklist_pinned", "checklist_id", "pinned"),
        Index("ix_task_user_pinned_completed", "user_id", "pinned", "completed"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    # Every task belongs to a checklist owned by the same user.
    checklist_id: int = Field(foreign_key="checklist.id", index=True)
    title: str
    color: str = Field(default="#FFFFFF")
    pinned: bool = Field(default=False)
    completed: bool = Field(default=False)
    # Sort key among the tasks of one checklist.
    order: int = Field(default=0)
    due_date: Optional[datetime] = None
    created_at: datetime | None = Field(default_factory=now_utc)
    updated_at: datetime | None = Field(default_factory=now_utc)

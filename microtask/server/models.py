"""
SOLE RESPONSIBILITY: Defines all Pydantic and SQLModel data contracts for the entire system,
serving as the single source of truth for data shapes.
"""

import re
from typing import Optional, List
from enum import Enum
from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import SQLModel, Field
from pydantic import BaseModel, field_validator


DUE_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class Priority(str, Enum):
    """Task priority enumeration."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


PRIORITY_VALUES = tuple(p.value for p in Priority)

# SQLite INTEGER is a signed 64-bit value; larger ids cannot be bound at all
SQLITE_INTEGER_MIN = -(2**63)
SQLITE_INTEGER_MAX = 2**63 - 1


def is_storable_id(task_id: int) -> bool:
    return SQLITE_INTEGER_MIN <= task_id <= SQLITE_INTEGER_MAX


class TaskDB(SQLModel, table=True):
    """Database model representing the tasks table schema."""

    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint("priority IN ('low', 'medium', 'high')", name="ck_tasks_priority"),
        {"sqlite_autoincrement": True},
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: Optional[str] = ""
    due_date: str
    # Stored as the plain enum value so the priority rank CASE matches it
    priority: str
    completed: bool = Field(default=False)


class TaskStepDB(SQLModel, table=True):
    """Database model for the ordered steps of a task."""

    __tablename__ = "task_steps"
    __table_args__ = (
        UniqueConstraint("task_id", "step_order", name="uq_task_steps_order"),
        {"sqlite_autoincrement": True},
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: int = Field(foreign_key="tasks.id", ondelete="CASCADE", index=True)
    title: str
    step_order: int
    completed: bool = Field(default=False)


class TaskStepCreate(BaseModel):
    """A step as submitted by a client. Its position in the list decides its order."""

    title: str = Field(..., min_length=1)
    completed: bool = False
    # Accepted for compatibility with clients that echo steps back; never stored
    order: Optional[int] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Step title cannot be empty")
        return v.strip()


class TaskCreate(BaseModel):
    """Input model for creating a task together with its steps."""

    title: str = Field(..., min_length=1)
    description: Optional[str] = ""
    due_date: str = Field(..., min_length=1)
    priority: Priority
    completed: bool = False
    steps: List[TaskStepCreate] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Title cannot be empty")
        return v.strip()

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, v: str) -> str:
        # Format only; "2024-02-31" is accepted
        if not DUE_DATE_PATTERN.match(v.strip()):
            raise ValueError("Due date must use the YYYY-MM-DD format")
        return v.strip()

    @field_validator("description")
    @classmethod
    def normalize_description(cls, v: Optional[str]) -> str:
        return v or ""

    @field_validator("steps", mode="before")
    @classmethod
    def normalize_steps(cls, v):
        return v or []


class TaskUpdate(TaskCreate):
    """Full-replace payload: every field overwrites, the steps list supersedes all stored steps."""


class TaskStepRead(BaseModel):
    """Public-facing step representation for API responses."""

    id: int
    task_id: int
    title: str
    order: int
    completed: bool = False


class TaskRead(BaseModel):
    """Public-facing task aggregate: the task row plus its ordered steps."""

    id: int
    title: str
    description: str = ""
    due_date: str
    priority: str
    completed: bool = False
    steps: List[TaskStepRead] = Field(default_factory=list)


class MessageResponse(BaseModel):
    """Confirmation body for toggle and delete."""

    message: str

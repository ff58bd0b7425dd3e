from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional

Priority = Literal["high", "medium", "low"]


class User(BaseModel):
    id: int
    username: str
    password_hash: str
    created_at: str  # ISO format datetime string


class UserPublic(BaseModel):
    id: int
    username: str
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserPublic":
        return cls(id=user.id, username=user.username, created_at=user.created_at)


class UserCredentials(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=128)

    @field_validator("username")
    @classmethod
    def strip_username(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("username must not be blank")
        return value


class PasswordChange(BaseModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=1, max_length=128)


class Task(BaseModel):
    id: int
    user_id: int
    title: str
    description: Optional[str] = None
    priority: Priority
    due_date: Optional[str] = None  # ISO format datetime string
    completed: bool = False
    ai_tags: Optional[list[str]] = None
    ai_notes: Optional[str] = None
    created_at: str  # ISO format datetime string


class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    priority: Priority
    due_date: Optional[datetime] = None


class TaskUpdate(BaseModel):
    # Only fields present in the request body are applied
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Optional[datetime] = None
    completed: Optional[bool] = None
    ai_notes: Optional[str] = None

    def changes(self) -> dict:
        """Fields sent by the client. Explicit nulls only clear nullable columns."""
        return {
            field: value
            for field, value in self.model_dump(exclude_unset=True).items()
            if value is not None or field in NULLABLE_TASK_FIELDS
        }


NULLABLE_TASK_FIELDS = ("description", "due_date", "ai_notes")


# Derived, never persisted
class TaskGroup(BaseModel):
    name: str
    tasks: list[str]


class TaskInsights(BaseModel):
    task_groups: list[TaskGroup]
    recommendations: list[str]
    completion_rate: str  # e.g. "50%"


class ExecutiveSummary(BaseModel):
    summary: str
    metrics: list[str]


class TaskReport(BaseModel):
    executive_summary: ExecutiveSummary
    task_analysis: str
    productivity_metrics: str
    work_style_analysis: str
    recommendations: list[str]

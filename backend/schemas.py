import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, computed_field, field_validator

import lifecycle
from models import NotificationType, Role, TaskPriority, TaskStatus

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]")


def validate_password_strength(value: str) -> str:
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase letter, "
            "one number, and one special character (@$!%*?&)"
        )
    return value


def clean_email(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


# Auth schemas
class RegisterRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return clean_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return validate_password_strength(value)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return clean_email(value)


# User schemas
class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: str
    last_name: str


class UserResponse(UserSummary):
    full_name: str
    role: Role
    is_active: bool
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    first_name: Optional[str] = Field(None, min_length=1, max_length=255)
    last_name: Optional[str] = Field(None, min_length=1, max_length=255)
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    avatar_url: Optional[str] = Field(None, max_length=512)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return clean_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return validate_password_strength(value)


# Task schemas
class TaskCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None
    estimated_hours: Optional[float] = Field(None, ge=0, le=999.99, description="Estimated hours (0 to 999.99)")
    actual_hours: Optional[float] = Field(None, ge=0, le=999.99, description="Actual hours spent (0 to 999.99)")
    tags: List[str] = Field(default_factory=list)
    assignee_id: Optional[int] = None


class TaskUpdate(BaseModel):
    """Editable task fields. Status, creator and assignee have dedicated endpoints."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    estimated_hours: Optional[float] = Field(None, ge=0, le=999.99, description="Estimated hours (0 to 999.99)")
    actual_hours: Optional[float] = Field(None, ge=0, le=999.99, description="Actual hours spent (0 to 999.99)")
    tags: Optional[List[str]] = None
    version: Optional[int] = Field(None, ge=1, description="Version the client last read")


class TaskStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: TaskStatus
    version: Optional[int] = Field(None, ge=1, description="Version the client last read")


class TaskAssign(BaseModel):
    model_config = ConfigDict(extra="forbid")

    assignee_id: Optional[int] = None
    version: Optional[int] = Field(None, ge=1, description="Version the client last read")


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[datetime] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    tags: List[str] = Field(default_factory=list)
    creator_id: int
    creator: Optional[UserSummary] = None
    assignee_id: Optional[int] = None
    assignee: Optional[UserSummary] = None
    version: int
    is_overdue: bool = False
    is_assigned: bool = False
    is_completed: bool = False
    days_until_due: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def allowed_transitions(self) -> List[TaskStatus]:
        allowed = lifecycle.allowed_transitions(self.status)
        return [s for s in TaskStatus if s in allowed]


# Comment schemas
class CommentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: str = Field(..., min_length=1, max_length=10000)
    parent_id: Optional[int] = None


class CommentUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: str = Field(..., min_length=1, max_length=10000)


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    task_id: int
    user_id: int
    author: Optional[UserSummary] = None
    parent_id: Optional[int] = None
    # Placeholder text while the comment is deleted
    content: str = Field(validation_alias="display_content")
    is_edited: bool
    is_deleted: bool
    deleted_at: Optional[datetime] = None
    mentions: List[str] = Field(default_factory=list)
    is_reply: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Notification schemas
class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: NotificationType
    message: str
    is_read: bool
    read_at: Optional[datetime] = None
    action_url: Optional[str] = None
    metadata: Optional[dict] = Field(None, validation_alias="notification_metadata")
    task_id: Optional[int] = None
    created_at: Optional[datetime] = None


class ReadAllResult(BaseModel):
    updated_count: int

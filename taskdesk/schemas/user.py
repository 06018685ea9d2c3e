from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator
from taskdesk.utils.sanitization import sanitize_string
from taskdesk.utils.timeutils import as_utc


class UserBase(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    username: str = Field(..., min_length=1, max_length=50)
    email: EmailStr

    @field_validator("username", "full_name", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class UserCreate(UserBase):
    password: str = Field(..., min_length=8, max_length=128)
    role_id: int | None = None


class UserUpdate(BaseModel):
    full_name: str | None = Field(None, min_length=1, max_length=100)
    email: EmailStr | None = None
    role_id: int | None = None
    is_active: bool | None = None

    @field_validator("full_name", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class ChangePassword(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8, max_length=128)


class UserResponse(BaseModel):
    user_id: int
    full_name: str
    username: str
    email: str
    role_id: int
    role_name: str | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def utc(cls, v):
        return as_utc(v)


class AssignedTaskSummary(BaseModel):
    task_id: int
    title: str
    status: str
    priority: str
    due_date: datetime
    created_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("due_date", "created_at", mode="after")
    @classmethod
    def utc(cls, v):
        return as_utc(v)


class UserDetailResponse(UserResponse):
    tasks: list[AssignedTaskSummary] = []


class Token(BaseModel):
    access_token: str
    token_type: str
    user: UserResponse


class TokenData(BaseModel):
    user_id: int
    username: str | None = None
    role: str | None = None
    jti: str | None = None


class RoleUserCount(BaseModel):
    role_id: int
    role_name: str
    user_count: int


class TopUser(BaseModel):
    user_id: int
    full_name: str
    role_name: str | None = None
    task_count: int
    completed_tasks: int


class UserStats(BaseModel):
    total_users: int
    users_by_role: list[RoleUserCount]
    top_users: list[TopUser]

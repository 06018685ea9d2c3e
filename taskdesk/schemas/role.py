from datetime import datetime

from pydantic import BaseModel, Field, field_validator
from taskdesk.utils.sanitization import sanitize_string, blank_to_none
from taskdesk.utils.timeutils import as_utc


class RoleFlags(BaseModel):
    can_view_all_tasks: bool = False
    can_edit_all_tasks: bool = False
    can_create_tasks: bool = False
    can_delete_tasks: bool = False
    can_assign_tasks: bool = False
    can_view_all_users: bool = False
    can_create_users: bool = False
    can_edit_users: bool = False
    can_delete_users: bool = False
    can_manage_roles: bool = False
    can_manage_permissions: bool = False
    can_view_reports: bool = False
    can_export_data: bool = False


class RoleCreate(RoleFlags):
    name: str = Field(..., min_length=1, max_length=50)
    description: str | None = Field(None, max_length=200)

    @field_validator("name", mode="before")
    @classmethod
    def sanitize_name(cls, v):
        return sanitize_string(v)

    @field_validator("description", mode="before")
    @classmethod
    def sanitize_description(cls, v):
        return blank_to_none(v)


class RoleUpdate(BaseModel):
    """Partial update: fields left out of the body stay as they are."""
    name: str | None = Field(None, min_length=1, max_length=50)
    description: str | None = Field(None, max_length=200)
    can_view_all_tasks: bool | None = None
    can_edit_all_tasks: bool | None = None
    can_create_tasks: bool | None = None
    can_delete_tasks: bool | None = None
    can_assign_tasks: bool | None = None
    can_view_all_users: bool | None = None
    can_create_users: bool | None = None
    can_edit_users: bool | None = None
    can_delete_users: bool | None = None
    can_manage_roles: bool | None = None
    can_manage_permissions: bool | None = None
    can_view_reports: bool | None = None
    can_export_data: bool | None = None

    @field_validator("name", mode="before")
    @classmethod
    def sanitize_name(cls, v):
        return sanitize_string(v)

    @field_validator("description", mode="before")
    @classmethod
    def sanitize_description(cls, v):
        return blank_to_none(v)


class RoleResponse(RoleFlags):
    role_id: int
    name: str
    description: str | None = None
    is_default: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    user_count: int = 0

    model_config = {"from_attributes": True}

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def utc(cls, v):
        return as_utc(v)


class PermissionBundle(BaseModel):
    role_id: int
    role_name: str
    permissions: dict[str, bool]

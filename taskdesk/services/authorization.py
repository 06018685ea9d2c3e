"""
Authorization engine.

Two mechanisms compose additively:

* permission flags on the caller's role grant *breadth*: acting on everyone's
  resources;
* ownership grants *personal scope*: a task's creator and assignees, and a
  user's own profile.

`authorize` returns a typed decision; it never raises. Callers turn a `Deny`
into `AuthorizationError` with `ensure_allowed`.
"""
import enum
import logging
from dataclasses import dataclass

from taskdesk.errors import AuthorizationError, ValidationError
from taskdesk.models.tasks import TaskItem
from taskdesk.models.user import User

logger = logging.getLogger(__name__)


class Permission(str, enum.Enum):
    # Task
    VIEW_ALL_TASKS = "canViewAllTasks"
    EDIT_ALL_TASKS = "canEditAllTasks"
    CREATE_TASKS = "canCreateTasks"
    DELETE_TASKS = "canDeleteTasks"
    ASSIGN_TASKS = "canAssignTasks"
    # User
    VIEW_ALL_USERS = "canViewAllUsers"
    CREATE_USERS = "canCreateUsers"
    EDIT_USERS = "canEditUsers"
    DELETE_USERS = "canDeleteUsers"
    # System
    MANAGE_ROLES = "canManageRoles"
    MANAGE_PERMISSIONS = "canManagePermissions"
    VIEW_REPORTS = "canViewReports"
    EXPORT_DATA = "canExportData"


# External permission key -> Role column. Must cover every Permission.
PERMISSION_FIELDS: dict[Permission, str] = {
    Permission.VIEW_ALL_TASKS: "can_view_all_tasks",
    Permission.EDIT_ALL_TASKS: "can_edit_all_tasks",
    Permission.CREATE_TASKS: "can_create_tasks",
    Permission.DELETE_TASKS: "can_delete_tasks",
    Permission.ASSIGN_TASKS: "can_assign_tasks",
    Permission.VIEW_ALL_USERS: "can_view_all_users",
    Permission.CREATE_USERS: "can_create_users",
    Permission.EDIT_USERS: "can_edit_users",
    Permission.DELETE_USERS: "can_delete_users",
    Permission.MANAGE_ROLES: "can_manage_roles",
    Permission.MANAGE_PERMISSIONS: "can_manage_permissions",
    Permission.VIEW_REPORTS: "can_view_reports",
    Permission.EXPORT_DATA: "can_export_data",
}


class Action(str, enum.Enum):
    TASK_VIEW = "task:view"
    TASK_LIST_ALL = "task:list-all"
    TASK_CREATE = "task:create"
    TASK_UPDATE = "task:update"
    TASK_UPDATE_PROGRESS = "task:update-progress"
    TASK_DELETE = "task:delete"
    TASK_ASSIGN = "task:assign"
    USER_LIST = "user:list"
    USER_VIEW = "user:view"
    USER_CREATE = "user:create"
    USER_EDIT = "user:edit"
    USER_CHANGE_ROLE = "user:change-role"
    USER_DEACTIVATE = "user:deactivate"
    USER_STATS = "user:stats"
    ROLE_VIEW = "role:view"
    ROLE_MANAGE = "role:manage"
    PERMISSION_MANAGE = "permission:manage"
    REPORT_VIEW = "report:view"
    DATA_EXPORT = "data:export"


# Any one of the listed flags grants the action.
ACTION_PERMISSIONS: dict[Action, tuple[Permission, ...]] = {
    Action.TASK_VIEW: (Permission.VIEW_ALL_TASKS,),
    Action.TASK_LIST_ALL: (Permission.VIEW_ALL_TASKS,),
    Action.TASK_CREATE: (Permission.CREATE_TASKS,),
    Action.TASK_UPDATE: (Permission.EDIT_ALL_TASKS, Permission.VIEW_ALL_TASKS),
    Action.TASK_UPDATE_PROGRESS: (Permission.EDIT_ALL_TASKS, Permission.VIEW_ALL_TASKS),
    Action.TASK_DELETE: (Permission.EDIT_ALL_TASKS, Permission.DELETE_TASKS),
    Action.TASK_ASSIGN: (Permission.ASSIGN_TASKS,),
    Action.USER_LIST: (Permission.VIEW_ALL_USERS,),
    Action.USER_VIEW: (Permission.VIEW_ALL_USERS,),
    Action.USER_CREATE: (Permission.CREATE_USERS,),
    Action.USER_EDIT: (Permission.EDIT_USERS,),
    Action.USER_CHANGE_ROLE: (Permission.MANAGE_ROLES,),
    Action.USER_DEACTIVATE: (Permission.DELETE_USERS,),
    Action.USER_STATS: (Permission.VIEW_ALL_USERS,),
    Action.ROLE_VIEW: (Permission.MANAGE_ROLES, Permission.MANAGE_PERMISSIONS),
    Action.ROLE_MANAGE: (Permission.MANAGE_ROLES,),
    Action.PERMISSION_MANAGE: (Permission.MANAGE_PERMISSIONS,),
    Action.REPORT_VIEW: (Permission.VIEW_REPORTS,),
    Action.DATA_EXPORT: (Permission.EXPORT_DATA,),
}

# Actions an identity match grants on its own, without any flag.
_CREATOR_ACTIONS = frozenset({Action.TASK_VIEW, Action.TASK_UPDATE, Action.TASK_UPDATE_PROGRESS, Action.TASK_DELETE})
_ASSIGNEE_ACTIONS = frozenset({Action.TASK_VIEW, Action.TASK_UPDATE_PROGRESS})
_SELF_ACTIONS = frozenset({Action.USER_VIEW, Action.USER_EDIT})


@dataclass(frozen=True)
class Allow:
    reason: str = "allowed"

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class Deny:
    reason: str

    def __bool__(self) -> bool:
        return False


Decision = Allow | Deny


def parse_permission_key(key: str) -> Permission:
    try:
        return Permission(key)
    except ValueError:
        raise ValidationError(f"Unknown permission '{key}'") from None


def has_permission(role, permission: Permission) -> bool:
    if role is None:
        return False
    return bool(getattr(role, PERMISSION_FIELDS[permission]))


def permission_bundle(role) -> dict[str, bool]:
    return {p.value: has_permission(role, p) for p in Permission}


def _identity_match(caller, action: Action, resource) -> str | None:
    if isinstance(resource, TaskItem):
        if resource.created_by_id == caller.user_id and action in _CREATOR_ACTIONS:
            return "creator"
        if action in _ASSIGNEE_ACTIONS and caller.user_id in resource.assigned_user_ids:
            return "assignee"
    elif isinstance(resource, User):
        if resource.user_id == caller.user_id and action in _SELF_ACTIONS:
            return "self"
    return None


def authorize(caller, action: Action, resource=None) -> Decision:
    """Decide whether `caller` may perform `action` on `resource`."""
    if caller is None:
        return Deny("no caller")

    match = _identity_match(caller, action, resource)
    if match:
        return Allow(match)

    for permission in ACTION_PERMISSIONS[action]:
        if has_permission(caller.role, permission):
            return Allow(permission.value)

    needed = ", ".join(p.value for p in ACTION_PERMISSIONS[action])
    return Deny(f"{action.value} requires one of: {needed}")


def can(caller, action: Action, resource=None) -> bool:
    return bool(authorize(caller, action, resource))


def ensure_allowed(decision: Decision, *, caller=None, action: Action | None = None) -> None:
    if isinstance(decision, Deny):
        logger.debug(
            "Denied %s for user %s: %s",
            action.value if action else "?",
            getattr(caller, "user_id", None),
            decision.reason,
        )
        raise AuthorizationError()


def require(caller, action: Action, resource=None) -> None:
    ensure_allowed(authorize(caller, action, resource), caller=caller, action=action)

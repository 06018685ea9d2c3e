import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from taskdesk.errors import ConflictError, NotFoundError, ValidationError
from taskdesk.models.role import Role
from taskdesk.models.user import User
from taskdesk.schemas.role import RoleCreate, RoleUpdate
from taskdesk.services.authorization import (
    Action,
    PERMISSION_FIELDS,
    parse_permission_key,
    permission_bundle,
    require,
)
from taskdesk.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


async def get_role_by_id(db: AsyncSession, role_id: int) -> Role:
    result = await db.execute(select(Role).filter(Role.role_id == role_id))
    role = result.scalars().first()
    if not role:
        raise NotFoundError("Role not found")
    return role


async def count_users(db: AsyncSession, role_id: int) -> int:
    result = await db.execute(select(func.count(User.user_id)).filter(User.role_id == role_id))
    return int(result.scalar() or 0)


async def user_counts(db: AsyncSession) -> dict[int, int]:
    result = await db.execute(
        select(User.role_id, func.count(User.user_id)).group_by(User.role_id)
    )
    return {role_id: int(count) for role_id, count in result.all()}


async def list_roles(db: AsyncSession, caller: User) -> list[Role]:
    require(caller, Action.ROLE_VIEW)
    result = await db.execute(select(Role).order_by(Role.role_id))
    return list(result.scalars().all())


async def get_role_for_caller(db: AsyncSession, caller: User, role_id: int) -> Role:
    require(caller, Action.ROLE_VIEW)
    return await get_role_by_id(db, role_id)


async def _ensure_unique_name(db: AsyncSession, name: str, exclude_id: int | None = None) -> None:
    query = select(func.count(Role.role_id)).filter(Role.name == name)
    if exclude_id is not None:
        query = query.filter(Role.role_id != exclude_id)
    if (await db.execute(query)).scalar():
        raise ValidationError("Role name already exists")


async def create_role(db: AsyncSession, role_in: RoleCreate, caller: User) -> Role:
    require(caller, Action.ROLE_MANAGE)
    await _ensure_unique_name(db, role_in.name)

    role = Role(**role_in.model_dump(), created_at=utcnow())
    db.add(role)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ValidationError("Role name already exists")
    logger.info("User %s created role %s (%s)", caller.user_id, role.role_id, role.name)
    return role


async def update_role(db: AsyncSession, role_id: int, role_update: RoleUpdate, caller: User) -> Role:
    require(caller, Action.ROLE_MANAGE)
    role = await get_role_by_id(db, role_id)
    if role.is_default:
        raise ConflictError("Cannot modify default roles")

    fields = role_update.model_dump(exclude_unset=True)
    for name, value in fields.items():
        if value is None and name != "description":
            raise ValidationError(f"{name} cannot be empty")

    new_name = fields.get("name")
    if new_name is not None and new_name != role.name:
        await _ensure_unique_name(db, new_name, exclude_id=role.role_id)

    for name, value in fields.items():
        setattr(role, name, value)
    role.updated_at = utcnow()

    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ValidationError("Role name already exists")
    return role


async def delete_role(db: AsyncSession, role_id: int, caller: User) -> None:
    require(caller, Action.ROLE_MANAGE)
    role = await get_role_by_id(db, role_id)
    if role.is_default:
        raise ConflictError("Cannot delete default roles")
    if await count_users(db, role_id):
        raise ConflictError("Cannot delete role that has users assigned. Reassign users first.")

    await db.delete(role)
    await db.flush()
    logger.info("User %s deleted role %s (%s)", caller.user_id, role_id, role.name)


async def get_permissions(db: AsyncSession, role_id: int, caller: User) -> tuple[Role, dict[str, bool]]:
    require(caller, Action.ROLE_VIEW)
    role = await get_role_by_id(db, role_id)
    return role, permission_bundle(role)


async def update_permissions(db: AsyncSession, role_id: int, changes: dict[str, bool], caller: User) -> tuple[Role, dict[str, bool]]:
    """Set some of a role's flags. Default roles are allowed here; only their structure is fixed."""
    require(caller, Action.PERMISSION_MANAGE)
    role = await get_role_by_id(db, role_id)

    # Resolve every key first so a typo leaves the role untouched
    resolved = {parse_permission_key(key): bool(value) for key, value in changes.items()}
    for permission, value in resolved.items():
        setattr(role, PERMISSION_FIELDS[permission], value)
    role.updated_at = utcnow()
    await db.flush()

    logger.info(
        "User %s updated permissions of role %s: %s",
        caller.user_id, role.name, {p.value: v for p, v in resolved.items()},
    )
    return role, permission_bundle(role)

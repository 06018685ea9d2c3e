import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from taskdesk.errors import ConflictError, NotFoundError, ValidationError
from taskdesk.models.role import Role, DEFAULT_USER_ROLE_ID
from taskdesk.models.tasks import TaskItem, TaskStatus
from taskdesk.models.user import User
from taskdesk.schemas.user import UserCreate, UserUpdate
from taskdesk.services.authorization import Action, can, require
from taskdesk.services.tasks import is_assigned_to
from taskdesk.utils.security import get_password_hash, verify_password
from taskdesk.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


async def get_user_by_id(db: AsyncSession, user_id: int, include_inactive: bool = False) -> User:
    query = select(User).filter(User.user_id == user_id)
    if not include_inactive:
        query = query.filter(User.is_active == True)
    result = await db.execute(query.execution_options(populate_existing=True))
    user = result.scalars().first()
    if not user:
        raise NotFoundError("User not found")
    return user


# Rights that reach other users' records; without one, only your own id resolves.
_ADMIN_USER_ACTIONS = (Action.USER_LIST, Action.USER_EDIT, Action.USER_CHANGE_ROLE, Action.USER_DEACTIVATE)


def _guard_other_user(caller: User, user_id: int, actions) -> None:
    # Denied before the lookup so a 403 never tells whether the id exists
    if user_id != caller.user_id and not any(can(caller, a) for a in actions):
        require(caller, actions[0])


async def get_user_for_caller(db: AsyncSession, caller: User, user_id: int) -> User:
    _guard_other_user(caller, user_id, (Action.USER_LIST,))
    user = await get_user_by_id(db, user_id, include_inactive=can(caller, Action.USER_LIST))
    require(caller, Action.USER_VIEW, user)
    return user


async def list_users(
    db: AsyncSession,
    caller: User,
    *,
    is_active: bool | None = None,
    role_id: int | None = None,
) -> list[User]:
    require(caller, Action.USER_LIST)
    query = select(User)
    if is_active is not None:
        query = query.filter(User.is_active == is_active)
    if role_id is not None:
        query = query.filter(User.role_id == role_id)
    result = await db.execute(query.order_by(User.full_name, User.user_id))
    return list(result.scalars().all())


async def assigned_tasks(db: AsyncSession, user_id: int) -> list[TaskItem]:
    result = await db.execute(
        select(TaskItem)
        .filter(TaskItem.is_deleted == False, is_assigned_to(user_id))
        .order_by(TaskItem.due_date)
    )
    return list(result.scalars().all())


async def get_role(db: AsyncSession, role_id: int) -> Role | None:
    result = await db.execute(select(Role).filter(Role.role_id == role_id))
    return result.scalars().first()


async def _ensure_unique(db: AsyncSession, *, username: str | None = None, email: str | None = None, exclude_id: int | None = None):
    if username is not None:
        query = select(func.count(User.user_id)).filter(User.username == username)
        if exclude_id is not None:
            query = query.filter(User.user_id != exclude_id)
        if (await db.execute(query)).scalar():
            raise ValidationError("Username already exists")
    if email is not None:
        query = select(func.count(User.user_id)).filter(User.email == email)
        if exclude_id is not None:
            query = query.filter(User.user_id != exclude_id)
        if (await db.execute(query)).scalar():
            raise ValidationError("Email already in use")


async def create_user(db: AsyncSession, user_in: UserCreate, caller: User) -> User:
    require(caller, Action.USER_CREATE)
    await _ensure_unique(db, username=user_in.username, email=user_in.email)

    # Without role management rights, new accounts always get the basic role
    role_id = user_in.role_id or DEFAULT_USER_ROLE_ID
    if role_id != DEFAULT_USER_ROLE_ID and not can(caller, Action.USER_CHANGE_ROLE):
        role_id = DEFAULT_USER_ROLE_ID

    role = await get_role(db, role_id)
    if role is None:
        raise ValidationError("Invalid role specified")

    new_user = User(
        full_name=user_in.full_name,
        username=user_in.username,
        email=user_in.email,
        hashed_password=get_password_hash(user_in.password),
        role_id=role.role_id,
        is_active=True,
        created_at=utcnow(),
    )
    new_user.role = role
    db.add(new_user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ValidationError("Username or Email already registered")

    logger.info("User %s created user %s (%s) with role %s", caller.user_id, new_user.user_id, new_user.username, role.name)
    return new_user


async def has_open_tasks(db: AsyncSession, user_id: int) -> bool:
    result = await db.execute(
        select(func.count(TaskItem.task_id)).filter(
            TaskItem.is_deleted == False,
            TaskItem.status != TaskStatus.COMPLETED.value,
            is_assigned_to(user_id),
        )
    )
    return bool(result.scalar())


async def _check_deactivation(db: AsyncSession, user: User, caller: User) -> None:
    require(caller, Action.USER_DEACTIVATE)
    if user.user_id == caller.user_id:
        raise ValidationError("Cannot deactivate your own account")
    if await has_open_tasks(db, user.user_id):
        raise ConflictError("User has active tasks. Reassign or complete them first.")


async def deactivate_user(db: AsyncSession, user_id: int, caller: User) -> User:
    require(caller, Action.USER_DEACTIVATE)
    user = await get_user_by_id(db, user_id)
    await _check_deactivation(db, user, caller)
    user.is_active = False
    user.updated_at = utcnow()
    await db.flush()
    logger.info("User %s deactivated user %s", caller.user_id, user_id)
    return user


async def update_user(db: AsyncSession, user_id: int, user_update: UserUpdate, caller: User) -> User:
    fields = user_update.model_dump(exclude_unset=True)
    _guard_other_user(caller, user_id, _ADMIN_USER_ACTIONS)
    user = await get_user_by_id(
        db, user_id, include_inactive=any(can(caller, a) for a in _ADMIN_USER_ACTIONS)
    )

    # Every key in the body is checked, whether or not its value changes
    profile_fields = {k: fields[k] for k in ("full_name", "email") if k in fields}
    if profile_fields or not (fields.keys() & {"role_id", "is_active"}):
        require(caller, Action.USER_EDIT, user)
    for name, value in profile_fields.items():
        if value is None:
            raise ValidationError(f"{name} cannot be empty")
    if profile_fields.get("email") is not None:
        await _ensure_unique(db, email=profile_fields["email"], exclude_id=user.user_id)

    new_role = None
    role_id = fields.get("role_id")
    if "role_id" in fields:
        require(caller, Action.USER_CHANGE_ROLE)
    if "role_id" in fields and role_id != user.role_id:
        new_role = await get_role(db, role_id) if role_id is not None else None
        if new_role is None:
            raise ValidationError("Invalid role specified")

    is_active = fields.get("is_active")
    if "is_active" in fields:
        require(caller, Action.USER_DEACTIVATE)
    if is_active is False and user.is_active:
        await _check_deactivation(db, user, caller)

    # Everything validated; apply
    for name, value in profile_fields.items():
        setattr(user, name, value)
    if new_role is not None:
        user.role_id = new_role.role_id
        user.role = new_role
        logger.info("User %s moved user %s to role %s", caller.user_id, user.user_id, new_role.name)
    if is_active is not None:
        user.is_active = is_active

    user.updated_at = utcnow()
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ValidationError("Email already in use")
    return user


async def authenticate(db: AsyncSession, username: str, password: str) -> User | None:
    result = await db.execute(
        select(User).filter(User.username == username)
    )
    user = result.scalars().first()
    if not user or not user.is_active or not verify_password(password, user.hashed_password):
        return None
    return user


async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.hashed_password):
        raise ValidationError("Current password is incorrect")
    if verify_password(new_password, user.hashed_password):
        raise ValidationError("New password must be different")
    user.hashed_password = get_password_hash(new_password)
    user.updated_at = utcnow()
    await db.flush()

import logging

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from taskdesk.models.role import Role
from taskdesk.models.user import User
from taskdesk.utils.security import get_password_hash
from taskdesk.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

_ALL_TASK_FLAGS = dict(
    can_view_all_tasks=True,
    can_edit_all_tasks=True,
    can_create_tasks=True,
    can_delete_tasks=True,
    can_assign_tasks=True,
)

# Insert order fixes the ids: 1-4 are the protected default roles.
DEFAULT_ROLES = [
    dict(
        name="Admin",
        description="Full system access",
        **_ALL_TASK_FLAGS,
        can_view_all_users=True,
        can_create_users=True,
        can_edit_users=True,
        can_delete_users=True,
        can_manage_roles=True,
        can_manage_permissions=True,
        can_view_reports=True,
        can_export_data=True,
    ),
    dict(
        name="Director",
        description="Manages all tasks and users, reporting and export",
        **_ALL_TASK_FLAGS,
        can_view_all_users=True,
        can_create_users=True,
        can_edit_users=True,
        can_view_reports=True,
        can_export_data=True,
    ),
    dict(
        name="Division",
        description="Manages tasks and users of the division",
        **_ALL_TASK_FLAGS,
        can_view_all_users=True,
        can_create_users=True,
        can_edit_users=True,
        can_view_reports=True,
    ),
    dict(
        name="User",
        description="Works on own and assigned tasks",
        can_create_tasks=True,
    ),
]


async def seed_roles(db: AsyncSession) -> int:
    """Insert any missing default role. Matched by name; existing rows are left alone."""
    result = await db.execute(select(Role.name))
    existing = set(result.scalars().all())

    added = 0
    for data in DEFAULT_ROLES:
        if data["name"] in existing:
            continue
        db.add(Role(**data, created_at=utcnow()))
        added += 1
    if added:
        await db.flush()
        logger.info("Seeded %d default role(s)", added)
    return added


async def seed_admin(db: AsyncSession, password: str) -> User | None:
    """Create the `admin` account on an empty user table."""
    count = (await db.execute(select(func.count(User.user_id)))).scalar()
    if count:
        return None

    result = await db.execute(select(Role).filter(Role.name == "Admin"))
    admin_role = result.scalars().first()
    if admin_role is None:
        return None

    admin = User(
        full_name="System Administrator",
        username="admin",
        email="admin@example.com",
        hashed_password=get_password_hash(password),
        role_id=admin_role.role_id,
        is_active=True,
        created_at=utcnow(),
    )
    db.add(admin)
    await db.flush()
    logger.warning("Created initial 'admin' account; change its password")
    return admin


async def seed_defaults(db: AsyncSession, admin_password: str) -> None:
    await seed_roles(db)
    await seed_admin(db, admin_password)
    await db.commit()

from sqlalchemy import func, case, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from taskdesk.config import settings
from taskdesk.models.role import Role
from taskdesk.models.tasks import TaskItem, TaskStatus, TaskPriority, task_users
from taskdesk.models.user import User
from taskdesk.schemas.task import TaskStats, UserTaskBreakdown
from taskdesk.schemas.user import UserStats, RoleUserCount, TopUser
from taskdesk.services.authorization import Action, can, require
from taskdesk.services.tasks import visibility_clause
from taskdesk.utils.timeutils import utcnow


def _count_where(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def completion_rate(completed: int, total: int) -> float:
    return (completed / total) * 100.0 if total > 0 else 0.0


async def task_stats(db: AsyncSession, caller: User, top_n: int | None = None) -> TaskStats:
    """Rollups over the caller's visible tasks (same rule as the task list)."""
    now = utcnow()
    completed = TaskItem.status == TaskStatus.COMPLETED.value

    query = select(
        func.count(TaskItem.task_id).label("total"),
        _count_where(completed).label("completed"),
        _count_where(TaskItem.status == TaskStatus.PENDING.value).label("pending"),
        _count_where(TaskItem.status == TaskStatus.IN_PROGRESS.value).label("in_progress"),
        _count_where(TaskItem.priority == TaskPriority.HIGH.value).label("high"),
        _count_where(TaskItem.priority == TaskPriority.MEDIUM.value).label("medium"),
        _count_where(TaskItem.priority == TaskPriority.LOW.value).label("low"),
        _count_where(and_(TaskItem.status != TaskStatus.COMPLETED.value, TaskItem.due_date < now)).label("overdue"),
    ).filter(TaskItem.is_deleted == False)

    clause = visibility_clause(caller)
    if clause is not None:
        query = query.filter(clause)

    row = (await db.execute(query)).one()
    total = int(row.total or 0)
    completed_count = int(row.completed or 0)

    breakdown = None
    if can(caller, Action.TASK_LIST_ALL):
        breakdown = await _user_breakdown(db, top_n or settings.TOP_USERS_LIMIT)

    return TaskStats(
        total_tasks=total,
        completed_tasks=completed_count,
        pending_tasks=int(row.pending or 0),
        in_progress_tasks=int(row.in_progress or 0),
        high_priority_tasks=int(row.high or 0),
        medium_priority_tasks=int(row.medium or 0),
        low_priority_tasks=int(row.low or 0),
        overdue_tasks=int(row.overdue or 0),
        completion_rate=completion_rate(completed_count, total),
        user_breakdown=breakdown,
    )


async def _top_assignees(db: AsyncSession, limit: int, active_only: bool = False):
    task_count = func.count(TaskItem.task_id)
    query = (
        select(
            User.user_id,
            User.full_name,
            Role.name.label("role_name"),
            task_count.label("task_count"),
            _count_where(TaskItem.status == TaskStatus.COMPLETED.value).label("completed_tasks"),
        )
        .join(task_users, task_users.c.user_id == User.user_id)
        .join(TaskItem, and_(TaskItem.task_id == task_users.c.task_id, TaskItem.is_deleted == False))
        .join(Role, Role.role_id == User.role_id)
        .group_by(User.user_id, User.full_name, Role.name)
        .order_by(task_count.desc(), User.user_id.asc())
        .limit(limit)
    )
    if active_only:
        query = query.filter(User.is_active == True)
    return (await db.execute(query)).all()


async def _user_breakdown(db: AsyncSession, limit: int) -> list[UserTaskBreakdown]:
    rows = await _top_assignees(db, limit)
    return [
        UserTaskBreakdown(
            user_id=r.user_id,
            full_name=r.full_name,
            task_count=int(r.task_count),
            completed_tasks=int(r.completed_tasks or 0),
        )
        for r in rows
    ]


async def user_stats(db: AsyncSession, caller: User, top_n: int | None = None) -> UserStats:
    require(caller, Action.USER_STATS)

    total_users = (
        await db.execute(select(func.count(User.user_id)).filter(User.is_active == True))
    ).scalar() or 0

    by_role_q = (
        select(Role.role_id, Role.name, func.count(User.user_id).label("user_count"))
        .outerjoin(User, and_(User.role_id == Role.role_id, User.is_active == True))
        .group_by(Role.role_id, Role.name)
        .order_by(Role.role_id)
    )
    by_role = [
        RoleUserCount(role_id=r.role_id, role_name=r.name, user_count=int(r.user_count))
        for r in (await db.execute(by_role_q)).all()
    ]

    rows = await _top_assignees(db, top_n or settings.TOP_USERS_LIMIT, active_only=True)
    top_users = [
        TopUser(
            user_id=r.user_id,
            full_name=r.full_name,
            role_name=r.role_name,
            task_count=int(r.task_count),
            completed_tasks=int(r.completed_tasks or 0),
        )
        for r in rows
    ]

    return UserStats(total_users=int(total_users), users_by_role=by_role, top_users=top_users)

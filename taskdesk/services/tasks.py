import logging

from sqlalchemy import case, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from taskdesk.errors import NotFoundError, ValidationError
from taskdesk.models.tasks import TaskItem, TaskStatus, STATUS_RANK, PRIORITY_RANK
from taskdesk.models.user import User
from taskdesk.schemas.task import TaskCreate, TaskUpdate
from taskdesk.services.authorization import Action, can, require
from taskdesk.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

# Fields that may never be set to null through an update.
_NON_NULLABLE_UPDATE_FIELDS = ("title", "status", "priority", "due_date")
# The only fields an assignee (without broader rights) may touch.
_PROGRESS_FIELDS = frozenset({"status", "actual_hours"})


def is_assigned_to(user_id: int):
    return TaskItem.assigned_users.any(User.user_id == user_id)


def visibility_clause(caller):
    """SQL filter for the tasks `caller` may see, or None when they see everything."""
    if can(caller, Action.TASK_LIST_ALL):
        return None
    return or_(TaskItem.created_by_id == caller.user_id, is_assigned_to(caller.user_id))


def visible_tasks_query(caller):
    query = select(TaskItem).filter(TaskItem.is_deleted == False)
    clause = visibility_clause(caller)
    if clause is not None:
        query = query.filter(clause)
    return query


def _rank(column, ranks: dict[str, int]):
    return case(ranks, value=column, else_=0)


_SORT_COLUMNS = {
    "due_date": lambda: TaskItem.due_date,
    "priority": lambda: _rank(TaskItem.priority, PRIORITY_RANK),
    "status": lambda: _rank(TaskItem.status, STATUS_RANK),
    "created_at": lambda: TaskItem.created_at,
}


async def list_tasks(
    db: AsyncSession,
    caller: User,
    *,
    status: str | None = None,
    priority: str | None = None,
    assigned_to: int | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> list[TaskItem]:
    query = visible_tasks_query(caller)

    if status:
        query = query.filter(TaskItem.status == status)
    if priority:
        query = query.filter(TaskItem.priority == priority)
    if assigned_to is not None:
        query = query.filter(is_assigned_to(assigned_to))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                TaskItem.title.ilike(pattern),
                TaskItem.description.ilike(pattern),
                TaskItem.category.ilike(pattern),
            )
        )

    sort_column = _SORT_COLUMNS.get(sort_by, _SORT_COLUMNS["created_at"])()
    if sort_order == "asc":
        query = query.order_by(sort_column.asc(), TaskItem.task_id.asc())
    else:
        query = query.order_by(sort_column.desc(), TaskItem.task_id.desc())

    result = await db.execute(query)
    return list(result.scalars().unique().all())


async def get_task_by_id(db: AsyncSession, task_id: int) -> TaskItem:
    result = await db.execute(
        select(TaskItem)
        .filter(TaskItem.task_id == task_id, TaskItem.is_deleted == False)
        .execution_options(populate_existing=True)
    )
    task = result.scalars().unique().first()
    if not task:
        raise NotFoundError("Task not found")
    return task


async def get_task_for_caller(db: AsyncSession, caller: User, task_id: int) -> TaskItem:
    task = await get_task_by_id(db, task_id)
    require(caller, Action.TASK_VIEW, task)
    return task


async def resolve_assignees(db: AsyncSession, user_ids: list[int]) -> list[User]:
    """Load every requested assignee; fail the whole request if any is missing or inactive."""
    wanted = set(user_ids)
    if not wanted:
        return []
    result = await db.execute(
        select(User).filter(User.user_id.in_(wanted), User.is_active == True)
    )
    users = list(result.scalars().all())
    missing = wanted - {u.user_id for u in users}
    if missing:
        ids = ", ".join(str(i) for i in sorted(missing))
        raise ValidationError(f"Assigned user(s) not found or inactive: {ids}")
    return sorted(users, key=lambda u: u.user_id)


def _check_assignment_rights(caller: User, current_ids: set[int], new_ids: set[int]) -> None:
    # Assigning or unassigning anyone but yourself needs CanAssignTasks
    changed = (current_ids ^ new_ids) - {caller.user_id}
    if changed:
        require(caller, Action.TASK_ASSIGN)


def replace_assignees(task: TaskItem, users: list[User]) -> None:
    """Make `users` the task's full assignment set, touching only what differs."""
    target = {u.user_id: u for u in users}
    current = task.assigned_user_ids
    for user in list(task.assigned_users):
        if user.user_id not in target:
            task.assigned_users.remove(user)
    for user_id, user in target.items():
        if user_id not in current:
            task.assigned_users.append(user)


async def create_task(db: AsyncSession, task_data: TaskCreate, caller: User) -> TaskItem:
    require(caller, Action.TASK_CREATE)

    new_ids = set(task_data.assigned_user_ids)
    _check_assignment_rights(caller, set(), new_ids)
    assignees = await resolve_assignees(db, task_data.assigned_user_ids)

    new_task = TaskItem(
        title=task_data.title,
        description=task_data.description,
        status=TaskStatus.PENDING.value,
        priority=task_data.priority.value,
        category=task_data.category,
        due_date=task_data.due_date,
        estimated_hours=task_data.estimated_hours,
        created_by_id=caller.user_id,
        created_at=utcnow(),
        is_deleted=False,
    )
    new_task.creator = caller
    new_task.assigned_users = assignees

    db.add(new_task)
    await db.flush()
    logger.info("User %s created task %s", caller.user_id, new_task.task_id)
    return new_task


async def update_task(db: AsyncSession, task_id: int, update_data: TaskUpdate, caller: User) -> TaskItem:
    task = await get_task_by_id(db, task_id)
    fields = update_data.model_dump(exclude_unset=True)

    if set(fields) <= _PROGRESS_FIELDS:
        require(caller, Action.TASK_UPDATE_PROGRESS, task)
    else:
        require(caller, Action.TASK_UPDATE, task)

    for name in _NON_NULLABLE_UPDATE_FIELDS:
        if name in fields and fields[name] is None:
            raise ValidationError(f"{name} cannot be empty")

    # Validate the new assignment set before touching anything
    assignees = None
    if "assigned_user_ids" in fields:
        new_ids = set(fields.pop("assigned_user_ids") or [])
        _check_assignment_rights(caller, task.assigned_user_ids, new_ids)
        assignees = await resolve_assignees(db, list(new_ids))

    now = utcnow()
    if "status" in fields:
        task.set_status(fields.pop("status").value, now)
    if "priority" in fields:
        task.priority = fields.pop("priority").value

    for key, value in fields.items():
        setattr(task, key, value)

    if assignees is not None:
        replace_assignees(task, assignees)

    task.updated_at = now
    await db.flush()
    return task


async def delete_task(db: AsyncSession, task_id: int, caller: User) -> None:
    task = await get_task_by_id(db, task_id)
    require(caller, Action.TASK_DELETE, task)
    task.is_deleted = True
    task.updated_at = utcnow()
    await db.flush()
    logger.info("User %s deleted task %s", caller.user_id, task_id)

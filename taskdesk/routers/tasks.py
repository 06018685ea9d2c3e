from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.dependencies import get_db, get_current_user
from taskdesk.models.tasks import TaskStatus, TaskPriority
from taskdesk.models.user import User as UserModel
from taskdesk.schemas.task import TaskCreate, TaskUpdate, Task as TaskSchema, TaskStats, TaskSortKey, SortOrder
from taskdesk.services import tasks as task_service
from taskdesk.services import stats as stats_service

router = APIRouter(prefix="/tasks", tags=["tasks"])

@router.get("/", response_model=list[TaskSchema])
async def list_tasks(
    status: TaskStatus | None = None,
    priority: TaskPriority | None = None,
    assigned_to: int | None = None,
    search: str | None = None,
    sort_by: TaskSortKey = "created_at",
    sort_order: SortOrder = "desc",
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    return await task_service.list_tasks(
        db,
        current_user,
        status=status.value if status else None,
        priority=priority.value if priority else None,
        assigned_to=assigned_to,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )

# Declared before /{task_id} so "stats" is not parsed as an id
@router.get("/stats", response_model=TaskStats)
async def task_stats(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    return await stats_service.task_stats(db, current_user)

@router.get("/{task_id}", response_model=TaskSchema)
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    return await task_service.get_task_for_caller(db, current_user, task_id)

@router.post("/", response_model=TaskSchema, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    task = await task_service.create_task(db, task_data, current_user)
    await db.commit()
    return await task_service.get_task_by_id(db, task.task_id)

@router.patch("/{task_id}", response_model=TaskSchema)
@router.put("/{task_id}", response_model=TaskSchema, include_in_schema=False)
async def update_task(
    task_id: int,
    update_data: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    await task_service.update_task(db, task_id, update_data, current_user)
    await db.commit()
    return await task_service.get_task_by_id(db, task_id)

@router.delete("/{task_id}")
async def delete_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    await task_service.delete_task(db, task_id, current_user)
    await db.commit()
    return {"message": "Task deleted successfully"}

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.dependencies import get_db, get_current_user
from taskdesk.models.user import User as UserModel
from taskdesk.schemas.user import UserCreate, UserResponse, UserUpdate, UserDetailResponse, UserStats, AssignedTaskSummary
from taskdesk.services import users as user_service
from taskdesk.services import stats as stats_service

router = APIRouter(prefix="/users", tags=["users"])

@router.get("/", response_model=list[UserResponse])
async def list_users(
    is_active: bool | None = None,
    role_id: int | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    return await user_service.list_users(db, current_user, is_active=is_active, role_id=role_id)

@router.get("/stats", response_model=UserStats)
async def user_stats(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    return await stats_service.user_stats(db, current_user)

@router.get("/{user_id}", response_model=UserDetailResponse)
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    user = await user_service.get_user_for_caller(db, current_user, user_id)
    tasks = await user_service.assigned_tasks(db, user.user_id)
    return UserDetailResponse(
        **UserResponse.model_validate(user).model_dump(),
        tasks=[AssignedTaskSummary.model_validate(t) for t in tasks],
    )

@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    new_user = await user_service.create_user(db, user, current_user)
    await db.commit()
    return await user_service.get_user_by_id(db, new_user.user_id)

@router.patch("/{user_id}", response_model=UserResponse)
@router.put("/{user_id}", response_model=UserResponse, include_in_schema=False)
async def update_user(
    user_id: int,
    user_update: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    await user_service.update_user(db, user_id, user_update, current_user)
    await db.commit()
    return await user_service.get_user_by_id(db, user_id, include_inactive=True)

@router.delete("/{user_id}")
async def deactivate_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    await user_service.deactivate_user(db, user_id, current_user)
    await db.commit()
    return {"message": "User deactivated successfully"}

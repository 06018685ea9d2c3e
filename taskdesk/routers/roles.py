from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.dependencies import get_db, get_current_user
from taskdesk.models.role import Role as RoleModel
from taskdesk.models.user import User as UserModel
from taskdesk.schemas.role import RoleCreate, RoleUpdate, RoleResponse, PermissionBundle
from taskdesk.services import roles as role_service

router = APIRouter(prefix="/roles", tags=["roles"])


def _to_response(role: RoleModel, user_count: int) -> RoleResponse:
    response = RoleResponse.model_validate(role)
    response.user_count = user_count
    return response


@router.get("/", response_model=list[RoleResponse])
async def list_roles(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    roles = await role_service.list_roles(db, current_user)
    counts = await role_service.user_counts(db)
    return [_to_response(r, counts.get(r.role_id, 0)) for r in roles]

@router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    role = await role_service.get_role_for_caller(db, current_user, role_id)
    return _to_response(role, await role_service.count_users(db, role_id))

@router.post("/", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role_in: RoleCreate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    role = await role_service.create_role(db, role_in, current_user)
    await db.commit()
    return _to_response(role, 0)

@router.patch("/{role_id}", response_model=RoleResponse)
@router.put("/{role_id}", response_model=RoleResponse, include_in_schema=False)
async def update_role(
    role_id: int,
    role_update: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    role = await role_service.update_role(db, role_id, role_update, current_user)
    await db.commit()
    return _to_response(role, await role_service.count_users(db, role_id))

@router.delete("/{role_id}")
async def delete_role(
    role_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    await role_service.delete_role(db, role_id, current_user)
    await db.commit()
    return {"message": "Role deleted successfully"}

@router.get("/{role_id}/permissions", response_model=PermissionBundle)
async def get_role_permissions(
    role_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    role, permissions = await role_service.get_permissions(db, role_id, current_user)
    return PermissionBundle(role_id=role.role_id, role_name=role.name, permissions=permissions)

@router.put("/{role_id}/permissions", response_model=PermissionBundle)
async def update_role_permissions(
    role_id: int,
    changes: dict[str, bool],
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    role, permissions = await role_service.update_permissions(db, role_id, changes, current_user)
    await db.commit()
    return PermissionBundle(role_id=role.role_id, role_name=role.name, permissions=permissions)

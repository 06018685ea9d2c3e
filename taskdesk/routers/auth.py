from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.dependencies import get_db, get_current_user
from taskdesk.models.user import User as UserModel
from taskdesk.schemas.user import Token, UserResponse, ChangePassword
from taskdesk.services import users as user_service
from taskdesk.utils.security import create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/token", response_model=Token)
async def login_for_access_token(
    db: AsyncSession = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends()
):
    user = await user_service.authenticate(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(user)
    return Token(access_token=access_token, token_type="bearer", user=UserResponse.model_validate(user))

@router.get("/me", response_model=UserResponse)
async def read_current_user(current_user: UserModel = Depends(get_current_user)):
    return current_user

@router.post("/change-password")
async def change_password(
    payload: ChangePassword,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    await user_service.change_password(db, current_user, payload.current_password, payload.new_password)
    await db.commit()
    return {"message": "Password changed successfully"}

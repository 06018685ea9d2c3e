from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from jose import JWTError
from pydantic import ValidationError as SchemaError
from taskdesk.database import get_db as db_session
from taskdesk.models.user import User as UserModel
from taskdesk.schemas.user import TokenData
from taskdesk.utils.security import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")

def get_db(db: AsyncSession = Depends(db_session)):
    return db

async def get_current_user(
    db: AsyncSession = Depends(get_db),
    token: str = Depends(oauth2_scheme)
) -> UserModel:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        token_data = TokenData(
            user_id=payload.get("sub"),
            username=payload.get("unique_name"),
            role=payload.get("role"),
            jti=payload.get("jti"),
        )
    except (JWTError, SchemaError):
        raise credentials_exception

    result = await db.execute(
        select(UserModel).filter(UserModel.user_id == token_data.user_id, UserModel.is_active == True)
    )
    user = result.scalars().first()
    if user is None:
        raise credentials_exception
    return user

import uuid
from datetime import timedelta

from jose import jwt
from passlib.context import CryptContext

from taskdesk.config import settings
from taskdesk.utils.timeutils import utcnow

# argon2: salted and memory-hard
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user, expires_delta: timedelta | None = None) -> str:
    """Issue a signed bearer token for `user`. Expiry is fixed here; there is no refresh."""
    issued_at = utcnow()
    expire = issued_at + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {
        "sub": str(user.user_id),
        "unique_name": user.username,
        "email": user.email,
        "role": user.role_name or "User",
        "jti": str(uuid.uuid4()),
        "iat": issued_at,
        "exp": expire,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    # Raises jose.JWTError (incl. ExpiredSignatureError) on anything off
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])

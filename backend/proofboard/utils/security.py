"""Password hashing and JWT tokens."""
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from proofboard.config import get_settings

settings = get_settings()

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS = "access"
REFRESH = "refresh"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)


def _create_token(user_id: int, token_type: str, lifetime: timedelta) -> str:
    payload = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + lifetime,
        "type": token_type,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: int) -> str:
    """Create JWT access token."""
    return _create_token(user_id, ACCESS, timedelta(minutes=settings.access_token_expire_minutes))


def create_refresh_token(user_id: int) -> str:
    """Create JWT refresh token."""
    return _create_token(user_id, REFRESH, timedelta(days=settings.refresh_token_expire_days))


def decode_token(token: str) -> dict | None:
    """Decode and validate JWT token; None when invalid or expired."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def get_user_id_from_token(token: str, token_type: str = ACCESS) -> int | None:
    """User id carried by a valid token of the given type."""
    payload = decode_token(token)
    if payload is None or payload.get("type") != token_type:
        return None
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        return None

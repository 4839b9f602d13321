"""Rate limiting (slowapi)."""
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from proofboard.config import get_settings
from proofboard.utils.security import get_user_id_from_token

settings = get_settings()


def get_client_key(request: Request) -> str:
    """Per-user key when a bearer token is present, client IP otherwise."""
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        user_id = get_user_id_from_token(auth[7:])
        if user_id is not None:
            return f"user:{user_id}"
    return get_remote_address(request)


limiter = Limiter(key_func=get_client_key)

# Applied to endpoints that accept file bodies.
UPLOAD_LIMIT = f"{settings.rate_limit_per_minute}/minute"

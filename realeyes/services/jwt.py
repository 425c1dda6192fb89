import logging
import time
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from realeyes.config import settings
from realeyes.errors import AuthError, ValidationError

logger = logging.getLogger(__name__)


def create_jwt_token(data: dict, expires_in: Optional[int] = None, secret: Optional[str] = None) -> str:
    if expires_in is None:
        expires_in = settings.ACCESS_TOKEN_EXPIRES_MIN * 60
    payload = data.copy()
    payload["exp"] = int(time.time()) + expires_in
    return jwt.encode(payload, secret or settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_jwt_token(token: str, secret: Optional[str] = None) -> Dict[str, Any]:
    return jwt.decode(
        token,
        secret or settings.JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        options={"leeway": 30},  # 30s clock skew tolerance
    )


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.strip():
        return None
    parts = authorization.strip().split(None, 1)
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip() or None
    return authorization.strip()


def decode_user_id(authorization: Optional[str], secret: Optional[str] = None) -> Optional[str]:
    """User id from an Authorization header value, or None if absent or invalid."""
    token = _bearer_token(authorization)
    if not token:
        return None
    try:
        payload = decode_jwt_token(token, secret)
    except JWTError as e:
        logger.info("Rejected auth token: %s", e)
        return None
    user_id = payload.get("sub") or payload.get("userId")
    return str(user_id) if user_id else None


def resolve_user_id(
    authorization: Optional[str],
    body_user_id: Optional[str],
    secret: Optional[str] = None,
) -> str:
    """A valid token wins; otherwise the userId supplied in the body."""
    user_id = decode_user_id(authorization, secret)
    if user_id:
        return user_id
    if body_user_id and str(body_user_id).strip():
        return str(body_user_id).strip()
    if _bearer_token(authorization):
        raise AuthError("Invalid token")
    raise ValidationError("UserId is required")

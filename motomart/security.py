"""
Password hashing and JWT helpers.
"""
import logging
import time
from typing import Any, Dict, Optional

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from .utils import SQLITE_MAX_INT

logger = logging.getLogger(__name__)

ACCESS_TOKEN = "access"
RESET_TOKEN = "reset"


def hash_password(raw_password: str) -> str:
    return generate_password_hash(raw_password)


def verify_password(password_hash: Optional[str], raw_password: str) -> bool:
    if not password_hash or raw_password is None:
        return False
    return check_password_hash(password_hash, raw_password)


def create_token(user_id: int, secret: str, ttl_seconds: int,
                 token_type: str = ACCESS_TOKEN, algorithm: str = "HS256") -> str:
    now = int(time.time())
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + ttl_seconds,
        "type": token_type,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(token: str, secret: str, token_type: str = ACCESS_TOKEN,
                 algorithm: str = "HS256") -> Optional[Dict[str, Any]]:
    """Return the payload of a valid, unexpired token of the given type, else None."""
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.InvalidTokenError as e:
        logger.debug(f"Rejected token: {e}")
        return None
    if payload.get("type") != token_type:
        return None
    return payload


def token_user_id(payload: Optional[Dict[str, Any]]) -> Optional[int]:
    if not payload:
        return None
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        return None
    return user_id if 0 < user_id <= SQLITE_MAX_INT else None


def issue_access_token(user_id: int, settings) -> str:
    """Access token with the configured secret and lifetime."""
    return create_token(user_id, settings.JWT_SECRET, settings.JWT_EXPIRES_HOURS * 3600,
                        algorithm=settings.JWT_ALGORITHM)

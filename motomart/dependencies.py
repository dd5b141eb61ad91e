"""
FastAPI dependencies: injected storage, settings, image store and auth.
"""
import logging
from typing import Dict, Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from . import repository
from .config import Config
from .database import Database
from .security import decode_token, token_user_id
from .uploads import ImageStore

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_settings(request: Request) -> Config:
    return request.app.state.config


def get_image_store(request: Request) -> ImageStore:
    return request.app.state.images


def _resolve_user(credentials: Optional[HTTPAuthorizationCredentials],
                  db: Database, settings: Config) -> Optional[Dict]:
    payload = decode_token(credentials.credentials, settings.JWT_SECRET,
                           algorithm=settings.JWT_ALGORITHM)
    user_id = token_user_id(payload)
    if user_id is None:
        return None
    return repository.get_user_by_id(db, user_id)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Database = Depends(get_db),
    settings: Config = Depends(get_settings),
) -> Dict:
    """Require a valid bearer token for an existing user."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="No token, authorization denied")
    user = _resolve_user(credentials, db, settings)
    if user is None:
        raise HTTPException(status_code=401, detail="Token is not valid")
    return user


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Database = Depends(get_db),
    settings: Config = Depends(get_settings),
) -> Optional[Dict]:
    """The caller's user when a valid token is sent; anonymous callers get None."""
    if credentials is None:
        return None
    return _resolve_user(credentials, db, settings)


def require_admin(user: Dict = Depends(get_current_user)) -> Dict:
    if user.get("role") != "admin":
        logger.warning(f"User {user.get('id')} attempted an admin-only action")
        raise HTTPException(status_code=403, detail="Access denied. Admin privileges required.")
    return user

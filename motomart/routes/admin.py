"""
Admin panel route handlers.
"""
import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException

from .. import repository
from ..config import Config
from ..database import Database
from ..dependencies import get_db, get_settings, require_admin
from ..models import AdminAuthResponse, AdminLoginIn, AdminStatsOut, UserOut
from ..security import issue_access_token, verify_password

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/login", response_model=AdminAuthResponse)
async def admin_login(payload: AdminLoginIn, db: Database = Depends(get_db),
                      settings: Config = Depends(get_settings)):
    """Log in with an account that holds the admin role."""
    admin = repository.get_user_by_username(db, payload.username.strip()) if payload.username else None
    if admin is None or admin["role"] != "admin" or not verify_password(admin["password"], payload.password):
        logger.warning(f"Failed admin login for {payload.username!r}")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    repository.record_login(db, admin["id"], "success")
    return AdminAuthResponse(token=issue_access_token(admin["id"], settings), admin=UserOut(**admin))


@router.get("/stats", response_model=AdminStatsOut)
async def get_admin_stats(admin: Dict = Depends(require_admin), db: Database = Depends(get_db)):
    """Get marketplace statistics."""
    try:
        stats_data = repository.admin_stats(db)
        return AdminStatsOut(**stats_data)

    except Exception as e:
        logger.error(f"Error fetching admin stats: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch statistics")

"""
Route package initialization.
"""
from .admin import router as admin_router
from .listings import motorcycles_router, router as listings_router
from .users import router as users_router

__all__ = ["admin_router", "listings_router", "motorcycles_router", "users_router"]

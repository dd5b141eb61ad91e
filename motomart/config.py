"""
API configuration and settings management.
"""
import os
from typing import Optional


def _env_list(name: str, default: str) -> list:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class Config:
    """Application configuration."""

    # Database
    DB_PATH: str = os.getenv("MOTOMART_DB", "./data/motomart.db")

    # API settings
    API_TITLE: str = "MotoMart API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "REST API for the motorcycle marketplace"

    # CORS settings
    CORS_ORIGINS: list = _env_list("CORS_ORIGINS", "*")
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list = ["*"]
    CORS_ALLOW_HEADERS: list = ["*"]

    # Auth
    JWT_SECRET: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_HOURS: int = int(os.getenv("JWT_EXPIRES_HOURS", "24"))
    RESET_TOKEN_EXPIRES_HOURS: int = 1

    # Seeded admin account (skipped unless a password is set)
    ADMIN_USERNAME: str = os.getenv("ADMIN_USERNAME", "admin")
    ADMIN_EMAIL: str = os.getenv("ADMIN_EMAIL", "admin@motomart.local")
    ADMIN_PASSWORD: Optional[str] = os.getenv("ADMIN_PASSWORD")

    # Uploads
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "./uploads")
    MAX_UPLOAD_BYTES: int = 5_000_000
    MAX_LISTING_IMAGES: int = 5

    # Pagination defaults
    DEFAULT_PAGE_SIZE: int = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
    MAX_PAGE_SIZE: int = int(os.getenv("MAX_PAGE_SIZE", "100"))
    MAX_EXPORT_ROWS: int = int(os.getenv("MAX_EXPORT_ROWS", "10000"))
    RECENT_VIEWS_LIMIT: int = 10
    PROFILE_RECENT_VIEWS_LIMIT: int = 5

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: Optional[str] = os.getenv("LOG_FILE", "api.log") or None

    def __init__(self, **overrides):
        for key, value in overrides.items():
            if not hasattr(type(self), key):
                raise AttributeError(f"Unknown config option: {key}")
            setattr(self, key, value)

    @property
    def listing_images_dir(self) -> str:
        return os.path.join(self.UPLOAD_DIR, "motorcycle_images")

    @property
    def profile_pictures_dir(self) -> str:
        return os.path.join(self.UPLOAD_DIR, "profile_pictures")

    def validate(self) -> None:
        """Validate configuration on startup."""
        if not self.DB_PATH:
            raise ValueError("Database path not configured")
        if self.DEFAULT_PAGE_SIZE < 1 or self.MAX_PAGE_SIZE < self.DEFAULT_PAGE_SIZE:
            raise ValueError("Page size limits are inconsistent")
        if self.JWT_EXPIRES_HOURS < 1:
            raise ValueError("JWT_EXPIRES_HOURS must be positive")

# Global config instance
config = Config()

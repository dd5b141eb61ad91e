"""
Mapping of domain errors onto HTTP responses.
"""
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .query import QueryError
from .uploads import UploadRejected
from .validation import ListingValidationError

logger = logging.getLogger(__name__)

# Raised inside handlers and answered by the handlers below, never as a 500.
CLIENT_ERRORS = (HTTPException, QueryError, ListingValidationError, UploadRejected)


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(QueryError)
    async def query_error_handler(request: Request, exc: QueryError):
        logger.info(f"Rejected search on {request.url.path}: {exc}")
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ListingValidationError)
    async def listing_validation_handler(request: Request, exc: ListingValidationError):
        logger.info(f"Listing validation failed: {exc.errors}")
        return JSONResponse(
            status_code=400,
            content={"detail": "Validation failed", "errors": exc.errors},
        )

    @app.exception_handler(UploadRejected)
    async def upload_rejected_handler(request: Request, exc: UploadRejected):
        logger.info(f"Upload rejected: {exc.errors}")
        return JSONResponse(
            status_code=400,
            content={"detail": "File upload failed", "errors": exc.errors},
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler for unhandled errors."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

"""
API route handlers for listings endpoints.

The same search, detail and view handlers also answer under /api/motorcycles.
"""
import logging
import sqlite3
from typing import Any, Dict, Optional, Tuple

import pandas as pd
from fastapi import APIRouter, Body, Depends, HTTPException, Path, Request
from fastapi.responses import StreamingResponse

from .. import repository
from ..config import Config
from ..database import Database
from ..dependencies import (
    get_current_user, get_db, get_image_store, get_optional_user, get_settings,
)
from ..errors import CLIENT_ERRORS
from ..models import ListingOut, ListingsOut, ListingsResponse, MessageOut, Pagination, ViewTracked
from ..query import FilterCriteria, Page, SortSpec, parse_search_params
from ..uploads import ImageStore, present_files
from ..utils import SQLITE_MAX_INT
from ..validation import validate_listing, validate_listing_update
from .users import get_recent_views

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/listings", tags=["listings"])
motorcycles_router = APIRouter(prefix="/api/motorcycles", tags=["motorcycles"])

EXPORT_COLUMNS = [
    "id", "brand", "model", "year", "price", "condition", "kilometers_driven",
    "registration_year", "location", "listing_status", "owner_name", "created_at",
]


def get_search_params(
    request: Request,
    brand: Optional[str] = None,
    model: Optional[str] = None,
    year: Optional[str] = None,
    condition: Optional[str] = None,
    priceRange: Optional[str] = None,
    engineCapacity: Optional[str] = None,
    sortBy: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    settings: Config = Depends(get_settings),
) -> Tuple[FilterCriteria, SortSpec, Page]:
    """Dependency to extract and validate listing search parameters.

    The named arguments only document the parameters; decoding works on the raw
    query string so that unknown keys can be rejected.
    """
    return parse_search_params(request.query_params, settings.DEFAULT_PAGE_SIZE,
                               settings.MAX_PAGE_SIZE)


def _owned_listing(db: Database, listing_id: int, user: Dict) -> Dict:
    listing = repository.get_listing(db, listing_id)
    if listing is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    if listing["owner_id"] != user["id"] and user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="You can only modify your own listings")
    return listing


@router.get("", response_model=ListingsResponse)
async def search_listings(
    params: Tuple[FilterCriteria, SortSpec, Page] = Depends(get_search_params),
    db: Database = Depends(get_db),
):
    """Get listings with filtering, sorting and pagination."""
    criteria, sort, page = params
    try:
        items, total = repository.search_listings(db, criteria, sort, page)
        return ListingsResponse(
            listings=[ListingOut(**item) for item in items],
            pagination=Pagination(total=total, page=page.number, limit=page.limit,
                                  total_pages=page.total_pages(total)),
        )

    except Exception as e:
        logger.error(f"Error fetching listings: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/export/csv")
async def export_listings_csv(
    params: Tuple[FilterCriteria, SortSpec, Page] = Depends(get_search_params),
    db: Database = Depends(get_db),
    settings: Config = Depends(get_settings),
):
    """Export filtered listings as CSV."""
    criteria, sort, _ = params
    try:
        # All matching listings, up to the export cap
        items, _ = repository.search_listings(
            db, criteria, sort, Page(1, settings.MAX_EXPORT_ROWS)
        )

        if not items:
            # Return empty CSV with headers
            df = pd.DataFrame(columns=EXPORT_COLUMNS + ["engine_cc"])
        else:
            df = pd.DataFrame(items)
            df["engine_cc"] = [item["specifications"].get("engine") for item in items]
            df = df[EXPORT_COLUMNS + ["engine_cc"]]

        csv_content = df.to_csv(index=False).encode("utf-8")

        return StreamingResponse(
            iter([csv_content]),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="motomart_listings.csv"'}
        )

    except Exception as e:
        logger.error(f"Error exporting CSV: {e}")
        raise HTTPException(status_code=500, detail="Error generating CSV export")


# Registered before "/{listing_id}" so the literal path wins
router.add_api_route("/recent-views", get_recent_views, methods=["GET"], response_model=ListingsOut)


@router.get("/user/{user_id}", response_model=ListingsOut)
async def get_user_listings(user_id: int = Path(..., ge=1, le=SQLITE_MAX_INT),
                            status: Optional[str] = None,
                            db: Database = Depends(get_db)):
    """Get a seller's listings, optionally only those with the given status."""
    items = repository.listings_for_owner(db, user_id, status)
    return ListingsOut(listings=[ListingOut(**item) for item in items])


@router.get("/{listing_id}", response_model=ListingOut)
async def get_listing(
    listing_id: int = Path(..., ge=1, le=SQLITE_MAX_INT),
    db: Database = Depends(get_db),
    user: Optional[Dict] = Depends(get_optional_user),
):
    """Get a specific listing by ID, recording a view for signed-in callers."""
    listing = repository.get_listing(db, listing_id)
    if not listing:
        raise HTTPException(status_code=404, detail="Listing not found")

    if user is not None:
        try:
            repository.record_interaction(db, user["id"], listing_id, "view")
        except sqlite3.Error as e:
            # The read still succeeds without the view being recorded
            logger.error(f"Error recording view of {listing_id} by {user['id']}: {e}")

    return ListingOut(**listing)


@router.post("/{listing_id}/view", response_model=ViewTracked)
async def track_view(
    listing_id: int = Path(..., ge=1, le=SQLITE_MAX_INT),
    db: Database = Depends(get_db),
    user: Optional[Dict] = Depends(get_optional_user),
):
    """Track a listing view; anonymous views are not stored."""
    if not repository.listing_exists(db, listing_id):
        raise HTTPException(status_code=404, detail="Listing not found")
    if user is not None:
        repository.record_interaction(db, user["id"], listing_id, "view")
    return ViewTracked(success=True)


@router.post("", response_model=ListingOut, status_code=201)
async def create_listing(
    request: Request,
    user: Dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    images: ImageStore = Depends(get_image_store),
):
    """Create a listing from a multipart form with up to five images."""
    form = await request.form()
    fields = {key: value for key, value in form.multi_items() if isinstance(value, str)}
    uploads = present_files([f for f in form.getlist("images") if not isinstance(f, str)])

    data = validate_listing(fields, len(uploads))
    paths = await images.save(uploads)

    try:
        listing = repository.create_listing(db, user["id"], data, paths)
        return ListingOut(**listing)

    except Exception as e:
        images.remove(paths)
        logger.error(f"Error creating listing: {e}")
        raise HTTPException(status_code=500, detail="Failed to create listing")


@router.put("/{listing_id}", response_model=ListingOut)
async def update_listing(
    listing_id: int = Path(..., ge=1, le=SQLITE_MAX_INT),
    payload: Dict[str, Any] = Body(...),
    user: Dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Update fields of one of the caller's listings."""
    _owned_listing(db, listing_id, user)
    changes = validate_listing_update(payload)
    try:
        listing = repository.update_listing(db, listing_id, changes)
        if listing is None:
            raise HTTPException(status_code=404, detail="Listing not found")
        return ListingOut(**listing)

    except CLIENT_ERRORS:
        raise
    except Exception as e:
        logger.error(f"Error updating listing {listing_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/{listing_id}", response_model=MessageOut)
async def delete_listing(
    listing_id: int = Path(..., ge=1, le=SQLITE_MAX_INT),
    user: Dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    images: ImageStore = Depends(get_image_store),
):
    listing = _owned_listing(db, listing_id, user)
    if not repository.delete_listing(db, listing_id):
        raise HTTPException(status_code=404, detail="Listing not found")

    images.remove([listing.get("image_url")] + list(listing.get("additional_images") or []))
    logger.info(f"User {user['id']} deleted listing {listing_id}")
    return MessageOut(message="Listing deleted successfully")


# /api/motorcycles serves the same handlers as /api/listings
motorcycles_router.add_api_route("", search_listings, methods=["GET"],
                                 response_model=ListingsResponse)
motorcycles_router.add_api_route("/{listing_id}", get_listing, methods=["GET"],
                                 response_model=ListingOut)
motorcycles_router.add_api_route("/{listing_id}/view", track_view, methods=["POST"],
                                 response_model=ViewTracked)

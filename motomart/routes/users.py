"""
Account, profile and saved/viewed listing route handlers.
"""
import logging
import sqlite3
from typing import Dict, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Path, UploadFile

from .. import repository
from ..config import Config
from ..database import Database
from ..dependencies import get_current_user, get_db, get_image_store, get_settings
from ..errors import CLIENT_ERRORS
from ..models import (
    AuthResponse, ForgotPasswordIn, ListingOut, ListingsOut, LoginIn, MessageOut,
    ProfileOut, ProfilePictureOut, ProfileWithActivity, RegisterIn, SaveActionIn,
    SavedMotorcyclesOut, UserOut,
)
from ..security import RESET_TOKEN, create_token, hash_password, issue_access_token, verify_password
from ..uploads import ImageStore, present_files
from ..utils import SQLITE_MAX_INT, iso_from_now

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(payload: RegisterIn, db: Database = Depends(get_db),
                   settings: Config = Depends(get_settings)):
    """Create an account and log it in."""
    username = (payload.username or "").strip()
    email = (payload.email or "").strip()
    if not username or not email or not payload.password:
        raise HTTPException(status_code=400, detail="Please provide all required fields")

    try:
        if repository.user_exists(db, email, username):
            raise HTTPException(status_code=400,
                                detail="User with this email or username already exists")

        user = repository.create_user(
            db, username, email, hash_password(payload.password),
            phone=payload.phone, location=payload.location,
        )
        token = issue_access_token(user["id"], settings)
        logger.info(f"User registered successfully: {username}")
        return AuthResponse(token=token, user=UserOut(**user))

    except HTTPException:
        raise
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=400,
                            detail="User with this email or username already exists")
    except Exception as e:
        logger.error(f"Registration error: {e}")
        raise HTTPException(status_code=500, detail="Server error during registration")


@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginIn, db: Database = Depends(get_db),
                settings: Config = Depends(get_settings)):
    user = repository.get_user_by_email(db, payload.email.strip()) if payload.email else None
    if user is None or not verify_password(user["password"], payload.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    repository.record_login(db, user["id"], "success")
    return AuthResponse(token=issue_access_token(user["id"], settings), user=UserOut(**user))


@router.post("/forgot-password", response_model=MessageOut)
async def forgot_password(payload: ForgotPasswordIn, db: Database = Depends(get_db),
                          settings: Config = Depends(get_settings)):
    """Store a short-lived reset token. Delivering it by e-mail is out of scope."""
    user = repository.get_user_by_email(db, payload.email.strip()) if payload.email else None
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    hours = settings.RESET_TOKEN_EXPIRES_HOURS
    reset_token = create_token(user["id"], settings.JWT_SECRET, hours * 3600,
                               token_type=RESET_TOKEN, algorithm=settings.JWT_ALGORITHM)
    repository.set_reset_token(db, user["id"], reset_token, iso_from_now(hours=hours))
    return MessageOut(message="Password reset instructions sent to email")


@router.get("/profile", response_model=ProfileWithActivity)
async def get_profile(user: Dict = Depends(get_current_user), db: Database = Depends(get_db),
                      settings: Config = Depends(get_settings)):
    """Profile fields plus saved bikes and the most recent views."""
    profile = repository.get_profile(db, user["id"])
    if profile is None:
        raise HTTPException(status_code=404, detail="User not found")

    saved = repository.saved_listings(db, user["id"])
    recent = repository.recent_views(db, user["id"], settings.PROFILE_RECENT_VIEWS_LIMIT)
    return ProfileWithActivity(
        **profile,
        saved_bikes=[ListingOut(**item) for item in saved],
        recent_views=[ListingOut(**item) for item in recent],
    )


@router.put("/profile", response_model=ProfileOut)
async def update_profile(
    full_name: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    date_of_birth: Optional[str] = Form(None),
    gender: Optional[str] = Form(None),
    occupation: Optional[str] = Form(None),
    license_number: Optional[str] = Form(None),
    preferred_bike_type: Optional[str] = Form(None),
    riding_experience: Optional[str] = Form(None),
    emergency_contact: Optional[str] = Form(None),
    social_media: Optional[str] = Form(None),
    notifications: Optional[str] = Form(None),
    profile_picture: Optional[UploadFile] = File(None),
    user: Dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    images: ImageStore = Depends(get_image_store),
):
    if not full_name or not full_name.strip():
        raise HTTPException(status_code=400, detail="Full name is required")

    fields = {
        "full_name": full_name.strip(),
        "phone": phone,
        "address": address,
        "date_of_birth": date_of_birth,
        "gender": gender,
        "occupation": occupation,
        "license_number": license_number,
        "preferred_bike_type": preferred_bike_type,
        "riding_experience": riding_experience,
        "emergency_contact": emergency_contact,
        "social_media": social_media,
        "notifications": notifications,
    }

    new_picture = None
    pictures = present_files([profile_picture])
    if pictures:
        new_picture = await images.save_one(pictures[0])

    try:
        profile = repository.update_profile(db, user["id"], fields, profile_picture=new_picture)
    except Exception:
        images.remove([new_picture])
        raise
    if profile is None:
        raise HTTPException(status_code=404, detail="User not found")

    if new_picture and user.get("profile_picture") != new_picture:
        images.remove([user.get("profile_picture")])
    return ProfileOut(**profile)


@router.post("/profile/picture", response_model=ProfilePictureOut)
async def upload_profile_picture(
    profile_picture: Optional[UploadFile] = File(None),
    user: Dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    images: ImageStore = Depends(get_image_store),
):
    pictures = present_files([profile_picture])
    if not pictures:
        raise HTTPException(status_code=400, detail="No file uploaded")

    path = await images.save_one(pictures[0])
    previous = repository.set_profile_picture(db, user["id"], path)
    if previous and previous != path:
        images.remove([previous])
    return ProfilePictureOut(profile_picture=path)


@router.get("/saved-motorcycles", response_model=SavedMotorcyclesOut)
async def get_saved_motorcycles(user: Dict = Depends(get_current_user),
                                db: Database = Depends(get_db)):
    saved = repository.saved_listings(db, user["id"])
    return SavedMotorcyclesOut(motorcycles=[ListingOut(**item) for item in saved])


@router.post("/save-motorcycle/{listing_id}", response_model=MessageOut)
async def save_motorcycle(payload: SaveActionIn,
                          listing_id: int = Path(..., ge=1, le=SQLITE_MAX_INT),
                          user: Dict = Depends(get_current_user),
                          db: Database = Depends(get_db)):
    """Save or unsave a listing for the current user."""
    try:
        if not repository.listing_exists(db, listing_id):
            raise HTTPException(status_code=404, detail="Motorcycle not found")

        if payload.action == "save":
            repository.record_interaction(db, user["id"], listing_id, "save")
            return MessageOut(message="Motorcycle saved successfully")
        if payload.action == "unsave":
            repository.remove_interaction(db, user["id"], listing_id, "save")
            return MessageOut(message="Motorcycle unsaved successfully")
        raise HTTPException(status_code=400, detail='Invalid action. Use "save" or "unsave".')

    except CLIENT_ERRORS:
        raise
    except Exception as e:
        logger.error(f"Error saving/unsaving motorcycle {listing_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/recent-views", response_model=ListingsOut)
async def get_recent_views(user: Dict = Depends(get_current_user),
                           db: Database = Depends(get_db),
                           settings: Config = Depends(get_settings)):
    """Listings the current user opened most recently."""
    recent = repository.recent_views(db, user["id"], settings.RECENT_VIEWS_LIMIT)
    return ListingsOut(listings=[ListingOut(**item) for item in recent])

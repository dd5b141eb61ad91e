"""
Pydantic models for API request/response serialization.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    """Accepts field names on input, emits the camelCase aliases the frontend reads."""
    model_config = ConfigDict(populate_by_name=True)


class UserOut(BaseModel):
    """Public view of an account."""
    id: int
    username: str
    email: str
    role: str = "user"


class AuthResponse(BaseModel):
    token: str
    user: UserOut


class AdminAuthResponse(BaseModel):
    token: str
    admin: UserOut


class RegisterIn(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None


class LoginIn(BaseModel):
    email: str = ""
    password: str = ""


class AdminLoginIn(BaseModel):
    username: str = ""
    password: str = ""


class ForgotPasswordIn(BaseModel):
    email: str = ""


class SaveActionIn(BaseModel):
    action: str = ""


class MessageOut(BaseModel):
    message: str


class ListingOut(BaseModel):
    """Output model for listing data."""
    id: int
    owner_id: int
    brand: str
    model: str
    year: Optional[int] = None
    price: Optional[float] = None
    condition: Optional[str] = None
    kilometers_driven: Optional[int] = None
    registration_year: Optional[int] = None
    registration_number: Optional[str] = None
    description: Optional[str] = None
    contact_number: Optional[str] = None
    location: Optional[str] = None
    specifications: Dict[str, Any] = Field(default_factory=dict)
    image_url: Optional[str] = None
    additional_images: List[str] = Field(default_factory=list)
    listing_status: str = "active"
    is_premium: bool = False
    is_featured: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    owner_name: Optional[str] = None
    owner_full_name: Optional[str] = None
    owner_phone: Optional[str] = None
    owner_email: Optional[str] = None
    saved_at: Optional[str] = None
    viewed_at: Optional[str] = None


class Pagination(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int = Field(alias="totalPages")


class ListingsResponse(BaseModel):
    """Response model for paginated listings."""
    listings: List[ListingOut]
    pagination: Pagination


class ListingsOut(BaseModel):
    listings: List[ListingOut]


class SavedMotorcyclesOut(BaseModel):
    motorcycles: List[ListingOut]


class ProfileOut(BaseModel):
    id: int
    username: str
    email: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    occupation: Optional[str] = None
    license_number: Optional[str] = None
    preferred_bike_type: Optional[str] = None
    riding_experience: Optional[str] = None
    emergency_contact: Optional[str] = None
    social_media: Optional[str] = None
    notifications: Optional[str] = None
    profile_picture: Optional[str] = None
    role: str = "user"
    created_at: Optional[str] = None


class ProfileWithActivity(ProfileOut):
    model_config = ConfigDict(populate_by_name=True)

    saved_bikes: List[ListingOut] = Field(default_factory=list, alias="savedBikes")
    recent_views: List[ListingOut] = Field(default_factory=list, alias="recentViews")


class ProfilePictureOut(BaseModel):
    profile_picture: str


class ViewTracked(BaseModel):
    success: bool = True


class AdminStatsOut(CamelModel):
    """Model for admin panel statistics."""
    total_users: int = Field(alias="totalUsers")
    total_listings: int = Field(alias="totalListings")
    active_listings: int = Field(alias="activeListings")
    premium_listings: int = Field(alias="premiumListings")
    featured_listings: int = Field(alias="featuredListings")
    total_views: int = Field(alias="totalViews")
    total_earnings: float = Field(alias="totalEarnings")
    monthly_earnings: float = Field(alias="monthlyEarnings")

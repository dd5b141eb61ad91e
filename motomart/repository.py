"""
Storage operations for users, listings, interactions and admin figures.

Every function takes the Database collaborator as its first argument; nothing
here holds a connection between calls.
"""
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .database import Database
from .query import FilterCriteria, Page, QueryBuilder, SortSpec
from .utils import iso_from_now, now_iso
from .validation import ListingInput

logger = logging.getLogger(__name__)

LISTING_SELECT = (
    "SELECT l.*, u.username AS owner_name, u.full_name AS owner_full_name, "
    "u.phone AS owner_phone, u.email AS owner_email"
)
LISTING_FROM = "FROM motorcycles l JOIN users u ON l.owner_id = u.id"

listing_search = QueryBuilder(LISTING_SELECT, LISTING_FROM)

PROFILE_FIELDS = (
    "full_name", "phone", "address", "date_of_birth", "gender", "occupation",
    "license_number", "preferred_bike_type", "riding_experience",
    "emergency_contact", "social_media", "notifications",
)

PUBLIC_USER_COLUMNS = (
    "id, username, email, full_name, phone, location, address, date_of_birth, gender, "
    "occupation, license_number, preferred_bike_type, riding_experience, "
    "emergency_contact, social_media, notifications, profile_picture, role, created_at"
)


def _listing_from_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Decode the JSON columns of a motorcycles row."""
    listing = dict(row)
    for column, empty in (("specifications", {}), ("additional_images", [])):
        raw = listing.get(column)
        if isinstance(raw, str):
            try:
                listing[column] = json.loads(raw) if raw else empty
            except ValueError:
                logger.warning(f"Listing {listing.get('id')} has malformed {column}")
                listing[column] = empty
        elif raw is None:
            listing[column] = empty
    for flag in ("is_premium", "is_featured"):
        if flag in listing:
            listing[flag] = bool(listing[flag])
    return listing


# Users

def get_user_by_id(db: Database, user_id: int) -> Optional[Dict]:
    return db.fetch_one("SELECT * FROM users WHERE id = ?", (user_id,))


def get_user_by_email(db: Database, email: str) -> Optional[Dict]:
    return db.fetch_one("SELECT * FROM users WHERE lower(email) = lower(?)", (email,))


def get_user_by_username(db: Database, username: str) -> Optional[Dict]:
    return db.fetch_one("SELECT * FROM users WHERE username = ?", (username,))


def user_exists(db: Database, email: str, username: str) -> bool:
    row = db.fetch_one(
        "SELECT id FROM users WHERE lower(email) = lower(?) OR username = ?",
        (email, username),
    )
    return row is not None


def create_user(db: Database, username: str, email: str, password_hash: str,
                phone: Optional[str] = None, location: Optional[str] = None,
                role: str = "user") -> Dict:
    cursor = db.execute(
        """
        INSERT INTO users (username, email, password, phone, location, role, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (username, email, password_hash, phone, location, role, now_iso()),
    )
    logger.info(f"Created {role} account {username!r} (id={cursor.lastrowid})")
    return get_user_by_id(db, cursor.lastrowid)


def ensure_admin(db: Database, username: str, email: str, password_hash: str) -> Dict:
    """Create the admin account if missing, or promote an existing user of that name."""
    existing = get_user_by_username(db, username)
    if existing is None:
        return create_user(db, username, email, password_hash, role="admin")
    if existing["role"] != "admin":
        db.execute("UPDATE users SET role = 'admin' WHERE id = ?", (existing["id"],))
        logger.info(f"Promoted {username!r} to admin")
    return get_user_by_id(db, existing["id"])


def record_login(db: Database, user_id: int, status: str = "success") -> None:
    db.execute(
        "INSERT INTO login_history (user_id, login_time, status) VALUES (?, ?, ?)",
        (user_id, now_iso(), status),
    )


def set_reset_token(db: Database, user_id: int, token: str, expires_at: str) -> None:
    db.execute(
        "UPDATE users SET reset_token = ?, reset_token_expires = ? WHERE id = ?",
        (token, expires_at, user_id),
    )


def get_profile(db: Database, user_id: int) -> Optional[Dict]:
    return db.fetch_one(f"SELECT {PUBLIC_USER_COLUMNS} FROM users WHERE id = ?", (user_id,))


def update_profile(db: Database, user_id: int, fields: Dict[str, Any],
                   profile_picture: Optional[str] = None) -> Optional[Dict]:
    """Overwrite the profile fields; the picture is only replaced when given."""
    columns = list(PROFILE_FIELDS)
    values = [fields.get(name) for name in PROFILE_FIELDS]
    if profile_picture is not None:
        columns.append("profile_picture")
        values.append(profile_picture)
    assignments = ", ".join(f"{name} = ?" for name in columns)
    cursor = db.execute(f"UPDATE users SET {assignments} WHERE id = ?", (*values, user_id))
    if cursor.rowcount == 0:
        return None
    return get_profile(db, user_id)


def set_profile_picture(db: Database, user_id: int, path: str) -> Optional[str]:
    """Store a new picture path and return the one it replaced."""
    previous = db.fetch_value("SELECT profile_picture FROM users WHERE id = ?", (user_id,))
    db.execute("UPDATE users SET profile_picture = ? WHERE id = ?", (path, user_id))
    return previous


# Listings

def search_listings(db: Database, criteria: FilterCriteria, sort: SortSpec,
                    page: Page) -> Tuple[List[Dict], int]:
    """Get one page of matching listings plus the total match count."""
    built = listing_search.build(criteria, sort, page)
    rows = db.fetch_all(built.fetch_query, built.fetch_params)
    total = db.fetch_value(built.count_query, built.values) or 0
    return [_listing_from_row(row) for row in rows], int(total)


def get_listing(db: Database, listing_id: int) -> Optional[Dict]:
    row = db.fetch_one(f"{LISTING_SELECT} {LISTING_FROM} WHERE l.id = ?", (listing_id,))
    return _listing_from_row(row) if row else None


def listing_exists(db: Database, listing_id: int) -> bool:
    return db.fetch_one("SELECT id FROM motorcycles WHERE id = ?", (listing_id,)) is not None


def listings_for_owner(db: Database, owner_id: int, status: Optional[str] = None) -> List[Dict]:
    sql = f"{LISTING_SELECT} {LISTING_FROM} WHERE l.owner_id = ?"
    params: List[Any] = [owner_id]
    if status:
        sql += " AND l.listing_status = ?"
        params.append(status)
    sql += " ORDER BY l.created_at DESC, l.id ASC"
    return [_listing_from_row(row) for row in db.fetch_all(sql, params)]


def create_listing(db: Database, owner_id: int, data: ListingInput,
                   image_paths: Sequence[str]) -> Dict:
    """Insert a listing; the first image is the main one."""
    main_image = image_paths[0] if image_paths else None
    additional = list(image_paths[1:])
    timestamp = now_iso()
    cursor = db.execute(
        """
        INSERT INTO motorcycles (
          owner_id, brand, model, year, price, condition, kilometers_driven,
          registration_year, registration_number, description, contact_number,
          location, specifications, image_url, additional_images, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            owner_id, data.brand, data.model, data.year, data.price, data.condition,
            data.kilometers_driven, data.registration_year, data.registration_number,
            data.description, data.contact_number, data.location,
            json.dumps(data.specifications, ensure_ascii=False),
            main_image, json.dumps(additional), timestamp, timestamp,
        ),
    )
    logger.info(f"User {owner_id} created listing {cursor.lastrowid}")
    return get_listing(db, cursor.lastrowid)


def update_listing(db: Database, listing_id: int, fields: Dict[str, Any]) -> Optional[Dict]:
    """Apply validated field changes to a listing."""
    values = dict(fields)
    if "specifications" in values:
        values["specifications"] = json.dumps(values["specifications"], ensure_ascii=False)
    values["updated_at"] = now_iso()
    assignments = ", ".join(f"{name} = ?" for name in values)
    cursor = db.execute(
        f"UPDATE motorcycles SET {assignments} WHERE id = ?",
        (*values.values(), listing_id),
    )
    if cursor.rowcount == 0:
        return None
    return get_listing(db, listing_id)


def delete_listing(db: Database, listing_id: int) -> bool:
    cursor = db.execute("DELETE FROM motorcycles WHERE id = ?", (listing_id,))
    return cursor.rowcount > 0


# Interactions

def record_interaction(db: Database, user_id: int, listing_id: int, kind: str) -> None:
    """Insert a view/save, or refresh its timestamp if it already exists."""
    db.execute(
        """
        INSERT INTO user_motorcycle_interactions (user_id, motorcycle_id, interaction_type, created_at)
        VALUES (?, ?, ?, ?)
        ON CONFLICT (user_id, motorcycle_id, interaction_type)
        DO UPDATE SET created_at = excluded.created_at
        """,
        (user_id, listing_id, kind, now_iso()),
    )


def remove_interaction(db: Database, user_id: int, listing_id: int, kind: str) -> bool:
    cursor = db.execute(
        """
        DELETE FROM user_motorcycle_interactions
        WHERE user_id = ? AND motorcycle_id = ? AND interaction_type = ?
        """,
        (user_id, listing_id, kind),
    )
    return cursor.rowcount > 0


def _interaction_listings(db: Database, user_id: int, kind: str, alias: str,
                          limit: Optional[int] = None) -> List[Dict]:
    sql = (
        f"{LISTING_SELECT}, i.created_at AS {alias} {LISTING_FROM} "
        "JOIN user_motorcycle_interactions i ON i.motorcycle_id = l.id "
        "WHERE i.user_id = ? AND i.interaction_type = ? "
        "ORDER BY i.created_at DESC, l.id ASC"
    )
    params: List[Any] = [user_id, kind]
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)
    return [_listing_from_row(row) for row in db.fetch_all(sql, params)]


def saved_listings(db: Database, user_id: int) -> List[Dict]:
    return _interaction_listings(db, user_id, "save", "saved_at")


def recent_views(db: Database, user_id: int, limit: int = 10) -> List[Dict]:
    return _interaction_listings(db, user_id, "view", "viewed_at", limit)


# Admin

def admin_stats(db: Database, month_days: int = 30) -> Dict[str, Any]:
    """Aggregate counts and earnings for the admin panel."""
    with db.connect() as conn:
        total_users = conn.execute(
            "SELECT COUNT(*) FROM users WHERE role != 'admin'"
        ).fetchone()[0]

        listing_stats = conn.execute(
            """
            SELECT
              COUNT(*),
              COALESCE(SUM(listing_status = 'active'), 0),
              COALESCE(SUM(is_premium = 1), 0),
              COALESCE(SUM(is_featured = 1), 0)
            FROM motorcycles
            """
        ).fetchone()

        total_views = conn.execute(
            "SELECT COUNT(*) FROM user_motorcycle_interactions WHERE interaction_type = 'view'"
        ).fetchone()[0]

        earnings = conn.execute(
            """
            SELECT
              COALESCE(SUM(amount), 0),
              COALESCE(SUM(CASE WHEN created_at >= ? THEN amount END), 0)
            FROM transactions
            """,
            (iso_from_now(days=-month_days),),
        ).fetchone()

    return {
        "total_users": int(total_users),
        "total_listings": int(listing_stats[0]),
        "active_listings": int(listing_stats[1]),
        "premium_listings": int(listing_stats[2]),
        "featured_listings": int(listing_stats[3]),
        "total_views": int(total_views),
        "total_earnings": float(earnings[0]),
        "monthly_earnings": float(earnings[1]),
    }

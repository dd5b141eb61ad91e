"""
Listing input validation.

Form values arrive as loose strings; they are checked once here and come out
typed. The nested specifications map is coerced at the same time so that the
engine capacity is always stored as an integer.
"""
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .utils import SQLITE_MAX_INT, clean_text, current_year, extract_digits, to_float, to_int

MIN_YEAR = 1970
MIN_DESCRIPTION_LENGTH = 20
LISTING_STATUSES = ("active", "sold", "inactive")

# Nepali mobile numbers, e.g. +9779812345678 or 9812345678
PHONE_RE = re.compile(r"^(\+977|0)?9[6-9]\d{8}$")

REQUIRED_FIELDS = {
    "brand": "Brand",
    "model": "Model",
    "year": "Year",
    "price": "Price",
    "condition": "Condition",
    "kilometers_driven": "Kilometers driven",
    "registration_year": "Registration year",
    "registration_number": "Registration number",
    "description": "Description",
    "contact_number": "Contact number",
    "location": "Location",
}

UPDATABLE_FIELDS = tuple(REQUIRED_FIELDS) + ("specifications", "listing_status")


class ListingValidationError(ValueError):
    """Collected validation failures for a listing payload."""

    def __init__(self, errors: List[str]):
        super().__init__("Validation failed")
        self.errors = list(errors)


@dataclass
class ListingInput:
    """Validated listing fields, ready to be stored."""
    brand: str
    model: str
    year: int
    price: float
    condition: str
    kilometers_driven: int
    registration_year: int
    registration_number: str
    description: str
    contact_number: str
    location: str
    specifications: Dict[str, Any] = field(default_factory=dict)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_specifications(raw: Any, errors: List[str]) -> Optional[Dict[str, Any]]:
    """Decode the specifications map and coerce its engine capacity to int."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            errors.append("Invalid specifications format")
            return None
    if not isinstance(raw, dict):
        errors.append("Invalid specifications format")
        return None

    specs: Dict[str, Any] = {}
    for key, value in raw.items():
        if value is not None and not isinstance(value, (str, int, float, bool)):
            errors.append(f"Specification '{key}' must be a simple value")
            continue
        specs[str(key)] = value.strip() if isinstance(value, str) else value

    if _is_blank(specs.get("engine")):
        errors.append("Engine capacity (CC) is required")
        return None
    engine_cc = extract_digits(specs["engine"])
    if engine_cc is None or engine_cc <= 0:
        errors.append("Engine capacity must be a positive number")
        return None
    specs["engine"] = engine_cc
    return specs


def _check_fields(data: Mapping[str, Any], errors: List[str]) -> Dict[str, Any]:
    """Validate and coerce whichever known fields are present in data."""
    cleaned: Dict[str, Any] = {}
    this_year = current_year()

    for name in ("brand", "model", "condition", "registration_number", "location"):
        if name in data and not _is_blank(data[name]):
            cleaned[name] = clean_text(data[name])

    if not _is_blank(data.get("year")):
        year = to_int(data["year"])
        if year is None or year < MIN_YEAR or year > this_year + 1:
            errors.append(f"Year must be between {MIN_YEAR} and {this_year + 1}")
        else:
            cleaned["year"] = year

    if not _is_blank(data.get("registration_year")):
        reg_year = to_int(data["registration_year"])
        if reg_year is None or reg_year < MIN_YEAR or reg_year > this_year:
            errors.append(f"Registration year must be between {MIN_YEAR} and {this_year}")
        else:
            cleaned["registration_year"] = reg_year

    if not _is_blank(data.get("price")):
        price = to_float(data["price"])
        if price is None or price <= 0:
            errors.append("Price must be a positive number")
        else:
            cleaned["price"] = price

    if not _is_blank(data.get("kilometers_driven")):
        km = to_int(data["kilometers_driven"])
        if km is None or km < 0 or km > SQLITE_MAX_INT:
            errors.append("Kilometers driven must be a non-negative number")
        else:
            cleaned["kilometers_driven"] = km

    if not _is_blank(data.get("contact_number")):
        phone = str(data["contact_number"]).strip()
        if not PHONE_RE.match(phone):
            errors.append("Invalid Nepali phone number format (e.g., +9779812345678 or 9812345678)")
        else:
            cleaned["contact_number"] = phone

    if not _is_blank(data.get("description")):
        description = str(data["description"]).strip()
        if len(description) < MIN_DESCRIPTION_LENGTH:
            errors.append(f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters long")
        else:
            cleaned["description"] = description

    if not _is_blank(data.get("specifications")):
        specs = parse_specifications(data["specifications"], errors)
        if specs is not None:
            cleaned["specifications"] = specs

    if not _is_blank(data.get("listing_status")):
        status = str(data["listing_status"]).strip().lower()
        if status not in LISTING_STATUSES:
            errors.append(f"Listing status must be one of: {', '.join(LISTING_STATUSES)}")
        else:
            cleaned["listing_status"] = status

    return cleaned


def validate_listing(data: Mapping[str, Any], image_count: int) -> ListingInput:
    """Validate a new listing; raises ListingValidationError with every problem found."""
    errors: List[str] = []

    for name, label in REQUIRED_FIELDS.items():
        if _is_blank(data.get(name)):
            errors.append(f"{label} is required")

    if _is_blank(data.get("specifications")):
        errors.append("Specifications are required")

    cleaned = _check_fields(data, errors)

    if image_count < 1:
        errors.append("At least one image is required")

    if errors:
        raise ListingValidationError(errors)

    cleaned.pop("listing_status", None)
    return ListingInput(**cleaned)


def validate_listing_update(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate a partial update; only the supplied fields are checked."""
    errors: List[str] = []

    unknown = sorted(set(data) - set(UPDATABLE_FIELDS))
    if unknown:
        errors.append(f"Unknown field(s): {', '.join(unknown)}")

    for name, label in REQUIRED_FIELDS.items():
        if name in data and _is_blank(data[name]):
            errors.append(f"{label} cannot be empty")

    cleaned = _check_fields(data, errors)

    if errors:
        raise ListingValidationError(errors)
    if not cleaned:
        raise ListingValidationError(["No fields to update"])
    return cleaned

"""
Listing search query construction.

Raw query-string values are decoded into FilterCriteria, SortSpec and Page,
and QueryBuilder turns them into a fetch query and a count query that share a
single WHERE clause and a single list of bound values. Placeholders are SQLite
numbered parameters (?1, ?2, ...): the Nth appended value is always ?N.
"""
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple, Union

from .utils import SQLITE_MAX_INT

logger = logging.getLogger(__name__)

Number = Union[int, float]

FILTER_KEYS = ("brand", "model", "year", "condition", "priceRange", "engineCapacity")
CONTROL_KEYS = ("sortBy", "page", "limit")

_RANGE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*-\s*(\d+(?:\.\d+)?)\s*$")
_YEAR_RE = re.compile(r"^\d{1,4}$")

# Numbers and all-digit strings match; missing or other values yield NULL.
_ENGINE = "json_extract(l.specifications, '$.engine')"
ENGINE_CC_EXPR = (
    "CASE WHEN json_valid(l.specifications) THEN "
    "CASE json_type(l.specifications, '$.engine') "
    f"WHEN 'integer' THEN {_ENGINE} "
    f"WHEN 'real' THEN {_ENGINE} "
    f"WHEN 'text' THEN CASE WHEN {_ENGINE} GLOB '[0-9]*' AND {_ENGINE} NOT GLOB '*[^0-9]*' "
    f"THEN CAST({_ENGINE} AS INTEGER) END "
    "END "
    "END"
)

DEFAULT_SORT = "newest"
SORT_OPTIONS = {
    "price_asc": "l.price ASC",
    "price_desc": "l.price DESC",
    "year_desc": "l.year DESC",
    "year_asc": "l.year ASC",
    DEFAULT_SORT: "l.created_at DESC",
}


class QueryError(ValueError):
    """Search parameters that cannot be turned into a query."""


class InvalidRangeFormat(QueryError):
    """A "min-max" token did not parse into two ordered numbers."""


class InvalidFilterValue(QueryError):
    """A scalar filter value has the wrong type, e.g. a non-numeric year."""


class UnknownFilterKey(QueryError):
    """The request named a filter that does not exist."""


def _number(text: str) -> Number:
    return float(text) if "." in text else int(text)


def _clean(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    raw = str(raw).strip()
    return raw or None


def _positive_int(raw: Optional[str]) -> Optional[int]:
    raw = _clean(raw)
    if raw is None or not raw.isdigit():
        return None
    value = int(raw)
    return value if value > 0 else None


def _contains_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


@dataclass(frozen=True)
class NumericRange:
    """Inclusive [low, high] bounds."""
    low: Number
    high: Number

    @classmethod
    def parse(cls, name: str, token: str) -> "NumericRange":
        match = _RANGE_RE.match(token)
        if not match:
            raise InvalidRangeFormat(f"{name} must be formatted as 'min-max', got {token!r}")
        low, high = _number(match.group(1)), _number(match.group(2))
        if high > SQLITE_MAX_INT:
            raise InvalidRangeFormat(f"{name} maximum {high} is out of range")
        if low > high:
            raise InvalidRangeFormat(f"{name} minimum {low} is greater than maximum {high}")
        return cls(low, high)


@dataclass(frozen=True)
class FilterCriteria:
    """Optional listing search constraints; None means no constraint."""
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    condition: Optional[str] = None
    price_range: Optional[NumericRange] = None
    engine_capacity: Optional[NumericRange] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "FilterCriteria":
        """Decode filters from raw query-string values."""
        year = _clean(params.get("year"))
        if year is not None and not _YEAR_RE.match(year):
            raise InvalidFilterValue(f"year must be a number, got {year!r}")

        price_range = _clean(params.get("priceRange"))
        engine_capacity = _clean(params.get("engineCapacity"))

        return cls(
            brand=_clean(params.get("brand")),
            model=_clean(params.get("model")),
            year=int(year) if year is not None else None,
            condition=_clean(params.get("condition")),
            price_range=NumericRange.parse("priceRange", price_range) if price_range else None,
            engine_capacity=(
                NumericRange.parse("engineCapacity", engine_capacity) if engine_capacity else None
            ),
        )

    @property
    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (self.brand, self.model, self.year, self.condition,
                          self.price_range, self.engine_capacity)
        )


@dataclass(frozen=True)
class SortSpec:
    token: str = DEFAULT_SORT

    @classmethod
    def parse(cls, raw: Optional[str]) -> "SortSpec":
        raw = _clean(raw)
        if raw in SORT_OPTIONS:
            return cls(raw)
        if raw is not None:
            logger.debug(f"Unknown sort token {raw!r}, using default order")
        return cls()

    @property
    def order_clause(self) -> str:
        # l.id keeps pages stable when the primary key ties
        return f"ORDER BY {SORT_OPTIONS[self.token]}, l.id ASC"


@dataclass(frozen=True)
class Page:
    number: int = 1
    limit: int = 10

    @classmethod
    def parse(cls, page: Optional[str], limit: Optional[str],
              default_limit: int = 10, max_limit: int = 100) -> "Page":
        number = _positive_int(page) or 1
        size = min(_positive_int(limit) or default_limit, max_limit)
        # Past this page the offset no longer fits an SQLite integer
        last_page = SQLITE_MAX_INT // size + 1
        return cls(min(number, last_page), size)

    @property
    def offset(self) -> int:
        return (self.number - 1) * self.limit

    def total_pages(self, total: int) -> int:
        return math.ceil(total / self.limit) if total else 0


def parse_search_params(params: Mapping[str, Any], default_limit: int = 10,
                        max_limit: int = 100) -> Tuple[FilterCriteria, SortSpec, Page]:
    """Split raw query parameters into filters, sort order and page."""
    unknown = sorted(key for key in params.keys() if key not in FILTER_KEYS + CONTROL_KEYS)
    if unknown:
        raise UnknownFilterKey(f"Unknown filter parameter(s): {', '.join(unknown)}")
    criteria = FilterCriteria.from_params(params)
    sort = SortSpec.parse(params.get("sortBy"))
    page = Page.parse(params.get("page"), params.get("limit"), default_limit, max_limit)
    return criteria, sort, page


@dataclass(frozen=True)
class BuiltQuery:
    fetch_query: str
    count_query: str
    values: Tuple[Any, ...]
    fetch_params: Tuple[Any, ...]


class QueryBuilder:
    """
    Builds the paginated fetch query and the matching COUNT query.

    Both statements embed the same WHERE clause produced by one pass over the
    criteria, so the count query binds exactly `values` and the fetch query
    binds `values` followed by LIMIT and OFFSET.
    """

    def __init__(self, select_clause: str, from_clause: str):
        self.select_clause = select_clause
        self.from_clause = from_clause

    def where_clause(self, criteria: FilterCriteria) -> Tuple[str, List[Any]]:
        """Build WHERE clause and parameters from filters."""
        conditions = ["1=1"]
        values: List[Any] = []

        def bind(value: Any) -> str:
            values.append(value)
            return f"?{len(values)}"

        if criteria.brand is not None:
            conditions.append(
                f"LOWER(l.brand) LIKE LOWER({bind(_contains_pattern(criteria.brand))}) ESCAPE '\\'"
            )

        if criteria.model is not None:
            conditions.append(
                f"LOWER(l.model) LIKE LOWER({bind(_contains_pattern(criteria.model))}) ESCAPE '\\'"
            )

        if criteria.year is not None:
            conditions.append(f"l.year = {bind(criteria.year)}")

        if criteria.condition is not None:
            conditions.append(f"LOWER(l.condition) = LOWER({bind(criteria.condition)})")

        if criteria.price_range is not None:
            low = bind(criteria.price_range.low)
            high = bind(criteria.price_range.high)
            conditions.append(f"l.price BETWEEN {low} AND {high}")

        if criteria.engine_capacity is not None:
            low = bind(criteria.engine_capacity.low)
            high = bind(criteria.engine_capacity.high)
            conditions.append(f"({ENGINE_CC_EXPR}) BETWEEN {low} AND {high}")

        return "WHERE " + " AND ".join(conditions), values

    def build(self, criteria: FilterCriteria, sort: Optional[SortSpec] = None,
              page: Optional[Page] = None) -> BuiltQuery:
        sort = sort or SortSpec()
        page = page or Page()
        where, values = self.where_clause(criteria)
        n = len(values)

        fetch_query = (
            f"{self.select_clause} {self.from_clause} {where} {sort.order_clause} "
            f"LIMIT ?{n + 1} OFFSET ?{n + 2}"
        )
        count_query = f"SELECT COUNT(*) {self.from_clause} {where}"

        return BuiltQuery(
            fetch_query=fetch_query,
            count_query=count_query,
            values=tuple(values),
            fetch_params=tuple(values) + (page.limit, page.offset),
        )

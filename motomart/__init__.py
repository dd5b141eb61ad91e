"""
MotoMart - motorcycle marketplace API package
"""
from .database import Database
from .query import (
    BuiltQuery,
    FilterCriteria,
    InvalidFilterValue,
    InvalidRangeFormat,
    Page,
    QueryBuilder,
    QueryError,
    SortSpec,
    UnknownFilterKey,
    parse_search_params,
)

__version__ = "1.0.0"

__all__ = [
    "Database",
    "BuiltQuery",
    "FilterCriteria",
    "InvalidFilterValue",
    "InvalidRangeFormat",
    "Page",
    "QueryBuilder",
    "QueryError",
    "SortSpec",
    "UnknownFilterKey",
    "parse_search_params",
]

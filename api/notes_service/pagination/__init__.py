"""Pagination module for keyset (cursor) pagination."""

from .cursor import (
    Direction,
    KeyType,
    PaginationCursor,
    encode_cursor,
    decode_cursor,
    format_bool_key,
    format_time_key,
    parse_key,
)
from .keyset import (
    MIN_PAGE_SIZE,
    MAX_PAGE_SIZE,
    SortColumn,
    DEFAULT_SORT_COLUMN,
    ListFilter,
    NormalizedListFilter,
    KeysetPredicate,
    normalize_sort_column,
    clamp_page_size,
    normalize_filter,
    build_order_clause,
    build_keyset_predicate,
    build_where_clause,
    cursor_for_row,
    derive_next_page_token,
)

__all__ = [
    "Direction",
    "KeyType",
    "PaginationCursor",
    "encode_cursor",
    "decode_cursor",
    "format_bool_key",
    "format_time_key",
    "parse_key",
    "MIN_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "SortColumn",
    "DEFAULT_SORT_COLUMN",
    "ListFilter",
    "NormalizedListFilter",
    "KeysetPredicate",
    "normalize_sort_column",
    "clamp_page_size",
    "normalize_filter",
    "build_order_clause",
    "build_keyset_predicate",
    "build_where_clause",
    "cursor_for_row",
    "derive_next_page_token",
]

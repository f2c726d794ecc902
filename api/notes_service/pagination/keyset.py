"""Keyset pagination for note listings.

Rows are ordered by ``(sort column, id)`` with both terms in the same
direction, so the order is total even when the sort column has ties. A page
token records the last row's sort key and id; the next page is everything
strictly after that position.
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel, Field

from ..errors.problem_details import InvalidPageTokenError
from .cursor import (
    Direction,
    KeyType,
    PaginationCursor,
    decode_cursor,
    encode_cursor,
    format_bool_key,
    format_time_key,
    parse_key,
)


MIN_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


class SortColumn(str, Enum):
    """Columns a note listing may be sorted by."""

    UPDATED_AT = "updated_at"
    CREATED_AT = "created_at"
    TITLE = "title"
    IS_PINNED = "is_pinned"

    @property
    def key_type(self) -> KeyType:
        if self in (SortColumn.UPDATED_AT, SortColumn.CREATED_AT):
            return KeyType.TIME
        if self is SortColumn.IS_PINNED:
            return KeyType.BOOL
        return KeyType.STRING


DEFAULT_SORT_COLUMN = SortColumn.UPDATED_AT

# Postgres casts for cursor values bound as parameters
_KEY_CASTS = {
    KeyType.TIME: "timestamptz",
    KeyType.STRING: "text",
    KeyType.BOOL: "boolean",
}


class ListFilter(BaseModel):
    """Listing filter as supplied by the caller."""

    project_id: Optional[str] = Field(default=None, description="Restrict to one project")
    user_id: Optional[str] = Field(default=None, description="Restrict to one author")
    query: Optional[str] = Field(default=None, description="Full-text query over title and content")
    sort_by: str = Field(default="", description="Sort column name")
    sort_desc: Optional[bool] = Field(default=None, description="Descending unless explicitly false")
    page_size: int = Field(default=0, description="Requested page size")
    page_token: str = Field(default="", description="Token from a previous page")


class NormalizedListFilter(BaseModel):
    """Listing filter after defaults and clamping have been applied."""

    project_id: Optional[str] = None
    user_id: Optional[str] = None
    query: Optional[str] = None
    sort_by: SortColumn = DEFAULT_SORT_COLUMN
    descending: bool = True
    page_size: int = MIN_PAGE_SIZE
    page_token: str = ""

    @property
    def direction(self) -> Direction:
        return Direction.DESC if self.descending else Direction.ASC


class KeysetPredicate(BaseModel):
    """ORDER BY clause plus the optional "rows after the cursor" condition."""

    order_by: str
    condition: Optional[str] = None
    params: List[Any] = Field(default_factory=list)
    column: SortColumn
    operator: str
    cursor_key: Any = None
    cursor_id: Optional[str] = None


def normalize_sort_column(sort_by: Optional[str]) -> SortColumn:
    """Map a caller-supplied column name onto the whitelist.

    Unknown or blank names fall back to ``updated_at``.
    """
    name = (sort_by or "").strip().lower()
    try:
        return SortColumn(name)
    except ValueError:
        return DEFAULT_SORT_COLUMN


def clamp_page_size(page_size: int) -> int:
    return max(MIN_PAGE_SIZE, min(MAX_PAGE_SIZE, page_size))


def normalize_filter(raw: ListFilter) -> NormalizedListFilter:
    """Apply sort column whitelisting, page size clamping and direction default.

    Args:
        raw: Filter as received from the caller

    Returns:
        Normalized filter
    """
    return NormalizedListFilter(
        project_id=raw.project_id,
        user_id=raw.user_id,
        query=raw.query,
        sort_by=normalize_sort_column(raw.sort_by),
        descending=raw.sort_desc is not False,
        page_size=clamp_page_size(raw.page_size),
        page_token=raw.page_token,
    )


def build_order_clause(filter: NormalizedListFilter, alias: str = "n") -> str:
    """Build the ORDER BY clause for a listing.

    Args:
        filter: Normalized listing filter
        alias: Table alias of the notes table

    Returns:
        ORDER BY clause string
    """
    direction = filter.direction.value
    return f"ORDER BY {alias}.{filter.sort_by.value} {direction}, {alias}.id {direction}"


def build_keyset_predicate(
    filter: NormalizedListFilter,
    first_param: int = 1,
    alias: str = "n"
) -> KeysetPredicate:
    """Build ordering and cursor comparison for a listing.

    For descending order the condition is
    ``col < key OR (col = key AND id < cursor_id)``; ascending order uses ``>``.

    Args:
        filter: Normalized listing filter
        first_param: Number of the first positional parameter to use
        alias: Table alias of the notes table

    Returns:
        The ordering, the condition (None on the first page) and its parameters

    Raises:
        InvalidPageTokenError: If the page token is malformed or was issued for
            a different ordering
    """
    column = filter.sort_by
    operator = "<" if filter.descending else ">"
    predicate = KeysetPredicate(
        order_by=build_order_clause(filter, alias),
        column=column,
        operator=operator,
    )

    cursor = decode_cursor(filter.page_token)
    if cursor.is_empty:
        return predicate

    if cursor.sort_by != column.value or cursor.direction != filter.direction.value:
        raise InvalidPageTokenError("Page token was issued for a different sort order")
    if cursor.key_type != column.key_type.value:
        raise InvalidPageTokenError(f"Page token key type does not match sort column '{column.value}'")

    key = parse_key(cursor.key, cursor.key_type)
    key_param = f"${first_param}::{_KEY_CASTS[column.key_type]}"
    id_param = f"${first_param + 1}"
    col = f"{alias}.{column.value}"

    predicate.condition = (
        f"({col} {operator} {key_param} OR ({col} = {key_param} AND {alias}.id {operator} {id_param}))"
    )
    predicate.params = [key, cursor.id]
    predicate.cursor_key = key
    predicate.cursor_id = cursor.id
    return predicate


def build_where_clause(
    filter: NormalizedListFilter,
    alias: str = "n"
) -> tuple[str, List[Any], KeysetPredicate]:
    """Build the WHERE clause for a listing.

    Args:
        filter: Normalized listing filter
        alias: Table alias of the notes table

    Returns:
        Tuple of (where_clause, parameters, keyset_predicate). The where clause
        is empty when nothing restricts the listing.
    """
    conditions = []
    params: List[Any] = []

    if filter.project_id is not None:
        params.append(filter.project_id)
        conditions.append(f"{alias}.project_id = ${len(params)}")

    if filter.user_id is not None:
        params.append(filter.user_id)
        conditions.append(f"{alias}.author_id = ${len(params)}")

    if filter.query:
        params.append(filter.query)
        conditions.append(
            f"to_tsvector('english', coalesce({alias}.title,'') || ' ' || coalesce({alias}.content,'')) "
            f"@@ plainto_tsquery('english', ${len(params)})"
        )

    predicate = build_keyset_predicate(filter, first_param=len(params) + 1, alias=alias)
    if predicate.condition:
        conditions.append(predicate.condition)
        params.extend(predicate.params)

    where_clause = " AND ".join(conditions)
    return where_clause, params, predicate


def cursor_for_row(row: Any, filter: NormalizedListFilter) -> PaginationCursor:
    """Build the cursor positioned at ``row``.

    Args:
        row: A note (any object with ``id`` and the sort column as attributes)
        filter: Normalized listing filter

    Returns:
        Cursor for the row
    """
    column = filter.sort_by
    value = getattr(row, column.value)

    if column.key_type is KeyType.TIME:
        if not isinstance(value, datetime):
            raise TypeError(f"{column.value} must be a datetime, got {type(value).__name__}")
        key = format_time_key(value)
    elif column.key_type is KeyType.BOOL:
        key = format_bool_key(bool(value))
    else:
        key = value

    return PaginationCursor(
        key=key,
        key_type=column.key_type.value,
        id=str(row.id),
        sort_by=column.value,
        direction=filter.direction.value,
    )


def derive_next_page_token(rows: Sequence[Any], filter: NormalizedListFilter) -> str:
    """Return the token for the page after ``rows``.

    A full page is taken to mean more rows may follow, so a token is produced
    only when ``len(rows) == page_size``. At the true end of the data this
    can yield a token whose page is empty.

    Args:
        rows: Rows returned for the current page, in listing order
        filter: Normalized listing filter

    Returns:
        Next page token, or an empty string when there is no next page
    """
    if not rows or len(rows) != filter.page_size:
        return ""
    return encode_cursor(cursor_for_row(rows[-1], filter))

"""Page token codec for keyset pagination of notes."""

import base64
import binascii
import json
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors.problem_details import InvalidPageTokenError


TIME_KEY_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


class KeyType(str, Enum):
    """How the string-encoded cursor key is to be interpreted."""

    TIME = "time"
    STRING = "string"
    BOOL = "bool"


class Direction(str, Enum):
    """Sort direction recorded in a cursor."""

    ASC = "ASC"
    DESC = "DESC"


class PaginationCursor(BaseModel):
    """Position of the last row returned on a page.

    Field order matters: it is the key order of the JSON wire format.
    """

    key: str = Field(default="", description="Sort key value of the last row, string-encoded")
    key_type: str = Field(default="", description="One of time, string, bool")
    id: str = Field(default="", description="Tie-break row identifier")
    sort_by: str = Field(default="", description="Sort column the cursor was issued for")
    direction: str = Field(default="", description="ASC or DESC")

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def is_empty(self) -> bool:
        """True for the cursor of the first page."""
        return not (self.key or self.key_type or self.id or self.sort_by or self.direction)

    def is_complete(self) -> bool:
        return bool(self.key and self.key_type and self.id and self.sort_by and self.direction)


def format_time_key(value: datetime) -> str:
    """Render a timestamp as a UTC cursor key with microsecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIME_KEY_FORMAT)


def format_bool_key(value: bool) -> str:
    return "true" if value else "false"


def parse_key(key: str, key_type: Union[KeyType, str]) -> Any:
    """Interpret a string-encoded cursor key according to its key type.

    Args:
        key: The encoded key
        key_type: The key type tag recorded alongside it

    Returns:
        A datetime, str or bool

    Raises:
        ValueError: If the key does not parse under the key type
    """
    key_type = KeyType(key_type)
    if key_type is KeyType.TIME:
        return datetime.strptime(key, TIME_KEY_FORMAT).replace(tzinfo=timezone.utc)
    if key_type is KeyType.BOOL:
        if key == "true":
            return True
        if key == "false":
            return False
        raise ValueError(f"invalid bool key: {key!r}")
    return key


def encode_cursor(cursor: PaginationCursor) -> str:
    """Encode a cursor as an opaque page token.

    The token is the URL-safe, unpadded base64 of the cursor's compact JSON
    form. Encoding is deterministic and does not validate the cursor.

    Args:
        cursor: Cursor to encode

    Returns:
        Page token string
    """
    cursor_json = cursor.model_dump_json()
    encoded = base64.urlsafe_b64encode(cursor_json.encode("utf-8"))
    return encoded.rstrip(b"=").decode("ascii")


def decode_cursor(token: str) -> PaginationCursor:
    """Decode a page token.

    An empty token decodes to an empty cursor, meaning the first page.

    Args:
        token: Page token from a previous list response

    Returns:
        Decoded cursor

    Raises:
        InvalidPageTokenError: If the token is malformed or incomplete
    """
    if not token:
        return PaginationCursor()

    # Only the unpadded URL-safe alphabet that encode_cursor emits
    if not TOKEN_PATTERN.fullmatch(token) or len(token) % 4 == 1:
        raise InvalidPageTokenError("Invalid page token: not unpadded base64url")

    try:
        raw = base64.urlsafe_b64decode(token + "=" * (-len(token) % 4))
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeError, binascii.Error, ValueError) as e:
        raise InvalidPageTokenError(f"Invalid page token: {e}")

    if not isinstance(payload, dict):
        raise InvalidPageTokenError("Invalid page token: expected an object")

    try:
        cursor = PaginationCursor.model_validate(payload)
    except ValidationError as e:
        raise InvalidPageTokenError(f"Invalid page token: {e.error_count()} invalid fields")

    if not cursor.is_complete():
        raise InvalidPageTokenError("Invalid page token: missing cursor fields")

    if cursor.direction not in (Direction.ASC.value, Direction.DESC.value):
        raise InvalidPageTokenError(f"Invalid page token: unknown direction {cursor.direction!r}")

    try:
        parse_key(cursor.key, cursor.key_type)
    except ValueError as e:
        raise InvalidPageTokenError(f"Invalid page token: {e}")

    return cursor

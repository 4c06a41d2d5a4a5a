"""Conversion between fixed-width field text and Python values.

Every xBase field is stored as text of exactly the declared width. This
module turns such slices into Python values and back, and decides when a
slice holds the type's NULL sentinel. It knows nothing about files or
records; the table hands it byte slices and writes back what it returns.

NULL is not a separate bit on disk. Each type has a fill character that,
repeated across the field, means "no value":

    N, F    '*'
    D       '0'
    L       '?'
    other   ' '
"""

from __future__ import annotations

import re
from typing import Callable

from dbf_tables.hooks import DEFAULT_HOOKS
from dbf_tables.types import MAX_FIELD_WIDTH, NUMERIC_TAGS, DbfDate, NativeType

_NULL_CHARACTERS = {
    NativeType.NUMBER.value: b"*",
    NativeType.FLOAT.value: b"*",
    NativeType.DATE.value: b"0",
    NativeType.LOGICAL.value: b"?",
}

_INTEGER_PREFIX = re.compile(r"\s*([+-]?\d+)")
_DATE_PATTERN = re.compile(r"(\d{4})(\d{2})(\d{2})")

_TRUE_CHARS = frozenset("TtYy")
_FALSE_CHARS = frozenset("FfNn")

# Widest text the number formatter produces
_MAX_FORMAT_WIDTH = MAX_FIELD_WIDTH - 1


def null_character(native_type: str) -> bytes:
    """Return the single fill byte that marks a NULL value for a type."""
    return _NULL_CHARACTERS.get(native_type, b" ")


def field_text(raw: bytes, encoding: str = "latin-1") -> str:
    """Decode a field slice, stopping at the first NUL byte."""
    return raw.split(b"\x00", 1)[0].decode(encoding, "replace")


def is_value_null(native_type: str, value: str | None, width: int) -> bool:
    """Return whether a field value is the NULL sentinel for its type.

    Number fields accept a leading asterisk or all blanks, dates accept the
    many spellings found in the wild ("", "0", " ", "00000000", or zeros
    across the whole width), logicals use '?', and text is NULL only when
    empty.
    """
    if value is None:
        return True

    if native_type in NUMERIC_TAGS:
        if value.startswith("*"):
            return True
        return all(c == " " for c in value)

    if native_type == NativeType.DATE.value:
        if value in ("", " ", "0") or value.startswith("00000000"):
            return True
        return value[:width] == "0" * width

    if native_type == NativeType.LOGICAL.value:
        return value.startswith("?")

    return len(value) == 0


def atoi(text: str) -> int:
    """Parse the leading integer of text, ignoring what follows; 0 if there is none."""
    match = _INTEGER_PREFIX.match(text)
    if match is None:
        return 0
    return int(match.group(1))


def decode_integer(text: str) -> int:
    return atoi(text)


def decode_double(text: str, atof: Callable[[str], float] = DEFAULT_HOOKS.atof) -> float:
    return atof(text)


def decode_string(text: str) -> str:
    """Return the field text without leading or trailing blanks."""
    return text.strip(" ")


def decode_logical(text: str) -> bool | None:
    """Return True, False, or None for '?', blank and anything unrecognized."""
    first = text.strip(" ")[:1]
    if first in _TRUE_CHARS:
        return True
    if first in _FALSE_CHARS:
        return False
    return None


def decode_date(text: str) -> DbfDate:
    """Parse YYYYMMDD; anything else is the zero date."""
    match = _DATE_PATTERN.match(text.strip(" "))
    if match is None:
        return DbfDate.ZERO
    year, month, day = (int(part) for part in match.groups())
    return DbfDate(year, month, day)


def format_date(year: int, month: int, day: int) -> str | None:
    """Render a date as YYYYMMDD, or None if a part has too many digits.

    Only the digit ranges are checked; 20240231 is accepted.
    """
    if not 0 <= year <= 9999:
        return None
    if not 0 <= month <= 99:
        return None
    if not 0 <= day <= 99:
        return None
    return f"{year:04d}{month:02d}{day:02d}"


def encode_number(value: int | float, width: int, decimals: int) -> tuple[bytes, bool]:
    """Format a number right-aligned in a field.

    Returns the text to store and whether it fit. A formatted number wider
    than the field is cut to the field width and ok is False.
    """
    format_width = min(width, _MAX_FORMAT_WIDTH)
    if isinstance(value, int) and not isinstance(value, bool) and decimals == 0:
        text = f"{value:{format_width}d}"
    else:
        value = float(value)
        text = f"{value:{format_width}.{decimals}f}"

    if len(text) > width:
        return text[:width].encode("ascii"), False
    return text.encode("ascii"), True


def encode_text(value: str, width: int, encoding: str = "latin-1") -> tuple[bytes, bool]:
    """Left-justify text in a field; ok is False if it had to be cut."""
    data = value.encode(encoding, "replace")
    if len(data) > width:
        return data[:width], False
    return data.ljust(width, b" "), True


def encode_logical(value: bool | str) -> bytes | None:
    """Return b'T' or b'F', or None if value is not an accepted logical."""
    if isinstance(value, bool):
        return b"T" if value else b"F"
    if isinstance(value, str) and value[:1] in ("T", "F"):
        return value[:1].encode("ascii")
    return None


def encode_null(native_type: str, width: int) -> bytes:
    """Return the NULL sentinel for a field of the given type and width."""
    return null_character(native_type) * width


def encode_direct(value: bytes, width: int) -> bytes:
    """Pad or cut bytes to the field width without any formatting."""
    if len(value) > width:
        return value[:width]
    return value.ljust(width, b" ")

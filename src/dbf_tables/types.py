"""Field and value types for the dbf_tables library."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, NamedTuple

# Fixed 32-byte file header that precedes the field descriptors
HEADER_SIZE = 32

# Each field descriptor in the header is 32 bytes
FIELD_DESCRIPTOR_SIZE = 32

# Byte closing the field descriptor table
HEADER_TERMINATOR = 0x0D

# Optional byte written after the last record
END_OF_FILE_MARKER = 0x1A

# Format limits
MAX_FIELD_WIDTH = 254
MAX_HEADER_LENGTH = 65535
MAX_RECORD_LENGTH = 65535

# Names are written as at most 10 bytes, but read back from the full 11-byte slot
FIELD_NAME_WRITE_LENGTH = 10
FIELD_NAME_READ_LENGTH = 11

# First byte of every record
DELETED_FLAG = b"*"
ACTIVE_FLAG = b" "


class NativeType(str, Enum):
    """On-disk type tags for xBase fields."""

    CHARACTER = "C"
    NUMBER = "N"
    FLOAT = "F"
    LOGICAL = "L"
    DATE = "D"


# Tags whose descriptor carries a decimal count
NUMERIC_TAGS = frozenset({NativeType.NUMBER.value, NativeType.FLOAT.value})


class FieldType(Enum):
    """Caller-facing classification of a field."""

    STRING = "string"
    INTEGER = "integer"
    DOUBLE = "double"
    LOGICAL = "logical"
    DATE = "date"

    @property
    def native_tag(self) -> str:
        """Return the tag used when a field of this kind is created."""
        tags = {
            FieldType.LOGICAL: NativeType.LOGICAL.value,
            FieldType.DATE: NativeType.DATE.value,
            FieldType.STRING: NativeType.CHARACTER.value,
        }
        return tags.get(self, NativeType.NUMBER.value)


def classify(native_type: str, width: int, decimals: int) -> FieldType:
    """Map a native tag and its geometry to a FieldType."""
    if native_type == NativeType.LOGICAL.value:
        return FieldType.LOGICAL
    if native_type == NativeType.DATE.value:
        return FieldType.DATE
    if native_type in NUMERIC_TAGS:
        if decimals > 0 or width >= 10:
            return FieldType.DOUBLE
        return FieldType.INTEGER
    return FieldType.STRING


def native_tag(field_type: FieldType | NativeType | str) -> str:
    """Normalize any accepted type designator to a one-character native tag."""
    if isinstance(field_type, FieldType):
        return field_type.native_tag
    if isinstance(field_type, NativeType):
        return field_type.value
    if isinstance(field_type, str) and len(field_type) == 1:
        return field_type.upper()
    raise TypeError(f"Unsupported field type designator: {field_type!r}")


@dataclass(frozen=True)
class DbfDate:
    """A (year, month, day) triple as stored in a date field.

    The zero date (0, 0, 0) stands for an empty or unparseable value, so this
    is not a datetime.date.
    """

    year: int
    month: int
    day: int

    ZERO: ClassVar[DbfDate]

    @classmethod
    def from_date(cls, value: datetime.date) -> DbfDate:
        return cls(value.year, value.month, value.day)

    def as_date(self) -> datetime.date | None:
        """Return a datetime.date, or None if the triple is not a real date."""
        try:
            return datetime.date(self.year, self.month, self.day)
        except ValueError:
            return None

    def __bool__(self) -> bool:
        return self != DbfDate.ZERO


DbfDate.ZERO = DbfDate(0, 0, 0)


class FieldInfo(NamedTuple):
    """Summary of a field as returned by DbfTable.field_info()."""

    field_type: FieldType
    name: str
    width: int
    decimals: int


@dataclass(frozen=True)
class FieldDescriptor:
    """Metadata for one column.

    Attributes:
        name: Field name, at most 10 bytes when written.
        native_type: One-character type tag (C, N, F, L, D, or anything else
            found in an existing file).
        width: Field width in bytes, 1 to 254.
        decimals: Decimal places; always 0 for non-numeric tags.
        offset: Byte offset of the field inside a record. Byte 0 holds the
            deletion flag, so the first field starts at 1.
        raw: The 32-byte descriptor as read from disk, if any. Kept so that
            reserved descriptor bytes survive a header rewrite.
    """

    name: str
    native_type: str
    width: int
    decimals: int = 0
    offset: int = 1
    raw: bytes = field(default=b"", repr=False, compare=False)

    @property
    def field_type(self) -> FieldType:
        return classify(self.native_type, self.width, self.decimals)

    @property
    def end(self) -> int:
        """Offset of the first byte after this field."""
        return self.offset + self.width

    @property
    def is_numeric(self) -> bool:
        return self.native_type in NUMERIC_TAGS

    def info(self) -> FieldInfo:
        return FieldInfo(self.field_type, self.name, self.width, self.decimals)

    def pack(self) -> bytes:
        """Return the 32-byte on-disk descriptor."""
        if self.raw:
            return self.raw

        entry = bytearray(FIELD_DESCRIPTOR_SIZE)
        name = self.name.encode("latin-1", "replace")[:FIELD_NAME_WRITE_LENGTH]
        entry[: len(name)] = name
        entry[11] = ord(self.native_type)
        if self.native_type == NativeType.CHARACTER.value:
            entry[16] = self.width % 256
            entry[17] = self.width // 256
        else:
            entry[16] = self.width
            entry[17] = self.decimals
        return bytes(entry)

    @classmethod
    def unpack(cls, entry: bytes, offset: int) -> FieldDescriptor:
        """Parse one 32-byte descriptor located at the given record offset."""
        name_bytes = entry[:FIELD_NAME_READ_LENGTH].split(b"\x00", 1)[0]
        native_type = chr(entry[11])
        width = entry[16]
        decimals = entry[17] if native_type in NUMERIC_TAGS else 0
        return cls(
            name=name_bytes.decode("latin-1").rstrip(" "),
            native_type=native_type,
            width=width,
            decimals=decimals,
            offset=offset,
            raw=bytes(entry),
        )

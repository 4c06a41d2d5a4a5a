"""DBF Tables - Record-at-a-time access to xBase (.dbf) attribute tables."""

from dbf_tables.dump import describe_fields, describe_table
from dbf_tables.errors import (
    CorruptHeader,
    DbfError,
    InvalidArgument,
    IoFailure,
    ResourceLimitExceeded,
    SchemaOverflow,
    UnsupportedAccessMode,
)
from dbf_tables.hooks import FileHooks
from dbf_tables.parsing import FieldParser, FieldSpec
from dbf_tables.table import DbfTable
from dbf_tables.types import (
    DbfDate,
    FieldDescriptor,
    FieldInfo,
    FieldType,
    NativeType,
)

__all__ = [
    # Main API
    "DbfTable",
    "FileHooks",
    "FieldParser",
    "FieldSpec",
    "describe_fields",
    "describe_table",
    # Field types
    "DbfDate",
    "FieldDescriptor",
    "FieldInfo",
    "FieldType",
    "NativeType",
    # Errors
    "DbfError",
    "UnsupportedAccessMode",
    "CorruptHeader",
    "SchemaOverflow",
    "ResourceLimitExceeded",
    "IoFailure",
    "InvalidArgument",
]

__version__ = "0.1.0"

"""Exception hierarchy for dbf_tables."""


class DbfError(Exception):
    """Base class for all dbf_tables exceptions."""


class UnsupportedAccessMode(DbfError, ValueError):
    """Raised when a table is opened with a mode other than read or read/write."""


class CorruptHeader(DbfError):
    """Raised when the file header or field table is truncated or invalid."""


class SchemaOverflow(CorruptHeader):
    """Raised when the declared fields span more bytes than a record holds."""


class ResourceLimitExceeded(DbfError):
    """Raised when a header or record would exceed the format's size limits."""


class IoFailure(DbfError, OSError):
    """Raised when a seek, read or write against the table file fails."""


class InvalidArgument(DbfError, ValueError):
    """Raised for out-of-range indices, bad permutations and bad widths."""

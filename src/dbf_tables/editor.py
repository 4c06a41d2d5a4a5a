"""In-place schema changes for an open table.

Each operation updates the field catalog first and then rewrites every
record on disk. The pass direction is chosen so that a record is always
read before anything is written over it:

    add, widen          last record to first (records move towards the end)
    delete, narrow      first record to last (records move towards the start)
    reorder             in place (record length is unchanged)

A file that has never had its header written holds no records, so only the
catalog changes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

from dbf_tables import codec
from dbf_tables.errors import InvalidArgument, IoFailure, ResourceLimitExceeded
from dbf_tables.types import (
    END_OF_FILE_MARKER,
    FIELD_DESCRIPTOR_SIZE,
    FIELD_NAME_WRITE_LENGTH,
    MAX_FIELD_WIDTH,
    MAX_HEADER_LENGTH,
    MAX_RECORD_LENGTH,
    NUMERIC_TAGS,
    FieldDescriptor,
    FieldType,
    NativeType,
    native_tag,
)

if TYPE_CHECKING:
    from dbf_tables.table import DbfTable

logger = logging.getLogger(__name__)

# Types whose values are right-aligned; narrowing keeps their rightmost bytes
_RIGHT_ALIGNED_TAGS = frozenset({"N", "F", "D"})


def _stored_name(name: str) -> str:
    """Return name cut to what a field descriptor can hold."""
    return name.encode("latin-1", "replace")[:FIELD_NAME_WRITE_LENGTH].decode("latin-1")


class SchemaEditor:
    """Adds, deletes, reorders and alters the fields of a table."""

    def __init__(self, table: DbfTable) -> None:
        self._table = table

    def _report(self, error_class: type[Exception], message: str) -> Exception:
        self._table.hooks.error(message)
        return error_class(message)

    def _read_at(self, offset: int, length: int) -> bytes:
        fp = self._table.fp
        try:
            fp.seek(offset)
            data = fp.read(length)
        except OSError as exc:
            raise self._report(IoFailure, f"Failure reading DBF record at offset {offset}.") from exc
        if len(data) != length:
            raise self._report(IoFailure, f"Failure reading DBF record at offset {offset}.")
        return data

    def _write_at(self, offset: int, data: bytes) -> None:
        fp = self._table.fp
        try:
            fp.seek(offset)
            fp.write(data)
        except OSError as exc:
            raise self._report(IoFailure, f"Failure writing DBF record at offset {offset}.") from exc

    def _records_end(self) -> int:
        catalog = self._table.catalog
        return catalog.header_length + self._table.record_count * catalog.record_length

    def _write_end_marker(self) -> None:
        if self._table.write_end_of_file_char:
            self._write_at(self._records_end(), bytes([END_OF_FILE_MARKER]))

    def _truncate(self) -> None:
        end = self._records_end()
        if self._table.write_end_of_file_char:
            end += 1
        try:
            self._table.fp.truncate(end)
        except OSError as exc:
            raise self._report(IoFailure, f"Failure truncating DBF file to {end} bytes.") from exc

    def _rewrite_header(self) -> None:
        table = self._table
        table.no_header = True
        table.flush()

    def _finish(self) -> None:
        self._table.cache.invalidate()
        self._table.updated = True

    def _check_width(self, name: str, width: int) -> None:
        if width < 1:
            raise InvalidArgument(f"Field {name} must be at least 1 byte wide, got {width}")
        if width > MAX_FIELD_WIDTH:
            raise self._report(
                ResourceLimitExceeded,
                f"Cannot add field {name}. Width {width} exceeds the {MAX_FIELD_WIDTH} byte limit.",
            )

    def _check_index(self, index: int) -> None:
        if not self._table.catalog.is_valid_index(index):
            raise InvalidArgument(
                f"Field index {index} out of range (table has {len(self._table.catalog)} fields)"
            )

    def add_field(
        self,
        name: str,
        field_type: FieldType | NativeType | str,
        width: int,
        decimals: int = 0,
    ) -> int:
        table = self._table
        catalog = table.catalog
        tag = native_tag(field_type)

        table.cache.flush()

        if catalog.header_length + FIELD_DESCRIPTOR_SIZE > MAX_HEADER_LENGTH:
            raise self._report(
                ResourceLimitExceeded,
                f"Cannot add field {name}. Header length limit reached "
                f"(max {MAX_HEADER_LENGTH} bytes, 2046 fields).",
            )
        self._check_width(name, width)
        if catalog.record_length + width > MAX_RECORD_LENGTH:
            raise self._report(
                ResourceLimitExceeded,
                f"Cannot add field {name}. Record length limit reached "
                f"(max {MAX_RECORD_LENGTH} bytes).",
            )
        if tag not in NUMERIC_TAGS:
            decimals = 0
        name = _stored_name(name)

        old_header_length = catalog.header_length
        old_record_length = catalog.record_length
        index = catalog.append(FieldDescriptor(name, tag, width, decimals))
        table.cache.resize(catalog.record_length)
        table.cache.invalidate()

        if table.no_header:
            return index

        logger.debug("Adding field %s to %d records of %s", name, table.record_count, table.path)
        fill = codec.encode_null(tag, width)
        for i in range(table.record_count - 1, -1, -1):
            record = self._read_at(old_header_length + i * old_record_length, old_record_length)
            self._write_at(catalog.header_length + i * catalog.record_length, record + fill)
        self._write_end_marker()

        self._rewrite_header()
        self._finish()
        return index

    def delete_field(self, index: int) -> None:
        self._check_index(index)
        table = self._table
        catalog = table.catalog

        table.cache.flush()

        old_header_length = catalog.header_length
        old_record_length = catalog.record_length
        removed = catalog.remove(index)
        table.cache.resize(catalog.record_length)
        table.cache.invalidate()

        if table.no_header:
            return

        # The shorter header is written first; it never reaches the first record.
        self._rewrite_header()

        logger.debug(
            "Deleting field %s from %d records of %s", removed.name, table.record_count, table.path
        )
        for i in range(table.record_count):
            record = self._read_at(old_header_length + i * old_record_length, old_record_length)
            self._write_at(
                catalog.header_length + i * catalog.record_length,
                record[: removed.offset] + record[removed.end :],
            )
        self._write_end_marker()
        self._truncate()
        self._finish()

    def reorder_fields(self, permutation: Sequence[int]) -> None:
        table = self._table
        catalog = table.catalog
        if len(catalog) == 0:
            return

        table.cache.flush()
        previous = catalog.permute(permutation)
        table.cache.invalidate()

        if table.no_header:
            return

        self._rewrite_header()

        logger.debug("Reordering fields of %d records of %s", table.record_count, table.path)
        for i in range(table.record_count):
            offset = catalog.header_length + i * catalog.record_length
            record = self._read_at(offset, catalog.record_length)
            reordered = bytearray(record)
            for desc, old_index in zip(catalog, permutation):
                old = previous[old_index]
                reordered[desc.offset : desc.end] = record[old.offset : old.end]
            self._write_at(offset, bytes(reordered))
        self._finish()

    def alter_field(
        self,
        index: int,
        name: str,
        field_type: FieldType | NativeType | str,
        width: int,
        decimals: int = 0,
    ) -> None:
        self._check_index(index)
        table = self._table
        catalog = table.catalog
        tag = native_tag(field_type)

        table.cache.flush()

        self._check_width(name, width)
        old = catalog[index]
        if catalog.record_length + width - old.width > MAX_RECORD_LENGTH:
            raise self._report(
                ResourceLimitExceeded,
                f"Cannot alter field {old.name}. Record length limit reached "
                f"(max {MAX_RECORD_LENGTH} bytes).",
            )
        if tag not in NUMERIC_TAGS:
            decimals = 0
        name = _stored_name(name)

        old_record_length = catalog.record_length
        catalog.replace(index, FieldDescriptor(name, tag, width, decimals))
        table.cache.resize(catalog.record_length)
        table.cache.invalidate()

        if table.no_header:
            return

        self._rewrite_header()

        header_length = catalog.header_length
        new_record_length = catalog.record_length
        fill = codec.encode_null(tag, width)

        if width < old.width or (width == old.width and tag != old.native_type):
            logger.debug("Narrowing field %s in %d records", old.name, table.record_count)
            for i in range(table.record_count):
                record = self._read_at(header_length + i * old_record_length, old_record_length)
                value = self._narrowed(record[old.offset : old.end], old, width, fill)
                self._write_at(
                    header_length + i * new_record_length,
                    record[: old.offset] + value + record[old.end :],
                )
            self._write_end_marker()
            self._truncate()
        elif width > old.width:
            logger.debug("Widening field %s in %d records", old.name, table.record_count)
            for i in range(table.record_count - 1, -1, -1):
                record = self._read_at(header_length + i * old_record_length, old_record_length)
                value = self._widened(record[old.offset : old.end], old, width, fill)
                self._write_at(
                    header_length + i * new_record_length,
                    record[: old.offset] + value + record[old.end :],
                )
            self._write_end_marker()

        self._finish()

    @staticmethod
    def _was_null(value: bytes, old: FieldDescriptor) -> bool:
        return codec.is_value_null(old.native_type, codec.field_text(value), old.width)

    def _narrowed(self, value: bytes, old: FieldDescriptor, width: int, fill: bytes) -> bytes:
        if self._was_null(value, old):
            return fill
        if width == old.width:
            return value
        if old.native_type in _RIGHT_ALIGNED_TAGS and value[:1] == b" ":
            return value[old.width - width :]
        return value[:width]

    def _widened(self, value: bytes, old: FieldDescriptor, width: int, fill: bytes) -> bytes:
        if self._was_null(value, old):
            return fill
        padding = b" " * (width - old.width)
        if old.is_numeric:
            return padding + value
        return value + padding

"""Single-record buffer that mediates all record I/O for a table."""

from __future__ import annotations

from typing import TYPE_CHECKING

from dbf_tables.errors import IoFailure
from dbf_tables.types import END_OF_FILE_MARKER

if TYPE_CHECKING:
    from dbf_tables.table import DbfTable


class RecordCache:
    """Holds at most one record of a table in memory.

    Every attribute and tuple access goes through load() and flush(). A
    modified record stays in the buffer until another record is loaded, a
    new record is started, or the table flushes or closes.

    flush() skips the seek when the file position is already at the
    record's offset and nothing has been read since the last write. Any
    load() re-arms the seek.
    """

    def __init__(self, table: DbfTable, record_length: int) -> None:
        self._table = table
        self.buffer = bytearray(record_length)
        self.index = -1
        self.modified = False
        self.require_seek = True

    def record_offset(self, index: int) -> int:
        """Byte offset of a record in the file."""
        catalog = self._table.catalog
        return catalog.header_length + index * catalog.record_length

    def _fail(self, message: str) -> IoFailure:
        self._table.hooks.error(message)
        return IoFailure(message)

    def resize(self, record_length: int) -> None:
        """Match the buffer to a new record length, keeping leading bytes."""
        if record_length > len(self.buffer):
            self.buffer.extend(b" " * (record_length - len(self.buffer)))
        else:
            del self.buffer[record_length:]

    def invalidate(self) -> None:
        """Forget the cached record without writing it."""
        self.index = -1
        self.modified = False

    def mark_modified(self) -> None:
        self.modified = True

    def load(self, index: int) -> None:
        """Make record index the cached record, flushing the previous one.

        Raises:
            IoFailure: If flushing, seeking or reading fails.
        """
        if self.index == index:
            return

        self.flush()

        table = self._table
        offset = self.record_offset(index)
        record_length = table.catalog.record_length
        try:
            table.fp.seek(offset)
        except OSError as exc:
            raise self._fail(f"seek({offset}) failed on DBF file.") from exc
        try:
            data = table.fp.read(record_length)
        except OSError as exc:
            raise self._fail(f"read({record_length}) failed on DBF file.") from exc
        if len(data) != record_length:
            raise self._fail(f"read({record_length}) failed on DBF file.")

        self.buffer[:] = data
        self.index = index
        self.require_seek = True

    def flush(self) -> None:
        """Write the cached record back if it was modified.

        On failure the record stays marked modified so that the caller can
        retry or give up.

        Raises:
            IoFailure: If seeking or writing fails.
        """
        if not self.modified or self.index < 0:
            return

        table = self._table
        fp = table.fp
        offset = self.record_offset(self.index)

        try:
            if self.require_seek or fp.tell() != offset:
                fp.seek(offset)
        except OSError as exc:
            raise self._fail(
                f"Failure seeking to position before writing DBF record {self.index}."
            ) from exc

        try:
            written = fp.write(self.buffer)
        except OSError as exc:
            raise self._fail(f"Failure writing DBF record {self.index}.") from exc
        if written is not None and written != len(self.buffer):
            raise self._fail(f"Failure writing DBF record {self.index}.")

        self.modified = False
        self.require_seek = False

        if self.index == table.record_count - 1 and table.write_end_of_file_char:
            try:
                fp.write(bytes([END_OF_FILE_MARKER]))
            except OSError as exc:
                raise self._fail(
                    f"Failure writing end-of-file marker after record {self.index}."
                ) from exc

    def start_new_record(self, index: int) -> None:
        """Flush the current record and begin a blank one at index."""
        self.flush()
        self.buffer[:] = b" " * len(self.buffer)
        self.index = index

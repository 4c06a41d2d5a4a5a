"""Table handle for xBase (.dbf) attribute files."""

from __future__ import annotations

import datetime
import logging
import struct
from pathlib import Path
from typing import IO, Any, Mapping, Sequence

from dbf_tables import codec
from dbf_tables.codepage import LDID_PREFIX, resolve_encoding, split_ldid
from dbf_tables.dump import describe_fields
from dbf_tables.editor import SchemaEditor
from dbf_tables.errors import CorruptHeader, InvalidArgument, IoFailure, UnsupportedAccessMode
from dbf_tables.hooks import DEFAULT_HOOKS, FileHooks
from dbf_tables.parsing import FieldParser
from dbf_tables.record_cache import RecordCache
from dbf_tables.schema import SchemaCatalog
from dbf_tables.types import (
    ACTIVE_FLAG,
    DELETED_FLAG,
    END_OF_FILE_MARKER,
    FIELD_DESCRIPTOR_SIZE,
    HEADER_SIZE,
    HEADER_TERMINATOR,
    DbfDate,
    FieldDescriptor,
    FieldInfo,
    FieldType,
    NativeType,
)

logger = logging.getLogger(__name__)

# Accepted open() modes and the binary mode each one maps to
_ACCESS_MODES = {
    "r": "rb",
    "rb": "rb",
    "r+": "rb+",
    "rb+": "rb+",
    "r+b": "rb+",
}

# Bytes of a .cpg sidecar that are inspected for the code page label
_CODE_PAGE_READ_LIMIT = 499


def base_name(path: str | Path) -> str:
    """Strip the extension from the last component of a path."""
    text = str(path)
    for i in range(len(text) - 1, 0, -1):
        if text[i] in "/\\":
            break
        if text[i] == ".":
            return text[:i]
    return text


class DbfTable:
    """An open .dbf file.

    Records are addressed by index and never held in memory beyond a single
    cached record, so memory use does not depend on table size. Reads with
    an out-of-range record or field index return a neutral value (0, 0.0,
    None); writes with a bad index return False. Writing to record_count
    appends a blank record first.

    A handle is not thread-safe or reentrant, and no file locking is done:
    callers must serialize access to a handle and must not open two
    writable handles on the same file.

    Use DbfTable.open() or DbfTable.create() rather than the constructor.
    """

    DEFAULT_CODE_PAGE = "LDID/87"

    # Last-modified date given to new files: (years since 1900, month, day)
    DEFAULT_DATE = (95, 7, 26)

    VERSION_BYTE = 0x03

    def __init__(
        self,
        fp: IO[bytes],
        catalog: SchemaCatalog,
        *,
        path: Path,
        hooks: FileHooks = DEFAULT_HOOKS,
        record_count: int = 0,
        code_page: str | None = None,
        language_driver: int = 0,
        encoding: str | None = None,
        read_only: bool = False,
        no_header: bool = False,
        last_modified: tuple[int, int, int] = DEFAULT_DATE,
    ) -> None:
        self.fp = fp
        self.catalog = catalog
        self.path = path
        self.hooks = hooks
        self.code_page = code_page
        self.language_driver = language_driver
        self.encoding = encoding or resolve_encoding(code_page)
        self.read_only = read_only
        self.write_end_of_file_char = True
        self.no_header = no_header
        self.updated = False
        self._record_count = record_count
        self._last_modified = last_modified
        self._closed = False
        self.cache = RecordCache(self, catalog.record_length)
        self._editor = SchemaEditor(self)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def open(
        cls,
        path: str | Path,
        mode: str = "rb",
        *,
        hooks: FileHooks | None = None,
        encoding: str | None = None,
    ) -> DbfTable:
        """Open an existing table.

        Args:
            path: Path to the table; any extension is replaced by .dbf (or
                .DBF if the lower-case name does not exist).
            mode: "r"/"rb" for read-only, "r+"/"rb+"/"r+b" for read-write.
            hooks: File access collaborator, defaults to the local file system.
            encoding: Python codec for text fields, overriding the code page.

        Raises:
            UnsupportedAccessMode: For any other mode.
            IoFailure: If the file cannot be opened.
            CorruptHeader: If the header or field table is invalid.
        """
        access = _ACCESS_MODES.get(mode)
        if access is None:
            raise UnsupportedAccessMode(f"Unsupported access mode {mode!r}; use 'rb' or 'rb+'")

        hooks = hooks or DEFAULT_HOOKS
        base = base_name(path)

        fp: IO[bytes] | None = None
        dbf_path = Path(base + ".dbf")
        open_error: OSError | None = None
        for extension in (".dbf", ".DBF"):
            try:
                fp = hooks.open(Path(base + extension), access)
            except OSError as exc:
                open_error = open_error or exc
                continue
            dbf_path = Path(base + extension)
            break
        if fp is None:
            message = f"Unable to open {dbf_path} or {base}.DBF"
            hooks.error(message)
            raise IoFailure(message) from open_error

        try:
            table = cls._read_table(fp, dbf_path, base, hooks, access, encoding)
        except BaseException:
            fp.close()
            raise
        logger.debug(
            "Opened %s (%d records, %d fields)", dbf_path, table.record_count, table.field_count
        )
        return table

    @classmethod
    def _read_table(
        cls,
        fp: IO[bytes],
        dbf_path: Path,
        base: str,
        hooks: FileHooks,
        access: str,
        encoding: str | None,
    ) -> DbfTable:
        header = fp.read(HEADER_SIZE)
        if len(header) != HEADER_SIZE:
            raise CorruptHeader(f"{dbf_path}: file header is truncated")

        record_count = header[4] | header[5] << 8 | header[6] << 16 | (header[7] & 0x7F) << 24
        header_length, record_length = struct.unpack_from("<HH", header, 8)
        language_driver = header[29]

        if record_length == 0 or header_length < HEADER_SIZE:
            raise CorruptHeader(
                f"{dbf_path}: invalid header (header length {header_length}, "
                f"record length {record_length})"
            )

        code_page = cls._read_code_page_file(hooks, base)
        if code_page is None and language_driver != 0:
            code_page = f"{LDID_PREFIX}{language_driver}"

        fp.seek(HEADER_SIZE)
        field_block = fp.read(header_length - HEADER_SIZE)
        if len(field_block) != header_length - HEADER_SIZE:
            raise CorruptHeader(f"{dbf_path}: field descriptor table is truncated")

        catalog = SchemaCatalog.from_header(header_length, record_length, field_block)

        return cls(
            fp,
            catalog,
            path=dbf_path,
            hooks=hooks,
            record_count=record_count,
            code_page=code_page,
            language_driver=language_driver,
            encoding=encoding,
            read_only=access == "rb",
            last_modified=(header[1], header[2], header[3]),
        )

    @staticmethod
    def _read_code_page_file(hooks: FileHooks, base: str) -> str | None:
        """Return the first line of the .cpg sidecar, if there is one."""
        for extension in (".cpg", ".CPG"):
            try:
                cpg = hooks.open(Path(base + extension), "rb")
            except OSError:
                continue
            with cpg:
                data = cpg.read(_CODE_PAGE_READ_LIMIT)
            label = data.decode("utf-8", "replace").split("\n", 1)[0].split("\r", 1)[0]
            return label or None
        return None

    @classmethod
    def create(
        cls,
        path: str | Path,
        code_page: str | None = DEFAULT_CODE_PAGE,
        *,
        hooks: FileHooks | None = None,
        encoding: str | None = None,
    ) -> DbfTable:
        """Create a new, empty table, replacing any existing file.

        The header is not written until the first record is written, the
        table is flushed, or it is closed, so fields can be added cheaply.

        Args:
            path: Path to the table; any extension is replaced by .dbf.
            code_page: "LDID/<n>" stores n in the header; any other label
                is written to a .cpg sidecar; None writes neither.
            hooks: File access collaborator, defaults to the local file system.
            encoding: Python codec for text fields, overriding the code page.

        Raises:
            IoFailure: If the file cannot be created.
        """
        hooks = hooks or DEFAULT_HOOKS
        base = base_name(path)
        dbf_path = Path(base + ".dbf")

        try:
            fp = hooks.open(dbf_path, "wb+")
        except OSError as exc:
            message = f"Failed to create file {dbf_path}: {exc}"
            hooks.error(message)
            raise IoFailure(message) from exc

        ldid = split_ldid(code_page)
        cpg_path = Path(base + ".cpg")
        try:
            if code_page is not None and ldid is None:
                with hooks.open(cpg_path, "wb") as cpg:
                    cpg.write(code_page.encode("utf-8"))
            else:
                hooks.remove(cpg_path)
        except OSError as exc:
            fp.close()
            message = f"Failed to update code page file {cpg_path}: {exc}"
            hooks.error(message)
            raise IoFailure(message) from exc

        logger.debug("Created %s (code page %s)", dbf_path, code_page)
        return cls(
            fp,
            SchemaCatalog(),
            path=dbf_path,
            hooks=hooks,
            code_page=code_page,
            language_driver=ldid or 0,
            encoding=encoding,
            no_header=True,
        )

    def clone_empty(self, path: str | Path) -> DbfTable:
        """Create a table with this table's fields and code page, but no records.

        Returns a read-write handle on the new file.
        """
        clone = DbfTable.create(path, self.code_page, hooks=self.hooks, encoding=self.encoding)
        clone.catalog = self.catalog.copy()
        clone.cache.resize(clone.catalog.record_length)
        clone.no_header = True
        clone.updated = True
        clone.write_end_of_file_char = self.write_end_of_file_char
        clone._write_header()
        clone.close()

        reopened = DbfTable.open(clone.path, "rb+", hooks=self.hooks, encoding=self.encoding)
        reopened.write_end_of_file_char = self.write_end_of_file_char
        return reopened

    def _io_failure(self, message: str) -> IoFailure:
        self.hooks.error(message)
        return IoFailure(message)

    def _write_header(self) -> None:
        """Write the file header and field descriptors if they are pending."""
        if not self.no_header:
            return
        self.no_header = False

        catalog = self.catalog
        header = bytearray(HEADER_SIZE)
        header[0] = self.VERSION_BYTE
        header[1:4] = bytes(self._last_modified)
        struct.pack_into("<IHH", header, 4, self._record_count, catalog.header_length, catalog.record_length)
        header[29] = self.language_driver

        parts = [bytes(header), catalog.pack_descriptors()]
        if catalog.header_length > HEADER_SIZE + FIELD_DESCRIPTOR_SIZE * len(catalog):
            parts.append(bytes([HEADER_TERMINATOR]))
        if self._record_count == 0 and self.write_end_of_file_char:
            parts.append(bytes([END_OF_FILE_MARKER]))

        try:
            self.fp.seek(0)
            self.fp.write(b"".join(parts))
        except OSError as exc:
            raise self._io_failure(f"Failure writing DBF header of {self.path}: {exc}") from exc
        logger.debug("Wrote header of %s (%d fields)", self.path, len(catalog))

    def _patch_header(self) -> None:
        """Rewrite the last-modified date and record count in place."""
        fp = self.fp
        try:
            fp.seek(0)
            header = bytearray(fp.read(HEADER_SIZE))
            header.extend(bytes(HEADER_SIZE - len(header)))
            header[1:4] = bytes(self._last_modified)
            struct.pack_into("<I", header, 4, self._record_count)
            fp.seek(0)
            fp.write(header)
            fp.flush()
        except OSError as exc:
            raise self._io_failure(f"Failure updating DBF header of {self.path}: {exc}") from exc

    def flush(self) -> None:
        """Write any pending header and record, then update the header counts."""
        self._write_header()
        self.cache.flush()
        self._patch_header()

    def close(self) -> None:
        """Flush pending changes and close the file.

        The file is closed even if flushing fails. Closing twice does nothing.
        """
        if self._closed:
            return
        self._closed = True
        try:
            self._write_header()
            self.cache.flush()
            if self.updated:
                self._patch_header()
            self.fp.flush()
        finally:
            self.fp.close()
        logger.debug("Closed %s", self.path)

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> DbfTable:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"DbfTable({str(self.path)!r}, records={self._record_count}, fields={len(self.catalog)})"

    # ------------------------------------------------------------------
    # Table properties
    # ------------------------------------------------------------------

    @property
    def record_count(self) -> int:
        return self._record_count

    def __len__(self) -> int:
        return self._record_count

    @property
    def field_count(self) -> int:
        return len(self.catalog)

    @property
    def fields(self) -> tuple[FieldDescriptor, ...]:
        return self.catalog.fields

    @property
    def header_length(self) -> int:
        return self.catalog.header_length

    @property
    def record_length(self) -> int:
        return self.catalog.record_length

    @property
    def last_modified(self) -> DbfDate:
        year, month, day = self._last_modified
        return DbfDate(1900 + year, month, day)

    def set_last_modified_date(self, year: int, month: int, day: int) -> None:
        """Set the date written to the header on the next flush or close.

        Args:
            year: Full year, 1900 to 2155.
            month: Month, stored as one byte.
            day: Day, stored as one byte.
        """
        if not 1900 <= year <= 1900 + 255:
            raise InvalidArgument(f"Year {year} cannot be stored in a DBF header")
        if not 0 <= month <= 255 or not 0 <= day <= 255:
            raise InvalidArgument(f"Month {month} / day {day} cannot be stored in a DBF header")
        self._last_modified = (year - 1900, month, day)

    def field_info(self, index: int) -> FieldInfo | None:
        """Return type, name, width and decimals of a field, or None."""
        if not self.catalog.is_valid_index(index):
            return None
        return self.catalog[index].info()

    def field_index(self, name: str) -> int | None:
        """Return the index of a field by case-insensitive name."""
        return self.catalog.index_of(name)

    def native_field_type(self, index: int) -> str:
        """Return the one-character type tag of a field, or ' ' for a bad index."""
        if not self.catalog.is_valid_index(index):
            return " "
        return self.catalog[index].native_type

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def _field_text(self, record: int, field: int) -> tuple[FieldDescriptor, str] | None:
        if not 0 <= record < self._record_count:
            return None
        if not self.catalog.is_valid_index(field):
            return None
        self.cache.load(record)
        desc = self.catalog[field]
        raw = bytes(self.cache.buffer[desc.offset : desc.end])
        return desc, codec.field_text(raw, self.encoding)

    def read_integer(self, record: int, field: int) -> int:
        found = self._field_text(record, field)
        if found is None:
            return 0
        return codec.decode_integer(found[1])

    def read_double(self, record: int, field: int) -> float:
        found = self._field_text(record, field)
        if found is None:
            return 0.0
        return codec.decode_double(found[1], self.hooks.atof)

    def read_string(self, record: int, field: int) -> str | None:
        found = self._field_text(record, field)
        if found is None:
            return None
        return codec.decode_string(found[1])

    def read_logical(self, record: int, field: int) -> bool | None:
        found = self._field_text(record, field)
        if found is None:
            return None
        return codec.decode_logical(found[1])

    def read_date(self, record: int, field: int) -> DbfDate:
        found = self._field_text(record, field)
        if found is None:
            return DbfDate.ZERO
        return codec.decode_date(found[1])

    def is_null(self, record: int, field: int) -> bool:
        """Return whether a field holds its type's NULL sentinel.

        Bad indices count as NULL.
        """
        found = self._field_text(record, field)
        if found is None:
            return True
        desc, text = found
        return codec.is_value_null(desc.native_type, codec.decode_string(text), desc.width)

    def read_record(self, record: int) -> dict[str, Any] | None:
        """Return every field of a record as a typed value, None for NULLs."""
        if not 0 <= record < self._record_count:
            return None
        values: dict[str, Any] = {}
        self.cache.load(record)
        for desc in self.catalog:
            raw = bytes(self.cache.buffer[desc.offset : desc.end])
            text = codec.decode_string(codec.field_text(raw, self.encoding))
            if codec.is_value_null(desc.native_type, text, desc.width):
                values[desc.name] = None
                continue

            field_type = desc.field_type
            if field_type is FieldType.INTEGER:
                values[desc.name] = codec.decode_integer(text)
            elif field_type is FieldType.DOUBLE:
                values[desc.name] = codec.decode_double(text, self.hooks.atof)
            elif field_type is FieldType.LOGICAL:
                values[desc.name] = codec.decode_logical(text)
            elif field_type is FieldType.DATE:
                values[desc.name] = codec.decode_date(text)
            else:
                values[desc.name] = text
        return values

    def read_tuple(self, record: int) -> bytes | None:
        """Return the raw bytes of a record, deletion flag included."""
        if not 0 <= record < self._record_count:
            return None
        self.cache.load(record)
        return bytes(self.cache.buffer)

    def is_record_deleted(self, record: int) -> bool:
        """Return whether a record is marked deleted; bad indices count as deleted."""
        if not 0 <= record < self._record_count:
            return True
        self.cache.load(record)
        return self.cache.buffer[:1] == DELETED_FLAG

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _begin_write(self, record: int) -> bool:
        """Make record the cached, modified record, appending it if new."""
        if self.read_only:
            self.hooks.error(f"Cannot write to {self.path}: opened read-only.")
            return False
        if not 0 <= record <= self._record_count:
            return False

        self._write_header()

        if record == self._record_count:
            self.cache.start_new_record(record)
            self._record_count += 1

        self.cache.load(record)
        self.cache.mark_modified()
        self.updated = True
        return True

    def _store(self, desc: FieldDescriptor, data: bytes) -> None:
        self.cache.buffer[desc.offset : desc.offset + len(data)] = data

    def _write_attribute(self, record: int, field: int, value: Any) -> bool:
        if not self.catalog.is_valid_index(field):
            return False

        if isinstance(value, datetime.date):
            value = DbfDate.from_date(value)
        if isinstance(value, DbfDate):
            text = codec.format_date(value.year, value.month, value.day)
            if text is None:
                return False
            return self.write_raw(record, field, text)

        if not self._begin_write(record):
            return False
        desc = self.catalog[field]

        if value is None:
            self._store(desc, codec.encode_null(desc.native_type, desc.width))
            return True

        if isinstance(value, bool):
            value = "T" if value else "F"

        if desc.native_type == NativeType.LOGICAL.value:
            logical = codec.encode_logical(value) if isinstance(value, str) else None
            if logical is None:
                return False
            self._store(desc, logical)
            return True

        if isinstance(value, str):
            data, ok = codec.encode_text(value, desc.width, self.encoding)
        elif desc.native_type in (
            NativeType.NUMBER.value,
            NativeType.FLOAT.value,
            NativeType.DATE.value,
        ):
            data, ok = codec.encode_number(value, desc.width, desc.decimals)
        else:
            data, ok = codec.encode_text(str(value), desc.width, self.encoding)
        self._store(desc, data)
        return ok

    def write_integer(self, record: int, field: int, value: int) -> bool:
        return self._write_attribute(record, field, int(value))

    def write_double(self, record: int, field: int, value: float) -> bool:
        return self._write_attribute(record, field, float(value))

    def write_string(self, record: int, field: int, value: str) -> bool:
        return self._write_attribute(record, field, str(value))

    def write_logical(self, record: int, field: int, value: bool | str) -> bool:
        """Write 'T' or 'F'. Any other value is rejected and False returned."""
        return self._write_attribute(record, field, value)

    def write_date(self, record: int, field: int, value: DbfDate | datetime.date) -> bool:
        return self._write_attribute(record, field, value)

    def write_null(self, record: int, field: int) -> bool:
        return self._write_attribute(record, field, None)

    def write_raw(self, record: int, field: int, value: bytes | str) -> bool:
        """Write bytes into a field unformatted, blank-padded or cut to the field width."""
        if not self.catalog.is_valid_index(field):
            return False
        if not self._begin_write(record):
            return False
        if isinstance(value, str):
            value = value.encode(self.encoding, "replace")
        desc = self.catalog[field]
        self._store(desc, codec.encode_direct(value, desc.width))
        return True

    def write_tuple(self, record: int, raw: bytes) -> bool:
        """Replace a whole record, deletion flag included."""
        if len(raw) != self.catalog.record_length:
            return False
        if not self._begin_write(record):
            return False
        self.cache.buffer[:] = raw
        return True

    def write_record(self, record: int, values: Mapping[str, Any]) -> bool:
        """Write several fields by name; False if any name or value failed."""
        ok = True
        for name, value in values.items():
            index = self.catalog.index_of(name)
            if index is None:
                ok = False
                continue
            ok = self._write_attribute(record, index, value) and ok
        return ok

    def mark_record_deleted(self, record: int, deleted: bool = True) -> bool:
        """Set or clear the deletion flag of a record."""
        if not 0 <= record < self._record_count:
            return False
        if self.read_only:
            self.hooks.error(f"Cannot write to {self.path}: opened read-only.")
            return False

        self.cache.load(record)
        flag = DELETED_FLAG if deleted else ACTIVE_FLAG
        if self.cache.buffer[:1] != flag:
            self.cache.buffer[:1] = flag
            self.cache.mark_modified()
            self.updated = True
        return True

    # ------------------------------------------------------------------
    # Schema changes
    # ------------------------------------------------------------------

    def add_field(
        self,
        name: str,
        field_type: FieldType | NativeType | str,
        width: int,
        decimals: int = 0,
    ) -> int:
        """Append a field; existing records get the new type's NULL value.

        Returns the index of the new field.
        """
        return self._editor.add_field(name, field_type, width, decimals)

    def add_native_field(self, name: str, native_type: str, width: int, decimals: int = 0) -> int:
        """Append a field using a raw one-character type tag."""
        return self._editor.add_field(name, native_type, width, decimals)

    def add_fields(self, definitions: str) -> list[int]:
        """Append the fields described in field-definition text.

        Example:
            table.add_fields("NAME: C(20), AGE: N(3), BORN: D")
        """
        specs = FieldParser().parse(definitions)
        return [
            self._editor.add_field(spec.name, spec.native_type, spec.width, spec.decimals)
            for spec in specs
        ]

    def delete_field(self, index: int) -> None:
        self._editor.delete_field(index)

    def reorder_fields(self, permutation: Sequence[int]) -> None:
        """Reorder fields so that new field i is the current field permutation[i]."""
        self._editor.reorder_fields(permutation)

    def alter_field(
        self,
        index: int,
        name: str,
        field_type: FieldType | NativeType | str,
        width: int,
        decimals: int = 0,
    ) -> None:
        """Change a field's name, type, width or decimals, converting every record."""
        self._editor.alter_field(index, name, field_type, width, decimals)

    def describe(self) -> str:
        """Return the field definitions as field-definition text."""
        return describe_fields(self.catalog.fields)

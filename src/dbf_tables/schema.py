"""Field descriptor table for a single .dbf file."""

from __future__ import annotations

import dataclasses
from typing import Iterator, Sequence

from dbf_tables.errors import InvalidArgument, SchemaOverflow
from dbf_tables.types import (
    FIELD_DESCRIPTOR_SIZE,
    HEADER_SIZE,
    HEADER_TERMINATOR,
    FieldDescriptor,
)


class SchemaCatalog:
    """Ordered field descriptors plus the derived header and record lengths.

    Field order is the on-disk column order. Offsets always start at 1 (byte
    0 of a record is the deletion flag) and are contiguous.

    The header length is tracked rather than recomputed, because files in
    the wild may pad the header past the terminator byte and records start
    wherever the header says they do.
    """

    def __init__(
        self,
        fields: Sequence[FieldDescriptor] = (),
        header_length: int | None = None,
        record_length: int | None = None,
    ) -> None:
        self._fields: list[FieldDescriptor] = []
        offset = 1
        for desc in fields:
            self._fields.append(dataclasses.replace(desc, offset=offset))
            offset += desc.width

        if header_length is None:
            header_length = HEADER_SIZE + FIELD_DESCRIPTOR_SIZE * len(self._fields) + 1
        if record_length is None:
            record_length = offset
        self.header_length = header_length
        self.record_length = record_length

    @classmethod
    def from_header(
        cls, header_length: int, record_length: int, field_block: bytes
    ) -> SchemaCatalog:
        """Parse the descriptor table that follows the 32-byte file header.

        Args:
            header_length: Header length declared in the file header.
            record_length: Record length declared in the file header.
            field_block: The header_length - 32 bytes after the file header.

        Raises:
            SchemaOverflow: If the fields span more bytes than a record.
        """
        max_fields = (header_length - HEADER_SIZE) // FIELD_DESCRIPTOR_SIZE
        fields: list[FieldDescriptor] = []
        offset = 1
        for i in range(max_fields):
            entry = field_block[i * FIELD_DESCRIPTOR_SIZE : (i + 1) * FIELD_DESCRIPTOR_SIZE]
            if entry[0] == HEADER_TERMINATOR:
                break
            desc = FieldDescriptor.unpack(entry, offset)
            fields.append(desc)
            offset = desc.end

        if fields and fields[-1].end > record_length:
            raise SchemaOverflow(
                f"Fields span {fields[-1].end} bytes but records are {record_length} bytes"
            )

        catalog = cls(header_length=header_length, record_length=record_length)
        catalog._fields = fields
        return catalog

    @property
    def fields(self) -> tuple[FieldDescriptor, ...]:
        return tuple(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __iter__(self) -> Iterator[FieldDescriptor]:
        return iter(self._fields)

    def __getitem__(self, index: int) -> FieldDescriptor:
        return self._fields[index]

    def is_valid_index(self, index: int) -> bool:
        return 0 <= index < len(self._fields)

    def index_of(self, name: str) -> int | None:
        """Return the index of a field by case-insensitive name."""
        wanted = name.upper()
        for i, desc in enumerate(self._fields):
            if desc.name.upper() == wanted:
                return i
        return None

    def append(self, desc: FieldDescriptor) -> int:
        """Add a field after the last one and return its index."""
        self._fields.append(dataclasses.replace(desc, offset=self.record_length))
        self.record_length += desc.width
        self.header_length += FIELD_DESCRIPTOR_SIZE
        return len(self._fields) - 1

    def remove(self, index: int) -> FieldDescriptor:
        """Remove a field, closing the gap it leaves in the record layout."""
        removed = self._fields.pop(index)
        for i in range(index, len(self._fields)):
            desc = self._fields[i]
            self._fields[i] = dataclasses.replace(desc, offset=desc.offset - removed.width)
        self.record_length -= removed.width
        self.header_length -= FIELD_DESCRIPTOR_SIZE
        return removed

    def replace(self, index: int, desc: FieldDescriptor) -> FieldDescriptor:
        """Swap in a new definition for a field, shifting later offsets."""
        old = self._fields[index]
        delta = desc.width - old.width
        self._fields[index] = dataclasses.replace(desc, offset=old.offset)
        if delta:
            for i in range(index + 1, len(self._fields)):
                later = self._fields[i]
                self._fields[i] = dataclasses.replace(later, offset=later.offset + delta)
            self.record_length += delta
        return old

    def permute(self, permutation: Sequence[int]) -> list[FieldDescriptor]:
        """Reorder fields so that new field i is old field permutation[i].

        Returns the descriptors in their previous order and layout.

        Raises:
            InvalidArgument: If permutation is not a permutation of the
                field indices.
        """
        if sorted(permutation) != list(range(len(self._fields))):
            raise InvalidArgument(
                f"Field order {list(permutation)} is not a permutation of "
                f"0..{len(self._fields) - 1}"
            )
        previous = list(self._fields)
        offset = 1
        reordered: list[FieldDescriptor] = []
        for old_index in permutation:
            desc = previous[old_index]
            reordered.append(dataclasses.replace(desc, offset=offset))
            offset += desc.width
        self._fields = reordered
        return previous

    def pack_descriptors(self) -> bytes:
        """Return the on-disk descriptor table, without the terminator."""
        return b"".join(desc.pack() for desc in self._fields)

    def copy(self) -> SchemaCatalog:
        catalog = SchemaCatalog(header_length=self.header_length, record_length=self.record_length)
        catalog._fields = list(self._fields)
        return catalog

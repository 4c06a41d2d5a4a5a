"""Render table schemas as field definition text."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from dbf_tables.parsing.field_parser import DEFAULT_WIDTHS
from dbf_tables.types import FieldDescriptor

if TYPE_CHECKING:
    from dbf_tables.table import DbfTable


def format_field(desc: FieldDescriptor) -> str:
    """Format one field, e.g. ``PRICE: N(10, 2)`` or ``BORN: D``."""
    tag = desc.native_type
    if desc.decimals:
        return f"{desc.name}: {tag}({desc.width}, {desc.decimals})"
    if DEFAULT_WIDTHS.get(tag) == desc.width:
        return f"{desc.name}: {tag}"
    return f"{desc.name}: {tag}({desc.width})"


def describe_fields(fields: Iterable[FieldDescriptor]) -> str:
    """Format fields one per line, in a form FieldParser reads back."""
    return "\n".join(format_field(desc) for desc in fields)


def describe_table(table: DbfTable) -> str:
    """Format a table's fields preceded by a comment line summarizing the table."""
    lines = [
        f"# {table.path.name}: {table.record_count} records, "
        f"record length {table.record_length}, code page {table.code_page or 'none'}"
    ]
    fields = describe_fields(table.fields)
    if fields:
        lines.append(fields)
    return "\n".join(lines)

"""Parsing module for the field definition DSL."""

from dbf_tables.parsing.field_parser import FieldParser, FieldSpec

__all__ = [
    "FieldParser",
    "FieldSpec",
]

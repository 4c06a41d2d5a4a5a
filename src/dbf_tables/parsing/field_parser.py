"""Parser for the field definition DSL.

Grammar, one field per entry, entries separated by commas or newlines::

    NAME: C(20)
    PRICE: N(10, 2), BORN: D, ACTIVE: L   # comment

Type letters are case-insensitive. D defaults to width 8 and L to width 1;
every other type needs an explicit width.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import ply.yacc as yacc

from dbf_tables.parsing.field_lexer import FieldLexer

# Widths used when a definition gives none
DEFAULT_WIDTHS = {
    "D": 8,
    "L": 1,
}


@dataclass
class FieldSpec:
    """A parsed field definition, ready for DbfTable.add_field()."""

    name: str
    native_type: str
    width: int
    decimals: int = 0


@dataclass
class _TypeRef:
    tag: str
    width: int | None = None
    decimals: int = 0
    lineno: int = 0


class FieldParser:
    """Parser for the field definition DSL."""

    tokens = FieldLexer.tokens

    def __init__(self) -> None:
        self.lexer = FieldLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    def p_schema(self, p: yacc.YaccProduction) -> None:
        """schema : field_list
                  | field_list COMMA"""
        p[0] = p[1]

    def p_schema_empty(self, p: yacc.YaccProduction) -> None:
        """schema :"""
        p[0] = []

    def p_field_list_single(self, p: yacc.YaccProduction) -> None:
        """field_list : field"""
        p[0] = [p[1]]

    def p_field_list_newline(self, p: yacc.YaccProduction) -> None:
        """field_list : field_list field"""
        p[0] = p[1] + [p[2]]

    def p_field_list_comma(self, p: yacc.YaccProduction) -> None:
        """field_list : field_list COMMA field"""
        p[0] = p[1] + [p[3]]

    def p_field(self, p: yacc.YaccProduction) -> None:
        """field : IDENTIFIER COLON type_ref"""
        p[0] = self._resolve(p[1], p[3])

    def p_type_ref_bare(self, p: yacc.YaccProduction) -> None:
        """type_ref : IDENTIFIER"""
        p[0] = _TypeRef(tag=p[1], lineno=p.lineno(1))

    def p_type_ref_width(self, p: yacc.YaccProduction) -> None:
        """type_ref : IDENTIFIER LPAREN INTEGER RPAREN"""
        p[0] = _TypeRef(tag=p[1], width=p[3], lineno=p.lineno(1))

    def p_type_ref_decimals(self, p: yacc.YaccProduction) -> None:
        """type_ref : IDENTIFIER LPAREN INTEGER COMMA INTEGER RPAREN"""
        p[0] = _TypeRef(tag=p[1], width=p[3], decimals=p[5], lineno=p.lineno(1))

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (line {p.lineno})")
        else:
            raise SyntaxError("Syntax error at end of input")

    def _resolve(self, name: str, ref: _TypeRef) -> FieldSpec:
        if len(ref.tag) != 1:
            raise ValueError(f"Unknown field type '{ref.tag}' for field {name} (line {ref.lineno})")
        tag = ref.tag.upper()
        width = ref.width if ref.width is not None else DEFAULT_WIDTHS.get(tag)
        if width is None:
            raise ValueError(f"Field {name} of type {tag} needs a width (line {ref.lineno})")
        return FieldSpec(name=name, native_type=tag, width=width, decimals=ref.decimals)

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, **kwargs)

    def parse(self, data: str) -> list[FieldSpec]:
        """Parse field definitions and return them in order."""
        if self.parser is None:
            self.build(debug=False, write_tables=False)

        self.lexer.lexer.lineno = 1
        specs = self.parser.parse(data, lexer=self.lexer.lexer)
        if specs is None:
            return []
        return specs

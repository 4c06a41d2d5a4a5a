"""Tests for the field definition DSL."""

import pytest

from dbf_tables.dump import describe_fields, format_field
from dbf_tables.parsing import FieldParser, FieldSpec
from dbf_tables.parsing.field_lexer import FieldLexer
from dbf_tables.types import FieldDescriptor


class TestFieldLexer:
    """Tests for the field lexer."""

    def test_tokenize_field(self):
        """Test tokenizing one field."""
        lexer = FieldLexer()
        lexer.build()

        tokens = lexer.tokenize("PRICE: N(10, 2)")
        token_types = [t.type for t in tokens]

        assert token_types == [
            "IDENTIFIER",
            "COLON",
            "IDENTIFIER",
            "LPAREN",
            "INTEGER",
            "COMMA",
            "INTEGER",
            "RPAREN",
        ]
        assert tokens[4].value == 10

    def test_comments_and_newlines_are_skipped(self):
        """Test that comments and newlines produce no tokens."""
        lexer = FieldLexer()
        lexer.build()

        tokens = lexer.tokenize("# header\nBORN: D  # date\n")
        assert [t.type for t in tokens] == ["IDENTIFIER", "COLON", "IDENTIFIER"]
        assert tokens[0].lineno == 2

    def test_illegal_character(self):
        """Test that unknown characters raise."""
        lexer = FieldLexer()
        lexer.build()

        with pytest.raises(SyntaxError):
            lexer.tokenize("NAME: C(-1)")


class TestFieldParser:
    """Tests for the field parser."""

    def test_parse_fields(self):
        """Test parsing comma and newline separated fields."""
        specs = FieldParser().parse(
            """
            NAME: C(20)
            AGE: N(3)          # decimals default to 0
            PRICE: N(10, 2), BORN: D, ACTIVE: L
            """
        )

        assert specs == [
            FieldSpec("NAME", "C", 20),
            FieldSpec("AGE", "N", 3),
            FieldSpec("PRICE", "N", 10, 2),
            FieldSpec("BORN", "D", 8),
            FieldSpec("ACTIVE", "L", 1),
        ]

    def test_type_letters_are_case_insensitive(self):
        """Test lower-case type letters."""
        specs = FieldParser().parse("name: c(5), flag: l")
        assert specs == [FieldSpec("name", "C", 5), FieldSpec("flag", "L", 1)]

    def test_trailing_comma(self):
        """Test that a trailing comma is accepted."""
        assert FieldParser().parse("A: C(1),") == [FieldSpec("A", "C", 1)]

    def test_empty_input(self):
        """Test that text with no fields parses to nothing."""
        assert FieldParser().parse("") == []
        assert FieldParser().parse("# nothing here\n") == []

    def test_explicit_width_overrides_default(self):
        """Test widths on types that have defaults."""
        assert FieldParser().parse("D6: D(6)") == [FieldSpec("D6", "D", 6)]

    def test_missing_width(self):
        """Test that text and number fields need a width."""
        with pytest.raises(ValueError, match="needs a width"):
            FieldParser().parse("NAME: C")

    def test_unknown_type(self):
        """Test that type names longer than one letter are rejected."""
        with pytest.raises(ValueError, match="Unknown field type"):
            FieldParser().parse("NAME: CHAR(10)")

    def test_syntax_error(self):
        """Test malformed definitions."""
        with pytest.raises(SyntaxError):
            FieldParser().parse("NAME C(10)")
        with pytest.raises(SyntaxError):
            FieldParser().parse("NAME: C(10")


class TestDescribe:
    """Tests for rendering fields as DSL text."""

    def test_format_field(self):
        """Test each rendering form."""
        assert format_field(FieldDescriptor("NAME", "C", 20)) == "NAME: C(20)"
        assert format_field(FieldDescriptor("PRICE", "N", 10, 2)) == "PRICE: N(10, 2)"
        assert format_field(FieldDescriptor("BORN", "D", 8)) == "BORN: D"
        assert format_field(FieldDescriptor("ACTIVE", "L", 1)) == "ACTIVE: L"
        assert format_field(FieldDescriptor("FLAGS", "L", 2)) == "FLAGS: L(2)"

    def test_describe_parses_back(self):
        """Test that described fields parse to the same definitions."""
        fields = [
            FieldDescriptor("NAME", "C", 20),
            FieldDescriptor("PRICE", "N", 10, 2),
            FieldDescriptor("BORN", "D", 8),
            FieldDescriptor("MEMO", "M", 10),
        ]
        specs = FieldParser().parse(describe_fields(fields))
        assert [(s.name, s.native_type, s.width, s.decimals) for s in specs] == [
            (d.name, d.native_type, d.width, d.decimals) for d in fields
        ]

"""Lexer for the field definition DSL."""

import ply.lex as lex


class FieldLexer:
    """Lexer for tokenizing field definitions such as ``NAME: C(20)``."""

    tokens = [
        "IDENTIFIER",
        "INTEGER",
        "LPAREN",
        "RPAREN",
        "COLON",
        "COMMA",
    ]

    t_LPAREN = r"\("
    t_RPAREN = r"\)"
    t_COLON = r":"
    t_COMMA = r","

    # Newlines separate fields like commas do, but carry no token
    t_ignore = " \t\r"

    t_ignore_COMMENT = r"\#[^\n]*"

    def __init__(self) -> None:
        self.lexer: lex.Lexer = None  # type: ignore

    def t_INTEGER(self, t: lex.LexToken) -> lex.LexToken:
        r"\d+"
        t.value = int(t.value)
        return t

    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"[a-zA-Z_][a-zA-Z0-9_]*"
        return t

    def t_NEWLINE(self, t: lex.LexToken) -> None:
        r"\n+"
        t.lexer.lineno += len(t.value)

    def t_error(self, t: lex.LexToken) -> None:
        raise SyntaxError(f"Illegal character '{t.value[0]}' at line {t.lineno}")

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize."""
        self.lexer.input(data)

    def token(self) -> lex.LexToken | None:
        """Return the next token."""
        return self.lexer.token()

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Return every token of data, resetting the line count."""
        self.lexer.lineno = 1
        self.input(data)
        return list(iter(self.token, None))

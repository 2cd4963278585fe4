"""
Token definitions for the Kaleidoscope lexer.

The language has a deliberately tiny token vocabulary:
- End of input
- Keywords (def, extern, if/then/else, for/in, binary/unary, var)
- Identifiers and numeric literals
- Raw characters (any other single character, so that any ASCII
  punctuation can later be declared as a user-defined operator)

Author: xwest
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import Any


class TokenType(Enum):
    """Enumeration of all token types in Kaleidoscope."""

    # ========================================================================
    # Special Tokens
    # ========================================================================
    EOF = auto()                    # End of input

    # ========================================================================
    # Commands
    # ========================================================================
    DEF = auto()                    # def
    EXTERN = auto()                 # extern

    # ========================================================================
    # Primary
    # ========================================================================
    IDENTIFIER = auto()             # foo, x1
    NUMBER = auto()                 # 1.0, 42, .5

    # ========================================================================
    # Control flow
    # ========================================================================
    IF = auto()                     # if
    THEN = auto()                   # then
    ELSE = auto()                   # else
    FOR = auto()                    # for
    IN = auto()                     # in

    # ========================================================================
    # Operator definitions and mutable variables
    # ========================================================================
    BINARY = auto()                 # binary
    UNARY = auto()                  # unary
    VAR = auto()                    # var

    # ========================================================================
    # Anything else
    # ========================================================================
    CHAR = auto()                   # (, ), ',', ;, +, <, |, &, ...


@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in the source code.

    Used for error reporting and diagnostics.
    """
    filename: str
    line: int
    column: int
    offset: int  # Character offset from start of input

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.column}"

    def __repr__(self) -> str:
        return f"SourceLocation({self.filename!r}, {self.line}, {self.column}, {self.offset})"


@dataclass(frozen=True)
class Token:
    """
    Represents a lexical token in the Kaleidoscope language.

    ``value`` holds the float for NUMBER tokens, the text for IDENTIFIER
    tokens and the character itself for CHAR tokens.
    """
    type: TokenType
    lexeme: str                     # Raw text from source
    value: Any                      # Parsed/semantic value
    location: SourceLocation        # Source location

    def __str__(self) -> str:
        if self.value is not None and self.value != self.lexeme:
            return f"{self.type.name}({self.lexeme!r} -> {self.value!r})"
        return f"{self.type.name}({self.lexeme!r})"

    def __repr__(self) -> str:
        return (f"Token({self.type.name}, {self.lexeme!r}, "
                f"{self.value!r}, {self.location!r})")

    @property
    def is_keyword(self) -> bool:
        """Check if this token is a keyword."""
        return self.lexeme in KEYWORDS and self.type is KEYWORDS[self.lexeme]

    @property
    def is_identifier(self) -> bool:
        """Check if this token is an identifier."""
        return self.type == TokenType.IDENTIFIER

    def is_char(self, char: str) -> bool:
        """Check if this token is the raw character ``char``."""
        return self.type == TokenType.CHAR and self.value == char

    def describe(self) -> str:
        """Human readable description for diagnostics."""
        if self.type == TokenType.EOF:
            return "end of input"
        if self.type == TokenType.CHAR:
            return f"'{self.value}'"
        if self.type == TokenType.IDENTIFIER:
            return f"identifier '{self.lexeme}'"
        if self.type == TokenType.NUMBER:
            return f"number '{self.lexeme}'"
        return f"keyword '{self.lexeme}'"


# Reserved words, recognized after an identifier has been scanned
KEYWORDS = {
    "def": TokenType.DEF,
    "extern": TokenType.EXTERN,
    "if": TokenType.IF,
    "then": TokenType.THEN,
    "else": TokenType.ELSE,
    "for": TokenType.FOR,
    "in": TokenType.IN,
    "binary": TokenType.BINARY,
    "unary": TokenType.UNARY,
    "var": TokenType.VAR,
}

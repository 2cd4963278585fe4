"""
Kaleidoscope Lexer Package

Implements the streaming tokenizer for the Kaleidoscope language.

Key Features:
- One token at a time, no backtracking
- Keywords, identifiers, strtod-style numbers and '#' comments
- Any other character becomes a raw token (usable as an operator)
- Source location tracking for diagnostics

Author: xwest
"""

from .tokens import Token, TokenType, SourceLocation, KEYWORDS
from .lexer import Lexer, tokenize_string, tokenize_file, parse_number_literal
from .errors import Diagnostic, LexerWarning

__all__ = [
    "Lexer",
    "Token",
    "TokenType",
    "SourceLocation",
    "KEYWORDS",
    "Diagnostic",
    "LexerWarning",
    "tokenize_string",
    "tokenize_file",
    "parse_number_literal",
]

"""
Kaleidoscope Lexer - turns a character stream into tokens one at a time.

The parser pulls tokens on demand through next_token(), so the lexer
never needs more than one character of lookahead and never backtracks.
That also lets it run straight off an interactive stream.

xwest
"""

import io
import re
from typing import List, Optional, TextIO, Union

from .tokens import Token, TokenType, SourceLocation, KEYWORDS
from .errors import LexerWarning, create_malformed_number_warning


# Characters that may appear in a numeric literal. Multiple dots are
# accepted here and dealt with when the literal is converted.
NUMBER_CHARS = "0123456789."

# Longest prefix strtod() would accept from a run of [0-9.]
_FLOAT_PREFIX = re.compile(r'[0-9]+\.?[0-9]*|\.[0-9]+')


def parse_number_literal(text: str) -> float:
    """
    Convert a run of [0-9.] to a float the way strtod() does.

    The longest valid prefix is used ("1.2.3" -> 1.2); text without any
    valid prefix (".", "..") yields 0.0.
    """
    match = _FLOAT_PREFIX.match(text)
    if match is None:
        return 0.0
    return float(match.group(0))


def is_well_formed_number(text: str) -> bool:
    """Check whether the whole literal is a valid float."""
    match = _FLOAT_PREFIX.match(text)
    return match is not None and match.end() == len(text)


class Lexer:
    """
    Kaleidoscope lexical analyzer.

    Rules, in priority order: skip whitespace, identifiers/keywords,
    numbers, '#' comments, end of input, and finally any other character
    is returned as a raw CHAR token.
    """

    def __init__(self, source: Union[str, TextIO], filename: str = "<unknown>"):
        """
        Initialize the lexer.

        Args:
            source: Source text, or a text stream read one character at a time
            filename: Name of source for error reporting
        """
        if isinstance(source, str):
            source = io.StringIO(source)
        self.stream = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.column = 1
        self.warnings: List[LexerWarning] = []

        # One character of lookahead, primed with whitespace so the first
        # call to next_token() reads from the stream.
        self._last_char = ' '
        self._last_location = SourceLocation(filename, 1, 0, 0)

    def next_token(self) -> Token:
        """Return the next token from the stream."""
        # Skip whitespace and comments
        while True:
            while self._last_char and self._last_char.isspace():
                self._advance()
            if self._last_char != '#':
                break
            # Comment until end of line
            while self._last_char not in ('', '\n', '\r'):
                self._advance()

        start = self._last_location
        char = self._last_char

        # End of input
        if char == '':
            return Token(TokenType.EOF, '', None, start)

        # Identifier: [a-zA-Z][a-zA-Z0-9]*
        if self._is_identifier_start(char):
            return self._tokenize_identifier_or_keyword(start)

        # Number: [0-9.]+
        if char in NUMBER_CHARS:
            return self._tokenize_number(start)

        # Otherwise, just return the character itself
        self._advance()
        return Token(TokenType.CHAR, char, char, start)

    def tokenize(self) -> List[Token]:
        """
        Tokenize the rest of the input.

        Returns:
            List of tokens including the final EOF token
        """
        tokens = []
        while True:
            token = self.next_token()
            tokens.append(token)
            if token.type == TokenType.EOF:
                return tokens

    def _tokenize_identifier_or_keyword(self, start: SourceLocation) -> Token:
        """Tokenize an identifier or keyword."""
        chars = [self._last_char]
        self._advance()
        while self._is_identifier_continue(self._last_char):
            chars.append(self._last_char)
            self._advance()

        lexeme = ''.join(chars)
        token_type = KEYWORDS.get(lexeme, TokenType.IDENTIFIER)
        value = lexeme if token_type == TokenType.IDENTIFIER else None
        return Token(token_type, lexeme, value, start)

    def _tokenize_number(self, start: SourceLocation) -> Token:
        """Tokenize a numeric literal."""
        chars = []
        while self._last_char and self._last_char in NUMBER_CHARS:
            chars.append(self._last_char)
            self._advance()

        lexeme = ''.join(chars)
        value = parse_number_literal(lexeme)
        if not is_well_formed_number(lexeme):
            self.warnings.append(create_malformed_number_warning(lexeme, value, start))

        return Token(TokenType.NUMBER, lexeme, value, start)

    @staticmethod
    def _is_identifier_start(char: str) -> bool:
        return char.isascii() and char.isalpha()

    @staticmethod
    def _is_identifier_continue(char: str) -> bool:
        return char.isascii() and char.isalnum()

    def _advance(self):
        """Read the next character into the lookahead slot."""
        char = self.stream.read(1)
        if not char:
            self._last_char = ''
            self._last_location = SourceLocation(self.filename, self.line, self.column, self.pos)
            return

        self._last_char = char
        self._last_location = SourceLocation(self.filename, self.line, self.column, self.pos)
        self.pos += 1
        if char == '\n':
            self.line += 1
            self.column = 1
        else:
            self.column += 1

    def has_warnings(self) -> bool:
        """Check if lexer produced any warnings."""
        return len(self.warnings) > 0

    def drain_warnings(self) -> List[LexerWarning]:
        """Return and clear the pending warnings."""
        warnings, self.warnings = self.warnings, []
        return warnings


def tokenize_string(source: str, filename: str = "<string>") -> List[Token]:
    """
    Convenience function to tokenize a source string.

    Args:
        source: Source code string
        filename: Filename for error reporting

    Returns:
        List of tokens, ending with EOF
    """
    return Lexer(source, filename).tokenize()


def tokenize_file(filepath: str) -> List[Token]:
    """
    Convenience function to tokenize a source file.

    Raises:
        IOError: If file cannot be read
    """
    with open(filepath, 'r', encoding='utf-8') as f:
        return Lexer(f, filepath).tokenize()

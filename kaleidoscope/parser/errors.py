"""
Error handling for the Kaleidoscope parser.

Any grammar violation raises a ParseError. The session driver reports it
and skips a single token before carrying on, so one bad construct never
ends the session.

Author: xwest
"""

from typing import Optional, List

from ..lexer.tokens import Token, SourceLocation
from ..lexer.errors import Diagnostic


class ParseError(Exception):
    """
    Exception raised when the parser encounters a syntax error.

    Contains detailed diagnostic information for error reporting.
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation],
        token: Optional[Token] = None,
        code: Optional[str] = None,
        help_text: Optional[str] = None,
        suggestions: Optional[List[str]] = None
    ):
        super().__init__(message)
        self.message = message
        self.diagnostic = Diagnostic(
            message=message,
            location=location,
            severity="error",
            code=code,
            help_text=help_text,
            suggestions=suggestions
        )
        self.token = token

    def __str__(self) -> str:
        return str(self.diagnostic)


# Parse error codes for categorization
PARSE_ERROR_CODES = {
    "P001": "Unexpected token in expression",
    "P002": "Missing token",
    "P003": "Expected identifier",
    "P004": "Invalid prototype",
    "P005": "Invalid operator in prototype",
    "P006": "Invalid operator precedence",
    "P007": "Invalid number of operands for operator",
    "P008": "Malformed argument list",
    "P009": "Nesting too deep",
}


def create_unexpected_token_error(message: str, token: Token) -> ParseError:
    """Create an error for a token that cannot start or continue a construct."""
    return ParseError(
        message=message,
        location=token.location,
        token=token,
        code="P001",
        help_text=f"Found {token.describe()}."
    )


def create_missing_token_error(expected: str, token: Token,
                               context: Optional[str] = None) -> ParseError:
    """Create an error for a required token that is not present."""
    message = f"expected {expected}"
    if context:
        message += f" {context}"
    return ParseError(
        message=message,
        location=token.location,
        token=token,
        code="P002",
        help_text=f"Found {token.describe()}."
    )


def create_expected_identifier_error(context: str, token: Token) -> ParseError:
    """Create an error for a missing identifier."""
    return ParseError(
        message=f"expected identifier {context}",
        location=token.location,
        token=token,
        code="P003",
        help_text=f"Found {token.describe()}."
    )


def create_prototype_error(message: str, token: Token, code: str = "P004") -> ParseError:
    """Create an error for a malformed function or operator prototype."""
    return ParseError(
        message=message,
        location=token.location,
        token=token,
        code=code
    )


def create_operand_count_error(kind: str, expected: int, found: int,
                               token: Token) -> ParseError:
    """Create an error for an operator prototype with the wrong arity."""
    return ParseError(
        message="Invalid number of operands for operator",
        location=token.location,
        token=token,
        code="P007",
        help_text=f"A {kind} operator takes exactly {expected} operand(s), found {found}."
    )


def create_nesting_error(token: Token) -> ParseError:
    """Create an error for input nested deeper than the parser can follow."""
    return ParseError(
        message="expression nested too deeply",
        location=token.location,
        token=token,
        code="P009",
        help_text="Split the expression into smaller functions."
    )

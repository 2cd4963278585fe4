"""
Diagnostics for the Kaleidoscope lexer.

The lexer never rejects input: every character becomes a token. What it
can do is warn about numeric literals that are only partially valid, since
those are passed through best-effort parsing rather than refused.

Author: xwest
"""

from typing import Optional, List
from dataclasses import dataclass

from .tokens import SourceLocation


@dataclass
class Diagnostic:
    """Base class for diagnostics (errors, warnings, info)."""
    message: str
    location: Optional[SourceLocation]
    severity: str  # "error", "warning", "info"
    code: Optional[str] = None
    help_text: Optional[str] = None
    suggestions: Optional[List[str]] = None

    def __str__(self) -> str:
        severity_prefix = self.severity.upper()
        code = f"[{self.code}] " if self.code else ""
        result = f"{severity_prefix}: {code}{self.message}\n"
        if self.location is not None:
            result += f"  --> {self.location}\n"

        if self.help_text:
            result += f"  help: {self.help_text}\n"

        if self.suggestions:
            result += "  suggestions:\n"
            for suggestion in self.suggestions:
                result += f"    - {suggestion}\n"

        return result


class LexerWarning:
    """
    Represents a lexer warning that doesn't stop compilation.
    """

    def __init__(
        self,
        message: str,
        location: SourceLocation,
        code: Optional[str] = None,
        help_text: Optional[str] = None,
        suggestions: Optional[List[str]] = None
    ):
        self.diagnostic = Diagnostic(
            message=message,
            location=location,
            severity="warning",
            code=code,
            help_text=help_text,
            suggestions=suggestions
        )

    def __str__(self) -> str:
        return str(self.diagnostic)


# Lexer diagnostic codes
LEXER_CODES = {
    "L010": "Malformed numeric literal",
}


def create_malformed_number_warning(lexeme: str, value: float,
                                    location: SourceLocation) -> LexerWarning:
    """Create a warning for a numeric literal that is not wholly valid."""
    return LexerWarning(
        message=f"Malformed numeric literal '{lexeme}', using {value!r}",
        location=location,
        code="L010",
        help_text="Only the longest valid prefix of the literal is used."
    )

"""
Backend error handling for Kaleidoscope.

BackendError covers target initialization, IR verification, symbol
resolution and object output. It is fatal only when the backend cannot be
constructed or an object file cannot be written; a failed unit during a
session is reported and discarded.

Author: xwest
"""

from typing import Optional

from ..lexer.errors import Diagnostic


class BackendError(Exception):
    """
    Exception raised by the LLVM backend.

    Contains detailed diagnostic information for error reporting.
    """

    def __init__(self, message: str, code: Optional[str] = None,
                 help_text: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.diagnostic = Diagnostic(
            message=message,
            location=None,
            severity="error",
            code=code,
            help_text=help_text
        )

    def __str__(self) -> str:
        return str(self.diagnostic)


# Backend error codes for categorization
BACKEND_ERROR_CODES = {
    "B001": "Backend initialization failed",
    "B002": "Invalid IR in compilation unit",
    "B003": "Unresolved external symbol",
    "B004": "Object file emission failed",
}

"""
Code generation error handling for Kaleidoscope.

A CodegenError aborts generation of the current top-level construct only.
The partially built function is discarded and the session carries on.

Author: xwest
"""

from typing import Optional, List

from ..lexer.tokens import SourceLocation
from ..lexer.errors import Diagnostic


class CodegenError(Exception):
    """
    Exception raised when code generation fails for a construct.

    Contains detailed diagnostic information for error reporting.
    """

    code = "C000"

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        help_text: Optional[str] = None,
        suggestions: Optional[List[str]] = None
    ):
        super().__init__(message)
        self.message = message
        self.diagnostic = Diagnostic(
            message=message,
            location=location,
            severity="error",
            code=self.code,
            help_text=help_text,
            suggestions=suggestions
        )

    def __str__(self) -> str:
        return str(self.diagnostic)


class UnboundVariableError(CodegenError):
    """A variable is referenced or assigned outside any binding of it."""
    code = "C001"

    def __init__(self, name: str, location: Optional[SourceLocation] = None,
                 suggestions: Optional[List[str]] = None):
        super().__init__(
            f"Unknown variable name '{name}'",
            location,
            suggestions=suggestions
        )
        self.name = name


class UnknownFunctionError(CodegenError):
    """A call or operator refers to a function that was never declared."""
    code = "C002"

    def __init__(self, name: str, location: Optional[SourceLocation] = None,
                 what: str = "function"):
        super().__init__(f"Unknown {what} referenced: '{name}'", location)
        self.name = name


class ArgumentCountError(CodegenError):
    """A call passes the wrong number of arguments."""
    code = "C003"

    def __init__(self, name: str, expected: int, found: int,
                 location: Optional[SourceLocation] = None,
                 message: Optional[str] = None):
        super().__init__(
            message or f"Incorrect # of arguments passed to '{name}'",
            location,
            help_text=f"'{name}' takes {expected} argument(s), {found} given."
        )
        self.name = name
        self.expected = expected
        self.found = found


class InvalidAssignmentError(CodegenError):
    """The left side of '=' is not a plain variable."""
    code = "C004"

    def __init__(self, location: Optional[SourceLocation] = None):
        super().__init__(
            "destination of '=' must be a variable",
            location,
            help_text="Only a variable name may appear on the left of '='."
        )


class RedefinitionError(CodegenError):
    """A function that already has a body is defined again."""
    code = "C005"

    def __init__(self, name: str, location: Optional[SourceLocation] = None):
        super().__init__(
            f"Function '{name}' cannot be redefined",
            location,
            help_text="Declaring a function with 'extern' and defining it later is allowed."
        )
        self.name = name


class NestingDepthError(CodegenError):
    """An expression tree is too deep to generate."""
    code = "C006"

    def __init__(self, name: str, location: Optional[SourceLocation] = None):
        super().__init__(
            f"Body of '{name}' is nested too deeply",
            location,
            help_text="Split the expression into smaller functions."
        )
        self.name = name


# Codegen error codes for categorization
CODEGEN_ERROR_CODES = {
    "C001": "Unbound variable",
    "C002": "Unknown function or operator",
    "C003": "Argument count mismatch",
    "C004": "Invalid assignment target",
    "C005": "Function redefinition",
    "C006": "Nesting too deep",
}

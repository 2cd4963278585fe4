"""
Kaleidoscope Session Driver

Reads top-level constructs one at a time and compiles them into the open
compilation unit:

- 'def' adds a function definition to the unit
- 'extern' adds a declaration and records the prototype
- anything else is wrapped in an anonymous function; the unit is then
  finalized, the function is run, and a fresh unit is opened

A parse error is reported and exactly one token is skipped before the loop
resumes. Code generation and backend errors are reported and the loop
resumes where the parser stopped. Only end of input ends a run.

Author: xwest
"""

import sys
from typing import List, Optional, TextIO, Union

from ..lexer.lexer import Lexer
from ..lexer.errors import Diagnostic
from ..lexer.tokens import TokenType
from ..parser.parser import Parser
from ..parser.errors import ParseError, create_nesting_error
from ..codegen.codegen import CodeGenerator
from ..codegen.errors import CodegenError
from ..backend.llvm_backend import LLVMBackend
from ..backend.runtime import RuntimeLibrary
from ..backend.errors import BackendError
from .config import SessionConfig
from .state import SessionState


class Session:
    """
    A persistent compile-and-execute session.

    State (operators, prototypes, scopes, JIT-loaded code) carries over
    between calls to run(), so a program may be fed in pieces.
    """

    def __init__(self, config: Optional[SessionConfig] = None,
                 output: Optional[TextIO] = None,
                 backend: Optional[LLVMBackend] = None):
        """
        Initialize the session.

        Args:
            config: Session options (defaults to SessionConfig())
            output: Stream for diagnostics, echo output and runtime output
            backend: Backend to compile with; created from config if omitted

        Raises:
            BackendError: If the LLVM backend cannot be initialized
        """
        self.config = config if config is not None else SessionConfig()
        self.output = output if output is not None else sys.stdout
        self.state = SessionState.create(self.config.default_precedences)

        if backend is None:
            backend = LLVMBackend(self.config.optimization_level,
                                  RuntimeLibrary(self.output))
        self.backend = backend
        self.codegen = CodeGenerator(self.backend, self.state)
        self.unit = self.backend.open_unit()

        self.diagnostics: List[Diagnostic] = []
        self.lexer: Optional[Lexer] = None
        self.parser: Optional[Parser] = None
        self._anonymous_count = 0

    # ========================================================================
    # Main loop
    # ========================================================================

    def run(self, source: Union[str, TextIO], filename: Optional[str] = None) -> List[float]:
        """
        Compile and execute every construct in ``source``.

        Returns:
            Values of the top-level expressions that ran successfully, in order
        """
        self.lexer = Lexer(source, filename or self.config.filename)
        self.parser = Parser(self.lexer, self.state.operators)

        results: List[float] = []
        while True:
            self._report_lexer_warnings()
            token = self.parser.current

            if token.type == TokenType.EOF:
                break
            if token.is_char(';'):
                # ignore top-level semicolons
                self.parser.next_token()
            elif token.type == TokenType.DEF:
                self.handle_definition()
            elif token.type == TokenType.EXTERN:
                self.handle_extern()
            else:
                value = self.handle_top_level_expression()
                if value is not None:
                    results.append(value)

        self._report_lexer_warnings()
        return results

    def evaluate(self, source: Union[str, TextIO], filename: Optional[str] = None) -> List[float]:
        """Alias of run()."""
        return self.run(source, filename)

    def run_file(self, path: str) -> List[float]:
        """Run a source file through the session."""
        with open(path, 'r', encoding='utf-8') as f:
            return self.run(f, path)

    # ========================================================================
    # Top-level handlers
    # ========================================================================

    def handle_definition(self):
        """Parse and compile a 'def'. Returns the function, or None on error."""
        try:
            definition = self._parse(self.parser.parse_definition)
        except ParseError as e:
            self._recover(e)
            return None

        try:
            function = self.codegen.generate_function(definition)
        except CodegenError as e:
            self._report(e.diagnostic)
            return None

        self._echo("Read function definition:", function)
        return function

    def handle_extern(self):
        """Parse and declare an 'extern'. Returns the declaration, or None on error."""
        try:
            prototype = self._parse(self.parser.parse_extern)
        except ParseError as e:
            self._recover(e)
            return None

        try:
            function = self.codegen.generate_extern(prototype)
        except CodegenError as e:
            self._report(e.diagnostic)
            return None

        self._echo("Read extern:", function)
        return function

    def handle_top_level_expression(self) -> Optional[float]:
        """
        Compile a bare expression and run it.

        The open unit is finalized with it, whatever the outcome, and a new
        unit is opened. Returns the value, or None on error.
        """
        name = self._next_anonymous_name()
        try:
            definition = self._parse(self.parser.parse_top_level_expr, name)
        except ParseError as e:
            self._recover(e)
            return None

        try:
            function = self.codegen.generate_function(definition)
        except CodegenError as e:
            self._report(e.diagnostic)
            return None

        self._echo("Read top-level expression:", function)

        unit = self.unit
        try:
            value = self.backend.finalize_and_execute_anonymous(unit, name)
        except BackendError as e:
            self._report(e.diagnostic)
            return None
        finally:
            self.unit = self.backend.open_unit()

        if self.config.echo_results:
            self.output.write("Evaluated to %f\n" % value)
        return value

    # ========================================================================
    # Output
    # ========================================================================

    def emit_object(self, path: str):
        """
        Write the open unit as a native object file.

        Raises:
            BackendError: If the unit is invalid or the file can't be written
        """
        self.backend.emit_object(self.unit, path)

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == "error"]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == "warning"]

    def _parse(self, production, *args):
        try:
            return production(*args)
        except RecursionError:
            raise create_nesting_error(self.parser.current) from None

    def _recover(self, error: ParseError):
        self._report(error.diagnostic)
        # Skip token for error recovery
        self.parser.next_token()

    def _report(self, diagnostic: Diagnostic):
        self.diagnostics.append(diagnostic)
        self.output.write(str(diagnostic))

    def _report_lexer_warnings(self):
        for warning in self.lexer.drain_warnings():
            self._report(warning.diagnostic)

    def _echo(self, label: str, function):
        if self.config.echo_ir:
            self.output.write(f"{label} {self.backend.print_llvm_ir(function)}\n")

    def _next_anonymous_name(self) -> str:
        self._anonymous_count += 1
        return f"{self.config.anonymous_prefix}{self._anonymous_count}"

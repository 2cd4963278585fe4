"""
Lexical scoping for mutable bindings.

Names map to storage handles. Constructs that introduce bindings (function
entry, 'for', 'var/in') record what they shadow in an UndoLog and unwind
it on every exit path, so that sibling code after the construct sees the
bindings it saw before.

Author: xwest
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import UnboundVariableError
from ..lexer.tokens import SourceLocation


class _Unbound:
    """Marker for 'no binding existed' in an undo log."""

    def __repr__(self) -> str:
        return "<unbound>"


UNBOUND = _Unbound()


class UndoLog:
    """Prior bindings recorded by ScopeManager.bind, oldest first."""

    def __init__(self):
        self.entries: List[Tuple[str, Any]] = []

    def record(self, name: str, previous: Any):
        self.entries.append((name, previous))

    def __len__(self) -> int:
        return len(self.entries)


class ScopeManager:
    """
    Name to storage-handle mapping with shadow/restore semantics.
    """

    def __init__(self):
        self._bindings: Dict[str, Any] = {}

    def bind(self, name: str, handle: Any, undo: UndoLog):
        """Bind ``name`` to ``handle``, remembering the shadowed binding."""
        undo.record(name, self._bindings.get(name, UNBOUND))
        self._bindings[name] = handle

    def current_handle(self, name: str, location: Optional[SourceLocation] = None) -> Any:
        """
        Return the active binding for ``name``.

        Raises:
            UnboundVariableError: If the name is not bound
        """
        try:
            return self._bindings[name]
        except KeyError:
            raise UnboundVariableError(name, location,
                                       suggestions=self._similar_names(name)) from None

    def lookup(self, name: str) -> Optional[Any]:
        return self._bindings.get(name)

    def is_bound(self, name: str) -> bool:
        return name in self._bindings

    def unwind(self, undo: UndoLog):
        """Restore every binding recorded in ``undo``, newest first."""
        while undo.entries:
            name, previous = undo.entries.pop()
            if previous is UNBOUND:
                self._bindings.pop(name, None)
            else:
                self._bindings[name] = previous

    def reset(self):
        """Drop all bindings."""
        self._bindings.clear()

    @contextmanager
    def frame(self) -> Iterator[UndoLog]:
        """Yield a fresh undo log and unwind it on exit, even on failure."""
        undo = UndoLog()
        try:
            yield undo
        finally:
            self.unwind(undo)

    def names(self) -> List[str]:
        return list(self._bindings)

    def _similar_names(self, name: str) -> Optional[List[str]]:
        """Bound names that share a first letter with ``name``."""
        similar = [bound for bound in self._bindings if bound[:1] == name[:1]]
        return similar or None

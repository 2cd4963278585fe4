"""
Binary operator precedence table.

The parser consults this table on every binary-operator decision, and the
code generator adds to it whenever a 'def binary...' is compiled, so new
operators take part in parsing as soon as their definition is processed.

Author: xwest
"""

from typing import Dict, Iterator, Mapping, Optional


# 1 is the lowest precedence
DEFAULT_PRECEDENCES: Dict[str, int] = {
    '=': 2,
    '<': 10,
    '+': 20,
    '-': 30,
    '*': 40,  # highest
}

# Returned for anything that is not a declared binary operator
NOT_AN_OPERATOR = -1


class OperatorTable:
    """Mutable mapping from operator character to binary precedence."""

    def __init__(self, precedences: Optional[Mapping[str, int]] = None):
        if precedences is None:
            precedences = DEFAULT_PRECEDENCES
        self._precedences: Dict[str, int] = dict(precedences)

    def precedence(self, symbol: Optional[str]) -> int:
        """
        Look up the precedence of a binary operator.

        Unknown symbols and non-positive entries give NOT_AN_OPERATOR.
        """
        if symbol is None:
            return NOT_AN_OPERATOR
        precedence = self._precedences.get(symbol, 0)
        if precedence <= 0:
            return NOT_AN_OPERATOR
        return precedence

    def install(self, symbol: str, precedence: int):
        """Install (or overwrite) a binary operator."""
        if len(symbol) != 1:
            raise ValueError(f"operator symbol must be a single character, got {symbol!r}")
        self._precedences[symbol] = precedence

    def is_binary_operator(self, symbol: str) -> bool:
        return self.precedence(symbol) != NOT_AN_OPERATOR

    def snapshot(self) -> Dict[str, int]:
        """Copy of the current table."""
        return dict(self._precedences)

    def __contains__(self, symbol: str) -> bool:
        return self.is_binary_operator(symbol)

    def __iter__(self) -> Iterator[str]:
        return iter(self._precedences)

    def __len__(self) -> int:
        return len(self._precedences)

    def __repr__(self) -> str:
        return f"OperatorTable({self._precedences!r})"

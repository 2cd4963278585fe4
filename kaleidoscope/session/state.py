"""
Mutable state shared by the parser and code generator for one session.

Author: xwest
"""

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from ..parser.ast_nodes import Prototype
from ..parser.operators import OperatorTable
from ..codegen.scope import ScopeManager


@dataclass
class SessionState:
    """
    Operator table, prototype registry and scope bindings.

    Created at session start and discarded with the session; two sessions
    never share state.
    """
    operators: OperatorTable = field(default_factory=OperatorTable)
    prototypes: Dict[str, Prototype] = field(default_factory=dict)
    scope: ScopeManager = field(default_factory=ScopeManager)

    @classmethod
    def create(cls, precedences: Optional[Mapping[str, int]] = None) -> 'SessionState':
        return cls(operators=OperatorTable(precedences))

    def lookup_prototype(self, name: str) -> Optional[Prototype]:
        return self.prototypes.get(name)

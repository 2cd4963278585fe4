"""
Native runtime library callable from Kaleidoscope code.

Each function takes and returns a double, so it can be declared with
'extern' and called like any other function:

    extern putchard(x);
    extern printd(x);

The callbacks are ctypes function pointers whose addresses are published
with llvmlite's add_symbol, which the JIT searches when resolving calls.
"""

import ctypes
import math
import sys
from typing import Callable, Dict, Optional, TextIO

import llvmlite.binding as llvm


# Signature shared by every runtime function: double (*)(double)
RUNTIME_FUNCTYPE = ctypes.CFUNCTYPE(ctypes.c_double, ctypes.c_double)


class RuntimeLibrary:
    """
    Runtime functions bound to an output stream.

    The ctypes callbacks are owned here and must stay alive for as long as
    compiled code may call them.
    """

    def __init__(self, output: Optional[TextIO] = None):
        self.output = output if output is not None else sys.stdout
        self._functions: Dict[str, Callable[[float], float]] = {
            "putchard": self.putchard,
            "printd": self.printd,
        }
        self._callbacks = {name: RUNTIME_FUNCTYPE(func)
                           for name, func in self._functions.items()}

    def putchard(self, x: float) -> float:
        """putchar that takes a double and returns 0."""
        if math.isfinite(x):
            self.output.write(chr(int(x) % 256))
        return 0.0

    def printd(self, x: float) -> float:
        """printf that takes a double, prints it as "%f\\n" and returns 0."""
        self.output.write("%f\n" % x)
        return 0.0

    def register(self):
        """Publish the callbacks to the process-wide symbol table."""
        for name, callback in self._callbacks.items():
            llvm.add_symbol(name, ctypes.cast(callback, ctypes.c_void_p).value)

    def address_of(self, name: str) -> Optional[int]:
        callback = self._callbacks.get(name)
        if callback is None:
            return None
        return ctypes.cast(callback, ctypes.c_void_p).value

    @property
    def names(self):
        return list(self._functions)

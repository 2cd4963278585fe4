"""
LLVM backend for Kaleidoscope.

Builds LLVM IR with llvmlite.ir into compilation units, and compiles
finished units with llvmlite.binding's MCJIT engine. The code generator
only talks to this class through its emit_*/declare/block methods, so
it never sees llvmlite types directly.

Every value in the language is a double. Units that have been executed
stay loaded in the engine, so later units can call the functions they
define.

Author: xwest
"""

import ctypes
from enum import Enum
from typing import List, Optional, Sequence, Set, Tuple

import llvmlite.ir as ir
import llvmlite.binding as llvm

from .errors import BackendError
from .runtime import RuntimeLibrary


DOUBLE = ir.DoubleType()


class OptimizationLevel(Enum):
    """JIT optimization levels"""
    O0 = 0  # No optimization (fast compilation)
    O1 = 1  # Basic optimization
    O2 = 2  # Standard optimization (default)
    O3 = 3  # Aggressive optimization (slow compilation)


class CompilationUnit:
    """
    One LLVM module accumulating definitions until it is finalized.

    A unit is owned by the session driver until it is handed to
    finalize_and_execute_anonymous; after that it must not be changed.
    """

    def __init__(self, name: str, triple: str, data_layout: str):
        self.module = ir.Module(name=name)
        self.module.triple = triple
        self.module.data_layout = data_layout
        self.finalized = False

    @property
    def name(self) -> str:
        return self.module.name

    def get_function(self, name: str) -> Optional[ir.Function]:
        value = self.module.globals.get(name)
        return value if isinstance(value, ir.Function) else None

    def functions(self) -> List[ir.Function]:
        return [value for value in self.module.globals.values()
                if isinstance(value, ir.Function)]

    def defined_names(self) -> List[str]:
        return [fn.name for fn in self.functions() if not fn.is_declaration]

    def called_declarations(self) -> List[ir.Function]:
        """Declarations that some instruction in this unit calls."""
        called = []
        for fn in self.functions():
            for block in fn.blocks:
                for instr in block.instructions:
                    if not isinstance(instr, ir.CallInstr):
                        continue
                    callee = instr.callee
                    if isinstance(callee, ir.Function) and callee.is_declaration \
                            and callee not in called:
                        called.append(callee)
        return called

    def __str__(self) -> str:
        return str(self.module)


class LLVMBackend:
    """
    LLVM backend for Kaleidoscope.

    Handles:
    - IR construction for the code generator
    - Verification and optimization passes
    - JIT execution of anonymous top-level functions
    - Object code generation
    """

    def __init__(self, optimization_level: OptimizationLevel = OptimizationLevel.O2,
                 runtime: Optional[RuntimeLibrary] = None):
        """
        Initialize the LLVM backend.

        Args:
            optimization_level: Passes to run before code is JIT compiled
            runtime: Runtime library exposed to compiled code

        Raises:
            BackendError: If the native target or the JIT cannot be set up
        """
        try:
            llvm.initialize_native_target()
            llvm.initialize_native_asmprinter()
            llvm.initialize_native_asmparser()

            self.target = llvm.Target.from_default_triple()
            # Separate machines: the engine takes ownership of the one it is given
            self.target_machine = self.target.create_target_machine(opt=optimization_level.value)
            engine_machine = self.target.create_target_machine(opt=optimization_level.value, jit=True)

            backing_module = llvm.parse_assembly("")
            self.engine = llvm.create_mcjit_compiler(backing_module, engine_machine)
        except RuntimeError as e:
            raise BackendError(
                f"Failed to initialize LLVM native target: {e}",
                code="B001"
            ) from e

        self.triple = llvm.get_process_triple()
        self.data_layout = str(self.target_machine.target_data)
        self.optimization_level = optimization_level
        self.runtime = runtime if runtime is not None else RuntimeLibrary()
        self.runtime.register()

        self.unit: Optional[CompilationUnit] = None
        self.builder: Optional[ir.IRBuilder] = None
        self.function: Optional[ir.Function] = None

        self._unit_count = 0
        self._finalized_functions: Set[str] = set()
        self._loaded_modules: List[llvm.ModuleRef] = []

    # ========================================================================
    # Values
    # ========================================================================

    def emit_constant(self, value: float) -> ir.Constant:
        return ir.Constant(DOUBLE, float(value))

    def emit_load(self, storage: ir.AllocaInstr, name: str = "") -> ir.Value:
        return self.builder.load(storage, name)

    def emit_store(self, value: ir.Value, storage: ir.AllocaInstr):
        self.builder.store(value, storage)

    def emit_arithmetic(self, op: str, lhs: ir.Value, rhs: ir.Value) -> ir.Value:
        if op == '+':
            return self.builder.fadd(lhs, rhs, "addtmp")
        if op == '-':
            return self.builder.fsub(lhs, rhs, "subtmp")
        if op == '*':
            return self.builder.fmul(lhs, rhs, "multmp")
        raise ValueError(f"not a built-in arithmetic operator: {op!r}")

    def emit_compare_less_than(self, lhs: ir.Value, rhs: ir.Value) -> ir.Value:
        return self.builder.fcmp_unordered('<', lhs, rhs, "cmptmp")

    def emit_bool_to_scalar(self, value: ir.Value) -> ir.Value:
        return self.builder.uitofp(value, DOUBLE, "booltmp")

    def emit_truth_test(self, value: ir.Value, name: str = "cond") -> ir.Value:
        """Compare a double against 0.0, giving an i1."""
        return self.builder.fcmp_ordered('!=', value, self.emit_constant(0.0), name)

    # ========================================================================
    # Functions and storage
    # ========================================================================

    def declare_function(self, name: str, params: Sequence[str]) -> ir.Function:
        """Declare ``double name(double, ...)`` in the open unit."""
        function_type = ir.FunctionType(DOUBLE, [DOUBLE] * len(params))
        function = ir.Function(self.unit.module, function_type, name)
        for arg, param in zip(function.args, params):
            arg.name = param
        return function

    def lookup_function(self, name: str) -> Optional[ir.Function]:
        """Find a function declared or defined in the open unit."""
        return self.unit.get_function(name)

    def has_body(self, function: ir.Function) -> bool:
        return not function.is_declaration

    def is_defined(self, name: str) -> bool:
        """Whether ``name`` has a body in the open unit or any finalized unit."""
        if name in self._finalized_functions:
            return True
        function = self.lookup_function(name)
        return function is not None and self.has_body(function)

    def param_count(self, function: ir.Function) -> int:
        return len(function.args)

    def params(self, function: ir.Function) -> Tuple[ir.Argument, ...]:
        return function.args

    def begin_function_body(self, function: ir.Function):
        """Create the entry block and position the builder in it."""
        block = function.append_basic_block("entry")
        self.function = function
        self.builder = ir.IRBuilder(block)

    def allocate_local(self, name: str) -> ir.AllocaInstr:
        """Allocate a double slot at the top of the entry block."""
        # The builder always appends, so it can go back to the end of its block
        block = self.builder.block
        self.builder.position_at_start(self.function.entry_basic_block)
        storage = self.builder.alloca(DOUBLE, name=name)
        self.builder.position_at_end(block)
        return storage

    def emit_return(self, value: ir.Value):
        self.builder.ret(value)
        self.function = None
        self.builder = None

    def abandon_function(self, function: ir.Function):
        """
        Drop a partially generated body.

        The function is left as a plain declaration so that calls already
        emitted against it stay well formed.
        """
        del function.blocks[:]
        if self.function is function:
            self.function = None
            self.builder = None

    def emit_call(self, function: ir.Function, args: Sequence[ir.Value]) -> ir.Value:
        return self.builder.call(function, list(args), "calltmp")

    # ========================================================================
    # Control flow
    # ========================================================================

    def new_block(self, label: str) -> ir.Block:
        return self.function.append_basic_block(label)

    def set_insertion_block(self, block: ir.Block):
        self.builder.position_at_end(block)

    @property
    def insertion_block(self) -> ir.Block:
        return self.builder.block

    def emit_conditional_branch(self, condition: ir.Value, if_true: ir.Block,
                                if_false: ir.Block):
        self.builder.cbranch(condition, if_true, if_false)

    def emit_branch(self, target: ir.Block):
        self.builder.branch(target)

    def emit_value_join(self, pairs: Sequence[Tuple[ir.Value, ir.Block]],
                        name: str = "iftmp") -> ir.Value:
        phi = self.builder.phi(DOUBLE, name)
        for value, block in pairs:
            phi.add_incoming(value, block)
        return phi

    # ========================================================================
    # Units
    # ========================================================================

    def open_unit(self) -> CompilationUnit:
        """Start a fresh unit; later declarations and definitions go into it."""
        self._unit_count += 1
        self.unit = CompilationUnit(f"kaleidoscope.unit{self._unit_count}",
                                    self.triple, self.data_layout)
        self.builder = None
        self.function = None
        return self.unit

    def finalize_and_execute_anonymous(self, unit: CompilationUnit, name: str) -> float:
        """
        Compile ``unit``, load it into the JIT and call ``name``.

        ``name`` must be a zero-argument function defined in the unit. The
        unit stays loaded afterwards so its definitions remain callable.

        Raises:
            BackendError: If the IR is invalid or a called function can't be found
        """
        if unit.finalized:
            raise BackendError(f"unit {unit.name} was already finalized", code="B002")
        unit.finalized = True

        self._check_resolvable(unit)
        module = self._compile(unit)

        self.runtime.register()
        self.engine.add_module(module)
        self.engine.finalize_object()
        self.engine.run_static_constructors()
        self._loaded_modules.append(module)
        self._finalized_functions.update(unit.defined_names())

        address = self.engine.get_function_address(name)
        if not address:
            raise BackendError(f"entry point '{name}' not found in {unit.name}", code="B003")

        entry = ctypes.CFUNCTYPE(ctypes.c_double)(address)
        return entry()

    def emit_object(self, unit: CompilationUnit, path: str):
        """
        Write ``unit`` as a native object file.

        Raises:
            BackendError: If the unit is invalid or the file can't be written
        """
        module = self._compile(unit)
        try:
            with open(path, 'wb') as f:
                f.write(self.target_machine.emit_object(module))
        except (OSError, RuntimeError) as e:
            raise BackendError(f"Could not write object file '{path}': {e}", code="B004") from e

    def print_llvm_ir(self, value) -> str:
        """
        Get the LLVM IR of a unit or function as a string.
        """
        return str(value)

    def _check_resolvable(self, unit: CompilationUnit):
        """Every called declaration must be defined somewhere the JIT can see."""
        for function in unit.called_declarations():
            name = function.name
            if name in self._finalized_functions:
                continue
            if self.runtime.address_of(name) is not None:
                continue
            if llvm.address_of_symbol(name):
                continue
            raise BackendError(
                f"Unresolved external function '{name}'",
                code="B003",
                help_text="Define it with 'def', or declare a runtime function such as printd."
            )

    def _compile(self, unit: CompilationUnit) -> 'llvm.ModuleRef':
        """Parse, verify and optimize the unit's IR."""
        try:
            module = llvm.parse_assembly(str(unit.module))
            module.verify()
        except RuntimeError as e:
            raise BackendError(f"Invalid IR in {unit.name}: {e}", code="B002") from e

        self._optimize(module)
        return module

    def _optimize(self, module: 'llvm.ModuleRef'):
        """Run the function pass pipeline over every defined function."""
        level = self.optimization_level.value
        if level == 0:
            return

        tuning = llvm.create_pipeline_tuning_options(speed_level=level)
        pass_builder = llvm.create_pass_builder(self.target_machine, tuning)

        fpm = llvm.create_new_function_pass_manager()
        # Promote allocas to registers
        fpm.add_sroa_pass()
        fpm.add_instruction_combine_pass()
        fpm.add_reassociate_pass()
        fpm.add_new_gvn_pass()
        fpm.add_simplify_cfg_pass()

        if level >= 2:
            fpm.add_sccp_pass()
            fpm.add_dead_code_elimination_pass()

        if level >= 3:
            fpm.add_aggressive_instcombine_pass()
            fpm.add_tail_call_elimination_pass()
            fpm.add_simplify_cfg_pass()

        for function in module.functions:
            if not function.is_declaration:
                fpm.run(function, pass_builder)

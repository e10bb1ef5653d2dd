"""CPURegistry: Verified CPU primitives for the virtual CPU.

Each decoded instruction names a registry key; the registry maps the key
to a primitive that applies the instruction's effect to the machine state.

Registry Keys:
    OP_LOAD: Load immediate value into register
    OP_STORE: Store register into memory (out-of-range address skipped)
    OP_ADD: Add second register into first, set flags
    OP_SUB: Subtract second register from first, set flags
    OP_MUL: Multiply first register by second, set flags
    OP_DIV: Truncating divide first register by second, set flags;
            halts on division by zero
    OP_JMP: Unconditional jump to address
    OP_JEQ: Jump if two registers are equal
    OP_JNE: Jump if two registers differ
    OP_CMP: Set flags from the difference of two registers
    OP_PRINT: Emit a register value to the output sink
    OP_HALT: Stop execution

Primitives have the signature (state, params) -> Optional[int]: they
mutate the state in place and return a jump target, or None to let the
registry advance the program counter by the decoded instruction width.
"""

import logging
from typing import Dict, Callable, Any, Optional

from .state import MachineState, to_int32
from .decode import DecodeResult


logger = logging.getLogger(__name__)

Primitive = Callable[[MachineState, Dict[str, Any]], Optional[int]]


class CPURegistry:
    """Verified registry of CPU primitives.

    The registry is frozen after initialization to ensure
    no runtime modifications can occur. It holds no machine state, so one
    instance serves every Machine.

    Attributes:
        _primitives: Dictionary mapping operation keys to handler functions
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self):
        """Initialize registry with all CPU primitives."""
        self._primitives: Dict[str, Primitive] = {}
        self._frozen = False
        self._register_all_primitives()
        self.freeze()

    def _register_all_primitives(self) -> None:
        """Register all CPU operation primitives."""
        # Data movement
        self.register("OP_LOAD", self._op_load)
        self.register("OP_STORE", self._op_store)

        # Arithmetic
        self.register("OP_ADD", self._op_add)
        self.register("OP_SUB", self._op_sub)
        self.register("OP_MUL", self._op_mul)
        self.register("OP_DIV", self._op_div)

        # Comparison
        self.register("OP_CMP", self._op_cmp)

        # Control flow
        self.register("OP_JMP", self._op_jmp)
        self.register("OP_JEQ", self._op_jeq)
        self.register("OP_JNE", self._op_jne)

        # Special
        self.register("OP_PRINT", self._op_print)
        self.register("OP_HALT", self._op_halt)

    def register(self, key: str, handler: Primitive) -> None:
        """Register a primitive operation.

        Args:
            key: Operation key (e.g., "OP_ADD")
            handler: Function that takes (state, params) and mutates state

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If key already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register primitives: registry is frozen")
        if key in self._primitives:
            raise ValueError(f"Primitive already registered: {key}")
        self._primitives[key] = handler

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if registry is frozen."""
        return self._frozen

    def get_valid_keys(self) -> set:
        """Get set of all valid operation keys."""
        return set(self._primitives.keys())

    def execute(self, state: MachineState, decoded: DecodeResult) -> MachineState:
        """Execute a decoded instruction against the state.

        Advances the PC by the instruction width unless the primitive
        jumped or the instruction does not advance, then counts the cycle.

        Args:
            state: Machine state, mutated in place
            decoded: Valid decode result for the instruction at state.pc

        Returns:
            The same state object

        Raises:
            KeyError: If key not in registry
        """
        if decoded.key not in self._primitives:
            raise KeyError(f"Unknown operation key: {decoded.key}")

        handler = self._primitives[decoded.key]
        target = handler(state, decoded.params)

        if target is not None:
            state.pc = target
        elif decoded.advances:
            state.pc += decoded.width

        state.cycle_count += 1
        return state

    # =========================================================================
    # Data Movement Primitives
    # =========================================================================

    def _op_load(self, state: MachineState, params: Dict[str, Any]) -> None:
        """LOAD reg, imm - Load immediate value into register. Flags untouched."""
        state.set_register(params["dest"], params["value"])

    def _op_store(self, state: MachineState, params: Dict[str, Any]) -> None:
        """STORE reg, addr - Write register to memory[addr] if addr is in range."""
        value = state.get_register(params["src"])
        if not state.write(params["addr"], value):
            logger.debug("STORE to out-of-range address %d skipped", params["addr"])

    # =========================================================================
    # Arithmetic Primitives
    # =========================================================================

    def _op_add(self, state: MachineState, params: Dict[str, Any]) -> None:
        """ADD reg1, reg2 - reg1 := reg1 + reg2, flags from result."""
        dest = params["dest"]
        result = to_int32(state.get_register(dest) + state.get_register(params["src"]))
        state.set_register(dest, result)
        state.update_flags(result)

    def _op_sub(self, state: MachineState, params: Dict[str, Any]) -> None:
        """SUB reg1, reg2 - reg1 := reg1 - reg2, flags from result."""
        dest = params["dest"]
        result = to_int32(state.get_register(dest) - state.get_register(params["src"]))
        state.set_register(dest, result)
        state.update_flags(result)

    def _op_mul(self, state: MachineState, params: Dict[str, Any]) -> None:
        """MUL reg1, reg2 - reg1 := reg1 * reg2, flags from result."""
        dest = params["dest"]
        result = to_int32(state.get_register(dest) * state.get_register(params["src"]))
        state.set_register(dest, result)
        state.update_flags(result)

    def _op_div(self, state: MachineState, params: Dict[str, Any]) -> None:
        """DIV reg1, reg2 - reg1 := reg1 / reg2, truncating toward zero.

        A zero divisor halts the machine and leaves reg1 and the flags
        unchanged; the PC still advances past the instruction.
        """
        dest = params["dest"]
        divisor = state.get_register(params["src"])
        if divisor == 0:
            state.running = False
            return

        result = to_int32(_trunc_div(state.get_register(dest), divisor))
        state.set_register(dest, result)
        state.update_flags(result)

    # =========================================================================
    # Comparison Primitives
    # =========================================================================

    def _op_cmp(self, state: MachineState, params: Dict[str, Any]) -> None:
        """CMP reg1, reg2 - Set flags from reg1 - reg2; registers unchanged."""
        diff = to_int32(state.get_register(params["src1"]) - state.get_register(params["src2"]))
        state.update_flags(diff)

    # =========================================================================
    # Control Flow Primitives
    # =========================================================================

    def _op_jmp(self, state: MachineState, params: Dict[str, Any]) -> int:
        """JMP addr - Unconditional jump. The target is not range checked."""
        return params["addr"]

    def _op_jeq(self, state: MachineState, params: Dict[str, Any]) -> Optional[int]:
        """JEQ reg1, reg2, addr - Jump if reg1 == reg2."""
        if state.get_register(params["src1"]) == state.get_register(params["src2"]):
            return params["addr"]
        return None

    def _op_jne(self, state: MachineState, params: Dict[str, Any]) -> Optional[int]:
        """JNE reg1, reg2, addr - Jump if reg1 != reg2."""
        if state.get_register(params["src1"]) != state.get_register(params["src2"]):
            return params["addr"]
        return None

    # =========================================================================
    # Special Primitives
    # =========================================================================

    def _op_print(self, state: MachineState, params: Dict[str, Any]) -> None:
        """PRINT reg - No state change; the Machine forwards the value to its sink."""
        return None

    def _op_halt(self, state: MachineState, params: Dict[str, Any]) -> None:
        """HALT - Stop execution."""
        state.running = False


def _trunc_div(a: int, b: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(a) // abs(b)
    return -quotient if (a < 0) != (b < 0) else quotient


# Singleton registry instance
_registry: Optional[CPURegistry] = None


def get_registry() -> CPURegistry:
    """Get the singleton CPU registry instance.

    Returns:
        The frozen CPURegistry instance
    """
    global _registry
    if _registry is None:
        _registry = CPURegistry()
    return _registry

"""MachineState: mutable state representation for the virtual CPU.

State Components:
    - Memory: fixed-length list of signed 32-bit cells (program and data)
    - Registers: AX, BX, CX, DX, SP
    - PC: Program counter (address of the next opcode cell)
    - Flags: ZF (zero), CF (carry)
    - Running: Whether the machine keeps fetching instructions
    - Cycle count: Instructions executed since the last program load

The state is owned by exactly one Machine. Snapshots give the trace
an independent copy of everything except memory.
"""

from dataclasses import dataclass, field
from typing import Dict, List
from copy import deepcopy


DEFAULT_MEMORY_SIZE = 1024

# Register codes 0..4 in encoded instructions map onto these, in order
REGISTER_NAMES = ("AX", "BX", "CX", "DX", "SP")

# 32-bit signed integer bounds
INT32_MIN = -(2**31)
INT32_MAX = (2**31) - 1

# Carry is raised outside this closed range
CARRY_MIN = -32768
CARRY_MAX = 65535


def register_name(code: int) -> str:
    """Resolve an encoded register code to its register name.

    Codes outside 0..4 resolve to AX.
    """
    if 0 <= code < len(REGISTER_NAMES):
        return REGISTER_NAMES[code]
    return "AX"


def to_int32(value: int) -> int:
    """Wrap an integer to 32-bit two's complement."""
    value &= 0xFFFFFFFF
    if value > INT32_MAX:
        value -= 1 << 32
    return value


@dataclass
class MachineState:
    """Complete virtual CPU state.

    Attributes:
        memory: Memory cells, length fixed at construction
        registers: Dictionary mapping register names to signed values
        pc: Program counter
        flags: Dictionary of CPU flags (ZF=zero, CF=carry)
        running: Whether execution should continue
        cycle_count: Number of instructions executed since load
    """
    memory: List[int] = field(default_factory=lambda: [0] * DEFAULT_MEMORY_SIZE)
    registers: Dict[str, int] = field(default_factory=lambda: {
        "AX": 0, "BX": 0, "CX": 0, "DX": 0, "SP": DEFAULT_MEMORY_SIZE - 1
    })
    pc: int = 0
    flags: Dict[str, bool] = field(default_factory=lambda: {
        "ZF": False,  # Zero flag
        "CF": False   # Carry flag
    })
    running: bool = False
    cycle_count: int = 0

    @property
    def memory_size(self) -> int:
        return len(self.memory)

    def in_range(self, address: int) -> bool:
        return 0 <= address < len(self.memory)

    def read(self, address: int) -> int:
        """Read a memory cell; addresses outside memory read as 0."""
        if self.in_range(address):
            return self.memory[address]
        return 0

    def write(self, address: int, value: int) -> bool:
        """Write a memory cell.

        Returns:
            False (and leaves memory untouched) if address is out of range
        """
        if not self.in_range(address):
            return False
        self.memory[address] = to_int32(value)
        return True

    def get_register(self, reg: str) -> int:
        """Get value of a register.

        Args:
            reg: Register name (case insensitive)

        Returns:
            Register value, or 0 for an unknown name
        """
        return self.registers.get(reg.upper(), 0)

    def set_register(self, reg: str, value: int) -> None:
        """Set a register, wrapping the value to 32 bits.

        Raises:
            KeyError: If register doesn't exist
        """
        reg_upper = reg.upper()
        if reg_upper not in self.registers:
            raise KeyError(f"Invalid register: {reg}")
        self.registers[reg_upper] = to_int32(value)

    def update_flags(self, result: int) -> None:
        """Derive ZF and CF from an arithmetic or compare result."""
        self.flags["ZF"] = result == 0
        self.flags["CF"] = result > CARRY_MAX or result < CARRY_MIN

    def snapshot(self) -> dict:
        """Create an independent snapshot of current state for tracing.

        Returns:
            Dictionary containing copies of all state components
        """
        return {
            "registers": deepcopy(self.registers),
            "pc": self.pc,
            "flags": deepcopy(self.flags),
            "running": self.running,
            "cycle_count": self.cycle_count,
            # Memory excluded; read it through Machine.get_memory
        }

    def dump_registers(self) -> Dict[str, int]:
        """Get a copy of all register values."""
        return dict(self.registers)

    def __str__(self) -> str:
        """Human-readable state representation."""
        regs = " ".join(f"{name}={self.registers[name]}" for name in REGISTER_NAMES)
        flags = " ".join(f"{k}={int(v)}" for k, v in self.flags.items())
        status = "RUNNING" if self.running else "HALTED"
        return f"[Cycle {self.cycle_count}] PC={self.pc} {regs} {flags} {status}"


def create_initial_state(memory_size: int = DEFAULT_MEMORY_SIZE) -> MachineState:
    """Create the power-on state for a machine.

    Args:
        memory_size: Number of memory cells

    Returns:
        Zeroed memory, zeroed registers except SP=memory_size-1,
        PC=0, not running, flags clear
    """
    if memory_size < 0:
        raise ValueError(f"memory_size must not be negative, got {memory_size}")
    return MachineState(
        memory=[0] * memory_size,
        registers={"AX": 0, "BX": 0, "CX": 0, "DX": 0, "SP": memory_size - 1},
        pc=0,
        flags={"ZF": False, "CF": False},
        running=False,
        cycle_count=0
    )

"""vcpu: a minimal virtual CPU with integer-encoded instructions.

The machine holds five registers (AX, BX, CX, DX, SP), a flat memory of
signed cells, a program counter, zero/carry flags and a run state. It
fetches integer-encoded instructions from memory, decodes them against a
fixed twelve-opcode table and applies them through a frozen registry of
primitives.

Architecture:
    MEMORY -> FETCH -> DECODE -> KEY -> REGISTRY -> EXECUTE -> STATE
               |         |        |        |
           [PC-based] [ISA table] [OP_*] [Frozen primitives]

Modules:
    state: MachineState dataclass and register/flag helpers
    decode: Opcode table, Decoder and instruction formatting
    registry: Verified CPU primitives (OP_ADD, OP_JNE, etc.)
    machine: Main Machine orchestrator
    programs: Example programs and integer program parsing
"""

__version__ = "0.1.0"
__author__ = "vcpu Project"

from .state import MachineState, DEFAULT_MEMORY_SIZE, REGISTER_NAMES
from .decode import Decoder, DecodeResult, Opcode
from .registry import CPURegistry
from .machine import Machine, ExecutionTraceEntry
from .programs import EXAMPLE_PROGRAMS, parse_program

__all__ = [
    "MachineState",
    "DEFAULT_MEMORY_SIZE",
    "REGISTER_NAMES",
    "Decoder",
    "DecodeResult",
    "Opcode",
    "CPURegistry",
    "Machine",
    "ExecutionTraceEntry",
    "EXAMPLE_PROGRAMS",
    "parse_program",
]

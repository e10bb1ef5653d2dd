"""Instruction set table and decoder for the virtual CPU.

Every instruction is an opcode cell followed by a fixed number of operand
cells. The ISA table below is the single source of truth for operand
layout and instruction width; the decoder and the program counter advance
in the registry both read it.

Architecture:
    memory[pc..pc+width) -> Decoder -> DecodeResult(key, params) -> Registry

Operand kinds:
    reg:  register code, resolved to a register name (unknown code -> AX)
    imm:  immediate integer value
    addr: absolute memory address
"""

from enum import IntEnum
from typing import Dict, Optional, Tuple
from dataclasses import dataclass, field

from .state import MachineState, register_name


class Opcode(IntEnum):
    LOAD = 1    # LOAD reg, value
    STORE = 2   # STORE reg, addr
    ADD = 3     # ADD reg1, reg2
    SUB = 4     # SUB reg1, reg2
    MUL = 5     # MUL reg1, reg2
    DIV = 6     # DIV reg1, reg2
    JMP = 7     # JMP addr
    JEQ = 8     # JEQ reg1, reg2, addr
    JNE = 9     # JNE reg1, reg2, addr
    CMP = 10    # CMP reg1, reg2
    PRINT = 11  # PRINT reg
    HALT = 12   # HALT


@dataclass(frozen=True)
class InstructionSpec:
    """Static description of one instruction.

    Attributes:
        opcode: Encoded opcode value
        key: Registry key executed for this instruction
        operands: (param name, operand kind) pairs, in encoding order
        advances: Whether the PC moves past the instruction after execution
    """
    opcode: Opcode
    key: str
    operands: Tuple[Tuple[str, str], ...] = ()
    advances: bool = True

    @property
    def mnemonic(self) -> str:
        return self.opcode.name

    @property
    def width(self) -> int:
        """Cells occupied, including the opcode cell."""
        return 1 + len(self.operands)


_BINARY = (("dest", "reg"), ("src", "reg"))
_COMPARE = (("src1", "reg"), ("src2", "reg"))

ISA: Dict[int, InstructionSpec] = {
    spec.opcode: spec for spec in (
        InstructionSpec(Opcode.LOAD, "OP_LOAD", (("dest", "reg"), ("value", "imm"))),
        InstructionSpec(Opcode.STORE, "OP_STORE", (("src", "reg"), ("addr", "addr"))),
        InstructionSpec(Opcode.ADD, "OP_ADD", _BINARY),
        InstructionSpec(Opcode.SUB, "OP_SUB", _BINARY),
        InstructionSpec(Opcode.MUL, "OP_MUL", _BINARY),
        InstructionSpec(Opcode.DIV, "OP_DIV", _BINARY),
        InstructionSpec(Opcode.JMP, "OP_JMP", (("addr", "addr"),)),
        InstructionSpec(Opcode.JEQ, "OP_JEQ", _COMPARE + (("addr", "addr"),)),
        InstructionSpec(Opcode.JNE, "OP_JNE", _COMPARE + (("addr", "addr"),)),
        InstructionSpec(Opcode.CMP, "OP_CMP", _COMPARE),
        InstructionSpec(Opcode.PRINT, "OP_PRINT", (("src", "reg"),)),
        # HALT leaves the PC on itself
        InstructionSpec(Opcode.HALT, "OP_HALT", advances=False),
    )
}

INVALID_KEY = "OP_INVALID"


@dataclass
class DecodeResult:
    """Result of instruction decode operation.

    Attributes:
        key: Operation key (e.g., "OP_ADD")
        params: Operation parameters dictionary
        valid: Whether decode succeeded
        error: Error message if decode failed
        opcode: Raw opcode value read from memory
        address: Address of the opcode cell
    """
    key: str
    params: Dict = field(default_factory=dict)
    valid: bool = True
    error: Optional[str] = None
    opcode: int = 0
    address: int = 0

    @property
    def spec(self) -> Optional[InstructionSpec]:
        return ISA.get(self.opcode) if self.valid else None

    @property
    def width(self) -> int:
        spec = self.spec
        return spec.width if spec else 1

    @property
    def advances(self) -> bool:
        spec = self.spec
        return spec.advances if spec else False


class Decoder:
    """Table-driven decoder for integer-encoded instructions."""

    VALID_KEYS = frozenset(spec.key for spec in ISA.values())

    def decode(self, state: MachineState) -> DecodeResult:
        """Decode the instruction at the program counter.

        Operand cells past the end of memory read as 0.

        Args:
            state: Machine state; only read

        Returns:
            DecodeResult with registry key and resolved parameters, or an
            invalid OP_INVALID result for an unknown opcode
        """
        pc = state.pc
        opcode = state.read(pc)
        spec = ISA.get(opcode)

        if spec is None:
            return DecodeResult(
                key=INVALID_KEY,
                params={"raw": opcode},
                valid=False,
                error=f"Unknown instruction: {opcode}",
                opcode=opcode,
                address=pc
            )

        params = {}
        for offset, (name, kind) in enumerate(spec.operands, start=1):
            raw = state.read(pc + offset)
            params[name] = register_name(raw) if kind == "reg" else raw

        return DecodeResult(
            key=spec.key,
            params=params,
            valid=True,
            opcode=opcode,
            address=pc
        )


def format_instruction(result: DecodeResult) -> str:
    """Render a decoded instruction as assembly-like text.

    Examples: "LOAD AX, 42", "STORE AX, [5]", "JNE AX, CX, 9".
    """
    spec = result.spec
    if spec is None:
        return f"??? {result.opcode}"

    parts = []
    for name, kind in spec.operands:
        value = result.params[name]
        if kind == "addr" and spec.opcode == Opcode.STORE:
            parts.append(f"[{value}]")
        else:
            parts.append(str(value))

    if not parts:
        return spec.mnemonic
    return f"{spec.mnemonic} {', '.join(parts)}"

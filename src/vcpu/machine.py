"""Machine: the virtual CPU's fetch-decode-execute orchestrator.

Execution pipeline:
    MEMORY -> FETCH -> DECODE -> KEY -> REGISTRY -> EXECUTE -> STATE

A Machine owns its memory, registers, program counter, flags and run
state. Abnormal conditions (unknown opcode, division by zero, program
counter outside memory) halt the machine instead of raising; the reason
is kept in the trace and in ``halt_reason``.
"""

import logging
from collections import deque
from typing import Callable, Deque, Dict, Iterable, List, Optional
from dataclasses import dataclass, field

from .state import (
    DEFAULT_MEMORY_SIZE,
    REGISTER_NAMES,
    MachineState,
    create_initial_state,
    to_int32,
)
from .registry import CPURegistry, get_registry
from .decode import Decoder, DecodeResult, Opcode, format_instruction


logger = logging.getLogger(__name__)

OutputCallback = Callable[[str, int], None]

# Most recent trace entries kept per machine
DEFAULT_TRACE_LIMIT = 1000


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Attributes:
        cycle: Cycle count before the instruction ran
        address: PC the instruction was fetched from
        instruction: Rendered instruction text
        decode_result: Result from the decoder (None if nothing was fetched)
        pre_state: State snapshot before execution (empty when not recording)
        post_state: State snapshot after execution (empty when not recording)
        error: Reason for an abnormal halt, if any
    """
    cycle: int
    address: int
    instruction: str
    decode_result: Optional[DecodeResult]
    pre_state: dict = field(default_factory=dict)
    post_state: dict = field(default_factory=dict)
    error: Optional[str] = None


class Machine:
    """Minimal virtual CPU.

    Attributes:
        state: Current machine state
        decoder: Table-driven instruction decoder
        registry: CPURegistry with the instruction primitives
        trace: The most recent execution trace entries since the last load
        output: (register, value) pairs emitted by PRINT since the last load
        max_cycles: Default cycle limit for run(); None means unbounded
        halt_reason: Text of the most recent abnormal halt, or None
    """

    def __init__(
        self,
        memory_size: int = DEFAULT_MEMORY_SIZE,
        max_cycles: Optional[int] = None,
        output_callback: Optional[OutputCallback] = None,
        record_trace: bool = True,
        trace_limit: int = DEFAULT_TRACE_LIMIT
    ):
        """Initialize the machine.

        Args:
            memory_size: Number of memory cells
            max_cycles: Default cycle limit for run()
            output_callback: Called with (register, value) on every PRINT
            record_trace: Keep trace entries and their state snapshots
            trace_limit: Number of most recent trace entries kept

        Raises:
            ValueError: If memory_size is negative or trace_limit < 1
        """
        if trace_limit < 1:
            raise ValueError(f"trace_limit must be at least 1, got {trace_limit}")
        self.state: MachineState = create_initial_state(memory_size)
        self.decoder = Decoder()
        self.registry: CPURegistry = get_registry()
        self.trace: Deque[ExecutionTraceEntry] = deque(maxlen=trace_limit)
        self.output: List[tuple] = []
        self.max_cycles = max_cycles
        self.output_callback = output_callback
        self.record_trace = record_trace
        self.halt_reason: Optional[str] = None

    def load_program(self, program: Iterable[int]) -> None:
        """Copy a program into memory from address 0 and start the machine.

        Cells beyond the memory size are dropped. Registers and flags
        keep their current values.

        Args:
            program: Integer-encoded instruction stream

        Raises:
            TypeError: If a cell is not an int; memory is left untouched
        """
        program = list(program)
        for address, value in enumerate(program):
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(
                    f"Program cell {address} must be int, got {type(value).__name__}"
                )

        state = self.state
        count = min(len(program), state.memory_size)
        for address in range(count):
            value = to_int32(program[address])
            if value != program[address]:
                logger.warning("Cell %d: %d wrapped to 32 bits as %d",
                               address, program[address], value)
            state.memory[address] = value
        if count < len(program):
            logger.warning("Program truncated: %d of %d cells fit in memory",
                           count, len(program))

        state.pc = 0
        state.running = True
        state.cycle_count = 0
        self.trace.clear()
        self.output = []
        self.halt_reason = None
        logger.info("Loaded %d cells", count)

    def step(self) -> Optional[ExecutionTraceEntry]:
        """Execute a single instruction cycle.

        Performs: FETCH -> DECODE -> EXECUTE

        Returns:
            ExecutionTraceEntry for the cycle, or None if the machine was
            not running
        """
        state = self.state
        if not state.running:
            return None

        pc = state.pc
        cycle = state.cycle_count
        pre_state = state.snapshot() if self.record_trace else {}

        # FETCH: PC left memory (end of memory or a wild jump)
        if not state.in_range(pc):
            state.running = False
            return self._halt_abnormally(
                cycle, pc, "<PC OUT OF RANGE>", None, pre_state, f"PC out of range: {pc}"
            )

        # DECODE
        decoded = self.decoder.decode(state)
        if not decoded.valid:
            state.running = False
            return self._halt_abnormally(
                cycle, pc, format_instruction(decoded), decoded, pre_state, decoded.error
            )

        # EXECUTE
        text = format_instruction(decoded)
        logger.debug("PC=%d: %s", pc, text)
        self.registry.execute(state, decoded)

        error = None
        if decoded.opcode == Opcode.DIV and not state.running:
            error = "Division by zero"
            self.halt_reason = error
            logger.warning("Division by zero at PC=%d", pc)
        elif decoded.opcode == Opcode.PRINT:
            reg = decoded.params["src"]
            self._emit(reg, state.get_register(reg))
        elif decoded.opcode == Opcode.HALT:
            logger.info("HALT at PC=%d after %d cycles", pc, state.cycle_count)

        return self._record(cycle, pc, text, decoded, pre_state, error)

    def run(self, max_cycles: Optional[int] = None) -> List[ExecutionTraceEntry]:
        """Step until the machine halts.

        If a cycle limit is in force and reached, stepping stops with the
        machine still running; callers check is_running().

        Args:
            max_cycles: Override the instance cycle limit for this call

        Returns:
            The most recent trace entries since the last load
        """
        limit = max_cycles if max_cycles is not None else self.max_cycles

        while self.state.running:
            if limit is not None and self.state.cycle_count >= limit:
                logger.warning("Cycle limit (%d) reached at PC=%d", limit, self.state.pc)
                break
            self.step()

        return list(self.trace)

    def _emit(self, reg: str, value: int) -> None:
        self.output.append((reg, value))
        if self.output_callback is not None:
            self.output_callback(reg, value)

    def _halt_abnormally(
        self,
        cycle: int,
        pc: int,
        text: str,
        decoded: Optional[DecodeResult],
        pre_state: dict,
        error: Optional[str]
    ) -> ExecutionTraceEntry:
        self.halt_reason = error
        logger.warning("Halted at PC=%d: %s", pc, error)
        return self._record(cycle, pc, text, decoded, pre_state, error)

    def _record(
        self,
        cycle: int,
        pc: int,
        text: str,
        decoded: Optional[DecodeResult],
        pre_state: dict,
        error: Optional[str]
    ) -> ExecutionTraceEntry:
        entry = ExecutionTraceEntry(
            cycle=cycle,
            address=pc,
            instruction=text,
            decode_result=decoded,
            pre_state=pre_state,
            post_state=self.state.snapshot() if self.record_trace else {},
            error=error
        )
        if self.record_trace:
            self.trace.append(entry)
        return entry

    # =========================================================================
    # Accessors
    # =========================================================================

    def get_register(self, reg: str) -> int:
        """Get value of a register; unknown names read as 0."""
        return self.state.get_register(reg)

    def get_memory(self, address: int) -> int:
        """Get a memory cell; addresses outside memory read as 0."""
        return self.state.read(address)

    def get_pc(self) -> int:
        return self.state.pc

    def is_running(self) -> bool:
        return self.state.running

    def is_halted(self) -> bool:
        return not self.state.running

    def get_zero_flag(self) -> bool:
        return self.state.flags["ZF"]

    def get_carry_flag(self) -> bool:
        return self.state.flags["CF"]

    def get_flags(self) -> Dict[str, bool]:
        """Get CPU flags as a copy: {"ZF": ..., "CF": ...}."""
        return dict(self.state.flags)

    def dump_registers(self) -> Dict[str, int]:
        return self.state.dump_registers()

    def get_cycle_count(self) -> int:
        return self.state.cycle_count

    @property
    def memory_size(self) -> int:
        return self.state.memory_size

    # =========================================================================
    # Presentation helpers
    # =========================================================================

    def format_state(self, memory_cells: int = 20) -> str:
        """Render PC, run state, flags, registers and the first memory cells."""
        flags = self.state.flags
        lines = [
            "=== CPU State ===",
            f"Program Counter: {self.get_pc()}",
            f"Running: {'Yes' if self.is_running() else 'No'}",
            f"Flags: Zero={int(flags['ZF'])}, Carry={int(flags['CF'])}",
            "",
            "Registers:",
        ]
        for name in REGISTER_NAMES:
            lines.append(f"  {name}: {self.get_register(name)}")

        lines.append("")
        lines.append(f"Memory (first {memory_cells} locations):")
        for address in range(min(memory_cells, self.memory_size)):
            lines.append(f"  [{address:2d}]: {self.get_memory(address)}")
        return "\n".join(lines)

    def print_trace(self) -> None:
        """Print execution trace in human-readable format."""
        print("=" * 70)
        print("EXECUTION TRACE")
        print("=" * 70)

        for entry in self.trace:
            status = "OK" if not entry.error else f"ERROR: {entry.error}"
            print(f"\n[Cycle {entry.cycle}] PC={entry.address} {status}")
            print(f"  Instruction: {entry.instruction}")
            if entry.decode_result is not None:
                print(f"  Decoded Key: {entry.decode_result.key}")
                print(f"  Params: {entry.decode_result.params}")

            pre_regs = entry.pre_state["registers"]
            post_regs = entry.post_state["registers"]
            changes = [
                f"{reg}: {pre_regs[reg]} -> {post_regs[reg]}"
                for reg in REGISTER_NAMES
                if pre_regs[reg] != post_regs[reg]
            ]
            if changes:
                print(f"  Changes: {', '.join(changes)}")

            if entry.pre_state["flags"] != entry.post_state["flags"]:
                print(f"  Flags: {entry.post_state['flags']}")

        print("\n" + "=" * 70)
        print("FINAL STATE")
        print("=" * 70)
        print(f"  Registers: {self.dump_registers()}")
        print(f"  Flags: {self.get_flags()}")
        print(f"  PC: {self.get_pc()}")
        print(f"  Cycles: {self.get_cycle_count()}")
        print(f"  Running: {self.is_running()}")

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with execution statistics and final state
        """
        return {
            "cycles": self.get_cycle_count(),
            "running": self.is_running(),
            "halted": self.is_halted(),
            "registers": self.dump_registers(),
            "flags": self.get_flags(),
            "pc": self.get_pc(),
            "output": [value for _, value in self.output],
            "trace_length": len(self.trace),
            "halt_reason": self.halt_reason,
        }

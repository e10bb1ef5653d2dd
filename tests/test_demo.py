"""Tests for the Gradio demo callbacks."""

import sys
from collections import deque
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "demo"))
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

pytest.importorskip("gradio")

import gradio_app
from vcpu import Machine, EXAMPLE_PROGRAMS
from vcpu.programs import format_program


class TestRunProgram:
    """Test the Run button callback."""

    def test_factorial(self):
        summary, trace, state = gradio_app.run_program(
            format_program(EXAMPLE_PROGRAMS["factorial"]), 1024, 10000
        )
        assert "Output: [120]" in summary
        assert "MUL BX, AX" in trace
        assert "BX: 120" in state

    def test_empty_program_runs(self):
        """An empty program halts on the zero cell instead of being refused."""
        summary, trace, state = gradio_app.run_program("", 1024, 10000)
        assert "Error" not in summary
        assert "Halted: Unknown instruction: 0" in summary
        assert "Unknown instruction: 0" in trace

    def test_cleared_number_fields_use_defaults(self):
        summary, _, state = gradio_app.run_program("1,0,42, 12", None, None)
        assert "Halted" not in summary
        assert "AX: 42" in state
        assert "SP: 1023" in state

    def test_parse_error(self):
        summary, trace, state = gradio_app.run_program("1, 0, x", 1024, 10000)
        assert summary.startswith("Error: Line 1")
        assert trace == ""

    def test_negative_memory_size(self):
        summary, _, _ = gradio_app.run_program("12", -1, 10000)
        assert summary.startswith("Error:")

    def test_cycle_limit_reported(self):
        summary, _, _ = gradio_app.run_program("7 0", 1024, 100)
        assert "Stopped: max cycles (100) exceeded" in summary


class TestStepping:
    """Test the Load and Step callbacks."""

    def test_load_then_step(self):
        cpu, summary, trace, _ = gradio_app.start_stepping("1,0,42, 11,0, 12", None)
        assert isinstance(cpu, Machine)
        assert "Cycles: 0" in summary
        assert trace == ""

        cpu, summary, trace, state = gradio_app.step_once(cpu)
        assert "LOAD AX, 42" in trace
        assert "AX: 42" in state

    def test_step_without_load(self):
        cpu, summary, _, _ = gradio_app.step_once(None)
        assert cpu is None
        assert summary.startswith("Error")


class TestFormatTrace:
    """Test trace rendering."""

    def test_accepts_deque_and_caps_entries(self):
        cpu = Machine()
        cpu.load_program([7, 0])
        cpu.run(max_cycles=5)
        text = gradio_app.format_trace(cpu.trace, limit=2)
        assert isinstance(cpu.trace, deque)
        assert text.count("--- Cycle") == 2
        assert "(3 more entries)" in text

"""Tests for the command line interface."""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
import main as cli


def scripted(*answers):
    """Stand-in for input() that replays answers in order."""
    replies = iter(answers)
    return lambda prompt="": next(replies)


def closing(*answers, error=EOFError):
    """Like scripted(), but raises error once the answers run out."""
    replies = iter(answers)

    def prompt(text=""):
        for reply in replies:
            return reply
        raise error()

    return prompt


class TestRunProgram:
    """Test non-interactive runs."""

    def test_named_program(self, capsys):
        assert cli.main(["--program", "factorial"]) == 0
        out = capsys.readouterr().out
        assert "PRINT BX: 120" in out
        assert "=== CPU Execution Finished ===" in out

    def test_quiet_prints_nonzero_registers(self, capsys):
        assert cli.main(["--program", "factorial", "--quiet"]) == 0
        out = capsys.readouterr().out
        assert "BX=120" in out
        assert "CX=1" in out
        assert "DX=" not in out

    def test_inline_with_trace(self, capsys):
        assert cli.main(["--inline", "1,0,42, 11,0, 12", "--trace"]) == 0
        out = capsys.readouterr().out
        assert "EXECUTION TRACE" in out
        assert "LOAD AX, 42" in out

    def test_inline_parse_error(self, capsys):
        assert cli.main(["--inline", "1, 0, forty-two"]) == 1
        assert "Error:" in capsys.readouterr().out

    def test_cycle_limit_exit_code(self, capsys):
        assert cli.main(["--inline", "7 0", "--max-cycles", "5", "-q"]) == 1
        assert "max cycles (5) exceeded" in capsys.readouterr().out

    def test_abnormal_halt_reported(self, capsys):
        assert cli.main(["--inline", "1,0,10, 1,1,0, 6,0,1"]) == 0
        assert "Halted: Division by zero" in capsys.readouterr().out

    def test_requires_a_program(self):
        with pytest.raises(SystemExit):
            cli.main([])

    def test_memory_size(self, capsys):
        assert cli.main(["--inline", "1,0,42", "--memory-size", "3", "-q"]) == 0
        out = capsys.readouterr().out
        assert "AX=42" in out
        assert "SP=2" in out


class TestInteractive:
    """Test menu and step-by-step modes with scripted input."""

    @pytest.fixture
    def args(self):
        return argparse.Namespace(memory_size=1024, quiet=False)

    def test_menu_runs_factorial_then_exits(self, args, capsys):
        assert cli.run_menu(args, scripted("2", "5")) == 0
        out = capsys.readouterr().out
        assert "--- Running Factorial Program ---" in out
        assert "PRINT BX: 120" in out
        assert "Goodbye!" in out

    def test_menu_rejects_invalid_choice(self, args, capsys):
        cli.run_menu(args, scripted("9", "5"))
        assert "Invalid choice" in capsys.readouterr().out

    def test_menu_step_demo(self, args, capsys):
        assert cli.run_menu(args, scripted("4", "", "", "", "5")) == 0
        out = capsys.readouterr().out
        assert "--- Step 3 ---" in out
        assert "--- Step 4 ---" not in out
        assert "PRINT AX: 42" in out
        assert "CPU Running: No" in out


class TestClosedInput:
    """Test that EOF and Ctrl-C at a prompt exit cleanly."""

    @pytest.fixture
    def args(self):
        return argparse.Namespace(memory_size=1024, quiet=False)

    @pytest.mark.parametrize("error", [EOFError, KeyboardInterrupt])
    def test_menu_exits_on_closed_input(self, args, capsys, error):
        assert cli.run_menu(args, closing(error=error)) == 0
        assert "Goodbye!" in capsys.readouterr().out

    def test_menu_exits_after_a_run(self, args, capsys):
        assert cli.run_menu(args, closing("3")) == 0
        out = capsys.readouterr().out
        assert "PRINT AX: 5" in out
        assert "Goodbye!" in out
        assert "Invalid choice" not in out

    def test_menu_step_demo_interrupted(self, args, capsys):
        assert cli.run_menu(args, closing("4", "")) == 0
        out = capsys.readouterr().out
        assert "Stepping stopped." in out
        assert "--- Step 3 ---" not in out
        assert "Goodbye!" in out

    @pytest.mark.parametrize("error", [EOFError, KeyboardInterrupt])
    def test_step_mode_stops_cleanly(self, capsys, error):
        cpu = cli.Machine()
        cpu.load_program([1, 0, 42, 11, 0, 12])
        assert cli.run_step_by_step(cpu, closing("", error=error)) is False
        assert cpu.is_running() is True
        assert cpu.get_pc() == 3
        assert "Stepping stopped." in capsys.readouterr().out

    def test_step_mode_completes(self, capsys):
        cpu = cli.Machine()
        cpu.load_program([12])
        assert cli.run_step_by_step(cpu, closing("")) is True
        assert "Final state" in capsys.readouterr().out

    def test_main_step_flag_on_closed_input(self, monkeypatch, capsys):
        monkeypatch.setattr("builtins.input", closing())
        assert cli.main(["--program", "factorial", "--step"]) == 0
        out = capsys.readouterr().out
        assert "Stepping stopped." in out
        assert "max cycles" not in out

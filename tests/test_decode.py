"""Tests for the instruction table and decoder."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from vcpu.state import create_initial_state
from vcpu.decode import (
    ISA,
    Decoder,
    DecodeResult,
    Opcode,
    format_instruction,
)
from vcpu.registry import get_registry


def state_with(program, size=32, pc=0):
    state = create_initial_state(size)
    state.memory[:len(program)] = program
    state.pc = pc
    return state


class TestInstructionTable:
    """Test the declarative opcode table."""

    def test_every_opcode_present(self):
        assert sorted(ISA) == list(range(1, 13))

    @pytest.mark.parametrize("opcode,width", [
        (Opcode.LOAD, 3), (Opcode.STORE, 3), (Opcode.ADD, 3), (Opcode.SUB, 3),
        (Opcode.MUL, 3), (Opcode.DIV, 3), (Opcode.JMP, 2), (Opcode.JEQ, 4),
        (Opcode.JNE, 4), (Opcode.CMP, 3), (Opcode.PRINT, 2), (Opcode.HALT, 1),
    ])
    def test_widths(self, opcode, width):
        assert ISA[opcode].width == width

    def test_only_halt_stays_put(self):
        assert [spec.mnemonic for spec in ISA.values() if not spec.advances] == ["HALT"]

    def test_keys_match_registry(self):
        """Every decodable key has a primitive and vice versa."""
        assert set(Decoder.VALID_KEYS) == get_registry().get_valid_keys()


class TestDecodeResultDataclass:
    """Test DecodeResult structure."""

    def test_valid_result_width(self):
        result = DecodeResult("OP_JNE", {}, True, opcode=9)
        assert result.width == 4
        assert result.advances is True

    def test_invalid_result(self):
        result = DecodeResult("OP_INVALID", {}, False, error="Unknown", opcode=99)
        assert result.spec is None
        assert result.width == 1
        assert result.advances is False


class TestDecode:
    """Test decoding from memory."""

    @pytest.fixture
    def decoder(self):
        return Decoder()

    def test_load(self, decoder):
        result = decoder.decode(state_with([1, 0, 42]))
        assert result.valid is True
        assert result.key == "OP_LOAD"
        assert result.params == {"dest": "AX", "value": 42}
        assert result.address == 0

    def test_store(self, decoder):
        result = decoder.decode(state_with([2, 3, 17]))
        assert result.key == "OP_STORE"
        assert result.params == {"src": "DX", "addr": 17}

    def test_binary(self, decoder):
        result = decoder.decode(state_with([5, 1, 0]))
        assert result.key == "OP_MUL"
        assert result.params == {"dest": "BX", "src": "AX"}

    def test_branch(self, decoder):
        result = decoder.decode(state_with([9, 0, 2, 9]))
        assert result.key == "OP_JNE"
        assert result.params == {"src1": "AX", "src2": "CX", "addr": 9}

    def test_decodes_at_pc(self, decoder):
        result = decoder.decode(state_with([12, 11, 4], pc=1))
        assert result.key == "OP_PRINT"
        assert result.params == {"src": "SP"}
        assert result.address == 1

    def test_halt_has_no_params(self, decoder):
        result = decoder.decode(state_with([12]))
        assert result.key == "OP_HALT"
        assert result.params == {}

    def test_unknown_register_code_is_ax(self, decoder):
        result = decoder.decode(state_with([3, 7, -2]))
        assert result.params == {"dest": "AX", "src": "AX"}

    def test_immediate_not_resolved_as_register(self, decoder):
        result = decoder.decode(state_with([1, 2, 7]))
        assert result.params["value"] == 7

    def test_operands_past_memory_read_zero(self, decoder):
        result = decoder.decode(state_with([1, 1], size=2))
        assert result.valid is True
        assert result.params == {"dest": "BX", "value": 0}

    @pytest.mark.parametrize("opcode", [0, 13, 99, -1])
    def test_unknown_opcode(self, decoder, opcode):
        result = decoder.decode(state_with([opcode]))
        assert result.valid is False
        assert result.key == "OP_INVALID"
        assert result.error == f"Unknown instruction: {opcode}"


class TestFormatInstruction:
    """Test instruction rendering for traces."""

    @pytest.fixture
    def decoder(self):
        return Decoder()

    @pytest.mark.parametrize("program,text", [
        ([1, 0, 42], "LOAD AX, 42"),
        ([2, 0, 5], "STORE AX, [5]"),
        ([3, 0, 1], "ADD AX, BX"),
        ([6, 2, 3], "DIV CX, DX"),
        ([7, 20], "JMP 20"),
        ([9, 0, 2, 9], "JNE AX, CX, 9"),
        ([10, 0, 2], "CMP AX, CX"),
        ([11, 1], "PRINT BX"),
        ([12], "HALT"),
    ])
    def test_format(self, decoder, program, text):
        assert format_instruction(decoder.decode(state_with(program))) == text

    def test_format_unknown(self, decoder):
        assert format_instruction(decoder.decode(state_with([77]))) == "??? 77"

"""Tests for the instruction word Decoder."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_vm.decode import DecodedInstruction, Decoder
from chip8_vm.registry import InstructionRegistry


@pytest.fixture
def decoder():
    return Decoder()


class TestDecodedInstructionDataclass:
    """Test DecodedInstruction structure."""

    def test_valid_result(self):
        result = DecodedInstruction("OP_JP", 0x1234, nnn=0x234)
        assert result.key == "OP_JP"
        assert result.nnn == 0x234
        assert result.valid is True
        assert result.error is None

    def test_invalid_result(self):
        result = DecodedInstruction("OP_INVALID", 0xFFFF, valid=False, error="Unknown")
        assert result.valid is False
        assert result.error == "Unknown"


class TestOperandFields:
    """Test bit-field extraction."""

    def test_fields(self, decoder):
        result = decoder.decode(0xD12F)
        assert result.key == "OP_DRW"
        assert result.word == 0xD12F
        assert result.x == 0x1
        assert result.y == 0x2
        assert result.n == 0xF
        assert result.kk == 0x2F
        assert result.nnn == 0x12F

    def test_word_is_masked_to_16_bits(self, decoder):
        result = decoder.decode(0x1_6A42)
        assert result.key == "OP_LD_IMM"
        assert result.x == 0xA
        assert result.kk == 0x42


class TestGroupDispatch:
    """Every defined instruction decodes to its key."""

    @pytest.mark.parametrize("word,key", [
        (0x00E0, "OP_CLS"),
        (0x00EE, "OP_RET"),
        (0x1ABC, "OP_JP"),
        (0x2ABC, "OP_CALL"),
        (0x3A12, "OP_SE_IMM"),
        (0x4A12, "OP_SNE_IMM"),
        (0x5AB0, "OP_SE_REG"),
        (0x6A12, "OP_LD_IMM"),
        (0x7A12, "OP_ADD_IMM"),
        (0x8AB0, "OP_LD_REG"),
        (0x8AB1, "OP_OR"),
        (0x8AB2, "OP_AND"),
        (0x8AB3, "OP_XOR"),
        (0x8AB4, "OP_ADD_REG"),
        (0x8AB5, "OP_SUB"),
        (0x8AB6, "OP_SHR"),
        (0x8AB7, "OP_SUBN"),
        (0x8ABE, "OP_SHL"),
        (0x9AB0, "OP_SNE_REG"),
        (0xA123, "OP_LD_I"),
        (0xB123, "OP_JP_V0"),
        (0xCA12, "OP_RND"),
        (0xDAB5, "OP_DRW"),
        (0xEA9E, "OP_SKP"),
        (0xEAA1, "OP_SKNP"),
        (0xFA07, "OP_LD_VX_DT"),
        (0xFA0A, "OP_LD_KEY"),
        (0xFA15, "OP_LD_DT"),
        (0xFA18, "OP_LD_ST"),
        (0xFA1E, "OP_ADD_I"),
        (0xFA29, "OP_LD_F"),
        (0xFA33, "OP_LD_BCD"),
        (0xFA55, "OP_STORE"),
        (0xFA65, "OP_LOAD"),
    ])
    def test_decode(self, decoder, word, key):
        result = decoder.decode(word)
        assert result.valid is True
        assert result.key == key


class TestUnknownOpcodes:
    """Words matching no case decode to OP_INVALID."""

    @pytest.mark.parametrize("word", [
        0x0000,  # machine code routine
        0x0123,
        0x00E1,
        0x5AB1,  # 5xy0 with non-zero low nibble
        0x9AB3,
        0x8AB8,
        0x8ABF,
        0xEA00,
        0xFA00,
        0xFFFF,
    ])
    def test_unknown(self, decoder, word):
        result = decoder.decode(word)
        assert result.key == "OP_INVALID"
        assert result.valid is False
        assert f"0x{word:04X}" in result.error


class TestDecoderRegistryAgreement:

    def test_every_key_has_a_handler(self):
        """The decoder never emits a key the registry can't execute."""
        assert Decoder.VALID_KEYS == InstructionRegistry().get_valid_keys()

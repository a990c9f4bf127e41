"""Decoder: binary instruction decode for the CHIP-8 interpreter.

A 16-bit instruction word is split into its operand fields once and
tagged with an operation key naming the registry handler that executes it:

    word -> Decoder -> DecodedInstruction(key, x, y, n, kk, nnn) -> Registry

Dispatch is on the top nibble; groups 0x0, 0x8, 0xE and 0xF sub-dispatch
on the low byte or low nibble. Words matching no case decode to
OP_INVALID so the interpreter can report and skip them.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Set


@dataclass(frozen=True)
class DecodedInstruction:
    """Result of decoding one instruction word.

    Attributes:
        key: Operation key (e.g., "OP_ADD_REG")
        word: Raw 16-bit instruction word
        x: Bits 8-11, first register operand
        y: Bits 4-7, second register operand
        n: Low nibble
        kk: Low byte
        nnn: Low 12 bits (address or literal)
        valid: Whether decode succeeded
        error: Error message if decode failed
    """
    key: str
    word: int
    x: int = 0
    y: int = 0
    n: int = 0
    kk: int = 0
    nnn: int = 0
    valid: bool = True
    error: Optional[str] = None


# Top-nibble groups whose meaning does not depend on the low bits
_SIMPLE_GROUPS: Dict[int, str] = {
    0x1: "OP_JP",
    0x2: "OP_CALL",
    0x3: "OP_SE_IMM",
    0x4: "OP_SNE_IMM",
    0x6: "OP_LD_IMM",
    0x7: "OP_ADD_IMM",
    0xA: "OP_LD_I",
    0xB: "OP_JP_V0",
    0xC: "OP_RND",
    0xD: "OP_DRW",
}

# 0x0nnn, keyed by the full word
_SYSTEM_OPS: Dict[int, str] = {
    0x00E0: "OP_CLS",
    0x00EE: "OP_RET",
}

# 0x8xyN, keyed by N
_ALU_OPS: Dict[int, str] = {
    0x0: "OP_LD_REG",
    0x1: "OP_OR",
    0x2: "OP_AND",
    0x3: "OP_XOR",
    0x4: "OP_ADD_REG",
    0x5: "OP_SUB",
    0x6: "OP_SHR",
    0x7: "OP_SUBN",
    0xE: "OP_SHL",
}

# 0xExKK, keyed by KK
_KEY_OPS: Dict[int, str] = {
    0x9E: "OP_SKP",
    0xA1: "OP_SKNP",
}

# 0xFxKK, keyed by KK
_MISC_OPS: Dict[int, str] = {
    0x07: "OP_LD_VX_DT",
    0x0A: "OP_LD_KEY",
    0x15: "OP_LD_DT",
    0x18: "OP_LD_ST",
    0x1E: "OP_ADD_I",
    0x29: "OP_LD_F",
    0x33: "OP_LD_BCD",
    0x55: "OP_STORE",
    0x65: "OP_LOAD",
}

# 0x5xy0 and 0x9xy0 require a zero low nibble
_REG_COMPARE_OPS: Dict[int, str] = {
    0x5: "OP_SE_REG",
    0x9: "OP_SNE_REG",
}


class Decoder:
    """Decodes 16-bit instruction words into tagged instructions."""

    VALID_KEYS: Set[str] = (
        set(_SIMPLE_GROUPS.values())
        | set(_SYSTEM_OPS.values())
        | set(_ALU_OPS.values())
        | set(_KEY_OPS.values())
        | set(_MISC_OPS.values())
        | set(_REG_COMPARE_OPS.values())
        | {"OP_INVALID"}
    )

    def decode(self, word: int) -> DecodedInstruction:
        """Decode an instruction word to an operation key and operand fields.

        Args:
            word: 16-bit instruction word, big-endian composed

        Returns:
            DecodedInstruction; key is OP_INVALID if the word is unknown
        """
        word &= 0xFFFF
        group = word >> 12
        n = word & 0x000F
        kk = word & 0x00FF

        if group in _SIMPLE_GROUPS:
            key = _SIMPLE_GROUPS[group]
        elif group == 0x0:
            key = _SYSTEM_OPS.get(word)
        elif group in _REG_COMPARE_OPS:
            key = _REG_COMPARE_OPS[group] if n == 0 else None
        elif group == 0x8:
            key = _ALU_OPS.get(n)
        elif group == 0xE:
            key = _KEY_OPS.get(kk)
        else:
            key = _MISC_OPS.get(kk)

        if key is None:
            return DecodedInstruction(
                "OP_INVALID",
                word,
                valid=False,
                error=f"Unknown opcode 0x{word:04X}",
            )

        return DecodedInstruction(
            key,
            word,
            x=(word >> 8) & 0xF,
            y=(word >> 4) & 0xF,
            n=n,
            kk=kk,
            nnn=word & 0x0FFF,
        )

"""chip8-vm: CHIP-8 virtual machine interpreter.

This package emulates the CHIP-8 machine: 4 KB of memory, sixteen 8-bit
registers, a 16-level call stack, delay and sound timers, a 64x32
monochrome framebuffer and a 16-key hexadecimal keypad.

Architecture:
    MEMORY -> FETCH -> DECODE -> KEY -> REGISTRY -> EXECUTE -> TIMERS
               |          |        |        |           |
           [PC-based] [Nibbles] [OP_*]  [Handlers]  [MachineState]

Modules:
    constants: Machine geometry and the built-in glyph set
    state: MachineState dataclass holding all machine state
    decode: Instruction word decoder (tagged DecodedInstruction)
    registry: Instruction handlers keyed by operation
    errors: Fatal emulation errors
    cpu: Main Chip8CPU interpreter
"""

__version__ = "0.1.0"

from .state import MachineState
from .decode import DecodedInstruction, Decoder
from .registry import InstructionRegistry
from .errors import (
    Chip8Error,
    MemoryAccessError,
    ProgramTooLargeError,
    StackOverflowError,
    StackUnderflowError,
)
from .cpu import Chip8CPU

__all__ = [
    "MachineState",
    "DecodedInstruction",
    "Decoder",
    "InstructionRegistry",
    "Chip8Error",
    "MemoryAccessError",
    "ProgramTooLargeError",
    "StackOverflowError",
    "StackUnderflowError",
    "Chip8CPU",
]

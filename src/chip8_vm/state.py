"""MachineState: the complete mutable state of one CHIP-8 machine.

State Components:
    - Memory: 4096 bytes, glyph set at 0x000, program at 0x200
    - V: 16 general-purpose 8-bit registers (VF doubles as flag)
    - I: 16-bit index register
    - PC: Program counter
    - Stack: 16 return addresses plus stack pointer
    - Timers: delay and sound, 8-bit
    - Display: 64x32 pixels, stored row-major as 0/1
    - Keypad: 16 key-down booleans
    - Cycle count: Total executed cycles

One instance is created per run and mutated in place by the
instruction handlers; nothing here is shared between instances.
"""

from dataclasses import dataclass, field
from typing import List

from .constants import (
    FONT_SET,
    FONT_START,
    MEMORY_SIZE,
    NUM_KEYS,
    NUM_REGISTERS,
    PROGRAM_START,
    SCREEN_HEIGHT,
    SCREEN_WIDTH,
    STACK_SIZE,
)
from .errors import MemoryAccessError


def _blank_display() -> List[List[int]]:
    return [[0] * SCREEN_WIDTH for _ in range(SCREEN_HEIGHT)]


@dataclass
class MachineState:
    """Mutable machine state.

    Attributes:
        memory: 4096 addressable bytes
        V: General-purpose registers V0-VF
        I: Index register
        pc: Program counter (address of the next instruction)
        stack: Return addresses pushed by CALL
        sp: Stack pointer, number of occupied stack slots (0-16)
        delay_timer: Delay timer, decremented once per cycle
        sound_timer: Sound timer, decremented once per cycle
        display: Framebuffer, display[row][column]
        draw_flag: Set when the framebuffer changed; cleared by the renderer
        keypad: Key-down state for keys 0x0-0xF
        cycle_count: Number of executed cycles
    """
    memory: bytearray = field(default_factory=lambda: bytearray(MEMORY_SIZE))
    V: List[int] = field(default_factory=lambda: [0] * NUM_REGISTERS)
    I: int = 0
    pc: int = PROGRAM_START
    stack: List[int] = field(default_factory=lambda: [0] * STACK_SIZE)
    sp: int = 0
    delay_timer: int = 0
    sound_timer: int = 0
    display: List[List[int]] = field(default_factory=_blank_display)
    draw_flag: bool = False
    keypad: List[bool] = field(default_factory=lambda: [False] * NUM_KEYS)
    cycle_count: int = 0

    def read_byte(self, address: int) -> int:
        """Read one byte of memory.

        Raises:
            MemoryAccessError: If address is outside 0x000-0xFFF
        """
        if not 0 <= address < MEMORY_SIZE:
            raise MemoryAccessError(address, self.pc)
        return self.memory[address]

    def write_byte(self, address: int, value: int) -> None:
        """Write one byte of memory, truncating value to 8 bits.

        Raises:
            MemoryAccessError: If address is outside 0x000-0xFFF
        """
        if not 0 <= address < MEMORY_SIZE:
            raise MemoryAccessError(address, self.pc)
        self.memory[address] = value & 0xFF

    def read_block(self, address: int, length: int) -> bytes:
        """Read length bytes starting at address, all or nothing."""
        self._check_range(address, length)
        return bytes(self.memory[address:address + length])

    def write_block(self, address: int, data) -> None:
        """Write a run of bytes starting at address, all or nothing."""
        self._check_range(address, len(data))
        self.memory[address:address + len(data)] = bytes(data)

    def _check_range(self, address: int, length: int) -> None:
        if address < 0:
            raise MemoryAccessError(address, self.pc)
        if length and address + length > MEMORY_SIZE:
            raise MemoryAccessError(max(address, MEMORY_SIZE), self.pc)

    def get_register(self, index: int) -> int:
        """Get value of V-register 0x0-0xF.

        Raises:
            IndexError: If register doesn't exist
        """
        if not 0 <= index < NUM_REGISTERS:
            raise IndexError(f"Invalid register: V{index:X}")
        return self.V[index]

    def set_register(self, index: int, value: int) -> None:
        """Set a V-register, wrapping value modulo 256."""
        if not 0 <= index < NUM_REGISTERS:
            raise IndexError(f"Invalid register: V{index:X}")
        self.V[index] = value & 0xFF

    def clear_display(self) -> None:
        for row in self.display:
            for col in range(SCREEN_WIDTH):
                row[col] = 0

    def snapshot(self) -> dict:
        """Create a copy of the register-level state.

        Returns:
            Dictionary of registers, pointers, timers and cycle count
        """
        return {
            "V": list(self.V),
            "I": self.I,
            "pc": self.pc,
            "sp": self.sp,
            "stack": list(self.stack[:self.sp]),
            "delay_timer": self.delay_timer,
            "sound_timer": self.sound_timer,
            "cycle_count": self.cycle_count,
            # memory and display left out, they are large
        }

    def validate(self) -> bool:
        """Validate state integrity.

        Checks:
            - Memory, register file, stack, display and keypad have their fixed sizes
            - Registers and timers are 8-bit, I and stack entries 16-bit
            - PC is inside memory, SP within 0-16

        Returns:
            True if state is valid, False otherwise
        """
        if len(self.memory) != MEMORY_SIZE:
            return False

        if len(self.V) != NUM_REGISTERS:
            return False
        if any(not 0 <= v <= 0xFF for v in self.V):
            return False

        if not 0 <= self.I <= 0xFFFF:
            return False
        if not 0 <= self.pc < MEMORY_SIZE:
            return False

        if len(self.stack) != STACK_SIZE or not 0 <= self.sp <= STACK_SIZE:
            return False
        if any(not 0 <= addr <= 0xFFFF for addr in self.stack):
            return False

        for timer in (self.delay_timer, self.sound_timer):
            if not 0 <= timer <= 0xFF:
                return False

        if len(self.display) != SCREEN_HEIGHT:
            return False
        for row in self.display:
            if len(row) != SCREEN_WIDTH or any(p not in (0, 1) for p in row):
                return False

        if len(self.keypad) != NUM_KEYS:
            return False

        return self.cycle_count >= 0

    def render_display(self, on: str = "#", off: str = ".") -> List[str]:
        """Render the framebuffer as one text line per row."""
        return ["".join(on if p else off for p in row) for row in self.display]

    def __str__(self) -> str:
        """Human-readable state representation."""
        regs = " ".join(f"V{i:X}={v:02X}" for i, v in enumerate(self.V))
        return (
            f"[Cycle {self.cycle_count}] PC={self.pc:03X} I={self.I:03X} SP={self.sp} "
            f"DT={self.delay_timer} ST={self.sound_timer} {regs}"
        )


def create_initial_state() -> MachineState:
    """Create a freshly initialized machine with the glyph set loaded.

    Returns:
        MachineState with PC at 0x200 and all other state zeroed
    """
    state = MachineState()
    state.memory[FONT_START:FONT_START + len(FONT_SET)] = FONT_SET
    return state

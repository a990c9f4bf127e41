"""Chip8CPU: the interpreter that drives a CHIP-8 machine.

This module implements the execution cycle:
    MEMORY -> FETCH -> DECODE -> KEY -> REGISTRY -> EXECUTE -> TIMER TICK

A caller-owned loop calls step() at its own cadence (nominally 60 Hz),
pushes keypad state with set_keys() and reads the framebuffer out
whenever draw_flag is set.
"""

import logging
import random
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

from .constants import MAX_PROGRAM_SIZE, NUM_KEYS, PROGRAM_START
from .decode import DecodedInstruction, Decoder
from .errors import Chip8Error, ProgramTooLargeError
from .registry import InstructionRegistry
from .state import MachineState, create_initial_state

logger = logging.getLogger(__name__)


class Chip8CPU:
    """CHIP-8 interpreter.

    Owns one MachineState and advances it one cycle per step() call.
    Fatal errors (stack overflow/underflow, out-of-range memory access)
    propagate out of step() and halt the CPU until initialize() is
    called again. Unknown opcodes are logged and skipped.

    Attributes:
        decoder: Decoder for instruction words
        registry: InstructionRegistry with the instruction handlers
        state: Current machine state
        on_beep: Optional callback invoked once per beep event
        beep_count: Number of beep events since initialize()
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        on_beep: Optional[Callable[[], None]] = None,
    ):
        """Initialize the CPU.

        Args:
            rng: Random source for the Cxkk instruction (seed it for reproducible runs)
            on_beep: Called with no arguments each time the sound timer expires
        """
        self.decoder = Decoder()
        self.registry = InstructionRegistry(rng)
        self.on_beep = on_beep
        self.state: MachineState = create_initial_state()
        self.beep_count = 0
        self._halted = False
        self.initialize()

    def initialize(self) -> None:
        """Reset every part of the machine and load the glyph set."""
        self.state = create_initial_state()
        self.beep_count = 0
        self._halted = False
        logger.debug("Machine initialized, PC=0x%03X", self.state.pc)

    def load(self, program: Union[bytes, bytearray, Sequence[int]]) -> None:
        """Copy program bytes into memory starting at 0x200.

        Args:
            program: Raw machine code, no header

        Raises:
            ProgramTooLargeError: If the program exceeds 3584 bytes
        """
        data = bytes(program)
        if len(data) > MAX_PROGRAM_SIZE:
            raise ProgramTooLargeError(len(data), MAX_PROGRAM_SIZE)
        self.state.memory[PROGRAM_START:PROGRAM_START + len(data)] = data
        logger.debug("Loaded %d bytes at 0x%03X", len(data), PROGRAM_START)

    def load_rom_file(self, path: Union[str, Path]) -> None:
        """Read a ROM file and load its bytes.

        Args:
            path: Path to a raw CHIP-8 ROM image

        Raises:
            FileNotFoundError: If the file doesn't exist
            ProgramTooLargeError: If the ROM exceeds 3584 bytes
        """
        self.load(Path(path).read_bytes())

    def set_keys(self, snapshot: Sequence[bool]) -> None:
        """Replace the keypad state with a 16-entry snapshot.

        Raises:
            ValueError: If the snapshot doesn't have exactly 16 entries
        """
        if len(snapshot) != NUM_KEYS:
            raise ValueError(f"Keypad snapshot must have {NUM_KEYS} entries, got {len(snapshot)}")
        self.state.keypad = [bool(k) for k in snapshot]

    def step(self) -> DecodedInstruction:
        """Execute a single cycle.

        Performs: FETCH -> DECODE -> EXECUTE -> TIMER TICK

        Returns:
            The instruction that was executed

        Raises:
            RuntimeError: If the CPU is halted by an earlier fatal error
            Chip8Error: On stack overflow/underflow or memory access out of range
        """
        if self._halted:
            raise RuntimeError("CPU is halted")

        state = self.state
        try:
            # FETCH: big-endian pair at PC
            pc = state.pc
            word = (state.read_byte(pc) << 8) | state.read_byte(pc + 1)

            # DECODE
            instruction = self.decoder.decode(word)
            if not instruction.valid:
                logger.warning("Unknown opcode 0x%04X at PC 0x%03X", word, pc)

            # EXECUTE
            self.registry.execute(state, instruction)
        except Chip8Error as e:
            self._halted = True
            logger.error("Emulation halted: %s", e)
            raise

        self._tick_timers(instruction.key)
        state.cycle_count += 1
        return instruction

    def run(self, cycles: int) -> int:
        """Execute a fixed number of cycles.

        Args:
            cycles: Number of step() calls to make

        Returns:
            Number of cycles executed
        """
        for _ in range(cycles):
            self.step()
        return cycles

    def _tick_timers(self, executed_key: str) -> None:
        # A timer loaded by this cycle's instruction starts counting next cycle
        state = self.state
        if state.delay_timer > 0 and executed_key != "OP_LD_DT":
            state.delay_timer -= 1

        if state.sound_timer > 0 and executed_key != "OP_LD_ST":
            state.sound_timer -= 1
            if state.sound_timer == 0:
                self._beep()

    def _beep(self) -> None:
        self.beep_count += 1
        logger.info("Beep")
        if self.on_beep is not None:
            self.on_beep()

    # =========================================================================
    # Framebuffer
    # =========================================================================

    @property
    def display(self) -> List[List[int]]:
        """Framebuffer rows, display[row][column], each pixel 0 or 1."""
        return self.state.display

    @property
    def draw_flag(self) -> bool:
        """True when the framebuffer changed since the renderer last cleared it."""
        return self.state.draw_flag

    def clear_draw_flag(self) -> None:
        """Mark the current frame as consumed."""
        self.state.draw_flag = False

    # =========================================================================
    # Accessors
    # =========================================================================

    def get_register(self, index: int) -> int:
        """Get value of V-register 0x0-0xF."""
        return self.state.get_register(index)

    def dump_registers(self) -> Dict[str, int]:
        """Get all V-register values keyed V0..VF."""
        return {f"V{i:X}": v for i, v in enumerate(self.state.V)}

    def get_pc(self) -> int:
        return self.state.pc

    def get_cycle_count(self) -> int:
        return self.state.cycle_count

    def is_halted(self) -> bool:
        """Check if a fatal error stopped the CPU."""
        return self._halted

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with cycle count, halt status, registers and timers
        """
        state = self.state
        return {
            "cycles": state.cycle_count,
            "halted": self._halted,
            "registers": self.dump_registers(),
            "pc": state.pc,
            "I": state.I,
            "sp": state.sp,
            "delay_timer": state.delay_timer,
            "sound_timer": state.sound_timer,
            "beeps": self.beep_count,
        }

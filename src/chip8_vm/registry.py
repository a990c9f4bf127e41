"""InstructionRegistry: the CHIP-8 instruction handlers.

Each decoded operation key maps to one handler. Handlers take the
machine state and the decoded instruction, mutate the state in place and
leave PC pointing at the next instruction to fetch.

Registry Keys:
    OP_CLS, OP_RET: Clear screen, return from subroutine
    OP_JP, OP_CALL, OP_JP_V0: Jumps and subroutine call
    OP_SE_IMM, OP_SNE_IMM, OP_SE_REG, OP_SNE_REG: Conditional skips
    OP_SKP, OP_SKNP: Skip on key state
    OP_LD_IMM, OP_ADD_IMM, OP_LD_REG: Register loads
    OP_OR, OP_AND, OP_XOR: Bitwise logic
    OP_ADD_REG, OP_SUB, OP_SUBN, OP_SHR, OP_SHL: Arithmetic with VF flag
    OP_LD_I, OP_ADD_I, OP_LD_F: Index register
    OP_RND: Random byte
    OP_DRW: Sprite draw with collision
    OP_LD_VX_DT, OP_LD_DT, OP_LD_ST: Timers
    OP_LD_KEY: Wait for key press
    OP_LD_BCD, OP_STORE, OP_LOAD: Memory transfers
    OP_INVALID: Unknown instruction word, skipped

Skips advance PC by 4, every other non-jump by 2 (a waiting Fx0A by 0).
"""

import random
from typing import Callable, Dict, Optional

from .constants import (
    FLAG_REGISTER,
    FONT_START,
    GLYPH_HEIGHT,
    NUM_KEYS,
    SCREEN_HEIGHT,
    SCREEN_WIDTH,
    STACK_SIZE,
)
from .decode import DecodedInstruction
from .errors import StackOverflowError, StackUnderflowError
from .state import MachineState

Handler = Callable[[MachineState, DecodedInstruction], None]

INSTRUCTION_SIZE = 2


class InstructionRegistry:
    """Frozen registry of instruction handlers.

    Attributes:
        rng: Random source for OP_RND
        _handlers: Dictionary mapping operation keys to handler functions
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self, rng: Optional[random.Random] = None):
        """Initialize registry with all instruction handlers.

        Args:
            rng: Random source for OP_RND (a fresh unseeded one if None)
        """
        self.rng = rng if rng is not None else random.Random()
        self._handlers: Dict[str, Handler] = {}
        self._frozen = False
        self._register_all_handlers()
        self.freeze()

    def _register_all_handlers(self) -> None:
        # Flow control
        self.register("OP_CLS", self._op_cls)
        self.register("OP_RET", self._op_ret)
        self.register("OP_JP", self._op_jp)
        self.register("OP_CALL", self._op_call)
        self.register("OP_JP_V0", self._op_jp_v0)

        # Skips
        self.register("OP_SE_IMM", self._op_se_imm)
        self.register("OP_SNE_IMM", self._op_sne_imm)
        self.register("OP_SE_REG", self._op_se_reg)
        self.register("OP_SNE_REG", self._op_sne_reg)
        self.register("OP_SKP", self._op_skp)
        self.register("OP_SKNP", self._op_sknp)

        # Register loads and ALU
        self.register("OP_LD_IMM", self._op_ld_imm)
        self.register("OP_ADD_IMM", self._op_add_imm)
        self.register("OP_LD_REG", self._op_ld_reg)
        self.register("OP_OR", self._op_or)
        self.register("OP_AND", self._op_and)
        self.register("OP_XOR", self._op_xor)
        self.register("OP_ADD_REG", self._op_add_reg)
        self.register("OP_SUB", self._op_sub)
        self.register("OP_SHR", self._op_shr)
        self.register("OP_SUBN", self._op_subn)
        self.register("OP_SHL", self._op_shl)
        self.register("OP_RND", self._op_rnd)

        # Index register
        self.register("OP_LD_I", self._op_ld_i)
        self.register("OP_ADD_I", self._op_add_i)
        self.register("OP_LD_F", self._op_ld_f)

        # Display
        self.register("OP_DRW", self._op_drw)

        # Timers and keypad
        self.register("OP_LD_VX_DT", self._op_ld_vx_dt)
        self.register("OP_LD_DT", self._op_ld_dt)
        self.register("OP_LD_ST", self._op_ld_st)
        self.register("OP_LD_KEY", self._op_ld_key)

        # Memory transfers
        self.register("OP_LD_BCD", self._op_ld_bcd)
        self.register("OP_STORE", self._op_store)
        self.register("OP_LOAD", self._op_load)

        self.register("OP_INVALID", self._op_invalid)

    def register(self, key: str, handler: Handler) -> None:
        """Register an instruction handler.

        Args:
            key: Operation key (e.g., "OP_ADD_REG")
            handler: Function that takes (state, instruction) and mutates state

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If key already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register handlers: registry is frozen")
        if key in self._handlers:
            raise ValueError(f"Handler already registered: {key}")
        self._handlers[key] = handler

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if registry is frozen."""
        return self._frozen

    def get_valid_keys(self) -> set:
        """Get set of all valid operation keys."""
        return set(self._handlers.keys())

    def execute(self, state: MachineState, instruction: DecodedInstruction) -> None:
        """Execute a decoded instruction against state.

        Args:
            state: Machine state, mutated in place
            instruction: Decoded instruction

        Raises:
            KeyError: If key not in registry
        """
        if instruction.key not in self._handlers:
            raise KeyError(f"Unknown operation key: {instruction.key}")

        self._handlers[instruction.key](state, instruction)

    # =========================================================================
    # Flow Control
    # =========================================================================

    def _op_cls(self, state: MachineState, ins: DecodedInstruction) -> None:
        """00E0 - Clear the framebuffer."""
        state.clear_display()
        state.draw_flag = True
        _advance(state)

    def _op_ret(self, state: MachineState, ins: DecodedInstruction) -> None:
        """00EE - Return to the instruction after the matching CALL.

        Raises:
            StackUnderflowError: If the stack is empty
        """
        if state.sp == 0:
            raise StackUnderflowError(state.pc)
        state.sp -= 1
        state.pc = state.stack[state.sp] + INSTRUCTION_SIZE

    def _op_jp(self, state: MachineState, ins: DecodedInstruction) -> None:
        """1nnn - Jump to nnn."""
        state.pc = ins.nnn

    def _op_call(self, state: MachineState, ins: DecodedInstruction) -> None:
        """2nnn - Push the address of this CALL and jump to nnn.

        Raises:
            StackOverflowError: If all 16 stack slots are in use
        """
        if state.sp >= STACK_SIZE:
            raise StackOverflowError(state.pc)
        state.stack[state.sp] = state.pc
        state.sp += 1
        state.pc = ins.nnn

    def _op_jp_v0(self, state: MachineState, ins: DecodedInstruction) -> None:
        """Bnnn - Jump to nnn + V0."""
        state.pc = ins.nnn + state.V[0]

    # =========================================================================
    # Skips
    # =========================================================================

    def _op_se_imm(self, state: MachineState, ins: DecodedInstruction) -> None:
        """3xkk - Skip next instruction if Vx == kk."""
        _skip_if(state, state.V[ins.x] == ins.kk)

    def _op_sne_imm(self, state: MachineState, ins: DecodedInstruction) -> None:
        """4xkk - Skip next instruction if Vx != kk."""
        _skip_if(state, state.V[ins.x] != ins.kk)

    def _op_se_reg(self, state: MachineState, ins: DecodedInstruction) -> None:
        """5xy0 - Skip next instruction if Vx == Vy."""
        _skip_if(state, state.V[ins.x] == state.V[ins.y])

    def _op_sne_reg(self, state: MachineState, ins: DecodedInstruction) -> None:
        """9xy0 - Skip next instruction if Vx != Vy."""
        _skip_if(state, state.V[ins.x] != state.V[ins.y])

    def _op_skp(self, state: MachineState, ins: DecodedInstruction) -> None:
        """Ex9E - Skip next instruction if key Vx is down."""
        _skip_if(state, _key_down(state, state.V[ins.x]))

    def _op_sknp(self, state: MachineState, ins: DecodedInstruction) -> None:
        """ExA1 - Skip next instruction if key Vx is up."""
        _skip_if(state, not _key_down(state, state.V[ins.x]))

    # =========================================================================
    # Register Loads and ALU
    # =========================================================================

    def _op_ld_imm(self, state: MachineState, ins: DecodedInstruction) -> None:
        """6xkk - Vx = kk."""
        state.V[ins.x] = ins.kk
        _advance(state)

    def _op_add_imm(self, state: MachineState, ins: DecodedInstruction) -> None:
        """7xkk - Vx = Vx + kk, wrapping. VF is not touched."""
        state.V[ins.x] = (state.V[ins.x] + ins.kk) & 0xFF
        _advance(state)

    def _op_ld_reg(self, state: MachineState, ins: DecodedInstruction) -> None:
        """8xy0 - Vx = Vy."""
        state.V[ins.x] = state.V[ins.y]
        _advance(state)

    def _op_or(self, state: MachineState, ins: DecodedInstruction) -> None:
        """8xy1 - Vx = Vx | Vy."""
        state.V[ins.x] |= state.V[ins.y]
        _advance(state)

    def _op_and(self, state: MachineState, ins: DecodedInstruction) -> None:
        """8xy2 - Vx = Vx & Vy."""
        state.V[ins.x] &= state.V[ins.y]
        _advance(state)

    def _op_xor(self, state: MachineState, ins: DecodedInstruction) -> None:
        """8xy3 - Vx = Vx ^ Vy."""
        state.V[ins.x] ^= state.V[ins.y]
        _advance(state)

    def _op_add_reg(self, state: MachineState, ins: DecodedInstruction) -> None:
        """8xy4 - Vx = Vx + Vy, VF = carry."""
        total = state.V[ins.x] + state.V[ins.y]
        _set_with_flag(state, ins.x, total, 1 if total > 0xFF else 0)
        _advance(state)

    def _op_sub(self, state: MachineState, ins: DecodedInstruction) -> None:
        """8xy5 - Vx = Vx - Vy, VF = 0 on borrow, 1 otherwise."""
        vx, vy = state.V[ins.x], state.V[ins.y]
        _set_with_flag(state, ins.x, vx - vy, 0 if vy > vx else 1)
        _advance(state)

    def _op_shr(self, state: MachineState, ins: DecodedInstruction) -> None:
        """8xy6 - VF = LSB of Vx, Vx = Vx >> 1."""
        vx = state.V[ins.x]
        _set_with_flag(state, ins.x, vx >> 1, vx & 0x1)
        _advance(state)

    def _op_subn(self, state: MachineState, ins: DecodedInstruction) -> None:
        """8xy7 - Vx = Vy - Vx, VF = 0 on borrow, 1 otherwise."""
        vx, vy = state.V[ins.x], state.V[ins.y]
        _set_with_flag(state, ins.x, vy - vx, 0 if vx > vy else 1)
        _advance(state)

    def _op_shl(self, state: MachineState, ins: DecodedInstruction) -> None:
        """8xyE - VF = MSB of Vx, Vx = Vx << 1, wrapping."""
        vx = state.V[ins.x]
        _set_with_flag(state, ins.x, vx << 1, vx >> 7)
        _advance(state)

    def _op_rnd(self, state: MachineState, ins: DecodedInstruction) -> None:
        """Cxkk - Vx = random byte & kk."""
        state.V[ins.x] = self.rng.randrange(256) & ins.kk
        _advance(state)

    # =========================================================================
    # Index Register
    # =========================================================================

    def _op_ld_i(self, state: MachineState, ins: DecodedInstruction) -> None:
        """Annn - I = nnn."""
        state.I = ins.nnn
        _advance(state)

    def _op_add_i(self, state: MachineState, ins: DecodedInstruction) -> None:
        """Fx1E - I = I + Vx. No flag."""
        state.I = (state.I + state.V[ins.x]) & 0xFFFF
        _advance(state)

    def _op_ld_f(self, state: MachineState, ins: DecodedInstruction) -> None:
        """Fx29 - I = address of the glyph for digit Vx."""
        state.I = FONT_START + state.V[ins.x] * GLYPH_HEIGHT
        _advance(state)

    # =========================================================================
    # Display
    # =========================================================================

    def _op_drw(self, state: MachineState, ins: DecodedInstruction) -> None:
        """Dxyn - XOR an n-row sprite from memory at I onto the screen at (Vx, Vy).

        Every pixel wraps around both screen edges independently.
        VF is set to 1 if any lit pixel was turned off, else 0.
        """
        sprite = state.read_block(state.I, ins.n)
        origin_x = state.V[ins.x]
        origin_y = state.V[ins.y]

        collision = 0
        for row, bits in enumerate(sprite):
            line = state.display[(origin_y + row) % SCREEN_HEIGHT]
            for col in range(8):
                if not bits & (0x80 >> col):
                    continue
                px = (origin_x + col) % SCREEN_WIDTH
                if line[px]:
                    collision = 1
                line[px] ^= 1

        state.V[FLAG_REGISTER] = collision
        state.draw_flag = True
        _advance(state)

    # =========================================================================
    # Timers and Keypad
    # =========================================================================

    def _op_ld_vx_dt(self, state: MachineState, ins: DecodedInstruction) -> None:
        """Fx07 - Vx = delay timer."""
        state.V[ins.x] = state.delay_timer
        _advance(state)

    def _op_ld_dt(self, state: MachineState, ins: DecodedInstruction) -> None:
        """Fx15 - delay timer = Vx."""
        state.delay_timer = state.V[ins.x]
        _advance(state)

    def _op_ld_st(self, state: MachineState, ins: DecodedInstruction) -> None:
        """Fx18 - sound timer = Vx."""
        state.sound_timer = state.V[ins.x]
        _advance(state)

    def _op_ld_key(self, state: MachineState, ins: DecodedInstruction) -> None:
        """Fx0A - Wait for a key press, store its index in Vx.

        With no key down PC stays put, so the caller's next step()
        fetches this instruction again.
        """
        for key, down in enumerate(state.keypad):
            if down:
                state.V[ins.x] = key
                _advance(state)
                return

    # =========================================================================
    # Memory Transfers
    # =========================================================================

    def _op_ld_bcd(self, state: MachineState, ins: DecodedInstruction) -> None:
        """Fx33 - Store hundreds, tens and ones of Vx at I, I+1, I+2."""
        vx = state.V[ins.x]
        state.write_block(state.I, (vx // 100, (vx // 10) % 10, vx % 10))
        _advance(state)

    def _op_store(self, state: MachineState, ins: DecodedInstruction) -> None:
        """Fx55 - Store V0..Vx at I. I is unchanged."""
        state.write_block(state.I, state.V[:ins.x + 1])
        _advance(state)

    def _op_load(self, state: MachineState, ins: DecodedInstruction) -> None:
        """Fx65 - Load V0..Vx from I. I is unchanged."""
        values = state.read_block(state.I, ins.x + 1)
        state.V[:ins.x + 1] = list(values)
        _advance(state)

    def _op_invalid(self, state: MachineState, ins: DecodedInstruction) -> None:
        """Unknown instruction word: skip over it."""
        _advance(state)


# =============================================================================
# Helpers
# =============================================================================

def _advance(state: MachineState) -> None:
    state.pc += INSTRUCTION_SIZE


def _skip_if(state: MachineState, condition: bool) -> None:
    state.pc += 2 * INSTRUCTION_SIZE if condition else INSTRUCTION_SIZE


def _set_with_flag(state: MachineState, x: int, value: int, flag: int) -> None:
    # Flag written last so VF holds the flag when x == 0xF
    state.V[x] = value & 0xFF
    state.V[FLAG_REGISTER] = flag


def _key_down(state: MachineState, key: int) -> bool:
    return key < NUM_KEYS and state.keypad[key]

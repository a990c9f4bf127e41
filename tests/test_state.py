"""Tests for MachineState dataclass."""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_vm.constants import FONT_SET, MEMORY_SIZE, PROGRAM_START, SCREEN_HEIGHT, SCREEN_WIDTH
from chip8_vm.errors import MemoryAccessError
from chip8_vm.state import MachineState, create_initial_state


class TestMachineStateCreation:
    """Test MachineState initialization and defaults."""

    def test_default_state(self):
        """Default state has zeroed registers, timers and screen."""
        state = MachineState()
        assert state.pc == PROGRAM_START
        assert state.I == 0
        assert state.sp == 0
        assert state.V == [0] * 16
        assert state.stack == [0] * 16
        assert state.delay_timer == 0
        assert state.sound_timer == 0
        assert state.cycle_count == 0
        assert state.draw_flag is False
        assert state.keypad == [False] * 16
        assert len(state.memory) == MEMORY_SIZE
        assert all(p == 0 for row in state.display for p in row)

    def test_create_initial_state_loads_glyphs(self):
        """create_initial_state writes the glyph set at 0x000."""
        state = create_initial_state()
        assert bytes(state.memory[:80]) == FONT_SET
        assert not any(state.memory[80:])

    def test_instances_do_not_share_storage(self):
        """Two states never alias each other's arrays."""
        a = create_initial_state()
        b = create_initial_state()
        a.V[0] = 7
        a.display[0][0] = 1
        a.memory[0x300] = 0xAB
        assert b.V[0] == 0
        assert b.display[0][0] == 0
        assert b.memory[0x300] == 0

    def test_display_dimensions(self):
        state = MachineState()
        assert len(state.display) == SCREEN_HEIGHT
        assert all(len(row) == SCREEN_WIDTH for row in state.display)


class TestMachineStateValidation:
    """Test state validation."""

    def test_valid_state(self):
        """Fresh state passes validation."""
        assert create_initial_state().validate() is True

    def test_register_out_of_range(self):
        state = MachineState()
        state.V[3] = 256
        assert state.validate() is False

    def test_pc_outside_memory(self):
        state = MachineState(pc=MEMORY_SIZE)
        assert state.validate() is False

    def test_stack_pointer_too_large(self):
        state = MachineState(sp=17)
        assert state.validate() is False

    def test_timer_out_of_range(self):
        state = MachineState(delay_timer=300)
        assert state.validate() is False

    def test_non_binary_pixel(self):
        state = MachineState()
        state.display[5][5] = 2
        assert state.validate() is False


class TestMachineStateMemory:
    """Test bounds-checked memory access."""

    def test_read_write_byte(self):
        state = MachineState()
        state.write_byte(0xFFF, 0x1AB)
        assert state.read_byte(0xFFF) == 0xAB

    def test_read_past_end(self):
        state = MachineState()
        with pytest.raises(MemoryAccessError) as exc_info:
            state.read_byte(0x1000)
        assert exc_info.value.address == 0x1000

    def test_write_past_end(self):
        state = MachineState()
        with pytest.raises(MemoryAccessError):
            state.write_byte(0x1000, 1)

    def test_block_ending_at_last_cell(self):
        state = MachineState()
        state.write_block(0xFFD, [1, 2, 3])
        assert state.read_block(0xFFD, 3) == bytes([1, 2, 3])

    def test_block_crossing_end_is_all_or_nothing(self):
        state = MachineState()
        with pytest.raises(MemoryAccessError):
            state.write_block(0xFFE, [1, 2, 3])
        assert state.memory[0xFFE] == 0
        assert state.memory[0xFFF] == 0


class TestMachineStateAccessors:
    """Test register accessors and rendering."""

    def test_set_register_wraps(self):
        state = MachineState()
        state.set_register(0x2, 0x1FF)
        assert state.get_register(0x2) == 0xFF

    def test_get_register_invalid(self):
        state = MachineState()
        with pytest.raises(IndexError):
            state.get_register(16)

    def test_snapshot_is_copy(self):
        """Modifying a snapshot doesn't affect state."""
        state = MachineState()
        state.V[0] = 42
        snapshot = state.snapshot()
        assert snapshot["V"][0] == 42
        assert snapshot["pc"] == PROGRAM_START

        snapshot["V"][0] = 99
        assert state.V[0] == 42

    def test_snapshot_stack_holds_occupied_slots(self):
        state = MachineState()
        state.stack[0] = 0x204
        state.sp = 1
        assert state.snapshot()["stack"] == [0x204]

    def test_render_display(self):
        state = MachineState()
        state.display[0][0] = 1
        state.display[31][63] = 1
        lines = state.render_display()
        assert len(lines) == SCREEN_HEIGHT
        assert lines[0] == "#" + "." * 63
        assert lines[31] == "." * 63 + "#"

    def test_str(self):
        state = MachineState()
        state.V[0xA] = 0x3C
        text = str(state)
        assert "PC=200" in text
        assert "VA=3C" in text

    def test_clear_display(self):
        state = MachineState()
        state.display[10][20] = 1
        state.clear_display()
        assert all(p == 0 for row in state.display for p in row)

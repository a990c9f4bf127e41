"""Fatal error conditions raised by the interpreter.

Unknown opcodes are not errors: they are logged and skipped. Everything
in this module means the running program is malformed and the caller's
loop must stop.
"""


class Chip8Error(RuntimeError):
    """Base class for fatal emulation errors."""


class ProgramTooLargeError(Chip8Error, ValueError):
    """Program does not fit between 0x200 and the end of memory."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Program is {size} bytes, limit is {limit} bytes")
        self.size = size
        self.limit = limit


class StackOverflowError(Chip8Error):
    """CALL executed with all 16 stack slots in use."""

    def __init__(self, pc: int):
        super().__init__(f"Stack overflow at PC 0x{pc:03X}")
        self.pc = pc


class StackUnderflowError(Chip8Error):
    """RET executed with an empty stack."""

    def __init__(self, pc: int):
        super().__init__(f"Stack underflow at PC 0x{pc:03X}")
        self.pc = pc


class MemoryAccessError(Chip8Error):
    """An instruction touched an address at or beyond 0x1000."""

    def __init__(self, address: int, pc: int):
        super().__init__(f"Memory access out of range: 0x{address:04X} at PC 0x{pc:03X}")
        self.address = address
        self.pc = pc

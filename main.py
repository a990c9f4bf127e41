#!/usr/bin/env python3
"""chip8-vm Command Line Interface.

Run a CHIP-8 ROM headless for a fixed number of cycles.

Usage:
    python main.py --rom roms/ibm_logo.ch8 --cycles 120 --show-display
    python main.py --rom roms/keypad_test.ch8 --keys 5 --hz 0 --verbose
"""

import argparse
import logging
import random
import sys
import time
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from chip8_vm import Chip8CPU, Chip8Error, ProgramTooLargeError
from chip8_vm.constants import NUM_KEYS

logger = logging.getLogger("chip8_vm.main")


def parse_keys(digits: str) -> list:
    """Turn a string of hex digits ("5A") into a 16-entry keypad snapshot."""
    keys = [False] * NUM_KEYS
    for ch in digits:
        keys[int(ch, 16)] = True
    return keys


def main():
    parser = argparse.ArgumentParser(
        description="chip8-vm: CHIP-8 interpreter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run a ROM for 10 seconds of machine time and print the screen
    python main.py --rom roms/ibm_logo.ch8 --show-display

    # Run unthrottled with keys 5 and A held down
    python main.py --rom roms/game.ch8 --hz 0 --keys 5A
        """
    )

    parser.add_argument(
        "--rom", "-r",
        type=str,
        required=True,
        help="Path to a raw CHIP-8 ROM image"
    )
    parser.add_argument(
        "--cycles", "-c",
        type=int,
        default=600,
        help="Number of cycles to execute. Default: 600"
    )
    parser.add_argument(
        "--hz",
        type=float,
        default=60.0,
        help="Cycle rate in Hz, 0 for unthrottled. Default: 60"
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed for the random number instruction"
    )
    parser.add_argument(
        "--keys", "-k",
        type=str,
        default="",
        help="Hex digits of keys held down for the whole run, e.g. 5A"
    )
    parser.add_argument(
        "--show-display",
        action="store_true",
        help="Print the final framebuffer"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output (final registers only)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        keys = parse_keys(args.keys)
    except (ValueError, IndexError):
        parser.error(f"--keys must be hex digits 0-F, got {args.keys!r}")

    rng = None
    if args.seed is not None:
        rng = random.Random(args.seed)

    cpu = Chip8CPU(rng=rng)

    try:
        cpu.load_rom_file(args.rom)
    except FileNotFoundError:
        print(f"Error: ROM file not found: {args.rom}")
        return 2
    except ProgramTooLargeError as e:
        print(f"Error: {e}")
        return 2

    if not args.quiet:
        print(f"Loading ROM: {args.rom}")
        print("-" * 60)

    logger.debug("Running %d cycles, rate %s", args.cycles, f"{args.hz} Hz" if args.hz > 0 else "unthrottled")
    period = 1.0 / args.hz if args.hz > 0 else 0.0
    frames = 0
    exit_code = 0

    # The emulation loop: keys in, one cycle, frame out
    for _ in range(args.cycles):
        started = time.monotonic()
        cpu.set_keys(keys)
        try:
            cpu.step()
        except Chip8Error as e:
            print(f"Execution error: {e}")
            exit_code = 1
            break
        if cpu.draw_flag:
            frames += 1
            cpu.clear_draw_flag()
        if period:
            remaining = period - (time.monotonic() - started)
            if remaining > 0:
                time.sleep(remaining)

    summary = cpu.get_summary()
    if not args.quiet:
        print(f"Cycles: {summary['cycles']}")
        print(f"Halted: {summary['halted']}")
        print(f"PC: 0x{summary['pc']:03X}  I: 0x{summary['I']:03X}  SP: {summary['sp']}")
        print(f"Registers: {summary['registers']}")
        print(f"Frames drawn: {frames}  Beeps: {summary['beeps']}")
    else:
        regs = cpu.dump_registers()
        for reg in sorted(regs.keys()):
            if regs[reg] != 0:
                print(f"{reg}={regs[reg]}")

    if args.show_display:
        print("\n".join(cpu.state.render_display()))

    return exit_code


if __name__ == "__main__":
    sys.exit(main())

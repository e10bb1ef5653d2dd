#!/usr/bin/env python3
"""vcpu Command Line Interface.

Run integer-encoded programs on the virtual CPU.

Usage:
    python main.py --program factorial
    python main.py --inline "1,0,42, 11,0, 12" --trace
    python main.py --menu
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from vcpu import Machine, EXAMPLE_PROGRAMS, parse_program
from vcpu.programs import get_program


MENU = """
=== CPU Simulator Menu ===
1. Run Arithmetic Program
2. Run Factorial Program (5!)
3. Run Counting Program (1 to 5)
4. Step-by-step Execution Demo
5. Exit"""

MENU_PROGRAMS = {"1": "arithmetic", "2": "factorial", "3": "counting"}


def print_output(reg, value):
    print(f"PRINT {reg}: {value}")


def run_to_completion(cpu, args):
    """Run a loaded machine, showing state before and after."""
    if not args.quiet:
        print(cpu.format_state())
        print("\n=== CPU Execution Started ===")
    cpu.run()
    if not args.quiet:
        print("=== CPU Execution Finished ===\n")
        print(cpu.format_state())


def run_step_by_step(cpu, prompt=input):
    """Execute one instruction per Enter press, reporting AX and PC.

    Returns False if input ended (EOF or Ctrl-C) before the machine halted.
    """
    print(cpu.format_state())
    step_count = 1
    while cpu.is_running():
        print(f"\n--- Step {step_count} ---")
        try:
            prompt("Press Enter to continue...")
        except (EOFError, KeyboardInterrupt):
            print("\nStepping stopped.")
            return False
        step_count += 1

        entry = cpu.step()
        if entry is not None:
            print(f"PC={entry.address}: {entry.instruction}")
        print(f"Register AX: {cpu.get_register('AX')}")
        print(f"Program Counter: {cpu.get_pc()}")
        print(f"CPU Running: {'Yes' if cpu.is_running() else 'No'}")

    print("\nFinal state")
    print(cpu.format_state())
    return True


def run_menu(args, prompt=input):
    """Interactive menu over the example programs."""
    print("CPU Simulator")
    print("=============")
    print("A virtual CPU that can execute simple assembly-like programs.")

    while True:
        print(MENU)
        try:
            choice = prompt("Enter your choice (1-5): ").strip()
        except (EOFError, KeyboardInterrupt):
            # Input closed: leave like option 5
            print()
            choice = "5"

        if choice in MENU_PROGRAMS:
            name = MENU_PROGRAMS[choice]
            print(f"\n--- Running {name.title()} Program ---")
            cpu = Machine(memory_size=args.memory_size, output_callback=print_output)
            cpu.load_program(get_program(name))
            run_to_completion(cpu, args)
            continue

        if choice == "4":
            print("\n=== Step-by-step Execution Demo ===")
            print("Program: LOAD AX, 42; PRINT AX; HALT")
            cpu = Machine(memory_size=args.memory_size, output_callback=print_output)
            cpu.load_program(get_program("step-demo"))
            if run_step_by_step(cpu, prompt):
                continue
            choice = "5"

        if choice == "5":
            print("Exiting CPU Simulator. Goodbye!")
            return 0
        print("Invalid choice. Please enter 1-5.")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="vcpu: Minimal Virtual CPU",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run the factorial example
    python main.py --program factorial

    # Run inline integers with full trace output
    python main.py --inline "1,0,42, 11,0, 12" --trace

    # Execute one instruction per Enter press
    python main.py --program counting --step

    # Interactive menu
    python main.py --menu
        """
    )

    parser.add_argument(
        "--program", "-p",
        choices=sorted(EXAMPLE_PROGRAMS),
        help="Name of an example program"
    )
    parser.add_argument(
        "--inline", "-i",
        type=str,
        help="Inline program: integers separated by commas or spaces"
    )
    parser.add_argument(
        "--menu",
        action="store_true",
        help="Interactive menu over the example programs"
    )
    parser.add_argument(
        "--step",
        action="store_true",
        help="Execute one instruction per Enter press"
    )
    parser.add_argument(
        "--memory-size",
        type=int,
        default=1024,
        help="Number of memory cells. Default: 1024"
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=10000,
        help="Maximum execution cycles (safety limit). Default: 10000"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print full execution trace"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output (final registers only)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log every executed instruction"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )

    if args.memory_size < 0:
        parser.error("--memory-size must not be negative")

    if args.menu:
        return run_menu(args, input)

    if not args.program and not args.inline:
        parser.error("One of --program, --inline or --menu is required")

    if args.program:
        program = get_program(args.program)
        if not args.quiet:
            print(f"Loading program: {args.program}")
    else:
        try:
            program = parse_program(args.inline)
        except ValueError as e:
            print(f"Error: {e}")
            return 1
        if not args.quiet:
            print("Running inline program")

    cpu = Machine(
        memory_size=args.memory_size,
        max_cycles=args.max_cycles,
        output_callback=None if args.quiet else print_output
    )
    cpu.load_program(program)

    if args.step:
        if not run_step_by_step(cpu, input):
            return 0
    else:
        run_to_completion(cpu, args)

    if args.trace:
        cpu.print_trace()
    elif args.quiet:
        # Quiet mode - just print final registers
        regs = cpu.dump_registers()
        for reg, value in regs.items():
            if value != 0:
                print(f"{reg}={value}")

    if cpu.halt_reason and not args.quiet:
        print(f"Halted: {cpu.halt_reason}")

    if cpu.is_running():
        print(f"Stopped: max cycles ({args.max_cycles}) exceeded")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Canned demonstration programs and integer program parsing.

Programs are plain integer lists in the machine's encoding. Jump targets
are absolute addresses, so the loop start of each program is noted.
"""

import re
from typing import Dict, List


# AX=10, BX=5; prints 15, 10, 50
ARITHMETIC = [
    1, 0, 10,       # LOAD AX, 10
    1, 1, 5,        # LOAD BX, 5
    3, 0, 1,        # ADD AX, BX
    11, 0,          # PRINT AX
    4, 0, 1,        # SUB AX, BX
    11, 0,          # PRINT AX
    5, 0, 1,        # MUL AX, BX
    11, 0,          # PRINT AX
    12,             # HALT
]

# 5! accumulated in BX; loop starts at address 9
FACTORIAL = [
    1, 0, 5,        # LOAD AX, 5
    1, 1, 1,        # LOAD BX, 1
    1, 2, 1,        # LOAD CX, 1
    5, 1, 0,        # MUL BX, AX
    4, 0, 2,        # SUB AX, CX
    10, 0, 2,       # CMP AX, CX
    9, 0, 2, 9,     # JNE AX, CX, 9
    11, 1,          # PRINT BX
    12,             # HALT
]

# Prints 1 through 5; loop starts at address 9
COUNTING = [
    1, 0, 1,        # LOAD AX, 1
    1, 1, 5,        # LOAD BX, 5
    1, 2, 1,        # LOAD CX, 1
    11, 0,          # PRINT AX
    3, 0, 2,        # ADD AX, CX
    10, 0, 1,       # CMP AX, BX
    9, 0, 1, 9,     # JNE AX, BX, 9
    11, 0,          # PRINT AX
    12,             # HALT
]

STEP_DEMO = [
    1, 0, 42,       # LOAD AX, 42
    11, 0,          # PRINT AX
    12,             # HALT
]

EXAMPLE_PROGRAMS: Dict[str, List[int]] = {
    "arithmetic": ARITHMETIC,
    "factorial": FACTORIAL,
    "counting": COUNTING,
    "step-demo": STEP_DEMO,
}


def get_program(name: str) -> List[int]:
    """Return a copy of a named example program.

    Raises:
        KeyError: If no example has that name
    """
    if name not in EXAMPLE_PROGRAMS:
        raise KeyError(f"Unknown program: {name}")
    return list(EXAMPLE_PROGRAMS[name])


def parse_program(source: str) -> List[int]:
    """Parse an integer program from text.

    Values are separated by commas and/or whitespace; ``#`` or ``;``
    starts a comment running to the end of the line. Hex (0x..) values
    are accepted.

    Args:
        source: Program text, e.g. "1, 0, 42, 11, 0, 12"

    Returns:
        List of integers

    Raises:
        ValueError: If a token is not an integer
    """
    program = []
    for line_no, line in enumerate(source.splitlines(), start=1):
        line = re.split(r"[#;]", line, maxsplit=1)[0]
        for token in re.split(r"[,\s]+", line.strip()):
            if not token:
                continue
            try:
                program.append(int(token, 0))
            except ValueError:
                raise ValueError(f"Line {line_no}: not an integer: {token!r}") from None
    return program


def format_program(program: List[int]) -> str:
    """Render a program as comma separated integers."""
    return ", ".join(str(value) for value in program)

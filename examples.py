"""Bundled Befunge programs."""

from __future__ import annotations
from typing import Dict, List


HELLO_WORLD = r'64+"!dlroW ,olleH">:#,_@'

# Marks composites in row 3 and prints every prime below 80.
ERATOSTHENES = r"""2>:3g" "-!v\  g30          <
 |!`"O":+1_:.:03p>03g+:"O"`|
 @               ^  p3\" ":<
2 234567890123456789012345678901234567890123456789012345678901234567890123456789
"""

# Reads n with '&' and prints n!.
FACTORIAL = r"""&>:1-:v v *_$.@
 ^    _$>\:^
"""

QUINE = r"01->1# +# :# 0# g# ,# :# 5# 8# *# 4# +# -# _@"

# Reads an integer and echoes it back on its own line.
INPUT = r"&.55+,@"

# Prints 0, 1 or 2; the '>' left of '?' turns a left pick into a retry.
RNG = r"""v>0.@
>?1.@
 >2.@
"""

EXAMPLES: Dict[str, str] = {
    "eratosthenes": ERATOSTHENES,
    "factorial": FACTORIAL,
    "hello_world": HELLO_WORLD,
    "input": INPUT,
    "quine": QUINE,
    "rng": RNG,
}


def example_names() -> List[str]:
    return sorted(EXAMPLES)


def get_example(name: str) -> str:
    try:
        return EXAMPLES[name]
    except KeyError:
        raise KeyError(f"Unknown example '{name}' (available: {', '.join(example_names())})")

import random
from typing import List, Tuple

from buckshot.models import Shell

MIN_SHELLS = 2
MAX_SHELLS = 8


def generate_chamber(rng: random.Random = None) -> List[Shell]:
    """Build a shuffled chamber of 2-8 shells, half of them (rounded down) live.

    Pass a seeded ``random.Random`` for reproducible output. Without one every
    call gets its own fresh generator.
    """
    rng = rng or random.Random()
    total = rng.randint(MIN_SHELLS, MAX_SHELLS)
    live = max(1, total // 2)
    chamber = [Shell.LIVE] * live + [Shell.BLANK] * (total - live)
    rng.shuffle(chamber)
    return chamber


def count_shells(chamber: List[Shell], start: int = 0) -> Tuple[int, int]:
    """(live, blank) among the shells from ``start`` onward."""
    remaining = chamber[start:]
    live = sum(1 for s in remaining if s is Shell.LIVE)
    return live, len(remaining) - live

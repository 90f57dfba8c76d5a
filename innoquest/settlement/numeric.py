import math


def round_half_up(x: float) -> int:
    # Ties go toward +inf for negatives too: -2.5 -> -2.
    return int(math.floor(x + 0.5))

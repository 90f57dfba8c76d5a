STAGE_PRE_SEED = "Pre-Seed"
STAGE_SEED = "Seed"
STAGE_SERIES_A = "Series A"
STAGE_SERIES_B = "Series B"
STAGE_SERIES_C = "Series C"

STAGE_ORDER = [
    STAGE_PRE_SEED,
    STAGE_SEED,
    STAGE_SERIES_A,
    STAGE_SERIES_B,
    STAGE_SERIES_C,
]

STAGE_TO_INDEX = {name: idx for idx, name in enumerate(STAGE_ORDER)}


def next_stage(current: str) -> str | None:
    """Return the stage after `current`, or None at the top stage."""
    idx = STAGE_TO_INDEX[current]
    if idx + 1 >= len(STAGE_ORDER):
        return None
    return STAGE_ORDER[idx + 1]


def is_forward(old: str, new: str) -> bool:
    return STAGE_TO_INDEX[new] > STAGE_TO_INDEX[old]

STRATEGY_SKIP = "skip"
STRATEGY_ONE = "one"
STRATEGY_TWO_IF_FAIL = "two-if-fail"
STRATEGY_TWO_ALWAYS = "two-always"

STRATEGIES = [
    STRATEGY_SKIP,
    STRATEGY_ONE,
    STRATEGY_TWO_IF_FAIL,
    STRATEGY_TWO_ALWAYS,
]


def needs_secondary(strategy: str) -> bool:
    return strategy in (STRATEGY_TWO_IF_FAIL, STRATEGY_TWO_ALWAYS)

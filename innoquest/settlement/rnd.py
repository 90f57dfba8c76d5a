from __future__ import annotations
from dataclasses import dataclass, field
from typing import List
import numpy as np

from innoquest.settlement.config import RndTierConfig
from innoquest.settlement.strategy import (
    STRATEGIES,
    STRATEGY_SKIP,
    STRATEGY_TWO_ALWAYS,
    STRATEGY_TWO_IF_FAIL,
)
from innoquest.settlement.tiers import TierOutcome, resolve_tier


@dataclass(frozen=True)
class RndOutcome:
    success: bool = False
    multiplier: float = 1.0
    cost: int = 0
    tests: List[TierOutcome] = field(default_factory=list)

    @property
    def tested(self) -> bool:
        return len(self.tests) > 0

    @property
    def successes(self) -> int:
        return sum(1 for t in self.tests if t.success)

    @property
    def success_probability(self) -> float | None:
        # Probability of the first test that succeeded, else of the first test run
        if not self.tests:
            return None
        for t in self.tests:
            if t.success:
                return t.success_probability
        return self.tests[0].success_probability


def combine_tests(tests: List[TierOutcome]) -> RndOutcome:
    if not tests:
        return RndOutcome()
    multiplier = 1.0
    for t in tests:
        if t.success:
            multiplier *= t.multiplier
    return RndOutcome(
        success=any(t.success for t in tests),
        multiplier=multiplier,
        cost=sum(t.cost for t in tests),
        tests=list(tests),
    )


def resolve_strategy(
    strategy: str,
    primary: str | None,
    secondary: str | None,
    tier_config: RndTierConfig | None,
    rng: np.random.Generator,
) -> RndOutcome:
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown R&D strategy: {strategy}")
    if strategy == STRATEGY_SKIP:
        return RndOutcome()
    if not primary:
        raise ValueError(f"R&D strategy '{strategy}' needs a primary tier")

    tests = [resolve_tier(primary, tier_config, rng)]
    # Without a secondary tier the two-test strategies degrade to a single test
    if secondary:
        if strategy == STRATEGY_TWO_ALWAYS:
            tests.append(resolve_tier(secondary, tier_config, rng))
        elif strategy == STRATEGY_TWO_IF_FAIL and not tests[0].success:
            tests.append(resolve_tier(secondary, tier_config, rng))
    return combine_tests(tests)

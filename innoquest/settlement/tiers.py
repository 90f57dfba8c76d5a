from __future__ import annotations
from dataclasses import dataclass
import numpy as np

from innoquest.settlement.config import RndTierConfig
from innoquest.settlement.errors import ConfigurationMissing
from innoquest.settlement.numeric import round_half_up


@dataclass(frozen=True)
class TierOutcome:
    tier: str
    success: bool
    multiplier: float
    cost: int
    success_probability: float  # 0..1


def resolve_tier(tier: str, tier_config: RndTierConfig | None, rng: np.random.Generator) -> TierOutcome:
    """Draw cost, success probability and multiplier for one R&D test, then roll it."""
    ranges = tier_config.get(tier) if tier_config is not None else None
    if ranges is None:
        raise ConfigurationMissing(f"R&D tier '{tier}' is not configured for this game")

    cost = round_half_up(rng.uniform(ranges.min_cost, ranges.max_cost))
    success_probability = rng.uniform(ranges.success_min, ranges.success_max) / 100.0
    success_multiplier = rng.uniform(ranges.multiplier_min, ranges.multiplier_max) / 100.0

    success = bool(rng.random() < success_probability)
    # A failed test leaves demand untouched
    multiplier = float(success_multiplier) if success else 1.0
    return TierOutcome(
        tier=tier,
        success=success,
        multiplier=multiplier,
        cost=cost,
        success_probability=float(success_probability),
    )

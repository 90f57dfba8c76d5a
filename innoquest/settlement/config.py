from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Mapping, Tuple

from innoquest.settlement.stage import STAGE_SERIES_A, STAGE_SERIES_B, STAGE_SERIES_C, STAGE_SEED

TIER_NAMES = ["basic", "standard", "advanced", "premium"]

# Admin settings key -> funding stage name
STAGE_KEYS = {
    "seed": STAGE_SEED,
    "series_a": STAGE_SERIES_A,
    "series_b": STAGE_SERIES_B,
    "series_c": STAGE_SERIES_C,
}


def _check_range(name: str, lo: float, hi: float) -> None:
    if lo > hi:
        raise ValueError(f"{name}: min {lo} exceeds max {hi}")


@dataclass(frozen=True)
class TierRange:
    min_cost: float
    max_cost: float
    success_min: float      # percent
    success_max: float      # percent
    multiplier_min: float   # percent, 120 -> x1.20
    multiplier_max: float   # percent

    def __post_init__(self):
        _check_range("cost", self.min_cost, self.max_cost)
        _check_range("success", self.success_min, self.success_max)
        _check_range("multiplier", self.multiplier_min, self.multiplier_max)

    @staticmethod
    def from_dict(data: Mapping) -> "TierRange":
        return TierRange(
            min_cost=float(data["min_cost"]),
            max_cost=float(data["max_cost"]),
            success_min=float(data["success_min"]),
            success_max=float(data["success_max"]),
            multiplier_min=float(data["multiplier_min"]),
            multiplier_max=float(data["multiplier_max"]),
        )


@dataclass(frozen=True)
class RndTierConfig:
    tiers: Dict[str, TierRange] = field(default_factory=dict)

    def get(self, tier: str) -> TierRange | None:
        return self.tiers.get(tier)

    @staticmethod
    def from_dict(data: Mapping) -> "RndTierConfig":
        return RndTierConfig(tiers={name: TierRange.from_dict(data[name]) for name in TIER_NAMES if data.get(name)})


@dataclass(frozen=True)
class StageConfig:
    mean: float
    sd_percent: float
    bonus_multiplier: float
    # Advancement thresholds for reaching this stage
    expected_revenue: float
    demand: float
    rd_count: int

    @property
    def sd(self) -> float:
        return self.mean * self.sd_percent / 100.0

    @staticmethod
    def from_dict(data: Mapping) -> "StageConfig":
        mean = float(data["mean"])
        expected_revenue = data.get("expected_revenue")
        return StageConfig(
            mean=mean,
            sd_percent=float(data.get("sd_percent", 0.0)),
            bonus_multiplier=float(data.get("bonus_multiplier", 1.0)),
            expected_revenue=mean if expected_revenue is None else float(expected_revenue),
            demand=float(data.get("demand") or 0),
            rd_count=int(data.get("rd_count") or 0),
        )


@dataclass(frozen=True)
class InvestmentConfig:
    stages: Dict[str, StageConfig] = field(default_factory=dict)

    def for_stage(self, stage: str) -> StageConfig | None:
        return self.stages.get(stage)

    @staticmethod
    def from_dict(data: Mapping) -> "InvestmentConfig":
        stages = {}
        for key, stage in STAGE_KEYS.items():
            if data.get(key):
                stages[stage] = StageConfig.from_dict(data[key])
        return InvestmentConfig(stages=stages)


@dataclass
class GameConfig:
    # Market defaults when the session leaves them unset
    default_population_size: int = 10000
    default_cost_per_analytics: float = 5000.0
    default_max_teams: int = 10

    # Pricing collaborator
    fallback_purchase_probability: float = 0.5  # percent
    pricing_timeout_seconds: float = 2.0

    # Advancement bonus = revenue * rate * current stage bonus multiplier
    advancement_bonus_rate: float = 0.05
    default_bonus_multiplier: float = 1.5

    # Award quantile clip
    probability_clip: Tuple[float, float] = (0.01, 0.99)

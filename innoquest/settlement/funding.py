from __future__ import annotations
from dataclasses import dataclass

from innoquest.settlement.config import GameConfig, InvestmentConfig
from innoquest.settlement.errors import ConfigurationMissing
from innoquest.settlement.numeric import round_half_up
from innoquest.settlement.stage import STAGE_PRE_SEED, STAGE_TO_INDEX, next_stage
from innoquest.settlement.state import STATUS_FAIL, STATUS_PASS


@dataclass(frozen=True)
class Thresholds:
    revenue: float
    demand: float
    rd_count: int

    def met(self, revenue: float, demand: float, successful_tests: int) -> bool:
        return revenue >= self.revenue and demand >= self.demand and successful_tests >= self.rd_count


@dataclass(frozen=True)
class FundingDecision:
    status: str
    advanced: bool = False
    bonus: int = 0
    next_stage: str | None = None


def stage_thresholds(stage: str, investment: InvestmentConfig) -> Thresholds:
    if stage == STAGE_PRE_SEED:
        return Thresholds(0.0, 0.0, 0)
    cfg = investment.for_stage(stage)
    if cfg is None:
        raise ConfigurationMissing(f"Investment stage '{stage}' is not configured for this game")
    return Thresholds(cfg.expected_revenue, cfg.demand, cfg.rd_count)


def evaluate_funding(
    revenue: float,
    demand: float,
    successful_tests: int,
    current_stage: str,
    investment: InvestmentConfig | None,
    config: GameConfig | None = None,
) -> FundingDecision:
    """Pass/fail for the week and whether the team reaches the next funding stage.

    `successful_tests` is cumulative and already includes this week's successes.
    """
    if investment is None:
        raise ConfigurationMissing("Investment configuration is not set for this game")
    config = config or GameConfig()
    if current_stage not in STAGE_TO_INDEX:
        return FundingDecision(status=STATUS_FAIL)

    upcoming = next_stage(current_stage)
    if upcoming is not None and stage_thresholds(upcoming, investment).met(revenue, demand, successful_tests):
        current_cfg = investment.for_stage(current_stage)
        multiplier = current_cfg.bonus_multiplier if current_cfg and current_cfg.bonus_multiplier else config.default_bonus_multiplier
        bonus = round_half_up(revenue * config.advancement_bonus_rate * multiplier)
        return FundingDecision(status=STATUS_PASS, advanced=True, bonus=bonus, next_stage=upcoming)

    if stage_thresholds(current_stage, investment).met(revenue, demand, successful_tests):
        return FundingDecision(status=STATUS_PASS)
    return FundingDecision(status=STATUS_FAIL)

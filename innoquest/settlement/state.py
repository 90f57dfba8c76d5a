from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List

from innoquest.settlement.config import InvestmentConfig, RndTierConfig
from innoquest.settlement.stage import STAGE_PRE_SEED
from innoquest.settlement.strategy import STRATEGY_SKIP

SESSION_SETUP = "setup"
SESSION_ACTIVE = "active"
SESSION_PAUSED = "paused"
SESSION_COMPLETED = "completed"

STATUS_PENDING = "pending"
STATUS_PASS = "pass"
STATUS_FAIL = "fail"

# Explicit outcome of a settled round, read by the next week's repair pass
OUTCOME_PENDING = "pending"
OUTCOME_PLAYED = "played"
OUTCOME_LOST = "lost"


@dataclass
class GameSession:
    game_id: str
    current_week: int = 1
    total_weeks: int = 10
    status: str = SESSION_SETUP
    max_teams: int = 10
    population_size: int = 10000
    initial_capital: float = 0.0
    cost_per_analytics: float = 5000.0
    rnd_tier_config: RndTierConfig | None = None
    investment_config: InvestmentConfig | None = None
    # UI countdown only, settlement never reads it
    week_start_time: datetime | None = None
    is_paused: bool = False
    pause_timestamp: datetime | None = None

    def copy(self) -> "GameSession":
        return replace(self)


@dataclass
class Team:
    team_id: str
    game_id: str
    name: str = ""
    balance: float = 0.0
    funding_stage: str = STAGE_PRE_SEED
    successful_rnd_tests: int = 0
    pending_bonus_multiplier: float | None = None
    product_id: str | None = None
    last_activity: datetime | None = None

    @property
    def joined(self) -> bool:
        return self.last_activity is not None

    def copy(self) -> "Team":
        return replace(self)


@dataclass(frozen=True)
class WeeklyDecision:
    team_id: str
    week_number: int
    price: float
    rnd_strategy: str = STRATEGY_SKIP
    rnd_tier_primary: str | None = None
    rnd_tier_secondary: str | None = None
    analytics_units_purchased: int = 0
    product_id: str | None = None


@dataclass
class WeeklyResult:
    team_id: str
    week_number: int
    demand: int = 0
    revenue: float = 0.0
    rnd_cost: float = 0.0
    analytics_cost: float = 0.0
    total_costs: float = 0.0
    profit: float = 0.0
    rnd_success: bool = False
    rnd_success_probability: float | None = None  # percent
    rnd_multiplier: float = 1.0
    pass_fail_status: str = STATUS_PENDING
    bonus_earned: float = 0.0
    bonus_multiplier_applied: float | None = None
    round_outcome: str = OUTCOME_PENDING

    @property
    def settled(self) -> bool:
        return self.round_outcome != OUTCOME_PENDING

    @property
    def lost(self) -> bool:
        return self.round_outcome == OUTCOME_LOST

    def copy(self) -> "WeeklyResult":
        return replace(self)


@dataclass(frozen=True)
class RndTestRecord:
    team_id: str
    week_number: int
    slot: int  # 1 = primary, 2 = secondary
    tier: str
    success: bool
    cost: float
    multiplier: float
    success_probability: float


@dataclass(frozen=True)
class MilestoneAchievement:
    game_id: str
    stage: str
    rank: int
    team_id: str
    award_amount: int
    week_number: int
    applied: bool = True


@dataclass(frozen=True)
class MilestoneEvent:
    team_id: str
    old_stage: str
    new_stage: str
    revenue: float
    sequence: int


@dataclass
class TeamSettlement:
    """Everything one team's settlement produced, before the award pass."""

    team: Team
    result: WeeklyResult
    tests: List[RndTestRecord] = field(default_factory=list)
    event: MilestoneEvent | None = None
    repaired: bool = False

    @property
    def lost(self) -> bool:
        return self.result.lost

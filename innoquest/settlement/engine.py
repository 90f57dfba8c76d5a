from __future__ import annotations
import logging
from typing import List
import numpy as np

from innoquest.settlement.config import GameConfig
from innoquest.settlement.demand import apply_multiplier, base_demand, revenue_for
from innoquest.settlement.errors import BalanceResetInconsistency
from innoquest.settlement.funding import evaluate_funding
from innoquest.settlement.numeric import round_half_up
from innoquest.settlement.rnd import resolve_strategy
from innoquest.settlement.stage import STAGE_PRE_SEED, is_forward
from innoquest.settlement.state import (
    OUTCOME_LOST,
    OUTCOME_PLAYED,
    STATUS_FAIL,
    GameSession,
    MilestoneEvent,
    RndTestRecord,
    Team,
    TeamSettlement,
    WeeklyDecision,
    WeeklyResult,
)

logger = logging.getLogger(__name__)


def reset_balance(session: GameSession) -> float:
    if not session.initial_capital or session.initial_capital <= 0:
        raise BalanceResetInconsistency(
            f"Game {session.game_id} has no initial capital configured; refusing to reset a lost round"
        )
    return float(session.initial_capital)


def apply_lost_round(team: Team, session: GameSession) -> None:
    """Put `team` into the post-loss state: initial capital, no tests, Pre-Seed."""
    team.balance = reset_balance(session)
    team.successful_rnd_tests = 0
    team.funding_stage = STAGE_PRE_SEED
    team.pending_bonus_multiplier = None


def repair_lost_round(team: Team, previous: WeeklyResult | None, session: GameSession) -> bool:
    """Finish a reset that an interrupted settlement left undone. Mutates `team`."""
    if previous is None or not previous.lost:
        return False
    target = reset_balance(session)
    if team.balance == target and team.successful_rnd_tests == 0 and team.funding_stage == STAGE_PRE_SEED:
        return False
    logger.error(
        "Team %s lost week %d but holds balance %.2f, stage %s, %d tests; restoring the lost-round state",
        team.team_id,
        previous.week_number,
        team.balance,
        team.funding_stage,
        team.successful_rnd_tests,
    )
    apply_lost_round(team, session)
    return True


def _test_records(decision: WeeklyDecision, tests) -> List[RndTestRecord]:
    return [
        RndTestRecord(
            team_id=decision.team_id,
            week_number=decision.week_number,
            slot=slot,
            tier=t.tier,
            success=t.success,
            cost=float(t.cost),
            multiplier=t.multiplier,
            success_probability=t.success_probability * 100.0,
        )
        for slot, t in enumerate(tests, start=1)
    ]


def settle_team(
    session: GameSession,
    team: Team,
    decision: WeeklyDecision,
    avg_purchase_probability: float | None,
    rng: np.random.Generator,
    previous: WeeklyResult | None = None,
    sequence: int = 0,
    config: GameConfig | None = None,
) -> TeamSettlement:
    """Settle one team's week. Returns the filled result and the team's new state.

    `avg_purchase_probability` is a percent; None means the pricing lookup had
    no answer and the configured fallback is used.
    """
    config = config or GameConfig()
    team_next = team.copy()

    # 1) lost-round repair
    repaired = repair_lost_round(team_next, previous, session)

    # 2-4) R&D, demand, revenue
    rnd = resolve_strategy(
        decision.rnd_strategy,
        decision.rnd_tier_primary,
        decision.rnd_tier_secondary,
        session.rnd_tier_config,
        rng,
    )
    population = session.population_size or config.default_population_size
    demand = base_demand(avg_purchase_probability, population, fallback=config.fallback_purchase_probability)
    if rnd.tested:
        demand = apply_multiplier(demand, rnd.multiplier)
    revenue = revenue_for(demand, decision.price)

    # 5) costs
    cost_per_analytics = session.cost_per_analytics or config.default_cost_per_analytics
    analytics_cost = max(0, decision.analytics_units_purchased) * cost_per_analytics
    total_costs = rnd.cost + analytics_cost

    # 6) solvency
    if total_costs > team_next.balance:
        logger.info(
            "Team %s cannot cover %.2f with balance %.2f: lost round in week %d",
            team.team_id,
            total_costs,
            team_next.balance,
            decision.week_number,
        )
        result = WeeklyResult(
            team_id=decision.team_id,
            week_number=decision.week_number,
            demand=0,
            revenue=0.0,
            rnd_cost=0.0,
            analytics_cost=float(analytics_cost),
            total_costs=float(total_costs),
            profit=-float(total_costs),
            rnd_success=False,
            rnd_success_probability=None,
            rnd_multiplier=1.0,
            pass_fail_status=STATUS_FAIL,
            bonus_earned=0.0,
            round_outcome=OUTCOME_LOST,
        )
        apply_lost_round(team_next, session)
        return TeamSettlement(team=team_next, result=result, tests=[], event=None, repaired=repaired)

    # 7) funding
    cumulative_tests = team_next.successful_rnd_tests + rnd.successes
    funding = evaluate_funding(
        revenue,
        demand,
        cumulative_tests,
        team_next.funding_stage,
        session.investment_config,
        config,
    )
    profit = -float(total_costs)
    bonus_multiplier = team_next.pending_bonus_multiplier
    if bonus_multiplier:
        profit = float(round_half_up(profit * bonus_multiplier))

    success_probability = rnd.success_probability
    result = WeeklyResult(
        team_id=decision.team_id,
        week_number=decision.week_number,
        demand=demand,
        revenue=float(revenue),
        rnd_cost=float(rnd.cost),
        analytics_cost=float(analytics_cost),
        total_costs=float(total_costs),
        profit=profit,
        rnd_success=rnd.success,
        rnd_success_probability=None if success_probability is None else success_probability * 100.0,
        rnd_multiplier=rnd.multiplier,
        pass_fail_status=funding.status,
        bonus_earned=float(funding.bonus),
        bonus_multiplier_applied=bonus_multiplier or None,
        round_outcome=OUTCOME_PLAYED,
    )

    # 9) new team state
    old_stage = team_next.funding_stage
    team_next.balance += profit
    team_next.successful_rnd_tests = cumulative_tests
    if funding.advanced and funding.next_stage:
        team_next.funding_stage = funding.next_stage
    team_next.pending_bonus_multiplier = None

    # 10) milestone event
    event = None
    if team_next.funding_stage != old_stage and is_forward(old_stage, team_next.funding_stage):
        event = MilestoneEvent(
            team_id=team.team_id,
            old_stage=old_stage,
            new_stage=team_next.funding_stage,
            revenue=float(revenue),
            sequence=sequence,
        )

    return TeamSettlement(
        team=team_next,
        result=result,
        tests=_test_records(decision, rnd.tests),
        event=event,
        repaired=repaired,
    )

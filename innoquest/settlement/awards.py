from __future__ import annotations
import logging
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Set, Tuple

from scipy.stats import norm

from innoquest.settlement.config import GameConfig, InvestmentConfig
from innoquest.settlement.numeric import round_half_up
from innoquest.settlement.stage import STAGE_TO_INDEX
from innoquest.settlement.state import MilestoneAchievement, MilestoneEvent

logger = logging.getLogger(__name__)

RecordedFn = Callable[[str, int], bool]


def award_probability(rank: int, max_teams: int, clip: Tuple[float, float] = (0.01, 0.99)) -> float:
    p = (max_teams - (rank - 1)) / (max_teams + 1)
    lo, hi = clip
    return float(min(max(p, lo), hi))


def balance_award(
    rank: int,
    max_teams: int,
    mean: float,
    sd: float,
    clip: Tuple[float, float] = (0.01, 0.99),
) -> int:
    """NORMINV-shaped payout: earlier arrivals sit higher on the normal curve."""
    z = float(norm.ppf(award_probability(rank, max_teams, clip)))
    return max(0, round_half_up(mean + sd * z))


def group_by_stage(events: Iterable[MilestoneEvent]) -> Dict[str, List[MilestoneEvent]]:
    grouped: Dict[str, List[MilestoneEvent]] = defaultdict(list)
    for event in events:
        grouped[event.new_stage].append(event)
    for stage_events in grouped.values():
        stage_events.sort(key=lambda e: e.sequence)
    return dict(sorted(grouped.items(), key=lambda kv: STAGE_TO_INDEX[kv[0]]))


def rank_milestones(
    events: Iterable[MilestoneEvent],
    game_id: str,
    week: int,
    max_teams: int,
    investment: InvestmentConfig,
    already_recorded: RecordedFn,
    lost_teams: Set[str] | None = None,
    config: GameConfig | None = None,
) -> List[MilestoneAchievement]:
    """Achievements to write for this week's stage advancements, in arrival order.

    (stage, rank) pairs already recorded are skipped. Teams that lost their
    round still get a record, flagged as not applied to balance.
    """
    config = config or GameConfig()
    lost_teams = lost_teams or set()
    achievements: List[MilestoneAchievement] = []

    for stage, stage_events in group_by_stage(events).items():
        stage_cfg = investment.for_stage(stage)
        if stage_cfg is None:
            logger.warning("No investment config for milestone %s; skipping %d advancement(s)", stage, len(stage_events))
            continue
        for rank, event in enumerate(stage_events, start=1):
            if already_recorded(stage, rank):
                logger.info("Milestone %s rank %d already recorded for game %s", stage, rank, game_id)
                continue
            amount = balance_award(rank, max_teams, stage_cfg.mean, stage_cfg.sd, config.probability_clip)
            achievements.append(
                MilestoneAchievement(
                    game_id=game_id,
                    stage=stage,
                    rank=rank,
                    team_id=event.team_id,
                    award_amount=amount,
                    week_number=week,
                    applied=event.team_id not in lost_teams,
                )
            )
    return achievements

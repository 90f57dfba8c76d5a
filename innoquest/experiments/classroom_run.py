import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List

import numpy as np
import pandas as pd

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from innoquest.league.leaderboard import leaderboard
from innoquest.league.memory import InMemoryStore, RecordingAuditLog, RecordingNotifications
from innoquest.league.week import WeekController
from innoquest.settlement.config import TIER_NAMES, InvestmentConfig, RndTierConfig
from innoquest.settlement.state import GameSession, Team, WeeklyDecision
from innoquest.settlement.strategy import STRATEGIES, STRATEGY_SKIP, needs_secondary


OUTPUT_DIR = Path("innoquest/experiments/output")

# Admin settings as they arrive from the game configuration screen
DEFAULT_RND_TIERS: Dict[str, Dict[str, float]] = {
    "basic": {"min_cost": 30000, "max_cost": 50000, "success_min": 60, "success_max": 75, "multiplier_min": 105, "multiplier_max": 115},
    "standard": {"min_cost": 60000, "max_cost": 90000, "success_min": 70, "success_max": 85, "multiplier_min": 110, "multiplier_max": 125},
    "advanced": {"min_cost": 100000, "max_cost": 150000, "success_min": 80, "success_max": 90, "multiplier_min": 120, "multiplier_max": 140},
    "premium": {"min_cost": 180000, "max_cost": 250000, "success_min": 85, "success_max": 95, "multiplier_min": 135, "multiplier_max": 160},
}

DEFAULT_INVESTMENT: Dict[str, Dict[str, float]] = {
    "seed": {"mean": 500000, "sd_percent": 10, "bonus_multiplier": 1.2, "expected_revenue": 300000, "demand": 1500, "rd_count": 1},
    "series_a": {"mean": 1500000, "sd_percent": 12, "bonus_multiplier": 1.5, "expected_revenue": 800000, "demand": 3000, "rd_count": 3},
    "series_b": {"mean": 4000000, "sd_percent": 15, "bonus_multiplier": 1.8, "expected_revenue": 1500000, "demand": 5000, "rd_count": 5},
    "series_c": {"mean": 9000000, "sd_percent": 20, "bonus_multiplier": 2.0, "expected_revenue": 2500000, "demand": 7000, "rd_count": 8},
}


class PriceCurvePricing:
    """Toy price response: purchase probability falls linearly from 60% at price 0 to 0% at `choke`."""

    def __init__(self, choke: float = 1500.0):
        self.choke = choke

    def resolve_avg_purchase_probability(self, team_id: str, product_id, price: float) -> float:
        return float(np.clip(60.0 * (1.0 - price / self.choke), 0.0, 100.0))


def random_decision(team_id: str, week: int, rng: np.random.Generator) -> WeeklyDecision:
    strategy = STRATEGIES[rng.integers(0, len(STRATEGIES))]
    primary = None
    secondary = None
    if strategy != STRATEGY_SKIP:
        primary = TIER_NAMES[rng.integers(0, len(TIER_NAMES))]
        if needs_secondary(strategy):
            secondary = TIER_NAMES[rng.integers(0, len(TIER_NAMES))]
    return WeeklyDecision(
        team_id=team_id,
        week_number=week,
        price=float(rng.choice([150, 250, 400, 600, 900])),
        rnd_strategy=strategy,
        rnd_tier_primary=primary,
        rnd_tier_secondary=secondary,
        analytics_units_purchased=int(rng.integers(0, 3)),
    )


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--teams", type=int, default=6)
    parser.add_argument("--weeks", type=int, default=8)
    parser.add_argument("--seed", type=int, default=7)
    parser.add_argument("--population", type=int, default=10000)
    parser.add_argument("--initial-capital", type=float, default=500000.0)
    parser.add_argument("--skip-rate", type=float, default=0.1, help="Chance a team submits nothing in a week.")
    parser.add_argument("--out", type=Path, default=OUTPUT_DIR)
    args = parser.parse_args()

    game_id = "classroom"
    store = InMemoryStore()
    store.save_session(
        GameSession(
            game_id=game_id,
            total_weeks=args.weeks,
            max_teams=max(args.teams, 1),
            population_size=args.population,
            initial_capital=args.initial_capital,
            rnd_tier_config=RndTierConfig.from_dict(DEFAULT_RND_TIERS),
            investment_config=InvestmentConfig.from_dict(DEFAULT_INVESTMENT),
        )
    )
    joined_at = datetime.now(timezone.utc)
    for i in range(args.teams):
        store.add_team(
            Team(
                team_id=f"T{i + 1:02d}",
                game_id=game_id,
                name=f"Team {i + 1}",
                balance=args.initial_capital,
                last_activity=joined_at,
            )
        )

    controller = WeekController(
        store,
        PriceCurvePricing(),
        notifications=RecordingNotifications(),
        audit=RecordingAuditLog(),
        seed=args.seed,
    )
    controller.start_game(game_id)

    rng = np.random.default_rng(args.seed + 1)
    result_rows: List[Dict] = []
    while True:
        session = store.get_session(game_id)
        week = session.current_week
        for team in store.list_teams(game_id):
            if rng.random() < args.skip_rate:
                continue
            store.submit_decision(random_decision(team.team_id, week, rng))

        outcome = controller.advance_week(game_id)
        for r in store.results_for_week(game_id, week):
            result_rows.append(
                {
                    "week": week,
                    "team_id": r.team_id,
                    "demand": r.demand,
                    "revenue": r.revenue,
                    "total_costs": r.total_costs,
                    "profit": r.profit,
                    "rnd_success": r.rnd_success,
                    "rnd_multiplier": r.rnd_multiplier,
                    "status": r.pass_fail_status,
                    "outcome": r.round_outcome,
                    "bonus_earned": r.bonus_earned,
                }
            )
        print(
            f"Week {week}: settled={len(outcome.settled)} skipped={len(outcome.skipped)} "
            f"failures={len(outcome.failures)} awards={len(outcome.awards)}"
        )
        if outcome.completed:
            break
    controller.close()

    args.out.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(result_rows).to_csv(args.out / "weekly_results.csv", index=False)
    milestones = pd.DataFrame(
        [
            {
                "stage": a.stage,
                "rank": a.rank,
                "team_id": a.team_id,
                "award": a.award_amount,
                "week": a.week_number,
                "applied": a.applied,
            }
            for a in store.list_achievements(game_id)
        ]
    )
    milestones.to_csv(args.out / "milestones.csv", index=False)
    board = leaderboard(store, game_id)
    board.to_csv(args.out / "leaderboard.csv", index=False)

    print("\nFinal leaderboard")
    print(board.to_string(index=False))
    print(f"\nSaved: {args.out}")


if __name__ == "__main__":
    main()

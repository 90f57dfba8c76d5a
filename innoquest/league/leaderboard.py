from __future__ import annotations
from typing import Dict, List
import pandas as pd

from innoquest.league.ports import Persistence
from innoquest.settlement.stage import STAGE_TO_INDEX

COLUMNS = ["rank", "team_id", "name", "balance", "funding_stage", "successful_rnd_tests", "milestone_awards"]


def leaderboard(store: Persistence, game_id: str) -> pd.DataFrame:
    awards: Dict[str, int] = {}
    for a in store.list_achievements(game_id):
        if a.applied:
            awards[a.team_id] = awards.get(a.team_id, 0) + a.award_amount

    rows: List[Dict] = []
    for team in store.list_teams(game_id):
        rows.append(
            {
                "team_id": team.team_id,
                "name": team.name,
                "balance": float(team.balance),
                "funding_stage": team.funding_stage,
                "stage_index": STAGE_TO_INDEX.get(team.funding_stage, 0),
                "successful_rnd_tests": int(team.successful_rnd_tests),
                "milestone_awards": int(awards.get(team.team_id, 0)),
            }
        )
    if not rows:
        return pd.DataFrame(columns=COLUMNS)

    df = pd.DataFrame(rows)
    df = df.sort_values(["balance", "stage_index"], ascending=[False, False], kind="mergesort").reset_index(drop=True)
    df["rank"] = range(1, len(df) + 1)
    return df[COLUMNS]

from __future__ import annotations
from typing import Any, Dict, Iterable, List, Tuple

from innoquest.settlement.errors import PersistenceFailure
from innoquest.settlement.state import (
    GameSession,
    MilestoneAchievement,
    RndTestRecord,
    Team,
    WeeklyDecision,
    WeeklyResult,
)


class InMemoryStore:
    """Dict-backed persistence and decision source. Records are copied in and out."""

    def __init__(self):
        self.sessions: Dict[str, GameSession] = {}
        self.teams: Dict[str, Team] = {}
        self.decisions: Dict[Tuple[str, int], WeeklyDecision] = {}
        self.results: Dict[Tuple[str, int], WeeklyResult] = {}
        self.rnd_tests: Dict[Tuple[str, int, int], RndTestRecord] = {}
        self.achievements: Dict[Tuple[str, str, int], MilestoneAchievement] = {}

    # sessions
    def get_session(self, game_id: str) -> GameSession | None:
        session = self.sessions.get(game_id)
        return session.copy() if session else None

    def save_session(self, session: GameSession) -> None:
        self.sessions[session.game_id] = session.copy()

    # teams
    def add_team(self, team: Team) -> None:
        self.teams[team.team_id] = team.copy()

    def list_teams(self, game_id: str) -> List[Team]:
        return [t.copy() for t in self.teams.values() if t.game_id == game_id]

    def get_team(self, team_id: str) -> Team | None:
        team = self.teams.get(team_id)
        return team.copy() if team else None

    def save_team(self, team: Team) -> None:
        if team.team_id not in self.teams:
            raise PersistenceFailure(f"Unknown team {team.team_id}")
        self.teams[team.team_id] = team.copy()

    # decisions
    def submit_decision(self, decision: WeeklyDecision) -> None:
        key = (decision.team_id, decision.week_number)
        if key in self.decisions:
            raise PersistenceFailure(f"Decision already submitted for team {decision.team_id} week {decision.week_number}")
        self.decisions[key] = decision
        self.results[key] = WeeklyResult(team_id=decision.team_id, week_number=decision.week_number)

    def get_decision(self, team_id: str, week: int) -> WeeklyDecision | None:
        return self.decisions.get((team_id, week))

    # results
    def get_result(self, team_id: str, week: int) -> WeeklyResult | None:
        result = self.results.get((team_id, week))
        return result.copy() if result else None

    def upsert_result(self, result: WeeklyResult) -> None:
        self.results[(result.team_id, result.week_number)] = result.copy()

    def results_for_week(self, game_id: str, week: int) -> List[WeeklyResult]:
        ids = {t.team_id for t in self.teams.values() if t.game_id == game_id}
        return [r.copy() for (team_id, w), r in self.results.items() if team_id in ids and w == week]

    def upsert_rnd_tests(self, records: Iterable[RndTestRecord]) -> None:
        for record in records:
            self.rnd_tests[(record.team_id, record.week_number, record.slot)] = record

    def tests_for(self, team_id: str, week: int) -> List[RndTestRecord]:
        return [r for (t, w, _), r in sorted(self.rnd_tests.items()) if t == team_id and w == week]

    # milestones
    def has_achievement(self, game_id: str, stage: str, rank: int) -> bool:
        return (game_id, stage, rank) in self.achievements

    def insert_achievement(self, achievement: MilestoneAchievement) -> None:
        key = (achievement.game_id, achievement.stage, achievement.rank)
        if key in self.achievements:
            raise PersistenceFailure(f"Milestone {achievement.stage} rank {achievement.rank} already recorded")
        self.achievements[key] = achievement

    def list_achievements(self, game_id: str) -> List[MilestoneAchievement]:
        return [a for (g, _, _), a in self.achievements.items() if g == game_id]


class RecordingNotifications:
    def __init__(self):
        self.records: List[Dict[str, Any]] = []

    def notify(self, game_id: str, team_id: str, kind: str, week: int, payload: Dict[str, Any]) -> None:
        self.records.append({"game_id": game_id, "team_id": team_id, "kind": kind, "week": week, "payload": dict(payload)})


class RecordingAuditLog:
    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    def append(self, game_id: str, action: str, details: Dict[str, Any]) -> None:
        self.events.append({"game_id": game_id, "action": action, "details": dict(details)})


class StaticPricing:
    """Pricing double: fixed percent per team, None for teams it has no data for."""

    def __init__(self, by_team: Dict[str, float | None] | None = None, default: float | None = None):
        self.by_team = dict(by_team or {})
        self.default = default

    def resolve_avg_purchase_probability(self, team_id: str, product_id: str | None, price: float) -> float | None:
        return self.by_team.get(team_id, self.default)

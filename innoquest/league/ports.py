"""Boundary contracts for the collaborators the week controller talks to.

Storage, pricing and notification backends implement these; the engine only
ever sees plain records.
"""
from __future__ import annotations
from typing import Any, Dict, Iterable, List, Protocol

from innoquest.settlement.state import (
    GameSession,
    MilestoneAchievement,
    RndTestRecord,
    Team,
    WeeklyDecision,
    WeeklyResult,
)


class DecisionSource(Protocol):
    def get_decision(self, team_id: str, week: int) -> WeeklyDecision | None: ...


class PricingService(Protocol):
    def resolve_avg_purchase_probability(self, team_id: str, product_id: str | None, price: float) -> float | None:
        """Percent in [0, 100], or None when unknown."""
        ...


class Persistence(Protocol):
    def get_session(self, game_id: str) -> GameSession | None: ...

    def save_session(self, session: GameSession) -> None: ...

    def list_teams(self, game_id: str) -> List[Team]: ...

    def get_team(self, team_id: str) -> Team | None: ...

    def save_team(self, team: Team) -> None: ...

    def get_result(self, team_id: str, week: int) -> WeeklyResult | None: ...

    def upsert_result(self, result: WeeklyResult) -> None: ...

    def upsert_rnd_tests(self, records: Iterable[RndTestRecord]) -> None: ...

    def has_achievement(self, game_id: str, stage: str, rank: int) -> bool: ...

    def insert_achievement(self, achievement: MilestoneAchievement) -> None: ...

    def list_achievements(self, game_id: str) -> List[MilestoneAchievement]: ...


class NotificationSink(Protocol):
    def notify(self, game_id: str, team_id: str, kind: str, week: int, payload: Dict[str, Any]) -> None: ...


class AuditLog(Protocol):
    def append(self, game_id: str, action: str, details: Dict[str, Any]) -> None: ...

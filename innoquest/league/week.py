from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Set
import numpy as np

from innoquest.league.lock import AdvancementGuard
from innoquest.league.ports import AuditLog, NotificationSink, Persistence, PricingService
from innoquest.league.pricing import BoundedPricing
from innoquest.settlement.awards import rank_milestones
from innoquest.settlement.config import GameConfig
from innoquest.settlement.engine import settle_team
from innoquest.settlement.errors import (
    AdvancementInProgress,
    ConfigurationMissing,
    InvalidSessionState,
    NoParticipants,
    PerTeamCalculationFailure,
    PersistenceFailure,
    SessionAlreadyCompleted,
    SessionNotFound,
    SettlementError,
)
from innoquest.settlement.state import (
    SESSION_ACTIVE,
    SESSION_COMPLETED,
    SESSION_PAUSED,
    SESSION_SETUP,
    GameSession,
    MilestoneAchievement,
    MilestoneEvent,
    Team,
    TeamSettlement,
    WeeklyResult,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TeamFailure:
    team_id: str
    kind: str
    message: str


@dataclass
class AdvanceWeekResult:
    new_week: int
    total_weeks: int
    teams_processed: int
    completed: bool
    settled: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failures: List[TeamFailure] = field(default_factory=list)
    awards: List[MilestoneAchievement] = field(default_factory=list)


class WeekController:
    def __init__(
        self,
        store: Persistence,
        pricing: PricingService,
        notifications: NotificationSink | None = None,
        audit: AuditLog | None = None,
        config: GameConfig | None = None,
        seed: int | None = None,
        guard: AdvancementGuard | None = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.config = config or GameConfig()
        self.pricing = BoundedPricing(pricing, timeout_seconds=self.config.pricing_timeout_seconds)
        self.notifications = notifications
        self.audit = audit
        self.rng = np.random.default_rng(seed)
        self.guard = guard or AdvancementGuard()
        self.clock = clock

    def close(self) -> None:
        self.pricing.close()

    # ------------------------------------------------------------------ lifecycle

    def _load_session(self, game_id: str) -> GameSession:
        session = self.store.get_session(game_id)
        if session is None:
            raise SessionNotFound(f"Game {game_id} not found")
        return session

    def _joined_teams(self, game_id: str) -> List[Team]:
        return [t for t in self.store.list_teams(game_id) if t.joined]

    def start_game(self, game_id: str) -> GameSession:
        with self.guard.hold(game_id):
            session = self._load_session(game_id)
            if session.status != SESSION_SETUP:
                raise InvalidSessionState(f"Game {game_id} is already {session.status}")
            joined = self._joined_teams(game_id)
            if not joined:
                raise NoParticipants(f"No team has joined game {game_id}")
            session.status = SESSION_ACTIVE
            session.current_week = 1
            session.week_start_time = self.clock()
            session.is_paused = False
            session.pause_timestamp = None
            self.store.save_session(session)
            self._audit(game_id, "game_started", {"joined_teams": len(joined), "total_teams": len(self.store.list_teams(game_id))})
            return session

    def toggle_pause(self, game_id: str, now: datetime | None = None) -> GameSession:
        now = now or self.clock()
        session = self._load_session(game_id)
        if session.status == SESSION_COMPLETED:
            raise SessionAlreadyCompleted(f"Game {game_id} is completed")
        if not session.is_paused:
            session.is_paused = True
            session.pause_timestamp = now
            if session.status == SESSION_ACTIVE:
                session.status = SESSION_PAUSED
        else:
            # Push the countdown anchor forward by the time spent paused
            if session.pause_timestamp is not None and session.week_start_time is not None:
                session.week_start_time = session.week_start_time + (now - session.pause_timestamp)
            session.is_paused = False
            session.pause_timestamp = None
            if session.status == SESSION_PAUSED:
                session.status = SESSION_ACTIVE
        self.store.save_session(session)
        return session

    # ------------------------------------------------------------------ settlement

    def advance_week(self, game_id: str, request_id: str | None = None) -> AdvanceWeekResult:
        with self.guard.hold(game_id, request_id):
            return self._advance(game_id)

    def _advance(self, game_id: str) -> AdvanceWeekResult:
        session = self._load_session(game_id)
        if session.status == SESSION_COMPLETED:
            raise SessionAlreadyCompleted(f"Game {game_id} already completed")
        if session.rnd_tier_config is None:
            raise ConfigurationMissing(f"Game {game_id} has no R&D tier configuration")
        if session.investment_config is None:
            raise ConfigurationMissing(f"Game {game_id} has no investment configuration")

        all_teams = self.store.list_teams(game_id)
        teams = [t for t in all_teams if t.joined]
        if not teams:
            raise NoParticipants(f"No team has joined game {game_id}")

        week = session.current_week
        logger.info("Settling week %d/%d for game %s (%d teams)", week, session.total_weeks, game_id, len(teams))

        result = AdvanceWeekResult(
            new_week=week,
            total_weeks=session.total_weeks,
            teams_processed=len(teams),
            completed=False,
        )
        settlements: List[TeamSettlement] = []
        sequence = 0
        for team in teams:
            decision = self.store.get_decision(team.team_id, week)
            if decision is None:
                result.skipped.append(team.team_id)
                continue
            existing = self.store.get_result(team.team_id, week)
            if existing is not None and existing.settled:
                logger.info("Team %s week %d already settled; not settling again", team.team_id, week)
                result.skipped.append(team.team_id)
                continue
            sequence += 1
            try:
                settlement = self._settle_one(session, team, decision, sequence, existing)
            except SettlementError as exc:
                logger.error("Settlement failed for team %s in game %s: %s", team.team_id, game_id, exc)
                result.failures.append(TeamFailure(team.team_id, exc.kind, str(exc)))
                continue
            except Exception as exc:
                logger.exception("Unexpected error settling team %s in game %s", team.team_id, game_id)
                failure = PerTeamCalculationFailure(team.team_id, str(exc))
                result.failures.append(TeamFailure(team.team_id, failure.kind, str(failure)))
                continue
            settlements.append(settlement)
            result.settled.append(team.team_id)

        # Ranking waits for every team so arrival order covers the whole week
        result.awards = self._award_milestones(session, settlements)

        self._advance_counter(session, week)
        result.new_week = session.current_week
        result.completed = session.status == SESSION_COMPLETED

        action = "game_completed" if result.completed else "week_advanced"
        self._audit(
            game_id,
            action,
            {
                "week": session.current_week,
                "teams_processed": result.teams_processed,
                "total_teams": len(all_teams),
                "settled": len(result.settled),
                "failures": [f.team_id for f in result.failures],
                "game_completed": result.completed,
            },
        )
        if result.failures:
            logger.warning("Week %d of game %s settled with %d team failure(s)", week, game_id, len(result.failures))
        return result

    def _settle_one(
        self,
        session: GameSession,
        team: Team,
        decision,
        sequence: int,
        pending: WeeklyResult | None = None,
    ) -> TeamSettlement:
        product_id = decision.product_id or team.product_id
        probability = self.pricing.resolve(team.team_id, product_id, decision.price)
        previous = self.store.get_result(team.team_id, decision.week_number - 1) if decision.week_number > 1 else None

        settlement = settle_team(
            session,
            team,
            decision,
            probability,
            self.rng,
            previous=previous,
            sequence=sequence,
            config=self.config,
        )

        # Result first. A failed team write puts the result back to pending so a
        # rerun settles the team; if even that fails, a lost outcome is finished
        # by next week's repair pass.
        self.store.upsert_result(settlement.result)
        try:
            if settlement.tests:
                self.store.upsert_rnd_tests(settlement.tests)
            self.store.save_team(settlement.team)
        except Exception:
            self._restore_pending(pending or WeeklyResult(team_id=team.team_id, week_number=decision.week_number))
            raise

        if settlement.lost:
            self._verify_reset(session, team.team_id)
            self._notify(
                session.game_id,
                team.team_id,
                "lost_round",
                decision.week_number,
                {"attempted_costs": settlement.result.total_costs, "balance": session.initial_capital},
            )
        return settlement

    def _restore_pending(self, pending: WeeklyResult) -> None:
        try:
            self.store.upsert_result(pending)
        except Exception as exc:
            logger.error(
                "Could not return week %d result for team %s to pending: %s",
                pending.week_number,
                pending.team_id,
                exc,
            )

    def _verify_reset(self, session: GameSession, team_id: str) -> None:
        stored = self.store.get_team(team_id)
        if stored is None:
            raise PersistenceFailure(f"Team {team_id} vanished after settlement")
        if stored.balance != session.initial_capital:
            logger.error(
                "Balance reset for team %s stored %.2f instead of initial capital %.2f; correcting",
                team_id,
                stored.balance,
                session.initial_capital,
            )
            stored.balance = float(session.initial_capital)
            self.store.save_team(stored)

    def _award_milestones(self, session: GameSession, settlements: List[TeamSettlement]) -> List[MilestoneAchievement]:
        events: List[MilestoneEvent] = [s.event for s in settlements if s.event is not None]
        if not events:
            return []
        lost: Set[str] = {s.team.team_id for s in settlements if s.lost}
        max_teams = session.max_teams or self.config.default_max_teams
        achievements = rank_milestones(
            events,
            session.game_id,
            session.current_week,
            max_teams,
            session.investment_config,
            lambda stage, rank: self.store.has_achievement(session.game_id, stage, rank),
            lost_teams=lost,
            config=self.config,
        )
        written: List[MilestoneAchievement] = []
        for achievement in achievements:
            try:
                self.store.insert_achievement(achievement)
            except PersistenceFailure as exc:
                logger.error("Could not record milestone %s rank %d: %s", achievement.stage, achievement.rank, exc)
                continue
            written.append(achievement)
            if not achievement.applied:
                logger.info("Team %s lost its round; %s award withheld", achievement.team_id, achievement.stage)
                continue
            self._apply_award(session, achievement)
        return written

    def _apply_award(self, session: GameSession, achievement: MilestoneAchievement) -> None:
        # Read back the post-settlement team so the award lands on the fresh balance
        team = self.store.get_team(achievement.team_id)
        if team is None:
            logger.error("Team %s missing while applying %s award", achievement.team_id, achievement.stage)
            return
        team.balance += achievement.award_amount
        try:
            self.store.save_team(team)
        except PersistenceFailure as exc:
            logger.error("Could not credit %s award to team %s: %s", achievement.stage, team.team_id, exc)
            return
        self._notify(
            session.game_id,
            team.team_id,
            "milestone",
            achievement.week_number,
            {"stage": achievement.stage, "rank": achievement.rank, "award": achievement.award_amount},
        )

    def _advance_counter(self, session: GameSession, settled_week: int) -> None:
        latest = self._load_session(session.game_id)
        if latest.current_week != settled_week or latest.status == SESSION_COMPLETED:
            raise AdvancementInProgress(f"Game {session.game_id} moved on while week {settled_week} was settling")
        if latest.current_week < latest.total_weeks:
            latest.current_week += 1
            latest.status = SESSION_ACTIVE
            latest.week_start_time = self.clock()
        else:
            latest.status = SESSION_COMPLETED
        self.store.save_session(latest)
        session.current_week = latest.current_week
        session.status = latest.status
        session.week_start_time = latest.week_start_time

    # ------------------------------------------------------------------ best-effort sinks

    def _notify(self, game_id: str, team_id: str, kind: str, week: int, payload: Dict[str, Any]) -> None:
        if self.notifications is None:
            return
        try:
            self.notifications.notify(game_id, team_id, kind, week, payload)
        except Exception as exc:
            logger.warning("Notification %s for team %s dropped: %s", kind, team_id, exc)

    def _audit(self, game_id: str, action: str, details: Dict[str, Any]) -> None:
        if self.audit is None:
            return
        try:
            self.audit.append(game_id, action, details)
        except Exception as exc:
            logger.warning("Audit event %s for game %s dropped: %s", action, game_id, exc)

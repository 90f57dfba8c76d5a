import unittest
import numpy as np

from innoquest.settlement.config import InvestmentConfig, RndTierConfig, TierRange
from innoquest.settlement.engine import settle_team
from innoquest.settlement.errors import BalanceResetInconsistency, ConfigurationMissing
from innoquest.settlement.numeric import round_half_up
from innoquest.settlement.state import GameSession, Team, WeeklyDecision, WeeklyResult
from innoquest.settlement.strategy import STRATEGIES


def fixed_tier(cost, success_pct, multiplier_pct):
    return TierRange(cost, cost, success_pct, success_pct, multiplier_pct, multiplier_pct)


def make_session(**overrides) -> GameSession:
    params = dict(
        game_id="g1",
        current_week=2,
        total_weeks=5,
        status="active",
        max_teams=10,
        population_size=10000,
        initial_capital=100000.0,
        cost_per_analytics=1000.0,
        rnd_tier_config=RndTierConfig(
            tiers={
                "basic": fixed_tier(2000, 100, 110),
                "standard": fixed_tier(3000, 100, 120),
                "advanced": fixed_tier(4000, 0, 150),
                "premium": fixed_tier(5000, 0, 170),
            }
        ),
        investment_config=InvestmentConfig.from_dict(
            {
                "seed": {"mean": 100000, "sd_percent": 10, "bonus_multiplier": 1.2, "expected_revenue": 400000, "demand": 4000, "rd_count": 0},
                "series_a": {"mean": 300000, "sd_percent": 10, "bonus_multiplier": 1.5, "expected_revenue": 10**9, "demand": 10**6, "rd_count": 50},
                "series_b": {"mean": 600000, "sd_percent": 10, "bonus_multiplier": 2.0, "expected_revenue": 10**9, "demand": 10**6, "rd_count": 50},
                "series_c": {"mean": 900000, "sd_percent": 10, "bonus_multiplier": 2.5, "expected_revenue": 10**9, "demand": 10**6, "rd_count": 50},
            }
        ),
    )
    params.update(overrides)
    return GameSession(**params)


def decision(strategy="skip", primary=None, secondary=None, analytics=0, price=100.0, week=2):
    return WeeklyDecision(
        team_id="t1",
        week_number=week,
        price=price,
        rnd_strategy=strategy,
        rnd_tier_primary=primary,
        rnd_tier_secondary=secondary,
        analytics_units_purchased=analytics,
    )


class TestSettleTeam(unittest.TestCase):
    def setUp(self):
        self.session = make_session()
        self.team = Team(team_id="t1", game_id="g1", balance=50000.0)
        self.rng = np.random.default_rng(5)

    def test_skip_scenario(self):
        s = settle_team(self.session, self.team, decision(analytics=3), 50.0, self.rng)
        r = s.result
        self.assertEqual(r.demand, 5000)
        self.assertEqual(r.revenue, 500000)
        self.assertEqual(r.total_costs, 3000)
        self.assertEqual(r.profit, -3000)
        self.assertEqual(s.team.balance, 47000)
        self.assertEqual(s.tests, [])
        self.assertEqual(r.round_outcome, "played")

    def test_revenue_never_reaches_balance(self):
        s = settle_team(self.session, self.team, decision(), 50.0, self.rng)
        self.assertEqual(s.result.profit, 0)
        self.assertEqual(s.team.balance, self.team.balance)

    def test_rnd_multiplier_applied_to_demand(self):
        s = settle_team(self.session, self.team, decision("two-always", "basic", "standard"), 10.0, self.rng)
        # 1000 * 1.1 * 1.2
        self.assertEqual(s.result.demand, 1320)
        self.assertEqual(s.result.rnd_cost, 5000)
        self.assertEqual(s.team.successful_rnd_tests, 2)
        self.assertEqual([t.slot for t in s.tests], [1, 2])

    def test_two_if_fail_records_only_tests_run(self):
        s = settle_team(self.session, self.team, decision("two-if-fail", "basic", "premium"), 10.0, self.rng)
        self.assertEqual([t.tier for t in s.tests], ["basic"])
        s = settle_team(self.session, self.team, decision("two-if-fail", "advanced", "basic"), 10.0, self.rng)
        self.assertEqual([(t.tier, t.success) for t in s.tests], [("advanced", False), ("basic", True)])
        self.assertEqual(s.team.successful_rnd_tests, 1)

    def test_unknown_probability_uses_fallback(self):
        s = settle_team(self.session, self.team, decision(), None, self.rng)
        self.assertEqual(s.result.demand, 50)

    def test_advancement_emits_event_and_bonus(self):
        s = settle_team(self.session, self.team, decision(), 50.0, self.rng, sequence=4)
        self.assertEqual(s.team.funding_stage, "Seed")
        self.assertEqual(s.result.pass_fail_status, "pass")
        self.assertEqual(s.result.bonus_earned, 37500)  # 500000 * 0.05 * 1.5
        self.assertEqual(s.event.new_stage, "Seed")
        self.assertEqual(s.event.old_stage, "Pre-Seed")
        self.assertEqual(s.event.sequence, 4)

    def test_no_event_without_stage_change(self):
        s = settle_team(self.session, self.team, decision(), 1.0, self.rng)
        self.assertEqual(s.team.funding_stage, "Pre-Seed")
        self.assertIsNone(s.event)

    def test_lost_round_scenario(self):
        team = Team(team_id="t1", game_id="g1", balance=1000.0, funding_stage="Seed", successful_rnd_tests=4)
        s = settle_team(self.session, team, decision("one", "standard", analytics=2), 50.0, self.rng)
        r = s.result
        self.assertEqual((r.demand, r.revenue, r.pass_fail_status, r.bonus_earned), (0, 0, "fail", 0))
        self.assertEqual(r.total_costs, 5000)
        self.assertEqual(r.profit, -5000)
        self.assertEqual(r.rnd_cost, 0)
        self.assertFalse(r.rnd_success)
        self.assertTrue(r.lost)
        self.assertEqual(s.team.balance, self.session.initial_capital)
        self.assertEqual(s.team.successful_rnd_tests, 0)
        self.assertEqual(s.team.funding_stage, "Pre-Seed")
        self.assertIsNone(s.event)
        self.assertEqual(s.tests, [])

    def test_lost_round_regardless_of_strategy(self):
        team = Team(team_id="t1", game_id="g1", balance=100.0)
        for strategy in STRATEGIES:
            s = settle_team(self.session, team, decision(strategy, "basic", "standard", analytics=1), 80.0, self.rng)
            r = s.result
            self.assertEqual((r.demand, r.revenue, r.pass_fail_status, r.bonus_earned), (0, 0, "fail", 0), strategy)

    def test_lost_round_without_initial_capital_fails_loudly(self):
        session = make_session(initial_capital=0)
        team = Team(team_id="t1", game_id="g1", balance=10.0)
        with self.assertRaises(BalanceResetInconsistency):
            settle_team(session, team, decision(analytics=1), 50.0, self.rng)

    def test_pending_bonus_multiplier_is_one_shot(self):
        team = Team(team_id="t1", game_id="g1", balance=50000.0, pending_bonus_multiplier=1.5)
        s = settle_team(self.session, team, decision(analytics=1), 1.0, self.rng)
        self.assertEqual(s.result.profit, -1500)
        self.assertEqual(s.result.bonus_multiplier_applied, 1.5)
        self.assertIsNone(s.team.pending_bonus_multiplier)
        self.assertEqual(s.team.balance, 48500)

    def test_repair_pass_resets_unfinished_lost_round(self):
        previous = WeeklyResult(team_id="t1", week_number=1, pass_fail_status="fail", round_outcome="lost")
        team = Team(team_id="t1", game_id="g1", balance=-4000.0)
        s = settle_team(self.session, team, decision(analytics=1), 1.0, self.rng, previous=previous)
        self.assertTrue(s.repaired)
        self.assertEqual(s.team.balance, 100000 - 1000)

    def test_repair_pass_restores_stage_and_tests(self):
        previous = WeeklyResult(team_id="t1", week_number=1, pass_fail_status="fail", round_outcome="lost")
        # balance already reset, stage and counter left over from before the loss
        team = Team(team_id="t1", game_id="g1", balance=100000.0, funding_stage="Seed", successful_rnd_tests=7)
        s = settle_team(self.session, team, decision(analytics=1), 1.0, self.rng, previous=previous)
        self.assertTrue(s.repaired)
        self.assertEqual(s.team.funding_stage, "Pre-Seed")
        self.assertEqual(s.team.successful_rnd_tests, 0)
        self.assertEqual(s.team.balance, 100000 - 1000)

    def test_repair_pass_leaves_played_rounds_alone(self):
        previous = WeeklyResult(team_id="t1", week_number=1, round_outcome="played")
        s = settle_team(self.session, self.team, decision(), 1.0, self.rng, previous=previous)
        self.assertFalse(s.repaired)
        self.assertEqual(s.team.balance, 50000)

    def test_missing_tier_aborts_team(self):
        session = make_session(rnd_tier_config=RndTierConfig(tiers={}))
        with self.assertRaises(ConfigurationMissing):
            settle_team(session, self.team, decision("one", "basic"), 50.0, self.rng)

    def test_input_team_not_mutated(self):
        settle_team(self.session, self.team, decision(analytics=2), 50.0, self.rng)
        self.assertEqual(self.team.balance, 50000)
        self.assertEqual(self.team.funding_stage, "Pre-Seed")


class TestRoundHalfUp(unittest.TestCase):
    def test_ties_round_toward_positive(self):
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(-2.5), -2)
        self.assertEqual(round_half_up(-1500.6), -1501)


if __name__ == "__main__":
    unittest.main()

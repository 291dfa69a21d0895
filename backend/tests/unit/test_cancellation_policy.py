# backend/tests/unit/test_cancellation_policy.py
"""
Unit tests for the cancellation refund policy.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from studiobook.services.cancellation_policy import (
    CancellationPolicy,
    CancellationPolicyEngine,
    NoShowAction,
    RefundTier,
    refund_amount,
    round_half_up,
)

SESSION = datetime(2026, 3, 4, 10, 0, tzinfo=timezone.utc)

TIERED = CancellationPolicy(
    window_hours=24,
    refund_tiers=(RefundTier(12, 50), RefundTier(24, 100)),
)
NO_TIERS = CancellationPolicy(window_hours=24)


def _hours_before(hours: float) -> datetime:
    return SESSION - timedelta(hours=hours)


@pytest.fixture
def engine() -> CancellationPolicyEngine:
    return CancellationPolicyEngine()


class TestEvaluate:
    def test_outside_window_refunds_in_full(self, engine):
        decision = engine.evaluate(TIERED, SESSION, _hours_before(30))

        assert decision.allowed
        assert decision.refund_percent == 100
        assert decision.policy_basis == "outside_window"

    def test_exactly_at_window_counts_as_outside(self, engine):
        decision = engine.evaluate(NO_TIERS, SESSION, _hours_before(24))

        assert decision.allowed
        assert decision.refund_percent == 100

    def test_ten_hours_out_matches_twelve_hour_tier(self, engine):
        decision = engine.evaluate(TIERED, SESSION, _hours_before(10))

        assert decision.allowed
        assert decision.refund_percent == 50
        assert decision.hours_until == pytest.approx(10)

    def test_eighteen_hours_out_matches_twenty_four_hour_tier(self, engine):
        decision = engine.evaluate(TIERED, SESSION, _hours_before(18))

        assert decision.refund_percent == 100

    def test_no_tiers_rejects_late_cancellation(self, engine):
        decision = engine.evaluate(NO_TIERS, SESSION, _hours_before(5))

        assert not decision.allowed
        assert decision.policy_basis == "within_window_no_policy"

    def test_no_matching_tier_refunds_nothing(self, engine):
        policy = CancellationPolicy(window_hours=24, refund_tiers=(RefundTier(12, 50),))

        decision = engine.evaluate(policy, SESSION, _hours_before(18))

        assert decision.allowed
        assert decision.refund_percent == 0
        assert decision.policy_basis == "no_matching_tier"

    def test_sparse_tiers_pick_smallest_tier_at_or_above_hours_remaining(self, engine):
        policy = CancellationPolicy(
            window_hours=48, refund_tiers=(RefundTier(2, 0), RefundTier(36, 75))
        )

        assert engine.evaluate(policy, SESSION, _hours_before(1)).refund_percent == 0
        # Three hours out skips the 2h tier and lands on 36h
        assert engine.evaluate(policy, SESSION, _hours_before(3)).refund_percent == 75


class TestFromStudioConfig:
    def test_builds_sorted_tiers_and_action(self):
        policy = CancellationPolicy.from_studio_config(
            12,
            {
                "no_show_action": "charge_partial",
                "refund_tiers": [
                    {"hours_before_session": 24, "refund_percent": 100},
                    {"hours_before_session": "6", "refund_percent": 25},
                ],
            },
            default_window_hours=24,
        )

        assert policy.window_hours == 12
        assert [tier.hours_before_session for tier in policy.refund_tiers] == [6, 24]
        assert policy.no_show_action == NoShowAction.CHARGE_PARTIAL

    def test_missing_window_uses_default(self):
        policy = CancellationPolicy.from_studio_config(None, None, default_window_hours=24)

        assert policy.window_hours == 24
        assert policy.refund_tiers == ()
        assert policy.no_show_action is None

    def test_zero_window_is_kept(self):
        policy = CancellationPolicy.from_studio_config(0, {}, default_window_hours=24)

        assert policy.window_hours == 0

    def test_malformed_entries_are_ignored(self):
        policy = CancellationPolicy.from_studio_config(
            24,
            {
                "no_show_action": "charge_double",
                "refund_tiers": [
                    {"hours_before_session": 12},
                    {"hours_before_session": "soon", "refund_percent": 10},
                    {"hours_before_session": 6, "refund_percent": 150},
                ],
            },
            default_window_hours=24,
        )

        assert policy.no_show_action is None
        assert policy.refund_tiers == (RefundTier(6, 100),)


class TestNoShowRefund:
    @pytest.mark.parametrize(
        "action, expected",
        [
            (NoShowAction.NO_CHARGE, 100),
            (NoShowAction.CHARGE_PARTIAL, 40),
            (NoShowAction.CHARGE_FULL, 0),
            (None, 0),
        ],
    )
    def test_refund_percent_by_action(self, engine, action, expected):
        policy = CancellationPolicy(window_hours=24, no_show_action=action)

        assert engine.no_show_refund_percent(policy, partial_percent=40) == expected


class TestRefundAmount:
    def test_full_and_zero(self):
        assert refund_amount(3, 100) == 3
        assert refund_amount(3, 0) == 0

    def test_rounds_half_up(self):
        assert refund_amount(1, 50) == 1
        assert refund_amount(3, 50) == 2
        assert refund_amount(2, 50) == 1
        assert refund_amount(3, 10) == 0

    def test_round_half_up_is_not_bankers_rounding(self):
        assert round_half_up(Decimal("2.5")) == 3
        assert round_half_up(Decimal("0.5")) == 1

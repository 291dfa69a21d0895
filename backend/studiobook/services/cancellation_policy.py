"""Cancellation refund policy evaluation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
import logging
from typing import Any, Mapping

logger = logging.getLogger(__name__)

FULL_REFUND_PERCENT = 100


class NoShowAction(str, Enum):
    CHARGE_FULL = "charge_full"
    CHARGE_PARTIAL = "charge_partial"
    NO_CHARGE = "no_charge"


@dataclass(frozen=True)
class RefundTier:
    hours_before_session: float
    refund_percent: int


@dataclass(frozen=True)
class CancellationPolicy:
    window_hours: float
    refund_tiers: tuple[RefundTier, ...] = field(default_factory=tuple)
    no_show_action: NoShowAction | None = None

    @classmethod
    def from_studio_config(
        cls,
        window_hours: float | None,
        policy: Mapping[str, Any] | None,
        default_window_hours: float,
    ) -> "CancellationPolicy":
        """Build a policy from a studio's stored columns; malformed tiers are skipped."""
        policy = policy or {}
        tiers: list[RefundTier] = []
        for raw in policy.get("refund_tiers") or []:
            try:
                hours = float(raw["hours_before_session"])
                percent = int(raw["refund_percent"])
            except (KeyError, TypeError, ValueError):
                logger.warning("Ignoring malformed refund tier: %r", raw)
                continue
            tiers.append(RefundTier(hours_before_session=hours, refund_percent=_clamp(percent)))

        action = None
        raw_action = policy.get("no_show_action")
        if raw_action:
            try:
                action = NoShowAction(raw_action)
            except ValueError:
                logger.warning("Ignoring unknown no_show_action: %r", raw_action)

        return cls(
            window_hours=float(default_window_hours if window_hours is None else window_hours),
            refund_tiers=tuple(sorted(tiers, key=lambda t: t.hours_before_session)),
            no_show_action=action,
        )


@dataclass(frozen=True)
class RefundDecision:
    allowed: bool
    refund_percent: int = 0
    hours_until: float = 0.0
    policy_basis: str = ""


def _clamp(percent: int) -> int:
    return max(0, min(FULL_REFUND_PERCENT, percent))


def round_half_up(value: Decimal) -> int:
    """Round to the nearest integer with .5 going up (not banker's rounding)."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def refund_amount(original: int, refund_percent: int) -> int:
    """Credits returned for ``refund_percent`` of ``original``."""
    if refund_percent >= FULL_REFUND_PERCENT:
        return original
    if refund_percent <= 0:
        return 0
    return round_half_up(Decimal(original) * Decimal(refund_percent) / Decimal(100))


class CancellationPolicyEngine:
    """Determines whether a client cancellation is allowed and how much is refunded."""

    def evaluate(
        self,
        policy: CancellationPolicy,
        scheduled_at: datetime,
        now: datetime,
    ) -> RefundDecision:
        hours_until = (scheduled_at - now).total_seconds() / 3600

        if hours_until >= policy.window_hours:
            return RefundDecision(
                allowed=True,
                refund_percent=FULL_REFUND_PERCENT,
                hours_until=hours_until,
                policy_basis="outside_window",
            )

        if not policy.refund_tiers:
            return RefundDecision(
                allowed=False,
                hours_until=hours_until,
                policy_basis="within_window_no_policy",
            )

        # Tiers ascend by hours_before_session; the tightest tier that still
        # covers hours_until wins.
        for tier in policy.refund_tiers:
            if hours_until <= tier.hours_before_session:
                return RefundDecision(
                    allowed=True,
                    refund_percent=tier.refund_percent,
                    hours_until=hours_until,
                    policy_basis=f"tier_{tier.hours_before_session:g}h",
                )

        return RefundDecision(
            allowed=True,
            refund_percent=0,
            hours_until=hours_until,
            policy_basis="no_matching_tier",
        )

    def no_show_refund_percent(self, policy: CancellationPolicy, partial_percent: int) -> int:
        """Refund owed when a booking is marked no-show."""
        if policy.no_show_action == NoShowAction.NO_CHARGE:
            return FULL_REFUND_PERCENT
        if policy.no_show_action == NoShowAction.CHARGE_PARTIAL:
            return _clamp(partial_percent)
        return 0

# backend/tests/services/test_conflict_checker.py
"""
Trainer double-booking detection against a real (SQLite) session.
"""

from datetime import datetime, timedelta, timezone

import pytest

from studiobook.models.booking import BookingStatus
from studiobook.services.conflict_checker import ConflictChecker, intervals_overlap


@pytest.fixture
def checker(db, clock) -> ConflictChecker:
    return ConflictChecker(db, clock=clock)


def test_intervals_are_half_open():
    start = datetime(2026, 3, 4, 10, 0, tzinfo=timezone.utc)
    end = start + timedelta(hours=1)

    assert intervals_overlap(start, end, start + timedelta(minutes=30), end)
    assert not intervals_overlap(start, end, end, end + timedelta(hours=1))
    assert not intervals_overlap(start, end, start - timedelta(hours=1), start)


def test_overlapping_booking_is_a_conflict(checker, seed, world, session_start):
    existing = seed.booking(world.client, world.trainer.id, session_start)

    conflicts = checker.find_conflicts(
        world.trainer.id, session_start + timedelta(minutes=30), 60
    )

    assert [booking.id for booking in conflicts] == [existing.id]


def test_back_to_back_sessions_do_not_conflict(checker, seed, world, session_start):
    seed.booking(world.client, world.trainer.id, session_start)

    assert not checker.has_conflict(world.trainer.id, session_start + timedelta(hours=1), 60)
    assert not checker.has_conflict(world.trainer.id, session_start - timedelta(hours=1), 60)


def test_long_booking_starting_before_window_is_found(checker, seed, world, session_start):
    # Three-hour booking that starts well before the candidate
    seed.booking(world.client, world.trainer.id, session_start - timedelta(hours=2), duration=180)

    assert checker.has_conflict(world.trainer.id, session_start, 30)


def test_other_trainers_do_not_conflict(checker, seed, world, session_start):
    other = seed.trainer(world.studio)
    seed.booking(world.client, other.id, session_start)

    assert not checker.has_conflict(world.trainer.id, session_start, 60)


@pytest.mark.parametrize(
    "status", [BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW]
)
def test_non_blocking_statuses_are_ignored(checker, seed, world, session_start, status):
    seed.booking(world.client, world.trainer.id, session_start, status=status.value)

    assert not checker.has_conflict(world.trainer.id, session_start, 60)


def test_live_soft_hold_blocks(checker, seed, world, session_start, now):
    seed.booking(
        world.client,
        world.trainer.id,
        session_start,
        status=BookingStatus.SOFT_HOLD.value,
        hold_expiry=now + timedelta(minutes=10),
    )

    assert checker.has_conflict(world.trainer.id, session_start, 60)


def test_expired_soft_hold_does_not_block(checker, seed, world, session_start, now):
    seed.booking(
        world.client,
        world.trainer.id,
        session_start,
        status=BookingStatus.SOFT_HOLD.value,
        hold_expiry=now - timedelta(minutes=1),
    )

    assert not checker.has_conflict(world.trainer.id, session_start, 60)


def test_excluded_booking_is_ignored(checker, seed, world, session_start):
    existing = seed.booking(world.client, world.trainer.id, session_start)

    assert not checker.has_conflict(
        world.trainer.id, session_start, 60, exclude_booking_id=existing.id
    )


def test_describe_leaves_out_client_identity(seed, world, session_start):
    existing = seed.booking(world.client, world.trainer.id, session_start)

    described = ConflictChecker.describe([existing])

    assert described == [
        {
            "starts_at": session_start.isoformat(),
            "ends_at": (session_start + timedelta(hours=1)).isoformat(),
        }
    ]

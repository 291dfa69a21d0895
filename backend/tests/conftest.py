# backend/tests/conftest.py
"""
Shared pytest fixtures.

Every test gets a session on an in-memory SQLite database. The session joins
an outer transaction in "create_savepoint" mode, so a service's commit only
releases a SAVEPOINT and a service's rollback only unwinds its own work.
Everything is thrown away when the outer transaction rolls back at teardown.

Seed factories commit what they create; a later rollback inside the code
under test must not take the seed rows with it.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool
import ulid

from studiobook.core.clock import FixedClock
from studiobook.database import Base
import studiobook.models  # noqa: F401
from studiobook.models.booking import Booking, BookingStatus
from studiobook.models.client import Client
from studiobook.models.credit import ClientPackage, CreditUsage, CreditUsageReason
from studiobook.models.service import Service
from studiobook.models.studio import Profile, ProfileRole, StaffMember, StaffType, Studio
from studiobook.services.availability_service import AvailabilityService
from studiobook.services.booking_request_service import BookingRequestService
from studiobook.services.booking_service import BookingService
from studiobook.services.credit_service import CreditService
from studiobook.services.notification_service import NotificationService
from studiobook.services.studio_membership_service import StudioMembershipService

# Monday 2026-03-02 09:00 UTC
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
# Wednesday 2026-03-04 10:00 UTC, 49 hours after NOW
SESSION_START = datetime(2026, 3, 4, 10, 0, tzinfo=timezone.utc)

DEFAULT_POLICY = {
    "no_show_action": "charge_full",
    "refund_tiers": [
        {"hours_before_session": 12, "refund_percent": 50},
        {"hours_before_session": 24, "refund_percent": 100},
    ],
}


def new_id() -> str:
    return str(ulid.ULID())


# ============================================================================
# DATABASE
# ============================================================================


@pytest.fixture(scope="session")
def db_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite manages transactions itself and breaks SAVEPOINT; take over.
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(db_engine) -> Session:
    connection = db_engine.connect()
    transaction = connection.begin()
    session = Session(
        bind=connection,
        join_transaction_mode="create_savepoint",
        autoflush=False,
        expire_on_commit=False,
    )
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def session_start() -> datetime:
    """Start of the standard test session, two days after ``now``."""
    return SESSION_START


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


# ============================================================================
# NOTIFICATIONS
# ============================================================================


class RecordingSender:
    """Notification sender that keeps everything it is asked to deliver."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, Dict[str, Any]]] = []

    def send(self, notification_type: str, recipient_id: str, template_data: Dict[str, Any]) -> None:
        self.sent.append((notification_type, recipient_id, template_data))

    def types(self) -> List[str]:
        return [notification_type for notification_type, _, _ in self.sent]

    def for_type(self, notification_type: str) -> List[Tuple[str, str, Dict[str, Any]]]:
        return [item for item in self.sent if item[0] == notification_type]


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


# ============================================================================
# SERVICES
# ============================================================================


@pytest.fixture
def notification_service(db, sender, clock) -> NotificationService:
    return NotificationService(db, sender=sender, clock=clock)


@pytest.fixture
def membership_service(db, clock) -> StudioMembershipService:
    return StudioMembershipService(db, clock)


@pytest.fixture
def credit_service(db, clock) -> CreditService:
    return CreditService(db, clock)


@pytest.fixture
def availability_service(db, membership_service, clock) -> AvailabilityService:
    return AvailabilityService(db, clock=clock, membership_service=membership_service)


@pytest.fixture
def booking_service(db, notification_service, clock) -> BookingService:
    return BookingService(db, notification_service=notification_service, clock=clock)


@pytest.fixture
def request_service(db, booking_service, notification_service, clock) -> BookingRequestService:
    return BookingRequestService(
        db,
        booking_service=booking_service,
        notification_service=notification_service,
        clock=clock,
    )


# ============================================================================
# SEED FACTORIES
# ============================================================================


class Seed:
    """Creates and commits studio data for a test."""

    def __init__(self, db: Session, clock: FixedClock):
        self.db = db
        self.clock = clock

    def _save(self, *entities: Any) -> None:
        self.db.add_all(entities)
        self.db.commit()

    def studio(
        self,
        *,
        owner_id: Optional[str] = None,
        owner_role: str = ProfileRole.STUDIO_OWNER.value,
        **fields: Any,
    ) -> Studio:
        owner_id = owner_id or new_id()
        defaults: Dict[str, Any] = {
            "name": "Northside Strength",
            "booking_model": "self-service",
            "soft_hold_length": 30,
            "opening_hours": None,
            "cancellation_window_hours": 24,
            "cancellation_policy": DEFAULT_POLICY,
            "timezone": "UTC",
        }
        defaults.update(fields)
        studio = Studio(id=new_id(), owner_id=owner_id, **defaults)
        self._save(
            studio,
            Profile(id=owner_id, role=owner_role, studio_id=studio.id, first_name="Olive"),
            StaffMember(
                id=owner_id,
                studio_id=studio.id,
                staff_type=StaffType.OWNER.value,
                first_name="Olive",
                last_name="Owner",
            ),
        )
        return studio

    def trainer(
        self, studio: Studio, staff_type: str = StaffType.TRAINER.value, **fields: Any
    ) -> StaffMember:
        member = StaffMember(
            id=fields.pop("id", None) or new_id(),
            studio_id=studio.id,
            staff_type=staff_type,
            first_name=fields.pop("first_name", "Tara"),
            last_name=fields.pop("last_name", "Trainer"),
        )
        profile = Profile(id=member.id, role=ProfileRole.TRAINER.value, studio_id=studio.id)
        self._save(member, profile)
        return member

    def client(self, studio: Optional[Studio] = None, **fields: Any) -> Client:
        defaults: Dict[str, Any] = {
            "email": f"client_{new_id().lower()}@example.com",
            "first_name": "Casey",
            "last_name": "Client",
            "studio_id": studio.id if studio is not None else None,
            "credits": 0,
            "self_booking_allowed": True,
        }
        defaults.update(fields)
        client = Client(id=new_id(), **defaults)
        self._save(client)
        return client

    def service(self, studio: Optional[Studio] = None, **fields: Any) -> Service:
        defaults: Dict[str, Any] = {
            "name": "Personal Training",
            "duration": 60,
            "credits_required": 1,
            "studio_id": studio.id if studio is not None else None,
            "created_by": studio.owner_id if studio is not None else None,
            "is_active": True,
            "is_public": True,
        }
        defaults.update(fields)
        service = Service(id=new_id(), **defaults)
        self._save(service)
        return service

    def lot(
        self,
        client: Client,
        sessions: int,
        *,
        expires_in_days: float = 30,
        trainer_id: Optional[str] = None,
        **fields: Any,
    ) -> ClientPackage:
        now = self.clock.now()
        lot = ClientPackage(
            id=new_id(),
            client_id=client.id,
            trainer_id=trainer_id,
            sessions_total=sessions,
            sessions_used=0,
            sessions_remaining=sessions,
            purchased_at=now - timedelta(days=1),
            expires_at=now + timedelta(days=expires_in_days),
            **fields,
        )
        grant = CreditUsage(
            id=new_id(),
            client_package_id=lot.id,
            client_id=client.id,
            credits_used=-sessions,
            balance_after=sessions,
            reason=CreditUsageReason.MANUAL_ADDITION.value,
        )
        self._save(lot, grant)
        return lot

    def booking(
        self,
        client: Client,
        trainer_id: str,
        start: datetime,
        *,
        duration: int = 60,
        status: str = BookingStatus.CONFIRMED.value,
        **fields: Any,
    ) -> Booking:
        booking = Booking(
            id=new_id(),
            client_id=client.id,
            trainer_id=trainer_id,
            studio_id=fields.pop("studio_id", client.studio_id),
            scheduled_at=start,
            duration=duration,
            status=status,
            **fields,
        )
        self._save(booking)
        return booking


@pytest.fixture
def seed(db, clock) -> Seed:
    return Seed(db, clock)


@pytest.fixture
def world(seed) -> SimpleNamespace:
    """A self-service studio with one trainer, one service and a client holding 5 credits."""
    studio = seed.studio()
    trainer = seed.trainer(studio)
    client = seed.client(studio, invited_by=trainer.id)
    service = seed.service(studio)
    lot = seed.lot(client, 5, trainer_id=trainer.id)
    return SimpleNamespace(
        studio=studio,
        owner_id=studio.owner_id,
        trainer=trainer,
        client=client,
        service=service,
        lot=lot,
    )

# backend/tests/routes/conftest.py
"""
HTTP fixtures: the real application with its database and service providers
swapped for the test session and fixed-clock services.
"""

from fastapi.testclient import TestClient
import pytest

from studiobook.api.dependencies.database import get_db
from studiobook.api.dependencies.services import (
    get_availability_service,
    get_booking_request_service,
    get_booking_service,
    get_credit_service,
    get_membership_service,
    get_notification_service,
)
from studiobook.main import create_app


@pytest.fixture
def app(
    db,
    notification_service,
    membership_service,
    credit_service,
    booking_service,
    request_service,
    availability_service,
):
    application = create_app()
    application.dependency_overrides[get_db] = lambda: db
    application.dependency_overrides[get_notification_service] = lambda: notification_service
    application.dependency_overrides[get_membership_service] = lambda: membership_service
    application.dependency_overrides[get_credit_service] = lambda: credit_service
    application.dependency_overrides[get_booking_service] = lambda: booking_service
    application.dependency_overrides[get_booking_request_service] = lambda: request_service
    application.dependency_overrides[get_availability_service] = lambda: availability_service
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def as_client(world):
    return {"X-Client-Id": world.client.id}


@pytest.fixture
def as_trainer(world):
    return {"X-Staff-Id": world.trainer.id}

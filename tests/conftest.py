"""Shared pytest fixtures for scoring, statistics and storage tests."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import pytest

from api.services import TransactionService
from scoring.config import load_config
from scoring.models import (
    ActiveHours,
    Card,
    Location,
    SpendingPattern,
    Transaction,
    UserProfile,
)
from storage.repository import TransactionStore
from storage.session import DatabaseSession

NOW = datetime(2024, 3, 15, 14, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed reference time (a Friday afternoon, UTC)."""
    return NOW


@pytest.fixture
def profile() -> UserProfile:
    """User averaging 100 per purchase, groceries in New York, active 8-23."""
    return UserProfile(
        user_id="user_1",
        name="Test User",
        email="test.user@example.com",
        home_location=Location(country="USA", city="New York", zip="10001"),
        cards=[Card(last_four="4321", card_type="Visa")],
        spending=SpendingPattern(
            average_transaction_amount=Decimal("100"),
            frequent_categories={"groceries"},
            frequent_locations={"New York", "Online"},
            active_hours=ActiveHours(start=8, end=23),
        ),
    )


@pytest.fixture
def make_transaction(now) -> Callable[..., Transaction]:
    """Factory for ordinary transactions; override any field by keyword."""

    def _make(**overrides: Any) -> Transaction:
        data: dict[str, Any] = {
            "user_id": "user_1",
            "card_last_four": "4321",
            "amount": Decimal("80"),
            "merchant_name": "Corner Market",
            "merchant_category": "groceries",
            "location": Location(country="USA", city="New York", zip="10001"),
            "timestamp": now,
            "ip_address": "10.0.0.1",
            "device_id": "dev1",
        }
        data.update(overrides)
        return Transaction(**data)

    return _make


@pytest.fixture
def make_history(now, make_transaction) -> Callable[..., list[Transaction]]:
    """Factory for history lists, most recent first.

    ``recent`` entries fall inside the last 24 hours and ``older`` entries
    are two days old. All use device ``dev1`` unless overridden.
    """

    def _make(recent: int = 0, older: int = 0, device_id: str = "dev1") -> list[Transaction]:
        history = [
            make_transaction(
                transaction_id=100 + i,
                timestamp=now - timedelta(hours=1 + i),
                device_id=device_id,
            )
            for i in range(recent)
        ]
        history += [
            make_transaction(
                transaction_id=200 + i,
                timestamp=now - timedelta(days=2, hours=i),
                device_id=device_id,
            )
            for i in range(older)
        ]
        return history

    return _make


@pytest.fixture
def db_session() -> DatabaseSession:
    """Fresh in-memory SQLite database."""
    session = DatabaseSession("sqlite://")
    session.init_db()
    yield session
    session.drop_all()


@pytest.fixture
def store(db_session) -> TransactionStore:
    return TransactionStore(db_session)


@pytest.fixture
def service(store, monkeypatch) -> TransactionService:
    for key in [
        "FRAUDSCORE_CONFIG_PATH",
        "FRAUDSCORE_HISTORY_LIMIT",
        "FRAUDSCORE_FREQUENCY_WINDOW_HOURS",
        "FRAUDSCORE_DASHBOARD_WINDOW_DAYS",
        "FRAUDSCORE_REPORT_WINDOW_DAYS",
        "FRAUDSCORE_FILL_MISSING_DAYS",
    ]:
        monkeypatch.delenv(key, raising=False)
    return TransactionService(store=store, config=load_config())

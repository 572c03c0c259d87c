"""Demo data for local development.

Creates a handful of cardholders with fixed spending patterns and a month of
mostly ordinary transactions, with some suspicious ones mixed in. Every
transaction goes through the regular scoring path, in timestamp order, so the
stored scores match what live traffic would have produced.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import numpy as np
from faker import Faker

from api.services import TransactionService
from scoring.config import load_config
from scoring.logging import configure_logging
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

logger = logging.getLogger(__name__)

SUSPICIOUS_CATEGORIES = ["electronics", "jewelry", "gift_cards"]
FOREIGN_LOCATIONS = [
    Location(country="Nigeria", city="Lagos", zip="100001"),
    Location(country="Russia", city="Moscow", zip="101000"),
    Location(country="Brazil", city="Sao Paulo", zip="01000"),
]


@dataclass
class DemoUserTemplate:
    home: Location
    card_type: str
    average_amount: Decimal
    categories: set[str]
    locations: set[str]
    active_hours: tuple[int, int]


DEMO_USERS = [
    DemoUserTemplate(
        home=Location(country="USA", city="New York", zip="10001"),
        card_type="Visa",
        average_amount=Decimal("120"),
        categories={"groceries", "dining", "retail"},
        locations={"New York", "Online"},
        active_hours=(8, 23),
    ),
    DemoUserTemplate(
        home=Location(country="USA", city="San Francisco", zip="94105"),
        card_type="Mastercard",
        average_amount=Decimal("85"),
        categories={"dining", "entertainment", "travel"},
        locations={"San Francisco", "Los Angeles", "Online"},
        active_hours=(9, 22),
    ),
    DemoUserTemplate(
        home=Location(country="UK", city="London", zip="EC1A"),
        card_type="Amex",
        average_amount=Decimal("60"),
        categories={"groceries", "transport", "dining"},
        locations={"London", "Online"},
        active_hours=(7, 21),
    ),
]


class DemoDataGenerator:
    """Generates demo profiles and transactions."""

    def __init__(self, seed: int | None = None):
        """Initialize generator.

        Args:
            seed: Random seed for reproducibility.
        """
        self.rng = np.random.default_rng(seed)
        self.faker = Faker()
        if seed is not None:
            Faker.seed(seed)

    def _generate_id(self, prefix: str) -> str:
        return f"{prefix}_{uuid.uuid4().hex[:12]}"

    def generate_profile(self, template: DemoUserTemplate) -> UserProfile:
        return UserProfile(
            user_id=self._generate_id("user"),
            name=self.faker.name(),
            email=self.faker.email(),
            home_location=template.home,
            cards=[
                Card(
                    last_four=f"{int(self.rng.integers(0, 10000)):04d}",
                    card_type=template.card_type,
                )
            ],
            spending=SpendingPattern(
                average_transaction_amount=template.average_amount,
                frequent_categories=template.categories,
                frequent_locations=template.locations,
                active_hours=ActiveHours(
                    start=template.active_hours[0], end=template.active_hours[1]
                ),
            ),
        )

    def generate_normal(
        self, profile: UserProfile, device_id: str, timestamp: datetime
    ) -> Transaction:
        """A transaction that fits the user's habits."""
        average = float(profile.spending.average_transaction_amount)
        amount = max(1.0, self.rng.normal(average, average * 0.3))
        active = profile.spending.active_hours
        hour = int(self.rng.integers(active.start, active.end + 1))
        return Transaction(
            user_id=profile.user_id,
            card_last_four=profile.cards[0].last_four,
            amount=Decimal(f"{amount:.2f}"),
            merchant_name=self.faker.company(),
            merchant_category=str(
                self.rng.choice(sorted(profile.spending.frequent_categories))
            ),
            location=profile.home_location,
            timestamp=timestamp.replace(hour=hour),
            ip_address=self.faker.ipv4(),
            device_id=device_id,
        )

    def generate_suspicious(self, profile: UserProfile, timestamp: datetime) -> Transaction:
        """A large off-hours purchase abroad from an unseen device."""
        average = float(profile.spending.average_transaction_amount)
        amount = average * float(self.rng.uniform(5.5, 12.0))
        location = FOREIGN_LOCATIONS[int(self.rng.integers(0, len(FOREIGN_LOCATIONS)))]
        return Transaction(
            user_id=profile.user_id,
            card_last_four=profile.cards[0].last_four,
            amount=Decimal(f"{amount:.2f}"),
            merchant_name=self.faker.company(),
            merchant_category=str(self.rng.choice(SUSPICIOUS_CATEGORIES)),
            location=location,
            timestamp=timestamp.replace(hour=int(self.rng.integers(1, 5))),
            ip_address=self.faker.ipv4(),
            device_id=self._generate_id("device"),
        )


def seed_demo_data(
    service: TransactionService,
    seed: int | None = None,
    days: int = 30,
    transactions_per_user: int = 20,
    suspicious_rate: float = 0.1,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Create demo users and score their transactions through the service.

    Args:
        service: Service used to store users and process transactions.
        seed: Random seed for reproducibility.
        days: How far back transactions are spread.
        transactions_per_user: Transactions generated for each user.
        suspicious_rate: Probability a transaction is suspicious.
        now: End of the generated period. Defaults to the current UTC time.

    Returns:
        Counts of users, transactions and flagged transactions created.
    """
    now = now or datetime.now(timezone.utc)
    generator = DemoDataGenerator(seed=seed)

    pending: list[Transaction] = []
    for template in DEMO_USERS:
        profile = service.store.add_user(generator.generate_profile(template))
        device_id = generator._generate_id("device")
        for _ in range(transactions_per_user):
            day = now - timedelta(days=int(generator.rng.integers(0, days)))
            if generator.rng.random() < suspicious_rate:
                txn = generator.generate_suspicious(profile, day)
            else:
                txn = generator.generate_normal(profile, device_id, day)
            if txn.timestamp > now:
                txn = txn.model_copy(update={"timestamp": now})
            pending.append(txn)

    flagged = 0
    for txn in sorted(pending, key=lambda t: t.timestamp):
        saved, _ = service.process_transaction(txn, now=txn.timestamp)
        flagged += int(saved.is_flagged)

    stats = {
        "users": len(DEMO_USERS),
        "transactions": len(pending),
        "flagged": flagged,
    }
    logger.info(f"Seeded demo data: {stats}")
    return stats


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Seed the database with demo data")
    parser.add_argument(
        "--database-url",
        help="Database URL (or set FRAUDSCORE_DATABASE_URL env var)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument(
        "--transactions-per-user",
        type=int,
        default=20,
        help="Transactions generated for each demo user",
    )

    args = parser.parse_args()
    config = load_config()
    configure_logging(config.log_level)

    db_session = DatabaseSession(args.database_url or config.database_url)
    db_session.init_db()
    service = TransactionService(store=TransactionStore(db_session), config=config)

    stats = seed_demo_data(
        service,
        seed=args.seed,
        transactions_per_user=args.transactions_per_user,
    )

    print("\nDemo data created:")
    print(f"  Users: {stats['users']}")
    print(f"  Transactions: {stats['transactions']}")
    print(f"  Flagged: {stats['flagged']}")

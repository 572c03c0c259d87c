"""Persistence of users and scored transactions."""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select

from scoring.errors import ProfileNotFoundError
from scoring.models import (
    ActiveHours,
    Card,
    Location,
    SpendingPattern,
    Transaction,
    UserProfile,
)
from scoring.statistics import RecordCorpus
from storage.models import CardDB, TransactionDB, UserDB
from storage.session import DatabaseSession

logger = logging.getLogger(__name__)


def _to_db_timestamp(value: datetime) -> datetime:
    """Store timestamps as naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db_timestamp(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc)


def _profile_from_db(db_user: UserDB) -> UserProfile:
    active_hours = None
    if db_user.active_hours_start is not None and db_user.active_hours_end is not None:
        active_hours = ActiveHours(
            start=db_user.active_hours_start, end=db_user.active_hours_end
        )

    return UserProfile(
        user_id=db_user.id,
        name=db_user.name,
        email=db_user.email,
        home_location=Location(
            country=db_user.home_country,
            city=db_user.home_city,
            zip=db_user.home_zip,
        ),
        cards=[
            Card(last_four=c.last_four, card_type=c.card_type, is_active=c.is_active)
            for c in db_user.cards
        ],
        spending=SpendingPattern(
            average_transaction_amount=db_user.average_transaction_amount,
            frequent_categories=set(db_user.frequent_categories or []),
            frequent_locations=set(db_user.frequent_locations or []),
            active_hours=active_hours,
        ),
    )


def _transaction_from_db(db_txn: TransactionDB) -> Transaction:
    location = None
    if db_txn.country is not None or db_txn.city is not None or db_txn.zip is not None:
        location = Location(country=db_txn.country, city=db_txn.city, zip=db_txn.zip)

    return Transaction(
        transaction_id=db_txn.id,
        user_id=db_txn.user_id,
        card_last_four=db_txn.card_last_four,
        amount=db_txn.amount,
        merchant_name=db_txn.merchant_name,
        merchant_category=db_txn.merchant_category,
        location=location,
        timestamp=_from_db_timestamp(db_txn.timestamp),
        ip_address=db_txn.ip_address,
        device_id=db_txn.device_id,
        fraud_score=db_txn.fraud_score,
        is_flagged=db_txn.is_flagged,
        is_confirmed_fraud=db_txn.is_confirmed_fraud,
    )


class TransactionStore:
    """Stores users and scored transactions.

    Serves as the profile and history source for scoring and as the corpus
    source for statistics.
    """

    def __init__(self, db_session: DatabaseSession | None = None):
        self.db_session = db_session or DatabaseSession()

    # Users

    def add_user(self, profile: UserProfile) -> UserProfile:
        """Insert or replace a user profile and its cards."""
        with self.db_session.get_session() as session:
            db_user = session.get(UserDB, profile.user_id)
            if db_user is None:
                db_user = UserDB(id=profile.user_id)
                session.add(db_user)

            active_hours = profile.spending.active_hours
            db_user.name = profile.name
            db_user.email = profile.email
            db_user.home_country = profile.home_location.country
            db_user.home_city = profile.home_location.city
            db_user.home_zip = profile.home_location.zip
            db_user.average_transaction_amount = (
                profile.spending.average_transaction_amount
            )
            db_user.frequent_categories = sorted(profile.spending.frequent_categories)
            db_user.frequent_locations = sorted(profile.spending.frequent_locations)
            db_user.active_hours_start = active_hours.start if active_hours else None
            db_user.active_hours_end = active_hours.end if active_hours else None
            db_user.cards = [
                CardDB(last_four=c.last_four, card_type=c.card_type, is_active=c.is_active)
                for c in profile.cards
            ]
            session.flush()
            return _profile_from_db(db_user)

    def get_user_profile(self, user_id: str) -> UserProfile:
        """Load a user profile.

        Raises:
            ProfileNotFoundError: If the user does not exist.
        """
        with self.db_session.get_session() as session:
            db_user = session.get(UserDB, user_id)
            if db_user is None:
                raise ProfileNotFoundError(user_id)
            return _profile_from_db(db_user)

    def count_users(self) -> int:
        with self.db_session.get_session() as session:
            return session.execute(select(func.count(UserDB.id))).scalar_one()

    # Transactions

    def save_transaction(self, transaction: Transaction) -> Transaction:
        """Persist a transaction and return it with its assigned id."""
        location = transaction.location
        with self.db_session.get_session() as session:
            db_txn = TransactionDB(
                user_id=transaction.user_id,
                card_last_four=transaction.card_last_four,
                amount=transaction.amount,
                merchant_name=transaction.merchant_name,
                merchant_category=transaction.merchant_category,
                country=location.country if location else None,
                city=location.city if location else None,
                zip=location.zip if location else None,
                timestamp=_to_db_timestamp(transaction.timestamp),
                ip_address=transaction.ip_address,
                device_id=transaction.device_id,
                fraud_score=transaction.fraud_score,
                is_flagged=transaction.is_flagged,
                is_confirmed_fraud=transaction.is_confirmed_fraud,
            )
            session.add(db_txn)
            session.flush()
            return _transaction_from_db(db_txn)

    def get_transaction(self, transaction_id: int) -> Transaction | None:
        with self.db_session.get_session() as session:
            db_txn = session.get(TransactionDB, transaction_id)
            return _transaction_from_db(db_txn) if db_txn else None

    def get_recent_transactions(self, user_id: str, limit: int = 10) -> list[Transaction]:
        """Latest transactions for a user, most recent first."""
        stmt = (
            select(TransactionDB)
            .where(TransactionDB.user_id == user_id)
            .order_by(TransactionDB.timestamp.desc(), TransactionDB.id.desc())
            .limit(limit)
        )
        with self.db_session.get_session() as session:
            return [_transaction_from_db(t) for t in session.execute(stmt).scalars()]

    def list_flagged(self, limit: int | None = None) -> list[Transaction]:
        """Flagged transactions, newest first."""
        stmt = (
            select(TransactionDB)
            .where(TransactionDB.is_flagged.is_(True))
            .order_by(TransactionDB.timestamp.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with self.db_session.get_session() as session:
            return [_transaction_from_db(t) for t in session.execute(stmt).scalars()]

    def list_confirmed_fraud(self) -> list[Transaction]:
        stmt = (
            select(TransactionDB)
            .where(TransactionDB.is_confirmed_fraud.is_(True))
            .order_by(TransactionDB.timestamp.desc())
        )
        with self.db_session.get_session() as session:
            return [_transaction_from_db(t) for t in session.execute(stmt).scalars()]

    # Reviewer overrides

    def update_fraud_status(
        self, transaction_id: int, is_confirmed_fraud: bool
    ) -> Transaction | None:
        """Record a reviewer's verdict. A negative verdict also clears the flag."""
        with self.db_session.get_session() as session:
            db_txn = session.get(TransactionDB, transaction_id)
            if db_txn is None:
                return None
            db_txn.is_confirmed_fraud = is_confirmed_fraud
            if not is_confirmed_fraud:
                db_txn.is_flagged = False
            logger.info(
                f"Transaction {transaction_id} fraud status set to {is_confirmed_fraud}"
            )
            return _transaction_from_db(db_txn)

    def confirm_fraud(self, transaction_id: int) -> Transaction | None:
        with self.db_session.get_session() as session:
            db_txn = session.get(TransactionDB, transaction_id)
            if db_txn is None:
                return None
            db_txn.is_confirmed_fraud = True
            logger.info(f"Transaction {transaction_id} confirmed as fraud")
            return _transaction_from_db(db_txn)

    def mark_false_positive(self, transaction_id: int) -> Transaction | None:
        """Clear the flag and the stored score of a transaction."""
        with self.db_session.get_session() as session:
            db_txn = session.get(TransactionDB, transaction_id)
            if db_txn is None:
                return None
            db_txn.is_flagged = False
            db_txn.fraud_score = 0.0
            logger.info(f"Transaction {transaction_id} marked as false positive")
            return _transaction_from_db(db_txn)

    # Corpus

    def load_corpus(self, since: datetime | None = None) -> RecordCorpus:
        """Load scored transactions into an in-memory corpus for aggregation."""
        stmt = select(
            TransactionDB.amount,
            TransactionDB.merchant_category,
            TransactionDB.timestamp,
            TransactionDB.is_flagged,
            TransactionDB.is_confirmed_fraud,
        )
        if since is not None:
            stmt = stmt.where(TransactionDB.timestamp >= _to_db_timestamp(since))

        with self.db_session.get_session() as session:
            rows = session.execute(stmt).mappings().all()

        records = [
            {
                **row,
                "timestamp": _from_db_timestamp(row["timestamp"])
                if row["timestamp"] is not None
                else None,
            }
            for row in rows
        ]
        return RecordCorpus(records)

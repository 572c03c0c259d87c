"""Business logic tying the scoring core to the transaction store."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from scoring.config import ScoringConfig, load_config
from scoring.errors import TransactionNotFoundError
from scoring.interfaces import HistoryLookup, ProfileLookup
from scoring.models import ScoreResult, Transaction
from scoring.risk import RiskScorer
from scoring.statistics import StatisticsAggregator
from storage.repository import TransactionStore
from storage.session import DatabaseSession

logger = logging.getLogger(__name__)

RECENT_FLAGS_LIMIT = 5


@dataclass
class TransactionService:
    """Scores incoming transactions, stores them and reports on them.

    Fetches the profile and history the scorer needs, attaches the result to
    the transaction and persists it. The scorer itself never touches storage.
    Profiles and history come from the store unless other lookups are given.
    """

    store: TransactionStore
    config: ScoringConfig = field(default_factory=load_config)
    scorer: RiskScorer | None = None
    profiles: ProfileLookup | None = None
    history: HistoryLookup | None = None

    def __post_init__(self):
        if self.scorer is None:
            self.scorer = RiskScorer(
                history_limit=self.config.history_limit,
                frequency_window_hours=self.config.frequency_window_hours,
            )
        if self.profiles is None:
            self.profiles = self.store
        if self.history is None:
            self.history = self.store

    def evaluate(self, transaction: Transaction, now: datetime | None = None) -> ScoreResult:
        """Score a transaction without storing it.

        Raises:
            ProfileNotFoundError: If the transaction's user does not exist.
        """
        profile = self.profiles.get_user_profile(transaction.user_id)
        history = self.history.get_recent_transactions(
            transaction.user_id, limit=self.config.history_limit
        )
        return self.scorer.score(transaction, profile, history, now=now)

    def record_score(self, transaction: Transaction, result: ScoreResult) -> Transaction:
        """Attach the score and flag to a transaction and persist it."""
        return self.store.save_transaction(transaction.with_score(result))

    def process_transaction(
        self, transaction: Transaction, now: datetime | None = None
    ) -> tuple[Transaction, ScoreResult]:
        """Score and persist a transaction.

        Returns:
            The stored transaction and the scoring result.

        Raises:
            ProfileNotFoundError: If the transaction's user does not exist.
        """
        result = self.evaluate(transaction, now=now)
        saved = self.record_score(transaction, result)
        logger.info(
            f"Processed transaction {saved.transaction_id} for user {saved.user_id}: "
            f"score={result.score}, flagged={saved.is_flagged}"
        )
        return saved, result

    def get_transaction(self, transaction_id: int) -> Transaction:
        transaction = self.store.get_transaction(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        return transaction

    def update_fraud_status(
        self, transaction_id: int, is_confirmed_fraud: bool
    ) -> Transaction:
        transaction = self.store.update_fraud_status(transaction_id, is_confirmed_fraud)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        return transaction

    def confirm_fraud(self, transaction_id: int) -> Transaction:
        transaction = self.store.confirm_fraud(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        return transaction

    def mark_false_positive(self, transaction_id: int) -> Transaction:
        transaction = self.store.mark_false_positive(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        return transaction

    def list_flagged(self, limit: int | None = None) -> list[Transaction]:
        return self.store.list_flagged(limit=limit)

    def recent_flags(self) -> list[Transaction]:
        return self.store.list_flagged(limit=RECENT_FLAGS_LIMIT)

    def list_confirmed_fraud(self) -> list[Transaction]:
        return self.store.list_confirmed_fraud()

    def count_users(self) -> int:
        return self.store.count_users()

    def _aggregator(self) -> StatisticsAggregator:
        corpus = self.store.load_corpus()
        if corpus.skipped:
            logger.warning(f"Skipped {corpus.skipped} malformed records in corpus")
        return StatisticsAggregator(
            corpus, fill_missing_days=self.config.fill_missing_days
        )

    def fraud_statistics(self, now: datetime | None = None) -> dict[str, Any]:
        """Dashboard statistics over the configured short window."""
        return self._aggregator().fraud_statistics(
            days=self.config.dashboard_window_days, now=now
        )

    def transaction_stats(self, now: datetime | None = None) -> dict[str, Any]:
        """Report statistics over the configured long window."""
        return self._aggregator().transaction_stats(
            days=self.config.report_window_days, now=now
        )


# Singleton service instance
_service: TransactionService | None = None


def get_service() -> TransactionService:
    """Get or create the transaction service singleton.

    Returns:
        TransactionService instance.
    """
    global _service
    if _service is None:
        config = load_config()
        db_session = DatabaseSession(config.database_url)
        db_session.init_db()
        _service = TransactionService(store=TransactionStore(db_session), config=config)
    return _service


def set_service(service: TransactionService | None) -> None:
    """Set the service instance (for testing).

    Args:
        service: TransactionService to use, or None to reset.
    """
    global _service
    _service = service

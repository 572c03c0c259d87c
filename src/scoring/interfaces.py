"""Interfaces the scoring core expects from its collaborators.

The core never performs I/O itself. Profiles, history and the scored corpus
are fetched by whoever calls it, through objects satisfying these protocols.
"""

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from scoring.models import ScoreResult, Transaction, UserProfile

if TYPE_CHECKING:
    from scoring.statistics import CorpusRecord, DailyBucket, GroupStats


class ProfileLookup(Protocol):
    """Source of user profiles."""

    def get_user_profile(self, user_id: str) -> UserProfile:
        """Return the profile for a user.

        Raises:
            ProfileNotFoundError: If no such user exists.
        """
        ...


class HistoryLookup(Protocol):
    """Source of a user's recent transactions."""

    def get_recent_transactions(
        self, user_id: str, limit: int = 10
    ) -> Sequence[Transaction]:
        """Return up to ``limit`` transactions, most recent first."""
        ...


class CorpusQuery(Protocol):
    """Read-only view over scored transactions used for aggregation."""

    def count_where(self, predicate: "Callable[[CorpusRecord], bool]") -> int:
        """Count records satisfying a predicate."""
        ...

    def group_by(
        self, field: str, since: datetime | None = None
    ) -> "dict[str, GroupStats]":
        """Group records by a field, optionally limited to a trailing window."""
        ...

    def time_series_by_day(
        self,
        since: datetime,
        until: datetime | None = None,
        fill_missing: bool = False,
    ) -> "list[DailyBucket]":
        """Bucket records by UTC calendar day, ascending."""
        ...


class ScoreConsumer(Protocol):
    """Caller that attaches a score to a transaction and persists it."""

    def record_score(self, transaction: Transaction, result: ScoreResult) -> Transaction:
        """Attach the result to the transaction and store it."""
        ...

"""Aggregate statistics over scored transactions.

Daily buckets use UTC calendar dates. Naive timestamps are treated as UTC.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import pandas as pd
from pydantic import BaseModel, Field, ValidationError

from scoring.errors import MalformedRecordError
from scoring.interfaces import CorpusQuery

logger = logging.getLogger(__name__)

# Reported when there are no transactions to take a percentage of.
EMPTY_PERCENTAGE = 0.0

FRAME_COLUMNS = [
    "amount",
    "merchant_category",
    "timestamp",
    "is_flagged",
    "is_confirmed_fraud",
]
GROUPABLE_FIELDS = {"merchant_category"}


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CorpusRecord(BaseModel):
    """The fields of a scored transaction that aggregation relies on."""

    amount: Decimal = Field(..., ge=0)
    merchant_category: str = Field(..., min_length=1)
    timestamp: datetime
    is_flagged: bool = False
    is_confirmed_fraud: bool = False


def coerce_record(record: Any) -> CorpusRecord:
    """Convert a transaction model or plain dict into a CorpusRecord.

    Raises:
        MalformedRecordError: If amount, category or timestamp is missing
            or invalid.
    """
    if isinstance(record, CorpusRecord):
        return record
    if isinstance(record, BaseModel):
        data = record.model_dump()
    elif isinstance(record, dict):
        data = record
    else:
        raise MalformedRecordError(f"Unsupported record type: {type(record).__name__}")

    try:
        return CorpusRecord.model_validate(data)
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
        raise MalformedRecordError(f"Invalid fields: {', '.join(fields)}") from e


def flagged_percentage(flagged: int, total: int) -> float:
    """Percentage of flagged transactions, rounded to two places."""
    if total == 0:
        return EMPTY_PERCENTAGE
    return round(flagged / total * 100, 2)


@dataclass
class GroupStats:
    """Counts and sums for one group of records."""

    count: int = 0
    total_amount: float = 0.0
    flagged_count: int = 0


@dataclass
class DailyBucket:
    """Totals for one calendar day."""

    date: date
    count: int = 0
    flagged_count: int = 0
    confirmed_count: int = 0
    total_amount: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        data["date"] = self.date.isoformat()
        return data


@dataclass
class CategoryStats:
    """Totals for one merchant category."""

    category: str
    count: int
    total_amount: float
    flagged_count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class StatisticsSummary:
    """Corpus-wide counts."""

    total_transactions: int
    flagged_transactions: int
    confirmed_fraud_transactions: int
    flagged_percentage: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class RecordCorpus:
    """In-memory corpus of scored transactions backed by a DataFrame.

    Malformed records are dropped at construction time and counted in
    ``skipped``.
    """

    def __init__(self, records: Iterable[Any] = ()):
        self.records: list[CorpusRecord] = []
        self.skipped = 0

        for index, record in enumerate(records):
            try:
                self.records.append(coerce_record(record))
            except MalformedRecordError as e:
                self.skipped += 1
                logger.warning(f"Skipping malformed record at position {index}: {e}")

        self._frame = self._build_frame(self.records)

    @staticmethod
    def _build_frame(records: list[CorpusRecord]) -> pd.DataFrame:
        rows = [
            {
                "amount": float(r.amount),
                "merchant_category": r.merchant_category,
                "timestamp": _as_utc(r.timestamp),
                "is_flagged": r.is_flagged,
                "is_confirmed_fraud": r.is_confirmed_fraud,
            }
            for r in records
        ]
        frame = pd.DataFrame.from_records(rows, columns=FRAME_COLUMNS)
        frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=True)
        return frame

    def __len__(self) -> int:
        return len(self.records)

    def _window(self, since: datetime | None, until: datetime | None = None) -> pd.DataFrame:
        frame = self._frame
        if since is not None:
            frame = frame[frame["timestamp"] >= _as_utc(since)]
        if until is not None:
            frame = frame[frame["timestamp"] <= _as_utc(until)]
        return frame

    def count_where(self, predicate: Callable[[CorpusRecord], bool]) -> int:
        return sum(1 for record in self.records if predicate(record))

    def group_by(self, field: str, since: datetime | None = None) -> dict[str, GroupStats]:
        """Group records by a field.

        Args:
            field: One of the groupable record fields.
            since: Only include records at or after this time.

        Returns:
            Mapping of group key to GroupStats.

        Raises:
            ValueError: If the field cannot be grouped on.
        """
        if field not in GROUPABLE_FIELDS:
            raise ValueError(
                f"Cannot group by {field}. Must be one of {sorted(GROUPABLE_FIELDS)}"
            )

        frame = self._window(since)
        if frame.empty:
            return {}

        grouped = frame.groupby(field).agg(
            count=("amount", "size"),
            total_amount=("amount", "sum"),
            flagged_count=("is_flagged", "sum"),
        )
        return {
            key: GroupStats(
                count=int(row["count"]),
                total_amount=round(float(row["total_amount"]), 2),
                flagged_count=int(row["flagged_count"]),
            )
            for key, row in grouped.iterrows()
        }

    def time_series_by_day(
        self,
        since: datetime,
        until: datetime | None = None,
        fill_missing: bool = False,
    ) -> list[DailyBucket]:
        """Bucket records by UTC calendar day.

        Args:
            since: Start of the window (inclusive).
            until: End of the window (inclusive). Defaults to no upper bound,
                or to now when filling missing days.
            fill_missing: Emit zero-valued buckets for days with no records.

        Returns:
            DailyBucket list sorted by date ascending.
        """
        frame = self._window(since, until)
        buckets: dict[date, DailyBucket] = {}

        if not frame.empty:
            grouped = (
                frame.assign(day=frame["timestamp"].dt.date)
                .groupby("day")
                .agg(
                    count=("amount", "size"),
                    flagged_count=("is_flagged", "sum"),
                    confirmed_count=("is_confirmed_fraud", "sum"),
                    total_amount=("amount", "sum"),
                )
            )
            for day, row in grouped.iterrows():
                buckets[day] = DailyBucket(
                    date=day,
                    count=int(row["count"]),
                    flagged_count=int(row["flagged_count"]),
                    confirmed_count=int(row["confirmed_count"]),
                    total_amount=round(float(row["total_amount"]), 2),
                )

        if fill_missing:
            end = _as_utc(until or datetime.now(timezone.utc)).date()
            day = _as_utc(since).date()
            while day <= end:
                buckets.setdefault(day, DailyBucket(date=day))
                day += timedelta(days=1)

        return [buckets[day] for day in sorted(buckets)]


class StatisticsAggregator:
    """Summarizes a corpus of scored transactions for dashboards and reports."""

    def __init__(self, corpus: CorpusQuery, fill_missing_days: bool = False):
        """Initialize aggregator.

        Args:
            corpus: Read access to the scored transactions.
            fill_missing_days: Default for zero-filling daily series.
        """
        self.corpus = corpus
        self.fill_missing_days = fill_missing_days

    def summary(self) -> StatisticsSummary:
        total = self.corpus.count_where(lambda r: True)
        flagged = self.corpus.count_where(lambda r: r.is_flagged)
        confirmed = self.corpus.count_where(lambda r: r.is_confirmed_fraud)
        return StatisticsSummary(
            total_transactions=total,
            flagged_transactions=flagged,
            confirmed_fraud_transactions=confirmed,
            flagged_percentage=flagged_percentage(flagged, total),
        )

    def category_breakdown(self, since: datetime | None = None) -> list[CategoryStats]:
        """Per-category totals, largest categories first."""
        groups = self.corpus.group_by("merchant_category", since=since)
        breakdown = [
            CategoryStats(
                category=category,
                count=stats.count,
                total_amount=stats.total_amount,
                flagged_count=stats.flagged_count,
            )
            for category, stats in groups.items()
        ]
        breakdown.sort(key=lambda c: (-c.count, c.category))
        return breakdown

    def daily_series(
        self,
        days: int,
        now: datetime | None = None,
        fill_missing: bool | None = None,
    ) -> list[DailyBucket]:
        """Daily totals over the trailing ``days`` ending at ``now``."""
        reference = _as_utc(now) if now is not None else datetime.now(timezone.utc)
        if fill_missing is None:
            fill_missing = self.fill_missing_days
        return self.corpus.time_series_by_day(
            since=reference - timedelta(days=days),
            until=reference,
            fill_missing=fill_missing,
        )

    def fraud_statistics(self, days: int = 7, now: datetime | None = None) -> dict[str, Any]:
        """Dashboard payload: corpus summary plus a short daily series."""
        return {
            "summary": self.summary().to_dict(),
            "daily_stats": [b.to_dict() for b in self.daily_series(days, now=now)],
        }

    def transaction_stats(self, days: int = 30, now: datetime | None = None) -> dict[str, Any]:
        """Report payload: summary, category breakdown and daily series."""
        data = self.summary().to_dict()
        data["transactions_by_category"] = [c.to_dict() for c in self.category_breakdown()]
        data["transactions_by_day"] = [
            b.to_dict() for b in self.daily_series(days, now=now)
        ]
        return data

"""Rule-based fraud risk scoring and statistics for card transactions."""

from scoring.errors import (
    FraudScoringError,
    MalformedRecordError,
    ProfileNotFoundError,
    TransactionNotFoundError,
)
from scoring.models import (
    ActiveHours,
    Card,
    FactorContribution,
    Location,
    ScoreResult,
    SpendingPattern,
    Transaction,
    UserProfile,
)
from scoring.risk import HIGH_RISK_THRESHOLD, RiskScorer
from scoring.statistics import RecordCorpus, StatisticsAggregator

__all__ = [
    "ActiveHours",
    "Card",
    "FactorContribution",
    "FraudScoringError",
    "HIGH_RISK_THRESHOLD",
    "Location",
    "MalformedRecordError",
    "ProfileNotFoundError",
    "RecordCorpus",
    "RiskScorer",
    "ScoreResult",
    "SpendingPattern",
    "StatisticsAggregator",
    "Transaction",
    "TransactionNotFoundError",
    "UserProfile",
]

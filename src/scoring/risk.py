"""Rule-based risk scoring for card transactions.

A transaction is compared against the user's behavioral baseline and recent
history by six independent factors. Each factor adds between zero and its
weight to the score; the score is the plain sum, so every point can be traced
back to one named cause.
"""

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from scoring.errors import ProfileNotFoundError
from scoring.models import FactorContribution, ScoreResult, Transaction, UserProfile

logger = logging.getLogger(__name__)

HIGH_RISK_THRESHOLD = 70

DEFAULT_HISTORY_LIMIT = 10
DEFAULT_FREQUENCY_WINDOW_HOURS = 24

ONLINE_CITY = "Online"
UNKNOWN_DEVICE = "unknown_device"

FACTOR_WEIGHTS: dict[str, int] = {
    "amount": 25,
    "location": 20,
    "category": 15,
    "time": 15,
    "frequency": 20,
    "device": 5,
}

# (multiple of average amount, fraction of weight, label), highest tier first
AMOUNT_TIERS: tuple[tuple[int, float, str], ...] = (
    (5, 1.0, "Transaction amount 5x higher than user average"),
    (3, 0.8, "Transaction amount 3x higher than user average"),
    (2, 0.5, "Transaction amount 2x higher than user average"),
)

# (transactions in window, fraction of weight, label), highest tier first
FREQUENCY_TIERS: tuple[tuple[int, float, str], ...] = (
    (8, 1.0, "Extremely high transaction frequency (>8 in 24h)"),
    (5, 0.7, "High transaction frequency (>5 in 24h)"),
)

FOREIGN_COUNTRY_LABEL = "Transaction from foreign country"
UNUSUAL_CITY_LABEL = "Transaction from unusual city"
UNUSUAL_CITY_FRACTION = 0.6
UNUSUAL_CATEGORY_LABEL = "Unusual merchant category for this user"
OFF_HOURS_LABEL = "Transaction outside typical active hours"
NEW_DEVICE_LABEL = "Transaction from new device"

FactorOutcome = tuple[float, str | None]
NO_SIGNAL: FactorOutcome = (0.0, None)


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _first_tier(
    value: float | Decimal, tiers: Sequence[tuple[float, float, str]], weight: int
) -> FactorOutcome:
    """Return the first tier whose threshold ``value`` strictly exceeds."""
    for threshold, fraction, label in tiers:
        if value > threshold:
            return weight * fraction, label
    return NO_SIGNAL


def amount_factor(
    transaction: Transaction,
    profile: UserProfile,
    history: Sequence[Transaction],
    now: datetime,
) -> FactorOutcome:
    """Score the amount against the user's average, first matching tier only."""
    average = profile.spending.average_transaction_amount
    if average is None or average <= 0:
        return NO_SIGNAL

    # Decimal division keeps exact multiples of the average on the boundary
    ratio = transaction.amount / average
    return _first_tier(ratio, AMOUNT_TIERS, FACTOR_WEIGHTS["amount"])


def location_factor(
    transaction: Transaction,
    profile: UserProfile,
    history: Sequence[Transaction],
    now: datetime,
) -> FactorOutcome:
    """Score foreign countries fully and unfamiliar home-country cities partially.

    A city is familiar when it contains, or is contained in, any frequent
    location. The comparison is a case-sensitive substring test in both
    directions, so "York" matches "New York".
    """
    location = transaction.location
    if location is None:
        return NO_SIGNAL

    weight = FACTOR_WEIGHTS["location"]
    home_country = profile.home_location.country
    if (
        location.country is not None
        and home_country is not None
        and location.country != home_country
    ):
        return float(weight), FOREIGN_COUNTRY_LABEL

    city = location.city
    if city is None or city == ONLINE_CITY:
        return NO_SIGNAL

    is_known = any(
        city in known or known in city
        for known in profile.spending.frequent_locations
    )
    if not is_known:
        return weight * UNUSUAL_CITY_FRACTION, UNUSUAL_CITY_LABEL
    return NO_SIGNAL


def category_factor(
    transaction: Transaction,
    profile: UserProfile,
    history: Sequence[Transaction],
    now: datetime,
) -> FactorOutcome:
    if not transaction.merchant_category:
        return NO_SIGNAL
    if transaction.merchant_category in profile.spending.frequent_categories:
        return NO_SIGNAL
    return float(FACTOR_WEIGHTS["category"]), UNUSUAL_CATEGORY_LABEL


def time_factor(
    transaction: Transaction,
    profile: UserProfile,
    history: Sequence[Transaction],
    now: datetime,
) -> FactorOutcome:
    # Hours are read off the transaction's own clock, not converted.
    active_hours = profile.spending.active_hours
    if active_hours is None:
        return NO_SIGNAL
    if active_hours.contains(transaction.timestamp.hour):
        return NO_SIGNAL
    return float(FACTOR_WEIGHTS["time"]), OFF_HOURS_LABEL


def frequency_factor(
    transaction: Transaction,
    profile: UserProfile,
    history: Sequence[Transaction],
    now: datetime,
    window_hours: int = DEFAULT_FREQUENCY_WINDOW_HOURS,
) -> FactorOutcome:
    """Score the number of history entries inside the trailing window."""
    cutoff = now - timedelta(hours=window_hours)
    recent_count = sum(1 for t in history if _as_utc(t.timestamp) > cutoff)
    return _first_tier(recent_count, FREQUENCY_TIERS, FACTOR_WEIGHTS["frequency"])


def device_factor(
    transaction: Transaction,
    profile: UserProfile,
    history: Sequence[Transaction],
    now: datetime,
) -> FactorOutcome:
    # The unknown-device sentinel is exempt; callers treat it as untrusted anyway.
    device_id = transaction.device_id
    if device_id is None or device_id == UNKNOWN_DEVICE:
        return NO_SIGNAL
    if any(t.device_id == device_id for t in history):
        return NO_SIGNAL
    return float(FACTOR_WEIGHTS["device"]), NEW_DEVICE_LABEL


FactorEvaluator = Callable[
    [Transaction, UserProfile, Sequence[Transaction], datetime], FactorOutcome
]


class RiskScorer:
    """Scores transactions against a user's profile and recent history.

    The scorer holds no mutable state; one instance may be shared across
    threads and requests.
    """

    def __init__(
        self,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        frequency_window_hours: int = DEFAULT_FREQUENCY_WINDOW_HOURS,
    ):
        """Initialize scorer.

        Args:
            history_limit: Maximum number of history entries considered.
            frequency_window_hours: Trailing window for the frequency factor.
        """
        self.history_limit = history_limit
        self.frequency_window_hours = frequency_window_hours

    @property
    def factors(self) -> list[tuple[str, FactorEvaluator]]:
        """Factor evaluators in the order their labels are reported."""
        return [
            ("amount", amount_factor),
            ("location", location_factor),
            ("category", category_factor),
            ("time", time_factor),
            ("frequency", self._frequency),
            ("device", device_factor),
        ]

    def _frequency(
        self,
        transaction: Transaction,
        profile: UserProfile,
        history: Sequence[Transaction],
        now: datetime,
    ) -> FactorOutcome:
        return frequency_factor(
            transaction, profile, history, now, self.frequency_window_hours
        )

    def _bounded_history(
        self, transaction: Transaction, recent_history: Sequence[Transaction]
    ) -> list[Transaction]:
        history = [
            t
            for t in recent_history
            if transaction.transaction_id is None
            or t.transaction_id != transaction.transaction_id
        ]
        return history[: self.history_limit]

    def score(
        self,
        transaction: Transaction,
        profile: UserProfile | None,
        recent_history: Sequence[Transaction],
        now: datetime | None = None,
    ) -> ScoreResult:
        """Score a transaction.

        Args:
            transaction: Transaction being scored.
            profile: The transacting user's profile.
            recent_history: The user's prior transactions, most recent first.
            now: Reference time for the frequency window. Defaults to the
                current UTC time.

        Returns:
            ScoreResult with total score, triggered factor labels and the
            high-risk flag.

        Raises:
            ProfileNotFoundError: If no profile is supplied.
        """
        if profile is None:
            raise ProfileNotFoundError(transaction.user_id)

        reference = _as_utc(now) if now is not None else datetime.now(timezone.utc)
        history = self._bounded_history(transaction, recent_history)

        total = 0.0
        components = []
        for key, evaluate in self.factors:
            contribution, label = evaluate(transaction, profile, history, reference)
            if contribution <= 0 or label is None:
                continue
            total += contribution
            components.append(
                FactorContribution(key=key, label=label, contribution=contribution)
            )

        score = round(total, 2)
        result = ScoreResult(
            score=score,
            risk_factors=tuple(c.label for c in components),
            is_high_risk=score > HIGH_RISK_THRESHOLD,
            components=tuple(components),
        )

        logger.debug(
            f"Scored transaction for user {transaction.user_id}: "
            f"score={score}, factors={[c.key for c in components]}"
        )
        if result.is_high_risk:
            logger.info(
                f"High-risk transaction for user {transaction.user_id}: score={score}"
            )
        return result

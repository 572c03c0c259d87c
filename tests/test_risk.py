"""Tests for the rule-based risk scorer."""

import itertools
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from scoring.errors import ProfileNotFoundError
from scoring.models import Location, SpendingPattern
from scoring.risk import (
    FACTOR_WEIGHTS,
    FOREIGN_COUNTRY_LABEL,
    HIGH_RISK_THRESHOLD,
    NEW_DEVICE_LABEL,
    OFF_HOURS_LABEL,
    UNUSUAL_CATEGORY_LABEL,
    UNUSUAL_CITY_LABEL,
    RiskScorer,
    amount_factor,
)

AMOUNT_5X = "Transaction amount 5x higher than user average"
AMOUNT_3X = "Transaction amount 3x higher than user average"
AMOUNT_2X = "Transaction amount 2x higher than user average"
FREQUENCY_EXTREME = "Extremely high transaction frequency (>8 in 24h)"
FREQUENCY_HIGH = "High transaction frequency (>5 in 24h)"


@pytest.fixture
def scorer() -> RiskScorer:
    return RiskScorer()


def _contribution(result, key):
    return next((c.contribution for c in result.components if c.key == key), 0.0)


class TestBaseline:
    """Tests for transactions matching the user's habits."""

    def test_ordinary_transaction_scores_zero(
        self, scorer, profile, make_transaction, make_history, now
    ):
        """Test that a transaction fitting every habit has no risk factors."""
        txn = make_transaction(amount=Decimal("200"))  # exactly 2x is not over
        result = scorer.score(txn, profile, make_history(recent=2), now=now)

        assert result.score == 0
        assert result.risk_factors == ()
        assert result.components == ()
        assert result.is_high_risk is False

    def test_all_factors_at_full_weight(
        self, scorer, profile, make_transaction, make_history, now
    ):
        """Test that every factor at full weight sums to 100 in fixed order."""
        txn = make_transaction(
            amount=Decimal("600"),
            location=Location(country="Nigeria", city="Lagos"),
            merchant_category="electronics",
            timestamp=now.replace(hour=3),
            device_id="dev_new",
        )
        result = scorer.score(txn, profile, make_history(recent=9), now=now)

        assert result.score == 100
        assert result.risk_factors == (
            AMOUNT_5X,
            FOREIGN_COUNTRY_LABEL,
            UNUSUAL_CATEGORY_LABEL,
            OFF_HOURS_LABEL,
            FREQUENCY_EXTREME,
            NEW_DEVICE_LABEL,
        )
        assert [c.key for c in result.components] == [
            "amount",
            "location",
            "category",
            "time",
            "frequency",
            "device",
        ]
        assert result.is_high_risk is True

    def test_scoring_is_deterministic(
        self, scorer, profile, make_transaction, make_history, now
    ):
        """Test that identical inputs give identical results."""
        txn = make_transaction(amount=Decimal("400"), merchant_category="travel")
        history = make_history(recent=6)

        assert scorer.score(txn, profile, history, now=now) == scorer.score(
            txn, profile, history, now=now
        )

    def test_missing_profile_raises(self, scorer, make_transaction, now):
        """Test that scoring without a profile raises ProfileNotFoundError."""
        with pytest.raises(ProfileNotFoundError, match="user_1"):
            scorer.score(make_transaction(), None, [], now=now)


class TestAmountFactor:
    """Tests for the amount anomaly factor."""

    @pytest.mark.parametrize(
        "amount,expected,label",
        [
            ("550", 25.0, AMOUNT_5X),
            ("500.01", 25.0, AMOUNT_5X),
            ("500", 20.0, AMOUNT_3X),
            ("350", 20.0, AMOUNT_3X),
            ("250", 12.5, AMOUNT_2X),
            ("200", 0.0, None),
            ("0", 0.0, None),
        ],
    )
    def test_tiers(
        self, scorer, profile, make_transaction, make_history, now, amount, expected, label
    ):
        """Test each amount tier, with strict comparisons at the boundaries."""
        txn = make_transaction(amount=Decimal(amount))
        result = scorer.score(txn, profile, make_history(recent=1), now=now)

        assert _contribution(result, "amount") == expected
        assert result.score == expected
        if label:
            assert result.risk_factors == (label,)
        else:
            assert result.risk_factors == ()

    @pytest.mark.parametrize(
        "amount,label",
        [
            ("166.65", AMOUNT_3X),
            ("166.66", AMOUNT_5X),
            ("99.99", AMOUNT_2X),
            ("66.66", None),
        ],
    )
    def test_exact_multiple_of_uneven_average(
        self, profile, make_transaction, now, amount, label
    ):
        """Test that exact multiples of a non-round average stay on the lower side."""
        profile = profile.model_copy(
            update={
                "spending": profile.spending.model_copy(
                    update={"average_transaction_amount": Decimal("33.33")}
                )
            }
        )
        txn = make_transaction(amount=Decimal(amount))

        contribution, factor_label = amount_factor(txn, profile, [], now)

        assert factor_label == label
        assert contribution == {
            AMOUNT_5X: 25.0,
            AMOUNT_3X: 20.0,
            AMOUNT_2X: 12.5,
            None: 0.0,
        }[label]

    def test_tiers_do_not_stack(
        self, scorer, profile, make_transaction, make_history, now
    ):
        """Test that moving from 3.5x to 5.5x adds only the tier difference."""
        history = make_history(recent=1)
        low = scorer.score(make_transaction(amount=Decimal("350")), profile, history, now=now)
        high = scorer.score(make_transaction(amount=Decimal("550")), profile, history, now=now)

        assert high.score > low.score
        assert high.score - low.score == pytest.approx(25 - 25 * 0.8)
        assert len(high.risk_factors) == 1

    @pytest.mark.parametrize("average", [None, Decimal("0")])
    def test_missing_average_is_no_signal(
        self, scorer, profile, make_transaction, make_history, now, average
    ):
        """Test that a missing or zero average contributes nothing."""
        profile = profile.model_copy(
            update={
                "spending": profile.spending.model_copy(
                    update={"average_transaction_amount": average}
                )
            }
        )
        txn = make_transaction(amount=Decimal("10000"))
        result = scorer.score(txn, profile, make_history(recent=1), now=now)

        assert result.score == 0


class TestLocationFactor:
    """Tests for the foreign/unusual location factor."""

    @pytest.mark.parametrize(
        "location,expected,label",
        [
            (Location(country="Nigeria", city="New York"), 20.0, FOREIGN_COUNTRY_LABEL),
            (Location(country="USA", city="Chicago"), 12.0, UNUSUAL_CITY_LABEL),
            (Location(country="USA", city="Online"), 0.0, None),
            (Location(country="USA", city="York"), 0.0, None),
            (Location(country="USA", city="New York City"), 0.0, None),
            (Location(country="USA", city="new york"), 12.0, UNUSUAL_CITY_LABEL),
            (Location(country="USA"), 0.0, None),
            (None, 0.0, None),
        ],
    )
    def test_location_rules(
        self, scorer, profile, make_transaction, make_history, now, location, expected, label
    ):
        """Test country mismatch, bidirectional substring match and sentinels."""
        txn = make_transaction(location=location)
        result = scorer.score(txn, profile, make_history(recent=1), now=now)

        assert _contribution(result, "location") == pytest.approx(expected)
        assert result.risk_factors == ((label,) if label else ())

    def test_unrelated_prefix_city_still_matches(
        self, scorer, profile, make_transaction, make_history, now
    ):
        """Test the loose substring heuristic: 'New' is contained in 'New York'."""
        txn = make_transaction(location=Location(country="USA", city="New"))
        result = scorer.score(txn, profile, make_history(recent=1), now=now)

        assert result.score == 0


class TestCategoryAndTimeFactors:
    """Tests for the merchant category and active-hours factors."""

    def test_unusual_category(self, scorer, profile, make_transaction, make_history, now):
        """Test that an unfamiliar category adds the full weight."""
        txn = make_transaction(merchant_category="jewelry")
        result = scorer.score(txn, profile, make_history(recent=1), now=now)

        assert result.score == FACTOR_WEIGHTS["category"]
        assert result.risk_factors == (UNUSUAL_CATEGORY_LABEL,)

    @pytest.mark.parametrize(
        "hour,expected",
        [(0, 15.0), (7, 15.0), (8, 0.0), (14, 0.0), (23, 0.0)],
    )
    def test_active_hours_boundaries(
        self, scorer, profile, make_transaction, make_history, now, hour, expected
    ):
        """Test that hours strictly outside the window are penalized."""
        txn = make_transaction(timestamp=now.replace(hour=hour))
        result = scorer.score(txn, profile, make_history(recent=1), now=now)

        assert _contribution(result, "time") == expected

    def test_hour_read_from_transaction_clock(
        self, scorer, profile, make_transaction, make_history, now
    ):
        """Test that an offset timestamp uses its own wall-clock hour."""
        local = timezone(timedelta(hours=5))
        txn = make_transaction(timestamp=datetime(2024, 3, 15, 3, 0, tzinfo=local))
        result = scorer.score(txn, profile, make_history(recent=1), now=now)

        assert _contribution(result, "time") == 15.0

    def test_missing_active_hours_is_no_signal(
        self, scorer, profile, make_transaction, make_history, now
    ):
        """Test that a profile without active hours never penalizes timing."""
        profile = profile.model_copy(
            update={
                "spending": SpendingPattern(
                    average_transaction_amount=Decimal("100"),
                    frequent_categories={"groceries"},
                    frequent_locations={"New York"},
                )
            }
        )
        txn = make_transaction(timestamp=now.replace(hour=3))
        result = scorer.score(txn, profile, make_history(recent=1), now=now)

        assert result.score == 0


class TestFrequencyFactor:
    """Tests for the 24h transaction frequency factor."""

    @pytest.mark.parametrize(
        "recent,expected,label",
        [
            (5, 0.0, None),
            (6, 14.0, FREQUENCY_HIGH),
            (8, 14.0, FREQUENCY_HIGH),
            (9, 20.0, FREQUENCY_EXTREME),
        ],
    )
    def test_tiers(
        self, scorer, profile, make_transaction, make_history, now, recent, expected, label
    ):
        """Test the frequency tiers on entries within the last 24 hours."""
        result = scorer.score(
            make_transaction(), profile, make_history(recent=recent), now=now
        )

        assert _contribution(result, "frequency") == pytest.approx(expected)
        assert result.risk_factors == ((label,) if label else ())

    def test_old_entries_do_not_count(
        self, scorer, profile, make_transaction, make_history, now
    ):
        """Test that history older than 24 hours is ignored."""
        result = scorer.score(
            make_transaction(), profile, make_history(recent=2, older=8), now=now
        )

        assert result.score == 0

    def test_history_is_bounded(self, profile, make_transaction, make_history, now):
        """Test that only the configured number of history entries is read."""
        scorer = RiskScorer(history_limit=6)
        result = scorer.score(
            make_transaction(), profile, make_history(recent=9), now=now
        )

        assert _contribution(result, "frequency") == pytest.approx(14.0)

    def test_naive_history_timestamps_treated_as_utc(
        self, scorer, profile, make_transaction, now
    ):
        """Test that naive history timestamps compare as UTC."""
        naive_now = now.replace(tzinfo=None)
        history = [
            make_transaction(timestamp=naive_now - timedelta(hours=i + 1))
            for i in range(9)
        ]
        result = scorer.score(make_transaction(), profile, history, now=now)

        assert _contribution(result, "frequency") == 20.0


class TestDeviceFactor:
    """Tests for the new device factor."""

    def test_new_device(self, scorer, profile, make_transaction, make_history, now):
        """Test that a device absent from history is penalized."""
        txn = make_transaction(device_id="dev2")
        result = scorer.score(txn, profile, make_history(recent=2), now=now)

        assert result.score == FACTOR_WEIGHTS["device"]
        assert result.risk_factors == (NEW_DEVICE_LABEL,)

    def test_empty_history_means_new_device(
        self, scorer, profile, make_transaction, now
    ):
        """Test that with no history every device is new."""
        result = scorer.score(make_transaction(), profile, [], now=now)

        assert result.risk_factors == (NEW_DEVICE_LABEL,)

    @pytest.mark.parametrize("device_id", ["unknown_device", None])
    def test_sentinel_and_missing_device_exempt(
        self, scorer, profile, make_transaction, make_history, now, device_id
    ):
        """Test that the unknown-device sentinel and missing ids are exempt."""
        txn = make_transaction(device_id=device_id)
        result = scorer.score(txn, profile, make_history(recent=2), now=now)

        assert result.score == 0

    def test_scored_transaction_excluded_from_history(
        self, scorer, profile, make_transaction, make_history, now
    ):
        """Test that a history entry with the scored transaction's id is ignored."""
        txn = make_transaction(transaction_id=500, device_id="dev_new")
        history = [make_transaction(transaction_id=500, device_id="dev_new")]
        history += make_history(recent=2)

        result = scorer.score(txn, profile, history, now=now)

        assert result.risk_factors == (NEW_DEVICE_LABEL,)


class TestScenarios:
    """End-to-end scoring scenarios."""

    def test_foreign_electronics_purchase_scores_sixty(
        self, scorer, profile, make_transaction, make_history, now
    ):
        """Test the 5.5x foreign electronics purchase on a known device."""
        txn = make_transaction(
            amount=Decimal("550"),
            location=Location(country="Nigeria", city="Lagos"),
            merchant_category="electronics",
            timestamp=now.replace(hour=14),
            device_id="dev1",
        )
        result = scorer.score(txn, profile, make_history(recent=2), now=now)

        assert _contribution(result, "amount") == 25
        assert _contribution(result, "location") == 20
        assert _contribution(result, "category") == 15
        assert _contribution(result, "time") == 0
        assert _contribution(result, "frequency") == 0
        assert _contribution(result, "device") == 0
        assert result.score == 60
        assert result.is_high_risk is False
        assert result.risk_factors == (
            AMOUNT_5X,
            FOREIGN_COUNTRY_LABEL,
            UNUSUAL_CATEGORY_LABEL,
        )

    def test_exactly_threshold_is_not_high_risk(
        self, scorer, profile, make_transaction, make_history, now
    ):
        """Test that a score of exactly 70 is not flagged."""
        txn = make_transaction(
            amount=Decimal("350"),
            location=Location(country="Nigeria", city="Lagos"),
            merchant_category="electronics",
            timestamp=now.replace(hour=3),
        )
        result = scorer.score(txn, profile, make_history(recent=2), now=now)

        assert result.score == HIGH_RISK_THRESHOLD
        assert result.is_high_risk is False

    def test_high_risk_iff_score_above_threshold(
        self, scorer, profile, make_transaction, make_history, now
    ):
        """Test every combination of factor tiers against the threshold."""
        amounts = [("80", 0.0), ("250", 12.5), ("350", 20.0), ("600", 25.0)]
        locations = [
            (Location(country="USA", city="New York"), 0.0),
            (Location(country="USA", city="Chicago"), 12.0),
            (Location(country="Nigeria", city="Lagos"), 20.0),
        ]
        categories = [("groceries", 0.0), ("electronics", 15.0)]
        hours = [(14, 0.0), (3, 15.0)]
        frequencies = [(2, 0.0), (6, 14.0), (9, 20.0)]
        devices = [("dev1", 0.0), ("dev_new", 5.0)]

        histories = {recent: make_history(recent=recent) for recent, _ in frequencies}

        for (amount, a), (location, loc), (category, c), (hour, t), (recent, f), (
            device,
            d,
        ) in itertools.product(amounts, locations, categories, hours, frequencies, devices):
            txn = make_transaction(
                amount=Decimal(amount),
                location=location,
                merchant_category=category,
                timestamp=now.replace(hour=hour),
                device_id=device,
            )
            result = scorer.score(txn, profile, histories[recent], now=now)
            expected = a + loc + c + t + f + d

            assert result.score == pytest.approx(expected)
            assert result.is_high_risk == (result.score > HIGH_RISK_THRESHOLD)
            assert result.is_high_risk == (expected > HIGH_RISK_THRESHOLD)
            assert len(result.risk_factors) == sum(
                1 for v in (a, loc, c, t, f, d) if v > 0
            )
            for component in result.components:
                assert 0 < component.contribution <= FACTOR_WEIGHTS[component.key]


class TestResultImmutability:
    """Tests that results cannot change after they are produced."""

    def test_result_is_frozen(self, scorer, profile, make_transaction, now):
        """Test that assigning to a result raises."""
        result = scorer.score(make_transaction(), profile, [], now=now)

        with pytest.raises(ValidationError):
            result.score = 99

    def test_feeding_result_back_as_history_leaves_it_unchanged(
        self, scorer, profile, make_transaction, now
    ):
        """Test that a scored transaction reused as history does not alter its result."""
        first = make_transaction(amount=Decimal("550"), device_id="dev_a")
        first_result = scorer.score(first, profile, [], now=now)
        snapshot = first_result.model_copy(deep=True)

        stored = first.with_score(first_result).model_copy(update={"transaction_id": 1})
        second = make_transaction(
            amount=Decimal("90"),
            device_id="dev_a",
            timestamp=now + timedelta(minutes=5),
        )
        second_result = scorer.score(
            second, profile, [stored], now=now + timedelta(minutes=5)
        )

        assert first_result == snapshot
        assert stored.fraud_score == first_result.score
        assert second_result.score == 0

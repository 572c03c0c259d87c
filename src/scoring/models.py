"""Pydantic models for transactions, user profiles and score results."""

from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Location(BaseModel):
    """Geographic location of a transaction or a user's home."""

    country: str | None = Field(
        default=None,
        description="Country name",
        examples=["USA", "Nigeria"],
    )
    city: str | None = Field(
        default=None,
        description="City name, or 'Online' for card-not-present purchases",
        examples=["New York", "Online"],
    )
    zip: str | None = Field(default=None, description="Postal code", examples=["10001"])


class Card(BaseModel):
    """A payment card registered to a user."""

    last_four: str = Field(..., description="Last four digits", examples=["4321"])
    card_type: str = Field(..., description="Card network", examples=["Visa"])
    is_active: bool = Field(default=True)


class ActiveHours(BaseModel):
    """Window of hours (naive local clock, inclusive) in which a user transacts."""

    start: int = Field(..., ge=0, le=23, examples=[8])
    end: int = Field(..., ge=0, le=23, examples=[23])

    def contains(self, hour: int) -> bool:
        """Check whether an hour falls inside the window."""
        return self.start <= hour <= self.end


class SpendingPattern(BaseModel):
    """Behavioral baseline derived from a user's past activity."""

    average_transaction_amount: Decimal | None = Field(
        default=None,
        description="Average transaction amount",
        examples=[Decimal("120.00")],
    )
    frequent_categories: set[str] = Field(
        default_factory=set,
        description="Merchant categories the user buys from regularly",
        examples=[{"groceries", "dining"}],
    )
    frequent_locations: set[str] = Field(
        default_factory=set,
        description="Location names the user transacts from regularly",
        examples=[{"New York", "Online"}],
    )
    active_hours: ActiveHours | None = Field(
        default=None,
        description="Hours of the day in which the user is usually active",
    )


class UserProfile(BaseModel):
    """A cardholder and their behavioral baseline."""

    user_id: str = Field(..., examples=["user_abc123"])
    name: str = Field(default="")
    email: str = Field(default="")
    home_location: Location = Field(default_factory=Location)
    cards: list[Card] = Field(default_factory=list)
    spending: SpendingPattern = Field(default_factory=SpendingPattern)


class Transaction(BaseModel):
    """A card transaction, either awaiting a score or persisted with one."""

    transaction_id: int | None = Field(
        default=None,
        description="Store-assigned identifier",
    )
    user_id: str = Field(..., examples=["user_abc123"])
    card_last_four: str = Field(..., examples=["4321"])
    amount: Decimal = Field(..., ge=0, examples=[Decimal("99.99")])
    merchant_name: str = Field(..., examples=["Corner Market"])
    merchant_category: str = Field(..., examples=["groceries", "electronics"])
    location: Location | None = Field(default=None)
    timestamp: datetime = Field(default_factory=_utcnow)
    ip_address: str | None = Field(default=None, examples=["192.168.1.10"])
    device_id: str | None = Field(default=None, examples=["dev_iphone_01"])
    fraud_score: float = Field(default=0.0, ge=0)
    is_flagged: bool = Field(default=False)
    is_confirmed_fraud: bool = Field(default=False)

    def with_score(self, result: "ScoreResult") -> "Transaction":
        """Return a copy carrying the score and flag of a scoring result."""
        return self.model_copy(
            update={"fraud_score": result.score, "is_flagged": result.is_high_risk}
        )


class FactorContribution(BaseModel):
    """One triggered risk factor and the points it added."""

    key: str = Field(..., examples=["amount", "location"])
    label: str = Field(
        ...,
        examples=["Transaction amount 5x higher than user average"],
    )
    contribution: float = Field(..., ge=0, examples=[25.0])

    model_config = {"frozen": True}


class ScoreResult(BaseModel):
    """Outcome of scoring a single transaction."""

    score: float = Field(..., ge=0, description="Sum of factor contributions")
    risk_factors: tuple[str, ...] = Field(
        default=(),
        description="Labels of triggered factors, in evaluation order",
    )
    is_high_risk: bool = Field(default=False)
    components: tuple[FactorContribution, ...] = Field(default=())

    model_config = {"frozen": True}

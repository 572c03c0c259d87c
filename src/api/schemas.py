"""Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from scoring.models import Location, ScoreResult, Transaction


class TransactionRequest(BaseModel):
    """Request schema for submitting a transaction.

    Score and flag fields are absent on purpose; they are only ever set by
    scoring or by a reviewer.
    """

    user_id: str = Field(
        ...,
        description="Identifier of the cardholder",
        examples=["user_abc123"],
    )
    card_last_four: str = Field(
        ...,
        min_length=4,
        max_length=4,
        description="Last four digits of the card",
        examples=["4321"],
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Transaction amount",
        examples=[150.00],
    )
    merchant_name: str = Field(..., examples=["Corner Market"])
    merchant_category: str = Field(..., examples=["groceries"])
    location: Location | None = Field(default=None)
    timestamp: datetime | None = Field(
        default=None,
        description="When the transaction happened. Defaults to now.",
    )
    ip_address: str | None = Field(default=None, examples=["192.168.1.10"])
    device_id: str | None = Field(default=None, examples=["dev_iphone_01"])

    def to_transaction(self) -> Transaction:
        data = self.model_dump(exclude_none=True)
        return Transaction(**data)


class ProcessTransactionResponse(BaseModel):
    """Response schema for a scored and stored transaction."""

    transaction: Transaction
    fraud_analysis: ScoreResult

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "transaction": {
                        "transaction_id": 42,
                        "user_id": "user_abc123",
                        "card_last_four": "4321",
                        "amount": "550.00",
                        "merchant_name": "Gadget Hub",
                        "merchant_category": "electronics",
                        "fraud_score": 60.0,
                        "is_flagged": False,
                        "is_confirmed_fraud": False,
                    },
                    "fraud_analysis": {
                        "score": 60.0,
                        "risk_factors": [
                            "Transaction amount 5x higher than user average",
                            "Transaction from foreign country",
                            "Unusual merchant category for this user",
                        ],
                        "is_high_risk": False,
                    },
                }
            ]
        }
    }


class FraudStatusUpdateRequest(BaseModel):
    """Reviewer verdict for a transaction."""

    is_confirmed_fraud: bool = Field(
        ...,
        description="True to confirm fraud; False also clears the automated flag",
    )


class UserCountResponse(BaseModel):
    user_count: int = Field(..., ge=0)


class HealthResponse(BaseModel):
    """Response schema for health check endpoint."""

    status: str = Field(default="healthy")
    version: str = Field(default="0.1.0")

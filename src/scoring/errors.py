"""Exceptions raised by the scoring core."""


class FraudScoringError(Exception):
    """Base class for scoring and aggregation errors."""


class ProfileNotFoundError(FraudScoringError):
    """Raised when a transaction cannot be scored without a user profile."""

    def __init__(self, user_id: str | None = None):
        self.user_id = user_id
        if user_id is None:
            super().__init__("User profile not supplied")
        else:
            super().__init__(f"User not found: {user_id}")


class TransactionNotFoundError(FraudScoringError):
    """Raised when a stored transaction does not exist."""

    def __init__(self, transaction_id: int):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class MalformedRecordError(FraudScoringError):
    """Raised when a corpus record lacks fields required for aggregation."""

"""SQLAlchemy persistence for users and scored transactions."""

from storage.repository import TransactionStore
from storage.session import DatabaseSession

__all__ = ["DatabaseSession", "TransactionStore"]

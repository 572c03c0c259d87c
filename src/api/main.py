"""FastAPI application for transaction fraud scoring.

Submitting a transaction scores it against the user's profile and recent
history, flags it when the score exceeds the high-risk threshold and stores
it. Reviewers can confirm or clear flags, and dashboards read aggregate
statistics over the stored transactions.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Query

from api.schemas import (
    FraudStatusUpdateRequest,
    HealthResponse,
    ProcessTransactionResponse,
    TransactionRequest,
    UserCountResponse,
)
from api.services import get_service
from scoring.config import load_config
from scoring.errors import ProfileNotFoundError, TransactionNotFoundError
from scoring.logging import configure_logging
from scoring.models import ScoreResult, Transaction

configure_logging(load_config().log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Prepare the database on startup."""
    logger.info("Starting up - preparing transaction store...")
    get_service().store.db_session.init_db()

    yield

    logger.info("Shutting down...")


app = FastAPI(
    title="Fraud Scoring API",
    description="Rule-based fraud risk scoring for card transactions",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


def _not_found(e: Exception) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e))


@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check() -> HealthResponse:
    """Check API health status."""
    return HealthResponse(status="healthy")


@app.post(
    "/transactions",
    response_model=ProcessTransactionResponse,
    status_code=201,
    tags=["Transactions"],
    summary="Score and store a transaction",
    responses={
        404: {"description": "User not found"},
        422: {"description": "Validation error"},
    },
)
async def process_transaction(request: TransactionRequest) -> ProcessTransactionResponse:
    """Score a transaction, flag it if high risk and store it.

    Args:
        request: Transaction details.

    Returns:
        The stored transaction and its fraud analysis.
    """
    try:
        transaction, result = get_service().process_transaction(request.to_transaction())
    except ProfileNotFoundError as e:
        raise _not_found(e) from e
    except Exception as e:
        logger.exception("Transaction processing failed")
        raise HTTPException(
            status_code=500,
            detail=f"Processing failed: {e!s}",
        ) from e
    return ProcessTransactionResponse(transaction=transaction, fraud_analysis=result)


@app.post(
    "/transactions/score",
    response_model=ScoreResult,
    tags=["Transactions"],
    summary="Score a transaction without storing it",
)
async def score_transaction(request: TransactionRequest) -> ScoreResult:
    """Evaluate a transaction's risk. Nothing is persisted."""
    try:
        return get_service().evaluate(request.to_transaction())
    except ProfileNotFoundError as e:
        raise _not_found(e) from e
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Evaluation failed: {e!s}",
        ) from e


@app.get("/transactions/flagged", response_model=list[Transaction], tags=["Transactions"])
async def get_flagged_transactions() -> list[Transaction]:
    return get_service().list_flagged()


@app.get("/transactions/stats", tags=["Statistics"])
async def get_transaction_stats() -> dict[str, Any]:
    """Summary, category breakdown and daily series over the report window."""
    try:
        return get_service().transaction_stats()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.get("/transactions/{transaction_id}", response_model=Transaction, tags=["Transactions"])
async def get_transaction(transaction_id: int) -> Transaction:
    try:
        return get_service().get_transaction(transaction_id)
    except TransactionNotFoundError as e:
        raise _not_found(e) from e


@app.put(
    "/transactions/{transaction_id}/fraud-status",
    response_model=Transaction,
    tags=["Review"],
)
async def update_fraud_status(
    transaction_id: int, request: FraudStatusUpdateRequest
) -> Transaction:
    """Record a reviewer verdict. A negative verdict also clears the flag."""
    try:
        return get_service().update_fraud_status(
            transaction_id, request.is_confirmed_fraud
        )
    except TransactionNotFoundError as e:
        raise _not_found(e) from e


@app.get("/dashboard/stats", tags=["Statistics"])
async def get_dashboard_stats() -> dict[str, Any]:
    """Summary and daily series over the dashboard window."""
    try:
        return get_service().fraud_statistics()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.get("/dashboard/recent-flags", response_model=list[Transaction], tags=["Statistics"])
async def get_recent_flags() -> list[Transaction]:
    return get_service().recent_flags()


@app.get("/dashboard/user-count", response_model=UserCountResponse, tags=["Statistics"])
async def get_user_count() -> UserCountResponse:
    return UserCountResponse(user_count=get_service().count_users())


@app.get("/fraud-cases", response_model=list[Transaction], tags=["Review"])
async def get_fraud_cases(
    limit: int | None = Query(default=None, ge=1, le=1000),
) -> list[Transaction]:
    cases = get_service().list_confirmed_fraud()
    return cases[:limit] if limit else cases


@app.put("/fraud-cases/{transaction_id}/confirm", response_model=Transaction, tags=["Review"])
async def confirm_fraud_case(transaction_id: int) -> Transaction:
    try:
        return get_service().confirm_fraud(transaction_id)
    except TransactionNotFoundError as e:
        raise _not_found(e) from e


@app.put(
    "/fraud-cases/{transaction_id}/false-positive",
    response_model=Transaction,
    tags=["Review"],
)
async def mark_false_positive(transaction_id: int) -> Transaction:
    """Clear the flag and score of a wrongly flagged transaction."""
    try:
        return get_service().mark_false_positive(transaction_id)
    except TransactionNotFoundError as e:
        raise _not_found(e) from e

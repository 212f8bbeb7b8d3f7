"""Transaction listing, anomaly and analytics endpoints"""

import math
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from creditchain_gateway.api.v1.schemas import (
    TransactionSchema,
    TransactionListResponse,
    TransactionDetailResponse,
    AnomalyListResponse,
    AnomalySummary,
    AnalyticsResponse,
    CategorySpend,
    MonthlySpend,
    PaymentMethodShare,
    HourlyActivity,
    AnomalyTrend,
    Pagination,
)
from creditchain_gateway.api.v1.users import load_user
from creditchain_gateway.domain.anomaly_context import fraud_risk_level
from creditchain_gateway.infrastructure.database.session import get_db
from creditchain_gateway.infrastructure.database.repositories import TransactionRepository
from creditchain_gateway.utils.date_utils import ANALYTICS_PERIODS, period_start

router = APIRouter()


def pagination(page: int, limit: int, total: int) -> Pagination:
    return Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if total else 0)


@router.get("/transactions/details/{transaction_id}", response_model=TransactionDetailResponse)
def get_transaction(transaction_id: str, db: Session = Depends(get_db)):
    """Single transaction with its fraud-risk band"""
    record = TransactionRepository(db).get_by_transaction_id(transaction_id)
    if not record:
        raise HTTPException(status_code=404, detail="Transaction not found")

    return TransactionDetailResponse(
        user_id=str(record.user_id),
        transaction=TransactionSchema.model_validate(record),
        fraud_risk=fraud_risk_level(record.anomaly_score),
    )


@router.get("/transactions/{user_id}", response_model=TransactionListResponse)
def list_transactions(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = Query(None),
    txn_type: Optional[str] = Query(None, alias="type", pattern="^(credit|debit)$"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    anomalies_only: bool = Query(False),
    sort_by: str = Query("date", pattern="^(date|amount|category|anomaly_score)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
):
    """
    Filtered, sorted and paginated transactions for a user.

    Returns:
        Page of transactions plus pagination totals
    """
    user = load_user(db, user_id)
    records, total = TransactionRepository(db).search(
        user.id,
        category=category,
        txn_type=txn_type,
        start=start_date,
        end=end_date,
        anomalies_only=anomalies_only,
        sort_by=sort_by,
        descending=sort_order == "desc",
        offset=(page - 1) * limit,
        limit=limit,
    )

    return TransactionListResponse(
        user_id=str(user.id),
        transactions=[TransactionSchema.model_validate(r) for r in records],
        pagination=pagination(page, limit, total),
    )


@router.get("/transactions/{user_id}/anomalies", response_model=AnomalyListResponse)
def list_anomalies(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Anomalous transactions by score (highest first) with a risk distribution"""
    user = load_user(db, user_id)
    txn_repo = TransactionRepository(db)
    records, total = txn_repo.list_anomalies(user.id, offset=(page - 1) * limit, limit=limit)

    return AnomalyListResponse(
        user_id=str(user.id),
        anomalies=[TransactionSchema.model_validate(r) for r in records],
        summary=AnomalySummary(**txn_repo.anomaly_summary(user.id)),
        pagination=pagination(page, limit, total),
    )


@router.get("/transactions/{user_id}/analytics", response_model=AnalyticsResponse)
def get_analytics(
    user_id: str,
    period: str = Query("6months", pattern="^(" + "|".join(ANALYTICS_PERIODS) + ")$"),
    db: Session = Depends(get_db),
):
    """
    Spending analytics over a trailing period.

    Returns:
        Spend by category, monthly spend, payment-method distribution,
        hourly pattern and monthly anomaly trend
    """
    user = load_user(db, user_id)
    txn_repo = TransactionRepository(db)
    end = datetime.now()
    start = period_start(period, end)

    return AnalyticsResponse(
        user_id=str(user.id),
        period=period,
        start_date=start,
        end_date=end,
        spending_by_category=[CategorySpend(**row) for row in txn_repo.spending_by_category(user.id, start, end)],
        monthly_spending=[MonthlySpend(**row) for row in txn_repo.monthly_spending(user.id, start, end)],
        payment_methods=[PaymentMethodShare(**row) for row in txn_repo.payment_method_distribution(user.id, start, end)],
        hourly_pattern=[HourlyActivity(**row) for row in txn_repo.hourly_pattern(user.id, start, end)],
        anomaly_trends=[AnomalyTrend(**row) for row in txn_repo.anomaly_trends(user.id, start, end)],
    )

"""Data access layer for users, profiles, transactions and score results"""

import uuid
from collections import Counter
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import func, case, extract
from sqlalchemy.orm import Session
from creditchain_gateway.infrastructure.database.models import (
    User,
    FinancialProfileRecord,
    TransactionRecord,
    CreditScoreRecord,
)
from creditchain_gateway.domain.anomaly_context import fraud_risk_level
from creditchain_gateway.domain.models import (
    IdentitySeed,
    FinancialProfile,
    Transaction,
    AnomalyResult,
    AnomalyMetrics,
    CreditAssessment,
    LedgerReceipt,
)


def transaction_to_domain(record: TransactionRecord) -> Transaction:
    return Transaction(
        transaction_id=record.transaction_id,
        user_id=str(record.user_id),
        amount=record.amount,
        type=record.type,
        category=record.category,
        timestamp=record.occurred_at,
        merchant=record.merchant,
        description=record.description,
        balance_after_transaction=record.balance_after_transaction,
        latitude=record.latitude,
        longitude=record.longitude,
        city=record.city,
        state=record.state,
        payment_method=record.payment_method,
        hour_of_day=record.hour_of_day,
        day_of_week=record.day_of_week,
        is_weekend=record.is_weekend,
        is_late_night=record.is_late_night,
        currency=record.currency,
        status=record.status,
        is_anomaly=record.is_anomaly,
        anomaly_score=record.anomaly_score,
    )


def profile_to_domain(record: FinancialProfileRecord) -> FinancialProfile:
    return FinancialProfile.from_sections(
        str(record.user_id),
        {
            "personal_info": record.personal_info,
            "existing_loans": record.existing_loans,
            "credit_cards": record.credit_cards,
            "bank_accounts": record.bank_accounts,
            "alternative_factors": record.alternative_factors,
            "behavioral_patterns": record.behavioral_patterns,
            "calculated_ratios": record.calculated_ratios,
        },
    )


class UserRepository:
    """Repository for registered users"""

    def __init__(self, db: Session):
        self.db = db

    def create_user(self, name: str, email: str, phone: str, identity: IdentitySeed) -> User:
        db_user = User(
            name=name,
            email=email.lower(),
            phone=phone,
            pan_number=identity.pan_number,
            aadhaar_number=identity.aadhaar_number,
            credit_card_number=identity.credit_card_number,
        )
        self.db.add(db_user)
        self.db.flush()
        return db_user

    def find_conflict(self, email: str, identity: IdentitySeed) -> Optional[str]:
        """Name of the first unique field already taken, if any"""
        checks = [
            ("email", User.email, email.lower()),
            ("pan_number", User.pan_number, identity.pan_number),
            ("aadhaar_number", User.aadhaar_number, identity.aadhaar_number),
            ("credit_card_number", User.credit_card_number, identity.credit_card_number),
        ]
        for field_name, column, value in checks:
            if self.db.query(User.id).filter(column == value).first() is not None:
                return field_name
        return None

    def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_by_wallet(self, wallet_address: str) -> Optional[User]:
        return self.db.query(User).filter(User.wallet_address == wallet_address).first()

    def update_contact(self, user: User, name: Optional[str] = None, phone: Optional[str] = None) -> User:
        if name:
            user.name = name
        if phone:
            user.phone = phone
        self.db.flush()
        return user


class ProfileRepository:
    """Repository for financial profiles (one per user, never updated)"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_user(self, user_id: uuid.UUID) -> Optional[FinancialProfileRecord]:
        return (
            self.db.query(FinancialProfileRecord)
            .filter(FinancialProfileRecord.user_id == user_id)
            .first()
        )

    def create_profile(self, user_id: uuid.UUID, profile: FinancialProfile) -> FinancialProfileRecord:
        db_profile = FinancialProfileRecord(user_id=user_id, **profile.to_sections())
        self.db.add(db_profile)
        self.db.flush()
        return db_profile


class TransactionRepository:
    """Repository for synthetic transactions and the analytics views over them"""

    SORTABLE = {
        "date": TransactionRecord.occurred_at,
        "amount": TransactionRecord.amount,
        "category": TransactionRecord.category,
        "anomaly_score": TransactionRecord.anomaly_score,
    }

    def __init__(self, db: Session):
        self.db = db

    def bulk_create(self, user_id: uuid.UUID, transactions: List[Transaction]) -> int:
        for txn in transactions:
            self.db.add(
                TransactionRecord(
                    user_id=user_id,
                    transaction_id=txn.transaction_id,
                    amount=txn.amount,
                    type=txn.type,
                    category=txn.category,
                    occurred_at=txn.timestamp,
                    merchant=txn.merchant,
                    description=txn.description,
                    balance_after_transaction=txn.balance_after_transaction,
                    latitude=txn.latitude,
                    longitude=txn.longitude,
                    city=txn.city,
                    state=txn.state,
                    payment_method=txn.payment_method,
                    currency=txn.currency,
                    status=txn.status,
                    hour_of_day=txn.hour_of_day,
                    day_of_week=txn.day_of_week,
                    is_weekend=txn.is_weekend,
                    is_late_night=txn.is_late_night,
                    is_anomaly=txn.is_anomaly,
                    anomaly_score=txn.anomaly_score,
                )
            )
        self.db.flush()
        return len(transactions)

    def list_for_user(self, user_id: uuid.UUID) -> List[TransactionRecord]:
        """All transactions for a user, oldest first"""
        return (
            self.db.query(TransactionRecord)
            .filter(TransactionRecord.user_id == user_id)
            .order_by(TransactionRecord.occurred_at.asc(), TransactionRecord.transaction_id.asc())
            .all()
        )

    def recent_for_user(self, user_id: uuid.UUID, limit: int = 10) -> List[TransactionRecord]:
        return (
            self.db.query(TransactionRecord)
            .filter(TransactionRecord.user_id == user_id)
            .order_by(TransactionRecord.occurred_at.desc())
            .limit(limit)
            .all()
        )

    def count_for_user(self, user_id: uuid.UUID) -> int:
        return (
            self.db.query(func.count(TransactionRecord.id)).filter(TransactionRecord.user_id == user_id).scalar() or 0
        )

    def get_by_transaction_id(self, transaction_id: str) -> Optional[TransactionRecord]:
        return (
            self.db.query(TransactionRecord)
            .filter(TransactionRecord.transaction_id == transaction_id)
            .first()
        )

    def search(
        self,
        user_id: uuid.UUID,
        category: Optional[str] = None,
        txn_type: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        anomalies_only: bool = False,
        sort_by: str = "date",
        descending: bool = True,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[TransactionRecord], int]:
        """Filtered, sorted page of transactions plus the total match count"""
        query = self.db.query(TransactionRecord).filter(TransactionRecord.user_id == user_id)
        if category:
            query = query.filter(TransactionRecord.category == category)
        if txn_type:
            query = query.filter(TransactionRecord.type == txn_type)
        if start is not None:
            query = query.filter(TransactionRecord.occurred_at >= start)
        if end is not None:
            query = query.filter(TransactionRecord.occurred_at <= end)
        if anomalies_only:
            query = query.filter(TransactionRecord.is_anomaly.is_(True))

        total = query.count()
        column = self.SORTABLE.get(sort_by, TransactionRecord.occurred_at)
        records = (
            query.order_by(column.desc() if descending else column.asc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return records, total

    def list_anomalies(self, user_id: uuid.UUID, offset: int = 0, limit: int = 20) -> Tuple[List[TransactionRecord], int]:
        query = self.db.query(TransactionRecord).filter(
            TransactionRecord.user_id == user_id,
            TransactionRecord.is_anomaly.is_(True),
        )
        total = query.count()
        records = (
            query.order_by(TransactionRecord.anomaly_score.desc(), TransactionRecord.occurred_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return records, total

    def record_anomalies(self, user_id: uuid.UUID, results: List[AnomalyResult]) -> None:
        """Write anomaly verdicts onto their transactions; skipped ones stay untouched"""
        by_id = {r.transaction_id: r for r in results}
        if not by_id:
            return
        records = (
            self.db.query(TransactionRecord)
            .filter(
                TransactionRecord.user_id == user_id,
                TransactionRecord.transaction_id.in_(list(by_id)),
            )
            .all()
        )
        for record in records:
            result = by_id[record.transaction_id]
            record.is_anomaly = result.is_anomaly
            record.anomaly_score = result.anomaly_score
        self.db.flush()

    def totals(self, user_id: uuid.UUID) -> Tuple[int, float]:
        """(sum, mean) of amounts across all of a user's transactions"""
        total, avg = (
            self.db.query(func.sum(TransactionRecord.amount), func.avg(TransactionRecord.amount))
            .filter(TransactionRecord.user_id == user_id)
            .one()
        )
        return int(total or 0), float(avg or 0.0)

    def _in_period(self, query, user_id: uuid.UUID, start: Optional[datetime], end: Optional[datetime]):
        query = query.filter(TransactionRecord.user_id == user_id)
        if start is not None:
            query = query.filter(TransactionRecord.occurred_at >= start)
        if end is not None:
            query = query.filter(TransactionRecord.occurred_at <= end)
        return query

    def spending_by_category(
        self, user_id: uuid.UUID, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        total = func.sum(TransactionRecord.amount)
        query = self.db.query(
            TransactionRecord.category,
            total,
            func.count(TransactionRecord.id),
            func.avg(TransactionRecord.amount),
        ).filter(TransactionRecord.type == "debit")
        rows = (
            self._in_period(query, user_id, start, end)
            .group_by(TransactionRecord.category)
            .order_by(total.desc())
            .all()
        )
        return [
            {"category": category, "total_amount": int(amount), "count": count, "avg_amount": float(avg)}
            for category, amount, count, avg in rows
        ]

    def monthly_spending(self, user_id: uuid.UUID, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        year = extract("year", TransactionRecord.occurred_at)
        month = extract("month", TransactionRecord.occurred_at)
        query = self.db.query(
            year, month, func.sum(TransactionRecord.amount), func.count(TransactionRecord.id)
        ).filter(TransactionRecord.type == "debit")
        rows = self._in_period(query, user_id, start, end).group_by(year, month).order_by(year, month).all()
        return [
            {"year": int(y), "month": int(m), "total_amount": int(amount), "count": count}
            for y, m, amount, count in rows
        ]

    def payment_method_distribution(self, user_id: uuid.UUID, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        count = func.count(TransactionRecord.id)
        query = self.db.query(TransactionRecord.payment_method, count, func.sum(TransactionRecord.amount))
        rows = (
            self._in_period(query, user_id, start, end)
            .group_by(TransactionRecord.payment_method)
            .order_by(count.desc())
            .all()
        )
        return [
            {"payment_method": method, "count": n, "total_amount": int(amount)}
            for method, n, amount in rows
        ]

    def hourly_pattern(self, user_id: uuid.UUID, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        query = self.db.query(
            TransactionRecord.hour_of_day, func.count(TransactionRecord.id), func.avg(TransactionRecord.amount)
        )
        rows = (
            self._in_period(query, user_id, start, end)
            .group_by(TransactionRecord.hour_of_day)
            .order_by(TransactionRecord.hour_of_day)
            .all()
        )
        return [{"hour": hour, "count": n, "avg_amount": float(avg)} for hour, n, avg in rows]

    def anomaly_trends(self, user_id: uuid.UUID, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        year = extract("year", TransactionRecord.occurred_at)
        month = extract("month", TransactionRecord.occurred_at)
        anomalous = func.sum(case((TransactionRecord.is_anomaly.is_(True), 1), else_=0))
        avg_score = func.avg(case((TransactionRecord.is_anomaly.is_(True), TransactionRecord.anomaly_score), else_=None))
        query = self.db.query(year, month, func.count(TransactionRecord.id), anomalous, avg_score)
        rows = self._in_period(query, user_id, start, end).group_by(year, month).order_by(year, month).all()
        return [
            {
                "year": int(y),
                "month": int(m),
                "total_transactions": total,
                "anomalous_transactions": int(flagged or 0),
                "avg_anomaly_score": float(score) if score is not None else None,
            }
            for y, m, total, flagged, score in rows
        ]

    def anomaly_summary(self, user_id: uuid.UUID) -> Dict[str, Any]:
        """Counts by fraud-risk band plus score stats over flagged transactions"""
        scores = [
            score
            for (score,) in self.db.query(TransactionRecord.anomaly_score)
            .filter(TransactionRecord.user_id == user_id, TransactionRecord.is_anomaly.is_(True))
            .all()
        ]
        bands = Counter(fraud_risk_level(score) for score in scores)

        return {
            "total_anomalies": len(scores),
            "high_risk_count": bands["critical"] + bands["high"],
            "medium_risk_count": bands["medium"],
            "low_risk_count": bands["low"],
            "avg_anomaly_score": sum(scores) / len(scores) if scores else 0.0,
            "max_anomaly_score": max(scores) if scores else 0.0,
        }


class CreditScoreRepository:
    """Repository for append-only credit score results"""

    def __init__(self, db: Session):
        self.db = db

    def create_result(
        self,
        user_id: uuid.UUID,
        assessment: CreditAssessment,
        anomalies: List[AnomalyResult],
        anomaly_metrics: AnomalyMetrics,
        model_version: Optional[str] = None,
    ) -> CreditScoreRecord:
        """Persist a scoring result without external references"""
        db_result = CreditScoreRecord(
            user_id=user_id,
            credit_score=assessment.credit_score,
            confidence_score=assessment.confidence_score,
            risk_level=assessment.risk_level,
            risk_category=assessment.risk_category,
            score_breakdown={name: asdict(c) for name, c in assessment.score_breakdown.items()},
            recommendations=list(assessment.recommendations),
            improvement_tips=[asdict(tip) for tip in assessment.improvement_tips],
            transaction_anomalies=[asdict(a) for a in anomalies],
            anomaly_metrics=asdict(anomaly_metrics),
            model_version=model_version,
        )
        self.db.add(db_result)
        self.db.flush()
        return db_result

    def attach_references(
        self,
        result: CreditScoreRecord,
        data_hash: str,
        receipt: LedgerReceipt,
        content_ref: str,
    ) -> CreditScoreRecord:
        """Set the ledger/content reference columns; nothing else is touched"""
        result.data_hash = data_hash
        result.ledger_tx_ref = receipt.tx_ref
        result.ledger_block_ref = receipt.block_ref
        result.content_ref = content_ref
        result.anchored_at = datetime.now(timezone.utc)
        self.db.flush()
        return result

    def get_result(self, result_id: uuid.UUID) -> Optional[CreditScoreRecord]:
        return self.db.query(CreditScoreRecord).filter(CreditScoreRecord.id == result_id).first()

    def latest_for_user(self, user_id: uuid.UUID) -> Optional[CreditScoreRecord]:
        return (
            self.db.query(CreditScoreRecord)
            .filter(CreditScoreRecord.user_id == user_id)
            .order_by(CreditScoreRecord.created_at.desc())
            .first()
        )

    def history(self, user_id: uuid.UUID, offset: int = 0, limit: int = 10) -> List[CreditScoreRecord]:
        """Results for a user, newest first"""
        return (
            self.db.query(CreditScoreRecord)
            .filter(CreditScoreRecord.user_id == user_id)
            .order_by(CreditScoreRecord.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def count_for_user(self, user_id: uuid.UUID) -> int:
        return (
            self.db.query(func.count(CreditScoreRecord.id))
            .filter(CreditScoreRecord.user_id == user_id)
            .scalar()
            or 0
        )

    def find_by_ledger_ref(self, tx_ref: str, user_id: Optional[uuid.UUID] = None) -> Optional[CreditScoreRecord]:
        query = self.db.query(CreditScoreRecord).filter(CreditScoreRecord.ledger_tx_ref == tx_ref)
        if user_id is not None:
            query = query.filter(CreditScoreRecord.user_id == user_id)
        return query.first()

    def find_by_content_ref(self, content_ref: str, user_id: Optional[uuid.UUID] = None) -> Optional[CreditScoreRecord]:
        query = self.db.query(CreditScoreRecord).filter(CreditScoreRecord.content_ref == content_ref)
        if user_id is not None:
            query = query.filter(CreditScoreRecord.user_id == user_id)
        return query.first()

"""SQLAlchemy ORM models for users, profiles, transactions and score results"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column,
    String,
    BigInteger,
    Boolean,
    Float,
    DateTime,
    Integer,
    ForeignKey,
    Text,
    JSON,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class User(Base):
    """Registered user and the identity strings their synthetic data is seeded from"""

    __tablename__ = "app_user"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False, unique=True)
    phone = Column(String(10), nullable=False)
    pan_number = Column(String(10), nullable=False, unique=True)
    aadhaar_number = Column(String(14), nullable=False, unique=True)
    credit_card_number = Column(String(19), nullable=False, unique=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    wallet_address = Column(String(42), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    profile = relationship("FinancialProfileRecord", back_populates="user", uselist=False)


class FinancialProfileRecord(Base):
    """One immutable profile per user; each section stored as a JSON document"""

    __tablename__ = "financial_profile"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, unique=True)
    personal_info = Column(JSON, nullable=False)
    existing_loans = Column(JSON, nullable=False)
    credit_cards = Column(JSON, nullable=False)
    bank_accounts = Column(JSON, nullable=False)
    alternative_factors = Column(JSON, nullable=False)
    behavioral_patterns = Column(JSON, nullable=False)
    calculated_ratios = Column(JSON, nullable=False)
    generated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    user = relationship("User", back_populates="profile")


class TransactionRecord(Base):
    """Synthetic transaction; only the anomaly fields change after insert"""

    __tablename__ = "user_transaction"
    __table_args__ = (
        Index("ix_transaction_user_occurred", "user_id", "occurred_at"),
        Index("ix_transaction_user_category", "user_id", "category"),
        Index("ix_transaction_user_anomaly", "user_id", "is_anomaly"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False)
    transaction_id = Column(Text, nullable=False, unique=True)
    amount = Column(BigInteger, nullable=False)
    type = Column(String(6), nullable=False)
    category = Column(Text, nullable=False)
    occurred_at = Column(DateTime, nullable=False)
    merchant = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    balance_after_transaction = Column(BigInteger, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    city = Column(Text, nullable=False)
    state = Column(Text, nullable=False)
    payment_method = Column(Text, nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    status = Column(Text, nullable=False, default="completed")
    hour_of_day = Column(Integer, nullable=False)
    day_of_week = Column(Integer, nullable=False)
    is_weekend = Column(Boolean, nullable=False)
    is_late_night = Column(Boolean, nullable=False)
    is_anomaly = Column(Boolean, nullable=False, default=False)
    anomaly_score = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class CreditScoreRecord(Base):
    """Append-only scoring result; reference columns are filled once anchoring succeeds"""

    __tablename__ = "credit_score_result"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, index=True)
    credit_score = Column(Integer, nullable=False)
    confidence_score = Column(Float, nullable=False)
    risk_level = Column(Text, nullable=False)
    risk_category = Column(Text, nullable=False)
    score_breakdown = Column(JSON, nullable=False)
    recommendations = Column(JSON, nullable=False)
    improvement_tips = Column(JSON, nullable=False)
    transaction_anomalies = Column(JSON, nullable=False)
    anomaly_metrics = Column(JSON, nullable=False)
    model_version = Column(Text, nullable=True)
    data_hash = Column(Text, nullable=True)
    ledger_tx_ref = Column(Text, nullable=True, index=True)
    ledger_block_ref = Column(BigInteger, nullable=True)
    content_ref = Column(Text, nullable=True, index=True)
    anchored_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

"""Pytest fixtures for testing"""

import pytest
from datetime import date, datetime
from typing import Generator, List
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from creditchain_gateway.api.main import create_app
from creditchain_gateway.api.dependencies import (
    get_model_client,
    get_ledger_client,
    get_content_client,
    get_run_locks,
)
from creditchain_gateway.config import Settings
from creditchain_gateway.domain.models import (
    IdentitySeed,
    FinancialProfile,
    Transaction,
    CreditAssessment,
    BreakdownComponent,
    ImprovementTip,
    AnomalyResult,
    ContentReceipt,
    LedgerReceipt,
    LedgerStatus,
)
from creditchain_gateway.domain.profile_generator import generate_profile
from creditchain_gateway.domain.transaction_generator import generate_transactions
from creditchain_gateway.infrastructure.clients.model_service import ModelServiceClient
from creditchain_gateway.infrastructure.clients.ledger import LedgerClient
from creditchain_gateway.infrastructure.clients.content_store import ContentStoreClient
from creditchain_gateway.infrastructure.database.models import Base, User
from creditchain_gateway.infrastructure.database.session import get_db
from creditchain_gateway.infrastructure.database.repositories import UserRepository
from creditchain_gateway.services.onboarding import generate_or_fetch_profile
from creditchain_gateway.services.scoring import ScoringOrchestrator, UserRunLocks


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

REFERENCE_DATE = date(2024, 6, 30)
TX_REF = "0x" + "ab" * 32
IDENTITY_TX_REF = "0x" + "ef" * 32
CONTENT_REF = "QmTestContentReference0000000000000000000000000"


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with no pause between anomaly batches"""
    return Settings(anomaly_batch_pause_seconds=0.0)


@pytest.fixture
def identity() -> IdentitySeed:
    return IdentitySeed(
        pan_number="ABCDE1234F",
        aadhaar_number="1234-5678-9012",
        credit_card_number="1234-5678-9012-3456",
    )


@pytest.fixture
def sample_profile(identity: IdentitySeed) -> FinancialProfile:
    return generate_profile("user-1", identity)


@pytest.fixture
def sample_transactions(sample_profile: FinancialProfile) -> List[Transaction]:
    """75 generated transactions over the 180 days before REFERENCE_DATE"""
    return generate_transactions("user-1", sample_profile, count=75, reference_date=REFERENCE_DATE)


def make_transaction(
    i: int,
    amount: int,
    category: str,
    when: datetime,
    txn_type: str = "debit",
    merchant: str = "Amazon",
) -> Transaction:
    """Hand-built transaction with time flags derived from `when`"""
    return Transaction(
        transaction_id=f"T{i}",
        user_id="u",
        amount=amount,
        type=txn_type,
        category=category,
        timestamp=when,
        merchant=merchant,
        description=f"{category} transaction at {merchant}",
        balance_after_transaction=100000,
        latitude=12.9716,
        longitude=77.5946,
        city="Bangalore",
        state="Karnataka",
        payment_method="upi",
        hour_of_day=when.hour,
        day_of_week=when.weekday(),
        is_weekend=when.weekday() >= 5,
        is_late_night=when.hour >= 22 or when.hour <= 5,
    )


@pytest.fixture
def make_txn():
    return make_transaction


@pytest.fixture
def assessment() -> CreditAssessment:
    """Scoring model response"""
    return CreditAssessment(
        credit_score=712,
        confidence_score=86.5,
        risk_level="low",
        risk_category="good",
        score_breakdown={
            "paymentHistory": BreakdownComponent(score=80, weight=30),
            "creditUtilization": BreakdownComponent(score=70, weight=25),
            "lengthOfHistory": BreakdownComponent(score=60, weight=15),
            "newCredit": BreakdownComponent(score=75, weight=10),
            "creditMix": BreakdownComponent(score=65, weight=10),
            "alternativeFactors": BreakdownComponent(score=72, weight=10),
        },
        recommendations=["Keep utilization below 30%"],
        improvement_tips=[
            ImprovementTip(category="utilization", suggestion="Pay down card balances", impact_level="high")
        ],
    )


def anomaly_verdict(transaction: Transaction, contextual=None, behavioral=None) -> AnomalyResult:
    """Flags every transaction that happens late at night"""
    score = 85.0 if transaction.is_late_night else 12.0
    return AnomalyResult(
        transaction_id=transaction.transaction_id,
        is_anomaly=transaction.is_late_night,
        anomaly_score=score,
        fraud_risk="critical" if transaction.is_late_night else "low",
        detected_patterns=["late_night"] if transaction.is_late_night else [],
        risk_factors=[{"factor": "unusual_hour", "weight": 40.0, "description": None}]
        if transaction.is_late_night
        else [],
    )


@pytest.fixture
def model_client(assessment: CreditAssessment) -> AsyncMock:
    client = AsyncMock(spec=ModelServiceClient)
    client.score_credit.return_value = assessment
    client.detect_anomaly.side_effect = anomaly_verdict
    client.health.return_value = {"status": "healthy"}
    return client


@pytest.fixture
def ledger_client() -> MagicMock:
    client = MagicMock(spec=LedgerClient)
    client.submit_score = AsyncMock(return_value=LedgerReceipt(tx_ref=TX_REF, block_ref=4242, gas_used="52000"))
    client.verify = AsyncMock()
    client.fetch_history = AsyncMock(return_value=[])
    client.register_identity = AsyncMock(
        return_value=LedgerReceipt(tx_ref=IDENTITY_TX_REF, block_ref=4100, gas_used="61000")
    )
    client.status = AsyncMock(
        return_value=LedgerStatus(network="sepolia", chain_id=11155111, current_block=4300, gas_price="1500000000")
    )
    client.explorer_url.side_effect = lambda tx_ref: f"https://sepolia.etherscan.io/tx/{tx_ref}"
    return client


@pytest.fixture
def content_client() -> MagicMock:
    client = MagicMock(spec=ContentStoreClient)
    client.put = AsyncMock(
        return_value=ContentReceipt(content_ref=CONTENT_REF, size=2048, gateway_url=f"https://ipfs.io/ipfs/{CONTENT_REF}")
    )
    client.get = AsyncMock()
    client.gateway_link.side_effect = lambda ref: f"https://ipfs.io/ipfs/{ref}"
    return client


@pytest.fixture
def run_locks() -> UserRunLocks:
    return UserRunLocks()


@pytest.fixture
def orchestrator(db, model_client, ledger_client, content_client, run_locks, test_settings) -> ScoringOrchestrator:
    return ScoringOrchestrator(db, model_client, ledger_client, content_client, run_locks, test_settings)


@pytest.fixture
def registered_user(db: Session, identity: IdentitySeed) -> User:
    """User that has registered but not generated a profile"""
    user = UserRepository(db).create_user("Asha Rao", "asha@example.com", "9876543210", identity)
    db.commit()
    return user


@pytest.fixture
def onboarded_user(db: Session, registered_user: User, test_settings: Settings) -> User:
    """Verified user with a profile and 75 transactions"""
    generate_or_fetch_profile(db, registered_user.id, reference_date=REFERENCE_DATE, config=test_settings)
    return registered_user


@pytest.fixture
def client(db, model_client, ledger_client, content_client, run_locks) -> TestClient:
    """Create FastAPI test client with test database and mocked external services"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_model_client] = lambda: model_client
    app.dependency_overrides[get_ledger_client] = lambda: ledger_client
    app.dependency_overrides[get_content_client] = lambda: content_client
    app.dependency_overrides[get_run_locks] = lambda: run_locks
    return TestClient(app)

"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Any, Dict, List, Optional


PAN_PATTERN = r"^[A-Z]{5}[0-9]{4}[A-Z]$"
AADHAAR_PATTERN = r"^[0-9]{4}-[0-9]{4}-[0-9]{4}$"
CARD_PATTERN = r"^[0-9]{4}(-[0-9]{4}){3}$"
PHONE_PATTERN = r"^[0-9]{10}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class UserCreateRequest(BaseModel):
    """Request body for POST /v1/users"""

    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    phone: str = Field(..., pattern=PHONE_PATTERN, description="10-digit phone number")
    pan_number: str = Field(..., pattern=PAN_PATTERN, description="PAN, e.g. ABCDE1234F")
    aadhaar_number: str = Field(..., pattern=AADHAAR_PATTERN, description="Aadhaar, e.g. 1234-5678-9012")
    credit_card_number: str = Field(..., pattern=CARD_PATTERN, description="Card, e.g. 1234-5678-9012-3456")


class UserUpdateRequest(BaseModel):
    """Request body for PUT /v1/users/{user_id}; identity fields are immutable"""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN, description="10-digit phone number")


class UserResponse(BaseModel):
    user_id: str
    name: str
    email: str
    phone: str
    is_verified: bool
    wallet_address: Optional[str] = None
    created_at: Optional[str] = None


class FinancialProfileSchema(BaseModel):
    """Generated profile, one dict per section"""

    personal_info: Dict[str, Any]
    existing_loans: Dict[str, Any]
    credit_cards: Dict[str, Any]
    bank_accounts: Dict[str, Any]
    alternative_factors: Dict[str, Any]
    behavioral_patterns: Dict[str, Any]
    calculated_ratios: Dict[str, Any]


class ProfileGenerationResponse(BaseModel):
    """Response for POST /v1/users/{user_id}/profile"""

    user: UserResponse
    profile: FinancialProfileSchema
    transaction_count: int
    created: bool


class TransactionSummary(BaseModel):
    total_transactions: int
    total_amount: int
    avg_amount: float


class UserProfileResponse(BaseModel):
    """Response for GET /v1/users/{user_id}/profile"""

    user: UserResponse
    profile: Optional[FinancialProfileSchema] = None
    transaction_summary: TransactionSummary


class TransactionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transaction_id: str
    amount: int
    type: str
    category: str
    occurred_at: datetime
    merchant: str
    description: str
    balance_after_transaction: int
    latitude: float
    longitude: float
    city: str
    state: str
    payment_method: str
    currency: str
    status: str
    hour_of_day: int
    day_of_week: int
    is_weekend: bool
    is_late_night: bool
    is_anomaly: bool
    anomaly_score: float


class CategorySpend(BaseModel):
    category: str
    total_amount: int
    count: int
    avg_amount: float


class DashboardResponse(BaseModel):
    """Response for GET /v1/users/{user_id}/dashboard"""

    user: UserResponse
    latest_credit_score: Optional[int] = None
    transaction_summary: TransactionSummary
    recent_transactions: List[TransactionSchema]
    spending_by_category: List[CategorySpend]


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class TransactionListResponse(BaseModel):
    """Response for GET /v1/transactions/{user_id}"""

    user_id: str
    transactions: List[TransactionSchema]
    pagination: Pagination


class AnomalySummary(BaseModel):
    total_anomalies: int
    high_risk_count: int
    medium_risk_count: int
    low_risk_count: int
    avg_anomaly_score: float
    max_anomaly_score: float


class AnomalyListResponse(BaseModel):
    """Response for GET /v1/transactions/{user_id}/anomalies"""

    user_id: str
    anomalies: List[TransactionSchema]
    summary: AnomalySummary
    pagination: Pagination


class MonthlySpend(BaseModel):
    year: int
    month: int
    total_amount: int
    count: int


class PaymentMethodShare(BaseModel):
    payment_method: str
    count: int
    total_amount: int


class HourlyActivity(BaseModel):
    hour: int
    count: int
    avg_amount: float


class AnomalyTrend(BaseModel):
    year: int
    month: int
    total_transactions: int
    anomalous_transactions: int
    avg_anomaly_score: Optional[float] = None


class AnalyticsResponse(BaseModel):
    """Response for GET /v1/transactions/{user_id}/analytics"""

    user_id: str
    period: str
    start_date: datetime
    end_date: datetime
    spending_by_category: List[CategorySpend]
    monthly_spending: List[MonthlySpend]
    payment_methods: List[PaymentMethodShare]
    hourly_pattern: List[HourlyActivity]
    anomaly_trends: List[AnomalyTrend]


class TransactionDetailResponse(BaseModel):
    """Response for GET /v1/transactions/details/{transaction_id}"""

    user_id: str
    transaction: TransactionSchema
    fraud_risk: str


class BreakdownSchema(BaseModel):
    score: float
    weight: float


class ImprovementTipSchema(BaseModel):
    category: str
    suggestion: str
    impact_level: str


class RiskFactorSchema(BaseModel):
    factor: str
    weight: float
    description: Optional[str] = None


class AnomalyResultSchema(BaseModel):
    transaction_id: str
    is_anomaly: bool
    anomaly_score: float
    fraud_risk: str
    detected_patterns: List[str] = []
    risk_factors: List[RiskFactorSchema] = []


class AnomalyMetricsSchema(BaseModel):
    total_transactions_analyzed: int
    anomalous_transactions_count: int
    anomaly_rate: float
    avg_anomaly_score: float
    highest_anomaly_score: float


class LedgerReference(BaseModel):
    tx_ref: str
    block_ref: Optional[int] = None
    explorer_url: str


class ContentReference(BaseModel):
    content_ref: str
    gateway_url: str


class CreditScoreResponse(BaseModel):
    """Stored credit score result; ledger/content are null until anchored"""

    result_id: str
    user_id: str
    credit_score: int
    confidence_score: float
    risk_level: str
    risk_category: str
    score_breakdown: Dict[str, BreakdownSchema]
    recommendations: List[str]
    improvement_tips: List[ImprovementTipSchema]
    transaction_anomalies: List[AnomalyResultSchema]
    anomaly_metrics: AnomalyMetricsSchema
    model_version: Optional[str] = None
    data_hash: Optional[str] = None
    anchored: bool
    ledger: Optional[LedgerReference] = None
    content: Optional[ContentReference] = None
    created_at: str


class ScoringRunResponse(CreditScoreResponse):
    """Response for POST /v1/credit-score/{user_id} and the anchor retry"""

    run_state: str
    anomalies_skipped: int = 0
    anchoring_error: Optional[str] = None


class CreditScoreSummary(BaseModel):
    result_id: str
    credit_score: int
    risk_level: str
    risk_category: str
    confidence_score: float
    anchored: bool
    ledger_tx_ref: Optional[str] = None
    content_ref: Optional[str] = None
    created_at: str


class CreditScoreHistoryResponse(BaseModel):
    """Response for GET /v1/credit-score/{user_id}/history"""

    user_id: str
    results: List[CreditScoreSummary]
    pagination: Pagination


class LedgerVerifyRequest(BaseModel):
    """Request body for POST /v1/ledger/verify"""

    tx_ref: str = Field(..., min_length=1, description="Ledger transaction reference")
    user_id: Optional[str] = Field(None, description="Restrict the stored-record match to this user")


class LedgerVerifyResponse(BaseModel):
    tx_ref: str
    is_valid: bool
    block_ref: int
    timestamp: int
    gas_used: str
    explorer_url: str
    result: Optional[CreditScoreSummary] = None
    content_metadata: Optional[Dict[str, Any]] = None


class LedgerHistoryItem(BaseModel):
    score: int
    data_hash: str
    timestamp: int
    content_ref: str
    tx_ref: Optional[str] = None
    block_ref: Optional[int] = None
    risk_level: Optional[str] = None
    risk_category: Optional[str] = None
    gateway_url: str


class LedgerHistoryResponse(BaseModel):
    """Response for GET /v1/ledger/history/{wallet_address}"""

    wallet_address: str
    entries: List[LedgerHistoryItem]


class LedgerStatusResponse(BaseModel):
    """Response for GET /v1/ledger/status"""

    status: str
    network: str
    chain_id: int
    current_block: int
    gas_price: str
    signer_address: Optional[str] = None


class IdentityRegistrationRequest(BaseModel):
    """Request body for POST /v1/ledger/register"""

    user_id: str


class IdentityRegistrationResponse(BaseModel):
    wallet_address: str
    tx_ref: str
    block_ref: int
    explorer_url: str


class ContentResponse(BaseModel):
    """Response for GET /v1/ledger/content/{content_ref}"""

    content_ref: str
    gateway_url: str
    integrity_valid: bool
    content: Dict[str, Any]

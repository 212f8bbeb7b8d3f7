"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class IdentitySeed:
    """The three identity strings a user registers with.

    Only ever hashed into seeds; never parsed for meaning.
    """

    pan_number: str
    aadhaar_number: str
    credit_card_number: str


@dataclass
class PersonalInfo:
    age: int
    monthly_income: int
    monthly_expenses: int
    employment_type: str
    experience_years: int
    company_name: str
    designation: str


@dataclass
class ExistingLoans:
    total_amount: int
    monthly_emi: int
    loan_types: List[str]
    active_loan_count: int


@dataclass
class CreditCards:
    total_limit: int
    current_utilization: int  # percent, 0-79
    utilization_amount: int
    card_count: int


@dataclass
class BankAccount:
    account_type: str
    average_balance: int
    account_age: int  # years


@dataclass
class AlternativeFactors:
    digital_payment_score: int
    social_media_score: int
    app_usage_score: int
    location_stability_score: int
    phone_usage_pattern: int


@dataclass
class BehavioralPatterns:
    payment_regularity: int
    transaction_frequency: int
    financial_discipline: int
    risk_tolerance: int


@dataclass
class CalculatedRatios:
    income_to_expense_ratio: float
    debt_to_income_ratio: float  # percent
    credit_utilization_ratio: float  # percent


@dataclass
class FinancialProfile:
    """Synthesized financial standing for a single user"""

    user_id: str
    personal_info: PersonalInfo
    existing_loans: ExistingLoans
    credit_cards: CreditCards
    bank_accounts: BankAccount
    alternative_factors: AlternativeFactors
    behavioral_patterns: BehavioralPatterns
    calculated_ratios: CalculatedRatios

    def to_sections(self) -> Dict[str, Dict[str, Any]]:
        """Section name -> plain dict, the shape stored in the record store"""
        data = asdict(self)
        data.pop("user_id")
        return data

    @classmethod
    def from_sections(cls, user_id: str, sections: Dict[str, Dict[str, Any]]) -> "FinancialProfile":
        return cls(
            user_id=user_id,
            personal_info=PersonalInfo(**sections["personal_info"]),
            existing_loans=ExistingLoans(**sections["existing_loans"]),
            credit_cards=CreditCards(**sections["credit_cards"]),
            bank_accounts=BankAccount(**sections["bank_accounts"]),
            alternative_factors=AlternativeFactors(**sections["alternative_factors"]),
            behavioral_patterns=BehavioralPatterns(**sections["behavioral_patterns"]),
            calculated_ratios=CalculatedRatios(**sections["calculated_ratios"]),
        )


@dataclass
class Transaction:
    """Synthetic ledger entry for a user"""

    transaction_id: str
    user_id: str
    amount: int
    type: str  # "credit" or "debit"
    category: str
    timestamp: datetime
    merchant: str
    description: str
    balance_after_transaction: int
    latitude: float
    longitude: float
    city: str
    state: str
    payment_method: str
    hour_of_day: int
    day_of_week: int  # Monday == 0
    is_weekend: bool
    is_late_night: bool
    currency: str = "INR"
    status: str = "completed"
    is_anomaly: bool = False
    anomaly_score: float = 0.0


@dataclass
class TransactionMetrics:
    """Statistical reduction of a transaction sequence fed to the scoring model"""

    total_transactions_count: int
    num_credit_transactions: int
    num_debit_transactions: int
    avg_transaction_amount: float
    max_transaction_amount: int
    min_transaction_amount: int
    avg_daily_transactions: float
    monthly_spending_by_category: Dict[str, float]
    percentage_spending_needs_vs_wants: float
    spread_of_transactions_across_categories: int
    number_of_unique_merchants: int
    weekend_spending_pattern: float
    late_night_transaction_frequency: float
    loan_repayment_consistency: float
    credit_card_bill_payment_regularity: float
    recurring_transaction_count: int
    average_transaction_frequency_per_day: float
    transaction_velocity_pattern: float

    def to_payload(self) -> Dict[str, Any]:
        """camelCase keys expected by the model service"""
        payload: Dict[str, Any] = {
            "totalTransactionsCount": self.total_transactions_count,
            "avgTransactionAmount": self.avg_transaction_amount,
            "maxTransactionAmount": self.max_transaction_amount,
            "minTransactionAmount": self.min_transaction_amount,
            "numCreditTransactions": self.num_credit_transactions,
            "numDebitTransactions": self.num_debit_transactions,
            "avgDailyTransactions": self.avg_daily_transactions,
            "percentageSpendingNeedsVsWants": self.percentage_spending_needs_vs_wants,
            "spreadOfTransactionsAcrossCategories": self.spread_of_transactions_across_categories,
            "loanRepaymentConsistency": self.loan_repayment_consistency,
            "creditCardBillPaymentRegularity": self.credit_card_bill_payment_regularity,
            "numberOfUniqueMerchants": self.number_of_unique_merchants,
            "weekendSpendingPattern": self.weekend_spending_pattern,
            "lateNightTransactionFrequency": self.late_night_transaction_frequency,
            "recurringTransactionCount": self.recurring_transaction_count,
            "averageTransactionFrequencyPerDay": self.average_transaction_frequency_per_day,
            "transactionVelocityPattern": self.transaction_velocity_pattern,
        }
        for category, amount in self.monthly_spending_by_category.items():
            suffix = "".join(part.capitalize() for part in category.split("_"))
            payload[f"avgMonthlySpending{suffix}"] = amount
        return payload


@dataclass
class ContextualFeatures:
    """Per-transaction signal for the anomaly model"""

    time_since_last_transaction: float  # minutes
    avg_amount_for_category: float
    std_dev_amount_for_category: float
    user_avg_transaction_amount: float
    user_std_dev_transaction_amount: float
    merchant_frequency_for_user: int
    unusual_time_pattern: bool
    amount_outlier_for_category: bool
    merchant_outlier: bool
    location_deviation_from_usual_patterns: float
    consecutive_transactions_same_merchant: int
    velocity_of_transactions_in_short_period: int
    geographical_outlier: bool


@dataclass
class GeographicalArea:
    center_latitude: float
    center_longitude: float
    radius_km: float


@dataclass
class BehavioralContext:
    """Per-run user signal shared by every anomaly request"""

    avg_monthly_spending: float
    typical_transaction_count_per_day: int
    historical_anomaly_rate_for_user: float
    average_transaction_amount: float
    most_common_categories: List[str]
    most_common_merchants: List[str]
    usual_transaction_hours: List[int]
    typical_geographical_area: GeographicalArea


@dataclass
class AnomalyResult:
    """Anomaly model verdict for one transaction"""

    transaction_id: str
    is_anomaly: bool
    anomaly_score: float
    fraud_risk: str
    detected_patterns: List[str] = field(default_factory=list)
    risk_factors: List[Dict[str, Any]] = field(default_factory=list)  # {factor, weight, description}


@dataclass
class AnomalyOutcome:
    """Result of scanning one transaction: a verdict or the reason it was skipped"""

    transaction_id: str
    result: Optional[AnomalyResult] = None
    skip_reason: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.result is None


@dataclass
class AnomalyMetrics:
    total_transactions_analyzed: int
    anomalous_transactions_count: int
    anomaly_rate: float
    avg_anomaly_score: float
    highest_anomaly_score: float


@dataclass
class BreakdownComponent:
    score: float
    weight: float


@dataclass
class ImprovementTip:
    category: str
    suggestion: str
    impact_level: str


@dataclass
class CreditAssessment:
    """Scoring model output"""

    credit_score: int
    confidence_score: float
    risk_level: str
    risk_category: str
    score_breakdown: Dict[str, BreakdownComponent]
    recommendations: List[str]
    improvement_tips: List[ImprovementTip]


@dataclass
class ContentReceipt:
    content_ref: str
    size: int
    gateway_url: str


@dataclass
class LedgerReceipt:
    tx_ref: str
    block_ref: int
    gas_used: str


@dataclass
class LedgerStatus:
    network: str
    chain_id: int
    current_block: int
    gas_price: str
    signer_address: Optional[str] = None


@dataclass
class LedgerEntry:
    score: int
    data_hash: str
    timestamp: int
    content_ref: str
    tx_ref: Optional[str] = None
    block_ref: Optional[int] = None


@dataclass
class LedgerVerification:
    is_valid: bool
    block_ref: int
    timestamp: int
    gas_used: str

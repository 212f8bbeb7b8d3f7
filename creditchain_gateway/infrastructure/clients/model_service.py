"""ML model service HTTP client for credit scoring and anomaly detection"""

import httpx
from typing import Any, Dict
from creditchain_gateway.domain.models import (
    FinancialProfile,
    TransactionMetrics,
    Transaction,
    ContextualFeatures,
    BehavioralContext,
    CreditAssessment,
    BreakdownComponent,
    ImprovementTip,
    AnomalyResult,
)
from creditchain_gateway.domain.anomaly_context import fraud_risk_level
from creditchain_gateway.domain.constants import CREDIT_SCORE_MIN, CREDIT_SCORE_MAX, DEFAULT_BREAKDOWN_WEIGHTS
from creditchain_gateway.domain.exceptions import ModelServiceError
from creditchain_gateway.infrastructure.observability.metrics import (
    external_latency_histogram,
    external_failure_counter,
)
from creditchain_gateway.config import settings


def to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def camelize(data: Any) -> Any:
    """Recursively convert dict keys from snake_case to camelCase"""
    if isinstance(data, dict):
        return {to_camel(k): camelize(v) for k, v in data.items()}
    if isinstance(data, list):
        return [camelize(v) for v in data]
    return data


def profile_payload(profile: FinancialProfile) -> Dict[str, Any]:
    """Flatten a profile into the field names the scoring model was trained on"""
    info = profile.personal_info
    loans = profile.existing_loans
    cards = profile.credit_cards
    account = profile.bank_accounts
    alt = profile.alternative_factors
    behavior = profile.behavioral_patterns
    ratios = profile.calculated_ratios
    return {
        "age": info.age,
        "monthlyIncome": info.monthly_income,
        "monthlyExpenses": info.monthly_expenses,
        "employmentType": info.employment_type,
        "experienceYears": info.experience_years,
        "companyName": info.company_name,
        "existingLoans_totalAmount": loans.total_amount,
        "existingLoans_monthlyEMI": loans.monthly_emi,
        "existingLoans_loanTypes": loans.loan_types,
        "existingLoans_activeLoanCount": loans.active_loan_count,
        "creditCards_totalLimit": cards.total_limit,
        "creditCards_currentUtilization": cards.current_utilization,
        "creditCards_utilizationAmount": cards.utilization_amount,
        "creditCards_cardCount": cards.card_count,
        "bankAccounts_accountType": account.account_type,
        "bankAccounts_averageBalance": account.average_balance,
        "bankAccounts_accountAge": account.account_age,
        "digitalPaymentScore": alt.digital_payment_score,
        "socialMediaScore": alt.social_media_score,
        "appUsageScore": alt.app_usage_score,
        "locationStabilityScore": alt.location_stability_score,
        "phoneUsagePattern": alt.phone_usage_pattern,
        "paymentRegularity": behavior.payment_regularity,
        "transactionFrequency": behavior.transaction_frequency,
        "financialDiscipline": behavior.financial_discipline,
        "riskTolerance": behavior.risk_tolerance,
        "incomeToExpenseRatio": ratios.income_to_expense_ratio,
        "debtToIncomeRatio": ratios.debt_to_income_ratio,
        "creditUtilizationRatio": ratios.credit_utilization_ratio,
    }


def transaction_payload(txn: Transaction) -> Dict[str, Any]:
    return {
        "transactionId": txn.transaction_id,
        "amount": txn.amount,
        "type": txn.type,
        "category": txn.category,
        "date": txn.timestamp.isoformat(),
        "hourOfDay": txn.hour_of_day,
        "dayOfWeek": txn.day_of_week,
        "isWeekend": txn.is_weekend,
        "isLateNight": txn.is_late_night,
        "merchant": txn.merchant,
        "location": {
            "latitude": txn.latitude,
            "longitude": txn.longitude,
            "city": txn.city,
            "state": txn.state,
        },
        "paymentMethod": txn.payment_method,
        "balanceAfterTransaction": txn.balance_after_transaction,
    }


def contextual_payload(features: ContextualFeatures) -> Dict[str, Any]:
    # Category stats are computed over the whole window; the model names them by its training windows
    return {
        "timeSinceLastTransaction": features.time_since_last_transaction,
        "avgAmountForCategoryLast7Days": features.avg_amount_for_category,
        "stdDevAmountForCategoryLast30Days": features.std_dev_amount_for_category,
        "userAvgTransactionAmount": features.user_avg_transaction_amount,
        "userStdDevTransactionAmount": features.user_std_dev_transaction_amount,
        "locationDeviationFromUsualPatterns": features.location_deviation_from_usual_patterns,
        "merchantFrequencyForUser": features.merchant_frequency_for_user,
        "consecutiveTransactionsSameMerchant": features.consecutive_transactions_same_merchant,
        "velocityOfTransactionsInShortPeriod": features.velocity_of_transactions_in_short_period,
        "unusualTimePattern": features.unusual_time_pattern,
        "geographicalOutlier": features.geographical_outlier,
        "amountOutlierForCategory": features.amount_outlier_for_category,
        "merchantOutlier": features.merchant_outlier,
    }


def behavioral_payload(context: BehavioralContext) -> Dict[str, Any]:
    area = context.typical_geographical_area
    return {
        "avgMonthlySpending": context.avg_monthly_spending,
        "typicalTransactionCountPerDay": context.typical_transaction_count_per_day,
        "historicalAnomalyRateForUser": context.historical_anomaly_rate_for_user,
        "averageTransactionAmountLast30Days": context.average_transaction_amount,
        "mostCommonCategories": context.most_common_categories,
        "mostCommonMerchants": context.most_common_merchants,
        "usualTransactionHours": context.usual_transaction_hours,
        "typicalGeographicalArea": {
            "centerLatitude": area.center_latitude,
            "centerLongitude": area.center_longitude,
            "radiusKm": area.radius_km,
        },
    }


class ModelServiceClient:
    """Client for the external credit scoring / anomaly detection service"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.ml_service_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def _request(self, method: str, path: str, payload: Dict[str, Any] | None = None) -> Dict[str, Any]:
        """
        Send one request and return the decoded JSON body.

        Raises:
            ModelServiceError: On timeout, HTTP errors, or non-JSON response
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                with external_latency_histogram.labels(service="model").time():
                    response = await client.request(method, f"{self.base_url}{path}", json=payload)
                response.raise_for_status()
                return response.json()

            except httpx.TimeoutException as e:
                external_failure_counter.labels(service="model").inc()
                raise ModelServiceError(f"Model service timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                external_failure_counter.labels(service="model").inc()
                raise ModelServiceError(f"Model service error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                external_failure_counter.labels(service="model").inc()
                raise ModelServiceError(f"Model service unreachable: {e}") from e
            except ValueError as e:
                external_failure_counter.labels(service="model").inc()
                raise ModelServiceError(f"Invalid JSON from model service: {e}") from e

    async def score_credit(self, profile: FinancialProfile, metrics: TransactionMetrics) -> CreditAssessment:
        """
        Score a user from their profile and aggregated transaction metrics.

        Raises:
            ModelServiceError: On transport failure or an out-of-range / malformed response
        """
        data = await self._request(
            "POST",
            settings.ml_score_path,
            {"userProfile": profile_payload(profile), "transactionMetrics": metrics.to_payload()},
        )
        try:
            return parse_assessment(data)
        except (KeyError, ValueError, TypeError) as e:
            raise ModelServiceError(f"Invalid credit score response: {e}") from e

    async def detect_anomaly(
        self,
        transaction: Transaction,
        contextual: ContextualFeatures,
        behavioral: BehavioralContext,
    ) -> AnomalyResult:
        """
        Judge one transaction against its context.

        Raises:
            ModelServiceError: On transport failure or malformed response
        """
        data = await self._request(
            "POST",
            settings.ml_anomaly_path,
            {
                "transactionData": transaction_payload(transaction),
                "contextualFeatures": contextual_payload(contextual),
                "userBehavioralContext": behavioral_payload(behavioral),
            },
        )
        try:
            return parse_anomaly(transaction.transaction_id, data)
        except (KeyError, ValueError, TypeError) as e:
            raise ModelServiceError(f"Invalid anomaly response: {e}") from e

    async def health(self) -> Dict[str, Any]:
        return await self._request("GET", settings.ml_health_path)


def parse_assessment(data: Dict[str, Any]) -> CreditAssessment:
    """Validate and convert a scoring response"""
    score = int(data["creditScore"])
    if not CREDIT_SCORE_MIN <= score <= CREDIT_SCORE_MAX:
        raise ValueError(f"creditScore {score} outside {CREDIT_SCORE_MIN}-{CREDIT_SCORE_MAX}")

    confidence = float(data["confidenceScore"])
    if not 0 <= confidence <= 100:
        raise ValueError(f"confidenceScore {confidence} outside 0-100")

    raw_breakdown = data.get("scoreBreakdown") or {}
    breakdown = {}
    for name, default_weight in DEFAULT_BREAKDOWN_WEIGHTS.items():
        component = raw_breakdown.get(name) or {}
        breakdown[name] = BreakdownComponent(
            score=float(component.get("score", 0)),
            weight=float(component.get("weight", default_weight)),
        )

    return CreditAssessment(
        credit_score=score,
        confidence_score=confidence,
        risk_level=str(data["riskLevel"]),
        risk_category=str(data["riskCategory"]),
        score_breakdown=breakdown,
        recommendations=[str(r) for r in data.get("recommendations", [])],
        improvement_tips=[
            ImprovementTip(
                category=tip["category"],
                suggestion=tip["suggestion"],
                impact_level=tip.get("impactLevel", "medium"),
            )
            for tip in data.get("improvementTips", [])
        ],
    )


def parse_anomaly(transaction_id: str, data: Dict[str, Any]) -> AnomalyResult:
    """Validate and convert an anomaly response"""
    score = float(data["anomalyScore"])
    if not 0 <= score <= 100:
        raise ValueError(f"anomalyScore {score} outside 0-100")

    return AnomalyResult(
        transaction_id=transaction_id,
        is_anomaly=bool(data["isAnomaly"]),
        anomaly_score=score,
        fraud_risk=data.get("fraudRisk") or fraud_risk_level(score),
        detected_patterns=[str(p) for p in data.get("detectedPatterns", [])],
        risk_factors=[
            {
                "factor": str(f["factor"]),
                "weight": float(f.get("weight", 0)),
                "description": f.get("description"),
            }
            for f in data.get("riskFactors", [])
        ],
    )

"""Context features for the anomaly model and roll-up of its verdicts"""

import math
from collections import Counter
from typing import List, Optional, Sequence, Tuple

from creditchain_gateway.domain.models import (
    Transaction,
    FinancialProfile,
    ContextualFeatures,
    BehavioralContext,
    GeographicalArea,
    AnomalyResult,
    AnomalyMetrics,
)
from creditchain_gateway.domain.constants import (
    GEO_CENTER,
    GEO_RADIUS_KM,
    MONTHS_IN_WINDOW,
    TRANSACTION_WINDOW_DAYS,
)

# Placeholder signals. The anomaly model expects these fields but nothing here
# computes them yet.
# TODO: derive location deviation and geographical outlier from distance to
# the user's typical area once transactions carry real coordinates.
LOCATION_DEVIATION_PLACEHOLDER = 0.0
GEOGRAPHICAL_OUTLIER_PLACEHOLDER = False
CONSECUTIVE_SAME_MERCHANT_PLACEHOLDER = 1
SHORT_PERIOD_VELOCITY_PLACEHOLDER = 2
HISTORICAL_ANOMALY_RATE_PLACEHOLDER = 5.0

TOP_N = 5


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _std_dev(values: Sequence[float]) -> float:
    """Population standard deviation"""
    if not values:
        return 0.0
    mean = _mean(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


def chronological(transactions: Sequence[Transaction]) -> List[Transaction]:
    return sorted(transactions, key=lambda t: (t.timestamp, t.transaction_id))


def build_contextual_features(
    transaction: Transaction,
    all_transactions: Sequence[Transaction],
) -> ContextualFeatures:
    """
    Per-transaction features relative to the user's full history.

    Outlier flags are simplified: amount above twice the category average, or
    a merchant seen fewer than twice.
    """
    ordered = chronological(all_transactions)
    index = next(i for i, t in enumerate(ordered) if t.transaction_id == transaction.transaction_id)
    minutes_since_last = (
        (transaction.timestamp - ordered[index - 1].timestamp).total_seconds() / 60 if index > 0 else 0.0
    )

    category_amounts = [t.amount for t in all_transactions if t.category == transaction.category]
    category_avg = _mean(category_amounts)
    all_amounts = [t.amount for t in all_transactions]
    merchant_frequency = sum(1 for t in all_transactions if t.merchant == transaction.merchant)

    return ContextualFeatures(
        time_since_last_transaction=minutes_since_last,
        avg_amount_for_category=category_avg,
        std_dev_amount_for_category=_std_dev(category_amounts),
        user_avg_transaction_amount=_mean(all_amounts),
        user_std_dev_transaction_amount=_std_dev(all_amounts),
        merchant_frequency_for_user=merchant_frequency,
        unusual_time_pattern=transaction.is_late_night,
        amount_outlier_for_category=transaction.amount > category_avg * 2,
        merchant_outlier=merchant_frequency < 2,
        location_deviation_from_usual_patterns=LOCATION_DEVIATION_PLACEHOLDER,
        consecutive_transactions_same_merchant=CONSECUTIVE_SAME_MERCHANT_PLACEHOLDER,
        velocity_of_transactions_in_short_period=SHORT_PERIOD_VELOCITY_PLACEHOLDER,
        geographical_outlier=GEOGRAPHICAL_OUTLIER_PLACEHOLDER,
    )


def build_behavioral_context(transactions: Sequence[Transaction]) -> BehavioralContext:
    """User-level context, computed once per scoring run"""
    ordered = chronological(transactions)
    total_spend = sum(t.amount for t in ordered if t.type == "debit")

    # most_common is stable, so ties keep first-seen chronological order
    categories = [c for c, _ in Counter(t.category for t in ordered).most_common(TOP_N)]
    merchants = [m for m, _ in Counter(t.merchant for t in ordered).most_common(TOP_N)]
    hours = [h for h, _ in Counter(t.hour_of_day for t in ordered).most_common(TOP_N)]

    return BehavioralContext(
        avg_monthly_spending=total_spend / MONTHS_IN_WINDOW,
        typical_transaction_count_per_day=round(len(ordered) / TRANSACTION_WINDOW_DAYS),
        historical_anomaly_rate_for_user=HISTORICAL_ANOMALY_RATE_PLACEHOLDER,
        average_transaction_amount=_mean([t.amount for t in ordered]),
        most_common_categories=categories,
        most_common_merchants=merchants,
        usual_transaction_hours=hours,
        typical_geographical_area=GeographicalArea(
            center_latitude=GEO_CENTER[0],
            center_longitude=GEO_CENTER[1],
            radius_km=GEO_RADIUS_KM,
        ),
    )


def build_context(
    transaction: Transaction,
    all_transactions: Sequence[Transaction],
    profile: Optional[FinancialProfile] = None,
) -> Tuple[ContextualFeatures, BehavioralContext]:
    """Both feature sets for one transaction.

    The profile is accepted for parity with the model contract; none of the
    current features read it.
    """
    return (
        build_contextual_features(transaction, all_transactions),
        build_behavioral_context(all_transactions),
    )


def summarize_anomalies(results: Sequence[AnomalyResult]) -> AnomalyMetrics:
    """Aggregate anomaly metrics over the verdicts that succeeded"""
    analyzed = len(results)
    anomalous = sum(1 for r in results if r.is_anomaly)
    scores = [r.anomaly_score for r in results]

    return AnomalyMetrics(
        total_transactions_analyzed=analyzed,
        anomalous_transactions_count=anomalous,
        anomaly_rate=(anomalous / analyzed) * 100 if analyzed > 0 else 0.0,
        avg_anomaly_score=_mean(scores),
        highest_anomaly_score=max(scores) if scores else 0.0,
    )


def fraud_risk_level(anomaly_score: float) -> str:
    """Band a stored anomaly score: >=80 critical, >=60 high, >=40 medium"""
    if anomaly_score >= 80:
        return "critical"
    elif anomaly_score >= 60:
        return "high"
    elif anomaly_score >= 40:
        return "medium"
    else:
        return "low"

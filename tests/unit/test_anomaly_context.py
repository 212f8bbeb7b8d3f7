"""Unit tests for anomaly context features and verdict roll-up"""

import pytest
from datetime import datetime, timedelta
from creditchain_gateway.domain.models import AnomalyResult
from creditchain_gateway.domain.anomaly_context import (
    build_context,
    build_contextual_features,
    build_behavioral_context,
    summarize_anomalies,
    fraud_risk_level,
    LOCATION_DEVIATION_PLACEHOLDER,
    HISTORICAL_ANOMALY_RATE_PLACEHOLDER,
)

BASE = datetime(2024, 3, 4, 9, 0)


@pytest.fixture
def history(make_txn):
    # Deliberately out of chronological order
    return [
        make_txn(3, 900, "dining", BASE + timedelta(hours=5), merchant="Swiggy"),
        make_txn(1, 100, "dining", BASE, merchant="Swiggy"),
        make_txn(2, 200, "groceries", BASE + timedelta(hours=2), merchant="BigBasket"),
        make_txn(4, 200, "dining", BASE + timedelta(days=1), merchant="Zomato"),
    ]


def test_time_since_last_transaction(history):
    by_id = {t.transaction_id: t for t in history}

    assert build_contextual_features(by_id["T1"], history).time_since_last_transaction == 0.0
    assert build_contextual_features(by_id["T2"], history).time_since_last_transaction == 120.0
    assert build_contextual_features(by_id["T3"], history).time_since_last_transaction == 180.0


def test_category_and_user_statistics(history):
    features = build_contextual_features(history[0], history)

    assert features.avg_amount_for_category == pytest.approx(400.0)  # (900+100+200)/3
    assert features.user_avg_transaction_amount == pytest.approx(350.0)
    # Population standard deviation of 900, 100, 200
    assert features.std_dev_amount_for_category == pytest.approx(355.90, abs=0.01)


def test_outlier_flags(history):
    by_id = {t.transaction_id: t for t in history}

    big = build_contextual_features(by_id["T3"], history)
    assert big.amount_outlier_for_category is True  # 900 > 2 x 400
    assert big.merchant_frequency_for_user == 2
    assert big.merchant_outlier is False

    rare = build_contextual_features(by_id["T4"], history)
    assert rare.merchant_frequency_for_user == 1
    assert rare.merchant_outlier is True


def test_amount_outlier_above_twice_category_average(make_txn):
    txns = [make_txn(i, 100, "fuel", BASE + timedelta(hours=i)) for i in range(5)]
    txns.append(make_txn(9, 1000, "fuel", BASE + timedelta(hours=9)))

    assert build_contextual_features(txns[-1], txns).amount_outlier_for_category is True
    assert build_contextual_features(txns[0], txns).amount_outlier_for_category is False


def test_placeholders_are_constant(history):
    features = build_contextual_features(history[1], history)

    assert features.location_deviation_from_usual_patterns == LOCATION_DEVIATION_PLACEHOLDER
    assert features.geographical_outlier is False
    assert features.consecutive_transactions_same_merchant == 1
    assert features.velocity_of_transactions_in_short_period == 2


def test_behavioral_context(history):
    context = build_behavioral_context(history)

    assert context.avg_monthly_spending == pytest.approx(1400 / 6)
    assert context.average_transaction_amount == pytest.approx(350.0)
    assert context.typical_transaction_count_per_day == 0
    assert context.historical_anomaly_rate_for_user == HISTORICAL_ANOMALY_RATE_PLACEHOLDER
    assert context.most_common_categories == ["dining", "groceries"]
    assert context.most_common_merchants == ["Swiggy", "BigBasket", "Zomato"]
    assert context.typical_geographical_area.center_latitude == 12.9716
    assert context.typical_geographical_area.radius_km == 50


def test_behavioral_context_top_five_ties_keep_first_seen_order(make_txn):
    txns = [make_txn(i, 100, "other", BASE + timedelta(hours=i), merchant=f"M{i}") for i in range(7)]

    context = build_behavioral_context(list(reversed(txns)))

    assert context.most_common_merchants == ["M0", "M1", "M2", "M3", "M4"]


def test_typical_count_assumes_180_day_window(sample_transactions):
    assert build_behavioral_context(sample_transactions).typical_transaction_count_per_day == round(75 / 180)


def test_build_context_returns_both_feature_sets(history, sample_profile):
    contextual, behavioral = build_context(history[0], history, sample_profile)

    assert contextual == build_contextual_features(history[0], history)
    assert behavioral == build_behavioral_context(history)


def result(txn_id: str, is_anomaly: bool, score: float) -> AnomalyResult:
    return AnomalyResult(transaction_id=txn_id, is_anomaly=is_anomaly, anomaly_score=score, fraud_risk="low")


def test_summarize_anomalies():
    metrics = summarize_anomalies([result("a", True, 90.0), result("b", False, 10.0), result("c", False, 20.0)])

    assert metrics.total_transactions_analyzed == 3
    assert metrics.anomalous_transactions_count == 1
    assert metrics.anomaly_rate == pytest.approx(100 / 3)
    assert metrics.avg_anomaly_score == pytest.approx(40.0)
    assert metrics.highest_anomaly_score == 90.0


def test_summarize_no_results():
    metrics = summarize_anomalies([])

    assert metrics.total_transactions_analyzed == 0
    assert metrics.anomaly_rate == 0.0
    assert metrics.avg_anomaly_score == 0.0
    assert metrics.highest_anomaly_score == 0.0


@pytest.mark.parametrize(
    "score,level",
    [(0, "low"), (39.9, "low"), (40, "medium"), (59.9, "medium"), (60, "high"), (79.9, "high"), (80, "critical"), (100, "critical")],
)
def test_fraud_risk_level(score, level):
    assert fraud_risk_level(score) == level

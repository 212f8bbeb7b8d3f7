"""Unit tests for transaction metrics aggregation"""

import dataclasses
import pytest
from datetime import date, datetime, timedelta
from creditchain_gateway.domain.metrics import aggregate, spending_by_category
from creditchain_gateway.domain.constants import CATEGORIES
from creditchain_gateway.domain.exceptions import InsufficientDataError
from creditchain_gateway.domain.transaction_generator import generate_transactions


@pytest.fixture
def small_history(make_txn):
    base = datetime(2024, 3, 4, 12, 0)  # Monday
    return [
        make_txn(1, 100, "groceries", base, merchant="BigBasket"),
        make_txn(2, 300, "dining", base + timedelta(days=1), merchant="Swiggy"),
        make_txn(3, 50000, "salary", base + timedelta(days=2), txn_type="credit", merchant="HDFC Bank"),
        make_txn(4, 600, "shopping", base + timedelta(days=5, hours=11), merchant="Amazon"),  # Saturday 23:00
    ]


def test_aggregate_empty_raises():
    with pytest.raises(InsufficientDataError):
        aggregate([])


def test_aggregate_counts_and_amounts(small_history):
    metrics = aggregate(small_history)

    assert metrics.total_transactions_count == 4
    assert metrics.num_credit_transactions == 1
    assert metrics.num_debit_transactions == 3
    assert metrics.avg_transaction_amount == pytest.approx((100 + 300 + 50000 + 600) / 4)
    assert metrics.max_transaction_amount == 50000
    assert metrics.min_transaction_amount == 100
    assert metrics.number_of_unique_merchants == 4
    assert metrics.spread_of_transactions_across_categories == 3


def test_aggregate_daily_rate_uses_elapsed_days(small_history):
    """Span is 5 days 11 hours -> ceil -> 6 days"""
    metrics = aggregate(small_history)
    assert metrics.avg_daily_transactions == pytest.approx(4 / 6)
    assert metrics.average_transaction_frequency_per_day == metrics.avg_daily_transactions
    assert metrics.transaction_velocity_pattern == 50.0


def test_aggregate_as_of_extends_span(small_history):
    as_of = datetime(2024, 3, 14, 12, 0)
    assert aggregate(small_history, as_of=as_of).avg_daily_transactions == pytest.approx(4 / 10)


def test_aggregate_single_transaction_counts_one_day(make_txn):
    txn = make_txn(1, 500, "fuel", datetime(2024, 1, 1, 10, 0))
    assert aggregate([txn]).avg_daily_transactions == 1.0


def test_aggregate_needs_vs_wants(small_history):
    """Groceries is a need; dining and shopping are wants"""
    metrics = aggregate(small_history)
    assert metrics.percentage_spending_needs_vs_wants == pytest.approx(100 / 1000 * 100)


def test_aggregate_needs_share_zero_without_debits(make_txn):
    credit = make_txn(1, 50000, "salary", datetime(2024, 1, 1, 10, 0), txn_type="credit")
    assert aggregate([credit]).percentage_spending_needs_vs_wants == 0.0


def test_aggregate_weekend_and_late_night(small_history):
    metrics = aggregate(small_history)
    assert metrics.weekend_spending_pattern == pytest.approx(25.0)
    assert metrics.late_night_transaction_frequency == pytest.approx(25.0)


def test_aggregate_heuristic_proxies(small_history, make_txn):
    metrics = aggregate(small_history)
    assert metrics.loan_repayment_consistency == 0.0
    assert metrics.credit_card_bill_payment_regularity == 80.0
    assert metrics.recurring_transaction_count == 1

    with_loan = small_history + [make_txn(5, 5000, "loan_payment", datetime(2024, 3, 6, 9, 0))]
    assert aggregate(with_loan).loan_repayment_consistency == 85.0


def test_monthly_spending_covers_every_category(small_history):
    monthly = aggregate(small_history).monthly_spending_by_category

    assert set(monthly) == set(CATEGORIES)
    assert monthly["groceries"] == pytest.approx(100 / 6)
    assert monthly["travel"] == 0.0
    # Credits never count as spend
    assert monthly["salary"] == 0.0


def test_payload_uses_model_field_names(small_history):
    payload = aggregate(small_history).to_payload()

    assert payload["totalTransactionsCount"] == 4
    assert payload["percentageSpendingNeedsVsWants"] == pytest.approx(10.0)
    assert "avgMonthlySpendingLoanPayment" in payload
    assert payload["avgMonthlySpendingGroceries"] == pytest.approx(100 / 6)
    assert len([k for k in payload if k.startswith("avgMonthlySpending")]) == len(CATEGORIES)


def test_generated_history_totals(sample_transactions):
    metrics = aggregate(sample_transactions)
    spend = spending_by_category(sample_transactions)

    assert metrics.num_credit_transactions + metrics.num_debit_transactions == metrics.total_transactions_count
    for category in CATEGORIES:
        assert metrics.monthly_spending_by_category[category] * 6 == pytest.approx(spend.get(category, 0))


def test_end_to_end_scenario(sample_profile):
    """Income 60000, expenses 45000, 75 transactions"""
    profile = dataclasses.replace(
        sample_profile,
        personal_info=dataclasses.replace(sample_profile.personal_info, monthly_income=60000, monthly_expenses=45000),
    )
    transactions = generate_transactions("user-e2e", profile, count=75, reference_date=date(2024, 6, 30))

    metrics = aggregate(transactions)

    assert metrics.total_transactions_count == 75
    assert metrics.avg_transaction_amount > 0
    assert 0 <= metrics.percentage_spending_needs_vs_wants <= 100

"""Deterministic synthetic transaction history"""

from datetime import date, timedelta
from typing import List, Optional

from creditchain_gateway.domain.models import FinancialProfile, Transaction
from creditchain_gateway.domain.profile_generator import generate_seed
from creditchain_gateway.domain.constants import (
    CATEGORIES,
    CREDIT_CATEGORIES,
    CATEGORY_MULTIPLIERS,
    DEFAULT_CATEGORY_MULTIPLIER,
    MERCHANTS,
    CITIES,
    STATES,
    PAYMENT_METHODS,
    GEO_CENTER,
    TRANSACTION_WINDOW_DAYS,
    MIN_DEBIT_AMOUNT,
    CURRENCY,
)
from creditchain_gateway.utils.date_utils import window_start


def generate_transactions(
    user_id: str,
    profile: FinancialProfile,
    count: int = 75,
    reference_date: Optional[date] = None,
    window_days: int = TRANSACTION_WINDOW_DAYS,
) -> List[Transaction]:
    """
    Generate `count` transactions spread over the trailing window.

    Requirements:
    - One seed per index, hashed from "{user_id}_{i}"
    - 80/20 debit/credit split; credits are salary, investment or business
    - Debits scale with the daily budget (monthly expenses / 30) and the
      category multiplier, varied by 0.5x-1.49x, never below 10
    - Salary credits equal the monthly income
    - Output sorted by timestamp ascending

    Args:
        user_id: Owner of the transactions; also part of every seed
        profile: Financial profile supplying income and expenses
        count: Number of transactions to emit
        reference_date: End of the window (default: today)
        window_days: Length of the window in days

    Returns:
        Transactions ordered oldest first, anomaly fields unset
    """
    if reference_date is None:
        reference_date = date.today()

    start = window_start(reference_date, window_days)
    daily_budget = profile.personal_info.monthly_expenses / 30

    transactions = []
    for i in range(count):
        seed = generate_seed(f"{user_id}_{i}")

        hour = seed % 24
        timestamp = start + timedelta(days=seed % window_days, hours=hour, minutes=(seed * 7) % 60)
        day_of_week = timestamp.weekday()

        txn_type = "debit" if seed % 10 < 8 else "credit"
        if txn_type == "credit":
            category = CREDIT_CATEGORIES[seed % len(CREDIT_CATEGORIES)]
            if category == "salary":
                amount = profile.personal_info.monthly_income
            else:
                amount = 1000 + (seed % 50000)
        else:
            category = CATEGORIES[seed % len(CATEGORIES)]
            base_amount = daily_budget * CATEGORY_MULTIPLIERS.get(category, DEFAULT_CATEGORY_MULTIPLIER)
            variation = 0.5 + (seed % 100) / 100
            amount = max(int(base_amount * variation), MIN_DEBIT_AMOUNT)

        merchant = MERCHANTS[seed % len(MERCHANTS)]
        jitter = (seed % 1000) / 10000

        transactions.append(
            Transaction(
                transaction_id=f"TXN_{user_id}_{i:03d}",
                user_id=user_id,
                amount=amount,
                type=txn_type,
                category=category,
                timestamp=timestamp,
                merchant=merchant,
                description=f"{category} transaction at {merchant}",
                balance_after_transaction=50000 + (seed % 200000),
                latitude=GEO_CENTER[0] + jitter,
                longitude=GEO_CENTER[1] + jitter,
                city=CITIES[seed % len(CITIES)],
                state=STATES[seed % len(STATES)],
                payment_method=PAYMENT_METHODS[seed % len(PAYMENT_METHODS)],
                hour_of_day=hour,
                day_of_week=day_of_week,
                is_weekend=day_of_week >= 5,
                is_late_night=hour >= 22 or hour <= 5,
                currency=CURRENCY,
            )
        )

    # Seeds carry no temporal order; id breaks ties so the order is total
    transactions.sort(key=lambda t: (t.timestamp, t.transaction_id))
    return transactions

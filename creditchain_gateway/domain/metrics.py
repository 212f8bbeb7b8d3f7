"""Transaction metrics aggregation - feature vector for the credit scoring model"""

from datetime import datetime
from typing import Dict, List, Optional

from creditchain_gateway.domain.models import Transaction, TransactionMetrics
from creditchain_gateway.domain.exceptions import InsufficientDataError
from creditchain_gateway.domain.constants import CATEGORIES, NEEDS_CATEGORIES, MONTHS_IN_WINDOW
from creditchain_gateway.utils.date_utils import elapsed_days


def spending_by_category(transactions: List[Transaction]) -> Dict[str, int]:
    """Total debit amount per category, only for categories with spend"""
    totals: Dict[str, int] = {}
    for txn in transactions:
        if txn.type == "debit":
            totals[txn.category] = totals.get(txn.category, 0) + txn.amount
    return totals


def aggregate(transactions: List[Transaction], as_of: Optional[datetime] = None) -> TransactionMetrics:
    """
    Reduce a transaction sequence into the metrics consumed by the scoring model.

    Requirements:
    - Counts, mean/max/min amount over all transactions
    - Daily rate = count / days elapsed since the earliest transaction
    - Monthly average debit spend for every category (window assumed 6 months)
    - Needs share = needs-category debit spend / total debit spend (percent)
    - Weekend and late-night shares (percent of all transactions)
    - Behavioral proxies use fixed heuristics, not pattern detection

    Args:
        transactions: Any order; not mutated
        as_of: End of the elapsed-day span (default: latest transaction)
    """
    if not transactions:
        raise InsufficientDataError("No transaction history available")

    total_count = len(transactions)
    debits = [t for t in transactions if t.type == "debit"]
    credits = [t for t in transactions if t.type == "credit"]
    amounts = [t.amount for t in transactions]

    earliest = min(t.timestamp for t in transactions)
    if as_of is None:
        as_of = max(t.timestamp for t in transactions)
    avg_daily = total_count / elapsed_days(earliest, as_of)

    category_spend = spending_by_category(transactions)
    monthly_spending = {
        category: category_spend.get(category, 0) / MONTHS_IN_WINDOW for category in CATEGORIES
    }

    total_spend = sum(t.amount for t in debits)
    needs_spend = sum(t.amount for t in debits if t.category in NEEDS_CATEGORIES)
    needs_share = (needs_spend / total_spend) * 100 if total_spend > 0 else 0.0

    weekend_share = sum(1 for t in transactions if t.is_weekend) / total_count * 100
    late_night_share = sum(1 for t in transactions if t.is_late_night) / total_count * 100

    return TransactionMetrics(
        total_transactions_count=total_count,
        num_credit_transactions=len(credits),
        num_debit_transactions=len(debits),
        avg_transaction_amount=sum(amounts) / total_count,
        max_transaction_amount=max(amounts),
        min_transaction_amount=min(amounts),
        avg_daily_transactions=avg_daily,
        monthly_spending_by_category=monthly_spending,
        percentage_spending_needs_vs_wants=needs_share,
        spread_of_transactions_across_categories=len(category_spend),
        number_of_unique_merchants=len({t.merchant for t in transactions}),
        weekend_spending_pattern=weekend_share,
        late_night_transaction_frequency=late_night_share,
        # Heuristic proxies
        loan_repayment_consistency=85.0 if category_spend.get("loan_payment") else 0.0,
        credit_card_bill_payment_regularity=80.0,
        recurring_transaction_count=int(total_count * 0.3),
        average_transaction_frequency_per_day=avg_daily,
        transaction_velocity_pattern=75.0 if avg_daily > 2 else 50.0,
    )

"""Deterministic financial profile synthesis from identity strings"""

import hashlib
from creditchain_gateway.domain.models import (
    IdentitySeed,
    FinancialProfile,
    PersonalInfo,
    ExistingLoans,
    CreditCards,
    BankAccount,
    AlternativeFactors,
    BehavioralPatterns,
    CalculatedRatios,
)
from creditchain_gateway.domain.constants import (
    EMPLOYMENT_TYPES,
    ACCOUNT_TYPES,
    LOAN_TYPES,
    COMPANIES,
    DESIGNATIONS,
)


def generate_seed(value: str, length: int = 4) -> int:
    """
    Map a string to an unsigned integer seed.

    The seed is the first `length` hex characters of the MD5 digest, so the
    default yields a 16-bit value. Identical input always yields the same seed;
    this is the only entropy source for synthetic data.
    """
    digest = hashlib.md5(value.encode("utf-8")).hexdigest()
    return int(digest[:length], 16)


def generate_profile(user_id: str, identity: IdentitySeed) -> FinancialProfile:
    """
    Derive a reproducible financial profile for a user.

    Seeds:
    - p (PAN): age, income, employment, employer, account type, several scores
    - a (Aadhaar): expenses, designation, loans, balance, several scores
    - c (card): credit cards, account age, several scores

    Every field is `base + seed % range` (or a multiple of it); ratios are
    derived from the generated fields afterwards.
    """
    p = generate_seed(identity.pan_number)
    a = generate_seed(identity.aadhaar_number)
    c = generate_seed(identity.credit_card_number)

    # Personal info: income between 30k and 510k, expenses 70-89% of it
    age = 18 + (p % 48)
    monthly_income = 15000 + (1 + (p % 33)) * 15000
    monthly_expenses = int(monthly_income * (0.70 + (a % 20) / 100))
    personal_info = PersonalInfo(
        age=age,
        monthly_income=monthly_income,
        monthly_expenses=monthly_expenses,
        employment_type=EMPLOYMENT_TYPES[p % len(EMPLOYMENT_TYPES)],
        experience_years=min(age - 18, 1 + (p % 30)),
        company_name=COMPANIES[p % len(COMPANIES)],
        designation=DESIGNATIONS[a % len(DESIGNATIONS)],
    )

    total_loan = (a % 25) * 40000
    if total_loan > 0:
        active_loans = 1 + (a % 3)
        existing_loans = ExistingLoans(
            total_amount=total_loan,
            monthly_emi=int(total_loan * 0.015),
            loan_types=LOAN_TYPES[: min(active_loans, 3)],
            active_loan_count=active_loans,
        )
    else:
        existing_loans = ExistingLoans(total_amount=0, monthly_emi=0, loan_types=[], active_loan_count=0)

    total_limit = (1 + (c % 100)) * 10000
    utilization = c % 80
    credit_cards = CreditCards(
        total_limit=total_limit,
        current_utilization=utilization,
        utilization_amount=total_limit * utilization // 100,
        card_count=1 + (c % 4) if total_limit > 0 else 0,
    )

    bank_accounts = BankAccount(
        account_type=ACCOUNT_TYPES[p % len(ACCOUNT_TYPES)],
        average_balance=5000 + (a % 100) * 5000,
        account_age=1 + (c % 15),
    )

    alternative_factors = AlternativeFactors(
        digital_payment_score=30 + (p % 70),
        social_media_score=20 + (a % 80),
        app_usage_score=40 + (c % 60),
        location_stability_score=50 + (p % 50),
        phone_usage_pattern=30 + (a % 70),
    )

    behavioral_patterns = BehavioralPatterns(
        payment_regularity=60 + (c % 40),
        transaction_frequency=40 + (p % 60),
        financial_discipline=50 + (a % 50),
        risk_tolerance=30 + (c % 70),
    )

    return FinancialProfile(
        user_id=user_id,
        personal_info=personal_info,
        existing_loans=existing_loans,
        credit_cards=credit_cards,
        bank_accounts=bank_accounts,
        alternative_factors=alternative_factors,
        behavioral_patterns=behavioral_patterns,
        calculated_ratios=calculate_ratios(personal_info, existing_loans, credit_cards),
    )


def calculate_ratios(
    personal_info: PersonalInfo,
    existing_loans: ExistingLoans,
    credit_cards: CreditCards,
) -> CalculatedRatios:
    """Income/expense, debt/income % and utilization %; zero denominators give 0"""
    income = personal_info.monthly_income
    expenses = personal_info.monthly_expenses

    income_to_expense = income / expenses if expenses > 0 else 0.0
    debt_to_income = (existing_loans.monthly_emi / income) * 100 if income > 0 else 0.0
    utilization = (
        (credit_cards.utilization_amount / credit_cards.total_limit) * 100
        if credit_cards.total_limit > 0
        else 0.0
    )

    return CalculatedRatios(
        income_to_expense_ratio=income_to_expense,
        debt_to_income_ratio=debt_to_income,
        credit_utilization_ratio=utilization,
    )


def derive_wallet_address(user_id: str, identity: IdentitySeed) -> str:
    """Stable 20-byte hex address used as the user's ledger account"""
    digest = hashlib.sha256(f"wallet:{user_id}:{identity.pan_number}".encode("utf-8")).hexdigest()
    return "0x" + digest[:40]

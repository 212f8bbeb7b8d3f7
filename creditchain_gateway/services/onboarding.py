"""Profile generation request: first call synthesizes, later calls re-fetch"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from creditchain_gateway.config import Settings, settings as default_settings
from creditchain_gateway.domain.exceptions import NotFoundError, PersistenceError
from creditchain_gateway.domain.models import IdentitySeed, FinancialProfile
from creditchain_gateway.domain.profile_generator import generate_profile, derive_wallet_address
from creditchain_gateway.domain.transaction_generator import generate_transactions
from creditchain_gateway.infrastructure.database.models import User
from creditchain_gateway.infrastructure.database.repositories import (
    UserRepository,
    ProfileRepository,
    TransactionRepository,
    profile_to_domain,
)

logger = logging.getLogger(__name__)


@dataclass
class OnboardingResult:
    user: User
    profile: FinancialProfile
    transaction_count: int
    created: bool


def generate_or_fetch_profile(
    db: Session,
    user_id: uuid.UUID,
    reference_date: Optional[date] = None,
    config: Optional[Settings] = None,
) -> OnboardingResult:
    """
    Generate a user's profile and transactions once; return the stored copy after that.

    Flow:
    1. Load the user (NotFound if missing)
    2. Existing profile -> return it unchanged, created=False
    3. Otherwise generate profile + transactions, assign wallet, mark verified
    4. Commit once

    Raises:
        NotFoundError: Unknown user
        PersistenceError: Any write failure (the session is rolled back)
    """
    config = config or default_settings
    user = UserRepository(db).get_user(user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")

    profile_repo = ProfileRepository(db)
    txn_repo = TransactionRepository(db)

    existing = profile_repo.get_by_user(user.id)
    if existing is not None:
        logger.info("Profile already generated", extra={"user_id": str(user.id), "step": "profile_fetch"})
        return OnboardingResult(
            user=user,
            profile=profile_to_domain(existing),
            transaction_count=txn_repo.count_for_user(user.id),
            created=False,
        )

    identity = IdentitySeed(
        pan_number=user.pan_number,
        aadhaar_number=user.aadhaar_number,
        credit_card_number=user.credit_card_number,
    )
    profile = generate_profile(str(user.id), identity)
    transactions = generate_transactions(
        str(user.id),
        profile,
        count=config.transaction_count,
        reference_date=reference_date,
        window_days=config.transaction_window_days,
    )

    try:
        profile_repo.create_profile(user.id, profile)
        txn_repo.bulk_create(user.id, transactions)
        user.wallet_address = derive_wallet_address(str(user.id), identity)
        user.is_verified = True
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Profile persistence failed: {e}", extra={"user_id": str(user.id), "step": "profile_generate"})
        raise PersistenceError(f"Could not store profile for user {user.id}") from e

    logger.info(
        "Profile generated",
        extra={"user_id": str(user.id), "step": "profile_generate", "transactions": len(transactions)},
    )
    return OnboardingResult(user=user, profile=profile, transaction_count=len(transactions), created=True)

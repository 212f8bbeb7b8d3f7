"""User registration, contact updates, profile generation and dashboard endpoints"""

import logging
import uuid
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from creditchain_gateway.api.v1.schemas import (
    UserCreateRequest,
    UserUpdateRequest,
    UserResponse,
    FinancialProfileSchema,
    ProfileGenerationResponse,
    UserProfileResponse,
    DashboardResponse,
    TransactionSummary,
    TransactionSchema,
    CategorySpend,
)
from creditchain_gateway.api.dependencies import get_request_id, parse_uuid
from creditchain_gateway.domain.exceptions import DuplicateRecordError, NotFoundError, PersistenceError
from creditchain_gateway.domain.models import IdentitySeed, FinancialProfile
from creditchain_gateway.infrastructure.database.models import User
from creditchain_gateway.infrastructure.database.session import get_db
from creditchain_gateway.infrastructure.database.repositories import (
    UserRepository,
    ProfileRepository,
    TransactionRepository,
    CreditScoreRepository,
    profile_to_domain,
)
from creditchain_gateway.services.onboarding import generate_or_fetch_profile

router = APIRouter()


def user_response(user: User) -> UserResponse:
    return UserResponse(
        user_id=str(user.id),
        name=user.name,
        email=user.email,
        phone=user.phone,
        is_verified=user.is_verified,
        wallet_address=user.wallet_address,
        created_at=user.created_at.isoformat() if user.created_at else None,
    )


def profile_schema(profile: FinancialProfile) -> FinancialProfileSchema:
    return FinancialProfileSchema(**profile.to_sections())


def transaction_summary(txn_repo: TransactionRepository, user_id: uuid.UUID) -> TransactionSummary:
    total_amount, avg_amount = txn_repo.totals(user_id)
    return TransactionSummary(
        total_transactions=txn_repo.count_for_user(user_id),
        total_amount=total_amount,
        avg_amount=round(avg_amount, 2),
    )


def load_user(db: Session, user_id: str) -> User:
    user = UserRepository(db).get_user(parse_uuid(user_id, "user ID"))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.post("/users", response_model=UserResponse, status_code=201)
def register_user(
    request_body: UserCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Register a user with the identity strings their synthetic data derives from.

    Email and each identity string must be unique.
    """
    request_id = get_request_id(request)
    identity = IdentitySeed(
        pan_number=request_body.pan_number,
        aadhaar_number=request_body.aadhaar_number,
        credit_card_number=request_body.credit_card_number,
    )
    user_repo = UserRepository(db)

    try:
        conflict = user_repo.find_conflict(request_body.email, identity)
        if conflict:
            raise DuplicateRecordError(f"A user with this {conflict} already exists")

        user = user_repo.create_user(request_body.name, request_body.email, request_body.phone, identity)
        db.commit()

    except DuplicateRecordError as e:
        db.rollback()
        logging.warning(f"Duplicate registration: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))

    except IntegrityError as e:
        # Lost a race with a concurrent registration
        db.rollback()
        logging.warning(f"Registration integrity error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail="User already exists")

    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Registration failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    logging.info("User registered", extra={"request_id": request_id, "user_id": str(user.id)})
    return user_response(user)


@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    request_body: UserUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Update name and/or phone. Email and identity strings cannot change."""
    request_id = get_request_id(request)
    user = load_user(db, user_id)

    try:
        UserRepository(db).update_contact(user, name=request_body.name, phone=request_body.phone)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"User update failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    logging.info("User updated", extra={"request_id": request_id, "user_id": str(user.id)})
    return user_response(user)


@router.post("/users/{user_id}/profile", response_model=ProfileGenerationResponse)
def generate_profile(user_id: str, request: Request, db: Session = Depends(get_db)):
    """
    Generate the user's financial profile and transaction history.

    Idempotent: once generated, the stored profile is returned unchanged
    with created=false.
    """
    request_id = get_request_id(request)
    user_uuid = parse_uuid(user_id, "user ID")

    try:
        result = generate_or_fetch_profile(db, user_uuid)

    except NotFoundError as e:
        logging.warning(f"Profile generation for unknown user: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=404, detail=str(e))

    except PersistenceError as e:
        logging.error(f"Profile generation failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return ProfileGenerationResponse(
        user=user_response(result.user),
        profile=profile_schema(result.profile),
        transaction_count=result.transaction_count,
        created=result.created,
    )


@router.get("/users/{user_id}/profile", response_model=UserProfileResponse)
def get_user_profile(user_id: str, db: Session = Depends(get_db)):
    """User details, generated profile (if any) and a transaction summary"""
    user = load_user(db, user_id)
    profile_record = ProfileRepository(db).get_by_user(user.id)

    return UserProfileResponse(
        user=user_response(user),
        profile=profile_schema(profile_to_domain(profile_record)) if profile_record else None,
        transaction_summary=transaction_summary(TransactionRepository(db), user.id),
    )


@router.get("/users/{user_id}/dashboard", response_model=DashboardResponse)
def get_dashboard(user_id: str, db: Session = Depends(get_db)):
    """
    Dashboard view.

    Returns:
        Latest score, transaction summary, 10 most recent transactions and
        spend by category
    """
    user = load_user(db, user_id)
    txn_repo = TransactionRepository(db)
    latest = CreditScoreRepository(db).latest_for_user(user.id)

    return DashboardResponse(
        user=user_response(user),
        latest_credit_score=latest.credit_score if latest else None,
        transaction_summary=transaction_summary(txn_repo, user.id),
        recent_transactions=[TransactionSchema.model_validate(t) for t in txn_repo.recent_for_user(user.id, limit=10)],
        spending_by_category=[CategorySpend(**row) for row in txn_repo.spending_by_category(user.id)],
    )

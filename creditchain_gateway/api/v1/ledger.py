"""Ledger status, identity registration, verification, anchored-score history and pinned content lookup"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Path, Request
from sqlalchemy.orm import Session

from creditchain_gateway.api.v1.schemas import (
    LedgerVerifyRequest,
    LedgerVerifyResponse,
    LedgerHistoryItem,
    LedgerHistoryResponse,
    LedgerStatusResponse,
    IdentityRegistrationRequest,
    IdentityRegistrationResponse,
    ContentResponse,
)
from creditchain_gateway.api.v1.credit_score import score_summary
from creditchain_gateway.api.dependencies import (
    get_request_id,
    get_ledger_client,
    get_content_client,
    parse_uuid,
)
from creditchain_gateway.domain.exceptions import LedgerError, ContentStoreError
from creditchain_gateway.config import settings
from creditchain_gateway.domain.integrity import verify_data_integrity, identity_hash
from creditchain_gateway.infrastructure.clients.ledger import LedgerClient
from creditchain_gateway.infrastructure.clients.content_store import ContentStoreClient
from creditchain_gateway.infrastructure.database.session import get_db
from creditchain_gateway.infrastructure.database.repositories import UserRepository, CreditScoreRepository

router = APIRouter()


@router.get("/ledger/status", response_model=LedgerStatusResponse)
async def get_ledger_status(request: Request, ledger_client: LedgerClient = Depends(get_ledger_client)):
    """Network and head block as reported by the ledger gateway; 503 when it cannot be reached"""
    request_id = get_request_id(request)
    try:
        status = await ledger_client.status()
    except LedgerError as e:
        logging.error(f"Ledger status check failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Ledger service unavailable")

    return LedgerStatusResponse(
        status="connected",
        network=status.network,
        chain_id=status.chain_id,
        current_block=status.current_block,
        gas_price=status.gas_price,
        signer_address=status.signer_address,
    )


@router.post("/ledger/register", response_model=IdentityRegistrationResponse)
async def register_identity(
    request_body: IdentityRegistrationRequest,
    request: Request,
    db: Session = Depends(get_db),
    ledger_client: LedgerClient = Depends(get_ledger_client),
):
    """
    Register a user's wallet on the ledger with salted hashes of their PAN and Aadhaar.

    The wallet is assigned at profile generation, so that has to happen first.
    """
    request_id = get_request_id(request)
    user = UserRepository(db).get_user(parse_uuid(request_body.user_id, "user ID"))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if not user.wallet_address:
        raise HTTPException(status_code=400, detail="Wallet address not assigned; generate the profile first")

    try:
        receipt = await ledger_client.register_identity(
            user.wallet_address,
            identity_hash(user.pan_number, settings.identity_hash_salt),
            identity_hash(user.aadhaar_number, settings.identity_hash_salt),
        )
    except LedgerError as e:
        logging.error(f"Identity registration failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Ledger service unavailable")

    logging.info(
        "Identity registered on ledger",
        extra={"request_id": request_id, "user_id": str(user.id), "tx_ref": receipt.tx_ref},
    )
    return IdentityRegistrationResponse(
        wallet_address=user.wallet_address,
        tx_ref=receipt.tx_ref,
        block_ref=receipt.block_ref,
        explorer_url=ledger_client.explorer_url(receipt.tx_ref),
    )


@router.post("/ledger/verify", response_model=LedgerVerifyResponse)
async def verify_transaction(
    request_body: LedgerVerifyRequest,
    request: Request,
    db: Session = Depends(get_db),
    ledger_client: LedgerClient = Depends(get_ledger_client),
    content_client: ContentStoreClient = Depends(get_content_client),
):
    """
    Verify a ledger transaction.

    Returns:
        Receipt status plus, when a stored result carries this reference,
        that result and the metadata of its pinned report
    """
    request_id = get_request_id(request)
    user_uuid = parse_uuid(request_body.user_id, "user ID") if request_body.user_id else None

    try:
        verification = await ledger_client.verify(request_body.tx_ref)
    except LedgerError as e:
        logging.error(f"Ledger verification failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Ledger service unavailable")

    record = CreditScoreRepository(db).find_by_ledger_ref(request_body.tx_ref, user_uuid)

    content_metadata = None
    if record and record.content_ref:
        try:
            blob = await content_client.get(record.content_ref)
            content_metadata = blob.get("metadata")
        except ContentStoreError as e:
            logging.warning(f"Pinned report unavailable: {e}", extra={"request_id": request_id})

    return LedgerVerifyResponse(
        tx_ref=request_body.tx_ref,
        is_valid=verification.is_valid,
        block_ref=verification.block_ref,
        timestamp=verification.timestamp,
        gas_used=verification.gas_used,
        explorer_url=ledger_client.explorer_url(request_body.tx_ref),
        result=score_summary(record) if record else None,
        content_metadata=content_metadata,
    )


@router.get("/ledger/history/{wallet_address}", response_model=LedgerHistoryResponse)
async def get_ledger_history(
    request: Request,
    wallet_address: str = Path(..., pattern="^0x[0-9a-fA-F]{40}$"),
    db: Session = Depends(get_db),
    ledger_client: LedgerClient = Depends(get_ledger_client),
    content_client: ContentStoreClient = Depends(get_content_client),
):
    """Anchored scores for a registered wallet, enriched with stored risk level/category"""
    request_id = get_request_id(request)
    user = UserRepository(db).get_by_wallet(wallet_address)
    if not user:
        raise HTTPException(status_code=404, detail="Wallet not registered")

    try:
        entries = await ledger_client.fetch_history(wallet_address)
    except LedgerError as e:
        logging.error(f"Ledger history failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Ledger service unavailable")

    score_repo = CreditScoreRepository(db)
    items = []
    for entry in entries:
        record = score_repo.find_by_content_ref(entry.content_ref, user.id)
        items.append(
            LedgerHistoryItem(
                score=entry.score,
                data_hash=entry.data_hash,
                timestamp=entry.timestamp,
                content_ref=entry.content_ref,
                tx_ref=entry.tx_ref,
                block_ref=entry.block_ref,
                risk_level=record.risk_level if record else None,
                risk_category=record.risk_category if record else None,
                gateway_url=content_client.gateway_link(entry.content_ref),
            )
        )

    return LedgerHistoryResponse(wallet_address=wallet_address, entries=items)


@router.get("/ledger/content/{content_ref}", response_model=ContentResponse)
async def get_pinned_content(
    content_ref: str,
    request: Request,
    db: Session = Depends(get_db),
    content_client: ContentStoreClient = Depends(get_content_client),
):
    """
    Fetch a pinned score report.

    Only references held by a stored result are served; the response says
    whether the report still matches its recorded integrity hash.
    """
    request_id = get_request_id(request)
    if not CreditScoreRepository(db).find_by_content_ref(content_ref):
        raise HTTPException(status_code=404, detail="Content not found")

    try:
        blob = await content_client.get(content_ref)
    except ContentStoreError as e:
        logging.error(f"Content fetch failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Content store unavailable")

    document = blob.get("creditScoreResult")
    expected_hash = (blob.get("metadata") or {}).get("dataIntegrityHash")
    integrity_valid = bool(document and expected_hash and verify_data_integrity(document, expected_hash))

    return ContentResponse(
        content_ref=content_ref,
        gateway_url=content_client.gateway_link(content_ref),
        integrity_valid=integrity_valid,
        content=blob,
    )

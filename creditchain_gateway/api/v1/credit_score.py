"""Credit scoring runs, score history and anchoring retry"""

import logging
from typing import Any, Dict
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from creditchain_gateway.api.v1.schemas import (
    CreditScoreResponse,
    ScoringRunResponse,
    CreditScoreSummary,
    CreditScoreHistoryResponse,
    LedgerReference,
    ContentReference,
)
from creditchain_gateway.api.v1.transactions import pagination
from creditchain_gateway.api.v1.users import load_user
from creditchain_gateway.api.dependencies import (
    get_request_id,
    get_orchestrator,
    get_ledger_client,
    get_content_client,
    parse_uuid,
)
from creditchain_gateway.domain.exceptions import (
    NotFoundError,
    PreconditionFailedError,
    RunInProgressError,
    AlreadyAnchoredError,
    ExternalServiceError,
    PersistenceError,
)
from creditchain_gateway.infrastructure.clients.ledger import LedgerClient
from creditchain_gateway.infrastructure.clients.content_store import ContentStoreClient
from creditchain_gateway.infrastructure.database.models import CreditScoreRecord
from creditchain_gateway.infrastructure.database.session import get_db
from creditchain_gateway.infrastructure.database.repositories import CreditScoreRepository
from creditchain_gateway.services.scoring import ScoringOrchestrator, ScoringRun

router = APIRouter()


def score_fields(
    record: CreditScoreRecord,
    ledger_client: LedgerClient,
    content_client: ContentStoreClient,
) -> Dict[str, Any]:
    """Fields shared by every full credit score response"""
    ledger = None
    if record.ledger_tx_ref:
        ledger = LedgerReference(
            tx_ref=record.ledger_tx_ref,
            block_ref=record.ledger_block_ref,
            explorer_url=ledger_client.explorer_url(record.ledger_tx_ref),
        )
    content = None
    if record.content_ref:
        content = ContentReference(
            content_ref=record.content_ref,
            gateway_url=content_client.gateway_link(record.content_ref),
        )

    return {
        "result_id": str(record.id),
        "user_id": str(record.user_id),
        "credit_score": record.credit_score,
        "confidence_score": record.confidence_score,
        "risk_level": record.risk_level,
        "risk_category": record.risk_category,
        "score_breakdown": record.score_breakdown,
        "recommendations": record.recommendations,
        "improvement_tips": record.improvement_tips,
        "transaction_anomalies": record.transaction_anomalies,
        "anomaly_metrics": record.anomaly_metrics,
        "model_version": record.model_version,
        "data_hash": record.data_hash,
        "anchored": record.ledger_tx_ref is not None,
        "ledger": ledger,
        "content": content,
        "created_at": record.created_at.isoformat(),
    }


def score_summary(record: CreditScoreRecord) -> CreditScoreSummary:
    return CreditScoreSummary(
        result_id=str(record.id),
        credit_score=record.credit_score,
        risk_level=record.risk_level,
        risk_category=record.risk_category,
        confidence_score=record.confidence_score,
        anchored=record.ledger_tx_ref is not None,
        ledger_tx_ref=record.ledger_tx_ref,
        content_ref=record.content_ref,
        created_at=record.created_at.isoformat(),
    )


def run_response(
    run: ScoringRun,
    ledger_client: LedgerClient,
    content_client: ContentStoreClient,
) -> ScoringRunResponse:
    return ScoringRunResponse(
        **score_fields(run.record, ledger_client, content_client),
        run_state=run.state.value,
        anomalies_skipped=len(run.skipped),
        anchoring_error=run.anchoring_error,
    )


@router.post("/credit-score/{user_id}", response_model=ScoringRunResponse)
async def calculate_credit_score(
    user_id: str,
    request: Request,
    orchestrator: ScoringOrchestrator = Depends(get_orchestrator),
    ledger_client: LedgerClient = Depends(get_ledger_client),
    content_client: ContentStoreClient = Depends(get_content_client),
):
    """
    Run a full scoring pass for a user.

    Flow:
    1. Load profile + transactions, aggregate metrics
    2. Score via the model service, scan every transaction for anomalies
    3. Persist the result
    4. Best-effort: hash, pin to the content store, anchor on the ledger

    A 200 without ledger/content references means "not yet anchored".
    """
    request_id = get_request_id(request)
    user_uuid = parse_uuid(user_id, "user ID")

    try:
        run = await orchestrator.run(user_uuid, request_id=request_id)

    except NotFoundError as e:
        logging.warning(f"Scoring not possible: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=404, detail=str(e))

    except RunInProgressError as e:
        logging.warning(f"Scoring rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))

    except PreconditionFailedError as e:
        logging.warning(f"Scoring precondition failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=400, detail=str(e))

    except ExternalServiceError as e:
        logging.error(f"Model service error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Credit scoring service unavailable")

    except PersistenceError as e:
        logging.error(f"Persistence error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    except Exception as e:
        orchestrator.db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return run_response(run, ledger_client, content_client)


@router.get("/credit-score/{user_id}/history", response_model=CreditScoreHistoryResponse)
def get_credit_score_history(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Score results for a user, newest first"""
    user = load_user(db, user_id)
    score_repo = CreditScoreRepository(db)
    records = score_repo.history(user.id, offset=(page - 1) * limit, limit=limit)

    return CreditScoreHistoryResponse(
        user_id=str(user.id),
        results=[score_summary(r) for r in records],
        pagination=pagination(page, limit, score_repo.count_for_user(user.id)),
    )


@router.get("/credit-score/{user_id}/latest", response_model=CreditScoreResponse)
def get_latest_credit_score(
    user_id: str,
    db: Session = Depends(get_db),
    ledger_client: LedgerClient = Depends(get_ledger_client),
    content_client: ContentStoreClient = Depends(get_content_client),
):
    user = load_user(db, user_id)
    record = CreditScoreRepository(db).latest_for_user(user.id)
    if not record:
        raise HTTPException(status_code=404, detail="No credit score found for user")

    return CreditScoreResponse(**score_fields(record, ledger_client, content_client))


@router.post("/credit-score/results/{result_id}/anchor", response_model=ScoringRunResponse)
async def anchor_credit_score(
    result_id: str,
    request: Request,
    orchestrator: ScoringOrchestrator = Depends(get_orchestrator),
    ledger_client: LedgerClient = Depends(get_ledger_client),
    content_client: ContentStoreClient = Depends(get_content_client),
):
    """
    Retry anchoring for a result persisted without ledger/content references.

    Only the reference fields change; the score itself is never recomputed.
    """
    request_id = get_request_id(request)
    result_uuid = parse_uuid(result_id, "result ID")

    try:
        run = await orchestrator.anchor(result_uuid)

    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    except (AlreadyAnchoredError, RunInProgressError) as e:
        logging.warning(f"Anchoring rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))

    return run_response(run, ledger_client, content_client)

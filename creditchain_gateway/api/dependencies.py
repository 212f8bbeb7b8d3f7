"""Dependency injection for FastAPI endpoints"""

import uuid
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session
from creditchain_gateway.infrastructure.clients.model_service import ModelServiceClient
from creditchain_gateway.infrastructure.clients.ledger import LedgerClient
from creditchain_gateway.infrastructure.clients.content_store import ContentStoreClient
from creditchain_gateway.infrastructure.database.session import get_db
from creditchain_gateway.services.scoring import ScoringOrchestrator, UserRunLocks


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_model_client(request: Request) -> ModelServiceClient:
    """Model service client created at startup"""
    return request.app.state.model_client


def get_ledger_client(request: Request) -> LedgerClient:
    return request.app.state.ledger_client


def get_content_client(request: Request) -> ContentStoreClient:
    return request.app.state.content_client


def get_run_locks(request: Request) -> UserRunLocks:
    return request.app.state.run_locks


def get_orchestrator(
    db: Session = Depends(get_db),
    model_client: ModelServiceClient = Depends(get_model_client),
    ledger_client: LedgerClient = Depends(get_ledger_client),
    content_client: ContentStoreClient = Depends(get_content_client),
    run_locks: UserRunLocks = Depends(get_run_locks),
) -> ScoringOrchestrator:
    """Orchestrator wired to this request's session and the shared clients"""
    return ScoringOrchestrator(db, model_client, ledger_client, content_client, run_locks)


def parse_uuid(value: str, label: str = "ID") -> uuid.UUID:
    """Path parameter to UUID, 400 when malformed"""
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label} format")

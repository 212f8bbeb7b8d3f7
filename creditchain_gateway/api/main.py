"""FastAPI application factory"""

import logging
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from creditchain_gateway.api.dependencies import get_model_client
from creditchain_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from creditchain_gateway.api.v1 import users, transactions, credit_score, ledger
from creditchain_gateway.domain.exceptions import ExternalServiceError
from creditchain_gateway.infrastructure.clients.model_service import ModelServiceClient
from creditchain_gateway.infrastructure.clients.ledger import LedgerClient
from creditchain_gateway.infrastructure.clients.content_store import ContentStoreClient
from creditchain_gateway.infrastructure.observability.logging import setup_logging
from creditchain_gateway.services.scoring import UserRunLocks
from creditchain_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="CreditChain Gateway",
        description="Synthetic financial profiles, credit scoring and ledger anchoring",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # External clients and run locks live for the whole process
    app.state.model_client = ModelServiceClient()
    app.state.ledger_client = LedgerClient()
    app.state.content_client = ContentStoreClient()
    app.state.run_locks = UserRunLocks()

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name, "ledger_network": settings.ledger_network}

    @app.get("/health/model")
    async def model_health(model_client: ModelServiceClient = Depends(get_model_client)):
        try:
            upstream = await model_client.health()
        except ExternalServiceError as e:
            logging.warning(f"Model service health check failed: {e}")
            return JSONResponse(status_code=503, content={"status": "unavailable", "detail": str(e)})
        return {"status": "ok", "model_service": upstream}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(users.router, prefix="/v1", tags=["users"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(credit_score.router, prefix="/v1", tags=["credit-score"])
    app.include_router(ledger.router, prefix="/v1", tags=["ledger"])

    return app


app = create_app()

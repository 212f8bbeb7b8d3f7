"""Scoring orchestrator: score, scan, persist, then best-effort anchoring"""

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from creditchain_gateway.config import Settings, settings as default_settings
from creditchain_gateway.domain.anomaly_context import (
    build_behavioral_context,
    build_contextual_features,
    chronological,
    summarize_anomalies,
)
from creditchain_gateway.domain.exceptions import (
    AlreadyAnchoredError,
    ExternalServiceError,
    InsufficientDataError,
    NotFoundError,
    PersistenceError,
    RunInProgressError,
    UserNotVerifiedError,
)
from creditchain_gateway.domain.integrity import data_integrity_hash
from creditchain_gateway.domain.metrics import aggregate
from creditchain_gateway.domain.models import (
    AnomalyOutcome,
    AnomalyResult,
    BehavioralContext,
    ContentReceipt,
    CreditAssessment,
    FinancialProfile,
    IdentitySeed,
    LedgerReceipt,
    Transaction,
)
from creditchain_gateway.domain.profile_generator import derive_wallet_address
from creditchain_gateway.infrastructure.clients.content_store import ContentStoreClient
from creditchain_gateway.infrastructure.clients.ledger import LedgerClient
from creditchain_gateway.infrastructure.clients.model_service import ModelServiceClient, camelize
from creditchain_gateway.infrastructure.database.models import CreditScoreRecord, User
from creditchain_gateway.infrastructure.database.repositories import (
    CreditScoreRepository,
    ProfileRepository,
    TransactionRepository,
    UserRepository,
    profile_to_domain,
    transaction_to_domain,
)
from creditchain_gateway.infrastructure.observability.logging import log_scoring_run
from creditchain_gateway.infrastructure.observability.metrics import (
    anchoring_failure_counter,
    anomaly_detected_counter,
    anomaly_skip_counter,
    record_scoring_run,
)

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    LOADED = "LOADED"
    METRICS_READY = "METRICS_READY"
    SCORED = "SCORED"
    ANOMALIES_SCANNED = "ANOMALIES_SCANNED"
    PERSISTED = "PERSISTED"
    HASHED = "HASHED"
    CONTENT_PINNED = "CONTENT_PINNED"
    LEDGER_ANCHORED = "LEDGER_ANCHORED"
    RECONCILED = "RECONCILED"


@dataclass
class ScoringRun:
    """Progress and artifacts of one scoring or anchoring run"""

    user_id: str
    state: RunState = RunState.LOADED
    record: Optional[CreditScoreRecord] = None
    anomaly_outcomes: List[AnomalyOutcome] = field(default_factory=list)
    data_hash: Optional[str] = None
    content: Optional[ContentReceipt] = None
    ledger: Optional[LedgerReceipt] = None
    anchoring_error: Optional[str] = None

    @property
    def anomalies(self) -> List[AnomalyResult]:
        return [o.result for o in self.anomaly_outcomes if o.result is not None]

    @property
    def skipped(self) -> List[AnomalyOutcome]:
        return [o for o in self.anomaly_outcomes if o.skipped]

    @property
    def anchored(self) -> bool:
        return self.state == RunState.RECONCILED


class UserRunLocks:
    """At most one in-flight run per user within this process"""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def is_running(self, user_id: str) -> bool:
        lock = self._locks.get(user_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        """
        Raises:
            RunInProgressError: Another run for the user has not finished
        """
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        if lock.locked():
            raise RunInProgressError(f"A scoring run for user {user_id} is already in progress")

        async with lock:
            try:
                yield
            finally:
                self._locks.pop(user_id, None)


def result_document(record: CreditScoreRecord) -> Dict[str, Any]:
    """The stored result in the shape that is hashed and pinned"""
    return {
        "userId": str(record.user_id),
        "creditScore": record.credit_score,
        "confidenceScore": record.confidence_score,
        "riskLevel": record.risk_level,
        "riskCategory": record.risk_category,
        "scoreBreakdown": camelize(record.score_breakdown),
        "recommendations": list(record.recommendations),
        "improvementTips": camelize(record.improvement_tips),
        "transactionAnomalies": camelize(record.transaction_anomalies),
        "anomalyMetrics": camelize(record.anomaly_metrics),
    }


def content_blob(record: CreditScoreRecord, document: Dict[str, Any], data_hash: str) -> Dict[str, Any]:
    return {
        "userId": str(record.user_id),
        "creditScoreResult": document,
        "metadata": {
            "generatedAt": record.created_at.isoformat() if record.created_at else None,
            "modelVersion": record.model_version,
            "dataIntegrityHash": data_hash,
        },
    }


class ScoringOrchestrator:
    """
    Drives a scoring run through its states.

    LOADED -> METRICS_READY -> SCORED -> ANOMALIES_SCANNED -> PERSISTED
    -> HASHED -> CONTENT_PINNED -> LEDGER_ANCHORED -> RECONCILED

    Everything up to PERSISTED must succeed or the run raises with nothing
    written. Past PERSISTED every step is best-effort: a failure is logged,
    counted and the run ends at PERSISTED with null references.
    """

    def __init__(
        self,
        db: Session,
        model_client: ModelServiceClient,
        ledger_client: LedgerClient,
        content_client: ContentStoreClient,
        run_locks: UserRunLocks,
        config: Optional[Settings] = None,
    ):
        self.db = db
        self.model_client = model_client
        self.ledger_client = ledger_client
        self.content_client = content_client
        self.run_locks = run_locks
        self.config = config or default_settings

        self.users = UserRepository(db)
        self.profiles = ProfileRepository(db)
        self.transactions = TransactionRepository(db)
        self.scores = CreditScoreRepository(db)

    async def run(self, user_id: uuid.UUID, request_id: str = "unknown") -> ScoringRun:
        """
        Score a user end to end.

        Raises:
            NotFoundError: Unknown user or no generated profile
            PreconditionFailedError: Unverified, too few transactions, or a run in flight
            ModelServiceError: Scoring call failed (nothing persisted)
            PersistenceError: Result write failed
        """
        start_time = time.time()
        async with self.run_locks.hold(str(user_id)):
            try:
                run = await self._score(user_id)
            except Exception:
                record_scoring_run("failed")
                raise

        duration_ms = (time.time() - start_time) * 1000
        record_scoring_run("anchored" if run.anchored else "unanchored", run.record.credit_score)
        log_scoring_run(
            request_id,
            run.user_id,
            run.state.value,
            run.record.credit_score,
            analyzed=len(run.anomalies),
            skipped=len(run.skipped),
            anomalous=sum(1 for a in run.anomalies if a.is_anomaly),
            ledger_ref=run.ledger.tx_ref if run.ledger else None,
            duration_ms=duration_ms,
        )
        return run

    async def anchor(self, result_id: uuid.UUID) -> ScoringRun:
        """
        Re-attempt HASHED -> RECONCILED for a result left unanchored.

        Raises:
            NotFoundError: Unknown result
            AlreadyAnchoredError: The result already carries a ledger reference
        """
        record = self.scores.get_result(result_id)
        if record is None:
            raise NotFoundError(f"Credit score result {result_id} not found")
        if record.ledger_tx_ref is not None:
            raise AlreadyAnchoredError(f"Credit score result {result_id} is already anchored")

        user = self.users.get_user(record.user_id)
        async with self.run_locks.hold(str(record.user_id)):
            run = ScoringRun(user_id=str(record.user_id), state=RunState.PERSISTED, record=record)
            await self._anchor(run, user)

        logger.info(
            "Anchoring retried",
            extra={"user_id": run.user_id, "result_id": str(result_id), "terminal_state": run.state.value},
        )
        return run

    async def _score(self, user_id: uuid.UUID) -> ScoringRun:
        user, profile, transactions = self._load(user_id)
        run = ScoringRun(user_id=str(user.id))

        metrics = aggregate(transactions)
        run.state = RunState.METRICS_READY

        assessment = await self.model_client.score_credit(profile, metrics)
        run.state = RunState.SCORED
        logger.info(
            "Credit score received",
            extra={"user_id": run.user_id, "step": run.state.value, "credit_score": assessment.credit_score},
        )

        run.anomaly_outcomes = await self.scan_anomalies(transactions)
        run.state = RunState.ANOMALIES_SCANNED

        run.record = self._persist(user, assessment, run.anomalies)
        run.state = RunState.PERSISTED

        await self._anchor(run, user)
        return run

    def _load(self, user_id: uuid.UUID):
        user = self.users.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        if not user.is_verified:
            raise UserNotVerifiedError(f"User {user_id} is not verified")

        profile_record = self.profiles.get_by_user(user.id)
        if profile_record is None:
            raise NotFoundError(f"No financial profile for user {user_id}; generate one first")

        records = self.transactions.list_for_user(user.id)
        minimum = self.config.min_transactions_for_scoring
        if len(records) < minimum:
            raise InsufficientDataError(
                f"Need at least {minimum} transactions to score, found {len(records)}"
            )

        return user, profile_to_domain(profile_record), [transaction_to_domain(r) for r in records]

    async def scan_anomalies(self, transactions: Sequence[Transaction]) -> List[AnomalyOutcome]:
        """
        One anomaly call per transaction, in batches.

        Calls within a batch run concurrently; outcomes keep chronological
        input order. A failed call becomes a skipped outcome.
        """
        ordered = chronological(transactions)
        behavioral = build_behavioral_context(ordered)
        batch_size = max(1, self.config.anomaly_batch_size)

        outcomes: List[AnomalyOutcome] = []
        for start in range(0, len(ordered), batch_size):
            batch = ordered[start:start + batch_size]
            outcomes.extend(
                await asyncio.gather(*(self._scan_one(txn, ordered, behavioral) for txn in batch))
            )
            if start + batch_size < len(ordered):
                # Pause between batches
                await asyncio.sleep(self.config.anomaly_batch_pause_seconds)
        return outcomes

    async def _scan_one(
        self,
        transaction: Transaction,
        ordered: Sequence[Transaction],
        behavioral: BehavioralContext,
    ) -> AnomalyOutcome:
        contextual = build_contextual_features(transaction, ordered)
        try:
            result = await self.model_client.detect_anomaly(transaction, contextual, behavioral)
        except ExternalServiceError as e:
            anomaly_skip_counter.inc()
            logger.warning(
                f"Anomaly check skipped: {e}",
                extra={"user_id": transaction.user_id, "transaction_id": transaction.transaction_id},
            )
            return AnomalyOutcome(transaction_id=transaction.transaction_id, skip_reason=str(e))
        return AnomalyOutcome(transaction_id=transaction.transaction_id, result=result)

    def _persist(self, user: User, assessment: CreditAssessment, anomalies: List[AnomalyResult]) -> CreditScoreRecord:
        anomaly_metrics = summarize_anomalies(anomalies)
        try:
            record = self.scores.create_result(
                user_id=user.id,
                assessment=assessment,
                anomalies=anomalies,
                anomaly_metrics=anomaly_metrics,
                model_version=self.config.ml_model_version,
            )
            self.transactions.record_anomalies(user.id, anomalies)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Result persistence failed: {e}", extra={"user_id": str(user.id), "step": "PERSISTED"})
            raise PersistenceError(f"Could not store credit score for user {user.id}") from e

        anomaly_detected_counter.inc(anomaly_metrics.anomalous_transactions_count)
        logger.info(
            "Credit score persisted",
            extra={"user_id": str(user.id), "step": "PERSISTED", "result_id": str(record.id)},
        )
        return record

    async def _anchor(self, run: ScoringRun, user: User) -> None:
        record = run.record
        document = result_document(record)
        run.data_hash = data_integrity_hash(document)
        run.state = RunState.HASHED

        try:
            run.content = await self.content_client.put(content_blob(record, document, run.data_hash))
        except ExternalServiceError as e:
            self._anchoring_failed(run, "content", str(e))
            return
        run.state = RunState.CONTENT_PINNED

        address = user.wallet_address or derive_wallet_address(
            str(user.id),
            IdentitySeed(user.pan_number, user.aadhaar_number, user.credit_card_number),
        )
        try:
            run.ledger = await self.ledger_client.submit_score(
                address, record.credit_score, run.data_hash, run.content.content_ref
            )
        except ExternalServiceError as e:
            self._anchoring_failed(run, "ledger", str(e))
            return
        run.state = RunState.LEDGER_ANCHORED

        try:
            self.scores.attach_references(record, run.data_hash, run.ledger, run.content.content_ref)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self._anchoring_failed(run, "reconcile", str(e))
            return
        run.state = RunState.RECONCILED

    def _anchoring_failed(self, run: ScoringRun, target: str, reason: str) -> None:
        anchoring_failure_counter.labels(target=target).inc()
        run.anchoring_error = f"{target}: {reason}"
        run.state = RunState.PERSISTED
        logger.warning(
            f"Anchoring step failed, result left unanchored: {reason}",
            extra={"user_id": run.user_id, "step": target, "result_id": str(run.record.id)},
        )

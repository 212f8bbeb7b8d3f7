"""Integration tests for the scoring orchestrator against the test database"""

import asyncio
import uuid
import pytest
from unittest.mock import patch
from sqlalchemy.exc import SQLAlchemyError
from creditchain_gateway.domain.exceptions import (
    AlreadyAnchoredError,
    ContentStoreError,
    InsufficientDataError,
    LedgerError,
    ModelServiceError,
    NotFoundError,
    PersistenceError,
    RunInProgressError,
    UserNotVerifiedError,
)
from creditchain_gateway.domain.integrity import data_integrity_hash
from creditchain_gateway.infrastructure.database.models import CreditScoreRecord, TransactionRecord
from creditchain_gateway.services.scoring import RunState, result_document


def stored_results(db):
    return db.query(CreditScoreRecord).all()


def late_night_ids(db, user_id):
    return {
        r.transaction_id
        for r in db.query(TransactionRecord).filter(
            TransactionRecord.user_id == user_id, TransactionRecord.is_late_night.is_(True)
        )
    }


async def test_full_run_reaches_reconciled(db, orchestrator, onboarded_user, ledger_client, content_client):
    run = await orchestrator.run(onboarded_user.id)

    assert run.state == RunState.RECONCILED
    assert run.anchored is True
    assert run.anchoring_error is None
    assert len(run.anomaly_outcomes) == 75
    assert run.skipped == []

    record = db.query(CreditScoreRecord).one()
    assert record.credit_score == 712
    assert record.ledger_tx_ref == ledger_client.submit_score.return_value.tx_ref
    assert record.ledger_block_ref == 4242
    assert record.content_ref == content_client.put.return_value.content_ref
    assert record.anchored_at is not None
    assert record.data_hash == data_integrity_hash(result_document(record))
    assert record.anomaly_metrics["total_transactions_analyzed"] == 75

    address, score, data_hash, content_ref = ledger_client.submit_score.await_args.args
    assert address == onboarded_user.wallet_address
    assert score == 712
    assert data_hash == record.data_hash
    assert content_ref == content_client.put.return_value.content_ref

    blob = content_client.put.await_args.args[0]
    assert blob["userId"] == str(onboarded_user.id)
    assert blob["metadata"]["dataIntegrityHash"] == record.data_hash
    assert blob["creditScoreResult"]["creditScore"] == 712


async def test_anomaly_verdicts_written_to_transactions(db, orchestrator, onboarded_user):
    await orchestrator.run(onboarded_user.id)

    flagged = {
        r.transaction_id
        for r in db.query(TransactionRecord).filter(
            TransactionRecord.user_id == onboarded_user.id, TransactionRecord.is_anomaly.is_(True)
        )
    }
    assert flagged == late_night_ids(db, onboarded_user.id)

    record = db.query(CreditScoreRecord).one()
    assert record.anomaly_metrics["anomalous_transactions_count"] == len(flagged)


async def test_anomaly_outcomes_are_chronological(db, orchestrator, onboarded_user):
    run = await orchestrator.run(onboarded_user.id)

    expected = [
        r.transaction_id
        for r in db.query(TransactionRecord)
        .filter(TransactionRecord.user_id == onboarded_user.id)
        .order_by(TransactionRecord.occurred_at, TransactionRecord.transaction_id)
    ]
    assert [o.transaction_id for o in run.anomaly_outcomes] == expected


async def test_failed_anomaly_calls_are_skipped(db, orchestrator, onboarded_user, model_client):
    failing = {f"TXN_{onboarded_user.id}_{i:03d}" for i in (10, 20, 30)}
    verdict = model_client.detect_anomaly.side_effect

    def flaky(transaction, contextual=None, behavioral=None):
        if transaction.transaction_id in failing:
            raise ModelServiceError("Model service timeout after 30s")
        return verdict(transaction)

    model_client.detect_anomaly.side_effect = flaky

    run = await orchestrator.run(onboarded_user.id)

    assert run.state == RunState.RECONCILED
    assert {o.transaction_id for o in run.skipped} == failing
    assert all("timeout" in o.skip_reason for o in run.skipped)
    assert len(run.anomalies) == 72

    record = db.query(CreditScoreRecord).one()
    assert record.anomaly_metrics["total_transactions_analyzed"] == 72
    assert len(record.transaction_anomalies) == 72

    skipped_rows = db.query(TransactionRecord).filter(TransactionRecord.transaction_id.in_(failing)).all()
    assert all(r.is_anomaly is False and r.anomaly_score == 0.0 for r in skipped_rows)


async def test_too_few_transactions(db, orchestrator, onboarded_user):
    extra = (
        db.query(TransactionRecord)
        .filter(TransactionRecord.user_id == onboarded_user.id)
        .order_by(TransactionRecord.transaction_id)
        .offset(9)
        .all()
    )
    for record in extra:
        db.delete(record)
    db.commit()

    with pytest.raises(InsufficientDataError):
        await orchestrator.run(onboarded_user.id)
    assert stored_results(db) == []


async def test_unverified_user_rejected(db, orchestrator, registered_user, model_client):
    with pytest.raises(UserNotVerifiedError):
        await orchestrator.run(registered_user.id)
    model_client.score_credit.assert_not_awaited()


async def test_unknown_user(orchestrator):
    with pytest.raises(NotFoundError):
        await orchestrator.run(uuid.uuid4())


async def test_model_failure_writes_nothing(db, orchestrator, onboarded_user, model_client, content_client):
    model_client.score_credit.side_effect = ModelServiceError("Model service error: 502")

    with pytest.raises(ModelServiceError):
        await orchestrator.run(onboarded_user.id)

    assert stored_results(db) == []
    model_client.detect_anomaly.assert_not_awaited()
    content_client.put.assert_not_awaited()


async def test_persistence_failure_is_fatal(db, orchestrator, onboarded_user, ledger_client, content_client):
    with patch.object(db, "commit", side_effect=SQLAlchemyError("database is locked")):
        with pytest.raises(PersistenceError):
            await orchestrator.run(onboarded_user.id)

    assert stored_results(db) == []
    flagged = db.query(TransactionRecord).filter(TransactionRecord.is_anomaly.is_(True)).count()
    assert flagged == 0
    content_client.put.assert_not_awaited()
    ledger_client.submit_score.assert_not_awaited()


async def test_ledger_failure_leaves_result_unanchored(db, orchestrator, onboarded_user, ledger_client, content_client):
    ledger_client.submit_score.side_effect = LedgerError("Ledger submit failed after 3 attempt(s)")

    run = await orchestrator.run(onboarded_user.id)

    assert run.state == RunState.PERSISTED
    assert run.anchored is False
    assert run.anchoring_error.startswith("ledger")
    record = db.query(CreditScoreRecord).one()
    assert record.credit_score == 712
    assert record.ledger_tx_ref is None
    assert record.content_ref is None
    assert record.data_hash is None
    assert record.anchored_at is None
    content_client.put.assert_awaited_once()


async def test_anchor_retry_attaches_references_only(db, orchestrator, onboarded_user, ledger_client, content_client):
    ledger_client.submit_score.side_effect = LedgerError("unreachable")
    first = await orchestrator.run(onboarded_user.id)
    record = first.record
    before = result_document(record)

    ledger_client.submit_score.side_effect = None
    retry = await orchestrator.anchor(record.id)

    assert retry.state == RunState.RECONCILED
    assert retry.data_hash == first.data_hash
    db.refresh(record)
    assert result_document(record) == before
    assert record.ledger_tx_ref == ledger_client.submit_score.return_value.tx_ref
    assert record.data_hash == first.data_hash

    first_blob, second_blob = (call.args[0] for call in content_client.put.await_args_list)
    assert first_blob == second_blob


async def test_content_failure_skips_ledger(db, orchestrator, onboarded_user, ledger_client, content_client):
    content_client.put.side_effect = ContentStoreError("Content store unreachable")

    run = await orchestrator.run(onboarded_user.id)

    assert run.state == RunState.PERSISTED
    assert run.anchoring_error.startswith("content")
    assert run.data_hash is not None
    ledger_client.submit_score.assert_not_awaited()
    assert db.query(CreditScoreRecord).one().content_ref is None


async def test_reference_write_failure(db, orchestrator, onboarded_user, ledger_client):
    with patch.object(orchestrator.scores, "attach_references", side_effect=SQLAlchemyError("disk full")):
        run = await orchestrator.run(onboarded_user.id)

    assert run.state == RunState.PERSISTED
    assert run.anchoring_error.startswith("reconcile")
    assert run.ledger.tx_ref == ledger_client.submit_score.return_value.tx_ref
    assert db.query(CreditScoreRecord).one().ledger_tx_ref is None


async def test_anchor_rejects_anchored_result(orchestrator, onboarded_user):
    run = await orchestrator.run(onboarded_user.id)

    with pytest.raises(AlreadyAnchoredError):
        await orchestrator.anchor(run.record.id)


async def test_anchor_unknown_result(orchestrator):
    with pytest.raises(NotFoundError):
        await orchestrator.anchor(uuid.uuid4())


async def test_each_run_appends_a_result(db, orchestrator, onboarded_user):
    await orchestrator.run(onboarded_user.id)
    await orchestrator.run(onboarded_user.id)

    assert len(stored_results(db)) == 2


async def test_run_lock_rejects_second_run(orchestrator, onboarded_user, run_locks):
    async with run_locks.hold(str(onboarded_user.id)):
        assert run_locks.is_running(str(onboarded_user.id))
        with pytest.raises(RunInProgressError):
            await orchestrator.run(onboarded_user.id)

    assert not run_locks.is_running(str(onboarded_user.id))


async def test_concurrent_runs_for_same_user(db, orchestrator, onboarded_user):
    results = await asyncio.gather(
        orchestrator.run(onboarded_user.id),
        orchestrator.run(onboarded_user.id),
        return_exceptions=True,
    )

    errors = [r for r in results if isinstance(r, Exception)]
    assert len(errors) == 1
    assert isinstance(errors[0], RunInProgressError)
    assert len(stored_results(db)) == 1

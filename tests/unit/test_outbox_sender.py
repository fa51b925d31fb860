"""Unit tests for the outbox sender retry state machine"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from shelterflex_gateway.domain.canonicalization import hash_external_ref
from shelterflex_gateway.domain.exceptions import LedgerWriteFailure, NotFoundError
from shelterflex_gateway.domain.models import OutboxStatus
from shelterflex_gateway.services.outbox_sender import compute_backoff


@pytest.mark.parametrize(
    "attempts,expected",
    [(1, 30), (2, 60), (3, 120), (7, 1920), (8, 3600), (30, 3600)],
)
def test_compute_backoff(attempts, expected):
    assert compute_backoff(attempts, 30, 3600) == expected


async def test_send_success(store, sender, ledger, tenant_payload):
    """Test successful send marks the item sent and writes one receipt"""
    item = store.create("tenant_repayment", "Paystack:ref_001", tenant_payload)

    assert await sender.send(item) is True

    updated = store.get_by_id(item.id)
    assert updated.status == OutboxStatus.SENT
    assert updated.attempts == 1

    receipt = ledger.receipts[item.tx_id]
    assert receipt.tx_type == "tenant_repayment"
    assert receipt.amount_usdc == "100.5"
    assert receipt.external_ref_hash == hash_external_ref("paystack:ref_001")
    assert receipt.fx_provider == "coinbase"


async def test_send_failure_records_error_and_backoff(store, sender, ledger, clock, tenant_payload):
    """Test ledger failure is captured on the item, never raised"""
    item = store.create("tenant_repayment", "paystack:ref_001", tenant_payload)

    with patch.object(ledger, "record_receipt", AsyncMock(side_effect=LedgerWriteFailure("ledger down"))):
        assert await sender.send(item) is False

    updated = store.get_by_id(item.id)
    assert updated.status == OutboxStatus.FAILED
    assert updated.attempts == 1
    assert updated.last_error == "ledger down"
    assert updated.next_attempt_at == clock() + timedelta(seconds=30)


async def test_backoff_doubles_with_attempts(store, sender, ledger, clock, tenant_payload):
    item = store.create("tenant_repayment", "paystack:ref_001", tenant_payload)

    with patch.object(ledger, "record_receipt", AsyncMock(side_effect=RuntimeError("timeout"))):
        await sender.send(item)
        await sender.retry(item.id)
        await sender.retry(item.id)

    updated = store.get_by_id(item.id)
    assert updated.attempts == 3
    assert updated.next_attempt_at == clock() + timedelta(seconds=120)


async def test_backoff_uses_stored_attempts_not_stale_copy(store, sender, ledger, clock, tenant_payload):
    """Test a send holding an outdated item copy still backs off from the recorded attempt count"""
    stale = store.create("tenant_repayment", "paystack:ref_001", tenant_payload)
    store.update_status(stale.id, OutboxStatus.FAILED, error="first")
    store.update_status(stale.id, OutboxStatus.FAILED, error="second")

    with patch.object(ledger, "record_receipt", AsyncMock(side_effect=LedgerWriteFailure("third"))):
        assert await sender.send(stale) is False

    updated = store.get_by_id(stale.id)
    assert updated.attempts == 3
    assert updated.next_attempt_at == clock() + timedelta(seconds=120)


async def test_failed_then_sent(store, sender, ledger, tenant_payload):
    """Test failed → sent clears the error and keeps counting attempts"""
    item = store.create("tenant_repayment", "paystack:ref_001", tenant_payload)

    with patch.object(ledger, "record_receipt", AsyncMock(side_effect=LedgerWriteFailure("ledger down"))):
        await sender.send(item)

    assert await sender.retry(item.id) is True

    updated = store.get_by_id(item.id)
    assert updated.status == OutboxStatus.SENT
    assert updated.attempts == 2
    assert updated.last_error is None
    assert updated.next_attempt_at is None


async def test_retry_sent_item_skips_ledger(store, sender, ledger, tenant_payload):
    item = store.create("tenant_repayment", "paystack:ref_001", tenant_payload)
    await sender.send(item)

    with patch.object(ledger, "record_receipt", AsyncMock()) as mock_record:
        assert await sender.retry(item.id) is True
        mock_record.assert_not_called()

    assert store.get_by_id(item.id).attempts == 1


async def test_retry_unknown_item(sender):
    with pytest.raises(NotFoundError):
        await sender.retry("missing")


async def test_unknown_tx_type_fails_item(store, sender, tenant_payload):
    """Test an item with an unroutable type is marked failed with a clear error"""
    item = store.create("tenant_repayment", "paystack:ref_001", tenant_payload)
    item.tx_type = "receipt"

    assert await sender.send(item) is False
    assert store.get_by_id(item.id).last_error == "Unknown tx type: receipt"


async def test_invalid_payload_fails_item(store, sender, tenant_payload):
    item = store.create("tenant_repayment", "paystack:ref_001", tenant_payload)
    item.payload = {"deal_id": "d1"}

    assert await sender.send(item) is False

    error = store.get_by_id(item.id).last_error
    assert error.startswith("Invalid tenant_repayment payload: ")
    assert "amount_usdc" in error


async def test_retry_all_fifo_summary(store, sender, ledger, tenant_payload):
    """Test retry_all sends failed items oldest first and tallies outcomes"""
    items = [store.create("tenant_repayment", f"manual:{n}", tenant_payload) for n in range(3)]
    with patch.object(ledger, "record_receipt", AsyncMock(side_effect=LedgerWriteFailure("down"))):
        for item in items:
            await sender.send(item)

    calls = []

    async def record(request):
        calls.append(request.tx_id)
        if request.tx_id == items[1].tx_id:
            raise LedgerWriteFailure("still down")

    with patch.object(ledger, "record_receipt", AsyncMock(side_effect=record)):
        summary = await sender.retry_all()

    assert calls == [item.tx_id for item in items]
    assert (summary.succeeded, summary.failed) == (2, 1)
    assert store.get_by_id(items[1].id).status == OutboxStatus.FAILED
    assert store.get_by_id(items[1].id).attempts == 2


async def test_retry_all_due_only_skips_backoff(store, sender, ledger, clock, tenant_payload):
    """Test due_only leaves items whose next attempt is still in the future"""
    early = store.create("tenant_repayment", "manual:early", tenant_payload)
    with patch.object(ledger, "record_receipt", AsyncMock(side_effect=LedgerWriteFailure("down"))):
        await sender.send(early)
        clock.advance(seconds=20)
        late = store.create("tenant_repayment", "manual:late", tenant_payload)
        await sender.send(late)

    # early is due at +30s, late at +50s
    clock.advance(seconds=15)
    summary = await sender.retry_all(due_only=True)

    assert (summary.succeeded, summary.failed) == (1, 0)
    assert store.get_by_id(early.id).status == OutboxStatus.SENT
    assert store.get_by_id(late.id).status == OutboxStatus.FAILED


async def test_retry_all_ignores_pending_and_sent(store, sender, ledger, tenant_payload):
    store.create("tenant_repayment", "manual:pending", tenant_payload)
    sent = store.create("tenant_repayment", "manual:sent", tenant_payload)
    await sender.send(sent)

    with patch.object(ledger, "record_receipt", AsyncMock()) as mock_record:
        summary = await sender.retry_all()
        mock_record.assert_not_called()

    assert summary.total == 0

"""Unit tests for the retry sweep job"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

from shelterflex_gateway.domain.exceptions import LedgerWriteFailure
from shelterflex_gateway.domain.models import OutboxStatus
from shelterflex_gateway.jobs.retry_outbox import main, parse_args


def _fail_one(container, ref, payload):
    item = container.outbox_store.create("tenant_repayment", ref, payload)
    container.outbox_store.update_status(item.id, OutboxStatus.FAILED, error="ledger down")
    return item


def test_parse_args():
    assert parse_args([]).due_only is False
    assert parse_args(["--due-only"]).due_only is True


def test_job_retries_failed_items(container, tenant_payload):
    """Test job sends every failed item and exits 0"""
    first = _fail_one(container, "manual:1", tenant_payload)
    second = _fail_one(container, "manual:2", tenant_payload)

    assert main([], container=container) == 0

    assert container.outbox_store.get_by_id(first.id).status == OutboxStatus.SENT
    assert container.outbox_store.get_by_id(second.id).status == OutboxStatus.SENT


def test_job_exit_code_when_items_still_fail(container, tenant_payload):
    _fail_one(container, "manual:1", tenant_payload)

    with patch.object(container.ledger, "record_receipt", AsyncMock(side_effect=LedgerWriteFailure("down"))):
        assert main([], container=container) == 1


def test_job_due_only_respects_backoff(container, tenant_payload):
    """Test --due-only leaves items scheduled for later"""
    item = container.outbox_store.create("tenant_repayment", "manual:1", tenant_payload)
    later = datetime(2999, 1, 1, tzinfo=timezone.utc)
    container.outbox_store.update_status(item.id, OutboxStatus.FAILED, error="x", next_attempt_at=later)

    assert main(["--due-only"], container=container) == 0

    assert container.outbox_store.get_by_id(item.id).status == OutboxStatus.FAILED

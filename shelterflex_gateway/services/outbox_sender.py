"""Outbox sender: delivers outbox items to the ledger and records the outcome"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from shelterflex_gateway.domain.canonicalization import hash_external_ref
from shelterflex_gateway.domain.exceptions import NotFoundError, ValidationError
from shelterflex_gateway.domain.models import OutboxItem, OutboxStatus, RetrySummary
from shelterflex_gateway.domain.payloads import BasePayload, format_decimal
from shelterflex_gateway.domain.result import Err
from shelterflex_gateway.domain.validation import parse_tx_payload, parse_tx_type
from shelterflex_gateway.infrastructure.database.outbox_store import OutboxStore
from shelterflex_gateway.infrastructure.ledger.adapter import LedgerAdapter, ReceiptRequest
from shelterflex_gateway.infrastructure.observability.logging import log_outbox_attempt
from shelterflex_gateway.infrastructure.observability.metrics import record_outbox_send
from shelterflex_gateway.utils.date_utils import utc_now

logger = logging.getLogger(__name__)


def compute_backoff(attempts: int, base_seconds: float, max_seconds: float) -> float:
    """
    Delay before the next retry.

    Doubles with every attempt and is capped: base * 2^(attempts-1), at most max.

    Example:
        >>> compute_backoff(1, 30, 3600)
        30
        >>> compute_backoff(4, 30, 3600)
        240
        >>> compute_backoff(20, 30, 3600)
        3600
    """
    exponent = max(attempts - 1, 0)
    return min(base_seconds * (2 ** exponent), max_seconds)


class OutboxSender:
    """
    Sends outbox items to the ledger.

    Holds no item state: every decision is made from the store. A send never
    raises for ledger or payload problems; the failure is recorded on the item
    so a later retry can pick it up.
    """

    def __init__(
        self,
        store: OutboxStore,
        adapter: LedgerAdapter,
        backoff_base_seconds: float = 30.0,
        backoff_max_seconds: float = 3600.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.adapter = adapter
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self._clock = clock

    async def send(self, item: OutboxItem) -> bool:
        """
        Attempt one ledger write for the item.

        Returns:
            True if the ledger accepted the receipt, False if the item was
            marked failed
        """
        logger.info(
            "Attempting to send outbox item",
            extra={"outbox_id": item.id, "tx_id": item.tx_id, "tx_type": item.tx_type, "attempt": item.attempts + 1},
        )

        try:
            request = self._build_receipt(item)
            await self.adapter.record_receipt(request)
        except Exception as e:
            return self._mark_failed(item, str(e) or e.__class__.__name__)

        updated = self.store.update_status(item.id, OutboxStatus.SENT)
        attempts = updated.attempts if updated else item.attempts + 1
        record_outbox_send(item.tx_type, sent=True)
        log_outbox_attempt(item.id, item.tx_id, item.tx_type, sent=True, attempts=attempts)
        return True

    async def retry(self, item_id: str) -> bool:
        """
        Retry a single item.

        Raises:
            NotFoundError: No item with this id
        """
        item = self.store.get_by_id(item_id)
        if item is None:
            raise NotFoundError(f"Outbox item not found: {item_id}", {"id": item_id})

        if item.status == OutboxStatus.SENT:
            logger.info("Outbox item already sent, skipping retry", extra={"outbox_id": item_id})
            return True

        return await self.send(item)

    async def retry_all(self, due_only: bool = False, now: Optional[datetime] = None) -> RetrySummary:
        """
        Retry every failed item, oldest first, one at a time.

        Args:
            due_only: Skip items whose next_attempt_at is still in the future
            now: Reference time for due_only (defaults to the clock)
        """
        now = now or self._clock()
        summary = RetrySummary()

        for item in self.store.list_by_status(OutboxStatus.FAILED):
            if due_only and item.next_attempt_at is not None and item.next_attempt_at > now:
                continue

            if await self.send(item):
                summary.succeeded += 1
            else:
                summary.failed += 1

        logger.info(
            "Outbox retry sweep finished",
            extra={"succeeded": summary.succeeded, "failed": summary.failed, "due_only": due_only},
        )
        return summary

    def _build_receipt(self, item: OutboxItem) -> ReceiptRequest:
        # Every tx type is written as a receipt; the type travels with it
        type_result = parse_tx_type(item.tx_type)
        if isinstance(type_result, Err):
            raise type_result.error

        payload_result = parse_tx_payload(type_result.value, item.payload)
        if isinstance(payload_result, Err):
            raise ValidationError(f"{payload_result.error.message}: {_describe_issues(payload_result.error)}")

        payload: BasePayload = payload_result.value
        return ReceiptRequest(
            tx_id=item.tx_id,
            tx_type=type_result.value.value,
            amount_usdc=format_decimal(payload.amount_usdc),
            token_address=payload.token_address,
            deal_id=payload.deal_id,
            external_ref_hash=hash_external_ref(item.canonical_external_ref),
            listing_id=getattr(payload, "listing_id", None),
            amount_ngn=format_decimal(payload.amount_ngn) if payload.amount_ngn is not None else None,
            fx_rate_ngn_per_usdc=(
                format_decimal(payload.fx_rate_ngn_per_usdc) if payload.fx_rate_ngn_per_usdc is not None else None
            ),
            fx_provider=payload.fx_provider,
        )

    def _next_attempt_at(self, attempts: int) -> datetime:
        delay = compute_backoff(attempts, self.backoff_base_seconds, self.backoff_max_seconds)
        return self._clock() + timedelta(seconds=delay)

    def _mark_failed(self, item: OutboxItem, error: str) -> bool:
        updated = self.store.update_status(
            item.id,
            OutboxStatus.FAILED,
            error=error,
            next_attempt_at=self._next_attempt_at,
        )
        attempts = updated.attempts if updated else item.attempts + 1
        record_outbox_send(item.tx_type, sent=False)
        log_outbox_attempt(item.id, item.tx_id, item.tx_type, sent=False, attempts=attempts, error=error)
        return False


def _describe_issues(error: ValidationError) -> str:
    issues = (error.details or {}).get("issues", [])
    return "; ".join(f"{issue['path']}: {issue['message']}" for issue in issues)

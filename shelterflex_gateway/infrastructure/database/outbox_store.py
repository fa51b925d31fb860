"""Outbox store: idempotent registry of pending, sent and failed ledger writes"""

import copy
import logging
import threading
import uuid
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, Union

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from shelterflex_gateway.domain.canonicalization import compute_tx_id, normalize_external_ref
from shelterflex_gateway.domain.exceptions import ConflictError, ValidationError
from shelterflex_gateway.domain.models import OutboxItem, OutboxStatus
from shelterflex_gateway.domain.payloads import BasePayload
from shelterflex_gateway.domain.result import unwrap
from shelterflex_gateway.domain.validation import parse_tx_payload
from shelterflex_gateway.infrastructure.database.models import OutboxRecord
from shelterflex_gateway.infrastructure.observability.metrics import outbox_created_counter
from shelterflex_gateway.utils.date_utils import IncreasingClock, as_utc, utc_now

logger = logging.getLogger(__name__)


class OutboxStore:
    """
    Append-mostly store of ledger write intents.

    One item per canonical external reference for the lifetime of the store:
    the check-then-insert in create() runs under a lock and is backed by a
    unique index, so concurrent confirmations of the same payment collapse
    into a single logical transaction. Items are never deleted in normal
    operation; status transitions are the only mutation.
    """

    def __init__(self, session_factory: sessionmaker, clock: Callable[[], datetime] = utc_now):
        self._session_factory = session_factory
        self._clock = clock
        self._lock = threading.Lock()
        # Strictly increasing so FIFO order never ties
        self._created_clock = IncreasingClock(clock)

    def create(
        self,
        tx_type: str,
        canonical_external_ref: str,
        payload: Union[BasePayload, Mapping[str, Any]],
    ) -> OutboxItem:
        """
        Create an outbox item, or return the existing one for the same reference.

        An existing item is returned unchanged: no new row, no tx_id
        recomputation, no attempts increment.

        Raises:
            ValidationError: Malformed reference or payload (nothing is written)
        """
        ref = normalize_external_ref(canonical_external_ref)
        data = payload.to_document() if isinstance(payload, BasePayload) else payload
        document = unwrap(parse_tx_payload(tx_type, data)).to_document()
        tx_type_value = str(getattr(tx_type, "value", tx_type))

        with self._lock, self._session_factory() as session:
            existing = self._find_by_ref(session, ref)
            if existing is not None:
                logger.info(
                    "Outbox item already exists for external reference",
                    extra={"outbox_id": existing.id, "tx_id": existing.tx_id},
                )
                return self._to_domain(existing)

            now = self._created_clock()
            record = OutboxRecord(
                id=str(uuid.uuid4()),
                tx_type=tx_type_value,
                canonical_external_ref=ref,
                tx_id=compute_tx_id(tx_type_value, ref, document),
                payload=document,
                status=OutboxStatus.PENDING.value,
                attempts=0,
                created_at=now,
                updated_at=now,
            )
            session.add(record)

            try:
                session.commit()
            except IntegrityError:
                # Another writer inserted the same reference first
                session.rollback()
                existing = self._find_by_ref(session, ref)
                if existing is None:
                    raise
                return self._to_domain(existing)

            outbox_created_counter.labels(tx_type=tx_type_value).inc()
            return self._to_domain(record)

    def get_by_id(self, item_id: str) -> Optional[OutboxItem]:
        with self._session_factory() as session:
            record = session.get(OutboxRecord, item_id)
            return self._to_domain(record) if record is not None else None

    def get_by_external_ref(self, ref: str) -> Optional[OutboxItem]:
        try:
            normalized = normalize_external_ref(ref)
        except ValidationError:
            return None
        with self._session_factory() as session:
            record = self._find_by_ref(session, normalized)
            return self._to_domain(record) if record is not None else None

    def list_by_status(self, status: OutboxStatus, limit: Optional[int] = None) -> List[OutboxItem]:
        """Items in the given status, oldest first (FIFO retry order)"""
        query = (
            select(OutboxRecord)
            .where(OutboxRecord.status == OutboxStatus(status).value)
            .order_by(OutboxRecord.created_at.asc(), OutboxRecord.id.asc())
        )
        if limit is not None:
            query = query.limit(limit)

        with self._session_factory() as session:
            return [self._to_domain(r) for r in session.scalars(query).all()]

    def list_all(self, limit: int = 100) -> List[OutboxItem]:
        """All items, newest first, for operator visibility"""
        query = (
            select(OutboxRecord)
            .order_by(OutboxRecord.created_at.desc(), OutboxRecord.id.desc())
            .limit(limit)
        )
        with self._session_factory() as session:
            return [self._to_domain(r) for r in session.scalars(query).all()]

    def update_status(
        self,
        item_id: str,
        status: OutboxStatus,
        error: Optional[str] = None,
        next_attempt_at: Union[datetime, Callable[[int], datetime], None] = None,
    ) -> Optional[OutboxItem]:
        """
        Record a status transition.

        Every call counts as an attempt, including the first successful send.
        A sent transition clears last_error and next_attempt_at; otherwise the
        previous error stays until a newer one replaces it.

        next_attempt_at may be a callable taking the incremented attempts
        count; it is evaluated under the store lock.
        """
        status = OutboxStatus(status)

        with self._lock, self._session_factory() as session:
            record = session.get(OutboxRecord, item_id)
            if record is None:
                return None

            now = self._clock()
            record.status = status.value
            record.attempts = record.attempts + 1
            record.updated_at = now
            record.last_attempt_at = now

            if status == OutboxStatus.SENT:
                record.last_error = None
                record.next_attempt_at = None
            else:
                if error:
                    record.last_error = error
                if callable(next_attempt_at):
                    next_attempt_at = next_attempt_at(record.attempts)
                record.next_attempt_at = next_attempt_at

            session.commit()
            return self._to_domain(record)

    def count(self) -> int:
        with self._session_factory() as session:
            return session.scalar(select(func.count()).select_from(OutboxRecord)) or 0

    def clear(self) -> None:
        """Remove every item (tests only)"""
        with self._lock, self._session_factory() as session:
            session.execute(delete(OutboxRecord))
            session.commit()

    @staticmethod
    def _find_by_ref(session: Session, ref: str) -> Optional[OutboxRecord]:
        return session.scalars(
            select(OutboxRecord).where(OutboxRecord.canonical_external_ref == ref)
        ).first()

    @staticmethod
    def _to_domain(record: OutboxRecord) -> OutboxItem:
        return OutboxItem(
            id=record.id,
            tx_type=record.tx_type,
            canonical_external_ref=record.canonical_external_ref,
            tx_id=record.tx_id,
            payload=copy.deepcopy(record.payload),
            status=OutboxStatus(record.status),
            attempts=record.attempts,
            last_error=record.last_error,
            created_at=as_utc(record.created_at),
            updated_at=as_utc(record.updated_at),
            last_attempt_at=as_utc(record.last_attempt_at),
            next_attempt_at=as_utc(record.next_attempt_at),
        )


def ensure_tx_type(item: OutboxItem, tx_type: str) -> None:
    """Raise ConflictError when the reference already belongs to another tx type"""
    if item.tx_type != tx_type:
        raise ConflictError(
            f"External reference {item.canonical_external_ref} is already used by a {item.tx_type} transaction",
            {"existingTxType": item.tx_type, "requestedTxType": tx_type, "outboxId": item.id},
        )

"""Data access layer for deals and rewards"""

import math
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Set

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload, sessionmaker

from shelterflex_gateway.domain.exceptions import ConflictError
from shelterflex_gateway.domain.models import (
    Deal,
    DealPage,
    DealStatus,
    Reward,
    RewardMetadata,
    RewardStatus,
    ScheduleItem,
    ScheduleItemStatus,
)
from shelterflex_gateway.domain.payloads import format_decimal
from shelterflex_gateway.domain.schedule import generate_schedule
from shelterflex_gateway.infrastructure.database.models import DealRecord, RewardRecord, ScheduleItemRecord
from shelterflex_gateway.utils.date_utils import IncreasingClock, as_utc, utc_now


def _to_minor(amount: Decimal) -> int:
    return int(amount.scaleb(2))


def _from_minor(amount_minor: int) -> Decimal:
    return Decimal(amount_minor).scaleb(-2)


class DealRepository:
    """Repository for deals and their repayment schedules"""

    def __init__(self, session_factory: sessionmaker, clock: Callable[[], datetime] = utc_now):
        self._session_factory = session_factory
        self._clock = IncreasingClock(clock)

    def create(
        self,
        tenant_id: str,
        landlord_id: str,
        annual_rent_ngn: int,
        deposit_ngn: int,
        term_months: int,
        listing_id: Optional[str] = None,
        start_date: Optional[date] = None,
    ) -> Deal:
        """Persist a draft deal with a freshly generated schedule"""
        now = self._clock()
        financed_amount = annual_rent_ngn - deposit_ngn
        schedule = generate_schedule(financed_amount, term_months, start_date or now.date())

        record = DealRecord(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            landlord_id=landlord_id,
            listing_id=listing_id,
            annual_rent_ngn=annual_rent_ngn,
            deposit_ngn=deposit_ngn,
            financed_amount_ngn=financed_amount,
            term_months=term_months,
            status=DealStatus.DRAFT.value,
            created_at=now,
        )
        record.schedule = [
            ScheduleItemRecord(
                period=item.period,
                due_date=item.due_date,
                amount_minor=_to_minor(item.amount),
                status=item.status.value,
            )
            for item in schedule
        ]

        with self._session_factory() as session:
            session.add(record)
            session.commit()
            return self._to_domain(record)

    def find_by_id(self, deal_id: str) -> Optional[Deal]:
        with self._session_factory() as session:
            record = self._load(session, deal_id)
            return self._to_domain(record) if record is not None else None

    def find_many(
        self,
        tenant_id: Optional[str] = None,
        landlord_id: Optional[str] = None,
        status: Optional[DealStatus] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> DealPage:
        """Filtered deals, newest first, one page at a time"""
        filters = []
        if tenant_id:
            filters.append(DealRecord.tenant_id == tenant_id)
        if landlord_id:
            filters.append(DealRecord.landlord_id == landlord_id)
        if status:
            filters.append(DealRecord.status == DealStatus(status).value)

        with self._session_factory() as session:
            total = session.scalar(select(func.count()).select_from(DealRecord).where(*filters)) or 0
            records = session.scalars(
                select(DealRecord)
                .where(*filters)
                .options(selectinload(DealRecord.schedule))
                .order_by(DealRecord.created_at.desc(), DealRecord.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            ).all()

            return DealPage(
                deals=[self._to_domain(r) for r in records],
                total=total,
                page=page,
                page_size=page_size,
                total_pages=math.ceil(total / page_size) if page_size else 0,
            )

    def update_status(self, deal_id: str, status: DealStatus) -> Optional[Deal]:
        with self._session_factory() as session:
            record = self._load(session, deal_id)
            if record is None:
                return None
            record.status = DealStatus(status).value
            session.commit()
            return self._to_domain(record)

    def update_schedule_item_status(
        self,
        deal_id: str,
        period: int,
        status: ScheduleItemStatus,
    ) -> Optional[Deal]:
        """Change one item's status; amounts are never touched"""
        with self._session_factory() as session:
            record = self._load(session, deal_id)
            if record is None:
                return None

            item = next((i for i in record.schedule if i.period == period), None)
            if item is None:
                return None

            item.status = ScheduleItemStatus(status).value
            session.commit()
            return self._to_domain(record)

    @staticmethod
    def _load(session, deal_id: str) -> Optional[DealRecord]:
        return session.scalars(
            select(DealRecord)
            .where(DealRecord.id == deal_id)
            .options(selectinload(DealRecord.schedule))
        ).first()

    @staticmethod
    def _to_domain(record: DealRecord) -> Deal:
        # Fresh objects on every read so callers cannot mutate stored state
        return Deal(
            id=record.id,
            tenant_id=record.tenant_id,
            landlord_id=record.landlord_id,
            listing_id=record.listing_id,
            annual_rent_ngn=record.annual_rent_ngn,
            deposit_ngn=record.deposit_ngn,
            financed_amount_ngn=record.financed_amount_ngn,
            term_months=record.term_months,
            created_at=as_utc(record.created_at),
            status=DealStatus(record.status),
            schedule=[
                ScheduleItem(
                    period=item.period,
                    due_date=item.due_date,
                    amount=_from_minor(item.amount_minor),
                    status=ScheduleItemStatus(item.status),
                )
                for item in sorted(record.schedule, key=lambda i: i.period)
            ],
        )


# Allowed reward transitions; paid and cancelled are terminal
REWARD_TRANSITIONS: Dict[RewardStatus, Set[RewardStatus]] = {
    RewardStatus.PENDING: {RewardStatus.PAYABLE, RewardStatus.CANCELLED},
    RewardStatus.PAYABLE: {RewardStatus.PAID, RewardStatus.CANCELLED},
    RewardStatus.PAID: set(),
    RewardStatus.CANCELLED: set(),
}


class RewardRepository:
    """Repository for whistleblower rewards"""

    def __init__(self, session_factory: sessionmaker, clock: Callable[[], datetime] = utc_now):
        self._session_factory = session_factory
        self._clock = IncreasingClock(clock)

    def create(self, whistleblower_id: str, deal_id: str, listing_id: str, amount_usdc: Decimal) -> Reward:
        now = self._clock()
        record = RewardRecord(
            id=str(uuid.uuid4()),
            whistleblower_id=whistleblower_id,
            deal_id=deal_id,
            listing_id=listing_id,
            amount_usdc=format_decimal(Decimal(amount_usdc)),
            status=RewardStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        with self._session_factory() as session:
            session.add(record)
            session.commit()
            return self._to_domain(record)

    def get_by_id(self, reward_id: str) -> Optional[Reward]:
        with self._session_factory() as session:
            record = session.get(RewardRecord, reward_id)
            return self._to_domain(record) if record is not None else None

    def list_all(self) -> List[Reward]:
        with self._session_factory() as session:
            records = session.scalars(
                select(RewardRecord).order_by(RewardRecord.created_at.desc(), RewardRecord.id.desc())
            ).all()
            return [self._to_domain(r) for r in records]

    def update_status(self, reward_id: str, status: RewardStatus) -> Optional[Reward]:
        """
        Move a reward along its lifecycle.

        Paid is only reachable through mark_as_paid, which records the payout.

        Raises:
            ConflictError: Transition not allowed from the current status
        """
        status = RewardStatus(status)

        with self._session_factory() as session:
            record = session.get(RewardRecord, reward_id)
            if record is None:
                return None

            current = RewardStatus(record.status)
            if status == RewardStatus.PAID or status not in REWARD_TRANSITIONS[current]:
                raise ConflictError(
                    f"Reward {reward_id} cannot move from {current.value} to {status.value}",
                    {"currentStatus": current.value, "requestedStatus": status.value},
                )

            record.status = status.value
            record.updated_at = self._clock()
            session.commit()
            return self._to_domain(record)

    def mark_as_paid(
        self,
        reward_id: str,
        payment_tx_id: str,
        external_ref_source: str,
        external_ref: str,
        metadata: Optional[RewardMetadata] = None,
    ) -> Optional[Reward]:
        """
        Record the payout of a payable reward.

        Raises:
            ConflictError: Reward is not payable
        """
        with self._session_factory() as session:
            record = session.get(RewardRecord, reward_id)
            if record is None:
                return None

            ensure_payable(reward_id, RewardStatus(record.status))

            now = self._clock()
            record.status = RewardStatus.PAID.value
            record.paid_at = now
            record.updated_at = now
            record.payment_tx_id = payment_tx_id
            record.external_ref_source = external_ref_source
            record.external_ref = external_ref
            if metadata is not None:
                record.payout_metadata = {
                    "amount_ngn": format_decimal(metadata.amount_ngn) if metadata.amount_ngn is not None else None,
                    "fx_rate_ngn_per_usdc": (
                        format_decimal(metadata.fx_rate_ngn_per_usdc)
                        if metadata.fx_rate_ngn_per_usdc is not None
                        else None
                    ),
                    "fx_provider": metadata.fx_provider,
                }

            session.commit()
            return self._to_domain(record)

    @staticmethod
    def _to_domain(record: RewardRecord) -> Reward:
        metadata = None
        if record.payout_metadata:
            raw = record.payout_metadata
            metadata = RewardMetadata(
                amount_ngn=Decimal(raw["amount_ngn"]) if raw.get("amount_ngn") is not None else None,
                fx_rate_ngn_per_usdc=(
                    Decimal(raw["fx_rate_ngn_per_usdc"]) if raw.get("fx_rate_ngn_per_usdc") is not None else None
                ),
                fx_provider=raw.get("fx_provider"),
            )

        return Reward(
            reward_id=record.id,
            whistleblower_id=record.whistleblower_id,
            deal_id=record.deal_id,
            listing_id=record.listing_id,
            amount_usdc=Decimal(record.amount_usdc),
            status=RewardStatus(record.status),
            created_at=as_utc(record.created_at),
            updated_at=as_utc(record.updated_at),
            paid_at=as_utc(record.paid_at),
            payment_tx_id=record.payment_tx_id,
            external_ref_source=record.external_ref_source,
            external_ref=record.external_ref,
            metadata=metadata,
        )


def ensure_payable(reward_id: str, current: RewardStatus) -> None:
    """Raise ConflictError unless the reward is payable"""
    if current != RewardStatus.PAYABLE:
        raise ConflictError(
            f"Reward {reward_id} cannot be marked as paid",
            {"currentStatus": current.value, "requiredStatus": RewardStatus.PAYABLE.value},
        )

"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shelterflex_gateway.domain.models import (
    Deal,
    DealStatus,
    OutboxItem,
    OutboxStatus,
    Reward,
    RewardStatus,
    ScheduleItem,
    ScheduleItemStatus,
)
from shelterflex_gateway.domain.payloads import PositiveDecimal, UsdcAmount, format_decimal

T = TypeVar("T")


def format_money(amount: Decimal) -> str:
    """NGN amount with exactly two decimals"""
    return f"{amount:.2f}"


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Envelope(CamelModel, Generic[T]):
    """Success envelope wrapping every 2xx body"""

    success: bool = True
    data: T


# Deals


class CreateDealRequest(CamelModel):
    """Request body for POST /api/deals"""

    tenant_id: str = Field(..., min_length=1, description="Tenant identifier")
    landlord_id: str = Field(..., min_length=1, description="Landlord identifier")
    listing_id: Optional[str] = Field(None, description="Listing the deal was originated from")
    annual_rent_ngn: int = Field(..., description="Annual rent in whole naira")
    deposit_ngn: int = Field(..., description="Tenant deposit in whole naira")
    term_months: int = Field(..., description="Repayment term, one of the allowed terms")


class ScheduleItemSchema(CamelModel):
    period: int
    due_date: date
    amount: str
    status: ScheduleItemStatus

    @classmethod
    def from_domain(cls, item: ScheduleItem) -> "ScheduleItemSchema":
        return cls(period=item.period, due_date=item.due_date, amount=format_money(item.amount), status=item.status)


class DealSchema(CamelModel):
    id: str
    tenant_id: str
    landlord_id: str
    listing_id: Optional[str] = None
    annual_rent_ngn: int
    deposit_ngn: int
    financed_amount_ngn: int
    term_months: int
    status: DealStatus
    created_at: datetime
    schedule: List[ScheduleItemSchema]

    @classmethod
    def from_domain(cls, deal: Deal) -> "DealSchema":
        return cls(
            id=deal.id,
            tenant_id=deal.tenant_id,
            landlord_id=deal.landlord_id,
            listing_id=deal.listing_id,
            annual_rent_ngn=deal.annual_rent_ngn,
            deposit_ngn=deal.deposit_ngn,
            financed_amount_ngn=deal.financed_amount_ngn,
            term_months=deal.term_months,
            status=deal.status,
            created_at=deal.created_at,
            schedule=[ScheduleItemSchema.from_domain(item) for item in deal.schedule],
        )


class PaginationSchema(CamelModel):
    total: int
    page: int
    page_size: int
    total_pages: int


class DealListSchema(CamelModel):
    deals: List[DealSchema]
    pagination: PaginationSchema


class ScheduleViewSchema(CamelModel):
    """Schedule with statuses recomputed for a given date"""

    deal_id: str
    as_of: date
    schedule: List[ScheduleItemSchema]
    total_paid: str
    remaining_balance: str


class UpdateDealStatusRequest(CamelModel):
    status: DealStatus


class UpdateScheduleItemRequest(CamelModel):
    status: ScheduleItemStatus


# Payments


class ConfirmPaymentRequest(CamelModel):
    """Request body for POST /api/payments/confirm"""

    deal_id: str = Field(..., min_length=1)
    tx_type: Literal["tenant_repayment", "landlord_payout"]
    amount_usdc: UsdcAmount
    token_address: str = Field(..., min_length=1)
    external_ref_source: str = Field(..., min_length=1, description='Payment rail, e.g. "paystack"')
    external_ref: str = Field(..., min_length=1, description="Payment id on that rail")
    listing_id: Optional[str] = None
    amount_ngn: Optional[PositiveDecimal] = None
    fx_rate_ngn_per_usdc: Optional[PositiveDecimal] = None
    fx_provider: Optional[str] = None


class ReceiptSchema(CamelModel):
    outbox_id: str
    tx_id: str
    status: OutboxStatus


class ConfirmPaymentResponse(ReceiptSchema):
    message: str


# Rewards


class CreateRewardRequest(CamelModel):
    whistleblower_id: str = Field(..., min_length=1)
    deal_id: str = Field(..., min_length=1)
    listing_id: str = Field(..., min_length=1)
    amount_usdc: UsdcAmount


class UpdateRewardStatusRequest(CamelModel):
    status: RewardStatus


class MarkRewardPaidRequest(CamelModel):
    """Request body for POST /api/admin/rewards/{id}/mark-paid"""

    token_address: str = Field(..., min_length=1)
    external_ref_source: str = Field(..., min_length=1)
    external_ref: str = Field(..., min_length=1)
    amount_usdc: Optional[UsdcAmount] = Field(None, description="Defaults to the reward amount")
    amount_ngn: Optional[PositiveDecimal] = None
    fx_rate_ngn_per_usdc: Optional[PositiveDecimal] = None
    fx_provider: Optional[str] = None


class RewardMetadataSchema(CamelModel):
    amount_ngn: Optional[str] = None
    fx_rate_ngn_per_usdc: Optional[str] = None
    fx_provider: Optional[str] = None


class RewardSchema(CamelModel):
    reward_id: str
    whistleblower_id: str
    deal_id: str
    listing_id: str
    amount_usdc: str
    status: RewardStatus
    created_at: datetime
    updated_at: datetime
    paid_at: Optional[datetime] = None
    payment_tx_id: Optional[str] = None
    external_ref_source: Optional[str] = None
    external_ref: Optional[str] = None
    metadata: Optional[RewardMetadataSchema] = None

    @classmethod
    def from_domain(cls, reward: Reward) -> "RewardSchema":
        metadata = None
        if reward.metadata is not None:
            metadata = RewardMetadataSchema(
                amount_ngn=_optional_decimal(reward.metadata.amount_ngn),
                fx_rate_ngn_per_usdc=_optional_decimal(reward.metadata.fx_rate_ngn_per_usdc),
                fx_provider=reward.metadata.fx_provider,
            )
        return cls(
            reward_id=reward.reward_id,
            whistleblower_id=reward.whistleblower_id,
            deal_id=reward.deal_id,
            listing_id=reward.listing_id,
            amount_usdc=format_decimal(reward.amount_usdc),
            status=reward.status,
            created_at=reward.created_at,
            updated_at=reward.updated_at,
            paid_at=reward.paid_at,
            payment_tx_id=reward.payment_tx_id,
            external_ref_source=reward.external_ref_source,
            external_ref=reward.external_ref,
            metadata=metadata,
        )


class RewardPaidSchema(CamelModel):
    reward: RewardSchema
    receipt: ReceiptSchema


# Outbox


class OutboxItemSchema(CamelModel):
    id: str
    tx_type: str
    tx_id: str
    external_ref: str
    status: OutboxStatus
    attempts: int
    last_error: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    last_attempt_at: Optional[datetime] = None
    next_attempt_at: Optional[datetime] = None
    payload: Dict[str, Any]

    @classmethod
    def from_domain(cls, item: OutboxItem) -> "OutboxItemSchema":
        return cls(
            id=item.id,
            tx_type=item.tx_type,
            tx_id=item.tx_id,
            external_ref=item.canonical_external_ref,
            status=item.status,
            attempts=item.attempts,
            last_error=item.last_error,
            created_at=item.created_at,
            updated_at=item.updated_at,
            last_attempt_at=item.last_attempt_at,
            next_attempt_at=item.next_attempt_at,
            payload=item.payload,
        )


class OutboxListSchema(CamelModel):
    items: List[OutboxItemSchema]
    total: int


class RetryResultSchema(CamelModel):
    retried: bool
    item: OutboxItemSchema
    message: str


class RetryAllResultSchema(CamelModel):
    succeeded: int
    failed: int
    message: str


# Ledger


class AmountRequest(CamelModel):
    amount: str = Field(..., pattern=r"^\d+$", description="Whole token units as a digit string")


class BalanceSchema(CamelModel):
    account: str
    balance: str
    contract_id: Optional[str] = None
    adapter: str
    network: str


class LedgerConfigSchema(CamelModel):
    rpc_url: str
    network_passphrase: str
    contract_id: Optional[str] = None


def _optional_decimal(value: Optional[Decimal]) -> Optional[str]:
    return format_decimal(value) if value is not None else None

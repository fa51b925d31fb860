"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


class DealStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    DEFAULTED = "defaulted"


class ScheduleItemStatus(str, Enum):
    UPCOMING = "upcoming"
    DUE = "due"
    PAID = "paid"
    LATE = "late"


class OutboxStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class TxType(str, Enum):
    TENANT_REPAYMENT = "tenant_repayment"
    LANDLORD_PAYOUT = "landlord_payout"
    WHISTLEBLOWER_REWARD = "whistleblower_reward"


class RewardStatus(str, Enum):
    PENDING = "pending"
    PAYABLE = "payable"
    PAID = "paid"
    CANCELLED = "cancelled"


@dataclass
class ScheduleItem:
    """Single monthly payment in a deal's repayment schedule"""

    period: int
    due_date: date
    amount: Decimal  # NGN, 2 decimal places
    status: ScheduleItemStatus = ScheduleItemStatus.UPCOMING


@dataclass
class Deal:
    """Financed rent agreement between tenant and landlord"""

    id: str
    tenant_id: str
    landlord_id: str
    listing_id: Optional[str]
    annual_rent_ngn: int
    deposit_ngn: int
    financed_amount_ngn: int
    term_months: int
    created_at: datetime
    status: DealStatus
    schedule: List[ScheduleItem] = field(default_factory=list)


@dataclass
class DealPage:
    """One page of deals plus totals for pagination"""

    deals: List[Deal]
    total: int
    page: int
    page_size: int
    total_pages: int


@dataclass
class OutboxItem:
    """Durable intent to write a receipt to the ledger"""

    id: str
    tx_type: str
    canonical_external_ref: str
    tx_id: str  # SHA-256 hex, 64 chars
    payload: Dict[str, Any]
    status: OutboxStatus
    attempts: int
    created_at: datetime
    updated_at: datetime
    last_error: Optional[str] = None
    last_attempt_at: Optional[datetime] = None
    next_attempt_at: Optional[datetime] = None


@dataclass
class RetrySummary:
    """Outcome tally of a retry sweep"""

    succeeded: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.succeeded + self.failed


@dataclass
class RewardMetadata:
    """Optional NGN/FX context attached to a reward payout"""

    amount_ngn: Optional[Decimal] = None
    fx_rate_ngn_per_usdc: Optional[Decimal] = None
    fx_provider: Optional[str] = None


@dataclass
class Reward:
    """Whistleblower reward for a listing that turned into a deal"""

    reward_id: str
    whistleblower_id: str
    deal_id: str
    listing_id: str
    amount_usdc: Decimal
    status: RewardStatus
    created_at: datetime
    updated_at: datetime
    paid_at: Optional[datetime] = None
    payment_tx_id: Optional[str] = None
    external_ref_source: Optional[str] = None
    external_ref: Optional[str] = None
    metadata: Optional[RewardMetadata] = None

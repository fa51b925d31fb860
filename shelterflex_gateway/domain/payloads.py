"""Typed outbox payloads, one shape per transaction type"""

from decimal import Decimal
from typing import Annotated, Dict, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from shelterflex_gateway.domain.models import TxType


def format_decimal(value: Decimal) -> str:
    """Plain notation without trailing zeros: 100.50 → "100.5", 1E+2 → "100" """
    return format(value.normalize(), "f")


# USDC has 6 decimals on chain
UsdcAmount = Annotated[
    Decimal,
    Field(gt=0, decimal_places=6),
    PlainSerializer(format_decimal, return_type=str),
]

PositiveDecimal = Annotated[
    Decimal,
    Field(gt=0),
    PlainSerializer(format_decimal, return_type=str),
]


class BasePayload(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    deal_id: str = Field(..., min_length=1)
    amount_usdc: UsdcAmount
    token_address: str = Field(..., min_length=1)
    amount_ngn: Optional[PositiveDecimal] = None
    fx_rate_ngn_per_usdc: Optional[PositiveDecimal] = None
    fx_provider: Optional[str] = None

    def to_document(self) -> Dict[str, object]:
        """JSON-safe map used for hashing and storage; unset optionals omitted"""
        return self.model_dump(mode="json", exclude_none=True, exclude={"tx_type"})


class TenantRepaymentPayload(BasePayload):
    tx_type: Literal[TxType.TENANT_REPAYMENT] = TxType.TENANT_REPAYMENT
    listing_id: Optional[str] = None


class LandlordPayoutPayload(BasePayload):
    tx_type: Literal[TxType.LANDLORD_PAYOUT] = TxType.LANDLORD_PAYOUT
    listing_id: Optional[str] = None


class WhistleblowerRewardPayload(BasePayload):
    tx_type: Literal[TxType.WHISTLEBLOWER_REWARD] = TxType.WHISTLEBLOWER_REWARD
    reward_id: str = Field(..., min_length=1)
    whistleblower_id: str = Field(..., min_length=1)
    listing_id: str = Field(..., min_length=1)


TxPayload = Union[TenantRepaymentPayload, LandlordPayoutPayload, WhistleblowerRewardPayload]

PAYLOAD_MODELS: Dict[TxType, Type[BasePayload]] = {
    TxType.TENANT_REPAYMENT: TenantRepaymentPayload,
    TxType.LANDLORD_PAYOUT: LandlordPayoutPayload,
    TxType.WHISTLEBLOWER_REWARD: WhistleblowerRewardPayload,
}

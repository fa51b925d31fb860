"""Ledger adapter boundary: the only way the service talks to the Soroban contract"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Optional


@dataclass(frozen=True)
class LedgerConfig:
    rpc_url: str
    network_passphrase: str
    contract_id: Optional[str] = None


@dataclass(frozen=True)
class ReceiptRequest:
    """
    Receipt to be written on chain.

    Monetary values are decimal strings. The raw external reference never
    leaves the service; only its hash is sent.
    """

    tx_id: str
    tx_type: str
    amount_usdc: str
    token_address: str
    deal_id: str
    external_ref_hash: str
    listing_id: Optional[str] = None
    amount_ngn: Optional[str] = None
    fx_rate_ngn_per_usdc: Optional[str] = None
    fx_provider: Optional[str] = None

    def to_json(self) -> dict:
        return {key: value for key, value in asdict(self).items() if value is not None}


class LedgerAdapter(ABC):
    """
    Abstract ledger client.

    record_receipt must be idempotent on tx_id: writing a receipt that already
    exists is a success, not an error.
    """

    @abstractmethod
    async def record_receipt(self, request: ReceiptRequest) -> None:
        ...

    @abstractmethod
    async def get_balance(self, account: str) -> int:
        ...

    @abstractmethod
    async def credit(self, account: str, amount: int) -> None:
        ...

    @abstractmethod
    async def debit(self, account: str, amount: int) -> None:
        ...

    @abstractmethod
    def get_config(self) -> LedgerConfig:
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Short adapter name reported by the balance endpoints"""

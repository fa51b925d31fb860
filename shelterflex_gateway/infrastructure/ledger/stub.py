"""In-memory ledger used in development and tests"""

import logging
from typing import Dict

from shelterflex_gateway.domain.exceptions import LedgerWriteFailure
from shelterflex_gateway.infrastructure.ledger.adapter import LedgerAdapter, LedgerConfig, ReceiptRequest

logger = logging.getLogger(__name__)


def account_hash(account: str) -> int:
    """Deterministic 32-bit string hash (h * 31 + c), absolute value"""
    h = 0
    for char in account:
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


class StubLedgerAdapter(LedgerAdapter):
    """
    Ledger stand-in that never leaves the process.

    Balances start at a value between 1000 and 9999 derived from the account
    string, so the same account always sees the same opening balance.
    Receipts are kept by tx_id.
    """

    def __init__(self, config: LedgerConfig):
        self._config = config
        self._balances: Dict[str, int] = {}
        self.receipts: Dict[str, ReceiptRequest] = {}
        logger.info(
            "Using stub ledger adapter",
            extra={"rpc_url": config.rpc_url, "contract_id": config.contract_id},
        )

    @property
    def name(self) -> str:
        return "stub"

    async def record_receipt(self, request: ReceiptRequest) -> None:
        if request.tx_id in self.receipts:
            logger.info("Receipt already recorded", extra={"tx_id": request.tx_id})
            return
        self.receipts[request.tx_id] = request
        logger.info("Receipt recorded", extra={"tx_id": request.tx_id, "tx_type": request.tx_type})

    async def get_balance(self, account: str) -> int:
        if account not in self._balances:
            self._balances[account] = 1000 + account_hash(account) % 9000
        return self._balances[account]

    async def credit(self, account: str, amount: int) -> None:
        balance = await self.get_balance(account)
        self._balances[account] = balance + amount

    async def debit(self, account: str, amount: int) -> None:
        balance = await self.get_balance(account)
        if balance < amount:
            raise LedgerWriteFailure(
                f"Insufficient balance: {balance} < {amount}",
                {"account": account, "balance": str(balance), "amount": str(amount)},
            )
        self._balances[account] = balance - amount

    def get_config(self) -> LedgerConfig:
        return self._config

"""Ledger gateway client with exponential backoff retry logic"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from shelterflex_gateway.domain.exceptions import LedgerWriteFailure
from shelterflex_gateway.infrastructure.ledger.adapter import LedgerAdapter, LedgerConfig, ReceiptRequest
from shelterflex_gateway.infrastructure.observability.metrics import ledger_failure_counter, ledger_latency_histogram

logger = logging.getLogger(__name__)


class HttpLedgerAdapter(LedgerAdapter):
    """Client for the ledger gateway that fronts the Soroban contract"""

    def __init__(
        self,
        base_url: str,
        config: LedgerConfig,
        max_retries: int = 3,
        backoff_base: float = 0.5,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.timeout = timeout
        self._config = config
        self._transport = transport

    @property
    def name(self) -> str:
        return "http"

    async def record_receipt(self, request: ReceiptRequest) -> None:
        """
        Write a receipt to the ledger.

        A 409 means the ledger already holds a receipt for this tx_id, which
        counts as success.

        Raises:
            LedgerWriteFailure: All retries exhausted or request rejected
        """
        await self._request("record_receipt", "POST", "/receipts", json=request.to_json(), accept_conflict=True)

    async def get_balance(self, account: str) -> int:
        response = await self._request("get_balance", "GET", f"/balances/{account}")
        return int(response.json()["balance"])

    async def credit(self, account: str, amount: int) -> None:
        await self._request("credit", "POST", f"/balances/{account}/credit", json={"amount": str(amount)})

    async def debit(self, account: str, amount: int) -> None:
        await self._request("debit", "POST", f"/balances/{account}/debit", json={"amount": str(amount)})

    def get_config(self) -> LedgerConfig:
        return self._config

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        accept_conflict: bool = False,
    ) -> httpx.Response:
        """
        Send one logical request with retries.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base, ... (base * 2^(attempt-1))
        - Retries on 5xx errors and network failures
        - Other 4xx responses fail immediately
        - Tracks latency histogram and failure counter per operation
        """
        attempt = 0
        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport) as client:
            while True:
                try:
                    with ledger_latency_histogram.labels(operation=operation).time():
                        response = await client.request(method, path, json=json)

                    if accept_conflict and response.status_code == 409:
                        logger.info("Ledger reports receipt already recorded", extra={"operation": operation})
                        return response

                    if 400 <= response.status_code < 500:
                        ledger_failure_counter.labels(operation=operation).inc()
                        raise LedgerWriteFailure(
                            f"Ledger rejected {operation}: HTTP {response.status_code}",
                            {"status": response.status_code, "body": response.text[:500]},
                        )

                    response.raise_for_status()
                    return response

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    ledger_failure_counter.labels(operation=operation).inc()

                    if attempt >= self.max_retries:
                        # Final failure after all retries
                        raise LedgerWriteFailure(
                            f"Ledger {operation} failed after {attempt} attempts: {e}",
                            {"attempts": attempt},
                        ) from e

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    logger.warning(
                        "Ledger request failed, retrying",
                        extra={"operation": operation, "attempt": attempt, "backoff_seconds": backoff},
                    )
                    await asyncio.sleep(backoff)

"""Ledger adapter selection from configuration"""

from shelterflex_gateway.config import Settings
from shelterflex_gateway.infrastructure.ledger.adapter import LedgerAdapter, LedgerConfig
from shelterflex_gateway.infrastructure.ledger.http import HttpLedgerAdapter
from shelterflex_gateway.infrastructure.ledger.stub import StubLedgerAdapter


def create_ledger_adapter(settings: Settings) -> LedgerAdapter:
    config = LedgerConfig(
        rpc_url=settings.soroban_rpc_url,
        network_passphrase=settings.soroban_network_passphrase,
        contract_id=settings.soroban_contract_id,
    )

    if settings.ledger_adapter == "http":
        return HttpLedgerAdapter(
            base_url=settings.ledger_api_base,
            config=config,
            max_retries=settings.ledger_max_retries,
            backoff_base=settings.ledger_backoff_base,
            timeout=settings.http_timeout_seconds,
        )

    return StubLedgerAdapter(config)

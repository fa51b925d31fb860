"""/api/balance and /soroban/config - direct ledger reads and adjustments"""

from fastapi import APIRouter, Depends

from shelterflex_gateway.api.dependencies import get_ledger
from shelterflex_gateway.api.v1.schemas import AmountRequest, BalanceSchema, Envelope, LedgerConfigSchema
from shelterflex_gateway.infrastructure.ledger.adapter import LedgerAdapter

router = APIRouter()
config_router = APIRouter()


async def _balance(ledger: LedgerAdapter, account: str) -> BalanceSchema:
    balance = await ledger.get_balance(account)
    config = ledger.get_config()
    return BalanceSchema(
        account=account,
        balance=str(balance),
        contract_id=config.contract_id,
        adapter=ledger.name,
        network=config.network_passphrase,
    )


@router.get("/{account}", response_model=Envelope[BalanceSchema])
async def get_balance(account: str, ledger: LedgerAdapter = Depends(get_ledger)):
    return Envelope(data=await _balance(ledger, account))


@router.post("/{account}/credit", response_model=Envelope[BalanceSchema])
async def credit(account: str, body: AmountRequest, ledger: LedgerAdapter = Depends(get_ledger)):
    await ledger.credit(account, int(body.amount))
    return Envelope(data=await _balance(ledger, account))


@router.post("/{account}/debit", response_model=Envelope[BalanceSchema])
async def debit(account: str, body: AmountRequest, ledger: LedgerAdapter = Depends(get_ledger)):
    """Debit beyond the balance fails with LEDGER_WRITE_FAILED and leaves the balance unchanged"""
    await ledger.debit(account, int(body.amount))
    return Envelope(data=await _balance(ledger, account))


@config_router.get("/config", response_model=Envelope[LedgerConfigSchema])
def get_ledger_config(ledger: LedgerAdapter = Depends(get_ledger)):
    config = ledger.get_config()
    return Envelope(data=LedgerConfigSchema(
        rpc_url=config.rpc_url,
        network_passphrase=config.network_passphrase,
        contract_id=config.contract_id,
    ))

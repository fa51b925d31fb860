from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Dict, Optional
import os

app = FastAPI(title="Mock Ledger Server", version="1.0.0")

RECEIPTS: Dict[str, dict] = {}
BALANCES: Dict[str, int] = {}
# Number of upcoming requests answered with 503, to exercise retries
FAILURES = {"remaining": int(os.getenv("MOCK_LEDGER_FAIL_FIRST", "0"))}


class Receipt(BaseModel):
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


class Amount(BaseModel):
    amount: str


def maybe_fail():
    if FAILURES["remaining"] > 0:
        FAILURES["remaining"] -= 1
        raise HTTPException(status_code=503, detail="ledger unavailable")


def opening_balance(account: str) -> int:
    return 1000 + sum(ord(c) for c in account) % 9000


@app.get("/health")
def health(): return {"status": "ok"}

@app.post("/receipts", status_code=201)
def record_receipt(receipt: Receipt):
    maybe_fail()
    if receipt.tx_id in RECEIPTS:
        return JSONResponse(status_code=409, content={"detail": "receipt already recorded"})
    RECEIPTS[receipt.tx_id] = receipt.model_dump()
    return {"tx_id": receipt.tx_id}

@app.get("/balances/{account}")
def get_balance(account: str):
    maybe_fail()
    return {"account": account, "balance": str(BALANCES.setdefault(account, opening_balance(account)))}

@app.post("/balances/{account}/credit")
def credit(account: str, body: Amount):
    maybe_fail()
    BALANCES[account] = BALANCES.setdefault(account, opening_balance(account)) + int(body.amount)
    return {"account": account, "balance": str(BALANCES[account])}

@app.post("/balances/{account}/debit")
def debit(account: str, body: Amount):
    maybe_fail()
    balance = BALANCES.setdefault(account, opening_balance(account))
    if balance < int(body.amount):
        raise HTTPException(status_code=422, detail="insufficient balance")
    BALANCES[account] = balance - int(body.amount)
    return {"account": account, "balance": str(BALANCES[account])}

@app.post("/_control/fail-next/{count}")
def fail_next(count: int):
    FAILURES["remaining"] = count
    return {"remaining": count}

@app.post("/_control/reset")
def reset():
    RECEIPTS.clear()
    BALANCES.clear()
    FAILURES["remaining"] = 0
    return {"status": "ok"}

"""POST /api/payments/confirm - payment confirmation with ledger receipt"""

import logging

from fastapi import APIRouter, Depends, Request, Response

from shelterflex_gateway.api.dependencies import get_container, get_request_id
from shelterflex_gateway.api.v1.schemas import ConfirmPaymentRequest, ConfirmPaymentResponse, Envelope
from shelterflex_gateway.container import Container
from shelterflex_gateway.domain.exceptions import InternalError
from shelterflex_gateway.domain.models import OutboxStatus, TxType
from shelterflex_gateway.domain.payloads import PAYLOAD_MODELS
from shelterflex_gateway.infrastructure.database.outbox_store import ensure_tx_type

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/confirm", response_model=Envelope[ConfirmPaymentResponse])
async def confirm_payment(
    body: ConfirmPaymentRequest,
    request: Request,
    response: Response,
    container: Container = Depends(get_container),
):
    """
    Confirm a payment and write a USDC receipt to the ledger.

    Flow:
    1. Build the external reference "{externalRefSource}:{externalRef}"
    2. Create the outbox item (idempotent: a repeat returns the existing item)
       and reject a reference already used by another tx type (409)
    3. Attempt the ledger write immediately unless already sent
    4. 200 if the receipt is on the ledger, 202 if queued for retry

    A failed ledger write is not an error for the caller: the outbox item is
    durable and the retry sweep will deliver it.
    """
    request_id = get_request_id(request)
    tx_type = TxType(body.tx_type)

    # Non-sensitive fields only: no amounts, no external refs
    logger.info(
        "Payment confirmation requested",
        extra={"request_id": request_id, "deal_id": body.deal_id, "tx_type": tx_type.value},
    )

    payload = PAYLOAD_MODELS[tx_type](
        deal_id=body.deal_id,
        amount_usdc=body.amount_usdc,
        token_address=body.token_address,
        listing_id=body.listing_id,
        amount_ngn=body.amount_ngn,
        fx_rate_ngn_per_usdc=body.fx_rate_ngn_per_usdc,
        fx_provider=body.fx_provider,
    )

    item = container.outbox_store.create(
        tx_type.value,
        f"{body.external_ref_source}:{body.external_ref}",
        payload,
    )
    ensure_tx_type(item, tx_type.value)
    logger.info(
        "Outbox item created or retrieved",
        extra={"request_id": request_id, "outbox_id": item.id, "tx_id": item.tx_id, "status": item.status.value},
    )

    sent = item.status == OutboxStatus.SENT or await container.sender.send(item)

    updated = container.outbox_store.get_by_id(item.id)
    if updated is None:
        raise InternalError("Failed to retrieve outbox item after send attempt", {"outboxId": item.id})

    response.status_code = 200 if sent else 202
    return Envelope(data=ConfirmPaymentResponse(
        outbox_id=updated.id,
        tx_id=updated.tx_id,
        status=updated.status,
        message=(
            "Payment confirmed and USDC receipt written to ledger"
            if sent
            else "Payment confirmed, USDC receipt queued for retry"
        ),
    ))

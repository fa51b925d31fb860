"""/api/admin - reward payouts and outbox operations"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from shelterflex_gateway.api.dependencies import get_container, get_request_id, get_reward_repository
from shelterflex_gateway.api.v1.schemas import (
    CreateRewardRequest,
    Envelope,
    MarkRewardPaidRequest,
    OutboxItemSchema,
    OutboxListSchema,
    ReceiptSchema,
    RetryAllResultSchema,
    RetryResultSchema,
    RewardPaidSchema,
    RewardSchema,
    UpdateRewardStatusRequest,
)
from shelterflex_gateway.container import Container
from shelterflex_gateway.domain.exceptions import InternalError, NotFoundError
from shelterflex_gateway.domain.models import OutboxStatus, RewardMetadata, TxType
from shelterflex_gateway.domain.payloads import WhistleblowerRewardPayload
from shelterflex_gateway.infrastructure.database.outbox_store import ensure_tx_type
from shelterflex_gateway.infrastructure.database.repositories import RewardRepository, ensure_payable

logger = logging.getLogger(__name__)

router = APIRouter()


# Rewards


@router.post("/rewards", response_model=Envelope[RewardSchema], status_code=201)
def create_reward(body: CreateRewardRequest, rewards: RewardRepository = Depends(get_reward_repository)):
    reward = rewards.create(
        whistleblower_id=body.whistleblower_id,
        deal_id=body.deal_id,
        listing_id=body.listing_id,
        amount_usdc=body.amount_usdc,
    )
    return Envelope(data=RewardSchema.from_domain(reward))


@router.get("/rewards", response_model=Envelope[List[RewardSchema]])
def list_rewards(rewards: RewardRepository = Depends(get_reward_repository)):
    return Envelope(data=[RewardSchema.from_domain(r) for r in rewards.list_all()])


@router.patch("/rewards/{reward_id}/status", response_model=Envelope[RewardSchema])
def update_reward_status(
    reward_id: str,
    body: UpdateRewardStatusRequest,
    rewards: RewardRepository = Depends(get_reward_repository),
):
    """Guarded lifecycle change; paid is only reachable through mark-paid"""
    reward = rewards.update_status(reward_id, body.status)
    if reward is None:
        raise NotFoundError(f"Reward not found: {reward_id}", {"rewardId": reward_id})
    return Envelope(data=RewardSchema.from_domain(reward))


@router.post("/rewards/{reward_id}/mark-paid", response_model=Envelope[RewardPaidSchema])
async def mark_reward_paid(
    reward_id: str,
    body: MarkRewardPaidRequest,
    request: Request,
    response: Response,
    container: Container = Depends(get_container),
):
    """
    Pay out a whistleblower reward and write the receipt to the ledger.

    Flow:
    1. Reward must exist (404) and be payable (409 with current/required status)
    2. Create the whistleblower_reward outbox item (idempotent on external ref)
       and reject a reference already used by another tx type (409)
    3. Attempt the ledger write; 200 if sent, 202 if queued for retry
    4. Mark the reward paid with the receipt's tx_id
    """
    request_id = get_request_id(request)

    reward = container.rewards.get_by_id(reward_id)
    if reward is None:
        raise NotFoundError(f"Reward not found: {reward_id}", {"rewardId": reward_id})
    ensure_payable(reward_id, reward.status)

    payload = WhistleblowerRewardPayload(
        reward_id=reward.reward_id,
        whistleblower_id=reward.whistleblower_id,
        deal_id=reward.deal_id,
        listing_id=reward.listing_id,
        amount_usdc=body.amount_usdc if body.amount_usdc is not None else reward.amount_usdc,
        token_address=body.token_address,
        amount_ngn=body.amount_ngn,
        fx_rate_ngn_per_usdc=body.fx_rate_ngn_per_usdc,
        fx_provider=body.fx_provider,
    )

    item = container.outbox_store.create(
        TxType.WHISTLEBLOWER_REWARD.value,
        f"{body.external_ref_source}:{body.external_ref}",
        payload,
    )
    ensure_tx_type(item, TxType.WHISTLEBLOWER_REWARD.value)

    sent = item.status == OutboxStatus.SENT or await container.sender.send(item)

    updated_item = container.outbox_store.get_by_id(item.id)
    if updated_item is None:
        raise InternalError("Failed to retrieve outbox item after send attempt", {"outboxId": item.id})

    ref_source, _, ref_id = item.canonical_external_ref.partition(":")
    metadata = RewardMetadata(
        amount_ngn=body.amount_ngn,
        fx_rate_ngn_per_usdc=body.fx_rate_ngn_per_usdc,
        fx_provider=body.fx_provider,
    )
    paid = container.rewards.mark_as_paid(
        reward_id,
        payment_tx_id=updated_item.tx_id,
        external_ref_source=ref_source,
        external_ref=ref_id,
        metadata=metadata if any(v is not None for v in vars(metadata).values()) else None,
    )
    if paid is None:
        raise NotFoundError(f"Reward not found: {reward_id}", {"rewardId": reward_id})

    logger.info(
        "Reward marked as paid",
        extra={"request_id": request_id, "reward_id": reward_id, "tx_id": updated_item.tx_id, "sent": sent},
    )

    response.status_code = 200 if sent else 202
    return Envelope(data=RewardPaidSchema(
        reward=RewardSchema.from_domain(paid),
        receipt=ReceiptSchema(outbox_id=updated_item.id, tx_id=updated_item.tx_id, status=updated_item.status),
    ))


# Outbox


@router.get("/outbox", response_model=Envelope[OutboxListSchema])
def list_outbox(
    request: Request,
    status: Optional[OutboxStatus] = Query(None, description="pending | sent | failed"),
    limit: int = Query(100, ge=1, le=1000),
    container: Container = Depends(get_container),
):
    """Operator view: by status oldest first, otherwise all items newest first"""
    if status is not None:
        items = container.outbox_store.list_by_status(status, limit=limit)
    else:
        items = container.outbox_store.list_all(limit)

    logger.info(
        "Outbox items retrieved",
        extra={"request_id": get_request_id(request), "count": len(items), "status": status.value if status else "all"},
    )
    return Envelope(data=OutboxListSchema(
        items=[OutboxItemSchema.from_domain(i) for i in items],
        total=len(items),
    ))


@router.post("/outbox/retry-all", response_model=Envelope[RetryAllResultSchema])
async def retry_all_outbox(
    request: Request,
    due_only: bool = Query(False, alias="dueOnly"),
    container: Container = Depends(get_container),
):
    """Retry every failed item sequentially, oldest first"""
    logger.info("Retry all failed items requested", extra={"request_id": get_request_id(request)})

    summary = await container.sender.retry_all(due_only=due_only)
    return Envelope(data=RetryAllResultSchema(
        succeeded=summary.succeeded,
        failed=summary.failed,
        message=f"Retried {summary.total} items: {summary.succeeded} succeeded, {summary.failed} failed",
    ))


@router.post("/outbox/{item_id}/retry", response_model=Envelope[RetryResultSchema])
async def retry_outbox_item(item_id: str, request: Request, container: Container = Depends(get_container)):
    logger.info("Manual retry requested", extra={"request_id": get_request_id(request), "outbox_id": item_id})

    success = await container.sender.retry(item_id)

    item = container.outbox_store.get_by_id(item_id)
    if item is None:
        raise InternalError("Failed to retrieve outbox item after retry", {"outboxId": item_id})

    return Envelope(data=RetryResultSchema(
        retried=success,
        item=OutboxItemSchema.from_domain(item),
        message=(
            "Retry successful, receipt written to ledger"
            if success
            else "Retry failed, item remains in failed state"
        ),
    ))

"""/api/deals - deal origination and repayment schedules"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from shelterflex_gateway.api.dependencies import get_container, get_deal_repository, get_request_id
from shelterflex_gateway.api.v1.schemas import (
    CreateDealRequest,
    DealListSchema,
    DealSchema,
    Envelope,
    PaginationSchema,
    ScheduleItemSchema,
    ScheduleViewSchema,
    UpdateDealStatusRequest,
    UpdateScheduleItemRequest,
    format_money,
)
from shelterflex_gateway.container import Container
from shelterflex_gateway.domain.exceptions import NotFoundError
from shelterflex_gateway.domain.models import DealStatus
from shelterflex_gateway.domain.result import unwrap
from shelterflex_gateway.domain.schedule import (
    calculate_remaining_balance,
    calculate_total_paid,
    paid_periods_of,
    recompute_statuses,
)
from shelterflex_gateway.domain.validation import validate_deal_terms
from shelterflex_gateway.infrastructure.database.repositories import DealRepository
from shelterflex_gateway.infrastructure.observability.metrics import record_deal_created

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=Envelope[DealSchema], status_code=201)
def create_deal(
    body: CreateDealRequest,
    request: Request,
    container: Container = Depends(get_container),
):
    """
    Originate a deal in draft status.

    Flow:
    1. Validate terms (allowed term, minimum deposit, deposit below rent)
    2. Financed amount = annual rent - deposit
    3. Generate the monthly schedule starting today
    4. Persist deal + schedule
    """
    terms = unwrap(validate_deal_terms(
        body.annual_rent_ngn,
        body.deposit_ngn,
        body.term_months,
        allowed_terms=container.settings.allowed_term_months,
        min_deposit_ratio=container.settings.min_deposit_ratio,
    ))

    deal = container.deals.create(
        tenant_id=body.tenant_id,
        landlord_id=body.landlord_id,
        listing_id=body.listing_id,
        annual_rent_ngn=terms.annual_rent_ngn,
        deposit_ngn=terms.deposit_ngn,
        term_months=terms.term_months,
    )

    record_deal_created(deal.term_months)
    logger.info(
        "Deal created",
        extra={"request_id": get_request_id(request), "deal_id": deal.id, "term_months": deal.term_months},
    )
    return Envelope(data=DealSchema.from_domain(deal))


@router.get("", response_model=Envelope[DealListSchema])
def list_deals(
    tenant_id: Optional[str] = Query(None, alias="tenantId"),
    landlord_id: Optional[str] = Query(None, alias="landlordId"),
    status: Optional[DealStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    deals: DealRepository = Depends(get_deal_repository),
):
    """Deals filtered by tenant, landlord or status, newest first"""
    result = deals.find_many(
        tenant_id=tenant_id,
        landlord_id=landlord_id,
        status=status,
        page=page,
        page_size=page_size,
    )
    return Envelope(data=DealListSchema(
        deals=[DealSchema.from_domain(d) for d in result.deals],
        pagination=PaginationSchema(
            total=result.total,
            page=result.page,
            page_size=result.page_size,
            total_pages=result.total_pages,
        ),
    ))


@router.get("/{deal_id}", response_model=Envelope[DealSchema])
def get_deal(deal_id: str, deals: DealRepository = Depends(get_deal_repository)):
    deal = deals.find_by_id(deal_id)
    if deal is None:
        raise NotFoundError(f"Deal not found: {deal_id}", {"dealId": deal_id})
    return Envelope(data=DealSchema.from_domain(deal))


@router.get("/{deal_id}/schedule", response_model=Envelope[ScheduleViewSchema])
def get_schedule(
    deal_id: str,
    as_of: Optional[date] = Query(None, alias="asOf", description="Evaluate statuses on this date (default today)"),
    container: Container = Depends(get_container),
):
    """
    Schedule with statuses recomputed for a date.

    Paid items stay paid; others become upcoming, due (within the grace
    period) or late. Nothing is persisted.
    """
    deal = container.deals.find_by_id(deal_id)
    if deal is None:
        raise NotFoundError(f"Deal not found: {deal_id}", {"dealId": deal_id})

    as_of = as_of or date.today()
    paid = paid_periods_of(deal.schedule)
    schedule = recompute_statuses(deal.schedule, as_of, paid, grace_period_days=container.settings.grace_period_days)

    return Envelope(data=ScheduleViewSchema(
        deal_id=deal.id,
        as_of=as_of,
        schedule=[ScheduleItemSchema.from_domain(item) for item in schedule],
        total_paid=format_money(calculate_total_paid(deal.schedule, paid)),
        remaining_balance=format_money(calculate_remaining_balance(deal.schedule, paid)),
    ))


@router.patch("/{deal_id}/status", response_model=Envelope[DealSchema])
def update_deal_status(
    deal_id: str,
    body: UpdateDealStatusRequest,
    deals: DealRepository = Depends(get_deal_repository),
):
    deal = deals.update_status(deal_id, body.status)
    if deal is None:
        raise NotFoundError(f"Deal not found: {deal_id}", {"dealId": deal_id})
    return Envelope(data=DealSchema.from_domain(deal))


@router.patch("/{deal_id}/schedule/{period}", response_model=Envelope[DealSchema])
def update_schedule_item(
    deal_id: str,
    period: int,
    body: UpdateScheduleItemRequest,
    deals: DealRepository = Depends(get_deal_repository),
):
    """Set one schedule item's status, e.g. mark a period paid"""
    deal = deals.update_schedule_item_status(deal_id, period, body.status)
    if deal is None:
        raise NotFoundError(
            f"Deal or schedule period not found: {deal_id} / {period}",
            {"dealId": deal_id, "period": period},
        )
    return Envelope(data=DealSchema.from_domain(deal))

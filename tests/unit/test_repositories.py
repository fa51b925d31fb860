"""Unit tests for deal and reward repositories"""

from datetime import date
from decimal import Decimal

import pytest

from shelterflex_gateway.domain.exceptions import ConflictError
from shelterflex_gateway.domain.models import DealStatus, RewardMetadata, RewardStatus, ScheduleItemStatus


@pytest.fixture
def deals(container):
    return container.deals


@pytest.fixture
def rewards(container):
    return container.rewards


def test_create_deal_with_schedule(deals):
    """Test deal persists with the generated schedule in minor units"""
    deal = deals.create("tenant-1", "landlord-1", 1_000_000, 200_000, 3, start_date=date(2025, 1, 10))

    assert deal.status == DealStatus.DRAFT
    assert deal.financed_amount_ngn == 800_000
    assert [item.amount for item in deal.schedule] == [
        Decimal("266666.67"),
        Decimal("266666.67"),
        Decimal("266666.66"),
    ]

    loaded = deals.find_by_id(deal.id)
    assert loaded.schedule == deal.schedule
    assert loaded.schedule[0].due_date == date(2025, 2, 10)


def test_find_missing_deal(deals):
    assert deals.find_by_id("missing") is None


def test_find_many_filters_and_pages(deals):
    for n in range(5):
        deals.create(f"tenant-{n % 2}", "landlord-1", 1_000_000, 200_000, 3)

    page = deals.find_many(tenant_id="tenant-0", page=1, page_size=2)

    assert page.total == 3
    assert page.total_pages == 2
    assert len(page.deals) == 2
    assert all(d.tenant_id == "tenant-0" for d in page.deals)

    last = deals.find_many(tenant_id="tenant-0", page=2, page_size=2)
    assert len(last.deals) == 1


def test_find_many_newest_first(deals):
    ids = [deals.create("t", "l", 1_000_000, 200_000, 3).id for _ in range(3)]

    assert [d.id for d in deals.find_many().deals] == list(reversed(ids))


def test_update_status(deals):
    deal = deals.create("t", "l", 1_000_000, 200_000, 3)

    updated = deals.update_status(deal.id, DealStatus.ACTIVE)

    assert updated.status == DealStatus.ACTIVE
    assert deals.find_many(status=DealStatus.ACTIVE).total == 1
    assert deals.update_status("missing", DealStatus.ACTIVE) is None


def test_update_schedule_item_status(deals):
    """Test only the targeted period changes and amounts stay put"""
    deal = deals.create("t", "l", 1_000_000, 200_000, 3)

    updated = deals.update_schedule_item_status(deal.id, 2, ScheduleItemStatus.PAID)

    assert [i.status for i in updated.schedule] == [
        ScheduleItemStatus.UPCOMING,
        ScheduleItemStatus.PAID,
        ScheduleItemStatus.UPCOMING,
    ]
    assert [i.amount for i in updated.schedule] == [i.amount for i in deal.schedule]
    assert deals.update_schedule_item_status(deal.id, 4, ScheduleItemStatus.PAID) is None
    assert deals.update_schedule_item_status("missing", 1, ScheduleItemStatus.PAID) is None


def test_deal_reads_are_copies(deals):
    deal = deals.create("t", "l", 1_000_000, 200_000, 3)
    deal.schedule[0].status = ScheduleItemStatus.PAID

    assert deals.find_by_id(deal.id).schedule[0].status == ScheduleItemStatus.UPCOMING


def test_reward_lifecycle(rewards):
    """Test pending → payable → paid with payout details recorded"""
    reward = rewards.create("wb-1", "deal-1", "listing-1", Decimal("100"))
    assert reward.status == RewardStatus.PENDING

    rewards.update_status(reward.reward_id, RewardStatus.PAYABLE)
    paid = rewards.mark_as_paid(
        reward.reward_id,
        payment_tx_id="c" * 64,
        external_ref_source="stripe",
        external_ref="pi_1",
        metadata=RewardMetadata(amount_ngn=Decimal("150000"), fx_rate_ngn_per_usdc=Decimal("1500"), fx_provider="coinbase"),
    )

    assert paid.status == RewardStatus.PAID
    assert paid.paid_at is not None
    assert paid.payment_tx_id == "c" * 64
    assert paid.metadata.fx_rate_ngn_per_usdc == Decimal("1500")
    assert rewards.get_by_id(reward.reward_id).amount_usdc == Decimal("100")


def test_mark_as_paid_requires_payable(rewards):
    reward = rewards.create("wb-1", "deal-1", "listing-1", Decimal("100"))

    with pytest.raises(ConflictError) as exc_info:
        rewards.mark_as_paid(reward.reward_id, "tx", "stripe", "pi_1")

    assert exc_info.value.status_code == 409
    assert exc_info.value.details == {"currentStatus": "pending", "requiredStatus": "payable"}


@pytest.mark.parametrize(
    "path,target",
    [
        ([], RewardStatus.PAID),
        ([RewardStatus.CANCELLED], RewardStatus.PAYABLE),
        ([RewardStatus.PAYABLE], RewardStatus.PENDING),
    ],
)
def test_reward_transitions_guarded(rewards, path, target):
    reward = rewards.create("wb-1", "deal-1", "listing-1", Decimal("5"))
    for status in path:
        rewards.update_status(reward.reward_id, status)

    with pytest.raises(ConflictError):
        rewards.update_status(reward.reward_id, target)


def test_list_rewards_newest_first(rewards):
    first = rewards.create("wb-1", "deal-1", "listing-1", Decimal("1"))
    second = rewards.create("wb-2", "deal-2", "listing-2", Decimal("2"))

    assert [r.reward_id for r in rewards.list_all()] == [second.reward_id, first.reward_id]
    assert rewards.get_by_id("missing") is None

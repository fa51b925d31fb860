"""Explicit wiring of stores, repositories, the ledger adapter and the sender"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from shelterflex_gateway.config import Settings
from shelterflex_gateway.infrastructure.database.outbox_store import OutboxStore
from shelterflex_gateway.infrastructure.database.repositories import DealRepository, RewardRepository
from shelterflex_gateway.infrastructure.database.session import build_engine, build_session_factory, init_db
from shelterflex_gateway.infrastructure.ledger.adapter import LedgerAdapter
from shelterflex_gateway.infrastructure.ledger.factory import create_ledger_adapter
from shelterflex_gateway.services.outbox_sender import OutboxSender


@dataclass
class Container:
    """One instance per process; passed to whatever needs a store"""

    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    outbox_store: OutboxStore
    deals: DealRepository
    rewards: RewardRepository
    ledger: LedgerAdapter
    sender: OutboxSender


def build_container(
    settings: Settings,
    engine: Optional[Engine] = None,
    ledger: Optional[LedgerAdapter] = None,
) -> Container:
    """Construct every long-lived object from settings; engine and ledger can be injected"""
    engine = engine or build_engine(settings.database_url)
    if settings.auto_create_schema:
        init_db(engine)

    session_factory = build_session_factory(engine)
    outbox_store = OutboxStore(session_factory)
    ledger = ledger or create_ledger_adapter(settings)

    return Container(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        outbox_store=outbox_store,
        deals=DealRepository(session_factory),
        rewards=RewardRepository(session_factory),
        ledger=ledger,
        sender=OutboxSender(
            outbox_store,
            ledger,
            backoff_base_seconds=settings.outbox_backoff_base_seconds,
            backoff_max_seconds=settings.outbox_backoff_max_seconds,
        ),
    )

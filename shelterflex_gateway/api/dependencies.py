"""Dependency injection for FastAPI endpoints"""

from fastapi import Request

from shelterflex_gateway.config import settings
from shelterflex_gateway.container import Container, build_container
from shelterflex_gateway.infrastructure.database.outbox_store import OutboxStore
from shelterflex_gateway.infrastructure.database.repositories import DealRepository, RewardRepository
from shelterflex_gateway.infrastructure.ledger.adapter import LedgerAdapter
from shelterflex_gateway.services.outbox_sender import OutboxSender


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_container(request: Request) -> Container:
    """Application container, built from settings on first use unless injected"""
    container = getattr(request.app.state, "container", None)
    if container is None:
        container = build_container(settings)
        request.app.state.container = container
    return container


def get_deal_repository(request: Request) -> DealRepository:
    return get_container(request).deals


def get_reward_repository(request: Request) -> RewardRepository:
    return get_container(request).rewards


def get_outbox_store(request: Request) -> OutboxStore:
    return get_container(request).outbox_store


def get_outbox_sender(request: Request) -> OutboxSender:
    return get_container(request).sender


def get_ledger(request: Request) -> LedgerAdapter:
    return get_container(request).ledger

"""Pytest fixtures for testing"""

import importlib.util
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

import pytest
from fastapi.testclient import TestClient

from shelterflex_gateway.api.main import create_app
from shelterflex_gateway.config import Settings
from shelterflex_gateway.container import Container, build_container
from shelterflex_gateway.infrastructure.database.outbox_store import OutboxStore
from shelterflex_gateway.infrastructure.database.session import build_engine
from shelterflex_gateway.infrastructure.ledger.adapter import LedgerConfig
from shelterflex_gateway.infrastructure.ledger.stub import StubLedgerAdapter
from shelterflex_gateway.services.outbox_sender import OutboxSender

MOCK_LEDGER_PATH = Path(__file__).resolve().parents[1] / "mock" / "ledger_server" / "main.py"


class FakeClock:
    """Manually advanced UTC clock"""

    def __init__(self, start: datetime = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def test_settings() -> Settings:
    """In-memory database, stub ledger, no .env"""
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        ledger_adapter="stub",
        environment="test",
        soroban_contract_id="CTEST",
    )


@pytest.fixture
def ledger_config() -> LedgerConfig:
    return LedgerConfig(
        rpc_url="https://soroban-testnet.stellar.org",
        network_passphrase="Test SDF Network ; September 2015",
        contract_id="CTEST",
    )


@pytest.fixture
def ledger(ledger_config: LedgerConfig) -> StubLedgerAdapter:
    return StubLedgerAdapter(ledger_config)


@pytest.fixture
def container(test_settings: Settings, ledger: StubLedgerAdapter) -> Container:
    """Fresh in-memory database per test"""
    return build_container(test_settings, engine=build_engine(test_settings.database_url), ledger=ledger)


@pytest.fixture
def client(container: Container) -> TestClient:
    """Create FastAPI test client wired to the test container"""
    return TestClient(create_app(container))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(container: Container, clock: FakeClock) -> OutboxStore:
    """Outbox store on the test database with a controllable clock"""
    return OutboxStore(container.session_factory, clock=clock)


@pytest.fixture
def sender(store: OutboxStore, ledger: StubLedgerAdapter, clock: FakeClock) -> OutboxSender:
    return OutboxSender(store, ledger, backoff_base_seconds=30, backoff_max_seconds=3600, clock=clock)


@pytest.fixture
def tenant_payload() -> dict:
    return {
        "deal_id": "deal-001",
        "amount_usdc": "100.5",
        "token_address": "CUSDC",
        "amount_ngn": "150750",
        "fx_rate_ngn_per_usdc": "1500",
        "fx_provider": "coinbase",
    }


@pytest.fixture
def mock_ledger_app():
    """Mock ledger gateway loaded from mock/ledger_server, state reset per test"""
    spec = importlib.util.spec_from_file_location("mock_ledger_server", MOCK_LEDGER_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def make_deal_body() -> Callable[..., dict]:
    def _make(**overrides) -> dict:
        body = {
            "tenantId": "tenant-001",
            "landlordId": "landlord-001",
            "listingId": "listing-001",
            "annualRentNgn": 1_200_000,
            "depositNgn": 240_000,
            "termMonths": 12,
        }
        body.update(overrides)
        return body

    return _make

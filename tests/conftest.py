"""Shared test fixtures."""

from collections.abc import AsyncIterator
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from config.settings import Settings
from src.bootstrap import Services
from src.main import create_app
from tests.fakes import FakeSessionFactory, LedgerStack


@pytest.fixture
def stack() -> LedgerStack:
    """All services wired over in-memory repositories."""
    return LedgerStack()


@pytest.fixture
def app(stack: LedgerStack) -> FastAPI:
    application = create_app(Settings(RECONCILE_ENABLED=False))
    scheduler = MagicMock()
    scheduler.running = False
    scheduler.health.summary.return_value = {
        "status": "ok", "degraded_accounts": 0, "accounts": [],
    }
    application.state.session_factory = FakeSessionFactory()
    application.state.services = Services(
        accounts=stack.accounts,
        orders=stack.orders,
        positions=stack.positions,
        snapshots=stack.snapshots,
        transactions=stack.transactions,
        scheduler=scheduler,
    )
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

"""Unit tests for AccountReconciler with fake venue clients."""

import asyncio
from datetime import timedelta
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.dx_account.domain.models import DexAccount
from src.dx_common.errors import VenueUnavailableError
from src.dx_gateway.auth import AuthContext
from src.dx_reconcile.reconciler import AccountReconciler, aggregate_fills
from src.dx_venue.client import VenueBinding
from src.dx_venue.drift import DriftNormalizer
from src.dx_venue.hyperliquid import HyperliquidNormalizer
from src.dx_venue.models import TimeWindow, VenueFill
from tests.fakes import T0, AlwaysFailingVenueClient, FakeSessionFactory, FakeVenueClient, LedgerStack

ALICE = AuthContext(user_id="user-1")


def _hl_order(status: str = "open", sz: str = "0.4", side: str = "B") -> dict[str, Any]:
    return {
        "order": {
            "coin": "ETH", "side": side, "limitPx": "2510", "sz": sz, "origSz": "1.0",
            "oid": 123, "orderType": "Limit", "timestamp": 1790000000000,
        },
        "status": status,
    }


def _hl_fill(tid: int, sz: str, px: str, side: str = "B") -> dict[str, Any]:
    return {
        "coin": "ETH", "px": px, "sz": sz, "side": side,
        "time": 1790000000000, "oid": 123, "tid": tid, "fee": "0.1",
    }


HL_DEPOSIT = {"time": 1790000000000, "hash": "0xdep", "delta": {"type": "deposit", "usdc": "1000"}}


@pytest.fixture
def stack() -> LedgerStack:
    s = LedgerStack()
    s.add_account("acct-drift", "drift")
    s.add_account("acct-hl", "hyperliquid")
    return s


def _reconciler(stack: LedgerStack, client: FakeVenueClient,
                sessions: FakeSessionFactory | None = None) -> AccountReconciler:
    bindings = {
        "drift": VenueBinding(client=client, normalizer=DriftNormalizer()),
        "hyperliquid": VenueBinding(client=client, normalizer=HyperliquidNormalizer("testnet")),
    }
    return AccountReconciler(
        sessions or FakeSessionFactory(),
        bindings,
        stack.orders,
        stack.positions,
        stack.snapshots,
        stack.transactions,
        retry_attempts=2,
        retry_base_seconds=0,
        retry_max_seconds=0,
        fill_lookback=timedelta(hours=6),
    )


class TestAggregateFills:
    def test_volume_weighted_per_order(self) -> None:
        fills = [
            VenueFill(venue="hyperliquid", external_fill_id=str(i), external_order_id=oid,
                      market_index=4, direction="long", amount=Decimal(sz), price=Decimal(px),
                      filled_at=T0)
            for i, (oid, sz, px) in enumerate([
                ("123", "0.4", "2500"), ("123", "0.6", "2510"), ("456", "1", "10"),
            ])
        ]
        totals = aggregate_fills(fills)

        assert totals["123"].size == Decimal("1.0")
        assert totals["123"].vwap == Decimal("2506")
        assert totals["456"].vwap == Decimal("10")


class TestReconcile:
    async def test_discovers_orders_fills_and_transfers(self, stack: LedgerStack) -> None:
        client = FakeVenueClient(
            orders=[_hl_order()], fills=[_hl_fill(1, "0.6", "2500")], transfers=[HL_DEPOSIT]
        )
        sessions = FakeSessionFactory()
        account = stack.account_repo.accounts["acct-hl"]

        result = await _reconciler(stack, client, sessions).reconcile(account)

        assert (result.orders_seen, result.created, result.fills_recorded) == (1, 1, 1)
        assert result.transfers_seen == 1
        (order,) = stack.order_repo.orders.values()
        assert order.external_order_id == "123"
        assert order.filled_amount == Decimal("0.6")
        assert order.avg_fill_price == Decimal("2500")
        assert stack.tx_repo.transactions[0].direction == "deposit"
        assert [s.commits for s in sessions.sessions] == [1]

    async def test_replaying_a_pass_changes_nothing(self, stack: LedgerStack) -> None:
        client = FakeVenueClient(
            orders=[_hl_order()], fills=[_hl_fill(1, "0.6", "2500")], transfers=[HL_DEPOSIT]
        )
        reconciler = _reconciler(stack, client)
        account = stack.account_repo.accounts["acct-hl"]
        await reconciler.reconcile(account)
        (order,) = stack.order_repo.orders.values()
        version = order.version

        result = await reconciler.reconcile(account)

        assert (result.created, result.updated, result.fills_recorded) == (0, 0, 0)
        assert len(stack.order_repo.orders) == 1
        assert len(stack.fill_repo.fills) == 1
        assert len(stack.tx_repo.transactions) == 1
        assert stack.order_repo.orders[order.id].version == version

    async def test_malformed_items_are_skipped(self, stack: LedgerStack) -> None:
        bad = _hl_order()
        bad["order"]["coin"] = "NOPE"
        client = FakeVenueClient(orders=[bad, _hl_order()], fills=[{"tid": 5}])

        result = await _reconciler(stack, client).reconcile(stack.account_repo.accounts["acct-hl"])

        assert result.skipped_items == 2
        assert result.created == 1

    async def test_order_gone_from_open_list_is_filled_from_fills(self, stack: LedgerStack) -> None:
        stack.add_order("h-1", "acct-hl", external_order_id="123", status="open",
                        base_asset_amount=Decimal("1.0"), market_index=4)
        client = FakeVenueClient(fills=[_hl_fill(1, "0.4", "2500"), _hl_fill(2, "0.6", "2510")])

        result = await _reconciler(stack, client).reconcile(stack.account_repo.accounts["acct-hl"])

        order = stack.order_repo.orders["h-1"]
        assert result.updated == 1
        assert order.status == "filled"
        assert order.filled_amount == Decimal("1.0")
        assert order.avg_fill_price == Decimal("2506")

    async def test_derives_positions_and_snapshots(self, stack: LedgerStack) -> None:
        db = MagicMock()
        stack.add_order("d-1", "acct-drift", direction="long", external_order_id="17",
                        status="filled", base_asset_amount=Decimal("1"),
                        filled_amount=Decimal("1"), avg_fill_price=Decimal("2500"))
        stack.add_order("h-1", "acct-hl", direction="short", external_order_id="123",
                        status="open", base_asset_amount=Decimal("1"), market_index=4)
        created = await stack.positions.open_delta_neutral(db, ALICE, "d-1", "h-1")
        assert created.lifecycle_state == "opening"
        client = FakeVenueClient(
            orders=[_hl_order("filled", sz="0.0", side="A")],
            fills=[_hl_fill(9, "1.0", "2510", side="A")],
            positions=[{"position": {
                "coin": "ETH", "szi": "-1.0", "entryPx": "2510", "positionValue": "2520",
            }}],
        )

        result = await _reconciler(stack, client).reconcile(stack.account_repo.accounts["acct-hl"])

        assert result.positions_derived == 1
        assert result.snapshots == 1
        assert stack.position_repo.positions[created.id].lifecycle_state == "open"
        (snap,) = stack.snapshot_repo.snapshots
        assert snap.mark_price == Decimal("2520")
        assert snap.size == Decimal("0")
        assert snap.unrealized_pnl == Decimal("10")

    async def test_fill_window_uses_lookback(self, stack: LedgerStack) -> None:
        client = FakeVenueClient()

        await _reconciler(stack, client).reconcile(stack.account_repo.accounts["acct-drift"])

        (window,) = client.fill_windows
        assert window.start is not None and window.end is not None
        assert window.end - window.start == timedelta(hours=6)


class TestReconcileFailures:
    async def test_venue_outage_writes_nothing(self, stack: LedgerStack) -> None:
        client = AlwaysFailingVenueClient(httpx.ConnectError("refused"))
        sessions = FakeSessionFactory()

        with pytest.raises(VenueUnavailableError):
            await _reconciler(stack, client, sessions).reconcile(
                stack.account_repo.accounts["acct-hl"]
            )

        assert client.order_calls == 2
        assert sessions.sessions == []

    async def test_merge_failure_rolls_back(self, stack: LedgerStack) -> None:
        client = FakeVenueClient(orders=[_hl_order()], fills=[_hl_fill(1, "0.6", "2500")])
        sessions = FakeSessionFactory()
        stack.orders.record_fills = AsyncMock(side_effect=RuntimeError("db down"))  # type: ignore[method-assign]

        with pytest.raises(RuntimeError):
            await _reconciler(stack, client, sessions).reconcile(
                stack.account_repo.accounts["acct-hl"]
            )

        (session,) = sessions.sessions
        assert session.rollbacks == 1
        assert session.commits == 0

    async def test_unconfigured_venue(self, stack: LedgerStack) -> None:
        reconciler = AccountReconciler(
            FakeSessionFactory(), {}, stack.orders, stack.positions,
            stack.snapshots, stack.transactions,
        )
        with pytest.raises(VenueUnavailableError):
            await reconciler.reconcile(stack.account_repo.accounts["acct-drift"])


class SlowFillsVenueClient(FakeVenueClient):
    """Fails ``list_orders`` once a fill fetch is under way."""

    def __init__(self) -> None:
        super().__init__()
        self.fills_started = asyncio.Event()
        self.fills_in_flight = 0

    async def list_orders(self, account: DexAccount) -> list[dict[str, Any]]:
        await self.fills_started.wait()
        raise ValueError("bad cursor")

    async def list_fills(self, account: DexAccount, window: TimeWindow) -> list[dict[str, Any]]:
        self.fills_in_flight += 1
        self.fills_started.set()
        try:
            await asyncio.sleep(10)
        finally:
            self.fills_in_flight -= 1
        return []


class TestFailedPassCleanup:
    async def test_failed_call_cancels_sibling_venue_calls(self, stack: LedgerStack) -> None:
        client = SlowFillsVenueClient()
        sessions = FakeSessionFactory()

        with pytest.raises(ValueError, match="bad cursor"):
            await _reconciler(stack, client, sessions).reconcile(
                stack.account_repo.accounts["acct-hl"]
            )

        assert client.fills_in_flight == 0
        assert sessions.sessions == []

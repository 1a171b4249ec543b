"""Unit tests for snapshot valuation and SnapshotRecorder."""

import dataclasses
from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from src.dx_common.errors import PositionNotActiveError, PositionNotFoundError
from src.dx_gateway.auth import AuthContext
from src.dx_order.domain.models import MarketParams, Order
from src.dx_snapshot.domain.models import PositionSnapshot, value_legs
from tests.fakes import T0, LedgerStack

ALICE = AuthContext(user_id="user-1")


def _leg(order_id: str, direction: str, filled: str, avg: str | None) -> Order:
    return Order(
        id=order_id,
        dex_account_id="acct-1",
        venue="drift",
        market_index=0,
        direction=direction,
        order_type="market",
        base_asset_amount=Decimal("10"),
        params=MarketParams(),
        filled_amount=Decimal(filled),
        avg_fill_price=Decimal(avg) if avg is not None else None,
        status="filled",
    )


class TestValueLegs:
    def test_single_long(self) -> None:
        snap = value_legs("pos-1", [_leg("a", "long", "2", "100")], Decimal("110"), T0)

        assert snap is not None
        assert snap.size == Decimal("2")
        assert snap.entry_price == Decimal("100")
        assert snap.mark_price == Decimal("110")
        assert snap.unrealized_pnl == Decimal("20")
        assert snap.captured_at == T0

    def test_hedged_pair_nets_out(self) -> None:
        legs = [_leg("a", "long", "2", "100"), _leg("b", "short", "2", "102")]

        snap = value_legs("pos-1", legs, Decimal("110"), T0)

        assert snap is not None
        assert snap.size == Decimal("0")
        # +2 * (110 - 100) - 2 * (110 - 102)
        assert snap.unrealized_pnl == Decimal("4")
        assert snap.entry_price == Decimal("101")

    def test_no_fills_no_snapshot(self) -> None:
        assert value_legs("pos-1", [_leg("a", "long", "0", None)], Decimal("1"), T0) is None

    def test_snapshot_is_immutable(self) -> None:
        snap = value_legs("pos-1", [_leg("a", "long", "1", "1")], Decimal("2"), T0)
        assert snap is not None
        with pytest.raises(dataclasses.FrozenInstanceError):
            snap.mark_price = Decimal("3")  # type: ignore[misc]


@pytest.fixture
def stack() -> LedgerStack:
    s = LedgerStack()
    s.add_account("acct-drift", "drift")
    s.add_account("acct-hl", "hyperliquid")
    s.add_order("d-1", "acct-drift", direction="long", status="filled",
                filled_amount=Decimal("10"), avg_fill_price=Decimal("100"))
    s.add_order("h-1", "acct-hl", direction="short", status="filled",
                filled_amount=Decimal("10"), avg_fill_price=Decimal("101"))
    return s


class TestSnapshotRecorder:
    async def test_appends_each_valuation(self, stack: LedgerStack) -> None:
        db = MagicMock()
        pos = await stack.positions.open_delta_neutral(db, ALICE, "d-1", "h-1")

        first = await stack.snapshots.record(db, pos.id, Decimal("105"))
        second = await stack.snapshots.record(db, pos.id, Decimal("99"))

        assert first is not None and second is not None
        assert first.id != second.id
        assert [s.mark_price for s in stack.snapshot_repo.snapshots] == [
            Decimal("105"), Decimal("99"),
        ]
        # earlier rows are never rewritten
        assert stack.snapshot_repo.snapshots[0] == first

    async def test_terminal_position_rejected(self, stack: LedgerStack) -> None:
        db = MagicMock()
        pos = await stack.positions.open_delta_neutral(db, ALICE, "d-1", "h-1")
        await stack.positions.close(db, ALICE, pos.id)

        with pytest.raises(PositionNotActiveError):
            await stack.snapshots.record(db, pos.id, Decimal("105"))
        assert stack.snapshot_repo.snapshots == []

    async def test_unfilled_position_skipped(self, stack: LedgerStack) -> None:
        db = MagicMock()
        stack.add_order("d-2", "acct-drift")
        pos = await stack.positions.open_single(db, ALICE, "d-2")

        assert await stack.snapshots.record(db, pos.id, Decimal("105")) is None
        assert stack.snapshot_repo.snapshots == []

    async def test_unknown_position(self, stack: LedgerStack) -> None:
        with pytest.raises(PositionNotFoundError):
            await stack.snapshots.record(MagicMock(), "nope", Decimal("1"))

    async def test_history_in_time_order(self, stack: LedgerStack) -> None:
        db = MagicMock()
        pos = await stack.positions.open_delta_neutral(db, ALICE, "d-1", "h-1")
        for minutes, mark in ((10, "103"), (0, "101"), (5, "102")):
            await stack.snapshot_repo.append(db, PositionSnapshot(
                id=None, position_id=pos.id, captured_at=T0 + timedelta(minutes=minutes),
                size=Decimal("0"), entry_price=Decimal("100.5"), mark_price=Decimal(mark),
                unrealized_pnl=Decimal("0"),
            ))

        history = await stack.snapshots.list_history(
            db, ALICE, pos.id, start=T0 + timedelta(minutes=1)
        )

        assert [s.mark_price for s in history] == [Decimal("102"), Decimal("103")]

    async def test_history_of_foreign_position_hidden(self, stack: LedgerStack) -> None:
        db = MagicMock()
        pos = await stack.positions.open_delta_neutral(db, ALICE, "d-1", "h-1")
        with pytest.raises(PositionNotFoundError):
            await stack.snapshots.list_history(db, AuthContext(user_id="user-2"), pos.id)

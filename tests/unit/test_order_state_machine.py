"""Unit tests for the order state machine (pure functions, no I/O)."""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import pytest

from src.dx_common.errors import InvalidOrderError, InvalidTransitionError, StaleApplyError
from src.dx_order.domain import state_machine
from src.dx_order.domain.models import (
    LimitParams,
    MarketParams,
    Order,
    TriggerMarketParams,
)
from src.dx_order.domain.state_machine import MergeOutcome
from src.dx_venue.models import VenueOrder

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=UTC)


def _make_order(**kwargs: Any) -> Order:
    return Order(
        id=kwargs.get("id", "order-1"),
        dex_account_id=kwargs.get("dex_account_id", "acct-1"),
        venue=kwargs.get("venue", "drift"),
        market_index=kwargs.get("market_index", 0),
        direction=kwargs.get("direction", "long"),
        order_type=kwargs.get("order_type", "market"),
        base_asset_amount=kwargs.get("base_asset_amount", Decimal("100")),
        params=kwargs.get("params", MarketParams()),
        external_order_id=kwargs.get("external_order_id", "ext-1"),
        filled_amount=kwargs.get("filled_amount", Decimal("0")),
        avg_fill_price=kwargs.get("avg_fill_price"),
        status=kwargs.get("status", "pending"),
        version=kwargs.get("version", 0),
    )


def _make_report(**kwargs: Any) -> VenueOrder:
    return VenueOrder(
        venue=kwargs.get("venue", "drift"),
        market_index=kwargs.get("market_index", 0),
        direction=kwargs.get("direction", "long"),
        order_type=kwargs.get("order_type", "market"),
        params=kwargs.get("params", MarketParams()),
        base_asset_amount=kwargs.get("base_asset_amount", Decimal("100")),
        filled_amount=kwargs.get("filled_amount", Decimal("0")),
        status=kwargs.get("status", "open"),
        external_order_id=kwargs.get("external_order_id", "ext-1"),
        avg_fill_price=kwargs.get("avg_fill_price"),
    )


class TestStatusRank:
    def test_ranks_are_ordered(self) -> None:
        assert state_machine.status_rank("pending") < state_machine.status_rank("open")
        assert state_machine.status_rank("open") < state_machine.status_rank("filled")

    def test_all_terminal_statuses_share_a_rank(self) -> None:
        ranks = {
            state_machine.status_rank(s)
            for s in ("filled", "cancelled", "rejected", "failed", "expired", "liquidated")
        }
        assert ranks == {2}

    def test_unknown_status_raises(self) -> None:
        with pytest.raises(ValueError):
            state_machine.status_rank("bogus")


class TestValidateSubmission:
    def test_market_order_ok(self) -> None:
        state_machine.validate_submission("market", MarketParams(), Decimal("1"))

    def test_params_must_match_type(self) -> None:
        with pytest.raises(InvalidOrderError):
            state_machine.validate_submission("limit", MarketParams(), Decimal("1"))

    def test_limit_needs_positive_price(self) -> None:
        with pytest.raises(InvalidOrderError):
            state_machine.validate_submission("limit", LimitParams(price=Decimal("0")), Decimal("1"))

    def test_non_positive_amount_rejected(self) -> None:
        with pytest.raises(InvalidOrderError):
            state_machine.validate_submission("market", MarketParams(), Decimal("0"))

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(InvalidOrderError):
            state_machine.validate_submission("iceberg", MarketParams(), Decimal("1"))

    def test_trigger_condition_checked(self) -> None:
        params = TriggerMarketParams(trigger_price=Decimal("90"), trigger_condition="sideways")
        with pytest.raises(InvalidOrderError):
            state_machine.validate_submission("trigger_market", params, Decimal("1"))


class TestApplyFill:
    def test_partial_then_complete_fill(self) -> None:
        order = _make_order(status="pending")

        state_machine.apply_fill(order, Decimal("40"), Decimal("10"), NOW)
        assert order.status == "open"
        assert order.filled_amount == Decimal("40")
        assert order.avg_fill_price == Decimal("10")

        state_machine.apply_fill(order, Decimal("60"), Decimal("12"), NOW)
        assert order.status == "filled"
        assert order.filled_amount == Decimal("100")
        assert order.avg_fill_price == Decimal("11.2")
        assert order.updated_at == NOW

    def test_overfill_rejected_and_order_untouched(self) -> None:
        order = _make_order(status="open", filled_amount=Decimal("90"), avg_fill_price=Decimal("10"))
        with pytest.raises(InvalidOrderError):
            state_machine.apply_fill(order, Decimal("20"), Decimal("10"), NOW)
        assert order.filled_amount == Decimal("90")
        assert order.status == "open"

    def test_fill_on_terminal_order_is_stale(self) -> None:
        order = _make_order(status="filled", filled_amount=Decimal("100"), avg_fill_price=Decimal("10"))
        with pytest.raises(StaleApplyError):
            state_machine.apply_fill(order, Decimal("1"), Decimal("10"), NOW)

    def test_fill_without_prior_average(self) -> None:
        # venue reported a fill amount before any price was known
        order = _make_order(status="open", filled_amount=Decimal("0"), avg_fill_price=None)
        state_machine.apply_fill(order, Decimal("10"), Decimal("7"), NOW)
        assert order.avg_fill_price == Decimal("7")

    def test_non_positive_fill_rejected(self) -> None:
        order = _make_order(status="open")
        with pytest.raises(InvalidOrderError):
            state_machine.apply_fill(order, Decimal("0"), Decimal("10"), NOW)


class TestCancel:
    def test_cancel_pending(self) -> None:
        order = _make_order(status="pending")
        state_machine.cancel(order, NOW)
        assert order.status == "cancelled"

    def test_cancel_partially_filled_keeps_fills(self) -> None:
        order = _make_order(status="open", filled_amount=Decimal("40"), avg_fill_price=Decimal("10"))
        state_machine.cancel(order, NOW)
        assert order.status == "cancelled"
        assert order.filled_amount == Decimal("40")

    @pytest.mark.parametrize("status", ["filled", "cancelled", "liquidated"])
    def test_cancel_terminal_rejected(self, status: str) -> None:
        order = _make_order(status=status)
        with pytest.raises(InvalidTransitionError):
            state_machine.cancel(order, NOW)
        assert order.status == status


class TestMergeVenueReport:
    def test_identical_report_is_unchanged(self) -> None:
        order = _make_order(status="open", filled_amount=Decimal("40"), avg_fill_price=Decimal("10"))
        report = _make_report(status="open", filled_amount=Decimal("40"), avg_fill_price=Decimal("10"))
        assert state_machine.merge_venue_report(order, report, NOW) is MergeOutcome.UNCHANGED

    def test_replaying_a_report_is_idempotent(self) -> None:
        order = _make_order(status="pending")
        report = _make_report(status="open", filled_amount=Decimal("40"), avg_fill_price=Decimal("10"))

        assert state_machine.merge_venue_report(order, report, NOW) is MergeOutcome.UPDATED
        snapshot = (order.status, order.filled_amount, order.avg_fill_price)
        assert state_machine.merge_venue_report(order, report, NOW) is MergeOutcome.UNCHANGED
        assert (order.status, order.filled_amount, order.avg_fill_price) == snapshot

    def test_lower_status_is_stale(self) -> None:
        order = _make_order(status="open", filled_amount=Decimal("40"), avg_fill_price=Decimal("10"))
        report = _make_report(status="pending")
        assert state_machine.merge_venue_report(order, report, NOW) is MergeOutcome.STALE
        assert order.status == "open"
        assert order.filled_amount == Decimal("40")

    def test_smaller_fill_is_stale(self) -> None:
        order = _make_order(status="open", filled_amount=Decimal("40"), avg_fill_price=Decimal("10"))
        report = _make_report(status="open", filled_amount=Decimal("30"), avg_fill_price=Decimal("10"))
        assert state_machine.merge_venue_report(order, report, NOW) is MergeOutcome.STALE
        assert order.filled_amount == Decimal("40")

    def test_promotion_keeps_larger_local_fill(self) -> None:
        order = _make_order(status="open", filled_amount=Decimal("40"), avg_fill_price=Decimal("10"))
        report = _make_report(status="cancelled", filled_amount=Decimal("30"), avg_fill_price=Decimal("9"))

        assert state_machine.merge_venue_report(order, report, NOW) is MergeOutcome.UPDATED
        assert order.status == "cancelled"
        assert order.filled_amount == Decimal("40")
        assert order.avg_fill_price == Decimal("10")

    def test_terminal_status_never_replaced(self) -> None:
        order = _make_order(status="filled", filled_amount=Decimal("100"), avg_fill_price=Decimal("10"))
        report = _make_report(status="cancelled", filled_amount=Decimal("100"))
        assert state_machine.merge_venue_report(order, report, NOW) is MergeOutcome.STALE
        assert order.status == "filled"

    def test_missing_average_keeps_local_average(self) -> None:
        order = _make_order(status="open", filled_amount=Decimal("40"), avg_fill_price=Decimal("10"))
        report = _make_report(status="filled", filled_amount=Decimal("100"), avg_fill_price=None)
        assert state_machine.merge_venue_report(order, report, NOW) is MergeOutcome.UPDATED
        assert order.status == "filled"
        assert order.avg_fill_price == Decimal("10")

    def test_adopts_external_order_id(self) -> None:
        order = _make_order(status="pending", external_order_id=None)
        report = _make_report(status="open", external_order_id="venue-77")
        assert state_machine.merge_venue_report(order, report, NOW) is MergeOutcome.UPDATED
        assert order.external_order_id == "venue-77"
        assert order.updated_at == NOW

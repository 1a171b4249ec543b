"""Unit tests for the Drift and Hyperliquid payload normalizers."""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import pytest

from src.dx_common.errors import VenuePayloadError
from src.dx_order.domain.models import LimitParams, TriggerMarketParams
from src.dx_venue.drift import DriftNormalizer
from src.dx_venue.hyperliquid import HyperliquidNormalizer


def _drift_order(**overrides: Any) -> dict[str, Any]:
    raw: dict[str, Any] = {
        "orderId": 17,
        "userOrderId": 42,
        "marketIndex": 0,
        "direction": {"long": {}},
        "orderType": {"limit": {}},
        "status": {"open": {}},
        "baseAssetAmount": 2_000_000_000,
        "baseAssetAmountFilled": 500_000_000,
        "quoteAssetAmountFilled": 50_000_000,
        "price": 101_000_000,
        "postOnly": True,
        "reduceOnly": False,
    }
    raw.update(overrides)
    return raw


def _hl_order(status: str = "open", **overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "coin": "ETH",
        "side": "A",
        "limitPx": "2500.5",
        "sz": "0.4",
        "origSz": "1.0",
        "oid": 123,
        "orderType": "Limit",
        "tif": "Alo",
        "cloid": "0x" + "ab" * 16,
        "timestamp": 1790000000000,
    }
    body.update(overrides)
    return {"order": body, "status": status}


class TestDriftOrder:
    def test_limit_order_scaled(self) -> None:
        report = DriftNormalizer().order(_drift_order())

        assert report.venue == "drift"
        assert report.external_order_id == "17"
        assert report.client_order_id == "42"
        assert report.direction == "long"
        assert report.order_type == "limit"
        assert report.status == "open"
        assert report.base_asset_amount == Decimal("2")
        assert report.filled_amount == Decimal("0.5")
        assert report.avg_fill_price == Decimal("100")
        assert report.params == LimitParams(price=Decimal("101"), post_only=True)

    def test_plain_string_variants_accepted(self) -> None:
        report = DriftNormalizer().order(
            _drift_order(direction="short", orderType="market", status="filled",
                         baseAssetAmountFilled=2_000_000_000, quoteAssetAmountFilled=210_000_000)
        )
        assert report.direction == "short"
        assert report.order_type == "market"
        assert report.status == "filled"
        assert report.avg_fill_price == Decimal("105")

    def test_zero_user_order_id_means_unset(self) -> None:
        report = DriftNormalizer().order(_drift_order(userOrderId=0))
        assert report.client_order_id is None

    def test_armed_trigger_is_pending(self) -> None:
        raw = _drift_order(
            orderType={"triggerMarket": {}},
            triggerCondition={"above": {}},
            triggerPrice=150_000_000,
            baseAssetAmountFilled=0,
            quoteAssetAmountFilled=0,
        )
        report = DriftNormalizer().order(raw)

        assert report.status == "pending"
        assert report.avg_fill_price is None
        assert report.params == TriggerMarketParams(
            trigger_price=Decimal("150"), trigger_condition="above"
        )

    def test_fired_trigger_is_open(self) -> None:
        raw = _drift_order(
            orderType={"triggerMarket": {}},
            triggerCondition={"triggeredBelow": {}},
            triggerPrice=90_000_000,
            baseAssetAmountFilled=0,
            quoteAssetAmountFilled=0,
        )
        report = DriftNormalizer().order(raw)

        assert report.status == "open"
        assert report.params.trigger_condition == "below"

    @pytest.mark.parametrize(
        ("raw_status", "expected"),
        [
            ("canceled", "cancelled"),
            ("marginCanceled", "cancelled"),
            ("expired", "expired"),
            ("liquidatedCanceled", "liquidated"),
        ],
    )
    def test_terminal_status_mapping(self, raw_status: str, expected: str) -> None:
        report = DriftNormalizer().order(_drift_order(status={raw_status: {}}))
        assert report.status == expected

    def test_malformed_order_raises_payload_error(self) -> None:
        raw = _drift_order()
        del raw["orderType"]
        with pytest.raises(VenuePayloadError):
            DriftNormalizer().order(raw)

    def test_overfilled_report_rejected(self) -> None:
        with pytest.raises(VenuePayloadError):
            DriftNormalizer().order(_drift_order(baseAssetAmountFilled=3_000_000_000))


class TestDriftOtherPayloads:
    def test_position(self) -> None:
        pos = DriftNormalizer().position({
            "marketIndex": 1,
            "baseAssetAmount": -1_000_000_000,
            "quoteEntryAmount": 100_000_000,
            "markPrice": 105_000_000,
        })
        assert pos is not None
        assert pos.market_index == 1
        assert pos.size == Decimal("-1")
        assert pos.entry_price == Decimal("100")
        assert pos.mark_price == Decimal("105")

    def test_flat_position_is_skipped(self) -> None:
        assert DriftNormalizer().position({"marketIndex": 0, "baseAssetAmount": 0}) is None

    def test_fill(self) -> None:
        fill = DriftNormalizer().fill({
            "txSig": "5sig",
            "fillRecordId": 7,
            "orderId": 17,
            "marketIndex": 0,
            "direction": {"short": {}},
            "baseAssetAmountFilled": 500_000_000,
            "quoteAssetAmountFilled": 50_000_000,
            "fee": 10_000,
            "ts": 1790000000,
        })
        assert fill.external_fill_id == "5sig:7"
        assert fill.external_order_id == "17"
        assert fill.direction == "short"
        assert fill.amount == Decimal("0.5")
        assert fill.price == Decimal("100")
        assert fill.fee == Decimal("0.01")
        assert fill.filled_at == datetime.fromtimestamp(1790000000, tz=UTC)

    def test_deposit_uses_token_decimals(self) -> None:
        transfer = DriftNormalizer().transfer({
            "direction": {"deposit": {}},
            "marketIndex": 1,
            "amount": 2_500_000_000,
            "txSig": "dep-sig",
            "ts": 1790000000,
        })
        assert transfer is not None
        assert transfer.direction == "deposit"
        assert transfer.token_symbol == "SOL"
        assert transfer.amount == Decimal("2.5")

    def test_withdraw(self) -> None:
        transfer = DriftNormalizer().transfer({
            "direction": "withdraw",
            "marketIndex": 0,
            "amount": 1_500_000,
            "txSig": "wd-sig",
            "ts": 1790000000,
        })
        assert transfer is not None
        assert transfer.direction == "withdrawal"
        assert transfer.amount == Decimal("1.5")

    def test_unknown_spot_market_raises(self) -> None:
        with pytest.raises(VenuePayloadError):
            DriftNormalizer().transfer({
                "direction": "deposit", "marketIndex": 99, "amount": 1, "txSig": "x", "ts": 0,
            })


class TestHyperliquidOrder:
    def test_limit_order(self) -> None:
        report = HyperliquidNormalizer("testnet").order(_hl_order())

        assert report.venue == "hyperliquid"
        assert report.external_order_id == "123"
        assert report.client_order_id == "0x" + "ab" * 16
        assert report.market_index == 4
        assert report.direction == "short"
        assert report.base_asset_amount == Decimal("1.0")
        assert report.filled_amount == Decimal("0.6")
        assert report.avg_fill_price is None
        assert report.params == LimitParams(price=Decimal("2500.5"), post_only=True)

    def test_asset_index_depends_on_network(self) -> None:
        assert HyperliquidNormalizer("mainnet").order(_hl_order()).market_index == 1

    def test_unwrapped_open_order_defaults_to_open(self) -> None:
        body = _hl_order()["order"]
        assert HyperliquidNormalizer("testnet").order(body).status == "open"

    @pytest.mark.parametrize(
        ("raw_status", "expected"),
        [
            ("filled", "filled"),
            ("canceled", "cancelled"),
            ("marginCanceled", "cancelled"),
            ("reduceOnlyCanceled", "cancelled"),
            ("rejected", "rejected"),
            ("liquidatedCanceled", "liquidated"),
        ],
    )
    def test_status_mapping(self, raw_status: str, expected: str) -> None:
        assert HyperliquidNormalizer("testnet").order(_hl_order(raw_status)).status == expected

    def test_untriggered_stop_is_pending(self) -> None:
        raw = _hl_order(
            orderType="Stop Market", isTrigger=True, triggered=False, triggerPx="2000",
            sz="1.0",
        )
        report = HyperliquidNormalizer("testnet").order(raw)

        assert report.status == "pending"
        assert report.order_type == "trigger_market"
        assert report.params == TriggerMarketParams(
            trigger_price=Decimal("2000"), trigger_condition="below"
        )

    def test_take_profit_on_buy_fires_below(self) -> None:
        raw = _hl_order(
            side="B", orderType="Take Profit Limit", isTrigger=True, triggered=True,
            triggerPx="1800", limitPx="1790", sz="1.0",
        )
        report = HyperliquidNormalizer("testnet").order(raw)

        assert report.status == "open"
        assert report.order_type == "trigger_limit"
        assert report.params.trigger_condition == "below"

    def test_unknown_coin_raises_payload_error(self) -> None:
        with pytest.raises(VenuePayloadError):
            HyperliquidNormalizer("testnet").order(_hl_order(coin="NOPE"))


class TestHyperliquidOtherPayloads:
    def test_position_mark_from_position_value(self) -> None:
        pos = HyperliquidNormalizer("mainnet").position({
            "type": "oneWay",
            "position": {
                "coin": "BTC", "szi": "-0.5", "entryPx": "60000", "positionValue": "31000",
            },
        })
        assert pos is not None
        assert pos.market_index == 0
        assert pos.size == Decimal("-0.5")
        assert pos.entry_price == Decimal("60000")
        assert pos.mark_price == Decimal("62000")

    def test_flat_position_is_skipped(self) -> None:
        raw = {"position": {"coin": "BTC", "szi": "0.0"}}
        assert HyperliquidNormalizer("mainnet").position(raw) is None

    def test_fill(self) -> None:
        fill = HyperliquidNormalizer("testnet").fill({
            "coin": "SOL", "px": "150.1", "sz": "2", "side": "B",
            "time": 1790000000000, "oid": 55, "tid": 987, "fee": "0.05",
        })
        assert fill.external_fill_id == "987"
        assert fill.external_order_id == "55"
        assert fill.market_index == 0
        assert fill.direction == "long"
        assert fill.price == Decimal("150.1")
        assert fill.filled_at == datetime.fromtimestamp(1790000000, tz=UTC)

    def test_withdraw(self) -> None:
        transfer = HyperliquidNormalizer("testnet").transfer({
            "time": 1790000000000, "hash": "0xhash",
            "delta": {"type": "withdraw", "usdc": "25.5", "fee": "1"},
        })
        assert transfer is not None
        assert transfer.direction == "withdrawal"
        assert transfer.amount == Decimal("25.5")
        assert transfer.token_symbol == "USDC"
        assert transfer.external_tx_signature == "0xhash"

    def test_internal_transfer_is_ignored(self) -> None:
        raw = {"time": 0, "hash": "0x1", "delta": {"type": "accountClassTransfer", "usdc": "5"}}
        assert HyperliquidNormalizer("testnet").transfer(raw) is None

"""Hyperliquid payload normalizer.

Hyperliquid identifies markets by coin symbol on the info endpoints and by
asset index on the exchange endpoint; the index table differs between
mainnet and testnet. Sizes and prices arrive as decimal strings.
"""

from decimal import Decimal
from typing import Any

from src.dx_common.datetime_utils import from_epoch_ms
from src.dx_common.decimals import ZERO, to_decimal
from src.dx_common.enums import (
    OrderDirection,
    OrderStatus,
    OrderType,
    TransferDirection,
    TriggerCondition,
    Venue,
)
from src.dx_common.errors import VenuePayloadError
from src.dx_order.domain.models import (
    LimitParams,
    MarketParams,
    OrderParams,
    TriggerLimitParams,
    TriggerMarketParams,
)
from src.dx_venue.models import VenueFill, VenueOrder, VenuePosition, VenueTransfer

ASSET_INDICES: dict[str, dict[str, int]] = {
    "mainnet": {
        "BTC": 0, "ETH": 1, "ATOM": 2, "MATIC": 3, "DYDX": 4, "SOL": 5,
        "AVAX": 6, "BNB": 7, "OP": 9, "LTC": 10, "ARB": 11, "DOGE": 12,
    },
    "testnet": {
        "SOL": 0, "APT": 1, "ATOM": 2, "BTC": 3, "ETH": 4, "MATIC": 5,
        "BNB": 6, "AVAX": 7, "ARB": 11, "DOGE": 12,
    },
}

USDC_MARKET_INDEX = 0

_SIDE = {"B": OrderDirection.LONG.value, "A": OrderDirection.SHORT.value}

_STATUS = {
    "open": OrderStatus.OPEN.value,
    "filled": OrderStatus.FILLED.value,
    "canceled": OrderStatus.CANCELLED.value,
    "triggered": OrderStatus.OPEN.value,
    "rejected": OrderStatus.REJECTED.value,
    "marginCanceled": OrderStatus.CANCELLED.value,
    "liquidatedCanceled": OrderStatus.LIQUIDATED.value,
}


def _status(raw_status: str) -> str:
    if raw_status in _STATUS:
        return _STATUS[raw_status]
    if raw_status.endswith("Canceled"):
        return OrderStatus.CANCELLED.value
    if raw_status.endswith("Rejected"):
        return OrderStatus.REJECTED.value
    raise ValueError(f"unknown order status {raw_status!r}")


def _trigger_condition(order_type: str, direction: str) -> str:
    """Stops fire against the position, take-profits with it."""
    is_sell = direction == OrderDirection.SHORT.value
    if order_type.startswith("Stop"):
        return TriggerCondition.BELOW.value if is_sell else TriggerCondition.ABOVE.value
    return TriggerCondition.ABOVE.value if is_sell else TriggerCondition.BELOW.value


class HyperliquidNormalizer:
    venue = Venue.HYPERLIQUID.value

    def __init__(self, network: str, asset_indices: dict[str, int] | None = None) -> None:
        self.network = network
        self.asset_indices = asset_indices if asset_indices is not None else ASSET_INDICES[network]

    def _market_index(self, raw: dict[str, Any]) -> int:
        if raw.get("asset") is not None:
            return int(raw["asset"])
        coin = raw["coin"]
        if coin not in self.asset_indices:
            raise ValueError(f"no asset index for {coin} on {self.network}")
        return self.asset_indices[coin]

    def order(self, raw: dict[str, Any]) -> VenueOrder:
        # historicalOrders wraps the body as {"order": {...}, "status": "..."}
        body = raw.get("order", raw)
        try:
            direction = _SIDE[body["side"]]
            orig = to_decimal(body["origSz"])
            remaining = to_decimal(body["sz"])
            status = _status(raw.get("status", "open"))
            order_type, params = self._params(body, direction)
            if body.get("isTrigger") and status == OrderStatus.OPEN.value and not body.get("triggered"):
                status = OrderStatus.PENDING.value
            return VenueOrder(
                venue=self.venue,
                external_order_id=str(body["oid"]),
                client_order_id=body.get("cloid"),
                market_index=self._market_index(body),
                direction=direction,
                order_type=order_type,
                params=params,
                base_asset_amount=orig,
                filled_amount=orig - remaining,
                status=status,
            )
        except (KeyError, ValueError, TypeError, ArithmeticError) as exc:
            raise VenuePayloadError(self.venue, f"order {body.get('oid')}: {exc}") from exc

    def _params(self, body: dict[str, Any], direction: str) -> tuple[str, OrderParams]:
        reduce_only = bool(body.get("reduceOnly", False))
        raw_type = body.get("orderType", "Limit")
        if raw_type == "Market":
            return OrderType.MARKET.value, MarketParams(reduce_only=reduce_only)
        if raw_type == "Limit":
            tif = body.get("tif")
            return OrderType.LIMIT.value, LimitParams(
                price=to_decimal(body["limitPx"]),
                post_only=tif == "Alo",
                reduce_only=reduce_only,
            )

        trigger_price = to_decimal(body["triggerPx"])
        condition = _trigger_condition(raw_type, direction)
        if raw_type in ("Stop Market", "Take Profit Market"):
            return OrderType.TRIGGER_MARKET.value, TriggerMarketParams(
                trigger_price=trigger_price,
                trigger_condition=condition,
                reduce_only=reduce_only,
            )
        if raw_type in ("Stop Limit", "Take Profit Limit"):
            return OrderType.TRIGGER_LIMIT.value, TriggerLimitParams(
                price=to_decimal(body["limitPx"]),
                trigger_price=trigger_price,
                trigger_condition=condition,
                reduce_only=reduce_only,
            )
        raise ValueError(f"unknown orderType {raw_type!r}")

    def position(self, raw: dict[str, Any]) -> VenuePosition | None:
        body = raw.get("position", raw)
        try:
            size = to_decimal(body["szi"])
            if size == ZERO:
                return None
            entry = body.get("entryPx")
            value = body.get("positionValue")
            return VenuePosition(
                market_index=self._market_index(body),
                size=size,
                entry_price=to_decimal(entry) if entry is not None else None,
                mark_price=to_decimal(value) / abs(size) if value is not None else None,
            )
        except (KeyError, ValueError, TypeError, ArithmeticError) as exc:
            raise VenuePayloadError(self.venue, f"position {body.get('coin')}: {exc}") from exc

    def fill(self, raw: dict[str, Any]) -> VenueFill:
        try:
            return VenueFill(
                venue=self.venue,
                external_fill_id=str(raw["tid"]),
                external_order_id=str(raw["oid"]) if raw.get("oid") is not None else None,
                market_index=self._market_index(raw),
                direction=_SIDE[raw["side"]],
                amount=to_decimal(raw["sz"]),
                price=to_decimal(raw["px"]),
                fee=to_decimal(raw.get("fee", "0")),
                filled_at=from_epoch_ms(raw["time"]),
            )
        except (KeyError, ValueError, TypeError, ArithmeticError) as exc:
            raise VenuePayloadError(self.venue, f"fill {raw.get('tid')}: {exc}") from exc

    def transfer(self, raw: dict[str, Any]) -> VenueTransfer | None:
        try:
            delta = raw["delta"]
            kind = delta["type"]
            if kind == "deposit":
                direction = TransferDirection.DEPOSIT.value
            elif kind == "withdraw":
                direction = TransferDirection.WITHDRAWAL.value
            else:
                # internal transfers, vault moves, spot sends
                return None
            amount: Decimal = abs(to_decimal(delta["usdc"]))
            return VenueTransfer(
                direction=direction,
                market_index=USDC_MARKET_INDEX,
                amount=amount,
                token_symbol="USDC",
                external_tx_signature=str(raw["hash"]),
                occurred_at=from_epoch_ms(raw["time"]),
            )
        except (KeyError, ValueError, TypeError, ArithmeticError) as exc:
            raise VenuePayloadError(self.venue, f"transfer {raw.get('hash')}: {exc}") from exc

"""Drift payload normalizer.

Drift serializes its Anchor enums as single-key objects (``{"long": {}}``) and
its amounts as fixed-point integers: base amounts in 1e9, quote amounts and
prices in 1e6. Spot-market token amounts use the token's own decimals.
"""

from typing import Any

from src.dx_common.datetime_utils import from_epoch_s
from src.dx_common.decimals import ZERO, scale_down
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
    OracleParams,
    OrderParams,
    TriggerLimitParams,
    TriggerMarketParams,
)
from src.dx_venue.models import VenueFill, VenueOrder, VenuePosition, VenueTransfer

BASE_DECIMALS = 9
QUOTE_DECIMALS = 6
PRICE_DECIMALS = 6

# spot market index -> (symbol, token decimals)
SPOT_TOKENS: dict[int, tuple[str, int]] = {
    0: ("USDC", 6),
    1: ("SOL", 9),
}

_STATUS = {
    "init": OrderStatus.PENDING.value,
    "open": OrderStatus.OPEN.value,
    "filled": OrderStatus.FILLED.value,
    "canceled": OrderStatus.CANCELLED.value,
    "cancelled": OrderStatus.CANCELLED.value,
    "marginCanceled": OrderStatus.CANCELLED.value,
    "expired": OrderStatus.EXPIRED.value,
    "rejected": OrderStatus.REJECTED.value,
    "failed": OrderStatus.FAILED.value,
    # Closed out by a liquidator; breaks any hedge the order belongs to
    "liquidatedCanceled": OrderStatus.LIQUIDATED.value,
}

_ORDER_TYPE = {
    "market": OrderType.MARKET.value,
    "limit": OrderType.LIMIT.value,
    "triggerMarket": OrderType.TRIGGER_MARKET.value,
    "triggerLimit": OrderType.TRIGGER_LIMIT.value,
    "oracle": OrderType.ORACLE.value,
}

# "triggeredAbove" / "triggeredBelow" mean the condition has fired
_TRIGGER = {
    "above": (TriggerCondition.ABOVE.value, False),
    "below": (TriggerCondition.BELOW.value, False),
    "triggeredAbove": (TriggerCondition.ABOVE.value, True),
    "triggeredBelow": (TriggerCondition.BELOW.value, True),
}

_DIRECTION = {"long": OrderDirection.LONG.value, "short": OrderDirection.SHORT.value}


def _variant(value: Any) -> str:
    """``{"long": {}}`` or ``"long"`` -> ``"long"``."""
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and len(value) == 1:
        return next(iter(value))
    raise ValueError(f"not an enum variant: {value!r}")


class DriftNormalizer:
    venue = Venue.DRIFT.value

    def order(self, raw: dict[str, Any]) -> VenueOrder:
        try:
            order_type = _ORDER_TYPE[_variant(raw["orderType"])]
            status = _STATUS[_variant(raw["status"])]
            filled = scale_down(raw.get("baseAssetAmountFilled", 0), BASE_DECIMALS)
            quote = scale_down(raw.get("quoteAssetAmountFilled", 0), QUOTE_DECIMALS)
            params, armed = self._params(order_type, raw)
            if armed and status == OrderStatus.OPEN.value and filled == ZERO:
                status = OrderStatus.PENDING.value
            user_order_id = raw.get("userOrderId")
            return VenueOrder(
                venue=self.venue,
                external_order_id=str(raw["orderId"]),
                client_order_id=str(user_order_id) if user_order_id else None,
                market_index=int(raw["marketIndex"]),
                direction=_DIRECTION[_variant(raw["direction"])],
                order_type=order_type,
                params=params,
                base_asset_amount=scale_down(raw["baseAssetAmount"], BASE_DECIMALS),
                filled_amount=filled,
                avg_fill_price=quote / filled if filled > ZERO else None,
                status=status,
            )
        except (KeyError, ValueError, TypeError, ArithmeticError) as exc:
            raise VenuePayloadError(self.venue, f"order {raw.get('orderId')}: {exc}") from exc

    def _params(self, order_type: str, raw: dict[str, Any]) -> tuple[OrderParams, bool]:
        """Returns (params, armed); armed is True for a trigger order not yet fired."""
        reduce_only = bool(raw.get("reduceOnly", False))
        if order_type == OrderType.MARKET.value:
            return MarketParams(reduce_only=reduce_only), False
        if order_type == OrderType.LIMIT.value:
            return LimitParams(
                price=scale_down(raw["price"], PRICE_DECIMALS),
                post_only=bool(raw.get("postOnly", False)),
                reduce_only=reduce_only,
            ), False
        if order_type == OrderType.ORACLE.value:
            return OracleParams(
                oracle_price_offset=scale_down(raw.get("oraclePriceOffset", 0), PRICE_DECIMALS),
                auction_duration=raw.get("auctionDuration"),
                reduce_only=reduce_only,
            ), False

        condition, fired = _TRIGGER[_variant(raw["triggerCondition"])]
        trigger_price = scale_down(raw["triggerPrice"], PRICE_DECIMALS)
        if order_type == OrderType.TRIGGER_MARKET.value:
            params: OrderParams = TriggerMarketParams(
                trigger_price=trigger_price,
                trigger_condition=condition,
                reduce_only=reduce_only,
            )
        else:
            params = TriggerLimitParams(
                price=scale_down(raw["price"], PRICE_DECIMALS),
                trigger_price=trigger_price,
                trigger_condition=condition,
                reduce_only=reduce_only,
            )
        return params, not fired

    def position(self, raw: dict[str, Any]) -> VenuePosition | None:
        try:
            size = scale_down(raw["baseAssetAmount"], BASE_DECIMALS)
            if size == ZERO:
                return None
            quote_entry = scale_down(raw.get("quoteEntryAmount", 0), QUOTE_DECIMALS)
            entry = abs(quote_entry) / abs(size) if quote_entry else None
            mark_raw = raw.get("markPrice", raw.get("oraclePrice"))
            return VenuePosition(
                market_index=int(raw["marketIndex"]),
                size=size,
                entry_price=entry,
                mark_price=scale_down(mark_raw, PRICE_DECIMALS) if mark_raw is not None else None,
            )
        except (KeyError, ValueError, TypeError, ArithmeticError) as exc:
            raise VenuePayloadError(self.venue, f"position {raw.get('marketIndex')}: {exc}") from exc

    def fill(self, raw: dict[str, Any]) -> VenueFill:
        try:
            amount = scale_down(raw["baseAssetAmountFilled"], BASE_DECIMALS)
            quote = scale_down(raw["quoteAssetAmountFilled"], QUOTE_DECIMALS)
            return VenueFill(
                venue=self.venue,
                external_fill_id=f"{raw['txSig']}:{raw['fillRecordId']}",
                external_order_id=str(raw["orderId"]) if raw.get("orderId") is not None else None,
                market_index=int(raw["marketIndex"]),
                direction=_DIRECTION[_variant(raw["direction"])],
                amount=amount,
                price=quote / amount,
                fee=scale_down(raw.get("fee", 0), QUOTE_DECIMALS),
                filled_at=from_epoch_s(raw["ts"]),
            )
        except (KeyError, ValueError, TypeError, ArithmeticError) as exc:
            raise VenuePayloadError(self.venue, f"fill {raw.get('fillRecordId')}: {exc}") from exc

    def transfer(self, raw: dict[str, Any]) -> VenueTransfer | None:
        try:
            kind = _variant(raw["direction"])
            if kind == "deposit":
                direction = TransferDirection.DEPOSIT.value
            elif kind == "withdraw":
                direction = TransferDirection.WITHDRAWAL.value
            else:
                return None
            market_index = int(raw["marketIndex"])
            symbol, decimals = SPOT_TOKENS[market_index]
            return VenueTransfer(
                direction=direction,
                market_index=market_index,
                amount=scale_down(raw["amount"], decimals),
                token_symbol=symbol,
                external_tx_signature=str(raw["txSig"]),
                occurred_at=from_epoch_s(raw["ts"]),
            )
        except (KeyError, ValueError, TypeError) as exc:
            raise VenuePayloadError(self.venue, f"transfer {raw.get('txSig')}: {exc}") from exc

"""Pydantic schemas for the orders / fills API.

``params`` is a discriminated union on ``order_type``: a request whose params
do not fit the declared type is rejected at deserialization.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from src.dx_order.domain.models import (
    Fill,
    LimitParams,
    MarketParams,
    OracleParams,
    Order,
    OrderParams,
    TriggerLimitParams,
    TriggerMarketParams,
    params_to_dict,
)


class MarketParamsIn(BaseModel):
    order_type: Literal["market"]
    reduce_only: bool = False

    def to_domain(self) -> OrderParams:
        return MarketParams(reduce_only=self.reduce_only)


class LimitParamsIn(BaseModel):
    order_type: Literal["limit"]
    price: Decimal = Field(..., gt=0)
    post_only: bool = False
    reduce_only: bool = False

    def to_domain(self) -> OrderParams:
        return LimitParams(price=self.price, post_only=self.post_only, reduce_only=self.reduce_only)


class TriggerMarketParamsIn(BaseModel):
    order_type: Literal["trigger_market"]
    trigger_price: Decimal = Field(..., gt=0)
    trigger_condition: Literal["above", "below"]
    reduce_only: bool = False

    def to_domain(self) -> OrderParams:
        return TriggerMarketParams(
            trigger_price=self.trigger_price,
            trigger_condition=self.trigger_condition,
            reduce_only=self.reduce_only,
        )


class TriggerLimitParamsIn(BaseModel):
    order_type: Literal["trigger_limit"]
    price: Decimal = Field(..., gt=0)
    trigger_price: Decimal = Field(..., gt=0)
    trigger_condition: Literal["above", "below"]
    reduce_only: bool = False

    def to_domain(self) -> OrderParams:
        return TriggerLimitParams(
            price=self.price,
            trigger_price=self.trigger_price,
            trigger_condition=self.trigger_condition,
            reduce_only=self.reduce_only,
        )


class OracleParamsIn(BaseModel):
    order_type: Literal["oracle"]
    oracle_price_offset: Decimal
    auction_duration: int | None = Field(None, ge=0)
    reduce_only: bool = False

    def to_domain(self) -> OrderParams:
        return OracleParams(
            oracle_price_offset=self.oracle_price_offset,
            auction_duration=self.auction_duration,
            reduce_only=self.reduce_only,
        )


OrderParamsIn = Annotated[
    MarketParamsIn | LimitParamsIn | TriggerMarketParamsIn | TriggerLimitParamsIn | OracleParamsIn,
    Field(discriminator="order_type"),
]


class SubmitOrderRequest(BaseModel):
    dex_account_id: str
    market_index: int = Field(..., ge=0)
    direction: Literal["long", "short"]
    base_asset_amount: Decimal = Field(..., gt=0)
    params: OrderParamsIn

    @property
    def order_type(self) -> str:
        return self.params.order_type


class OrderResponse(BaseModel):
    id: str
    dex_account_id: str
    venue: str
    external_order_id: str | None
    client_order_id: str | None
    market_index: int
    direction: str
    order_type: str
    params: dict[str, Any]
    base_asset_amount: Decimal
    filled_amount: Decimal
    avg_fill_price: Decimal | None
    status: str
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            dex_account_id=order.dex_account_id,
            venue=order.venue,
            external_order_id=order.external_order_id,
            client_order_id=order.client_order_id,
            market_index=order.market_index,
            direction=order.direction,
            order_type=order.order_type,
            params=params_to_dict(order.params),
            base_asset_amount=order.base_asset_amount,
            filled_amount=order.filled_amount,
            avg_fill_price=order.avg_fill_price,
            status=order.status,
            version=order.version,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class FillResponse(BaseModel):
    external_fill_id: str
    external_order_id: str | None
    venue: str
    market_index: int
    direction: str
    amount: Decimal
    price: Decimal
    fee: Decimal
    filled_at: datetime

    @classmethod
    def from_domain(cls, fill: Fill) -> "FillResponse":
        return cls(
            external_fill_id=fill.external_fill_id,
            external_order_id=fill.external_order_id,
            venue=fill.venue,
            market_index=fill.market_index,
            direction=fill.direction,
            amount=fill.amount,
            price=fill.price,
            fee=fill.fee,
            filled_at=fill.filled_at,
        )

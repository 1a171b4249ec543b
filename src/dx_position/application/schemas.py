"""Pydantic schemas for the positions API."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from src.dx_order.domain.models import Order
from src.dx_position.domain.models import Exposure, Position


class OpenSinglePositionRequest(BaseModel):
    order_id: str
    name: str | None = Field(None, max_length=128)


class OpenDeltaNeutralRequest(BaseModel):
    drift_order_id: str
    hyperliquid_order_id: str
    name: str | None = Field(None, max_length=128)


class LegResponse(BaseModel):
    order_id: str
    venue: str
    market_index: int
    direction: str
    status: str
    base_asset_amount: Decimal
    filled_amount: Decimal
    avg_fill_price: Decimal | None

    @classmethod
    def from_domain(cls, order: Order) -> "LegResponse":
        return cls(
            order_id=order.id,
            venue=order.venue,
            market_index=order.market_index,
            direction=order.direction,
            status=order.status,
            base_asset_amount=order.base_asset_amount,
            filled_amount=order.filled_amount,
            avg_fill_price=order.avg_fill_price,
        )


class ExposureResponse(BaseModel):
    long_notional: Decimal
    short_notional: Decimal
    net_notional: Decimal
    gross_notional: Decimal
    residual_ratio: Decimal | None


class PositionResponse(BaseModel):
    id: str
    kind: str
    name: str | None
    lifecycle_state: str
    hedge_broken: bool
    legs: list[LegResponse]
    exposure: ExposureResponse
    metadata: dict[str, Any]
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    closed_at: datetime | None = None

    @classmethod
    def from_domain(cls, position: Position, legs: list[Order]) -> "PositionResponse":
        exposure = Exposure.from_legs(legs)
        return cls(
            id=position.id,
            kind=position.kind,
            name=position.name,
            lifecycle_state=position.lifecycle_state,
            hedge_broken=position.hedge_broken,
            legs=[LegResponse.from_domain(leg) for leg in legs],
            exposure=ExposureResponse(
                long_notional=exposure.long_notional,
                short_notional=exposure.short_notional,
                net_notional=exposure.net_notional,
                gross_notional=exposure.gross_notional,
                residual_ratio=exposure.residual_ratio,
            ),
            metadata=position.metadata,
            version=position.version,
            created_at=position.created_at,
            updated_at=position.updated_at,
            closed_at=position.closed_at,
        )

"""dx_order REST API — orders and fills, all scoped to the caller's DEX accounts."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.bootstrap import Services, get_services
from src.dx_common.database import get_db_session
from src.dx_common.response import ApiResponse, success_response
from src.dx_gateway.auth import AuthContext, get_auth_context
from src.dx_order.application.schemas import SubmitOrderRequest

router = APIRouter(prefix="/orders", tags=["orders"])
fills_router = APIRouter(prefix="/fills", tags=["fills"])


@router.post("")
async def submit_order(
    body: SubmitOrderRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    services: Annotated[Services, Depends(get_services)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await services.orders.submit(db, auth, body)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    services: Annotated[Services, Depends(get_services)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await services.orders.cancel(db, auth, order_id)
    return success_response(data.model_dump(mode="json"), request)


@router.get("")
async def list_orders(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    services: Annotated[Services, Depends(get_services)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    dex_account_id: str = Query(..., description="DEX account to list"),
    status: str | None = Query(None, description="Filter by order status"),
    limit: int = Query(100, ge=1, le=500, description="Max items"),
) -> ApiResponse:
    items = await services.orders.list_orders(db, auth, dex_account_id, status, limit)
    return success_response([o.model_dump(mode="json") for o in items], request)


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    services: Annotated[Services, Depends(get_services)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await services.orders.get_order(db, auth, order_id)
    return success_response(data.model_dump(mode="json"), request)


@fills_router.get("")
async def get_fills(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    services: Annotated[Services, Depends(get_services)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    dex_account_id: str = Query(..., description="DEX account to read fills for"),
    market_index: int | None = Query(None, ge=0),
    start: datetime | None = Query(None, description="Inclusive lower bound on filled_at"),
    end: datetime | None = Query(None, description="Exclusive upper bound on filled_at"),
    limit: int = Query(100, ge=1, le=1000),
) -> ApiResponse:
    items = await services.orders.get_fills(
        db, auth, dex_account_id, market_index, start, end, limit
    )
    return success_response([f.model_dump(mode="json") for f in items], request)

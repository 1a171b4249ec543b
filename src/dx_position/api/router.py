"""dx_position REST API — open, close and inspect the caller's positions."""

from datetime import datetime
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.bootstrap import Services, get_services
from src.dx_common.database import get_db_session
from src.dx_common.response import ApiResponse, success_response
from src.dx_gateway.auth import AuthContext, get_auth_context
from src.dx_position.application.schemas import (
    OpenDeltaNeutralRequest,
    OpenSinglePositionRequest,
)

router = APIRouter(prefix="/positions", tags=["positions"])


@router.post("/single")
async def open_single_position(
    body: OpenSinglePositionRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    services: Annotated[Services, Depends(get_services)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await services.positions.open_single(db, auth, body.order_id, body.name)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/delta-neutral")
async def open_delta_neutral_position(
    body: OpenDeltaNeutralRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    services: Annotated[Services, Depends(get_services)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await services.positions.open_delta_neutral(
        db, auth, body.drift_order_id, body.hyperliquid_order_id, body.name
    )
    return success_response(data.model_dump(mode="json"), request)


@router.post("/{position_id}/close")
async def close_position(
    position_id: str,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    services: Annotated[Services, Depends(get_services)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await services.positions.close(db, auth, position_id)
    return success_response(data.model_dump(mode="json"), request)


@router.get("")
async def get_positions(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    services: Annotated[Services, Depends(get_services)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: Literal["opening", "open", "closed", "liquidated"] | None = Query(None),
    kind: Literal["single", "delta_neutral"] | None = Query(None),
) -> ApiResponse:
    items = await services.positions.get_positions(db, auth, status, kind)
    return success_response([p.model_dump(mode="json") for p in items], request)


@router.get("/{position_id}")
async def get_position(
    position_id: str,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    services: Annotated[Services, Depends(get_services)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await services.positions.get_position(db, auth, position_id)
    return success_response(data.model_dump(mode="json"), request)


@router.get("/{position_id}/snapshots")
async def list_position_snapshots(
    position_id: str,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    services: Annotated[Services, Depends(get_services)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    start: datetime | None = Query(None, description="Inclusive lower bound on captured_at"),
    end: datetime | None = Query(None, description="Exclusive upper bound on captured_at"),
    limit: int = Query(500, ge=1, le=5000),
) -> ApiResponse:
    items = await services.snapshots.list_history(db, auth, position_id, start, end, limit)
    return success_response([s.model_dump(mode="json") for s in items], request)

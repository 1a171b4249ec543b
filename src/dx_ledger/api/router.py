"""dx_ledger REST API — deposits, withdrawals and their history."""

from datetime import datetime
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.bootstrap import Services, get_services
from src.dx_common.database import get_db_session
from src.dx_common.response import ApiResponse, success_response
from src.dx_gateway.auth import AuthContext, get_auth_context
from src.dx_ledger.application.schemas import RecordTransferRequest
from src.dx_ledger.domain.models import TransactionFilter

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.post("/deposits")
async def record_deposit(
    body: RecordTransferRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    services: Annotated[Services, Depends(get_services)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await services.transactions.record_deposit(db, auth, body)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/withdrawals")
async def record_withdrawal(
    body: RecordTransferRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    services: Annotated[Services, Depends(get_services)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await services.transactions.record_withdrawal(db, auth, body)
    return success_response(data.model_dump(mode="json"), request)


@router.get("")
async def get_transaction_history(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    services: Annotated[Services, Depends(get_services)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    dex_account_id: str = Query(..., description="DEX account to list"),
    direction: Literal["deposit", "withdrawal"] | None = Query(None),
    start: datetime | None = Query(None, description="Inclusive lower bound on occurred_at"),
    end: datetime | None = Query(None, description="Exclusive upper bound on occurred_at"),
    limit: int = Query(100, ge=1, le=1000),
) -> ApiResponse:
    flt = TransactionFilter(direction=direction, start=start, end=end, limit=limit)
    items = await services.transactions.get_transaction_history(db, auth, dex_account_id, flt)
    return success_response([t.model_dump(mode="json") for t in items], request)

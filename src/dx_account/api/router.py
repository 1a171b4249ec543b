"""dx_account REST API — link and list the caller's venue accounts."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.bootstrap import Services, get_services
from src.dx_account.application.schemas import LinkDexAccountRequest
from src.dx_common.database import get_db_session
from src.dx_common.response import ApiResponse, success_response
from src.dx_gateway.auth import AuthContext, get_auth_context

router = APIRouter(prefix="/dex-accounts", tags=["dex-accounts"])


@router.post("")
async def link_dex_account(
    body: LinkDexAccountRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    services: Annotated[Services, Depends(get_services)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await services.accounts.link_account(db, auth.user_id, body)
    return success_response(data.model_dump(mode="json"), request)


@router.get("")
async def list_dex_accounts(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    services: Annotated[Services, Depends(get_services)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    items = await services.accounts.list_accounts(db, auth.user_id)
    return success_response([a.model_dump(mode="json") for a in items], request)

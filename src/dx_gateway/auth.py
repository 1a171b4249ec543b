"""FastAPI dependency: get_auth_context.

Wallet-signature verification happens in the upstream gateway, which forwards
the authenticated user id in ``X-User-Id``. This service never sees keys or
signatures.

Usage in any protected router:
    from src.dx_gateway.auth import AuthContext, get_auth_context

    @router.get("/protected")
    async def protected(auth: Annotated[AuthContext, Depends(get_auth_context)]):
        ...
"""

from dataclasses import dataclass

from fastapi import Header

from src.dx_common.errors import AuthRequiredError

USER_ID_HEADER = "X-User-Id"


@dataclass(frozen=True)
class AuthContext:
    user_id: str


async def get_auth_context(
    x_user_id: str | None = Header(None, alias=USER_ID_HEADER),
) -> AuthContext:
    """Raises AuthRequiredError (401) when the header is missing or blank."""
    if x_user_id is None or not x_user_id.strip():
        raise AuthRequiredError()
    return AuthContext(user_id=x_user_id.strip())

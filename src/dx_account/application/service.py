"""DexAccountService — links venue accounts to users and guards ownership.

Other modules call ``require_owned`` before touching an account's orders or
transactions, so a foreign or unknown account id is always reported as
not found.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.dx_account.application.schemas import DexAccountResponse, LinkDexAccountRequest
from src.dx_account.domain.models import DexAccount
from src.dx_account.domain.repository import DexAccountRepositoryProtocol
from src.dx_account.infrastructure.persistence import DexAccountRepository
from src.dx_common.datetime_utils import utc_now
from src.dx_common.errors import DexAccountNotFoundError, DuplicateDexAccountError
from src.dx_common.id_generator import generate_id


class DexAccountService:
    def __init__(self, repo: DexAccountRepositoryProtocol | None = None) -> None:
        self._repo: DexAccountRepositoryProtocol = repo or DexAccountRepository()

    async def link_account(
        self, db: AsyncSession, user_id: str, req: LinkDexAccountRequest
    ) -> DexAccountResponse:
        account = DexAccount(
            id=generate_id(),
            user_id=user_id,
            venue=req.venue,
            address=req.address,
            account_type=req.account_type,
            subaccount_id=req.subaccount_id,
            created_at=utc_now(),
        )
        saved = await self._repo.insert(db, account)
        if saved is None:
            raise DuplicateDexAccountError(req.venue, req.address)
        return DexAccountResponse.from_domain(saved)

    async def list_accounts(self, db: AsyncSession, user_id: str) -> list[DexAccountResponse]:
        accounts = await self._repo.list_by_user(db, user_id)
        return [DexAccountResponse.from_domain(a) for a in accounts]

    async def require_owned(
        self, db: AsyncSession, user_id: str, dex_account_id: str
    ) -> DexAccount:
        account = await self._repo.get_by_id(db, dex_account_id)
        if account is None or not account.owned_by(user_id):
            raise DexAccountNotFoundError(dex_account_id)
        return account

    async def get(self, db: AsyncSession, dex_account_id: str) -> DexAccount | None:
        return await self._repo.get_by_id(db, dex_account_id)

    async def list_active(self, db: AsyncSession) -> list[DexAccount]:
        return await self._repo.list_active(db)

"""TransactionLedger — write-once record of deposits and withdrawals.

A transfer is identified by its on-chain / venue signature within a DEX
account. Recording the same signature again, from the API or from a later
reconciliation tick, returns the row that already exists.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.dx_account.application.service import DexAccountService
from src.dx_common.datetime_utils import utc_now
from src.dx_common.enums import TransferDirection
from src.dx_common.errors import InternalError
from src.dx_common.id_generator import generate_id
from src.dx_gateway.auth import AuthContext
from src.dx_ledger.application.schemas import RecordTransferRequest, TransactionResponse
from src.dx_ledger.domain.models import Transaction, TransactionFilter, TransferDetails
from src.dx_ledger.domain.repository import TransactionRepositoryProtocol
from src.dx_ledger.infrastructure.persistence import TransactionRepository

logger = logging.getLogger(__name__)


class TransactionLedger:
    def __init__(
        self,
        accounts: DexAccountService,
        repo: TransactionRepositoryProtocol | None = None,
    ) -> None:
        self._accounts = accounts
        self._repo: TransactionRepositoryProtocol = repo or TransactionRepository()

    async def record_transfer(
        self,
        db: AsyncSession,
        dex_account_id: str,
        direction: str,
        details: TransferDetails,
    ) -> Transaction:
        tx = Transaction(
            id=generate_id(),
            dex_account_id=dex_account_id,
            direction=direction,
            market_index=details.market_index,
            amount=details.amount,
            token_symbol=details.token_symbol,
            external_tx_signature=details.external_tx_signature,
            status=details.status,
            occurred_at=details.occurred_at,
        )
        saved = await self._repo.insert_if_absent(db, tx)
        if saved is not None:
            logger.info(
                "%s of %s %s recorded on %s (%s)",
                direction, details.amount, details.token_symbol,
                dex_account_id, details.external_tx_signature,
            )
            return saved

        existing = await self._repo.get_by_signature(
            db, dex_account_id, details.external_tx_signature
        )
        if existing is None:
            raise InternalError(
                f"transaction {details.external_tx_signature} conflicted but was not found"
            )
        return existing

    async def list_history(
        self, db: AsyncSession, dex_account_id: str, flt: TransactionFilter
    ) -> list[Transaction]:
        return await self._repo.list_history(db, dex_account_id, flt)

    async def record_deposit(
        self, db: AsyncSession, auth: AuthContext, req: RecordTransferRequest
    ) -> TransactionResponse:
        return await self._record_owned(db, auth, req, TransferDirection.DEPOSIT.value)

    async def record_withdrawal(
        self, db: AsyncSession, auth: AuthContext, req: RecordTransferRequest
    ) -> TransactionResponse:
        return await self._record_owned(db, auth, req, TransferDirection.WITHDRAWAL.value)

    async def get_transaction_history(
        self,
        db: AsyncSession,
        auth: AuthContext,
        dex_account_id: str,
        flt: TransactionFilter,
    ) -> list[TransactionResponse]:
        await self._accounts.require_owned(db, auth.user_id, dex_account_id)
        txs = await self._repo.list_history(db, dex_account_id, flt)
        return [TransactionResponse.from_domain(t) for t in txs]

    async def _record_owned(
        self, db: AsyncSession, auth: AuthContext, req: RecordTransferRequest, direction: str
    ) -> TransactionResponse:
        account = await self._accounts.require_owned(db, auth.user_id, req.dex_account_id)
        tx = await self.record_transfer(db, account.id, direction, req.to_details(utc_now()))
        return TransactionResponse.from_domain(tx)

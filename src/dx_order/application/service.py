"""OrderLedger — the single writer of order state.

Inbound requests (submit, cancel) and the reconciler (reconcile_from_venue,
apply_fill, record_fills) both go through here. Every write is a
version-conditioned UPDATE; a lost race raises ConcurrencyConflictError and
the whole read-modify-write is re-run against a fresh read.
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.dx_account.application.service import DexAccountService
from src.dx_account.domain.models import DexAccount
from src.dx_common.datetime_utils import utc_now
from src.dx_common.decimals import ZERO
from src.dx_common.enums import OrderStatus
from src.dx_common.errors import (
    ConcurrencyConflictError,
    DexAccountNotFoundError,
    OrderNotFoundError,
    StaleApplyError,
    VenuePayloadError,
)
from src.dx_common.id_generator import generate_client_order_id, generate_id
from src.dx_common.retry import retry_on_conflict
from src.dx_gateway.auth import AuthContext
from src.dx_order.application.schemas import FillResponse, OrderResponse, SubmitOrderRequest
from src.dx_order.domain import state_machine
from src.dx_order.domain.models import Fill, Order
from src.dx_order.domain.repository import FillRepositoryProtocol, OrderRepositoryProtocol
from src.dx_order.domain.state_machine import MergeOutcome
from src.dx_order.infrastructure.persistence import FillRepository, OrderRepository
from src.dx_venue.models import VenueFill, VenueOrder

logger = logging.getLogger(__name__)

ACTIVE_ORDER_STATUSES = [OrderStatus.PENDING.value, OrderStatus.OPEN.value]


class OrderLedger:
    def __init__(
        self,
        accounts: DexAccountService,
        repo: OrderRepositoryProtocol | None = None,
        fill_repo: FillRepositoryProtocol | None = None,
        conflict_attempts: int = 5,
    ) -> None:
        self._accounts = accounts
        self._repo: OrderRepositoryProtocol = repo or OrderRepository()
        self._fills: FillRepositoryProtocol = fill_repo or FillRepository()
        self._conflict_attempts = conflict_attempts

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def submit(
        self, db: AsyncSession, auth: AuthContext, req: SubmitOrderRequest
    ) -> OrderResponse:
        account = await self._accounts.require_owned(db, auth.user_id, req.dex_account_id)
        params = req.params.to_domain()
        state_machine.validate_submission(req.order_type, params, req.base_asset_amount)

        now = utc_now()
        order = Order(
            id=generate_id(),
            dex_account_id=account.id,
            venue=account.venue,
            market_index=req.market_index,
            direction=req.direction,
            order_type=req.order_type,
            base_asset_amount=req.base_asset_amount,
            params=params,
            client_order_id=generate_client_order_id(account.venue),
            created_at=now,
            updated_at=now,
        )
        await self._repo.insert(db, order)
        logger.info(
            "order %s submitted: %s %s %s x%s on %s",
            order.id, order.venue, order.direction, order.order_type,
            order.base_asset_amount, account.id,
        )
        return OrderResponse.from_domain(order)

    async def apply_fill(
        self,
        db: AsyncSession,
        order_id: str,
        filled_delta: Decimal,
        fill_price: Decimal,
        ignore_stale: bool = False,
    ) -> Order:
        """Add one fill. With ``ignore_stale`` a fill on a terminal order is logged and dropped."""

        async def attempt() -> Order:
            order = await self._repo.get_by_id(db, order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            expected = order.version
            try:
                state_machine.apply_fill(order, filled_delta, fill_price, utc_now())
            except StaleApplyError:
                if not ignore_stale:
                    raise
                logger.info("fill on terminal order %s (%s) ignored", order_id, order.status)
                return order
            return await self._write(db, order, expected)

        return await retry_on_conflict(
            attempt, attempts=self._conflict_attempts, what=f"apply_fill order {order_id}"
        )

    async def reconcile_from_venue(
        self, db: AsyncSession, account: DexAccount, report: VenueOrder
    ) -> tuple[MergeOutcome, Order]:
        """Upsert one venue-reported order; returns the outcome and the resulting order."""
        if report.external_order_id is None and report.client_order_id is None:
            raise VenuePayloadError(report.venue, "order report without any order id")

        async def attempt() -> tuple[MergeOutcome, Order]:
            order = await self._find(db, account.id, report)
            now = utc_now()
            if order is None:
                order = _order_from_report(account, report, now)
                if not await self._repo.insert(db, order):
                    # discovered concurrently; re-read and merge instead
                    raise ConcurrencyConflictError("order", report.external_order_id or "-", 0)
                logger.info(
                    "order %s discovered on %s: %s (%s)",
                    order.id, account.venue, report.external_order_id, report.status,
                )
                return MergeOutcome.CREATED, order

            expected = order.version
            outcome = state_machine.merge_venue_report(order, report, now)
            if outcome is MergeOutcome.STALE:
                logger.debug(
                    "stale report for order %s ignored: local %s/%s, venue %s/%s",
                    order.id, order.status, order.filled_amount,
                    report.status, report.filled_amount,
                )
                return outcome, order
            if outcome is MergeOutcome.UNCHANGED:
                return outcome, order
            return outcome, await self._write(db, order, expected)

        return await retry_on_conflict(
            attempt,
            attempts=self._conflict_attempts,
            what=f"reconcile {report.venue} order {report.external_order_id}",
        )

    async def cancel(self, db: AsyncSession, auth: AuthContext, order_id: str) -> OrderResponse:
        await self._get_owned(db, auth, order_id)

        async def attempt() -> Order:
            order = await self._repo.get_by_id(db, order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            expected = order.version
            state_machine.cancel(order, utc_now())
            return await self._write(db, order, expected)

        order = await retry_on_conflict(
            attempt, attempts=self._conflict_attempts, what=f"cancel order {order_id}"
        )
        logger.info("order %s cancelled", order_id)
        return OrderResponse.from_domain(order)

    async def record_fills(
        self, db: AsyncSession, account: DexAccount, fills: list[VenueFill]
    ) -> int:
        """Append venue fills; returns how many were new."""
        inserted = 0
        for vf in fills:
            fill = Fill(
                id=None,
                dex_account_id=account.id,
                venue=vf.venue,
                external_fill_id=vf.external_fill_id,
                external_order_id=vf.external_order_id,
                market_index=vf.market_index,
                direction=vf.direction,
                amount=vf.amount,
                price=vf.price,
                fee=vf.fee,
                filled_at=vf.filled_at,
            )
            if await self._fills.insert_if_absent(db, fill):
                inserted += 1
        return inserted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_order(self, db: AsyncSession, auth: AuthContext, order_id: str) -> OrderResponse:
        return OrderResponse.from_domain(await self._get_owned(db, auth, order_id))

    async def list_orders(
        self,
        db: AsyncSession,
        auth: AuthContext,
        dex_account_id: str,
        status: str | None = None,
        limit: int = 100,
    ) -> list[OrderResponse]:
        await self._accounts.require_owned(db, auth.user_id, dex_account_id)
        statuses = [status] if status else None
        orders = await self._repo.list_by_account(db, dex_account_id, statuses, limit)
        return [OrderResponse.from_domain(o) for o in orders]

    async def list_active_orders(self, db: AsyncSession, dex_account_id: str) -> list[Order]:
        return await self._repo.list_by_account(
            db, dex_account_id, ACTIVE_ORDER_STATUSES, limit=1000
        )

    async def get_fills(
        self,
        db: AsyncSession,
        auth: AuthContext,
        dex_account_id: str,
        market_index: int | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 100,
    ) -> list[FillResponse]:
        await self._accounts.require_owned(db, auth.user_id, dex_account_id)
        fills = await self._fills.list_fills(db, dex_account_id, market_index, start, end, limit)
        return [FillResponse.from_domain(f) for f in fills]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _find(self, db: AsyncSession, dex_account_id: str, report: VenueOrder) -> Order | None:
        if report.external_order_id is not None:
            order = await self._repo.get_by_external_id(db, dex_account_id, report.external_order_id)
            if order is not None:
                return order
        if report.client_order_id is not None:
            return await self._repo.get_unmatched_by_client_order_id(
                db, dex_account_id, report.client_order_id
            )
        return None

    async def _get_owned(self, db: AsyncSession, auth: AuthContext, order_id: str) -> Order:
        order = await self._repo.get_by_id(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        try:
            await self._accounts.require_owned(db, auth.user_id, order.dex_account_id)
        except DexAccountNotFoundError:
            raise OrderNotFoundError(order_id) from None
        return order

    async def _write(self, db: AsyncSession, order: Order, expected_version: int) -> Order:
        updated = await self._repo.update_versioned(db, order, expected_version)
        if updated is None:
            raise ConcurrencyConflictError("order", order.id, expected_version)
        return updated


def _order_from_report(account: DexAccount, report: VenueOrder, now: datetime) -> Order:
    return Order(
        id=generate_id(),
        dex_account_id=account.id,
        venue=report.venue,
        external_order_id=report.external_order_id,
        client_order_id=report.client_order_id,
        market_index=report.market_index,
        direction=report.direction,
        order_type=report.order_type,
        base_asset_amount=report.base_asset_amount,
        params=report.params,
        filled_amount=report.filled_amount,
        avg_fill_price=report.avg_fill_price if report.filled_amount > ZERO else None,
        status=report.status,
        created_at=now,
        updated_at=now,
    )

"""One reconciliation pass for one DEX account.

The pass has two phases:

1. Network: orders, positions, fills and transfers are fetched from the
   venue concurrently, each call retried with backoff. No database session
   is open during this phase.
2. Merge: everything is normalized and folded into the local stores inside
   a single session, committed once at the end. Any failure rolls the whole
   pass back; the next tick starts over from venue truth.

Malformed venue items are logged and skipped; they never fail the pass.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.dx_account.domain.models import DexAccount
from src.dx_common.datetime_utils import utc_now
from src.dx_common.decimals import ZERO
from src.dx_common.enums import OrderStatus, PositionLifecycle
from src.dx_common.errors import VenuePayloadError, VenueUnavailableError
from src.dx_common.retry import call_venue
from src.dx_ledger.application.service import TransactionLedger
from src.dx_ledger.domain.models import TransferDetails
from src.dx_order.application.service import OrderLedger
from src.dx_order.domain.models import Order
from src.dx_order.domain.state_machine import MergeOutcome
from src.dx_position.application.service import PositionAggregator
from src.dx_snapshot.application.service import SnapshotRecorder
from src.dx_venue.client import RawPayload, VenueBinding
from src.dx_venue.models import TimeWindow, VenueFill, VenueOrder

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class PassResult:
    orders_seen: int = 0
    created: int = 0
    updated: int = 0
    stale: int = 0
    fills_recorded: int = 0
    transfers_seen: int = 0
    positions_derived: int = 0
    snapshots: int = 0
    skipped_items: int = 0


@dataclass(frozen=True)
class FillTotal:
    size: Decimal
    vwap: Decimal


def aggregate_fills(fills: Iterable[VenueFill]) -> dict[str, FillTotal]:
    """Cumulative size and volume-weighted price per venue order id."""
    sizes: dict[str, Decimal] = {}
    notionals: dict[str, Decimal] = {}
    for fill in fills:
        if fill.external_order_id is None:
            continue
        key = fill.external_order_id
        sizes[key] = sizes.get(key, ZERO) + fill.amount
        notionals[key] = notionals.get(key, ZERO) + fill.amount * fill.price
    return {
        key: FillTotal(size=size, vwap=notionals[key] / size)
        for key, size in sizes.items()
        if size > ZERO
    }


def _with_fill_price(report: VenueOrder, totals: Mapping[str, FillTotal]) -> VenueOrder:
    if report.avg_fill_price is not None or report.filled_amount == ZERO:
        return report
    total = totals.get(report.external_order_id or "")
    if total is None:
        return report
    return dataclasses.replace(report, avg_fill_price=total.vwap)


def _filled_from_fills(order: Order, total: FillTotal) -> VenueOrder:
    return VenueOrder(
        venue=order.venue,
        external_order_id=order.external_order_id,
        client_order_id=order.client_order_id,
        market_index=order.market_index,
        direction=order.direction,
        order_type=order.order_type,
        params=order.params,
        base_asset_amount=order.base_asset_amount,
        filled_amount=order.base_asset_amount,
        avg_fill_price=total.vwap,
        status=OrderStatus.FILLED.value,
    )


class AccountReconciler:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        bindings: Mapping[str, VenueBinding],
        orders: OrderLedger,
        positions: PositionAggregator,
        snapshots: SnapshotRecorder,
        transactions: TransactionLedger,
        *,
        retry_attempts: int = 3,
        retry_base_seconds: float = 0.5,
        retry_max_seconds: float = 8.0,
        fill_lookback: timedelta = timedelta(hours=24),
    ) -> None:
        self._session_factory = session_factory
        self._bindings = bindings
        self._orders = orders
        self._positions = positions
        self._snapshots = snapshots
        self._transactions = transactions
        self._retry_attempts = retry_attempts
        self._retry_base_seconds = retry_base_seconds
        self._retry_max_seconds = retry_max_seconds
        self._fill_lookback = fill_lookback

    async def _call(self, venue: str, fn: Callable[[], Awaitable[T]]) -> T:
        return await call_venue(
            fn,
            venue=venue,
            attempts=self._retry_attempts,
            base_seconds=self._retry_base_seconds,
            max_seconds=self._retry_max_seconds,
        )

    async def reconcile(self, account: DexAccount) -> PassResult:
        binding = self._bindings.get(account.venue)
        if binding is None:
            raise VenueUnavailableError(account.venue, "no venue client configured")
        client = binding.client
        now = utc_now()
        window = TimeWindow(start=now - self._fill_lookback, end=now)

        # A failed call cancels its siblings, so nothing outlives the pass or its lease.
        try:
            async with asyncio.TaskGroup() as tg:
                orders_task = tg.create_task(
                    self._call(account.venue, lambda: client.list_orders(account))
                )
                positions_task = tg.create_task(
                    self._call(account.venue, lambda: client.list_positions(account))
                )
                fills_task = tg.create_task(
                    self._call(account.venue, lambda: client.list_fills(account, window))
                )
                transfers_task = tg.create_task(
                    self._call(account.venue, lambda: client.list_transfers(account, window))
                )
        except BaseExceptionGroup as group:
            raise group.exceptions[0] from None
        raw_orders = orders_task.result()
        raw_positions = positions_task.result()
        raw_fills = fills_task.result()
        raw_transfers = transfers_task.result()

        result = PassResult()
        norm = binding.normalizer
        fills = _normalize(account, "fill", raw_fills, norm.fill, result)
        totals = aggregate_fills(fills)
        reports = [
            _with_fill_price(r, totals)
            for r in _normalize(account, "order", raw_orders, norm.order, result)
        ]
        venue_positions = _normalize(account, "position", raw_positions, norm.position, result)
        marks = {p.market_index: p.mark_price for p in venue_positions if p.mark_price is not None}
        transfers = _normalize(account, "transfer", raw_transfers, norm.transfer, result)

        async with self._session_factory() as db:
            try:
                changed = await self._merge_orders(db, account, reports, totals, result)
                result.fills_recorded = await self._orders.record_fills(db, account, fills)
                derived = await self._positions.derive(db, changed)
                result.positions_derived = len(derived)
                result.snapshots = await self._snapshot_open_positions(db, account, marks)
                for transfer in transfers:
                    await self._transactions.record_transfer(
                        db,
                        account.id,
                        transfer.direction,
                        TransferDetails(
                            market_index=transfer.market_index,
                            amount=transfer.amount,
                            token_symbol=transfer.token_symbol,
                            external_tx_signature=transfer.external_tx_signature,
                            occurred_at=transfer.occurred_at,
                            status=transfer.status,
                        ),
                    )
                result.transfers_seen = len(transfers)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(
            "reconciled %s (%s): %d orders (%d new, %d updated, %d stale), "
            "%d fills, %d snapshots, %d skipped",
            account.id, account.venue, result.orders_seen, result.created, result.updated,
            result.stale, result.fills_recorded, result.snapshots, result.skipped_items,
        )
        return result

    async def _merge_orders(
        self,
        db: AsyncSession,
        account: DexAccount,
        reports: list[VenueOrder],
        totals: Mapping[str, FillTotal],
        result: PassResult,
    ) -> list[str]:
        changed: list[str] = []
        reported = {r.external_order_id for r in reports if r.external_order_id}

        # Orders that left the venue's open list but whose fills cover them
        for local in await self._orders.list_active_orders(db, account.id):
            if local.external_order_id is None or local.external_order_id in reported:
                continue
            total = totals.get(local.external_order_id)
            if total is not None and total.size >= local.base_asset_amount:
                reports.append(_filled_from_fills(local, total))

        for report in reports:
            result.orders_seen += 1
            try:
                outcome, order = await self._orders.reconcile_from_venue(db, account, report)
            except VenuePayloadError as exc:
                logger.warning("%s: skipping order report: %s", account.id, exc.message)
                result.skipped_items += 1
                continue
            if outcome is MergeOutcome.CREATED:
                result.created += 1
                changed.append(order.id)
            elif outcome is MergeOutcome.UPDATED:
                result.updated += 1
                changed.append(order.id)
            elif outcome is MergeOutcome.STALE:
                result.stale += 1
        return changed

    async def _snapshot_open_positions(
        self, db: AsyncSession, account: DexAccount, marks: Mapping[int, Decimal]
    ) -> int:
        recorded = 0
        for position, legs in await self._positions.active_for_account(db, account.id):
            if position.lifecycle_state != PositionLifecycle.OPEN.value:
                continue
            leg = next((o for o in legs if o.dex_account_id == account.id), None)
            mark = marks.get(leg.market_index) if leg is not None else None
            if mark is None:
                logger.debug("no %s mark for position %s; snapshot skipped", account.venue, position.id)
                continue
            if await self._snapshots.record(db, position.id, mark) is not None:
                recorded += 1
        return recorded


def _normalize(
    account: DexAccount,
    kind: str,
    items: list[RawPayload],
    fn: Callable[[RawPayload], T | None],
    result: PassResult,
) -> list[T]:
    out: list[T] = []
    for raw in items:
        try:
            value = fn(raw)
        except VenuePayloadError as exc:
            logger.warning("%s: skipping malformed %s: %s", account.id, kind, exc.message)
            result.skipped_items += 1
            continue
        if value is not None:
            out.append(value)
    return out

"""PositionAggregator — groups orders into single and delta-neutral positions.

Positions never mutate their legs. Their lifecycle is re-derived from the
legs' order state whenever the reconciler reports changed orders, and each
derivation is written with a version-conditioned UPDATE.
"""

import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.dx_account.application.service import DexAccountService
from src.dx_common.datetime_utils import utc_now
from src.dx_common.enums import PositionKind, PositionLifecycle
from src.dx_common.errors import (
    ConcurrencyConflictError,
    DexAccountNotFoundError,
    InvalidPairingError,
    OrderNotFoundError,
    PositionNotClosableError,
    PositionNotFoundError,
)
from src.dx_common.id_generator import generate_id
from src.dx_common.retry import retry_on_conflict
from src.dx_gateway.auth import AuthContext
from src.dx_order.domain.models import Order
from src.dx_order.domain.repository import OrderRepositoryProtocol
from src.dx_order.infrastructure.persistence import OrderRepository
from src.dx_position.application.schemas import PositionResponse
from src.dx_position.domain.lifecycle import (
    can_close,
    check_leg_usable,
    derive_lifecycle,
    validate_pairing,
)
from src.dx_position.domain.models import Exposure, Position
from src.dx_position.domain.repository import PositionRepositoryProtocol
from src.dx_position.infrastructure.persistence import PositionRepository

logger = logging.getLogger(__name__)


class PositionAggregator:
    def __init__(
        self,
        accounts: DexAccountService,
        repo: PositionRepositoryProtocol | None = None,
        order_repo: OrderRepositoryProtocol | None = None,
        conflict_attempts: int = 5,
        drift_alert_ratio: Decimal = Decimal("0.05"),
    ) -> None:
        self._accounts = accounts
        self._repo: PositionRepositoryProtocol = repo or PositionRepository()
        self._orders: OrderRepositoryProtocol = order_repo or OrderRepository()
        self._conflict_attempts = conflict_attempts
        self._drift_alert_ratio = drift_alert_ratio

    # ------------------------------------------------------------------
    # Opening
    # ------------------------------------------------------------------

    async def open_single(
        self, db: AsyncSession, auth: AuthContext, order_id: str, name: str | None = None
    ) -> PositionResponse:
        leg = await self._owned_leg(db, auth, order_id)
        check_leg_usable(leg)
        await self._ensure_unclaimed(db, [leg])
        position = self._new_position(auth, PositionKind.SINGLE.value, [leg], name)
        await self._repo.insert(db, position)
        logger.info("single position %s opened on order %s", position.id, leg.id)
        return PositionResponse.from_domain(position, [leg])

    async def open_delta_neutral(
        self,
        db: AsyncSession,
        auth: AuthContext,
        drift_order_id: str,
        hyperliquid_order_id: str,
        name: str | None = None,
    ) -> PositionResponse:
        drift_leg = await self._owned_leg(db, auth, drift_order_id)
        hl_leg = await self._owned_leg(db, auth, hyperliquid_order_id)
        validate_pairing(drift_leg, hl_leg)
        legs = [drift_leg, hl_leg]
        await self._ensure_unclaimed(db, legs)
        position = self._new_position(auth, PositionKind.DELTA_NEUTRAL.value, legs, name)
        await self._repo.insert(db, position)
        logger.info(
            "delta-neutral position %s opened: %s %s / %s %s",
            position.id, drift_leg.venue, drift_leg.direction, hl_leg.venue, hl_leg.direction,
        )
        return PositionResponse.from_domain(position, legs)

    # ------------------------------------------------------------------
    # Derivation / closing
    # ------------------------------------------------------------------

    async def derive(self, db: AsyncSession, order_ids: list[str]) -> list[Position]:
        """Re-derive every non-terminal position that has one of ``order_ids`` as a leg."""
        positions = await self._repo.list_active_by_leg_ids(db, order_ids)
        derived: list[Position] = []
        for position in positions:
            derived.append(
                await retry_on_conflict(
                    lambda pid=position.id: self._rederive(db, pid),
                    attempts=self._conflict_attempts,
                    what=f"derive position {position.id}",
                )
            )
        return derived

    async def close(
        self, db: AsyncSession, auth: AuthContext, position_id: str
    ) -> PositionResponse:
        """Close a position whose legs are all terminal.

        A broken hedge stays ``liquidated``; closing it only stamps ``closed_at``
        once the surviving leg has been wound down.
        """

        async def attempt() -> tuple[Position, list[Order]]:
            position = await self._get_owned(db, auth, position_id)
            legs = await self.load_legs(db, position)
            if position.closed_at is not None:
                return position, legs
            if not can_close(legs):
                raise PositionNotClosableError(position_id)
            expected = position.version
            if position.lifecycle_state != PositionLifecycle.LIQUIDATED.value:
                position.lifecycle_state = PositionLifecycle.CLOSED.value
            position.closed_at = utc_now()
            return await self._write(db, position, expected), legs

        position, legs = await retry_on_conflict(
            attempt, attempts=self._conflict_attempts, what=f"close position {position_id}"
        )
        logger.info("position %s closed (%s)", position.id, position.lifecycle_state)
        return PositionResponse.from_domain(position, legs)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_positions(
        self,
        db: AsyncSession,
        auth: AuthContext,
        status: str | None = None,
        kind: str | None = None,
    ) -> list[PositionResponse]:
        positions = await self._repo.list_by_user(db, auth.user_id, status, kind)
        return [PositionResponse.from_domain(p, await self.load_legs(db, p)) for p in positions]

    async def get_position(
        self, db: AsyncSession, auth: AuthContext, position_id: str
    ) -> PositionResponse:
        position = await self._get_owned(db, auth, position_id)
        return PositionResponse.from_domain(position, await self.load_legs(db, position))

    async def get_owned(self, db: AsyncSession, auth: AuthContext, position_id: str) -> Position:
        return await self._get_owned(db, auth, position_id)

    async def load(self, db: AsyncSession, position_id: str) -> tuple[Position, list[Order]]:
        position = await self._repo.get_by_id(db, position_id)
        if position is None:
            raise PositionNotFoundError(position_id)
        return position, await self.load_legs(db, position)

    async def load_legs(self, db: AsyncSession, position: Position) -> list[Order]:
        by_id = {o.id: o for o in await self._orders.list_by_ids(db, position.leg_order_ids)}
        return [by_id[oid] for oid in position.leg_order_ids if oid in by_id]

    async def active_for_account(
        self, db: AsyncSession, dex_account_id: str
    ) -> list[tuple[Position, list[Order]]]:
        positions = await self._repo.list_active_by_account(db, dex_account_id)
        return [(p, await self.load_legs(db, p)) for p in positions]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _rederive(self, db: AsyncSession, position_id: str) -> Position:
        position = await self._repo.get_by_id(db, position_id)
        if position is None:
            raise PositionNotFoundError(position_id)
        if position.is_terminal:
            return position
        legs = await self.load_legs(db, position)
        state, broken = derive_lifecycle(position, legs)
        self._check_hedge_drift(position, state, legs)
        if state == position.lifecycle_state and broken == position.hedge_broken:
            return position

        expected = position.version
        previous = position.lifecycle_state
        position.lifecycle_state = state
        position.hedge_broken = broken
        if state == PositionLifecycle.CLOSED.value:
            position.closed_at = utc_now()
        updated = await self._write(db, position, expected)
        if broken:
            logger.warning(
                "position %s hedge broken: legs %s",
                position.id,
                ", ".join(f"{leg.venue}:{leg.status}" for leg in legs),
            )
        else:
            logger.info("position %s: %s -> %s", position.id, previous, state)
        return updated

    def _check_hedge_drift(self, position: Position, state: str, legs: list[Order]) -> None:
        if (
            position.kind != PositionKind.DELTA_NEUTRAL.value
            or state != PositionLifecycle.OPEN.value
        ):
            return
        ratio = Exposure.from_legs(legs).residual_ratio
        if ratio is not None and ratio > self._drift_alert_ratio:
            logger.warning(
                "position %s hedge drift: residual ratio %.4f above %s",
                position.id, ratio, self._drift_alert_ratio,
            )

    def _new_position(
        self, auth: AuthContext, kind: str, legs: list[Order], name: str | None
    ) -> Position:
        now = utc_now()
        position = Position(
            id=generate_id(),
            user_id=auth.user_id,
            kind=kind,
            leg_order_ids=[leg.id for leg in legs],
            name=name,
            created_at=now,
            updated_at=now,
        )
        position.lifecycle_state, position.hedge_broken = derive_lifecycle(position, legs)
        return position

    async def _owned_leg(self, db: AsyncSession, auth: AuthContext, order_id: str) -> Order:
        order = await self._orders.get_by_id(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        try:
            await self._accounts.require_owned(db, auth.user_id, order.dex_account_id)
        except DexAccountNotFoundError:
            raise OrderNotFoundError(order_id) from None
        return order

    async def _ensure_unclaimed(self, db: AsyncSession, legs: list[Order]) -> None:
        claimed = await self._repo.list_active_by_leg_ids(db, [leg.id for leg in legs])
        if claimed:
            raise InvalidPairingError(
                f"order already a leg of active position {claimed[0].id}"
            )

    async def _get_owned(self, db: AsyncSession, auth: AuthContext, position_id: str) -> Position:
        position = await self._repo.get_by_id(db, position_id)
        if position is None or position.user_id != auth.user_id:
            raise PositionNotFoundError(position_id)
        return position

    async def _write(self, db: AsyncSession, position: Position, expected_version: int) -> Position:
        updated = await self._repo.update_versioned(db, position, expected_version)
        if updated is None:
            raise ConcurrencyConflictError("position", position.id, expected_version)
        return updated

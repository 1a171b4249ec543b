"""Composition root.

Every service is built exactly once per process from one ``Settings``
instance and reached by routers through the ``get_services`` dependency.
Venue SDK clients are supplied by the caller of ``create_app``; they are
paired here with the normalizer for their venue.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.requests import Request

from config.settings import Settings
from src.dx_account.application.service import DexAccountService
from src.dx_common.enums import Venue
from src.dx_ledger.application.service import TransactionLedger
from src.dx_order.application.service import OrderLedger
from src.dx_position.application.service import PositionAggregator
from src.dx_reconcile.health import HealthRegistry
from src.dx_reconcile.lease import AccountLease, LocalAccountLease, RedisAccountLease
from src.dx_reconcile.reconciler import AccountReconciler
from src.dx_reconcile.scheduler import ReconciliationScheduler
from src.dx_snapshot.application.service import SnapshotRecorder
from src.dx_venue.client import VenueBinding, VenueClient, VenueNormalizer
from src.dx_venue.drift import DriftNormalizer
from src.dx_venue.hyperliquid import HyperliquidNormalizer


@dataclass
class Services:
    accounts: DexAccountService
    orders: OrderLedger
    positions: PositionAggregator
    snapshots: SnapshotRecorder
    transactions: TransactionLedger
    scheduler: ReconciliationScheduler


def build_normalizers(settings: Settings) -> dict[str, VenueNormalizer]:
    return {
        Venue.DRIFT.value: DriftNormalizer(),
        Venue.HYPERLIQUID.value: HyperliquidNormalizer(settings.NETWORK_ENV),
    }


def build_bindings(
    settings: Settings, venue_clients: Mapping[str, VenueClient]
) -> dict[str, VenueBinding]:
    normalizers = build_normalizers(settings)
    return {
        venue: VenueBinding(client=client, normalizer=normalizers[venue])
        for venue, client in venue_clients.items()
    }


def build_lease(settings: Settings, redis_client: aioredis.Redis | None) -> AccountLease:
    if settings.RECONCILE_LEASE_BACKEND == "redis":
        if redis_client is None:
            raise ValueError("RECONCILE_LEASE_BACKEND=redis requires a Redis client")
        return RedisAccountLease(redis_client, settings.RECONCILE_LEASE_TTL_SECONDS)
    return LocalAccountLease()


def build_services(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    venue_clients: Mapping[str, VenueClient] | None = None,
    redis_client: aioredis.Redis | None = None,
) -> Services:
    accounts = DexAccountService()
    orders = OrderLedger(accounts, conflict_attempts=settings.OPTIMISTIC_RETRY_ATTEMPTS)
    positions = PositionAggregator(
        accounts,
        conflict_attempts=settings.OPTIMISTIC_RETRY_ATTEMPTS,
        drift_alert_ratio=Decimal(str(settings.HEDGE_DRIFT_ALERT_RATIO)),
    )
    snapshots = SnapshotRecorder(positions)
    transactions = TransactionLedger(accounts)

    reconciler = AccountReconciler(
        session_factory,
        build_bindings(settings, venue_clients or {}),
        orders,
        positions,
        snapshots,
        transactions,
        retry_attempts=settings.VENUE_RETRY_ATTEMPTS,
        retry_base_seconds=settings.VENUE_RETRY_BASE_SECONDS,
        retry_max_seconds=settings.VENUE_RETRY_MAX_SECONDS,
        fill_lookback=timedelta(hours=settings.VENUE_FILL_LOOKBACK_HOURS),
    )
    scheduler = ReconciliationScheduler(
        session_factory,
        accounts,
        reconciler,
        build_lease(settings, redis_client),
        HealthRegistry(),
        interval_seconds=settings.RECONCILE_INTERVAL_SECONDS,
        max_concurrency=settings.RECONCILE_MAX_CONCURRENCY,
        shutdown_grace_seconds=settings.RECONCILE_SHUTDOWN_GRACE_SECONDS,
    )
    return Services(
        accounts=accounts,
        orders=orders,
        positions=positions,
        snapshots=snapshots,
        transactions=transactions,
        scheduler=scheduler,
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency: the Services built in ``create_app``."""
    return request.app.state.services  # type: ignore[no-any-return]

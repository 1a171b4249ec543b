"""ReconciliationScheduler — recurring venue polling, independent of requests.

Each tick lists the active DEX accounts and starts one pass per account as a
background task. A tick never waits for its passes: a slow account only
delays itself. An account whose previous pass still holds its lease is
skipped for the tick. At most ``max_concurrency`` passes run at once.

A failed pass is recorded in the health registry and logged; the scheduler
itself keeps running.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.dx_account.application.service import DexAccountService
from src.dx_account.domain.models import DexAccount
from src.dx_common.datetime_utils import utc_now
from src.dx_common.errors import AppError
from src.dx_reconcile.health import HealthRegistry
from src.dx_reconcile.lease import AccountLease
from src.dx_reconcile.reconciler import AccountReconciler

logger = logging.getLogger(__name__)


class ReconciliationScheduler:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        accounts: DexAccountService,
        reconciler: AccountReconciler,
        lease: AccountLease,
        health: HealthRegistry | None = None,
        *,
        interval_seconds: float = 30.0,
        max_concurrency: int = 8,
        shutdown_grace_seconds: float = 10.0,
    ) -> None:
        self._session_factory = session_factory
        self._accounts = accounts
        self._reconciler = reconciler
        self._lease = lease
        self.health = health or HealthRegistry()
        self._interval = interval_seconds
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._grace = shutdown_grace_seconds
        self._stop = asyncio.Event()
        self._loop_task: asyncio.Task[None] | None = None
        self._passes: set[asyncio.Task[None]] = set()

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._loop_task = asyncio.create_task(self._run(), name="reconcile-scheduler")
        logger.info("reconciliation scheduler started (every %.1fs)", self._interval)

    async def stop(self) -> None:
        """Stop ticking, give in-flight passes the grace period, then cancel them."""
        self._stop.set()
        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None
        if self._passes:
            _, pending = await asyncio.wait(set(self._passes), timeout=self._grace)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning("cancelled %d reconciliation passes at shutdown", len(pending))
                await asyncio.gather(*pending, return_exceptions=True)
        logger.info("reconciliation scheduler stopped")

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("reconciliation tick failed")
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass

    async def tick(self) -> int:
        """Schedule one pass per active account; returns how many were started."""
        async with self._session_factory() as db:
            accounts = await self._accounts.list_active(db)

        started = 0
        skipped = 0
        for account in accounts:
            token = await self._lease.try_acquire(account.id)
            if token is None:
                skipped += 1
                logger.info("account %s still reconciling; skipped this tick", account.id)
                continue
            task = asyncio.create_task(self._pass(account, token), name=f"reconcile-{account.id}")
            self._passes.add(task)
            task.add_done_callback(self._passes.discard)
            started += 1

        logger.info(
            "reconciliation tick: %d accounts, %d started, %d skipped",
            len(accounts), started, skipped,
        )
        return started

    async def drain(self) -> None:
        """Wait for every in-flight pass to finish."""
        while self._passes:
            await asyncio.gather(*set(self._passes), return_exceptions=True)

    async def _pass(self, account: DexAccount, token: str) -> None:
        try:
            async with self._semaphore:
                await self._reconciler.reconcile(account)
            self.health.record_success(account, utc_now())
        except AppError as exc:
            self.health.record_failure(account, exc, utc_now())
            logger.warning("account %s (%s) degraded: %s", account.id, account.venue, exc.message)
        except Exception as exc:
            self.health.record_failure(account, exc, utc_now())
            logger.exception("account %s (%s) reconciliation crashed", account.id, account.venue)
        finally:
            await self._lease.release(account.id, token)

"""In-process health registry of per-account reconciliation."""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from src.dx_account.domain.models import DexAccount
from src.dx_common.enums import AccountHealth


@dataclass
class AccountStatus:
    dex_account_id: str
    venue: str
    health: str = AccountHealth.UNKNOWN.value
    consecutive_failures: int = 0
    last_error: str | None = None
    last_attempt_at: datetime | None = None
    last_success_at: datetime | None = None


class HealthRegistry:
    def __init__(self) -> None:
        self._statuses: dict[str, AccountStatus] = {}

    def _status(self, account: DexAccount) -> AccountStatus:
        if account.id not in self._statuses:
            self._statuses[account.id] = AccountStatus(dex_account_id=account.id, venue=account.venue)
        return self._statuses[account.id]

    def record_success(self, account: DexAccount, at: datetime) -> None:
        status = self._status(account)
        status.health = AccountHealth.HEALTHY.value
        status.consecutive_failures = 0
        status.last_error = None
        status.last_attempt_at = at
        status.last_success_at = at

    def record_failure(self, account: DexAccount, error: BaseException, at: datetime) -> None:
        """A pass only fails after its venue retries are spent, so one failure degrades."""
        status = self._status(account)
        status.health = AccountHealth.DEGRADED.value
        status.consecutive_failures += 1
        status.last_error = str(error) or type(error).__name__
        status.last_attempt_at = at

    def get(self, dex_account_id: str) -> AccountStatus | None:
        return self._statuses.get(dex_account_id)

    def summary(self) -> dict[str, Any]:
        accounts = [asdict(s) for s in sorted(self._statuses.values(), key=lambda s: s.dex_account_id)]
        degraded = sum(1 for s in self._statuses.values() if s.health == AccountHealth.DEGRADED.value)
        return {
            "status": "degraded" if degraded else "ok",
            "degraded_accounts": degraded,
            "accounts": accounts,
        }

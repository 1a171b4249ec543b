"""Unit tests for reconciliation leases and the health registry."""

from datetime import timedelta
from unittest.mock import AsyncMock

from src.dx_account.domain.models import DexAccount
from src.dx_common.errors import VenueUnavailableError
from src.dx_reconcile.health import HealthRegistry
from src.dx_reconcile.lease import LocalAccountLease, RedisAccountLease
from tests.fakes import T0


def _account(account_id: str = "acct-1", venue: str = "drift") -> DexAccount:
    return DexAccount(
        id=account_id, user_id="user-1", venue=venue, address="addr", account_type="master"
    )


class TestLocalAccountLease:
    async def test_second_acquire_is_refused(self) -> None:
        lease = LocalAccountLease()

        token = await lease.try_acquire("acct-1")

        assert token is not None
        assert await lease.try_acquire("acct-1") is None
        assert await lease.try_acquire("acct-2") is not None

    async def test_release_frees_the_account(self) -> None:
        lease = LocalAccountLease()
        token = await lease.try_acquire("acct-1")
        assert token is not None

        await lease.release("acct-1", token)

        assert await lease.try_acquire("acct-1") is not None

    async def test_stale_token_does_not_release(self) -> None:
        lease = LocalAccountLease()
        await lease.try_acquire("acct-1")

        await lease.release("acct-1", "not-the-token")

        assert await lease.try_acquire("acct-1") is None


class TestRedisAccountLease:
    async def test_acquire_uses_set_nx_with_ttl(self) -> None:
        client = AsyncMock()
        client.set.return_value = True
        lease = RedisAccountLease(client, ttl_seconds=120)

        token = await lease.try_acquire("acct-1")

        assert token is not None
        client.set.assert_awaited_once_with(
            "dx:reconcile:lease:acct-1", token, nx=True, px=120_000
        )

    async def test_held_key_refuses(self) -> None:
        client = AsyncMock()
        client.set.return_value = None
        lease = RedisAccountLease(client, ttl_seconds=120)

        assert await lease.try_acquire("acct-1") is None

    async def test_release_is_token_checked(self) -> None:
        client = AsyncMock()
        client.eval.return_value = 1
        lease = RedisAccountLease(client, ttl_seconds=120)

        await lease.release("acct-1", "tok")

        args = client.eval.await_args.args
        assert args[1:] == (1, "dx:reconcile:lease:acct-1", "tok")
        assert "get" in args[0] and "del" in args[0]


class TestHealthRegistry:
    def test_failure_degrades_and_success_recovers(self) -> None:
        registry = HealthRegistry()
        account = _account()

        registry.record_failure(account, VenueUnavailableError("drift", "rpc down"), T0)
        registry.record_failure(account, VenueUnavailableError("drift", "rpc down"), T0)
        status = registry.get("acct-1")
        assert status is not None
        assert status.health == "degraded"
        assert status.consecutive_failures == 2
        assert "rpc down" in (status.last_error or "")

        later = T0 + timedelta(seconds=30)
        registry.record_success(account, later)
        assert status.health == "healthy"
        assert status.consecutive_failures == 0
        assert status.last_error is None
        assert status.last_success_at == later

    def test_summary(self) -> None:
        registry = HealthRegistry()
        registry.record_success(_account("acct-a"), T0)
        registry.record_failure(_account("acct-b", "hyperliquid"), RuntimeError("boom"), T0)

        summary = registry.summary()

        assert summary["status"] == "degraded"
        assert summary["degraded_accounts"] == 1
        assert [a["dex_account_id"] for a in summary["accounts"]] == ["acct-a", "acct-b"]

    def test_empty_registry_is_ok(self) -> None:
        assert HealthRegistry().summary() == {
            "status": "ok", "degraded_accounts": 0, "accounts": [],
        }

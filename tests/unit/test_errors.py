"""Tests for dx_common.errors and dx_common.response."""

from src.dx_common.errors import (
    AppError,
    ConcurrencyConflictError,
    DexAccountNotFoundError,
    InvalidPairingError,
    InvalidTransitionError,
    OrderNotFoundError,
    PositionNotClosableError,
    RetryExhaustedError,
    StaleApplyError,
    VenueUnavailableError,
)
from src.dx_common.response import ApiResponse, error_response, success_response


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.message == "Internal error"
        assert err.http_status == 500

    def test_is_exception(self) -> None:
        assert isinstance(AppError(code=1001, message="test"), Exception)


class TestSpecificErrors:
    def test_account_not_found(self) -> None:
        err = DexAccountNotFoundError("acct-1")
        assert err.code == 1002
        assert err.http_status == 404

    def test_invalid_transition(self) -> None:
        err = InvalidTransitionError("order-1", "filled", "cancelled")
        assert err.code == 4002
        assert err.http_status == 409
        assert "filled" in err.message
        assert "cancelled" in err.message

    def test_stale_apply(self) -> None:
        err = StaleApplyError("order-1", "liquidated")
        assert err.code == 4003
        assert "liquidated" in err.message

    def test_order_not_found(self) -> None:
        err = OrderNotFoundError("order-abc")
        assert err.code == 4004
        assert err.http_status == 404

    def test_position_errors(self) -> None:
        assert InvalidPairingError("same venue").http_status == 422
        assert PositionNotClosableError("pos-1").code == 5002

    def test_venue_unavailable(self) -> None:
        err = VenueUnavailableError("drift", "timeout")
        assert err.code == 9101
        assert err.http_status == 503
        assert "drift" in err.message

    def test_concurrency_errors(self) -> None:
        assert ConcurrencyConflictError("order", "o-1", 3).code == 9201
        assert RetryExhaustedError("cancel order o-1", 5).code == 9202


class TestApiResponse:
    def test_success_response(self) -> None:
        resp = success_response({"id": "o-1"})
        assert isinstance(resp, ApiResponse)
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"id": "o-1"}
        assert resp.request_id.startswith("req_")

    def test_error_response(self) -> None:
        resp = error_response(4004, "Order not found")
        assert resp.code == 4004
        assert resp.data is None

"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth / DexAccount
  4xxx: Order
  5xxx: Position / Snapshot
  9xxx: System (venue I/O, concurrency)

State-machine and validation errors are always surfaced to the caller.
Venue I/O and concurrency errors are retried locally first.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth / DexAccount ---

class AuthRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Authenticated user id is required", 401)


class DexAccountNotFoundError(AppError):
    def __init__(self, dex_account_id: str) -> None:
        super().__init__(1002, f"DEX account not found: {dex_account_id}", 404)


class DuplicateDexAccountError(AppError):
    def __init__(self, venue: str, address: str) -> None:
        super().__init__(1003, f"DEX account already linked: {venue}/{address}", 409)


# --- 4xxx: Order ---

class InvalidOrderError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4001, f"Invalid order: {detail}", 422)


class InvalidTransitionError(AppError):
    def __init__(self, order_id: str, from_status: str, to_status: str) -> None:
        super().__init__(
            4002, f"Order {order_id} cannot move from {from_status} to {to_status}", 409
        )


class StaleApplyError(AppError):
    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(4003, f"Order {order_id} is already terminal ({status})", 409)


class OrderNotFoundError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4004, f"Order not found: {order_id}", 404)


# --- 5xxx: Position ---

class InvalidPairingError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5001, f"Invalid pairing: {detail}", 422)


class PositionNotClosableError(AppError):
    def __init__(self, position_id: str) -> None:
        super().__init__(5002, f"Position {position_id} has legs that are not terminal", 409)


class PositionNotActiveError(AppError):
    def __init__(self, position_id: str, state: str) -> None:
        super().__init__(5003, f"Position {position_id} is not active ({state})", 409)


class PositionNotFoundError(AppError):
    def __init__(self, position_id: str) -> None:
        super().__init__(5004, f"Position not found: {position_id}", 404)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class VenueUnavailableError(AppError):
    def __init__(self, venue: str, detail: str) -> None:
        super().__init__(9101, f"Venue {venue} unavailable: {detail}", 503)


class VenuePayloadError(AppError):
    def __init__(self, venue: str, detail: str) -> None:
        super().__init__(9102, f"Malformed {venue} payload: {detail}", 502)


class ConcurrencyConflictError(AppError):
    def __init__(self, entity: str, entity_id: str, expected_version: int) -> None:
        super().__init__(
            9201, f"{entity} {entity_id} changed since version {expected_version}", 409
        )


class RetryExhaustedError(AppError):
    def __init__(self, what: str, attempts: int) -> None:
        super().__init__(9202, f"{what} still conflicting after {attempts} attempts", 409)

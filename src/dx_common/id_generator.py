"""ID generation for local business ids and venue client order ids.

``generate_id`` gives monotonically increasing snowflake-style string ids for
orders and positions. ``generate_client_order_id`` gives the client-side
dedup key each venue echoes back on its order reports.
"""

import secrets
import threading
import time


class SnowflakeIdGenerator:
    """Simple snowflake ID generator.

    Layout (64 bits):
      - 41 bits: millisecond timestamp (since custom epoch)
      - 10 bits: machine_id (0-1023)
      - 12 bits: sequence (0-4095 per millisecond)
    """

    _EPOCH_MS = 1_700_000_000_000
    _MACHINE_BITS = 10
    _SEQUENCE_BITS = 12
    _MAX_SEQUENCE = (1 << _SEQUENCE_BITS) - 1

    def __init__(self, machine_id: int = 0) -> None:
        if not (0 <= machine_id < (1 << self._MACHINE_BITS)):
            raise ValueError(f"machine_id must be 0-{(1 << self._MACHINE_BITS) - 1}")
        self._machine_id = machine_id
        self._sequence = 0
        self._last_timestamp_ms = -1
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            ts = int(time.time() * 1000)
            if ts <= self._last_timestamp_ms:
                # Same millisecond or clock stepped back: keep ids increasing
                ts = self._last_timestamp_ms
                self._sequence = (self._sequence + 1) & self._MAX_SEQUENCE
                if self._sequence == 0:
                    ts += 1
            else:
                self._sequence = 0

            self._last_timestamp_ms = ts
            id_int = (
                ((ts - self._EPOCH_MS) << (self._MACHINE_BITS + self._SEQUENCE_BITS))
                | (self._machine_id << self._SEQUENCE_BITS)
                | self._sequence
            )
            return str(id_int)


_default_generator = SnowflakeIdGenerator()


def generate_id() -> str:
    """Generate a unique snowflake-style string ID."""
    return _default_generator.next_id()


def generate_client_order_id(venue: str = "hyperliquid") -> str:
    """Return a fresh client order id in the form the venue echoes back.

    Hyperliquid takes a ``0x``-prefixed 128-bit hex cloid. Drift only keeps a
    u8 ``userOrderId`` (0 means unset), so ids there are 1..255.
    """
    if venue == "drift":
        return str(secrets.randbelow(255) + 1)
    return "0x" + secrets.token_hex(16)

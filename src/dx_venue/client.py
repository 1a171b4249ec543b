"""Consumed venue capability.

The venue SDK clients live outside this service. Each one is paired with a
normalizer that turns its native payloads into ``src.dx_venue.models`` shapes;
the pair is registered per venue as a ``VenueBinding`` at startup.
"""

from dataclasses import dataclass
from typing import Any, Protocol

from src.dx_account.domain.models import DexAccount
from src.dx_venue.models import TimeWindow, VenueFill, VenueOrder, VenuePosition, VenueTransfer

RawPayload = dict[str, Any]


class VenueClient(Protocol):
    async def list_orders(self, account: DexAccount) -> list[RawPayload]: ...

    async def list_positions(self, account: DexAccount) -> list[RawPayload]: ...

    async def list_fills(self, account: DexAccount, window: TimeWindow) -> list[RawPayload]: ...

    async def list_transfers(
        self, account: DexAccount, window: TimeWindow
    ) -> list[RawPayload]: ...


class VenueNormalizer(Protocol):
    venue: str

    def order(self, raw: RawPayload) -> VenueOrder: ...

    def position(self, raw: RawPayload) -> VenuePosition | None: ...

    def fill(self, raw: RawPayload) -> VenueFill: ...

    def transfer(self, raw: RawPayload) -> VenueTransfer | None: ...


@dataclass(frozen=True)
class VenueBinding:
    client: VenueClient
    normalizer: VenueNormalizer

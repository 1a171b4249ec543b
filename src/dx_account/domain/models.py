"""DexAccount domain model — pure dataclass, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class DexAccount:
    id: str
    user_id: str
    venue: str  # drift / hyperliquid
    address: str
    account_type: str  # master / agent_wallet / subaccount
    subaccount_id: int | None = None  # Drift only
    is_active: bool = True
    created_at: datetime | None = None

    def owned_by(self, user_id: str) -> bool:
        return self.user_id == user_id

"""Transaction domain models — deposits and withdrawals per DEX account."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.dx_common.enums import TransactionStatus


@dataclass(frozen=True)
class TransferDetails:
    market_index: int
    amount: Decimal
    token_symbol: str
    external_tx_signature: str
    occurred_at: datetime
    status: str = TransactionStatus.CONFIRMED.value


@dataclass(frozen=True)
class TransactionFilter:
    direction: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    limit: int = 100


@dataclass
class Transaction:
    id: str
    dex_account_id: str
    direction: str  # deposit / withdrawal
    market_index: int
    amount: Decimal
    token_symbol: str
    external_tx_signature: str
    status: str
    occurred_at: datetime
    created_at: datetime | None = None

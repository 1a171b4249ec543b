"""Pydantic schemas for the transactions API."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from src.dx_ledger.domain.models import Transaction, TransferDetails


class RecordTransferRequest(BaseModel):
    dex_account_id: str
    market_index: int = Field(0, ge=0)
    amount: Decimal = Field(..., gt=0)
    token_symbol: str = Field("USDC", min_length=1, max_length=16)
    external_tx_signature: str = Field(..., min_length=1, max_length=128)
    status: Literal["pending", "confirmed", "failed"] = "confirmed"
    occurred_at: datetime | None = None

    def to_details(self, default_time: datetime) -> TransferDetails:
        return TransferDetails(
            market_index=self.market_index,
            amount=self.amount,
            token_symbol=self.token_symbol,
            external_tx_signature=self.external_tx_signature,
            occurred_at=self.occurred_at or default_time,
            status=self.status,
        )


class TransactionResponse(BaseModel):
    id: str
    dex_account_id: str
    direction: str
    market_index: int
    amount: Decimal
    token_symbol: str
    external_tx_signature: str
    status: str
    occurred_at: datetime
    created_at: datetime | None = None

    @classmethod
    def from_domain(cls, tx: Transaction) -> "TransactionResponse":
        return cls(
            id=tx.id,
            dex_account_id=tx.dex_account_id,
            direction=tx.direction,
            market_index=tx.market_index,
            amount=tx.amount,
            token_symbol=tx.token_symbol,
            external_tx_signature=tx.external_tx_signature,
            status=tx.status,
            occurred_at=tx.occurred_at,
            created_at=tx.created_at,
        )

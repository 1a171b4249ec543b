"""Pydantic schemas for the dex-accounts API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from src.dx_account.domain.models import DexAccount


class LinkDexAccountRequest(BaseModel):
    venue: Literal["drift", "hyperliquid"]
    address: str = Field(..., min_length=1, max_length=128)
    account_type: Literal["master", "agent_wallet", "subaccount"] = "master"
    subaccount_id: int | None = Field(None, ge=0)

    @model_validator(mode="after")
    def subaccount_is_drift_only(self) -> "LinkDexAccountRequest":
        if self.subaccount_id is not None and self.venue != "drift":
            raise ValueError("subaccount_id is only meaningful for drift accounts")
        return self


class DexAccountResponse(BaseModel):
    id: str
    venue: str
    address: str
    account_type: str
    subaccount_id: int | None
    is_active: bool
    created_at: datetime | None = None

    @classmethod
    def from_domain(cls, account: DexAccount) -> "DexAccountResponse":
        return cls(
            id=account.id,
            venue=account.venue,
            address=account.address,
            account_type=account.account_type,
            subaccount_id=account.subaccount_id,
            is_active=account.is_active,
            created_at=account.created_at,
        )

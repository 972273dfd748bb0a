# schemas.py
from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator
from uuid import UUID
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, List, Literal

from settings import settings

PayoutStatus = Literal["pending", "approved", "rejected", "completed"]

BANK_TRANSFER_FIELDS = ("bank_name", "account_number", "account_name")


# -------- PAYOUTS --------
class PayoutCreateRequest(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    payment_method: str = Field(min_length=1, max_length=40)
    payment_details: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("payment_method")
    @classmethod
    def _method_allowed(cls, v: str) -> str:
        method = v.strip().lower()
        allowed = settings.payout_methods
        if allowed and method not in allowed:
            raise ValueError(f"payment_method must be one of: {', '.join(sorted(allowed))}")
        return method

    @model_validator(mode="after")
    def _bank_details(self) -> "PayoutCreateRequest":
        if self.payment_method == "bank_transfer":
            missing = [f for f in BANK_TRANSFER_FIELDS if not str(self.payment_details.get(f) or "").strip()]
            if missing:
                raise ValueError(f"bank_transfer requires: {', '.join(missing)}")
        return self


class PayoutResponse(BaseModel):
    id: UUID
    user_id: UUID
    amount: Decimal
    payment_method: str
    payment_details: Dict[str, Any]
    status: PayoutStatus
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    processed_at: Optional[datetime] = None
    processed_by: Optional[UUID] = None


class PayoutListResponse(BaseModel):
    items: List[PayoutResponse]


class StatusHistoryItem(BaseModel):
    id: UUID
    payout_id: UUID
    old_status: Optional[str] = None
    new_status: str
    changed_by: Optional[UUID] = None
    changed_by_name: str
    notes: Optional[str] = None
    created_at: datetime


class StatusHistoryResponse(BaseModel):
    payout_id: UUID
    items: List[StatusHistoryItem]


# -------- ADMIN PAYOUTS --------
class AdminPayoutItem(PayoutResponse):
    user_name: Optional[str] = None
    user_email: Optional[str] = None


class AdminPayoutListResponse(BaseModel):
    items: List[AdminPayoutItem]
    pending_count: int
    total_pending: Decimal


class PayoutStatusUpdateRequest(BaseModel):
    status: PayoutStatus
    admin_notes: Optional[str] = Field(default=None, max_length=2000)


class PayoutStatusUpdateResponse(BaseModel):
    payout_id: UUID
    status: PayoutStatus
    previous_status: PayoutStatus
    wallet_delta: Decimal
    balance_after: Optional[Decimal] = None


class AutoPayoutResult(BaseModel):
    user_id: UUID
    amount: Decimal
    status: Literal["created", "skipped_pending_exists", "error"]
    payout_id: Optional[UUID] = None
    error: Optional[str] = None


class AutoPayoutRunResponse(BaseModel):
    processed: int
    message: str
    results: List[AutoPayoutResult]


# -------- WALLETS --------
class WalletBalanceResponse(BaseModel):
    user_id: UUID
    balance: Decimal
    pending_total: Decimal
    available: Decimal


class WalletTransactionItem(BaseModel):
    id: UUID
    user_id: UUID
    amount: Decimal
    type: str
    description: Optional[str] = None
    payout_id: Optional[UUID] = None
    order_id: Optional[UUID] = None
    created_at: datetime


class WalletTransactionListResponse(BaseModel):
    items: List[WalletTransactionItem]


class AdminWalletItem(BaseModel):
    user_id: UUID
    name: Optional[str] = None
    email: Optional[str] = None
    balance: Decimal
    opening_balance: Decimal
    updated_at: datetime


class AdminWalletListResponse(BaseModel):
    wallets: List[AdminWalletItem]


class WalletOpenRequest(BaseModel):
    opening_balance: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)


class WalletAdjustRequest(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    direction: Literal["credit", "debit"]
    description: Optional[str] = Field(default=None, max_length=500)


class WalletAdjustResponse(BaseModel):
    user_id: UUID
    balance: Decimal
    transaction: WalletTransactionItem


# -------- LEDGER INVARIANTS --------
class WalletInvariantItem(BaseModel):
    user_id: UUID
    balance: Decimal
    opening_balance: Decimal
    ledger_sum: Decimal
    diff: Decimal
    ok: bool


class WalletInvariantListResponse(BaseModel):
    ok: bool
    items: List[WalletInvariantItem]

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from uuid import UUID
from datetime import datetime


# ledger reason codes
PAYOUT_APPROVED = "payout_approved"
PAYOUT_COMPLETED = "payout_completed"
PAYOUT_REFUND = "payout_refund"
PAYOUT_REVERTED = "payout_reverted"
ADMIN_CREDIT = "admin_credit"
ADMIN_DEBIT = "admin_debit"


@dataclass(frozen=True)
class Wallet:
    user_id: UUID
    balance: Decimal
    opening_balance: Decimal
    updated_at: datetime


@dataclass(frozen=True)
class WalletTransaction:
    id: UUID
    user_id: UUID
    amount: Decimal  # positive = credit, negative = debit
    type: str
    description: Optional[str]
    created_at: datetime
    payout_id: Optional[UUID] = None
    order_id: Optional[UUID] = None

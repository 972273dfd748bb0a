from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Any
from uuid import UUID
from datetime import datetime


PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
COMPLETED = "completed"

STATUSES = (PENDING, APPROVED, REJECTED, COMPLETED)

# statuses in which the request amount has been taken out of the wallet
DEBITED_STATUSES = frozenset({APPROVED, COMPLETED})


@dataclass(frozen=True)
class PayoutRequest:
    id: UUID
    user_id: UUID
    amount: Decimal
    payment_method: str
    payment_details: dict[str, Any]
    status: str
    admin_notes: Optional[str]
    created_at: datetime
    updated_at: datetime
    processed_at: Optional[datetime] = None
    processed_by: Optional[UUID] = None


@dataclass(frozen=True)
class StatusHistoryEntry:
    id: UUID
    payout_id: UUID
    old_status: Optional[str]
    new_status: str
    changed_by: Optional[UUID]
    notes: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class HistoryView:
    entry: StatusHistoryEntry
    changed_by_name: str


@dataclass(frozen=True)
class TransitionResult:
    payout_id: UUID
    status: str
    previous_status: str
    wallet_delta: Decimal
    balance_after: Optional[Decimal] = None
    notes: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

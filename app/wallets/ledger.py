# app/wallets/ledger.py
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from app.errors import ValidationError
from app.money import to_money
from app.wallets.model import WalletTransaction


def record(
    uow,
    *,
    user_id: UUID,
    amount: Decimal,
    type: str,
    description: str | None = None,
    payout_id: UUID | None = None,
    order_id: UUID | None = None,
) -> WalletTransaction:
    """
    Append one signed balance adjustment. Must run in the same unit of work as
    the Wallet Store mutation it mirrors; a failure here rolls both back.
    """
    amt = to_money(amount)
    if amt == 0:
        raise ValidationError("ledger amount must be non-zero")
    if not (type or "").strip():
        raise ValidationError("ledger type is required")

    tx = WalletTransaction(
        id=uuid4(),
        user_id=user_id,
        amount=amt,
        type=type.strip(),
        description=description,
        created_at=datetime.now(timezone.utc),
        payout_id=payout_id,
        order_id=order_id,
    )
    uow.insert_transaction(tx)
    return tx


def list_transactions(
    store,
    *,
    user_id: Optional[UUID] = None,
    payout_id: Optional[UUID] = None,
    limit: int = 100,
) -> list[WalletTransaction]:
    with store.unit_of_work() as uow:
        return uow.list_transactions(user_id=user_id, payout_id=payout_id, limit=limit)

# app/wallets/admin.py
from __future__ import annotations

import logging
from typing import Any, Optional
from uuid import UUID

from app.errors import ValidationError
from app.money import positive_money
from app.wallets import ledger
from app.wallets import store as wallet_store
from app.wallets.model import ADMIN_CREDIT, ADMIN_DEBIT

logger = logging.getLogger("affiliatehub.wallets")

CREDIT = "credit"
DEBIT = "debit"


def adjust_wallet(
    store,
    *,
    user_id: UUID,
    amount,
    direction: str,
    description: Optional[str] = None,
    actor_id: Optional[UUID] = None,
) -> dict[str, Any]:
    """Manual admin credit/debit; balance and ledger entry commit together."""
    amt = positive_money(amount)
    direction = (direction or "").strip().lower()
    if direction not in (CREDIT, DEBIT):
        raise ValidationError("direction must be 'credit' or 'debit'", field="direction")

    delta = amt if direction == CREDIT else -amt
    reason = ADMIN_CREDIT if direction == CREDIT else ADMIN_DEBIT
    note = (description or "").strip() or f"Admin {direction}"

    with store.unit_of_work() as uow:
        balance = wallet_store.adjust(uow, user_id, delta)
        tx = ledger.record(uow, user_id=user_id, amount=delta, type=reason, description=note)

    logger.info(
        "admin wallet adjust user_id=%s direction=%s amount=%s actor=%s balance=%s",
        user_id,
        direction,
        amt,
        actor_id,
        balance,
    )
    return {"user_id": user_id, "balance": balance, "transaction": tx}

# app/wallets/store.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from app.errors import InsufficientFunds, NotFound, ValidationError
from app.money import ZERO, to_money
from app.wallets.model import Wallet

logger = logging.getLogger("affiliatehub.wallets")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_balance(uow, user_id: UUID) -> Decimal:
    wallet = uow.get_wallet(user_id)
    if wallet is None:
        raise NotFound("Wallet not found", user_id=user_id)
    return wallet.balance


def lock_wallet(uow, user_id: UUID) -> Wallet:
    """Row-lock the wallet for the rest of the unit of work."""
    wallet = uow.get_wallet(user_id, for_update=True)
    if wallet is None:
        raise NotFound("Wallet not found", user_id=user_id)
    return wallet


def adjust(uow, user_id: UUID, delta: Decimal) -> Decimal:
    """
    Add `delta` (negative for a debit) under the wallet row lock and return the
    new balance. Callers write the matching ledger entry in the same unit of work.
    """
    delta = to_money(delta, field="delta")
    wallet = lock_wallet(uow, user_id)
    new_balance = wallet.balance + delta
    if delta < 0 and new_balance < 0:
        raise InsufficientFunds(
            "Insufficient wallet balance",
            user_id=user_id,
            balance=wallet.balance,
            requested=-delta,
        )
    uow.set_wallet_balance(user_id, new_balance, _utcnow())
    logger.debug("wallet adjusted user_id=%s delta=%s balance=%s", user_id, delta, new_balance)
    return new_balance


def pending_total(uow, user_id: UUID) -> Decimal:
    return to_money(uow.sum_pending(user_id) or ZERO)


def available_balance(uow, user_id: UUID) -> Decimal:
    """Withdrawable funds: balance minus amounts promised to pending requests. Never stored."""
    return get_balance(uow, user_id) - pending_total(uow, user_id)


def open_wallet(store, user_id: UUID, opening_balance=ZERO) -> Wallet:
    opening = to_money(opening_balance, field="opening_balance")
    if opening < 0:
        raise ValidationError("opening_balance must be >= 0", field="opening_balance")

    wallet = Wallet(user_id=user_id, balance=opening, opening_balance=opening, updated_at=_utcnow())
    with store.unit_of_work() as uow:
        if uow.get_wallet(user_id) is not None:
            raise ValidationError("Wallet already exists", user_id=user_id)
        uow.insert_wallet(wallet)

    logger.info("wallet opened user_id=%s opening_balance=%s", user_id, opening)
    return wallet


def get_wallet_balance(store, user_id: UUID) -> dict:
    with store.unit_of_work() as uow:
        balance = get_balance(uow, user_id)
        pending = pending_total(uow, user_id)
    return {
        "user_id": user_id,
        "balance": balance,
        "pending_total": pending,
        "available": balance - pending,
    }

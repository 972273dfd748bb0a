# app/payouts/service.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

from app.accounts.directory import get_profile, get_profiles
from app.errors import BelowMinimum, InsufficientFunds, NotFound, OverPledged, PayoutError, ValidationError
from app.money import ZERO, positive_money, to_money
from app.notifications import dispatcher as notify
from app.payouts import history
from app.payouts.model import PENDING, HistoryView, PayoutRequest, TransitionResult
from app.payouts.state_machine import normalize_status, wallet_effect
from app.platform_settings import resolve_min_payout_amount
from app.wallets import ledger
from app.wallets import store as wallet_store
from app.wallets.ledger import list_transactions
from app.wallets.store import get_wallet_balance
from services.metrics import (
    increment_payout_created,
    increment_payout_rejection,
    increment_payout_transition,
)
from services.redaction import mask_payment_details

logger = logging.getLogger("affiliatehub.payouts")

__all__ = [
    "create_payout",
    "transition",
    "get_payout",
    "list_payout_requests",
    "admin_payout_overview",
    "list_status_history",
    "get_wallet_balance",
    "list_transactions",
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def notify_after_commit(dispatcher, event_type: str, payload: dict[str, Any]) -> None:
    # runs after commit; never raises into the caller
    dispatcher = dispatcher or notify.get_dispatcher()
    try:
        dispatcher.send(event_type, payload)
    except Exception:
        logger.exception("notification dispatch raised type=%s", event_type)


def create_payout(
    store,
    *,
    user_id: UUID,
    amount,
    payment_method: str,
    payment_details: Optional[dict[str, Any]] = None,
    min_payout_amount: Optional[Decimal] = None,
    dispatcher=None,
) -> PayoutRequest:
    """
    Insert a pending payout request without touching the wallet.

    Checks run under the wallet row lock, in this order:
      (a) amount <= balance                      -> InsufficientFunds
      (b) amount >= minimum payout amount        -> BelowMinimum
      (c) amount <= balance - sum(pending)       -> OverPledged
    """
    try:
        amt = positive_money(amount)
        method = (payment_method or "").strip()
        if not method:
            raise ValidationError("payment_method is required", field="payment_method")
        if payment_details is not None and not isinstance(payment_details, dict):
            raise ValidationError("payment_details must be an object", field="payment_details")

        with store.unit_of_work() as uow:
            wallet = wallet_store.lock_wallet(uow, user_id)
            minimum = (
                to_money(min_payout_amount, field="min_payout_amount")
                if min_payout_amount is not None
                else to_money(resolve_min_payout_amount(uow), field="min_payout_amount")
            )

            if amt > wallet.balance:
                raise InsufficientFunds(
                    "Insufficient wallet balance",
                    balance=wallet.balance,
                    requested=amt,
                )
            if amt < minimum:
                raise BelowMinimum(
                    f"Minimum payout amount is {minimum}",
                    minimum=minimum,
                    requested=amt,
                )
            pending = wallet_store.pending_total(uow, user_id)
            available = wallet.balance - pending
            if amt > available:
                raise OverPledged(
                    "Insufficient available balance; funds are held by pending payout requests",
                    available=available,
                    pending_total=pending,
                    requested=amt,
                )

            now = _utcnow()
            payout = PayoutRequest(
                id=uuid4(),
                user_id=user_id,
                amount=amt,
                payment_method=method,
                payment_details=dict(payment_details or {}),
                status=PENDING,
                admin_notes=None,
                created_at=now,
                updated_at=now,
            )
            uow.insert_payout(payout)
            profile = get_profile(uow, user_id)
    except PayoutError as exc:
        increment_payout_rejection("create", exc.code)
        logger.info("payout create rejected user_id=%s code=%s", user_id, exc.code)
        raise

    increment_payout_created(method)
    logger.info(
        "payout created id=%s user_id=%s amount=%s method=%s details=%s",
        payout.id,
        user_id,
        amt,
        method,
        mask_payment_details(payout.payment_details),
    )

    notify_after_commit(
        dispatcher,
        notify.NEW_PAYOUT_REQUEST_ADMIN,
        {
            "payout_id": str(payout.id),
            "user_name": profile.name if profile else None,
            "user_email": profile.email if profile else None,
            "amount": str(amt),
            "payment_method": method,
            "payment_details": mask_payment_details(payout.payment_details),
        },
    )
    return payout


def transition(
    store,
    *,
    payout_id: UUID,
    new_status: str,
    actor_id: Optional[UUID],
    admin_notes: Optional[str] = None,
    dispatcher=None,
) -> TransitionResult:
    """
    Move a payout request to `new_status` from whatever status it is in.

    Status, wallet balance, ledger entry and history entry are written in one
    unit of work (the history entry inside its own savepoint). The payout row
    is locked before the wallet row.
    """
    try:
        status = normalize_status(new_status)

        with store.unit_of_work() as uow:
            payout = uow.get_payout(payout_id, for_update=True)
            if payout is None:
                raise NotFound("Payout request not found", payout_id=payout_id)

            previous = payout.status
            effect = wallet_effect(status, previous)
            delta = ZERO
            balance_after = None

            if effect is not None:
                delta = payout.amount * effect.sign
                balance_after = wallet_store.adjust(uow, payout.user_id, delta)
                ledger.record(
                    uow,
                    user_id=payout.user_id,
                    amount=delta,
                    type=effect.reason,
                    description=effect.description,
                    payout_id=payout.id,
                )

            now = _utcnow()
            processed = status != PENDING
            uow.update_payout_status(
                payout.id,
                status=status,
                admin_notes=admin_notes or None,
                processed_at=now if processed else None,
                processed_by=actor_id if processed else None,
                updated_at=now,
            )

            history.append(
                uow,
                payout_id=payout.id,
                old_status=previous,
                new_status=status,
                changed_by=actor_id,
                notes=admin_notes or None,
            )
            profile = get_profile(uow, payout.user_id)
    except PayoutError as exc:
        increment_payout_rejection("transition", exc.code)
        logger.info("payout transition rejected payout_id=%s to=%s code=%s", payout_id, new_status, exc.code)
        raise

    effect_label = "none" if effect is None else ("debit" if effect.is_debit else "credit")
    increment_payout_transition(previous, status, effect_label)
    logger.info(
        "payout transition id=%s %s->%s effect=%s delta=%s actor=%s",
        payout.id,
        previous,
        status,
        effect_label,
        delta,
        actor_id,
    )

    if status != PENDING:
        notify_after_commit(
            dispatcher,
            f"payout_{status}",
            {
                "payout_id": str(payout.id),
                "user_name": profile.name if profile else None,
                "user_email": profile.email if profile else None,
                "amount": str(payout.amount),
                "notes": admin_notes or None,
            },
        )

    return TransitionResult(
        payout_id=payout.id,
        status=status,
        previous_status=previous,
        wallet_delta=delta,
        balance_after=balance_after,
        notes=admin_notes or None,
    )


def get_payout(store, payout_id: UUID) -> PayoutRequest:
    with store.unit_of_work() as uow:
        payout = uow.get_payout(payout_id)
    if payout is None:
        raise NotFound("Payout request not found", payout_id=payout_id)
    return payout


def list_payout_requests(
    store,
    *,
    user_id: Optional[UUID] = None,
    status: Optional[str] = None,
    limit: int = 200,
) -> list[PayoutRequest]:
    if status is not None:
        status = normalize_status(status)
    with store.unit_of_work() as uow:
        return uow.list_payouts(user_id=user_id, status=status, limit=limit)


def admin_payout_overview(store, *, status: Optional[str] = None, limit: int = 200) -> dict[str, Any]:
    """All requests with the requester's name/email, plus pending count and total."""
    if status is not None:
        status = normalize_status(status)
    with store.unit_of_work() as uow:
        payouts = uow.list_payouts(status=status, limit=limit)
        profiles = get_profiles(uow, (p.user_id for p in payouts))
        pending_count, total_pending = uow.pending_summary()

    items = []
    for p in payouts:
        prof = profiles.get(p.user_id)
        items.append(
            {
                "payout": p,
                "user_name": prof.name if prof else None,
                "user_email": prof.email if prof else None,
            }
        )
    return {
        "items": items,
        "pending_count": pending_count,
        "total_pending": total_pending,
    }


def list_status_history(store, payout_id: UUID) -> list[HistoryView]:
    return history.list_history(store, payout_id)

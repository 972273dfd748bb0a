# app/payouts/auto.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from app.errors import OverPledged, PayoutError
from app.notifications import dispatcher as notify
from app.payouts.model import PENDING
from app.payouts.service import create_payout, notify_after_commit
from app.platform_settings import resolve_auto_payout_policy

logger = logging.getLogger("affiliatehub.auto_payouts")

AUTO_PAYOUT_METHOD = "bank_transfer"

CREATED = "created"
SKIPPED_PENDING_EXISTS = "skipped_pending_exists"
ERROR = "error"


def run_auto_payouts(store, *, dispatcher=None) -> dict[str, Any]:
    """
    Sweep: open a pending bank_transfer request for every eligible affiliate
    whose wallet reached the auto-payout threshold.

    Requests go through create_payout, so no money moves until an admin
    approves them. One user's failure never stops the sweep.
    """
    with store.unit_of_work() as uow:
        policy = resolve_auto_payout_policy(uow)
        if not policy.enabled:
            logger.info("auto payouts disabled; skipping")
            return {"processed": 0, "message": "Auto-payout is disabled", "results": []}
        candidates = uow.list_auto_payout_candidates(policy.threshold)

    if not candidates:
        logger.info("auto payouts: no eligible users threshold=%s", policy.threshold)
        return {"processed": 0, "message": "No eligible users", "results": []}

    logger.info("auto payouts: %s candidate(s) threshold=%s", len(candidates), policy.threshold)

    processed = 0
    results: list[dict[str, Any]] = []

    for profile, wallet in candidates:
        user_id = profile.user_id
        amount = wallet.balance

        details = {
            "auto_generated": True,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "reason": f"Automatic payout - balance exceeded threshold of {policy.threshold}",
        }
        try:
            with store.unit_of_work() as uow:
                existing = uow.list_payouts(user_id=user_id, status=PENDING, limit=1)
            if existing:
                results.append({"user_id": str(user_id), "amount": str(amount), "status": SKIPPED_PENDING_EXISTS})
                continue

            payout = create_payout(
                store,
                user_id=user_id,
                amount=amount,
                payment_method=AUTO_PAYOUT_METHOD,
                payment_details=details,
                min_payout_amount=policy.threshold,
                dispatcher=dispatcher,
            )
        except OverPledged:
            # a pending request appeared between the check and the insert
            results.append({"user_id": str(user_id), "amount": str(amount), "status": SKIPPED_PENDING_EXISTS})
            continue
        except PayoutError as exc:
            logger.warning("auto payout failed user_id=%s code=%s err=%s", user_id, exc.code, exc.message)
            results.append(
                {"user_id": str(user_id), "amount": str(amount), "status": ERROR, "error": exc.code}
            )
            continue

        processed += 1
        results.append(
            {
                "user_id": str(user_id),
                "amount": str(payout.amount),
                "status": CREATED,
                "payout_id": str(payout.id),
            }
        )

        notify_after_commit(
            dispatcher,
            notify.PAYOUT_CREATED,
            {
                "payout_id": str(payout.id),
                "user_name": profile.name,
                "user_email": profile.email,
                "amount": str(payout.amount),
            },
        )

    logger.info("auto payouts complete processed=%s", processed)
    return {"processed": processed, "message": f"Processed {processed} auto-payouts", "results": results}

# routes/admin_payouts.py
from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.payouts import service as payouts
from app.payouts.auto import run_auto_payouts
from deps.admin import require_admin
from deps.auth import CurrentUser
from deps.store import get_dispatcher, get_store
from routes.payouts import history_item
from schemas import (
    AdminPayoutItem,
    AdminPayoutListResponse,
    AutoPayoutRunResponse,
    PayoutStatus,
    PayoutStatusUpdateRequest,
    PayoutStatusUpdateResponse,
    StatusHistoryResponse,
)

logger = logging.getLogger("affiliatehub.payouts")
router = APIRouter(prefix="/v1/admin/payouts", tags=["admin-payouts"])


@router.get("", response_model=AdminPayoutListResponse)
def list_payout_requests(
    status: Optional[PayoutStatus] = None,
    limit: int = Query(default=200, ge=1, le=1000),
    admin: CurrentUser = Depends(require_admin),
    store=Depends(get_store),
):
    overview = payouts.admin_payout_overview(store, status=status, limit=limit)
    return AdminPayoutListResponse(
        items=[
            AdminPayoutItem(**asdict(i["payout"]), user_name=i["user_name"], user_email=i["user_email"])
            for i in overview["items"]
        ],
        pending_count=overview["pending_count"],
        total_pending=overview["total_pending"],
    )


@router.post("/auto-run", response_model=AutoPayoutRunResponse)
def auto_run(
    admin: CurrentUser = Depends(require_admin),
    store=Depends(get_store),
    dispatcher=Depends(get_dispatcher),
):
    logger.info("auto payout sweep requested by admin=%s", admin.user_id)
    return AutoPayoutRunResponse(**run_auto_payouts(store, dispatcher=dispatcher))


@router.post("/{payout_id}/status", response_model=PayoutStatusUpdateResponse)
def update_payout_status(
    payout_id: UUID,
    req: PayoutStatusUpdateRequest,
    admin: CurrentUser = Depends(require_admin),
    store=Depends(get_store),
    dispatcher=Depends(get_dispatcher),
):
    result = payouts.transition(
        store,
        payout_id=payout_id,
        new_status=req.status,
        actor_id=admin.user_id,
        admin_notes=req.admin_notes,
        dispatcher=dispatcher,
    )
    return PayoutStatusUpdateResponse(
        payout_id=result.payout_id,
        status=result.status,
        previous_status=result.previous_status,
        wallet_delta=result.wallet_delta,
        balance_after=result.balance_after,
    )


@router.get("/{payout_id}/history", response_model=StatusHistoryResponse)
def payout_history(
    payout_id: UUID,
    admin: CurrentUser = Depends(require_admin),
    store=Depends(get_store),
):
    payouts.get_payout(store, payout_id)
    views = payouts.list_status_history(store, payout_id)
    return StatusHistoryResponse(payout_id=payout_id, items=[history_item(v) for v in views])

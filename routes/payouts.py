# routes/payouts.py
from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from app.payouts import service as payouts
from app.payouts.model import HistoryView, PayoutRequest
from deps.admin import user_is_admin
from deps.auth import get_current_user, CurrentUser
from deps.store import get_dispatcher, get_store
from schemas import (
    PayoutCreateRequest,
    PayoutListResponse,
    PayoutResponse,
    PayoutStatus,
    StatusHistoryItem,
    StatusHistoryResponse,
)
from services.redaction import mask_payment_details

logger = logging.getLogger("affiliatehub.payouts")
router = APIRouter(prefix="/v1", tags=["payouts"])


def payout_response(p: PayoutRequest, *, mask: bool = False) -> PayoutResponse:
    data = asdict(p)
    if mask:
        data["payment_details"] = mask_payment_details(p.payment_details)
    return PayoutResponse(**data)


def history_item(v: HistoryView) -> StatusHistoryItem:
    return StatusHistoryItem(**asdict(v.entry), changed_by_name=v.changed_by_name)


@router.post("/payouts", response_model=PayoutResponse, status_code=201)
def create_payout_request(
    req: PayoutCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
    dispatcher=Depends(get_dispatcher),
):
    payout = payouts.create_payout(
        store,
        user_id=user.user_id,
        amount=req.amount,
        payment_method=req.payment_method,
        payment_details=req.payment_details,
        dispatcher=dispatcher,
    )
    return payout_response(payout, mask=True)


@router.get("/payouts", response_model=PayoutListResponse)
def list_my_payouts(
    status: Optional[PayoutStatus] = None,
    limit: int = Query(default=50, ge=1, le=200),
    user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    items = payouts.list_payout_requests(store, user_id=user.user_id, status=status, limit=limit)
    return PayoutListResponse(items=[payout_response(p, mask=True) for p in items])


@router.get("/payouts/{payout_id}/history", response_model=StatusHistoryResponse)
def payout_history(
    payout_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    payout = payouts.get_payout(store, payout_id)
    if payout.user_id != user.user_id and not user_is_admin(store, user):
        # don't leak existence of other users' requests
        raise HTTPException(status_code=404, detail="Payout request not found")

    views = payouts.list_status_history(store, payout_id)
    return StatusHistoryResponse(payout_id=payout_id, items=[history_item(v) for v in views])

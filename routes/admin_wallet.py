# routes/admin_wallet.py
from __future__ import annotations

from dataclasses import asdict
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.accounts.directory import get_profiles
from app.wallets import store as wallet_store
from app.wallets.admin import adjust_wallet
from app.wallets.ledger import list_transactions
from deps.admin import require_admin
from deps.auth import CurrentUser
from deps.store import get_store
from schemas import (
    AdminWalletItem,
    AdminWalletListResponse,
    WalletAdjustRequest,
    WalletAdjustResponse,
    WalletBalanceResponse,
    WalletInvariantItem,
    WalletInvariantListResponse,
    WalletOpenRequest,
    WalletTransactionItem,
    WalletTransactionListResponse,
)
from services.ledger_invariants import list_wallet_invariants

router = APIRouter(prefix="/v1/admin", tags=["admin-wallets"])


@router.get("/wallets", response_model=AdminWalletListResponse)
def list_wallets(admin: CurrentUser = Depends(require_admin), store=Depends(get_store)):
    with store.unit_of_work() as uow:
        wallets = uow.list_wallets()
        profiles = get_profiles(uow, (w.user_id for w in wallets))

    items = []
    for w in wallets:
        prof = profiles.get(w.user_id)
        items.append(
            AdminWalletItem(
                **asdict(w),
                name=prof.name if prof else None,
                email=prof.email if prof else None,
            )
        )
    return AdminWalletListResponse(wallets=items)


@router.get("/wallets/transactions", response_model=WalletTransactionListResponse)
def list_wallet_transactions(
    user_id: Optional[UUID] = None,
    payout_id: Optional[UUID] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    admin: CurrentUser = Depends(require_admin),
    store=Depends(get_store),
):
    rows = list_transactions(store, user_id=user_id, payout_id=payout_id, limit=limit)
    return WalletTransactionListResponse(items=[WalletTransactionItem(**asdict(t)) for t in rows])


@router.post("/wallets/{user_id}", response_model=WalletBalanceResponse, status_code=201)
def open_wallet(
    user_id: UUID,
    req: WalletOpenRequest,
    admin: CurrentUser = Depends(require_admin),
    store=Depends(get_store),
):
    wallet_store.open_wallet(store, user_id, req.opening_balance)
    return WalletBalanceResponse(**wallet_store.get_wallet_balance(store, user_id))


@router.post("/wallets/{user_id}/adjust", response_model=WalletAdjustResponse)
def adjust(
    user_id: UUID,
    req: WalletAdjustRequest,
    admin: CurrentUser = Depends(require_admin),
    store=Depends(get_store),
):
    out = adjust_wallet(
        store,
        user_id=user_id,
        amount=req.amount,
        direction=req.direction,
        description=req.description,
        actor_id=admin.user_id,
    )
    return WalletAdjustResponse(
        user_id=out["user_id"],
        balance=out["balance"],
        transaction=WalletTransactionItem(**asdict(out["transaction"])),
    )


@router.get("/ledger/invariants", response_model=WalletInvariantListResponse)
def ledger_invariants(admin: CurrentUser = Depends(require_admin), store=Depends(get_store)):
    items = list_wallet_invariants(store)
    return WalletInvariantListResponse(
        ok=all(i["ok"] for i in items),
        items=[WalletInvariantItem(**i) for i in items],
    )

# routes/wallet.py
from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from app.payouts import service as payouts
from deps.auth import get_current_user, CurrentUser
from deps.store import get_store
from schemas import (
    WalletBalanceResponse,
    WalletTransactionItem,
    WalletTransactionListResponse,
)

router = APIRouter(prefix="/v1/wallet", tags=["wallets"])


@router.get("/balance", response_model=WalletBalanceResponse)
def my_wallet_balance(user: CurrentUser = Depends(get_current_user), store=Depends(get_store)):
    return WalletBalanceResponse(**payouts.get_wallet_balance(store, user.user_id))


@router.get("/transactions", response_model=WalletTransactionListResponse)
def my_wallet_transactions(
    limit: int = Query(default=50, ge=1, le=500),
    user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    rows = payouts.list_transactions(store, user_id=user.user_id, limit=limit)
    return WalletTransactionListResponse(items=[WalletTransactionItem(**asdict(t)) for t in rows])

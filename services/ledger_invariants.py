from __future__ import annotations

from typing import Any
from uuid import UUID

from app.errors import NotFound
from app.money import to_money


def check_wallet(uow, user_id: UUID) -> dict[str, Any]:
    wallet = uow.get_wallet(user_id)
    if wallet is None:
        raise NotFound("Wallet not found", user_id=user_id)

    ledger_sum = to_money(uow.sum_transactions(user_id))
    expected = wallet.opening_balance + ledger_sum
    diff = wallet.balance - expected

    return {
        "user_id": user_id,
        "balance": wallet.balance,
        "opening_balance": wallet.opening_balance,
        "ledger_sum": ledger_sum,
        "diff": diff,
        "ok": diff == 0,
    }


def assert_wallet_balance_matches_ledger(store, user_id: UUID) -> dict[str, Any]:
    with store.unit_of_work() as uow:
        return check_wallet(uow, user_id)


def list_wallet_invariants(store) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    with store.unit_of_work() as uow:
        for wallet in uow.list_wallets():
            items.append(check_wallet(uow, wallet.user_id))
    return items

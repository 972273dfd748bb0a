# app/payouts/memory.py
from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Iterator, Optional
from uuid import UUID

from app.accounts.model import Profile, ROLE_USER
from app.errors import NotFound, TransientStoreError, ValidationError
from app.money import ZERO
from app.payouts.model import PENDING, PayoutRequest, StatusHistoryEntry
from app.wallets.model import Wallet, WalletTransaction


def _detached(p: PayoutRequest) -> PayoutRequest:
    # callers never share the stored payment_details dict
    return replace(p, payment_details=dict(p.payment_details))


class _RowLock:
    __slots__ = ("lock", "refs")

    def __init__(self):
        self.lock = threading.RLock()
        self.refs = 0  # holders plus waiters


class MemoryStore:
    """
    Process-local store with the same unit-of-work contract as the Postgres
    repository (app/payouts/repository.py).

    Row locks are per (table, key) RLocks held until the unit of work ends, so
    two units touching the same wallet serialize while different wallets never
    contend. Writes go straight to the tables and are undone on rollback.
    """

    backend = "memory"

    def __init__(self, *, lock_timeout_s: float = 5.0):
        self.lock_timeout_s = lock_timeout_s
        self._data = threading.RLock()
        self._registry = threading.Lock()
        self._row_locks: dict[tuple[str, UUID], _RowLock] = {}

        self.wallets: dict[UUID, Wallet] = {}
        self.payouts: dict[UUID, PayoutRequest] = {}
        self.transactions: list[WalletTransaction] = []
        self.history: list[StatusHistoryEntry] = []
        self.profiles: dict[UUID, Profile] = {}
        self.platform_settings: dict[str, str] = {}

    def _checkout_lock(self, table: str, key: UUID) -> _RowLock:
        with self._registry:
            entry = self._row_locks.get((table, key))
            if entry is None:
                entry = _RowLock()
                self._row_locks[(table, key)] = entry
            entry.refs += 1
            return entry

    def _return_lock(self, table: str, key: UUID, entry: _RowLock) -> None:
        # drop the entry once nobody holds or waits on it
        with self._registry:
            entry.refs -= 1
            if entry.refs == 0 and self._row_locks.get((table, key)) is entry:
                del self._row_locks[(table, key)]

    @contextmanager
    def unit_of_work(self) -> Iterator["MemoryUnitOfWork"]:
        uow = MemoryUnitOfWork(self)
        try:
            yield uow
        except BaseException:
            uow._rollback()
            raise
        finally:
            uow._release()

    def ping(self) -> bool:
        return True

    # -----------------------
    # Seeding (account directory / settings are owned elsewhere in production)
    # -----------------------
    def add_profile(
        self,
        user_id: UUID,
        *,
        name: str | None = None,
        email: str | None = None,
        role: str = ROLE_USER,
        user_status: str = "approved",
        kyc_status: str | None = None,
    ) -> Profile:
        profile = Profile(
            user_id=user_id,
            name=name,
            email=email,
            role=role,
            user_status=user_status,
            kyc_status=kyc_status,
        )
        with self._data:
            self.profiles[user_id] = profile
        return profile

    def set_platform_setting(self, key: str, value: str) -> None:
        with self._data:
            self.platform_settings[key] = str(value)


class MemoryUnitOfWork:
    def __init__(self, store: MemoryStore):
        self._store = store
        self._undo: list[Callable[[], None]] = []
        self._held: list[tuple[str, UUID, _RowLock]] = []

    # -----------------------
    # Transaction plumbing
    # -----------------------
    def _lock(self, table: str, key: UUID) -> None:
        entry = self._store._checkout_lock(table, key)
        if not entry.lock.acquire(timeout=self._store.lock_timeout_s):
            self._store._return_lock(table, key, entry)
            raise TransientStoreError("Timed out waiting for row lock", table=table, key=key)
        self._held.append((table, key, entry))

    def _release(self) -> None:
        while self._held:
            table, key, entry = self._held.pop()
            entry.lock.release()
            self._store._return_lock(table, key, entry)

    def _rollback(self, mark: int = 0) -> None:
        with self._store._data:
            while len(self._undo) > mark:
                self._undo.pop()()

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        mark = len(self._undo)
        try:
            yield
        except BaseException:
            self._rollback(mark)
            raise

    # -----------------------
    # Wallets
    # -----------------------
    def get_wallet(self, user_id: UUID, *, for_update: bool = False) -> Optional[Wallet]:
        if for_update:
            self._lock("wallets", user_id)
        with self._store._data:
            return self._store.wallets.get(user_id)

    def insert_wallet(self, wallet: Wallet) -> None:
        wallets = self._store.wallets
        with self._store._data:
            if wallet.user_id in wallets:
                raise ValidationError("Wallet already exists", user_id=wallet.user_id)
            wallets[wallet.user_id] = wallet
            self._undo.append(lambda: wallets.pop(wallet.user_id, None))

    def set_wallet_balance(self, user_id: UUID, balance: Decimal, updated_at: datetime) -> Wallet:
        wallets = self._store.wallets
        with self._store._data:
            prev = wallets.get(user_id)
            if prev is None:
                raise NotFound("Wallet not found", user_id=user_id)
            wallets[user_id] = replace(prev, balance=balance, updated_at=updated_at)
            self._undo.append(lambda: wallets.__setitem__(user_id, prev))
            return wallets[user_id]

    def list_wallets(self) -> list[Wallet]:
        with self._store._data:
            return sorted(self._store.wallets.values(), key=lambda w: w.balance, reverse=True)

    # -----------------------
    # Ledger
    # -----------------------
    def insert_transaction(self, tx: WalletTransaction) -> None:
        txs = self._store.transactions
        with self._store._data:
            txs.append(tx)
            self._undo.append(lambda: txs.remove(tx))

    def list_transactions(
        self,
        *,
        user_id: UUID | None = None,
        payout_id: UUID | None = None,
        limit: int = 100,
    ) -> list[WalletTransaction]:
        with self._store._data:
            rows = [
                t
                for t in reversed(self._store.transactions)
                if (user_id is None or t.user_id == user_id)
                and (payout_id is None or t.payout_id == payout_id)
            ]
        return rows[:limit]

    def sum_transactions(self, user_id: UUID) -> Decimal:
        with self._store._data:
            return sum((t.amount for t in self._store.transactions if t.user_id == user_id), ZERO)

    # -----------------------
    # Payout requests
    # -----------------------
    def insert_payout(self, payout: PayoutRequest) -> None:
        payouts = self._store.payouts
        with self._store._data:
            payouts[payout.id] = _detached(payout)
            self._undo.append(lambda: payouts.pop(payout.id, None))

    def get_payout(self, payout_id: UUID, *, for_update: bool = False) -> Optional[PayoutRequest]:
        if for_update:
            self._lock("payout_requests", payout_id)
        with self._store._data:
            p = self._store.payouts.get(payout_id)
        return _detached(p) if p is not None else None

    def update_payout_status(
        self,
        payout_id: UUID,
        *,
        status: str,
        admin_notes: str | None,
        processed_at: datetime | None,
        processed_by: UUID | None,
        updated_at: datetime,
    ) -> PayoutRequest:
        payouts = self._store.payouts
        with self._store._data:
            prev = payouts.get(payout_id)
            if prev is None:
                raise NotFound("Payout request not found", payout_id=payout_id)
            payouts[payout_id] = replace(
                prev,
                status=status,
                admin_notes=admin_notes,
                processed_at=processed_at,
                processed_by=processed_by,
                updated_at=updated_at,
            )
            self._undo.append(lambda: payouts.__setitem__(payout_id, prev))
            return _detached(payouts[payout_id])

    def list_payouts(
        self,
        *,
        user_id: UUID | None = None,
        status: str | None = None,
        limit: int = 200,
    ) -> list[PayoutRequest]:
        with self._store._data:
            rows = [
                _detached(p)
                for p in reversed(list(self._store.payouts.values()))
                if (user_id is None or p.user_id == user_id)
                and (status is None or p.status == status)
            ]
        return rows[:limit]

    def sum_pending(self, user_id: UUID) -> Decimal:
        with self._store._data:
            return sum(
                (p.amount for p in self._store.payouts.values() if p.user_id == user_id and p.status == PENDING),
                ZERO,
            )

    def pending_summary(self) -> tuple[int, Decimal]:
        with self._store._data:
            pending = [p.amount for p in self._store.payouts.values() if p.status == PENDING]
        return len(pending), sum(pending, ZERO)

    # -----------------------
    # Status history
    # -----------------------
    def insert_history(self, entry: StatusHistoryEntry) -> None:
        history = self._store.history
        with self._store._data:
            history.append(entry)
            self._undo.append(lambda: history.remove(entry))

    def list_history(self, payout_id: UUID) -> list[StatusHistoryEntry]:
        with self._store._data:
            return [h for h in reversed(self._store.history) if h.payout_id == payout_id]

    # -----------------------
    # Account directory / platform settings (read-only here)
    # -----------------------
    def get_profiles(self, user_ids: Iterable[UUID]) -> dict[UUID, Profile]:
        wanted = set(user_ids)
        with self._store._data:
            return {uid: p for uid, p in self._store.profiles.items() if uid in wanted}

    def list_auto_payout_candidates(self, threshold: Decimal) -> list[tuple[Profile, Wallet]]:
        with self._store._data:
            out = []
            for uid, profile in self._store.profiles.items():
                wallet = self._store.wallets.get(uid)
                if wallet is None or wallet.balance < threshold:
                    continue
                if profile.kyc_status != "approved" or profile.user_status != "approved":
                    continue
                out.append((profile, wallet))
        return out

    def get_platform_setting(self, key: str) -> Optional[str]:
        with self._store._data:
            return self._store.platform_settings.get(key)

# app/payouts/repository.py
from __future__ import annotations

import json
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Iterable, Iterator, Optional
from uuid import UUID, uuid4

from psycopg2.extras import Json

from app.accounts.model import Profile
from app.errors import NotFound
from app.money import ZERO
from app.payouts.model import PENDING, PayoutRequest, StatusHistoryEntry
from app.wallets.model import Wallet, WalletTransaction
from db_exec import db_execute, db_fetchall, db_fetchone
from services.db_errors import raise_for_db_error

_PAYOUT_COLS = """
  id, user_id, amount, payment_method, payment_details, status,
  admin_notes, created_at, updated_at, processed_at, processed_by
"""

_TX_COLS = "id, user_id, amount, type, description, payout_id, order_id, created_at"

_HISTORY_COLS = "id, payout_id, old_status, new_status, changed_by, notes, created_at"


def _adapt_json(value: Any):
    """
    psycopg2 can't adapt dict -> use psycopg2.extras.Json
    """
    return Json(value or {}, dumps=lambda v: json.dumps(v, default=str))


def _as_uuid(value) -> Optional[UUID]:
    if value is None:
        return None
    return value if isinstance(value, UUID) else UUID(str(value))


def _wallet(row: dict) -> Wallet:
    return Wallet(
        user_id=_as_uuid(row["user_id"]),
        balance=Decimal(row["balance"]),
        opening_balance=Decimal(row["opening_balance"]),
        updated_at=row["updated_at"],
    )


def _payout(row: dict) -> PayoutRequest:
    details = row.get("payment_details")
    if details is not None and not isinstance(details, dict):
        details = {"raw": details}
    return PayoutRequest(
        id=_as_uuid(row["id"]),
        user_id=_as_uuid(row["user_id"]),
        amount=Decimal(row["amount"]),
        payment_method=str(row["payment_method"]),
        payment_details=details or {},
        status=str(row["status"]),
        admin_notes=row.get("admin_notes"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        processed_at=row.get("processed_at"),
        processed_by=_as_uuid(row.get("processed_by")),
    )


def _transaction(row: dict) -> WalletTransaction:
    return WalletTransaction(
        id=_as_uuid(row["id"]),
        user_id=_as_uuid(row["user_id"]),
        amount=Decimal(row["amount"]),
        type=str(row["type"]),
        description=row.get("description"),
        created_at=row["created_at"],
        payout_id=_as_uuid(row.get("payout_id")),
        order_id=_as_uuid(row.get("order_id")),
    )


def _history(row: dict) -> StatusHistoryEntry:
    return StatusHistoryEntry(
        id=_as_uuid(row["id"]),
        payout_id=_as_uuid(row["payout_id"]),
        old_status=row.get("old_status"),
        new_status=str(row["new_status"]),
        changed_by=_as_uuid(row.get("changed_by")),
        notes=row.get("notes"),
        created_at=row["created_at"],
    )


def _profile(row: dict) -> Profile:
    return Profile(
        user_id=_as_uuid(row["user_id"]),
        name=row.get("name"),
        email=row.get("email"),
        role=(row.get("role") or "user").strip().lower(),
        user_status=(row.get("user_status") or "pending").strip().lower(),
        kyc_status=row.get("kyc_status"),
    )


class PostgresStore:
    """Unit-of-work factory over the psycopg2 pool in db.py."""

    backend = "postgres"

    @contextmanager
    def unit_of_work(self) -> Iterator["PgUnitOfWork"]:
        # imported here so the memory backend never needs a DATABASE_URL
        from db import get_conn

        try:
            with get_conn() as conn:
                yield PgUnitOfWork(conn)
        except Exception as e:
            raise_for_db_error(e)
            raise

    def ping(self) -> bool:
        with self.unit_of_work() as uow:
            return db_fetchone(uow.conn, "SELECT 1 AS ok;") is not None


class PgUnitOfWork:
    def __init__(self, conn):
        self.conn = conn

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        name = f"sp_{uuid4().hex[:12]}"
        db_execute(self.conn, f"SAVEPOINT {name};")
        try:
            yield
        except BaseException:
            db_execute(self.conn, f"ROLLBACK TO SAVEPOINT {name};")
            raise
        else:
            db_execute(self.conn, f"RELEASE SAVEPOINT {name};")

    # ==========================================================
    # Wallets
    # ==========================================================

    def get_wallet(self, user_id: UUID, *, for_update: bool = False) -> Optional[Wallet]:
        lock = "FOR UPDATE" if for_update else ""
        row = db_fetchone(
            self.conn,
            f"""
            SELECT user_id, balance, opening_balance, updated_at
            FROM app.wallets
            WHERE user_id = %s::uuid
            {lock}
            """,
            (str(user_id),),
        )
        return _wallet(row) if row else None

    def insert_wallet(self, wallet: Wallet) -> None:
        db_execute(
            self.conn,
            """
            INSERT INTO app.wallets (user_id, balance, opening_balance, updated_at)
            VALUES (%s::uuid, %s, %s, %s)
            """,
            (str(wallet.user_id), wallet.balance, wallet.opening_balance, wallet.updated_at),
        )

    def set_wallet_balance(self, user_id: UUID, balance: Decimal, updated_at) -> Wallet:
        row = db_fetchone(
            self.conn,
            """
            UPDATE app.wallets
            SET balance = %s, updated_at = %s
            WHERE user_id = %s::uuid
            RETURNING user_id, balance, opening_balance, updated_at
            """,
            (balance, updated_at, str(user_id)),
        )
        if not row:
            raise NotFound("Wallet not found", user_id=user_id)
        return _wallet(row)

    def list_wallets(self) -> list[Wallet]:
        rows = db_fetchall(
            self.conn,
            """
            SELECT user_id, balance, opening_balance, updated_at
            FROM app.wallets
            ORDER BY balance DESC, user_id
            """,
        )
        return [_wallet(r) for r in rows]

    # ==========================================================
    # Ledger
    # ==========================================================

    def insert_transaction(self, tx: WalletTransaction) -> None:
        db_execute(
            self.conn,
            """
            INSERT INTO app.wallet_transactions (
              id, user_id, amount, type, description, payout_id, order_id, created_at
            )
            VALUES (%s::uuid, %s::uuid, %s, %s, %s, %s::uuid, %s::uuid, %s)
            """,
            (
                str(tx.id),
                str(tx.user_id),
                tx.amount,
                tx.type,
                tx.description,
                str(tx.payout_id) if tx.payout_id else None,
                str(tx.order_id) if tx.order_id else None,
                tx.created_at,
            ),
        )

    def list_transactions(
        self,
        *,
        user_id: UUID | None = None,
        payout_id: UUID | None = None,
        limit: int = 100,
    ) -> list[WalletTransaction]:
        rows = db_fetchall(
            self.conn,
            f"""
            SELECT {_TX_COLS}
            FROM app.wallet_transactions
            WHERE (%s::uuid IS NULL OR user_id = %s::uuid)
              AND (%s::uuid IS NULL OR payout_id = %s::uuid)
            ORDER BY created_at DESC, seq DESC
            LIMIT %s
            """,
            (
                str(user_id) if user_id else None,
                str(user_id) if user_id else None,
                str(payout_id) if payout_id else None,
                str(payout_id) if payout_id else None,
                int(limit),
            ),
        )
        return [_transaction(r) for r in rows]

    def sum_transactions(self, user_id: UUID) -> Decimal:
        row = db_fetchone(
            self.conn,
            "SELECT COALESCE(SUM(amount), 0) AS total FROM app.wallet_transactions WHERE user_id = %s::uuid",
            (str(user_id),),
        )
        return Decimal(row["total"]) if row else ZERO

    # ==========================================================
    # Payout requests
    # ==========================================================

    def insert_payout(self, payout: PayoutRequest) -> None:
        db_execute(
            self.conn,
            """
            INSERT INTO app.payout_requests (
              id, user_id, amount, payment_method, payment_details, status,
              admin_notes, created_at, updated_at, processed_at, processed_by
            )
            VALUES (%s::uuid, %s::uuid, %s, %s, %s::jsonb, %s, %s, %s, %s, %s, %s::uuid)
            """,
            (
                str(payout.id),
                str(payout.user_id),
                payout.amount,
                payout.payment_method,
                _adapt_json(payout.payment_details),
                payout.status,
                payout.admin_notes,
                payout.created_at,
                payout.updated_at,
                payout.processed_at,
                str(payout.processed_by) if payout.processed_by else None,
            ),
        )

    def get_payout(self, payout_id: UUID, *, for_update: bool = False) -> Optional[PayoutRequest]:
        lock = "FOR UPDATE" if for_update else ""
        row = db_fetchone(
            self.conn,
            f"""
            SELECT {_PAYOUT_COLS}
            FROM app.payout_requests
            WHERE id = %s::uuid
            {lock}
            """,
            (str(payout_id),),
        )
        return _payout(row) if row else None

    def update_payout_status(
        self,
        payout_id: UUID,
        *,
        status: str,
        admin_notes: str | None,
        processed_at,
        processed_by: UUID | None,
        updated_at,
    ) -> PayoutRequest:
        row = db_fetchone(
            self.conn,
            f"""
            UPDATE app.payout_requests
            SET
              status = %s,
              admin_notes = %s,
              processed_at = %s,
              processed_by = %s::uuid,
              updated_at = %s
            WHERE id = %s::uuid
            RETURNING {_PAYOUT_COLS}
            """,
            (
                status,
                admin_notes,
                processed_at,
                str(processed_by) if processed_by else None,
                updated_at,
                str(payout_id),
            ),
        )
        if not row:
            raise NotFound("Payout request not found", payout_id=payout_id)
        return _payout(row)

    def list_payouts(
        self,
        *,
        user_id: UUID | None = None,
        status: str | None = None,
        limit: int = 200,
    ) -> list[PayoutRequest]:
        rows = db_fetchall(
            self.conn,
            f"""
            SELECT {_PAYOUT_COLS}
            FROM app.payout_requests
            WHERE (%s::uuid IS NULL OR user_id = %s::uuid)
              AND (%s::text IS NULL OR status = %s::text)
            ORDER BY created_at DESC, id DESC
            LIMIT %s
            """,
            (
                str(user_id) if user_id else None,
                str(user_id) if user_id else None,
                status,
                status,
                int(limit),
            ),
        )
        return [_payout(r) for r in rows]

    def sum_pending(self, user_id: UUID) -> Decimal:
        row = db_fetchone(
            self.conn,
            """
            SELECT COALESCE(SUM(amount), 0) AS total
            FROM app.payout_requests
            WHERE user_id = %s::uuid
              AND status = %s
            """,
            (str(user_id), PENDING),
        )
        return Decimal(row["total"]) if row else ZERO

    def pending_summary(self) -> tuple[int, Decimal]:
        row = db_fetchone(
            self.conn,
            """
            SELECT COUNT(*) AS n, COALESCE(SUM(amount), 0) AS total
            FROM app.payout_requests
            WHERE status = %s
            """,
            (PENDING,),
        )
        if not row:
            return 0, ZERO
        return int(row["n"]), Decimal(row["total"])

    # ==========================================================
    # Status history
    # ==========================================================

    def insert_history(self, entry: StatusHistoryEntry) -> None:
        db_execute(
            self.conn,
            """
            INSERT INTO app.payout_status_history (
              id, payout_id, old_status, new_status, changed_by, notes, created_at
            )
            VALUES (%s::uuid, %s::uuid, %s, %s, %s::uuid, %s, %s)
            """,
            (
                str(entry.id),
                str(entry.payout_id),
                entry.old_status,
                entry.new_status,
                str(entry.changed_by) if entry.changed_by else None,
                entry.notes,
                entry.created_at,
            ),
        )

    def list_history(self, payout_id: UUID) -> list[StatusHistoryEntry]:
        rows = db_fetchall(
            self.conn,
            f"""
            SELECT {_HISTORY_COLS}
            FROM app.payout_status_history
            WHERE payout_id = %s::uuid
            ORDER BY created_at DESC, seq DESC
            """,
            (str(payout_id),),
        )
        return [_history(r) for r in rows]

    # ==========================================================
    # Account directory / platform settings
    # ==========================================================

    def get_profiles(self, user_ids: Iterable[UUID]) -> dict[UUID, Profile]:
        ids = [str(u) for u in set(user_ids)]
        if not ids:
            return {}
        rows = db_fetchall(
            self.conn,
            """
            SELECT user_id, name, email, role, user_status, kyc_status
            FROM app.profiles
            WHERE user_id = ANY(%s::uuid[])
            """,
            (ids,),
        )
        return {p.user_id: p for p in (_profile(r) for r in rows)}

    def list_auto_payout_candidates(self, threshold: Decimal) -> list[tuple[Profile, Wallet]]:
        rows = db_fetchall(
            self.conn,
            """
            SELECT
              p.user_id, p.name, p.email, p.role, p.user_status, p.kyc_status,
              w.balance, w.opening_balance, w.updated_at
            FROM app.profiles p
            JOIN app.wallets w ON w.user_id = p.user_id
            WHERE p.kyc_status = 'approved'
              AND p.user_status = 'approved'
              AND w.balance >= %s
            ORDER BY w.balance DESC
            """,
            (threshold,),
        )
        return [(_profile(r), _wallet(r)) for r in rows]

    def get_platform_setting(self, key: str) -> Optional[str]:
        row = db_fetchone(
            self.conn,
            "SELECT value FROM app.platform_settings WHERE key = %s",
            (key,),
        )
        return None if row is None else row["value"]

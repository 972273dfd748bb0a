# services/db_errors.py
from __future__ import annotations

import re

import psycopg2
import psycopg2.pool

from app.errors import (
    BelowMinimum,
    InsufficientFunds,
    NotFound,
    OverPledged,
    PayoutError,
    TransientStoreError,
    ValidationError,
)

# codes raised by triggers as "DB_ERROR: CODE" -> typed engine error
DB_ERROR_MAP: dict[str, tuple[type[PayoutError], str]] = {
    "WALLET_NOT_FOUND": (NotFound, "Wallet not found"),
    "PAYOUT_NOT_FOUND": (NotFound, "Payout request not found"),
    "INSUFFICIENT_FUNDS": (InsufficientFunds, "Insufficient wallet balance"),
    "INVALID_AMOUNT": (ValidationError, "Invalid amount"),
    "WALLET_EXISTS": (ValidationError, "Wallet already exists"),
    "LEDGER_APPEND_ONLY": (ValidationError, "Wallet transactions are append-only"),
    "HISTORY_APPEND_ONLY": (ValidationError, "Payout status history is append-only"),
    "PAYOUT_AMOUNT_IMMUTABLE": (ValidationError, "Payout amount cannot change"),
}

# constraint names from the schema migration
CONSTRAINT_CODES: dict[str, str] = {
    "wallets_balance_nonnegative": "INSUFFICIENT_FUNDS",
    "wallets_pkey": "WALLET_EXISTS",
    "payout_requests_amount_positive": "INVALID_AMOUNT",
    "wallet_transactions_user_fk": "WALLET_NOT_FOUND",
    "payout_requests_user_fk": "WALLET_NOT_FOUND",
    "payout_status_history_payout_fk": "PAYOUT_NOT_FOUND",
}

ERROR_HTTP_MAP: dict[str, int] = {
    NotFound.code: 404,
    InsufficientFunds.code: 409,
    OverPledged.code: 409,
    BelowMinimum.code: 422,
    ValidationError.code: 422,
    TransientStoreError.code: 503,
}

# word-boundary match (avoids substring mistakes)
_DB_ERROR_PATTERN = re.compile(r"\b(" + "|".join(map(re.escape, DB_ERROR_MAP.keys())) + r")\b")


def _extract_code_from_text(text: str) -> str | None:
    if not text:
        return None

    # Preferred format: "DB_ERROR: CODE"
    if "DB_ERROR:" in text:
        tail = text.split("DB_ERROR:", 1)[1].strip()
        m = _DB_ERROR_PATTERN.search(tail)
        if m:
            return m.group(1)
        first = tail.split()[0].strip(":").strip() if tail.split() else ""
        return first or None

    m = _DB_ERROR_PATTERN.search(text)
    if m:
        return m.group(1)

    return None


def _extract_code(exc: Exception) -> str | None:
    """
    Extract DB error code from:
    - psycopg2 diagnostics (constraint name, message_primary / message_detail)
    - str(exc)
    """
    diag = getattr(exc, "diag", None)
    if diag is not None:
        constraint = getattr(diag, "constraint_name", None)
        if constraint and constraint in CONSTRAINT_CODES:
            return CONSTRAINT_CODES[constraint]
        for attr in ("message_primary", "message_detail", "message_hint", "context"):
            val = getattr(diag, attr, None)
            if isinstance(val, str) and val:
                code = _extract_code_from_text(val)
                if code:
                    return code

    return _extract_code_from_text(str(exc))


def translate_db_error(exc: Exception) -> Exception:
    """
    Map a driver exception onto the engine's error taxonomy.
    Unknown errors are returned unchanged so callers fail closed with them.
    """
    if isinstance(exc, PayoutError):
        return exc

    code = _extract_code(exc)
    if code and code in DB_ERROR_MAP:
        cls, message = DB_ERROR_MAP[code]
        return cls(message, db_code=code)

    if isinstance(exc, (psycopg2.OperationalError, psycopg2.InterfaceError, psycopg2.pool.PoolError)):
        return TransientStoreError(f"Storage unavailable: {type(exc).__name__}")

    return exc


def raise_for_db_error(exc: Exception) -> None:
    err = translate_db_error(exc)
    if err is exc:
        raise exc
    raise err from exc


def http_status_for(exc: PayoutError) -> int:
    return ERROR_HTTP_MAP.get(exc.code, 400)

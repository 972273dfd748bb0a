from __future__ import annotations

import logging
import os

from fastapi import APIRouter, Depends

from deps.store import get_store

logger = logging.getLogger("affiliatehub.health")
router = APIRouter(tags=["health"])

MIGRATION_REVISION = "0001_payout_wallet_schema"


def _check_store(store) -> tuple[bool, str | None]:
    try:
        return bool(store.ping()), None
    except Exception as exc:
        logger.warning("store ping failed: %s", exc)
        return False, f"{type(exc).__name__}: {exc}"


def _check_migrations(store) -> bool:
    if store.backend != "postgres":
        return True
    try:
        from db import get_conn

        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT to_regclass('public.alembic_version');")
                if not cur.fetchone()[0]:
                    return False
                cur.execute("SELECT version_num FROM alembic_version LIMIT 1;")
                row = cur.fetchone()
                return bool(row and row[0])
    except Exception:
        return False


def _resolve_env() -> str:
    return (os.getenv("ENVIRONMENT") or os.getenv("ENV") or "").strip()


def _resolve_git_sha() -> str | None:
    return (os.getenv("GIT_SHA") or "").strip() or None


@router.get("/health")
def health():
    return {
        "ok": True,
        "env": _resolve_env(),
        "git_sha": _resolve_git_sha(),
    }


@router.get("/readyz")
def readyz(store=Depends(get_store)):
    store_ok, store_error = _check_store(store)
    migrations_ok = _check_migrations(store)
    return {
        "ready": bool(store_ok and migrations_ok),
        "version": os.getenv("APP_VERSION", "1.0.0"),
        "backend": store.backend,
        "store_ok": store_ok,
        "store_error": store_error,
        "migrations_ok": migrations_ok,
        "migration_revision": MIGRATION_REVISION,
    }

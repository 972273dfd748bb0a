# app/storage.py
from __future__ import annotations

import logging
from threading import Lock

from settings import settings

logger = logging.getLogger("affiliatehub.store")

_store = None
_lock = Lock()


def build_store(backend: str | None = None):
    name = (backend or settings.STORE_BACKEND or "postgres").strip().lower()
    if name == "memory":
        from app.payouts.memory import MemoryStore

        return MemoryStore(lock_timeout_s=settings.LOCK_TIMEOUT_S)
    if name == "postgres":
        from app.payouts.repository import PostgresStore

        return PostgresStore()
    raise RuntimeError(f"Unknown STORE_BACKEND: {name}")


def get_store():
    global _store
    with _lock:
        if _store is None:
            _store = build_store()
            logger.info("store initialised backend=%s", _store.backend)
        return _store


def set_store(store) -> None:
    global _store
    with _lock:
        _store = store

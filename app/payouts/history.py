# app/payouts/history.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from app.accounts.directory import actor_name, get_profiles
from app.payouts.model import HistoryView, StatusHistoryEntry
from services.metrics import increment_history_write_failure

logger = logging.getLogger("affiliatehub.payouts")


def append(
    uow,
    *,
    payout_id: UUID,
    old_status: Optional[str],
    new_status: str,
    changed_by: Optional[UUID],
    notes: Optional[str] = None,
) -> Optional[StatusHistoryEntry]:
    """
    Best-effort audit row for a status change.

    Runs inside a savepoint of the caller's unit of work: when it succeeds it
    commits with the transition, when it fails only the savepoint is rolled
    back and the transition carries on. Failures are logged and counted.
    """
    entry = StatusHistoryEntry(
        id=uuid4(),
        payout_id=payout_id,
        old_status=old_status,
        new_status=new_status,
        changed_by=changed_by,
        notes=notes,
        created_at=datetime.now(timezone.utc),
    )
    try:
        with uow.savepoint():
            uow.insert_history(entry)
    except Exception:
        increment_history_write_failure()
        logger.exception(
            "payout history write failed payout_id=%s old=%s new=%s",
            payout_id,
            old_status,
            new_status,
        )
        return None
    return entry


def list_history(store, payout_id: UUID) -> list[HistoryView]:
    with store.unit_of_work() as uow:
        entries = uow.list_history(payout_id)
        profiles = get_profiles(uow, (e.changed_by for e in entries))

    return [HistoryView(entry=e, changed_by_name=actor_name(profiles, e.changed_by)) for e in entries]

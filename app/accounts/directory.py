# app/accounts/directory.py
from __future__ import annotations

from typing import Iterable, Optional
from uuid import UUID

from app.accounts.model import Profile, ROLE_ADMIN

SYSTEM_ACTOR_NAME = "System"
UNKNOWN_ADMIN_NAME = "Admin"


def get_profile(uow, user_id: UUID) -> Optional[Profile]:
    return uow.get_profiles([user_id]).get(user_id)


def get_profiles(uow, user_ids: Iterable[Optional[UUID]]) -> dict[UUID, Profile]:
    ids = {u for u in user_ids if u is not None}
    if not ids:
        return {}
    return uow.get_profiles(ids)


def actor_name(profiles: dict[UUID, Profile], actor_id: Optional[UUID]) -> str:
    if actor_id is None:
        return SYSTEM_ACTOR_NAME
    profile = profiles.get(actor_id)
    return (profile.name if profile and profile.name else None) or UNKNOWN_ADMIN_NAME


def is_admin(uow, user_id: UUID) -> bool:
    profile = get_profile(uow, user_id)
    return bool(profile and (profile.role or "").strip().lower() == ROLE_ADMIN)

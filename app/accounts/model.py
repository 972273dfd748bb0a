from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
from uuid import UUID


ROLE_ADMIN = "admin"
ROLE_USER = "user"


@dataclass(frozen=True)
class Profile:
    user_id: UUID
    name: Optional[str]
    email: Optional[str]
    role: str = ROLE_USER
    user_status: str = "approved"
    kyc_status: Optional[str] = None

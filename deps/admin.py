# deps/admin.py
from fastapi import Depends, HTTPException, status

from app.accounts.directory import is_admin
from deps.auth import get_current_user, CurrentUser
from deps.store import get_store


def user_is_admin(store, user: CurrentUser) -> bool:
    with store.unit_of_work() as uow:
        return is_admin(uow, user.user_id)


def require_admin(
    user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
) -> CurrentUser:
    if not user_is_admin(store, user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="ADMIN_REQUIRED",
        )
    return user

from fastapi import Depends, HTTPException, status

from schoolfees.auth.dependencies import get_current_user
from schoolfees.auth.roles import ADMIN_ROLES
from schoolfees.auth.schemas import CurrentUser


def has_permission(user: CurrentUser, module: str, action: str) -> bool:
    if user.role in ADMIN_ROLES:
        return True
    return bool((user.permissions or {}).get(module, {}).get(action, False))


def check_permission(module: str, action: str):
    """Route dependency that rejects the caller with 403 unless their role grants `action` on `module`."""

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> None:
        if not has_permission(current_user, module, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{current_user.role}' may not {action} {module}",
            )

    return _checker

from collections.abc import Callable
from typing import get_args

from fastapi import Depends, HTTPException, status

from pharmdesk.core.security_current import get_current_user
from pharmdesk.models.user import User
from pharmdesk.schemas.auth import UserRole

KNOWN_ROLES = frozenset(get_args(UserRole))


def require_roles(*allowed_roles: str) -> Callable[..., User]:
    """Dependency factory admitting only active users whose stored role is allowed."""
    allowed = frozenset(role.strip().lower() for role in allowed_roles)
    unknown = allowed - KNOWN_ROLES
    if not allowed or unknown:
        raise ValueError(f"Allowed roles must be a non-empty subset of {sorted(KNOWN_ROLES)}")

    def dependency(user: User = Depends(get_current_user)) -> User:
        if (user.role or "").lower() not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role for this action",
            )
        return user

    return dependency


require_admin = require_roles("admin")

"""Request identity dependencies.

Authentication happens upstream: the gateway that verifies credentials
forwards the user's id and role in ``X-User-Id`` / ``X-User-Role``.
"""

from collections.abc import Callable

from fastapi import Depends, Header, HTTPException, status

from solardesk.services.workflow import Actor, Role


async def get_current_actor(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Actor:
    """Get the calling actor, or raise 401 if the gateway did not identify one."""
    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    try:
        role = Role(x_user_role.strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown role",
        ) from None
    return Actor(id=x_user_id, role=role)


def require_role(*roles: Role) -> Callable:
    """Factory that returns a dependency requiring one of ``roles``."""

    async def _check_role(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. Insufficient permissions.",
            )
        return actor

    return _check_role


# Route guards matching the dashboard tiers
require_user = require_role(Role.USER, Role.ADMIN, Role.SUPERADMIN)
require_admin = require_role(Role.ADMIN, Role.SUPERADMIN)
require_superadmin = require_role(Role.SUPERADMIN)

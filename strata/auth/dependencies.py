import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..constants import Role
from ..core.errors import AuthorizationError, LoginRequiredError
from .sessions import AuthContext, CurrentUser, session_manager

logger = logging.getLogger(__name__)


def get_auth_context(request: Request) -> AuthContext:
    return request.state.auth


def get_optional_user(
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> Optional[CurrentUser]:
    return session_manager.current_user(ctx, db)


def get_current_user(user: Optional[CurrentUser] = Depends(get_optional_user)) -> CurrentUser:
    if user is None:
        raise LoginRequiredError()
    return user


require_login = get_current_user


def require_roles(*roles: Role):
    """Dependency factory: the caller must be logged in and hold one of ``roles``.

    Roles are not hierarchical; list every role that is allowed.
    """
    if not roles:
        raise ValueError("require_roles needs at least one role; use require_login for any role")
    allowed = tuple(Role(role) for role in roles)

    def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not user.has_any_role(*allowed):
            logger.warning(
                "User %s (%s) denied; requires one of %s",
                user.id,
                user.role.value,
                ", ".join(role.value for role in allowed),
            )
            raise AuthorizationError()
        return user

    return dependency

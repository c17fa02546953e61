import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth import csrf
from ..auth.csrf import require_csrf
from ..auth.dependencies import get_auth_context, get_current_user
from ..auth.sessions import AuthContext, CurrentUser, session_manager
from ..constants import Role
from ..core.errors import AuthenticationError, RateLimitError
from ..core.rate_limit import login_limiter
from ..schemas.schemas import CSRFTokenRead, CurrentUserRead, LoginRequest, RegisterRequest, UserRead
from ..services import users as users_service

router = APIRouter()

logger = logging.getLogger(__name__)


@router.get("/csrf", response_model=CSRFTokenRead)
def get_csrf_token(ctx: AuthContext = Depends(get_auth_context)) -> CSRFTokenRead:
    return CSRFTokenRead(csrf_token=csrf.issue_token(ctx))


@router.post("/login", response_model=CurrentUserRead, dependencies=[Depends(require_csrf)])
def login(
    payload: LoginRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> CurrentUserRead:
    client = ctx.client_id
    if not login_limiter.check_rate_limit(ctx.session, client):
        raise RateLimitError(login_limiter.retry_after(ctx.session, client))

    user = users_service.authenticate(db, payload.email, payload.password)
    if user is None:
        attempts = login_limiter.record_failed_login(ctx.session, client)
        logger.warning("Failed login from %s (attempt %s)", client, attempts)
        raise AuthenticationError(f"Failed login for {payload.email.strip().lower()}")

    login_limiter.reset_login_attempts(ctx.session, client)
    session_manager.login(ctx, user.id, user.username, user.role)
    return CurrentUserRead(id=user.id, username=user.username, role=user.role)


@router.post("/logout", dependencies=[Depends(require_csrf)])
def logout(ctx: AuthContext = Depends(get_auth_context)) -> dict[str, str]:
    session_manager.logout(ctx)
    return {"detail": "Logged out."}


@router.post("/register", response_model=UserRead, status_code=201, dependencies=[Depends(require_csrf)])
def register(payload: RegisterRequest, db: Session = Depends(get_db)) -> UserRead:
    user = users_service.create_user(
        db,
        username=payload.username,
        email=payload.email,
        password=payload.password,
        confirm_password=payload.confirm_password,
        role=Role.OWNER,
    )
    return UserRead.model_validate(user)


@router.get("/me", response_model=CurrentUserRead)
def read_me(user: CurrentUser = Depends(get_current_user)) -> CurrentUserRead:
    return CurrentUserRead.model_validate(user)

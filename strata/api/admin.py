from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.csrf import require_csrf
from ..auth.dependencies import get_optional_user, require_roles
from ..auth.sessions import CurrentUser
from ..constants import Role
from ..core.errors import AuthorizationError, LoginRequiredError
from ..schemas.schemas import (
    AuditLogEntry,
    AuditLogList,
    BootstrapStatus,
    RegisterRequest,
    UserRead,
    UserRoleUpdate,
)
from ..services import audit as audit_service
from ..services import users as users_service

router = APIRouter(prefix="/admin", tags=["admin"])

require_admin = require_roles(Role.ADMIN)


async def authorize_admin_creation(
    request: Request,
    db: Session = Depends(get_db),
    user: Optional[CurrentUser] = Depends(get_optional_user),
) -> Optional[CurrentUser]:
    """Open to anyone until the first admin exists, then admins only (with CSRF)."""
    if users_service.is_initial_setup(db):
        return user
    if user is None:
        raise LoginRequiredError()
    if not users_service.can_create_admin(db, user.role):
        raise AuthorizationError(f"User {user.id} ({user.role.value}) attempted to create an admin")
    await require_csrf(request)
    return user


@router.get("/bootstrap", response_model=BootstrapStatus)
def bootstrap_status(
    db: Session = Depends(get_db),
    user: Optional[CurrentUser] = Depends(get_optional_user),
) -> BootstrapStatus:
    return BootstrapStatus(
        initial_setup=users_service.is_initial_setup(db),
        can_create_admin=users_service.can_create_admin(db, user.role if user else None),
    )


@router.post("/users", response_model=UserRead, status_code=201)
def create_admin(
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    actor: Optional[CurrentUser] = Depends(authorize_admin_creation),
) -> UserRead:
    user = users_service.create_user(
        db,
        username=payload.username,
        email=payload.email,
        password=payload.password,
        confirm_password=payload.confirm_password,
        role=Role.ADMIN,
        actor_user_id=actor.id if actor else None,
    )
    return UserRead.model_validate(user)


@router.get("/users", response_model=List[UserRead])
def list_users(
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_admin),
) -> List[UserRead]:
    return [UserRead.model_validate(user) for user in users_service.list_users(db)]


@router.patch("/users/{user_id}/role", response_model=UserRead)
def update_user_role(
    user_id: int,
    payload: UserRoleUpdate,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(require_admin),
    _csrf: None = Depends(require_csrf),
) -> UserRead:
    user = users_service.change_role(db, user_id, payload.role, actor_user_id=actor.id)
    return UserRead.model_validate(user)


@router.get("/audit-logs", response_model=AuditLogList)
def list_audit_logs(
    action: Optional[str] = Query(None, max_length=64),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_admin),
) -> AuditLogList:
    entries, total = audit_service.list_entries(db, action=action, limit=limit, offset=offset)
    items = [
        AuditLogEntry(
            id=entry.id,
            timestamp=entry.timestamp,
            actor_user_id=entry.actor_user_id,
            actor_username=entry.actor.username if entry.actor else None,
            action=entry.action,
            target_entity_type=entry.target_entity_type,
            target_entity_id=entry.target_entity_id,
            before=audit_service.deserialize(entry.before),
            after=audit_service.deserialize(entry.after),
        )
        for entry in entries
    ]
    return AuditLogList(items=items, total=total)

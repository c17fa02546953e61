from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.csrf import require_csrf
from ..auth.dependencies import require_login, require_roles
from ..auth.sessions import CurrentUser
from ..constants import MANAGEMENT_ROLES
from ..models.models import MaintenanceRequest
from ..schemas.schemas import MaintenanceCreate, MaintenanceRead, MaintenanceStatusUpdate
from ..services import maintenance as maintenance_service

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


def _build_request_read(request: MaintenanceRequest) -> MaintenanceRead:
    return MaintenanceRead(
        id=request.id,
        unit_id=request.unit_id,
        unit_number=request.unit.unit_number if request.unit else None,
        title=request.title,
        description=request.description,
        status=request.status,
        created_by=request.created_by,
        created_by_name=request.creator.username if request.creator else None,
        created_at=request.created_at,
        updated_at=request.updated_at,
    )


@router.get("", response_model=List[MaintenanceRead])
def list_requests(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_login),
) -> List[MaintenanceRead]:
    return [_build_request_read(request) for request in maintenance_service.list_requests(db, user)]


@router.post("", response_model=MaintenanceRead, status_code=201)
def create_request(
    payload: MaintenanceCreate,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_login),
    _csrf: None = Depends(require_csrf),
) -> MaintenanceRead:
    request = maintenance_service.create_request(
        db,
        title=payload.title,
        description=payload.description,
        unit_id=payload.unit_id,
        user=user,
    )
    return _build_request_read(request)


@router.patch("/{request_id}", response_model=MaintenanceRead)
def update_request_status(
    request_id: int,
    payload: MaintenanceStatusUpdate,
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    _csrf: None = Depends(require_csrf),
) -> MaintenanceRead:
    request = maintenance_service.update_status(db, request_id, payload.status)
    return _build_request_read(request)

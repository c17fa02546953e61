import logging
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from ..constants import MANAGEMENT_ROLES, MaintenanceStatus
from ..core.errors import AuthorizationError, NotFoundError, ValidationError
from ..models.models import MaintenanceRequest, Unit

logger = logging.getLogger(__name__)


def list_requests(db: Session, user) -> List[MaintenanceRequest]:
    query = db.query(MaintenanceRequest).options(
        joinedload(MaintenanceRequest.unit),
        joinedload(MaintenanceRequest.creator),
    )
    if not user.has_any_role(*MANAGEMENT_ROLES):
        query = query.filter(MaintenanceRequest.created_by == user.id)
    return query.order_by(MaintenanceRequest.created_at.desc(), MaintenanceRequest.id.desc()).all()


def create_request(
    db: Session,
    *,
    title: str,
    description: str,
    user,
    unit_id: Optional[int] = None,
) -> MaintenanceRequest:
    title = (title or "").strip()
    description = (description or "").strip()
    if not title or not description:
        raise ValidationError("Please fill in all fields.")
    if unit_id is not None:
        unit = db.get(Unit, unit_id)
        if unit is None:
            raise NotFoundError("Unit not found.")
        if not user.has_any_role(*MANAGEMENT_ROLES) and unit.owner_id != user.id:
            raise AuthorizationError(f"User {user.id} referenced unit {unit_id} they do not own")

    request = MaintenanceRequest(unit_id=unit_id, title=title, description=description, created_by=user.id)
    db.add(request)
    db.commit()
    db.refresh(request)
    logger.info("Maintenance request %s submitted by user %s", request.id, user.id)
    return request


def update_status(db: Session, request_id: int, status: MaintenanceStatus) -> MaintenanceRequest:
    request = db.get(MaintenanceRequest, request_id)
    if request is None:
        raise NotFoundError("Maintenance request not found.")
    request.status = MaintenanceStatus(status)
    db.commit()
    db.refresh(request)
    logger.info("Maintenance request %s moved to %s", request.id, request.status.value)
    return request

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.csrf import require_csrf
from ..auth.dependencies import require_login, require_roles
from ..auth.sessions import CurrentUser
from ..constants import MANAGEMENT_ROLES
from ..models.models import Unit
from ..schemas.schemas import UnitCreate, UnitOwnerUpdate, UnitRead
from ..services import units as units_service

router = APIRouter(prefix="/units", tags=["units"])


def _build_unit_read(unit: Unit) -> UnitRead:
    return UnitRead(
        id=unit.id,
        unit_number=unit.unit_number,
        floor_number=unit.floor_number,
        unit_entitlements=unit.unit_entitlements,
        owner_id=unit.owner_id,
        owner_username=unit.owner.username if unit.owner else None,
    )


@router.get("", response_model=List[UnitRead])
def list_units(
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_login),
) -> List[UnitRead]:
    return [_build_unit_read(unit) for unit in units_service.list_units(db)]


@router.post("", response_model=UnitRead, status_code=201)
def create_unit(
    payload: UnitCreate,
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    _csrf: None = Depends(require_csrf),
) -> UnitRead:
    unit = units_service.create_unit(
        db,
        unit_number=payload.unit_number,
        unit_entitlements=payload.unit_entitlements,
        floor_number=payload.floor_number,
        owner_id=payload.owner_id,
    )
    return _build_unit_read(unit)


@router.patch("/{unit_id}/owner", response_model=UnitRead)
def assign_owner(
    unit_id: int,
    payload: UnitOwnerUpdate,
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    _csrf: None = Depends(require_csrf),
) -> UnitRead:
    unit = units_service.assign_owner(db, unit_id, payload.owner_id)
    return _build_unit_read(unit)

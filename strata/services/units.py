import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..core.errors import NotFoundError, ValidationError
from ..models.models import Unit, User

logger = logging.getLogger(__name__)


def list_units(db: Session) -> List[Unit]:
    return db.query(Unit).options(joinedload(Unit.owner)).order_by(Unit.unit_number.asc()).all()


def units_owned_by(db: Session, user_id: int) -> List[Unit]:
    return db.query(Unit).filter(Unit.owner_id == user_id).order_by(Unit.unit_number.asc()).all()


def owners_directory(db: Session) -> List[Unit]:
    """Units that have an owner, with the owner loaded."""
    return (
        db.query(Unit)
        .options(joinedload(Unit.owner))
        .filter(Unit.owner_id.isnot(None))
        .order_by(Unit.unit_number.asc())
        .all()
    )


def _get_owner(db: Session, owner_id: Optional[int]) -> Optional[User]:
    if owner_id is None:
        return None
    owner = db.get(User, owner_id)
    if owner is None:
        raise NotFoundError("Owner not found.")
    return owner


def create_unit(
    db: Session,
    *,
    unit_number: str,
    unit_entitlements: int,
    floor_number: Optional[int] = None,
    owner_id: Optional[int] = None,
) -> Unit:
    unit_number = (unit_number or "").strip()
    if not unit_number:
        raise ValidationError("Unit number is required.")
    if unit_entitlements is None or unit_entitlements <= 0:
        raise ValidationError("Unit entitlements must be a positive whole number.")
    _get_owner(db, owner_id)

    unit = Unit(
        unit_number=unit_number,
        floor_number=floor_number,
        unit_entitlements=unit_entitlements,
        owner_id=owner_id,
    )
    db.add(unit)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError(f"Unit {unit_number} already exists.") from exc
    db.refresh(unit)
    logger.info("Created unit %s with %s entitlements", unit.unit_number, unit.unit_entitlements)
    return unit


def assign_owner(db: Session, unit_id: int, owner_id: Optional[int]) -> Unit:
    unit = db.get(Unit, unit_id)
    if unit is None:
        raise NotFoundError("Unit not found.")
    _get_owner(db, owner_id)
    unit.owner_id = owner_id
    db.commit()
    db.refresh(unit)
    logger.info("Unit %s owner set to %s", unit.unit_number, owner_id)
    return unit

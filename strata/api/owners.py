from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.dependencies import require_roles
from ..auth.sessions import CurrentUser
from ..constants import Role
from ..schemas.schemas import OwnerDirectoryEntry
from ..services import units as units_service

router = APIRouter(prefix="/owners", tags=["owners"])


# Owner role only; committee and admin are not implicitly included.
@router.get("", response_model=List[OwnerDirectoryEntry])
def owners_directory(
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_roles(Role.OWNER)),
) -> List[OwnerDirectoryEntry]:
    return [
        OwnerDirectoryEntry(
            unit_number=unit.unit_number,
            floor_number=unit.floor_number,
            unit_entitlements=unit.unit_entitlements,
            owner_username=unit.owner.username,
        )
        for unit in units_service.owners_directory(db)
    ]

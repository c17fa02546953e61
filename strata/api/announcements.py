from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.csrf import require_csrf
from ..auth.dependencies import require_roles
from ..auth.sessions import CurrentUser
from ..constants import MANAGEMENT_ROLES
from ..models.models import BuildingUpdate, Notice
from ..schemas.schemas import BuildingUpdateCreate, BuildingUpdateRead, NoticeCreate, NoticeRead
from ..services import announcements as announcement_service

router = APIRouter(tags=["announcements"])

require_manager = require_roles(*MANAGEMENT_ROLES)


def _build_notice_read(notice: Notice) -> NoticeRead:
    return NoticeRead(
        id=notice.id,
        title=notice.title,
        content=notice.content,
        is_important=notice.is_important,
        created_by_name=notice.creator.username if notice.creator else None,
        created_at=notice.created_at,
    )


def _build_update_read(update: BuildingUpdate) -> BuildingUpdateRead:
    return BuildingUpdateRead(
        id=update.id,
        title=update.title,
        content=update.content,
        created_by_name=update.creator.username if update.creator else None,
        created_at=update.created_at,
    )


# Public: shown on the landing page before login.
@router.get("/notices", response_model=List[NoticeRead])
def important_notices(db: Session = Depends(get_db)) -> List[NoticeRead]:
    return [_build_notice_read(notice) for notice in announcement_service.important_notices(db)]


@router.post("/notices", response_model=NoticeRead, status_code=201)
def post_notice(
    payload: NoticeCreate,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_manager),
    _csrf: None = Depends(require_csrf),
) -> NoticeRead:
    notice = announcement_service.post_notice(
        db,
        title=payload.title,
        content=payload.content,
        is_important=payload.is_important,
        created_by=user.id,
    )
    return _build_notice_read(notice)


@router.get("/updates", response_model=List[BuildingUpdateRead])
def recent_updates(db: Session = Depends(get_db)) -> List[BuildingUpdateRead]:
    return [_build_update_read(update) for update in announcement_service.recent_updates(db)]


@router.post("/updates", response_model=BuildingUpdateRead, status_code=201)
def post_update(
    payload: BuildingUpdateCreate,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_manager),
    _csrf: None = Depends(require_csrf),
) -> BuildingUpdateRead:
    update = announcement_service.post_update(db, title=payload.title, content=payload.content, created_by=user.id)
    return _build_update_read(update)

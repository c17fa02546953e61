"""Building notices and news updates shown to residents."""
import logging
from typing import List

from sqlalchemy.orm import Session, joinedload

from ..constants import IMPORTANT_NOTICES_LIMIT, RECENT_UPDATES_LIMIT
from ..core.errors import ValidationError
from ..models.models import BuildingUpdate, Notice

logger = logging.getLogger(__name__)


def _clean(title: str, content: str):
    title = (title or "").strip()
    content = (content or "").strip()
    if not title or not content:
        raise ValidationError("Please fill in all fields.")
    return title, content


def important_notices(db: Session, limit: int = IMPORTANT_NOTICES_LIMIT) -> List[Notice]:
    return (
        db.query(Notice)
        .options(joinedload(Notice.creator))
        .filter(Notice.is_important.is_(True))
        .order_by(Notice.created_at.desc(), Notice.id.desc())
        .limit(limit)
        .all()
    )


def recent_updates(db: Session, limit: int = RECENT_UPDATES_LIMIT) -> List[BuildingUpdate]:
    return (
        db.query(BuildingUpdate)
        .options(joinedload(BuildingUpdate.creator))
        .order_by(BuildingUpdate.created_at.desc(), BuildingUpdate.id.desc())
        .limit(limit)
        .all()
    )


def post_notice(db: Session, *, title: str, content: str, is_important: bool, created_by: int) -> Notice:
    title, content = _clean(title, content)
    notice = Notice(title=title, content=content, is_important=is_important, created_by=created_by)
    db.add(notice)
    db.commit()
    db.refresh(notice)
    logger.info("Notice %s posted by user %s (important=%s)", notice.id, created_by, is_important)
    return notice


def post_update(db: Session, *, title: str, content: str, created_by: int) -> BuildingUpdate:
    title, content = _clean(title, content)
    update = BuildingUpdate(title=title, content=content, created_by=created_by)
    db.add(update)
    db.commit()
    db.refresh(update)
    logger.info("Building update %s posted by user %s", update.id, created_by)
    return update

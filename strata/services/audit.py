import json
from typing import Any, List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload

from ..models.models import AuditLog, utcnow


def _serialize(data: Any) -> Optional[str]:
    if data is None:
        return None
    try:
        return json.dumps(data, default=str)
    except TypeError:
        return str(data)


def deserialize(raw: Optional[str]) -> Any:
    """Inverse of the stored snapshot format; non-JSON snapshots come back as text."""
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def audit_log(
    db_session: Session,
    actor_user_id: Optional[int],
    action: str,
    target_entity_type: Optional[str] = None,
    target_entity_id: Optional[str] = None,
    before: Any = None,
    after: Any = None,
    commit: bool = True,
) -> AuditLog:
    """Record an audit entry.

    Pass ``commit=False`` to enlist the entry in a transaction the caller is
    already running; it then commits or rolls back with the rest of the work.
    """
    entry = AuditLog(
        timestamp=utcnow(),
        actor_user_id=actor_user_id,
        action=action,
        target_entity_type=target_entity_type,
        target_entity_id=target_entity_id,
        before=_serialize(before),
        after=_serialize(after),
    )
    db_session.add(entry)
    if commit:
        db_session.commit()
    else:
        db_session.flush()
    return entry


def list_entries(
    db_session: Session,
    *,
    action: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[AuditLog], int]:
    """Newest first, optionally narrowed to one action or an action family (``levy.``)."""
    query = db_session.query(AuditLog).options(joinedload(AuditLog.actor))
    if action:
        if action.endswith("."):
            query = query.filter(AuditLog.action.startswith(action))
        else:
            query = query.filter(AuditLog.action == action)
    total = query.count()
    entries = query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).offset(offset).limit(limit).all()
    return entries, total

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..core.version import get_version_info

router = APIRouter(tags=["system"])

logger = logging.getLogger(__name__)


@router.get("/health")
def health(db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Report database connectivity and build information."""
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        logger.exception("Health check could not reach the database")
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        **get_version_info(),
    }

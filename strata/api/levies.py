from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.csrf import require_csrf
from ..auth.dependencies import require_login, require_roles
from ..auth.sessions import CurrentUser
from ..constants import MANAGEMENT_ROLES
from ..models.models import Levy
from ..schemas.schemas import (
    LevyGenerateRequest,
    LevyGenerationOverview,
    LevyGenerationResultRead,
    LevyListResponse,
    LevyPaymentRead,
    LevyPaymentRequest,
    LevyRead,
    OverdueUpdateResult,
    RecentGenerationRead,
    SuggestedRatesRead,
)
from ..services import budgets as budget_service
from ..services import levies as levy_service

router = APIRouter(prefix="/levies", tags=["levies"])

require_manager = require_roles(*MANAGEMENT_ROLES)


def _build_levy_read(levy: Levy) -> LevyRead:
    unit = levy.unit
    return LevyRead(
        id=levy.id,
        unit_id=levy.unit_id,
        unit_number=unit.unit_number if unit else None,
        owner_username=unit.owner.username if unit and unit.owner else None,
        amount=levy.amount,
        admin_amount=levy.admin_amount,
        capital_amount=levy.capital_amount,
        due_date=levy.due_date,
        status=levy.status,
        quarter=levy.quarter,
        created_at=levy.created_at,
    )


@router.get("", response_model=LevyListResponse)
def list_levies(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_login),
) -> LevyListResponse:
    levies = levy_service.list_levies(db, user)
    return LevyListResponse(
        levies=[_build_levy_read(levy) for levy in levies],
        totals=levy_service.summarize_levies(levies),
    )


@router.get("/generate", response_model=LevyGenerationOverview)
def generation_overview(
    financial_year: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_manager),
) -> LevyGenerationOverview:
    year = budget_service.resolve_financial_year(financial_year)
    suggested = levy_service.suggested_rates(db, year)
    return LevyGenerationOverview(
        suggested=SuggestedRatesRead.model_validate(suggested),
        recent=[RecentGenerationRead(**row) for row in levy_service.recent_generations(db)],
    )


@router.post("/generate", response_model=LevyGenerationResultRead, status_code=201)
def generate_levies(
    payload: LevyGenerateRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_manager),
    _csrf: None = Depends(require_csrf),
) -> LevyGenerationResultRead:
    result = levy_service.generate_levies(
        db,
        admin_rate=payload.admin_rate,
        capital_rate=payload.capital_rate,
        due_date=payload.due_date,
        quarter=payload.quarter,
        actor_user_id=user.id,
    )
    return LevyGenerationResultRead(
        generated_count=result.generated_count,
        total_amount=result.total_amount,
        quarter=result.quarter,
    )


@router.post("/mark-overdue", response_model=OverdueUpdateResult)
def mark_overdue(
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_manager),
    _csrf: None = Depends(require_csrf),
) -> OverdueUpdateResult:
    today = date.today()
    return OverdueUpdateResult(updated=levy_service.mark_overdue_levies(db, today), as_of=today)


@router.post("/{levy_id}/pay", response_model=LevyPaymentRead, status_code=201)
def pay_levy(
    levy_id: int,
    payload: LevyPaymentRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_login),
    _csrf: None = Depends(require_csrf),
) -> LevyPaymentRead:
    payment = levy_service.pay_levy(
        db,
        levy_id=levy_id,
        method=payload.payment_method,
        amount=payload.amount,
        actor=user,
    )
    return LevyPaymentRead.model_validate(payment)

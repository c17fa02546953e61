from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.csrf import require_csrf
from ..auth.dependencies import require_roles
from ..auth.sessions import CurrentUser
from ..constants import MANAGEMENT_ROLES
from ..schemas.schemas import BudgetItemCreate, BudgetItemRead, BudgetOverview, FundSummaryRead
from ..services import budgets as budget_service

router = APIRouter(prefix="/budget", tags=["budget"])

require_manager = require_roles(*MANAGEMENT_ROLES)


@router.get("", response_model=BudgetOverview)
def get_budget(
    financial_year: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_manager),
) -> BudgetOverview:
    year = budget_service.resolve_financial_year(financial_year)
    return BudgetOverview(
        financial_year=year,
        totals=budget_service.budget_totals(db, year),
        funds=[
            FundSummaryRead(
                fund_type=summary.fund_type,
                budgeted=summary.budgeted,
                actual=summary.actual,
                percent_spent=summary.percent_spent,
            )
            for summary in budget_service.fund_summaries(db, year)
        ],
        items=[BudgetItemRead.model_validate(item) for item in budget_service.list_budget_items(db, year)],
    )


@router.post("/items", response_model=BudgetItemRead, status_code=201)
def add_budget_item(
    payload: BudgetItemCreate,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_manager),
    _csrf: None = Depends(require_csrf),
) -> BudgetItemRead:
    item = budget_service.add_budget_item(
        db,
        category=payload.category,
        description=payload.description,
        budgeted_amount=payload.budgeted_amount,
        actual_amount=payload.actual_amount,
        fund_type=payload.fund_type,
        financial_year=payload.financial_year,
        actor_user_id=user.id,
    )
    return BudgetItemRead.model_validate(item)

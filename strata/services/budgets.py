from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import FundType
from ..core.errors import PersistenceError, ValidationError
from ..models.models import BudgetItem
from .audit import audit_log

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
FINANCIAL_YEAR_PATTERN = re.compile(r"^(\d{4})-(\d{4})$")


def _as_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def current_financial_year(today: Optional[date] = None) -> str:
    """Financial years run July to June, e.g. ``2024-2025``."""
    today = today or date.today()
    start = today.year if today.month >= 7 else today.year - 1
    return f"{start}-{start + 1}"


def validate_financial_year(value: str) -> str:
    match = FINANCIAL_YEAR_PATTERN.match(value or "")
    if not match or int(match.group(2)) != int(match.group(1)) + 1:
        raise ValidationError("Financial year must look like 2024-2025.")
    return value


def resolve_financial_year(value: Optional[str]) -> str:
    return validate_financial_year(value.strip()) if value else current_financial_year()


@dataclass
class FundSummary:
    fund_type: FundType
    budgeted: Decimal
    actual: Decimal

    @property
    def percent_spent(self) -> int:
        if self.budgeted <= 0:
            return 0
        return int((self.actual / self.budgeted * 100).quantize(Decimal("1")))


def budget_totals(db: Session, financial_year: str) -> Dict[str, Decimal]:
    """Sum of budgeted amounts per fund type; missing funds report zero."""
    rows = (
        db.query(BudgetItem.fund_type, func.sum(BudgetItem.budgeted_amount))
        .filter(BudgetItem.financial_year == financial_year)
        .group_by(BudgetItem.fund_type)
        .all()
    )
    totals = {fund.value: Decimal("0.00") for fund in FundType}
    for fund_type, total in rows:
        totals[FundType(fund_type).value] = _as_decimal(total).quantize(CENTS)
    return totals


def fund_summaries(db: Session, financial_year: str) -> List[FundSummary]:
    rows = (
        db.query(
            BudgetItem.fund_type,
            func.sum(BudgetItem.budgeted_amount),
            func.sum(BudgetItem.actual_amount),
        )
        .filter(BudgetItem.financial_year == financial_year)
        .group_by(BudgetItem.fund_type)
        .all()
    )
    found = {FundType(row[0]): row for row in rows}
    summaries = []
    for fund in FundType:
        row = found.get(fund)
        budgeted = _as_decimal(row[1] if row else None).quantize(CENTS)
        actual = _as_decimal(row[2] if row else None).quantize(CENTS)
        summaries.append(FundSummary(fund_type=fund, budgeted=budgeted, actual=actual))
    return summaries


def list_budget_items(db: Session, financial_year: str) -> List[BudgetItem]:
    return (
        db.query(BudgetItem)
        .filter(BudgetItem.financial_year == financial_year)
        .order_by(BudgetItem.fund_type.asc(), BudgetItem.category.asc(), BudgetItem.id.asc())
        .all()
    )


def add_budget_item(
    db: Session,
    *,
    category: str,
    description: str,
    budgeted_amount,
    fund_type,
    actor_user_id: int,
    actual_amount=None,
    financial_year: Optional[str] = None,
) -> BudgetItem:
    category = (category or "").strip()
    description = (description or "").strip()
    try:
        budgeted = _as_decimal(budgeted_amount).quantize(CENTS)
        actual = _as_decimal(actual_amount).quantize(CENTS)
        fund = FundType(fund_type) if fund_type else None
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("Please fill in all required fields with valid amounts.") from exc
    if not category or not description or fund is None or budgeted <= 0 or actual < 0:
        raise ValidationError("Please fill in all required fields with valid amounts.")
    financial_year = resolve_financial_year(financial_year)

    item = BudgetItem(
        category=category,
        description=description,
        budgeted_amount=budgeted,
        actual_amount=actual,
        fund_type=fund,
        financial_year=financial_year,
        created_by=actor_user_id,
    )
    try:
        db.add(item)
        db.flush()
        audit_log(
            db_session=db,
            actor_user_id=actor_user_id,
            action="budget_item.create",
            target_entity_type="BudgetItem",
            target_entity_id=str(item.id),
            after={
                "category": category,
                "fund_type": fund.value,
                "budgeted_amount": str(budgeted),
                "financial_year": financial_year,
            },
            commit=False,
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Budget item creation failed")
        raise PersistenceError(str(exc)) from exc
    db.refresh(item)
    logger.info("Budget item %s added to %s (%s) by user %s", item.id, financial_year, fund.value, actor_user_id)
    return item

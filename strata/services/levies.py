"""Levy generation and payment.

Both workflows run as a single database transaction: either every row they
write is committed or none is. Business-rule checks happen before anything is
written, so a rejected request never leaves a partial batch behind.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, List, Optional

from sqlalchemy import distinct, func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..constants import (
    MANAGEMENT_ROLES,
    PAYMENT_METHODS,
    QUARTER_MAX_LENGTH,
    RECENT_GENERATIONS_DAYS,
    RECENT_GENERATIONS_LIMIT,
    FundType,
    LevyStatus,
)
from ..core.errors import (
    NotFoundError,
    PersistenceError,
    PreconditionError,
    ValidationError,
)
from ..models.models import Levy, LevyPayment, Unit, User
from .audit import audit_log
from .budgets import budget_totals

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
NO_ELIGIBLE_UNITS_MESSAGE = "No units with owners found. Please assign owners to units first."
LEVY_NOT_FOUND_MESSAGE = "Levy not found."
ALREADY_PAID_MESSAGE = "This levy has already been paid."


def _to_decimal(value, field: str) -> Decimal:
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValidationError(f"Invalid {field}.") from exc


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LevyAmounts:
    admin_amount: Decimal
    capital_amount: Decimal
    amount: Decimal


@dataclass(frozen=True)
class LevyGenerationResult:
    generated_count: int
    total_amount: Decimal
    quarter: str


@dataclass(frozen=True)
class SuggestedRates:
    financial_year: str
    admin_budget: Decimal
    capital_budget: Decimal
    total_units: int
    total_entitlements: int
    admin_rate: Optional[Decimal]
    capital_rate: Optional[Decimal]


def compute_levy_amounts(admin_rate: Decimal, capital_rate: Decimal, entitlements: int) -> LevyAmounts:
    admin_amount = _money(admin_rate * entitlements)
    capital_amount = _money(capital_rate * entitlements)
    return LevyAmounts(
        admin_amount=admin_amount,
        capital_amount=capital_amount,
        amount=admin_amount + capital_amount,
    )


def eligible_units(db: Session) -> List[Unit]:
    return db.query(Unit).filter(Unit.owner_id.isnot(None)).order_by(Unit.unit_number.asc()).all()


def generate_levies(
    db: Session,
    *,
    admin_rate,
    capital_rate,
    due_date: Optional[date],
    quarter: str,
    actor_user_id: int,
) -> LevyGenerationResult:
    admin_rate = _to_decimal(admin_rate, "administration rate")
    capital_rate = _to_decimal(capital_rate, "capital works rate")
    quarter = (quarter or "").strip()
    if due_date is None or not quarter or admin_rate <= 0 or capital_rate <= 0:
        raise ValidationError("Please fill in all required fields with valid amounts.")
    if len(quarter) > QUARTER_MAX_LENGTH:
        raise ValidationError(f"Quarter label must be at most {QUARTER_MAX_LENGTH} characters.")

    try:
        units = eligible_units(db)
        if not units:
            db.rollback()
            raise PreconditionError(NO_ELIGIBLE_UNITS_MESSAGE)

        total = Decimal("0.00")
        for unit in units:
            amounts = compute_levy_amounts(admin_rate, capital_rate, unit.unit_entitlements)
            db.add(
                Levy(
                    unit_id=unit.id,
                    amount=amounts.amount,
                    admin_amount=amounts.admin_amount,
                    capital_amount=amounts.capital_amount,
                    due_date=due_date,
                    status=LevyStatus.PENDING,
                    quarter=quarter,
                    created_by=actor_user_id,
                )
            )
            total += amounts.amount
        db.flush()
        audit_log(
            db_session=db,
            actor_user_id=actor_user_id,
            action="levy.generate",
            target_entity_type="Levy",
            after={
                "quarter": quarter,
                "due_date": due_date.isoformat(),
                "admin_rate": str(admin_rate),
                "capital_rate": str(capital_rate),
                "generated_count": len(units),
                "total_amount": str(total),
            },
            commit=False,
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Levy generation for %s failed; transaction rolled back", quarter)
        raise PersistenceError(str(exc)) from exc

    logger.info("Generated %s levies for %s totalling %s (user %s)", len(units), quarter, total, actor_user_id)
    return LevyGenerationResult(generated_count=len(units), total_amount=total, quarter=quarter)


def suggested_rates(db: Session, financial_year: str) -> SuggestedRates:
    """Quarterly per-entitlement rates that would fund the year's budget."""
    totals = budget_totals(db, financial_year)
    admin_budget = totals[FundType.ADMINISTRATION.value]
    capital_budget = totals[FundType.CAPITAL_WORKS.value]
    total_units, total_entitlements = (
        db.query(func.count(Unit.id), func.coalesce(func.sum(Unit.unit_entitlements), 0))
        .filter(Unit.owner_id.isnot(None))
        .one()
    )
    total_entitlements = int(total_entitlements or 0)

    admin_rate = capital_rate = None
    if total_entitlements > 0:
        admin_rate = _money(admin_budget / 4 / total_entitlements)
        capital_rate = _money(capital_budget / 4 / total_entitlements)
    return SuggestedRates(
        financial_year=financial_year,
        admin_budget=admin_budget,
        capital_budget=capital_budget,
        total_units=int(total_units or 0),
        total_entitlements=total_entitlements,
        admin_rate=admin_rate,
        capital_rate=capital_rate,
    )


def recent_generations(db: Session, now: Optional[datetime] = None) -> List[Dict[str, object]]:
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=RECENT_GENERATIONS_DAYS)
    generated_at = func.max(Levy.created_at)
    rows = (
        db.query(
            Levy.quarter,
            Levy.due_date,
            func.count(distinct(Levy.unit_id)),
            func.sum(Levy.amount),
            generated_at,
            User.username,
        )
        .outerjoin(User, User.id == Levy.created_by)
        .filter(Levy.created_at >= since)
        .group_by(Levy.quarter, Levy.due_date, Levy.created_by, User.username)
        .order_by(generated_at.desc())
        .limit(RECENT_GENERATIONS_LIMIT)
        .all()
    )
    return [
        {
            "quarter": quarter,
            "due_date": due,
            "units_generated": int(units),
            "total_amount": _money(Decimal(str(amount or 0))),
            "generated_at": created,
            "generated_by": username,
        }
        for quarter, due, units, amount, created, username in rows
    ]


def list_levies(db: Session, user) -> List[Levy]:
    """Management roles see every levy; owners see the levies of their units."""
    query = db.query(Levy).join(Unit, Unit.id == Levy.unit_id).options(
        joinedload(Levy.unit).joinedload(Unit.owner)
    )
    if not user.has_any_role(*MANAGEMENT_ROLES):
        query = query.filter(Unit.owner_id == user.id)
    return query.order_by(Levy.due_date.desc(), Levy.id.desc()).all()


def summarize_levies(levies: List[Levy]) -> Dict[str, Decimal]:
    totals = {status.value: Decimal("0.00") for status in LevyStatus}
    for levy in levies:
        totals[LevyStatus(levy.status).value] += Decimal(str(levy.amount))
    return totals


def _payment_reference(method: str, now: datetime) -> str:
    return f"{PAYMENT_METHODS[method]}-{now:%Y%m%d%H%M%S}-{secrets.token_hex(3).upper()}"


def pay_levy(
    db: Session,
    *,
    levy_id: int,
    method: str,
    actor,
    amount=None,
    payment_date: Optional[date] = None,
) -> LevyPayment:
    """Record a (simulated) payment and mark the levy paid.

    Owners may only pay levies on units they own; anyone else's levy reads as
    missing. A levy that is already paid is rejected; pending and overdue
    levies are both payable. The status flip is a conditional UPDATE, so of
    two concurrent payments exactly one matches a row and the other is
    rejected before its payment row is written.
    """
    levy = db.query(Levy).filter(Levy.id == levy_id).with_for_update().first()
    if levy is None:
        db.rollback()
        raise NotFoundError(LEVY_NOT_FOUND_MESSAGE)
    if not actor.has_any_role(*MANAGEMENT_ROLES):
        unit = db.get(Unit, levy.unit_id)
        if unit is None or unit.owner_id != actor.id:
            db.rollback()
            logger.warning("User %s attempted to pay levy %s on another unit", actor.id, levy_id)
            raise NotFoundError(LEVY_NOT_FOUND_MESSAGE)
    if levy.status == LevyStatus.PAID:
        db.rollback()
        raise PreconditionError(ALREADY_PAID_MESSAGE)

    levy_amount = Decimal(str(levy.amount))
    paid_amount = levy_amount if amount is None else _money(_to_decimal(amount, "payment amount"))
    if paid_amount <= 0:
        db.rollback()
        raise ValidationError("Payment amount must be greater than zero.")
    if paid_amount != levy_amount:
        db.rollback()
        raise ValidationError("Payment amount must match the levy amount.")
    if method not in PAYMENT_METHODS:
        db.rollback()
        raise ValidationError("Unsupported payment method.")

    now = datetime.now(timezone.utc)
    before_status = LevyStatus(levy.status).value
    try:
        claimed = db.execute(
            update(Levy)
            .where(Levy.id == levy_id, Levy.status != LevyStatus.PAID)
            .values(status=LevyStatus.PAID)
            .execution_options(synchronize_session=False)
        ).rowcount
        if claimed != 1:
            db.rollback()
            raise PreconditionError(ALREADY_PAID_MESSAGE)
        payment = LevyPayment(
            levy_id=levy_id,
            amount=paid_amount,
            payment_date=payment_date or now.date(),
            payment_method=method,
            reference_number=_payment_reference(method, now),
        )
        db.add(payment)
        db.flush()
        audit_log(
            db_session=db,
            actor_user_id=actor.id,
            action="levy.pay",
            target_entity_type="Levy",
            target_entity_id=str(levy_id),
            before={"status": before_status},
            after={
                "status": LevyStatus.PAID.value,
                "amount": str(paid_amount),
                "payment_method": method,
                "reference_number": payment.reference_number,
            },
            commit=False,
        )
        db.commit()
    except IntegrityError as exc:
        # levy_payments.levy_id is unique.
        db.rollback()
        raise PreconditionError(ALREADY_PAID_MESSAGE) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Payment for levy %s failed; transaction rolled back", levy_id)
        raise PersistenceError(str(exc)) from exc

    db.refresh(payment)
    logger.info("Levy %s paid by user %s via %s (ref %s)", levy_id, actor.id, method, payment.reference_number)
    return payment


def mark_overdue_levies(db: Session, today: Optional[date] = None) -> int:
    today = today or date.today()
    try:
        updated = (
            db.query(Levy)
            .filter(Levy.status == LevyStatus.PENDING, Levy.due_date < today)
            .update({Levy.status: LevyStatus.OVERDUE}, synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Marking overdue levies failed")
        raise PersistenceError(str(exc)) from exc
    if updated:
        logger.info("Marked %s levies overdue as of %s", updated, today.isoformat())
    return updated

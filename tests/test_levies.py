import threading
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from strata.auth.sessions import CurrentUser
from strata.constants import FundType, LevyStatus, Role
from strata.core.errors import (
    NotFoundError,
    PersistenceError,
    PreconditionError,
    ValidationError,
)
from strata.models.models import AuditLog, BudgetItem, Levy, LevyPayment
from strata.services import levies as levy_service

DUE = date(2025, 3, 31)


def _actor(user) -> CurrentUser:
    return CurrentUser(id=user.id, username=user.username, role=user.role)


@pytest.fixture
def committee(create_user):
    return create_user(role=Role.COMMITTEE)


@pytest.fixture
def owned_units(create_user, create_unit):
    owner = create_user(role=Role.OWNER)
    return [create_unit(entitlements=entitlements, owner=owner) for entitlements in (1, 2, 3)]


def _generate(db_session, committee, **overrides):
    params = dict(admin_rate="50", capital_rate="50", due_date=DUE, quarter="Q3 2025", actor_user_id=committee.id)
    params.update(overrides)
    return levy_service.generate_levies(db_session, **params)


def test_levy_amounts_scale_with_entitlements(db_session, committee, owned_units):
    result = _generate(db_session, committee)

    levies = db_session.query(Levy).order_by(Levy.amount.asc()).all()
    assert [levy.amount for levy in levies] == [Decimal("100.00"), Decimal("200.00"), Decimal("300.00")]
    for levy in levies:
        assert levy.admin_amount + levy.capital_amount == levy.amount
        assert levy.status is LevyStatus.PENDING
        assert levy.quarter == "Q3 2025"
    assert result.generated_count == 3
    assert result.total_amount == Decimal("600.00")


def test_units_without_owner_are_skipped(db_session, committee, owned_units, create_unit):
    create_unit(entitlements=5, owner=None)

    result = _generate(db_session, committee)

    assert result.generated_count == 3
    assert db_session.query(Levy).count() == 3


def test_no_owned_units_writes_nothing(db_session, committee, create_unit):
    create_unit(entitlements=2, owner=None)

    with pytest.raises(PreconditionError) as exc:
        _generate(db_session, committee)

    assert exc.value.message == "No units with owners found. Please assign owners to units first."
    assert db_session.query(Levy).count() == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"admin_rate": "0"},
        {"capital_rate": "-5"},
        {"due_date": None},
        {"quarter": "  "},
        {"admin_rate": "abc"},
    ],
)
def test_invalid_generation_input_is_rejected(db_session, committee, owned_units, overrides):
    with pytest.raises(ValidationError):
        _generate(db_session, committee, **overrides)
    assert db_session.query(Levy).count() == 0


def test_persistence_failure_rolls_back_the_whole_batch(db_session, committee, owned_units, monkeypatch):
    def failing_audit(*args, **kwargs):
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(levy_service, "audit_log", failing_audit)

    with pytest.raises(PersistenceError) as exc:
        _generate(db_session, committee)

    assert exc.value.client_detail == "Database error. Please try again."
    assert db_session.query(Levy).count() == 0


def test_generation_is_audited(db_session, committee, owned_units):
    _generate(db_session, committee)
    entry = db_session.query(AuditLog).filter(AuditLog.action == "levy.generate").one()
    assert entry.actor_user_id == committee.id
    assert '"generated_count": 3' in entry.after


def test_fractional_rates_round_to_cents(db_session, committee, create_user, create_unit):
    create_unit(entitlements=3, owner=create_user())
    _generate(db_session, committee, admin_rate="33.335", capital_rate="10")
    levy = db_session.query(Levy).one()
    assert levy.admin_amount == Decimal("100.01")
    assert levy.amount == Decimal("130.01")


def test_pay_levy_marks_paid_with_one_payment(db_session, committee, owned_units):
    _generate(db_session, committee)
    levy = db_session.query(Levy).first()
    owner = owned_units[0].owner

    payment = levy_service.pay_levy(db_session, levy_id=levy.id, method="bank_transfer", actor=_actor(owner))

    db_session.refresh(levy)
    assert levy.status is LevyStatus.PAID
    assert db_session.query(LevyPayment).filter(LevyPayment.levy_id == levy.id).count() == 1
    assert payment.amount == levy.amount
    assert payment.reference_number.startswith("BT-")
    assert payment.payment_method == "bank_transfer"


def test_paying_a_paid_levy_is_rejected(db_session, committee, owned_units):
    _generate(db_session, committee)
    levy = db_session.query(Levy).first()
    levy_service.pay_levy(db_session, levy_id=levy.id, method="bpay", actor=_actor(committee))

    with pytest.raises(PreconditionError):
        levy_service.pay_levy(db_session, levy_id=levy.id, method="bpay", actor=_actor(committee))

    assert db_session.query(LevyPayment).count() == 1


def test_another_units_levy_reads_as_missing_to_an_owner(db_session, committee, owned_units, create_user):
    _generate(db_session, committee)
    levy = db_session.query(Levy).first()
    stranger = create_user(role=Role.OWNER)

    with pytest.raises(NotFoundError) as excinfo:
        levy_service.pay_levy(db_session, levy_id=levy.id, method="credit_card", actor=_actor(stranger))

    with pytest.raises(NotFoundError) as missing:
        levy_service.pay_levy(db_session, levy_id=9999, method="credit_card", actor=_actor(stranger))
    assert excinfo.value.client_detail == missing.value.client_detail
    db_session.refresh(levy)
    assert levy.status is LevyStatus.PENDING
    assert db_session.query(LevyPayment).count() == 0


def test_payment_amount_and_method_are_checked(db_session, committee, owned_units):
    _generate(db_session, committee)
    levy = db_session.query(Levy).first()
    actor = _actor(committee)

    with pytest.raises(ValidationError):
        levy_service.pay_levy(db_session, levy_id=levy.id, method="bank_transfer", amount="1.00", actor=actor)
    with pytest.raises(ValidationError):
        levy_service.pay_levy(db_session, levy_id=levy.id, method="bitcoin", actor=actor)
    with pytest.raises(NotFoundError):
        levy_service.pay_levy(db_session, levy_id=9999, method="bank_transfer", actor=actor)

    db_session.refresh(levy)
    assert levy.status is LevyStatus.PENDING


def test_overdue_levies_can_be_marked_and_paid(db_session, committee, owned_units):
    _generate(db_session, committee, due_date=date(2025, 1, 31))

    updated = levy_service.mark_overdue_levies(db_session, today=date(2025, 2, 1))

    assert updated == 3
    levy = db_session.query(Levy).first()
    assert levy.status is LevyStatus.OVERDUE
    levy_service.pay_levy(db_session, levy_id=levy.id, method="cheque", actor=_actor(committee))
    db_session.refresh(levy)
    assert levy.status is LevyStatus.PAID
    assert levy_service.mark_overdue_levies(db_session, today=date(2025, 2, 2)) == 0


def test_listing_is_scoped_to_owner(db_session, committee, owned_units, create_user, create_unit):
    other_owner = create_user(role=Role.OWNER)
    create_unit(entitlements=1, owner=other_owner)
    _generate(db_session, committee)

    assert len(levy_service.list_levies(db_session, _actor(committee))) == 4
    own = levy_service.list_levies(db_session, _actor(other_owner))
    assert len(own) == 1
    assert own[0].unit.owner_id == other_owner.id


def test_summary_totals_by_status(db_session, committee, owned_units):
    _generate(db_session, committee)
    levies = levy_service.list_levies(db_session, _actor(committee))
    levy_service.pay_levy(db_session, levy_id=levies[0].id, method="bpay", actor=_actor(committee))

    totals = levy_service.summarize_levies(levy_service.list_levies(db_session, _actor(committee)))

    assert totals["paid"] + totals["pending"] == Decimal("600.00")
    assert totals["overdue"] == Decimal("0.00")


def test_suggested_rates_divide_budget_by_quarters_and_entitlements(db_session, committee, create_user, create_unit):
    owner = create_user()
    create_unit(entitlements=4, owner=owner)
    create_unit(entitlements=6, owner=owner)
    db_session.add_all(
        [
            BudgetItem(category="Insurance", description="Premium", budgeted_amount=Decimal("4000"),
                       fund_type=FundType.ADMINISTRATION, financial_year="2024-2025"),
            BudgetItem(category="Roof", description="Repairs", budgeted_amount=Decimal("8000"),
                       fund_type=FundType.CAPITAL_WORKS, financial_year="2024-2025"),
        ]
    )
    db_session.commit()

    rates = levy_service.suggested_rates(db_session, "2024-2025")

    assert rates.total_entitlements == 10
    assert rates.admin_rate == Decimal("100.00")
    assert rates.capital_rate == Decimal("200.00")


def test_suggested_rates_without_owned_units(db_session):
    rates = levy_service.suggested_rates(db_session, "2024-2025")
    assert rates.total_entitlements == 0
    assert rates.admin_rate is None
    assert rates.capital_rate is None


def test_recent_generations_group_batches(db_session, committee, owned_units):
    _generate(db_session, committee)
    _generate(db_session, committee, quarter="Q4 2025", due_date=DUE + timedelta(days=90))

    batches = levy_service.recent_generations(db_session)

    assert len(batches) == 2
    assert {batch["quarter"] for batch in batches} == {"Q3 2025", "Q4 2025"}
    for batch in batches:
        assert batch["units_generated"] == 3
        assert batch["total_amount"] == Decimal("600.00")
        assert batch["generated_by"] == committee.username


def test_concurrent_payments_on_one_levy_record_a_single_payment(db_session, committee, owned_units):
    _generate(db_session, committee)
    levy_id = db_session.query(Levy).first().id
    actor = _actor(committee)
    db_session.commit()

    engine = db_session.get_bind()
    make_session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    first_paused = threading.Event()
    second_done = threading.Event()
    outcomes = {}

    # The first payer has read the levy as pending; hold it there until the second has committed.
    def hold_first_payer(conn, cursor, statement, parameters, context, executemany):
        if threading.current_thread().name == "first" and statement.lstrip().upper().startswith("UPDATE LEVIES"):
            first_paused.set()
            second_done.wait(timeout=10)

    def pay():
        name = threading.current_thread().name
        session = make_session()
        try:
            levy_service.pay_levy(session, levy_id=levy_id, method="bpay", actor=actor)
            outcomes[name] = "paid"
        except PreconditionError:
            outcomes[name] = "rejected"
        except Exception as exc:  # surfaced through the assertion below
            outcomes[name] = repr(exc)
        finally:
            session.close()
            if name == "second":
                second_done.set()

    event.listen(engine, "before_cursor_execute", hold_first_payer)
    try:
        first = threading.Thread(target=pay, name="first")
        first.start()
        assert first_paused.wait(timeout=10)
        second = threading.Thread(target=pay, name="second")
        second.start()
        second.join(timeout=10)
        first.join(timeout=10)
    finally:
        event.remove(engine, "before_cursor_execute", hold_first_payer)

    assert outcomes == {"first": "rejected", "second": "paid"}
    db_session.expire_all()
    assert db_session.query(LevyPayment).filter(LevyPayment.levy_id == levy_id).count() == 1
    assert db_session.get(Levy, levy_id).status is LevyStatus.PAID


def test_overlong_quarter_label_is_rejected_before_writing(db_session, committee, owned_units):
    with pytest.raises(ValidationError, match="at most 20 characters"):
        _generate(db_session, committee, quarter="Q3 2025 special levy round")

    assert db_session.query(Levy).count() == 0

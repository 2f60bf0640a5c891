from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from koperasi.core.exceptions import InvalidInput, InvalidTransition, NotFound, StorageFailure
from koperasi.models.loan import Installment, Loan, LoanStatus
from koperasi.models.member import Member
from koperasi.services import loan as loan_service


def test_flat_rate_schedule() -> None:
    schedule = loan_service.build_installment_schedule(Decimal("1000000"), 10, Decimal("12"), date(2026, 1, 15))

    assert len(schedule) == 10
    assert all(row["amount_due"] == Decimal("112000.00") for row in schedule)
    assert sum(row["amount_due"] for row in schedule) == Decimal("1120000.00")
    assert [row["sequence_number"] for row in schedule] == list(range(1, 11))
    assert schedule[0]["due_date"] == date(2026, 2, 15)
    assert schedule[-1]["due_date"] == date(2026, 11, 15)


def test_schedule_rounds_down_and_last_installment_absorbs_remainder() -> None:
    schedule = loan_service.build_installment_schedule(Decimal("1000"), 3, Decimal("0"), date(2026, 1, 1))
    assert [row["amount_due"] for row in schedule] == [Decimal("333.33"), Decimal("333.33"), Decimal("333.34")]


def test_schedule_clamps_month_end_due_dates() -> None:
    schedule = loan_service.build_installment_schedule(Decimal("300"), 3, Decimal("0"), date(2026, 1, 31))
    assert [row["due_date"] for row in schedule] == [date(2026, 2, 28), date(2026, 3, 31), date(2026, 4, 30)]


def test_apply_assigns_loan_number(db: Session, member: Member) -> None:
    loan = loan_service.apply_for_loan(db, member.id, Decimal("500000"), 6, Decimal("10"))

    assert loan.status == LoanStatus.APPLICATION
    assert loan.loan_number == f"PJ-{datetime.utcnow().year}-{loan.id:06d}"
    assert loan.principal == Decimal("500000.00")
    assert loan.installments == []


def test_format_loan_number() -> None:
    assert loan_service.format_loan_number(2026, 42) == "PJ-2026-000042"


@pytest.mark.parametrize(
    "principal,term,rate",
    [
        (Decimal("0"), 10, Decimal("12")),
        (Decimal("-100"), 10, Decimal("12")),
        (Decimal("1000"), 0, Decimal("12")),
        (Decimal("1000"), -3, Decimal("12")),
        (Decimal("1000"), 10, Decimal("-1")),
    ],
)
def test_apply_rejects_invalid_terms(db: Session, member: Member, principal, term, rate) -> None:
    with pytest.raises(InvalidInput):
        loan_service.apply_for_loan(db, member.id, principal, term, rate)
    assert db.query(Loan).count() == 0


def test_apply_for_unknown_member(db: Session) -> None:
    with pytest.raises(NotFound):
        loan_service.apply_for_loan(db, 999, Decimal("1000"), 3, Decimal("0"))


def test_lifecycle_moves_forward_one_step_at_a_time(db: Session, member: Member) -> None:
    loan = loan_service.apply_for_loan(db, member.id, Decimal("1000000"), 10, Decimal("12"))

    with pytest.raises(InvalidTransition):
        loan_service.disburse_loan(db, loan.id, date(2026, 1, 15))

    approved = loan_service.approve_loan(db, loan.id)
    assert approved.status == LoanStatus.APPROVED
    assert approved.approval_date is not None

    with pytest.raises(InvalidTransition):
        loan_service.approve_loan(db, loan.id)

    active = loan_service.disburse_loan(db, loan.id, date(2026, 1, 15))
    assert active.status == LoanStatus.ACTIVE
    assert active.disbursement_date == date(2026, 1, 15)
    assert len(active.installments) == 10
    assert active.installments[0].due_date == date(2026, 2, 15)

    with pytest.raises(InvalidTransition):
        loan_service.approve_loan(db, loan.id)


def test_second_disbursement_creates_no_installments(db: Session, member: Member) -> None:
    loan = loan_service.apply_for_loan(db, member.id, Decimal("1000"), 3, Decimal("0"))
    loan_service.approve_loan(db, loan.id)
    loan_service.disburse_loan(db, loan.id, date(2026, 1, 1))

    with pytest.raises(InvalidTransition):
        loan_service.disburse_loan(db, loan.id, date(2026, 2, 1))

    assert db.query(Installment).filter(Installment.loan_id == loan.id).count() == 3
    assert loan_service.get_loan(db, loan.id).disbursement_date == date(2026, 1, 1)


def test_transitions_on_unknown_loan(db: Session) -> None:
    with pytest.raises(NotFound):
        loan_service.approve_loan(db, 404)
    with pytest.raises(NotFound):
        loan_service.disburse_loan(db, 404)


def test_loan_summary(db: Session, member: Member) -> None:
    loan = loan_service.apply_for_loan(db, member.id, Decimal("1000000"), 10, Decimal("12"))
    loan_service.approve_loan(db, loan.id)
    loan_service.disburse_loan(db, loan.id, date(2026, 1, 15))

    summary = loan_service.get_loan_summary(db, loan.id)
    assert summary["installment_count"] == 10
    assert summary["paid_count"] == 0
    assert summary["total_payable"] == Decimal("1120000.00")
    assert summary["outstanding"] == Decimal("1120000.00")
    assert summary["total_late_fees"] == Decimal("0.00")


def test_list_loans_filters(db: Session, member: Member) -> None:
    first = loan_service.apply_for_loan(db, member.id, Decimal("1000"), 3, Decimal("0"))
    second = loan_service.apply_for_loan(db, member.id, Decimal("2000"), 3, Decimal("0"))
    loan_service.approve_loan(db, second.id)

    assert [loan.id for loan in loan_service.list_loans(db, member_id=member.id)] == [second.id, first.id]
    assert [loan.id for loan in loan_service.list_loans(db, status="approved")] == [second.id]

    with pytest.raises(InvalidInput):
        loan_service.list_loans(db, status="defaulted")


def test_failed_disbursement_rolls_back_everything(db: Session, member: Member, monkeypatch: pytest.MonkeyPatch) -> None:
    loan = loan_service.apply_for_loan(db, member.id, Decimal("1000"), 3, Decimal("0"))
    loan_service.approve_loan(db, loan.id)
    loan_id = loan.id

    def failing_flush(*args, **kwargs):
        raise OperationalError("INSERT INTO installment", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "flush", failing_flush)
    with pytest.raises(StorageFailure):
        loan_service.disburse_loan(db, loan_id, date(2026, 1, 1))
    monkeypatch.undo()

    db.expire_all()
    reloaded = loan_service.get_loan(db, loan_id)
    assert reloaded.status == LoanStatus.APPROVED
    assert reloaded.disbursement_date is None
    assert db.query(Installment).filter(Installment.loan_id == loan_id).count() == 0

    # The loan can still be disbursed once storage recovers
    assert len(loan_service.disburse_loan(db, loan_id, date(2026, 1, 1)).installments) == 3


@pytest.mark.parametrize("rate", [Decimal("12.345"), Decimal("1000"), Decimal("0.001")])
def test_apply_rejects_rates_the_ledger_cannot_store(db: Session, member: Member, rate) -> None:
    with pytest.raises(InvalidInput):
        loan_service.apply_for_loan(db, member.id, Decimal("1000"), 3, rate)
    assert db.query(Loan).count() == 0


def test_apply_accepts_largest_storable_rate(db: Session, member: Member) -> None:
    loan = loan_service.apply_for_loan(db, member.id, Decimal("1000"), 3, Decimal("999.99"))
    assert loan.flat_rate_percent == Decimal("999.99")

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional
from dateutil.relativedelta import relativedelta
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from koperasi.core.audit import write_audit_log
from koperasi.core.exceptions import LedgerError, InvalidInput, InvalidTransition, NotFound, StorageFailure
from koperasi.core.money import CENTS, parse_amount, percentage_of, split_evenly, to_money
from koperasi.models.loan import Loan, LoanStatus, Installment
from koperasi.services.member import member_exists

logger = logging.getLogger(__name__)

# Largest rate the NUMERIC(5, 2) column holds
MAX_FLAT_RATE_PERCENT = Decimal("999.99")


def format_loan_number(year: int, loan_id: int) -> str:
    """Public loan identifier, e.g. PJ-2026-000042."""
    return f"PJ-{year}-{loan_id:06d}"


def parse_status(value) -> LoanStatus:
    try:
        return LoanStatus(str(getattr(value, "value", value)).strip().lower())
    except ValueError:
        raise InvalidInput(f"Loan status must be one of: {', '.join(s.value for s in LoanStatus)}")


def build_installment_schedule(
    principal,
    term_months: int,
    flat_rate_percent,
    disbursement_date: date
) -> List[Dict[str, Any]]:
    """
    Generate a flat-rate schedule of equal monthly installments.

    Interest is charged once on the principal (``principal * rate / 100``) and
    spread with it over the term. Installments are rounded down to the cent
    and the last one absorbs the remainder, so the schedule sums exactly to
    the total payable. The first installment falls due one calendar month
    after disbursement; month ends are clamped (Jan 31 -> Feb 28/29).

    Returns:
        List of dicts with ``sequence_number``, ``due_date`` and ``amount_due``.
    """
    total_payable = to_money(principal) + percentage_of(principal, flat_rate_percent)
    amounts = split_evenly(total_payable, term_months)

    return [
        {
            "sequence_number": i,
            "due_date": disbursement_date + relativedelta(months=i),
            "amount_due": amounts[i - 1],
        }
        for i in range(1, term_months + 1)
    ]


def _commit(db: Session, action: str, loan_id: int = None):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to {action} loan {loan_id}: {e}")
        raise StorageFailure(f"Could not {action} loan") from e


def _validate_terms(principal, term_months, flat_rate_percent):
    principal = parse_amount(principal)

    if isinstance(term_months, bool) or not isinstance(term_months, int) or term_months <= 0:
        raise InvalidInput("Term must be a positive number of months")

    try:
        rate = Decimal(str(flat_rate_percent if flat_rate_percent is not None else 0))
    except (InvalidOperation, ValueError):
        raise InvalidInput(f"Invalid interest rate: {flat_rate_percent}")
    if not rate.is_finite() or rate < 0:
        raise InvalidInput("Interest rate cannot be negative")
    if rate > MAX_FLAT_RATE_PERCENT:
        raise InvalidInput(f"Interest rate cannot exceed {MAX_FLAT_RATE_PERCENT}%")
    if rate != rate.quantize(CENTS):
        raise InvalidInput(f"Interest rate allows at most two decimal places: {flat_rate_percent}")

    return principal, term_months, rate


def apply_for_loan(
    db: Session,
    member_id: int,
    principal,
    term_months: int,
    flat_rate_percent=0,
    application_date: datetime = None
) -> Loan:
    """
    Create a loan in APPLICATION status.

    The loan number is derived from the creation year and the row id, so the
    row is flushed for its id and numbered before the single commit. No
    committed loan is ever without its number.
    """
    principal, term_months, rate = _validate_terms(principal, term_months, flat_rate_percent)

    if not member_exists(db, member_id):
        raise NotFound(f"Member {member_id} not found")

    loan = Loan(
        member_id=member_id,
        principal=principal,
        term_months=term_months,
        flat_rate_percent=rate,
        application_date=application_date or datetime.utcnow(),
        status=LoanStatus.APPLICATION
    )
    try:
        db.add(loan)
        db.flush()
        loan.loan_number = format_loan_number(datetime.utcnow().year, loan.id)
        db.flush()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to create loan application for member {member_id}: {e}")
        raise StorageFailure("Could not create loan application") from e
    _commit(db, "apply for", loan.id)
    db.refresh(loan)

    logger.info(f"Loan {loan.loan_number} applied for by member {member_id}: {principal} over {term_months} months at {rate}%")
    write_audit_log("loan_application", loan.loan_number, f"member={member_id} principal={principal} term={term_months} rate={rate}")
    return loan


def get_loan(db: Session, loan_id: int) -> Loan:
    loan = db.query(Loan).filter(Loan.id == loan_id).first()
    if not loan:
        raise NotFound(f"Loan {loan_id} not found")
    return loan


def _transition(db: Session, loan_id: int, expected: LoanStatus, values: dict) -> Loan:
    """Move a loan forward only if it is currently in ``expected`` status.

    The status check is part of the UPDATE itself, so two racing calls cannot
    both pass it. Must run inside the caller's transaction.
    """
    updated = db.query(Loan).filter(
        Loan.id == loan_id,
        Loan.status == expected
    ).update(values, synchronize_session=False)

    loan = db.query(Loan).populate_existing().filter(Loan.id == loan_id).first()
    if loan is None:
        raise NotFound(f"Loan {loan_id} not found")
    if updated == 0:
        raise InvalidTransition(
            f"Loan {loan.loan_number} is {loan.status.value}; expected {expected.value}"
        )
    return loan


def approve_loan(db: Session, loan_id: int) -> Loan:
    """Approve a loan that is still in APPLICATION status."""
    try:
        loan = _transition(db, loan_id, LoanStatus.APPLICATION, {
            Loan.status: LoanStatus.APPROVED,
            Loan.approval_date: datetime.utcnow(),
        })
    except LedgerError as e:
        db.rollback()
        logger.info(f"Rejected approval of loan {loan_id}: {e}")
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to approve loan {loan_id}: {e}")
        raise StorageFailure("Could not approve loan") from e
    _commit(db, "approve", loan_id)
    db.refresh(loan)

    logger.info(f"Loan {loan.loan_number} approved")
    write_audit_log("loan_approval", loan.loan_number, f"member={loan.member_id}")
    return loan


def disburse_loan(db: Session, loan_id: int, disbursement_date: date = None) -> Loan:
    """
    Disburse an APPROVED loan and generate its installment schedule.

    The status change and all installment rows commit together; a loan that
    is not APPROVED (including one already disbursed) is rejected, so the
    schedule is generated exactly once.
    """
    disbursement_date = disbursement_date or date.today()
    if isinstance(disbursement_date, datetime):
        disbursement_date = disbursement_date.date()

    try:
        loan = _transition(db, loan_id, LoanStatus.APPROVED, {
            Loan.status: LoanStatus.ACTIVE,
            Loan.disbursement_date: disbursement_date,
        })

        schedule = build_installment_schedule(
            loan.principal,
            loan.term_months,
            loan.flat_rate_percent,
            disbursement_date
        )
        db.add_all([
            Installment(
                loan_id=loan.id,
                sequence_number=row["sequence_number"],
                due_date=row["due_date"],
                amount_due=row["amount_due"],
                late_fee=Decimal("0.00")
            )
            for row in schedule
        ])
        db.flush()
    except LedgerError as e:
        db.rollback()
        logger.info(f"Rejected disbursement of loan {loan_id}: {e}")
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to disburse loan {loan_id}: {e}")
        raise StorageFailure("Could not disburse loan") from e
    _commit(db, "disburse", loan_id)
    db.refresh(loan)

    total = sum((row["amount_due"] for row in schedule), Decimal("0.00"))
    logger.info(f"Loan {loan.loan_number} disbursed on {disbursement_date}: {len(schedule)} installments totalling {total}")
    write_audit_log("loan_disbursement", loan.loan_number, f"date={disbursement_date} installments={len(schedule)} total={total}")
    return loan


def list_loans(
    db: Session,
    member_id: Optional[int] = None,
    status=None,
    limit: int = 10,
    offset: int = 0
) -> List[Loan]:
    """List loans newest first."""
    query = db.query(Loan)
    if member_id is not None:
        query = query.filter(Loan.member_id == member_id)
    if status:
        query = query.filter(Loan.status == parse_status(status))
    return query.order_by(Loan.created_at.desc(), Loan.id.desc()).limit(limit).offset(offset).all()


def get_loan_summary(db: Session, loan_id: int) -> Dict[str, Any]:
    """Loan totals: payable, paid, late fees and what is still outstanding."""
    loan = get_loan(db, loan_id)

    row = db.query(
        func.count(Installment.id).label("installment_count"),
        func.count(Installment.payment_date).label("paid_count"),
        func.sum(Installment.amount_due).label("total_payable"),
        func.sum(Installment.late_fee).label("total_late_fees"),
    ).filter(Installment.loan_id == loan.id).first()

    outstanding = db.query(func.sum(Installment.amount_due)).filter(
        Installment.loan_id == loan.id,
        Installment.payment_date.is_(None)
    ).scalar()

    return {
        "loan": loan,
        "installment_count": row.installment_count or 0,
        "paid_count": row.paid_count or 0,
        "total_payable": to_money(row.total_payable or 0),
        "total_late_fees": to_money(row.total_late_fees or 0),
        "outstanding": to_money(outstanding or 0),
    }

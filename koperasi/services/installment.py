"""Installment payment, late fees and loan closure."""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from koperasi.core.audit import write_audit_log
from koperasi.core.config import settings
from koperasi.core.exceptions import LedgerError, AlreadyPaid, InsufficientPayment, NotFound, StorageFailure
from koperasi.core.money import parse_amount, to_money
from koperasi.models.loan import Loan, LoanStatus, Installment

logger = logging.getLogger(__name__)


def compute_late_fee(amount_due, due_date: date, payment_date: date, rate=None) -> Decimal:
    """Flat penalty of ``rate`` (default 1%) of the amount due when paid after the due date.

    Paying on the due date itself is not late.
    """
    if payment_date <= due_date:
        return Decimal("0.00")
    rate = Decimal(str(rate if rate is not None else settings.LATE_FEE_RATE))
    return to_money(Decimal(str(amount_due)) * rate)


def get_installment(db: Session, installment_id: int) -> Installment:
    installment = db.query(Installment).filter(Installment.id == installment_id).first()
    if not installment:
        raise NotFound(f"Installment {installment_id} not found")
    return installment


def list_installments(db: Session, loan_id: Optional[int] = None) -> List[Installment]:
    """List installments in schedule order."""
    query = db.query(Installment)
    if loan_id is not None:
        query = query.filter(Installment.loan_id == loan_id)
    return query.order_by(Installment.loan_id, Installment.sequence_number).all()


def _settle_if_fully_paid(db: Session, loan_id: int, payment_date: date) -> bool:
    """Close the loan once no unpaid installment remains.

    Conditional on ACTIVE status, so running it twice is harmless.
    """
    remaining = db.query(func.count(Installment.id)).filter(
        Installment.loan_id == loan_id,
        Installment.payment_date.is_(None)
    ).scalar()
    if remaining:
        return False

    updated = db.query(Loan).filter(
        Loan.id == loan_id,
        Loan.status == LoanStatus.ACTIVE
    ).update({
        Loan.status: LoanStatus.SETTLED,
        Loan.settled_date: payment_date,
    }, synchronize_session=False)
    return updated > 0


def pay_installment(db: Session, installment_id: int, amount, payment_date: date = None) -> Installment:
    """
    Pay one installment in full.

    Rejects a second payment (AlreadyPaid) and any amount below what is due
    (InsufficientPayment). The owning loan row is locked first so payments on
    the same loan are serialised and the closure check sees every earlier
    payment. The payment, late fee and any closure commit together.
    """
    amount = parse_amount(amount)
    payment_date = payment_date or date.today()
    if isinstance(payment_date, datetime):
        payment_date = payment_date.date()

    settled = False
    try:
        installment = get_installment(db, installment_id)
        if installment.payment_date is not None:
            raise AlreadyPaid(f"Installment {installment.sequence_number} of loan {installment.loan_id} was paid on {installment.payment_date}")
        if amount < installment.amount_due:
            raise InsufficientPayment(f"Payment {amount} is below the amount due {installment.amount_due}")

        db.query(Loan).filter(Loan.id == installment.loan_id).with_for_update().first()

        late_fee = compute_late_fee(installment.amount_due, installment.due_date, payment_date)
        updated = db.query(Installment).filter(
            Installment.id == installment.id,
            Installment.payment_date.is_(None)
        ).update({
            Installment.payment_date: payment_date,
            Installment.amount_paid: amount,
            Installment.late_fee: late_fee,
        }, synchronize_session=False)
        if updated == 0:
            raise AlreadyPaid(f"Installment {installment.sequence_number} of loan {installment.loan_id} is already paid")

        settled = _settle_if_fully_paid(db, installment.loan_id, payment_date)
        db.commit()
    except LedgerError as e:
        db.rollback()
        logger.info(f"Rejected payment of {amount} for installment {installment_id}: {e}")
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to pay installment {installment_id}: {e}")
        raise StorageFailure("Could not record installment payment") from e

    db.refresh(installment)
    logger.info(
        f"Installment {installment.sequence_number} of loan {installment.loan_id} paid "
        f"{amount} on {payment_date}, late fee {installment.late_fee}"
    )
    write_audit_log(
        "installment_payment",
        f"loan:{installment.loan_id}",
        f"installment={installment.sequence_number} amount={amount} late_fee={installment.late_fee}"
    )
    if settled:
        logger.info(f"Loan {installment.loan_id} settled")
        write_audit_log("loan_settlement", f"loan:{installment.loan_id}", f"date={payment_date}")
    return installment

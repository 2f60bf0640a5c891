from sqlalchemy import Column, String, ForeignKey, DateTime, Date, Integer, Numeric, UniqueConstraint, text, func
from sqlalchemy.orm import relationship
from koperasi.db.base import Base
from koperasi.db.types import Money, enum_type
import enum
from decimal import Decimal


class LoanStatus(str, enum.Enum):
    """Loan status. Transitions only move forward, one step at a time."""
    APPLICATION = "application"
    APPROVED = "approved"
    ACTIVE = "active"
    SETTLED = "settled"


class Loan(Base):
    """Loan from application through settlement."""
    __tablename__ = "loan"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey("member.id"), nullable=False, index=True)
    loan_number = Column(String(64), nullable=True, unique=True, index=True)  # PJ-<year>-<000123>, set in the creating transaction
    application_date = Column(DateTime, nullable=False)
    approval_date = Column(DateTime, nullable=True)
    disbursement_date = Column(Date, nullable=True)
    settled_date = Column(Date, nullable=True)
    principal = Column(Money, nullable=False)
    term_months = Column(Integer, nullable=False)
    flat_rate_percent = Column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    status = Column(enum_type(LoanStatus), default=LoanStatus.APPLICATION, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

    # Relationships
    member = relationship("Member", back_populates="loans")
    installments = relationship("Installment", back_populates="loan", order_by="Installment.sequence_number")


class Installment(Base):
    """Scheduled repayment unit of a disbursed loan.

    ``payment_date`` is NULL until paid; once set, it, ``amount_paid`` and
    ``late_fee`` are never changed.
    """
    __tablename__ = "installment"

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_id = Column(Integer, ForeignKey("loan.id"), nullable=False, index=True)
    sequence_number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    amount_due = Column(Money, nullable=False)
    payment_date = Column(Date, nullable=True)
    amount_paid = Column(Money, nullable=True)
    late_fee = Column(Money, nullable=False, default=Decimal("0.00"))
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    loan = relationship("Loan", back_populates="installments")

    __table_args__ = (
        UniqueConstraint("loan_id", "sequence_number", name="uq_installment_loan_sequence"),
    )

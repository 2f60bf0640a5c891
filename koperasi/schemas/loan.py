from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from koperasi.models.loan import LoanStatus


class LoanApply(BaseModel):
    """Schema for a loan application."""
    member_id: int = Field(..., description="Applicant member ID")
    principal: Decimal = Field(..., gt=0, decimal_places=2, description="Loan principal")
    term_months: int = Field(..., gt=0, description="Number of monthly installments")
    flat_rate_percent: Decimal = Field(Decimal("0"), ge=0, le=Decimal("999.99"), decimal_places=2, description="Flat interest charged once on the principal, in percent")
    application_date: Optional[datetime] = Field(None, description="Application date (defaults to now)")


class LoanDisburse(BaseModel):
    """Optional disbursement details."""
    disbursement_date: Optional[date] = Field(None, description="Disbursement date (defaults to today)")


class LoanResponse(BaseModel):
    """Schema for loan response."""
    id: int
    member_id: int
    loan_number: str
    application_date: datetime
    approval_date: Optional[datetime] = None
    disbursement_date: Optional[date] = None
    settled_date: Optional[date] = None
    principal: Decimal
    term_months: int
    flat_rate_percent: Decimal
    status: LoanStatus
    created_at: datetime

    class Config:
        from_attributes = True


class LoanDetailResponse(LoanResponse):
    """Loan with repayment totals."""
    installment_count: int
    paid_count: int
    total_payable: Decimal
    total_late_fees: Decimal
    outstanding: Decimal


class LoanListResponse(BaseModel):
    data: List[LoanResponse]
    page: int
    limit: int


class InstallmentResponse(BaseModel):
    """Schema for installment response."""
    id: int
    loan_id: int
    sequence_number: int
    due_date: date
    amount_due: Decimal
    payment_date: Optional[date] = None
    amount_paid: Optional[Decimal] = None
    late_fee: Decimal

    class Config:
        from_attributes = True


class InstallmentListResponse(BaseModel):
    data: List[InstallmentResponse]


class InstallmentPay(BaseModel):
    """Schema for paying an installment."""
    amount: Decimal = Field(..., gt=0, decimal_places=2, description="Amount paid, at least the amount due")
    payment_date: Optional[date] = Field(None, description="Payment date (defaults to today)")


class InstallmentPayResponse(BaseModel):
    installment: InstallmentResponse
    loan_status: LoanStatus

from fastapi import APIRouter, Depends, Body
from sqlalchemy.orm import Session
from koperasi.db.base import get_db
from koperasi.core.dependencies import Pagination, get_pagination
from koperasi.schemas.loan import LoanApply, LoanDisburse, LoanResponse, LoanDetailResponse, LoanListResponse
from koperasi.services import loan as loan_service
from typing import Optional

router = APIRouter(prefix="/api/loans", tags=["loans"])


@router.get("", response_model=LoanListResponse)
def list_loans(
    member_id: Optional[int] = None,
    status: Optional[str] = None,
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db)
):
    """List loans newest first, filtered by member and/or status."""
    loans = loan_service.list_loans(
        db,
        member_id=member_id,
        status=status,
        limit=pagination.limit,
        offset=pagination.offset
    )
    return {"data": loans, "page": pagination.page, "limit": pagination.limit}


@router.post("/apply", response_model=LoanResponse, status_code=201)
def apply_for_loan(payload: LoanApply, db: Session = Depends(get_db)):
    """Submit a loan application."""
    return loan_service.apply_for_loan(
        db,
        member_id=payload.member_id,
        principal=payload.principal,
        term_months=payload.term_months,
        flat_rate_percent=payload.flat_rate_percent,
        application_date=payload.application_date
    )


@router.get("/{loan_id}", response_model=LoanDetailResponse)
def get_loan(loan_id: int, db: Session = Depends(get_db)):
    """Loan detail with repayment totals."""
    summary = loan_service.get_loan_summary(db, loan_id)
    loan = summary.pop("loan")
    return {**LoanResponse.model_validate(loan).model_dump(), **summary}


@router.post("/{loan_id}/approve", response_model=LoanResponse)
def approve_loan(loan_id: int, db: Session = Depends(get_db)):
    """Approve a loan application."""
    return loan_service.approve_loan(db, loan_id)


@router.post("/{loan_id}/disburse", response_model=LoanResponse)
def disburse_loan(
    loan_id: int,
    payload: Optional[LoanDisburse] = Body(None),
    db: Session = Depends(get_db)
):
    """Disburse an approved loan and generate its installment schedule."""
    disbursement_date = payload.disbursement_date if payload else None
    return loan_service.disburse_loan(db, loan_id, disbursement_date=disbursement_date)

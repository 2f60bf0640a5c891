from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from koperasi.db.base import get_db
from koperasi.schemas.loan import InstallmentListResponse, InstallmentPay, InstallmentPayResponse
from koperasi.services import installment as installment_service
from typing import Optional

router = APIRouter(prefix="/api/installments", tags=["installments"])


@router.get("", response_model=InstallmentListResponse)
def list_installments(loan_id: Optional[int] = None, db: Session = Depends(get_db)):
    """List installments in schedule order, optionally for one loan."""
    return {"data": installment_service.list_installments(db, loan_id=loan_id)}


@router.post("/{installment_id}/pay", response_model=InstallmentPayResponse)
def pay_installment(installment_id: int, payload: InstallmentPay, db: Session = Depends(get_db)):
    """Pay an installment in full. Settles the loan when it was the last one unpaid."""
    installment = installment_service.pay_installment(
        db,
        installment_id,
        amount=payload.amount,
        payment_date=payload.payment_date
    )
    return {"installment": installment, "loan_status": installment.loan.status}

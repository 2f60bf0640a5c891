from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from koperasi.db.base import get_db
from koperasi.core.dependencies import Pagination, get_pagination
from koperasi.models.ledger import SavingsCategory, MovementKind
from koperasi.schemas.savings import MovementCreate, MovementResponse, MovementListResponse, BalancesResponse
from koperasi.services import savings as savings_service
from typing import Optional

router = APIRouter(prefix="/api/savings", tags=["savings"])


def _balances_response(member_id: int, balances: dict) -> BalancesResponse:
    return BalancesResponse(
        member_id=member_id,
        mandatory=balances[SavingsCategory.MANDATORY],
        voluntary=balances[SavingsCategory.VOLUNTARY],
        special=balances[SavingsCategory.SPECIAL],
    )


@router.get("", response_model=MovementListResponse)
def list_savings_movements(
    member_id: Optional[int] = None,
    category: Optional[str] = None,
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db)
):
    """List savings movements newest first, filtered by member and/or category."""
    movements = savings_service.list_movements(
        db,
        member_id=member_id,
        category=category,
        limit=pagination.limit,
        offset=pagination.offset
    )

    balances = None
    if member_id is not None:
        balances = _balances_response(member_id, savings_service.query_balances(db, member_id))

    return {
        "data": movements,
        "page": pagination.page,
        "limit": pagination.limit,
        "balances": balances,
    }


@router.post("/deposit", response_model=MovementResponse, status_code=201)
def post_deposit(payload: MovementCreate, db: Session = Depends(get_db)):
    """Record a deposit."""
    return savings_service.record_movement(
        db,
        member_id=payload.member_id,
        category=payload.category,
        kind=MovementKind.DEPOSIT,
        amount=payload.amount,
        movement_date=payload.date
    )


@router.post("/withdrawal", response_model=MovementResponse, status_code=201)
def post_withdrawal(payload: MovementCreate, db: Session = Depends(get_db)):
    """Record a withdrawal; rejected if it exceeds the category balance."""
    return savings_service.record_movement(
        db,
        member_id=payload.member_id,
        category=payload.category,
        kind=MovementKind.WITHDRAWAL,
        amount=payload.amount,
        movement_date=payload.date
    )


@router.get("/balances/{member_id}", response_model=BalancesResponse)
def get_balances(member_id: int, db: Session = Depends(get_db)):
    """Current balance per category for a member."""
    return _balances_response(member_id, savings_service.query_balances(db, member_id))

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from koperasi.db.base import get_db
from koperasi.core.dependencies import Pagination, get_pagination
from koperasi.core.exceptions import InvalidInput
from koperasi.models.member import MemberStatus
from koperasi.schemas.member import (
    MemberCreate,
    MemberUpdate,
    MemberResponse,
    MemberDetailResponse,
    MemberListResponse,
)
from koperasi.services import member as member_service
from typing import Optional

router = APIRouter(prefix="/api/members", tags=["members"])


@router.get("", response_model=MemberListResponse)
def list_members(
    status: Optional[str] = None,
    q: Optional[str] = None,
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db)
):
    """List members newest first; ``q`` searches name, NIK and member number."""
    status_filter = None
    if status:
        try:
            status_filter = MemberStatus(status.strip().lower())
        except ValueError:
            raise InvalidInput(f"Unknown member status: {status}")

    members = member_service.list_members(
        db,
        status=status_filter,
        q=q.strip() if q else None,
        limit=pagination.limit,
        offset=pagination.offset
    )
    return {"data": members, "page": pagination.page, "limit": pagination.limit}


@router.post("", response_model=MemberResponse, status_code=201)
def register_member(payload: MemberCreate, db: Session = Depends(get_db)):
    """Register a new member (status pending)."""
    return member_service.register_member(db, **payload.model_dump())


@router.get("/{member_id}", response_model=MemberDetailResponse)
def get_member(member_id: int, db: Session = Depends(get_db)):
    """Member with activity history."""
    member = member_service.get_member(db, member_id)
    return {"data": member, "activities": member.activities}


@router.put("/{member_id}", response_model=MemberResponse)
def update_member(member_id: int, payload: MemberUpdate, db: Session = Depends(get_db)):
    """Update member profile fields."""
    return member_service.update_member(db, member_id, **payload.model_dump(exclude_unset=True))


@router.post("/{member_id}/verify", response_model=MemberResponse)
def verify_member(member_id: int, db: Session = Depends(get_db)):
    return member_service.verify_member(db, member_id)


@router.post("/{member_id}/activate", response_model=MemberResponse)
def activate_member(member_id: int, db: Session = Depends(get_db)):
    return member_service.activate_member(db, member_id)

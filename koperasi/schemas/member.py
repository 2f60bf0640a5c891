from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from koperasi.models.member import MemberStatus


class MemberCreate(BaseModel):
    member_number: str = Field(..., min_length=1, description="Unique member number")
    name: str = Field(..., min_length=1)
    nik: str = Field(..., min_length=1, description="National identity number")
    address: Optional[str] = None
    phone: Optional[str] = None
    joined_date: Optional[date] = Field(None, description="Join date (defaults to today)")


class MemberUpdate(BaseModel):
    member_number: Optional[str] = None
    name: Optional[str] = None
    nik: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = Field(None, description="pending, verified or active")
    joined_date: Optional[date] = None


class MemberResponse(BaseModel):
    id: int
    member_number: str
    name: str
    nik: str
    address: Optional[str] = None
    phone: Optional[str] = None
    status: MemberStatus
    joined_date: date
    created_at: datetime

    class Config:
        from_attributes = True


class MemberActivityResponse(BaseModel):
    id: int
    action: str
    note: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MemberDetailResponse(BaseModel):
    data: MemberResponse
    activities: List[MemberActivityResponse]


class MemberListResponse(BaseModel):
    data: List[MemberResponse]
    page: int
    limit: int

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Union
from datetime import date as date_type, datetime
from decimal import Decimal
from koperasi.models.ledger import SavingsCategory, MovementKind


class MovementCreate(BaseModel):
    """Schema for posting a deposit or withdrawal."""
    member_id: int = Field(..., description="Member ID")
    category: SavingsCategory = Field(..., description="Savings category: mandatory, voluntary, special")
    amount: Decimal = Field(..., gt=0, decimal_places=2, description="Movement amount")
    date: Optional[Union[datetime, date_type]] = Field(
        None,
        description="Movement timestamp, or a plain YYYY-MM-DD date meaning 'on that day' (defaults to now)"
    )

    @field_validator("date", mode="before")
    @classmethod
    def keep_plain_dates(cls, value):
        # "2026-10-19" must stay a date rather than become midnight
        if isinstance(value, str) and len(value.strip()) == 10:
            try:
                return date_type.fromisoformat(value.strip())
            except ValueError:
                return value
        return value


class MovementResponse(BaseModel):
    """Schema for a savings movement."""
    id: int
    member_id: int
    category: SavingsCategory
    kind: MovementKind
    movement_date: datetime
    amount: Decimal
    balance_after: Decimal
    created_at: datetime

    class Config:
        from_attributes = True


class BalancesResponse(BaseModel):
    """Current balance per category."""
    member_id: int
    mandatory: Decimal
    voluntary: Decimal
    special: Decimal


class MovementListResponse(BaseModel):
    """Paginated movements, newest first. Balances are included when filtering by member."""
    data: List[MovementResponse]
    page: int
    limit: int
    balances: Optional[BalancesResponse] = None

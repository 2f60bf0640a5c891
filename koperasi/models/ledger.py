from sqlalchemy import Column, ForeignKey, DateTime, Integer, Index, UniqueConstraint, text, func
from sqlalchemy.orm import relationship
from koperasi.db.base import Base
from koperasi.db.types import Money, enum_type
import enum
from decimal import Decimal


class SavingsCategory(str, enum.Enum):
    """Savings category, each tracked independently per member."""
    MANDATORY = "mandatory"
    VOLUNTARY = "voluntary"
    SPECIAL = "special"


class MovementKind(str, enum.Enum):
    """Savings movement kind."""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class SavingsMovement(Base):
    """Append-only savings movement carrying the post-movement balance."""
    __tablename__ = "savings_movement"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey("member.id"), nullable=False, index=True)
    category = Column(enum_type(SavingsCategory), nullable=False)
    kind = Column(enum_type(MovementKind), nullable=False)
    movement_date = Column(DateTime, nullable=False)
    amount = Column(Money, nullable=False)
    balance_after = Column(Money, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    member = relationship("Member", back_populates="savings_movements")

    # Index for latest-balance lookups
    __table_args__ = (
        Index("idx_savings_movement_key_date", "member_id", "category", "movement_date", "id"),
    )


class SavingsBalance(Base):
    """Current balance per (member, category), written with every movement.

    ``version`` is bumped on each movement and used as the compare-and-set
    token that serialises writers on the same key.
    """
    __tablename__ = "savings_balance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey("member.id"), nullable=False, index=True)
    category = Column(enum_type(SavingsCategory), nullable=False)
    balance = Column(Money, nullable=False, default=Decimal("0.00"))
    last_movement_date = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("member_id", "category", name="uq_savings_balance_member_category"),
    )

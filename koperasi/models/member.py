from sqlalchemy import Column, String, ForeignKey, DateTime, Date, Integer, text, func
from sqlalchemy.orm import relationship
from koperasi.db.base import Base
from koperasi.db.types import enum_type
import enum


class MemberStatus(str, enum.Enum):
    """Member status enum."""
    PENDING = "pending"
    VERIFIED = "verified"
    ACTIVE = "active"


class Member(Base):
    """Cooperative member."""
    __tablename__ = "member"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_number = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(128), nullable=False)
    nik = Column(String(32), nullable=False)  # National identity number
    address = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)
    status = Column(enum_type(MemberStatus), default=MemberStatus.PENDING, nullable=False)
    joined_date = Column(Date, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

    # Relationships
    activities = relationship("MemberActivity", back_populates="member", order_by="desc(MemberActivity.id)")
    savings_movements = relationship("SavingsMovement", back_populates="member")
    loans = relationship("Loan", back_populates="member")


class MemberActivity(Base):
    """Registration, verification and activation history."""
    __tablename__ = "member_activity"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey("member.id"), nullable=False, index=True)
    action = Column(String(64), nullable=False)  # registered | verified | activated | updated
    note = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    member = relationship("Member", back_populates="activities")

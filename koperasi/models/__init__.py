from koperasi.db.base import Base

# Import all models so Alembic can detect them
from koperasi.models.member import Member, MemberActivity, MemberStatus
from koperasi.models.ledger import (
    SavingsMovement,
    SavingsBalance,
    SavingsCategory,
    MovementKind,
)
from koperasi.models.loan import Loan, LoanStatus, Installment
from koperasi.models.system import SystemSetting

__all__ = [
    "Base",
    "Member",
    "MemberActivity",
    "MemberStatus",
    "SavingsMovement",
    "SavingsBalance",
    "SavingsCategory",
    "MovementKind",
    "Loan",
    "LoanStatus",
    "Installment",
    "SystemSetting",
]

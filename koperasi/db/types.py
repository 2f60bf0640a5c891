"""Custom SQLAlchemy column types shared by the ledger models."""
from decimal import Decimal
from sqlalchemy import Numeric, Enum as SQLEnum
from sqlalchemy.types import TypeDecorator
from koperasi.core.money import CENTS, to_money


class Money(TypeDecorator):
    """NUMERIC(15, 2) that always binds and returns two-place Decimals.

    SQLite stores NUMERIC as floating point, so values are re-quantized when
    read back to keep amounts comparable across dialects.
    """
    impl = Numeric(15, 2)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return to_money(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(str(value)).quantize(CENTS)


def enum_type(enum_cls, length: int = 20) -> SQLEnum:
    """Store a str-valued enum by its lowercase value, not its member name."""
    return SQLEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda obj: [e.value for e in obj],
    )

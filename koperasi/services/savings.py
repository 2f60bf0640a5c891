import logging
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Union
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from koperasi.core.audit import write_audit_log
from koperasi.core.exceptions import LedgerError, InvalidInput, InsufficientBalance, NotFound, StorageFailure
from koperasi.core.money import parse_amount
from koperasi.models.ledger import SavingsMovement, SavingsBalance, SavingsCategory, MovementKind
from koperasi.services.member import member_exists

logger = logging.getLogger(__name__)

# Attempts before a movement that keeps losing the compare-and-set gives up
MAX_POST_ATTEMPTS = 5


class _StaleBalance(Exception):
    """Another movement on the same key committed between read and write."""


def parse_category(value) -> SavingsCategory:
    """Accept an enum member or its (case-insensitive) string value."""
    try:
        return SavingsCategory(str(getattr(value, "value", value)).strip().lower())
    except ValueError:
        raise InvalidInput(f"Category must be one of: {', '.join(c.value for c in SavingsCategory)}")


def parse_kind(value) -> MovementKind:
    try:
        return MovementKind(str(getattr(value, "value", value)).strip().lower())
    except ValueError:
        raise InvalidInput(f"Movement kind must be one of: {', '.join(k.value for k in MovementKind)}")


def _resolve_movement_date(requested, last_movement_date: Optional[datetime]) -> datetime:
    """Timestamp for a movement given the key's latest movement.

    Undated movements are stamped now, never earlier than the latest movement.
    A plain date means "on that day": the start of the day (now, for today),
    moved up to the latest movement when that falls on the same day. Explicit
    datetimes are taken as given. Anything before the latest movement is
    rejected.
    """
    now = datetime.utcnow()
    if requested is None:
        resolved = now
    elif isinstance(requested, datetime):
        if last_movement_date and requested < last_movement_date:
            raise InvalidInput(
                f"Movement date {requested.isoformat()} is before the latest "
                f"movement ({last_movement_date.isoformat()})"
            )
        return requested
    else:
        if last_movement_date and requested < last_movement_date.date():
            raise InvalidInput(
                f"Movement date {requested.isoformat()} is before the latest "
                f"movement ({last_movement_date.isoformat()})"
            )
        resolved = now if requested == now.date() else datetime.combine(requested, time.min)

    if last_movement_date and resolved < last_movement_date:
        resolved = last_movement_date
    return resolved


def _append_movement(
    db: Session,
    member_id: int,
    category: SavingsCategory,
    kind: MovementKind,
    amount: Decimal,
    requested_date
) -> SavingsMovement:
    """Read the current balance, apply the movement and append it.

    Runs inside the caller's transaction. The balance row is locked where the
    dialect supports SELECT ... FOR UPDATE; the versioned UPDATE below is the
    guard that holds on every dialect. The movement timestamp is resolved
    after the read so a retried movement is stamped against the balance it
    actually applies to.
    """
    account = db.query(SavingsBalance).filter(
        SavingsBalance.member_id == member_id,
        SavingsBalance.category == category
    ).with_for_update().first()

    if account is None:
        # First movement for this key; nothing to withdraw from
        if kind == MovementKind.WITHDRAWAL:
            raise InsufficientBalance(f"Insufficient {category.value} balance: 0.00 available, {amount} requested")
        new_balance = amount
        movement_date = _resolve_movement_date(requested_date, None)
        db.add(SavingsBalance(
            member_id=member_id,
            category=category,
            balance=new_balance,
            last_movement_date=movement_date,
            version=1
        ))
        db.flush()
    else:
        previous_balance = account.balance
        if kind == MovementKind.DEPOSIT:
            new_balance = previous_balance + amount
        else:
            if amount > previous_balance:
                raise InsufficientBalance(
                    f"Insufficient {category.value} balance: {previous_balance} available, {amount} requested"
                )
            new_balance = previous_balance - amount

        movement_date = _resolve_movement_date(requested_date, account.last_movement_date)

        updated = db.query(SavingsBalance).filter(
            SavingsBalance.id == account.id,
            SavingsBalance.version == account.version
        ).update({
            SavingsBalance.balance: new_balance,
            SavingsBalance.version: account.version + 1,
            SavingsBalance.last_movement_date: movement_date,
        }, synchronize_session=False)
        if updated == 0:
            raise _StaleBalance()

    movement = SavingsMovement(
        member_id=member_id,
        category=category,
        kind=kind,
        movement_date=movement_date,
        amount=amount,
        balance_after=new_balance
    )
    db.add(movement)
    db.flush()
    return movement


def record_movement(
    db: Session,
    member_id: int,
    category,
    kind,
    amount,
    movement_date: Union[datetime, date, None] = None
) -> SavingsMovement:
    """
    Record a deposit or withdrawal and return the appended movement.

    The balance read and the movement insert commit together; a withdrawal
    larger than the current balance raises InsufficientBalance and writes
    nothing. ``movement_date`` may be a datetime, a plain date or None (now).
    """
    category = parse_category(category)
    kind = parse_kind(kind)
    amount = parse_amount(amount)

    if not member_exists(db, member_id):
        raise NotFound(f"Member {member_id} not found")

    if isinstance(movement_date, datetime) and movement_date.tzinfo is not None:
        movement_date = movement_date.astimezone(timezone.utc).replace(tzinfo=None)

    for attempt in range(1, MAX_POST_ATTEMPTS + 1):
        try:
            movement = _append_movement(db, member_id, category, kind, amount, movement_date)
            db.commit()
        except (_StaleBalance, IntegrityError):
            # Lost the race for this (member, category); re-read and try again
            db.rollback()
            logger.info(f"Retrying {kind.value} for member {member_id} ({category.value}), attempt {attempt}")
            continue
        except LedgerError as e:
            db.rollback()
            logger.info(f"Rejected {kind.value} of {amount} for member {member_id} ({category.value}): {e}")
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to record {kind.value} for member {member_id}: {e}")
            raise StorageFailure(f"Could not record {kind.value}") from e

        db.refresh(movement)
        logger.info(
            f"Recorded {kind.value} of {amount} for member {member_id} "
            f"({category.value}), balance {movement.balance_after}"
        )
        write_audit_log(
            f"savings_{kind.value}",
            f"member:{member_id}",
            f"category={category.value} amount={amount} balance_after={movement.balance_after}"
        )
        return movement

    raise StorageFailure(f"Savings balance for member {member_id} ({category.value}) kept changing; retry the request")


def deposit(db: Session, member_id: int, category, amount, movement_date: Union[datetime, date, None] = None) -> SavingsMovement:
    return record_movement(db, member_id, category, MovementKind.DEPOSIT, amount, movement_date)


def withdraw(db: Session, member_id: int, category, amount, movement_date: Union[datetime, date, None] = None) -> SavingsMovement:
    return record_movement(db, member_id, category, MovementKind.WITHDRAWAL, amount, movement_date)


def query_balances(db: Session, member_id: int) -> Dict[SavingsCategory, Decimal]:
    """Current balance for each category (0.00 where nothing was posted)."""
    if not member_exists(db, member_id):
        raise NotFound(f"Member {member_id} not found")

    balances = {category: Decimal("0.00") for category in SavingsCategory}
    rows = db.query(SavingsBalance).filter(SavingsBalance.member_id == member_id).all()
    for row in rows:
        balances[row.category] = row.balance
    return balances


def list_movements(
    db: Session,
    member_id: Optional[int] = None,
    category=None,
    limit: int = 10,
    offset: int = 0
) -> List[SavingsMovement]:
    """List movements newest first by (date, id)."""
    query = db.query(SavingsMovement)
    if member_id is not None:
        query = query.filter(SavingsMovement.member_id == member_id)
    if category:
        query = query.filter(SavingsMovement.category == parse_category(category))
    return query.order_by(
        SavingsMovement.movement_date.desc(),
        SavingsMovement.id.desc()
    ).limit(limit).offset(offset).all()

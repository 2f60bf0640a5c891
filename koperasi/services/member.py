import logging
from datetime import date
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from koperasi.core.exceptions import NotFound, InvalidInput, StorageFailure
from koperasi.models.member import Member, MemberActivity, MemberStatus
from typing import Optional, List

logger = logging.getLogger(__name__)


def member_exists(db: Session, member_id: int) -> bool:
    """Existence check consumed by the savings ledger and loan lifecycle."""
    return db.query(Member.id).filter(Member.id == member_id).first() is not None


def get_member(db: Session, member_id: int) -> Member:
    member = db.query(Member).filter(Member.id == member_id).first()
    if not member:
        raise NotFound(f"Member {member_id} not found")
    return member


def list_members(
    db: Session,
    status: Optional[MemberStatus] = None,
    q: Optional[str] = None,
    limit: int = 10,
    offset: int = 0
) -> List[Member]:
    """List members newest first, optionally filtered by status and a search term."""
    query = db.query(Member)
    if status:
        query = query.filter(Member.status == status)
    if q:
        pattern = f"%{q}%"
        query = query.filter(or_(
            Member.name.ilike(pattern),
            Member.nik.ilike(pattern),
            Member.member_number.ilike(pattern),
        ))
    return query.order_by(Member.created_at.desc(), Member.id.desc()).limit(limit).offset(offset).all()


def _commit(db: Session, action: str):
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise InvalidInput("Member number already registered") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to {action} member: {e}")
        raise StorageFailure(f"Could not {action} member") from e


def register_member(
    db: Session,
    member_number: str,
    name: str,
    nik: str,
    address: str = None,
    phone: str = None,
    joined_date: date = None
) -> Member:
    """Register a member in PENDING status and record the activity."""
    if not member_number or not member_number.strip():
        raise InvalidInput("Member number is required")

    member = Member(
        member_number=member_number.strip(),
        name=name,
        nik=nik,
        address=address,
        phone=phone,
        status=MemberStatus.PENDING,
        joined_date=joined_date or date.today()
    )
    db.add(member)
    try:
        db.flush()
    except IntegrityError as e:
        db.rollback()
        raise InvalidInput(f"Member number {member_number} already registered") from e

    db.add(MemberActivity(member_id=member.id, action="registered", note="Member registration"))
    _commit(db, "register")
    db.refresh(member)
    logger.info(f"Registered member {member.member_number} (id={member.id})")
    return member


def update_member(db: Session, member_id: int, **fields) -> Member:
    """Update profile fields. Status is only accepted if it is a known value."""
    member = get_member(db, member_id)
    changed = []

    for key in ("member_number", "name", "nik", "address", "phone", "joined_date"):
        value = fields.get(key)
        if value is not None and value != getattr(member, key):
            setattr(member, key, value)
            changed.append(key)

    status = fields.get("status")
    if status is not None:
        try:
            new_status = MemberStatus(str(getattr(status, "value", status)).lower())
        except ValueError:
            raise InvalidInput(f"Unknown member status: {status}")
        if new_status != member.status:
            changed.append(f"status={new_status.value}")
            member.status = new_status

    if changed:
        db.add(MemberActivity(member_id=member.id, action="updated", note=f"Updated {', '.join(changed)}"))
    _commit(db, "update")
    db.refresh(member)
    return member


def _set_status(db: Session, member_id: int, new_status: MemberStatus, action: str, note: str) -> Member:
    member = get_member(db, member_id)
    member.status = new_status
    db.add(MemberActivity(member_id=member.id, action=action, note=note))
    _commit(db, action)
    db.refresh(member)
    logger.info(f"Member {member.member_number} {action}")
    return member


def verify_member(db: Session, member_id: int) -> Member:
    """Mark a member as VERIFIED."""
    return _set_status(db, member_id, MemberStatus.VERIFIED, "verified", "Member verification")


def activate_member(db: Session, member_id: int) -> Member:
    """Mark a member as ACTIVE."""
    return _set_status(db, member_id, MemberStatus.ACTIVE, "activated", "Member activation")

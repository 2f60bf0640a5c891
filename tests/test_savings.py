from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy.orm import Session

from koperasi.core.config import settings
from koperasi.core.exceptions import InsufficientBalance, InvalidInput, NotFound, StorageFailure
from koperasi.models.ledger import MovementKind, SavingsCategory, SavingsMovement
from koperasi.models.member import Member
from koperasi.services import savings as savings_service


def test_balance_after_chains_deposits_and_withdrawals(db: Session, member: Member) -> None:
    start = datetime(2026, 3, 1, 9, 0)
    m1 = savings_service.deposit(db, member.id, "voluntary", Decimal("1000.00"), start)
    m2 = savings_service.withdraw(db, member.id, SavingsCategory.VOLUNTARY, "250.50", start + timedelta(days=1))
    m3 = savings_service.deposit(db, member.id, "VOLUNTARY", 100, start + timedelta(days=2))

    assert m1.balance_after == Decimal("1000.00")
    assert m2.balance_after == Decimal("749.50")
    assert m3.balance_after == Decimal("849.50")
    assert m2.kind == MovementKind.WITHDRAWAL

    balances = savings_service.query_balances(db, member.id)
    assert balances[SavingsCategory.VOLUNTARY] == Decimal("849.50")


def test_categories_are_independent(db: Session, member: Member) -> None:
    savings_service.deposit(db, member.id, SavingsCategory.MANDATORY, Decimal("50000.00"))
    savings_service.deposit(db, member.id, SavingsCategory.SPECIAL, Decimal("10.00"))

    balances = savings_service.query_balances(db, member.id)
    assert balances == {
        SavingsCategory.MANDATORY: Decimal("50000.00"),
        SavingsCategory.VOLUNTARY: Decimal("0.00"),
        SavingsCategory.SPECIAL: Decimal("10.00"),
    }

    with pytest.raises(InsufficientBalance):
        savings_service.withdraw(db, member.id, SavingsCategory.VOLUNTARY, Decimal("1.00"))


def test_overdraft_is_rejected_and_writes_nothing(db: Session, member: Member) -> None:
    savings_service.deposit(db, member.id, SavingsCategory.VOLUNTARY, Decimal("100.00"))

    with pytest.raises(InsufficientBalance):
        savings_service.withdraw(db, member.id, SavingsCategory.VOLUNTARY, Decimal("100.01"))

    assert db.query(SavingsMovement).count() == 1
    assert savings_service.query_balances(db, member.id)[SavingsCategory.VOLUNTARY] == Decimal("100.00")

    # Withdrawing the exact balance is allowed
    movement = savings_service.withdraw(db, member.id, SavingsCategory.VOLUNTARY, Decimal("100.00"))
    assert movement.balance_after == Decimal("0.00")


@pytest.mark.parametrize("amount", [0, "-5", "abc", None])
def test_non_positive_or_malformed_amount_is_invalid(db: Session, member: Member, amount) -> None:
    with pytest.raises(InvalidInput):
        savings_service.deposit(db, member.id, SavingsCategory.VOLUNTARY, amount)
    assert db.query(SavingsMovement).count() == 0


def test_unknown_category_is_invalid(db: Session, member: Member) -> None:
    with pytest.raises(InvalidInput):
        savings_service.deposit(db, member.id, "holiday", Decimal("10.00"))


def test_unknown_member_is_not_found(db: Session) -> None:
    with pytest.raises(NotFound):
        savings_service.deposit(db, 999, SavingsCategory.VOLUNTARY, Decimal("10.00"))
    with pytest.raises(NotFound):
        savings_service.query_balances(db, 999)


def test_backdated_movement_is_rejected(db: Session, member: Member) -> None:
    savings_service.deposit(db, member.id, SavingsCategory.MANDATORY, Decimal("10.00"), datetime(2026, 3, 10))

    with pytest.raises(InvalidInput):
        savings_service.deposit(db, member.id, SavingsCategory.MANDATORY, Decimal("10.00"), datetime(2026, 3, 1))

    # Same timestamp is not backdated
    movement = savings_service.deposit(db, member.id, SavingsCategory.MANDATORY, Decimal("5.00"), datetime(2026, 3, 10))
    assert movement.balance_after == Decimal("15.00")


def test_timezone_aware_dates_are_stored_as_utc(db: Session, member: Member) -> None:
    jakarta = timezone(timedelta(hours=7))
    movement = savings_service.deposit(
        db, member.id, SavingsCategory.SPECIAL, Decimal("1.00"), datetime(2026, 3, 10, 8, 0, tzinfo=jakarta)
    )
    assert movement.movement_date == datetime(2026, 3, 10, 1, 0)


def test_list_movements_newest_first(db: Session, member: Member) -> None:
    for day in (1, 2, 3):
        savings_service.deposit(db, member.id, SavingsCategory.VOLUNTARY, Decimal("10.00"), datetime(2026, 4, day))
    savings_service.deposit(db, member.id, SavingsCategory.MANDATORY, Decimal("10.00"), datetime(2026, 4, 2))

    movements = savings_service.list_movements(db, member_id=member.id, category="voluntary")
    assert [m.movement_date.day for m in movements] == [3, 2, 1]
    assert [m.balance_after for m in movements] == [Decimal("30.00"), Decimal("20.00"), Decimal("10.00")]

    page = savings_service.list_movements(db, member_id=member.id, limit=2, offset=2)
    assert len(page) == 2


def test_audit_line_written_per_movement(db: Session, member: Member) -> None:
    savings_service.deposit(db, member.id, SavingsCategory.VOLUNTARY, Decimal("10.00"))

    log_files = list(Path(settings.LOGS_DIR).glob("audit_*.log"))
    assert len(log_files) == 1
    line = log_files[0].read_text(encoding="utf-8").strip()
    assert "savings_deposit" in line
    assert f"member:{member.id}" in line


def test_undated_movement_is_never_stamped_before_the_latest(db: Session, member: Member) -> None:
    later = datetime.utcnow() + timedelta(minutes=5)
    savings_service.deposit(db, member.id, SavingsCategory.VOLUNTARY, Decimal("10.00"), later)

    movement = savings_service.deposit(db, member.id, SavingsCategory.VOLUNTARY, Decimal("5.00"))

    assert movement.movement_date == later
    assert movement.balance_after == Decimal("15.00")


def test_overdraft_reports_insufficient_balance_before_date_check(db: Session, member: Member) -> None:
    savings_service.deposit(db, member.id, SavingsCategory.VOLUNTARY, Decimal("100.00"), datetime(2026, 3, 10))

    with pytest.raises(InsufficientBalance):
        savings_service.withdraw(db, member.id, SavingsCategory.VOLUNTARY, Decimal("500.00"), datetime(2026, 3, 1))


def test_plain_date_means_on_that_day(db: Session, member: Member) -> None:
    savings_service.deposit(db, member.id, SavingsCategory.SPECIAL, Decimal("10.00"), datetime(2026, 3, 10, 14, 30))

    same_day = savings_service.deposit(db, member.id, SavingsCategory.SPECIAL, Decimal("1.00"), date(2026, 3, 10))
    assert same_day.movement_date == datetime(2026, 3, 10, 14, 30)

    next_day = savings_service.deposit(db, member.id, SavingsCategory.SPECIAL, Decimal("1.00"), date(2026, 3, 11))
    assert next_day.movement_date == datetime(2026, 3, 11)

    with pytest.raises(InvalidInput):
        savings_service.deposit(db, member.id, SavingsCategory.SPECIAL, Decimal("1.00"), date(2026, 3, 9))


def test_today_as_plain_date_after_undated_movement(db: Session, member: Member) -> None:
    first = savings_service.deposit(db, member.id, SavingsCategory.VOLUNTARY, Decimal("10.00"))

    movement = savings_service.deposit(db, member.id, SavingsCategory.VOLUNTARY, Decimal("1.00"), datetime.utcnow().date())

    assert movement.movement_date >= first.movement_date
    assert movement.balance_after == Decimal("11.00")


def test_lost_races_give_up_with_storage_failure(db: Session, member: Member, monkeypatch: pytest.MonkeyPatch) -> None:
    attempts = []

    def always_stale(*args, **kwargs):
        attempts.append(1)
        raise savings_service._StaleBalance()

    monkeypatch.setattr(savings_service, "_append_movement", always_stale)

    with pytest.raises(StorageFailure):
        savings_service.deposit(db, member.id, SavingsCategory.VOLUNTARY, Decimal("10.00"))

    assert len(attempts) == savings_service.MAX_POST_ATTEMPTS
    monkeypatch.undo()
    assert db.query(SavingsMovement).count() == 0

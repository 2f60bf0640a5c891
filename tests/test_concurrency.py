from __future__ import annotations

import threading
from datetime import date
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session, sessionmaker

from koperasi.core.exceptions import InsufficientBalance
from koperasi.models.ledger import SavingsCategory, SavingsMovement
from koperasi.models.loan import LoanStatus
from koperasi.models.member import Member
from koperasi.services import installment as installment_service
from koperasi.services import loan as loan_service
from koperasi.services import savings as savings_service


def _run_concurrently(targets) -> None:
    barrier = threading.Barrier(len(targets))

    def _wrap(fn):
        def _run():
            barrier.wait()
            fn()
        return _run

    threads = [threading.Thread(target=_wrap(fn)) for fn in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)


def test_concurrent_withdrawals_cannot_overdraw(db: Session, session_factory: sessionmaker, member: Member) -> None:
    savings_service.deposit(db, member.id, SavingsCategory.VOLUNTARY, Decimal("1000.00"))
    member_id = member.id

    successes: List[Decimal] = []
    rejections: List[Exception] = []
    lock = threading.Lock()

    def withdraw() -> None:
        session = session_factory()
        try:
            movement = savings_service.withdraw(session, member_id, SavingsCategory.VOLUNTARY, Decimal("600.00"))
            with lock:
                successes.append(movement.balance_after)
        except InsufficientBalance as e:
            with lock:
                rejections.append(e)
        finally:
            session.close()

    _run_concurrently([withdraw, withdraw])

    assert successes == [Decimal("400.00")]
    assert len(rejections) == 1

    db.expire_all()
    assert savings_service.query_balances(db, member_id)[SavingsCategory.VOLUNTARY] == Decimal("400.00")
    assert db.query(SavingsMovement).filter(SavingsMovement.member_id == member_id).count() == 2


def test_concurrent_deposits_all_land(db: Session, session_factory: sessionmaker, member: Member) -> None:
    member_id = member.id
    errors: List[Exception] = []

    def deposit() -> None:
        session = session_factory()
        try:
            savings_service.deposit(session, member_id, SavingsCategory.MANDATORY, Decimal("10.00"))
        except Exception as e:  # collected and asserted below
            errors.append(e)
        finally:
            session.close()

    _run_concurrently([deposit] * 4)

    assert errors == []
    db.expire_all()
    assert savings_service.query_balances(db, member_id)[SavingsCategory.MANDATORY] == Decimal("40.00")
    balances_after = sorted(
        m.balance_after for m in savings_service.list_movements(db, member_id=member_id, category="mandatory")
    )
    assert balances_after == [Decimal("10.00"), Decimal("20.00"), Decimal("30.00"), Decimal("40.00")]


def test_concurrent_final_payments_settle_once(db: Session, session_factory: sessionmaker, member: Member) -> None:
    loan = loan_service.apply_for_loan(db, member.id, Decimal("1000"), 2, Decimal("0"))
    loan_service.approve_loan(db, loan.id)
    loan = loan_service.disburse_loan(db, loan.id, date(2026, 1, 10))
    targets = [(i.id, i.amount_due, i.due_date) for i in loan.installments]
    loan_id = loan.id
    errors: List[Exception] = []

    def pay(inst_id, amount, due):
        def _pay() -> None:
            session = session_factory()
            try:
                installment_service.pay_installment(session, inst_id, amount, due)
            except Exception as e:  # collected and asserted below
                errors.append(e)
            finally:
                session.close()
        return _pay

    _run_concurrently([pay(*t) for t in targets])

    assert errors == []
    db.expire_all()
    settled = loan_service.get_loan(db, loan_id)
    assert settled.status == LoanStatus.SETTLED


def test_concurrent_undated_deposits_never_look_backdated(
    db: Session, session_factory: sessionmaker, member: Member
) -> None:
    member_id = member.id
    errors: List[Exception] = []

    def deposit() -> None:
        session = session_factory()
        try:
            savings_service.deposit(session, member_id, SavingsCategory.SPECIAL, Decimal("1.00"))
        except Exception as e:  # collected and asserted below
            errors.append(e)
        finally:
            session.close()

    for _ in range(10):
        _run_concurrently([deposit, deposit])

    assert errors == []
    db.expire_all()
    assert savings_service.query_balances(db, member_id)[SavingsCategory.SPECIAL] == Decimal("20.00")

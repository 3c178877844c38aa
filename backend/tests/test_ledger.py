"""Ledger and journal rules for the vendor side (Property)."""

from datetime import date
from decimal import Decimal

import pytest

from estatedesk.core.exceptions import BusinessRuleError, NotFoundError
from estatedesk.models import Property, PropertyStatus, Transaction, TransactionType
from estatedesk.schemas import PropertyUpdate, TransactionCreate, TransactionUpdate
from estatedesk.services.ledger_service import money
from estatedesk.services.property_service import PropertyService
from estatedesk.services.transaction_service import TransactionService


def pay(db, prop, amount, **extra):
    transaction = TransactionService(db).create(
        TransactionCreate(
            property_id=prop.id,
            amount=Decimal(amount),
            payment_date=date.today(),
            payment_mode="CASH",
            **extra
        )
    )
    db.commit()
    return transaction


def live_rows(db, prop):
    return db.query(Transaction).filter(
        Transaction.property_id == prop.id,
        Transaction.is_deleted == False
    ).all()


def assert_balanced(ledger):
    assert abs(ledger.ledger_paid + ledger.ledger_due - ledger.ledger_total) <= Decimal("0.01")


def test_money_rounds_half_up():
    assert money("10.005") == Decimal("10.01")
    assert money(Decimal("2.344")) == Decimal("2.34")
    assert money(None) == Decimal("0.00")


def test_property_totals_and_initial_payment(db, make_property):
    prop = make_property(rate="1000000", gst="5", paid="500000")

    assert prop.base_amount == Decimal("1000000.00")
    assert prop.gst_amount == Decimal("50000.00")
    assert prop.total_amount == Decimal("1050000.00")
    assert prop.paid_amount == Decimal("500000.00")
    assert prop.due_amount == Decimal("550000.00")
    assert prop.status == PropertyStatus.AVAILABLE.value

    rows = live_rows(db, prop)
    assert len(rows) == 1
    assert rows[0].type == TransactionType.DEBIT.value
    assert rows[0].amount == Decimal("500000.00")
    assert rows[0].remarks == "Initial Booking / Down Payment"


def test_initial_payment_above_total_is_rejected(db, make_property):
    with pytest.raises(BusinessRuleError, match="cannot exceed total amount"):
        make_property(rate="100000", gst="0", paid="150000")
    db.rollback()
    assert db.query(Property).count() == 0


def test_settling_the_due_then_rejecting_further_payments(db, make_property):
    prop = make_property(rate="1000000", gst="5", paid="500000")

    pay(db, prop, "550000")
    db.refresh(prop)
    assert prop.paid_amount == Decimal("1050000.00")
    assert prop.due_amount == Decimal("0.00")

    with pytest.raises(BusinessRuleError, match="already fully paid"):
        pay(db, prop, "1")
    db.refresh(prop)
    assert prop.due_amount == Decimal("0.00")
    assert len(live_rows(db, prop)) == 2


def test_overpayment_leaves_ledger_unchanged(db, make_property):
    prop = make_property(rate="1000000", gst="5", paid="500000")

    with pytest.raises(BusinessRuleError, match="exceeds due amount"):
        pay(db, prop, "550000.02")

    db.refresh(prop)
    assert prop.paid_amount == Decimal("500000.00")
    assert prop.due_amount == Decimal("550000.00")
    assert len(live_rows(db, prop)) == 1


def test_payment_within_a_paisa_of_due_is_accepted(db, make_property):
    prop = make_property(rate="1000000", gst="5", paid="500000")

    pay(db, prop, "550000.01")
    db.refresh(prop)
    assert prop.due_amount == Decimal("0.00")
    assert_balanced(prop)


def test_failed_journal_write_rolls_back_the_ledger(db, make_property, monkeypatch):
    prop = make_property(rate="1000000", gst="5", paid="500000")

    def fail(self, **values):
        raise RuntimeError("disk full")

    monkeypatch.setattr(TransactionService, "_build_transaction", fail)
    with pytest.raises(RuntimeError, match="disk full"):
        pay(db, prop, "100000")

    prop = db.get(Property, prop.id)
    assert prop.paid_amount == Decimal("500000.00")
    assert prop.due_amount == Decimal("550000.00")
    assert len(live_rows(db, prop)) == 1


def test_deleting_a_payment_gives_the_amount_back(db, make_property):
    prop = make_property(rate="1000000", gst="5", paid="500000")
    transaction = pay(db, prop, "200000")
    db.refresh(prop)
    due_before = prop.due_amount

    TransactionService(db).destroy(transaction.id)
    db.commit()
    db.refresh(prop)

    assert prop.due_amount == due_before + Decimal("200000.00")
    assert prop.paid_amount == Decimal("500000.00")
    assert_balanced(prop)
    assert db.get(Transaction, transaction.id).is_deleted is True


def test_trashed_payment_can_be_restored(db, make_property):
    prop = make_property(rate="1000000", gst="5", paid="500000")
    transaction = pay(db, prop, "200000")
    service = TransactionService(db)
    service.destroy(transaction.id)
    db.commit()

    trash = service.trash()
    assert [t.id for t in trash.items] == [transaction.id]

    service.restore(transaction.id)
    db.commit()
    db.refresh(prop)
    assert prop.paid_amount == Decimal("700000.00")
    assert prop.due_amount == Decimal("350000.00")

    with pytest.raises(BusinessRuleError, match="not in trash"):
        service.restore(transaction.id)


def test_restore_is_guarded_like_a_new_payment(db, make_property):
    prop = make_property(rate="1000000", gst="5", paid="500000")
    initial = live_rows(db, prop)[0]
    service = TransactionService(db)

    service.destroy(initial.id)
    db.commit()
    pay(db, prop, "1050000")

    with pytest.raises(BusinessRuleError, match="already fully paid"):
        service.restore(initial.id)
    db.refresh(prop)
    assert prop.due_amount == Decimal("0.00")


def test_editing_an_amount_moves_the_ledger_by_the_difference(db, make_property):
    prop = make_property(rate="1000000", gst="5", paid="500000")
    transaction = pay(db, prop, "200000")
    service = TransactionService(db)

    service.update(transaction.id, TransactionUpdate(amount=Decimal("300000"), remarks="corrected"))
    db.commit()
    db.refresh(prop)
    assert prop.paid_amount == Decimal("800000.00")
    assert prop.due_amount == Decimal("250000.00")
    assert db.get(Transaction, transaction.id).remarks == "corrected"

    # Ceiling is total - (paid - old) = 1050000 - (800000 - 300000) = 550000
    with pytest.raises(BusinessRuleError, match="exceeds due amount"):
        service.update(transaction.id, TransactionUpdate(amount=Decimal("550001")))
    db.refresh(prop)
    assert prop.paid_amount == Decimal("800000.00")

    service.update(transaction.id, TransactionUpdate(amount=Decimal("550000")))
    db.commit()
    db.refresh(prop)
    assert prop.due_amount == Decimal("0.00")
    assert_balanced(prop)


def test_trashed_property_does_not_accept_payments(db, make_property):
    prop = make_property(rate="500000", gst="0")
    PropertyService(db).destroy(prop.id)
    db.commit()

    with pytest.raises(NotFoundError, match="Property not found"):
        pay(db, prop, "1000")


def test_legacy_sell_type_property_posts_credit(db, make_property, buyer):
    prop = make_property(rate="800000", gst="0", paid="300000", transaction_type="SELL", buyer_id=buyer.id)

    assert prop.status == PropertyStatus.SOLD.value
    assert prop.seller_id is None
    assert prop.buyer_id == buyer.id
    rows = live_rows(db, prop)
    assert [r.type for r in rows] == [TransactionType.CREDIT.value]
    assert prop.due_amount == Decimal("500000.00")


def test_pricing_edit_recomputes_due_but_not_below_paid(db, make_property):
    prop = make_property(rate="1000000", gst="5", paid="500000")
    service = PropertyService(db)

    service.update(prop.id, PropertyUpdate(gst_percentage=Decimal("0")))
    db.commit()
    db.refresh(prop)
    assert prop.total_amount == Decimal("1000000.00")
    assert prop.paid_amount == Decimal("500000.00")
    assert prop.due_amount == Decimal("500000.00")

    with pytest.raises(BusinessRuleError, match="cannot be less than the amount already paid"):
        service.update(prop.id, PropertyUpdate(rate=Decimal("400000")))
    db.refresh(prop)
    assert prop.total_amount == Decimal("1000000.00")


def commit_first(monkeypatch, service, unit):
    """Let ``unit`` commit after ``service`` read the journal row but before it locks the ledger."""
    lock = service.ledger.lock

    def lock_after_unit(model, ledger_id):
        unit()
        return lock(model, ledger_id)

    monkeypatch.setattr(service.ledger, "lock", lock_after_unit)


def test_overlapping_edits_move_the_ledger_by_the_committed_amount(db, other_session, make_property, monkeypatch):
    prop = make_property(rate="1000000", gst="0")
    transaction = pay(db, prop, "100000")
    service = TransactionService(db)

    def edit_elsewhere():
        TransactionService(other_session).update(transaction.id, TransactionUpdate(amount=Decimal("200000")))
        other_session.commit()

    commit_first(monkeypatch, service, edit_elsewhere)
    service.update(transaction.id, TransactionUpdate(amount=Decimal("300000")))
    db.commit()

    db.refresh(prop)
    assert db.get(Transaction, transaction.id).amount == Decimal("300000.00")
    assert prop.paid_amount == Decimal("300000.00")
    assert prop.due_amount == Decimal("700000.00")
    assert sum(r.amount for r in live_rows(db, prop)) == prop.paid_amount


def test_payment_deleted_elsewhere_is_not_reversed_twice(db, other_session, make_property, monkeypatch):
    prop = make_property(rate="1000000", gst="0")
    first = pay(db, prop, "100000")
    pay(db, prop, "50000")
    service = TransactionService(db)

    def delete_elsewhere():
        TransactionService(other_session).destroy(first.id)
        other_session.commit()

    commit_first(monkeypatch, service, delete_elsewhere)
    with pytest.raises(NotFoundError, match="Transaction not found"):
        service.destroy(first.id)

    db.refresh(prop)
    assert prop.paid_amount == Decimal("50000.00")
    assert prop.due_amount == Decimal("950000.00")
    assert [r.amount for r in live_rows(db, prop)] == [Decimal("50000.00")]


def test_payment_restored_elsewhere_is_not_posted_twice(db, other_session, make_property, monkeypatch):
    prop = make_property(rate="1000000", gst="0")
    transaction = pay(db, prop, "100000")
    service = TransactionService(db)
    service.destroy(transaction.id)
    db.commit()

    def restore_elsewhere():
        TransactionService(other_session).restore(transaction.id)
        other_session.commit()

    commit_first(monkeypatch, service, restore_elsewhere)
    with pytest.raises(BusinessRuleError, match="not in trash"):
        service.restore(transaction.id)

    db.refresh(prop)
    assert prop.paid_amount == Decimal("100000.00")
    assert prop.due_amount == Decimal("900000.00")

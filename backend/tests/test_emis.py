"""EMI schedules, installment payments and reversals."""

from datetime import date
from decimal import Decimal
import io

import pytest
from dateutil.relativedelta import relativedelta
from fastapi import UploadFile

from estatedesk.core.exceptions import BusinessRuleError
from estatedesk.models import Emi, EmiStatus, SellEmi, Transaction, TransactionType
from estatedesk.schemas import EmiPayment, SellPropertyCreate
from estatedesk.services.emi_service import EmiService, build_schedule
from estatedesk.services.sell_property_service import SellPropertyService
from estatedesk.services.transaction_service import TransactionService


def financed_property(make_property, **extra):
    values = dict(rate="1000000", gst="5", paid="500000", period_years=1, amount_per_month=Decimal("50000"))
    values.update(extra)
    return make_property(**values)


def first_emi(db, prop):
    return db.query(Emi).filter(Emi.property_id == prop.id).order_by(Emi.emi_number).first()


def receipt(name="receipt.pdf"):
    return UploadFile(file=io.BytesIO(b"%PDF-1.4 receipt"), filename=name)


def test_schedule_needs_period_and_amount():
    assert build_schedule(Emi, None, Decimal("1000"), property_id=1) == []
    assert build_schedule(Emi, 1, None, property_id=1) == []

    start = date(2026, 1, 31)
    emis = build_schedule(Emi, 1, Decimal("1000"), start, property_id=1)
    assert len(emis) == 12
    assert emis[0].due_date == date(2026, 2, 28)
    assert emis[11].due_date == start + relativedelta(months=12)


def test_paying_an_emi_posts_one_journal_row(db, make_property):
    prop = financed_property(make_property)
    emi = first_emi(db, prop)
    assert emi.emi_amount == Decimal("50000.00")

    result = EmiService(db).pay_emi(emi.id, EmiPayment(paid_amount=Decimal("50000"), payment_mode="UPI"))
    db.commit()

    db.refresh(emi)
    db.refresh(prop)
    assert emi.status == EmiStatus.PAID.value
    assert emi.paid_amount == Decimal("50000.00")
    assert emi.paid_date == date.today()
    assert emi.payment_mode == "UPI"

    transaction = result["transaction"]
    assert transaction.amount == Decimal("50000.00")
    assert transaction.type == TransactionType.DEBIT.value
    assert transaction.emi_id == emi.id
    assert transaction.remarks == "EMI #1 payment"
    assert transaction.reference_no.startswith(f"EMI-{emi.id}-")

    assert prop.paid_amount == Decimal("550000.00")
    assert prop.due_amount == Decimal("500000.00")


def test_paid_emi_cannot_be_paid_again(db, make_property):
    prop = financed_property(make_property)
    emi = first_emi(db, prop)
    service = EmiService(db)
    service.pay_emi(emi.id, EmiPayment(paid_amount=Decimal("50000")))
    db.commit()

    with pytest.raises(BusinessRuleError, match="already paid"):
        service.pay_emi(emi.id, EmiPayment(paid_amount=Decimal("1000")))


def test_partial_payments_accumulate(db, make_property):
    prop = financed_property(make_property)
    emi = first_emi(db, prop)
    service = EmiService(db)

    service.pay_emi(emi.id, EmiPayment(paid_amount=Decimal("20000")))
    db.commit()
    db.refresh(emi)
    assert emi.status == EmiStatus.PENDING.value
    assert emi.paid_amount == Decimal("20000.00")

    service.pay_emi(emi.id, EmiPayment(paid_amount=Decimal("30000")))
    db.commit()
    db.refresh(emi)
    assert emi.status == EmiStatus.PAID.value
    assert emi.paid_amount == Decimal("50000.00")
    assert len([t for t in emi.transactions if not t.is_deleted]) == 2


def test_unpay_reverses_every_linked_payment(db, make_property):
    prop = financed_property(make_property)
    emi = first_emi(db, prop)
    service = EmiService(db)
    service.pay_emi(emi.id, EmiPayment(paid_amount=Decimal("20000")))
    db.commit()
    service.pay_emi(emi.id, EmiPayment(paid_amount=Decimal("30000"), transaction_no="UTR123"))
    db.commit()

    service.unpay_emi(emi.id)
    db.commit()
    db.refresh(emi)
    db.refresh(prop)

    assert emi.status == EmiStatus.PENDING.value
    assert emi.paid_amount == Decimal("0.00")
    assert emi.paid_date is None
    assert emi.transaction_no is None
    assert prop.paid_amount == Decimal("500000.00")
    assert prop.due_amount == Decimal("550000.00")
    rows = db.query(Transaction).filter(Transaction.emi_id == emi.id).all()
    assert len(rows) == 2 and all(t.is_deleted for t in rows)


def test_unpay_without_payment_is_rejected(db, make_property):
    prop = financed_property(make_property)
    emi = first_emi(db, prop)

    with pytest.raises(BusinessRuleError, match="no payment to reverse"):
        EmiService(db).unpay_emi(emi.id)


def test_deleting_the_journal_row_reopens_the_emi(db, make_property):
    prop = financed_property(make_property)
    emi = first_emi(db, prop)
    result = EmiService(db).pay_emi(emi.id, EmiPayment(paid_amount=Decimal("50000")))
    db.commit()

    TransactionService(db).destroy(result["transaction"].id)
    db.commit()
    db.refresh(emi)
    db.refresh(prop)

    assert emi.paid_amount == Decimal("0.00")
    assert emi.status == EmiStatus.PENDING.value
    assert prop.paid_amount == Decimal("500000.00")


def test_emi_payment_is_capped_by_the_ledger_due(db, make_property, upload_dir):
    prop = financed_property(make_property, paid="1040000")
    emi = first_emi(db, prop)

    with pytest.raises(BusinessRuleError, match="exceeds due amount"):
        EmiService(db).pay_emi(emi.id, EmiPayment(paid_amount=Decimal("50000")), receipt=receipt())

    db.refresh(emi)
    db.refresh(prop)
    assert emi.paid_amount == Decimal("0.00")
    assert emi.payment_receipt is None
    assert prop.due_amount == Decimal("10000.00")
    # the receipt stored before the failed unit is removed again
    assert list(upload_dir.rglob("*.pdf")) == []


def test_receipt_is_stored_with_the_payment(db, make_property, upload_dir):
    prop = financed_property(make_property)
    emi = first_emi(db, prop)

    result = EmiService(db).pay_emi(emi.id, EmiPayment(paid_amount=Decimal("50000")), receipt=receipt())
    db.commit()

    stored = result["emi"].payment_receipt
    assert stored.startswith("emi_receipts")
    assert (upload_dir / stored).exists()
    assert result["transaction"].payment_receipt == stored


def test_listing_marks_past_due_installments_overdue(db, make_property):
    prop = financed_property(make_property, date=date.today() - relativedelta(years=2))
    service = EmiService(db)

    emis = service.list_emis(property_id=prop.id)
    assert len(emis) == 12
    assert all(e.status == EmiStatus.OVERDUE.value for e in emis)
    assert len(service.list_emis(property_id=prop.id, status=EmiStatus.PENDING.value)) == 0

    # overdue installments still take payments
    service.pay_emi(emis[0].id, EmiPayment(paid_amount=Decimal("10000")))
    db.commit()
    db.refresh(emis[0])
    assert emis[0].status == EmiStatus.OVERDUE.value
    assert emis[0].paid_amount == Decimal("10000.00")


def test_sell_emi_payment_credits_the_sale(db, make_property, buyer):
    prop = make_property(rate="2000000", gst="0")
    sale = SellPropertyService(db).create(SellPropertyCreate(
        property_id=prop.id,
        customer_id=buyer.id,
        sale_date=date.today(),
        sale_rate=Decimal("1200000"),
        received_amount=Decimal("0"),
        period_years=1,
        amount_per_month=Decimal("100000"),
    ))
    db.commit()
    emi = db.query(SellEmi).filter(SellEmi.sell_property_id == sale.id).order_by(SellEmi.emi_number).first()
    service = EmiService(db)

    result = service.pay_sell_emi(emi.id, EmiPayment(paid_amount=Decimal("100000"), payment_mode="CHEQUE"))
    db.commit()
    db.refresh(sale)

    transaction = result["transaction"]
    assert transaction.type == TransactionType.CREDIT.value
    assert transaction.sell_property_id == sale.id
    assert transaction.sell_emi_id == emi.id
    assert transaction.remarks == "Sell EMI #1 payment"
    assert transaction.reference_no.startswith(f"SELL-EMI-{emi.id}-")
    assert sale.received_amount == Decimal("100000.00")
    assert sale.pending_amount == Decimal("1100000.00")

    service.unpay_sell_emi(emi.id)
    db.commit()
    db.refresh(sale)
    db.refresh(emi)
    assert sale.received_amount == Decimal("0.00")
    assert emi.status == EmiStatus.PENDING.value

"""
EMI Service - installment schedules for vendor (Emi) and buyer (SellEmi) financing

Paying an installment posts one journal row through TransactionService and
moves the installment's own paid_amount in the same unit of work; unpaying
reverses all three.
"""
from datetime import date
from decimal import Decimal
from typing import List, Optional, Type, Union
import logging
import time

from dateutil.relativedelta import relativedelta
from fastapi import UploadFile
from sqlalchemy.orm import Session

from estatedesk.core.exceptions import BusinessRuleError, NotFoundError
from estatedesk.core.storage import FileStorage
from estatedesk.models import Emi, EmiStatus, Property, SellEmi, SellProperty, ZERO
from estatedesk.schemas import EmiPayment
from estatedesk.services.audit_service import AuditAction, AuditService
from estatedesk.services.ledger_service import LedgerService, money
from estatedesk.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)

Installment = Union[Emi, SellEmi]


def build_schedule(
    model: Type[Installment],
    period_years: Optional[int],
    amount_per_month: Optional[Decimal],
    start: Optional[date] = None,
    **owner
) -> List[Installment]:
    """
    ``period_years * 12`` monthly installments, the first due one month
    after ``start``.
    """
    if not period_years or not amount_per_month:
        return []
    start = start or date.today()
    return [
        model(
            emi_number=i,
            emi_amount=money(amount_per_month),
            due_date=start + relativedelta(months=i),
            paid_amount=ZERO,
            status=EmiStatus.PENDING.value,
            **owner
        )
        for i in range(1, period_years * 12 + 1)
    ]


class EmiService:
    def __init__(self, db: Session, storage: Optional[FileStorage] = None):
        self.db = db
        self.storage = storage or FileStorage()
        self.ledger = LedgerService(db)
        self.journal = TransactionService(db)
        self.audit = AuditService(db)

    # ==================== LOOKUPS ====================

    def get_emi(self, emi_id: int) -> Emi:
        emi = self.db.query(Emi).filter(Emi.id == emi_id, Emi.is_deleted == False).first()
        if not emi:
            raise NotFoundError("EMI not found")
        return emi

    def get_sell_emi(self, emi_id: int) -> SellEmi:
        emi = self.db.query(SellEmi).filter(SellEmi.id == emi_id, SellEmi.is_deleted == False).first()
        if not emi:
            raise NotFoundError("Sell EMI not found")
        return emi

    def list_emis(self, property_id: Optional[int] = None, status: Optional[str] = None) -> List[Emi]:
        query = self.db.query(Emi).join(Property, Emi.property_id == Property.id).filter(
            Emi.is_deleted == False,
            Property.is_deleted == False
        )
        if property_id:
            query = query.filter(Emi.property_id == property_id)
        self._mark_overdue(query.all())
        if status:
            query = query.filter(Emi.status == status)
        return query.order_by(Emi.due_date, Emi.emi_number).all()

    def list_sell_emis(self, sell_property_id: Optional[int] = None, status: Optional[str] = None) -> List[SellEmi]:
        query = self.db.query(SellEmi).join(SellProperty, SellEmi.sell_property_id == SellProperty.id).filter(
            SellEmi.is_deleted == False,
            SellProperty.is_deleted == False
        )
        if sell_property_id:
            query = query.filter(SellEmi.sell_property_id == sell_property_id)
        self._mark_overdue(query.all())
        if status:
            query = query.filter(SellEmi.status == status)
        return query.order_by(SellEmi.due_date, SellEmi.emi_number).all()

    def _mark_overdue(self, installments: List[Installment]):
        today = date.today()
        changed = 0
        for emi in installments:
            if emi.status == EmiStatus.PENDING.value and emi.due_date < today:
                emi.status = EmiStatus.OVERDUE.value
                changed += 1
        if changed:
            self.db.flush()
            logger.info(f"Marked {changed} installment(s) overdue")

    # ==================== PAY / UNPAY ====================

    def pay_emi(self, emi_id: int, payment: EmiPayment, receipt: Optional[UploadFile] = None,
                user_id: Optional[int] = None) -> dict:
        emi = self.get_emi(emi_id)
        return self._pay(emi, Property, emi.property_id, "EMI", "emi_receipts", payment, receipt, user_id)

    def pay_sell_emi(self, emi_id: int, payment: EmiPayment, receipt: Optional[UploadFile] = None,
                     user_id: Optional[int] = None) -> dict:
        emi = self.get_sell_emi(emi_id)
        return self._pay(emi, SellProperty, emi.sell_property_id, "SELL-EMI", "sell_emi_receipts",
                         payment, receipt, user_id)

    def unpay_emi(self, emi_id: int, user_id: Optional[int] = None) -> Emi:
        emi = self.get_emi(emi_id)
        return self._unpay(emi, Property, emi.property_id, user_id)

    def unpay_sell_emi(self, emi_id: int, user_id: Optional[int] = None) -> SellEmi:
        emi = self.get_sell_emi(emi_id)
        return self._unpay(emi, SellProperty, emi.sell_property_id, user_id)

    def _pay(self, emi: Installment, ledger_model, ledger_id: int, reference_prefix: str,
             receipt_folder: str, payment: EmiPayment, receipt: Optional[UploadFile],
             user_id: Optional[int]) -> dict:
        if emi.status == EmiStatus.PAID.value:
            raise BusinessRuleError(f"EMI #{emi.emi_number} is already paid")

        amount = money(payment.paid_amount)
        paid_date = payment.paid_date or date.today()

        # Stored before the unit of work; removed again if the unit fails
        receipt_path = None
        if receipt is not None and receipt.filename:
            receipt_path = self.storage.save(receipt, receipt_folder, f"emi_{emi.id}")

        def settle(ledger):
            self.db.refresh(emi)
            if emi.status == EmiStatus.PAID.value:
                raise BusinessRuleError(f"EMI #{emi.emi_number} is already paid")

            transaction = self.journal.post(
                ledger,
                amount,
                paid_date,
                payment.payment_mode,
                user_id=user_id,
                emi_id=emi.id if isinstance(emi, Emi) else None,
                sell_emi_id=emi.id if isinstance(emi, SellEmi) else None,
                reference_no=f"{reference_prefix}-{emi.id}-{int(time.time())}",
                transaction_no=payment.transaction_no,
                payment_receipt=receipt_path,
                remarks=f"{'Sell EMI' if isinstance(emi, SellEmi) else 'EMI'} #{emi.emi_number} payment"
            )

            emi.paid_amount = money(emi.paid_amount) + amount
            emi.paid_date = paid_date
            emi.payment_mode = transaction.payment_mode
            emi.transaction_no = payment.transaction_no
            if receipt_path:
                emi.payment_receipt = receipt_path
            emi.refresh_status()

            self.audit.log(
                action=AuditAction.EMI_PAID,
                resource_type=type(emi).__name__,
                resource_id=emi.id,
                description=f"EMI #{emi.emi_number} paid {amount:.2f}",
                new_values={"emi_paid": emi.paid_amount, "status": emi.status, **ledger.ledger_snapshot()},
                user_id=user_id
            )
            return {"emi": emi, "transaction": transaction, "ledger": ledger}

        try:
            return self.ledger.with_lock(ledger_model, ledger_id, settle)
        except Exception:
            if receipt_path:
                self.storage.delete(receipt_path)
            raise

    def _unpay(self, emi: Installment, ledger_model, ledger_id: int, user_id: Optional[int]) -> Installment:
        if money(emi.paid_amount) <= 0:
            raise BusinessRuleError(f"EMI #{emi.emi_number} has no payment to reverse")

        link = Emi if isinstance(emi, Emi) else SellEmi

        def reverse(ledger):
            self.db.refresh(emi)
            paid = money(emi.paid_amount)
            if paid <= 0:
                raise BusinessRuleError(f"EMI #{emi.emi_number} has no payment to reverse")
            linked = [t for t in emi.transactions if not t.is_deleted]
            for transaction in linked:
                transaction.soft_delete()
            self.ledger.apply_delta(ledger, -paid)

            emi.paid_amount = ZERO
            emi.paid_date = None
            emi.payment_mode = None
            emi.transaction_no = None
            emi.payment_receipt = None
            emi.refresh_status()

            self.audit.log(
                action=AuditAction.EMI_UNPAID,
                resource_type=link.__name__,
                resource_id=emi.id,
                description=f"EMI #{emi.emi_number} reversed {paid:.2f} ({len(linked)} journal row(s))",
                new_values=ledger.ledger_snapshot(),
                user_id=user_id
            )
            return emi

        return self.ledger.with_lock(ledger_model, ledger_id, reverse)

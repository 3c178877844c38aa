"""
Sell Property Service - sale deals and the buyer-side ledger
"""
from decimal import Decimal
from typing import Any, Dict, Optional
import logging
import time

from fastapi import UploadFile
from sqlalchemy import or_
from sqlalchemy.orm import Session

from estatedesk.core.exceptions import BusinessRuleError, NotFoundError, ValidationFailedError
from estatedesk.core.pagination import Page, paginate
from estatedesk.core.storage import FileStorage
from estatedesk.models import (
    Customer, EmiStatus, Property, PropertyStatus, SellEmi, SellProperty, ZERO
)
from estatedesk.schemas import SellPropertyCreate, SellPropertyUpdate
from estatedesk.services.audit_service import AuditAction, AuditService
from estatedesk.services.base import SoftDeleteRepository
from estatedesk.services.emi_service import build_schedule
from estatedesk.services.ledger_service import EPSILON, LedgerService, money
from estatedesk.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)


def compute_sale_totals(
    sale_rate: Decimal,
    quantity: Decimal,
    gst_percentage: Decimal,
    other_charges: Decimal,
    discount_amount: Decimal
) -> Dict[str, Decimal]:
    """total = rate x quantity + gst + other charges - discount"""
    base = money(Decimal(sale_rate) * Decimal(quantity))
    gst = money(base * Decimal(gst_percentage or 0) / 100)
    total = money(base + gst + Decimal(other_charges or 0) - Decimal(discount_amount or 0))
    return {"sale_base_amount": base, "gst_amount": gst, "total_sale_amount": total}


class SellPropertyService(SoftDeleteRepository[SellProperty]):
    model = SellProperty
    label = "Sale"

    def __init__(self, db: Session, storage: Optional[FileStorage] = None):
        super().__init__(db)
        self.storage = storage or FileStorage()
        self.ledger = LedgerService(db)
        self.journal = TransactionService(db)
        self.audit = AuditService(db)

    def list(self, search: Optional[str] = None, page: int = 1, per_page: int = 20) -> Page:
        query = (
            self.query()
            .join(Property, SellProperty.property_id == Property.id)
            .join(Customer, SellProperty.customer_id == Customer.id)
        )
        if search:
            like = f"%{search.strip()}%"
            query = query.filter(or_(
                SellProperty.invoice_no.ilike(like),
                Property.title.ilike(like),
                Customer.name.ilike(like),
                Customer.phone.ilike(like),
            ))
        return paginate(query.order_by(SellProperty.sale_date.desc(), SellProperty.id.desc()), page, per_page)

    def create(self, data: SellPropertyCreate, receipt: Optional[UploadFile] = None,
               user_id: Optional[int] = None) -> SellProperty:
        # Locked so two sales cannot both see the property AVAILABLE
        prop = (
            self.db.query(Property)
            .filter(Property.id == data.property_id, Property.is_deleted == False)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not prop:
            raise NotFoundError("Property not found")
        if prop.status != PropertyStatus.AVAILABLE.value:
            raise BusinessRuleError("Property is already SOLD or BOOKED.")

        buyer = self.db.query(Customer).filter(
            Customer.id == data.customer_id,
            Customer.is_deleted == False
        ).first()
        if not buyer:
            raise NotFoundError("Customer not found")

        quantity = data.quantity or prop.quantity
        totals = compute_sale_totals(
            data.sale_rate, quantity, data.gst_percentage, data.other_charges, data.discount_amount
        )
        if totals["total_sale_amount"] <= 0:
            raise ValidationFailedError("Total sale amount must be greater than zero")
        received = money(data.received_amount)
        if received > totals["total_sale_amount"] + EPSILON:
            raise BusinessRuleError(
                f"Received amount ({received:.2f}) cannot exceed total sale amount "
                f"({totals['total_sale_amount']:.2f})"
            )

        receipt_path = None
        if receipt is not None and receipt.filename:
            receipt_path = self.storage.save(receipt, "sale_receipts", f"property_{prop.id}")

        try:
            values = data.model_dump(exclude={"received_amount", "quantity", "payment_mode"})
            sale = SellProperty(
                **values,
                **totals,
                quantity=quantity,
                invoice_no=f"SELL-{int(time.time())}",
                received_amount=ZERO,
                pending_amount=totals["total_sale_amount"],
                payment_mode=data.payment_mode.value,
                payment_receipt=receipt_path,
                created_by=user_id
            )
            self.db.add(sale)
            prop.buyer_id = buyer.id
            self.db.flush()

            for emi in build_schedule(SellEmi, data.period_years, data.amount_per_month, data.sale_date,
                                      sell_property_id=sale.id):
                self.db.add(emi)

            def open_deal(ledger: SellProperty) -> SellProperty:
                if received > 0:
                    self.journal.post(
                        ledger,
                        received,
                        data.sale_date,
                        data.payment_mode,
                        user_id=user_id,
                        reference_no=f"SELL-{ledger.id}-{int(time.time())}",
                        payment_receipt=receipt_path,
                        remarks="Initial sale payment received"
                    )
                else:
                    self.ledger.sync_property_status(ledger)
                self.audit.log(
                    action=AuditAction.SALE_CREATED,
                    resource_type="SellProperty",
                    resource_id=ledger.id,
                    description=f"{prop.title} sold to {buyer.name}",
                    new_values=ledger.ledger_snapshot(),
                    user_id=user_id
                )
                return ledger

            sale = self.ledger.with_lock(SellProperty, sale.id, open_deal)
        except Exception:
            self.db.rollback()
            if receipt_path:
                self.storage.delete(receipt_path)
            raise

        logger.info(
            f"Sale #{sale.id} of property #{prop.id}: total={sale.total_sale_amount} "
            f"received={sale.received_amount} status={prop.status}"
        )
        return sale

    def update(self, sale_id: int, data: SellPropertyUpdate, user_id: Optional[int] = None) -> SellProperty:
        sale = self.get_or_404(sale_id)
        update_data = data.model_dump(exclude_unset=True)

        def apply(ledger: SellProperty) -> SellProperty:
            before = ledger.ledger_snapshot()
            for key, value in update_data.items():
                if value is None and key in ("sale_date", "sale_rate", "quantity", "gst_percentage",
                                             "other_charges", "discount_amount"):
                    continue
                setattr(ledger, key, value)

            totals = compute_sale_totals(
                ledger.sale_rate, ledger.quantity, ledger.gst_percentage,
                ledger.other_charges, ledger.discount_amount
            )
            if totals["total_sale_amount"] <= 0:
                raise ValidationFailedError("Total sale amount must be greater than zero")
            ledger.sale_base_amount = totals["sale_base_amount"]
            ledger.gst_amount = totals["gst_amount"]
            self.ledger.rebalance(ledger, totals["total_sale_amount"])

            self.audit.log(
                action=AuditAction.UPDATE,
                resource_type="SellProperty",
                resource_id=ledger.id,
                old_values=before,
                new_values=ledger.ledger_snapshot(),
                user_id=user_id
            )
            return ledger

        return self.ledger.with_lock(SellProperty, sale.id, apply)

    def destroy(self, sale_id: int, user_id: Optional[int] = None) -> SellProperty:
        """
        Cancel a sale: the deal, its receipts and its documents go to trash
        and the property is available again.
        """
        sale = self.get_or_404(sale_id)

        def cancel(ledger: SellProperty) -> SellProperty:
            ledger.soft_delete()
            prop = ledger.property
            prop.status = PropertyStatus.AVAILABLE.value
            prop.buyer_id = None
            for transaction in ledger.transactions:
                transaction.soft_delete()
            for document in ledger.documents:
                document.soft_delete()

            self.audit.log(
                action=AuditAction.SALE_CANCELLED,
                resource_type="SellProperty",
                resource_id=ledger.id,
                old_values=ledger.ledger_snapshot(),
                user_id=user_id
            )
            return ledger

        return self.ledger.with_lock(SellProperty, sale.id, cancel)

    def summary(self, sale: SellProperty) -> Dict[str, Any]:
        emis = [e for e in sale.sell_emis if not e.is_deleted]
        paid = sum(1 for e in emis if e.status == EmiStatus.PAID.value)
        return {
            "payment_summary": {
                "total_sale_amount": sale.ledger_total,
                "received_amount": sale.ledger_paid,
                "pending_amount": sale.ledger_due,
                "status": "FULLY_PAID" if sale.ledger_due <= 0 else "PENDING",
            },
            "emi_summary": {
                "total": len(emis),
                "paid": paid,
                "pending": len(emis) - paid,
            },
        }

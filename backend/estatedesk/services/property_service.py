"""
Property Service - purchase inventory and its vendor ledger
"""
from decimal import Decimal
from typing import Dict, List, Optional
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session, aliased

from estatedesk.core.exceptions import BusinessRuleError, NotFoundError
from estatedesk.core.pagination import Page, paginate
from estatedesk.models import Customer, Emi, Property, PropertyStatus, PropertyTransactionType
from estatedesk.schemas import PropertyCreate, PropertyUpdate
from estatedesk.services.audit_service import AuditAction, AuditService
from estatedesk.services.base import SoftDeleteRepository
from estatedesk.services.emi_service import build_schedule
from estatedesk.services.ledger_service import EPSILON, LedgerService, money
from estatedesk.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)

PRICING_FIELDS = ("quantity", "rate", "gst_percentage", "other_expenses")


def compute_totals(quantity: Decimal, rate: Decimal, gst_percentage: Decimal, other_expenses: Decimal) -> Dict[str, Decimal]:
    base = money(Decimal(quantity) * Decimal(rate))
    gst = money(base * Decimal(gst_percentage or 0) / 100)
    total = money(base + gst + Decimal(other_expenses or 0))
    return {"base_amount": base, "gst_amount": gst, "total_amount": total}


class PropertyService(SoftDeleteRepository[Property]):
    model = Property
    label = "Property"

    def __init__(self, db: Session):
        super().__init__(db)
        self.ledger = LedgerService(db)
        self.journal = TransactionService(db)
        self.audit = AuditService(db)

    def _check_party(self, customer_id: Optional[int], role: str):
        if customer_id is None:
            return
        exists = self.db.query(Customer.id).filter(
            Customer.id == customer_id,
            Customer.is_deleted == False
        ).first()
        if not exists:
            raise NotFoundError(f"{role} not found")

    def list(
        self,
        transaction_type: Optional[str] = None,
        status: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 20
    ) -> Page:
        seller = aliased(Customer)
        buyer = aliased(Customer)
        query = (
            self.query()
            .outerjoin(seller, Property.seller_id == seller.id)
            .outerjoin(buyer, Property.buyer_id == buyer.id)
        )
        if transaction_type:
            query = query.filter(Property.transaction_type == transaction_type)
        if status:
            query = query.filter(Property.status == status)
        if category:
            query = query.filter(Property.category == category)
        if search:
            like = f"%{search.strip()}%"
            query = query.filter(or_(
                Property.title.ilike(like),
                Property.invoice_no.ilike(like),
                seller.name.ilike(like),
                buyer.name.ilike(like),
            ))
        return paginate(query.order_by(Property.date.desc(), Property.id.desc()), page, per_page)

    def create(self, data: PropertyCreate, user_id: Optional[int] = None) -> Property:
        self._check_party(data.seller_id, "Seller")
        self._check_party(data.buyer_id, "Buyer")

        totals = compute_totals(data.quantity, data.rate, data.gst_percentage, data.other_expenses)
        paid = money(data.paid_amount)
        if paid > totals["total_amount"] + EPSILON:
            raise BusinessRuleError(
                f"Paid amount ({paid:.2f}) cannot exceed total amount ({totals['total_amount']:.2f})"
            )

        values = data.model_dump(exclude={"paid_amount"})
        values["transaction_type"] = data.transaction_type.value
        values["category"] = data.category.value
        values["payment_mode"] = data.payment_mode.value
        # The direction of the deal decides which party column is used
        if data.transaction_type == PropertyTransactionType.PURCHASE:
            values["buyer_id"] = None
        else:
            values["seller_id"] = None

        prop = Property(
            **values,
            **totals,
            paid_amount=money(0),
            due_amount=totals["total_amount"],
            status=(
                PropertyStatus.AVAILABLE.value
                if data.transaction_type == PropertyTransactionType.PURCHASE
                else PropertyStatus.SOLD.value
            ),
            created_by=user_id
        )
        self.db.add(prop)
        self.db.flush()

        for emi in build_schedule(Emi, data.period_years, data.amount_per_month, data.date, property_id=prop.id):
            self.db.add(emi)

        self.audit.log(
            action=AuditAction.CREATE,
            resource_type="Property",
            resource_id=prop.id,
            description=f"{prop.transaction_type} {prop.title}",
            new_values={"total_amount": prop.total_amount},
            user_id=user_id
        )

        if paid > 0:
            self.ledger.with_lock(Property, prop.id, lambda ledger: self.journal.post(
                ledger,
                paid,
                data.date,
                data.payment_mode,
                user_id=user_id,
                reference_no=data.invoice_no,
                remarks="Initial Booking / Down Payment"
            ))

        logger.info(f"Property #{prop.id} created: total={prop.total_amount} paid={prop.paid_amount}")
        return prop

    def update(self, property_id: int, data: PropertyUpdate, user_id: Optional[int] = None) -> Property:
        prop = self.get_or_404(property_id)
        update_data = data.model_dump(exclude_unset=True)
        if "seller_id" in update_data:
            self._check_party(update_data["seller_id"], "Seller")
        if "buyer_id" in update_data:
            self._check_party(update_data["buyer_id"], "Buyer")

        def apply(ledger: Property) -> Property:
            before = ledger.ledger_snapshot()
            for key, value in update_data.items():
                if value is None and key in PRICING_FIELDS + ("date", "title", "category"):
                    continue
                setattr(ledger, key, value.value if hasattr(value, "value") else value)

            totals = compute_totals(ledger.quantity, ledger.rate, ledger.gst_percentage, ledger.other_expenses)
            ledger.base_amount = totals["base_amount"]
            ledger.gst_amount = totals["gst_amount"]
            self.ledger.rebalance(ledger, totals["total_amount"])

            self.audit.log(
                action=AuditAction.UPDATE,
                resource_type="Property",
                resource_id=ledger.id,
                old_values=before,
                new_values=ledger.ledger_snapshot(),
                user_id=user_id
            )
            return ledger

        return self.ledger.with_lock(Property, prop.id, apply)

    def restore(self, property_id: int, user_id: Optional[int] = None) -> Property:
        prop = super().restore(property_id)
        self.audit.log(action=AuditAction.RESTORE, resource_type="Property", resource_id=prop.id, user_id=user_id)
        return prop

    def force_delete(self, property_id: int, user_id: Optional[int] = None) -> List[str]:
        """
        Permanently remove a trashed property with its journal, EMIs, sales
        and documents. Returns the stored file paths that should be deleted
        once the removal is committed.
        """
        prop = self.get_or_404(property_id, include_deleted=True)
        if not prop.is_deleted:
            raise BusinessRuleError("Property must be in trash before it can be permanently deleted")

        files = [d.doc_file for d in prop.documents]
        files += [t.payment_receipt for t in prop.transactions]
        files += [e.payment_receipt for e in prop.emis]
        for sale in prop.sell_deals:
            files.append(sale.payment_receipt)
            files += [e.payment_receipt for e in sale.sell_emis]

        self.db.delete(prop)
        self.db.flush()
        self.audit.log(
            action=AuditAction.FORCE_DELETE,
            resource_type="Property",
            resource_id=property_id,
            description=f"Permanently deleted {prop.title}",
            user_id=user_id
        )
        logger.info(f"Property #{property_id} permanently deleted")
        return sorted({f for f in files if f})

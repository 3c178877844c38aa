"""
Transaction Service - the cash journal

Every create / update / delete / restore of a journal row moves the balance
of exactly one ledger:

* a row linked to a sale deal posts to that SellProperty (CREDIT)
* a row on a legacy SELL-type property posts CREDIT to the Property
* anything else is a vendor payment, DEBIT on the Property
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple, Type
import logging

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session, aliased

from estatedesk.core.exceptions import BusinessRuleError, NotFoundError, ValidationFailedError
from estatedesk.core.pagination import Page, paginate
from estatedesk.models import (
    Customer, Property, PropertyTransactionType, SellProperty, Transaction, TransactionType, ZERO
)
from estatedesk.schemas import TransactionCreate, TransactionUpdate
from estatedesk.services.audit_service import AuditAction, AuditService
from estatedesk.services.base import SoftDeleteRepository
from estatedesk.services.ledger_service import Ledger, LedgerService, ledger_label, money

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "payment_date": Transaction.payment_date,
    "amount": Transaction.amount,
    "created_at": Transaction.created_at,
    "id": Transaction.id,
}


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


class TransactionService(SoftDeleteRepository[Transaction]):
    model = Transaction
    label = "Transaction"

    def __init__(self, db: Session):
        super().__init__(db)
        self.ledger = LedgerService(db)
        self.audit = AuditService(db)

    # ==================== POSTING ====================

    def resolve_target(self, property_id: int, sell_property_id: Optional[int] = None) -> Tuple[Type[Ledger], int]:
        """Find the ledger a new journal row belongs to"""
        prop = self.db.query(Property).filter(
            Property.id == property_id,
            Property.is_deleted == False
        ).first()
        if not prop:
            raise NotFoundError("Property not found")

        if sell_property_id:
            sale = self.db.query(SellProperty).filter(
                SellProperty.id == sell_property_id,
                SellProperty.is_deleted == False
            ).first()
            if not sale:
                raise NotFoundError("Sale not found")
            if sale.property_id != prop.id:
                raise ValidationFailedError("The sale does not belong to this property")
            return SellProperty, sale.id

        return Property, prop.id

    @staticmethod
    def target_of(transaction: Transaction) -> Tuple[Type[Ledger], int]:
        if transaction.sell_property_id:
            return SellProperty, transaction.sell_property_id
        return Property, transaction.property_id

    @staticmethod
    def entry_type(ledger: Ledger) -> str:
        if isinstance(ledger, SellProperty):
            return TransactionType.CREDIT.value
        if ledger.transaction_type == PropertyTransactionType.SELL.value:
            return TransactionType.CREDIT.value
        return TransactionType.DEBIT.value

    def post(
        self,
        ledger: Ledger,
        amount: Decimal,
        payment_date: date,
        payment_mode: str,
        user_id: Optional[int] = None,
        **fields
    ) -> Transaction:
        """
        Validate and post a payment against a ledger the caller has already
        locked. Used by the journal endpoints, sale/purchase creation and EMI
        payments.
        """
        amount = money(amount)
        self.ledger.check_payment(ledger, amount)
        self.ledger.apply_delta(ledger, amount)

        is_sale = isinstance(ledger, SellProperty)
        transaction = self._build_transaction(
            property_id=ledger.property_id if is_sale else ledger.id,
            sell_property_id=ledger.id if is_sale else None,
            type=self.entry_type(ledger),
            amount=amount,
            payment_date=payment_date,
            payment_mode=_enum_value(payment_mode),
            created_by=user_id,
            **fields
        )
        self.db.add(transaction)
        self.db.flush()

        self.audit.log(
            action=AuditAction.PAYMENT_POSTED,
            resource_type="Transaction",
            resource_id=transaction.id,
            description=f"{transaction.type} {amount:.2f} on {ledger_label(ledger).lower()} #{ledger.id}",
            new_values=ledger.ledger_snapshot(),
            user_id=user_id
        )
        return transaction

    def _build_transaction(self, **values) -> Transaction:
        return Transaction(**values)

    def create(self, data: TransactionCreate, user_id: Optional[int] = None) -> Transaction:
        model, ledger_id = self.resolve_target(data.property_id, data.sell_property_id)
        return self.ledger.with_lock(model, ledger_id, lambda ledger: self.post(
            ledger,
            data.amount,
            data.payment_date,
            data.payment_mode,
            user_id=user_id,
            reference_no=data.reference_no,
            transaction_no=data.transaction_no,
            remarks=data.remarks
        ))

    def update(self, transaction_id: int, data: TransactionUpdate, user_id: Optional[int] = None) -> Transaction:
        transaction = self.get_or_404(transaction_id)
        model, ledger_id = self.target_of(transaction)

        def adjust(ledger: Ledger) -> Transaction:
            if self._reread(transaction).is_deleted:
                raise NotFoundError("Transaction not found")
            old_amount = money(transaction.amount)
            new_amount = money(data.amount) if data.amount is not None else old_amount
            before = ledger.ledger_snapshot()

            if new_amount != old_amount:
                self.ledger.check_adjustment(ledger, old_amount, new_amount)
                self.ledger.apply_delta(ledger, new_amount - old_amount)
                self._sync_emi(transaction, new_amount - old_amount)
                transaction.amount = new_amount

            update_data = data.model_dump(exclude_unset=True, exclude={"amount"})
            for key, value in update_data.items():
                if value is None and key in ("payment_date", "payment_mode"):
                    continue
                setattr(transaction, key, _enum_value(value))

            self.audit.log(
                action=AuditAction.PAYMENT_UPDATED,
                resource_type="Transaction",
                resource_id=transaction.id,
                description=f"Amount {old_amount:.2f} -> {new_amount:.2f}",
                old_values=before,
                new_values=ledger.ledger_snapshot(),
                user_id=user_id
            )
            return transaction

        return self.ledger.with_lock(model, ledger_id, adjust)

    def destroy(self, transaction_id: int, user_id: Optional[int] = None) -> Transaction:
        """Soft-delete a journal row and give its amount back to the ledger's due"""
        transaction = self.get_or_404(transaction_id)
        model, ledger_id = self.target_of(transaction)

        def reverse(ledger: Ledger) -> Transaction:
            if self._reread(transaction).is_deleted:
                raise NotFoundError("Transaction not found")
            before = ledger.ledger_snapshot()
            self.ledger.apply_delta(ledger, -money(transaction.amount))
            self._sync_emi(transaction, -money(transaction.amount))
            transaction.soft_delete()
            self.audit.log(
                action=AuditAction.PAYMENT_REVERSED,
                resource_type="Transaction",
                resource_id=transaction.id,
                description=f"Reversed {transaction.type} {money(transaction.amount):.2f}",
                old_values=before,
                new_values=ledger.ledger_snapshot(),
                user_id=user_id
            )
            return transaction

        return self.ledger.with_lock(model, ledger_id, reverse)

    def restore(self, transaction_id: int, user_id: Optional[int] = None) -> Transaction:
        """Re-post a trashed journal row under the same guard as a new payment"""
        transaction = self.get_or_404(transaction_id, include_deleted=True)
        if not transaction.is_deleted:
            raise BusinessRuleError("Transaction is not in trash")
        model, ledger_id = self.target_of(transaction)

        def repost(ledger: Ledger) -> Transaction:
            if not self._reread(transaction).is_deleted:
                raise BusinessRuleError("Transaction is not in trash")
            self.ledger.check_payment(ledger, transaction.amount)
            self.ledger.apply_delta(ledger, money(transaction.amount))
            self._sync_emi(transaction, money(transaction.amount))
            transaction.restore()
            self.audit.log(
                action=AuditAction.RESTORE,
                resource_type="Transaction",
                resource_id=transaction.id,
                new_values=ledger.ledger_snapshot(),
                user_id=user_id
            )
            return transaction

        return self.ledger.with_lock(model, ledger_id, repost)

    def _reread(self, transaction: Transaction) -> Transaction:
        """
        Lock the journal row and its installment, then reload both. Called with
        the ledger lock held, so amount and trash state are the committed ones.
        """
        self.db.refresh(transaction, with_for_update=True)
        emi = transaction.emi or transaction.sell_emi
        if emi is not None:
            self.db.refresh(emi, with_for_update=True)
        return transaction

    def _sync_emi(self, transaction: Transaction, delta: Decimal):
        """Keep the installment that produced this row in step with it"""
        emi = transaction.emi or transaction.sell_emi
        if emi is None:
            return
        paid = money(emi.paid_amount) + money(delta)
        emi.paid_amount = paid if paid > 0 else ZERO
        emi.refresh_status()

    # ==================== QUERIES ====================

    def balances(self, transaction: Transaction) -> Dict[str, Any]:
        model, ledger_id = self.target_of(transaction)
        ledger = self.db.query(model).filter(model.id == ledger_id).first()
        return {
            "ledger": ledger_label(ledger).upper(),
            "ledger_id": ledger.id,
            "total": ledger.ledger_total,
            "paid": ledger.ledger_paid,
            "due": ledger.ledger_due,
        }

    @staticmethod
    def party_name(transaction: Transaction) -> Optional[str]:
        if transaction.sell_property and transaction.sell_property.buyer:
            return transaction.sell_property.buyer.name
        prop = transaction.property
        if prop is None:
            return None
        if transaction.type == TransactionType.CREDIT.value:
            return prop.buyer.name if prop.buyer else None
        return prop.seller.name if prop.seller else None

    def list_for_property(self, property_id: int) -> Dict[str, Any]:
        prop = self.db.query(Property).filter(Property.id == property_id, Property.is_deleted == False).first()
        if not prop:
            raise NotFoundError("Property not found")

        transactions = self.query().filter(
            Transaction.property_id == property_id
        ).order_by(Transaction.payment_date.desc(), Transaction.id.desc()).all()

        total_credit = sum((money(t.amount) for t in transactions if t.type == TransactionType.CREDIT.value), ZERO)
        total_debit = sum((money(t.amount) for t in transactions if t.type == TransactionType.DEBIT.value), ZERO)
        return {
            "property": prop,
            "transactions": transactions,
            "summary": {
                "total_credit": total_credit,
                "total_debit": total_debit,
                "count": len(transactions),
            },
        }

    def search(
        self,
        type: Optional[str] = None,
        payment_mode: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        min_amount: Optional[Decimal] = None,
        max_amount: Optional[Decimal] = None,
        search: Optional[str] = None,
        sort_by: str = "payment_date",
        sort_dir: str = "desc",
        page: int = 1,
        per_page: int = 20
    ) -> Tuple[Page, Dict[str, Decimal]]:
        """Journal across all ledgers with filters; returns the page and totals of the filtered set"""
        seller = aliased(Customer)
        buyer = aliased(Customer)
        query = (
            self.query()
            .join(Property, Transaction.property_id == Property.id)
            .outerjoin(seller, Property.seller_id == seller.id)
            .outerjoin(SellProperty, Transaction.sell_property_id == SellProperty.id)
            .outerjoin(buyer, SellProperty.customer_id == buyer.id)
        )

        if type:
            query = query.filter(Transaction.type == _enum_value(type))
        if payment_mode:
            query = query.filter(Transaction.payment_mode == _enum_value(payment_mode))
        if start_date:
            query = query.filter(Transaction.payment_date >= start_date)
        if end_date:
            query = query.filter(Transaction.payment_date <= end_date)
        if min_amount is not None:
            query = query.filter(Transaction.amount >= min_amount)
        if max_amount is not None:
            query = query.filter(Transaction.amount <= max_amount)
        if search:
            like = f"%{search.strip()}%"
            query = query.filter(or_(
                Transaction.reference_no.ilike(like),
                Transaction.remarks.ilike(like),
                Property.title.ilike(like),
                seller.name.ilike(like),
                buyer.name.ilike(like),
            ))

        credit_sum, debit_sum = query.order_by(None).with_entities(
            func.coalesce(func.sum(case((Transaction.type == TransactionType.CREDIT.value, Transaction.amount), else_=0)), 0),
            func.coalesce(func.sum(case((Transaction.type == TransactionType.DEBIT.value, Transaction.amount), else_=0)), 0),
        ).one()

        column = SORTABLE_COLUMNS.get(sort_by, Transaction.payment_date)
        ordering = column.asc() if sort_dir == "asc" else column.desc()
        page_result = paginate(query.order_by(ordering, Transaction.id.desc()), page, per_page)

        totals = {"total_credit": money(credit_sum), "total_debit": money(debit_sum)}
        return page_result, totals

    def sale_history(self, property_id: int) -> Dict[str, Any]:
        """Every live sale deal of a property with its receipts"""
        prop = self.db.query(Property).filter(Property.id == property_id, Property.is_deleted == False).first()
        if not prop:
            raise NotFoundError("Property not found")

        deals = []
        for sale in prop.sell_deals:
            if sale.is_deleted:
                continue
            receipts = [t for t in sale.transactions if not t.is_deleted]
            receipts.sort(key=lambda t: (t.payment_date, t.id), reverse=True)
            deals.append({
                "sale": sale,
                "buyer_name": sale.buyer.name if sale.buyer else None,
                "buyer_phone": sale.buyer.phone if sale.buyer else None,
                # Within a rupee counts as settled
                "status": "FULLY PAID" if sale.ledger_due <= 1 else "PENDING",
                "transactions": receipts,
            })

        return {"property": prop, "deals": deals}

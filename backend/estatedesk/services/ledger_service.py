"""
Ledger Service - the paid + due == total bookkeeping shared by every payment flow

Property (total / paid / due) and SellProperty (total sale / received /
pending) both expose the LedgerMixin accessors, so the rules below are
written once. Every mutation goes through ``with_lock``:

    lock the ledger row -> read balances -> validate -> write -> flush

and any exception inside the unit rolls back the ledger, journal and EMI
writes together.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Type, TypeVar, Union
import logging

from sqlalchemy.orm import Session

from estatedesk.core.exceptions import BusinessRuleError, NotFoundError
from estatedesk.models import Property, SellProperty, PropertyStatus, ZERO

logger = logging.getLogger(__name__)

EPSILON = Decimal("0.01")
TWO_PLACES = Decimal("0.01")

Ledger = Union[Property, SellProperty]
T = TypeVar("T")


def money(value) -> Decimal:
    """Quantize to 2 places, half-up"""
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def ledger_label(ledger: Ledger) -> str:
    return "Sale" if isinstance(ledger, SellProperty) else "Property"


class LedgerService:
    def __init__(self, db: Session):
        self.db = db

    def lock(self, model: Type[Ledger], ledger_id: int) -> Ledger:
        """
        Row-lock a live ledger and re-read its balances.
        Pending changes are flushed first so the refresh does not discard them.
        """
        self.db.flush()
        ledger = (
            self.db.query(model)
            .filter(model.id == ledger_id, model.is_deleted == False)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not ledger:
            raise NotFoundError(f"{'Sale' if model is SellProperty else 'Property'} not found")
        return ledger

    def with_lock(self, model: Type[Ledger], ledger_id: int, fn: Callable[[Ledger], T]) -> T:
        """Run ``fn(ledger)`` as one unit of work with the ledger row locked"""
        try:
            ledger = self.lock(model, ledger_id)
            result = fn(ledger)
            self.db.flush()
            return result
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Ledger unit on {model.__name__}(id={ledger_id}) rolled back: {e}")
            raise

    def check_payment(self, ledger: Ledger, amount: Decimal):
        """Reject a new payment that the ledger cannot absorb"""
        amount = money(amount)
        due = ledger.ledger_due
        label = ledger_label(ledger)
        if amount <= 0:
            raise BusinessRuleError("Amount must be greater than zero")
        if due <= 0:
            raise BusinessRuleError(f"{label} is already fully paid")
        if amount > due + EPSILON:
            raise BusinessRuleError(
                f"Amount ({amount:.2f}) exceeds due amount ({due:.2f}) on {label.lower()} #{ledger.id}"
            )

    def check_adjustment(self, ledger: Ledger, old_amount: Decimal, new_amount: Decimal):
        """
        Validate replacing a posted amount. The ceiling is the due the ledger
        would have without the old posting: total - (paid - old).
        """
        old_amount = money(old_amount)
        new_amount = money(new_amount)
        available = ledger.ledger_total - (ledger.ledger_paid - old_amount)
        if new_amount > available + EPSILON:
            raise BusinessRuleError(
                f"Amount ({new_amount:.2f}) exceeds due amount ({available:.2f}) on "
                f"{ledger_label(ledger).lower()} #{ledger.id}"
            )

    def apply_delta(self, ledger: Ledger, delta: Decimal) -> Ledger:
        """
        Move ``delta`` between paid and due. Paid never drops below 0 and
        due never drops below 0.
        """
        delta = money(delta)
        new_paid = ledger.ledger_paid + delta
        if new_paid < 0:
            new_paid = ZERO
        new_due = ledger.ledger_total - new_paid
        if new_due < 0:
            new_due = ZERO

        ledger.set_balances(money(new_paid), money(new_due))
        if isinstance(ledger, SellProperty):
            self.sync_property_status(ledger)

        logger.info(
            f"{ledger_label(ledger)} #{ledger.id}: delta={delta} "
            f"paid={ledger.ledger_paid} due={ledger.ledger_due} total={ledger.ledger_total}"
        )
        return ledger

    def rebalance(self, ledger: Ledger, total: Decimal) -> Ledger:
        """
        Replace the total of a ledger after its pricing was edited, keeping
        what was already paid.
        """
        total = money(total)
        if ledger.ledger_paid > total + EPSILON:
            raise BusinessRuleError(
                f"Total amount ({total:.2f}) cannot be less than the amount already paid "
                f"({ledger.ledger_paid:.2f})"
            )
        total_column = ledger.__ledger_columns__[0]
        setattr(ledger, total_column, total)
        due = total - ledger.ledger_paid
        ledger.set_balances(ledger.ledger_paid, money(due if due > 0 else ZERO))
        if isinstance(ledger, SellProperty):
            self.sync_property_status(ledger)
        return ledger

    def sync_property_status(self, sale: SellProperty):
        """A sale with nothing pending marks its property SOLD, otherwise BOOKED"""
        prop = sale.property
        if prop is None or sale.is_deleted:
            return
        prop.status = (
            PropertyStatus.SOLD.value if sale.ledger_due <= 0 else PropertyStatus.BOOKED.value
        )

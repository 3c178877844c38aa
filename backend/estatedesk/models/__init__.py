"""
SQLAlchemy Models for the property ledger back-office
"""
from datetime import datetime, date
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Date, Numeric,
    ForeignKey, Index, text
)
from sqlalchemy.orm import relationship
import enum

from estatedesk.core.database import Base


SUPER_ADMIN_ROLE_ID = 1
SUPER_ADMIN_USER_ID = 1

ZERO = Decimal("0.00")


# ==================== ENUMS ====================

class EntityState(str, enum.Enum):
    ACTIVE = "ACTIVE"
    DELETED = "DELETED"


class CustomerType(str, enum.Enum):
    SELLER = "SELLER"
    BUYER = "BUYER"
    BOTH = "BOTH"


class PropertyTransactionType(str, enum.Enum):
    PURCHASE = "PURCHASE"
    SELL = "SELL"


class PropertyStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    BOOKED = "BOOKED"
    SOLD = "SOLD"


class TransactionType(str, enum.Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class EmiStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


# ==================== MIXINS ====================

def active_only(column_name: str = "is_deleted"):
    """Partial-index predicate: uniqueness only applies to live rows"""
    return {
        "sqlite_where": text(f"{column_name} = 0"),
        "postgresql_where": text(f"{column_name} = false"),
    }


class SoftDeleteMixin:
    """Rows are flagged instead of removed; restore flips the flag back"""
    is_deleted = Column(Boolean, default=False, nullable=False)

    @property
    def lifecycle(self) -> EntityState:
        return EntityState.DELETED if self.is_deleted else EntityState.ACTIVE

    def soft_delete(self):
        self.is_deleted = True

    def restore(self):
        self.is_deleted = False


class LedgerMixin:
    """
    A total / paid / due triple. Subclasses name their own columns in
    ``__ledger_columns__``; LedgerService only talks to these accessors.
    """
    __ledger_columns__ = ("total_amount", "paid_amount", "due_amount")

    @property
    def ledger_total(self) -> Decimal:
        return Decimal(getattr(self, self.__ledger_columns__[0]) or 0)

    @property
    def ledger_paid(self) -> Decimal:
        return Decimal(getattr(self, self.__ledger_columns__[1]) or 0)

    @property
    def ledger_due(self) -> Decimal:
        return Decimal(getattr(self, self.__ledger_columns__[2]) or 0)

    def set_balances(self, paid: Decimal, due: Decimal):
        _, paid_column, due_column = self.__ledger_columns__
        setattr(self, paid_column, paid)
        setattr(self, due_column, due)

    def ledger_snapshot(self) -> dict:
        total_column, paid_column, due_column = self.__ledger_columns__
        return {
            total_column: self.ledger_total,
            paid_column: self.ledger_paid,
            due_column: self.ledger_due,
        }


# ==================== ACCESS CONTROL ====================

class Role(SoftDeleteMixin, Base):
    """Role id 1 is the protected Super Admin"""
    __tablename__ = 'roles'

    id = Column(Integer, primary_key=True)
    role_name = Column(String(100), nullable=False)
    status = Column(Boolean, default=True, nullable=False)
    user_id = Column(Integer, nullable=True)  # creator
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    users = relationship("User", back_populates="role")

    @property
    def is_super_admin(self) -> bool:
        return self.id == SUPER_ADMIN_ROLE_ID


class User(SoftDeleteMixin, Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    role_id = Column(Integer, ForeignKey('roles.id'), nullable=False)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    hashed_password = Column(String(255), nullable=False)
    status = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    role = relationship("Role", back_populates="users")

    __table_args__ = (
        Index('uq_users_email_active', 'email', unique=True, **active_only()),
    )

    @property
    def is_super_admin(self) -> bool:
        return self.role_id == SUPER_ADMIN_ROLE_ID

    @property
    def role_name(self):
        return self.role.role_name if self.role else None


# ==================== PARTIES ====================

class Customer(SoftDeleteMixin, Base):
    """Vendor and/or buyer with KYC details"""
    __tablename__ = 'customers'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(10), nullable=False)
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    type = Column(String(10), default=CustomerType.BOTH.value, nullable=False)
    pan_number = Column(String(10), nullable=True)
    pan_file_path = Column(String(500), nullable=True)
    aadhar_number = Column(String(12), nullable=True)
    aadhar_file_path = Column(String(500), nullable=True)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    supplied_properties = relationship("Property", foreign_keys="Property.seller_id", back_populates="seller")
    purchases = relationship("SellProperty", back_populates="buyer")

    __table_args__ = (
        Index('uq_customers_phone_active', 'phone', unique=True, **active_only()),
        Index('uq_customers_pan_active', 'pan_number', unique=True, **active_only()),
        Index('uq_customers_aadhar_active', 'aadhar_number', unique=True, **active_only()),
    )


# ==================== INVENTORY ====================

class Property(SoftDeleteMixin, LedgerMixin, Base):
    """Inventory row with the vendor-side ledger"""
    __tablename__ = 'properties'
    __ledger_columns__ = ("total_amount", "paid_amount", "due_amount")

    id = Column(Integer, primary_key=True)
    date = Column(Date, nullable=False)
    transaction_type = Column(String(10), default=PropertyTransactionType.PURCHASE.value, nullable=False)
    invoice_no = Column(String(100), nullable=True)
    seller_id = Column(Integer, ForeignKey('customers.id'), nullable=True)
    buyer_id = Column(Integer, ForeignKey('customers.id'), nullable=True)

    title = Column(String(255), nullable=False)
    category = Column(String(20), nullable=False)
    address = Column(Text, nullable=True)

    # Pricing
    quantity = Column(Numeric(12, 2), default=Decimal("1"), nullable=False)
    rate = Column(Numeric(15, 2), default=ZERO, nullable=False)
    base_amount = Column(Numeric(15, 2), default=ZERO, nullable=False)
    gst_percentage = Column(Numeric(5, 2), default=ZERO, nullable=False)
    gst_amount = Column(Numeric(15, 2), default=ZERO, nullable=False)
    other_expenses = Column(Numeric(15, 2), default=ZERO, nullable=False)
    total_amount = Column(Numeric(15, 2), default=ZERO, nullable=False)
    paid_amount = Column(Numeric(15, 2), default=ZERO, nullable=False)
    due_amount = Column(Numeric(15, 2), default=ZERO, nullable=False)

    # Land / building details
    area_dismil = Column(Numeric(12, 2), nullable=True)
    per_dismil_amount = Column(Numeric(15, 2), nullable=True)
    plot_number = Column(String(100), nullable=True)
    khata_number = Column(String(100), nullable=True)
    house_number = Column(String(100), nullable=True)
    floor_number = Column(String(50), nullable=True)
    bhk = Column(String(20), nullable=True)
    super_built_up_area = Column(Numeric(12, 2), nullable=True)

    # Vendor financing
    period_years = Column(Integer, nullable=True)
    amount_per_month = Column(Numeric(15, 2), nullable=True)
    payment_mode = Column(String(10), nullable=True)

    status = Column(String(10), default=PropertyStatus.AVAILABLE.value, nullable=False)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    seller = relationship("Customer", foreign_keys=[seller_id], back_populates="supplied_properties")
    buyer = relationship("Customer", foreign_keys=[buyer_id])
    transactions = relationship("Transaction", back_populates="property", cascade="all, delete-orphan")
    emis = relationship("Emi", back_populates="property", cascade="all, delete-orphan",
                        order_by="Emi.emi_number")
    sell_deals = relationship("SellProperty", back_populates="property", cascade="all, delete-orphan")
    documents = relationship("PropertyDocument", back_populates="property", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_properties_status', 'status'),
        Index('ix_properties_date', 'date'),
    )


class SellProperty(SoftDeleteMixin, LedgerMixin, Base):
    """Sale deal of a property to a buyer, with the buyer-side ledger"""
    __tablename__ = 'sell_properties'
    __ledger_columns__ = ("total_sale_amount", "received_amount", "pending_amount")

    id = Column(Integer, primary_key=True)
    property_id = Column(Integer, ForeignKey('properties.id', ondelete='CASCADE'), nullable=False)
    customer_id = Column(Integer, ForeignKey('customers.id'), nullable=False)
    invoice_no = Column(String(100), nullable=False)
    sale_date = Column(Date, nullable=False)

    plot_number = Column(String(100), nullable=True)
    khata_number = Column(String(100), nullable=True)
    area_dismil = Column(Numeric(12, 2), nullable=True)
    per_dismil_amount = Column(Numeric(15, 2), nullable=True)

    quantity = Column(Numeric(12, 2), default=Decimal("1"), nullable=False)
    sale_rate = Column(Numeric(15, 2), nullable=False)
    sale_base_amount = Column(Numeric(15, 2), default=ZERO, nullable=False)
    gst_percentage = Column(Numeric(5, 2), default=ZERO, nullable=False)
    gst_amount = Column(Numeric(15, 2), default=ZERO, nullable=False)
    other_charges = Column(Numeric(15, 2), default=ZERO, nullable=False)
    discount_amount = Column(Numeric(15, 2), default=ZERO, nullable=False)
    total_sale_amount = Column(Numeric(15, 2), default=ZERO, nullable=False)
    received_amount = Column(Numeric(15, 2), default=ZERO, nullable=False)
    pending_amount = Column(Numeric(15, 2), default=ZERO, nullable=False)

    # Buyer financing
    period_years = Column(Integer, nullable=True)
    amount_per_month = Column(Numeric(15, 2), nullable=True)

    payment_mode = Column(String(10), nullable=True)
    payment_receipt = Column(String(500), nullable=True)
    remarks = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    property = relationship("Property", back_populates="sell_deals")
    buyer = relationship("Customer", back_populates="purchases")
    transactions = relationship("Transaction", back_populates="sell_property")
    sell_emis = relationship("SellEmi", back_populates="sell_property", cascade="all, delete-orphan",
                             order_by="SellEmi.emi_number")
    documents = relationship("PropertyDocument", back_populates="sell_property")

    __table_args__ = (
        Index('ix_sell_properties_property_id', 'property_id'),
        Index('ix_sell_properties_customer_id', 'customer_id'),
    )


# ==================== JOURNAL ====================

class Transaction(SoftDeleteMixin, Base):
    """One cash movement; CREDIT is money in, DEBIT is money out"""
    __tablename__ = 'transactions'

    id = Column(Integer, primary_key=True)
    property_id = Column(Integer, ForeignKey('properties.id', ondelete='CASCADE'), nullable=False)
    sell_property_id = Column(Integer, ForeignKey('sell_properties.id', ondelete='CASCADE'), nullable=True)
    emi_id = Column(Integer, ForeignKey('emis.id', ondelete='SET NULL'), nullable=True)
    sell_emi_id = Column(Integer, ForeignKey('sell_emis.id', ondelete='SET NULL'), nullable=True)

    type = Column(String(10), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    payment_date = Column(Date, nullable=False)
    payment_mode = Column(String(10), nullable=False)
    reference_no = Column(String(100), nullable=True)
    transaction_no = Column(String(100), nullable=True)
    payment_receipt = Column(String(500), nullable=True)
    remarks = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    property = relationship("Property", back_populates="transactions")
    sell_property = relationship("SellProperty", back_populates="transactions")
    emi = relationship("Emi", back_populates="transactions")
    sell_emi = relationship("SellEmi", back_populates="transactions")

    __table_args__ = (
        Index('ix_transactions_property_id', 'property_id'),
        Index('ix_transactions_sell_property_id', 'sell_property_id'),
        Index('ix_transactions_payment_date', 'payment_date'),
    )


# ==================== EMI SCHEDULES ====================

class EmiFieldsMixin(SoftDeleteMixin):
    emi_number = Column(Integer, nullable=False)
    emi_amount = Column(Numeric(15, 2), nullable=False)
    due_date = Column(Date, nullable=False)
    paid_amount = Column(Numeric(15, 2), default=ZERO, nullable=False)
    status = Column(String(10), default=EmiStatus.PENDING.value, nullable=False)
    paid_date = Column(Date, nullable=True)
    payment_mode = Column(String(10), nullable=True)
    transaction_no = Column(String(100), nullable=True)
    payment_receipt = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def refresh_status(self, today: date = None):
        """Derive status from the cumulative paid amount and the due date"""
        today = today or date.today()
        paid = Decimal(self.paid_amount or 0)
        if paid >= Decimal(self.emi_amount):
            self.status = EmiStatus.PAID.value
            return
        if paid <= 0:
            self.paid_date = None
        self.status = EmiStatus.OVERDUE.value if self.due_date < today else EmiStatus.PENDING.value


class Emi(EmiFieldsMixin, Base):
    """Vendor-side installment owed on a purchased property"""
    __tablename__ = 'emis'

    id = Column(Integer, primary_key=True)
    property_id = Column(Integer, ForeignKey('properties.id', ondelete='CASCADE'), nullable=False)

    property = relationship("Property", back_populates="emis")
    transactions = relationship("Transaction", back_populates="emi")


class SellEmi(EmiFieldsMixin, Base):
    """Buyer-side installment due on a sale deal"""
    __tablename__ = 'sell_emis'

    id = Column(Integer, primary_key=True)
    sell_property_id = Column(Integer, ForeignKey('sell_properties.id', ondelete='CASCADE'), nullable=False)

    sell_property = relationship("SellProperty", back_populates="sell_emis")
    transactions = relationship("Transaction", back_populates="sell_emi")


# ==================== DOCUMENTS ====================

class PropertyDocument(SoftDeleteMixin, Base):
    """File attached to a property, optionally to one of its sale deals"""
    __tablename__ = 'property_documents'

    id = Column(Integer, primary_key=True)
    property_id = Column(Integer, ForeignKey('properties.id', ondelete='CASCADE'), nullable=False)
    sell_property_id = Column(Integer, ForeignKey('sell_properties.id', ondelete='SET NULL'), nullable=True)
    doc_name = Column(String(255), nullable=False)
    doc_file = Column(String(500), nullable=False)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    property = relationship("Property", back_populates="documents")
    sell_property = relationship("SellProperty", back_populates="documents")


# ==================== AUDIT ====================

class AuditLog(Base):
    """Audit trail for ledger movements and access-control changes"""
    __tablename__ = 'audit_logs'

    id = Column(Integer, primary_key=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    user_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    username = Column(String(255), nullable=True)  # kept in case the user is removed

    action = Column(String(50), nullable=False)
    resource_type = Column(String(100), nullable=False)
    resource_id = Column(Integer, nullable=True)

    description = Column(Text, nullable=True)
    old_values = Column(Text, nullable=True)  # JSON
    new_values = Column(Text, nullable=True)  # JSON
    status = Column(String(20), default='success')

    __table_args__ = (
        Index('ix_audit_logs_timestamp', 'timestamp'),
        Index('ix_audit_logs_resource', 'resource_type', 'resource_id'),
    )

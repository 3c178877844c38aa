"""
Pydantic Schemas for API Validation

Request bodies are allow-lists: only the fields declared here reach the
services, everything else in a payload is dropped.
"""
from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator
from typing import Optional
from datetime import datetime, date
from decimal import Decimal
from enum import Enum


# "date" is also a field name on the property schemas
DateType = date


# ==================== ENUMS ====================

class CustomerTypeEnum(str, Enum):
    SELLER = "SELLER"
    BUYER = "BUYER"
    BOTH = "BOTH"


class PropertyCategoryEnum(str, Enum):
    LAND = "LAND"
    FLAT = "FLAT"
    HOUSE = "HOUSE"
    COMMERCIAL = "COMMERCIAL"
    AGRICULTURE = "AGRICULTURE"


class PropertyTransactionTypeEnum(str, Enum):
    PURCHASE = "PURCHASE"
    SELL = "SELL"


class PropertyStatusEnum(str, Enum):
    AVAILABLE = "AVAILABLE"
    BOOKED = "BOOKED"
    SOLD = "SOLD"


class TransactionTypeEnum(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class PaymentModeEnum(str, Enum):
    CASH = "CASH"
    ONLINE = "ONLINE"
    CHEQUE = "CHEQUE"
    UPI = "UPI"
    DD = "DD"


class EmiStatusEnum(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


# ==================== AUTH SCHEMAS ====================

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ChangePasswordRequest(BaseModel):
    user_id: Optional[int] = None  # super admin resetting someone else
    old_password: Optional[str] = None
    new_password: str = Field(..., min_length=6)


# ==================== ROLE SCHEMAS ====================

class RoleCreate(BaseModel):
    role_name: str = Field(..., min_length=2, max_length=100)
    status: bool = True


class RoleUpdate(BaseModel):
    role_name: Optional[str] = Field(None, min_length=2, max_length=100)
    status: Optional[bool] = None


class RoleResponse(BaseModel):
    id: int
    role_name: str
    status: bool
    user_id: Optional[int] = None
    is_deleted: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ==================== USER SCHEMAS ====================

class UserRegister(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    password: Optional[str] = Field(None, min_length=6)
    role_id: int
    status: bool = True


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    email: Optional[EmailStr] = None
    role_id: Optional[int] = None
    status: Optional[bool] = None


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role_id: int
    role_name: Optional[str] = None
    status: bool
    is_deleted: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ==================== CUSTOMER SCHEMAS ====================

class CustomerBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    phone: str = Field(..., pattern=r"^\d{10}$")
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    type: CustomerTypeEnum = CustomerTypeEnum.BOTH
    pan_number: Optional[str] = Field(None, pattern=r"^[A-Z]{5}[0-9]{4}[A-Z]$")
    aadhar_number: Optional[str] = Field(None, pattern=r"^\d{12}$")

    @field_validator("pan_number", mode="before")
    @classmethod
    def upper_pan(cls, v):
        return v.strip().upper() if isinstance(v, str) and v.strip() else None


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    phone: Optional[str] = Field(None, pattern=r"^\d{10}$")
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    type: Optional[CustomerTypeEnum] = None
    pan_number: Optional[str] = Field(None, pattern=r"^[A-Z]{5}[0-9]{4}[A-Z]$")
    aadhar_number: Optional[str] = Field(None, pattern=r"^\d{12}$")

    @field_validator("pan_number", mode="before")
    @classmethod
    def upper_pan(cls, v):
        return v.strip().upper() if isinstance(v, str) and v.strip() else None


class CustomerResponse(CustomerBase):
    id: int
    email: Optional[str] = None
    pan_file_path: Optional[str] = None
    aadhar_file_path: Optional[str] = None
    created_by: Optional[int] = None
    is_deleted: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ==================== PROPERTY SCHEMAS ====================

class PropertyDetails(BaseModel):
    """Descriptive fields shared by create and update"""
    address: Optional[str] = None
    area_dismil: Optional[Decimal] = Field(None, ge=0)
    per_dismil_amount: Optional[Decimal] = Field(None, ge=0)
    plot_number: Optional[str] = None
    khata_number: Optional[str] = None
    house_number: Optional[str] = None
    floor_number: Optional[str] = None
    bhk: Optional[str] = None
    super_built_up_area: Optional[Decimal] = Field(None, ge=0)


class PropertyCreate(PropertyDetails):
    date: DateType
    transaction_type: PropertyTransactionTypeEnum = PropertyTransactionTypeEnum.PURCHASE
    invoice_no: Optional[str] = None
    seller_id: Optional[int] = None
    buyer_id: Optional[int] = None
    title: str = Field(..., min_length=2, max_length=255)
    category: PropertyCategoryEnum
    quantity: Decimal = Field(Decimal("1"), gt=0)
    rate: Decimal = Field(..., ge=0, max_digits=15, decimal_places=2)
    gst_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    other_expenses: Decimal = Field(Decimal("0"), ge=0, max_digits=15, decimal_places=2)
    paid_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=15, decimal_places=2)
    payment_mode: PaymentModeEnum = PaymentModeEnum.CASH
    period_years: Optional[int] = Field(None, gt=0, le=50)
    amount_per_month: Optional[Decimal] = Field(None, gt=0)


class PropertyUpdate(PropertyDetails):
    date: Optional[DateType] = None
    invoice_no: Optional[str] = None
    seller_id: Optional[int] = None
    buyer_id: Optional[int] = None
    title: Optional[str] = Field(None, min_length=2, max_length=255)
    category: Optional[PropertyCategoryEnum] = None
    quantity: Optional[Decimal] = Field(None, gt=0)
    rate: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2)
    gst_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    other_expenses: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2)
    payment_mode: Optional[PaymentModeEnum] = None


class PropertyResponse(PropertyDetails):
    id: int
    date: DateType
    transaction_type: str
    invoice_no: Optional[str] = None
    seller_id: Optional[int] = None
    buyer_id: Optional[int] = None
    title: str
    category: str
    quantity: Decimal
    rate: Decimal
    base_amount: Decimal
    gst_percentage: Decimal
    gst_amount: Decimal
    other_expenses: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    due_amount: Decimal
    period_years: Optional[int] = None
    amount_per_month: Optional[Decimal] = None
    payment_mode: Optional[str] = None
    status: str
    is_deleted: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ==================== SALE SCHEMAS ====================

class SellPropertyCreate(BaseModel):
    property_id: int
    customer_id: int
    sale_date: date
    sale_rate: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    quantity: Optional[Decimal] = Field(None, gt=0)
    gst_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    other_charges: Decimal = Field(Decimal("0"), ge=0, max_digits=15, decimal_places=2)
    discount_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=15, decimal_places=2)
    received_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=15, decimal_places=2)
    payment_mode: PaymentModeEnum = PaymentModeEnum.CASH
    plot_number: Optional[str] = None
    khata_number: Optional[str] = None
    area_dismil: Optional[Decimal] = Field(None, ge=0)
    per_dismil_amount: Optional[Decimal] = Field(None, ge=0)
    period_years: Optional[int] = Field(None, gt=0, le=50)
    amount_per_month: Optional[Decimal] = Field(None, gt=0)
    remarks: Optional[str] = None


class SellPropertyUpdate(BaseModel):
    sale_date: Optional[date] = None
    sale_rate: Optional[Decimal] = Field(None, gt=0, max_digits=15, decimal_places=2)
    quantity: Optional[Decimal] = Field(None, gt=0)
    gst_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    other_charges: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2)
    discount_amount: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2)
    plot_number: Optional[str] = None
    khata_number: Optional[str] = None
    area_dismil: Optional[Decimal] = Field(None, ge=0)
    per_dismil_amount: Optional[Decimal] = Field(None, ge=0)
    remarks: Optional[str] = None


class SellPropertyResponse(BaseModel):
    id: int
    property_id: int
    customer_id: int
    invoice_no: str
    sale_date: date
    plot_number: Optional[str] = None
    khata_number: Optional[str] = None
    area_dismil: Optional[Decimal] = None
    per_dismil_amount: Optional[Decimal] = None
    quantity: Decimal
    sale_rate: Decimal
    sale_base_amount: Decimal
    gst_percentage: Decimal
    gst_amount: Decimal
    other_charges: Decimal
    discount_amount: Decimal
    total_sale_amount: Decimal
    received_amount: Decimal
    pending_amount: Decimal
    period_years: Optional[int] = None
    amount_per_month: Optional[Decimal] = None
    payment_mode: Optional[str] = None
    payment_receipt: Optional[str] = None
    remarks: Optional[str] = None
    is_deleted: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ==================== TRANSACTION SCHEMAS ====================

class TransactionCreate(BaseModel):
    property_id: int
    sell_property_id: Optional[int] = None
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    payment_date: date
    payment_mode: PaymentModeEnum
    reference_no: Optional[str] = Field(None, max_length=100)
    transaction_no: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = None


class TransactionUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=15, decimal_places=2)
    payment_date: Optional[date] = None
    payment_mode: Optional[PaymentModeEnum] = None
    reference_no: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = None


class TransactionResponse(BaseModel):
    id: int
    property_id: int
    sell_property_id: Optional[int] = None
    emi_id: Optional[int] = None
    sell_emi_id: Optional[int] = None
    type: str
    amount: Decimal
    payment_date: date
    payment_mode: str
    reference_no: Optional[str] = None
    transaction_no: Optional[str] = None
    payment_receipt: Optional[str] = None
    remarks: Optional[str] = None
    is_deleted: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LedgerBalance(BaseModel):
    """Balances of the ledger a journal row was posted to"""
    ledger: str
    ledger_id: int
    total: Decimal
    paid: Decimal
    due: Decimal


# ==================== EMI SCHEMAS ====================

class EmiPayment(BaseModel):
    paid_amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    payment_mode: PaymentModeEnum = PaymentModeEnum.CASH
    transaction_no: Optional[str] = Field(None, max_length=100)
    paid_date: Optional[date] = None


class EmiResponse(BaseModel):
    id: int
    property_id: int
    emi_number: int
    emi_amount: Decimal
    due_date: date
    paid_amount: Decimal
    status: str
    paid_date: Optional[date] = None
    payment_mode: Optional[str] = None
    transaction_no: Optional[str] = None
    payment_receipt: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SellEmiResponse(BaseModel):
    id: int
    sell_property_id: int
    emi_number: int
    emi_amount: Decimal
    due_date: date
    paid_amount: Decimal
    status: str
    paid_date: Optional[date] = None
    payment_mode: Optional[str] = None
    transaction_no: Optional[str] = None
    payment_receipt: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# ==================== DOCUMENT SCHEMAS ====================

class PropertyDocumentResponse(BaseModel):
    id: int
    property_id: int
    sell_property_id: Optional[int] = None
    doc_name: str
    doc_file: str
    is_deleted: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ==================== AUDIT SCHEMAS ====================

class AuditLogResponse(BaseModel):
    id: int
    timestamp: datetime
    user_id: Optional[int] = None
    username: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[int] = None
    description: Optional[str] = None
    old_values: Optional[str] = None
    new_values: Optional[str] = None
    status: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

"""
Customer Service - vendors / buyers and their KYC files
"""
from typing import Dict, List, Optional
import logging

from fastapi import UploadFile
from sqlalchemy import or_
from sqlalchemy.orm import Session

from estatedesk.core.exceptions import ValidationFailedError
from estatedesk.core.pagination import Page, paginate
from estatedesk.core.storage import FileStorage
from estatedesk.models import Customer
from estatedesk.schemas import CustomerCreate, CustomerUpdate
from estatedesk.services.base import SoftDeleteRepository

logger = logging.getLogger(__name__)

# Identifiers that must be unique among live customers
UNIQUE_FIELDS = ("phone", "email", "pan_number", "aadhar_number")


class CustomerService(SoftDeleteRepository[Customer]):
    model = Customer
    label = "Customer"

    def __init__(self, db: Session, storage: Optional[FileStorage] = None):
        super().__init__(db)
        self.storage = storage or FileStorage()

    def _check_unique(self, values: Dict, exclude_id: Optional[int] = None):
        for field in UNIQUE_FIELDS:
            value = values.get(field)
            if not value:
                continue
            query = self.query().filter(getattr(Customer, field) == value)
            if exclude_id:
                query = query.filter(Customer.id != exclude_id)
            if query.first():
                raise ValidationFailedError(f"The {field.replace('_', ' ')} has already been taken.")

    def list(
        self,
        search: Optional[str] = None,
        type: Optional[str] = None,
        page: int = 1,
        per_page: int = 20
    ) -> Page:
        query = self.query()
        if type:
            query = query.filter(Customer.type == type)
        if search:
            like = f"%{search.strip()}%"
            query = query.filter(or_(
                Customer.name.ilike(like),
                Customer.phone.ilike(like),
                Customer.email.ilike(like),
                Customer.pan_number.ilike(like),
            ))
        return paginate(query.order_by(Customer.id.desc()), page, per_page)

    def create(self, data: CustomerCreate, user_id: Optional[int] = None) -> Customer:
        values = data.model_dump()
        values["type"] = data.type.value
        if values.get("email"):
            values["email"] = values["email"].lower()
        self._check_unique(values)

        customer = Customer(**values, created_by=user_id)
        self.db.add(customer)
        self.db.flush()
        logger.info(f"Customer #{customer.id} created")
        return customer

    def update(self, customer_id: int, data: CustomerUpdate) -> Customer:
        customer = self.get_or_404(customer_id)
        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("email"):
            update_data["email"] = update_data["email"].lower()
        self._check_unique(update_data, exclude_id=customer.id)

        for key, value in update_data.items():
            if value is None and key in ("name", "phone", "type"):
                continue
            setattr(customer, key, value.value if hasattr(value, "value") else value)

        self.db.flush()
        return customer

    def upload_kyc(
        self,
        customer_id: int,
        pan_file: Optional[UploadFile] = None,
        aadhar_file: Optional[UploadFile] = None
    ) -> List[str]:
        """
        Attach KYC scans. Returns the replaced files, which the caller
        removes once the change is committed.
        """
        customer = self.get_or_404(customer_id)
        uploads = {"pan": pan_file, "aadhar": aadhar_file}
        uploads = {kind: f for kind, f in uploads.items() if f is not None and f.filename}
        if not uploads:
            raise ValidationFailedError("Upload at least one of pan_file or aadhar_file")

        stored = []
        replaced = []
        try:
            for kind, upload in uploads.items():
                path = self.storage.save(upload, "customers", f"{customer.id}_{kind}")
                stored.append(path)
                column = f"{kind}_file_path"
                if getattr(customer, column):
                    replaced.append(getattr(customer, column))
                setattr(customer, column, path)
            self.db.flush()
        except Exception:
            self.storage.delete_many(stored)
            raise

        return replaced

    def restore(self, customer_id: int) -> Customer:
        customer = self.get_or_404(customer_id, include_deleted=True)
        if customer.is_deleted:
            # An identifier may have been reused while this customer was in trash
            values = {field: getattr(customer, field) for field in UNIQUE_FIELDS}
            self._check_unique(values, exclude_id=customer.id)
        return super().restore(customer_id)

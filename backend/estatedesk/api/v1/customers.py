"""
Customer API Routes - vendors, buyers and KYC files
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.orm import Session

from estatedesk.core.database import get_db
from estatedesk.core.security import get_current_user
from estatedesk.core.storage import FileStorage
from estatedesk.api.responses import success
from estatedesk.schemas import CustomerCreate, CustomerResponse, CustomerTypeEnum, CustomerUpdate
from estatedesk.services.customer_service import CustomerService

router = APIRouter(prefix="/customers", tags=["Customers"])


@router.get("")
async def list_customers(
    search: Optional[str] = None,
    type: Optional[CustomerTypeEnum] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    result = CustomerService(db).list(
        search=search,
        type=type.value if type else None,
        page=page,
        per_page=per_page
    )
    return success([CustomerResponse.model_validate(c) for c in result.items], page=result)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_customer(
    data: CustomerCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    customer = CustomerService(db).create(data, user_id=current_user.id)
    db.commit()
    db.refresh(customer)
    return success(CustomerResponse.model_validate(customer), message="Customer created successfully")


@router.get("/trash")
async def list_trashed_customers(
    page: int = Query(1, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    result = CustomerService(db).trash(page=page)
    return success([CustomerResponse.model_validate(c) for c in result.items], page=result)


@router.get("/{customer_id}")
async def get_customer(customer_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    customer = CustomerService(db).get_or_404(customer_id)
    return success(CustomerResponse.model_validate(customer))


@router.put("/{customer_id}")
async def update_customer(
    customer_id: int,
    data: CustomerUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    customer = CustomerService(db).update(customer_id, data)
    db.commit()
    db.refresh(customer)
    return success(CustomerResponse.model_validate(customer), message="Customer updated successfully")


@router.post("/{customer_id}/kyc")
async def upload_kyc(
    customer_id: int,
    pan_file: Optional[UploadFile] = File(None),
    aadhar_file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    """Attach PAN / Aadhaar scans; older scans are removed once the change is saved"""
    storage = FileStorage()
    customer_service = CustomerService(db, storage)
    replaced = customer_service.upload_kyc(customer_id, pan_file=pan_file, aadhar_file=aadhar_file)
    db.commit()
    storage.delete_many(replaced)

    customer = customer_service.get_or_404(customer_id)
    return success(CustomerResponse.model_validate(customer), message="KYC documents uploaded")


@router.delete("/{customer_id}")
async def delete_customer(customer_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    CustomerService(db).destroy(customer_id)
    db.commit()
    return success(message="Customer moved to trash")


@router.post("/{customer_id}/restore")
async def restore_customer(customer_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    customer = CustomerService(db).restore(customer_id)
    db.commit()
    db.refresh(customer)
    return success(CustomerResponse.model_validate(customer), message="Customer restored successfully")

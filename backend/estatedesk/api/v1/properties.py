"""
Property API Routes - purchase inventory and the vendor ledger
"""
from typing import Optional
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from estatedesk.core.database import get_db
from estatedesk.core.security import get_current_user
from estatedesk.core.storage import FileStorage
from estatedesk.api.responses import success
from estatedesk.schemas import (
    EmiResponse, PropertyCategoryEnum, PropertyCreate, PropertyDocumentResponse, PropertyResponse,
    PropertyStatusEnum, PropertyTransactionTypeEnum, PropertyUpdate
)
from estatedesk.services.property_service import PropertyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/properties", tags=["Properties"])


def _detail(prop) -> dict:
    data = PropertyResponse.model_validate(prop).model_dump()
    data["seller_name"] = prop.seller.name if prop.seller else None
    data["buyer_name"] = prop.buyer.name if prop.buyer else None
    data["documents"] = [PropertyDocumentResponse.model_validate(d) for d in prop.documents if not d.is_deleted]
    data["emis"] = [EmiResponse.model_validate(e) for e in prop.emis if not e.is_deleted]
    return data


@router.get("")
async def list_properties(
    transaction_type: Optional[PropertyTransactionTypeEnum] = None,
    status: Optional[PropertyStatusEnum] = None,
    category: Optional[PropertyCategoryEnum] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    result = PropertyService(db).list(
        transaction_type=transaction_type.value if transaction_type else None,
        status=status.value if status else None,
        category=category.value if category else None,
        search=search,
        page=page,
        per_page=per_page
    )
    items = []
    for prop in result.items:
        item = PropertyResponse.model_validate(prop).model_dump()
        item["seller_name"] = prop.seller.name if prop.seller else None
        item["buyer_name"] = prop.buyer.name if prop.buyer else None
        items.append(item)
    return success(items, page=result)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_property(
    data: PropertyCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    prop = PropertyService(db).create(data, user_id=current_user.id)
    db.commit()
    db.refresh(prop)
    return success(_detail(prop), message="Property created successfully")


@router.get("/trash")
async def list_trashed_properties(
    page: int = Query(1, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    result = PropertyService(db).trash(page=page)
    return success([PropertyResponse.model_validate(p) for p in result.items], page=result)


@router.get("/{property_id}")
async def get_property(property_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    prop = PropertyService(db).get_or_404(property_id)
    return success(_detail(prop))


@router.put("/{property_id}")
async def update_property(
    property_id: int,
    data: PropertyUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    prop = PropertyService(db).update(property_id, data, user_id=current_user.id)
    db.commit()
    db.refresh(prop)
    return success(_detail(prop), message="Property updated successfully")


@router.delete("/{property_id}")
async def delete_property(property_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    PropertyService(db).destroy(property_id)
    db.commit()
    return success(message="Property moved to trash")


@router.post("/{property_id}/restore")
async def restore_property(property_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    prop = PropertyService(db).restore(property_id, user_id=current_user.id)
    db.commit()
    db.refresh(prop)
    return success(PropertyResponse.model_validate(prop), message="Property restored successfully")


@router.delete("/{property_id}/force")
async def force_delete_property(
    property_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    """Permanently delete a trashed property together with its files"""
    files = PropertyService(db).force_delete(property_id, user_id=current_user.id)
    db.commit()
    removed = FileStorage().delete_many(files)
    logger.info(f"Removed {removed} of {len(files)} stored file(s) for property #{property_id}")
    return success(message="Property permanently deleted")

"""
Sale API Routes - sale deals and the buyer ledger
"""
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from estatedesk.core.database import get_db
from estatedesk.core.security import get_current_user
from estatedesk.api.responses import success
from estatedesk.schemas import (
    PaymentModeEnum, PropertyDocumentResponse, SellEmiResponse, SellPropertyCreate,
    SellPropertyResponse, SellPropertyUpdate, TransactionResponse
)
from estatedesk.services.sell_property_service import SellPropertyService

router = APIRouter(prefix="/sell-properties", tags=["Sales"])


def _detail(service: SellPropertyService, sale) -> dict:
    data = SellPropertyResponse.model_validate(sale).model_dump()
    data["property_title"] = sale.property.title if sale.property else None
    data["property_status"] = sale.property.status if sale.property else None
    data["buyer_name"] = sale.buyer.name if sale.buyer else None
    data["buyer_phone"] = sale.buyer.phone if sale.buyer else None
    data["sell_emis"] = [SellEmiResponse.model_validate(e) for e in sale.sell_emis if not e.is_deleted]
    data["transactions"] = [TransactionResponse.model_validate(t) for t in sale.transactions if not t.is_deleted]
    data["documents"] = [PropertyDocumentResponse.model_validate(d) for d in sale.documents if not d.is_deleted]
    data.update(service.summary(sale))
    return data


@router.get("")
async def list_sales(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    result = SellPropertyService(db).list(search=search, page=page, per_page=per_page)
    items = []
    for sale in result.items:
        item = SellPropertyResponse.model_validate(sale).model_dump()
        item["property_title"] = sale.property.title
        item["buyer_name"] = sale.buyer.name
        items.append(item)
    return success(items, page=result)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_sale(
    property_id: int = Form(...),
    customer_id: int = Form(...),
    sale_date: date = Form(...),
    sale_rate: Decimal = Form(...),
    quantity: Optional[Decimal] = Form(None),
    gst_percentage: Decimal = Form(Decimal("0")),
    other_charges: Decimal = Form(Decimal("0")),
    discount_amount: Decimal = Form(Decimal("0")),
    received_amount: Decimal = Form(Decimal("0")),
    payment_mode: PaymentModeEnum = Form(PaymentModeEnum.CASH),
    plot_number: Optional[str] = Form(None),
    khata_number: Optional[str] = Form(None),
    area_dismil: Optional[Decimal] = Form(None),
    per_dismil_amount: Optional[Decimal] = Form(None),
    period_years: Optional[int] = Form(None),
    amount_per_month: Optional[Decimal] = Form(None),
    remarks: Optional[str] = Form(None),
    payment_receipt: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    """Sell an available property to a customer (multipart, optional receipt)"""
    try:
        data = SellPropertyCreate(
            property_id=property_id,
            customer_id=customer_id,
            sale_date=sale_date,
            sale_rate=sale_rate,
            quantity=quantity,
            gst_percentage=gst_percentage,
            other_charges=other_charges,
            discount_amount=discount_amount,
            received_amount=received_amount,
            payment_mode=payment_mode,
            plot_number=plot_number,
            khata_number=khata_number,
            area_dismil=area_dismil,
            per_dismil_amount=per_dismil_amount,
            period_years=period_years,
            amount_per_month=amount_per_month,
            remarks=remarks
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_context=False))

    service = SellPropertyService(db)
    sale = service.create(data, receipt=payment_receipt, user_id=current_user.id)
    db.commit()
    db.refresh(sale)
    return success(_detail(service, sale), message="Property sold successfully")


@router.get("/{sale_id}")
async def get_sale(sale_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    service = SellPropertyService(db)
    return success(_detail(service, service.get_or_404(sale_id)))


@router.put("/{sale_id}")
async def update_sale(
    sale_id: int,
    data: SellPropertyUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    service = SellPropertyService(db)
    sale = service.update(sale_id, data, user_id=current_user.id)
    db.commit()
    db.refresh(sale)
    return success(_detail(service, sale), message="Sale updated successfully")


@router.delete("/{sale_id}")
async def delete_sale(sale_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """Cancel a sale; the property becomes available again"""
    SellPropertyService(db).destroy(sale_id, user_id=current_user.id)
    db.commit()
    return success(message="Sale cancelled and property is available again")

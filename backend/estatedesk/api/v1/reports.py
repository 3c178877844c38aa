"""
Dashboard and Reports API Routes
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from estatedesk.core.database import get_db
from estatedesk.core.security import get_current_user, require_super_admin
from estatedesk.api.responses import success
from estatedesk.schemas import (
    AuditLogResponse, CustomerResponse, PropertyCategoryEnum, PropertyDocumentResponse,
    PropertyResponse, PropertyStatusEnum, SellPropertyResponse, TransactionResponse, CustomerTypeEnum
)
from estatedesk.services.audit_service import AuditService
from estatedesk.services.report_service import ReportService

router = APIRouter(tags=["Reports"])


@router.get("/dashboard")
async def dashboard(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return success(ReportService(db).dashboard())


@router.get("/reports/stats")
async def stats(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    return success(ReportService(db).stats(start_date, end_date))


@router.get("/reports/daybook")
async def daybook(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    result = ReportService(db).daybook(start_date, end_date, page=page, per_page=per_page)
    return success(result.items, page=result)


@router.get("/reports/daybook/export")
async def export_daybook(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    """Daybook as an Excel workbook"""
    output = ReportService(db).daybook_workbook(start_date, end_date)
    filename = f"daybook_{start_date or 'all'}_{end_date or date.today()}.xlsx"
    return StreamingResponse(
        output,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/reports/dues")
async def dues(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    """Sales with money still to collect"""
    result, total_recoverable = ReportService(db).dues(search=search, page=page, per_page=per_page)
    body = success(result.items, page=result)
    body["total_recoverable"] = total_recoverable
    return body


@router.get("/reports/profit-loss")
async def profit_loss(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    report, total_profit = ReportService(db).profit_loss(start_date, end_date)
    return success({"deals": report, "total_profit": total_profit})


@router.get("/reports/monthly-trend")
async def monthly_trend(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return success(ReportService(db).monthly_trend())


@router.get("/reports/properties")
async def properties_report(
    search: Optional[str] = None,
    status: Optional[PropertyStatusEnum] = None,
    category: Optional[PropertyCategoryEnum] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    result = ReportService(db).properties_report(
        search=search,
        status=status.value if status else None,
        category=category.value if category else None,
        page=page,
        per_page=per_page
    )
    return success(result.items, page=result)


@router.get("/reports/properties/{property_id}")
async def property_report(property_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    report = ReportService(db).property_report(property_id)
    return success({
        "summary": report["summary"],
        "property": PropertyResponse.model_validate(report["property"]),
        "deals": [SellPropertyResponse.model_validate(d) for d in report["deals"]],
        "documents": [PropertyDocumentResponse.model_validate(d) for d in report["documents"]],
        "transactions": [TransactionResponse.model_validate(t) for t in report["transactions"]],
    })


@router.get("/reports/customers")
async def customers_report(
    search: Optional[str] = None,
    type: Optional[CustomerTypeEnum] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    result = ReportService(db).customers_report(
        search=search,
        type=type.value if type else None,
        page=page,
        per_page=per_page
    )
    return success(result.items, page=result)


@router.get("/reports/customers/{customer_id}")
async def customer_report(
    customer_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    report = ReportService(db).customer_report(customer_id, start_date, end_date)
    return success({
        "customer": CustomerResponse.model_validate(report["customer"]),
        "summary": report["summary"],
        "transactions": [TransactionResponse.model_validate(t) for t in report["transactions"]],
    })


@router.get("/reports/audit-logs")
async def audit_logs(
    resource_type: Optional[str] = None,
    resource_id: Optional[int] = None,
    action: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user=Depends(require_super_admin)
):
    """Audit trail, either of one record or the most recent entries"""
    audit_service = AuditService(db)
    if resource_type and resource_id:
        logs = audit_service.get_by_resource(resource_type, resource_id, limit=limit)
    else:
        logs = audit_service.get_recent(start_date, end_date, action=action, limit=limit, offset=offset)
    return success([AuditLogResponse.model_validate(log) for log in logs])

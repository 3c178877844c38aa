"""
Transaction API Routes - the cash journal

Every write here moves the paid / due balances of one ledger; the response
carries the balances after the change.
"""
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from estatedesk.core.database import get_db
from estatedesk.core.security import get_current_user
from estatedesk.api.responses import success
from estatedesk.schemas import (
    LedgerBalance, PaymentModeEnum, PropertyResponse, SellPropertyResponse, TransactionCreate,
    TransactionResponse, TransactionTypeEnum, TransactionUpdate
)
from estatedesk.services.transaction_service import TransactionService

router = APIRouter(prefix="/transactions", tags=["Transactions"])


def _row(transaction) -> dict:
    data = TransactionResponse.model_validate(transaction).model_dump()
    data["property_title"] = transaction.property.title if transaction.property else None
    data["party_name"] = TransactionService.party_name(transaction)
    return data


def _with_balances(service: TransactionService, transaction) -> dict:
    return {
        "transaction": TransactionResponse.model_validate(transaction),
        "balances": LedgerBalance(**service.balances(transaction)),
    }


async def _journal(
    db: Session,
    type: Optional[str],
    payment_mode: Optional[PaymentModeEnum],
    start_date: Optional[date],
    end_date: Optional[date],
    min_amount: Optional[Decimal],
    max_amount: Optional[Decimal],
    search: Optional[str],
    sort_by: str,
    sort_dir: str,
    page: int,
    per_page: int
) -> dict:
    result, totals = TransactionService(db).search(
        type=type,
        payment_mode=payment_mode.value if payment_mode else None,
        start_date=start_date,
        end_date=end_date,
        min_amount=min_amount,
        max_amount=max_amount,
        search=search,
        sort_by=sort_by,
        sort_dir=sort_dir,
        page=page,
        per_page=per_page
    )
    body = success([_row(t) for t in result.items], page=result)
    body["summary"] = totals
    return body


@router.get("")
async def list_transactions(
    property_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    """Journal of one property when ``property_id`` is given, otherwise the latest entries"""
    if property_id:
        listing = TransactionService(db).list_for_property(property_id)
        body = success([_row(t) for t in listing["transactions"]])
        body["property"] = PropertyResponse.model_validate(listing["property"])
        body["summary"] = listing["summary"]
        return body
    return await _journal(db, None, None, None, None, None, None, None, "payment_date", "desc", page, per_page)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_transaction(
    data: TransactionCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    service = TransactionService(db)
    transaction = service.create(data, user_id=current_user.id)
    db.commit()
    db.refresh(transaction)
    return success(_with_balances(service, transaction), message="Transaction recorded successfully")


@router.get("/all")
async def all_transactions(
    type: Optional[TransactionTypeEnum] = None,
    payment_mode: Optional[PaymentModeEnum] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    min_amount: Optional[Decimal] = None,
    max_amount: Optional[Decimal] = None,
    search: Optional[str] = None,
    sort_by: str = "payment_date",
    sort_dir: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    return await _journal(db, type.value if type else None, payment_mode, start_date, end_date,
                          min_amount, max_amount, search, sort_by, sort_dir, page, per_page)


@router.get("/buy")
async def buy_transactions(
    payment_mode: Optional[PaymentModeEnum] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    """Money paid out to vendors"""
    return await _journal(db, TransactionTypeEnum.DEBIT.value, payment_mode, start_date, end_date,
                          None, None, search, "payment_date", "desc", page, per_page)


@router.get("/sell")
async def sell_transactions(
    payment_mode: Optional[PaymentModeEnum] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    """Money received from buyers"""
    return await _journal(db, TransactionTypeEnum.CREDIT.value, payment_mode, start_date, end_date,
                          None, None, search, "payment_date", "desc", page, per_page)


@router.get("/trash")
async def list_trashed_transactions(
    page: int = Query(1, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    result = TransactionService(db).trash(page=page)
    return success([_row(t) for t in result.items], page=result)


@router.get("/property/{property_id}/history")
async def sale_history(property_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """Every sale deal of a property with the receipts posted to it"""
    history = TransactionService(db).sale_history(property_id)
    deals = []
    for deal in history["deals"]:
        deals.append({
            "sale": SellPropertyResponse.model_validate(deal["sale"]),
            "buyer_name": deal["buyer_name"],
            "buyer_phone": deal["buyer_phone"],
            "status": deal["status"],
            "transactions": [TransactionResponse.model_validate(t) for t in deal["transactions"]],
        })
    return success({"property": PropertyResponse.model_validate(history["property"]), "deals": deals})


@router.get("/{transaction_id}")
async def get_transaction(transaction_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    service = TransactionService(db)
    transaction = service.get_or_404(transaction_id)
    data = _with_balances(service, transaction)
    data["party_name"] = TransactionService.party_name(transaction)
    return success(data)


@router.put("/{transaction_id}")
async def update_transaction(
    transaction_id: int,
    data: TransactionUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    service = TransactionService(db)
    transaction = service.update(transaction_id, data, user_id=current_user.id)
    db.commit()
    db.refresh(transaction)
    return success(_with_balances(service, transaction), message="Transaction updated successfully")


@router.delete("/{transaction_id}")
async def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    service = TransactionService(db)
    transaction = service.destroy(transaction_id, user_id=current_user.id)
    db.commit()
    db.refresh(transaction)
    return success(_with_balances(service, transaction), message="Transaction deleted and ledger reversed")


@router.post("/{transaction_id}/restore")
async def restore_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    service = TransactionService(db)
    transaction = service.restore(transaction_id, user_id=current_user.id)
    db.commit()
    db.refresh(transaction)
    return success(_with_balances(service, transaction), message="Transaction restored successfully")

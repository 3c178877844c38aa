"""
EMI API Routes - vendor installments (/emis) and buyer installments (/sell-emis)
"""
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from estatedesk.core.database import get_db
from estatedesk.core.security import get_current_user
from estatedesk.api.responses import success
from estatedesk.schemas import (
    EmiPayment, EmiResponse, EmiStatusEnum, LedgerBalance, PaymentModeEnum, SellEmiResponse,
    TransactionResponse
)
from estatedesk.services.emi_service import EmiService
from estatedesk.services.ledger_service import ledger_label

router = APIRouter(tags=["EMIs"])


def _payment(paid_amount, payment_mode, transaction_no, paid_date) -> EmiPayment:
    try:
        return EmiPayment(
            paid_amount=paid_amount,
            payment_mode=payment_mode,
            transaction_no=transaction_no,
            paid_date=paid_date
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_context=False))


def _settlement(result: dict, schema) -> dict:
    ledger = result["ledger"]
    return {
        "emi": schema.model_validate(result["emi"]),
        "transaction": TransactionResponse.model_validate(result["transaction"]),
        "balances": LedgerBalance(
            ledger=ledger_label(ledger).upper(),
            ledger_id=ledger.id,
            total=ledger.ledger_total,
            paid=ledger.ledger_paid,
            due=ledger.ledger_due
        ),
    }


# ==================== VENDOR EMIS ====================

@router.get("/emis")
async def list_emis(
    property_id: Optional[int] = None,
    status: Optional[EmiStatusEnum] = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    emis = EmiService(db).list_emis(property_id=property_id, status=status.value if status else None)
    db.commit()
    return success([EmiResponse.model_validate(e) for e in emis])


@router.post("/emis/{emi_id}/pay")
async def pay_emi(
    emi_id: int,
    paid_amount: Decimal = Form(...),
    payment_mode: PaymentModeEnum = Form(PaymentModeEnum.CASH),
    transaction_no: Optional[str] = Form(None),
    paid_date: Optional[date] = Form(None),
    payment_receipt: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    """Pay a vendor installment; posts one DEBIT to the property ledger"""
    payment = _payment(paid_amount, payment_mode, transaction_no, paid_date)
    result = EmiService(db).pay_emi(emi_id, payment, receipt=payment_receipt, user_id=current_user.id)
    db.commit()
    return success(_settlement(result, EmiResponse), message="EMI paid successfully")


@router.post("/emis/{emi_id}/unpay")
async def unpay_emi(emi_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    emi = EmiService(db).unpay_emi(emi_id, user_id=current_user.id)
    db.commit()
    db.refresh(emi)
    return success(EmiResponse.model_validate(emi), message="EMI payment reversed")


# ==================== BUYER EMIS ====================

@router.get("/sell-emis")
async def list_sell_emis(
    sell_property_id: Optional[int] = None,
    status: Optional[EmiStatusEnum] = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    emis = EmiService(db).list_sell_emis(sell_property_id=sell_property_id, status=status.value if status else None)
    db.commit()
    return success([SellEmiResponse.model_validate(e) for e in emis])


@router.post("/sell-emis/{emi_id}/pay")
async def pay_sell_emi(
    emi_id: int,
    paid_amount: Decimal = Form(...),
    payment_mode: PaymentModeEnum = Form(PaymentModeEnum.CASH),
    transaction_no: Optional[str] = Form(None),
    paid_date: Optional[date] = Form(None),
    payment_receipt: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    """Collect a buyer installment; posts one CREDIT to the sale ledger"""
    payment = _payment(paid_amount, payment_mode, transaction_no, paid_date)
    result = EmiService(db).pay_sell_emi(emi_id, payment, receipt=payment_receipt, user_id=current_user.id)
    db.commit()
    return success(_settlement(result, SellEmiResponse), message="Sell EMI paid successfully")


@router.post("/sell-emis/{emi_id}/unpay")
async def unpay_sell_emi(emi_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    emi = EmiService(db).unpay_sell_emi(emi_id, user_id=current_user.id)
    db.commit()
    db.refresh(emi)
    return success(SellEmiResponse.model_validate(emi), message="Sell EMI payment reversed")

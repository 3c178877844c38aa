"""
Audit Service - who moved money or changed access, and when

Rows are flushed into the caller's unit of work so they commit or roll back
with the change they describe.
"""
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
import json
import logging

from sqlalchemy.orm import Session

from estatedesk.models import AuditLog

logger = logging.getLogger(__name__)


class AuditAction:
    LOGIN = "LOGIN"
    LOGIN_FAILED = "LOGIN_FAILED"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    PASSWORD_RESET = "PASSWORD_RESET"

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RESTORE = "RESTORE"
    FORCE_DELETE = "FORCE_DELETE"

    # ledger movements
    PAYMENT_POSTED = "PAYMENT_POSTED"
    PAYMENT_UPDATED = "PAYMENT_UPDATED"
    PAYMENT_REVERSED = "PAYMENT_REVERSED"
    EMI_PAID = "EMI_PAID"
    EMI_UNPAID = "EMI_UNPAID"
    SALE_CREATED = "SALE_CREATED"
    SALE_CANCELLED = "SALE_CANCELLED"

    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    USER_DELETED = "USER_DELETED"


def _encode(value: Any) -> str:
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    return str(value)


def _dump(values: Optional[Dict[str, Any]]) -> Optional[str]:
    if not values:
        return None
    return json.dumps(values, default=_encode, sort_keys=True)


class AuditService:
    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        action: str,
        resource_type: str,
        resource_id: Optional[int] = None,
        description: Optional[str] = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        user_id: Optional[int] = None,
        username: Optional[str] = None,
        status: str = "success"
    ) -> AuditLog:
        """
        Record one audited event.

        ``resource_type`` is the model name ("Transaction", "SellEmi", ...);
        ``old_values`` / ``new_values`` are stored as JSON with money as
        two-decimal strings. ``username`` is kept for failed logins, where
        there is no user row to point at.
        """
        entry = AuditLog(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            description=description,
            old_values=_dump(old_values),
            new_values=_dump(new_values),
            user_id=user_id,
            username=username,
            status=status
        )
        self.db.add(entry)
        self.db.flush()

        level = logging.INFO if status == "success" else logging.WARNING
        logger.log(level, f"audit {action} {resource_type}#{resource_id} user={user_id or username} {status}")
        return entry

    def _history(self):
        return self.db.query(AuditLog).order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())

    def get_by_resource(self, resource_type: str, resource_id: int, limit: int = 50) -> List[AuditLog]:
        return self._history().filter(
            AuditLog.resource_type == resource_type,
            AuditLog.resource_id == resource_id
        ).limit(limit).all()

    def get_recent(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        action: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[AuditLog]:
        """Newest first; both dates are inclusive"""
        query = self._history()
        if start_date:
            query = query.filter(AuditLog.timestamp >= start_date)
        if end_date:
            query = query.filter(AuditLog.timestamp < end_date + timedelta(days=1))
        if action:
            query = query.filter(AuditLog.action == action.upper())
        return query.offset(offset).limit(limit).all()

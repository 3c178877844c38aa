"""
Soft-delete aware base service

Queries exclude deleted rows unless the caller passes ``include_deleted``;
trash / restore / destroy behave the same way for every entity.
"""
from typing import Generic, Optional, Type, TypeVar
import logging

from sqlalchemy.orm import Session, Query

from estatedesk.core.exceptions import BusinessRuleError, NotFoundError
from estatedesk.core.pagination import Page, paginate

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


class SoftDeleteRepository(Generic[ModelT]):
    model: Type[ModelT] = None
    label: str = "Record"

    def __init__(self, db: Session):
        self.db = db

    def query(self, include_deleted: bool = False) -> Query:
        query = self.db.query(self.model)
        if not include_deleted:
            query = query.filter(self.model.is_deleted == False)
        return query

    def get_by_id(self, record_id: int, include_deleted: bool = False) -> Optional[ModelT]:
        return self.query(include_deleted).filter(self.model.id == record_id).first()

    def get_or_404(self, record_id: int, include_deleted: bool = False) -> ModelT:
        record = self.get_by_id(record_id, include_deleted)
        if not record:
            raise NotFoundError(f"{self.label} not found")
        return record

    def trash(self, page: int = 1, per_page: int = 10) -> Page:
        query = self.query(include_deleted=True).filter(self.model.is_deleted == True)
        return paginate(query.order_by(self.model.updated_at.desc(), self.model.id.desc()), page, per_page)

    def destroy(self, record_id: int) -> ModelT:
        record = self.get_or_404(record_id)
        record.soft_delete()
        self.db.flush()
        logger.info(f"{self.label} #{record_id} moved to trash")
        return record

    def restore(self, record_id: int) -> ModelT:
        record = self.get_or_404(record_id, include_deleted=True)
        if not record.is_deleted:
            raise BusinessRuleError(f"{self.label} is not in trash")
        record.restore()
        self.db.flush()
        logger.info(f"{self.label} #{record_id} restored")
        return record

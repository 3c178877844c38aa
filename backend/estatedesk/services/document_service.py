"""
Document Service - files attached to properties and sale deals

Trashing a document keeps its file; only force delete removes it.
"""
from typing import List, Optional

from fastapi import UploadFile
from sqlalchemy.orm import Session

from estatedesk.core.exceptions import BusinessRuleError, NotFoundError, ValidationFailedError
from estatedesk.core.storage import FileStorage
from estatedesk.models import Property, PropertyDocument, SellProperty
from estatedesk.services.base import SoftDeleteRepository


class DocumentService(SoftDeleteRepository[PropertyDocument]):
    model = PropertyDocument
    label = "Document"

    def __init__(self, db: Session, storage: Optional[FileStorage] = None):
        super().__init__(db)
        self.storage = storage or FileStorage()

    def list(self, property_id: Optional[int] = None, sell_property_id: Optional[int] = None) -> List[PropertyDocument]:
        query = self.query()
        if property_id:
            query = query.filter(PropertyDocument.property_id == property_id)
        if sell_property_id:
            query = query.filter(PropertyDocument.sell_property_id == sell_property_id)
        return query.order_by(PropertyDocument.id.desc()).all()

    def upload(
        self,
        property_id: int,
        doc_name: str,
        doc_file: UploadFile,
        sell_property_id: Optional[int] = None,
        user_id: Optional[int] = None
    ) -> PropertyDocument:
        prop = self.db.query(Property).filter(Property.id == property_id, Property.is_deleted == False).first()
        if not prop:
            raise NotFoundError("Property not found")
        if sell_property_id:
            sale = self.db.query(SellProperty).filter(
                SellProperty.id == sell_property_id,
                SellProperty.is_deleted == False
            ).first()
            if not sale:
                raise NotFoundError("Sale not found")
            if sale.property_id != prop.id:
                raise ValidationFailedError("The sale does not belong to this property")

        path = self.storage.save(doc_file, f"properties/{prop.id}", "doc")
        try:
            document = PropertyDocument(
                property_id=prop.id,
                sell_property_id=sell_property_id,
                doc_name=doc_name,
                doc_file=path,
                created_by=user_id
            )
            self.db.add(document)
            self.db.flush()
        except Exception:
            self.storage.delete(path)
            raise
        return document

    def force_delete(self, document_id: int) -> str:
        """Remove the row; returns the file path to delete after commit"""
        document = self.get_or_404(document_id, include_deleted=True)
        if not document.is_deleted:
            raise BusinessRuleError("Document must be in trash before it can be permanently deleted")
        path = document.doc_file
        self.db.delete(document)
        self.db.flush()
        return path

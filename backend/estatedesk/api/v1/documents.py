"""
Property Document API Routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from estatedesk.core.database import get_db
from estatedesk.core.security import get_current_user
from estatedesk.core.storage import FileStorage
from estatedesk.api.responses import success
from estatedesk.schemas import PropertyDocumentResponse
from estatedesk.services.document_service import DocumentService

router = APIRouter(prefix="/property-docs", tags=["Property Documents"])


@router.get("")
async def list_documents(
    property_id: Optional[int] = None,
    sell_property_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    documents = DocumentService(db).list(property_id=property_id, sell_property_id=sell_property_id)
    return success([PropertyDocumentResponse.model_validate(d) for d in documents])


@router.post("", status_code=status.HTTP_201_CREATED)
async def upload_document(
    property_id: int = Form(...),
    doc_name: str = Form(..., min_length=1, max_length=255),
    sell_property_id: Optional[int] = Form(None),
    doc_file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    document = DocumentService(db).upload(
        property_id, doc_name, doc_file, sell_property_id=sell_property_id, user_id=current_user.id
    )
    db.commit()
    db.refresh(document)
    return success(PropertyDocumentResponse.model_validate(document), message="Document uploaded successfully")


@router.get("/trash")
async def list_trashed_documents(
    page: int = Query(1, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    result = DocumentService(db).trash(page=page)
    return success([PropertyDocumentResponse.model_validate(d) for d in result.items], page=result)


@router.delete("/{document_id}")
async def delete_document(document_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """Move a document to trash; the file is kept"""
    DocumentService(db).destroy(document_id)
    db.commit()
    return success(message="Document moved to trash")


@router.post("/{document_id}/restore")
async def restore_document(document_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    document = DocumentService(db).restore(document_id)
    db.commit()
    db.refresh(document)
    return success(PropertyDocumentResponse.model_validate(document), message="Document restored successfully")


@router.delete("/{document_id}/force")
async def force_delete_document(
    document_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    storage = FileStorage()
    path = DocumentService(db, storage).force_delete(document_id)
    db.commit()
    storage.delete(path)
    return success(message="Document permanently deleted")

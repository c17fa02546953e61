from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.csrf import require_csrf
from ..auth.dependencies import require_login, require_roles
from ..auth.sessions import CurrentUser
from ..constants import MANAGEMENT_ROLES
from ..models.models import Document
from ..schemas.schemas import DocumentCreate, DocumentRead
from ..services import documents as document_service

router = APIRouter(prefix="/documents", tags=["documents"])


def _build_document_read(document: Document) -> DocumentRead:
    return DocumentRead(
        id=document.id,
        title=document.title,
        document_type=document.document_type,
        file_path=document.file_path,
        uploaded_by=document.uploaded_by,
        uploaded_by_name=document.uploader.username if document.uploader else None,
        created_at=document.created_at,
    )


@router.get("", response_model=List[DocumentRead])
def list_documents(
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(require_login),
) -> List[DocumentRead]:
    return [_build_document_read(document) for document in document_service.list_documents(db)]


@router.post("", response_model=DocumentRead, status_code=201)
def create_document(
    payload: DocumentCreate,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    _csrf: None = Depends(require_csrf),
) -> DocumentRead:
    document = document_service.create_document(
        db,
        title=payload.title,
        file_path=payload.file_path,
        document_type=payload.document_type,
        uploaded_by=user.id,
    )
    return _build_document_read(document)

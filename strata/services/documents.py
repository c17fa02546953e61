from typing import List

from sqlalchemy.orm import Session, joinedload

from ..constants import DOCUMENT_TYPES
from ..core.errors import ValidationError
from ..models.models import Document


def list_documents(db: Session) -> List[Document]:
    return (
        db.query(Document)
        .options(joinedload(Document.uploader))
        .order_by(Document.created_at.desc(), Document.id.desc())
        .all()
    )


def create_document(db: Session, *, title: str, file_path: str, document_type: str, uploaded_by: int) -> Document:
    """Record document metadata; the file itself is stored elsewhere."""
    title = (title or "").strip()
    file_path = (file_path or "").strip()
    if not title or not file_path:
        raise ValidationError("Title and file path are required.")
    if document_type not in DOCUMENT_TYPES:
        raise ValidationError(f"Document type must be one of: {', '.join(DOCUMENT_TYPES)}.")
    document = Document(title=title, file_path=file_path, document_type=document_type, uploaded_by=uploaded_by)
    db.add(document)
    db.commit()
    db.refresh(document)
    return document

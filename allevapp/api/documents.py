from fastapi import APIRouter, Depends, Query, UploadFile, File, Form, status
from pydantic import BaseModel
from sqlalchemy.orm import Session as DBSession
from typing import Optional, List
from datetime import date
import logging

from allevapp.config import settings
from allevapp.database import get_db
from allevapp.errors import NotFoundError, ValidationError, ConflictError, FileTooLargeError
from allevapp.models import FarmDocument, DocumentCategory
from allevapp.schemas import reject_null_fields
from allevapp.services.dependency import Session, get_session, require_manager
from allevapp.services.documents import parse_tags, dump_tags, expiry_status, is_expired, is_expiring_soon
from allevapp.services.filters import apply_filters
from allevapp.services.storage import build_storage_key, upload_file, get_file_url, delete_file

logger = logging.getLogger(__name__)

router = APIRouter()

SEARCH_FIELDS = ("title", "description", "file_name", "tags")


class DocumentUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[int] = None
    document_date: Optional[date] = None
    expiry_date: Optional[date] = None
    tags: Optional[List[str]] = None
    is_important: Optional[bool] = None


class CategoryCreate(BaseModel):
    name: str
    description: Optional[str] = None
    color: Optional[str] = "#6b7280"
    icon: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None


def category_to_response(c: DocumentCategory) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "description": c.description,
        "color": c.color,
        "icon": c.icon,
    }


def document_to_response(d: FarmDocument) -> dict:
    return {
        "id": d.id,
        "farm_id": d.farm_id,
        "farm_name": d.farm.name if d.farm else None,
        "category_id": d.category_id,
        "category_name": d.category.name if d.category else None,
        "category_color": d.category.color if d.category else None,
        "title": d.title,
        "description": d.description,
        "file_name": d.file_name,
        "file_path": d.file_path,
        "file_size": d.file_size,
        "mime_type": d.mime_type,
        "document_date": d.document_date.isoformat() if d.document_date else None,
        "expiry_date": d.expiry_date.isoformat() if d.expiry_date else None,
        "expiry_status": expiry_status(d.expiry_date),
        "tags": parse_tags(d.tags),
        "is_important": bool(d.is_important),
        "created_by": d.created_by,
        "created_at": d.created_at.isoformat() if d.created_at else None,
    }


def _get_document(db: DBSession, session: Session, document_id: int) -> FarmDocument:
    document = db.query(FarmDocument).filter(FarmDocument.id == document_id).first()
    if not document or not session.can_access_farm(document.farm_id):
        raise NotFoundError("Document not found")
    return document


def _check_category(db: DBSession, category_id: Optional[int]) -> None:
    if category_id is not None:
        if not db.query(DocumentCategory).filter(DocumentCategory.id == category_id).first():
            raise ValidationError("Document category not found")


# =============================================================================
# Categories
# =============================================================================

@router.get("/categories")
async def get_categories(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    return [category_to_response(c) for c in db.query(DocumentCategory).order_by(DocumentCategory.name).all()]


@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    category_data: CategoryCreate,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    if db.query(DocumentCategory).filter(DocumentCategory.name == category_data.name).first():
        raise ConflictError(f"Category '{category_data.name}' already exists")
    category = DocumentCategory(**category_data.model_dump())
    db.add(category)
    db.commit()
    db.refresh(category)
    return category_to_response(category)


@router.put("/categories/{category_id}")
async def update_category(
    category_id: int,
    category_data: CategoryUpdate,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    category = db.query(DocumentCategory).filter(DocumentCategory.id == category_id).first()
    if not category:
        raise NotFoundError("Document category not found")
    update_data = category_data.model_dump(exclude_unset=True)
    reject_null_fields(update_data, ("name",))
    if "name" in update_data:
        duplicate = db.query(DocumentCategory).filter(
            DocumentCategory.name == update_data["name"],
            DocumentCategory.id != category_id
        ).first()
        if duplicate:
            raise ConflictError(f"Category '{update_data['name']}' already exists")
    for field, value in update_data.items():
        setattr(category, field, value)
    db.commit()
    db.refresh(category)
    return category_to_response(category)


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: int,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    """Delete a category; its documents become uncategorized"""
    category = db.query(DocumentCategory).filter(DocumentCategory.id == category_id).first()
    if not category:
        raise NotFoundError("Document category not found")
    db.query(FarmDocument).filter(FarmDocument.category_id == category_id).update(
        {"category_id": None}, synchronize_session=False
    )
    db.delete(category)
    db.commit()
    return {"message": "Category deleted successfully"}


# =============================================================================
# Documents
# =============================================================================

@router.get("/")
async def get_documents(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db),
    search: Optional[str] = Query(None, description="Search title, description, file name and tags"),
    farm_id: Optional[List[str]] = Query(None),
    category_id: Optional[List[str]] = Query(None),
    is_important: Optional[List[str]] = Query(None),
    expiring: bool = Query(False, description="Only documents expiring within the warning window"),
    expired: bool = Query(False, description="Only expired documents")
):
    """List farm documents, newest first"""
    rows = session.scope(db.query(FarmDocument), FarmDocument.farm_id).order_by(
        FarmDocument.created_at.desc(), FarmDocument.id.desc()
    ).all()
    if expiring:
        rows = [d for d in rows if is_expiring_soon(d.expiry_date)]
    if expired:
        rows = [d for d in rows if is_expired(d.expiry_date)]

    return apply_filters(
        [document_to_response(d) for d in rows],
        search=search,
        text_fields=SEARCH_FIELDS,
        facets={
            "farm_id": farm_id,
            "category_id": category_id,
            "is_important": is_important,
        }
    )


@router.post("/", status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    farm_id: int = Form(...),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category_id: Optional[int] = Form(None),
    document_date: Optional[date] = Form(None),
    expiry_date: Optional[date] = Form(None),
    tags: Optional[str] = Form(None, description="Comma separated or JSON list"),
    is_important: bool = Form(False),
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """Upload a document to a farm's archive"""
    session.require_farm(farm_id)
    _check_category(db, category_id)

    content = await file.read()
    if len(content) > settings.document_max_bytes:
        raise FileTooLargeError(
            f"File {file.filename} exceeds the {settings.document_max_bytes // (1024 * 1024)} MB limit"
        )

    file_name = file.filename or "document"
    key = upload_file(build_storage_key(f"documents/{farm_id}", file_name), content, file.content_type)

    document = FarmDocument(
        farm_id=farm_id,
        category_id=category_id,
        title=title or file_name,
        description=description,
        file_name=file_name,
        file_path=key,
        file_size=len(content),
        mime_type=file.content_type,
        document_date=document_date,
        expiry_date=expiry_date,
        tags=dump_tags(tags),
        is_important=is_important,
        created_by=session.user_id
    )
    db.add(document)
    db.commit()
    db.refresh(document)
    logger.info(f"Document {document.id} uploaded to farm {farm_id} ({len(content)} bytes)")
    return document_to_response(document)


@router.get("/{document_id}")
async def get_document(
    document_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    return document_to_response(_get_document(db, session, document_id))


@router.get("/{document_id}/url")
async def get_document_url(
    document_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """Viewable URL: local path or pre-signed S3 link"""
    document = _get_document(db, session, document_id)
    return {"file_name": document.file_name, **get_file_url(document.file_path)}


@router.put("/{document_id}")
async def update_document(
    document_id: int,
    document_data: DocumentUpdate,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    document = _get_document(db, session, document_id)
    update_data = document_data.model_dump(exclude_unset=True)
    reject_null_fields(update_data, ("title", "is_important"))
    _check_category(db, update_data.get("category_id"))
    if "tags" in update_data:
        update_data["tags"] = dump_tags(update_data["tags"])

    for field, value in update_data.items():
        setattr(document, field, value)
    db.commit()
    db.refresh(document)
    return document_to_response(document)


@router.delete("/{document_id}")
async def delete_document(
    document_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """Delete a document (managers, or the user who uploaded it)"""
    document = _get_document(db, session, document_id)
    if not session.can_manage and document.created_by != session.user_id:
        session.require_manager()
    if not delete_file(document.file_path):
        logger.warning(f"Stored file {document.file_path} could not be removed")
    db.delete(document)
    db.commit()
    return {"message": "Document deleted successfully"}

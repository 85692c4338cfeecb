from fastapi import APIRouter, Depends, UploadFile, File
from pydantic import BaseModel
from sqlalchemy.orm import Session as DBSession
from typing import Optional, List
import logging

from allevapp.config import settings
from allevapp.database import get_db
from allevapp.errors import AppError, NotFoundError, ValidationError, FileTooLargeError
from allevapp.models import Attachment, Report, Equipment, Quote
from allevapp.services.dependency import Session, get_session
from allevapp.services.storage import build_storage_key, upload_file, get_file_url, delete_file

logger = logging.getLogger(__name__)

router = APIRouter()

ENTITY_MODELS = {
    "report": Report,
    "equipment": Equipment,
    "quote": Quote,
}


class AttachmentLabel(BaseModel):
    custom_label: Optional[str] = None


def attachment_to_response(a: Attachment) -> dict:
    return {
        "id": a.id,
        "entity_type": a.entity_type,
        "entity_id": a.entity_id,
        "file_name": a.file_name,
        "file_path": a.file_path,
        "custom_label": a.custom_label,
        "display_name": a.custom_label or a.file_name,
        "file_size": a.file_size,
        "mime_type": a.mime_type,
        "created_by": a.created_by,
        "created_at": a.created_at.isoformat() if a.created_at else None,
    }


def _check_entity(db: DBSession, session: Session, entity_type: str, entity_id: int) -> None:
    model = ENTITY_MODELS.get(entity_type)
    if model is None:
        raise ValidationError(f"Attachments are not supported on '{entity_type}'")
    entity = db.query(model).filter(model.id == entity_id).first()
    if not entity or not session.can_access_farm(entity.farm_id):
        raise NotFoundError(f"{entity_type.capitalize()} not found")


def _get_attachment(db: DBSession, session: Session, attachment_id: int) -> Attachment:
    attachment = db.query(Attachment).filter(Attachment.id == attachment_id).first()
    if not attachment:
        raise NotFoundError("Attachment not found")
    _check_entity(db, session, attachment.entity_type, attachment.entity_id)
    return attachment


async def _store_one(db: DBSession, session: Session, entity_type: str, entity_id: int, file: UploadFile) -> Attachment:
    content = await file.read()
    if len(content) > settings.attachment_max_bytes:
        raise FileTooLargeError(
            f"File {file.filename} exceeds the {settings.attachment_max_bytes // (1024 * 1024)} MB limit"
        )
    file_name = file.filename or "file"
    key = upload_file(build_storage_key(f"{entity_type}/{entity_id}", file_name), content, file.content_type)

    attachment = Attachment(
        entity_type=entity_type,
        entity_id=entity_id,
        file_name=file_name,
        file_path=key,
        file_size=len(content),
        mime_type=file.content_type,
        created_by=session.user_id
    )
    db.add(attachment)
    db.commit()
    db.refresh(attachment)
    return attachment


@router.get("/{attachment_id}/url")
async def get_attachment_url(
    attachment_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    attachment = _get_attachment(db, session, attachment_id)
    return {"file_name": attachment.file_name, **get_file_url(attachment.file_path)}


@router.get("/{entity_type}/{entity_id}")
async def get_attachments(
    entity_type: str,
    entity_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    _check_entity(db, session, entity_type, entity_id)
    rows = db.query(Attachment).filter(
        Attachment.entity_type == entity_type,
        Attachment.entity_id == entity_id
    ).order_by(Attachment.created_at.desc(), Attachment.id.desc()).all()
    return [attachment_to_response(a) for a in rows]


@router.post("/{entity_type}/{entity_id}")
async def upload_attachments(
    entity_type: str,
    entity_id: int,
    files: List[UploadFile] = File(...),
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """
    Upload one or more files. Files are stored one at a time and each gets
    its own result, so a rejected file does not hide the ones already saved.
    """
    _check_entity(db, session, entity_type, entity_id)

    results = []
    for file in files:
        try:
            attachment = await _store_one(db, session, entity_type, entity_id, file)
            results.append({"file_name": file.filename, "success": True, "attachment": attachment_to_response(attachment)})
        except AppError as e:
            db.rollback()
            logger.warning(f"Attachment {file.filename} on {entity_type} {entity_id} rejected: {e.message}")
            results.append({"file_name": file.filename, "success": False, "error": e.message})

    successful = sum(1 for r in results if r["success"])
    return {"results": results, "successful": successful, "failed": len(results) - successful}


@router.put("/{attachment_id}/label")
async def relabel_attachment(
    attachment_id: int,
    label: AttachmentLabel,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    attachment = _get_attachment(db, session, attachment_id)
    attachment.custom_label = (label.custom_label or "").strip() or None
    db.commit()
    db.refresh(attachment)
    return attachment_to_response(attachment)


@router.delete("/{attachment_id}")
async def delete_attachment(
    attachment_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    attachment = _get_attachment(db, session, attachment_id)
    if not delete_file(attachment.file_path):
        logger.warning(f"Stored file {attachment.file_path} could not be removed")
    db.delete(attachment)
    db.commit()
    return {"message": "Attachment deleted successfully"}

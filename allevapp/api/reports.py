from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.orm import Session as DBSession
from typing import Optional, List
import logging

from allevapp.database import get_db
from allevapp.errors import NotFoundError, ValidationError
from allevapp.models import Report, Equipment, Supplier, User, Quote
from allevapp.schemas import Urgency, ReportStatus, reject_null_fields
from allevapp.services.dependency import Session, get_session
from allevapp.services.filters import apply_filters
from allevapp.services.quotes import OPEN_QUOTE_STATUSES

logger = logging.getLogger(__name__)

router = APIRouter()

SEARCH_FIELDS = ("title", "description", "farm_name", "equipment_name")
REPORT_STATUSES = ("open", "in_progress", "resolved", "closed")
URGENT_LEVELS = ("high", "critical")


class ReportCreate(BaseModel):
    title: str
    description: Optional[str] = None
    farm_id: int
    equipment_id: Optional[int] = None
    supplier_id: Optional[int] = None
    assigned_to: Optional[int] = None
    urgency: Urgency = "medium"
    status: ReportStatus = "open"
    notes: Optional[str] = None


class ReportUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    farm_id: Optional[int] = None
    equipment_id: Optional[int] = None
    supplier_id: Optional[int] = None
    assigned_to: Optional[int] = None
    urgency: Optional[Urgency] = None
    status: Optional[ReportStatus] = None
    notes: Optional[str] = None


def active_quote_counts(db: DBSession, report_ids: List[int]) -> dict:
    if not report_ids:
        return {}
    rows = db.query(Quote.report_id, func.count(Quote.id)).filter(
        Quote.report_id.in_(report_ids),
        Quote.status.in_(OPEN_QUOTE_STATUSES)
    ).group_by(Quote.report_id).all()
    return {report_id: count for report_id, count in rows}


def report_to_response(r: Report, active_quotes: int = 0) -> dict:
    return {
        "id": r.id,
        "title": r.title,
        "description": r.description,
        "farm_id": r.farm_id,
        "farm_name": r.farm.name if r.farm else None,
        "equipment_id": r.equipment_id,
        "equipment_name": r.equipment.name if r.equipment else None,
        "supplier_id": r.supplier_id,
        "supplier_name": r.supplier.name if r.supplier else None,
        "assigned_to": r.assigned_to,
        "assigned_name": r.assignee.full_name if r.assignee else None,
        "created_by": r.created_by,
        "created_by_name": r.creator.full_name if r.creator else None,
        "urgency": r.urgency,
        "status": r.status,
        "notes": r.notes,
        "active_quotes_count": active_quotes,
        "created_at": r.created_at.isoformat() if r.created_at else None,
        "updated_at": r.updated_at.isoformat() if r.updated_at else None,
    }


def _get_report(db: DBSession, session: Session, report_id: int) -> Report:
    report = db.query(Report).filter(Report.id == report_id).first()
    if not report or not session.can_access_farm(report.farm_id):
        raise NotFoundError("Report not found")
    return report


def _check_references(db: DBSession, data: dict, farm_id: int) -> None:
    if data.get("equipment_id") is not None:
        equipment = db.query(Equipment).filter(Equipment.id == data["equipment_id"]).first()
        if not equipment or equipment.farm_id != farm_id:
            raise ValidationError("Equipment does not belong to the selected farm")
    if data.get("supplier_id") is not None:
        if not db.query(Supplier).filter(Supplier.id == data["supplier_id"]).first():
            raise ValidationError("Supplier not found")
    if data.get("assigned_to") is not None:
        if not db.query(User).filter(User.id == data["assigned_to"], User.active == True).first():
            raise ValidationError("Assigned user not found")


@router.get("/")
async def get_reports(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db),
    search: Optional[str] = Query(None, description="Search title, description, farm and equipment"),
    status_filter: Optional[List[str]] = Query(None, alias="status"),
    urgency: Optional[List[str]] = Query(None),
    farm_id: Optional[List[str]] = Query(None),
    assigned_to: Optional[List[str]] = Query(None),
    supplier_id: Optional[List[str]] = Query(None),
    urgent_only: bool = Query(False, description="Only high and critical reports")
):
    """List reports, newest first, with text search and facet filters"""
    rows = session.scope(db.query(Report), Report.farm_id).order_by(Report.created_at.desc(), Report.id.desc()).all()
    counts = active_quote_counts(db, [r.id for r in rows])

    if urgent_only:
        urgency = list(URGENT_LEVELS)

    return apply_filters(
        [report_to_response(r, counts.get(r.id, 0)) for r in rows],
        search=search,
        text_fields=SEARCH_FIELDS,
        facets={
            "status": status_filter,
            "urgency": urgency,
            "farm_id": farm_id,
            "assigned_to": assigned_to,
            "supplier_id": supplier_id,
        }
    )


@router.get("/stats")
async def get_report_stats(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """Report counts by status"""
    query = session.scope(db.query(Report.status, func.count(Report.id)), Report.farm_id)
    by_status = dict(query.group_by(Report.status).all())
    stats = {s: by_status.get(s, 0) for s in REPORT_STATUSES}
    stats["total"] = sum(by_status.values())
    return stats


@router.get("/{report_id}")
async def get_report(
    report_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    report = _get_report(db, session, report_id)
    counts = active_quote_counts(db, [report.id])
    return report_to_response(report, counts.get(report.id, 0))


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_report(
    report_data: ReportCreate,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """File a new report"""
    session.require_farm(report_data.farm_id)
    data = report_data.model_dump()
    _check_references(db, data, report_data.farm_id)

    report = Report(**data, created_by=session.user_id)
    db.add(report)
    db.commit()
    db.refresh(report)
    logger.info(f"Report {report.id} ({report.urgency}) filed on farm {report.farm_id} by user {session.user_id}")
    return report_to_response(report)


@router.put("/{report_id}")
async def update_report(
    report_id: int,
    report_data: ReportUpdate,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    report = _get_report(db, session, report_id)
    update_data = report_data.model_dump(exclude_unset=True)
    reject_null_fields(update_data, ("title", "farm_id", "urgency", "status"))
    farm_id = update_data.get("farm_id", report.farm_id)
    session.require_farm(farm_id)
    # Equipment must stay on the report's farm when only the farm changes
    _check_references(db, {"equipment_id": report.equipment_id, **update_data}, farm_id)

    for field, value in update_data.items():
        setattr(report, field, value)
    db.commit()
    db.refresh(report)

    counts = active_quote_counts(db, [report.id])
    return report_to_response(report, counts.get(report.id, 0))


@router.delete("/{report_id}")
async def delete_report(
    report_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """Delete a report (managers, or the technician who filed it)"""
    report = _get_report(db, session, report_id)
    if not session.can_manage and report.created_by != session.user_id:
        session.require_manager()
    db.delete(report)
    db.commit()
    return {"message": "Report deleted successfully"}

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session as DBSession
from typing import Optional, List
from datetime import date
import logging

from allevapp.database import get_db
from allevapp.errors import NotFoundError, ValidationError, InvalidTransitionError
from allevapp.models import Quote, Supplier, Farm, Project
from allevapp.schemas import QuoteStatus, QuoteEntity, reject_null_fields
from allevapp.services.dependency import Session, get_session, require_manager
from allevapp.services.filters import apply_filters
from allevapp.services.quotes import is_quote_overdue, request_quotes, accept_quote, resolve_entity
from allevapp.utils.rate_limiter import limiter, RateLimits

logger = logging.getLogger(__name__)

router = APIRouter()

SEARCH_FIELDS = ("title", "supplier_name", "description", "farm_name")
QUOTE_STATUSES = ("requested", "received", "accepted", "rejected")


class QuoteCreate(BaseModel):
    title: str
    description: Optional[str] = None
    supplier_id: int
    farm_id: Optional[int] = None
    report_id: Optional[int] = None
    project_id: Optional[int] = None
    amount: Optional[float] = Field(None, ge=0)
    status: QuoteStatus = "requested"
    due_date: Optional[date] = None
    notes: Optional[str] = None


class QuoteUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    supplier_id: Optional[int] = None
    farm_id: Optional[int] = None
    project_id: Optional[int] = None
    amount: Optional[float] = Field(None, ge=0)
    status: Optional[QuoteStatus] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None


class QuoteRequest(BaseModel):
    entity_type: QuoteEntity
    entity_id: int
    supplier_ids: List[int]
    subject: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    project_id: Optional[int] = None


class QuoteAcceptance(BaseModel):
    total_amount: Optional[float] = Field(None, ge=0)
    delivery_date: Optional[date] = None
    notes: Optional[str] = None


def quote_to_response(q: Quote) -> dict:
    return {
        "id": q.id,
        "title": q.title,
        "description": q.description,
        "supplier_id": q.supplier_id,
        "supplier_name": q.supplier.name if q.supplier else None,
        "supplier_email": q.supplier.email if q.supplier else None,
        "farm_id": q.farm_id,
        "farm_name": q.farm.name if q.farm else None,
        "report_id": q.report_id,
        "report_title": q.report.title if q.report else None,
        "project_id": q.project_id,
        "amount": q.amount,
        "status": q.status,
        "requested_at": q.requested_at.isoformat() if q.requested_at else None,
        "due_date": q.due_date.isoformat() if q.due_date else None,
        "is_overdue": is_quote_overdue(q),
        "notes": q.notes,
        "order_id": q.order_confirmation.id if q.order_confirmation else None,
        "created_by": q.created_by,
        "created_at": q.created_at.isoformat() if q.created_at else None,
    }


def _visible_quotes(db: DBSession, session: Session):
    query = db.query(Quote)
    if session.farm_ids is not None:
        query = query.filter(Quote.farm_id.in_(session.farm_ids))
    return query


def _get_quote(db: DBSession, session: Session, quote_id: int) -> Quote:
    quote = db.query(Quote).filter(Quote.id == quote_id).first()
    if not quote or not session.can_access_farm(quote.farm_id):
        raise NotFoundError("Quote not found")
    return quote


def _check_references(db: DBSession, data: dict) -> None:
    if data.get("supplier_id") is not None:
        if not db.query(Supplier).filter(Supplier.id == data["supplier_id"]).first():
            raise ValidationError("Supplier not found")
    if data.get("farm_id") is not None:
        if not db.query(Farm).filter(Farm.id == data["farm_id"]).first():
            raise ValidationError("Farm not found")
    if data.get("project_id") is not None:
        if not db.query(Project).filter(Project.id == data["project_id"]).first():
            raise ValidationError("Project not found")


@router.get("/")
async def get_quotes(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db),
    search: Optional[str] = Query(None, description="Search title, supplier, description and farm"),
    status_filter: Optional[List[str]] = Query(None, alias="status"),
    supplier_id: Optional[List[str]] = Query(None),
    farm_id: Optional[List[str]] = Query(None),
    report_id: Optional[int] = Query(None),
    project_id: Optional[int] = Query(None),
    overdue_only: bool = Query(False)
):
    """List quotes, newest first, with text search and facet filters"""
    query = _visible_quotes(db, session)
    if report_id is not None:
        query = query.filter(Quote.report_id == report_id)
    if project_id is not None:
        query = query.filter(Quote.project_id == project_id)

    rows = query.order_by(Quote.requested_at.desc(), Quote.id.desc()).all()
    results = apply_filters(
        [quote_to_response(q) for q in rows],
        search=search,
        text_fields=SEARCH_FIELDS,
        facets={
            "status": status_filter,
            "supplier_id": supplier_id,
            "farm_id": farm_id,
        }
    )
    if overdue_only:
        results = [q for q in results if q["is_overdue"]]
    return results


@router.get("/stats")
async def get_quote_stats(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """Quote counts by status with total and accepted amounts"""
    quotes = _visible_quotes(db, session).all()
    stats = {s: 0 for s in QUOTE_STATUSES}
    for q in quotes:
        stats[q.status] = stats.get(q.status, 0) + 1
    stats["total"] = len(quotes)
    stats["overdue"] = sum(1 for q in quotes if is_quote_overdue(q))
    stats["total_amount"] = sum(q.amount or 0 for q in quotes)
    stats["accepted_amount"] = sum(q.amount or 0 for q in quotes if q.status == "accepted")
    return stats


@router.post("/request")
@limiter.limit(RateLimits.SEND_EMAIL)
async def request_supplier_quotes(
    request: Request,
    request_data: QuoteRequest,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """
    Ask several suppliers for a quote on a report, equipment or facility.
    One quote row is created per supplier and each supplier is e-mailed.
    """
    entity = resolve_entity(db, request_data.entity_type, request_data.entity_id)
    session.require_farm(entity.farm_id)
    if request_data.project_id is not None:
        _check_references(db, {"project_id": request_data.project_id})

    return request_quotes(
        db,
        entity_type=request_data.entity_type,
        entity_id=request_data.entity_id,
        supplier_ids=request_data.supplier_ids,
        created_by=session.user_id,
        contact_email=session.user.email,
        subject=request_data.subject,
        description=request_data.description,
        due_date=request_data.due_date,
        notes=request_data.notes,
        project_id=request_data.project_id
    )


@router.get("/{quote_id}")
async def get_quote(
    quote_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    return quote_to_response(_get_quote(db, session, quote_id))


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_quote(
    quote_data: QuoteCreate,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """Record a quote manually"""
    if quote_data.status == "accepted":
        raise ValidationError("Quotes are accepted through the accept action")
    data = quote_data.model_dump()
    _check_references(db, data)

    if data.get("report_id") is not None:
        report = resolve_entity(db, "report", data["report_id"])
        if data.get("farm_id") is None:
            data["farm_id"] = report.farm_id
    session.require_farm(data.get("farm_id"))

    quote = Quote(**data, created_by=session.user_id)
    db.add(quote)
    db.commit()
    db.refresh(quote)
    return quote_to_response(quote)


@router.put("/{quote_id}")
async def update_quote(
    quote_id: int,
    quote_data: QuoteUpdate,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """Update a quote (e.g. record the amount when the supplier answers)"""
    quote = _get_quote(db, session, quote_id)
    update_data = quote_data.model_dump(exclude_unset=True)
    reject_null_fields(update_data, ("title", "supplier_id", "status"))
    if "farm_id" in update_data:
        session.require_farm(update_data["farm_id"])

    new_status = update_data.get("status")
    if new_status == "accepted" and quote.status != "accepted":
        raise InvalidTransitionError("Quotes are accepted through the accept action")
    if quote.status == "accepted" and new_status and new_status != "accepted":
        raise InvalidTransitionError("An accepted quote already has an order confirmation")
    _check_references(db, update_data)

    for field, value in update_data.items():
        setattr(quote, field, value)
    db.commit()
    db.refresh(quote)
    return quote_to_response(quote)


@router.post("/{quote_id}/accept")
async def accept(
    quote_id: int,
    acceptance: Optional[QuoteAcceptance] = None,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    """
    Accept a quote. Creates the order confirmation and rejects the other open
    quotes with the same title for the same farm.
    """
    quote = _get_quote(db, session, quote_id)
    acceptance = acceptance or QuoteAcceptance()
    order = accept_quote(
        db,
        quote,
        created_by=session.user_id,
        total_amount=acceptance.total_amount,
        delivery_date=acceptance.delivery_date,
        notes=acceptance.notes
    )
    db.refresh(quote)
    return {
        "quote": quote_to_response(quote),
        "order": {
            "id": order.id,
            "order_number": order.order_number,
            "company": order.company,
            "sequential_number": order.sequential_number,
            "total_amount": order.total_amount,
            "status": order.status,
        },
    }


@router.post("/{quote_id}/reject")
async def reject(
    quote_id: int,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    quote = _get_quote(db, session, quote_id)
    if quote.status == "accepted":
        raise InvalidTransitionError("An accepted quote already has an order confirmation")
    quote.status = "rejected"
    db.commit()
    db.refresh(quote)
    return quote_to_response(quote)


@router.delete("/{quote_id}")
async def delete_quote(
    quote_id: int,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    quote = _get_quote(db, session, quote_id)
    if quote.order_confirmation:
        quote.order_confirmation.quote_id = None
    db.delete(quote)
    db.commit()
    return {"message": "Quote deleted successfully"}

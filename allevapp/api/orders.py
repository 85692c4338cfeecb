from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy.orm import Session as DBSession
from typing import Optional, List
from datetime import date
import logging

from allevapp.database import get_db
from allevapp.errors import NotFoundError
from allevapp.models import OrderConfirmation
from allevapp.schemas import OrderStatus
from allevapp.services.dependency import Session, get_session, require_manager
from allevapp.services.filters import apply_filters
from allevapp.services.order_document import OrderDocumentService, DOC_MIME_TYPE, document_filename, content_disposition
from allevapp.services.orders import change_order_status, group_by_company

logger = logging.getLogger(__name__)

router = APIRouter()

SEARCH_FIELDS = ("order_number", "quote_title", "supplier_name", "farm_name")


class OrderUpdate(BaseModel):
    delivery_date: Optional[date] = None
    total_amount: Optional[float] = None
    notes: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


def order_to_response(o: OrderConfirmation) -> dict:
    quote = o.quote
    return {
        "id": o.id,
        "order_number": o.order_number,
        "company": o.company,
        "sequential_number": o.sequential_number,
        "quote_id": o.quote_id,
        "quote_title": quote.title if quote else None,
        "quote_description": quote.description if quote else None,
        "farm_id": o.farm_id,
        "farm_name": o.farm.name if o.farm else None,
        "supplier_id": o.supplier_id,
        "supplier_name": o.supplier.name if o.supplier else None,
        "supplier_email": o.supplier.email if o.supplier else None,
        "total_amount": o.total_amount,
        "order_date": o.order_date.isoformat() if o.order_date else None,
        "delivery_date": o.delivery_date.isoformat() if o.delivery_date else None,
        "notes": o.notes,
        "status": o.status,
        "created_by": o.created_by,
        "created_at": o.created_at.isoformat() if o.created_at else None,
    }


def _get_order(db: DBSession, session: Session, order_id: int) -> OrderConfirmation:
    order = db.query(OrderConfirmation).filter(OrderConfirmation.id == order_id).first()
    if not order or not session.can_access_farm(order.farm_id):
        raise NotFoundError("Order not found")
    return order


def _list_orders(db: DBSession, session: Session, search, company, status_filter) -> List[dict]:
    query = db.query(OrderConfirmation)
    if session.farm_ids is not None:
        query = query.filter(OrderConfirmation.farm_id.in_(session.farm_ids))
    rows = query.order_by(OrderConfirmation.order_date.desc(), OrderConfirmation.id.desc()).all()
    return apply_filters(
        [order_to_response(o) for o in rows],
        search=search,
        text_fields=SEARCH_FIELDS,
        facets={"company": company, "status": status_filter}
    )


@router.get("/")
async def get_orders(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db),
    search: Optional[str] = Query(None, description="Search order number, quote title, supplier and farm"),
    company: Optional[List[str]] = Query(None),
    status_filter: Optional[List[str]] = Query(None, alias="status")
):
    """List order confirmations, newest first"""
    return _list_orders(db, session, search, company, status_filter)


@router.get("/by-company")
async def get_orders_by_company(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db),
    search: Optional[str] = Query(None),
    status_filter: Optional[List[str]] = Query(None, alias="status")
):
    """Orders grouped by ordering company, with count and total per group"""
    return group_by_company(_list_orders(db, session, search, None, status_filter))


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    return order_to_response(_get_order(db, session, order_id))


@router.put("/{order_id}")
async def update_order(
    order_id: int,
    order_data: OrderUpdate,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    """Update delivery date, amount or notes; status has its own endpoint"""
    order = _get_order(db, session, order_id)
    for field, value in order_data.model_dump(exclude_unset=True).items():
        setattr(order, field, value)
    db.commit()
    db.refresh(order)
    return order_to_response(order)


@router.put("/{order_id}/status")
async def update_order_status(
    order_id: int,
    status_data: OrderStatusUpdate,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    order = _get_order(db, session, order_id)
    change_order_status(order, status_data.status)
    db.commit()
    db.refresh(order)
    return order_to_response(order)


@router.get("/{order_id}/document")
async def download_order_document(
    order_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """Order confirmation as a Word-compatible HTML document"""
    order = _get_order(db, session, order_id)
    document = OrderDocumentService(order_to_response(order))
    return Response(
        content=document.render_html(),
        media_type=DOC_MIME_TYPE,
        headers={"Content-Disposition": content_disposition(document.filename)}
    )


@router.get("/{order_id}/pdf")
async def download_order_pdf(
    order_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    order = _get_order(db, session, order_id)
    data = order_to_response(order)
    pdf_bytes = OrderDocumentService(data).generate_pdf()
    filename = document_filename(data["order_number"], data["quote_title"] or "", extension="pdf")
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": content_disposition(filename)}
    )


@router.delete("/{order_id}")
async def delete_order(
    order_id: int,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    order = _get_order(db, session, order_id)
    db.delete(order)
    db.commit()
    logger.info(f"Order {order.order_number} deleted by user {session.user_id}")
    return {"message": "Order deleted successfully"}

"""
Quote Service

Provides business logic for supplier quotes including:
- Quote requests to several suppliers at once
- Acceptance into an order confirmation
- Overdue detection
"""
import logging
from datetime import date
from typing import Optional, Dict, Any, List

from sqlalchemy.orm import Session

from allevapp.errors import NotFoundError, ValidationError, InvalidTransitionError
from allevapp.models import Quote, Report, Equipment, Facility, Supplier, OrderConfirmation, Farm
from allevapp.services.companies import SHARED_PHONE
from allevapp.services.email import EmailService
from allevapp.services.numbering import next_order_number

logger = logging.getLogger(__name__)

ENTITY_MODELS = {
    "report": Report,
    "equipment": Equipment,
    "facility": Facility,
}
ENTITY_LABELS = {
    "report": "segnalazione",
    "equipment": "attrezzatura",
    "facility": "impianto",
}
OPEN_QUOTE_STATUSES = ("requested", "received")


# =============================================================================
# Helpers
# =============================================================================

def is_quote_overdue(quote: Quote, today: Optional[date] = None) -> bool:
    """A quote is overdue when its due date has passed and the supplier has not answered yet"""
    today = today or date.today()
    return bool(quote.due_date and quote.due_date < today and quote.status == "requested")


def resolve_entity(db: Session, entity_type: str, entity_id: int):
    model = ENTITY_MODELS.get(entity_type)
    if model is None:
        raise ValidationError(f"Unsupported entity type '{entity_type}'")
    entity = db.query(model).filter(model.id == entity_id).first()
    if not entity:
        raise NotFoundError(f"{entity_type.capitalize()} not found")
    return entity


def default_request_content(entity_type: str, entity_name: str, farm_name: Optional[str], entity_description: Optional[str] = None) -> Dict[str, str]:
    subject = f"Richiesta Preventivo - {entity_name}"
    description = entity_description or (
        f'Richiesta preventivo per {ENTITY_LABELS.get(entity_type, entity_type)} "{entity_name}"'
        f'{f" presso {farm_name}" if farm_name else ""}.'
    )
    return {"subject": subject, "description": description}


# =============================================================================
# Quote requests
# =============================================================================

def request_quotes(
    db: Session,
    entity_type: str,
    entity_id: int,
    supplier_ids: List[int],
    created_by: int,
    contact_email: Optional[str] = None,
    subject: Optional[str] = None,
    description: Optional[str] = None,
    due_date: Optional[date] = None,
    notes: Optional[str] = None,
    project_id: Optional[int] = None,
    email_service: Optional[EmailService] = None
) -> Dict[str, Any]:
    """
    Create one quote per supplier for a report, equipment or facility and
    e-mail each supplier.

    Suppliers are processed one at a time; every supplier gets its own
    result entry so a failure never hides which requests went out.

    Returns:
        dict with per-supplier ``results`` and success/failure counts
    """
    if not supplier_ids:
        raise ValidationError("Select at least one supplier")

    entity = resolve_entity(db, entity_type, entity_id)
    farm_id = entity.farm_id
    farm = db.query(Farm).filter(Farm.id == farm_id).first() if farm_id else None
    farm_name = farm.name if farm else None

    entity_name = entity.title if entity_type == "report" else entity.name
    defaults = default_request_content(entity_type, entity_name, farm_name)
    subject = subject or defaults["subject"]
    description = description or defaults["description"]

    email_service = email_service or EmailService()
    results = []

    for supplier_id in supplier_ids:
        supplier = db.query(Supplier).filter(Supplier.id == supplier_id).first()
        if not supplier:
            results.append({"supplier_id": supplier_id, "supplier": None, "success": False, "error": "Supplier not found"})
            continue

        quote = Quote(
            title=subject,
            description=description,
            supplier_id=supplier.id,
            farm_id=farm_id,
            report_id=entity.id if entity_type == "report" else None,
            project_id=project_id,
            due_date=due_date,
            notes=notes,
            status="requested",
            created_by=created_by
        )
        db.add(quote)
        db.commit()
        db.refresh(quote)

        result = {
            "supplier_id": supplier.id,
            "supplier": supplier.name,
            "email": supplier.email,
            "quote_id": quote.id,
            "success": True,
            "email_sent": False,
            "error": None,
        }

        if not supplier.email:
            result["success"] = False
            result["error"] = "Supplier has no e-mail address"
        else:
            sent = email_service.send_quote_request(
                to=supplier.email,
                supplier_name=supplier.name,
                quote_title=subject,
                quote_description=description,
                farm_name=farm_name or "N/A",
                due_date=due_date,
                contact_info={
                    "company_name": "AllevApp",
                    "email": contact_email or email_service.support_email,
                    "phone": SHARED_PHONE,
                }
            )
            result["email_sent"] = sent
            if not sent:
                result["success"] = False
                result["error"] = "E-mail could not be sent"

        results.append(result)

    successful = sum(1 for r in results if r["success"])
    logger.info(f"Quote request for {entity_type} {entity_id}: {successful}/{len(results)} suppliers reached")
    return {
        "results": results,
        "successful": successful,
        "failed": len(results) - successful,
    }


# =============================================================================
# Acceptance
# =============================================================================

def accept_quote(
    db: Session,
    quote: Quote,
    created_by: int,
    total_amount: Optional[float] = None,
    delivery_date: Optional[date] = None,
    notes: Optional[str] = None,
    order_date: Optional[date] = None
) -> OrderConfirmation:
    """
    Accept a quote: create its order confirmation, mark it accepted and
    reject the competing quotes (same farm and title, still open).
    """
    if quote.status not in OPEN_QUOTE_STATUSES:
        raise InvalidTransitionError(f"Cannot accept a quote in status '{quote.status}'")
    if not quote.farm_id or not quote.farm:
        raise ValidationError("Quote has no farm, the ordering company cannot be determined")

    amount = total_amount if total_amount is not None else quote.amount
    if amount is None:
        raise ValidationError("Order amount is required")

    company = quote.farm.company
    order_number, sequence = next_order_number(db, company)

    order = OrderConfirmation(
        quote_id=quote.id,
        order_number=order_number,
        company=company,
        sequential_number=sequence,
        farm_id=quote.farm_id,
        supplier_id=quote.supplier_id,
        total_amount=amount,
        order_date=order_date or date.today(),
        delivery_date=delivery_date,
        notes=notes,
        status="pending",
        created_by=created_by
    )
    db.add(order)

    quote.status = "accepted"
    if quote.amount is None:
        quote.amount = amount

    siblings = db.query(Quote).filter(
        Quote.id != quote.id,
        Quote.farm_id == quote.farm_id,
        Quote.title == quote.title,
        Quote.status.in_(OPEN_QUOTE_STATUSES)
    ).all()
    for sibling in siblings:
        sibling.status = "rejected"

    db.commit()
    db.refresh(order)
    logger.info(f"Quote {quote.id} accepted as order {order.order_number}; {len(siblings)} competing quotes rejected")
    return order

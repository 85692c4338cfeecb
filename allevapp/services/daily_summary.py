"""
Daily summary e-mail for admins and managers.

Collects urgent open reports and equipment/facility maintenance that is
overdue or due within the warning window, then mails every active admin and
manager. Nothing is sent on days with nothing to report.
"""
import logging
from datetime import date, timedelta
from typing import Dict, Any, List, Optional

from sqlalchemy.orm import Session

from allevapp.config import settings
from allevapp.errors import ValidationError
from allevapp.models import Report, Equipment, Facility, User
from allevapp.services.email import EmailService
from allevapp.services.maintenance import schedule_item

logger = logging.getLogger(__name__)

URGENT_LEVELS = ("high", "critical")
CLOSED_STATUSES = ("resolved", "closed")


def collect_summary(db: Session, today: Optional[date] = None) -> Dict[str, List[Dict[str, Any]]]:
    today = today or date.today()
    horizon = today + timedelta(days=settings.maintenance_due_soon_days)

    reports = db.query(Report).filter(
        Report.urgency.in_(URGENT_LEVELS),
        Report.status.notin_(CLOSED_STATUSES)
    ).order_by(Report.created_at.desc()).all()

    urgent_reports = [
        {
            "id": r.id,
            "title": r.title,
            "description": r.description,
            "urgency": r.urgency,
            "status": r.status,
            "farm_name": r.farm.name if r.farm else None,
            "equipment_name": r.equipment.name if r.equipment else None,
        }
        for r in reports
    ]

    overdue, due_soon = [], []
    for kind, model in (("equipment", Equipment), ("facility", Facility)):
        overdue += [
            schedule_item(kind, asset, today)
            for asset in db.query(model).filter(model.next_maintenance_due < today).all()
        ]
        due_soon += [
            schedule_item(kind, asset, today)
            for asset in db.query(model).filter(
                model.next_maintenance_due >= today,
                model.next_maintenance_due <= horizon
            ).all()
        ]

    overdue.sort(key=lambda item: item["next_maintenance_due"])
    due_soon.sort(key=lambda item: item["next_maintenance_due"])

    return {
        "urgent_reports": urgent_reports,
        "overdue_maintenance": overdue,
        "due_soon_maintenance": due_soon,
    }


def send_daily_summary(db: Session, email_service: Optional[EmailService] = None, today: Optional[date] = None) -> Dict[str, Any]:
    summary = collect_summary(db, today)
    counts = {key: len(items) for key, items in summary.items()}

    if not any(counts.values()):
        logger.info("Daily summary: nothing to report")
        return {"success": True, "sent": False, "message": "Nothing to report today", "summary": counts}

    recipients = db.query(User).filter(
        User.role.in_(("admin", "manager")),
        User.active == True,
        User.email.isnot(None)
    ).all()
    if not recipients:
        raise ValidationError("No recipients found for the daily summary")

    email_service = email_service or EmailService()
    results = []
    for recipient in recipients:
        ok = email_service.send_daily_summary(recipient.email, recipient.full_name, summary)
        results.append({"recipient": recipient.email, "success": ok})

    successful = sum(1 for r in results if r["success"])
    logger.info(f"Daily summary sent to {successful}/{len(results)} recipients")
    return {
        "success": True,
        "sent": True,
        "recipients": len(results),
        "successful_sends": successful,
        "failed_sends": len(results) - successful,
        "results": results,
        "summary": counts,
    }

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session as DBSession
from datetime import date

from allevapp.database import get_db
from allevapp.models import Report, Equipment, Facility, Farm
from allevapp.services.dependency import Session, get_session
from allevapp.services.maintenance import is_overdue, is_due_soon

router = APIRouter()

URGENT_LEVELS = ("high", "critical")
RECENT_REPORTS = 5


@router.get("/")
async def get_dashboard(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """Headline counts and the most recent reports for the farms the user can see"""
    today = date.today()
    reports = session.scope(db.query(Report), Report.farm_id)

    recent = reports.order_by(Report.created_at.desc(), Report.id.desc()).limit(RECENT_REPORTS).all()

    due_dates = [
        e.next_maintenance_due
        for e in session.scope(db.query(Equipment), Equipment.farm_id).all()
    ] + [
        f.next_maintenance_due
        for f in session.scope(db.query(Facility), Facility.farm_id).all()
    ]

    return {
        "farms": session.scope(db.query(Farm), Farm.id).count(),
        "total_reports": reports.count(),
        "open_reports": reports.filter(Report.status == "open").count(),
        "urgent_reports": reports.filter(Report.urgency.in_(URGENT_LEVELS)).count(),
        "equipment": session.scope(db.query(Equipment), Equipment.farm_id).count(),
        "facilities": session.scope(db.query(Facility), Facility.farm_id).count(),
        "maintenance_overdue": sum(1 for d in due_dates if is_overdue(d, today)),
        "maintenance_due_soon": sum(1 for d in due_dates if is_due_soon(d, today)),
        "recent_reports": [
            {
                "id": r.id,
                "title": r.title,
                "urgency": r.urgency,
                "status": r.status,
                "farm_name": r.farm.name if r.farm else None,
                "created_at": r.created_at.isoformat() if r.created_at else None,
            }
            for r in recent
        ],
    }

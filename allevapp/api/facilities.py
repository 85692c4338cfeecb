from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session as DBSession
from typing import Optional, List
from datetime import date

from allevapp.database import get_db
from allevapp.errors import NotFoundError
from allevapp.models import Facility
from allevapp.schemas import FacilityType, FacilityStatus, reject_null_fields
from allevapp.services.dependency import Session, get_session, require_manager
from allevapp.services.filters import apply_filters
from allevapp.services.maintenance import refresh_schedule, complete_maintenance, maintenance_status, days_until

router = APIRouter()

SEARCH_FIELDS = ("name", "description", "farm_name", "type")


class FacilityCreate(BaseModel):
    name: str
    type: FacilityType
    farm_id: int
    description: Optional[str] = None
    status: FacilityStatus = "working"
    last_maintenance: Optional[date] = None
    next_maintenance_due: Optional[date] = None
    maintenance_interval_days: int = Field(365, ge=0)


class FacilityUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[FacilityType] = None
    farm_id: Optional[int] = None
    description: Optional[str] = None
    status: Optional[FacilityStatus] = None
    last_maintenance: Optional[date] = None
    next_maintenance_due: Optional[date] = None
    maintenance_interval_days: Optional[int] = Field(None, ge=0)


class MaintenanceCompletion(BaseModel):
    performed_on: Optional[date] = None


def facility_to_response(f: Facility) -> dict:
    due = f.next_maintenance_due
    return {
        "id": f.id,
        "name": f.name,
        "type": f.type,
        "farm_id": f.farm_id,
        "farm_name": f.farm.name if f.farm else None,
        "description": f.description,
        "status": f.status,
        "last_maintenance": f.last_maintenance.isoformat() if f.last_maintenance else None,
        "next_maintenance_due": due.isoformat() if due else None,
        "maintenance_interval_days": f.maintenance_interval_days,
        "maintenance_status": maintenance_status(due),
        "days_until_due": days_until(due) if due else None,
        "created_at": f.created_at.isoformat() if f.created_at else None,
    }


def _get_facility(db: DBSession, session: Session, facility_id: int) -> Facility:
    facility = db.query(Facility).filter(Facility.id == facility_id).first()
    if not facility or not session.can_access_farm(facility.farm_id):
        raise NotFoundError("Facility not found")
    return facility


@router.get("/")
async def get_facilities(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db),
    search: Optional[str] = Query(None),
    farm_id: Optional[List[str]] = Query(None),
    facility_type: Optional[List[str]] = Query(None, alias="type"),
    status_filter: Optional[List[str]] = Query(None, alias="status"),
    maintenance: Optional[List[str]] = Query(None, description="overdue, due_soon, ok, unscheduled")
):
    """List facilities with text search and facet filters"""
    rows = session.scope(db.query(Facility), Facility.farm_id).order_by(Facility.name).all()
    return apply_filters(
        [facility_to_response(f) for f in rows],
        search=search,
        text_fields=SEARCH_FIELDS,
        facets={
            "farm_id": farm_id,
            "type": facility_type,
            "status": status_filter,
            "maintenance_status": maintenance,
        }
    )


@router.get("/{facility_id}")
async def get_facility(
    facility_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    return facility_to_response(_get_facility(db, session, facility_id))


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_facility(
    facility_data: FacilityCreate,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    session.require_farm(facility_data.farm_id)
    facility = Facility(**facility_data.model_dump())
    refresh_schedule(facility)
    db.add(facility)
    db.commit()
    db.refresh(facility)
    return facility_to_response(facility)


@router.put("/{facility_id}")
async def update_facility(
    facility_id: int,
    facility_data: FacilityUpdate,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    facility = _get_facility(db, session, facility_id)
    update_data = facility_data.model_dump(exclude_unset=True)
    reject_null_fields(update_data, ("name", "type", "farm_id", "status"))
    session.require_farm(update_data.get("farm_id", facility.farm_id))

    for field, value in update_data.items():
        setattr(facility, field, value)
    if "next_maintenance_due" not in update_data:
        refresh_schedule(facility)

    db.commit()
    db.refresh(facility)
    return facility_to_response(facility)


@router.post("/{facility_id}/complete-maintenance")
async def complete_facility_maintenance(
    facility_id: int,
    data: Optional[MaintenanceCompletion] = None,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """Record a maintenance: last = date, next = date + interval, status working"""
    facility = _get_facility(db, session, facility_id)
    complete_maintenance(facility, data.performed_on if data else None)
    db.commit()
    db.refresh(facility)
    return facility_to_response(facility)


@router.delete("/{facility_id}")
async def delete_facility(
    facility_id: int,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    facility = _get_facility(db, session, facility_id)
    db.delete(facility)
    db.commit()
    return {"message": "Facility deleted successfully"}

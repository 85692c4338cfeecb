from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session as DBSession
from typing import Optional, List
from datetime import date
import logging

from allevapp.database import get_db
from allevapp.errors import NotFoundError, ValidationError
from allevapp.models import Equipment, Barn, Report
from allevapp.schemas import EquipmentStatus, reject_null_fields
from allevapp.services.dependency import Session, get_session, require_manager
from allevapp.services.filters import apply_filters
from allevapp.services.maintenance import refresh_schedule, complete_maintenance, maintenance_status, days_until

logger = logging.getLogger(__name__)

router = APIRouter()

SEARCH_FIELDS = ("name", "model", "serial_number", "description", "farm_name", "barn_name")


class EquipmentCreate(BaseModel):
    name: str
    model: Optional[str] = None
    serial_number: Optional[str] = None
    farm_id: int
    barn_id: Optional[int] = None
    status: EquipmentStatus = "working"
    description: Optional[str] = None
    last_maintenance: Optional[date] = None
    next_maintenance_due: Optional[date] = None
    maintenance_interval_days: Optional[int] = Field(None, ge=0)


class EquipmentUpdate(BaseModel):
    name: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    farm_id: Optional[int] = None
    barn_id: Optional[int] = None
    status: Optional[EquipmentStatus] = None
    description: Optional[str] = None
    last_maintenance: Optional[date] = None
    next_maintenance_due: Optional[date] = None
    maintenance_interval_days: Optional[int] = Field(None, ge=0)


class MaintenanceCompletion(BaseModel):
    performed_on: Optional[date] = None


def equipment_to_response(e: Equipment) -> dict:
    due = e.next_maintenance_due
    return {
        "id": e.id,
        "name": e.name,
        "model": e.model,
        "serial_number": e.serial_number,
        "farm_id": e.farm_id,
        "farm_name": e.farm.name if e.farm else None,
        "barn_id": e.barn_id,
        "barn_name": e.barn.name if e.barn else None,
        "status": e.status,
        "description": e.description,
        "last_maintenance": e.last_maintenance.isoformat() if e.last_maintenance else None,
        "next_maintenance_due": due.isoformat() if due else None,
        "maintenance_interval_days": e.maintenance_interval_days,
        "maintenance_status": maintenance_status(due),
        "days_until_due": days_until(due) if due else None,
        "created_at": e.created_at.isoformat() if e.created_at else None,
    }


def _get_equipment(db: DBSession, session: Session, equipment_id: int) -> Equipment:
    equipment = db.query(Equipment).filter(Equipment.id == equipment_id).first()
    if not equipment or not session.can_access_farm(equipment.farm_id):
        raise NotFoundError("Equipment not found")
    return equipment


def _check_barn(db: DBSession, barn_id: Optional[int], farm_id: int) -> None:
    if barn_id is None:
        return
    barn = db.query(Barn).filter(Barn.id == barn_id).first()
    if not barn or barn.farm_id != farm_id:
        raise ValidationError("Barn does not belong to the selected farm")


@router.get("/")
async def get_equipment_list(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db),
    search: Optional[str] = Query(None),
    farm_id: Optional[List[str]] = Query(None),
    barn_id: Optional[List[str]] = Query(None),
    status_filter: Optional[List[str]] = Query(None, alias="status"),
    maintenance: Optional[List[str]] = Query(None, description="overdue, due_soon, ok, unscheduled")
):
    """List equipment with text search and facet filters"""
    rows = session.scope(db.query(Equipment), Equipment.farm_id).order_by(Equipment.name).all()
    return apply_filters(
        [equipment_to_response(e) for e in rows],
        search=search,
        text_fields=SEARCH_FIELDS,
        facets={
            "farm_id": farm_id,
            "barn_id": barn_id,
            "status": status_filter,
            "maintenance_status": maintenance,
        }
    )


@router.get("/{equipment_id}")
async def get_equipment(
    equipment_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    return equipment_to_response(_get_equipment(db, session, equipment_id))


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_equipment(
    equipment_data: EquipmentCreate,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """Create equipment; the next due date is derived from last maintenance and interval"""
    session.require_farm(equipment_data.farm_id)
    _check_barn(db, equipment_data.barn_id, equipment_data.farm_id)

    equipment = Equipment(**equipment_data.model_dump())
    refresh_schedule(equipment)
    db.add(equipment)
    db.commit()
    db.refresh(equipment)
    logger.info(f"Equipment {equipment.id} created on farm {equipment.farm_id}")
    return equipment_to_response(equipment)


@router.put("/{equipment_id}")
async def update_equipment(
    equipment_id: int,
    equipment_data: EquipmentUpdate,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    equipment = _get_equipment(db, session, equipment_id)
    update_data = equipment_data.model_dump(exclude_unset=True)
    reject_null_fields(update_data, ("name", "farm_id", "status"))

    farm_id = update_data.get("farm_id", equipment.farm_id)
    session.require_farm(farm_id)
    if "barn_id" in update_data or "farm_id" in update_data:
        _check_barn(db, update_data.get("barn_id", equipment.barn_id), farm_id)

    for field, value in update_data.items():
        setattr(equipment, field, value)
    if "next_maintenance_due" not in update_data:
        refresh_schedule(equipment)

    db.commit()
    db.refresh(equipment)
    return equipment_to_response(equipment)


@router.post("/{equipment_id}/complete-maintenance")
async def complete_equipment_maintenance(
    equipment_id: int,
    data: Optional[MaintenanceCompletion] = None,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """Record a maintenance: last = date, next = date + interval, status working"""
    equipment = _get_equipment(db, session, equipment_id)
    complete_maintenance(equipment, data.performed_on if data else None)
    db.commit()
    db.refresh(equipment)
    return equipment_to_response(equipment)


@router.delete("/{equipment_id}")
async def delete_equipment(
    equipment_id: int,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    equipment = _get_equipment(db, session, equipment_id)
    db.query(Report).filter(Report.equipment_id == equipment_id).update(
        {"equipment_id": None}, synchronize_session=False
    )
    db.delete(equipment)
    db.commit()
    return {"message": "Equipment deleted successfully"}

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.orm import Session as DBSession
from typing import Optional, List
import logging

from allevapp.database import get_db
from allevapp.errors import NotFoundError, ValidationError
from allevapp.models import Farm, Barn, User
from allevapp.schemas import reject_null_fields
from allevapp.services.companies import COMPANIES, is_known_company
from allevapp.services.dependency import Session, get_session, require_manager, ROLE_TECHNICIAN
from allevapp.services.geocoding import farms_map

logger = logging.getLogger(__name__)

router = APIRouter()


class FarmCreate(BaseModel):
    name: str
    address: Optional[str] = None
    company: str


class FarmUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    company: Optional[str] = None


class BarnCreate(BaseModel):
    name: str


class TechnicianAssignment(BaseModel):
    user_ids: List[int]


def farm_to_response(farm: Farm) -> dict:
    return {
        "id": farm.id,
        "name": farm.name,
        "address": farm.address,
        "company": farm.company,
        "created_by": farm.created_by,
        "barns": [{"id": b.id, "name": b.name} for b in farm.barns],
        "technicians": [{"id": u.id, "full_name": u.full_name} for u in farm.technicians],
        "equipment_count": len(farm.equipment),
        "facility_count": len(farm.facilities),
        "created_at": farm.created_at.isoformat() if farm.created_at else None,
        "updated_at": farm.updated_at.isoformat() if farm.updated_at else None,
    }


def get_visible_farm(db: DBSession, session: Session, farm_id: int) -> Farm:
    session.require_farm(farm_id)
    farm = db.query(Farm).filter(Farm.id == farm_id).first()
    if not farm:
        raise NotFoundError("Farm not found")
    return farm


def _check_company(company: str) -> None:
    if not is_known_company(company):
        raise ValidationError(f"Unknown company '{company}'. Expected one of: {', '.join(COMPANIES)}")


@router.get("/companies")
async def list_companies(session: Session = Depends(get_session)):
    """Group companies a farm can belong to"""
    return {"companies": list(COMPANIES)}


@router.get("/")
async def get_farms(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db),
    search: Optional[str] = Query(None, description="Search by name or address"),
    company: Optional[str] = Query(None)
):
    """List the farms visible to the current user"""
    query = session.scope(db.query(Farm), Farm.id)
    if company:
        query = query.filter(Farm.company == company)
    if search:
        search_term = f"%{search}%"
        query = query.filter(or_(Farm.name.ilike(search_term), Farm.address.ilike(search_term)))
    return [farm_to_response(f) for f in query.order_by(Farm.name).all()]


@router.get("/map")
async def get_farms_map(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """Geocoded farm locations with the map center"""
    farms = session.scope(db.query(Farm), Farm.id).order_by(Farm.name).all()
    return farms_map(farms)


@router.get("/{farm_id}")
async def get_farm(
    farm_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    return farm_to_response(get_visible_farm(db, session, farm_id))


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_farm(
    farm_data: FarmCreate,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    """Create a new farm"""
    _check_company(farm_data.company)
    farm = Farm(
        name=farm_data.name,
        address=farm_data.address,
        company=farm_data.company,
        created_by=session.user_id
    )
    db.add(farm)
    db.commit()
    db.refresh(farm)
    logger.info(f"Farm {farm.id} '{farm.name}' created by user {session.user_id}")
    return farm_to_response(farm)


@router.put("/{farm_id}")
async def update_farm(
    farm_id: int,
    farm_data: FarmUpdate,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    farm = get_visible_farm(db, session, farm_id)
    update_data = farm_data.model_dump(exclude_unset=True)
    reject_null_fields(update_data, ("name", "company"))
    if "company" in update_data:
        _check_company(update_data["company"])
    for field, value in update_data.items():
        setattr(farm, field, value)
    db.commit()
    db.refresh(farm)
    return farm_to_response(farm)


@router.delete("/{farm_id}")
async def delete_farm(
    farm_id: int,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    """Delete a farm together with its barns, equipment, facilities, reports and documents"""
    farm = get_visible_farm(db, session, farm_id)
    db.delete(farm)
    db.commit()
    logger.info(f"Farm {farm_id} deleted by user {session.user_id}")
    return {"message": "Farm deleted successfully"}


# =============================================================================
# Barns
# =============================================================================

@router.get("/{farm_id}/barns")
async def get_barns(
    farm_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    farm = get_visible_farm(db, session, farm_id)
    return [{"id": b.id, "name": b.name, "farm_id": b.farm_id} for b in farm.barns]


@router.post("/{farm_id}/barns", status_code=status.HTTP_201_CREATED)
async def create_barn(
    farm_id: int,
    barn_data: BarnCreate,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    farm = get_visible_farm(db, session, farm_id)
    barn = Barn(name=barn_data.name, farm_id=farm.id)
    db.add(barn)
    db.commit()
    db.refresh(barn)
    return {"id": barn.id, "name": barn.name, "farm_id": barn.farm_id}


@router.delete("/{farm_id}/barns/{barn_id}")
async def delete_barn(
    farm_id: int,
    barn_id: int,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    barn = db.query(Barn).filter(Barn.id == barn_id, Barn.farm_id == farm_id).first()
    if not barn:
        raise NotFoundError("Barn not found")
    for equipment in barn.equipment:
        equipment.barn_id = None
    db.delete(barn)
    db.commit()
    return {"message": "Barn deleted successfully"}


# =============================================================================
# Technician assignment
# =============================================================================

@router.put("/{farm_id}/technicians")
async def assign_technicians(
    farm_id: int,
    assignment: TechnicianAssignment,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    """Replace the set of technicians assigned to a farm"""
    farm = get_visible_farm(db, session, farm_id)
    users = db.query(User).filter(User.id.in_(assignment.user_ids)).all() if assignment.user_ids else []
    missing = set(assignment.user_ids) - {u.id for u in users}
    if missing:
        raise ValidationError(f"Unknown user ids: {sorted(missing)}")
    not_technicians = [u.username for u in users if u.role != ROLE_TECHNICIAN]
    if not_technicians:
        raise ValidationError(f"Only technicians can be assigned to farms: {', '.join(not_technicians)}")

    farm.technicians = users
    db.commit()
    db.refresh(farm)
    return farm_to_response(farm)

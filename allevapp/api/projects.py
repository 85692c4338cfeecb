from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.orm import Session as DBSession
from typing import Optional, List
import logging

from allevapp.database import get_db
from allevapp.errors import NotFoundError, ValidationError
from allevapp.models import Project, Farm, Quote
from allevapp.schemas import ProjectStatus, reject_null_fields
from allevapp.services.dependency import Session, get_session, require_manager
from allevapp.services.filters import apply_filters
from allevapp.services.numbering import next_project_number

logger = logging.getLogger(__name__)

router = APIRouter()

SEARCH_FIELDS = ("title", "description", "project_number", "farm_name")


class ProjectCreate(BaseModel):
    title: str
    description: Optional[str] = None
    farm_id: Optional[int] = None
    company: Optional[str] = None
    status: ProjectStatus = "open"


class ProjectUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    farm_id: Optional[int] = None
    status: Optional[ProjectStatus] = None


def quotes_value(db: DBSession, project: Project) -> dict:
    """Count and sum of the farm's quotes created since the project was opened"""
    if project.farm_id is None:
        return {"count": 0, "total_amount": 0.0}
    query = db.query(func.count(Quote.id), func.coalesce(func.sum(Quote.amount), 0)).filter(
        Quote.farm_id == project.farm_id
    )
    if project.created_at is not None:
        query = query.filter(Quote.created_at >= project.created_at)
    count, total = query.one()
    return {"count": count, "total_amount": float(total or 0)}


def project_to_response(db: DBSession, p: Project) -> dict:
    return {
        "id": p.id,
        "project_number": p.project_number,
        "sequential_number": p.sequential_number,
        "company": p.company,
        "title": p.title,
        "description": p.description,
        "farm_id": p.farm_id,
        "farm_name": p.farm.name if p.farm else None,
        "status": p.status,
        "quotes_value": quotes_value(db, p),
        "created_by": p.created_by,
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }


def _get_project(db: DBSession, session: Session, project_id: int) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project or not session.can_access_farm(project.farm_id):
        raise NotFoundError("Project not found")
    return project


def _get_farm(db: DBSession, farm_id: int) -> Farm:
    farm = db.query(Farm).filter(Farm.id == farm_id).first()
    if not farm:
        raise ValidationError("Farm not found")
    return farm


@router.get("/")
async def get_projects(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db),
    search: Optional[str] = Query(None),
    company: Optional[List[str]] = Query(None),
    status_filter: Optional[List[str]] = Query(None, alias="status"),
    farm_id: Optional[List[str]] = Query(None)
):
    """List projects, newest first"""
    rows = session.scope(db.query(Project), Project.farm_id).order_by(Project.created_at.desc(), Project.id.desc()).all()
    return apply_filters(
        [project_to_response(db, p) for p in rows],
        search=search,
        text_fields=SEARCH_FIELDS,
        facets={"company": company, "status": status_filter, "farm_id": farm_id}
    )


@router.get("/{project_id}")
async def get_project(
    project_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    return project_to_response(db, _get_project(db, session, project_id))


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    """
    Open a project. The number follows the ordering company, taken from the
    farm or given explicitly when the project has no farm.
    """
    company = project_data.company
    if project_data.farm_id is not None:
        company = _get_farm(db, project_data.farm_id).company
    if not company:
        raise ValidationError("A farm or a company is required")

    project_number, sequence = next_project_number(db, company)
    project = Project(
        title=project_data.title,
        description=project_data.description,
        farm_id=project_data.farm_id,
        company=company,
        status=project_data.status,
        project_number=project_number,
        sequential_number=sequence,
        created_by=session.user_id
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    logger.info(f"Project {project.project_number} created by user {session.user_id}")
    return project_to_response(db, project)


@router.put("/{project_id}")
async def update_project(
    project_id: int,
    project_data: ProjectUpdate,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    """Update a project; the number and company stay fixed"""
    project = _get_project(db, session, project_id)
    update_data = project_data.model_dump(exclude_unset=True)
    reject_null_fields(update_data, ("title", "status"))
    if update_data.get("farm_id") is not None:
        _get_farm(db, update_data["farm_id"])

    for field, value in update_data.items():
        setattr(project, field, value)
    db.commit()
    db.refresh(project)
    return project_to_response(db, project)


@router.delete("/{project_id}")
async def delete_project(
    project_id: int,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    project = _get_project(db, session, project_id)
    db.query(Quote).filter(Quote.project_id == project_id).update(
        {"project_id": None}, synchronize_session=False
    )
    db.delete(project)
    db.commit()
    return {"message": "Project deleted successfully"}

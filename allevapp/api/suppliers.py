from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, EmailStr
from sqlalchemy import or_
from sqlalchemy.orm import Session as DBSession
from typing import Optional, List

from allevapp.database import get_db
from allevapp.errors import NotFoundError, ConflictError
from allevapp.models import Supplier, Quote
from allevapp.schemas import reject_null_fields
from allevapp.services.dependency import Session, get_session, require_manager

router = APIRouter()


class SupplierCreate(BaseModel):
    name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class SupplierUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class SupplierResponse(BaseModel):
    id: int
    name: str
    email: Optional[str]
    phone: Optional[str]
    address: Optional[str]
    created_at: str

    class Config:
        from_attributes = True


def supplier_to_response(s: Supplier) -> SupplierResponse:
    return SupplierResponse(
        id=s.id,
        name=s.name,
        email=s.email,
        phone=s.phone,
        address=s.address,
        created_at=s.created_at.isoformat() if s.created_at else ""
    )


def _get_supplier(db: DBSession, supplier_id: int) -> Supplier:
    supplier = db.query(Supplier).filter(Supplier.id == supplier_id).first()
    if not supplier:
        raise NotFoundError("Supplier not found")
    return supplier


@router.get("/", response_model=List[SupplierResponse])
async def get_suppliers(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db),
    search: Optional[str] = Query(None, description="Search by name, email or phone")
):
    """Get all suppliers with optional search"""
    query = db.query(Supplier)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                Supplier.name.ilike(search_term),
                Supplier.email.ilike(search_term),
                Supplier.phone.ilike(search_term)
            )
        )
    return [supplier_to_response(s) for s in query.order_by(Supplier.name).all()]


@router.get("/{supplier_id}", response_model=SupplierResponse)
async def get_supplier(
    supplier_id: int,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    return supplier_to_response(_get_supplier(db, supplier_id))


@router.post("/", response_model=SupplierResponse, status_code=status.HTTP_201_CREATED)
async def create_supplier(
    supplier_data: SupplierCreate,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    """Create a new supplier"""
    supplier = Supplier(**supplier_data.model_dump())
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    return supplier_to_response(supplier)


@router.put("/{supplier_id}", response_model=SupplierResponse)
async def update_supplier(
    supplier_id: int,
    supplier_data: SupplierUpdate,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    supplier = _get_supplier(db, supplier_id)
    update_data = supplier_data.model_dump(exclude_unset=True)
    reject_null_fields(update_data, ("name",))
    for field, value in update_data.items():
        setattr(supplier, field, value)
    db.commit()
    db.refresh(supplier)
    return supplier_to_response(supplier)


@router.delete("/{supplier_id}")
async def delete_supplier(
    supplier_id: int,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    supplier = _get_supplier(db, supplier_id)
    if db.query(Quote).filter(Quote.supplier_id == supplier_id).count():
        raise ConflictError("Supplier has quotes and cannot be deleted")
    db.delete(supplier)
    db.commit()
    return {"message": "Supplier deleted successfully"}

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Literal, Dict, Any, Iterable
from datetime import datetime

from allevapp.errors import ValidationError

Role = Literal["admin", "manager", "technician"]
EquipmentStatus = Literal["working", "not_working", "regenerated", "repaired"]
FacilityType = Literal["electrical", "plumbing", "ventilation", "heating", "cooling", "lighting", "security", "other"]
FacilityStatus = Literal["working", "not_working", "maintenance_required", "under_maintenance"]
Urgency = Literal["low", "medium", "high", "critical"]
ReportStatus = Literal["open", "in_progress", "resolved", "closed"]
QuoteStatus = Literal["requested", "received", "accepted", "rejected"]
OrderStatus = Literal["pending", "confirmed", "delivered", "cancelled"]
ProjectStatus = Literal["open", "defined", "in_progress", "completed", "discarded"]
AttachmentEntity = Literal["report", "equipment", "quote"]
QuoteEntity = Literal["report", "equipment", "facility"]


class UserLogin(BaseModel):
    username: str
    password: str


class UserBase(BaseModel):
    full_name: str
    username: str
    email: Optional[EmailStr] = None
    role: Role = "technician"


class UserCreate(UserBase):
    password: Optional[str] = Field(None, min_length=6)
    active: bool = True
    farm_ids: List[int] = []
    send_credentials: bool = False


class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    active: Optional[bool] = None
    farm_ids: Optional[List[int]] = None


class User(UserBase):
    id: int
    active: bool
    farm_ids: List[int] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str
    user: User


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


class PasswordReset(BaseModel):
    new_password: Optional[str] = Field(None, min_length=6)
    send_credentials: bool = False


def reject_null_fields(update_data: Dict[str, Any], fields: Iterable[str]) -> None:
    """Partial updates may omit a required field but never clear it"""
    cleared = [f for f in fields if f in update_data and update_data[f] is None]
    if cleared:
        raise ValidationError(f"Field(s) cannot be empty: {', '.join(cleared)}")

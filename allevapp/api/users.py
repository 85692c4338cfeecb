from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session as DBSession
from typing import Optional, List
import logging

from allevapp.api.auth import user_to_response
from allevapp.database import get_db
from allevapp.errors import NotFoundError, ValidationError
from allevapp.models import User, Farm
from allevapp.schemas import UserCreate, UserUpdate, User as UserSchema, PasswordReset, reject_null_fields
from allevapp.services.auth import create_user, reset_password
from allevapp.services.dependency import Session, require_admin, require_manager
from allevapp.services.email import EmailService
from allevapp.utils.rate_limiter import limiter, RateLimits
from allevapp.utils.security import generate_password

logger = logging.getLogger(__name__)

router = APIRouter()


def _load_farms(db: DBSession, farm_ids: List[int]) -> List[Farm]:
    farms = db.query(Farm).filter(Farm.id.in_(farm_ids)).all() if farm_ids else []
    missing = set(farm_ids) - {f.id for f in farms}
    if missing:
        raise ValidationError(f"Unknown farm ids: {sorted(missing)}")
    return farms


def _get_user(db: DBSession, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


@router.get("/", response_model=List[UserSchema])
async def get_users(
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db),
    role: Optional[str] = Query(None),
    include_inactive: bool = Query(False),
    search: Optional[str] = Query(None, description="Search by name, username or email")
):
    """List users (admins and managers)"""
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if not include_inactive:
        query = query.filter(User.active == True)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                User.full_name.ilike(search_term),
                User.username.ilike(search_term),
                User.email.ilike(search_term)
            )
        )
    return [user_to_response(u) for u in query.order_by(User.full_name).all()]


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit(RateLimits.SEND_EMAIL)
async def create_new_user(
    request: Request,
    user_data: UserCreate,
    session: Session = Depends(require_admin),
    db: DBSession = Depends(get_db)
):
    """
    Create a user. When no password is given one is generated; it is
    returned once in the response and optionally mailed to the user.
    """
    if user_data.send_credentials and not user_data.email:
        raise ValidationError("User has no e-mail address to send credentials to")

    farms = _load_farms(db, user_data.farm_ids)
    password = user_data.password or generate_password()
    user = create_user(
        db,
        full_name=user_data.full_name,
        username=user_data.username,
        password=password,
        role=user_data.role,
        email=user_data.email,
        active=user_data.active
    )
    if farms:
        user.assigned_farms = farms
        db.commit()
        db.refresh(user)

    email_sent = False
    if user_data.send_credentials:
        email_sent = EmailService().send_password_email(
            to=user.email,
            user_name=user.full_name,
            username=user.username,
            password=password,
            role=user.role
        )

    return {
        "user": user_to_response(user),
        "password": password if user_data.password is None else None,
        "email_sent": email_sent,
    }


@router.get("/{user_id}", response_model=UserSchema)
async def get_user(
    user_id: int,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    return user_to_response(_get_user(db, user_id))


@router.put("/{user_id}", response_model=UserSchema)
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    session: Session = Depends(require_admin),
    db: DBSession = Depends(get_db)
):
    """Update a user"""
    user = _get_user(db, user_id)

    if user.id == session.user_id and user_data.active is False:
        raise ValidationError("You cannot deactivate your own account")

    update_data = user_data.model_dump(exclude_unset=True)
    reject_null_fields(update_data, ("full_name", "role", "active"))
    farm_ids = update_data.pop("farm_ids", None)
    for field, value in update_data.items():
        setattr(user, field, value)
    if farm_ids is not None:
        user.assigned_farms = _load_farms(db, farm_ids)

    db.commit()
    db.refresh(user)
    return user_to_response(user)


@router.post("/{user_id}/reset-password")
@limiter.limit(RateLimits.SEND_EMAIL)
async def admin_reset_password(
    request: Request,
    user_id: int,
    data: PasswordReset,
    session: Session = Depends(require_admin),
    db: DBSession = Depends(get_db)
):
    """Set a new password for a user (generated when omitted)"""
    user = _get_user(db, user_id)
    password = data.new_password or generate_password()
    reset_password(db, user, password)

    email_sent = False
    if data.send_credentials and user.email:
        email_sent = EmailService().send_password_email(
            to=user.email,
            user_name=user.full_name,
            username=user.username,
            password=password,
            role=user.role
        )
    return {"password": password if data.new_password is None else None, "email_sent": email_sent}


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    session: Session = Depends(require_admin),
    db: DBSession = Depends(get_db)
):
    """Deactivate a user; the row is kept"""
    user = _get_user(db, user_id)
    if user.id == session.user_id:
        raise ValidationError("You cannot delete your own account")
    user.active = False
    db.commit()
    return {"message": "User deactivated"}

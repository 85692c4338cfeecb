from datetime import timedelta

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session as DBSession

from allevapp.config import settings
from allevapp.database import get_db
from allevapp.schemas import UserLogin, Token, User as UserSchema, PasswordChange
from allevapp.services.auth import authenticate, change_password
from allevapp.services.dependency import Session, get_session
from allevapp.utils.rate_limiter import limiter, RateLimits
from allevapp.utils.security import create_access_token

router = APIRouter()


def user_to_response(user) -> UserSchema:
    return UserSchema(
        id=user.id,
        full_name=user.full_name,
        username=user.username,
        email=user.email,
        role=user.role,
        active=user.active,
        farm_ids=sorted(farm.id for farm in user.assigned_farms),
        created_at=user.created_at
    )


@router.post("/login", response_model=Token)
@limiter.limit(RateLimits.LOGIN)
async def login(request: Request, user_credentials: UserLogin, db: DBSession = Depends(get_db)):
    """Exchange username and password for a bearer token"""
    user = authenticate(db, user_credentials.username, user_credentials.password)
    access_token = create_access_token(
        data={"sub": user.username, "role": user.role},
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes)
    )
    return {"access_token": access_token, "token_type": "bearer", "user": user_to_response(user)}


@router.get("/me", response_model=UserSchema)
async def read_users_me(session: Session = Depends(get_session)):
    return user_to_response(session.user)


@router.post("/change-password")
@limiter.limit(RateLimits.CHANGE_PASSWORD)
async def update_password(
    request: Request,
    data: PasswordChange,
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db)
):
    """Change the password of the logged-in user"""
    change_password(db, session.user, data.current_password, data.new_password)
    return {"message": "Password updated"}

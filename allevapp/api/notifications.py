from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session as DBSession
from typing import Optional, List, Union
from datetime import date, time

from allevapp.database import get_db
from allevapp.services.calendar import create_calendar_event, DEFAULT_REMINDER_MINUTES
from allevapp.services.daily_summary import send_daily_summary
from allevapp.services.dependency import Session, get_session, require_manager
from allevapp.utils.rate_limiter import limiter, RateLimits

router = APIRouter()


class CalendarEventCreate(BaseModel):
    subject: str
    description: Optional[str] = ""
    start_date: date
    start_time: Optional[time] = None
    end_date: Optional[date] = None
    end_time: Optional[time] = None
    location: Optional[str] = None
    attendees: Optional[Union[str, List[str]]] = None
    is_all_day: bool = False
    reminder_minutes: int = Field(DEFAULT_REMINDER_MINUTES, ge=0)


@router.post("/calendar-event")
async def create_event(
    event_data: CalendarEventCreate,
    session: Session = Depends(get_session)
):
    """Create an event in the shared Outlook calendar"""
    return create_calendar_event(**event_data.model_dump())


@router.post("/daily-summary")
@limiter.limit(RateLimits.SEND_EMAIL)
async def trigger_daily_summary(
    request: Request,
    session: Session = Depends(require_manager),
    db: DBSession = Depends(get_db)
):
    """Send today's summary of urgent reports and maintenance to admins and managers"""
    return send_daily_summary(db)

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session as DBSession
from typing import Optional, List, Literal
from datetime import date, timedelta

from allevapp.config import settings
from allevapp.database import get_db
from allevapp.models import Equipment, Facility
from allevapp.services.dependency import Session, get_session
from allevapp.services.maintenance import (
    build_month_grid,
    schedule_item,
    is_overdue,
    is_due_soon,
)

router = APIRouter()

AssetType = Literal["all", "equipment", "facility"]
DueFilter = Literal["all", "due", "overdue"]


def _scheduled_assets(db: DBSession, session: Session, asset_type: str):
    """(kind, row) pairs for every visible asset with a next due date"""
    assets = []
    if asset_type in ("all", "equipment"):
        query = session.scope(db.query(Equipment), Equipment.farm_id)
        assets.extend(("equipment", e) for e in query.filter(Equipment.next_maintenance_due.isnot(None)).all())
    if asset_type in ("all", "facility"):
        query = session.scope(db.query(Facility), Facility.farm_id)
        assets.extend(("facility", f) for f in query.filter(Facility.next_maintenance_due.isnot(None)).all())
    return assets


def _sorted_items(items: List[dict]) -> List[dict]:
    return sorted(items, key=lambda i: (i["next_maintenance_due"], i["type"], i["name"]))


@router.get("/calendar")
async def get_maintenance_calendar(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db),
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    asset_type: AssetType = Query("all", alias="type"),
    due_filter: DueFilter = Query("all", alias="status")
):
    """
    Month view of scheduled maintenance.

    Returns a 6-week grid (42 days from the Sunday on or before the 1st) with
    the items due on each day. ``status=due`` keeps items due within the
    warning window, ``status=overdue`` keeps items already past due.
    """
    today = date.today()
    year = year or today.year
    month = month or today.month
    grid = build_month_grid(year, month)

    by_day = {}
    for kind, asset in _scheduled_assets(db, session, asset_type):
        due = asset.next_maintenance_due
        if due_filter == "due" and not is_due_soon(due, today):
            continue
        if due_filter == "overdue" and not is_overdue(due, today):
            continue
        by_day.setdefault(due, []).append(schedule_item(kind, asset, today))

    days = []
    for day in grid:
        items = _sorted_items(by_day.get(day, []))
        days.append({
            "date": day.isoformat(),
            "in_month": day.month == month,
            "is_today": day == today,
            "items": items,
        })

    return {
        "year": year,
        "month": month,
        "start": grid[0].isoformat(),
        "end": grid[-1].isoformat(),
        "days": days,
    }


@router.get("/upcoming")
async def get_upcoming_maintenance(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db),
    asset_type: AssetType = Query("all", alias="type"),
    days: Optional[int] = Query(None, ge=0, description="Window in days; defaults to the due-soon window")
):
    """Items due from today through the window, soonest first"""
    today = date.today()
    window = settings.maintenance_due_soon_days if days is None else days
    items = [
        schedule_item(kind, asset, today)
        for kind, asset in _scheduled_assets(db, session, asset_type)
        if is_due_soon(asset.next_maintenance_due, today, window_days=window)
    ]
    return {
        "from": today.isoformat(),
        "to": (today + timedelta(days=window)).isoformat(),
        "items": _sorted_items(items),
    }


@router.get("/overdue")
async def get_overdue_maintenance(
    session: Session = Depends(get_session),
    db: DBSession = Depends(get_db),
    asset_type: AssetType = Query("all", alias="type")
):
    """Items past their due date, most overdue first"""
    today = date.today()
    items = [
        schedule_item(kind, asset, today)
        for kind, asset in _scheduled_assets(db, session, asset_type)
        if is_overdue(asset.next_maintenance_due, today)
    ]
    return _sorted_items(items)

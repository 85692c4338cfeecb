"""
Maintenance scheduling for equipment and facilities

Provides:
- Next due date calculation (last maintenance + interval)
- Overdue / due-soon classification
- Maintenance completion
- Month grid for the maintenance calendar
"""
import logging
from datetime import date, datetime, timedelta
from typing import Optional, List, Dict, Any, Union

from allevapp.config import settings
from allevapp.errors import ValidationError

logger = logging.getLogger(__name__)

STATUS_OVERDUE = "overdue"
STATUS_DUE_SOON = "due_soon"
STATUS_OK = "ok"
STATUS_UNSCHEDULED = "unscheduled"


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


# =============================================================================
# Due date arithmetic
# =============================================================================

def next_due(last_maintenance: Union[date, datetime], interval_days: int) -> date:
    """
    Next maintenance date: ``last_maintenance + interval_days`` calendar days.

    Works on dates, so the result never shifts with timezones or DST.
    """
    if interval_days is None or interval_days < 0:
        raise ValidationError("Maintenance interval must be zero or more days")
    return _as_date(last_maintenance) + timedelta(days=interval_days)


def days_until(due: Union[date, datetime], today: Optional[date] = None) -> int:
    today = today or date.today()
    return (_as_date(due) - today).days


def is_overdue(due: Optional[Union[date, datetime]], today: Optional[date] = None) -> bool:
    if due is None:
        return False
    return days_until(due, today) < 0


def is_due_soon(
    due: Optional[Union[date, datetime]],
    today: Optional[date] = None,
    window_days: Optional[int] = None
) -> bool:
    """True when the due date falls between today and ``window_days`` from now, inclusive"""
    if due is None:
        return False
    if window_days is None:
        window_days = settings.maintenance_due_soon_days
    return 0 <= days_until(due, today) <= window_days


def maintenance_status(due: Optional[Union[date, datetime]], today: Optional[date] = None) -> str:
    if due is None:
        return STATUS_UNSCHEDULED
    if is_overdue(due, today):
        return STATUS_OVERDUE
    if is_due_soon(due, today):
        return STATUS_DUE_SOON
    return STATUS_OK


# =============================================================================
# Asset updates
# =============================================================================

def refresh_schedule(asset) -> None:
    """Recompute ``next_maintenance_due`` from the last maintenance and interval, when both are known"""
    if asset.last_maintenance and asset.maintenance_interval_days is not None:
        asset.next_maintenance_due = next_due(asset.last_maintenance, asset.maintenance_interval_days)


def complete_maintenance(asset, performed_on: Optional[date] = None) -> None:
    """
    Record a completed maintenance on an equipment or facility row.

    Args:
        asset: Equipment or Facility model instance
        performed_on: Date the maintenance was carried out (defaults to today)
    """
    performed_on = performed_on or date.today()
    asset.last_maintenance = performed_on
    if asset.maintenance_interval_days is not None:
        asset.next_maintenance_due = next_due(performed_on, asset.maintenance_interval_days)
    asset.status = "working"
    logger.info(f"Maintenance completed on {asset.__tablename__} {asset.id}, next due {asset.next_maintenance_due}")


# =============================================================================
# Calendar
# =============================================================================

def build_month_grid(year: int, month: int) -> List[date]:
    """42 consecutive days starting from the Sunday on or before the 1st of the month"""
    if not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12")
    first = date(year, month, 1)
    # weekday(): Monday=0 ... Sunday=6
    start = first - timedelta(days=(first.weekday() + 1) % 7)
    return [start + timedelta(days=i) for i in range(42)]


def schedule_item(kind: str, asset, today: Optional[date] = None) -> Dict[str, Any]:
    """Calendar/list entry for an equipment or facility row"""
    due = asset.next_maintenance_due
    return {
        "type": kind,
        "id": asset.id,
        "name": asset.name,
        "farm_id": asset.farm_id,
        "farm_name": asset.farm.name if asset.farm else None,
        "status": asset.status,
        "last_maintenance": asset.last_maintenance.isoformat() if asset.last_maintenance else None,
        "next_maintenance_due": due.isoformat() if due else None,
        "maintenance_interval_days": asset.maintenance_interval_days,
        "maintenance_status": maintenance_status(due, today),
        "days_until_due": days_until(due, today) if due else None,
    }

import json
from datetime import date
from typing import Optional, List

from allevapp.config import settings


def is_expired(expiry_date: Optional[date], today: Optional[date] = None) -> bool:
    if expiry_date is None:
        return False
    return expiry_date < (today or date.today())


def is_expiring_soon(expiry_date: Optional[date], today: Optional[date] = None) -> bool:
    """Not yet expired and expiring within the warning window"""
    if expiry_date is None:
        return False
    days = (expiry_date - (today or date.today())).days
    return 0 <= days <= settings.document_expiry_warning_days


def expiry_status(expiry_date: Optional[date], today: Optional[date] = None) -> Optional[str]:
    if expiry_date is None:
        return None
    if is_expired(expiry_date, today):
        return "expired"
    if is_expiring_soon(expiry_date, today):
        return "expiring"
    return "valid"


def parse_tags(raw) -> List[str]:
    """Tags arrive as a list or a comma separated string; stored as a JSON list"""
    if not raw:
        return []
    if isinstance(raw, str):
        try:
            loaded = json.loads(raw)
            if isinstance(loaded, list):
                raw = loaded
            else:
                raw = raw.split(",")
        except ValueError:
            raw = raw.split(",")
    tags = []
    for tag in raw:
        tag = str(tag).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def dump_tags(tags) -> Optional[str]:
    tags = parse_tags(tags)
    return json.dumps(tags) if tags else None

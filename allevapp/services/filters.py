"""
Search and facet filtering for list endpoints.

A record matches when its text fields contain the search term and, for every
facet group with a selection, the record's value is one of the selected
values. Groups are ANDed together, values inside a group are ORed, and an
empty group matches everything.
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence


def _normalize(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def text_match(record: Mapping[str, Any], search: Optional[str], fields: Sequence[str]) -> bool:
    term = (search or "").strip().lower()
    if not term:
        return True
    for field in fields:
        value = record.get(field)
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            if any(term in _normalize(v).lower() for v in value):
                return True
        elif term in _normalize(value).lower():
            return True
    return False


def facet_match(record: Mapping[str, Any], facets: Optional[Mapping[str, Optional[Iterable[Any]]]]) -> bool:
    for field, selected in (facets or {}).items():
        wanted = {_normalize(v) for v in (selected or [])}
        if not wanted:
            continue
        if _normalize(record.get(field)) not in wanted:
            return False
    return True


def matches(
    record: Mapping[str, Any],
    search: Optional[str] = None,
    text_fields: Sequence[str] = (),
    facets: Optional[Mapping[str, Optional[Iterable[Any]]]] = None
) -> bool:
    return text_match(record, search, text_fields) and facet_match(record, facets)


def apply_filters(
    records: Iterable[Dict[str, Any]],
    search: Optional[str] = None,
    text_fields: Sequence[str] = (),
    facets: Optional[Mapping[str, Optional[Iterable[Any]]]] = None
) -> List[Dict[str, Any]]:
    """Return matching records, keeping their order"""
    return [r for r in records if matches(r, search, text_fields, facets)]

"""
Document numbering for projects and order confirmations.

Sequences are kept per company and year:
- Projects: ``{PREFIX}-{YYYY}-{NNNN}``, e.g. ``ZG-2026-0001``
- Orders:   ``ORD-{PREFIX}-{YYYY}-{NNNN}``, e.g. ``ORD-ZR-2026-0012``
"""
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from allevapp.models import Project, OrderConfirmation
from allevapp.services.companies import company_prefix


def format_project_number(company: str, year: int, sequence: int) -> str:
    return f"{company_prefix(company)}-{year}-{sequence:04d}"


def format_order_number(company: str, year: int, sequence: int) -> str:
    return f"ORD-{company_prefix(company)}-{year}-{sequence:04d}"


def _next_sequence(db: Session, model, number_column, company: str, pattern: str) -> int:
    last = db.query(model).filter(
        model.company == company,
        number_column.like(pattern)
    ).order_by(model.sequential_number.desc()).first()

    if last:
        # Extract the sequence number and increment
        try:
            return int(getattr(last, number_column.key).split('-')[-1]) + 1
        except (ValueError, IndexError):
            return (last.sequential_number or 0) + 1
    return 1


def next_project_number(db: Session, company: str, year: Optional[int] = None) -> Tuple[str, int]:
    """Return (project_number, sequential_number) for the next project of ``company``"""
    year = year or datetime.now().year
    pattern = f"{company_prefix(company)}-{year}-%"
    sequence = _next_sequence(db, Project, Project.project_number, company, pattern)
    return format_project_number(company, year, sequence), sequence


def next_order_number(db: Session, company: str, year: Optional[int] = None) -> Tuple[str, int]:
    """Return (order_number, sequential_number) for the next order of ``company``"""
    year = year or datetime.now().year
    pattern = f"ORD-{company_prefix(company)}-{year}-%"
    sequence = _next_sequence(db, OrderConfirmation, OrderConfirmation.order_number, company, pattern)
    return format_order_number(company, year, sequence), sequence

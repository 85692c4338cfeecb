from datetime import date

from allevapp.models import Project, OrderConfirmation
from allevapp.services.companies import company_prefix, get_template, SHARED_FOOTER
from allevapp.services.numbering import (
    format_project_number,
    format_order_number,
    next_project_number,
    next_order_number,
)


def test_company_prefixes():
    assert company_prefix("Zoogamma Spa") == "ZG"
    assert company_prefix("So. Agr. Zooagri Srl") == "ZR"
    assert company_prefix("Soc. Agr. Zooallevamenti Srl") == "ZL"
    assert company_prefix("Azienda Sconosciuta") == "PR"
    assert company_prefix(None) == "PR"


def test_unknown_company_gets_neutral_template():
    template = get_template("Azienda Sconosciuta")
    assert template["letterhead"] == "AZIENDA SCONOSCIUTA"
    assert template["footer"] == SHARED_FOOTER


def test_number_formats():
    assert format_project_number("Zoogamma Spa", 2026, 7) == "ZG-2026-0007"
    assert format_order_number("So. Agr. Zooagri Srl", 2026, 12) == "ORD-ZR-2026-0012"


def test_first_number_of_the_year_starts_at_one(db):
    assert next_project_number(db, "Zoogamma Spa", 2026) == ("ZG-2026-0001", 1)
    assert next_order_number(db, "Zoogamma Spa", 2026) == ("ORD-ZG-2026-0001", 1)


def test_sequence_is_per_company_and_year(db):
    db.add_all([
        Project(title="Stalla", project_number="ZG-2026-0001", company="Zoogamma Spa", sequential_number=1),
        Project(title="Fienile", project_number="ZG-2026-0002", company="Zoogamma Spa", sequential_number=2),
        Project(title="Silos", project_number="ZR-2026-0001", company="So. Agr. Zooagri Srl", sequential_number=1),
        Project(title="Vecchio", project_number="ZG-2025-0009", company="Zoogamma Spa", sequential_number=9),
    ])
    db.commit()

    assert next_project_number(db, "Zoogamma Spa", 2026) == ("ZG-2026-0003", 3)
    assert next_project_number(db, "So. Agr. Zooagri Srl", 2026) == ("ZR-2026-0002", 2)
    assert next_project_number(db, "Zoogamma Spa", 2027) == ("ZG-2027-0001", 1)


def test_order_sequence_continues_from_last_order(db):
    db.add(OrderConfirmation(
        order_number="ORD-ZL-2026-0041",
        company="Soc. Agr. Zooallevamenti Srl",
        sequential_number=41,
        order_date=date(2026, 5, 4),
        status="pending"
    ))
    db.commit()

    assert next_order_number(db, "Soc. Agr. Zooallevamenti Srl", 2026) == ("ORD-ZL-2026-0042", 42)

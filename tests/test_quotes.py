from datetime import date, timedelta
from unittest.mock import Mock, patch

import pytest

from allevapp.errors import ValidationError, InvalidTransitionError
from allevapp.models import Quote, Report, Supplier, Equipment, OrderConfirmation
from allevapp.services.email import EmailService
from allevapp.services.quotes import request_quotes, accept_quote, is_quote_overdue


@pytest.fixture
def report(db, farm):
    report = Report(title="Pompa vuoto rumorosa", description="Rumore anomalo", farm_id=farm.id, urgency="high")
    db.add(report)
    db.commit()
    db.refresh(report)
    return report


@pytest.fixture
def email_service():
    service = Mock(spec=EmailService)
    service.support_email = "noreply@allevapp.it"
    service.send_quote_request.return_value = True
    return service


def _quote(db, farm, supplier, title="Pompa", status="requested", amount=None):
    quote = Quote(title=title, supplier_id=supplier.id, farm_id=farm.id, status=status, amount=amount)
    db.add(quote)
    db.commit()
    db.refresh(quote)
    return quote


def test_is_quote_overdue():
    today = date(2026, 4, 10)
    assert is_quote_overdue(Quote(status="requested", due_date=date(2026, 4, 9)), today)
    assert not is_quote_overdue(Quote(status="requested", due_date=today), today)
    assert not is_quote_overdue(Quote(status="received", due_date=date(2026, 4, 1)), today)
    assert not is_quote_overdue(Quote(status="requested", due_date=None), today)


def test_request_creates_one_quote_per_supplier(db, report, supplier, manager, email_service):
    second = Supplier(name="Idraulica Po", email="preventivi@idraulicapo.it")
    db.add(second)
    db.commit()

    result = request_quotes(
        db, "report", report.id, [supplier.id, second.id],
        created_by=manager.id, email_service=email_service
    )

    assert result["successful"] == 2
    assert result["failed"] == 0
    quotes = db.query(Quote).order_by(Quote.id).all()
    assert [q.supplier_id for q in quotes] == [supplier.id, second.id]
    assert all(q.report_id == report.id and q.farm_id == report.farm_id for q in quotes)
    assert quotes[0].title == "Richiesta Preventivo - Pompa vuoto rumorosa"
    assert email_service.send_quote_request.call_count == 2


def test_request_reports_each_supplier_separately(db, report, supplier, manager, email_service):
    no_email = Supplier(name="Fabbro Locale")
    db.add(no_email)
    db.commit()
    email_service.send_quote_request.return_value = False

    result = request_quotes(
        db, "report", report.id, [supplier.id, no_email.id, 999],
        created_by=manager.id, email_service=email_service
    )

    by_supplier = {r["supplier_id"]: r for r in result["results"]}
    assert by_supplier[supplier.id]["error"] == "E-mail could not be sent"
    assert by_supplier[no_email.id]["error"] == "Supplier has no e-mail address"
    assert by_supplier[999]["error"] == "Supplier not found"
    assert result["successful"] == 0
    assert result["failed"] == 3
    assert db.query(Quote).count() == 2


def test_request_for_equipment_resolves_farm(db, farm, supplier, manager, email_service):
    equipment = Equipment(name="Carro miscelatore", farm_id=farm.id)
    db.add(equipment)
    db.commit()

    request_quotes(db, "equipment", equipment.id, [supplier.id], created_by=manager.id, email_service=email_service)

    quote = db.query(Quote).one()
    assert quote.farm_id == farm.id
    assert quote.report_id is None
    kwargs = email_service.send_quote_request.call_args.kwargs
    assert kwargs["farm_name"] == farm.name


def test_request_requires_suppliers(db, report, manager, email_service):
    with pytest.raises(ValidationError):
        request_quotes(db, "report", report.id, [], created_by=manager.id, email_service=email_service)


def test_accept_creates_order_and_rejects_siblings(db, farm, other_farm, supplier, manager):
    chosen = _quote(db, farm, supplier, amount=1500.0)
    sibling = _quote(db, farm, supplier)
    other_title = _quote(db, farm, supplier, title="Altro lavoro")
    other_farm_quote = _quote(db, other_farm, supplier)

    order = accept_quote(db, chosen, created_by=manager.id, order_date=date(2026, 3, 1))

    assert order.order_number == f"ORD-ZG-{date.today().year}-0001"
    assert order.total_amount == 1500.0
    assert order.status == "pending"
    assert order.company == farm.company
    for quote in (chosen, sibling, other_title, other_farm_quote):
        db.refresh(quote)
    assert chosen.status == "accepted"
    assert sibling.status == "rejected"
    assert other_title.status == "requested"
    assert other_farm_quote.status == "requested"


def test_accept_requires_amount(db, farm, supplier, manager):
    quote = _quote(db, farm, supplier)
    with pytest.raises(ValidationError):
        accept_quote(db, quote, created_by=manager.id)


def test_accept_only_open_quotes(db, farm, supplier, manager):
    quote = _quote(db, farm, supplier, status="rejected", amount=10.0)
    with pytest.raises(InvalidTransitionError):
        accept_quote(db, quote, created_by=manager.id)


def test_request_endpoint(client, db, report, supplier, manager_headers):
    with patch("allevapp.services.quotes.EmailService") as service_cls:
        service_cls.return_value.send_quote_request.return_value = True
        service_cls.return_value.support_email = "noreply@allevapp.it"
        response = client.post(
            "/api/quotes/request",
            json={"entity_type": "report", "entity_id": report.id, "supplier_ids": [supplier.id]},
            headers=manager_headers
        )

    assert response.status_code == 200
    assert response.json()["successful"] == 1

    listed = client.get("/api/reports/", headers=manager_headers).json()
    assert listed[0]["active_quotes_count"] == 1


def test_accept_endpoint_returns_order(client, db, farm, supplier, manager_headers):
    quote = _quote(db, farm, supplier, amount=820.0)

    response = client.post(f"/api/quotes/{quote.id}/accept", json={"delivery_date": "2026-05-20"}, headers=manager_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["quote"]["status"] == "accepted"
    assert body["order"]["order_number"].startswith("ORD-ZG-")
    assert db.query(OrderConfirmation).count() == 1


def test_technician_cannot_accept(client, db, farm, supplier, technician, technician_headers):
    technician.assigned_farms.append(farm)
    db.commit()
    quote = _quote(db, farm, supplier, amount=100.0)

    response = client.post(f"/api/quotes/{quote.id}/accept", headers=technician_headers)
    assert response.status_code == 403


def test_accepted_quote_cannot_be_rejected(client, db, farm, supplier, manager_headers):
    quote = _quote(db, farm, supplier, status="accepted", amount=100.0)
    response = client.post(f"/api/quotes/{quote.id}/reject", headers=manager_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_transition"


def test_list_filters_overdue(client, db, farm, supplier, manager_headers):
    late = _quote(db, farm, supplier, title="In ritardo")
    late.due_date = date.today() - timedelta(days=2)
    _quote(db, farm, supplier, title="In tempo")
    db.commit()

    response = client.get("/api/quotes/", params={"overdue_only": True}, headers=manager_headers)
    assert [q["title"] for q in response.json()] == ["In ritardo"]

    stats = client.get("/api/quotes/stats", headers=manager_headers).json()
    assert stats["requested"] == 2
    assert stats["overdue"] == 1

from datetime import date

import pytest

from allevapp.errors import InvalidTransitionError, ValidationError
from allevapp.models import OrderConfirmation, Quote
from allevapp.services.orders import change_order_status, can_transition, group_by_company


@pytest.fixture
def order(db, farm, supplier):
    quote = Quote(title="Rifacimento  tetto", supplier_id=supplier.id, farm_id=farm.id, status="accepted", amount=5000.0)
    db.add(quote)
    db.commit()
    order = OrderConfirmation(
        quote_id=quote.id,
        order_number="ORD-ZG-2026-0001",
        company=farm.company,
        sequential_number=1,
        farm_id=farm.id,
        supplier_id=supplier.id,
        total_amount=5000.0,
        order_date=date(2026, 2, 3),
        status="pending"
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


@pytest.mark.parametrize("current,new", [
    ("pending", "confirmed"),
    ("pending", "cancelled"),
    ("confirmed", "delivered"),
    ("confirmed", "cancelled"),
])
def test_allowed_transitions(current, new):
    assert can_transition(current, new)


@pytest.mark.parametrize("current,new", [
    ("pending", "delivered"),
    ("delivered", "cancelled"),
    ("cancelled", "pending"),
    ("confirmed", "pending"),
])
def test_rejected_transitions(current, new):
    order = OrderConfirmation(order_number="ORD-PR-2026-0001", status=current)
    with pytest.raises(InvalidTransitionError):
        change_order_status(order, new)
    assert order.status == current


def test_unknown_status_is_a_validation_error():
    with pytest.raises(ValidationError):
        change_order_status(OrderConfirmation(order_number="X", status="pending"), "shipped")


def test_group_by_company_totals():
    groups = group_by_company([
        {"company": "Zoogamma Spa", "total_amount": 100.0},
        {"company": "So. Agr. Zooagri Srl", "total_amount": 50.0},
        {"company": "Zoogamma Spa", "total_amount": None},
        {"company": "Zoogamma Spa", "total_amount": 25.5},
    ])
    assert [(g["company"], g["count"], g["total_amount"]) for g in groups] == [
        ("So. Agr. Zooagri Srl", 1, 50.0),
        ("Zoogamma Spa", 3, 125.5),
    ]


def test_status_endpoint_walks_the_lifecycle(client, order, manager_headers):
    url = f"/api/orders/{order.id}/status"
    assert client.put(url, json={"status": "confirmed"}, headers=manager_headers).json()["status"] == "confirmed"
    assert client.put(url, json={"status": "delivered"}, headers=manager_headers).json()["status"] == "delivered"

    response = client.put(url, json={"status": "cancelled"}, headers=manager_headers)
    assert response.status_code == 409


def test_list_search_and_company_facet(client, order, manager_headers):
    assert len(client.get("/api/orders/", params={"search": "tetto"}, headers=manager_headers).json()) == 1
    assert client.get("/api/orders/", params={"company": "So. Agr. Zooagri Srl"}, headers=manager_headers).json() == []

    groups = client.get("/api/orders/by-company", headers=manager_headers).json()
    assert groups[0]["company"] == "Zoogamma Spa"
    assert groups[0]["total_amount"] == 5000.0


def test_document_download(client, order, manager_headers):
    response = client.get(f"/api/orders/{order.id}/document", headers=manager_headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/msword")
    assert 'filename="Conferma_Ordine_ORD-ZG-2026-0001_Rifacimento_tetto.doc"' in response.headers["content-disposition"]
    assert "ORD-ZG-2026-0001" in response.text


def test_pdf_download(client, order, manager_headers):
    response = client.get(f"/api/orders/{order.id}/pdf", headers=manager_headers)
    assert response.status_code == 200
    assert response.content.startswith(b"%PDF")


def test_technician_cannot_see_orders_of_other_farms(client, db, order, technician, other_farm, technician_headers):
    technician.assigned_farms.append(other_farm)
    db.commit()
    assert client.get(f"/api/orders/{order.id}", headers=technician_headers).status_code == 404


def test_downloads_with_non_latin_titles(client, db, farm, supplier, manager_headers):
    quote = Quote(title="Ricambio pompa – 2€", supplier_id=supplier.id, farm_id=farm.id, status="accepted", amount=2.0)
    db.add(quote)
    db.commit()
    order = OrderConfirmation(
        quote_id=quote.id, order_number="ORD-ZG-2026-0002", company=farm.company, sequential_number=2,
        farm_id=farm.id, supplier_id=supplier.id, total_amount=2.0, order_date=date(2026, 2, 3), status="pending"
    )
    db.add(order)
    db.commit()

    document = client.get(f"/api/orders/{order.id}/document", headers=manager_headers)
    assert document.status_code == 200
    disposition = document.headers["content-disposition"]
    assert 'filename="Conferma_Ordine_ORD-ZG-2026-0002_Ricambio_pompa__2.doc"' in disposition
    assert "filename*=UTF-8''Conferma_Ordine_ORD-ZG-2026-0002_Ricambio_pompa_%E2%80%93_2%E2%82%AC.doc" in disposition

    pdf = client.get(f"/api/orders/{order.id}/pdf", headers=manager_headers)
    assert pdf.status_code == 200
    assert "filename*=UTF-8''" in pdf.headers["content-disposition"]

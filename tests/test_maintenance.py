from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from allevapp.errors import ValidationError
from allevapp.models import Equipment, Facility
from allevapp.services.maintenance import (
    next_due,
    is_overdue,
    is_due_soon,
    maintenance_status,
    complete_maintenance,
    refresh_schedule,
    build_month_grid,
)

TODAY = date(2026, 3, 10)


def test_next_due_adds_interval_days():
    assert next_due(date(2026, 1, 31), 30) == date(2026, 3, 2)
    assert next_due(date(2024, 2, 28), 1) == date(2024, 2, 29)
    assert next_due(date(2026, 5, 1), 0) == date(2026, 5, 1)


def test_next_due_rejects_negative_interval():
    with pytest.raises(ValidationError):
        next_due(date(2026, 1, 1), -1)


def test_due_today_is_due_soon_not_overdue():
    assert not is_overdue(TODAY, TODAY)
    assert is_due_soon(TODAY, TODAY)
    assert maintenance_status(TODAY, TODAY) == "due_soon"


def test_due_soon_window_edges():
    assert is_due_soon(TODAY + timedelta(days=7), TODAY)
    assert not is_due_soon(TODAY + timedelta(days=8), TODAY)
    assert not is_due_soon(TODAY - timedelta(days=1), TODAY)
    assert is_due_soon(TODAY + timedelta(days=10), TODAY, window_days=14)


def test_maintenance_status_values():
    assert maintenance_status(None, TODAY) == "unscheduled"
    assert maintenance_status(TODAY - timedelta(days=1), TODAY) == "overdue"
    assert maintenance_status(TODAY + timedelta(days=30), TODAY) == "ok"


def test_complete_maintenance_sets_next_due_and_status():
    equipment = Equipment(id=1, name="Mungitrice", farm_id=1, status="not_working", maintenance_interval_days=90)
    complete_maintenance(equipment, date(2026, 1, 15))

    assert equipment.last_maintenance == date(2026, 1, 15)
    assert equipment.next_maintenance_due == date(2026, 4, 15)
    assert equipment.status == "working"


def test_complete_maintenance_without_interval_keeps_next_due():
    facility = Facility(id=2, name="Quadro", type="electrical", farm_id=1,
                        maintenance_interval_days=None, next_maintenance_due=date(2026, 6, 1))
    complete_maintenance(facility, date(2026, 2, 1))

    assert facility.last_maintenance == date(2026, 2, 1)
    assert facility.next_maintenance_due == date(2026, 6, 1)


def test_refresh_schedule_needs_both_fields():
    asset = SimpleNamespace(last_maintenance=None, maintenance_interval_days=30, next_maintenance_due=None)
    refresh_schedule(asset)
    assert asset.next_maintenance_due is None

    asset.last_maintenance = date(2026, 1, 1)
    refresh_schedule(asset)
    assert asset.next_maintenance_due == date(2026, 1, 31)


def test_month_grid_starts_on_sunday_and_has_42_days():
    grid = build_month_grid(2026, 3)  # 1 March 2026 is a Sunday

    assert len(grid) == 42
    assert grid[0] == date(2026, 3, 1)
    assert all(b - a == timedelta(days=1) for a, b in zip(grid, grid[1:]))


def test_month_grid_starts_before_first_of_month():
    grid = build_month_grid(2026, 10)  # 1 October 2026 is a Thursday

    assert grid[0] == date(2026, 9, 27)
    assert grid[0].weekday() == 6
    assert date(2026, 10, 31) in grid


def test_month_grid_rejects_invalid_month():
    with pytest.raises(ValidationError):
        build_month_grid(2026, 13)


def test_calendar_endpoint_places_items_on_due_day(client, db, farm, manager_headers):
    due = date.today() + timedelta(days=3)
    db.add(Equipment(name="Trattore", farm_id=farm.id, next_maintenance_due=due))
    db.add(Facility(name="Ventilatori", type="ventilation", farm_id=farm.id,
                    next_maintenance_due=date.today() - timedelta(days=2)))
    db.commit()

    response = client.get(
        "/api/maintenance/calendar",
        params={"year": due.year, "month": due.month, "type": "equipment"},
        headers=manager_headers
    )
    assert response.status_code == 200
    body = response.json()
    assert len(body["days"]) == 42

    day = next(d for d in body["days"] if d["date"] == due.isoformat())
    assert [i["name"] for i in day["items"]] == ["Trattore"]
    assert all(i["type"] == "equipment" for d in body["days"] for i in d["items"])


def test_upcoming_and_overdue_endpoints(client, db, farm, manager_headers):
    today = date.today()
    db.add_all([
        Equipment(name="Pompa", farm_id=farm.id, next_maintenance_due=today + timedelta(days=5)),
        Equipment(name="Nastro", farm_id=farm.id, next_maintenance_due=today),
        Equipment(name="Carro", farm_id=farm.id, next_maintenance_due=today + timedelta(days=20)),
        Facility(name="Pozzo", type="plumbing", farm_id=farm.id, next_maintenance_due=today - timedelta(days=1)),
    ])
    db.commit()

    upcoming = client.get("/api/maintenance/upcoming", headers=manager_headers).json()
    assert [i["name"] for i in upcoming["items"]] == ["Nastro", "Pompa"]

    overdue = client.get("/api/maintenance/overdue", headers=manager_headers).json()
    assert [i["name"] for i in overdue] == ["Pozzo"]
    assert overdue[0]["maintenance_status"] == "overdue"


def test_complete_maintenance_endpoint(client, db, farm, technician, technician_headers):
    technician.assigned_farms.append(farm)
    equipment = Equipment(name="Mungitrice", farm_id=farm.id, status="not_working", maintenance_interval_days=30)
    db.add(equipment)
    db.commit()

    response = client.post(
        f"/api/equipment/{equipment.id}/complete-maintenance",
        json={"performed_on": "2026-01-10"},
        headers=technician_headers
    )
    assert response.status_code == 200
    body = response.json()
    assert body["last_maintenance"] == "2026-01-10"
    assert body["next_maintenance_due"] == "2026-02-09"
    assert body["status"] == "working"

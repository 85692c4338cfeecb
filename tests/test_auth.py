import pytest

from allevapp.errors import AuthenticationError, ConflictError, PermissionDeniedError, NotFoundError
from allevapp.models import Report
from allevapp.services.auth import authenticate, create_user
from allevapp.services.dependency import Session

PASSWORD = "secret123"


def test_authenticate_returns_user_ignoring_username_case(db, manager):
    user = authenticate(db, "MANAGER", PASSWORD)
    assert user.id == manager.id


def test_authenticate_unknown_user(db, manager):
    with pytest.raises(AuthenticationError) as exc_info:
        authenticate(db, "nobody", PASSWORD)
    assert exc_info.value.reason == AuthenticationError.USER_NOT_FOUND


def test_authenticate_wrong_password(db, manager):
    with pytest.raises(AuthenticationError) as exc_info:
        authenticate(db, "manager", "not-the-password")
    assert exc_info.value.reason == AuthenticationError.WRONG_PASSWORD


def test_inactive_user_is_not_found(db):
    create_user(db, full_name="Ex Dipendente", username="ex", password=PASSWORD, active=False)
    with pytest.raises(AuthenticationError) as exc_info:
        authenticate(db, "ex", PASSWORD)
    assert exc_info.value.reason == AuthenticationError.USER_NOT_FOUND


def test_usernames_are_unique_ignoring_case(db, manager):
    with pytest.raises(ConflictError):
        create_user(db, full_name="Altro", username="Manager", password=PASSWORD)


def test_session_accessors_for_roles(db, admin, manager, technician, farm, other_farm):
    technician.assigned_farms.append(farm)
    db.commit()

    admin_session = Session(admin)
    assert admin_session.is_admin and admin_session.can_manage
    assert admin_session.farm_ids is None
    assert admin_session.can_access_farm(other_farm.id)

    manager_session = Session(manager)
    assert manager_session.is_manager and manager_session.can_manage
    with pytest.raises(PermissionDeniedError):
        manager_session.require_admin()

    tech_session = Session(technician)
    assert tech_session.is_technician and not tech_session.can_manage
    assert tech_session.farm_ids == {farm.id}
    assert tech_session.can_access_farm(farm.id)
    assert not tech_session.can_access_farm(other_farm.id)
    with pytest.raises(PermissionDeniedError):
        tech_session.require_manager()
    with pytest.raises(NotFoundError):
        tech_session.require_farm(other_farm.id)


def test_session_scope_filters_queries(db, technician, farm, other_farm):
    technician.assigned_farms.append(farm)
    db.add_all([
        Report(title="Visibile", farm_id=farm.id),
        Report(title="Nascosto", farm_id=other_farm.id),
    ])
    db.commit()

    rows = Session(technician).scope(db.query(Report), Report.farm_id).all()
    assert [r.title for r in rows] == ["Visibile"]


def test_login_returns_token_and_user(client, manager):
    response = client.post("/api/auth/login", json={"username": "Manager", "password": PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["username"] == "manager"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["role"] == "manager"


def test_login_failure_reports_reason(client, manager):
    response = client.post("/api/auth/login", json={"username": "manager", "password": "wrong"})
    assert response.status_code == 401
    assert response.json()["reason"] == "wrong_password"
    assert response.headers["www-authenticate"] == "Bearer"


def test_requests_without_token_are_rejected(client):
    response = client.get("/api/farms/")
    assert response.status_code == 401
    assert response.json()["reason"] == "invalid_token"


def test_change_password(client, manager, manager_headers):
    response = client.post(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "nuova-password"},
        headers=manager_headers
    )
    assert response.status_code == 200

    login = client.post("/api/auth/login", json={"username": "manager", "password": "nuova-password"})
    assert login.status_code == 200

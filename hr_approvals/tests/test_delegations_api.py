"""
Tests for the /delegations endpoints
"""
from datetime import timedelta

import pytest

from hr_approvals.models.employee import Role
from hr_approvals.tests.conftest import BASE_TIME, auth_headers


@pytest.fixture
def manager(make_employee):
    return make_employee("Manager", Role.MANAGER)


@pytest.fixture
def deputy(make_employee):
    return make_employee("Deputy", Role.MANAGER)


def _window(start_hours=-1, end_hours=24):
    return {
        "valid_from": (BASE_TIME + timedelta(hours=start_hours)).isoformat(),
        "valid_to": (BASE_TIME + timedelta(hours=end_hours)).isoformat(),
    }


def _create(client, user, delegate, **extra):
    body = {"delegate_id": delegate.id, **_window(), **extra}
    return client.post("/api/v1/delegations", json=body, headers=auth_headers(user))


def test_create_delegation(client, manager, deputy):
    response = _create(client, manager, deputy, scope_rank=0, request_type="leave", reason="Vacation")
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["delegator_id"] == manager.id
    assert data["delegate_id"] == deputy.id
    assert data["created_by"] == manager.id
    assert data["current_status"] == "active"
    assert data["request_type"] == "leave"
    assert data["valid_to"].endswith("Z")


def test_create_for_someone_else_needs_manage_all(client, manager, deputy, make_employee, hr_user):
    third = make_employee("Third", Role.MANAGER)
    denied = _create(client, third, deputy, delegator_id=manager.id)
    assert denied.status_code == 403

    allowed = _create(client, hr_user, deputy, delegator_id=manager.id)
    assert allowed.status_code == 201
    assert allowed.json()["delegator_id"] == manager.id
    assert allowed.json()["created_by"] == hr_user.id


def test_self_delegation_is_400(client, manager):
    response = _create(client, manager, manager)
    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"


def test_listings(client, manager, deputy, hr_user):
    created = _create(client, manager, deputy).json()

    mine = client.get("/api/v1/delegations/my", headers=auth_headers(manager)).json()
    assert [d["id"] for d in mine] == [created["id"]]

    received = client.get("/api/v1/delegations/received", headers=auth_headers(deputy)).json()
    assert [d["id"] for d in received] == [created["id"]]

    assert client.get("/api/v1/delegations", headers=auth_headers(manager)).status_code == 403
    everything = client.get("/api/v1/delegations", headers=auth_headers(hr_user))
    assert everything.status_code == 200
    assert [d["id"] for d in everything.json()] == [created["id"]]


def test_available_delegates(client, manager, deputy, make_employee):
    make_employee("Former Deputy", Role.MANAGER, active=False)
    analyst = make_employee("Analyst")

    response = client.get("/api/v1/delegations/available-delegates", headers=auth_headers(manager))
    assert response.status_code == 200
    data = response.json()
    assert [d["name"] for d in data] == ["Analyst", "Deputy"]
    assert data[0] == {"id": analyst.id, "emp_code": analyst.emp_code, "name": "Analyst", "role": "EMPLOYEE"}


def test_check_can_act(client, manager, deputy):
    _create(client, manager, deputy)
    response = client.get(f"/api/v1/delegations/check/{manager.id}", headers=auth_headers(deputy))
    assert response.status_code == 200
    assert response.json()["can_act"] is True

    response = client.get(f"/api/v1/delegations/check/{deputy.id}", headers=auth_headers(manager))
    assert response.json() == {
        "can_act": False,
        "original_approver_id": deputy.id,
        "delegation_id": None,
        "valid_to": None,
    }


def test_revoke(client, manager, deputy):
    created = _create(client, manager, deputy).json()

    denied = client.post(
        f"/api/v1/delegations/{created['id']}/revoke", headers=auth_headers(deputy)
    )
    assert denied.status_code == 403

    response = client.post(
        f"/api/v1/delegations/{created['id']}/revoke",
        json={"reason": "Back early"},
        headers=auth_headers(manager),
    )
    assert response.status_code == 200
    data = response.json()
    assert data["current_status"] == "revoked"
    assert data["revocation_reason"] == "Back early"

    again = client.post(f"/api/v1/delegations/{created['id']}/revoke", headers=auth_headers(manager))
    assert again.status_code == 400

    received = client.get("/api/v1/delegations/received", headers=auth_headers(deputy)).json()
    assert received == []


def test_get_delegation(client, manager, deputy, make_employee):
    created = _create(client, manager, deputy).json()
    assert client.get(f"/api/v1/delegations/{created['id']}", headers=auth_headers(deputy)).status_code == 200
    outsider = make_employee("Outsider")
    assert client.get(f"/api/v1/delegations/{created['id']}", headers=auth_headers(outsider)).status_code == 403
    assert client.get("/api/v1/delegations/9999", headers=auth_headers(manager)).status_code == 404


def test_delegate_approves_via_api(client, db, manager, deputy, make_employee, hr_user):
    from hr_approvals.services import hierarchy_service

    employee = make_employee("Employee")
    hierarchy_service.set_chain(db, employee.id, [(0, manager.id)], actor_id=hr_user.id)
    _create(client, manager, deputy)

    created = client.post(
        "/api/v1/requests", json={"request_type": "overtime"}, headers=auth_headers(employee)
    ).json()
    response = client.post(f"/api/v1/requests/{created['id']}/approve", headers=auth_headers(deputy))

    assert response.status_code == 200
    event = response.json()["event"]
    assert event["actor_id"] == deputy.id
    assert event["acting_as_delegate_of"] == manager.id

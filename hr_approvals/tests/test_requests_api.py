"""
Tests for the /requests endpoints
"""
import pytest

from hr_approvals.models.employee import Role
from hr_approvals.services import hierarchy_service
from hr_approvals.tests.conftest import auth_headers


@pytest.fixture
def org(db, make_employee, hr_user):
    e = make_employee("Employee")
    m0 = make_employee("Direct Manager", Role.MANAGER)
    m1 = make_employee("Senior Manager", Role.MANAGER)
    hierarchy_service.set_chain(db, e.id, [(0, m0.id), (1, m1.id)], actor_id=hr_user.id)
    return {"e": e, "m0": m0, "m1": m1}


def _submit(client, employee, request_type="leave"):
    response = client.post(
        "/api/v1/requests",
        json={"request_type": request_type, "payload": {"days": 2}},
        headers=auth_headers(employee),
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_submit_and_approve_through_chain(client, org):
    created = _submit(client, org["e"])
    assert created["status"] == "pending"
    assert created["current_rank"] == 0
    assert created["payload"] == {"days": 2}
    assert created["created_at"].endswith("Z")

    response = client.post(
        f"/api/v1/requests/{created['id']}/approve",
        json={"comment": "Fine by me"},
        headers=auth_headers(org["m0"]),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["request"]["status"] == "approved_n1"
    assert body["is_final"] is False
    assert body["next_rank"] == 1
    assert body["event"]["decision"] == "approve"

    response = client.post(
        f"/api/v1/requests/{created['id']}/approve", headers=auth_headers(org["m1"])
    )
    assert response.status_code == 200
    assert response.json()["request"]["status"] == "approved"
    assert response.json()["is_final"] is True


def test_not_eligible_returns_403(client, org):
    created = _submit(client, org["e"])
    response = client.post(f"/api/v1/requests/{created['id']}/approve", headers=auth_headers(org["m1"]))
    assert response.status_code == 403
    assert response.json()["error_code"] == "NOT_ELIGIBLE"


def test_replayed_approval_returns_409_stale(client, org):
    created = _submit(client, org["e"])
    url = f"/api/v1/requests/{created['id']}/approve"
    assert client.post(url, headers=auth_headers(org["m0"])).status_code == 200

    response = client.post(url, headers=auth_headers(org["m0"]))
    assert response.status_code == 409
    assert response.json()["error_code"] == "STALE_STATE"
    assert "Refresh" in response.json()["detail"]


def test_expected_status_guard(client, org):
    created = _submit(client, org["e"])
    client.post(f"/api/v1/requests/{created['id']}/approve", headers=auth_headers(org["m0"]))

    response = client.post(
        f"/api/v1/requests/{created['id']}/approve",
        json={"expected_status": "pending"},
        headers=auth_headers(org["m1"]),
    )
    assert response.status_code == 409
    assert response.json()["error_code"] == "STALE_STATE"


def test_reject_without_reason(client, org):
    created = _submit(client, org["e"])
    response = client.post(
        f"/api/v1/requests/{created['id']}/reject", json={}, headers=auth_headers(org["m0"])
    )
    assert response.status_code == 400
    assert response.json()["error_code"] == "REASON_REQUIRED"


def test_reject_then_approve_is_invalid(client, org):
    created = _submit(client, org["e"])
    response = client.post(
        f"/api/v1/requests/{created['id']}/reject",
        json={"reason": "Team offsite that week"},
        headers=auth_headers(org["m0"]),
    )
    assert response.status_code == 200
    assert response.json()["request"]["status"] == "rejected"

    response = client.post(f"/api/v1/requests/{created['id']}/approve", headers=auth_headers(org["m1"]))
    assert response.status_code == 409
    assert response.json()["error_code"] == "INVALID_TRANSITION"


def test_cancel_requires_admin(client, org, admin):
    created = _submit(client, org["e"])
    for manager in (org["m0"], org["m1"]):
        client.post(f"/api/v1/requests/{created['id']}/approve", headers=auth_headers(manager))

    url = f"/api/v1/requests/{created['id']}/cancel"
    denied = client.post(url, json={"reason": "Duplicate"}, headers=auth_headers(org["m1"]))
    assert denied.status_code == 403

    response = client.post(url, json={"reason": "Duplicate"}, headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["request"]["status"] == "cancelled"


def test_unknown_request_type_is_422(client, org):
    response = client.post(
        "/api/v1/requests",
        json={"request_type": "payroll"},
        headers=auth_headers(org["e"]),
    )
    assert response.status_code == 422


def test_pending_and_history(client, org):
    created = _submit(client, org["e"])

    pending = client.get("/api/v1/requests/pending", headers=auth_headers(org["m0"]))
    assert pending.status_code == 200
    items = pending.json()
    assert len(items) == 1
    assert items[0]["request"]["id"] == created["id"]
    assert items[0]["step"] == 1
    assert items[0]["total_steps"] == 2
    assert items[0]["current_approver_id"] == org["m0"].id

    client.post(f"/api/v1/requests/{created['id']}/approve", headers=auth_headers(org["m0"]))

    history = client.get(f"/api/v1/requests/{created['id']}/history", headers=auth_headers(org["e"]))
    assert history.status_code == 200
    events = history.json()["events"]
    assert [ev["decision"] for ev in events] == ["submit", "approve"]
    assert events[1]["rank"] == 0
    assert events[1]["from_status"] == "pending"
    assert events[1]["to_status"] == "approved_n1"


def test_pending_scope_all_requires_view_all(client, org, hr_user):
    _submit(client, org["e"])
    assert client.get("/api/v1/requests/pending?scope=all", headers=auth_headers(org["m0"])).status_code == 403
    response = client.get("/api/v1/requests/pending?scope=all", headers=auth_headers(hr_user))
    assert response.status_code == 200
    assert len(response.json()) == 1


def test_my_requests_and_visibility(client, org, make_employee):
    created = _submit(client, org["e"])

    mine = client.get("/api/v1/requests/my", headers=auth_headers(org["e"]))
    assert [r["id"] for r in mine.json()] == [created["id"]]

    outsider = make_employee("Outsider")
    response = client.get(f"/api/v1/requests/{created['id']}", headers=auth_headers(outsider))
    assert response.status_code == 403
    assert client.get("/api/v1/requests/9999", headers=auth_headers(org["e"])).status_code == 404


def test_requires_authentication(client):
    assert client.get("/api/v1/requests/my").status_code in (401, 403)


def test_notifier_receives_notices(client, org, notifier):
    created = _submit(client, org["e"])
    client.post(f"/api/v1/requests/{created['id']}/approve", headers=auth_headers(org["m0"]))

    assert [n.decision for n in notifier.notices] == ["submit", "approve"]
    assert notifier.notices[-1].next_approver_ids == frozenset({org["m1"].id})

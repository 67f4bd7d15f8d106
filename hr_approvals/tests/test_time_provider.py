"""
Tests for time providers and the administrator clock override
"""
from datetime import timedelta

from hr_approvals.models.audit_log import AuditLog
from hr_approvals.models.employee import Role
from hr_approvals.services import clock_service, delegation_service, hierarchy_service
from hr_approvals.services.time_provider import (
    FixedTimeProvider,
    SystemClockTimeProvider,
    SystemTimeProvider,
    compute_overridden_now,
)
from hr_approvals.tests.conftest import BASE_TIME, auth_headers


def test_fixed_time_provider_set_and_advance():
    clock = FixedTimeProvider(BASE_TIME)
    assert clock.now() == BASE_TIME
    assert clock.advance(hours=3) == BASE_TIME + timedelta(hours=3)
    clock.set(BASE_TIME - timedelta(days=1))
    assert clock.now() == BASE_TIME - timedelta(days=1)


def test_system_time_provider_is_aware():
    assert SystemTimeProvider().now().tzinfo is not None


def test_compute_overridden_now():
    value = {
        "enabled": True,
        "desired_time": "2030-01-01T00:00:00Z",
        "reference_time": BASE_TIME.isoformat(),
    }
    result = compute_overridden_now(value, BASE_TIME + timedelta(minutes=90))
    assert result.isoformat() == "2030-01-01T01:30:00+00:00"

    assert compute_overridden_now(None, BASE_TIME) is None
    assert compute_overridden_now({**value, "enabled": False}, BASE_TIME) is None


def test_system_clock_provider_follows_setting(db, clock, admin):
    provider = SystemClockTimeProvider(db, clock)
    assert provider.now() == BASE_TIME

    target = BASE_TIME + timedelta(days=30)
    clock_service.set_clock(db, target, admin.id, clock)
    assert provider.now() == target

    clock.advance(minutes=10)
    assert provider.now() == target + timedelta(minutes=10)

    clock_service.disable_clock(db, admin.id, clock)
    assert provider.now() == clock.now()

    actions = [a.action for a in db.query(AuditLog).order_by(AuditLog.id)]
    assert actions == ["CLOCK_SET", "CLOCK_RESET"]


def test_clock_endpoints_are_admin_only(client, admin, hr_user):
    assert client.get("/api/v1/admin/clock", headers=auth_headers(hr_user)).status_code == 403

    response = client.get("/api/v1/admin/clock", headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["enabled"] is False

    target = (BASE_TIME + timedelta(days=7)).isoformat()
    response = client.put(
        "/api/v1/admin/clock", json={"desired_time": target}, headers=auth_headers(admin)
    )
    assert response.status_code == 200
    data = response.json()
    assert data["enabled"] is True
    assert data["current_time"] == "2026-03-09T09:00:00Z"
    assert data["updated_by"] == admin.id

    response = client.delete("/api/v1/admin/clock", headers=auth_headers(admin))
    assert response.json()["enabled"] is False


def test_clock_override_drives_delegation_windows(client, db, clock, make_employee, admin, hr_user):
    employee = make_employee("Employee")
    manager = make_employee("Manager", Role.MANAGER)
    deputy = make_employee("Deputy", Role.MANAGER)
    hierarchy_service.set_chain(db, employee.id, [(0, manager.id)], actor_id=hr_user.id)
    start = BASE_TIME + timedelta(days=7)
    delegation_service.grant(
        db, manager.id, deputy.id,
        valid_from=start, valid_to=start + timedelta(days=2),
        clock=clock,
    )
    created = client.post(
        "/api/v1/requests", json={"request_type": "leave"}, headers=auth_headers(employee)
    ).json()
    approve_url = f"/api/v1/requests/{created['id']}/approve"

    assert client.post(approve_url, headers=auth_headers(deputy)).status_code == 403

    client.put(
        "/api/v1/admin/clock",
        json={"desired_time": (start + timedelta(hours=1)).isoformat()},
        headers=auth_headers(admin),
    )
    response = client.post(approve_url, headers=auth_headers(deputy))
    assert response.status_code == 200
    assert response.json()["event"]["acting_as_delegate_of"] == manager.id

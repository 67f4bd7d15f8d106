"""
Tests for authentication endpoints
"""
import pytest
from fastapi import status

from hr_approvals.core.security import decode_token
from hr_approvals.models.audit_log import AuditLog
from hr_approvals.models.employee import Role


@pytest.fixture
def test_employee(make_employee):
    return make_employee("Test Employee", Role.EMPLOYEE)


def test_auth_login_success(client, db, test_employee):
    """Successful login returns a bearer token carrying role and role_rank"""
    response = client.post(
        "/api/v1/auth/login",
        json={"emp_code": test_employee.emp_code, "password": "testpass123"},
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["token_type"] == "bearer"

    payload = decode_token(data["access_token"])
    assert payload["sub"] == str(test_employee.id)
    assert payload["role"] == "EMPLOYEE"
    assert payload["role_rank"] == 6

    assert db.query(AuditLog).filter(AuditLog.action == "AUTH_LOGIN_SUCCESS").count() == 1


def test_auth_login_wrong_password(client, test_employee):
    response = client.post(
        "/api/v1/auth/login",
        json={"emp_code": test_employee.emp_code, "password": "wrongpassword"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert "detail" in response.json()


def test_auth_login_invalid_emp_code(client, test_roles):
    response = client.post(
        "/api/v1/auth/login",
        json={"emp_code": "INVALID001", "password": "testpass123"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_auth_inactive_user_blocked(client, make_employee):
    inactive = make_employee("Inactive", active=False)
    response = client.post(
        "/api/v1/auth/login",
        json={"emp_code": inactive.emp_code, "password": "testpass123"},
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert "inactive" in response.json()["detail"].lower()


def test_garbage_token_is_rejected(client):
    response = client.get(
        "/api/v1/requests/my", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED

"""
Tests for health and version endpoints
"""
from fastapi import status


def test_health_check(client):
    response = client.get("/api/v1/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok", "service": "hr-approvals"}


def test_version(client):
    response = client.get("/api/v1/version")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["service"] == "hr-approvals"
    assert "version" in data
    assert data["env"] == "local"

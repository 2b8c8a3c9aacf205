"""Tests for certificate endpoints."""

from datetime import UTC, datetime
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from src.auth.permissions import UserRole
from tests.fakes import auth_headers
from tests.store import LearningStore


@pytest.fixture
def issued(store: LearningStore) -> dict:
    """A certificate already present in every table."""
    fields = {
        "enrollment_id": uuid4(),
        "certificate_number": "LH-2026-0123456789ABCDEF0123456789ABCDEF",
        "user_id": uuid4(),
        "course_id": uuid4(),
        "issued_at": datetime(2026, 6, 1, tzinfo=UTC),
        "pdf_location": None,
    }
    store.certificates[fields["enrollment_id"]] = dict(fields)
    store.certificates_by_number[fields["certificate_number"]] = dict(fields)
    store.certificates_by_user[fields["user_id"]].append(dict(fields))
    return fields


class TestCertificateEndpoints:
    def test_verify(self, api_client: TestClient, issued: dict):
        response = api_client.get(
            f"/v1/certificates/verify/{issued['certificate_number']}"
        )

        assert response.status_code == 200
        assert response.json()["valid"] is True
        assert response.json()["course_id"] == str(issued["course_id"])

    def test_verify_unknown_number(self, api_client: TestClient):
        response = api_client.get("/v1/certificates/verify/LH-2026-MISSING")

        assert response.status_code == 404
        assert response.json()["code"] == "certificate_not_found"

    def test_my_certificates(self, api_client: TestClient, issued: dict):
        mine = api_client.get(
            "/v1/certificates/my", headers=auth_headers(issued["user_id"])
        )
        others = api_client.get("/v1/certificates/my", headers=auth_headers())

        assert mine.json()["total"] == 1
        assert others.json() == {"items": [], "total": 0}

    def test_admin_attaches_pdf(
        self, api_client: TestClient, store: LearningStore, issued: dict
    ):
        response = api_client.put(
            f"/v1/certificates/{issued['certificate_number']}/pdf",
            json={"pdf_location": "s3://bucket/cert.pdf"},
            headers=auth_headers(uuid4(), UserRole.ADMIN),
        )

        assert response.status_code == 200
        assert response.json()["pdf_location"] == "s3://bucket/cert.pdf"
        assert store.certificates[issued["enrollment_id"]]["pdf_location"] == (
            "s3://bucket/cert.pdf"
        )

    def test_attach_pdf_requires_manager(self, api_client: TestClient, issued: dict):
        response = api_client.put(
            f"/v1/certificates/{issued['certificate_number']}/pdf",
            json={"pdf_location": "s3://bucket/cert.pdf"},
            headers=auth_headers(uuid4(), UserRole.TEACHER),
        )

        assert response.status_code == 403

    def test_attach_pdf_unknown_number(self, api_client: TestClient):
        response = api_client.put(
            "/v1/certificates/LH-2026-ANY/pdf",
            json={"pdf_location": "s3://bucket/a.pdf"},
            headers=auth_headers(uuid4(), UserRole.ADMIN),
        )

        assert response.status_code == 404
        assert response.json()["code"] == "certificate_not_found"

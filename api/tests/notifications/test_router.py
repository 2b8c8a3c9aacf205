"""Tests for notification endpoints."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from src.notifications.models import NotificationType
from src.notifications.schemas import NotificationListResponse, NotificationResponse
from src.notifications.service import NotificationService
from tests.fakes import auth_headers


@pytest.fixture
def notification_service(app) -> Mock:
    service = Mock(spec=NotificationService)
    service.get_notifications = AsyncMock()
    service.get_unread_count = AsyncMock(return_value=4)
    service.mark_as_read = AsyncMock(return_value=2)
    service.mark_all_as_read = AsyncMock(return_value=5)
    app.state.notification_service = service
    return service


class TestNotificationEndpoints:
    def test_list(self, client: TestClient, notification_service: Mock, student_id: UUID):
        notification_service.get_notifications.return_value = NotificationListResponse(
            items=[
                NotificationResponse(
                    id=uuid4(),
                    type=NotificationType.COURSE_COMPLETED,
                    title="Course completed",
                    message="Congratulations, you completed the course.",
                    is_read=False,
                    created_at=datetime.now(UTC),
                )
            ],
            unread_count=1,
            has_more=False,
        )

        response = client.get(
            "/v1/notifications?limit=5&unread_only=true", headers=auth_headers(student_id)
        )

        assert response.status_code == 200
        assert response.json()["items"][0]["type"] == "course_completed"
        notification_service.get_notifications.assert_awaited_once_with(
            user_id=student_id, limit=5, cursor=None, unread_only=True
        )

    def test_bad_cursor(self, client: TestClient, notification_service: Mock):
        notification_service.get_notifications.side_effect = ValueError("Invalid cursor format")

        response = client.get("/v1/notifications?cursor=zzz", headers=auth_headers())

        assert response.status_code == 400

    def test_unread_count(self, client: TestClient, notification_service: Mock):
        response = client.get("/v1/notifications/unread-count", headers=auth_headers())

        assert response.json() == {"count": 4}

    def test_mark_read(self, client: TestClient, notification_service: Mock, student_id: UUID):
        ids = [uuid4(), uuid4()]

        response = client.post(
            "/v1/notifications/mark-read",
            json={"notification_ids": [str(i) for i in ids]},
            headers=auth_headers(student_id),
        )

        assert response.json() == {"marked_count": 2, "unread_count": 4}
        notification_service.mark_as_read.assert_awaited_once_with(
            user_id=student_id, notification_ids=ids
        )

    def test_mark_read_requires_ids(self, client: TestClient, notification_service: Mock):
        response = client.post(
            "/v1/notifications/mark-read",
            json={"notification_ids": []},
            headers=auth_headers(),
        )

        assert response.status_code == 422

    def test_mark_all_read(self, client: TestClient, notification_service: Mock):
        response = client.post("/v1/notifications/mark-all-read", headers=auth_headers())

        assert response.json() == {"marked_count": 5, "unread_count": 4}

    def test_requires_token(self, client: TestClient, notification_service: Mock):
        response = client.get("/v1/notifications")

        assert response.status_code == 401

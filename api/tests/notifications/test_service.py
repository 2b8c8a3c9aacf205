"""Tests for notification creation from events, listing and read state."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest

from src.events import DomainEvent, EventName
from src.notifications.models import (
    NotificationType,
    create_notification,
    create_quiz_graded_notification,
)
from src.notifications.schemas import decode_cursor, encode_cursor
from src.notifications.service import NotificationService
from tests.fakes import KEYSPACE, FakeResult, executed, make_session, row


def notification_row(user_id, created_at, is_read=False, **overrides):
    fields = {
        "user_id": user_id,
        "notification_id": uuid4(),
        "type": NotificationType.QUIZ_GRADED.value,
        "title": "Quiz graded",
        "message": "You scored 60%.",
        "reference_id": uuid4(),
        "reference_type": "quiz_attempt",
        "course_id": uuid4(),
        "is_read": is_read,
        "read_at": None,
        "created_at": created_at,
    }
    fields.update(overrides)
    return row(**fields)


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def session():
    return make_session({"SELECT count FROM": FakeResult([row(count=2)])})


@pytest.fixture
def service(session) -> NotificationService:
    return NotificationService(session=session, keyspace=KEYSPACE)


def completed_event(user_id: UUID) -> DomainEvent:
    return DomainEvent.create(
        EventName.COURSE_COMPLETED,
        enrollment_id=uuid4(),
        user_id=user_id,
        course_id=uuid4(),
        certificate_number="LH-2026-ABC",
    )


class TestNotificationFactories:
    def test_message_is_truncated(self, user_id):
        notification = create_notification(
            user_id, NotificationType.QUIZ_GRADED, "Quiz graded", "x" * 600
        )

        assert len(notification.message) == 500
        assert notification.is_read is False

    def test_quiz_graded_message(self, user_id):
        notification = create_quiz_graded_notification(
            user_id=user_id,
            attempt_id=uuid4(),
            course_id=uuid4(),
            score_percent=Decimal("80.00"),
            passed=True,
            needs_review=True,
        )

        assert notification.title == "Quiz passed"
        assert "80%" in notification.message
        assert "review" in notification.message


class TestHandleEvent:
    @pytest.mark.asyncio
    async def test_quiz_graded_event(self, service, session, user_id):
        attempt_id = uuid4()
        event = DomainEvent.create(
            EventName.QUIZ_GRADED,
            attempt_id=attempt_id,
            quiz_id=uuid4(),
            course_id=uuid4(),
            user_id=user_id,
            score_percent=Decimal("55.50"),
            passed=False,
            is_late=True,
            needs_review=False,
        )

        notification = await service.handle_event(event)

        assert notification.type == NotificationType.QUIZ_GRADED
        assert notification.reference_id == attempt_id
        assert "time limit" in notification.message
        (insert,) = executed(session, f"INSERT INTO {KEYSPACE}.notifications")
        assert insert[0] == user_id
        assert executed(session, "SET count = count + 1") == [[user_id]]

    @pytest.mark.asyncio
    async def test_course_completed_event(self, service, user_id):
        enrollment_id = uuid4()
        event = DomainEvent.create(
            EventName.COURSE_COMPLETED,
            enrollment_id=enrollment_id,
            user_id=user_id,
            course_id=uuid4(),
            certificate_number="LH-2026-ABC",
            completed_at=datetime.now(UTC),
        )

        notification = await service.handle_event(event)

        assert notification.type == NotificationType.COURSE_COMPLETED
        assert notification.reference_id == enrollment_id
        assert "LH-2026-ABC" in notification.message

    @pytest.mark.asyncio
    async def test_other_events_ignored(self, service, session, user_id):
        event = DomainEvent.create(EventName.QUIZ_PASSED, user_id=user_id)

        assert await service.handle_event(event) is None
        session.aexecute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_event_without_user_ignored(self, service, session):
        event = DomainEvent.create(EventName.QUIZ_GRADED, attempt_id=uuid4())

        assert await service.handle_event(event) is None
        session.aexecute.assert_not_awaited()


class TestRealtimeAndCache:
    @pytest.mark.asyncio
    async def test_publishes_and_invalidates(self, session, user_id):
        redis = AsyncMock()
        service = NotificationService(session=session, keyspace=KEYSPACE, redis=redis)

        await service.handle_event(completed_event(user_id))

        redis.delete.assert_awaited_once_with(f"notifications:unread:{user_id}")
        channel = redis.publish.await_args.args[0]
        assert channel == f"notifications:user:{user_id}"

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_fail_creation(self, session, user_id):
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("down")
        service = NotificationService(session=session, keyspace=KEYSPACE, redis=redis)

        notification = await service.handle_event(completed_event(user_id))

        assert notification.type == NotificationType.COURSE_COMPLETED

    @pytest.mark.asyncio
    async def test_unread_count_cached(self, session, user_id):
        redis = AsyncMock()
        redis.get.return_value = None
        service = NotificationService(session=session, keyspace=KEYSPACE, redis=redis)

        assert await service.get_unread_count(user_id) == 2
        redis.setex.assert_awaited_once_with(f"notifications:unread:{user_id}", 300, "2")

        redis.get.return_value = b"7"
        assert await service.get_unread_count(user_id) == 7

    @pytest.mark.asyncio
    async def test_negative_counter_clamped(self, user_id):
        session = make_session({"SELECT count FROM": FakeResult([row(count=-3)])})
        service = NotificationService(session=session, keyspace=KEYSPACE)

        assert await service.get_unread_count(user_id) == 0


class TestListing:
    @pytest.mark.asyncio
    async def test_pagination_cursor(self, user_id):
        now = datetime.now(UTC)
        rows = [notification_row(user_id, now - timedelta(minutes=i)) for i in range(3)]
        session = make_session(
            {
                "SELECT * FROM": FakeResult(rows),
                "SELECT count FROM": FakeResult([row(count=3)]),
            }
        )
        service = NotificationService(session=session, keyspace=KEYSPACE)

        page = await service.get_notifications(user_id, limit=2)

        assert len(page.items) == 2
        assert page.has_more is True
        assert page.unread_count == 3
        created_at, notification_id = decode_cursor(page.next_cursor)
        assert notification_id == rows[1].notification_id
        assert created_at == rows[1].created_at

        await service.get_notifications(user_id, limit=2, cursor=page.next_cursor)
        (params,) = executed(session, "AND created_at < ?")
        assert params == [user_id, rows[1].created_at, 3]

    @pytest.mark.asyncio
    async def test_unread_only(self, user_id):
        now = datetime.now(UTC)
        rows = [
            notification_row(user_id, now, is_read=True),
            notification_row(user_id, now - timedelta(minutes=1)),
        ]
        session = make_session({"SELECT * FROM": FakeResult(rows)})
        service = NotificationService(session=session, keyspace=KEYSPACE)

        page = await service.get_notifications(user_id, unread_only=True)

        assert [item.id for item in page.items] == [rows[1].notification_id]
        assert page.has_more is False

    @pytest.mark.asyncio
    async def test_bad_cursor(self, service, user_id):
        with pytest.raises(ValueError):
            await service.get_notifications(user_id, cursor="not-a-cursor")

    def test_cursor_round_trip(self):
        created_at = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        notification_id = uuid4()

        assert decode_cursor(encode_cursor(created_at, notification_id)) == (
            created_at,
            notification_id,
        )


class TestMarkRead:
    @pytest.mark.asyncio
    async def test_mark_selected(self, user_id):
        now = datetime.now(UTC)
        unread = notification_row(user_id, now)
        other = notification_row(user_id, now - timedelta(minutes=1))
        already = notification_row(user_id, now - timedelta(minutes=2), is_read=True)
        session = make_session({"SELECT * FROM": FakeResult([unread, other, already])})
        service = NotificationService(session=session, keyspace=KEYSPACE)

        marked = await service.mark_as_read(
            user_id, [unread.notification_id, already.notification_id]
        )

        assert marked == 1
        (update,) = executed(session, "SET is_read = true")
        assert update[1:] == [user_id, unread.created_at, unread.notification_id]
        assert executed(session, "SET count = count - ?") == [[1, user_id]]

    @pytest.mark.asyncio
    async def test_mark_all(self, user_id):
        now = datetime.now(UTC)
        rows = [notification_row(user_id, now - timedelta(minutes=i)) for i in range(3)]
        session = make_session({"SELECT * FROM": FakeResult(rows)})
        service = NotificationService(session=session, keyspace=KEYSPACE)

        assert await service.mark_all_as_read(user_id) == 3
        assert len(executed(session, "SET is_read = true")) == 3

    @pytest.mark.asyncio
    async def test_nothing_to_mark(self, service, session, user_id):
        assert await service.mark_all_as_read(user_id) == 0
        assert executed(session, "SET count = count - ?") == []

"""Tests for domain events and the background dispatcher."""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

import orjson
import pytest

from src.events import DomainEvent, EventDispatcher, EventName


class TestDomainEvent:
    def test_create_uses_enum_value(self):
        event = DomainEvent.create(EventName.QUIZ_GRADED, passed=True)

        assert event.name == "quiz.graded"
        assert event.payload == {"passed": True}

    def test_to_json_serializes_payload_types(self):
        attempt_id = uuid4()
        event = DomainEvent.create(
            EventName.QUIZ_GRADED,
            attempt_id=attempt_id,
            score_percent=Decimal("80.00"),
        )

        data = orjson.loads(event.to_json())

        assert data["name"] == "quiz.graded"
        assert data["event_id"] == str(event.event_id)
        assert data["payload"]["attempt_id"] == str(attempt_id)
        assert data["payload"]["score_percent"] == "80.00"


class TestEventDispatcher:
    @pytest.mark.asyncio
    async def test_publish_then_drain_reaches_subscribers(self):
        dispatcher = EventDispatcher()
        handler = AsyncMock()
        other = AsyncMock()
        dispatcher.subscribe(EventName.COURSE_COMPLETED, handler)
        dispatcher.subscribe(EventName.QUIZ_GRADED, other)

        assert dispatcher.publish(EventName.COURSE_COMPLETED, user_id=uuid4()) is True
        assert dispatcher.queue_length == 1

        delivered = await dispatcher.drain()

        assert delivered == 1
        handler.assert_awaited_once()
        assert handler.await_args.args[0].name == "course.completed"
        other.assert_not_awaited()
        assert dispatcher.stats()["events_delivered"] == 1

    @pytest.mark.asyncio
    async def test_full_queue_drops_events(self):
        dispatcher = EventDispatcher(queue_size=1)

        assert dispatcher.publish(EventName.QUIZ_GRADED) is True
        assert dispatcher.publish(EventName.QUIZ_GRADED) is False

        stats = dispatcher.stats()
        assert stats["events_emitted"] == 1
        assert stats["events_dropped"] == 1

    @pytest.mark.asyncio
    async def test_failing_handler_is_isolated(self):
        dispatcher = EventDispatcher()
        broken = AsyncMock(side_effect=RuntimeError("boom"))
        healthy = AsyncMock()
        dispatcher.subscribe(EventName.QUIZ_PASSED, broken)
        dispatcher.subscribe(EventName.QUIZ_PASSED, healthy)

        dispatcher.publish(EventName.QUIZ_PASSED)
        await dispatcher.drain()

        healthy.assert_awaited_once()
        assert dispatcher.stats()["delivery_failures"] == 1

    @pytest.mark.asyncio
    async def test_redis_fan_out(self):
        redis = AsyncMock()
        dispatcher = EventDispatcher(redis=redis, channel_prefix="test:events")

        dispatcher.publish(EventName.QUIZ_GRADED, passed=False)
        await dispatcher.drain()

        channel, body = redis.publish.await_args.args
        assert channel == "test:events:quiz.graded"
        assert orjson.loads(body)["payload"] == {"passed": False}

    @pytest.mark.asyncio
    async def test_redis_failure_is_logged_not_raised(self):
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("down")
        dispatcher = EventDispatcher(redis=redis)

        dispatcher.publish(EventName.QUIZ_GRADED)
        await dispatcher.drain()

        assert dispatcher.stats()["delivery_failures"] == 1

    @pytest.mark.asyncio
    async def test_worker_delivers_and_stop_flushes(self):
        dispatcher = EventDispatcher()
        received = asyncio.Event()

        async def handler(event):
            received.set()

        dispatcher.subscribe(EventName.QUIZ_GRADED, handler)
        await dispatcher.start()
        assert dispatcher.is_running

        dispatcher.publish(EventName.QUIZ_GRADED)
        await asyncio.wait_for(received.wait(), timeout=1.0)
        await dispatcher.stop()

        assert not dispatcher.is_running
        assert dispatcher.queue_length == 0
        assert dispatcher.stats()["events_delivered"] == 1

    @pytest.mark.asyncio
    async def test_stop_when_not_running(self):
        dispatcher = EventDispatcher()

        await dispatcher.stop()

        assert dispatcher.stats()["running"] is False

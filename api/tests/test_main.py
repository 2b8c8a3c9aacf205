"""Tests for service wiring at startup."""

from uuid import uuid4

import pytest
from fastapi import FastAPI

from src.config import get_settings
from src.events import EventDispatcher, EventName
from src.main import build_services
from src.quizzes.service import QuizService
from tests.fakes import executed, make_session


@pytest.fixture
def wired():
    app = FastAPI()
    session = make_session()
    dispatcher = EventDispatcher()
    build_services(app, session, get_settings(), dispatcher)
    return app, session, dispatcher


class TestBuildServices:
    def test_services_on_app_state(self, wired):
        app, _, dispatcher = wired

        assert isinstance(app.state.quiz_service, QuizService)
        assert app.state.quiz_service.progress_service is app.state.progress_service
        assert app.state.progress_service.dispatcher is dispatcher
        assert app.state.certificate_service.number_prefix == get_settings().certificate_number_prefix

    @pytest.mark.asyncio
    async def test_completion_event_stored_as_notification(self, wired):
        _, session, dispatcher = wired
        user_id = uuid4()

        dispatcher.publish(
            EventName.COURSE_COMPLETED,
            enrollment_id=uuid4(),
            user_id=user_id,
            course_id=uuid4(),
            certificate_number="LH-2026-XYZ",
        )
        await dispatcher.drain()

        (insert,) = executed(session, "INSERT INTO")
        assert insert[0] == user_id
        assert insert[2] == "course_completed"

    @pytest.mark.asyncio
    async def test_quiz_passed_has_no_notification(self, wired):
        _, session, dispatcher = wired

        dispatcher.publish(EventName.QUIZ_PASSED, user_id=uuid4(), quiz_id=uuid4())
        await dispatcher.drain()

        assert executed(session, "INSERT INTO") == []

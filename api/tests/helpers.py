"""Scenario helpers shared by service tests."""

from unittest.mock import Mock
from uuid import UUID

from src.courses.models import Course, CourseModule
from src.courses.schemas import CreateCourseRequest, CreateModuleRequest
from src.courses.service import CourseService
from src.events import EventName


async def create_course_with_modules(
    course_service: CourseService, teacher_id: UUID, count: int
) -> tuple[Course, list[CourseModule]]:
    """A published course with ``count`` text modules."""
    course = await course_service.create_course(
        CreateCourseRequest(title="Intro to Testing"), teacher_id
    )
    modules = [
        await course_service.add_module(
            course.id, CreateModuleRequest(title=f"Module {i + 1}")
        )
        for i in range(count)
    ]
    return course, modules


def published_events(dispatcher: Mock, name: EventName) -> list[dict]:
    """Payloads of every event of a kind published on a mocked dispatcher."""
    return [
        call.kwargs
        for call in dispatcher.publish.call_args_list
        if call.args and call.args[0] == name
    ]

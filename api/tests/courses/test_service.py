"""Tests for the course catalog service and endpoints."""

from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from src.auth.permissions import UserRole
from src.courses.schemas import CreateCourseRequest, CreateModuleRequest
from src.courses.service import CourseNotFoundError, CourseService
from tests.fakes import auth_headers


class TestCourseService:
    @pytest.mark.asyncio
    async def test_modules_are_appended_in_order(
        self, course_service: CourseService, teacher_id: UUID
    ):
        course = await course_service.create_course(
            CreateCourseRequest(title="Data Modeling"), teacher_id
        )
        for title in ("Keys", "Partitions", "Clustering"):
            await course_service.add_module(course.id, CreateModuleRequest(title=title))

        modules = await course_service.get_course_modules(course.id)

        assert [m.title for m in modules] == ["Keys", "Partitions", "Clustering"]
        assert [m.position for m in modules] == [0, 1, 2]
        assert await course_service.count_modules(course.id) == 3
        assert await course_service.get_module_course(modules[1].module_id) == course.id

    @pytest.mark.asyncio
    async def test_add_module_to_unknown_course(self, course_service: CourseService):
        with pytest.raises(CourseNotFoundError):
            await course_service.add_module(uuid4(), CreateModuleRequest(title="Orphan"))

    @pytest.mark.asyncio
    async def test_unknown_module_has_no_course(self, course_service: CourseService):
        assert await course_service.get_module_course(uuid4()) is None


class TestCourseEndpoints:
    def test_teacher_creates_course_with_modules(
        self, api_client: TestClient, teacher_id: UUID
    ):
        headers = auth_headers(teacher_id, UserRole.TEACHER)

        created = api_client.post(
            "/v1/courses", json={"title": "Async Python"}, headers=headers
        )
        assert created.status_code == 201
        course_id = created.json()["id"]
        assert created.json()["creator_id"] == str(teacher_id)

        module = api_client.post(
            f"/v1/courses/{course_id}/modules",
            json={"title": "Event loops", "content_type": "video"},
            headers=headers,
        )
        assert module.status_code == 201
        assert module.json()["position"] == 0

        detail = api_client.get(f"/v1/courses/{course_id}", headers=headers)
        assert detail.status_code == 200
        assert detail.json()["module_count"] == 1

    def test_student_cannot_create_course(self, api_client: TestClient, student_id: UUID):
        response = api_client.post(
            "/v1/courses",
            json={"title": "Not allowed"},
            headers=auth_headers(student_id, UserRole.STUDENT),
        )

        assert response.status_code == 403

    def test_only_owner_adds_modules(self, api_client: TestClient, teacher_id: UUID):
        course_id = api_client.post(
            "/v1/courses",
            json={"title": "Owned course"},
            headers=auth_headers(teacher_id, UserRole.TEACHER),
        ).json()["id"]

        response = api_client.post(
            f"/v1/courses/{course_id}/modules",
            json={"title": "Intruder"},
            headers=auth_headers(uuid4(), UserRole.TEACHER),
        )

        assert response.status_code == 403

    def test_unknown_course(self, api_client: TestClient, student_id: UUID):
        response = api_client.get(
            f"/v1/courses/{uuid4()}", headers=auth_headers(student_id)
        )

        assert response.status_code == 404
        assert response.json()["code"] == "course_not_found"

    def test_requires_token(self, api_client: TestClient):
        response = api_client.get(f"/v1/courses/{uuid4()}")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_service_unavailable_without_database(self, client: TestClient):
        response = client.get(f"/v1/courses/{uuid4()}", headers=auth_headers())

        assert response.status_code == 503

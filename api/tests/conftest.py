"""Shared fixtures."""

from unittest.mock import Mock
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from src.certificates.service import CertificateService
from src.courses.service import CourseService
from src.events import EventDispatcher
from src.main import create_app
from src.progress.service import ProgressService
from src.quizzes.service import QuizService
from tests.fakes import KEYSPACE
from tests.store import LearningStore


@pytest.fixture
def app():
    """Application without lifespan (no Cassandra, no Redis)."""
    return create_app()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


# ==============================================================================
# Service stack over the in-memory tables
# ==============================================================================


@pytest.fixture
def store() -> LearningStore:
    return LearningStore()


@pytest.fixture
def dispatcher() -> Mock:
    return Mock(spec=EventDispatcher)


@pytest.fixture
def course_service(store: LearningStore) -> CourseService:
    return CourseService(session=store.session, keyspace=KEYSPACE)


@pytest.fixture
def certificate_service(store: LearningStore) -> CertificateService:
    return CertificateService(session=store.session, keyspace=KEYSPACE, number_prefix="LH")


@pytest.fixture
def progress_service(
    store: LearningStore,
    course_service: CourseService,
    certificate_service: CertificateService,
    dispatcher: Mock,
) -> ProgressService:
    return ProgressService(
        session=store.session,
        keyspace=KEYSPACE,
        course_service=course_service,
        certificate_service=certificate_service,
        dispatcher=dispatcher,
    )


@pytest.fixture
def quiz_service_factory(
    store: LearningStore,
    course_service: CourseService,
    progress_service: ProgressService,
    dispatcher: Mock,
):
    """Build a QuizService with a given grading policy."""

    def factory(**policy) -> QuizService:
        return QuizService(
            session=store.session,
            keyspace=KEYSPACE,
            course_service=course_service,
            progress_service=progress_service,
            dispatcher=dispatcher,
            **policy,
        )

    return factory


@pytest.fixture
def quiz_service(quiz_service_factory) -> QuizService:
    return quiz_service_factory()


@pytest.fixture
def teacher_id() -> UUID:
    return uuid4()


@pytest.fixture
def student_id() -> UUID:
    return uuid4()


@pytest.fixture
def api_client(
    app,
    course_service: CourseService,
    certificate_service: CertificateService,
    progress_service: ProgressService,
    quiz_service: QuizService,
) -> TestClient:
    """Client whose app serves the in-memory service stack."""
    app.state.course_service = course_service
    app.state.certificate_service = certificate_service
    app.state.progress_service = progress_service
    app.state.quiz_service = quiz_service
    return TestClient(app)

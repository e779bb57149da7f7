"""Shared fixtures: settings for tests, in-memory stores, tokens and client."""

import os
import tempfile
from collections.abc import Iterable, Iterator
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="lectern-logs-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi.testclient import TestClient  # noqa: E402

from src.auth.security import create_access_token  # noqa: E402
from src.catalog.models import Course, Lecture, Module  # noqa: E402
from src.enrollments.models import Enrollment  # noqa: E402
from src.enrollments.progress import ProgressCalculator  # noqa: E402
from src.enrollments.service import (  # noqa: E402
    AlreadyEnrolledError,
    ConcurrentUpdateError,
    EnrollmentService,
)
from src.enrollments.unlock import UnlockEngine  # noqa: E402


# ==============================================================================
# In-memory Stores
# ==============================================================================


class InMemoryCatalog:
    """Catalog store backed by dicts, with builders for test data."""

    def __init__(self) -> None:
        self.courses: dict[UUID, Course] = {}
        self.modules: dict[UUID, Module] = {}
        self.lectures: dict[UUID, Lecture] = {}

    def add_course(self, title: str = "Course") -> Course:
        course = Course(title=title, description="About the course")
        self.courses[course.id] = course
        return course

    def add_module(self, course: Course, number: int) -> Module:
        module = Module(course_id=course.id, number=number, title=f"Module {number}")
        self.modules[module.id] = module
        return module

    def add_lecture(self, module: Module, order: int) -> Lecture:
        lecture = Lecture(
            module_id=module.id,
            order=order,
            title=f"Lecture {module.number}.{order}",
            video_url=f"https://videos.example.com/{module.number}-{order}.mp4",
        )
        self.lectures[lecture.id] = lecture
        return lecture

    def remove_lecture(self, lecture: Lecture) -> None:
        self.lectures.pop(lecture.id, None)

    async def get_course(self, course_id: UUID) -> Course | None:
        return self.courses.get(course_id)

    async def get_module(self, module_id: UUID) -> Module | None:
        return self.modules.get(module_id)

    async def get_lecture(self, lecture_id: UUID) -> Lecture | None:
        return self.lectures.get(lecture_id)

    async def find_modules_by_course(self, course_id: UUID) -> list[Module]:
        modules = [m for m in self.modules.values() if m.course_id == course_id]
        return sorted(modules, key=lambda m: m.number)

    async def find_lectures_by_module(self, module_id: UUID) -> list[Lecture]:
        lectures = [lec for lec in self.lectures.values() if lec.module_id == module_id]
        return sorted(lectures, key=lambda lec: lec.order)

    async def find_module_by_course_and_number(
        self, course_id: UUID, number: int
    ) -> Module | None:
        for module in self.modules.values():
            if module.course_id == course_id and module.number == number:
                return module
        return None

    async def find_lecture_by_module_and_order(
        self, module_id: UUID, order: int
    ) -> Lecture | None:
        for lecture in self.lectures.values():
            if lecture.module_id == module_id and lecture.order == order:
                return lecture
        return None

    async def count_lectures_in_modules(self, module_ids: Iterable[UUID]) -> int:
        ids = set(module_ids)
        return sum(1 for lec in self.lectures.values() if lec.module_id in ids)


def _copy(enrollment: Enrollment) -> Enrollment:
    return Enrollment(**enrollment.to_dict())


class InMemoryEnrollmentRepository:
    """Enrollment repository keeping detached copies, like a real store."""

    def __init__(self) -> None:
        self.rows: dict[UUID, Enrollment] = {}

    async def create(self, enrollment: Enrollment) -> Enrollment:
        if await self.get_by_user_course(enrollment.user_id, enrollment.course_id):
            raise AlreadyEnrolledError
        self.rows[enrollment.id] = _copy(enrollment)
        return enrollment

    async def save(self, enrollment: Enrollment) -> Enrollment:
        stored = self.rows.get(enrollment.id)
        if stored is None or stored.version != enrollment.version:
            raise ConcurrentUpdateError
        enrollment.version += 1
        self.rows[enrollment.id] = _copy(enrollment)
        return enrollment

    async def delete(self, enrollment: Enrollment) -> None:
        self.rows.pop(enrollment.id, None)

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        stored = self.rows.get(enrollment_id)
        return _copy(stored) if stored else None

    async def get_by_user_course(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        for stored in self.rows.values():
            if stored.user_id == user_id and stored.course_id == course_id:
                return _copy(stored)
        return None

    async def list_by_user(self, user_id: UUID) -> list[Enrollment]:
        return [_copy(e) for e in self.rows.values() if e.user_id == user_id]

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        return [_copy(e) for e in self.rows.values() if e.course_id == course_id]

    async def list_all(self) -> list[Enrollment]:
        return [_copy(e) for e in self.rows.values()]


# ==============================================================================
# Service Fixtures
# ==============================================================================


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog()


@pytest.fixture
def repository() -> InMemoryEnrollmentRepository:
    return InMemoryEnrollmentRepository()


@pytest.fixture
def enrollment_service(
    catalog: InMemoryCatalog, repository: InMemoryEnrollmentRepository
) -> EnrollmentService:
    return EnrollmentService(
        repository=repository,
        catalog=catalog,
        unlock_engine=UnlockEngine(catalog),
        calculator=ProgressCalculator(catalog),
    )


# ==============================================================================
# Auth Fixtures
# ==============================================================================


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def admin_id() -> UUID:
    return uuid4()


@pytest.fixture
def user_headers(user_id: UUID) -> dict[str, str]:
    token = create_access_token(
        {"sub": str(user_id), "email": "student@example.com", "role": "user"}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_id: UUID) -> dict[str, str]:
    token = create_access_token(
        {"sub": str(admin_id), "email": "admin@example.com", "role": "admin"}
    )
    return {"Authorization": f"Bearer {token}"}


# ==============================================================================
# HTTP Fixtures
# ==============================================================================


@pytest.fixture
def mock_catalog_service() -> MagicMock:
    """CatalogService stand-in; every coroutine method is an AsyncMock."""
    service = MagicMock()
    for name in (
        "list_courses",
        "get_course",
        "get_course_outline",
        "create_course",
        "update_course",
        "delete_course",
        "get_module",
        "find_lectures_by_module",
        "create_module",
        "update_module",
        "reorder_modules",
        "delete_module",
        "list_lectures",
        "create_lecture",
        "update_lecture",
        "delete_lecture",
    ):
        setattr(service, name, AsyncMock())
    return service


@pytest.fixture
def mock_enrollment_service() -> MagicMock:
    """EnrollmentService stand-in; every coroutine method is an AsyncMock."""
    service = MagicMock()
    for name in (
        "enroll",
        "complete_lecture",
        "complete_lecture_for_user",
        "recalculate_progress",
        "reset_progress",
        "delete_enrollment",
        "remove_course_enrollments",
        "prune_lectures",
        "can_access_lecture",
        "get_enrollment",
        "get_course_enrollment",
        "list_user_enrollments",
        "list_user_courses",
        "list_enrollments",
    ):
        setattr(service, name, AsyncMock())
    return service


@pytest.fixture
def client(
    mock_catalog_service: MagicMock, mock_enrollment_service: MagicMock
) -> Iterator[TestClient]:
    """Test client wired to mocked services; the lifespan is not run."""
    from src.catalog.dependencies import get_catalog_service
    from src.main import app

    app.dependency_overrides[get_catalog_service] = lambda: mock_catalog_service
    app.state.enrollment_service = mock_enrollment_service
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.enrollment_service = None

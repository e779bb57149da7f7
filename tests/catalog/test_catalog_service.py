"""Tests for CatalogService with a mocked Cassandra session."""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from src.catalog.models import Course, Lecture, Module
from src.catalog.schemas import (
    CreateCourseRequest,
    CreateLectureRequest,
    CreateModuleRequest,
    ModulePosition,
    ReorderModulesRequest,
    UpdateCourseRequest,
    UpdateLectureRequest,
    UpdateModuleRequest,
)
from src.catalog.service import (
    CatalogService,
    CourseNotFoundError,
    DuplicateLectureOrderError,
    DuplicateModuleNumberError,
    InvalidReorderError,
    LectureNotFoundError,
    ModuleNotFoundError,
)


KEYSPACE = "lectern_test"


class FakeResult:
    """Minimal ResultSet: iterable rows, ``one()`` and ``was_applied``."""

    def __init__(self, rows=(), applied: bool = True):
        self.rows = list(rows)
        self.was_applied = applied

    def one(self):
        return self.rows[0] if self.rows else None

    def __iter__(self):
        return iter(self.rows)


def course_row(course: Course) -> SimpleNamespace:
    return SimpleNamespace(**course.to_dict())


def module_row(module: Module) -> SimpleNamespace:
    data = module.to_dict()
    data["module_number"] = data.pop("number")
    return SimpleNamespace(**data)


def lecture_row(lecture: Lecture) -> SimpleNamespace:
    data = lecture.to_dict()
    data["lecture_order"] = data.pop("order")
    return SimpleNamespace(**data)


@pytest.fixture
def session() -> MagicMock:
    """Session whose prepared statements are the CQL strings themselves."""
    session = MagicMock()
    session.prepare.side_effect = lambda cql: cql
    session.aexecute = AsyncMock(return_value=FakeResult())
    return session


@pytest.fixture
def service(session: MagicMock) -> CatalogService:
    return CatalogService(session=session, keyspace=KEYSPACE)


def executed(session: MagicMock) -> list[tuple[str, list]]:
    return [
        (c.args[0], c.args[1] if len(c.args) > 1 else None)
        for c in session.aexecute.await_args_list
    ]


# ==============================================================================
# Courses
# ==============================================================================


class TestCourses:
    """Tests for course operations."""

    def test_prepares_in_keyspace(self, session) -> None:
        CatalogService(session=session, keyspace=KEYSPACE)
        prepared = [c.args[0] for c in session.prepare.call_args_list]
        assert all(f"{KEYSPACE}." in cql for cql in prepared)

    @pytest.mark.asyncio
    async def test_create_course(self, service, session) -> None:
        course = await service.create_course(
            CreateCourseRequest(
                title="  Python  ", description="Basics", price=Decimal("9.90")
            )
        )

        assert course.title == "Python"
        cql, params = executed(session)[0]
        assert "INSERT INTO lectern_test.courses" in cql
        assert params[0] == course.id
        assert params[3] == Decimal("9.90")

    @pytest.mark.asyncio
    async def test_get_course_missing(self, service) -> None:
        assert await service.get_course(uuid4()) is None

    @pytest.mark.asyncio
    async def test_list_courses_newest_first(self, service, session) -> None:
        old = Course(title="Old", description="d")
        new = Course(title="New", description="d")
        old.created_at = old.created_at.replace(year=2020)
        session.aexecute.return_value = FakeResult([course_row(old), course_row(new)])

        courses = await service.list_courses()

        assert [c.title for c in courses] == ["New", "Old"]

    @pytest.mark.asyncio
    async def test_update_course_partial(self, service, session) -> None:
        course = Course(title="Python", description="Basics", price=Decimal(10))
        session.aexecute.return_value = FakeResult([course_row(course)])

        updated = await service.update_course(
            course.id, UpdateCourseRequest(price=Decimal(20))
        )

        assert updated.price == Decimal(20)
        assert updated.title == "Python"
        assert updated.updated_at is not None

    @pytest.mark.asyncio
    async def test_update_course_missing(self, service) -> None:
        with pytest.raises(CourseNotFoundError):
            await service.update_course(uuid4(), UpdateCourseRequest(title="X"))

    @pytest.mark.asyncio
    async def test_delete_course_cascades(self, service, session) -> None:
        course = Course(title="Python", description="Basics")
        module = Module(course_id=course.id, number=1)
        lecture = Lecture(module_id=module.id, order=1)

        def execute(cql, params=None):
            if "FROM lectern_test.courses WHERE id" in cql:
                return FakeResult([course_row(course)])
            if "SELECT module_number, module_id" in cql:
                return FakeResult([SimpleNamespace(module_number=1, module_id=module.id)])
            if "FROM lectern_test.modules WHERE id" in cql:
                return FakeResult([module_row(module)])
            if "SELECT lecture_order, lecture_id" in cql:
                return FakeResult([SimpleNamespace(lecture_order=1, lecture_id=lecture.id)])
            if "FROM lectern_test.lectures WHERE id" in cql:
                return FakeResult([lecture_row(lecture)])
            return FakeResult()

        session.aexecute.side_effect = execute

        deleted = await service.delete_course(course.id)

        assert deleted == [lecture.id]
        statements = [cql for cql, _ in executed(session)]
        assert any(s.startswith("DELETE FROM lectern_test.lectures ") for s in statements)
        assert any(s.startswith("DELETE FROM lectern_test.modules ") for s in statements)
        assert any(s.startswith("DELETE FROM lectern_test.courses ") for s in statements)


# ==============================================================================
# Modules
# ==============================================================================


class TestModules:
    """Tests for module operations."""

    @pytest.mark.asyncio
    async def test_create_module_appends_number(self, service, session) -> None:
        course = Course(title="Python", description="Basics")
        session.aexecute.side_effect = [
            FakeResult([course_row(course)]),
            FakeResult([SimpleNamespace(module_number=2)]),
            FakeResult(applied=True),
            FakeResult(),
        ]

        module = await service.create_module(
            CreateModuleRequest(course_id=course.id, title="Advanced")
        )

        assert module.number == 3
        claim_cql, claim_params = executed(session)[2]
        assert "IF NOT EXISTS" in claim_cql
        assert claim_params == [course.id, 3, module.id]

    @pytest.mark.asyncio
    async def test_create_first_module(self, service, session) -> None:
        course = Course(title="Python", description="Basics")
        session.aexecute.side_effect = [
            FakeResult([course_row(course)]),
            FakeResult(),
            FakeResult(applied=True),
            FakeResult(),
        ]

        module = await service.create_module(
            CreateModuleRequest(course_id=course.id, title="Intro")
        )

        assert module.number == 1

    @pytest.mark.asyncio
    async def test_create_module_unknown_course(self, service) -> None:
        with pytest.raises(CourseNotFoundError):
            await service.create_module(
                CreateModuleRequest(course_id=uuid4(), title="Intro")
            )

    @pytest.mark.asyncio
    async def test_create_module_lost_race(self, service, session) -> None:
        course = Course(title="Python", description="Basics")
        session.aexecute.side_effect = [
            FakeResult([course_row(course)]),
            FakeResult([SimpleNamespace(module_number=1)]),
            FakeResult(applied=False),
        ]

        with pytest.raises(DuplicateModuleNumberError) as exc_info:
            await service.create_module(
                CreateModuleRequest(course_id=course.id, title="Intro")
            )

        assert exc_info.value.code == "duplicate_module_number"
        assert session.aexecute.await_count == 3

    @pytest.mark.asyncio
    async def test_update_module_number_taken(self, service, session) -> None:
        module = Module(course_id=uuid4(), number=1, title="Intro")
        session.aexecute.side_effect = [
            FakeResult([module_row(module)]),
            FakeResult(applied=False),
        ]

        with pytest.raises(DuplicateModuleNumberError):
            await service.update_module(module.id, UpdateModuleRequest(number=2))

    @pytest.mark.asyncio
    async def test_update_module_renumbers(self, service, session) -> None:
        module = Module(course_id=uuid4(), number=1, title="Intro")
        session.aexecute.side_effect = [
            FakeResult([module_row(module)]),
            FakeResult(applied=True),
            FakeResult(),
            FakeResult(),
        ]

        updated = await service.update_module(
            module.id, UpdateModuleRequest(number=4, title="Renamed")
        )

        assert updated.number == 4
        assert updated.title == "Renamed"
        release_cql, release_params = executed(session)[2]
        assert release_cql.strip().startswith("DELETE FROM lectern_test.modules_by_course")
        assert release_params == [module.course_id, 1]

    @pytest.mark.asyncio
    async def test_update_module_missing(self, service) -> None:
        with pytest.raises(ModuleNotFoundError):
            await service.update_module(uuid4(), UpdateModuleRequest(title="X"))

    @pytest.mark.asyncio
    async def test_find_modules_by_course_in_number_order(
        self, service, session
    ) -> None:
        course_id = uuid4()
        first = Module(course_id=course_id, number=1)
        second = Module(course_id=course_id, number=2)
        rows = {first.id: first, second.id: second}

        def execute(cql, params=None):
            if "SELECT module_number, module_id" in cql:
                return FakeResult(
                    [
                        SimpleNamespace(module_number=1, module_id=first.id),
                        SimpleNamespace(module_number=2, module_id=second.id),
                    ]
                )
            return FakeResult([module_row(rows[params[0]])])

        session.aexecute.side_effect = execute

        modules = await service.find_modules_by_course(course_id)

        assert [m.id for m in modules] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_delete_module_returns_lecture_ids(self, service, session) -> None:
        module = Module(course_id=uuid4(), number=2)
        lecture = Lecture(module_id=module.id, order=1)

        def execute(cql, params=None):
            if "FROM lectern_test.modules WHERE id" in cql:
                return FakeResult([module_row(module)])
            if "SELECT lecture_order, lecture_id" in cql:
                return FakeResult([SimpleNamespace(lecture_order=1, lecture_id=lecture.id)])
            if "FROM lectern_test.lectures WHERE id" in cql:
                return FakeResult([lecture_row(lecture)])
            return FakeResult()

        session.aexecute.side_effect = execute

        assert await service.delete_module(module.id) == [lecture.id]
        assert (
            f"DELETE FROM {KEYSPACE}.modules_by_course" in " ".join(
                cql for cql, _ in executed(session)
            )
        )


class TestReorderModules:
    """Tests for batch module renumbering."""

    @staticmethod
    def _dispatch(modules: list[Module]):
        by_id = {m.id: m for m in modules}

        def execute(cql, params=None):
            if "FROM lectern_test.modules WHERE id" in cql:
                module = by_id.get(params[0])
                return FakeResult([module_row(module)] if module else [])
            if "SELECT module_number, module_id" in cql:
                return FakeResult(
                    [
                        SimpleNamespace(module_number=m.number, module_id=m.id)
                        for m in sorted(modules, key=lambda m: m.number)
                    ]
                )
            return FakeResult()

        return execute

    @pytest.mark.asyncio
    async def test_swap(self, service, session) -> None:
        course_id = uuid4()
        a = Module(course_id=course_id, number=1, title="A")
        b = Module(course_id=course_id, number=2, title="B")
        session.aexecute.side_effect = self._dispatch([a, b])

        result = await service.reorder_modules(
            ReorderModulesRequest(
                modules=[
                    ModulePosition(id=a.id, number=2),
                    ModulePosition(id=b.id, number=1),
                ]
            )
        )

        assert [(m.title, m.number) for m in result] == [("B", 1), ("A", 2)]

    @pytest.mark.asyncio
    async def test_collision_with_untouched_module(self, service, session) -> None:
        course_id = uuid4()
        a = Module(course_id=course_id, number=1)
        b = Module(course_id=course_id, number=2)
        session.aexecute.side_effect = self._dispatch([a, b])

        with pytest.raises(InvalidReorderError):
            await service.reorder_modules(
                ReorderModulesRequest(modules=[ModulePosition(id=a.id, number=2)])
            )

    @pytest.mark.asyncio
    async def test_modules_from_different_courses(self, service, session) -> None:
        a = Module(course_id=uuid4(), number=1)
        b = Module(course_id=uuid4(), number=1)
        session.aexecute.side_effect = self._dispatch([a, b])

        with pytest.raises(InvalidReorderError):
            await service.reorder_modules(
                ReorderModulesRequest(
                    modules=[
                        ModulePosition(id=a.id, number=2),
                        ModulePosition(id=b.id, number=3),
                    ]
                )
            )

    @pytest.mark.asyncio
    async def test_unknown_module(self, service, session) -> None:
        session.aexecute.side_effect = self._dispatch([])

        with pytest.raises(ModuleNotFoundError):
            await service.reorder_modules(
                ReorderModulesRequest(modules=[ModulePosition(id=uuid4(), number=1)])
            )


# ==============================================================================
# Lectures
# ==============================================================================


class TestLectures:
    """Tests for lecture operations."""

    @pytest.mark.asyncio
    async def test_create_lecture_appends_order(self, service, session) -> None:
        module = Module(course_id=uuid4(), number=1)
        session.aexecute.side_effect = [
            FakeResult([module_row(module)]),
            FakeResult([SimpleNamespace(lecture_order=1)]),
            FakeResult(applied=True),
            FakeResult(),
        ]

        lecture = await service.create_lecture(
            CreateLectureRequest(module_id=module.id, title="Loops", video_url="v.mp4")
        )

        assert lecture.order == 2
        assert executed(session)[2][1] == [module.id, 2, lecture.id]

    @pytest.mark.asyncio
    async def test_create_lecture_unknown_module(self, service) -> None:
        with pytest.raises(ModuleNotFoundError):
            await service.create_lecture(
                CreateLectureRequest(module_id=uuid4(), title="Loops", video_url="v")
            )

    @pytest.mark.asyncio
    async def test_update_lecture_order_taken(self, service, session) -> None:
        lecture = Lecture(module_id=uuid4(), order=1, title="Loops", video_url="v")
        session.aexecute.side_effect = [
            FakeResult([lecture_row(lecture)]),
            FakeResult(applied=False),
        ]

        with pytest.raises(DuplicateLectureOrderError) as exc_info:
            await service.update_lecture(lecture.id, UpdateLectureRequest(order=2))
        assert exc_info.value.code == "duplicate_lecture_order"

    @pytest.mark.asyncio
    async def test_update_lecture_fields(self, service, session) -> None:
        lecture = Lecture(module_id=uuid4(), order=1, title="Loops", video_url="v")
        session.aexecute.return_value = FakeResult([lecture_row(lecture)])

        updated = await service.update_lecture(
            lecture.id, UpdateLectureRequest(video_url="w.mp4")
        )

        assert updated.video_url == "w.mp4"
        assert updated.order == 1

    @pytest.mark.asyncio
    async def test_delete_lecture_missing(self, service) -> None:
        with pytest.raises(LectureNotFoundError):
            await service.delete_lecture(uuid4())

    @pytest.mark.asyncio
    async def test_delete_lecture_releases_position(self, service, session) -> None:
        lecture = Lecture(module_id=uuid4(), order=3)
        session.aexecute.return_value = FakeResult([lecture_row(lecture)])

        deleted = await service.delete_lecture(lecture.id)

        assert deleted.id == lecture.id
        cql, params = executed(session)[1]
        assert "lectures_by_module" in cql
        assert params == [lecture.module_id, 3]

    @pytest.mark.asyncio
    async def test_count_lectures_in_modules(self, service, session) -> None:
        session.aexecute.side_effect = [
            FakeResult([SimpleNamespace(total=2)]),
            FakeResult([SimpleNamespace(total=3)]),
        ]

        assert await service.count_lectures_in_modules([uuid4(), uuid4()]) == 5

    @pytest.mark.asyncio
    async def test_count_lectures_no_modules(self, service, session) -> None:
        assert await service.count_lectures_in_modules([]) == 0
        session.aexecute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_find_lecture_by_module_and_order(self, service, session) -> None:
        lecture = Lecture(module_id=uuid4(), order=2)
        session.aexecute.side_effect = [
            FakeResult([SimpleNamespace(lecture_id=lecture.id)]),
            FakeResult([lecture_row(lecture)]),
        ]

        found = await service.find_lecture_by_module_and_order(lecture.module_id, 2)

        assert found.id == lecture.id
        assert executed(session)[0][1] == [lecture.module_id, 2]

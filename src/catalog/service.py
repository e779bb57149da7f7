"""Course catalog service layer.

Business logic for:
- Course CRUD
- Module CRUD with automatic numbering and renumbering
- Lecture CRUD with automatic ordering
- Cascade deletes inside the catalog
- The CatalogStore lookups used by the learning-path engine
"""

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from src.catalog.models import Course, Lecture, Module
from src.catalog.schemas import (
    CreateCourseRequest,
    CreateLectureRequest,
    CreateModuleRequest,
    ReorderModulesRequest,
    UpdateCourseRequest,
    UpdateLectureRequest,
    UpdateModuleRequest,
)
from src.catalog.store import flatten_outline, load_course_outline


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CatalogError(Exception):
    """Base catalog error."""

    def __init__(self, message: str, code: str = "catalog_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CourseNotFoundError(CatalogError):
    """Course not found."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class ModuleNotFoundError(CatalogError):
    """Module not found."""

    def __init__(self, message: str = "Module not found"):
        super().__init__(message, "module_not_found")


class LectureNotFoundError(CatalogError):
    """Lecture not found."""

    def __init__(self, message: str = "Lecture not found"):
        super().__init__(message, "lecture_not_found")


class DuplicateModuleNumberError(CatalogError):
    """Module number already taken in the course."""

    def __init__(self, message: str = "Module number already exists in this course"):
        super().__init__(message, "duplicate_module_number")


class DuplicateLectureOrderError(CatalogError):
    """Lecture order already taken in the module."""

    def __init__(self, message: str = "Lecture order already exists in this module"):
        super().__init__(message, "duplicate_lecture_order")


class InvalidReorderError(CatalogError):
    """Reorder request does not describe a consistent numbering."""

    def __init__(self, message: str = "Invalid module reorder"):
        super().__init__(message, "invalid_reorder")


# ==============================================================================
# Catalog Service
# ==============================================================================


class CatalogService:
    """Service for courses, modules and lectures."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        # Courses
        self._get_course_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses WHERE id = ?"
        )
        self._get_all_courses = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses"
        )
        self._insert_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.courses
            (id, title, description, price, thumbnail_url, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)
        self._update_course = self.session.prepare(f"""
            UPDATE {self.keyspace}.courses
            SET title = ?, description = ?, price = ?, thumbnail_url = ?, updated_at = ?
            WHERE id = ?
        """)
        self._delete_course = self.session.prepare(
            f"DELETE FROM {self.keyspace}.courses WHERE id = ?"
        )

        # Modules
        self._get_module_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.modules WHERE id = ?"
        )
        self._insert_module = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.modules
            (id, course_id, title, module_number, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """)
        self._update_module = self.session.prepare(f"""
            UPDATE {self.keyspace}.modules
            SET title = ?, module_number = ?, updated_at = ?
            WHERE id = ?
        """)
        self._delete_module = self.session.prepare(
            f"DELETE FROM {self.keyspace}.modules WHERE id = ?"
        )

        # Module positions
        self._get_module_positions = self.session.prepare(f"""
            SELECT module_number, module_id FROM {self.keyspace}.modules_by_course
            WHERE course_id = ?
        """)
        self._get_module_at_position = self.session.prepare(f"""
            SELECT module_id FROM {self.keyspace}.modules_by_course
            WHERE course_id = ? AND module_number = ?
        """)
        self._get_last_module_position = self.session.prepare(f"""
            SELECT module_number FROM {self.keyspace}.modules_by_course
            WHERE course_id = ? ORDER BY module_number DESC LIMIT 1
        """)
        self._claim_module_position = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.modules_by_course
            (course_id, module_number, module_id)
            VALUES (?, ?, ?)
            IF NOT EXISTS
        """)
        self._insert_module_position = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.modules_by_course
            (course_id, module_number, module_id)
            VALUES (?, ?, ?)
        """)
        self._delete_module_position = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.modules_by_course
            WHERE course_id = ? AND module_number = ?
        """)
        self._delete_course_module_positions = self.session.prepare(
            f"DELETE FROM {self.keyspace}.modules_by_course WHERE course_id = ?"
        )

        # Lectures
        self._get_lecture_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.lectures WHERE id = ?"
        )
        self._insert_lecture = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.lectures
            (id, module_id, title, lecture_order, video_url, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)
        self._update_lecture = self.session.prepare(f"""
            UPDATE {self.keyspace}.lectures
            SET title = ?, lecture_order = ?, video_url = ?, updated_at = ?
            WHERE id = ?
        """)
        self._delete_lecture = self.session.prepare(
            f"DELETE FROM {self.keyspace}.lectures WHERE id = ?"
        )

        # Lecture positions
        self._get_lecture_positions = self.session.prepare(f"""
            SELECT lecture_order, lecture_id FROM {self.keyspace}.lectures_by_module
            WHERE module_id = ?
        """)
        self._get_lecture_at_position = self.session.prepare(f"""
            SELECT lecture_id FROM {self.keyspace}.lectures_by_module
            WHERE module_id = ? AND lecture_order = ?
        """)
        self._get_last_lecture_position = self.session.prepare(f"""
            SELECT lecture_order FROM {self.keyspace}.lectures_by_module
            WHERE module_id = ? ORDER BY lecture_order DESC LIMIT 1
        """)
        self._count_module_lectures = self.session.prepare(f"""
            SELECT COUNT(*) AS total FROM {self.keyspace}.lectures_by_module
            WHERE module_id = ?
        """)
        self._claim_lecture_position = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.lectures_by_module
            (module_id, lecture_order, lecture_id)
            VALUES (?, ?, ?)
            IF NOT EXISTS
        """)
        self._delete_lecture_position = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.lectures_by_module
            WHERE module_id = ? AND lecture_order = ?
        """)
        self._delete_module_lecture_positions = self.session.prepare(
            f"DELETE FROM {self.keyspace}.lectures_by_module WHERE module_id = ?"
        )

    # ==========================================================================
    # Course Operations
    # ==========================================================================

    async def create_course(self, data: CreateCourseRequest) -> Course:
        """Create a new course."""
        course = Course(
            title=data.title,
            description=data.description,
            price=data.price,
            thumbnail_url=data.thumbnail_url,
        )

        await self.session.aexecute(
            self._insert_course,
            [
                course.id,
                course.title,
                course.description,
                course.price,
                course.thumbnail_url,
                course.created_at,
                course.updated_at,
            ],
        )

        logger.info("course_created", course_id=str(course.id), title=course.title)
        return course

    async def get_course(self, course_id: UUID) -> Course | None:
        """Get course by ID."""
        result = await self.session.aexecute(self._get_course_by_id, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def list_courses(self) -> list[Course]:
        """List all courses, newest first.

        Note: Full table scan; the catalog is expected to stay small.
        """
        rows = await self.session.aexecute(self._get_all_courses)
        courses = [Course.from_row(row) for row in rows]
        return sorted(courses, key=lambda c: c.created_at, reverse=True)

    async def update_course(self, course_id: UUID, data: UpdateCourseRequest) -> Course:
        """Update course fields that are present in the request.

        Raises:
            CourseNotFoundError: If course doesn't exist
        """
        course = await self.get_course(course_id)
        if not course:
            raise CourseNotFoundError

        if data.title is not None:
            course.title = data.title.strip()
        if data.description is not None:
            course.description = data.description.strip()
        if data.price is not None:
            course.price = data.price
        if data.thumbnail_url is not None:
            course.thumbnail_url = data.thumbnail_url

        course.updated_at = datetime.now(UTC)

        await self.session.aexecute(
            self._update_course,
            [
                course.title,
                course.description,
                course.price,
                course.thumbnail_url,
                course.updated_at,
                course.id,
            ],
        )

        return course

    async def delete_course(self, course_id: UUID) -> list[UUID]:
        """Delete a course with all of its modules and lectures.

        Enrollments are not part of the catalog; the caller removes them.

        Returns:
            IDs of the lectures that were deleted

        Raises:
            CourseNotFoundError: If course doesn't exist
        """
        course = await self.get_course(course_id)
        if not course:
            raise CourseNotFoundError

        deleted_lectures: list[UUID] = []
        for module in await self.find_modules_by_course(course_id):
            deleted_lectures += await self._delete_module_contents(module)
            await self.session.aexecute(self._delete_module, [module.id])

        await self.session.aexecute(self._delete_course_module_positions, [course_id])
        await self.session.aexecute(self._delete_course, [course_id])

        logger.info(
            "course_deleted",
            course_id=str(course_id),
            lectures_deleted=len(deleted_lectures),
        )
        return deleted_lectures

    # ==========================================================================
    # Module Operations
    # ==========================================================================

    async def create_module(self, data: CreateModuleRequest) -> Module:
        """Create a module at the end of its course.

        Raises:
            CourseNotFoundError: If course doesn't exist
            DuplicateModuleNumberError: If a concurrent create took the number
        """
        if not await self.get_course(data.course_id):
            raise CourseNotFoundError

        result = await self.session.aexecute(
            self._get_last_module_position, [data.course_id]
        )
        last = result.one()
        module = Module(
            course_id=data.course_id,
            number=last.module_number + 1 if last else 1,
            title=data.title,
        )

        await self._claim_module_number(module.course_id, module.number, module.id)
        await self._save_module(module, insert=True)

        logger.info(
            "module_created",
            module_id=str(module.id),
            course_id=str(module.course_id),
            number=module.number,
        )
        return module

    async def get_module(self, module_id: UUID) -> Module | None:
        """Get module by ID."""
        result = await self.session.aexecute(self._get_module_by_id, [module_id])
        row = result.one()
        return Module.from_row(row) if row else None

    async def find_modules_by_course(self, course_id: UUID) -> list[Module]:
        """Modules of a course by ascending number."""
        rows = await self.session.aexecute(self._get_module_positions, [course_id])
        modules = []
        for row in rows:
            module = await self.get_module(row.module_id)
            if module:
                modules.append(module)
        return modules

    async def find_module_by_course_and_number(
        self, course_id: UUID, number: int
    ) -> Module | None:
        """Module at an exact number in a course."""
        result = await self.session.aexecute(
            self._get_module_at_position, [course_id, number]
        )
        row = result.one()
        return await self.get_module(row.module_id) if row else None

    async def update_module(self, module_id: UUID, data: UpdateModuleRequest) -> Module:
        """Update module title and/or number.

        Raises:
            ModuleNotFoundError: If module doesn't exist
            DuplicateModuleNumberError: If the new number is taken
        """
        module = await self.get_module(module_id)
        if not module:
            raise ModuleNotFoundError

        if data.number is not None and data.number != module.number:
            await self._claim_module_number(module.course_id, data.number, module.id)
            await self.session.aexecute(
                self._delete_module_position, [module.course_id, module.number]
            )
            module.number = data.number

        if data.title is not None:
            module.title = data.title.strip()

        module.updated_at = datetime.now(UTC)
        await self._save_module(module)
        return module

    async def reorder_modules(self, data: ReorderModulesRequest) -> list[Module]:
        """Renumber several modules of one course at once.

        Modules not named in the request keep their numbers; the final
        numbering must still be unique.

        Raises:
            ModuleNotFoundError: If a module doesn't exist
            InvalidReorderError: If modules span courses or numbers collide
        """
        modules: list[Module] = []
        for position in data.modules:
            module = await self.get_module(position.id)
            if not module:
                raise ModuleNotFoundError
            modules.append(module)

        course_ids = {m.course_id for m in modules}
        if len(course_ids) != 1:
            raise InvalidReorderError("All modules must belong to the same course")
        course_id = course_ids.pop()

        targets = {p.id: p.number for p in data.modules}
        untouched = {
            m.number
            for m in await self.find_modules_by_course(course_id)
            if m.id not in targets
        }
        if untouched & set(targets.values()):
            raise InvalidReorderError(
                "Module numbers collide with modules outside the request"
            )

        for module in modules:
            await self.session.aexecute(
                self._delete_module_position, [course_id, module.number]
            )

        now = datetime.now(UTC)
        for module in modules:
            module.number = targets[module.id]
            module.updated_at = now
            await self.session.aexecute(
                self._insert_module_position, [course_id, module.number, module.id]
            )
            await self._save_module(module)

        logger.info(
            "modules_reordered", course_id=str(course_id), modules=len(modules)
        )
        return sorted(modules, key=lambda m: m.number)

    async def delete_module(self, module_id: UUID) -> list[UUID]:
        """Delete a module and its lectures.

        Returns:
            IDs of the lectures that were deleted

        Raises:
            ModuleNotFoundError: If module doesn't exist
        """
        module = await self.get_module(module_id)
        if not module:
            raise ModuleNotFoundError

        deleted_lectures = await self._delete_module_contents(module)
        await self.session.aexecute(
            self._delete_module_position, [module.course_id, module.number]
        )
        await self.session.aexecute(self._delete_module, [module.id])

        logger.info(
            "module_deleted",
            module_id=str(module_id),
            course_id=str(module.course_id),
            lectures_deleted=len(deleted_lectures),
        )
        return deleted_lectures

    async def _delete_module_contents(self, module: Module) -> list[UUID]:
        lectures = await self.find_lectures_by_module(module.id)
        for lecture in lectures:
            await self.session.aexecute(self._delete_lecture, [lecture.id])
        await self.session.aexecute(self._delete_module_lecture_positions, [module.id])
        return [lecture.id for lecture in lectures]

    async def _claim_module_number(
        self, course_id: UUID, number: int, module_id: UUID
    ) -> None:
        result = await self.session.aexecute(
            self._claim_module_position, [course_id, number, module_id]
        )
        if not result.was_applied:
            raise DuplicateModuleNumberError

    async def _save_module(self, module: Module, insert: bool = False) -> None:
        if insert:
            await self.session.aexecute(
                self._insert_module,
                [
                    module.id,
                    module.course_id,
                    module.title,
                    module.number,
                    module.created_at,
                    module.updated_at,
                ],
            )
            return

        await self.session.aexecute(
            self._update_module,
            [module.title, module.number, module.updated_at, module.id],
        )

    # ==========================================================================
    # Lecture Operations
    # ==========================================================================

    async def create_lecture(self, data: CreateLectureRequest) -> Lecture:
        """Create a lecture at the end of its module.

        Raises:
            ModuleNotFoundError: If module doesn't exist
            DuplicateLectureOrderError: If a concurrent create took the order
        """
        if not await self.get_module(data.module_id):
            raise ModuleNotFoundError

        result = await self.session.aexecute(
            self._get_last_lecture_position, [data.module_id]
        )
        last = result.one()
        lecture = Lecture(
            module_id=data.module_id,
            order=last.lecture_order + 1 if last else 1,
            title=data.title,
            video_url=data.video_url,
        )

        await self._claim_lecture_order(lecture.module_id, lecture.order, lecture.id)
        await self.session.aexecute(
            self._insert_lecture,
            [
                lecture.id,
                lecture.module_id,
                lecture.title,
                lecture.order,
                lecture.video_url,
                lecture.created_at,
                lecture.updated_at,
            ],
        )

        logger.info(
            "lecture_created",
            lecture_id=str(lecture.id),
            module_id=str(lecture.module_id),
            order=lecture.order,
        )
        return lecture

    async def get_lecture(self, lecture_id: UUID) -> Lecture | None:
        """Get lecture by ID."""
        result = await self.session.aexecute(self._get_lecture_by_id, [lecture_id])
        row = result.one()
        return Lecture.from_row(row) if row else None

    async def find_lectures_by_module(self, module_id: UUID) -> list[Lecture]:
        """Lectures of a module by ascending order."""
        rows = await self.session.aexecute(self._get_lecture_positions, [module_id])
        lectures = []
        for row in rows:
            lecture = await self.get_lecture(row.lecture_id)
            if lecture:
                lectures.append(lecture)
        return lectures

    async def find_lecture_by_module_and_order(
        self, module_id: UUID, order: int
    ) -> Lecture | None:
        """Lecture at an exact order in a module."""
        result = await self.session.aexecute(
            self._get_lecture_at_position, [module_id, order]
        )
        row = result.one()
        return await self.get_lecture(row.lecture_id) if row else None

    async def count_lectures_in_modules(self, module_ids: Iterable[UUID]) -> int:
        """Total number of lectures across the given modules."""
        total = 0
        for module_id in module_ids:
            result = await self.session.aexecute(
                self._count_module_lectures, [module_id]
            )
            row = result.one()
            total += row.total if row else 0
        return total

    async def list_lectures(
        self,
        course_id: UUID | None = None,
        module_id: UUID | None = None,
    ) -> list[Lecture]:
        """List lectures in traversal order.

        ``module_id`` takes precedence over ``course_id``; without either
        filter every course is walked.
        """
        if module_id is not None:
            return await self.find_lectures_by_module(module_id)

        course_ids = (
            [course_id]
            if course_id is not None
            else [c.id for c in await self.list_courses()]
        )
        lectures: list[Lecture] = []
        for cid in course_ids:
            lectures += flatten_outline(await load_course_outline(self, cid))
        return lectures

    async def update_lecture(
        self, lecture_id: UUID, data: UpdateLectureRequest
    ) -> Lecture:
        """Update lecture title, order and/or video URL.

        Raises:
            LectureNotFoundError: If lecture doesn't exist
            DuplicateLectureOrderError: If the new order is taken
        """
        lecture = await self.get_lecture(lecture_id)
        if not lecture:
            raise LectureNotFoundError

        if data.order is not None and data.order != lecture.order:
            await self._claim_lecture_order(lecture.module_id, data.order, lecture.id)
            await self.session.aexecute(
                self._delete_lecture_position, [lecture.module_id, lecture.order]
            )
            lecture.order = data.order

        if data.title is not None:
            lecture.title = data.title.strip()
        if data.video_url is not None:
            lecture.video_url = data.video_url.strip()

        lecture.updated_at = datetime.now(UTC)

        await self.session.aexecute(
            self._update_lecture,
            [
                lecture.title,
                lecture.order,
                lecture.video_url,
                lecture.updated_at,
                lecture.id,
            ],
        )
        return lecture

    async def delete_lecture(self, lecture_id: UUID) -> Lecture:
        """Delete a lecture.

        Returns:
            The deleted lecture

        Raises:
            LectureNotFoundError: If lecture doesn't exist
        """
        lecture = await self.get_lecture(lecture_id)
        if not lecture:
            raise LectureNotFoundError

        await self.session.aexecute(
            self._delete_lecture_position, [lecture.module_id, lecture.order]
        )
        await self.session.aexecute(self._delete_lecture, [lecture.id])

        logger.info(
            "lecture_deleted",
            lecture_id=str(lecture_id),
            module_id=str(lecture.module_id),
        )
        return lecture

    async def _claim_lecture_order(
        self, module_id: UUID, order: int, lecture_id: UUID
    ) -> None:
        result = await self.session.aexecute(
            self._claim_lecture_position, [module_id, order, lecture_id]
        )
        if not result.was_applied:
            raise DuplicateLectureOrderError

    # ==========================================================================
    # Detail Views
    # ==========================================================================

    async def get_course_outline(self, course_id: UUID):
        """Modules of a course with their lectures, in traversal order."""
        return await load_course_outline(self, course_id)

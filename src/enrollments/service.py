"""Enrollment service layer.

Business logic for:
- Enrolling users with the first lecture unlocked
- Completing lectures, unlocking the next one and recomputing progress
- Progress recalculation and admin reset
- Lecture access checks
- Cascades from catalog deletions (course removal, lecture pruning)
"""

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from src.catalog.models import Course, Lecture
from src.catalog.store import CatalogStore, CourseOutline, load_course_outline
from src.enrollments.models import Enrollment
from src.enrollments.progress import ProgressCalculator
from src.enrollments.unlock import UnlockEngine


if TYPE_CHECKING:
    from src.enrollments.repository import EnrollmentRepository


logger = structlog.get_logger(__name__)

# Attempts for cascade updates that race with user writes
CASCADE_MAX_ATTEMPTS = 3


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class EnrollmentError(Exception):
    """Base enrollment error."""

    def __init__(self, message: str, code: str = "enrollment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class EnrollmentNotFoundError(EnrollmentError):
    """Enrollment not found."""

    def __init__(self, message: str = "Enrollment not found"):
        super().__init__(message, "enrollment_not_found")


class CourseNotFoundError(EnrollmentError):
    """Course not found."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class LectureNotFoundError(EnrollmentError):
    """Lecture not found (or not part of the enrollment's course)."""

    def __init__(self, message: str = "Lecture not found"):
        super().__init__(message, "lecture_not_found")


class AlreadyEnrolledError(EnrollmentError):
    """User already enrolled in the course."""

    def __init__(self, message: str = "Already enrolled in this course"):
        super().__init__(message, "already_enrolled")


class EnrollmentForbiddenError(EnrollmentError):
    """Actor is neither the enrollment owner nor an admin."""

    def __init__(self, message: str = "Not authorized to access this enrollment"):
        super().__init__(message, "not_enrollment_owner")


class NotEnrolledError(EnrollmentError):
    """User is not enrolled in the lecture's course."""

    def __init__(self, message: str = "Not enrolled in this course"):
        super().__init__(message, "not_enrolled")


class LectureLockedError(EnrollmentError):
    """Lecture has not been unlocked yet."""

    def __init__(self, message: str = "Lecture not unlocked"):
        super().__init__(message, "lecture_locked")


class ConcurrentUpdateError(EnrollmentError):
    """Enrollment changed since it was read; the request can be retried."""

    def __init__(self, message: str = "Enrollment was modified concurrently, retry"):
        super().__init__(message, "concurrent_update")


# ==============================================================================
# Enrollment Service
# ==============================================================================


class EnrollmentService:
    """Service for the enrollment lifecycle."""

    def __init__(
        self,
        repository: "EnrollmentRepository",
        catalog: CatalogStore,
        unlock_engine: UnlockEngine | None = None,
        calculator: ProgressCalculator | None = None,
    ):
        self.repository = repository
        self.catalog = catalog
        self.unlock_engine = unlock_engine or UnlockEngine(catalog)
        self.calculator = calculator or ProgressCalculator(catalog)

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def enroll(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Enroll a user with the first lecture of the course unlocked.

        Raises:
            CourseNotFoundError: If course doesn't exist
            AlreadyEnrolledError: If user already enrolled
        """
        if not await self.catalog.get_course(course_id):
            raise CourseNotFoundError

        if await self.repository.get_by_user_course(user_id, course_id):
            raise AlreadyEnrolledError

        first = await self.unlock_engine.first_lecture(course_id)
        enrollment = Enrollment(
            user_id=user_id,
            course_id=course_id,
            unlocked={first.id} if first else set(),
        )
        await self.repository.create(enrollment)

        logger.info(
            "enrollment_created",
            enrollment_id=str(enrollment.id),
            user_id=str(user_id),
            course_id=str(course_id),
            first_lecture_id=str(first.id) if first else None,
        )
        return enrollment

    async def complete_lecture(
        self,
        enrollment_id: UUID,
        lecture_id: UUID,
        actor_id: UUID,
        is_admin: bool = False,
    ) -> Enrollment:
        """Mark a lecture completed, unlock its successor and update progress.

        Completing an already completed lecture changes nothing.

        Raises:
            LectureNotFoundError: If lecture doesn't exist or is not part of
                the enrollment's course
            EnrollmentNotFoundError: If enrollment doesn't exist
            EnrollmentForbiddenError: If actor is not owner or admin
            ConcurrentUpdateError: If the enrollment changed meanwhile
        """
        lecture = await self.catalog.get_lecture(lecture_id)
        if not lecture:
            raise LectureNotFoundError

        enrollment = await self._get_authorized(enrollment_id, actor_id, is_admin)

        if await self._course_of(lecture) != enrollment.course_id:
            raise LectureNotFoundError("Lecture not found in this course")

        if enrollment.is_completed(lecture.id):
            return enrollment

        enrollment.completed.add(lecture.id)
        following = await self.unlock_engine.unlock_next(enrollment, lecture.id)
        await self.calculator.apply(enrollment)
        await self.repository.save(enrollment)

        logger.info(
            "lecture_completed",
            enrollment_id=str(enrollment.id),
            lecture_id=str(lecture.id),
            next_lecture_id=str(following.id) if following else None,
            progress=enrollment.progress,
        )
        return enrollment

    async def complete_lecture_for_user(
        self, user_id: UUID, lecture_id: UUID
    ) -> Enrollment:
        """Complete a lecture in the user's own enrollment for its course.

        Raises:
            LectureNotFoundError: If lecture doesn't exist
            NotEnrolledError: If user has no enrollment in the course
        """
        lecture = await self.catalog.get_lecture(lecture_id)
        if not lecture:
            raise LectureNotFoundError

        enrollment = await self._require_enrollment(user_id, lecture)
        return await self.complete_lecture(enrollment.id, lecture_id, user_id)

    async def recalculate_progress(
        self,
        enrollment_id: UUID,
        actor_id: UUID,
        is_admin: bool = False,
    ) -> Enrollment:
        """Recompute progress against the current catalog and persist it."""
        enrollment = await self._get_authorized(enrollment_id, actor_id, is_admin)
        await self.calculator.apply(enrollment)
        await self.repository.save(enrollment)

        logger.info(
            "progress_recalculated",
            enrollment_id=str(enrollment.id),
            progress=enrollment.progress,
        )
        return enrollment

    async def reset_progress(self, enrollment_id: UUID) -> Enrollment:
        """Clear completions and unlock only the first lecture again.

        Privileged operation; callers must check admin rights.
        """
        enrollment = await self.repository.get(enrollment_id)
        if not enrollment:
            raise EnrollmentNotFoundError

        first = await self.unlock_engine.first_lecture(enrollment.course_id)
        enrollment.progress = 0
        enrollment.completed = set()
        enrollment.unlocked = {first.id} if first else set()
        await self.repository.save(enrollment)

        logger.info("enrollment_reset", enrollment_id=str(enrollment.id))
        return enrollment

    async def delete_enrollment(
        self,
        enrollment_id: UUID,
        actor_id: UUID,
        is_admin: bool = False,
    ) -> None:
        """Delete an enrollment (owner or admin)."""
        enrollment = await self._get_authorized(enrollment_id, actor_id, is_admin)
        await self.repository.delete(enrollment)

        logger.info(
            "enrollment_deleted",
            enrollment_id=str(enrollment.id),
            user_id=str(enrollment.user_id),
            course_id=str(enrollment.course_id),
        )

    # ==========================================================================
    # Catalog Cascades
    # ==========================================================================

    async def remove_course_enrollments(self, course_id: UUID) -> int:
        """Delete every enrollment in a course.

        Returns:
            Number of enrollments deleted
        """
        enrollments = await self.repository.list_by_course(course_id)
        for enrollment in enrollments:
            await self.repository.delete(enrollment)

        logger.info(
            "course_enrollments_removed",
            course_id=str(course_id),
            count=len(enrollments),
        )
        return len(enrollments)

    async def prune_lectures(self, course_id: UUID, lecture_ids: list[UUID]) -> int:
        """Drop deleted lectures from every enrollment in a course.

        Progress is recomputed for all of them since the lecture total
        changed. An enrollment left with nothing unlocked gets the current
        first lecture.

        Returns:
            Number of enrollments updated
        """
        removed = set(lecture_ids)
        enrollments = await self.repository.list_by_course(course_id)
        first = await self.unlock_engine.first_lecture(course_id)

        updated = 0
        for enrollment in enrollments:
            if await self._prune_one(enrollment, removed, first):
                updated += 1

        logger.info(
            "lectures_pruned",
            course_id=str(course_id),
            lectures=len(removed),
            enrollments_updated=updated,
        )
        return updated

    async def _prune_one(
        self, enrollment: Enrollment, removed: set[UUID], first: Lecture | None
    ) -> bool:
        for attempt in range(1, CASCADE_MAX_ATTEMPTS + 1):
            before = (enrollment.progress, set(enrollment.completed), set(enrollment.unlocked))

            enrollment.completed -= removed
            enrollment.unlocked -= removed
            if not enrollment.unlocked and first:
                enrollment.unlocked.add(first.id)
            await self.calculator.apply(enrollment)

            if before == (enrollment.progress, enrollment.completed, enrollment.unlocked):
                return False

            try:
                await self.repository.save(enrollment)
            except ConcurrentUpdateError:
                if attempt == CASCADE_MAX_ATTEMPTS:
                    raise
                logger.warning(
                    "prune_retry", enrollment_id=str(enrollment.id), attempt=attempt
                )
                fresh = await self.repository.get(enrollment.id)
                if not fresh:
                    return False
                enrollment = fresh
            else:
                return True
        return False

    # ==========================================================================
    # Access
    # ==========================================================================

    async def can_access_lecture(
        self, user_id: UUID, is_admin: bool, lecture_id: UUID
    ) -> Lecture:
        """Return the lecture if the user may watch it.

        Admins may access any lecture; others need an enrollment in the
        lecture's course in which the lecture is unlocked.

        Raises:
            LectureNotFoundError: If lecture doesn't exist
            NotEnrolledError: If user is not enrolled in the course
            LectureLockedError: If lecture is not unlocked
        """
        lecture = await self.catalog.get_lecture(lecture_id)
        if not lecture:
            raise LectureNotFoundError

        if is_admin:
            return lecture

        enrollment = await self._require_enrollment(user_id, lecture)
        if not enrollment.is_unlocked(lecture.id):
            raise LectureLockedError

        return lecture

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get_enrollment(
        self,
        enrollment_id: UUID,
        actor_id: UUID,
        is_admin: bool = False,
    ) -> Enrollment:
        """Get enrollment by ID (owner or admin)."""
        return await self._get_authorized(enrollment_id, actor_id, is_admin)

    async def get_course_enrollment(
        self, user_id: UUID, course_id: UUID
    ) -> tuple[Enrollment, Course, CourseOutline]:
        """User's enrollment in a course together with the course outline.

        Raises:
            EnrollmentNotFoundError: If user is not enrolled
            CourseNotFoundError: If course no longer exists
        """
        enrollment = await self.repository.get_by_user_course(user_id, course_id)
        if not enrollment:
            raise EnrollmentNotFoundError

        course = await self.catalog.get_course(course_id)
        if not course:
            raise CourseNotFoundError

        return enrollment, course, await load_course_outline(self.catalog, course_id)

    async def list_user_enrollments(self, user_id: UUID) -> list[Enrollment]:
        """User's enrollments, newest first."""
        return await self.repository.list_by_user(user_id)

    async def list_user_courses(
        self, user_id: UUID
    ) -> list[tuple[Enrollment, Course]]:
        """Courses the user is enrolled in, paired with the enrollment."""
        pairs = []
        for enrollment in await self.repository.list_by_user(user_id):
            course = await self.catalog.get_course(enrollment.course_id)
            if course:
                pairs.append((enrollment, course))
        return pairs

    async def list_enrollments(
        self,
        course_id: UUID | None = None,
        user_id: UUID | None = None,
    ) -> list[Enrollment]:
        """Admin listing with optional course and user filters."""
        if course_id and user_id:
            enrollment = await self.repository.get_by_user_course(user_id, course_id)
            return [enrollment] if enrollment else []
        if course_id:
            return await self.repository.list_by_course(course_id)
        if user_id:
            return await self.repository.list_by_user(user_id)
        return await self.repository.list_all()

    # ==========================================================================
    # Helpers
    # ==========================================================================

    async def _get_authorized(
        self, enrollment_id: UUID, actor_id: UUID, is_admin: bool
    ) -> Enrollment:
        enrollment = await self.repository.get(enrollment_id)
        if not enrollment:
            raise EnrollmentNotFoundError

        if not is_admin and not enrollment.is_owned_by(actor_id):
            raise EnrollmentForbiddenError

        return enrollment

    async def _course_of(self, lecture: Lecture) -> UUID | None:
        module = await self.catalog.get_module(lecture.module_id)
        return module.course_id if module else None

    async def _require_enrollment(self, user_id: UUID, lecture: Lecture) -> Enrollment:
        course_id = await self._course_of(lecture)
        if course_id is None:
            raise LectureNotFoundError

        enrollment = await self.repository.get_by_user_course(user_id, course_id)
        if not enrollment:
            raise NotEnrolledError
        return enrollment

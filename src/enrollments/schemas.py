"""Pydantic schemas for enrollments.

Request and response models for:
- Enrolling and enrollment state
- Course outline annotated with unlock/completion flags
- Enrolled courses with progress
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.catalog.models import Course, Lecture, Module
from src.catalog.store import CourseOutline
from src.enrollments.models import Enrollment


# ==============================================================================
# Request Schemas
# ==============================================================================


class EnrollRequest(BaseModel):
    """Enroll in a course."""

    course_id: UUID = Field(..., description="Course to enroll in")


# ==============================================================================
# Response Schemas
# ==============================================================================


class EnrollmentResponse(BaseModel):
    """Enrollment state."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    course_id: UUID
    progress: int = Field(..., ge=0, le=100)
    completed: list[UUID]
    unlocked: list[UUID]
    version: int
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, enrollment: Enrollment) -> "EnrollmentResponse":
        """Create response from entity. Sets are returned sorted."""
        return cls(
            id=enrollment.id,
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            progress=enrollment.progress,
            completed=sorted(enrollment.completed, key=str),
            unlocked=sorted(enrollment.unlocked, key=str),
            version=enrollment.version,
            created_at=enrollment.created_at,
            updated_at=enrollment.updated_at,
        )


class EnrollmentListResponse(BaseModel):
    """Enrollment list response."""

    items: list[EnrollmentResponse]
    total: int


class ProgressResponse(BaseModel):
    """Recalculated progress."""

    enrollment_id: UUID
    progress: int


class OutlineLectureResponse(BaseModel):
    """Lecture in an enrollment outline."""

    id: UUID
    title: str
    order: int
    unlocked: bool
    completed: bool
    video_url: str | None = None

    @classmethod
    def from_entity(
        cls, lecture: Lecture, enrollment: Enrollment
    ) -> "OutlineLectureResponse":
        """Build with flags; the video URL is only shown once unlocked."""
        unlocked = enrollment.is_unlocked(lecture.id)
        return cls(
            id=lecture.id,
            title=lecture.title,
            order=lecture.order,
            unlocked=unlocked,
            completed=enrollment.is_completed(lecture.id),
            video_url=lecture.video_url if unlocked else None,
        )


class OutlineModuleResponse(BaseModel):
    """Module in an enrollment outline."""

    id: UUID
    title: str
    number: int
    lectures: list[OutlineLectureResponse]

    @classmethod
    def from_entities(
        cls, module: Module, lectures: list[Lecture], enrollment: Enrollment
    ) -> "OutlineModuleResponse":
        return cls(
            id=module.id,
            title=module.title,
            number=module.number,
            lectures=[
                OutlineLectureResponse.from_entity(lec, enrollment) for lec in lectures
            ],
        )


class EnrollmentDetailResponse(EnrollmentResponse):
    """Enrollment with the full course outline."""

    course_title: str
    modules: list[OutlineModuleResponse] = []

    @classmethod
    def from_outline(
        cls, enrollment: Enrollment, course: Course, outline: CourseOutline
    ) -> "EnrollmentDetailResponse":
        """Create response from enrollment, course and outline."""
        return cls(
            **EnrollmentResponse.from_entity(enrollment).model_dump(),
            course_title=course.title,
            modules=[
                OutlineModuleResponse.from_entities(module, lectures, enrollment)
                for module, lectures in outline
            ],
        )


class EnrolledCourseResponse(BaseModel):
    """Course the user is enrolled in, with progress."""

    id: UUID
    title: str
    description: str
    price: Decimal
    thumbnail_url: str | None = None
    enrollment_id: UUID
    progress: int

    @classmethod
    def from_entities(
        cls, enrollment: Enrollment, course: Course
    ) -> "EnrolledCourseResponse":
        return cls(
            id=course.id,
            title=course.title,
            description=course.description,
            price=course.price,
            thumbnail_url=course.thumbnail_url,
            enrollment_id=enrollment.id,
            progress=enrollment.progress,
        )


class EnrolledCourseListResponse(BaseModel):
    """Enrolled course list response."""

    items: list[EnrolledCourseResponse]
    total: int


class LectureAccessResponse(BaseModel):
    """Lecture content for a user allowed to watch it."""

    id: UUID
    module_id: UUID
    title: str
    order: int
    video_url: str

    @classmethod
    def from_entity(cls, lecture: Lecture) -> "LectureAccessResponse":
        return cls(
            id=lecture.id,
            module_id=lecture.module_id,
            title=lecture.title,
            order=lecture.order,
            video_url=lecture.video_url,
        )

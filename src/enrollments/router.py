"""Enrollment and learning API endpoints.

Provides routes for:
- Enrollment: enroll, list, detail, delete
- Progress: lecture completion, recalculation, admin reset
- Learning: access-checked lecture reads and completion by lecture
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from src.auth.dependencies import AdminUser, CurrentUser
from src.catalog.schemas import MessageResponse

from .dependencies import EnrollmentServiceDep, handle_enrollment_error
from .schemas import (
    EnrolledCourseListResponse,
    EnrolledCourseResponse,
    EnrollmentDetailResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollRequest,
    LectureAccessResponse,
    ProgressResponse,
)
from .service import EnrollmentError


router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])
learning_router = APIRouter(prefix="/v1/lectures", tags=["lectures"])


# ==============================================================================
# Enrollment Endpoints
# ==============================================================================


@router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
)
async def enroll(
    data: EnrollRequest,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Enroll current user in a course. The first lecture is unlocked."""
    try:
        enrollment = await enrollment_service.enroll(user.id, data.course_id)
        return EnrollmentResponse.from_entity(enrollment)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.get(
    "/my",
    response_model=EnrollmentListResponse,
    summary="List my enrollments",
)
async def list_my_enrollments(
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentListResponse:
    """List current user's enrollments, newest first."""
    enrollments = await enrollment_service.list_user_enrollments(user.id)
    items = [EnrollmentResponse.from_entity(e) for e in enrollments]
    return EnrollmentListResponse(items=items, total=len(items))


@router.get(
    "/my/courses",
    response_model=EnrolledCourseListResponse,
    summary="List my enrolled courses",
)
async def list_my_courses(
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrolledCourseListResponse:
    """List courses current user is enrolled in, with progress."""
    pairs = await enrollment_service.list_user_courses(user.id)
    items = [EnrolledCourseResponse.from_entities(e, c) for e, c in pairs]
    return EnrolledCourseListResponse(items=items, total=len(items))


@router.get(
    "/course/{course_id}",
    response_model=EnrollmentDetailResponse,
    summary="Get my enrollment in a course",
)
async def get_course_enrollment(
    course_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentDetailResponse:
    """Get current user's enrollment with the course outline.

    Lectures carry unlocked/completed flags; video URLs are only returned
    for unlocked lectures.
    """
    try:
        enrollment, course, outline = await enrollment_service.get_course_enrollment(
            user.id, course_id
        )
        return EnrollmentDetailResponse.from_outline(enrollment, course, outline)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.get(
    "",
    response_model=EnrollmentListResponse,
    summary="List enrollments (admin)",
)
async def list_enrollments(
    enrollment_service: EnrollmentServiceDep,
    _admin: AdminUser,
    course_id: UUID | None = Query(None, description="Filter by course"),
    user_id: UUID | None = Query(None, description="Filter by user"),
) -> EnrollmentListResponse:
    """List all enrollments with optional filters (ADMIN only)."""
    enrollments = await enrollment_service.list_enrollments(
        course_id=course_id, user_id=user_id
    )
    items = [EnrollmentResponse.from_entity(e) for e in enrollments]
    return EnrollmentListResponse(items=items, total=len(items))


@router.get(
    "/{enrollment_id}",
    response_model=EnrollmentResponse,
    summary="Get enrollment",
)
async def get_enrollment(
    enrollment_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Get an enrollment (owner or ADMIN)."""
    try:
        enrollment = await enrollment_service.get_enrollment(
            enrollment_id, user.id, user.is_admin
        )
        return EnrollmentResponse.from_entity(enrollment)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.delete(
    "/{enrollment_id}",
    response_model=MessageResponse,
    summary="Delete enrollment",
)
async def delete_enrollment(
    enrollment_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> MessageResponse:
    """Delete an enrollment (owner or ADMIN)."""
    try:
        await enrollment_service.delete_enrollment(
            enrollment_id, user.id, user.is_admin
        )
        return MessageResponse(message="Enrollment removed")
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


# ==============================================================================
# Progress Endpoints
# ==============================================================================


@router.post(
    "/{enrollment_id}/lectures/{lecture_id}/complete",
    response_model=EnrollmentResponse,
    summary="Complete lecture in enrollment",
)
async def complete_enrollment_lecture(
    enrollment_id: UUID,
    lecture_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Mark a lecture completed and unlock the next one (owner or ADMIN)."""
    try:
        enrollment = await enrollment_service.complete_lecture(
            enrollment_id, lecture_id, user.id, user.is_admin
        )
        return EnrollmentResponse.from_entity(enrollment)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.put(
    "/{enrollment_id}/progress",
    response_model=ProgressResponse,
    summary="Recalculate progress",
)
async def recalculate_progress(
    enrollment_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> ProgressResponse:
    """Recompute progress against the current catalog (owner or ADMIN)."""
    try:
        enrollment = await enrollment_service.recalculate_progress(
            enrollment_id, user.id, user.is_admin
        )
        return ProgressResponse(
            enrollment_id=enrollment.id, progress=enrollment.progress
        )
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.put(
    "/{enrollment_id}/reset",
    response_model=EnrollmentResponse,
    summary="Reset progress (admin)",
)
async def reset_progress(
    enrollment_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    _admin: AdminUser,
) -> EnrollmentResponse:
    """Clear completions and unlock only the first lecture (ADMIN only)."""
    try:
        enrollment = await enrollment_service.reset_progress(enrollment_id)
        return EnrollmentResponse.from_entity(enrollment)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


# ==============================================================================
# Learning Endpoints
# ==============================================================================


@learning_router.get(
    "/{lecture_id}",
    response_model=LectureAccessResponse,
    summary="Get lecture",
)
async def get_lecture(
    lecture_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> LectureAccessResponse:
    """Get a lecture. Non-admins must be enrolled and have it unlocked."""
    try:
        lecture = await enrollment_service.can_access_lecture(
            user.id, user.is_admin, lecture_id
        )
        return LectureAccessResponse.from_entity(lecture)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@learning_router.post(
    "/{lecture_id}/complete",
    response_model=EnrollmentResponse,
    summary="Complete lecture",
)
async def complete_lecture(
    lecture_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Mark a lecture completed in current user's enrollment for its course."""
    try:
        enrollment = await enrollment_service.complete_lecture_for_user(
            user.id, lecture_id
        )
        return EnrollmentResponse.from_entity(enrollment)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e

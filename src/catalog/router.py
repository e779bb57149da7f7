"""Course catalog API endpoints.

Provides routes for:
- Courses: public reads, admin CRUD
- Modules: public reads, admin CRUD and reordering
- Lectures: listings and admin CRUD

Deletes cascade into enrollments: removing a course removes its
enrollments, removing modules or lectures prunes them from enrollments.
"""

from collections.abc import Awaitable
from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Query, status

from src.auth.dependencies import AdminUser
from src.catalog.dependencies import CatalogServiceDep, handle_catalog_error
from src.catalog.schemas import (
    CourseDetailResponse,
    CourseListResponse,
    CourseResponse,
    CreateCourseRequest,
    CreateLectureRequest,
    CreateModuleRequest,
    LectureListResponse,
    LectureResponse,
    MessageResponse,
    ModuleDetailResponse,
    ModuleResponse,
    ReorderModulesRequest,
    UpdateCourseRequest,
    UpdateLectureRequest,
    UpdateModuleRequest,
)
from src.catalog.service import CatalogError, CourseNotFoundError, ModuleNotFoundError
from src.enrollments.dependencies import EnrollmentServiceDep, handle_enrollment_error
from src.enrollments.service import EnrollmentError


logger = structlog.get_logger(__name__)


async def _clean_up_enrollments(cleanup: Awaitable[Any], **fields: Any) -> None:
    """Run an enrollment cascade after a committed catalog delete."""
    try:
        await cleanup
    except EnrollmentError as e:
        logger.error("enrollment_cleanup_failed", code=e.code, **fields)
        raise handle_enrollment_error(e) from e


# ==============================================================================
# Courses Router
# ==============================================================================

router_courses = APIRouter(prefix="/v1/courses", tags=["courses"])


@router_courses.get(
    "",
    response_model=CourseListResponse,
    summary="List courses",
)
async def list_courses(catalog: CatalogServiceDep) -> CourseListResponse:
    """List all courses, newest first (public)."""
    courses = await catalog.list_courses()
    items = [CourseResponse.from_entity(c) for c in courses]
    return CourseListResponse(items=items, total=len(items))


@router_courses.get(
    "/{course_id}",
    response_model=CourseDetailResponse,
    summary="Get course details",
)
async def get_course(
    course_id: UUID,
    catalog: CatalogServiceDep,
) -> CourseDetailResponse:
    """Get course with modules by number and their lectures by order (public)."""
    course = await catalog.get_course(course_id)
    if not course:
        raise handle_catalog_error(CourseNotFoundError())

    outline = await catalog.get_course_outline(course_id)
    modules = [
        ModuleDetailResponse.from_entities(module, lectures)
        for module, lectures in outline
    ]
    return CourseDetailResponse(
        **CourseResponse.from_entity(course).model_dump(),
        modules=modules,
        lecture_count=sum(len(m.lectures) for m in modules),
    )


@router_courses.post(
    "",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create course",
)
async def create_course(
    data: CreateCourseRequest,
    catalog: CatalogServiceDep,
    _admin: AdminUser,
) -> CourseResponse:
    """Create a new course (ADMIN only)."""
    course = await catalog.create_course(data)
    return CourseResponse.from_entity(course)


@router_courses.put(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Update course",
)
async def update_course(
    course_id: UUID,
    data: UpdateCourseRequest,
    catalog: CatalogServiceDep,
    _admin: AdminUser,
) -> CourseResponse:
    """Update course (ADMIN only)."""
    try:
        course = await catalog.update_course(course_id, data)
        return CourseResponse.from_entity(course)
    except CatalogError as e:
        raise handle_catalog_error(e) from e


@router_courses.delete(
    "/{course_id}",
    response_model=MessageResponse,
    summary="Delete course",
)
async def delete_course(
    course_id: UUID,
    catalog: CatalogServiceDep,
    enrollment_service: EnrollmentServiceDep,
    _admin: AdminUser,
) -> MessageResponse:
    """Delete course with its modules, lectures and enrollments (ADMIN only)."""
    try:
        await catalog.delete_course(course_id)
    except CatalogError as e:
        raise handle_catalog_error(e) from e

    await _clean_up_enrollments(
        enrollment_service.remove_course_enrollments(course_id),
        course_id=str(course_id),
    )
    return MessageResponse(message="Course removed")


# ==============================================================================
# Modules Router
# ==============================================================================

router_modules = APIRouter(prefix="/v1/modules", tags=["modules"])


@router_modules.get(
    "/course/{course_id}",
    response_model=list[ModuleDetailResponse],
    summary="List course modules",
)
async def list_course_modules(
    course_id: UUID,
    catalog: CatalogServiceDep,
) -> list[ModuleDetailResponse]:
    """List modules of a course by number, with their lectures (public)."""
    outline = await catalog.get_course_outline(course_id)
    return [
        ModuleDetailResponse.from_entities(module, lectures)
        for module, lectures in outline
    ]


@router_modules.get(
    "/{module_id}",
    response_model=ModuleDetailResponse,
    summary="Get module",
)
async def get_module(
    module_id: UUID,
    catalog: CatalogServiceDep,
) -> ModuleDetailResponse:
    """Get module with its lectures (public)."""
    module = await catalog.get_module(module_id)
    if not module:
        raise handle_catalog_error(ModuleNotFoundError())

    lectures = await catalog.find_lectures_by_module(module_id)
    return ModuleDetailResponse.from_entities(module, lectures)


@router_modules.post(
    "",
    response_model=ModuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create module",
)
async def create_module(
    data: CreateModuleRequest,
    catalog: CatalogServiceDep,
    _admin: AdminUser,
) -> ModuleResponse:
    """Create module at the end of the course (ADMIN only)."""
    try:
        module = await catalog.create_module(data)
        return ModuleResponse.from_entity(module)
    except CatalogError as e:
        raise handle_catalog_error(e) from e


@router_modules.put(
    "/reorder",
    response_model=list[ModuleResponse],
    summary="Reorder modules",
)
async def reorder_modules(
    data: ReorderModulesRequest,
    catalog: CatalogServiceDep,
    _admin: AdminUser,
) -> list[ModuleResponse]:
    """Set new numbers for modules of one course (ADMIN only)."""
    try:
        modules = await catalog.reorder_modules(data)
        return [ModuleResponse.from_entity(m) for m in modules]
    except CatalogError as e:
        raise handle_catalog_error(e) from e


@router_modules.put(
    "/{module_id}",
    response_model=ModuleResponse,
    summary="Update module",
)
async def update_module(
    module_id: UUID,
    data: UpdateModuleRequest,
    catalog: CatalogServiceDep,
    _admin: AdminUser,
) -> ModuleResponse:
    """Update module title or number (ADMIN only)."""
    try:
        module = await catalog.update_module(module_id, data)
        return ModuleResponse.from_entity(module)
    except CatalogError as e:
        raise handle_catalog_error(e) from e


@router_modules.delete(
    "/{module_id}",
    response_model=MessageResponse,
    summary="Delete module",
)
async def delete_module(
    module_id: UUID,
    catalog: CatalogServiceDep,
    enrollment_service: EnrollmentServiceDep,
    _admin: AdminUser,
) -> MessageResponse:
    """Delete module and its lectures (ADMIN only)."""
    module = await catalog.get_module(module_id)
    if not module:
        raise handle_catalog_error(ModuleNotFoundError())

    try:
        lecture_ids = await catalog.delete_module(module_id)
    except CatalogError as e:
        raise handle_catalog_error(e) from e

    await _clean_up_enrollments(
        enrollment_service.prune_lectures(module.course_id, lecture_ids),
        module_id=str(module_id),
        course_id=str(module.course_id),
    )
    return MessageResponse(message="Module removed")


# ==============================================================================
# Lectures Router
# ==============================================================================

router_lectures = APIRouter(prefix="/v1/lectures", tags=["lectures"])


@router_lectures.get(
    "/module/{module_id}",
    response_model=LectureListResponse,
    summary="List module lectures",
)
async def list_module_lectures(
    module_id: UUID,
    catalog: CatalogServiceDep,
) -> LectureListResponse:
    """List lectures of a module by order (public)."""
    lectures = await catalog.find_lectures_by_module(module_id)
    items = [LectureResponse.from_entity(lec) for lec in lectures]
    return LectureListResponse(items=items, total=len(items))


@router_lectures.get(
    "",
    response_model=LectureListResponse,
    summary="List lectures (admin)",
)
async def list_lectures(
    catalog: CatalogServiceDep,
    _admin: AdminUser,
    course_id: UUID | None = Query(None, description="Filter by course"),
    module_id: UUID | None = Query(None, description="Filter by module"),
) -> LectureListResponse:
    """List lectures in traversal order with optional filters (ADMIN only)."""
    lectures = await catalog.list_lectures(course_id=course_id, module_id=module_id)
    items = [LectureResponse.from_entity(lec) for lec in lectures]
    return LectureListResponse(items=items, total=len(items))


@router_lectures.post(
    "",
    response_model=LectureResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create lecture",
)
async def create_lecture(
    data: CreateLectureRequest,
    catalog: CatalogServiceDep,
    _admin: AdminUser,
) -> LectureResponse:
    """Create lecture at the end of the module (ADMIN only)."""
    try:
        lecture = await catalog.create_lecture(data)
        return LectureResponse.from_entity(lecture)
    except CatalogError as e:
        raise handle_catalog_error(e) from e


@router_lectures.put(
    "/{lecture_id}",
    response_model=LectureResponse,
    summary="Update lecture",
)
async def update_lecture(
    lecture_id: UUID,
    data: UpdateLectureRequest,
    catalog: CatalogServiceDep,
    _admin: AdminUser,
) -> LectureResponse:
    """Update lecture title, order or video (ADMIN only)."""
    try:
        lecture = await catalog.update_lecture(lecture_id, data)
        return LectureResponse.from_entity(lecture)
    except CatalogError as e:
        raise handle_catalog_error(e) from e


@router_lectures.delete(
    "/{lecture_id}",
    response_model=MessageResponse,
    summary="Delete lecture",
)
async def delete_lecture(
    lecture_id: UUID,
    catalog: CatalogServiceDep,
    enrollment_service: EnrollmentServiceDep,
    _admin: AdminUser,
) -> MessageResponse:
    """Delete lecture (ADMIN only)."""
    try:
        lecture = await catalog.delete_lecture(lecture_id)
    except CatalogError as e:
        raise handle_catalog_error(e) from e

    module = await catalog.get_module(lecture.module_id)
    if module:
        await _clean_up_enrollments(
            enrollment_service.prune_lectures(module.course_id, [lecture.id]),
            lecture_id=str(lecture.id),
            course_id=str(module.course_id),
        )
    return MessageResponse(message="Lecture removed")

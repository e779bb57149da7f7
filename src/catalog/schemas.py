"""Pydantic schemas for the course catalog.

Request and response models for:
- Courses: CRUD and nested detail
- Modules: CRUD and reordering
- Lectures: CRUD and listings
"""

from datetime import datetime
from decimal import Decimal
from typing import Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.catalog.models import Course, Lecture, Module


# ==============================================================================
# Lecture Schemas
# ==============================================================================


class CreateLectureRequest(BaseModel):
    """Lecture creation request. The order is assigned as last + 1."""

    module_id: UUID = Field(..., description="Owning module")
    title: str = Field(..., min_length=1, max_length=100, description="Lecture title")
    video_url: str = Field(..., min_length=1, max_length=1000, description="Video URL")


class UpdateLectureRequest(BaseModel):
    """Lecture update request."""

    title: str | None = Field(None, min_length=1, max_length=100)
    order: int | None = Field(None, ge=1, description="New position in the module")
    video_url: str | None = Field(None, min_length=1, max_length=1000)


class LectureResponse(BaseModel):
    """Lecture response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    module_id: UUID
    title: str
    order: int
    video_url: str
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, lecture: Lecture) -> "LectureResponse":
        """Create response from entity."""
        return cls.model_validate(lecture)


class LectureListResponse(BaseModel):
    """Lecture list response."""

    items: list[LectureResponse]
    total: int


# ==============================================================================
# Module Schemas
# ==============================================================================


class CreateModuleRequest(BaseModel):
    """Module creation request. The number is assigned as last + 1."""

    course_id: UUID = Field(..., description="Owning course")
    title: str = Field(..., min_length=1, max_length=100, description="Module title")


class UpdateModuleRequest(BaseModel):
    """Module update request."""

    title: str | None = Field(None, min_length=1, max_length=100)
    number: int | None = Field(None, ge=1, description="New position in the course")


class ModulePosition(BaseModel):
    """Target number for one module in a reorder request."""

    id: UUID
    number: int = Field(..., ge=1)


class ReorderModulesRequest(BaseModel):
    """Batch renumbering of modules within one course."""

    modules: list[ModulePosition] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_unique(self) -> Self:
        """Reject duplicate ids or numbers inside the request itself."""
        ids = [m.id for m in self.modules]
        numbers = [m.number for m in self.modules]
        if len(set(ids)) != len(ids):
            raise ValueError("Each module may appear only once")
        if len(set(numbers)) != len(numbers):
            raise ValueError("Module numbers must be unique")
        return self


class ModuleResponse(BaseModel):
    """Module response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    title: str
    number: int
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, module: Module) -> "ModuleResponse":
        """Create response from entity."""
        return cls.model_validate(module)


class ModuleDetailResponse(ModuleResponse):
    """Module with its lectures in order."""

    lectures: list[LectureResponse] = []

    @classmethod
    def from_entities(
        cls, module: Module, lectures: list[Lecture]
    ) -> "ModuleDetailResponse":
        """Create response from a module and its lectures."""
        return cls(
            **ModuleResponse.from_entity(module).model_dump(),
            lectures=[LectureResponse.from_entity(lec) for lec in lectures],
        )


# ==============================================================================
# Course Schemas
# ==============================================================================


class CreateCourseRequest(BaseModel):
    """Course creation request."""

    title: str = Field(..., min_length=1, max_length=100, description="Course title")
    description: str = Field(
        ..., min_length=1, max_length=1000, description="Course description"
    )
    price: Decimal = Field(..., ge=0, description="Course price")
    thumbnail_url: str | None = Field(
        None, max_length=500, description="Thumbnail image URL"
    )


class UpdateCourseRequest(BaseModel):
    """Course update request."""

    title: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, min_length=1, max_length=1000)
    price: Decimal | None = Field(None, ge=0)
    thumbnail_url: str | None = Field(None, max_length=500)


class CourseResponse(BaseModel):
    """Course response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str
    price: Decimal
    thumbnail_url: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, course: Course) -> "CourseResponse":
        """Create response from entity."""
        return cls.model_validate(course)


class CourseDetailResponse(CourseResponse):
    """Course with modules (by number) and their lectures (by order)."""

    modules: list[ModuleDetailResponse] = []
    lecture_count: int = 0


class CourseListResponse(BaseModel):
    """Course list response."""

    items: list[CourseResponse]
    total: int


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str

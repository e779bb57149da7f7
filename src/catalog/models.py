"""Database models for the course catalog.

Cassandra table definitions for:
- Courses: Main course table
- Modules: Modules owned by a course, numbered from 1
- Lectures: Lectures owned by a module, ordered from 1
- Position tables: modules_by_course / lectures_by_module, clustered by
  number/order so traversal lookups are single-partition reads and
  uniqueness of a position is enforced with lightweight transactions
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    description TEXT,
    price DECIMAL,
    thumbnail_url TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

MODULE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.modules (
    id UUID PRIMARY KEY,
    course_id UUID,
    title TEXT,
    module_number INT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# One row per occupied position; INSERT ... IF NOT EXISTS claims a number
MODULES_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.modules_by_course (
    course_id UUID,
    module_number INT,
    module_id UUID,
    PRIMARY KEY (course_id, module_number)
) WITH CLUSTERING ORDER BY (module_number ASC)
"""

LECTURE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lectures (
    id UUID PRIMARY KEY,
    module_id UUID,
    title TEXT,
    lecture_order INT,
    video_url TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

LECTURES_BY_MODULE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lectures_by_module (
    module_id UUID,
    lecture_order INT,
    lecture_id UUID,
    PRIMARY KEY (module_id, lecture_order)
) WITH CLUSTERING ORDER BY (lecture_order ASC)
"""

CATALOG_TABLES_CQL = [
    COURSE_TABLE_CQL,
    MODULE_TABLE_CQL,
    MODULES_BY_COURSE_TABLE_CQL,
    LECTURE_TABLE_CQL,
    LECTURES_BY_MODULE_TABLE_CQL,
]


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# Entity Classes
# ==============================================================================


class Course:
    """Course entity.

    Modules are not stored on the course; they are always read through
    the catalog (``find_modules_by_course``).

    Attributes:
        id: Unique identifier (UUID)
        title: Course title
        description: Course description
        price: Course price (>= 0)
        thumbnail_url: Cover image URL
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        id: UUID | None = None,
        title: str = "",
        description: str = "",
        price: Decimal = Decimal(0),
        thumbnail_url: str | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.title = title.strip()
        self.description = description.strip()
        self.price = price
        self.thumbnail_url = thumbnail_url
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create Course instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title or "",
            description=row.description or "",
            price=row.price if row.price is not None else Decimal(0),
            thumbnail_url=row.thumbnail_url,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "thumbnail_url": self.thumbnail_url,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Course {self.title}>"


class Module:
    """Module entity, a numbered section of one course.

    Attributes:
        id: Unique identifier (UUID)
        course_id: Owning course
        title: Module title
        number: 1-based position, unique within the course
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        course_id: UUID,
        number: int,
        id: UUID | None = None,
        title: str = "",
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.course_id = course_id
        self.title = title.strip()
        self.number = number
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Module":
        """Create Module instance from Cassandra row."""
        return cls(
            id=row.id,
            course_id=row.course_id,
            title=row.title or "",
            number=row.module_number,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "course_id": self.course_id,
            "title": self.title,
            "number": self.number,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Module #{self.number} {self.title}>"


class Lecture:
    """Lecture entity, an ordered video inside one module.

    Attributes:
        id: Unique identifier (UUID)
        module_id: Owning module
        title: Lecture title
        order: 1-based position, unique within the module
        video_url: Video reference
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        module_id: UUID,
        order: int,
        id: UUID | None = None,
        title: str = "",
        video_url: str = "",
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.module_id = module_id
        self.title = title.strip()
        self.order = order
        self.video_url = video_url.strip()
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Lecture":
        """Create Lecture instance from Cassandra row."""
        return cls(
            id=row.id,
            module_id=row.module_id,
            title=row.title or "",
            order=row.lecture_order,
            video_url=row.video_url or "",
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "module_id": self.module_id,
            "title": self.title,
            "order": self.order,
            "video_url": self.video_url,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Lecture #{self.order} {self.title}>"

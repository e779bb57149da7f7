"""Database models for enrollments.

Cassandra table definitions for:
- Enrollments: One row per (user, course) with unlock/completion state
- Lookup tables: By user (uniqueness + "my enrollments") and by course
  (cascade deletion, admin filtering)

Every update after creation is version-checked (``IF version = ?``) so
concurrent writers cannot silently overwrite each other.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from src.catalog.models import ensure_utc_aware


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

ENROLLMENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    id UUID PRIMARY KEY,
    user_id UUID,
    course_id UUID,
    progress INT,
    completed SET<UUID>,
    unlocked SET<UUID>,
    version INT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# One row per (user, course); INSERT ... IF NOT EXISTS enforces uniqueness
ENROLLMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_user (
    user_id UUID,
    course_id UUID,
    enrollment_id UUID,
    PRIMARY KEY (user_id, course_id)
)
"""

ENROLLMENTS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_course (
    course_id UUID,
    enrollment_id UUID,
    user_id UUID,
    PRIMARY KEY (course_id, enrollment_id)
)
"""

ENROLLMENT_TABLES_CQL = [
    ENROLLMENT_TABLE_CQL,
    ENROLLMENTS_BY_USER_TABLE_CQL,
    ENROLLMENTS_BY_COURSE_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Enrollment:
    """Course enrollment entity.

    Attributes:
        id: Unique identifier (UUID)
        user_id: Enrolled user
        course_id: Course enrolled in
        progress: Integer percentage of course lectures completed (0-100)
        completed: IDs of completed lectures
        unlocked: IDs of lectures the user may access
        version: Incremented on each persisted update
        created_at: Enrollment timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        id: UUID | None = None,
        progress: int = 0,
        completed: set[UUID] | None = None,
        unlocked: set[UUID] | None = None,
        version: int = 0,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.user_id = user_id
        self.course_id = course_id
        self.progress = progress
        self.completed = set(completed or ())
        self.unlocked = set(unlocked or ())
        self.version = version
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    def is_owned_by(self, user_id: UUID) -> bool:
        """Check if the enrollment belongs to a user."""
        return self.user_id == user_id

    def is_unlocked(self, lecture_id: UUID) -> bool:
        """Check if a lecture is unlocked."""
        return lecture_id in self.unlocked

    def is_completed(self, lecture_id: UUID) -> bool:
        """Check if a lecture is completed."""
        return lecture_id in self.completed

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row.

        Empty sets are stored as null by Cassandra.
        """
        return cls(
            id=row.id,
            user_id=row.user_id,
            course_id=row.course_id,
            progress=row.progress or 0,
            completed=set(row.completed or ()),
            unlocked=set(row.unlocked or ()),
            version=row.version or 0,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "progress": self.progress,
            "completed": set(self.completed),
            "unlocked": set(self.unlocked),
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Enrollment user={self.user_id} course={self.course_id} "
            f"{self.progress}%>"
        )

"""Cassandra persistence for enrollments.

Writes follow the dual-write pattern: the main ``enrollments`` table plus
lookup tables by user and by course. Uniqueness per (user, course) is
claimed with ``INSERT ... IF NOT EXISTS`` on ``enrollments_by_user`` and
updates are compare-and-set on ``version``. Deletes touch all three tables
in one logged batch.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from cassandra.query import BatchStatement, BatchType

from src.enrollments.models import Enrollment
from src.enrollments.service import AlreadyEnrolledError, ConcurrentUpdateError


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


class EnrollmentRepository:
    """Enrollment storage on Cassandra."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.enrollments WHERE id = ?"
        )
        self._get_all = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.enrollments"
        )
        self._insert = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (id, user_id, course_id, progress, completed, unlocked, version,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._update = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET progress = ?, completed = ?, unlocked = ?, version = ?, updated_at = ?
            WHERE id = ?
            IF version = ?
        """)
        self._delete = self.session.prepare(
            f"DELETE FROM {self.keyspace}.enrollments WHERE id = ?"
        )

        # By user (uniqueness)
        self._get_by_user = self.session.prepare(f"""
            SELECT enrollment_id FROM {self.keyspace}.enrollments_by_user
            WHERE user_id = ?
        """)
        self._get_by_user_course = self.session.prepare(f"""
            SELECT enrollment_id FROM {self.keyspace}.enrollments_by_user
            WHERE user_id = ? AND course_id = ?
        """)
        self._claim_user_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_user
            (user_id, course_id, enrollment_id)
            VALUES (?, ?, ?)
            IF NOT EXISTS
        """)
        self._take_over_claim = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments_by_user
            SET enrollment_id = ?
            WHERE user_id = ? AND course_id = ?
            IF enrollment_id = ?
        """)
        self._delete_by_user =self.session.prepare(f"""
            DELETE FROM {self.keyspace}.enrollments_by_user
            WHERE user_id = ? AND course_id = ?
        """)

        # By course
        self._get_by_course = self.session.prepare(f"""
            SELECT enrollment_id FROM {self.keyspace}.enrollments_by_course
            WHERE course_id = ?
        """)
        self._insert_by_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_course
            (course_id, enrollment_id, user_id)
            VALUES (?, ?, ?)
        """)
        self._delete_by_course = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.enrollments_by_course
            WHERE course_id = ? AND enrollment_id = ?
        """)

    # ==========================================================================
    # Writes
    # ==========================================================================

    async def create(self, enrollment: Enrollment) -> Enrollment:
        """Persist a new enrollment.

        The main row is written before the (user, course) claim, so a claim
        whose main row is missing can only be left over from a failed write
        and is taken over.

        Raises:
            AlreadyEnrolledError: If the user already has an enrollment in
                the course
        """
        await self.session.aexecute(
            self._insert,
            [
                enrollment.id,
                enrollment.user_id,
                enrollment.course_id,
                enrollment.progress,
                enrollment.completed,
                enrollment.unlocked,
                enrollment.version,
                enrollment.created_at,
                enrollment.updated_at,
            ],
        )

        claim = await self.session.aexecute(
            self._claim_user_course,
            [enrollment.user_id, enrollment.course_id, enrollment.id],
        )
        if not claim.was_applied and not await self._recover_claim(enrollment):
            await self.session.aexecute(self._delete, [enrollment.id])
            raise AlreadyEnrolledError

        await self.session.aexecute(
            self._insert_by_course,
            [enrollment.course_id, enrollment.id, enrollment.user_id],
        )
        return enrollment

    async def save(self, enrollment: Enrollment) -> Enrollment:
        """Persist changes if nobody else updated the enrollment meanwhile.

        Increments ``enrollment.version`` on success.

        Raises:
            ConcurrentUpdateError: If the stored version differs
        """
        expected = enrollment.version
        updated_at = datetime.now(UTC)

        result = await self.session.aexecute(
            self._update,
            [
                enrollment.progress,
                enrollment.completed,
                enrollment.unlocked,
                expected + 1,
                updated_at,
                enrollment.id,
                expected,
            ],
        )
        if not result.was_applied:
            logger.warning(
                "enrollment_version_conflict",
                enrollment_id=str(enrollment.id),
                expected_version=expected,
            )
            raise ConcurrentUpdateError

        enrollment.version = expected + 1
        enrollment.updated_at = updated_at
        return enrollment

    async def delete(self, enrollment: Enrollment) -> None:
        """Delete an enrollment from all tables in one logged batch."""
        batch = BatchStatement(batch_type=BatchType.LOGGED)
        batch.add(self._delete, [enrollment.id])
        batch.add(self._delete_by_user, [enrollment.user_id, enrollment.course_id])
        batch.add(self._delete_by_course, [enrollment.course_id, enrollment.id])
        await self.session.aexecute(batch)

    async def _recover_claim(self, enrollment: Enrollment) -> bool:
        """Take over a (user, course) claim that points at no enrollment."""
        result = await self.session.aexecute(
            self._get_by_user_course, [enrollment.user_id, enrollment.course_id]
        )
        row = result.one()
        if row is None or await self.get(row.enrollment_id) is not None:
            return False

        takeover = await self.session.aexecute(
            self._take_over_claim,
            [
                enrollment.id,
                enrollment.user_id,
                enrollment.course_id,
                row.enrollment_id,
            ],
        )
        if takeover.was_applied:
            logger.warning(
                "enrollment_claim_recovered",
                user_id=str(enrollment.user_id),
                course_id=str(enrollment.course_id),
                stale_enrollment_id=str(row.enrollment_id),
            )
        return takeover.was_applied

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        """Get enrollment by ID."""
        result = await self.session.aexecute(self._get_by_id, [enrollment_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def get_by_user_course(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        """Get a user's enrollment in a course."""
        result = await self.session.aexecute(
            self._get_by_user_course, [user_id, course_id]
        )
        row = result.one()
        return await self.get(row.enrollment_id) if row else None

    async def list_by_user(self, user_id: UUID) -> list[Enrollment]:
        """A user's enrollments, newest first."""
        rows = await self.session.aexecute(self._get_by_user, [user_id])
        return await self._load([row.enrollment_id for row in rows])

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        """Enrollments in a course, newest first."""
        rows = await self.session.aexecute(self._get_by_course, [course_id])
        return await self._load([row.enrollment_id for row in rows])

    async def list_all(self) -> list[Enrollment]:
        """Every enrollment, newest first.

        Note: Full table scan, admin use only.
        """
        rows = await self.session.aexecute(self._get_all)
        enrollments = [Enrollment.from_row(row) for row in rows]
        return sorted(enrollments, key=lambda e: e.created_at, reverse=True)

    async def _load(self, enrollment_ids: list[UUID]) -> list[Enrollment]:
        enrollments = []
        for enrollment_id in enrollment_ids:
            enrollment = await self.get(enrollment_id)
            if enrollment:
                enrollments.append(enrollment)
        return sorted(enrollments, key=lambda e: e.created_at, reverse=True)

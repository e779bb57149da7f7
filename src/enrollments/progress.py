"""Course progress calculation."""

from decimal import ROUND_HALF_UP, Decimal

from src.catalog.store import CatalogStore
from src.enrollments.models import Enrollment


MAX_PROGRESS = 100


def calculate_progress(completed_count: int, total_lecture_count: int) -> int:
    """Percentage of lectures completed, rounded half up and clamped to 0-100.

    A course without lectures has 0% progress.
    """
    if total_lecture_count <= 0:
        return 0

    ratio = Decimal(completed_count) / Decimal(total_lecture_count) * MAX_PROGRESS
    percent = int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return max(0, min(MAX_PROGRESS, percent))


class ProgressCalculator:
    """Recomputes enrollment progress against the current catalog."""

    def __init__(self, catalog: CatalogStore):
        self.catalog = catalog

    async def count_course_lectures(self, course_id) -> int:
        """Count lectures across every module currently in the course."""
        modules = await self.catalog.find_modules_by_course(course_id)
        return await self.catalog.count_lectures_in_modules(m.id for m in modules)

    async def apply(self, enrollment: Enrollment) -> int:
        """Set ``enrollment.progress`` from its completed set and return it.

        Does not persist the enrollment.
        """
        total = await self.count_course_lectures(enrollment.course_id)
        enrollment.progress = calculate_progress(len(enrollment.completed), total)
        return enrollment.progress

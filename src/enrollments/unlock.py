"""Progressive lecture unlocking.

Lectures in a course are traversed by ascending module number, then
ascending lecture order. Completing a lecture unlocks its successor in
that traversal; which lecture counts as the successor is decided by an
``UnlockStrategy``:

- ``ExactSuccessorStrategy`` (default): lecture ``order + 1`` in the same
  module, else lecture 1 of module ``number + 1``. A gap in numbering
  ends the traversal.
- ``SortedSuccessorStrategy``: the next lecture by position, skipping any
  gaps in module numbers or lecture orders.
"""

from abc import ABC, abstractmethod
from uuid import UUID

import structlog

from src.catalog.models import Lecture, Module
from src.catalog.store import CatalogStore, flatten_outline, load_course_outline
from src.enrollments.models import Enrollment


logger = structlog.get_logger(__name__)


# ==============================================================================
# Strategies
# ==============================================================================


class UnlockStrategy(ABC):
    """Finds the lecture that follows another one in its course."""

    name: str

    @abstractmethod
    async def next_lecture(
        self, catalog: CatalogStore, lecture: Lecture, module: Module
    ) -> Lecture | None:
        """Return the successor of ``lecture`` or None if it is the last."""


class ExactSuccessorStrategy(UnlockStrategy):
    """Successor is the exact next position (order + 1, then number + 1)."""

    name = "exact"

    async def next_lecture(
        self, catalog: CatalogStore, lecture: Lecture, module: Module
    ) -> Lecture | None:
        following = await catalog.find_lecture_by_module_and_order(
            module.id, lecture.order + 1
        )
        if following:
            return following

        next_module = await catalog.find_module_by_course_and_number(
            module.course_id, module.number + 1
        )
        if not next_module:
            return None

        return await catalog.find_lecture_by_module_and_order(next_module.id, 1)


class SortedSuccessorStrategy(UnlockStrategy):
    """Successor is the next lecture in the sorted traversal order."""

    name = "sorted"

    async def next_lecture(
        self, catalog: CatalogStore, lecture: Lecture, module: Module
    ) -> Lecture | None:
        ordered = flatten_outline(await load_course_outline(catalog, module.course_id))
        ids = [lec.id for lec in ordered]
        if lecture.id not in ids:
            return None

        position = ids.index(lecture.id)
        return ordered[position + 1] if position + 1 < len(ordered) else None


UNLOCK_STRATEGIES: dict[str, type[UnlockStrategy]] = {
    ExactSuccessorStrategy.name: ExactSuccessorStrategy,
    SortedSuccessorStrategy.name: SortedSuccessorStrategy,
}


def get_unlock_strategy(name: str) -> UnlockStrategy:
    """Build a strategy from its configured name.

    Raises:
        ValueError: If the name is unknown
    """
    try:
        return UNLOCK_STRATEGIES[name]()
    except KeyError as e:
        msg = f"Unknown unlock strategy: {name}"
        raise ValueError(msg) from e


# ==============================================================================
# Unlock Engine
# ==============================================================================


class UnlockEngine:
    """Computes and applies lecture unlocks for enrollments."""

    def __init__(
        self,
        catalog: CatalogStore,
        strategy: UnlockStrategy | None = None,
    ):
        self.catalog = catalog
        self.strategy = strategy or ExactSuccessorStrategy()

    async def find_next_lecture(self, current_lecture_id: UUID) -> Lecture | None:
        """Find the lecture after ``current_lecture_id`` in its course.

        Returns None when the lecture or its module no longer exists, or
        when the lecture is the last one.
        """
        lecture = await self.catalog.get_lecture(current_lecture_id)
        if not lecture:
            return None

        module = await self.catalog.get_module(lecture.module_id)
        if not module:
            return None

        return await self.strategy.next_lecture(self.catalog, lecture, module)

    async def first_lecture(self, course_id: UUID) -> Lecture | None:
        """First lecture of the lowest-numbered module, if any.

        A course whose first module is empty starts with nothing unlocked.
        """
        modules = await self.catalog.find_modules_by_course(course_id)
        if not modules:
            return None

        lectures = await self.catalog.find_lectures_by_module(modules[0].id)
        return lectures[0] if lectures else None

    def unlock_lecture(self, enrollment: Enrollment, lecture_id: UUID) -> bool:
        """Add a lecture to the unlocked set.

        Returns:
            True if the lecture was newly unlocked
        """
        if lecture_id in enrollment.unlocked:
            return False

        enrollment.unlocked.add(lecture_id)
        logger.info(
            "lecture_unlocked",
            enrollment_id=str(enrollment.id),
            lecture_id=str(lecture_id),
        )
        return True

    async def unlock_next(self, enrollment: Enrollment, lecture_id: UUID) -> Lecture | None:
        """Unlock the successor of ``lecture_id`` and return it, if any."""
        following = await self.find_next_lecture(lecture_id)
        if following:
            self.unlock_lecture(enrollment, following.id)
        return following

"""Read interface the learning-path engine needs from the catalog.

``CatalogService`` implements it on Cassandra. The unlock engine, the
progress calculator and the enrollment service only depend on this
protocol, so they can run against any store that answers these lookups.
"""

from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from src.catalog.models import Course, Lecture, Module


class CatalogStore(Protocol):
    """Lookups by id, by parent and by position."""

    async def get_course(self, course_id: UUID) -> Course | None: ...

    async def get_module(self, module_id: UUID) -> Module | None: ...

    async def get_lecture(self, lecture_id: UUID) -> Lecture | None: ...

    async def find_modules_by_course(self, course_id: UUID) -> list[Module]:
        """Modules of a course sorted by ascending number."""
        ...

    async def find_lectures_by_module(self, module_id: UUID) -> list[Lecture]:
        """Lectures of a module sorted by ascending order."""
        ...

    async def find_module_by_course_and_number(
        self, course_id: UUID, number: int
    ) -> Module | None: ...

    async def find_lecture_by_module_and_order(
        self, module_id: UUID, order: int
    ) -> Lecture | None: ...

    async def count_lectures_in_modules(self, module_ids: Iterable[UUID]) -> int: ...


CourseOutline = list[tuple[Module, list[Lecture]]]


async def load_course_outline(store: CatalogStore, course_id: UUID) -> CourseOutline:
    """Read a course's modules with their lectures, in traversal order."""
    return [
        (module, await store.find_lectures_by_module(module.id))
        for module in await store.find_modules_by_course(course_id)
    ]


def flatten_outline(outline: CourseOutline) -> list[Lecture]:
    """Lectures of an outline as one list in traversal order."""
    return [lecture for _, lectures in outline for lecture in lectures]

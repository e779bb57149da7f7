"""Course catalog module.

Provides:
- Courses, numbered modules and ordered lectures
- Ordered lookups by parent and position
- Cascading deletes inside the catalog

Note: Routers are imported directly in main.py to avoid circular imports.
"""

from .models import CATALOG_TABLES_CQL, Course, Lecture, Module
from .store import CatalogStore, load_course_outline


__all__ = [
    "CATALOG_TABLES_CQL",
    "CatalogStore",
    "Course",
    "Lecture",
    "Module",
    "load_course_outline",
]

"""Enrollments module.

Provides:
- Course enrollment with the first lecture unlocked
- Progressive lecture unlocking across module boundaries
- Progress calculation against the current catalog

Note: Routers are imported directly in main.py to avoid circular imports.
"""

from .models import ENROLLMENT_TABLES_CQL, Enrollment
from .progress import ProgressCalculator, calculate_progress
from .unlock import UnlockEngine, UnlockStrategy, get_unlock_strategy


__all__ = [
    "ENROLLMENT_TABLES_CQL",
    "Enrollment",
    "ProgressCalculator",
    "UnlockEngine",
    "UnlockStrategy",
    "calculate_progress",
    "get_unlock_strategy",
]

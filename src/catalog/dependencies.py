"""FastAPI dependencies for the course catalog.

Provides dependency injection for:
- Catalog service instance
- Error handlers
"""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, HTTPException, status

from src.catalog.service import CatalogError, CatalogService


# ==============================================================================
# Service Getter (set by main.py)
# ==============================================================================

_catalog_service_getter: Callable[[], CatalogService] | None = None


def set_catalog_service_getter(getter: Callable[[], CatalogService]) -> None:
    """Set the catalog service getter function."""
    global _catalog_service_getter
    _catalog_service_getter = getter


def get_catalog_service() -> CatalogService:
    """Get CatalogService instance from app state."""
    if _catalog_service_getter is None:
        msg = "CatalogService not configured"
        raise RuntimeError(msg)
    return _catalog_service_getter()


CatalogServiceDep = Annotated[CatalogService, Depends(get_catalog_service)]


# ==============================================================================
# Error Handlers
# ==============================================================================


def handle_catalog_error(error: CatalogError) -> HTTPException:
    """Convert catalog errors to HTTPException."""
    status_map = {
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "module_not_found": status.HTTP_404_NOT_FOUND,
        "lecture_not_found": status.HTTP_404_NOT_FOUND,
        "duplicate_module_number": status.HTTP_409_CONFLICT,
        "duplicate_lecture_order": status.HTTP_409_CONFLICT,
        "invalid_reorder": status.HTTP_409_CONFLICT,
    }

    code = getattr(error, "code", "catalog_error")
    message = getattr(error, "message", str(error))

    return HTTPException(
        status_code=status_map.get(code, status.HTTP_400_BAD_REQUEST),
        detail=message,
    )

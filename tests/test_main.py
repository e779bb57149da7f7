"""Tests for the uvicorn entry point."""

from unittest.mock import patch

from src.config import get_settings
from src.main import run


def test_run_serves_app_with_configured_address() -> None:
    """The runner hands the app import path and settings to uvicorn."""
    settings = get_settings()

    with patch("uvicorn.run") as uvicorn_run:
        run()

    uvicorn_run.assert_called_once_with(
        "src.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        workers=settings.api_workers,
    )

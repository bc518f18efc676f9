"""Root-level test configuration for envsync.

Shared fixtures for every test tier. Unit-tier fakes live in
``tests/unit/conftest.py``.
"""

from __future__ import annotations

import os
from collections.abc import Generator

import pytest
import structlog

from envsync.telemetry import reset_tracer


@pytest.fixture(autouse=True)
def reset_observability() -> Generator[None, None, None]:
    """Reset structlog configuration and cached tracers around each test."""
    structlog.reset_defaults()
    reset_tracer()
    yield
    structlog.reset_defaults()
    reset_tracer()


@pytest.fixture(autouse=True)
def clean_envsync_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove ENVSYNC_* variables so host settings never leak into tests."""
    for key in list(os.environ):
        if key.startswith("ENVSYNC_"):
            monkeypatch.delenv(key, raising=False)

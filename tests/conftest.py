"""
Pytest configuration and fixtures for schemadrift tests.
"""

from __future__ import annotations

import os
import textwrap
from pathlib import Path
from typing import Generator

import pytest

from schemadrift.config import reset_config


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolate_config(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Drop SCHEMADRIFT_* variables and the config singleton around each test."""
    for key in list(os.environ):
        if key.startswith("SCHEMADRIFT_"):
            monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


# ============================================================================
# File Fixtures
# ============================================================================


@pytest.fixture
def write_file():
    """Write dedented text to a path, creating parent directories."""

    def _write(path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def history_file(tmp_path: Path) -> Path:
    return tmp_path / "db" / "schema_versions.yml"


@pytest.fixture
def registry_file(tmp_path: Path) -> Path:
    return tmp_path / "db" / "schema_versions_centralized.yml"


@pytest.fixture
def models_dir(tmp_path: Path) -> Path:
    path = tmp_path / "models"
    path.mkdir()
    return path

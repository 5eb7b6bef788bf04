"""Shared fixtures for perch tests."""

from pathlib import Path

import pytest

from perch.config import AppConfig


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project directory with the three realm roots."""
    for realm in ("frontend", "backend", "common"):
        (tmp_path / realm).mkdir()
    return tmp_path


@pytest.fixture
def config(project: Path) -> AppConfig:
    return AppConfig(project_dir=project, template_dir=None, regeneration_delay=0.05)

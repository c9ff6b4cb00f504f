"""Tests for project metadata."""

from pathlib import Path

import pytest

tomllib = pytest.importorskip("tomllib")

ROOT = Path(__file__).resolve().parents[2]


def test_project_metadata_files_exist():
    """Test files named by the project table ship with the repository."""
    with open(ROOT / "pyproject.toml", "rb") as f:
        project = tomllib.load(f)["project"]

    readme = project.get("readme")
    if readme is not None:
        assert (ROOT / readme).is_file()
        assert readme != "SPEC_FULL.md"

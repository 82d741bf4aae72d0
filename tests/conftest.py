"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest
import tomlkit

from lazy_versions.log import setup_logging


class FakeTagger:
    """In-memory tag capability."""

    def __init__(self, existing: set[str] | None = None) -> None:
        self.tags = set(existing or ())
        self.created: list[tuple[str, str]] = []

    def tag_exists(self, rev: str) -> bool:
        return rev in self.tags

    def create_tag(self, rev: str, message: str) -> None:
        self.tags.add(rev)
        self.created.append((rev, message))


@pytest.fixture(autouse=True)
def _logging() -> None:
    """Route structlog through stdlib logging so stdout only has CI output."""
    setup_logging(debug=True)


def write_package(
    root: Path,
    folder: str,
    name: str,
    *,
    full_name: str | None = None,
    version: str = "1.0.0",
    source: str = "VALUE = 1\n",
) -> Path:
    """Create a package folder with a pyproject.toml and one source file."""
    package_dir = root / folder / name
    package_dir.mkdir(parents=True, exist_ok=True)
    (package_dir / "pyproject.toml").write_text(
        f'[project]\nname = "{full_name or name}"\nversion = "{version}"\n'
    )
    (package_dir / "module.py").write_text(source)
    return package_dir


def write_dependencies(path: Path, forward: dict[str, list[str]]) -> Path:
    """Write an nx-style dependency declaration."""
    declaration = {
        "graph": {
            "dependencies": {
                name: [{"source": name, "target": t, "type": "static"} for t in targets]
                for name, targets in forward.items()
            }
        }
    }
    path.write_text(json.dumps(declaration))
    return path


@pytest.fixture
def workspace(tmp_path: Path) -> Callable[..., Path]:
    """Factory that adds packages under tmp_path and returns their folder."""

    def _add(name: str, folder: str = "packages", **kwargs) -> Path:
        return write_package(tmp_path, folder, name, **kwargs)

    return _add


@pytest.fixture
def tmp_pyproject(tmp_path: Path) -> Path:
    """Create a temporary pyproject.toml file."""
    content = """\
# keep this comment
[project]
name = "test-package"
version = "1.0.0"
dependencies = [
    "requests>=2.0",
]
"""
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(content)
    return pyproject


@pytest.fixture
def tmp_package_json(tmp_path: Path) -> Path:
    """Create a temporary npm-style package.json file."""
    package_json = tmp_path / "package.json"
    package_json.write_text(
        json.dumps({"name": "@scope/web", "version": "2.3.4", "private": True})
    )
    return package_json


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "my-package"
version = "2.0.0"
dependencies = ["click>=8.0", "pydantic>=2.0"]
"""
    return tomlkit.parse(content)

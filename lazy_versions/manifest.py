"""Package manifest reading and writing.

A manifest is the file inside each package folder that carries the
package's name and version. ``pyproject.toml`` is read from ``[project]``
using tomlkit, which preserves formatting and comments when the version is
rewritten. Any ``*.json`` manifest is treated as an npm-style
``package.json`` with top-level ``name`` and ``version`` keys.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, cast

import tomlkit
from pydantic import BaseModel

from .models import VersionBump

DEFAULT_VERSION = "0.0.0"


class ManifestInfo(BaseModel):
    """Identity read from a manifest.

    Attributes:
        full_name: The manifest's package name, or None if not declared.
        version: Declared version, defaulting to "0.0.0".
    """

    full_name: str | None = None
    version: str = DEFAULT_VERSION


def _is_json(path: Path) -> bool:
    return path.suffix == ".json"


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a pyproject.toml file.

    Returns a TOMLDocument that preserves formatting when modified and saved.
    """
    return tomlkit.parse(path.read_text())


def save_pyproject(path: Path, doc: tomlkit.TOMLDocument) -> None:
    """Save a TOMLDocument back to disk, preserving original formatting."""
    path.write_text(tomlkit.dumps(doc))


def read_manifest(path: Path) -> ManifestInfo:
    """Read name and version from a package manifest.

    A missing manifest is not an error; it yields version "0.0.0" and no
    name.
    """
    path = Path(path)
    if not path.exists():
        return ManifestInfo()

    if _is_json(path):
        data = json.loads(path.read_text(encoding="utf-8"))
    else:
        data = load_pyproject(path).get("project", {})

    name = data.get("name")
    return ManifestInfo(
        full_name=str(name) if name is not None else None,
        version=str(data.get("version", DEFAULT_VERSION)),
    )


def write_manifest_version(path: Path, version: str) -> VersionBump | None:
    """Set the version field of a manifest.

    Only the version is touched; everything else in the file is kept.

    Returns:
        The VersionBump applied, or None if the manifest does not exist or
        already has this version.
    """
    path = Path(path)
    if not path.exists():
        return None

    if _is_json(path):
        data = json.loads(path.read_text(encoding="utf-8"))
        old = str(data.get("version", DEFAULT_VERSION))
        if old == version:
            return None
        data["version"] = version
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        return VersionBump(old=old, new=version)

    doc = load_pyproject(path)
    # Cast needed because tomlkit types are complex unions
    project = cast(dict[str, Any], doc.setdefault("project", tomlkit.table()))
    old = str(project.get("version", DEFAULT_VERSION))
    if old == version:
        return None
    project["version"] = version
    save_pyproject(path, doc)
    return VersionBump(old=old, new=version)

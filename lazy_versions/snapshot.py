"""Snapshot store: the persisted package name → last-known state mapping.

The snapshot is a JSON object keyed by package folder name. It is the
baseline that current hashes are diffed against, and it is fully rewritten
(never patched) whenever a run persists hashes.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path

import structlog
from pydantic import TypeAdapter, ValidationError

from .errors import SnapshotCorruptionError
from .models import PackageState

log = structlog.get_logger(__name__)

Snapshot = dict[str, PackageState]

_snapshot_adapter = TypeAdapter(Snapshot)


def load_snapshot(path: Path) -> Snapshot:
    """Load the snapshot at path.

    A missing file is not an error: an empty ``{}`` file is created so the
    path exists for later writes, and an empty mapping is returned. An empty
    file also counts as an empty snapshot.

    Raises:
        SnapshotCorruptionError: If the file is not a valid snapshot.
    """
    path = Path(path)
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{}", encoding="utf-8")
        log.debug("snapshot.created", path=str(path))
        return {}

    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}

    try:
        return _snapshot_adapter.validate_json(text)
    except ValidationError as exc:
        raise SnapshotCorruptionError(f"Malformed snapshot {path}: {exc}") from exc


def dump_snapshot(snapshot: Mapping[str, PackageState]) -> str:
    """Serialize a snapshot to JSON with sorted keys and camelCase fields."""
    data = {
        name: snapshot[name].model_dump(by_alias=True, exclude_none=True)
        for name in sorted(snapshot)
    }
    return json.dumps(data, indent=2) + "\n"


def save_snapshot(path: Path, snapshot: Mapping[str, PackageState]) -> None:
    """Atomically replace the snapshot file with the full mapping.

    Content is written to a temporary file in the same directory and moved
    into place, so a concurrent reader sees either the old or the new
    content, never a partial file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    content = dump_snapshot(snapshot)

    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    log.debug("snapshot.saved", path=str(path), packages=len(snapshot))

"""Content-addressed folder hashing.

Computes a deterministic digest for a directory tree. Each file is hashed
from its name plus its bytes; each directory is hashed from its name plus
the digests of its children in name-sorted order. Sorting makes the result
independent of filesystem traversal order, so identical trees hash the same
on every run and every platform.
"""

from __future__ import annotations

import hashlib
import os
from fnmatch import fnmatchcase
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

from .errors import HashingError

log = structlog.get_logger(__name__)

_CHUNK_SIZE = 64 * 1024
# Entries that vanish or cannot be read raise one of these.
_SKIPPABLE = (OSError,)


class ExcludeRules(BaseModel):
    """Name patterns skipped while hashing, at every depth.

    Patterns use shell-style wildcards and are matched against the entry's
    basename, e.g. "node_modules" or "*.pyc".
    """

    folders: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)

    def skip_folder(self, name: str) -> bool:
        return any(fnmatchcase(name, pattern) for pattern in self.folders)

    def skip_file(self, name: str) -> bool:
        return any(fnmatchcase(name, pattern) for pattern in self.files)


class HashedElement(BaseModel):
    """Digest of a file or directory.

    Attributes:
        name: Basename of the entry.
        hash: Hex digest.
        children: Child digests in name order; None for files.
    """

    name: str
    hash: str
    children: list[HashedElement] | None = None


def hash_element(path: Path, rules: ExcludeRules | None = None) -> HashedElement:
    """Hash a directory tree rooted at path.

    The root itself is never excluded. Children that vanish or cannot be
    read while scanning are skipped.

    Args:
        path: Directory (or file) to hash.
        rules: Exclusion rules applied to every descendant.

    Returns:
        HashedElement for the root, with one child per included entry.

    Raises:
        HashingError: If the root cannot be read.
    """
    rules = rules or ExcludeRules()
    path = Path(path)
    try:
        if path.is_dir():
            return _hash_folder(path, rules)
        return _hash_file(path)
    except _SKIPPABLE as exc:
        raise HashingError(f"Cannot hash {path}: {exc}") from exc


def _entry_name(path: Path) -> tuple[bytes, str]:
    """Return the on-disk name bytes and a printable name for path.

    Digests use the raw bytes, so names that are not valid UTF-8 still hash
    deterministically. The printable name replaces undecodable bytes.
    """
    raw_name = os.fsencode(path.name)
    return raw_name, raw_name.decode("utf-8", errors="replace")


def _hash_file(path: Path) -> HashedElement:
    digest = hashlib.sha1()
    raw_name, name = _entry_name(path)
    digest.update(raw_name)
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return HashedElement(name=name, hash=digest.hexdigest())


def _hash_folder(path: Path, rules: ExcludeRules) -> HashedElement:
    # Listing the root may raise; that propagates to hash_element.
    names = sorted(os.listdir(path))

    children: list[HashedElement] = []
    for entry in names:
        child = path / entry
        try:
            if child.is_dir():
                if rules.skip_folder(entry):
                    continue
                children.append(_hash_folder(child, rules))
            else:
                if rules.skip_file(entry):
                    continue
                children.append(_hash_file(child))
        except _SKIPPABLE:
            log.debug("hash.entry_skipped", path=str(child))
            continue

    digest = hashlib.sha1()
    raw_name, name = _entry_name(path)
    digest.update(raw_name)
    for child_element in children:
        digest.update(child_element.hash.encode())
    return HashedElement(name=name, hash=digest.hexdigest(), children=children)

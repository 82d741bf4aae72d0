"""Version parsing, bumping and resolution.

Handles conversion between version strings and semver objects, with
special handling for incomplete version strings (e.g., "1.0" → "1.0.0"),
and decides which version to report for each detected change.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol

import semver

from .config import Options
from .models import ChangeResult, ChangeStatus


class VersionStrategy(Protocol):
    """Computes the next version for a NEW or CHANGED package."""

    def __call__(
        self,
        name: str,
        last_version: str,
        manifest_path: Path,
        options: Options,
        result: ChangeResult,
    ) -> str: ...


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3" → "1.2.3"

    Only the first 3 components are used (major.minor.patch).
    Prerelease/build metadata is not supported.
    """
    parts = version_str.split(".")
    # Pad with zeros to ensure we have at least 3 parts
    while len(parts) < 3:
        parts.append("0")
    return semver.Version.parse(".".join(parts[:3]))


def bump_patch(version_str: str) -> str:
    """Increment the patch version and return as a string.

    Examples:
        "1.2.3" → "1.2.4"
        "1.0" → "1.0.1"
        "2" → "2.0.1"
    """
    return str(parse_version(version_str).bump_patch())


def patch_bump_strategy(
    name: str,
    last_version: str,
    manifest_path: Path,
    options: Options,
    result: ChangeResult,
) -> str:
    """Default strategy: bump the patch version of changed packages.

    - NEW packages keep their manifest version (first release).
    - CHANGED packages whose manifest version is already above the
      recorded one were bumped by hand and keep it.
    - Other CHANGED packages get the next patch version.
    """
    if result.status is ChangeStatus.NEW:
        return last_version
    previous = result.previous_version
    if previous and parse_version(last_version) > parse_version(previous):
        return last_version
    return bump_patch(last_version)


def resolve_version(
    result: ChangeResult,
    manifest_path: Path,
    options: Options,
    strategy: VersionStrategy = patch_bump_strategy,
) -> ChangeResult:
    """Return a copy of result whose version is the version to report.

    UNCHANGED packages report the recorded version (falling back to the
    manifest version when the snapshot has none). NEW and CHANGED packages
    report whatever the strategy computes from the manifest version.
    """
    if not result.changed:
        return result.model_copy(
            update={"version": result.previous_version or result.version}
        )
    next_version = strategy(
        result.name, result.version, manifest_path, options, result
    )
    return result.model_copy(update={"version": next_version})


async def resolve_versions(
    results: list[ChangeResult],
    options: Options,
    strategy: VersionStrategy = patch_bump_strategy,
) -> list[ChangeResult | BaseException]:
    """Resolve every result concurrently, settling all of them.

    A failure for one package is returned in its slot instead of raising,
    so siblings still resolve.
    """
    return await asyncio.gather(
        *(
            asyncio.to_thread(
                resolve_version,
                result,
                options.manifest_path(result.package_folder, result.name),
                options,
                strategy,
            )
            for result in results
        ),
        return_exceptions=True,
    )

"""Change detection: diff current hashes against the snapshot.

Each package in a scan root is classified as:

- NEW: its name is not in the snapshot.
- CHANGED: its hash differs from the recorded hash. Every direct dependent
  (from the reverse dependency graph) is also emitted as CHANGED.
- UNCHANGED: its hash matches.

Propagation is a single hop: dependents of a changed package are marked
CHANGED, but their own dependents are not, unless they also depend on the
changed package directly.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

import structlog

from .graph import DependencyGraph
from .hasher import HashedElement
from .manifest import read_manifest
from .models import ChangeResult, ChangeStatus, PackageState

log = structlog.get_logger(__name__)

RESERVED_NAMES = frozenset({"version"})
EXCLUDED_PREFIX = "_"


def is_package_entry(root_dir: Path, name: str) -> bool:
    """Return True if a scan root child should be treated as a package.

    Reserved names, names starting with "_", regular files and entries that
    no longer exist are not packages.
    """
    if name in RESERVED_NAMES or name.startswith(EXCLUDED_PREFIX):
        return False
    # Follows symlinks, so a symlinked package folder counts; a vanished
    # entry is neither a file nor a directory.
    return (root_dir / name).is_dir()


def scan_packages(
    root_dir: Path,
    package_folder: str,
    hashed: HashedElement,
    manifest: str,
) -> dict[str, PackageState]:
    """Build the current state of every package in a hashed scan root.

    Args:
        root_dir: Filesystem path of the scan root.
        package_folder: Scan root name as configured (e.g. "packages").
        hashed: Result of hashing root_dir.
        manifest: Manifest file name inside each package folder.

    Returns:
        Map of package folder name → current PackageState.
    """
    current: dict[str, PackageState] = {}
    for child in hashed.children or []:
        if not is_package_entry(root_dir, child.name):
            continue
        info = read_manifest(root_dir / child.name / manifest)
        current[child.name] = PackageState(
            hash=child.hash,
            version=info.version,
            full_name=info.full_name,
            package_folder=package_folder,
        )
    return current


def build_name_index(current: Mapping[str, PackageState]) -> dict[str, str]:
    """Map each package's full (manifest) name to its local folder name.

    The dependency graph is keyed by full name while classification is keyed
    by folder name. Packages without a manifest name are not indexed.
    """
    return {
        state.full_name: name
        for name, state in current.items()
        if state.full_name is not None
    }


def classify(
    package_folder: str,
    current: Mapping[str, PackageState],
    previous: Mapping[str, PackageState],
    graph: DependencyGraph,
    index: Mapping[str, str],
) -> list[ChangeResult]:
    """Classify the packages of one scan root.

    Packages are visited in name order. A dependent is emitted once per
    changed package that reaches it, so the same name may appear more than
    once; callers that need a set must deduplicate themselves. A package
    reached by propagation from any scan root is never also reported
    UNCHANGED.

    Args:
        package_folder: Scan root to classify; packages of other roots in
                        current are only used as propagation targets.
        current: Current state of all scanned packages, keyed by folder name.
        previous: Snapshot loaded from the last run.
        graph: Reverse dependency map (full name → dependents).
        index: Full name → folder name, across all scanned packages.

    Returns:
        One ChangeResult per classification, in emission order.
    """
    results: list[ChangeResult] = []
    propagated = propagation_targets(current, previous, graph, index)

    for name in sorted(current):
        state = current[name]
        if state.package_folder != package_folder:
            continue

        recorded = previous.get(name)
        if recorded is None:
            results.append(_result(name, state, ChangeStatus.NEW, None))
            continue

        if state.hash == recorded.hash:
            if name not in propagated:
                results.append(
                    _result(name, state, ChangeStatus.UNCHANGED, recorded)
                )
            continue

        results.append(_result(name, state, ChangeStatus.CHANGED, recorded))
        for dependent in _dependents(name, state, graph, index, current):
            results.append(
                _result(
                    dependent,
                    current[dependent],
                    ChangeStatus.CHANGED,
                    previous.get(dependent),
                    reason=state.full_name,
                )
            )

    for result in results:
        log.debug(
            "detect.classified",
            package_folder=result.package_folder,
            package=result.name,
            status=result.status.value,
            reason=result.reason,
        )
    return results


def propagation_targets(
    current: Mapping[str, PackageState],
    previous: Mapping[str, PackageState],
    graph: DependencyGraph,
    index: Mapping[str, str],
) -> set[str]:
    """Folder names of every direct dependent of a changed package.

    Computed over all scanned packages, so a dependent in one scan root is
    known to be affected by a change in another.
    """
    targets: set[str] = set()
    for name, state in current.items():
        recorded = previous.get(name)
        if recorded is None or recorded.hash == state.hash:
            continue
        targets.update(_dependents(name, state, graph, index, current))
    return targets


def _dependents(
    name: str,
    state: PackageState,
    graph: DependencyGraph,
    index: Mapping[str, str],
    current: Mapping[str, PackageState],
) -> list[str]:
    if state.full_name is None:
        return []
    dependents: list[str] = []
    for dependent_full_name in graph.get(state.full_name, []):
        dependent = index.get(dependent_full_name)
        if dependent is None or dependent not in current:
            log.debug(
                "detect.dependent_unresolved",
                package=name,
                dependent=dependent_full_name,
            )
            continue
        dependents.append(dependent)
    return dependents


def _result(
    name: str,
    state: PackageState,
    status: ChangeStatus,
    recorded: PackageState | None,
    reason: str | None = None,
) -> ChangeResult:
    return ChangeResult(
        name=name,
        package_folder=state.package_folder or "",
        status=status,
        version=state.version or "0.0.0",
        previous_version=recorded.version if recorded else None,
        full_name=state.full_name,
        reason=reason,
    )

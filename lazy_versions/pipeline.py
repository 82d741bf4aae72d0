"""Change-detection pipeline: hash → load → classify → resolve → persist.

This module orchestrates a lazy-versions run:
1. Hash every scan root concurrently and load the snapshot
2. Load the dependency graph and index packages by full name
3. Classify each scan root concurrently (NEW / CHANGED / UNCHANGED)
4. Resolve versions per root, then settle one version per package
5. Emit CI variables, write manifests and tags once per package
6. Emit the aggregate changed list and rewrite the snapshot

Scan roots are independent: a root that cannot be hashed is logged and
skipped while the others carry on. Every root task returns its own results
and the coordinator merges them after all tasks have joined, so no state is
shared between concurrent tasks.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping, Sequence

import structlog
from pydantic import BaseModel, Field

from .ci import CIEmitter
from .config import Options
from .detect import build_name_index, classify, scan_packages
from .errors import HashingError
from .graph import DependencyGraph, load_dependency_graph
from .hasher import ExcludeRules, hash_element
from .manifest import read_manifest, write_manifest_version
from .models import ChangeResult, PackageState
from .shell import GitTagger, Tagger, ensure_tag, step
from .snapshot import Snapshot, load_snapshot, save_snapshot
from .versions import VersionStrategy, patch_bump_strategy, resolve_versions

log = structlog.get_logger(__name__)


class RootReport(BaseModel):
    """Outcome of processing one scan root.

    Attributes:
        package_folder: The scan root.
        results: ChangeResults in emission order (multiplicity preserved).
        versions: Resolved version per package name, first result wins.
        failures: Number of version resolutions that failed.
    """

    package_folder: str
    results: list[ChangeResult] = Field(default_factory=list)
    versions: dict[str, str] = Field(default_factory=dict)
    failures: int = 0


class RunReport(BaseModel):
    """Outcome of a full run across all scan roots.

    Attributes:
        roots: One report per successfully hashed scan root, in the order
               the roots were configured.
        failed_roots: Scan roots that could not be hashed.
        changed: Names of changed results across all roots.
        current: Current package states, keyed by folder name.
        side_effect_failures: Manifest writes and tags that failed.
        snapshot_written: True if the snapshot file was rewritten.
    """

    roots: list[RootReport] = Field(default_factory=list)
    failed_roots: list[str] = Field(default_factory=list)
    changed: list[str] = Field(default_factory=list)
    current: dict[str, PackageState] = Field(default_factory=dict)
    side_effect_failures: int = 0
    snapshot_written: bool = False

    @property
    def results(self) -> list[ChangeResult]:
        return [result for root in self.roots for result in root.results]

    @property
    def failures(self) -> int:
        return sum(root.failures for root in self.roots) + self.side_effect_failures


def _exclude_rules(options: Options) -> ExcludeRules:
    return ExcludeRules(
        folders=options.hash_exclude_folders, files=options.hash_exclude_files
    )


async def scan_root(
    package_folder: str, options: Options, rules: ExcludeRules
) -> dict[str, PackageState]:
    """Hash one scan root and read the manifests of its packages.

    Raises:
        HashingError: If the scan root cannot be read.
    """
    root_dir = options.prefix_path / package_folder
    hashed = await asyncio.to_thread(hash_element, root_dir, rules)
    log.debug("scan.hashed", package_folder=package_folder, hash=hashed.hash)
    return await asyncio.to_thread(
        scan_packages, root_dir, package_folder, hashed, options.manifest
    )


async def scan_roots(
    options: Options,
) -> tuple[dict[str, dict[str, PackageState]], list[str]]:
    """Scan all configured roots concurrently.

    Returns:
        Tuple of (current packages per successful root, failed roots).
    """
    rules = _exclude_rules(options)
    outcomes = await asyncio.gather(
        *(scan_root(folder, options, rules) for folder in options.children),
        return_exceptions=True,
    )

    scanned: dict[str, dict[str, PackageState]] = {}
    failed: list[str] = []
    for folder, outcome in zip(options.children, outcomes):
        if isinstance(outcome, BaseException):
            log.error("scan.failed", package_folder=folder, error=str(outcome))
            failed.append(folder)
            continue
        scanned[folder] = outcome
    return scanned, failed


def merge_current(
    scanned: Mapping[str, Mapping[str, PackageState]],
) -> dict[str, PackageState]:
    """Merge per-root package states into one mapping keyed by folder name."""
    current: dict[str, PackageState] = {}
    for folder, packages in scanned.items():
        for name, state in packages.items():
            if name in current:
                log.warning(
                    "scan.duplicate_name",
                    package=name,
                    package_folder=folder,
                    kept=current[name].package_folder,
                )
                continue
            current[name] = state
    return current


async def process_root(
    package_folder: str,
    current: Mapping[str, PackageState],
    previous: Snapshot,
    graph: DependencyGraph,
    index: Mapping[str, str],
    options: Options,
    *,
    strategy: VersionStrategy,
) -> RootReport:
    """Classify one scan root and resolve the versions of its results.

    Resolution is settled per result: a package whose version cannot be
    resolved is logged and counted, but keeps its classification.
    """
    report = RootReport(
        package_folder=package_folder,
        results=classify(package_folder, current, previous, graph, index),
    )
    if not options.version:
        return report

    outcomes = await resolve_versions(report.results, options, strategy)
    for result, outcome in zip(report.results, outcomes):
        if isinstance(outcome, BaseException):
            log.error("version.failed", package=result.name, error=str(outcome))
            report.failures += 1
            continue
        report.versions.setdefault(result.name, outcome.version)
    return report


def settle_versions(roots: Sequence[RootReport]) -> dict[str, str]:
    """Pick one version per package name across all scan roots.

    The first resolved result wins, in root order and then emission order,
    so every marker, manifest write and tag for a package agrees.
    """
    versions: dict[str, str] = {}
    for root in roots:
        for name, version in root.versions.items():
            versions.setdefault(name, version)
    return versions


def apply_versions(roots: Sequence[RootReport], versions: Mapping[str, str]) -> None:
    for root in roots:
        root.results = [
            result.model_copy(update={"version": versions[result.name]})
            if result.name in versions
            else result
            for result in root.results
        ]


async def apply_side_effects(
    results: Sequence[ChangeResult],
    options: Options,
    tagger: Tagger,
    versions: Mapping[str, str],
) -> int:
    """Write manifests and create tags for changed packages.

    Each package name is handled once per run, however many results or
    scan roots name it. With --version, packages whose version could not
    be resolved are left alone.

    Returns:
        Number of side effects that failed.
    """
    labels: list[tuple[str, str]] = []
    effects = []
    seen: set[str] = set()
    for result in results:
        if not result.changed or result.name in seen:
            continue
        seen.add(result.name)
        if options.version and result.name not in versions:
            continue
        if options.version and options.save_version:
            manifest_path = options.manifest_path(result.package_folder, result.name)
            labels.append(("save", result.name))
            effects.append(
                asyncio.to_thread(write_manifest_version, manifest_path, result.version)
            )
        if options.tag:
            labels.append(("tag", result.name))
            effects.append(
                asyncio.to_thread(ensure_tag, tagger, f"{result.name}@{result.version}")
            )

    failures = 0
    outcomes = await asyncio.gather(*effects, return_exceptions=True)
    for (action, name), outcome in zip(labels, outcomes):
        if isinstance(outcome, BaseException):
            log.error(f"{action}.failed", package=name, error=str(outcome))
            failures += 1
        else:
            log.debug(f"{action}.done", package=name, outcome=outcome)
    return failures


def refresh_manifest_fields(
    current: Mapping[str, PackageState], options: Options
) -> dict[str, PackageState]:
    """Re-read version and full name from manifests before persisting.

    Manifests may have been rewritten during the run, and the snapshot must
    record the versions that are now on disk.
    """
    refreshed: dict[str, PackageState] = {}
    for name, state in current.items():
        info = read_manifest(options.manifest_path(state.package_folder or "", name))
        refreshed[name] = state.model_copy(
            update={"version": info.version, "full_name": info.full_name}
        )
    return refreshed


async def run(
    options: Options,
    *,
    emitter: CIEmitter | None = None,
    tagger: Tagger | None = None,
    strategy: VersionStrategy = patch_bump_strategy,
) -> RunReport:
    """Execute a full change-detection run.

    Args:
        options: Validated run options.
        emitter: CI variable writer; defaults to options.ci_format.
        tagger: Tag capability; defaults to git.
        strategy: Next-version policy for NEW and CHANGED packages.

    Returns:
        A RunReport describing every scan root.

    Raises:
        HashingError: If no scan root could be hashed.
        SnapshotCorruptionError: If the snapshot file is malformed.
    """
    emitter = emitter or CIEmitter(options.ci_format)
    tagger = tagger or GitTagger()

    step(f"Scanning {', '.join(options.children)}")
    previous, (scanned, failed) = await asyncio.gather(
        asyncio.to_thread(load_snapshot, options.snapshot_path),
        scan_roots(options),
    )
    if not scanned:
        raise HashingError(f"No scan root could be hashed: {', '.join(failed)}")

    current = merge_current(scanned)
    report = RunReport(failed_roots=failed, current=current)

    if options.changed or options.version or options.tag:
        step("Detecting changes")
        graph = load_dependency_graph(options.dependencies)
        index = build_name_index(current)

        outcomes = await asyncio.gather(
            *(
                process_root(
                    folder,
                    current,
                    previous,
                    graph,
                    index,
                    options,
                    strategy=strategy,
                )
                for folder in scanned
            ),
            return_exceptions=True,
        )
        for folder, outcome in zip(scanned, outcomes):
            if isinstance(outcome, BaseException):
                log.error("detect.failed", package_folder=folder, error=str(outcome))
                report.failed_roots.append(folder)
                continue
            report.roots.append(outcome)

        versions = settle_versions(report.roots)
        apply_versions(report.roots, versions)
        if options.version:
            for result in report.results:
                if result.name in versions:
                    emitter.emit_version(result)

        report.side_effect_failures = await apply_side_effects(
            report.results, options, tagger, versions
        )
        report.changed = [result.name for result in report.results if result.changed]

    if options.changed:
        print(f"CHANGED - {json.dumps(report.changed)}")
        emitter.emit_changed(report.changed)

    if options.hash:
        step("Writing folder hashes")
        snapshot = await asyncio.to_thread(refresh_manifest_fields, current, options)
        # Keep the recorded state of roots that could not be scanned, so
        # their packages are not reported as NEW next time.
        for name, state in previous.items():
            if state.package_folder in failed and name not in snapshot:
                snapshot[name] = state
        await asyncio.to_thread(save_snapshot, options.snapshot_path, snapshot)
        report.snapshot_written = True
        log.info("snapshot.written", path=str(options.snapshot_path))

    return report

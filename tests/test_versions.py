"""Tests for lazy_versions.versions."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from lazy_versions.config import Options
from lazy_versions.models import ChangeResult, ChangeStatus
from lazy_versions.versions import (
    bump_patch,
    parse_version,
    patch_bump_strategy,
    resolve_version,
    resolve_versions,
)


def _result(
    status: ChangeStatus,
    version: str = "1.0.0",
    previous: str | None = "1.0.0",
    name: str = "pkg-a",
) -> ChangeResult:
    return ChangeResult(
        name=name,
        package_folder="packages",
        status=status,
        version=version,
        previous_version=previous,
    )


class TestParseVersion:
    def test_full_semver(self) -> None:
        v = parse_version("1.2.3")
        assert v.major == 1
        assert v.minor == 2
        assert v.patch == 3

    def test_two_part_version(self) -> None:
        v = parse_version("1.2")
        assert (v.major, v.minor, v.patch) == (1, 2, 0)

    def test_single_part_version(self) -> None:
        v = parse_version("5")
        assert (v.major, v.minor, v.patch) == (5, 0, 0)


class TestBumpPatch:
    def test_bump_full_version(self) -> None:
        assert bump_patch("1.2.3") == "1.2.4"

    def test_bump_two_part(self) -> None:
        assert bump_patch("1.2") == "1.2.1"

    def test_bump_zero(self) -> None:
        assert bump_patch("0.0.0") == "0.0.1"

    def test_bump_high_patch(self) -> None:
        assert bump_patch("1.0.99") == "1.0.100"


class TestPatchBumpStrategy:
    def _call(self, result: ChangeResult) -> str:
        return patch_bump_strategy(
            result.name, result.version, Path("pyproject.toml"), Options(), result
        )

    def test_new_keeps_manifest_version(self) -> None:
        assert self._call(_result(ChangeStatus.NEW, "0.3.0", None)) == "0.3.0"

    def test_changed_bumps_patch(self) -> None:
        assert self._call(_result(ChangeStatus.CHANGED, "1.0.0", "1.0.0")) == "1.0.1"

    def test_changed_without_recorded_version_bumps(self) -> None:
        assert self._call(_result(ChangeStatus.CHANGED, "1.0.0", None)) == "1.0.1"

    def test_changed_already_bumped_by_hand(self) -> None:
        assert self._call(_result(ChangeStatus.CHANGED, "2.0.0", "1.4.2")) == "2.0.0"


class TestResolveVersion:
    def test_unchanged_reports_recorded_version(self) -> None:
        result = _result(ChangeStatus.UNCHANGED, version="1.0.5", previous="1.0.4")
        resolved = resolve_version(result, Path("x"), Options())
        assert resolved.version == "1.0.4"
        assert resolved.status is ChangeStatus.UNCHANGED

    def test_unchanged_without_recorded_version(self) -> None:
        result = _result(ChangeStatus.UNCHANGED, version="1.0.5", previous=None)
        assert resolve_version(result, Path("x"), Options()).version == "1.0.5"

    def test_changed_uses_strategy(self) -> None:
        strategy = MagicMock(return_value="9.0.0")
        result = _result(ChangeStatus.CHANGED, version="1.0.0")
        options = Options()

        resolved = resolve_version(result, Path("m"), options, strategy)

        assert resolved.version == "9.0.0"
        assert resolved.previous_version == "1.0.0"
        strategy.assert_called_once_with("pkg-a", "1.0.0", Path("m"), options, result)

    def test_unchanged_does_not_call_strategy(self) -> None:
        strategy = MagicMock()
        resolve_version(_result(ChangeStatus.UNCHANGED), Path("m"), Options(), strategy)
        strategy.assert_not_called()


class TestResolveVersions:
    @pytest.mark.asyncio
    async def test_settles_each_result(self) -> None:
        def strategy(name, last_version, manifest_path, options, result):
            if name == "broken":
                raise ValueError("no version policy")
            return "2.0.0"

        results = [
            _result(ChangeStatus.CHANGED, name="broken"),
            _result(ChangeStatus.CHANGED, name="fine"),
        ]

        outcomes = await resolve_versions(results, Options(), strategy)

        assert isinstance(outcomes[0], ValueError)
        assert isinstance(outcomes[1], ChangeResult)
        assert outcomes[1].version == "2.0.0"

    @pytest.mark.asyncio
    async def test_passes_manifest_path(self) -> None:
        strategy = MagicMock(return_value="1.1.0")
        options = Options(prefix_path=Path("repo"), manifest="package.json")

        await resolve_versions([_result(ChangeStatus.CHANGED)], options, strategy)

        assert strategy.call_args.args[2] == Path("repo/packages/pkg-a/package.json")

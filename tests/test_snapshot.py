"""Tests for lazy_versions.snapshot."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from lazy_versions.errors import DataCorruptionError, SnapshotCorruptionError
from lazy_versions.models import PackageState
from lazy_versions.snapshot import dump_snapshot, load_snapshot, save_snapshot


class TestLoadSnapshot:
    def test_missing_file_creates_empty_snapshot(self, tmp_path: Path) -> None:
        path = tmp_path / ".cicd" / "hash.json"

        assert load_snapshot(path) == {}
        assert path.read_text() == "{}"

    def test_empty_file_is_empty_snapshot(self, tmp_path: Path) -> None:
        path = tmp_path / "hash.json"
        path.write_text("")
        assert load_snapshot(path) == {}

    def test_hash_only_entry(self, tmp_path: Path) -> None:
        path = tmp_path / "hash.json"
        path.write_text('{"pkgA": {"hash": "h1"}}')

        snapshot = load_snapshot(path)

        assert snapshot == {"pkgA": PackageState(hash="h1")}

    def test_full_entry(self, tmp_path: Path) -> None:
        path = tmp_path / "hash.json"
        path.write_text(
            json.dumps(
                {
                    "pkgA": {
                        "hash": "h1",
                        "version": "1.2.3",
                        "fullName": "@scope/pkg-a",
                        "packageFolder": "packages",
                    }
                }
            )
        )

        state = load_snapshot(path)["pkgA"]

        assert state.version == "1.2.3"
        assert state.full_name == "@scope/pkg-a"
        assert state.package_folder == "packages"

    @pytest.mark.parametrize(
        "content",
        ["{not json", "[1, 2]", '{"pkgA": {"version": "1.0.0"}}', '{"pkgA": 3}'],
    )
    def test_malformed_raises(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "hash.json"
        path.write_text(content)

        with pytest.raises(SnapshotCorruptionError):
            load_snapshot(path)

    def test_corruption_is_data_corruption(self) -> None:
        assert issubclass(SnapshotCorruptionError, DataCorruptionError)


class TestSaveSnapshot:
    def test_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "hash.json"
        snapshot = {
            "pkg-b": PackageState(
                hash="h2", version="2.0.0", full_name="b", package_folder="libs"
            ),
            "pkg-a": PackageState(
                hash="h1", version="1.0.0", full_name="a", package_folder="packages"
            ),
        }

        save_snapshot(path, snapshot)

        assert load_snapshot(path) == snapshot

    def test_writes_sorted_camel_case_json(self, tmp_path: Path) -> None:
        path = tmp_path / "hash.json"
        save_snapshot(
            path,
            {
                "b": PackageState(hash="2", full_name="b"),
                "a": PackageState(hash="1", package_folder="packages"),
            },
        )

        data = json.loads(path.read_text())
        assert list(data) == ["a", "b"]
        assert data["a"] == {"hash": "1", "packageFolder": "packages"}
        assert data["b"] == {"hash": "2", "fullName": "b"}

    def test_overwrites_rather_than_merges(self, tmp_path: Path) -> None:
        path = tmp_path / "hash.json"
        save_snapshot(path, {"old": PackageState(hash="x")})
        save_snapshot(path, {"new": PackageState(hash="y")})

        assert set(load_snapshot(path)) == {"new"}

    def test_failed_write_keeps_old_content(self, tmp_path: Path) -> None:
        path = tmp_path / "hash.json"
        save_snapshot(path, {"old": PackageState(hash="x")})
        before = path.read_text()

        with patch("lazy_versions.snapshot.os.replace", side_effect=OSError("boom")):
            with pytest.raises(OSError):
                save_snapshot(path, {"new": PackageState(hash="y")})

        assert path.read_text() == before
        assert [p.name for p in tmp_path.iterdir()] == ["hash.json"]

    def test_dump_ends_with_newline(self) -> None:
        assert dump_snapshot({}) == "{}\n"

"""Run configuration.

Every recognized option is listed here with its default. Unknown keys are
rejected so that typos fail at startup instead of being silently ignored.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError

DEFAULT_EXCLUDE_FOLDERS = ["node_modules", "coverage", "dist", "__pycache__", ".venv"]
DEFAULT_EXCLUDE_FILES = [".npmrc", "CHANGELOG.md", "README.md"]


class Options(BaseModel):
    """Options for a single lazy-versions run.

    Attributes:
        save_version: Write resolved versions back to package manifests.
        debug: Verbose tracing.
        changed: Emit the aggregate list of changed packages.
        version: Resolve and emit a version per package.
        hash: Persist the current hashes as the new snapshot.
        tag: Create a git tag ``name@version`` per changed package.
        children: Scan roots, relative to ``prefix_path``.
        prefix_path: Directory the scan roots and snapshot live under.
        hash_file: Snapshot path, relative to ``prefix_path``.
        hash_exclude_folders: Folder name patterns skipped while hashing.
        hash_exclude_files: File name patterns skipped while hashing.
        dependencies: Dependency declaration file, or None to disable
                      propagation.
        manifest: Manifest file name inside each package folder.
        ci_format: Which CI variable syntax to emit.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    save_version: bool = False
    debug: bool = False
    changed: bool = False
    version: bool = False
    hash: bool = False
    tag: bool = False
    children: list[str] = Field(default_factory=lambda: ["packages"])
    prefix_path: Path = Path("./")
    hash_file: Path = Path(".cicd/hash.json")
    hash_exclude_folders: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_FOLDERS)
    )
    hash_exclude_files: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_FILES)
    )
    dependencies: Path | None = Path("dependencies.json")
    manifest: str = "pyproject.toml"
    ci_format: Literal["azure", "github", "plain"] = "azure"

    @field_validator("children")
    @classmethod
    def _children_not_empty(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one scan root is required")
        return value

    @property
    def snapshot_path(self) -> Path:
        return self.prefix_path / self.hash_file

    def package_dir(self, package_folder: str, name: str) -> Path:
        return self.prefix_path / package_folder / name

    def manifest_path(self, package_folder: str, name: str) -> Path:
        return self.package_dir(package_folder, name) / self.manifest


def split_csv(value: str | None) -> list[str]:
    """Split a comma-separated CLI value, dropping empty items.

    Examples:
        "packages,libs" → ["packages", "libs"]
        "a,,b," → ["a", "b"]
    """
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def build_options(**values: Any) -> Options:
    """Validate raw option values into an Options instance.

    Raises:
        ConfigError: If a key is unknown or a value is invalid.
    """
    try:
        return Options(**values)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'options'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigError(f"Invalid options: {problems}") from exc

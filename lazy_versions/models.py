"""Data models for lazy-versions.

These Pydantic models represent the core data structures used throughout
the change-detection pipeline.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field


class PackageState(BaseModel):
    """Last-known (or current) state of a single package folder.

    This is the value type of the snapshot file, keyed by the package's
    local folder name. JSON uses camelCase field names so snapshots stay
    compatible with files written by other tools.

    Attributes:
        hash: Content digest of the package directory tree.
        version: Version string read from the package manifest.
        full_name: Identifier from the manifest, used as the dependency
                   graph key. None when the package has no manifest.
        package_folder: Scan root the package belongs to (e.g. "packages").
    """

    model_config = ConfigDict(populate_by_name=True)

    hash: str
    version: str | None = None
    full_name: str | None = Field(default=None, alias="fullName")
    package_folder: str | None = Field(default=None, alias="packageFolder")


class ChangeStatus(str, Enum):
    NEW = "NEW"
    CHANGED = "CHANGED"
    UNCHANGED = "UNCHANGED"


class ChangeResult(BaseModel):
    """Classification of one package during a single detection pass.

    Attributes:
        name: Local folder name of the package.
        package_folder: Scan root the package belongs to.
        status: NEW, CHANGED or UNCHANGED.
        version: Version to report. Before resolution this is the manifest
                 version; after resolution it is the resolved version.
        previous_version: Version recorded in the snapshot, if any.
        full_name: Manifest identifier of the package.
        reason: For results produced by propagation, the full name of the
                changed dependency that caused it.
    """

    name: str
    package_folder: str
    status: ChangeStatus
    version: str
    previous_version: str | None = None
    full_name: str | None = None
    reason: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def changed(self) -> bool:
        return self.status is not ChangeStatus.UNCHANGED


class VersionBump(BaseModel):
    """Records a version change written back to a manifest.

    Attributes:
        old: The version before the rewrite.
        new: The version after the rewrite.
    """

    old: str
    new: str

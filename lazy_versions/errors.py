"""Exception types raised by lazy-versions.

Only some of these are fatal: a ``HashingError`` aborts a single scan root,
and dependency-file corruption is downgraded to a warning by the loader.
"""

from __future__ import annotations


class LazyVersionsError(Exception):
    """Base class for all lazy-versions errors."""


class ConfigError(LazyVersionsError):
    """An option was unknown or had an invalid value."""


class HashingError(LazyVersionsError):
    """A scan root could not be hashed."""


class DataCorruptionError(LazyVersionsError):
    """A persisted file exists but its content cannot be parsed."""


class SnapshotCorruptionError(DataCorruptionError):
    """The hash snapshot file is malformed."""

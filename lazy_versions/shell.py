"""Shell and git utilities.

Provides a thin wrapper around git, the tag capability used by the
pipeline, plus output formatting helpers.
"""

from __future__ import annotations

import subprocess
import sys
from typing import Protocol


def git(*args: str, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--short").
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., tag lookup).

    Returns:
        Stripped stdout from the git command.
    """
    result = subprocess.run(["git", *args], capture_output=True, text=True, check=check)
    return result.stdout.strip()


class Tagger(Protocol):
    """Source-control tag capability.

    The pipeline only needs to know whether a tag exists and to create one;
    it never depends on a particular binary's argument syntax.
    """

    def tag_exists(self, rev: str) -> bool: ...

    def create_tag(self, rev: str, message: str) -> None: ...


class GitTagger:
    """Tagger backed by the git CLI in the current working directory."""

    def tag_exists(self, rev: str) -> bool:
        return bool(git("tag", "--list", rev, check=False))

    def create_tag(self, rev: str, message: str) -> None:
        git("tag", "-a", rev, "-m", message)


def ensure_tag(tagger: Tagger, rev: str) -> bool:
    """Create an annotated tag named rev unless it already exists.

    Returns:
        True if a tag was created, False if it was already there.
    """
    if tagger.tag_exists(rev):
        return False
    tagger.create_tag(rev, rev)
    return True


def step(msg: str) -> None:
    """Print a visually distinct step header to stderr.

    Used to separate major phases of a run in terminal output. It goes to
    stderr so stdout only carries CI variable markers.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}", file=sys.stderr)


def fatal(msg: str) -> None:
    """Print an error message and exit with code 1.

    Use for unrecoverable errors that should halt the run.
    """
    print(f"ERROR: {msg}", file=sys.stderr)
    sys.exit(1)

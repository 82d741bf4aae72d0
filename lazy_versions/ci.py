"""CI variable emission.

Results are reported to the CI system as line-based ``name=value`` style
markers: one per resolved package and one aggregate ``changed`` list for
the whole run.
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Sequence

from .models import ChangeResult

_UNSAFE_CHARS = str.maketrans("", "", "-_.")


def variable_name(package_name: str) -> str:
    """Derive a CI-safe variable name by dropping "-", "_" and ".".

    Examples:
        "pkg-alpha" → "pkgalpha"
        "my_lib.core" → "mylibcore"
    """
    return package_name.translate(_UNSAFE_CHARS)


def _write_output(output_path: str, name: str, value: str) -> None:
    with open(output_path, "a") as fh:
        fh.write(f"{name}={value}\n")


class CIEmitter:
    """Writes variables in the syntax of one CI system.

    Formats:
        azure: ``##vso[task.setvariable ...]`` logging commands on stdout.
        github: ``name=value`` lines appended to $GITHUB_OUTPUT, or stdout
                when the variable is unset.
        plain: ``name=value`` lines on stdout.
    """

    def __init__(self, ci_format: str = "azure", github_output: str | None = None):
        self.ci_format = ci_format
        self.github_output = github_output or os.environ.get("GITHUB_OUTPUT")

    def set_variable(self, name: str, value: str, *, aggregate: bool = False) -> None:
        if self.ci_format == "azure":
            # The aggregate marker has no trailing ";" before "]".
            suffix = "" if aggregate else ";"
            print(
                f"##vso[task.setvariable variable={name};isoutput=true{suffix}]{value}"
            )
        elif self.ci_format == "github" and self.github_output:
            _write_output(self.github_output, name, value)
        else:
            print(f"{name}={value}")
        sys.stdout.flush()

    def emit_version(self, result: ChangeResult) -> None:
        """Emit the resolved version of one package."""
        self.set_variable(variable_name(result.name), result.version)

    def emit_changed(self, changed: Sequence[str]) -> None:
        """Emit the aggregate list of changed package names."""
        self.set_variable("changed", json.dumps(list(changed)), aggregate=True)

"""CLI entry point for lazy-versions."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
import structlog

from lazy_versions.config import (
    DEFAULT_EXCLUDE_FILES,
    DEFAULT_EXCLUDE_FOLDERS,
    build_options,
    split_csv,
)
from lazy_versions.errors import ConfigError
from lazy_versions.log import setup_logging
from lazy_versions.pipeline import run
from lazy_versions.shell import fatal

log = structlog.get_logger(__name__)


def _csv(ctx: click.Context, param: click.Parameter, value: str | None) -> list[str]:
    return split_csv(value)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--save",
    "save_version",
    is_flag=True,
    help="Write resolved versions back to manifests.",
)
@click.option("--debug", is_flag=True, help="Verbose tracing.")
@click.option(
    "--changed", is_flag=True, help="Emit the aggregate changed-package list."
)
@click.option(
    "--version", is_flag=True, help="Resolve and emit a version per package."
)
@click.option("--hash", "hash_", is_flag=True, help="Persist current folder hashes.")
@click.option(
    "--tag", is_flag=True, help="Create a git tag name@version per changed package."
)
@click.option(
    "--children",
    default="packages",
    show_default=True,
    callback=_csv,
    help="Comma-separated scan roots.",
)
@click.option(
    "--prefixPath",
    "prefix_path",
    type=click.Path(path_type=Path),
    default="./",
    show_default=True,
    help="Directory holding the scan roots and the hash file.",
)
@click.option(
    "--hashFile",
    "hash_file",
    type=click.Path(path_type=Path),
    default=".cicd/hash.json",
    show_default=True,
    help="Snapshot path, relative to --prefixPath.",
)
@click.option(
    "--hashExcludeFolders",
    "hash_exclude_folders",
    default=",".join(DEFAULT_EXCLUDE_FOLDERS),
    show_default=True,
    callback=_csv,
    help="Comma-separated folder name patterns ignored while hashing.",
)
@click.option(
    "--hashExcludeFiles",
    "hash_exclude_files",
    default=",".join(DEFAULT_EXCLUDE_FILES),
    show_default=True,
    callback=_csv,
    help="Comma-separated file name patterns ignored while hashing.",
)
@click.option(
    "--dependencies",
    type=click.Path(path_type=Path),
    default="dependencies.json",
    show_default=True,
    help="Dependency declaration ({graph: {dependencies: ...}}).",
)
@click.option(
    "--manifest",
    default="pyproject.toml",
    show_default=True,
    help="Manifest file name inside each package folder.",
)
@click.option(
    "--ciFormat",
    "ci_format",
    type=click.Choice(["azure", "github", "plain"]),
    default="azure",
    show_default=True,
    help="Syntax used for emitted CI variables.",
)
def cli(hash_: bool, **values: object) -> None:
    """Detect changed packages since the last recorded hashes."""
    setup_logging(debug=bool(values["debug"]))
    options = build_options(hash=hash_, **values)
    log.debug("options", **options.model_dump(mode="json"))

    try:
        asyncio.run(run(options))
    except Exception as exc:
        log.debug("run.failed", exc_info=True)
        fatal(str(exc))

    click.echo("DONE")


def main(argv: list[str] | None = None) -> None:
    """Run the CLI, mapping every usage or configuration error to exit 1."""
    args = argv if argv is not None else sys.argv[1:]
    if not args:
        fatal("Expected at least one argument!")

    try:
        code = cli.main(args=args, prog_name="lazy-versions", standalone_mode=False)
    except click.ClickException as exc:
        exc.show()
        sys.exit(1)
    except ConfigError as exc:
        fatal(str(exc))
    except click.Abort:
        fatal("Aborted!")
    else:
        # --help returns 0 through click's Exit handling
        if isinstance(code, int) and code:
            sys.exit(code)


if __name__ == "__main__":
    main()

"""apicompat CLI entry point."""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable

import click

from apicompat import __version__
from apicompat.config import LoadConfig
from apicompat.engine.pipeline import compare_directories, make_release_report
from apicompat.engine.report import Report
from apicompat.schema import export_json_schema

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0  # Release version valid, or a version could be suggested
EXIT_INVALID = 1  # Invalid release, incompatible changes, errors or diagnostics
EXIT_ERROR = 2  # Bad input or git failure


def _emit(report: Report, fmt: str) -> None:
    if fmt == "json":
        click.echo(report.to_output().model_dump_json(indent=2))
    else:
        click.echo(report.text(), nl=False)
    sys.exit(EXIT_SUCCESS if report.is_successful() else EXIT_INVALID)


def _format_option(f: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--format",
        "fmt",
        type=click.Choice(["text", "json"]),
        default="text",
        help="Output format (default: text).",
    )(f)


def _build_options(f: Callable[..., Any]) -> Callable[..., Any]:
    f = click.option("--tags", default="", help="Comma-separated build tags.")(f)
    f = click.option("--goarch", envvar="GOARCH", default=None, help="Target architecture (default: $GOARCH or amd64).")(f)
    f = click.option("--goos", envvar="GOOS", default=None, help="Target operating system (default: $GOOS or linux).")(f)
    f = click.option("--cgo/--no-cgo", default=False, help="Include files that import \"C\".")(f)
    return f


@click.group()
@click.version_option(__version__, "--version", "-v")
@click.option("--debug", is_flag=True, default=False, help="Log progress to stderr.")
def main(debug: bool) -> None:
    """apicompat: checks that a Go module release follows semantic versioning."""
    if debug:
        logging.basicConfig(level=logging.DEBUG)


@main.command()
@click.option("--base", default="", help="Base version to compare against (default: latest reachable tag).")
@click.option("--version", "release", default="", help="Proposed release version to validate.")
@click.option("--repo", default=".", help="Directory inside the module (default: current directory).")
@_format_option
@_build_options
def check(
    base: str,
    release: str,
    repo: str,
    fmt: str,
    goos: str | None,
    goarch: str | None,
    tags: str,
    cgo: bool,
) -> None:
    """Compare the committed module against its base version.

    Without --version, suggest the next version. With it, check that the
    proposed version is valid for the changes found.

    \b
    Exit codes:
      0: Version valid (or suggested)
      1: Release not acceptable (see output)
      2: Error
    """
    try:
        config = LoadConfig.from_options(goos, goarch, tags, cgo=cgo)
        report = make_release_report(repo, base=base, release=release, config=config)
        _emit(report, fmt)
    except SystemExit:
        raise
    except Exception as exc:
        logger.debug("CLI error", exc_info=True)
        click.echo(f"Error: {exc}", err=True)
        sys.exit(EXIT_ERROR)


@main.command()
@click.argument("old_dir", type=click.Path(exists=True, file_okay=False))
@click.argument("new_dir", type=click.Path(exists=True, file_okay=False))
@click.option("--base", default="", help="Version of OLD_DIR, used for suggestions.")
@click.option("--version", "release", default="", help="Proposed version of NEW_DIR.")
@_format_option
@_build_options
def diff(
    old_dir: str,
    new_dir: str,
    base: str,
    release: str,
    fmt: str,
    goos: str | None,
    goarch: str | None,
    tags: str,
    cgo: bool,
) -> None:
    """Compare two module directories without git.

    OLD_DIR and NEW_DIR must each contain a go.mod file.
    """
    try:
        config = LoadConfig.from_options(goos, goarch, tags, cgo=cgo)
        report = compare_directories(old_dir, new_dir, base=base, release=release, config=config)
        _emit(report, fmt)
    except SystemExit:
        raise
    except Exception as exc:
        logger.debug("CLI error", exc_info=True)
        click.echo(f"Error: {exc}", err=True)
        sys.exit(EXIT_ERROR)


@main.command()
def schema() -> None:
    """Print the JSON Schema of the --format=json output."""
    click.echo(export_json_schema())

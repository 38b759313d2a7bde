"""
Click-based CLI for docsql.
"""

import json
import sys
from datetime import datetime
from pathlib import Path
from typing import NoReturn

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from . import __version__
from .application.services import EXIT_FATAL, CheckService, ListService
from .commands.list_examples import listing_json, render_listing
from .core.report import render_console, to_json
from .domain.results import CommandResult
from .models import DEFAULT_CLOCK, RunConfig

console = Console()
err_console = Console(stderr=True)

_DOCUMENTS = click.Path(exists=True, dir_okay=False, path_type=Path)


def _parse_clock(_ctx: click.Context, _param: click.Parameter, value: str | None) -> datetime:
    if not value:
        return DEFAULT_CLOCK
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise click.BadParameter(f"'{value}' is not an ISO 8601 timestamp") from e


def _fail(result: CommandResult, json_output: bool) -> NoReturn:
    if json_output:
        print(json.dumps(result.as_json_dict()))
    else:
        err_console.print(f"[red]✗[/red] {escape(result.message)}")
    sys.exit(result.exit_code)


@click.group()
@click.version_option(version=__version__, prog_name="docsql")
def cli() -> None:
    """docsql - check SQL examples in Markdown guides against PostgreSQL"""
    pass


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=_DOCUMENTS)
@click.option(
    "--dsn",
    envvar="DOCSQL_DSN",
    default="",
    help="PostgreSQL connection string (default: libpq PG* environment variables)",
)
@click.option(
    "--clock",
    envvar="DOCSQL_CLOCK",
    callback=_parse_clock,
    help=f"Instant injected for NOW()/CURRENT_DATE (default: {DEFAULT_CLOCK.isoformat()})",
)
@click.option(
    "--timezone",
    envvar="DOCSQL_TIMEZONE",
    default="UTC",
    show_default=True,
    help="Session time zone",
)
@click.option(
    "--timeout",
    envvar="DOCSQL_TIMEOUT",
    type=click.FloatRange(min=0, min_open=True),
    default=5.0,
    show_default=True,
    help="Per-example statement timeout in seconds",
)
@click.option("--casefold", is_flag=True, help="Compare outputs case-insensitively")
@click.option(
    "--collapse-whitespace",
    is_flag=True,
    help="Treat runs of whitespace as a single space when comparing",
)
@click.option(
    "--strict-quotes",
    is_flag=True,
    help="Do not ignore single quotes around documented values",
)
@click.option("--strict", is_flag=True, help="Fail when duplicated examples disagree")
@click.option("--json", "json_output", is_flag=True, help="Output JSON")
@click.option("--verbose", "-v", is_flag=True, help="Show actual output of passing examples")
def check(
    paths: tuple[Path, ...],
    dsn: str,
    clock: datetime,
    timezone: str,
    timeout: float,
    casefold: bool,
    collapse_whitespace: bool,
    strict_quotes: bool,
    strict: bool,
    json_output: bool,
    verbose: bool,
) -> None:
    """Run every SQL example in PATHS and compare with the documented output

    Examples:
        docsql check docs/*.md
        docsql check guide.md --dsn postgresql://localhost/postgres
        docsql check guide.md --clock 2024-09-08T12:00:00+00:00 --json
    """
    try:
        config = RunConfig(
            dsn=dsn,
            clock=clock,
            timezone=timezone,
            timeout_seconds=timeout,
            casefold=casefold,
            collapse_whitespace=collapse_whitespace,
            unquote=not strict_quotes,
        )
    except ValidationError as e:
        messages = "; ".join(error["msg"] for error in e.errors())
        _fail(
            CommandResult(
                success=False,
                code="invalid_config",
                message=f"Invalid configuration: {messages}",
                exit_code=EXIT_FATAL,
            ),
            json_output,
        )

    if not json_output:
        console.print(f"Checking examples in {len(paths)} document(s)...")

    result = CheckService().run(paths=list(paths), config=config, strict=strict)
    if "report" not in result.data:
        _fail(result, json_output)

    report = result.data["report"]
    if json_output:
        print(to_json(report))
    else:
        render_console(report, console, verbose=verbose)
    sys.exit(result.exit_code)


@cli.command(name="list")
@click.argument("paths", nargs=-1, required=True, type=_DOCUMENTS)
@click.option("--strict", is_flag=True, help="Fail when blocks were skipped or duplicates disagree")
@click.option("--json", "json_output", is_flag=True, help="Output JSON")
def list_command(paths: tuple[Path, ...], strict: bool, json_output: bool) -> None:
    """List the SQL examples found in PATHS without running them"""
    result = ListService().run(paths=list(paths), strict=strict)
    if "report" not in result.data:
        _fail(result, json_output)

    report = result.data["report"]
    if json_output:
        print(listing_json(report))
    else:
        render_listing(report, console)
    sys.exit(result.exit_code)


if __name__ == "__main__":
    cli()

"""
Report Generator

Aggregates per-example outcomes and renders them for people (rich console)
and machines (JSON).
"""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from docsql.models import Report

_STATUS_MARKUP = {
    "passed": "[green]✓ pass[/green]",
    "failed": "[red]✗ fail[/red]",
    "skipped": "[yellow]- skip[/yellow]",
}


def summary_line(report: Report) -> str:
    """One-line summary with counts, e.g. `12 examples: 11 passed, 1 failed, 0 skipped`."""
    noun = "example" if report.total == 1 else "examples"
    return (
        f"{report.total} {noun}: {report.passed} passed, "
        f"{report.failed} failed, {report.skipped} skipped"
    )


def render_issues(report: Report, console: Console) -> None:
    """Print parse issues and cross-document conflicts as warnings."""
    if report.parse_issues:
        console.print(f"[yellow]⚠  {len(report.parse_issues)} block(s) skipped:[/yellow]")
        for issue in report.parse_issues:
            console.print(
                f"  [yellow]•[/yellow] {escape(issue.source)}:{issue.line}: {escape(issue.message)}"
            )

    if report.conflicts:
        color = "red" if report.strict else "yellow"
        console.print(f"[{color}]⚠  {len(report.conflicts)} conflicting duplicate(s):[/{color}]")
        for conflict in report.conflicts:
            console.print(f"  [{color}]•[/{color}] {escape(conflict.sql)}")
            for example_id, expected in zip(conflict.example_ids, conflict.expected_outputs):
                console.print(f"      {escape(example_id)}: {escape(expected)}")


def render_console(report: Report, console: Console, verbose: bool = False) -> None:
    """Print the report as a table, failure details and a summary line.

    Args:
        report: Finished report
        console: Rich console to print to
        verbose: Also list passing examples' output
    """
    if report.entries:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Status", no_wrap=True)
        table.add_column("Example", no_wrap=True)
        table.add_column("Section")
        table.add_column("Detail")
        for entry in report.entries:
            detail = entry.message
            if verbose and entry.result is not None and entry.status == "passed":
                detail = entry.result.actual_output
            table.add_row(
                _STATUS_MARKUP[entry.status],
                escape(entry.example.id),
                escape(entry.example.section),
                escape(detail),
            )
        console.print(table)

    for entry in report.entries:
        if entry.status != "failed":
            continue
        console.print(
            f"\n[bold red]✗ {escape(entry.example.id)}[/bold red] "
            f"({escape(entry.example.source)}:{entry.example.line})"
        )
        console.print(Syntax(entry.example.sql, "sql", theme="monokai", line_numbers=False))
        if entry.diff:
            console.print(Syntax(entry.diff, "diff", theme="monokai", line_numbers=False))
        elif entry.message:
            console.print(f"  [red]{escape(entry.message)}[/red]")

    render_issues(report, console)

    color = "green" if report.success else "red"
    mark = "✓" if report.success else "✗"
    console.print(f"\n[{color}]{mark} {summary_line(report)}[/{color}]")


def to_json_dict(report: Report) -> dict[str, Any]:
    """Return a stable machine-readable structure."""
    return {
        "success": report.success,
        "summary": {
            "total": report.total,
            "passed": report.passed,
            "failed": report.failed,
            "skipped": report.skipped,
        },
        "entries": [
            {
                "id": entry.example.id,
                "source": entry.example.source,
                "section": entry.example.section,
                "line": entry.example.line,
                "status": entry.status,
                "failureCode": entry.failure_code,
                "message": entry.message,
                "expected": entry.example.expected_output,
                "actual": entry.result.actual_output if entry.result else None,
                "diff": entry.diff or None,
            }
            for entry in report.entries
        ],
        "parseIssues": [issue.model_dump() for issue in report.parse_issues],
        "conflicts": [
            {
                "sql": conflict.sql,
                "exampleIds": conflict.example_ids,
                "expectedOutputs": conflict.expected_outputs,
            }
            for conflict in report.conflicts
        ],
    }


def to_json(report: Report) -> str:
    return json.dumps(to_json_dict(report), ensure_ascii=False, indent=2)

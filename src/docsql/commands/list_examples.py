"""
List Command

Shows what the extractor finds in Markdown guides without touching a database.
"""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docsql.core.comparator import Comparator
from docsql.core.consistency import find_conflicts
from docsql.core.extractor import extract_files
from docsql.core.report import render_issues
from docsql.core.sql_utils import inject_clock
from docsql.models import DEFAULT_CLOCK, Report, ReportEntry


def list_examples(paths: list[Path], strict: bool = False) -> Report:
    """Extract examples and cross-document conflicts from the given documents.

    Every example is recorded as skipped; nothing is executed.

    Raises:
        OSError: If a document cannot be read
    """
    extraction = extract_files(paths)
    return Report(
        entries=[
            ReportEntry(example=example, status="skipped", message="not executed")
            for example in extraction.examples
        ],
        parse_issues=extraction.issues,
        conflicts=find_conflicts(extraction.examples, Comparator()),
        strict=strict,
    )


def render_listing(report: Report, console: Console) -> None:
    """Print extracted examples as a table followed by warnings."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Example", no_wrap=True)
    table.add_column("Section")
    table.add_column("SQL")
    table.add_column("Expected")
    table.add_column("Flags", no_wrap=True)
    for entry in report.entries:
        example = entry.example
        flags = [
            name
            for name, enabled in (
                ("skip", example.options.skip),
                ("casefold", example.options.casefold),
                ("collapse-whitespace", example.options.collapse_whitespace),
                ("clock", inject_clock(example.sql, DEFAULT_CLOCK)[1]),
            )
            if enabled
        ]
        table.add_row(
            escape(example.id),
            escape(example.section),
            escape(example.sql),
            escape(example.expected_output),
            ", ".join(flags),
        )
    console.print(table)
    render_issues(report, console)

    sources = len({entry.example.source for entry in report.entries})
    console.print(f"\n{report.total} example(s) in {sources} document(s)")


def listing_json(report: Report) -> str:
    return json.dumps(
        {
            "examples": [entry.example.model_dump() for entry in report.entries],
            "parseIssues": [issue.model_dump() for issue in report.parse_issues],
            "conflicts": [conflict.model_dump() for conflict in report.conflicts],
        },
        ensure_ascii=False,
        indent=2,
    )

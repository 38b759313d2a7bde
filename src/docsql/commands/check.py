"""
Check Command

Extracts examples from Markdown guides, runs each one against PostgreSQL and
compares the result with the documented output.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from docsql.core.comparator import Comparator
from docsql.core.consistency import find_conflicts
from docsql.core.extractor import extract_files
from docsql.core.harness import PostgresHarness
from docsql.domain.errors import MismatchError, QueryError
from docsql.models import Example, Report, ReportEntry, RunConfig


def comparator_for(config: RunConfig) -> Comparator:
    return Comparator(
        casefold=config.casefold,
        collapse_whitespace=config.collapse_whitespace,
        unquote=config.unquote,
    )


def skipped_entry(example: Example) -> ReportEntry:
    return ReportEntry(example=example, status="skipped", message="skipped by directive")


def check_example(
    harness: PostgresHarness, comparator: Comparator, example: Example
) -> ReportEntry:
    """Run one example and classify the outcome.

    Query failures and mismatches become failed entries; only connection
    failures escape.

    Args:
        harness: Connected harness
        comparator: Run-level comparator (example directives are layered on top)
        example: Example to check

    Returns:
        ReportEntry for the example

    Raises:
        DatabaseConnectionError: If the database cannot be reached
    """
    if example.options.skip:
        return skipped_entry(example)

    result = harness.run(example)
    try:
        if not result.succeeded:
            raise QueryError(result.error or "Query failed")
        comparison = comparator.for_example(example).compare(
            example.expected_output, result.actual_output
        )
        if not comparison.matched:
            raise MismatchError(
                f"expected {comparison.expected!r}, got {comparison.actual!r}",
                diff=comparison.diff,
            )
    except QueryError as e:
        return ReportEntry(
            example=example,
            result=result,
            status="failed",
            failure_code="query_error",
            message=e.message,
        )
    except MismatchError as e:
        return ReportEntry(
            example=example,
            result=result,
            status="failed",
            failure_code="mismatch",
            message=e.message,
            diff=e.diff,
        )
    return ReportEntry(example=example, result=result, status="passed")


def run_check(
    paths: list[Path],
    config: RunConfig,
    strict: bool = False,
    harness_factory: Callable[[RunConfig], PostgresHarness] = PostgresHarness,
) -> Report:
    """Validate every example in the given documents.

    A database connection is only opened when at least one example needs to
    run, so a document without examples passes vacuously.

    Args:
        paths: Markdown documents, checked in order
        config: Run configuration
        strict: Treat cross-document conflicts as failures
        harness_factory: Builds the execution harness

    Returns:
        Report with one entry per extracted example, in document order

    Raises:
        OSError: If a document cannot be read
        DatabaseConnectionError: If the database cannot be reached
    """
    extraction = extract_files(paths)
    comparator = comparator_for(config)
    report = Report(
        parse_issues=extraction.issues,
        conflicts=find_conflicts(extraction.examples, comparator),
        strict=strict,
    )

    if all(example.options.skip for example in extraction.examples):
        report.entries = [skipped_entry(example) for example in extraction.examples]
        return report

    with harness_factory(config) as harness:
        report.entries = [
            check_example(harness, comparator, example) for example in extraction.examples
        ]
    return report

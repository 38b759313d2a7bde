"""Application service layer over command modules.

This module provides a stable orchestration surface for CLI and SDK callers:
services translate domain errors into `CommandResult` envelopes and exit codes.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from docsql.commands.check import run_check
from docsql.commands.list_examples import list_examples
from docsql.core.harness import PostgresHarness
from docsql.core.report import summary_line
from docsql.domain.errors import DatabaseConnectionError
from docsql.domain.results import CommandResult
from docsql.models import RunConfig

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_FATAL = 2


def _read_failure(error: OSError) -> CommandResult:
    return CommandResult(
        success=False,
        code="read_error",
        message=f"Could not read document: {error}",
        exit_code=EXIT_FATAL,
    )


@dataclass(slots=True)
class CheckService:
    """Run every example in the given guides against PostgreSQL."""

    harness_factory: Callable[[RunConfig], PostgresHarness] = PostgresHarness

    def run(self, *, paths: list[Path], config: RunConfig, strict: bool = False) -> CommandResult:
        try:
            report = run_check(
                paths, config, strict=strict, harness_factory=self.harness_factory
            )
        except DatabaseConnectionError as e:
            return CommandResult(
                success=False, code=e.code, message=e.message, exit_code=EXIT_FATAL
            )
        except OSError as e:
            return _read_failure(e)

        return CommandResult(
            success=report.success,
            code="passed" if report.success else "failed",
            message=summary_line(report),
            exit_code=EXIT_OK if report.success else EXIT_FAILED,
            data={"report": report},
        )


@dataclass(slots=True)
class ListService:
    """Extract examples without executing them."""

    def run(self, *, paths: list[Path], strict: bool = False) -> CommandResult:
        try:
            report = list_examples(paths, strict=strict)
        except OSError as e:
            return _read_failure(e)

        clean = not report.parse_issues and not report.conflicts
        success = clean or not strict
        return CommandResult(
            success=success,
            code="listed" if clean else "issues_found",
            message=f"{report.total} example(s) extracted",
            exit_code=EXIT_OK if success else EXIT_FAILED,
            data={"report": report},
        )

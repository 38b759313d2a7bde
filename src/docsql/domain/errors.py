"""Unified domain error taxonomy for example validation runs."""

from dataclasses import dataclass


@dataclass(slots=True)
class DocSQLError(Exception):
    """Base class for validation failures."""

    message: str
    code: str

    def __str__(self) -> str:
        return self.message


class ExampleParseError(DocSQLError):
    """Raised for a malformed example block; recovered by the extractor."""

    def __init__(self, message: str, line: int = 0) -> None:
        super().__init__(message=message, code="parse_error")
        self.line = line


class DatabaseConnectionError(DocSQLError):
    """Raised when the database is unreachable. Aborts the run."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="connection_error")


class QueryError(DocSQLError):
    """Raised when a single example fails to execute."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="query_error")


class MismatchError(DocSQLError):
    """Raised when the actual output differs from the documented one."""

    def __init__(self, message: str, diff: str = "") -> None:
        super().__init__(message=message, code="mismatch")
        self.diff = diff

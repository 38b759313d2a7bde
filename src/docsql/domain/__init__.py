"""Domain types and contracts for docsql validation runs."""

from .errors import (
    DatabaseConnectionError,
    DocSQLError,
    ExampleParseError,
    MismatchError,
    QueryError,
)
from .results import CommandResult

__all__ = [
    "CommandResult",
    "DocSQLError",
    "ExampleParseError",
    "DatabaseConnectionError",
    "QueryError",
    "MismatchError",
]

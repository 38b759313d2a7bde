"""
docsql

Validate the SQL examples in Markdown guides against a live PostgreSQL
instance: extract each snippet and its documented output, execute it, compare
and report.
"""

__version__ = "0.1.0"

from .core.comparator import Comparator
from .core.extractor import ExtractionResult, extract_examples, extract_file
from .core.harness import PostgresHarness
from .models import (
    Comparison,
    Example,
    ExecutionResult,
    ParseIssue,
    Report,
    ReportEntry,
    RunConfig,
)

__all__ = [
    "__version__",
    "Example",
    "ExecutionResult",
    "Comparison",
    "ParseIssue",
    "Report",
    "ReportEntry",
    "RunConfig",
    "ExtractionResult",
    "extract_examples",
    "extract_file",
    "PostgresHarness",
    "Comparator",
]

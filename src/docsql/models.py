"""
Pydantic models for docsql examples, execution results and reports.
"""

from datetime import UTC, datetime
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_CLOCK = datetime(2024, 9, 8, 12, 0, 0, tzinfo=UTC)


class ExampleOptions(BaseModel):
    """Per-example comparison switches set by `<!-- docsql: ... -->` directives"""

    model_config = ConfigDict(frozen=True)

    skip: bool = False
    casefold: bool = False
    collapse_whitespace: bool = False


class Example(BaseModel):
    """A SQL snippet and its documented output, as extracted from a guide

    Attributes:
        id: Stable identifier, `<file name>#<ordinal>`
        source: Path (or label) of the document the example came from
        section: Nearest preceding heading, empty when there is none
        line: 1-based line of the opening fence
        sql: SQL text with output comments removed
        expected_output: Documented output
        notes: Explanation text adjacent to the block
        options: Comparison switches for this example
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Example identifier")
    source: str = Field(..., description="Source document")
    section: str = Field(default="", description="Enclosing section heading")
    line: int = Field(default=0, description="Line of the opening fence")
    sql: str = Field(..., description="SQL snippet")
    expected_output: str = Field(..., description="Documented output")
    notes: str = Field(default="", description="Explanation text")
    options: ExampleOptions = Field(default_factory=ExampleOptions)


class ParseIssue(BaseModel):
    """A block the extractor skipped, or a problem it recovered from"""

    model_config = ConfigDict(frozen=True)

    source: str
    line: int
    message: str


class ExecutionResult(BaseModel):
    """Result of running one example against the database"""

    example_id: str = Field(..., description="Example identifier")
    actual_output: str = Field(default="", description="Rendered result text")
    succeeded: bool = Field(..., description="Whether every statement executed")
    error: str | None = Field(None, description="Server error if execution failed")
    elapsed_ms: int = Field(default=0, description="Execution time in milliseconds")
    clock_injected: bool = Field(
        default=False, description="Whether clock functions were replaced"
    )


class Comparison(BaseModel):
    """Outcome of comparing documented and actual output"""

    matched: bool
    expected: str
    actual: str
    diff: str = ""


class Conflict(BaseModel):
    """Examples with the same SQL but disagreeing documented outputs"""

    sql: str
    example_ids: list[str]
    expected_outputs: list[str]


class ReportEntry(BaseModel):
    """One example together with what happened to it"""

    example: Example
    result: ExecutionResult | None = None
    status: Literal["passed", "failed", "skipped"]
    failure_code: Literal["query_error", "mismatch"] | None = None
    message: str = ""
    diff: str = ""


class Report(BaseModel):
    """Ordered run results plus summary counts"""

    entries: list[ReportEntry] = Field(default_factory=list)
    parse_issues: list[ParseIssue] = Field(default_factory=list)
    conflicts: list[Conflict] = Field(default_factory=list)
    strict: bool = Field(default=False, description="Treat conflicts as failures")

    @property
    def total(self) -> int:
        return len(self.entries)

    @property
    def passed(self) -> int:
        return sum(1 for e in self.entries if e.status == "passed")

    @property
    def failed(self) -> int:
        return sum(1 for e in self.entries if e.status == "failed")

    @property
    def skipped(self) -> int:
        return sum(1 for e in self.entries if e.status == "skipped")

    @property
    def success(self) -> bool:
        if self.failed:
            return False
        return not (self.strict and self.conflicts)

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1


class RunConfig(BaseModel):
    """Configuration for a validation run

    Attributes:
        dsn: libpq connection string; empty defers to PG* environment variables
        clock: Instant substituted for NOW(), CURRENT_DATE and friends
        timezone: Session time zone, also used to render the injected clock
        timeout_seconds: Per-example statement timeout
        connect_timeout_seconds: Timeout for opening the connection
        casefold: Case-insensitive comparison for every example
        collapse_whitespace: Treat whitespace runs as a single space
        unquote: Ignore one enclosing pair of single quotes around values
    """

    dsn: str = Field(default="", description="PostgreSQL connection string")
    clock: datetime = Field(default=DEFAULT_CLOCK, description="Injected clock value")
    timezone: str = Field(default="UTC", description="Session time zone")
    timeout_seconds: float = Field(default=5.0, gt=0, description="Per-example timeout")
    connect_timeout_seconds: int = Field(default=10, ge=2, description="Connection timeout")
    casefold: bool = Field(default=False, description="Case-insensitive comparison")
    collapse_whitespace: bool = Field(default=False, description="Collapse whitespace runs")
    unquote: bool = Field(default=True, description="Ignore enclosing single quotes")

    @field_validator("clock")
    @classmethod
    def _clock_is_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @field_validator("timezone")
    @classmethod
    def _timezone_is_known(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone '{value}'") from e
        return value

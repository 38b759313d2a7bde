"""
Markdown example extractor.

Pulls (SQL snippet, expected output, explanation) triples out of Markdown
guides. A SQL example is a fenced block tagged `sql`, `postgres`,
`postgresql`, `pgsql` or `psql`; its expected output comes from an output
comment inside the block (`-- Output: TRUE`), a labelled line after it
(`Output: 2024-09-08`) or a plain fenced block following an `Output:` label.
Malformed blocks are skipped and reported as parse issues; one bad block never
fails the whole document.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from docsql.domain.errors import ExampleParseError
from docsql.models import Example, ExampleOptions, ParseIssue

from .sql_utils import COMMENT, iter_segments, split_sql_statements

SQL_LANGUAGES = frozenset({"sql", "postgres", "postgresql", "pgsql", "psql"})
OUTPUT_LANGUAGES = frozenset({"", "text", "output", "console", "plaintext"})
DIRECTIVES = {
    "skip": "skip",
    "casefold": "casefold",
    "collapse-whitespace": "collapse_whitespace",
}

_FENCE_OPEN = re.compile(r"^ {0,3}(?P<fence>`{3,}|~{3,})\s*(?P<info>[^`]*?)\s*$")
_HEADING = re.compile(r"^ {0,3}#{1,6}\s+(?P<title>.*?)(?:\s+#+)?\s*$")
_DIRECTIVE = re.compile(r"^\s*<!--\s*docsql\s*:\s*(?P<body>.*?)\s*-->\s*$", re.IGNORECASE)

_LABEL = r"(?:output|result|returns|expected(?:\s+output)?)"
_COMMENT_OUTPUT = re.compile(
    rf"^(?:{_LABEL}\s*[:：]|=>|→)\s*(?P<value>.*?)\s*$", re.IGNORECASE
)
_PROSE_OUTPUT = re.compile(
    rf"^\s*(?:[-*+]\s+)?(?:[*_]{{0,2}}{_LABEL}[*_]{{0,2}}\s*[:：][*_]{{0,2}}|=>|→)"
    r"\s*(?P<value>.*?)\s*$",
    re.IGNORECASE,
)
_EXPLANATION = re.compile(
    r"^\s*(?:[-*+]\s+)?[*_]{0,2}explanation[*_]{0,2}\s*[:：][*_]{0,2}\s*(?P<value>.*?)\s*$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class _Fence:
    """A fenced block located in the document (line indexes are 0-based)."""

    start: int
    end: int
    language: str
    body: list[str]


@dataclass(frozen=True)
class ExtractionResult:
    """Examples found in a document plus the blocks that were skipped."""

    examples: list[Example] = field(default_factory=list)
    issues: list[ParseIssue] = field(default_factory=list)


def _strip_backticks(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value.startswith("`") and value.endswith("`"):
        return value[1:-1]
    return value


def _open_fence(lines: list[str], start: int) -> _Fence | None:
    """Return the fenced block opening at `start`, or None if the line is not a fence.

    Raises:
        ExampleParseError: If the fence is never closed
    """
    match = _FENCE_OPEN.match(lines[start])
    if not match:
        return None
    fence = match.group("fence")
    closing = re.compile(rf"^ {{0,3}}{re.escape(fence[0])}{{{len(fence)},}}\s*$")
    for index in range(start + 1, len(lines)):
        if closing.match(lines[index]):
            info = match.group("info").split()
            language = info[0].lower() if info else ""
            return _Fence(start, index, language, lines[start + 1 : index])
    raise ExampleParseError("unterminated code fence", line=start + 1)


def _split_output_comments(body: str) -> tuple[str, list[str]]:
    """Remove `-- Output: ...` comments from SQL, returning them separately."""
    kept: list[str] = []
    outputs: list[str] = []
    for kind, text in iter_segments(body):
        if kind == COMMENT and text.startswith("--"):
            match = _COMMENT_OUTPUT.match(text[2:].strip())
            if match:
                outputs.append(_strip_backticks(match.group("value")))
                continue
        kept.append(text)
    sql = "\n".join(line.rstrip() for line in "".join(kept).splitlines()).strip()
    return sql, outputs


class _DocumentParser:
    """Walk one Markdown document line by line, collecting examples and issues."""

    def __init__(self, text: str, source: str) -> None:
        self.lines = text.splitlines()
        self.source = source
        self.label = Path(source).name or source
        self.section = ""
        self.options: dict[str, bool] = {}
        self.examples: list[Example] = []
        self.issues: list[ParseIssue] = []

    def _issue(self, line: int, message: str) -> None:
        self.issues.append(ParseIssue(source=self.source, line=line, message=message))

    def parse(self) -> ExtractionResult:
        index = 0
        while index < len(self.lines):
            line = self.lines[index]

            heading = _HEADING.match(line)
            if heading:
                self.section = heading.group("title")
                index += 1
                continue

            directive = _DIRECTIVE.match(line)
            if directive:
                self._read_directive(directive.group("body"), index + 1)
                index += 1
                continue

            try:
                fence = _open_fence(self.lines, index)
            except ExampleParseError as e:
                self._issue(e.line, e.message)
                break

            if fence is None:
                index += 1
                continue

            if fence.language not in SQL_LANGUAGES:
                index = fence.end + 1
                continue

            options = ExampleOptions(**self.options)
            self.options = {}
            try:
                index = self._read_example(fence, options)
            except ExampleParseError as e:
                self._issue(e.line, e.message)
                index = fence.end + 1

        return ExtractionResult(examples=self.examples, issues=self.issues)

    def _read_directive(self, body: str, line: int) -> None:
        for name in (part.strip().lower() for part in body.split(",")):
            if not name:
                continue
            if name in DIRECTIVES:
                self.options[DIRECTIVES[name]] = True
            else:
                self._issue(line, f"unknown docsql directive '{name}'")

    def _read_example(self, fence: _Fence, options: ExampleOptions) -> int:
        """Build one Example from a SQL fence and the prose that follows it.

        Returns:
            Index of the first line after everything consumed

        Raises:
            ExampleParseError: If the block has no statements or no expected output
        """
        line_no = fence.start + 1
        sql, outputs = _split_output_comments("\n".join(fence.body))
        if not split_sql_statements(sql):
            raise ExampleParseError("SQL block contains no statements", line=line_no)

        next_index, prose_output, notes = self._read_prose(fence.end + 1)
        if not outputs and prose_output is not None:
            outputs = [prose_output]
        if not outputs and not options.skip:
            raise ExampleParseError("no expected output found for SQL block", line=line_no)

        self.examples.append(
            Example(
                id=f"{self.label}#{len(self.examples) + 1}",
                source=self.source,
                section=self.section,
                line=line_no,
                sql=sql,
                expected_output="\n".join(outputs),
                notes=notes,
                options=options,
            )
        )
        return next_index

    def _read_prose(self, start: int) -> tuple[int, str | None, str]:
        """Scan the prose after a SQL block up to the next heading, directive or fence.

        Returns:
            (next_index, expected_output or None, notes)
        """
        output: str | None = None
        explanation: str | None = None
        paragraph: list[str] = []
        paragraph_done = False
        index = start

        while index < len(self.lines):
            line = self.lines[index]
            if _HEADING.match(line) or _DIRECTIVE.match(line) or _FENCE_OPEN.match(line):
                break
            stripped = line.strip()
            index += 1

            if not stripped:
                paragraph_done = paragraph_done or bool(paragraph)
                continue

            output_match = _PROSE_OUTPUT.match(line)
            if output_match and output is None:
                value = output_match.group("value")
                if value:
                    output = _strip_backticks(value)
                else:
                    block, index = self._read_output_block(index)
                    if block is not None:
                        output = block
                continue

            explanation_match = _EXPLANATION.match(line)
            if explanation_match and explanation is None:
                explanation = explanation_match.group("value")
                continue

            if not paragraph_done:
                paragraph.append(stripped)

        notes = explanation if explanation is not None else " ".join(paragraph)
        return index, output, notes

    def _read_output_block(self, index: int) -> tuple[str | None, int]:
        """Read a plain fenced block that directly follows an `Output:` label."""
        probe = index
        while probe < len(self.lines) and not self.lines[probe].strip():
            probe += 1
        if probe >= len(self.lines):
            return None, index
        try:
            fence = _open_fence(self.lines, probe)
        except ExampleParseError:
            # reported once by the main loop when it reaches the fence
            return None, index
        if fence is None or fence.language not in OUTPUT_LANGUAGES:
            return None, index
        return "\n".join(fence.body).strip("\n"), fence.end + 1


def extract_examples(text: str, source: str = "<string>") -> ExtractionResult:
    """Extract SQL examples from Markdown text.

    Args:
        text: Markdown document content
        source: Path or label used in example ids and parse issues

    Returns:
        ExtractionResult with examples in document order and parse issues
    """
    return _DocumentParser(text, source).parse()


def extract_file(path: Path) -> ExtractionResult:
    """Extract SQL examples from a Markdown file.

    Raises:
        OSError: If the file cannot be read or is not valid UTF-8
    """
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise OSError(f"{path} is not valid UTF-8 (byte {e.start}: {e.reason})") from e
    return extract_examples(text, source=str(path))


def extract_files(paths: list[Path]) -> ExtractionResult:
    """Extract examples from several documents, keeping document order."""
    examples: list[Example] = []
    issues: list[ParseIssue] = []
    for path in paths:
        result = extract_file(path)
        examples.extend(result.examples)
        issues.extend(result.issues)
    return ExtractionResult(examples=examples, issues=issues)

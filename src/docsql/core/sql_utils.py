"""
SQL utilities - quote-aware helpers for SQL snippet handling.

Single source of truth for splitting a snippet into statements, locating
trailing `--` comments, replacing clock functions with a fixed instant and
normalizing SQL text for duplicate detection.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from datetime import datetime
from zoneinfo import ZoneInfo

import sqlglot
from sqlglot.errors import SqlglotError

CODE = "code"
STRING = "string"
IDENTIFIER = "identifier"
COMMENT = "comment"

_DOLLAR_TAG = re.compile(r"\$(?:[A-Za-z_][A-Za-z0-9_]*)?\$")


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char == "_"


def _has_escape_prefix(sql: str, quote: int) -> bool:
    """True when the quote at `quote` opens an E'...' string."""
    if quote == 0 or sql[quote - 1] not in "eE":
        return False
    return quote == 1 or not _is_word_char(sql[quote - 2])


def _scan_string(sql: str, start: int) -> int:
    """Return the index just past the string literal opening at `start`."""
    escapes = _has_escape_prefix(sql, start)
    i = start + 1
    while i < len(sql):
        char = sql[i]
        if escapes and char == "\\":
            i += 2
            continue
        if char == "'":
            if i + 1 < len(sql) and sql[i + 1] == "'":
                i += 2
                continue
            return i + 1
        i += 1
    return len(sql)


def _scan_block_comment(sql: str, start: int) -> int:
    """Return the index just past the (possibly nested) comment at `start`."""
    depth = 0
    i = start
    while i < len(sql):
        pair = sql[i : i + 2]
        if pair == "/*":
            depth += 1
            i += 2
        elif pair == "*/":
            depth -= 1
            i += 2
            if depth == 0:
                return i
        else:
            i += 1
    return len(sql)


def iter_segments(sql: str) -> Iterator[tuple[str, str]]:
    """Split SQL text into code, string, identifier and comment segments.

    Understands '' escapes, E'' backslash escapes, "quoted identifiers",
    $tag$ dollar quoting, -- line comments and nested /* */ comments.
    Unterminated constructs run to the end of the text.

    Args:
        sql: SQL text

    Yields:
        (kind, text) pairs whose texts concatenate back to `sql`
    """
    code_start = 0
    i = 0
    while i < len(sql):
        char = sql[i]
        end = None
        kind = None
        if char == "'":
            kind, end = STRING, _scan_string(sql, i)
        elif char == '"':
            close = sql.find('"', i + 1)
            while close != -1 and sql[close + 1 : close + 2] == '"':
                close = sql.find('"', close + 2)
            kind, end = IDENTIFIER, len(sql) if close == -1 else close + 1
        elif sql.startswith("--", i):
            newline = sql.find("\n", i)
            kind, end = COMMENT, len(sql) if newline == -1 else newline
        elif sql.startswith("/*", i):
            kind, end = COMMENT, _scan_block_comment(sql, i)
        elif char == "$" and (i == 0 or not _is_word_char(sql[i - 1])):
            match = _DOLLAR_TAG.match(sql, i)
            if match:
                close = sql.find(match.group(0), match.end())
                kind = STRING
                end = len(sql) if close == -1 else close + len(match.group(0))

        if kind is None:
            i += 1
            continue

        # E'...' keeps its prefix inside the string segment
        seg_start = i
        if char == "'" and i > code_start and _has_escape_prefix(sql, i):
            seg_start = i - 1
        if seg_start > code_start:
            yield CODE, sql[code_start:seg_start]
        yield kind, sql[seg_start:end]
        code_start = i = end

    if code_start < len(sql):
        yield CODE, sql[code_start:]


def split_sql_statements(sql_text: str) -> list[str]:
    """Split a SQL snippet into statements while preserving quoted semicolons.

    Semicolons inside strings, quoted identifiers, dollar-quoted bodies and
    comments do not end a statement. Statements consisting only of comments
    are dropped.

    Args:
        sql_text: Raw SQL snippet content

    Returns:
        List of non-empty statement strings, in order
    """
    statements: list[str] = []
    current: list[str] = []
    has_code = False

    def flush() -> None:
        statement = "".join(current).strip()
        if statement and has_code:
            statements.append(statement)

    for kind, text in iter_segments(sql_text):
        if kind != CODE:
            current.append(text)
            if kind != COMMENT:
                has_code = True
            continue
        parts = text.split(";")
        for index, part in enumerate(parts):
            if index > 0:
                flush()
                current = []
                has_code = False
            current.append(part)
            if part.strip():
                has_code = True

    flush()
    return statements


def split_trailing_comment(line: str) -> tuple[str, str | None]:
    """Split one line into its SQL part and a trailing `--` comment.

    Returns:
        (code, comment_text) where comment_text excludes the dashes, or None
    """
    position = 0
    for kind, text in iter_segments(line):
        if kind == COMMENT and text.startswith("--"):
            return line[:position].rstrip(), text[2:].strip()
        position += len(text)
    return line, None


# --- Clock injection ---

_CLOCK_FUNCTIONS = re.compile(
    r"""
    (?<![\w."$])
    (?:pg_catalog\s*\.\s*)?
    (?:
        (?P<call>now|transaction_timestamp|statement_timestamp|clock_timestamp)\s*\(\s*\)
      | (?P<keyword>current_timestamp|localtimestamp|current_time|localtime)\b
        (?:\s*\(\s*(?P<precision>\d+)\s*\))?
      | (?P<date>current_date)\b
    )
    """,
    re.IGNORECASE | re.VERBOSE,
)

_KEYWORD_TYPES = {
    "current_timestamp": "timestamptz",
    "localtimestamp": "timestamp",
    "current_time": "timetz",
    "localtime": "time",
}


def _clock_literal(match: re.Match[str], local: datetime) -> str:
    if match.group("date"):
        return f"CAST('{local.date().isoformat()}' AS date)"
    if match.group("call"):
        sql_type = "timestamptz"
        precision = None
    else:
        sql_type = _KEYWORD_TYPES[match.group("keyword").lower()]
        precision = match.group("precision")

    if sql_type == "timestamptz":
        value = local.isoformat(sep=" ")
    elif sql_type == "timestamp":
        value = local.replace(tzinfo=None).isoformat(sep=" ")
    elif sql_type == "timetz":
        value = local.isoformat(sep=" ").partition(" ")[2]
    else:
        value = local.time().isoformat()

    if precision is not None:
        sql_type = f"{sql_type}({precision})"
    return f"CAST('{value}' AS {sql_type})"


def inject_clock(sql: str, clock: datetime, timezone: str = "UTC") -> tuple[str, bool]:
    """Replace clock functions in code segments with literals of `clock`.

    NOW(), CURRENT_TIMESTAMP, CURRENT_DATE, CURRENT_TIME, LOCALTIMESTAMP,
    LOCALTIME, TRANSACTION_TIMESTAMP(), STATEMENT_TIMESTAMP() and
    CLOCK_TIMESTAMP() become typed literals of the same instant, expressed in
    `timezone`. Strings, quoted identifiers and comments are left untouched.

    Args:
        sql: SQL snippet
        clock: Timezone-aware instant to substitute
        timezone: IANA zone name used to express the instant

    Returns:
        (rewritten_sql, injected) where injected tells whether anything changed
    """
    local = clock.astimezone(ZoneInfo(timezone))
    injected = False
    pieces: list[str] = []

    for kind, text in iter_segments(sql):
        if kind == CODE:
            text, count = _CLOCK_FUNCTIONS.subn(lambda m: _clock_literal(m, local), text)
            injected = injected or count > 0
        pieces.append(text)

    return "".join(pieces), injected


# --- Normalization ---


def normalize_sql(sql: str, dialect: str = "postgres") -> str:
    """Canonical form of a snippet for duplicate detection.

    Uses SQLGlot to re-render each statement so formatting and keyword case
    do not matter; falls back to comment-free, whitespace-collapsed lower-case
    text when SQLGlot cannot parse the snippet.

    Args:
        sql: SQL snippet
        dialect: SQLGlot dialect (default: postgres)

    Returns:
        Normalized SQL text
    """
    statements = split_sql_statements(sql)
    try:
        rendered = [
            expression.sql(dialect=dialect, normalize=True)
            for statement in statements
            for expression in sqlglot.parse(statement, read=dialect)
            if expression is not None
        ]
    except SqlglotError:
        return _normalize_text(statements)
    return "; ".join(rendered)


def _normalize_text(statements: list[str]) -> str:
    """Fallback normalization when SQLGlot cannot parse a snippet."""
    normalized = []
    for statement in statements:
        text = "".join(
            segment.lower() if kind == CODE else segment
            for kind, segment in iter_segments(statement)
            if kind != COMMENT
        )
        normalized.append(re.sub(r"\s+", " ", text).strip())
    return "; ".join(normalized)

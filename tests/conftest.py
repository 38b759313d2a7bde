from datetime import UTC, datetime
from pathlib import Path

import pytest

from docsql.models import RunConfig
from tests.utils import FakeConnection

SAMPLE_GUIDE = """\
# Formatting guide

## Dates

```sql
SELECT TO_CHAR(NOW(), 'YYYY-MM-DD');
```
Output: `2024-09-08`
Explanation: ISO date from the current timestamp.

## Regex

```sql
SELECT 'abcdef' ~ 'abc'; -- Output: TRUE
```
Explanation: Case-sensitive match.

<!-- docsql: skip -->
```sql
SELECT * FROM users;
```
"""


@pytest.fixture
def sample_guide() -> str:
    """Small guide with one prose output, one comment output and one skipped block"""
    return SAMPLE_GUIDE


@pytest.fixture
def write_doc(tmp_path: Path):
    """Write a Markdown document into a temp directory and return its path"""

    def _write(text: str, name: str = "guide.md") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def run_config() -> RunConfig:
    return RunConfig(
        dsn="dbname=docsql_test",
        clock=datetime(2024, 9, 8, 12, 0, 0, tzinfo=UTC),
        timezone="UTC",
        timeout_seconds=2,
    )


@pytest.fixture
def no_typecasters(monkeypatch) -> None:
    """Fake connections cannot carry psycopg2 typecasters"""
    monkeypatch.setattr(
        "docsql.core.harness.psycopg2.extensions.register_type", lambda *_args: None
    )


@pytest.fixture
def fake_connection(no_typecasters) -> FakeConnection:
    return FakeConnection()

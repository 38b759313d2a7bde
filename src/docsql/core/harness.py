"""
PostgreSQL Execution Harness

Runs example snippets against a live PostgreSQL instance through psycopg2 and
renders the results as text in the form guides usually document them.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from typing import Any

import psycopg2
import psycopg2.extensions

from docsql.domain.errors import DatabaseConnectionError, QueryError
from docsql.models import Example, ExecutionResult, RunConfig

from .comparator import CELL_SEPARATOR
from .sql_utils import inject_clock, split_sql_statements

BOOL_OID = 16
TEXT_OIDS = frozenset({18, 19, 25, 705, 1042, 1043})

# Types psycopg2 would otherwise convert to Python objects; keep the server's text form
RAW_OIDS = (
    16, 17, 20, 21, 23, 26, 114, 700, 701, 790, 1082, 1083, 1114, 1184, 1186, 1266, 1700,
    2950, 3802,
    199, 1000, 1001, 1005, 1007, 1009, 1014, 1015, 1016, 1021, 1022, 1115, 1182, 1183, 1185,
    1187, 1231, 1270, 2951, 3807,
)

_RAW_TEXT = psycopg2.extensions.new_type(RAW_OIDS, "DOCSQL_RAW_TEXT", lambda value, _cursor: value)


def render_value(value: Any, type_code: int | None) -> str:
    """Render one value the way it is written in SQL guides."""
    if value is None:
        return "NULL"
    if type_code == BOOL_OID:
        return {"t": "TRUE", "f": "FALSE"}.get(value, str(value))
    if type_code in TEXT_OIDS:
        return "'" + str(value).replace("'", "''") + "'"
    return str(value)


def render_rows(description: Sequence[Any], rows: Sequence[Sequence[Any]]) -> str:
    """Render a result set: cells joined by ` | `, rows by newlines."""
    if not rows:
        return "(0 rows)"
    type_codes = [column.type_code for column in description]
    return "\n".join(
        CELL_SEPARATOR.join(render_value(value, code) for value, code in zip(row, type_codes))
        for row in rows
    )


def _error_message(error: psycopg2.Error) -> str:
    diag = getattr(error, "diag", None)
    primary = getattr(diag, "message_primary", None) if diag is not None else None
    if primary:
        return primary
    lines = str(error).strip().splitlines()
    return lines[0] if lines else error.__class__.__name__


class PostgresHarness:
    """Execute examples against PostgreSQL, one rolled-back transaction each

    Holds a single connection for the whole run. Use as a context manager so
    the connection is closed on every exit path.

    Attributes:
        config: Run configuration (DSN, clock, time zone, timeouts)
    """

    def __init__(
        self,
        config: RunConfig,
        connect: Callable[..., Any] = psycopg2.connect,
    ) -> None:
        """Initialize the harness without connecting

        Args:
            config: Run configuration
            connect: Connection factory (psycopg2.connect signature)
        """
        self.config = config
        self._connect = connect
        self._conn: Any = None

    def __enter__(self) -> PostgresHarness:
        self.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def connect(self) -> Any:
        """Return the open connection, connecting first if needed.

        Raises:
            DatabaseConnectionError: If the database is unreachable
        """
        if self._conn is not None and not self._conn.closed:
            return self._conn
        try:
            conn = self._connect(
                self.config.dsn, connect_timeout=self.config.connect_timeout_seconds
            )
        except psycopg2.Error as e:
            raise DatabaseConnectionError(f"Could not connect to database: {_error_message(e)}") from e
        psycopg2.extensions.register_type(_RAW_TEXT, conn)
        self._conn = conn
        return conn

    def close(self) -> None:
        if self._conn is not None:
            if not self._conn.closed:
                self._conn.close()
            self._conn = None

    def run(self, example: Example) -> ExecutionResult:
        """Execute one example and capture its rendered output.

        SQL errors and timeouts are reported in the result; only a failure to
        (re)connect raises.

        Args:
            example: Example to execute

        Returns:
            ExecutionResult for the example

        Raises:
            DatabaseConnectionError: If the database cannot be reached
        """
        sql, injected = inject_clock(example.sql, self.config.clock, self.config.timezone)
        conn = self.connect()
        start = time.perf_counter()
        try:
            output = self._execute(conn, sql)
        except QueryError as e:
            return ExecutionResult(
                example_id=example.id,
                succeeded=False,
                error=e.message,
                elapsed_ms=int((time.perf_counter() - start) * 1000),
                clock_injected=injected,
            )
        return ExecutionResult(
            example_id=example.id,
            actual_output=output,
            succeeded=True,
            elapsed_ms=int((time.perf_counter() - start) * 1000),
            clock_injected=injected,
        )

    def _prepare_session(self, cursor: Any) -> None:
        """Pin transaction-local settings that affect rendered output."""
        # 0 would disable the timeout
        timeout_ms = max(1, round(self.config.timeout_seconds * 1000))
        cursor.execute("SET LOCAL statement_timeout = %s", (timeout_ms,))
        cursor.execute("SET LOCAL TimeZone = %s", (self.config.timezone,))
        cursor.execute("SET LOCAL DateStyle = 'ISO, MDY'")
        cursor.execute("SET LOCAL IntervalStyle = 'postgres'")

    def _execute(self, conn: Any, sql: str) -> str:
        """Run every statement of a snippet inside one transaction, then roll back.

        Returns:
            Every result set rendered in order, or the last status message when
            no statement returned rows

        Raises:
            QueryError: If any statement fails or times out
        """
        outputs: list[str] = []
        status = ""
        try:
            with conn.cursor() as cursor:
                self._prepare_session(cursor)
                for statement in split_sql_statements(sql):
                    cursor.execute(statement)
                    if cursor.description is not None:
                        outputs.append(render_rows(cursor.description, cursor.fetchall()))
                    else:
                        status = cursor.statusmessage or ""
        except psycopg2.extensions.QueryCanceledError as e:
            raise QueryError(
                f"Statement timed out after {self.config.timeout_seconds:g}s: {_error_message(e)}"
            ) from e
        except psycopg2.Error as e:
            if conn.closed:
                raise QueryError(f"Connection lost: {_error_message(e)}") from e
            raise QueryError(_error_message(e)) from e
        finally:
            self._rollback(conn)
        return "\n".join(outputs) if outputs else status

    def _rollback(self, conn: Any) -> None:
        if conn.closed:
            self._conn = None
            return
        try:
            conn.rollback()
        except psycopg2.Error:
            # unusable connection; the next example reconnects or aborts the run
            self.close()

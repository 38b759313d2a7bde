"""Tests for the PostgreSQL execution harness with an in-memory connection."""

from __future__ import annotations

from unittest.mock import Mock

import psycopg2
import psycopg2.extensions
import pytest

from docsql.core.harness import RAW_OIDS, PostgresHarness, render_rows, render_value
from docsql.domain.errors import DatabaseConnectionError
from docsql.models import Example, RunConfig
from tests.utils import FakeConnection, column
from tests.utils.fake_postgres import BOOL, DATE, INT4, TEXT


def _example(sql: str, expected: str = "", example_id: str = "guide.md#1") -> Example:
    return Example(id=example_id, source="guide.md", sql=sql, expected_output=expected)


def _harness(config: RunConfig, *connections: FakeConnection) -> tuple[PostgresHarness, Mock]:
    connect = Mock(side_effect=list(connections))
    return PostgresHarness(config, connect=connect), connect


class TestRendering:
    @pytest.mark.parametrize(
        ("value", "type_code", "expected"),
        [
            (None, TEXT, "NULL"),
            ("t", BOOL, "TRUE"),
            ("f", BOOL, "FALSE"),
            ("Hello World", TEXT, "'Hello World'"),
            ("it's", TEXT, "'it''s'"),
            ("2024-09-08", DATE, "2024-09-08"),
            ("84", INT4, "84"),
            ("{a,b,\"\",c}", 1009, "{a,b,\"\",c}"),
        ],
    )
    def test_render_value(self, value, type_code, expected) -> None:
        assert render_value(value, type_code) == expected

    def test_render_rows(self) -> None:
        description = [column("n", INT4), column("word")]
        assert render_rows(description, [("1", "one"), ("2", None)]) == "1 | 'one'\n2 | NULL"

    def test_empty_result(self) -> None:
        assert render_rows([column("email")], []) == "(0 rows)"

    def test_bytea_kept_as_server_text(self) -> None:
        assert {17, 1001} <= set(RAW_OIDS)
        assert render_value("\\x616263", 17) == "\\x616263"
        assert render_value("{\"\\\\x6162\"}", 1001) == "{\"\\\\x6162\"}"


class TestRun:
    def test_boolean_result(self, fake_connection: FakeConnection, run_config: RunConfig) -> None:
        fake_connection.responses["SELECT 'abcdef' ~ 'abc'"] = ([column("?column?", BOOL)], [("t",)])
        harness, _ = _harness(run_config, fake_connection)

        result = harness.run(_example("SELECT 'abcdef' ~ 'abc';"))

        assert result.succeeded is True
        assert result.actual_output == "TRUE"
        assert result.example_id == "guide.md#1"
        assert result.clock_injected is False

    def test_clock_injected_before_execution(
        self, fake_connection: FakeConnection, run_config: RunConfig
    ) -> None:
        injected = "SELECT TO_CHAR(CAST('2024-09-08 12:00:00+00:00' AS timestamptz), 'YYYY-MM-DD')"
        fake_connection.responses[injected] = ([column("to_char")], [("2024-09-08",)])
        harness, _ = _harness(run_config, fake_connection)

        result = harness.run(_example("SELECT TO_CHAR(NOW(), 'YYYY-MM-DD');"))

        assert result.clock_injected is True
        assert fake_connection.statements == [injected]
        assert result.actual_output == "'2024-09-08'"

    def test_session_settings_pinned(self, fake_connection: FakeConnection, run_config: RunConfig) -> None:
        harness, _ = _harness(run_config, fake_connection)
        harness.run(_example("SELECT 1"))

        settings = [entry for entry in fake_connection.executed if entry[0].startswith("SET LOCAL")]
        assert settings == [
            ("SET LOCAL statement_timeout = %s", (2000,)),
            ("SET LOCAL TimeZone = %s", ("UTC",)),
            ("SET LOCAL DateStyle = 'ISO, MDY'", None),
            ("SET LOCAL IntervalStyle = 'postgres'", None),
        ]

    def test_sub_millisecond_timeout_never_disables_guard(
        self, fake_connection: FakeConnection, run_config: RunConfig
    ) -> None:
        config = run_config.model_copy(update={"timeout_seconds": 0.0004})
        harness, _ = _harness(config, fake_connection)
        harness.run(_example("SELECT 1"))

        assert ("SET LOCAL statement_timeout = %s", (1,)) in fake_connection.executed

    def test_every_example_rolled_back(self, fake_connection: FakeConnection, run_config: RunConfig) -> None:
        harness, connect = _harness(run_config, fake_connection)
        harness.run(_example("SELECT 1"))
        harness.run(_example("SELECT 2", example_id="guide.md#2"))

        assert fake_connection.rollbacks == 2
        assert connect.call_count == 1

    def test_multiple_statements_render_each_result_set(
        self, fake_connection: FakeConnection, run_config: RunConfig
    ) -> None:
        fake_connection.responses.update(
            {
                "CREATE TEMP TABLE t (x int)": "CREATE TABLE",
                "SELECT 1": ([column("a", INT4)], [("1",)]),
                "SELECT 2": ([column("b", INT4)], [("2",)]),
            }
        )
        harness, _ = _harness(run_config, fake_connection)

        result = harness.run(_example("CREATE TEMP TABLE t (x int); SELECT 1; SELECT 2;"))
        assert result.actual_output == "1\n2"

    def test_status_message_when_no_rows_returned(
        self, fake_connection: FakeConnection, run_config: RunConfig
    ) -> None:
        fake_connection.responses["CREATE TEMP TABLE t (x int)"] = "CREATE TABLE"
        harness, _ = _harness(run_config, fake_connection)

        assert harness.run(_example("CREATE TEMP TABLE t (x int);")).actual_output == "CREATE TABLE"

    def test_sql_error_fails_example_only(
        self, fake_connection: FakeConnection, run_config: RunConfig
    ) -> None:
        fake_connection.responses["SELECT nope"] = psycopg2.ProgrammingError(
            'column "nope" does not exist\nLINE 1: SELECT nope'
        )
        harness, _ = _harness(run_config, fake_connection)

        result = harness.run(_example("SELECT nope"))

        assert result.succeeded is False
        assert result.error == 'column "nope" does not exist'
        assert fake_connection.rollbacks == 1
        assert harness.run(_example("SELECT 1", example_id="guide.md#2")).succeeded is True

    def test_timeout(self, fake_connection: FakeConnection, run_config: RunConfig) -> None:
        fake_connection.responses["SELECT pg_sleep(10)"] = psycopg2.extensions.QueryCanceledError(
            "canceling statement due to statement timeout"
        )
        harness, _ = _harness(run_config, fake_connection)

        result = harness.run(_example("SELECT pg_sleep(10)"))

        assert result.succeeded is False
        assert result.error.startswith("Statement timed out after 2s")

    def test_identical_runs_give_identical_output(
        self, fake_connection: FakeConnection, run_config: RunConfig
    ) -> None:
        injected = "SELECT CAST('2024-09-08' AS date)"
        fake_connection.responses[injected] = ([column("current_date", DATE)], [("2024-09-08",)])
        harness, _ = _harness(run_config, fake_connection)
        example = _example("SELECT CURRENT_DATE")

        first = harness.run(example)
        second = harness.run(example)

        assert first.actual_output == second.actual_output == "2024-09-08"


class TestConnection:
    def test_connect_passes_dsn_and_timeout(
        self, fake_connection: FakeConnection, run_config: RunConfig
    ) -> None:
        harness, connect = _harness(run_config, fake_connection)
        with harness:
            pass
        connect.assert_called_once_with("dbname=docsql_test", connect_timeout=10)
        assert fake_connection.closed

    def test_unreachable_database(self, run_config: RunConfig) -> None:
        connect = Mock(side_effect=psycopg2.OperationalError("could not connect to server"))
        harness = PostgresHarness(run_config, connect=connect)

        with pytest.raises(DatabaseConnectionError) as exc_info:
            harness.run(_example("SELECT 1"))

        assert exc_info.value.code == "connection_error"
        assert "could not connect to server" in exc_info.value.message

    def test_malformed_dsn(self, run_config: RunConfig) -> None:
        error = psycopg2.ProgrammingError('invalid dsn: missing "=" after "notadsn"')
        config = run_config.model_copy(update={"dsn": "notadsn"})
        harness = PostgresHarness(config, connect=Mock(side_effect=error))

        with pytest.raises(DatabaseConnectionError) as exc_info:
            harness.connect()

        assert "invalid dsn" in exc_info.value.message

    def test_lost_connection_reconnects_for_next_example(
        self, no_typecasters, run_config: RunConfig
    ) -> None:
        broken = FakeConnection(
            {"SELECT 1": psycopg2.OperationalError("server closed the connection unexpectedly")},
            close_on_error=True,
        )
        healthy = FakeConnection({"SELECT 2": ([column("n", INT4)], [("2",)])})
        harness, connect = _harness(run_config, broken, healthy)

        first = harness.run(_example("SELECT 1"))
        second = harness.run(_example("SELECT 2", example_id="guide.md#2"))

        assert first.succeeded is False
        assert first.error.startswith("Connection lost")
        assert second.actual_output == "2"
        assert connect.call_count == 2

    def test_reconnect_failure_aborts(self, no_typecasters, run_config: RunConfig) -> None:
        broken = FakeConnection(
            {"SELECT 1": psycopg2.OperationalError("terminating connection")},
            close_on_error=True,
        )
        connect = Mock(side_effect=[broken, psycopg2.OperationalError("connection refused")])
        harness = PostgresHarness(run_config, connect=connect)

        harness.run(_example("SELECT 1"))
        with pytest.raises(DatabaseConnectionError):
            harness.run(_example("SELECT 2", example_id="guide.md#2"))

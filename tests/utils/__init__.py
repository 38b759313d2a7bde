"""Shared test helpers."""

from .cli_helpers import invoke_cli
from .fake_postgres import FakeConnection, FakeCursor, column

__all__ = ["invoke_cli", "FakeConnection", "FakeCursor", "column"]

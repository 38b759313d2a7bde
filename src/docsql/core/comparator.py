"""
Output comparator.

Normalizes documented and actual output before comparing them, and builds a
unified diff when they disagree.
"""

from __future__ import annotations

import difflib
import re

from docsql.models import Comparison, Example

CELL_SEPARATOR = " | "

_WHITESPACE_RUN = re.compile(r"[ \t]+")


def _unquote(value: str) -> str:
    """Remove one enclosing pair of single quotes from a SQL string literal."""
    if len(value) >= 2 and value[0] == "'" and value[-1] == "'":
        inner = value[1:-1]
        # a lone quote inside means this was not a single literal
        if "'" not in inner.replace("''", ""):
            return inner.replace("''", "'")
    return value


class Comparator:
    """Compare expected and actual example output after normalization

    Attributes:
        casefold: Compare case-insensitively (locale-dependent day/month names)
        collapse_whitespace: Treat runs of spaces/tabs as one space (TO_CHAR padding)
        unquote: Ignore one pair of single quotes around each value
    """

    def __init__(
        self,
        casefold: bool = False,
        collapse_whitespace: bool = False,
        unquote: bool = True,
    ) -> None:
        self.casefold = casefold
        self.collapse_whitespace = collapse_whitespace
        self.unquote = unquote

    def for_example(self, example: Example) -> Comparator:
        """Return a comparator with the example's directives layered on top."""
        options = example.options
        return Comparator(
            casefold=self.casefold or options.casefold,
            collapse_whitespace=self.collapse_whitespace or options.collapse_whitespace,
            unquote=self.unquote,
        )

    def normalize(self, text: str) -> str:
        lines = [line.rstrip() for line in text.replace("\r\n", "\n").split("\n")]
        while lines and not lines[0].strip():
            lines.pop(0)
        while lines and not lines[-1].strip():
            lines.pop()

        normalized: list[str] = []
        for line in lines:
            line = line.strip()
            if self.collapse_whitespace:
                line = _WHITESPACE_RUN.sub(" ", line)
            if self.unquote:
                cells = [_unquote(cell.strip()).strip() for cell in line.split(CELL_SEPARATOR)]
                line = CELL_SEPARATOR.join(cells)
            if self.casefold:
                line = line.casefold()
            normalized.append(line)
        return "\n".join(normalized)

    def compare(self, expected: str, actual: str) -> Comparison:
        """Compare documented output with actual output.

        Args:
            expected: Output as written in the guide
            actual: Output rendered from the database

        Returns:
            Comparison with normalized forms and a unified diff on mismatch
        """
        norm_expected = self.normalize(expected)
        norm_actual = self.normalize(actual)
        if norm_expected == norm_actual:
            return Comparison(matched=True, expected=norm_expected, actual=norm_actual)

        diff = "\n".join(
            difflib.unified_diff(
                norm_expected.splitlines(),
                norm_actual.splitlines(),
                fromfile="expected",
                tofile="actual",
                lineterm="",
            )
        )
        return Comparison(
            matched=False, expected=norm_expected, actual=norm_actual, diff=diff
        )

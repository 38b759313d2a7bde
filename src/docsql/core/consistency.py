"""
Cross-document consistency checks.

Guides that share examples drift apart over time. Examples whose SQL is the
same once normalized must document the same output; groups that disagree are
reported as conflicts.
"""

from __future__ import annotations

from collections import defaultdict

from docsql.models import Conflict, Example

from .comparator import Comparator
from .sql_utils import normalize_sql


def find_duplicates(examples: list[Example]) -> dict[str, list[Example]]:
    """Group examples by normalized SQL, keeping only groups of two or more."""
    groups: dict[str, list[Example]] = defaultdict(list)
    for example in examples:
        groups[normalize_sql(example.sql)].append(example)
    return {sql: group for sql, group in groups.items() if len(group) > 1}


def find_conflicts(examples: list[Example], comparator: Comparator | None = None) -> list[Conflict]:
    """Find duplicated examples whose documented outputs disagree.

    Args:
        examples: Examples from one or more documents
        comparator: Normalization applied to expected outputs before comparing

    Returns:
        One Conflict per disagreeing group, in order of first appearance
    """
    comparator = comparator or Comparator()
    conflicts: list[Conflict] = []
    for sql, group in find_duplicates(examples).items():
        outputs = {
            comparator.for_example(example).normalize(example.expected_output)
            for example in group
            if not example.options.skip
        }
        if len(outputs) > 1:
            conflicts.append(
                Conflict(
                    sql=sql,
                    example_ids=[example.id for example in group],
                    expected_outputs=[example.expected_output for example in group],
                )
            )
    return conflicts

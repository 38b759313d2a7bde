"""
docsql commands

Command implementations behind the CLI and the application services.
"""

from .check import check_example, run_check
from .list_examples import list_examples, listing_json, render_listing

__all__ = [
    "check_example",
    "run_check",
    "list_examples",
    "listing_json",
    "render_listing",
]

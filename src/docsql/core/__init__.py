"""Core building blocks: extraction, execution, comparison and reporting."""

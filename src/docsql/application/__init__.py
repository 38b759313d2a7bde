"""Application services for docsql."""

from .services import EXIT_FAILED, EXIT_FATAL, EXIT_OK, CheckService, ListService

__all__ = ["CheckService", "ListService", "EXIT_OK", "EXIT_FAILED", "EXIT_FATAL"]

"""Typed result envelopes used by CLI and SDK entrypoints."""

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel


@dataclass(slots=True)
class CommandResult:
    """Service response: outcome, machine code, exit code and payload.

    `data` holds command output such as the run `Report`; pydantic models in it
    are dumped to JSON-compatible values by `as_json_dict`.
    """

    success: bool
    code: str = "ok"
    message: str = ""
    exit_code: int = 0
    data: dict[str, Any] = field(default_factory=dict)

    def as_json_dict(self) -> dict[str, Any]:
        """Return a structure `json.dumps` accepts."""
        return {
            "success": self.success,
            "code": self.code,
            "message": self.message,
            "exitCode": self.exit_code,
            "data": {
                key: value.model_dump(mode="json") if isinstance(value, BaseModel) else value
                for key, value in self.data.items()
            },
        }

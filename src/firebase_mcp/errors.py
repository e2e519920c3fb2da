"""Error taxonomy shared by every Firebase MCP tool."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Closed set of error kinds attached to failed tool responses."""

    VALIDATION = "VALIDATION"
    AUTHORIZATION = "AUTHORIZATION"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMIT = "RATE_LIMIT"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    INTERNAL = "INTERNAL"


@dataclass(eq=False)
class FirebaseMCPError(Exception):
    """Structured exception carrying a pre-classified error kind."""

    kind: ErrorKind
    message: str
    suggestion: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message

    def to_payload(self) -> dict[str, Any]:
        return {
            "status": "error",
            "error_kind": self.kind.value,
            "message": self.message,
            "suggestion": self.suggestion or "",
            "details": self.details,
        }


_MESSAGE_MARKERS: tuple[tuple[tuple[str, ...], ErrorKind], ...] = (
    (("not found",), ErrorKind.NOT_FOUND),
    (("already exists",), ErrorKind.ALREADY_EXISTS),
    (("permission", "disabled", "read-only", "not allowed"), ErrorKind.AUTHORIZATION),
)


def classify_message(message: str) -> ErrorKind:
    """Best-effort classification of an unstructured error message.

    Compatibility shim for failures that reach the envelope without a kind.
    Errors raised by this package and translated platform errors carry their
    kind already and never go through here.
    """
    normalized = message.lower()
    for markers, kind in _MESSAGE_MARKERS:
        if any(marker in normalized for marker in markers):
            return kind
    return ErrorKind.INTERNAL

"""Structured audit logging for MCP tool calls."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SENSITIVE_KEY_PATTERN = re.compile(
    r"(?i)(password|passwd|secret|token|api[_-]?key|authorization|private[_-]?key)"
)
SENSITIVE_ASSIGNMENT_PATTERN = re.compile(
    r"(?i)\b(password|passwd|secret|token|api[_-]?key|authorization)\s*[:=]\s*([^\s,;]+)"
)
BEARER_TOKEN_PATTERN = re.compile(r"(?i)\bbearer\s+[a-z0-9\-\._~\+\/]+=*")
JWT_PATTERN = re.compile(r"\beyJ[A-Za-z0-9_\-]*\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\b")
# Signed URLs carry their credential in the query string.
SIGNED_URL_SIGNATURE_PATTERN = re.compile(r"(?i)([?&]X-Goog-Signature=)[0-9a-f]+")
PRIVATE_KEY_BLOCK_PATTERN = re.compile(
    r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----",
    re.DOTALL,
)


@dataclass(slots=True)
class AuditLogger:
    """Append redacted JSONL audit events to disk."""

    log_path: Path | None = None
    redact_sensitive: bool = True
    max_field_chars: int = 4000

    @property
    def enabled(self) -> bool:
        return self.log_path is not None

    def log_tool_event(
        self,
        tool_name: str,
        status: str,
        request_payload: dict[str, Any],
        response_payload: dict[str, Any],
        *,
        correlation_id: str = "",
        caller_id: str = "",
        error_kind: str | None = None,
    ) -> None:
        """Write one MCP tool audit event."""
        if not self.log_path:
            return

        event: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": "mcp_tool_call",
            "tool_name": tool_name,
            "status": status,
            "correlation_id": correlation_id or None,
            "caller_id": caller_id or None,
            "error_kind": error_kind,
            "request": self._normalize_payload(request_payload),
            "response": self._normalize_payload(response_payload),
        }
        serialized = json.dumps(event, ensure_ascii=True, sort_keys=True, default=str)
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with self.log_path.open("a", encoding="utf-8") as handle:
                handle.write(serialized)
                handle.write("\n")
        except OSError:
            # Audit logging must never break tool execution flow.
            logger.warning("Unable to write audit event to %s", self.log_path, exc_info=True)

    def _normalize_payload(self, payload: dict[str, Any]) -> dict[str, Any]:
        normalized = payload
        if self.redact_sensitive:
            normalized = _redact_payload(normalized)
        if self.max_field_chars > 0:
            normalized = _truncate_payload(normalized, self.max_field_chars)
        return normalized


def _redact_payload(payload: Any) -> Any:
    if isinstance(payload, dict):
        redacted: dict[str, Any] = {}
        for key, value in payload.items():
            if SENSITIVE_KEY_PATTERN.search(str(key)) and not _is_pagination_key(str(key)):
                redacted[key] = "[REDACTED]"
            else:
                redacted[key] = _redact_payload(value)
        return redacted
    if isinstance(payload, list):
        return [_redact_payload(item) for item in payload]
    if isinstance(payload, str):
        return _redact_string(payload)
    return payload


def _is_pagination_key(key: str) -> bool:
    # list_users page tokens are opaque cursors, not credentials.
    return key.lower() in {"pagetoken", "page_token"}


def _redact_string(value: str) -> str:
    redacted = value
    redacted = PRIVATE_KEY_BLOCK_PATTERN.sub("[REDACTED]", redacted)
    redacted = SENSITIVE_ASSIGNMENT_PATTERN.sub(r"\1=[REDACTED]", redacted)
    redacted = BEARER_TOKEN_PATTERN.sub("Bearer [REDACTED]", redacted)
    redacted = JWT_PATTERN.sub("[REDACTED]", redacted)
    redacted = SIGNED_URL_SIGNATURE_PATTERN.sub(r"\1[REDACTED]", redacted)
    return redacted


def _truncate_payload(payload: Any, max_chars: int) -> Any:
    if isinstance(payload, dict):
        return {key: _truncate_payload(value, max_chars) for key, value in payload.items()}
    if isinstance(payload, list):
        return [_truncate_payload(item, max_chars) for item in payload]
    if isinstance(payload, str):
        return _truncate_string(payload, max_chars)
    return payload


def _truncate_string(value: str, max_chars: int) -> str:
    if len(value) <= max_chars:
        return value
    suffix = "...[TRUNCATED]"
    if max_chars <= len(suffix):
        return suffix[:max_chars]
    return value[: max_chars - len(suffix)] + suffix

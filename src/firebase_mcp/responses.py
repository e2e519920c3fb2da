"""Response envelope construction and error normalization."""

from __future__ import annotations

import base64
import functools
import json
import logging
from datetime import date, datetime
from typing import Any, Awaitable, Callable, TypeVar

from google.cloud.firestore_v1 import DocumentReference, GeoPoint
from pydantic import ValidationError

from .errors import ErrorKind, FirebaseMCPError, classify_message
from .models import TextContent, ToolResponse
from .services import platform_error_kind
from .validation import build_validation_error_details, describe_validation_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

CLIENT_ERROR_KINDS = frozenset(
    {
        ErrorKind.VALIDATION,
        ErrorKind.AUTHORIZATION,
        ErrorKind.NOT_FOUND,
        ErrorKind.RATE_LIMIT,
        ErrorKind.ALREADY_EXISTS,
    }
)


def encode_firebase_value(value: Any) -> Any:
    """``json.dumps`` fallback for values returned by Firestore and Storage."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, GeoPoint):
        return {"latitude": value.latitude, "longitude": value.longitude}
    if isinstance(value, DocumentReference):
        return value.path
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def wrap_success(data: Any) -> ToolResponse:
    if isinstance(data, str):
        text = data
    else:
        text = json.dumps(data, indent=2, ensure_ascii=False, default=encode_firebase_value)
    return ToolResponse(content=[TextContent(text=text)], is_error=False)


def wrap_error(error: BaseException, context: str | None = None) -> ToolResponse:
    """Normalize any exception into an error envelope, logging the classification."""
    suggestion: str | None = None
    details: dict[str, Any] = {}
    if isinstance(error, FirebaseMCPError):
        kind = error.kind
        message = error.message
        suggestion = error.suggestion
        details = dict(error.details)
    elif isinstance(error, ValidationError):
        kind = ErrorKind.VALIDATION
        message = f"Invalid arguments: {describe_validation_error(error)}"
        details = build_validation_error_details(error)
        if details.get("hints"):
            suggestion = " ".join(details["hints"])
    else:
        message = str(error) or error.__class__.__name__
        kind = platform_error_kind(error) or classify_message(message)

    if context:
        message = f"{context}: {message}"

    _log_classified_error(error, kind=kind, message=message, context=context, details=details)

    content = [TextContent(text=message)]
    if suggestion:
        content.append(TextContent(text=f"Suggestion: {suggestion}"))
    return ToolResponse(content=content, is_error=True, error_kind=kind)


def _log_classified_error(
    error: BaseException,
    *,
    kind: ErrorKind,
    message: str,
    context: str | None,
    details: dict[str, Any],
) -> None:
    payload: dict[str, Any] = {
        "event_type": "mcp_tool_error",
        "error_kind": kind.value,
        "exception": error.__class__.__name__,
        "message": message,
    }
    if context:
        payload["context"] = context
    if details:
        payload["details"] = details
    serialized = json.dumps(payload, ensure_ascii=True, sort_keys=True, default=str)
    if kind in CLIENT_ERROR_KINDS:
        logger.warning("mcp_tool_error %s", serialized)
    else:
        logger.error("mcp_tool_error %s", serialized, exc_info=error)


def with_policy_enforcement(
    handler: Callable[..., Awaitable[T]],
    context: str,
) -> Callable[..., Awaitable[T]]:
    """Wrap an async handler so every failure leaves it as a ``FirebaseMCPError``.

    Already-classified errors pass through. Anything else is re-raised with
    ``context`` prefixed and a kind taken from the platform exception type,
    falling back to message matching and finally ``INTERNAL``.
    """

    @functools.wraps(handler)
    async def _enforced(*args: Any, **kwargs: Any) -> T:
        try:
            return await handler(*args, **kwargs)
        except FirebaseMCPError:
            raise
        except ValidationError as exc:
            raise FirebaseMCPError(
                ErrorKind.VALIDATION,
                f"{context}: {describe_validation_error(exc)}",
                details=build_validation_error_details(exc),
            ) from exc
        except Exception as exc:  # noqa: BLE001
            message = str(exc) or exc.__class__.__name__
            kind = platform_error_kind(exc) or classify_message(message)
            raise FirebaseMCPError(
                kind,
                f"{context}: {message}",
                details={"exception": exc.__class__.__name__},
            ) from exc

    return _enforced

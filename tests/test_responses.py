from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone

import pytest
from firebase_admin import exceptions as firebase_exceptions
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1 import GeoPoint
from pydantic import ValidationError

from firebase_mcp.errors import ErrorKind, FirebaseMCPError, classify_message
from firebase_mcp.models import GetDocumentRequest, ToolResponse
from firebase_mcp.responses import (
    encode_firebase_value,
    with_policy_enforcement,
    wrap_error,
    wrap_success,
)


def test_wrap_success_serializes_data_as_indented_json() -> None:
    response = wrap_success({"id": "u1", "name": "Ada"})

    assert response.is_error is False
    assert response.error_kind is None
    assert response.text == json.dumps({"id": "u1", "name": "Ada"}, indent=2)
    assert json.loads(response.text) == {"id": "u1", "name": "Ada"}


def test_wrap_success_passes_strings_through() -> None:
    assert wrap_success("Document 'u1' successfully deleted from collection 'users'").text == (
        "Document 'u1' successfully deleted from collection 'users'"
    )


def test_wrap_success_encodes_firebase_values() -> None:
    response = wrap_success(
        {
            "created": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
            "where": GeoPoint(52.5, 13.4),
            "raw": b"hi",
        }
    )
    assert json.loads(response.text) == {
        "created": "2024-05-01T12:00:00+00:00",
        "where": {"latitude": 52.5, "longitude": 13.4},
        "raw": "aGk=",
    }


def test_encode_firebase_value_rejects_unknown_objects() -> None:
    with pytest.raises(TypeError):
        encode_firebase_value(object())


def test_envelope_payload_uses_wire_aliases() -> None:
    payload = wrap_error(FirebaseMCPError(ErrorKind.NOT_FOUND, "missing")).to_payload()
    assert payload == {
        "content": [{"type": "text", "text": "missing"}],
        "isError": True,
        "errorKind": "NOT_FOUND",
    }
    assert wrap_success("ok").to_payload() == {
        "content": [{"type": "text", "text": "ok"}],
        "isError": False,
    }


def test_envelope_requires_error_kind_exactly_for_errors() -> None:
    with pytest.raises(ValidationError):
        ToolResponse(content=[], is_error=True)
    with pytest.raises(ValidationError):
        ToolResponse(content=[], is_error=False, error_kind=ErrorKind.INTERNAL)


def test_wrap_error_keeps_kind_and_adds_suggestion_item() -> None:
    error = FirebaseMCPError(
        ErrorKind.AUTHORIZATION,
        "Server is in read-only mode. Write operations are not allowed.",
        "Disable security.read_only to run write operations.",
    )
    response = wrap_error(error)

    assert response.error_kind is ErrorKind.AUTHORIZATION
    assert [item.text for item in response.content] == [
        "Server is in read-only mode. Write operations are not allowed.",
        "Suggestion: Disable security.read_only to run write operations.",
    ]


def test_wrap_error_prefixes_context() -> None:
    response = wrap_error(FirebaseMCPError(ErrorKind.INTERNAL, "boom"), context="add_document")
    assert response.text == "add_document: boom"


def test_wrap_error_maps_pydantic_errors_to_validation() -> None:
    with pytest.raises(ValidationError) as exc_info:
        GetDocumentRequest.model_validate({"collection": "users"})

    response = wrap_error(exc_info.value)
    assert response.error_kind is ErrorKind.VALIDATION
    assert response.text.startswith("Invalid arguments: documentId")
    assert response.content[1].text == "Suggestion: Provide the required field 'documentId'."


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (google_exceptions.NotFound("no document"), ErrorKind.NOT_FOUND),
        (google_exceptions.AlreadyExists("dup"), ErrorKind.ALREADY_EXISTS),
        (google_exceptions.PermissionDenied("denied"), ErrorKind.AUTHORIZATION),
        (google_exceptions.TooManyRequests("slow down"), ErrorKind.RATE_LIMIT),
        (firebase_exceptions.NotFoundError("user missing"), ErrorKind.NOT_FOUND),
        (firebase_exceptions.InvalidArgumentError("bad email"), ErrorKind.VALIDATION),
    ],
)
def test_wrap_error_maps_platform_exceptions_by_type(error: Exception, kind: ErrorKind) -> None:
    assert wrap_error(error).error_kind is kind


@pytest.mark.parametrize(
    ("message", "kind"),
    [
        ("Thing not found", ErrorKind.NOT_FOUND),
        ("Entity already exists", ErrorKind.ALREADY_EXISTS),
        ("Missing permission on resource", ErrorKind.AUTHORIZATION),
        ("feature disabled", ErrorKind.AUTHORIZATION),
        ("socket closed", ErrorKind.INTERNAL),
    ],
)
def test_unclassified_errors_fall_back_to_message_matching(message: str, kind: ErrorKind) -> None:
    assert classify_message(message) is kind
    assert wrap_error(RuntimeError(message)).error_kind is kind


def test_wrap_error_logs_client_errors_as_warning(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="firebase_mcp.responses"):
        wrap_error(FirebaseMCPError(ErrorKind.VALIDATION, "bad input"))
        wrap_error(RuntimeError("exploded"))

    levels = [(record.levelno, record.getMessage().startswith("mcp_tool_error ")) for record in caplog.records]
    assert levels == [(logging.WARNING, True), (logging.ERROR, True)]
    payload = json.loads(caplog.records[0].getMessage().split(" ", 1)[1])
    assert payload["error_kind"] == "VALIDATION"
    assert payload["exception"] == "FirebaseMCPError"


def test_with_policy_enforcement_passes_results_and_classified_errors() -> None:
    async def ok() -> str:
        return "done"

    async def denied() -> None:
        raise FirebaseMCPError(ErrorKind.AUTHORIZATION, "nope")

    assert asyncio.run(with_policy_enforcement(ok, "ok")()) == "done"
    with pytest.raises(FirebaseMCPError) as exc_info:
        asyncio.run(with_policy_enforcement(denied, "denied")())
    assert exc_info.value.message == "nope"


def test_with_policy_enforcement_classifies_unexpected_errors() -> None:
    async def explode() -> None:
        raise RuntimeError("socket closed")

    async def missing() -> None:
        raise google_exceptions.NotFound("gone")

    with pytest.raises(FirebaseMCPError) as exc_info:
        asyncio.run(with_policy_enforcement(explode, "query_collection")())
    assert exc_info.value.kind is ErrorKind.INTERNAL
    assert exc_info.value.message == "query_collection: socket closed"
    assert exc_info.value.details == {"exception": "RuntimeError"}

    with pytest.raises(FirebaseMCPError) as exc_info:
        asyncio.run(with_policy_enforcement(missing, "get_document")())
    assert exc_info.value.kind is ErrorKind.NOT_FOUND

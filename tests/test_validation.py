from __future__ import annotations

from datetime import datetime

import pytest
from pydantic import ValidationError

from firebase_mcp.errors import ErrorKind
from firebase_mcp.models import (
    BatchWriteRequest,
    GetDocumentRequest,
    GetUserRequest,
    QueryCollectionRequest,
    SetDocumentRequest,
    UpdateUserRequest,
)
from firebase_mcp.validation import (
    InvalidArgumentError,
    build_validation_error_details,
    describe_validation_error,
    root_collection,
    validate_batch_operations,
    validate_collection_path,
    validate_document_data,
    validate_document_path,
    validate_limit,
    validate_order_by,
    validate_where_clauses,
)


@pytest.mark.parametrize("path", ["users", "users/u1/orders"])
def test_collection_paths_with_odd_segments_are_valid(path: str) -> None:
    assert validate_collection_path(path) == path


@pytest.mark.parametrize("path", ["users/u1", "", "  ", "users//orders", "/users", "users/u1/orders/"])
def test_invalid_collection_paths_raise_validation(path: str) -> None:
    with pytest.raises(InvalidArgumentError) as exc_info:
        validate_collection_path(path)
    assert exc_info.value.kind is ErrorKind.VALIDATION


def test_document_paths_need_even_segments() -> None:
    assert validate_document_path("users/u1/orders/o1") == "users/u1/orders/o1"
    with pytest.raises(InvalidArgumentError):
        validate_document_path("users")
    with pytest.raises(InvalidArgumentError):
        validate_document_path(42)


def test_document_path_with_two_segments_is_valid() -> None:
    assert validate_document_path("a/b") == "a/b"


@pytest.mark.parametrize("path", ["a//b", "", "a/b/"])
def test_malformed_document_paths_raise_validation(path: str) -> None:
    with pytest.raises(InvalidArgumentError) as exc_info:
        validate_document_path(path)
    assert exc_info.value.kind is ErrorKind.VALIDATION


def test_root_collection_is_first_segment() -> None:
    assert root_collection("users/u1/orders") == "users"
    assert root_collection("users") == "users"


def test_where_clauses_are_normalized_to_tuples() -> None:
    clauses = validate_where_clauses([["age", ">=", 18], ("tags", "array-contains", "vip")])
    assert clauses == [("age", ">=", 18), ("tags", "array-contains", "vip")]
    assert validate_where_clauses(None) == []


@pytest.mark.parametrize(
    "clauses",
    [
        "age >= 18",
        [["age", ">="]],
        [["", "==", 1]],
        [["age", "~=", 1]],
        [["age", "==", None]],
    ],
)
def test_invalid_where_clauses_raise(clauses) -> None:
    with pytest.raises(InvalidArgumentError):
        validate_where_clauses(clauses)


def test_unsupported_operator_suggestion_lists_operators() -> None:
    with pytest.raises(InvalidArgumentError) as exc_info:
        validate_where_clauses([["age", "like", 1]])
    assert "array-contains-any" in (exc_info.value.suggestion or "")
    assert exc_info.value.details == {"operator": "like"}


def test_order_by_defaults_direction_to_ascending() -> None:
    assert validate_order_by(["name", ["age", "desc"], ["city"]]) == [
        ("name", "asc"),
        ("age", "desc"),
        ("city", "asc"),
    ]
    with pytest.raises(InvalidArgumentError):
        validate_order_by([["age", "down"]])


def test_limit_must_be_non_negative_int() -> None:
    assert validate_limit(None) is None
    assert validate_limit(0) == 0
    for bad in (-1, True, "10", 1.5):
        with pytest.raises(InvalidArgumentError):
            validate_limit(bad)


def test_document_data_accepts_nested_json_values() -> None:
    data = {"name": "Ada", "age": 36, "score": 9.5, "active": True, "meta": {"tags": ["a", None]}}
    assert validate_document_data(data) == data


def test_document_data_reports_path_of_unsupported_value() -> None:
    with pytest.raises(InvalidArgumentError) as exc_info:
        validate_document_data({"profile": {"items": [{"ok": 1}, {"when": datetime(2024, 1, 1)}]}})

    error = exc_info.value
    assert error.message == (
        "Invalid document data at 'profile.items.1.when': unsupported value of type datetime."
    )
    assert error.details == {"path": "profile.items.1.when"}


def test_document_data_reports_top_level_unsupported_value() -> None:
    with pytest.raises(InvalidArgumentError) as exc_info:
        validate_document_data({"name": "Ada", "x": lambda: None})

    assert exc_info.value.details == {"path": "x"}
    assert "at 'x'" in exc_info.value.message


def test_document_data_rejects_non_mapping_and_non_string_keys() -> None:
    with pytest.raises(InvalidArgumentError):
        validate_document_data(["not", "an", "object"])
    with pytest.raises(InvalidArgumentError):
        validate_document_data({"nested": {1: "x"}})


def test_batch_operations_are_normalized() -> None:
    operations = validate_batch_operations(
        [
            {"type": "set", "collection": "users", "documentId": "u1", "data": {"a": 1}},
            {"type": "update", "path": "orders/o1", "data": {"paid": True}},
            {"type": "delete", "collection": "users", "document_id": "u2"},
        ]
    )
    assert operations == [
        {"type": "set", "path": "users/u1", "data": {"a": 1}, "merge": False},
        {"type": "update", "path": "orders/o1", "data": {"paid": True}},
        {"type": "delete", "path": "users/u2"},
    ]


@pytest.mark.parametrize(
    ("operations", "fragment"),
    [
        ([], "at least one"),
        ([{"type": "upsert", "path": "users/u1"}], "operations[0] type"),
        ([{"type": "delete"}], "operations[0] needs a path"),
        ([{"type": "set", "path": "users/u1"}], "requires data"),
        ([{"type": "delete", "path": "users"}], "operations[0]: Document path"),
        ([{"type": "delete", "path": "a/b"}, {"type": "update", "path": "a/c", "data": {"x": object()}}], "operations[1]: Invalid document data at 'x'"),
    ],
)
def test_invalid_batch_operations_are_indexed(operations, fragment: str) -> None:
    with pytest.raises(InvalidArgumentError) as exc_info:
        validate_batch_operations(operations)
    assert fragment in exc_info.value.message


def test_batch_operations_cap_at_five_hundred() -> None:
    operations = [{"type": "delete", "path": f"users/u{i}"} for i in range(501)]
    with pytest.raises(InvalidArgumentError) as exc_info:
        validate_batch_operations(operations)
    assert exc_info.value.details == {"count": 501, "max": 500}
    assert len(validate_batch_operations(operations[:500])) == 500


def test_models_accept_camel_case_and_snake_case_names() -> None:
    camel = GetDocumentRequest.model_validate({"collection": "users", "documentId": "u1"})
    snake = GetDocumentRequest.model_validate({"collection": "users", "document_id": "u1"})
    assert camel.document_path == snake.document_path == "users/u1"


def test_query_request_normalizes_clauses() -> None:
    request = QueryCollectionRequest.model_validate(
        {
            "collection": "users/u1/orders",
            "where": [["total", ">", 10]],
            "orderBy": [["total", "desc"]],
            "limit": 5,
            "startAfter": "o9",
        }
    )
    assert request.root_collection == "users"
    assert request.where == [("total", ">", 10)]
    assert request.order_by == [("total", "desc")]
    assert request.start_after == "o9"


def test_model_validation_error_mentions_data_path() -> None:
    with pytest.raises(ValidationError) as exc_info:
        SetDocumentRequest.model_validate(
            {"collection": "users", "documentId": "u1", "data": {"blob": b"\x00"}}
        )
    message = describe_validation_error(exc_info.value)
    assert message == "data: Invalid document data at 'blob': unsupported value of type bytes."


def test_validation_error_details_include_missing_field_hints() -> None:
    with pytest.raises(ValidationError) as exc_info:
        UpdateUserRequest.model_validate({"email": "a@example.com"})

    details = build_validation_error_details(exc_info.value)
    assert details["errors"][0]["field"] == "uid"
    assert details["errors"][0]["type"] == "missing"
    assert details["hints"] == ["Provide the required field 'uid'."]


def test_get_user_requires_a_lookup_key() -> None:
    with pytest.raises(ValidationError):
        GetUserRequest.model_validate({})
    assert GetUserRequest.model_validate({"phoneNumber": "+15550100"}).phone_number == "+15550100"


def test_batch_request_exposes_root_collections() -> None:
    request = BatchWriteRequest.model_validate(
        {"operations": [{"type": "delete", "path": "users/u1"}, {"type": "delete", "path": "orders/o1/items/i1"}]}
    )
    assert request.root_collections == ["users", "orders"]

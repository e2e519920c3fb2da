"""Structural validation of tool arguments before they reach Firebase."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from .constants import (
    BATCH_OPERATION_TYPES,
    MAX_BATCH_OPERATIONS,
    ORDER_DIRECTIONS,
    QUERY_OPERATORS,
)
from .errors import ErrorKind, FirebaseMCPError

_SCALAR_TYPES = (str, int, float, bool)


class InvalidArgumentError(FirebaseMCPError, ValueError):
    """Validation failure; also a ``ValueError`` so pydantic validators can raise it."""

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(ErrorKind.VALIDATION, message, suggestion, details or {})


def _path_segments(path: Any, label: str) -> list[str]:
    if not isinstance(path, str) or not path.strip():
        raise InvalidArgumentError(f"{label} path must be a non-empty string.")
    if "//" in path:
        raise InvalidArgumentError(
            f"{label} path '{path}' cannot contain consecutive slashes."
        )
    segments = path.split("/")
    if any(not segment.strip() for segment in segments):
        raise InvalidArgumentError(
            f"{label} path '{path}' cannot contain empty segments.",
            "Remove leading or trailing slashes from the path.",
        )
    return segments


def validate_collection_path(path: Any) -> str:
    """Validate a collection path such as ``users`` or ``users/u1/orders``."""
    segments = _path_segments(path, "Collection")
    if len(segments) % 2 == 0:
        raise InvalidArgumentError(
            f"Collection path '{path}' must have an odd number of segments.",
            "Use the format collection or collection/document/collection.",
        )
    return path


def validate_document_path(path: Any) -> str:
    """Validate a document path such as ``users/u1``."""
    segments = _path_segments(path, "Document")
    if len(segments) % 2 != 0:
        raise InvalidArgumentError(
            f"Document path '{path}' must have an even number of segments.",
            "Use the format collection/document.",
        )
    return path


def root_collection(path: str) -> str:
    return path.split("/", 1)[0]


def validate_where_clauses(clauses: Any) -> list[tuple[str, str, Any]]:
    if clauses is None:
        return []
    if not isinstance(clauses, Sequence) or isinstance(clauses, (str, bytes)):
        raise InvalidArgumentError("where must be a list of [field, operator, value] clauses.")

    normalized: list[tuple[str, str, Any]] = []
    for index, clause in enumerate(clauses):
        if (
            not isinstance(clause, Sequence)
            or isinstance(clause, (str, bytes))
            or len(clause) != 3
        ):
            raise InvalidArgumentError(
                f"where[{index}] must be a [field, operator, value] clause."
            )
        field_name, operator, value = clause
        if not isinstance(field_name, str) or not field_name.strip():
            raise InvalidArgumentError(f"where[{index}] field must be a non-empty string.")
        if operator not in QUERY_OPERATORS:
            raise InvalidArgumentError(
                f"where[{index}] uses unsupported operator '{operator}'.",
                "Use one of: " + ", ".join(sorted(QUERY_OPERATORS)) + ".",
                {"operator": operator},
            )
        if value is None:
            raise InvalidArgumentError(f"where[{index}] value for '{field_name}' must not be null.")
        normalized.append((field_name, operator, value))
    return normalized


def validate_order_by(clauses: Any) -> list[tuple[str, str]]:
    if clauses is None:
        return []
    if not isinstance(clauses, Sequence) or isinstance(clauses, (str, bytes)):
        raise InvalidArgumentError("orderBy must be a list of [field, direction] clauses.")

    normalized: list[tuple[str, str]] = []
    for index, clause in enumerate(clauses):
        if isinstance(clause, str):
            clause = [clause]
        if not isinstance(clause, Sequence) or not 1 <= len(clause) <= 2:
            raise InvalidArgumentError(f"orderBy[{index}] must be a [field, direction] clause.")
        field_name = clause[0]
        direction = clause[1] if len(clause) == 2 and clause[1] is not None else "asc"
        if not isinstance(field_name, str) or not field_name.strip():
            raise InvalidArgumentError(f"orderBy[{index}] field must be a non-empty string.")
        if direction not in ORDER_DIRECTIONS:
            raise InvalidArgumentError(
                f"orderBy[{index}] direction must be 'asc' or 'desc', got '{direction}'."
            )
        normalized.append((field_name, direction))
    return normalized


def validate_limit(limit: Any) -> int | None:
    if limit is None:
        return None
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
        raise InvalidArgumentError("limit must be a non-negative integer.")
    return limit


def validate_document_data(data: Any) -> dict[str, Any]:
    """Reject document data holding values Firestore cannot store as JSON."""
    if not isinstance(data, Mapping):
        raise InvalidArgumentError("Document data must be an object.")
    _check_value(data, path="")
    return dict(data)


def _check_value(value: Any, path: str) -> None:
    if value is None or isinstance(value, _SCALAR_TYPES):
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                raise InvalidArgumentError(
                    f"Invalid document data at '{path or '<root>'}': keys must be strings.",
                    details={"path": path},
                )
            _check_value(item, _join_path(path, key))
        return
    if isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _check_value(item, _join_path(path, str(index)))
        return
    raise InvalidArgumentError(
        f"Invalid document data at '{path}': unsupported value of type "
        f"{type(value).__name__}.",
        "Use strings, numbers, booleans, null, arrays or objects.",
        {"path": path},
    )


def _join_path(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def validate_batch_operations(operations: Any) -> list[dict[str, Any]]:
    if not isinstance(operations, Sequence) or isinstance(operations, (str, bytes)):
        raise InvalidArgumentError("operations must be a list.")
    if not operations:
        raise InvalidArgumentError("operations must contain at least one entry.")
    if len(operations) > MAX_BATCH_OPERATIONS:
        raise InvalidArgumentError(
            f"operations has {len(operations)} entries; a batch holds at most "
            f"{MAX_BATCH_OPERATIONS}.",
            "Split the writes into several batch_write calls.",
            {"count": len(operations), "max": MAX_BATCH_OPERATIONS},
        )

    normalized: list[dict[str, Any]] = []
    for index, operation in enumerate(operations):
        if not isinstance(operation, Mapping):
            raise InvalidArgumentError(f"operations[{index}] must be an object.")
        op_type = operation.get("type")
        if op_type not in BATCH_OPERATION_TYPES:
            raise InvalidArgumentError(
                f"operations[{index}] type must be one of set, update, delete.",
                details={"type": op_type},
            )
        path = operation.get("path")
        if path is None:
            collection = operation.get("collection")
            document_id = operation.get("documentId", operation.get("document_id"))
            if not isinstance(collection, str) or not isinstance(document_id, str):
                raise InvalidArgumentError(
                    f"operations[{index}] needs a path or a collection and documentId."
                )
            path = f"{collection}/{document_id}"
        try:
            validate_document_path(path)
        except InvalidArgumentError as exc:
            raise InvalidArgumentError(f"operations[{index}]: {exc.message}") from exc

        entry: dict[str, Any] = {"type": op_type, "path": path}
        if op_type in {"set", "update"}:
            if "data" not in operation:
                raise InvalidArgumentError(f"operations[{index}] requires data for '{op_type}'.")
            try:
                entry["data"] = validate_document_data(operation["data"])
            except InvalidArgumentError as exc:
                raise InvalidArgumentError(
                    f"operations[{index}]: {exc.message}",
                    exc.suggestion,
                    exc.details,
                ) from exc
        if op_type == "set":
            entry["merge"] = bool(operation.get("merge", False))
        normalized.append(entry)
    return normalized


def build_validation_error_details(exc: ValidationError) -> dict[str, Any]:
    """Convert a pydantic error into JSON-safe details with field hints."""
    try:
        errors = exc.errors(include_context=False, include_input=False, include_url=False)
    except TypeError:
        errors = exc.errors()

    hints: list[str] = []
    for error in errors:
        location = _format_location(error.get("loc", ()))
        error_type = str(error.get("type", ""))
        if error_type == "missing":
            hints.append(f"Provide the required field '{location}'.")
        elif error_type.endswith("_type") or error_type.endswith("_parsing"):
            hints.append(f"Field '{location}' has the wrong type.")
    return {
        "errors": [
            {
                "field": _format_location(error.get("loc", ())),
                "message": _clean_message(str(error.get("msg", ""))),
                "type": str(error.get("type", "")),
            }
            for error in errors
        ],
        "hints": hints,
    }


def describe_validation_error(exc: ValidationError) -> str:
    """Join every failing field into one human-readable sentence."""
    parts = []
    for error in build_validation_error_details(exc)["errors"]:
        field_name = error["field"] or "arguments"
        parts.append(f"{field_name}: {error['message']}")
    return "; ".join(parts)


def _format_location(location: Sequence[Any]) -> str:
    return ".".join(str(part) for part in location)


def _clean_message(message: str) -> str:
    prefix = "Value error, "
    if message.startswith(prefix):
        return message[len(prefix):]
    return message

"""MCP server entrypoint and tool definitions for Firebase."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
import uuid
from pathlib import Path
from typing import Annotated, Any

from mcp.server.auth.middleware.auth_context import get_access_token
from mcp.server.auth.settings import AuthSettings
from mcp.server.fastmcp import FastMCP
from mcp.types import CallToolResult, TextContent
from pydantic import AliasChoices, Field

from . import __version__
from .audit import AuditLogger
from .auth import StaticTokenVerifier, request_context_from_token
from .config import (
    AUTH_MODES,
    LOG_LEVELS,
    TRANSPORTS,
    ServerSettings,
    load_settings,
    parse_csv_values,
    resolve_auth_metadata_urls,
)
from .constants import SERVER_NAME
from .firebase import FirebaseServices, load_services
from .limits import RateLimiter
from .tools import build_registry

logger = logging.getLogger(__name__)


def _build_fastmcp() -> FastMCP:
    """Instantiate FastMCP, dropping optional kwargs older SDKs reject."""
    kwargs: dict[str, Any] = {
        "name": SERVER_NAME,
        "instructions": (
            "Firebase Authentication, Cloud Firestore and Cloud Storage operations. "
            "Every tool returns an envelope with content, isError and, on failure, "
            "errorKind (VALIDATION, AUTHORIZATION, NOT_FOUND, RATE_LIMIT, "
            "ALREADY_EXISTS or INTERNAL)."
        ),
        "version": __version__,
        "json_response": True,
    }
    optional_keys = ("version", "json_response")

    while True:
        try:
            return FastMCP(**kwargs)
        except TypeError as exc:
            message = str(exc).lower()
            if "unexpected keyword argument" not in message:
                raise
            removed_key = next((key for key in optional_keys if key in message and key in kwargs), None)
            if removed_key is None:
                raise
            kwargs.pop(removed_key, None)
            logger.debug("FastMCP constructor does not support '%s'; retrying without it.", removed_key)


mcp = _build_fastmcp()

settings = ServerSettings()
audit_logger = AuditLogger()
rate_limiter = RateLimiter()
_firebase_services: FirebaseServices | None = None


def _get_services() -> FirebaseServices:
    """Initialize the Firebase app on the first tool call that needs it."""
    global _firebase_services
    if _firebase_services is None:
        _firebase_services = load_services(
            credentials_path=settings.credentials_path,
            project_id=settings.project_id,
            database_url=settings.database_url,
            storage_bucket=settings.storage_bucket,
        )
    return _firebase_services


registry = build_registry(
    _get_services,
    policy=settings.security_policy(),
    rate_limiter=rate_limiter,
)


def _register_tool(func):
    """Register ``func`` as an MCP tool using the registry's metadata for it."""
    spec = registry.get(func.__name__)
    if spec is None:
        raise RuntimeError(f"No registry entry for MCP tool '{func.__name__}'.")
    try:
        return mcp.tool(description=spec.description, annotations=spec.annotations)(func)
    except TypeError as exc:
        if "annotations" not in str(exc).lower() and "unexpected keyword" not in str(exc).lower():
            raise
        logger.debug("FastMCP tool annotations not supported in this SDK version; using fallback.")
        return mcp.tool(description=spec.description)(func)


def _build_correlation_id() -> str:
    return uuid.uuid4().hex[:12]


def _log_tool_phase(
    *,
    correlation_id: str,
    tool_name: str,
    phase: str,
    status: str,
    elapsed_seconds: float,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit structured phase-level diagnostics for tool execution."""
    payload: dict[str, Any] = {
        "event_type": "mcp_tool_phase",
        "correlation_id": correlation_id,
        "tool_name": tool_name,
        "phase": phase,
        "status": status,
        "elapsed_ms": round(elapsed_seconds * 1000, 3),
    }
    if details:
        payload["details"] = details
    logger.info("mcp_tool_phase %s", json.dumps(payload, ensure_ascii=True, sort_keys=True))


def _call_tool_result(payload: dict[str, Any]) -> CallToolResult:
    """Carry the envelope as an MCP result so clients see ``isError`` directly."""
    return CallToolResult(
        content=[TextContent(type="text", text=item["text"]) for item in payload["content"]],
        structuredContent=payload,
        isError=bool(payload.get("isError", False)),
    )


async def _run_tool(tool_name: str, arguments: dict[str, Any]) -> CallToolResult:
    """Dispatch one tool call through the registry and audit the outcome."""
    total_start = time.perf_counter()
    correlation_id = _build_correlation_id()
    context = request_context_from_token(get_access_token())
    request_payload = {key: value for key, value in arguments.items() if value is not None}

    dispatch_start = time.perf_counter()
    response = await registry.dispatch(tool_name, request_payload, context)
    status = "error" if response.is_error else "ok"
    error_kind = response.error_kind.value if response.error_kind else None
    _log_tool_phase(
        correlation_id=correlation_id,
        tool_name=tool_name,
        phase="dispatch",
        status=status,
        elapsed_seconds=time.perf_counter() - dispatch_start,
        details={"error_kind": error_kind} if error_kind else None,
    )

    payload = response.to_payload()
    _log_tool_phase(
        correlation_id=correlation_id,
        tool_name=tool_name,
        phase="total",
        status=status,
        elapsed_seconds=time.perf_counter() - total_start,
    )
    audit_logger.log_tool_event(
        tool_name=tool_name,
        status="error" if response.is_error else "success",
        request_payload=request_payload,
        response_payload=payload,
        correlation_id=correlation_id,
        caller_id=context.caller_id,
        error_kind=error_kind,
    )
    return _call_tool_result(payload)


def _param(*names: str, description: str, json_type: str | None = None) -> Any:
    """Describe a tool parameter that FastMCP forwards to the registry unchecked.

    Every parameter is typed ``Any`` and defaults to ``None``; the registry's
    request models are the only validators, so malformed calls still get an
    envelope. ``names`` lists the accepted spellings (snake_case first).
    """
    return Field(
        validation_alias=AliasChoices(*names),
        description=description,
        json_schema_extra={"type": json_type} if json_type else None,
    )


CollectionPath = Annotated[
    Any,
    _param("collection", description="Collection path, e.g. 'users' or 'users/u1/orders'", json_type="string"),
]
DocumentId = Annotated[
    Any,
    _param("document_id", "documentId", description="Document id inside the collection", json_type="string"),
]
DocumentData = Annotated[
    Any,
    _param("data", description="Document fields as a JSON object", json_type="object"),
]
BucketName = Annotated[
    Any,
    _param("bucket", description="Bucket name; defaults to the project's storage bucket", json_type="string"),
]
StoragePath = Annotated[
    Any,
    _param("path", description="Object path inside the bucket", json_type="string"),
]
UserId = Annotated[Any, _param("uid", description="User id", json_type="string")]
Email = Annotated[Any, _param("email", description="User email", json_type="string")]
Password = Annotated[
    Any,
    _param("password", description="Password (min 6 chars)", json_type="string"),
]
DisplayName = Annotated[
    Any,
    _param("display_name", "displayName", description="Display name", json_type="string"),
]
PhoneNumber = Annotated[
    Any,
    _param("phone_number", "phoneNumber", description="E.164 phone number", json_type="string"),
]
PhotoUrl = Annotated[
    Any,
    _param("photo_url", "photoURL", description="Profile photo URL", json_type="string"),
]
EmailVerified = Annotated[
    Any,
    _param("email_verified", "emailVerified", description="Email verification flag", json_type="boolean"),
]
Disabled = Annotated[
    Any,
    _param("disabled", description="Whether the account is disabled", json_type="boolean"),
]
ExpiresIn = Annotated[
    Any,
    _param("expires_in", "expiresIn", description="URL lifetime in seconds (default 3600)", json_type="integer"),
]


@_register_tool
async def get_document(collection: CollectionPath = None, document_id: DocumentId = None) -> CallToolResult:
    """Get a document from a Firestore collection."""
    return await _run_tool("get_document", {"collection": collection, "document_id": document_id})


@_register_tool
async def query_collection(
    collection: CollectionPath = None,
    where: Annotated[
        Any,
        _param("where", description="Filters as [field, operator, value] triples", json_type="array"),
    ] = None,
    order_by: Annotated[
        Any,
        _param(
            "order_by",
            "orderBy",
            description="Sort clauses as field names or [field, 'asc'|'desc'] pairs",
            json_type="array",
        ),
    ] = None,
    limit: Annotated[
        Any,
        _param("limit", description="Max documents (default 50)", json_type="integer"),
    ] = None,
    start_after: Annotated[
        Any,
        _param("start_after", "startAfter", description="Cursor: document id or field values to start after"),
    ] = None,
    start_at: Annotated[
        Any,
        _param("start_at", "startAt", description="Cursor: document id or field values to start at"),
    ] = None,
    end_before: Annotated[
        Any,
        _param("end_before", "endBefore", description="Cursor: document id or field values to end before"),
    ] = None,
    end_at: Annotated[
        Any,
        _param("end_at", "endAt", description="Cursor: document id or field values to end at"),
    ] = None,
) -> CallToolResult:
    """Query a Firestore collection."""
    return await _run_tool(
        "query_collection",
        {
            "collection": collection,
            "where": where,
            "order_by": order_by,
            "limit": limit,
            "start_after": start_after,
            "start_at": start_at,
            "end_before": end_before,
            "end_at": end_at,
        },
    )


@_register_tool
async def add_document(collection: CollectionPath = None, data: DocumentData = None) -> CallToolResult:
    """Add a document with a generated id."""
    return await _run_tool("add_document", {"collection": collection, "data": data})


@_register_tool
async def set_document(
    collection: CollectionPath = None,
    document_id: DocumentId = None,
    data: DocumentData = None,
    merge: Annotated[
        Any,
        _param("merge", description="Merge into existing fields instead of overwriting", json_type="boolean"),
    ] = None,
) -> CallToolResult:
    """Create or overwrite a document."""
    return await _run_tool(
        "set_document",
        {"collection": collection, "document_id": document_id, "data": data, "merge": merge},
    )


@_register_tool
async def update_document(
    collection: CollectionPath = None,
    document_id: DocumentId = None,
    data: DocumentData = None,
) -> CallToolResult:
    """Update fields of an existing document."""
    return await _run_tool(
        "update_document",
        {"collection": collection, "document_id": document_id, "data": data},
    )


@_register_tool
async def delete_document(collection: CollectionPath = None, document_id: DocumentId = None) -> CallToolResult:
    """Delete a document."""
    return await _run_tool(
        "delete_document",
        {"collection": collection, "document_id": document_id},
    )


@_register_tool
async def batch_write(
    operations: Annotated[
        Any,
        _param(
            "operations",
            description=(
                "Operations with type (set|update|delete), path or collection+documentId, "
                "and data for set/update"
            ),
            json_type="array",
        ),
    ] = None,
) -> CallToolResult:
    """Run several writes as one atomic batch."""
    return await _run_tool("batch_write", {"operations": operations})


@_register_tool
async def delete_collection(
    collection: CollectionPath = None,
    batch_size: Annotated[
        Any,
        _param(
            "batch_size",
            "batchSize",
            description="Documents deleted per batch (default 100)",
            json_type="integer",
        ),
    ] = None,
) -> CallToolResult:
    """Delete every document in a collection."""
    return await _run_tool(
        "delete_collection",
        {"collection": collection, "batch_size": batch_size},
    )


@_register_tool
async def list_collections(
    document_path: Annotated[
        Any,
        _param(
            "document_path",
            "documentPath",
            description="Document whose subcollections to list; root when omitted",
            json_type="string",
        ),
    ] = None,
) -> CallToolResult:
    """List collections."""
    return await _run_tool("list_collections", {"document_path": document_path})


@_register_tool
async def list_users(
    max_results: Annotated[
        Any,
        _param("max_results", "maxResults", description="Page size (default 1000)", json_type="integer"),
    ] = None,
    page_token: Annotated[
        Any,
        _param("page_token", "pageToken", description="Token from a previous page", json_type="string"),
    ] = None,
) -> CallToolResult:
    """List users."""
    return await _run_tool(
        "list_users",
        {"max_results": max_results, "page_token": page_token},
    )


@_register_tool
async def get_user(
    uid: UserId = None,
    email: Email = None,
    phone_number: PhoneNumber = None,
) -> CallToolResult:
    """Look up a user."""
    return await _run_tool(
        "get_user",
        {"uid": uid, "email": email, "phone_number": phone_number},
    )


@_register_tool
async def create_user(
    email: Email = None,
    password: Password = None,
    display_name: DisplayName = None,
    phone_number: PhoneNumber = None,
    photo_url: PhotoUrl = None,
    email_verified: EmailVerified = None,
    disabled: Disabled = None,
    uid: UserId = None,
) -> CallToolResult:
    """Create a user."""
    return await _run_tool(
        "create_user",
        {
            "email": email,
            "password": password,
            "display_name": display_name,
            "phone_number": phone_number,
            "photo_url": photo_url,
            "email_verified": email_verified,
            "disabled": disabled,
            "uid": uid,
        },
    )


@_register_tool
async def update_user(
    uid: UserId = None,
    email: Email = None,
    password: Password = None,
    display_name: DisplayName = None,
    phone_number: PhoneNumber = None,
    photo_url: PhotoUrl = None,
    email_verified: EmailVerified = None,
    disabled: Disabled = None,
) -> CallToolResult:
    """Update a user."""
    return await _run_tool(
        "update_user",
        {
            "uid": uid,
            "email": email,
            "password": password,
            "display_name": display_name,
            "phone_number": phone_number,
            "photo_url": photo_url,
            "email_verified": email_verified,
            "disabled": disabled,
        },
    )


@_register_tool
async def delete_user(uid: UserId = None) -> CallToolResult:
    """Delete a user."""
    return await _run_tool("delete_user", {"uid": uid})


@_register_tool
async def set_custom_claims(
    uid: UserId = None,
    claims: Annotated[
        Any,
        _param("claims", description="Custom claims replacing existing ones", json_type="object"),
    ] = None,
) -> CallToolResult:
    """Set custom claims on a user."""
    return await _run_tool("set_custom_claims", {"uid": uid, "claims": claims})


@_register_tool
async def list_files(
    bucket: BucketName = None,
    prefix: Annotated[
        Any,
        _param("prefix", description="Only list objects under this prefix", json_type="string"),
    ] = None,
    max_results: Annotated[
        Any,
        _param(
            "max_results",
            "maxResults",
            description="Max objects returned (default 1000)",
            json_type="integer",
        ),
    ] = None,
) -> CallToolResult:
    """List files in a bucket."""
    return await _run_tool(
        "list_files",
        {"bucket": bucket, "prefix": prefix, "max_results": max_results},
    )


@_register_tool
async def get_file_metadata(path: StoragePath = None, bucket: BucketName = None) -> CallToolResult:
    """Get file metadata."""
    return await _run_tool("get_file_metadata", {"path": path, "bucket": bucket})


@_register_tool
async def get_download_url(
    path: StoragePath = None,
    expires_in: ExpiresIn = None,
    bucket: BucketName = None,
) -> CallToolResult:
    """Create a signed download URL."""
    return await _run_tool(
        "get_download_url",
        {"path": path, "expires_in": expires_in, "bucket": bucket},
    )


@_register_tool
async def get_upload_url(
    path: StoragePath = None,
    content_type: Annotated[
        Any,
        _param(
            "content_type",
            "contentType",
            description="Content type of the upload (default application/octet-stream)",
            json_type="string",
        ),
    ] = None,
    expires_in: ExpiresIn = None,
    bucket: BucketName = None,
) -> CallToolResult:
    """Create a signed upload URL."""
    return await _run_tool(
        "get_upload_url",
        {
            "path": path,
            "content_type": content_type,
            "expires_in": expires_in,
            "bucket": bucket,
        },
    )


@_register_tool
async def delete_file(path: StoragePath = None, bucket: BucketName = None) -> CallToolResult:
    """Delete a file."""
    return await _run_tool("delete_file", {"path": path, "bucket": bucket})


def apply_settings(new_settings: ServerSettings) -> None:
    """Install validated settings on the module-level runtime objects."""
    global settings
    global audit_logger
    global _firebase_services

    unknown_tools = sorted(set(new_settings.admin_only_tools) - set(registry.names()))
    if unknown_tools:
        raise ValueError(f"admin-only-tools names unknown tools: {', '.join(unknown_tools)}.")

    settings = new_settings
    _firebase_services = None
    rate_limit_config = new_settings.rate_limit_config()
    if rate_limit_config is not None:
        rate_limiter.configure(rate_limit_config)
    registry.configure(
        new_settings.security_policy(),
        rate_limiter if rate_limit_config is not None else None,
    )
    audit_logger = AuditLogger(
        log_path=Path(new_settings.audit_log_file) if new_settings.audit_log_file else None,
        redact_sensitive=new_settings.audit_redact_sensitive,
        max_field_chars=new_settings.audit_max_field_chars,
    )


def _configure_fastmcp_auth(current: ServerSettings) -> None:
    """Apply transport and auth settings to the global FastMCP instance."""
    mcp.settings.host = current.host
    mcp.settings.port = current.port
    mcp.settings.log_level = current.log_level

    if current.auth_mode == "off":
        mcp.settings.auth = None
        setattr(mcp, "_token_verifier", None)
        return

    issuer_url, resource_server_url = resolve_auth_metadata_urls(
        host=current.host,
        port=current.port,
        streamable_http_path=mcp.settings.streamable_http_path,
    )
    mcp.settings.auth = AuthSettings(
        issuer_url=issuer_url,
        resource_server_url=resource_server_url,
    )
    setattr(
        mcp,
        "_token_verifier",
        StaticTokenVerifier(expected_token=current.auth_token, scopes=list(current.auth_roles)),
    )


def _configure_logging(level_name: str) -> None:
    # stdout carries the MCP stdio transport; logs go to stderr.
    logging.basicConfig(
        level=level_name,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger("firebase_mcp").setLevel(level_name)


def build_parser(defaults: ServerSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="firebase-mcp", description="Firebase MCP server")
    parser.add_argument(
        "--config",
        default=defaults.config_file,
        help="YAML/JSON config file (default: $FIREBASE_MCP_CONFIG_FILE or ./firebase-mcp-config.yaml).",
    )
    parser.add_argument(
        "--credentials",
        dest="credentials_path",
        default=defaults.credentials_path,
        help="Service account JSON file (default: application default credentials).",
    )
    parser.add_argument("--project", dest="project_id", default=defaults.project_id, help="Firebase project id.")
    parser.add_argument("--database-url", default=defaults.database_url, help="Realtime Database URL.")
    parser.add_argument(
        "--storage-bucket",
        default=defaults.storage_bucket,
        help="Default Cloud Storage bucket for storage tools.",
    )
    parser.add_argument(
        "--read-only",
        action=argparse.BooleanOptionalAction,
        default=defaults.read_only,
        help="Reject every write operation.",
    )
    parser.add_argument(
        "--allowed-collections",
        default=",".join(defaults.allowed_collections),
        help="Comma-separated root collections tools may access (default: all).",
    )
    parser.add_argument(
        "--disable-auth",
        action=argparse.BooleanOptionalAction,
        default=defaults.disable_auth,
        help="Disable Firebase Authentication tools.",
    )
    parser.add_argument(
        "--disable-storage",
        action=argparse.BooleanOptionalAction,
        default=defaults.disable_storage,
        help="Disable Cloud Storage tools.",
    )
    parser.add_argument(
        "--admin-only-tools",
        default=",".join(defaults.admin_only_tools),
        help="Comma-separated tools that require the 'admin' caller role.",
    )
    parser.add_argument(
        "--rate-limit",
        dest="rate_limit_enabled",
        action=argparse.BooleanOptionalAction,
        default=defaults.rate_limit_enabled,
        help="Enable the per-tool, per-caller rate limiter (default: enabled).",
    )
    parser.add_argument(
        "--rate-limit-max-requests",
        type=int,
        default=defaults.rate_limit_max_requests,
        help="Requests allowed per tool and caller in each window.",
    )
    parser.add_argument(
        "--rate-limit-window-ms",
        type=int,
        default=defaults.rate_limit_window_ms,
        help="Rate-limit window length in milliseconds.",
    )
    parser.add_argument(
        "--transport",
        choices=list(TRANSPORTS),
        default=defaults.transport,
        help="Server transport mode (default: stdio).",
    )
    parser.add_argument("--host", default=defaults.host, help="Host for streamable HTTP transport.")
    parser.add_argument("--port", type=int, default=defaults.port, help="Port for streamable HTTP transport.")
    parser.add_argument(
        "--allow-public-http",
        action=argparse.BooleanOptionalAction,
        default=defaults.allow_public_http,
        help="Allow non-loopback streamable-http host binding.",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=list(LOG_LEVELS),
        default=defaults.log_level,
        help="Logging level written to stderr.",
    )
    parser.add_argument(
        "--audit-log-file",
        default=defaults.audit_log_file,
        help="Optional JSONL audit log path for MCP tool calls.",
    )
    parser.add_argument(
        "--audit-redact-sensitive",
        action=argparse.BooleanOptionalAction,
        default=defaults.audit_redact_sensitive,
        help="Redact sensitive-looking fields in audit logs (default: enabled).",
    )
    parser.add_argument(
        "--audit-max-field-chars",
        type=int,
        default=defaults.audit_max_field_chars,
        help="Max characters for each string field written to audit logs.",
    )
    parser.add_argument(
        "--auth-mode",
        choices=list(AUTH_MODES),
        default=defaults.auth_mode,
        help="Authentication mode for streamable HTTP: off or token.",
    )
    parser.add_argument(
        "--auth-token",
        default=defaults.auth_token,
        help="Static bearer token for auth-mode=token. Prefer FIREBASE_MCP_AUTH_TOKEN.",
    )
    parser.add_argument(
        "--auth-roles",
        default=",".join(defaults.auth_roles),
        help="Comma-separated roles granted to token-authenticated callers (e.g. admin).",
    )
    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate runtime settings and exit without starting server transport.",
    )
    parser.add_argument(
        "--print-effective-config",
        action="store_true",
        help="Print sanitized effective runtime configuration and exit.",
    )
    return parser


CLI_SETTING_NAMES = (
    "credentials_path",
    "project_id",
    "database_url",
    "storage_bucket",
    "read_only",
    "disable_auth",
    "disable_storage",
    "rate_limit_enabled",
    "rate_limit_max_requests",
    "rate_limit_window_ms",
    "transport",
    "host",
    "port",
    "allow_public_http",
    "log_level",
    "audit_log_file",
    "audit_redact_sensitive",
    "audit_max_field_chars",
    "auth_mode",
    "auth_token",
)
CLI_LIST_SETTING_NAMES = ("allowed_collections", "admin_only_tools", "auth_roles")


def cli_overrides_from_args(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {name: getattr(args, name) for name in CLI_SETTING_NAMES}
    for name in CLI_LIST_SETTING_NAMES:
        overrides[name] = parse_csv_values(getattr(args, name))
    return overrides


def resolve_settings(argv: list[str] | None = None) -> tuple[ServerSettings, argparse.Namespace]:
    """Parse CLI arguments on top of the file and environment layers."""
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", default=None)
    pre_args, _ = pre_parser.parse_known_args(argv)

    parser = argparse.ArgumentParser(prog="firebase-mcp")
    try:
        defaults = load_settings(config_path=pre_args.config)
    except ValueError as exc:
        parser.error(str(exc))

    parser = build_parser(defaults)
    args = parser.parse_args(argv)
    try:
        resolved = load_settings(
            config_path=pre_args.config,
            cli_overrides=cli_overrides_from_args(args),
        )
        apply_settings(resolved)
    except ValueError as exc:
        parser.error(str(exc))
    return resolved, args


def main(argv: list[str] | None = None) -> None:
    """Run the Firebase MCP server in stdio or streamable HTTP mode."""
    resolved, args = resolve_settings(argv)
    _configure_logging(resolved.log_level)
    _configure_fastmcp_auth(resolved)

    if args.print_effective_config:
        print(json.dumps(resolved.to_safe_payload(), indent=2, sort_keys=True))

    if args.check_config or args.print_effective_config:
        if not args.print_effective_config:
            print("Configuration is valid.")
        return

    logger.info(
        "Starting %s %s over %s with %d tools",
        SERVER_NAME,
        __version__,
        resolved.transport,
        len(registry),
    )
    if resolved.transport == "stdio":
        mcp.run()
        return

    mcp.run(transport="streamable-http")


if __name__ == "__main__":
    main()

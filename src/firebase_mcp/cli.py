"""Command line interface for the Firebase tools with parity to MCP tools."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import yaml

from .config import ServerSettings, load_settings, parse_csv_values
from .errors import ErrorKind, FirebaseMCPError
from .firebase import FirebaseServices, load_services
from .policy import RequestContext
from .tools import build_registry


def _load_services(settings: ServerSettings) -> FirebaseServices:
    return load_services(
        credentials_path=settings.credentials_path,
        project_id=settings.project_id,
        database_url=settings.database_url,
        storage_bucket=settings.storage_bucket,
    )


def _print_payload(payload: dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, indent=2))
        return

    if "isError" in payload:
        if payload["isError"]:
            print(f"[ERROR] {payload.get('errorKind', '')}")
        else:
            print("[OK]")
        for item in payload.get("content", []):
            print(item.get("text", ""))
        return

    if "tools" in payload:
        for tool in payload["tools"]:
            flags = []
            if tool.get("capability"):
                flags.append(tool["capability"])
            flags.append("write" if tool.get("write") else "read")
            if tool.get("destructive"):
                flags.append("destructive")
            print(f"- {tool['name']} [{', '.join(flags)}] {tool.get('description', '')}")
        return

    status = str(payload.get("status", "success")).upper()
    print(f"[{status}] {payload.get('message', '')}")
    if payload.get("status") == "error":
        if payload.get("error_kind"):
            print(f"error_kind: {payload['error_kind']}")
        if payload.get("suggestion"):
            print(f"suggestion: {payload['suggestion']}")
        return
    if "config" in payload:
        print(json.dumps(payload["config"], indent=2, sort_keys=True))


def _error_payload(exc: Exception) -> dict[str, Any]:
    if isinstance(exc, FirebaseMCPError):
        return exc.to_payload()
    if isinstance(exc, ValueError):
        return {
            "status": "error",
            "error_kind": ErrorKind.VALIDATION.value,
            "message": str(exc),
            "suggestion": "Check command arguments and configuration values.",
            "details": {},
        }
    return {
        "status": "error",
        "error_kind": ErrorKind.INTERNAL.value,
        "message": str(exc),
        "suggestion": "Retry with --json for diagnostics and inspect logs.",
        "details": {},
    }


def _load_tool_arguments(args: argparse.Namespace) -> dict[str, Any]:
    if args.args and args.args_file:
        raise FirebaseMCPError(
            ErrorKind.VALIDATION,
            "--args and --args-file are mutually exclusive.",
            "Pass the tool arguments inline or from a file, not both.",
        )
    if args.args_file:
        try:
            payload = yaml.safe_load(Path(args.args_file).expanduser().read_text(encoding="utf-8"))
        except OSError as exc:
            raise FirebaseMCPError(
                ErrorKind.VALIDATION,
                f"Unable to read arguments file: {args.args_file}",
            ) from exc
        except yaml.YAMLError as exc:
            raise FirebaseMCPError(
                ErrorKind.VALIDATION,
                "Arguments file must contain a JSON or YAML object.",
            ) from exc
    elif args.args:
        try:
            payload = json.loads(args.args)
        except json.JSONDecodeError as exc:
            raise FirebaseMCPError(
                ErrorKind.VALIDATION,
                "--args must be a JSON object.",
                'Provide JSON like {"collection": "users", "documentId": "u1"}.',
            ) from exc
    else:
        payload = {}

    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise FirebaseMCPError(ErrorKind.VALIDATION, "Tool arguments must be an object.")
    return payload


def _cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for name in (
        "credentials_path",
        "project_id",
        "database_url",
        "storage_bucket",
        "read_only",
        "disable_auth",
        "disable_storage",
    ):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    for name in ("allowed_collections", "admin_only_tools"):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = parse_csv_values(value)
    return overrides


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=None, help="YAML/JSON config file")
    common.add_argument("--credentials", dest="credentials_path", default=None, help="Service account JSON file")
    common.add_argument("--project", dest="project_id", default=None, help="Firebase project id")
    common.add_argument("--database-url", default=None, help="Realtime Database URL")
    common.add_argument("--storage-bucket", default=None, help="Default Cloud Storage bucket")
    common.add_argument(
        "--read-only",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Reject write operations",
    )
    common.add_argument("--allowed-collections", default=None, help="Comma-separated root collections")
    common.add_argument(
        "--disable-auth",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Disable Authentication tools",
    )
    common.add_argument(
        "--disable-storage",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Disable Storage tools",
    )
    common.add_argument("--admin-only-tools", default=None, help="Comma-separated admin-only tools")
    common.add_argument("--json", action="store_true", help="Output machine-readable JSON")

    parser = argparse.ArgumentParser(prog="firebase-mcp-cli", description="Firebase MCP tools CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("tools", parents=[common], help="List available tools")

    call = subparsers.add_parser("call", parents=[common], help="Call one tool")
    call.add_argument("tool", help="Tool name, e.g. get_document")
    call.add_argument("--args", default="", help="Tool arguments as a JSON object")
    call.add_argument("--args-file", default="", help="JSON or YAML file with tool arguments")
    call.add_argument("--caller", default="cli", help="Caller id used for rate limiting and audit")
    call.add_argument("--roles", default="", help="Comma-separated caller roles (e.g. admin)")

    subparsers.add_parser("config", parents=[common], help="Print effective configuration")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    as_json = bool(getattr(args, "json", False))

    try:
        settings = load_settings(config_path=args.config, cli_overrides=_cli_overrides(args))
        registry = build_registry(
            lambda: _load_services(settings),
            policy=settings.security_policy(),
        )

        if args.command == "tools":
            response: dict[str, Any] = {
                "status": "success",
                "message": f"{len(registry)} tools available",
                "tools": [
                    {
                        "name": spec.name,
                        "description": spec.description,
                        "capability": spec.capability.value if spec.capability else None,
                        "write": spec.write,
                        "destructive": spec.destructive,
                    }
                    for spec in registry.specs()
                ],
            }
        elif args.command == "config":
            response = {
                "status": "success",
                "message": "Effective configuration",
                "config": settings.to_safe_payload(),
            }
        else:
            context = RequestContext(
                caller_id=args.caller,
                roles=frozenset(parse_csv_values(args.roles)),
            )
            envelope = asyncio.run(
                registry.dispatch(args.tool, _load_tool_arguments(args), context)
            )
            _print_payload(envelope.to_payload(), as_json=as_json)
            return 1 if envelope.is_error else 0

        _print_payload(response, as_json=as_json)
        return 0
    except Exception as exc:  # noqa: BLE001
        _print_payload(_error_payload(exc), as_json=as_json)
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))

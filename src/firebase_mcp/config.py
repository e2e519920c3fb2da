"""Layered runtime configuration: defaults < config file < environment < CLI."""

from __future__ import annotations

import ipaddress
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml

from .constants import (
    DEFAULT_CONFIG_FILE_NAME,
    DEFAULT_RATE_LIMIT_MAX_REQUESTS,
    DEFAULT_RATE_LIMIT_WINDOW_MS,
)
from .limits import RateLimitConfig
from .policy import Capability, SecurityPolicy

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}
TRANSPORTS = ("stdio", "streamable-http")
AUTH_MODES = ("off", "token")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
CONFIG_FILE_ENV = "FIREBASE_MCP_CONFIG_FILE"


@dataclass(frozen=True)
class ServerSettings:
    """Effective server configuration after all layers are merged."""

    credentials_path: str = ""
    project_id: str = ""
    database_url: str = ""
    storage_bucket: str = ""
    transport: str = "stdio"
    host: str = "127.0.0.1"
    port: int = 8000
    allow_public_http: bool = False
    log_level: str = "INFO"
    read_only: bool = False
    allowed_collections: tuple[str, ...] = ()
    disable_auth: bool = False
    disable_storage: bool = False
    admin_only_tools: tuple[str, ...] = ()
    rate_limit_enabled: bool = True
    rate_limit_max_requests: int = DEFAULT_RATE_LIMIT_MAX_REQUESTS
    rate_limit_window_ms: int = DEFAULT_RATE_LIMIT_WINDOW_MS
    audit_log_file: str = ""
    audit_redact_sensitive: bool = True
    audit_max_field_chars: int = 4000
    auth_mode: str = "off"
    auth_token: str = ""
    auth_roles: tuple[str, ...] = ()
    config_file: str = ""

    def security_policy(self) -> SecurityPolicy:
        disabled: set[Capability] = set()
        if self.disable_auth:
            disabled.add(Capability.AUTH)
        if self.disable_storage:
            disabled.add(Capability.STORAGE)
        return SecurityPolicy(
            read_only=self.read_only,
            allowed_resources=frozenset(self.allowed_collections),
            disabled_capabilities=frozenset(disabled),
            admin_only_tools=frozenset(self.admin_only_tools),
        )

    def rate_limit_config(self) -> RateLimitConfig | None:
        """Return the limiter budget, or ``None`` when rate limiting is off."""
        if not self.rate_limit_enabled:
            return None
        return RateLimitConfig(
            max_requests=self.rate_limit_max_requests,
            window_ms=self.rate_limit_window_ms,
        )

    def to_safe_payload(self) -> dict[str, Any]:
        """Sanitized view for ``--print-effective-config`` and the CLI."""
        return {
            "config_file": self.config_file or None,
            "firebase": {
                "credentials_path": self.credentials_path or None,
                "project_id": self.project_id or None,
                "database_url": self.database_url or None,
                "storage_bucket": self.storage_bucket or None,
            },
            "transport": self.transport,
            "host": self.host,
            "port": self.port,
            "allow_public_http": self.allow_public_http,
            "log_level": self.log_level,
            "security": {
                "read_only": self.read_only,
                "allowed_collections": list(self.allowed_collections),
                "disable_auth": self.disable_auth,
                "disable_storage": self.disable_storage,
                "admin_only_tools": list(self.admin_only_tools),
            },
            "rate_limit": {
                "enabled": self.rate_limit_enabled,
                "max_requests": self.rate_limit_max_requests,
                "window_ms": self.rate_limit_window_ms,
            },
            "audit": {
                "log_file": self.audit_log_file or None,
                "redact_sensitive": self.audit_redact_sensitive,
                "max_field_chars": self.audit_max_field_chars,
            },
            "auth": {
                "mode": self.auth_mode,
                "token_configured": bool(self.auth_token),
                "roles": list(self.auth_roles),
            },
        }


_FIELD_TYPES: dict[str, str] = {item.name: str(item.type) for item in fields(ServerSettings)}

ENV_KEYS: dict[str, str] = {
    "credentials_path": "GOOGLE_APPLICATION_CREDENTIALS",
    "project_id": "FIREBASE_PROJECT_ID",
    "database_url": "FIREBASE_DATABASE_URL",
    "storage_bucket": "FIREBASE_STORAGE_BUCKET",
    "transport": "FIREBASE_MCP_TRANSPORT",
    "host": "FIREBASE_MCP_HOST",
    "port": "FIREBASE_MCP_PORT",
    "allow_public_http": "FIREBASE_MCP_ALLOW_PUBLIC_HTTP",
    "log_level": "FIREBASE_MCP_LOG_LEVEL",
    "read_only": "FIREBASE_MCP_READ_ONLY",
    "allowed_collections": "FIREBASE_MCP_ALLOWED_COLLECTIONS",
    "disable_auth": "FIREBASE_MCP_DISABLE_AUTH",
    "disable_storage": "FIREBASE_MCP_DISABLE_STORAGE",
    "admin_only_tools": "FIREBASE_MCP_ADMIN_ONLY_TOOLS",
    "rate_limit_enabled": "FIREBASE_MCP_RATE_LIMIT_ENABLED",
    "rate_limit_max_requests": "FIREBASE_MCP_RATE_LIMIT_MAX_REQUESTS",
    "rate_limit_window_ms": "FIREBASE_MCP_RATE_LIMIT_WINDOW_MS",
    "audit_log_file": "FIREBASE_MCP_AUDIT_LOG",
    "audit_redact_sensitive": "FIREBASE_MCP_AUDIT_REDACT",
    "audit_max_field_chars": "FIREBASE_MCP_AUDIT_MAX_FIELD_CHARS",
    "auth_mode": "FIREBASE_MCP_AUTH_MODE",
    "auth_token": "FIREBASE_MCP_AUTH_TOKEN",
    "auth_roles": "FIREBASE_MCP_AUTH_ROLES",
}

# Config file layout: top-level keys plus one level of sections.
FILE_SECTIONS: dict[str, dict[str, str]] = {
    "security": {
        "read_only": "read_only",
        "allowed_collections": "allowed_collections",
        "disable_auth": "disable_auth",
        "disable_storage": "disable_storage",
        "admin_only_tools": "admin_only_tools",
    },
    "rate_limit": {
        "enabled": "rate_limit_enabled",
        "max_requests": "rate_limit_max_requests",
        "window_ms": "rate_limit_window_ms",
    },
    "audit": {
        "log_file": "audit_log_file",
        "redact_sensitive": "audit_redact_sensitive",
        "max_field_chars": "audit_max_field_chars",
    },
    "auth": {
        "mode": "auth_mode",
        "token": "auth_token",
        "roles": "auth_roles",
    },
}
FILE_TOP_LEVEL_KEYS = (
    "credentials_path",
    "project_id",
    "database_url",
    "storage_bucket",
    "transport",
    "host",
    "port",
    "allow_public_http",
    "log_level",
)


def resolve_config_path(
    explicit_path: str | None = None,
    env: Mapping[str, str] | None = None,
    cwd: Path | None = None,
) -> Path | None:
    """Pick the config file: explicit path, then env var, then ./firebase-mcp-config.yaml."""
    source = os.environ if env is None else env
    candidate = (explicit_path or "").strip() or source.get(CONFIG_FILE_ENV, "").strip()
    if candidate:
        path = Path(candidate).expanduser()
        if not path.is_file():
            raise ValueError(f"Config file not found: {path}")
        return path
    default_path = (cwd or Path.cwd()) / DEFAULT_CONFIG_FILE_NAME
    return default_path if default_path.is_file() else None


def load_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML (or JSON) config file into flat ``ServerSettings`` overrides."""
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ValueError(f"Unable to read config file: {path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Config file is not valid YAML or JSON: {path}") from exc

    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Config file must contain a mapping at the top level: {path}")

    overrides: dict[str, Any] = {}
    for key, value in raw.items():
        if key in FILE_SECTIONS:
            if not isinstance(value, Mapping):
                raise ValueError(f"Config section '{key}' must be a mapping.")
            section = FILE_SECTIONS[key]
            for section_key, section_value in value.items():
                if section_key not in section:
                    raise ValueError(f"Unknown config key '{key}.{section_key}'.")
                field_name = section[section_key]
                overrides[field_name] = _coerce_value(
                    field_name, section_value, label=f"{key}.{section_key}"
                )
        elif key in FILE_TOP_LEVEL_KEYS:
            overrides[key] = _coerce_value(key, value, label=key)
        else:
            raise ValueError(f"Unknown config key '{key}'.")
    return overrides


def get_env_overrides(env: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Return the settings explicitly provided through environment variables."""
    source = os.environ if env is None else env
    overrides: dict[str, Any] = {}
    for field_name, key in ENV_KEYS.items():
        raw = source.get(key)
        if raw is None or not str(raw).strip():
            continue
        field_type = _FIELD_TYPES[field_name]
        if field_type == "bool":
            overrides[field_name] = _parse_bool_env(source, key, default=False)
        elif field_type == "int":
            overrides[field_name] = _parse_int_env(source, key, default=0)
        elif field_type.startswith("tuple"):
            overrides[field_name] = parse_csv_values(raw)
        else:
            overrides[field_name] = str(raw).strip()
    return overrides


def load_settings(
    env: Mapping[str, str] | None = None,
    config_path: str | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
    cwd: Path | None = None,
) -> ServerSettings:
    """Merge every configuration layer and validate the result."""
    source = os.environ if env is None else env
    settings = ServerSettings()

    path = resolve_config_path(config_path, env=source, cwd=cwd)
    if path is not None:
        settings = replace(settings, config_file=str(path), **load_config_file(path))

    settings = replace(settings, **get_env_overrides(source))
    if cli_overrides:
        settings = replace(settings, **dict(cli_overrides))

    settings = _normalize(settings)
    validate_settings(settings)
    return settings


def _normalize(settings: ServerSettings) -> ServerSettings:
    return replace(
        settings,
        transport=settings.transport.strip().lower(),
        auth_mode=settings.auth_mode.strip().lower(),
        log_level=settings.log_level.strip().upper(),
        auth_token=settings.auth_token.strip(),
        audit_log_file=settings.audit_log_file.strip(),
    )


def validate_settings(settings: ServerSettings) -> None:
    """Validate merged settings; raises ``ValueError`` with the offending option."""
    if settings.transport not in TRANSPORTS:
        raise ValueError("transport must be 'stdio' or 'streamable-http'.")
    if not (1 <= settings.port <= 65535):
        raise ValueError("port must be between 1 and 65535.")
    if settings.log_level not in LOG_LEVELS:
        raise ValueError(f"log-level must be one of: {', '.join(LOG_LEVELS)}.")
    validate_streamable_http_binding(
        transport=settings.transport,
        host=settings.host,
        allow_public_http=settings.allow_public_http,
    )
    if settings.rate_limit_max_requests <= 0:
        raise ValueError("rate-limit-max-requests must be > 0.")
    if settings.rate_limit_window_ms <= 0:
        raise ValueError("rate-limit-window-ms must be > 0.")
    if settings.audit_max_field_chars < 0 or (0 < settings.audit_max_field_chars < 64):
        raise ValueError("audit-max-field-chars must be 0 or >= 64.")
    validate_auth_values(settings)


def validate_auth_values(settings: ServerSettings) -> None:
    if settings.auth_mode not in AUTH_MODES:
        raise ValueError(f"auth-mode must be one of: {', '.join(AUTH_MODES)}.")
    if settings.auth_mode == "off":
        return
    if settings.transport != "streamable-http":
        raise ValueError("auth-mode requires --transport streamable-http.")
    if not settings.auth_token:
        raise ValueError("auth-token must be set when auth-mode=token.")


def validate_streamable_http_binding(transport: str, host: str, allow_public_http: bool) -> None:
    """Validate host exposure policy for streamable HTTP transport."""
    if transport != "streamable-http":
        return
    if not host.strip():
        raise ValueError("Host must not be empty when using streamable-http transport.")
    if not is_loopback_host(host) and not allow_public_http:
        raise ValueError(
            "Refusing non-loopback streamable-http binding without explicit opt-in. "
            "Set --allow-public-http or FIREBASE_MCP_ALLOW_PUBLIC_HTTP=true."
        )


def is_loopback_host(host: str) -> bool:
    """Return whether a host value maps to a loopback interface."""
    normalized = host.strip().lower().strip("[]")
    if normalized in {"localhost", "127.0.0.1", "::1"}:
        return True
    try:
        return ipaddress.ip_address(normalized).is_loopback
    except ValueError:
        return False


def parse_csv_values(value: str | None) -> tuple[str, ...]:
    """Parse comma-separated values into a normalized tuple."""
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


def build_http_base_url(host: str, port: int, path: str) -> str:
    """Build an HTTP URL from host/port/path, handling IPv6 host formatting."""
    normalized_host = host.strip()
    if ":" in normalized_host and not normalized_host.startswith("["):
        normalized_host = f"[{normalized_host}]"

    normalized_path = path.strip() or "/"
    if not normalized_path.startswith("/"):
        normalized_path = f"/{normalized_path}"

    return f"http://{normalized_host}:{port}{normalized_path}"


def resolve_auth_metadata_urls(host: str, port: int, streamable_http_path: str) -> tuple[str, str]:
    """Derive issuer and resource-server URLs advertised in MCP auth metadata."""
    resource_server_url = build_http_base_url(host=host, port=port, path=streamable_http_path)
    _validate_http_url(resource_server_url, field_name="auth-resource-server-url")
    return resource_server_url, resource_server_url


def _coerce_value(field_name: str, value: Any, label: str) -> Any:
    field_type = _FIELD_TYPES[field_name]
    if field_type == "bool":
        if isinstance(value, bool):
            return value
        return _parse_bool_env({label: str(value)}, label, default=False)
    if field_type == "int":
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise ValueError(f"{label} must be an integer.")
        return _parse_int_env({label: str(value)}, label, default=0)
    if field_type.startswith("tuple"):
        if value is None:
            return ()
        if isinstance(value, str):
            return parse_csv_values(value)
        if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value):
            return tuple(item.strip() for item in value if item.strip())
        raise ValueError(f"{label} must be a list of strings.")
    if value is None:
        return ""
    if not isinstance(value, (str, int, float)):
        raise ValueError(f"{label} must be a string.")
    return str(value)


def _parse_bool_env(source: Mapping[str, str], key: str, default: bool) -> bool:
    raw = source.get(key)
    if raw is None or not str(raw).strip():
        return default
    normalized = str(raw).strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ValueError(f"{key} must be a boolean value (true/false).")


def _parse_int_env(source: Mapping[str, str], key: str, default: int) -> int:
    raw = source.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        parsed = int(str(raw).strip())
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer.") from exc
    return parsed


def _validate_http_url(value: str, field_name: str) -> None:
    parsed = urlparse(value.strip())
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"{field_name} must be a valid http(s) URL.")

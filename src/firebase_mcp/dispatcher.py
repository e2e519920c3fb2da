"""Tool registry and the per-call request pipeline."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from .errors import ErrorKind, FirebaseMCPError
from .limits import RateLimiter
from .models import ToolResponse
from .policy import Capability, RequestContext, SecurityGate, SecurityPolicy
from .responses import with_policy_enforcement, wrap_error, wrap_success
from .validation import build_validation_error_details, describe_validation_error

ToolHandler = Callable[[Any, RequestContext], Awaitable[Any]]
ResourceExtractor = Callable[[Any], Iterable[str]]

READ_ONLY_TOOL_ANNOTATIONS = {
    "readOnlyHint": True,
    "idempotentHint": True,
    "destructiveHint": False,
    "openWorldHint": True,
}

WRITE_TOOL_ANNOTATIONS = {
    "readOnlyHint": False,
    "idempotentHint": False,
    "destructiveHint": False,
    "openWorldHint": True,
}

DESTRUCTIVE_WRITE_TOOL_ANNOTATIONS = {
    "readOnlyHint": False,
    "idempotentHint": False,
    "destructiveHint": True,
    "openWorldHint": True,
}


class DuplicateToolError(ValueError):
    """Raised when a tool name is registered twice."""


@dataclass(frozen=True)
class ToolSpec:
    name: str
    schema: type[BaseModel]
    handler: ToolHandler
    description: str = ""
    capability: Capability | None = None
    write: bool = False
    destructive: bool = False
    resources: ResourceExtractor | None = None

    @property
    def annotations(self) -> dict[str, bool]:
        if self.destructive:
            return dict(DESTRUCTIVE_WRITE_TOOL_ANNOTATIONS)
        if self.write:
            return dict(WRITE_TOOL_ANNOTATIONS)
        return dict(READ_ONLY_TOOL_ANNOTATIONS)


class ToolRegistry:
    """Maps tool names to schemas and handlers and runs the call pipeline.

    Every call goes through, in order: argument validation, the security
    gate (capability, admin role, resource allow-list, read-only), the rate
    limiter, then the handler. Policy rejections therefore never consume a
    caller's rate budget, and the handler is never reached when any earlier
    step fails.
    """

    def __init__(
        self,
        policy: SecurityPolicy | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self._tools: dict[str, ToolSpec] = {}
        self._gate = SecurityGate(policy or SecurityPolicy())
        self.rate_limiter = rate_limiter

    @property
    def policy(self) -> SecurityPolicy:
        return self._gate.policy

    def configure(
        self,
        policy: SecurityPolicy,
        rate_limiter: RateLimiter | None,
    ) -> None:
        """Install the startup policy and limiter; ``None`` disables rate limiting."""
        self._gate = SecurityGate(policy)
        self.rate_limiter = rate_limiter

    def register(
        self,
        name: str,
        schema: type[BaseModel],
        handler: ToolHandler,
        **options: Any,
    ) -> ToolSpec:
        if name in self._tools:
            raise DuplicateToolError(f"Tool '{name}' is already registered.")
        spec = ToolSpec(name=name, schema=schema, handler=handler, **options)
        self._tools[name] = spec
        return spec

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def specs(self) -> list[ToolSpec]:
        return list(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    async def dispatch(
        self,
        name: str,
        arguments: Mapping[str, Any] | None = None,
        context: RequestContext | None = None,
    ) -> ToolResponse:
        """Run one tool call; always returns an envelope, never raises."""
        context = context or RequestContext()
        try:
            spec = self._tools.get(name)
            if spec is None:
                raise FirebaseMCPError(
                    ErrorKind.INTERNAL,
                    f"Unknown tool '{name}'.",
                    "List the available tools and retry with a registered name.",
                    {"tool_name": name},
                )

            try:
                parsed = spec.schema.model_validate(arguments if arguments is not None else {})
            except ValidationError as exc:
                raise FirebaseMCPError(
                    ErrorKind.VALIDATION,
                    f"Invalid arguments for '{name}': {describe_validation_error(exc)}",
                    "Check the tool input schema and retry.",
                    build_validation_error_details(exc),
                ) from exc

            self._gate.enforce(
                tool_name=name,
                context=context,
                capability=spec.capability,
                resources=list(spec.resources(parsed)) if spec.resources else [],
                write=spec.write,
            )
            if self.rate_limiter is not None:
                self.rate_limiter.enforce(f"{name}:{context.caller_id}")

            handler = with_policy_enforcement(spec.handler, context=name)
            result = await handler(parsed, context)
            return wrap_success(result)
        except Exception as exc:  # noqa: BLE001
            return wrap_error(exc)

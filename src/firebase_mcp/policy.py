"""Static security policy checks applied before any Firebase call."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from .constants import ADMIN_ROLE, ANONYMOUS_CALLER
from .errors import ErrorKind, FirebaseMCPError


class Capability(str, Enum):
    """Feature groups that can be switched off as a whole."""

    AUTH = "auth"
    STORAGE = "storage"


_CAPABILITY_LABELS = {
    Capability.AUTH: "Authentication",
    Capability.STORAGE: "Storage",
}


@dataclass(frozen=True)
class SecurityPolicy:
    """Process-wide access policy derived from configuration at startup."""

    read_only: bool = False
    allowed_resources: frozenset[str] = field(default_factory=frozenset)
    disabled_capabilities: frozenset[Capability] = field(default_factory=frozenset)
    admin_only_tools: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class RequestContext:
    """Caller identity passed alongside arguments to every handler."""

    caller_id: str = ANONYMOUS_CALLER
    roles: frozenset[str] = field(default_factory=frozenset)

    def has_role(self, role: str) -> bool:
        return role in self.roles


def check_capability(policy: SecurityPolicy, capability: Capability) -> None:
    if capability in policy.disabled_capabilities:
        label = _CAPABILITY_LABELS[capability]
        raise FirebaseMCPError(
            ErrorKind.AUTHORIZATION,
            f"{label} operations are disabled.",
            f"Enable {capability.value} operations in the server configuration.",
            {"capability": capability.value},
        )


def check_resource_allowed(policy: SecurityPolicy, resource: str) -> None:
    """Reject ``resource`` unless the allow-list is empty or names it."""
    if policy.allowed_resources and resource not in policy.allowed_resources:
        raise FirebaseMCPError(
            ErrorKind.AUTHORIZATION,
            f"Access to collection '{resource}' is not allowed.",
            "Use one of the collections listed in security.allowed_collections.",
            {"resource": resource},
        )


def check_write(policy: SecurityPolicy, resource: str | None = None) -> None:
    if policy.read_only:
        details = {"resource": resource} if resource else {}
        raise FirebaseMCPError(
            ErrorKind.AUTHORIZATION,
            "Server is in read-only mode. Write operations are not allowed.",
            "Disable security.read_only to run write operations.",
            details,
        )


def require_role(context: RequestContext, role: str, tool_name: str) -> None:
    if not context.has_role(role):
        raise FirebaseMCPError(
            ErrorKind.AUTHORIZATION,
            f"Tool '{tool_name}' requires the '{role}' role; "
            f"caller '{context.caller_id}' does not have permission.",
            "Call this tool with a token that grants the required role.",
            {"required_role": role, "caller_id": context.caller_id},
        )


class SecurityGate:
    """Runs the policy checks for one tool call in a fixed order."""

    def __init__(self, policy: SecurityPolicy) -> None:
        self.policy = policy

    def enforce(
        self,
        *,
        tool_name: str,
        context: RequestContext,
        capability: Capability | None,
        resources: Iterable[str],
        write: bool,
    ) -> None:
        if capability is not None:
            check_capability(self.policy, capability)
        if tool_name in self.policy.admin_only_tools:
            require_role(context, ADMIN_ROLE, tool_name)
        checked: list[str] = []
        for resource in resources:
            if resource in checked:
                continue
            check_resource_allowed(self.policy, resource)
            checked.append(resource)
        if write:
            check_write(self.policy, checked[0] if checked else None)

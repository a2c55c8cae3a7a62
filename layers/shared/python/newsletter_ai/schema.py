from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class FailureKind(str, Enum):
    """Terminal failure reasons for a tool dispatch or conversation."""
    NO_TOOL_SELECTED = "NoToolSelected"  # Model replied without calling a tool
    UNKNOWN_TOOL = "UnknownTool"  # Model named a tool that is not offered
    MISSING_TENANT_SCOPE = "MissingTenantScope"  # Multi-tenant tool without tenant id
    INVALID_ARGUMENTS = "InvalidArguments"  # Arguments failed schema validation
    MODEL_ERROR = "ModelError"  # Model call failed or returned garbage
    HANDLER_FAILURE = "HandlerFailure"  # Handler raised or reported failure


@dataclass(frozen=True)
class TenantContext:
    """Scoping value passed to every tool handler.

    Only `tenant_id` scopes data. The rest is request metadata for logs.
    """

    tenant_id: str | None
    user_id: str | None = None
    trace_id: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def has_tenant(self) -> bool:
        return bool(self.tenant_id and str(self.tenant_id).strip())

    def log_fields(self) -> str:
        return f"tenant={self.tenant_id or '-'} trace={self.trace_id or '-'}"


@dataclass(frozen=True)
class Violation:
    """A single reason a tool argument object was rejected."""

    path: str
    code: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "code": self.code, "message": self.message}


@dataclass
class ToolResult:
    """Result from tool execution."""

    ok: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    failure: FailureKind | None = None
    violations: list[Violation] = field(default_factory=list)

    @classmethod
    def fail(cls, failure: FailureKind, error: str, violations: list[Violation] | None = None) -> "ToolResult":
        return cls(ok=False, error=error, failure=failure, violations=list(violations or []))

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.ok}
        if self.ok:
            result["data"] = self.data
        else:
            result["error"] = self.error or "unknown_error"
            if self.failure is not None:
                result["failure"] = self.failure.value
            if self.violations:
                result["violations"] = [v.to_dict() for v in self.violations]
        return result

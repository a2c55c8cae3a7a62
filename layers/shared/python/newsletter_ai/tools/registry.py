"""Tool registry for model-driven tool dispatch.

Tools are the only way a model conversation can change persisted state.
Each tool:
1. Declares an argument schema (also shown to the model)
2. Declares whether it needs a tenant id
3. Executes with the validated arguments
4. Returns a structured result

A registry is built per conversation from an explicit tool list. There is no
process-wide registry, so one tenant's tool set never leaks into another call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Mapping

from newsletter_ai.schema import FailureKind, TenantContext, ToolResult, Violation

from .validation import ArgumentValidator

logger = logging.getLogger(__name__)

ToolHandler = Callable[[TenantContext, Any], ToolResult]


class DuplicateToolError(ValueError):
    """Raised when two tools with the same name are registered together."""


@dataclass(frozen=True)
class ToolSignature:
    """Model-facing view of a tool. Never carries the handler."""

    name: str
    description: str
    schema: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "schema": self.schema}


@dataclass(frozen=True)
class ToolSpec:
    """Specification for a tool the model may call.

    `args_type`, when set, must expose `from_dict(validated: dict)`; the handler
    then receives that typed value instead of a dict.
    """

    name: str
    description: str
    schema: Mapping[str, Any]
    handler: ToolHandler
    is_multi_tenant: bool = True
    args_type: Any = None
    validator: ArgumentValidator = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Tool name must not be empty")
        object.__setattr__(self, "validator", ArgumentValidator(self.schema))

    def signature(self) -> ToolSignature:
        return ToolSignature(name=self.name, description=self.description, schema=self.validator.schema)

    def decode(self, validated: dict[str, Any]) -> Any:
        if self.args_type is None:
            return validated
        return self.args_type.from_dict(validated)


@dataclass(frozen=True)
class PreparedCall:
    """A resolved tool with arguments that passed validation."""

    tool: ToolSpec
    args: Any


class ToolRegistry:
    """Registry of the tools offered in one conversation."""

    def __init__(self, tools: Iterable[ToolSpec] = ()) -> None:
        self._tools: dict[str, ToolSpec] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: ToolSpec) -> None:
        """Register a tool. Names must be unique."""
        if tool.name in self._tools:
            raise DuplicateToolError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool
        logger.debug("Registered tool: %s", tool.name)

    def get(self, name: str) -> ToolSpec | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def signatures(self) -> list[ToolSignature]:
        return [t.signature() for t in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def dispatch(self, name: str, raw_args: Any, ctx: TenantContext) -> ToolResult:
        """Resolve, check, validate and execute one tool call.

        Every failure comes back as a ToolResult; nothing raises out of here.
        """
        call = self.prepare(name, raw_args, ctx)
        if isinstance(call, ToolResult):
            return call
        return self.execute(call, ctx)

    def prepare(self, name: str, raw_args: Any, ctx: TenantContext) -> PreparedCall | ToolResult:
        """Resolve and validate a tool call without running it.

        Returns the failed ToolResult when the call must not run.
        """
        tool = self._tools.get(name)
        if not tool:
            logger.warning("Unknown tool requested: %s (%s)", name, ctx.log_fields())
            return ToolResult.fail(FailureKind.UNKNOWN_TOOL, f"unknown_tool: {name}")

        if tool.is_multi_tenant and not ctx.has_tenant:
            logger.warning("Tool %s requires a tenant id (%s)", name, ctx.log_fields())
            return ToolResult.fail(FailureKind.MISSING_TENANT_SCOPE, f"missing_tenant_scope: {name}")

        checked = tool.validator.validate(raw_args)
        if not checked.ok or checked.value is None:
            logger.warning(
                "Invalid arguments for %s (%s): %s",
                name,
                ctx.log_fields(),
                "; ".join(f"{v.path} {v.code}" for v in checked.violations),
            )
            return ToolResult.fail(FailureKind.INVALID_ARGUMENTS, f"invalid_arguments: {name}", checked.violations)

        try:
            args = tool.decode(checked.value)
        except (TypeError, ValueError, KeyError) as e:
            logger.warning("Could not decode arguments for %s: %s", name, e)
            return ToolResult.fail(
                FailureKind.INVALID_ARGUMENTS,
                f"invalid_arguments: {name}",
                [Violation(path="$", code="decode_failed", message=str(e))],
            )
        return PreparedCall(tool=tool, args=args)

    def execute(self, call: PreparedCall, ctx: TenantContext) -> ToolResult:
        """Run a prepared call. Handler errors become HandlerFailure results."""
        name = call.tool.name
        try:
            result = call.tool.handler(ctx, call.args)
        except Exception as e:
            logger.exception("Tool %s failed (%s)", name, ctx.log_fields())
            return ToolResult.fail(FailureKind.HANDLER_FAILURE, f"execution_error: {str(e)}")

        if not isinstance(result, ToolResult):
            logger.error("Tool %s returned %s instead of ToolResult", name, type(result).__name__)
            return ToolResult.fail(FailureKind.HANDLER_FAILURE, "invalid_handler_result")

        if not result.ok and result.failure is None:
            return replace(result, failure=FailureKind.HANDLER_FAILURE)
        return result

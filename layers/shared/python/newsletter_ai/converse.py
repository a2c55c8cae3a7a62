"""Single-shot model conversation with at most one tool dispatch.

One call, one model request, one tool call at most:

    Prepared -> AwaitingModel -> ToolSelected -> Validating -> Dispatching -> Completed
                      |               |              |             |
                      +---------------+--------------+-------------+--> Failed

The model's tool call is the only path to a persisted effect. Callers read the
committed artifact back from the store afterwards; the outcome only carries the
handler's result.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from newsletter_ai.bedrock import BedrockModelClient, ModelClient
from newsletter_ai.schema import FailureKind, TenantContext, ToolResult
from newsletter_ai.tools.registry import ToolRegistry, ToolSpec

logger = logging.getLogger(__name__)


class ConverseState(str, Enum):
    PREPARED = "Prepared"
    AWAITING_MODEL = "AwaitingModel"
    TOOL_SELECTED = "ToolSelected"
    VALIDATING = "Validating"
    DISPATCHING = "Dispatching"
    COMPLETED = "Completed"
    FAILED = "Failed"


@dataclass
class ConverseOutcome:
    state: ConverseState
    result: ToolResult
    tool_name: str | None = None
    text: str = ""
    history: list[ConverseState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == ConverseState.COMPLETED

    @property
    def failure(self) -> FailureKind | None:
        return None if self.ok else self.result.failure

    def to_dict(self) -> dict[str, Any]:
        out = self.result.to_dict()
        out["state"] = self.state.value
        if self.tool_name:
            out["tool"] = self.tool_name
        return out


class _Run:
    """State tracker for one converse call."""

    def __init__(self) -> None:
        self.history: list[ConverseState] = [ConverseState.PREPARED]

    def to(self, state: ConverseState) -> None:
        self.history.append(state)

    def fail(self, result: ToolResult, *, tool_name: str | None = None, text: str = "") -> ConverseOutcome:
        self.to(ConverseState.FAILED)
        return ConverseOutcome(ConverseState.FAILED, result, tool_name=tool_name, text=text, history=self.history)


def converse(
    model_id: str,
    system_prompt: str,
    user_prompt: str,
    tools: Sequence[ToolSpec],
    context: TenantContext,
    *,
    client: ModelClient | None = None,
) -> ConverseOutcome:
    """Ask the model to pick one of `tools` and run it for `context`.

    Raises DuplicateToolError if `tools` repeats a name. Every other problem is
    returned as a Failed outcome.
    """
    registry = ToolRegistry(tools)
    run = _Run()

    run.to(ConverseState.AWAITING_MODEL)
    try:
        model = client or BedrockModelClient.from_env()
        reply = model.invoke(model_id, system_prompt, user_prompt, registry.signatures())
    except Exception as e:
        logger.warning("Model call failed (model=%s, %s): %s", model_id, context.log_fields(), e)
        return run.fail(ToolResult.fail(FailureKind.MODEL_ERROR, f"model_error: {e}"))

    if not reply.tool_calls:
        logger.warning(
            "Model replied without a tool call (model=%s, %s): %.200s", model_id, context.log_fields(), reply.text
        )
        return run.fail(ToolResult.fail(FailureKind.NO_TOOL_SELECTED, "no_tool_selected"), text=reply.text)

    call = reply.tool_calls[0]
    if len(reply.tool_calls) > 1:
        logger.warning(
            "Model requested %d tool calls; dispatching only %s", len(reply.tool_calls), call.name
        )
    run.to(ConverseState.TOOL_SELECTED)
    logger.info("Tool called: %s (tool_use_id=%s, %s)", call.name, call.tool_use_id, context.log_fields())

    run.to(ConverseState.VALIDATING)
    prepared = registry.prepare(call.name, call.arguments, context)
    if isinstance(prepared, ToolResult):
        return run.fail(prepared, tool_name=call.name, text=reply.text)

    run.to(ConverseState.DISPATCHING)
    result = registry.execute(prepared, context)
    if not result.ok:
        logger.info("Tool %s failed: %s", call.name, result.error)
        return run.fail(result, tool_name=call.name, text=reply.text)

    run.to(ConverseState.COMPLETED)
    logger.info("Tool result: %s ok", call.name)
    return ConverseOutcome(ConverseState.COMPLETED, result, tool_name=call.name, text=reply.text, history=run.history)

"""createInsights tool - Records actionable insights on an issue's analytics record."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from newsletter_ai.schema import TenantContext, ToolResult
from newsletter_ai.store import KEY_PART_PATTERN, ArtifactStore, InvalidKeyError, StoreError

from .registry import ToolSpec

logger = logging.getLogger(__name__)

TOOL_NAME = "createInsights"
MAX_INSIGHTS = 5

SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "issueId": {
            "type": "string",
            "minLength": 1,
            "pattern": KEY_PART_PATTERN,
            "description": "Identifier of the related newsletter issue",
        },
        "insights": {
            "type": "array",
            "items": {"type": "string", "minLength": 1},
            "minItems": 1,
            "maxItems": MAX_INSIGHTS,
            "description": "List of actionable insights",
        },
    },
    "required": ["issueId", "insights"],
}


@dataclass(frozen=True)
class InsightsArgs:
    issue_id: str
    insights: tuple[str, ...]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InsightsArgs":
        return cls(issue_id=data["issueId"], insights=tuple(data["insights"]))


def build_tool(store: ArtifactStore | None = None) -> ToolSpec:
    """Build the createInsights tool bound to an artifact store."""
    store = store or ArtifactStore()

    def _handler(ctx: TenantContext, args: InsightsArgs) -> ToolResult:
        try:
            outcome = store.set_insights(str(ctx.tenant_id), args.issue_id, list(args.insights))
        except StoreError as e:
            logger.error("Error saving insights to newsletter record: issue=%s (%s)", args.issue_id, ctx.log_fields())
            return ToolResult(ok=False, error=f"save_failed: {e}")
        except InvalidKeyError as e:
            return ToolResult(ok=False, error=f"invalid_key: {e}")

        if not outcome.get("updated"):
            return ToolResult(ok=False, error="analytics_record_not_found")

        return ToolResult(ok=True, data={"success": True, "count": len(args.insights)})

    return ToolSpec(
        name=TOOL_NAME,
        description="Saves actionable insights for an issue",
        schema=SCHEMA,
        handler=_handler,
        is_multi_tenant=True,
        args_type=InsightsArgs,
    )

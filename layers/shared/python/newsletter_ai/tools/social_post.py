"""createSocialMediaPost tool - Saves a social media post draft for an issue.

The draft lands in the artifact table under the issue's partition with a
platform-qualified sort key, and expires after the retention window.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from newsletter_ai.schema import TenantContext, ToolResult
from newsletter_ai.store import KEY_PART_PATTERN, ArtifactStore, InvalidKeyError, StoreError

from .registry import ToolSpec

logger = logging.getLogger(__name__)

TOOL_NAME = "createSocialMediaPost"
DEFAULT_TTL_SECONDS = 3 * 24 * 60 * 60

SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "copy": {
            "type": "string",
            "minLength": 100,
            "maxLength": 1500,
            "description": "Copy to include in the social media post",
        },
        "platform": {
            "type": "string",
            "minLength": 2,
            "maxLength": 20,
            "description": "Social media platform (e.g., LinkedIn, Facebook)",
        },
        "issueId": {
            "type": "string",
            "minLength": 1,
            "pattern": KEY_PART_PATTERN,
            "description": "Identifier for the related newsletter issue",
        },
    },
    "required": ["copy", "platform", "issueId"],
}


@dataclass(frozen=True)
class SocialPostArgs:
    copy: str
    platform: str
    issue_id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SocialPostArgs":
        return cls(copy=data["copy"], platform=data["platform"], issue_id=data["issueId"])


def build_tool(store: ArtifactStore | None = None, *, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> ToolSpec:
    """Build the createSocialMediaPost tool bound to an artifact store."""
    store = store or ArtifactStore()

    def _handler(ctx: TenantContext, args: SocialPostArgs) -> ToolResult:
        try:
            keys = store.put_social_post(
                str(ctx.tenant_id),
                args.issue_id,
                args.platform,
                args.copy,
                ttl_seconds=ttl_seconds,
            )
        except StoreError as e:
            logger.error(
                "Error saving social post: platform=%s issue=%s (%s)", args.platform, args.issue_id, ctx.log_fields()
            )
            return ToolResult(ok=False, error=f"save_failed: {e}")
        except InvalidKeyError as e:
            return ToolResult(ok=False, error=f"invalid_key: {e}")

        logger.info("Saved %s social post for issue %s (%s)", args.platform, args.issue_id, ctx.log_fields())
        return ToolResult(ok=True, data={"success": True, **keys})

    return ToolSpec(
        name=TOOL_NAME,
        description="Creates a social media post for a given topic and audience",
        schema=SCHEMA,
        handler=_handler,
        is_multi_tenant=True,
        args_type=SocialPostArgs,
    )

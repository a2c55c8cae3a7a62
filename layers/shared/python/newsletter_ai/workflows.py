"""Newsletter steps that go through the model.

Both steps are write-then-read: the model's tool call persists the artifact,
and the step reads it back by key. A failure anywhere means "not created" and
comes back as a plain result, never an exception, so the surrounding
pipeline can skip the feature and keep going.
"""
from __future__ import annotations

import logging
from typing import Any

from newsletter_prompts import (
    INSIGHTS_SYSTEM_PROMPT,
    SOCIAL_POST_SYSTEM_PROMPT,
    insights_user_prompt,
    social_post_user_prompt,
)

from newsletter_ai.bedrock import ModelClient
from newsletter_ai.converse import converse
from newsletter_ai.schema import TenantContext
from newsletter_ai.store import ArtifactStore, StoreError, is_key_part, partition_key
from newsletter_ai.tools import insights as insights_tool
from newsletter_ai.tools import social_post as social_post_tool

logger = logging.getLogger(__name__)

SOCIAL_PLATFORM = "linkedin"
HISTORY_LIMIT = 3

# Index/key attributes that should not be shown to the model.
_HIDDEN_KEYS = ("pk", "sk", "GSI1PK", "GSI1SK")


def _failure(error: str) -> dict[str, Any]:
    return {"success": False, "error": error}


def generate_social_post(
    tenant_id: str,
    issue_id: str,
    content: str,
    *,
    model_id: str,
    store: ArtifactStore,
    client: ModelClient | None = None,
    ttl_seconds: int = social_post_tool.DEFAULT_TTL_SECONDS,
    trace_id: str | None = None,
) -> dict[str, Any]:
    """Have the model write a LinkedIn post for an issue and return its copy."""
    for name, value in (("tenantId", tenant_id), ("issueId", issue_id), ("content", content)):
        if not value:
            return _failure(f"missing_field: {name}")
    for name, value in (("tenantId", tenant_id), ("issueId", issue_id)):
        if not is_key_part(value):
            return _failure(f"invalid_field: {name}")

    ctx = TenantContext(tenant_id=tenant_id, trace_id=trace_id)
    outcome = converse(
        model_id,
        SOCIAL_POST_SYSTEM_PROMPT,
        social_post_user_prompt(issue_id, content),
        [social_post_tool.build_tool(store, ttl_seconds=ttl_seconds)],
        ctx,
        client=client,
    )
    if not outcome.ok:
        logger.warning("Social post not created for %s: %s", partition_key(tenant_id, issue_id), outcome.result.error)
        return _failure(outcome.result.error or "social_post_not_created")

    try:
        item = store.get_social_post(tenant_id, issue_id, SOCIAL_PLATFORM)
    except StoreError as e:
        return _failure(str(e))
    if not item or not item.get("copy"):
        # The model may have saved under a different platform or issue id.
        logger.warning("Social post not found after tool call for %s", partition_key(tenant_id, issue_id))
        return _failure("social_post_not_created")

    return {"copy": item["copy"]}


def load_history(store: ArtifactStore, tenant_id: str, issue_id: str) -> list[dict[str, Any]]:
    """Up to three prior analytics records for the tenant, newest first."""
    this_issue = partition_key(tenant_id, issue_id)
    history: list[dict[str, Any]] = []
    for item in store.recent_analytics(tenant_id, limit=HISTORY_LIMIT + 1):
        if item.get("pk") == this_issue:
            continue
        data = {k: v for k, v in item.items() if k not in _HIDDEN_KEYS}
        data["deliveredDate"] = item.get("GSI1SK")
        history.append(data)
    return history[:HISTORY_LIMIT]


def generate_insights(
    tenant_id: str,
    issue_id: str,
    insight_data: Any,
    subject_line: str | None = None,
    *,
    model_id: str,
    store: ArtifactStore,
    client: ModelClient | None = None,
    trace_id: str | None = None,
) -> dict[str, Any]:
    """Have the model record insights for an issue and return them.

    Always returns `{"insights": [...]}`; the list is empty when nothing was saved.
    """
    if not is_key_part(tenant_id) or not is_key_part(issue_id):
        return {"insights": []}

    try:
        history = load_history(store, tenant_id, issue_id)
    except StoreError as e:
        logger.warning("Historical analytics unavailable (continuing): %s", e)
        history = []

    ctx = TenantContext(tenant_id=tenant_id, trace_id=trace_id)
    outcome = converse(
        model_id,
        INSIGHTS_SYSTEM_PROMPT,
        insights_user_prompt(issue_id, subject_line, insight_data, history),
        [insights_tool.build_tool(store)],
        ctx,
        client=client,
    )
    if not outcome.ok:
        logger.warning("Insights not created for %s: %s", partition_key(tenant_id, issue_id), outcome.result.error)

    try:
        analytics = store.get_analytics(tenant_id, issue_id)
    except StoreError as e:
        logger.warning("Could not load analytics for %s: %s", partition_key(tenant_id, issue_id), e)
        return {"insights": []}

    if not analytics:
        logger.warning("Analytics were not generated for this issue: %s", partition_key(tenant_id, issue_id))
        return {"insights": []}

    insights = analytics.get("insights") or []
    if not insights:
        logger.warning("Insights were not generated for this issue: %s", partition_key(tenant_id, issue_id))
    return {"insights": list(insights)}

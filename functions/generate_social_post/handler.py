from __future__ import annotations

import logging
from typing import Any

from newsletter_ai.config import load_config
from newsletter_ai.logging_utils import configure_logging
from newsletter_ai.store import ArtifactStore
from newsletter_ai.workflows import generate_social_post

logger = logging.getLogger(__name__)
configure_logging()

_cfg = load_config()
_store = ArtifactStore(table_name=_cfg.table_name)


def handler(event: dict, context: Any) -> dict[str, Any]:
    event = event or {}
    tenant_id = str(event.get("tenantId") or "").strip()
    issue_id = str(event.get("issueId") or "").strip()
    content = str(event.get("content") or "")
    trace_id = getattr(context, "aws_request_id", None)

    try:
        return generate_social_post(
            tenant_id,
            issue_id,
            content,
            model_id=_cfg.model_id,
            store=_store,
            ttl_seconds=_cfg.social_post_ttl_seconds,
            trace_id=trace_id,
        )
    except Exception:
        logger.exception("Error generating social post (tenant=%s)", tenant_id or "-")
        return {"success": False}

from __future__ import annotations

import logging
from typing import Any

from newsletter_ai.config import load_config
from newsletter_ai.logging_utils import configure_logging
from newsletter_ai.store import ArtifactStore
from newsletter_ai.workflows import generate_insights

logger = logging.getLogger(__name__)
configure_logging()

_cfg = load_config()
_store = ArtifactStore(table_name=_cfg.table_name)


def handler(event: dict, context: Any) -> dict[str, Any]:
    event = event or {}
    tenant_id = str(event.get("tenantId") or "").strip()
    issue_id = str(event.get("issueId") or "").strip()

    try:
        return generate_insights(
            tenant_id,
            issue_id,
            event.get("insightData") or {},
            event.get("subjectLine"),
            model_id=_cfg.model_id,
            store=_store,
            trace_id=getattr(context, "aws_request_id", None),
        )
    except Exception:
        # Insights are optional enrichment; the report still goes out without them.
        logger.exception("Error generating insights (tenant=%s)", tenant_id or "-")
        return {"insights": []}

from __future__ import annotations

import logging
import os
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

ANALYTICS_SORT_KEY = "analytics"
SOCIAL_PREFIX = "SOCIAL#"
ANALYTICS_INDEX = "GSI1"
KEY_SEPARATOR = "#"
# JSON Schema pattern for ids embedded in a key.
KEY_PART_PATTERN = f"^[^{KEY_SEPARATOR}]+$"

_dynamodb = None


def _resource():
    global _dynamodb
    if _dynamodb is None:
        _dynamodb = boto3.resource("dynamodb")
    return _dynamodb


class StoreError(RuntimeError):
    """Raised when a DynamoDB call fails. The message never includes item contents."""


class InvalidKeyError(ValueError):
    """Raised when a tenant or issue id would not map to exactly one key."""


def is_key_part(value: str | None) -> bool:
    return bool(value) and KEY_SEPARATOR not in str(value)


def _key_part(value: str, label: str) -> str:
    if not is_key_part(value):
        raise InvalidKeyError(f"{label} must be non-empty and must not contain {KEY_SEPARATOR!r}")
    return str(value)


def partition_key(tenant_id: str, issue_id: str) -> str:
    return f"{_key_part(tenant_id, 'tenant_id')}{KEY_SEPARATOR}{_key_part(issue_id, 'issue_id')}"


def analytics_index_key(tenant_id: str) -> str:
    return f"{_key_part(tenant_id, 'tenant_id')}{KEY_SEPARATOR}analytics"


def social_sort_key(platform: str) -> str:
    return f"{SOCIAL_PREFIX}{platform.strip().lower()}"


def _now_iso() -> str:
    """UTC ISO8601 with trailing Z."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _sanitize_for_dynamodb(obj: Any) -> Any:
    """Sanitize values for DynamoDB storage.

    Converts floats to Decimals and handles nested structures.
    """
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, dict):
        return {k: _sanitize_for_dynamodb(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_sanitize_for_dynamodb(v) for v in obj]
    return obj


def _from_dynamodb(obj: Any) -> Any:
    """Inverse of _sanitize_for_dynamodb so items can be JSON encoded."""
    if isinstance(obj, Decimal):
        return int(obj) if obj == obj.to_integral_value() else float(obj)
    if isinstance(obj, dict):
        return {k: _from_dynamodb(v) for k, v in obj.items()}
    if isinstance(obj, (list, set)):
        return [_from_dynamodb(v) for v in obj]
    return obj


class ArtifactStore:
    """Newsletter artifacts in the single DynamoDB table.

    Key Schema:
    - Social posts: pk={tenant_id}#{issue_id}, sk=SOCIAL#{platform}, ttl=epoch seconds
    - Analytics: pk={tenant_id}#{issue_id}, sk=analytics

    GSI1 (analytics history per tenant):
    - GSI1PK={tenant_id}#analytics, GSI1SK={delivered date}

    Writes are keyed puts/updates, so repeating one with the same key overwrites.
    """

    def __init__(self, table_name: str | None = None, table: Any = None):
        self.table_name = table_name or os.environ.get("TABLE_NAME")
        self._table = table

    @property
    def table(self):
        if self._table is None:
            if not self.table_name:
                raise StoreError("TABLE_NAME not set")
            self._table = _resource().Table(self.table_name)
        return self._table

    def _fail(self, op: str, params: dict[str, Any], e: Exception) -> StoreError:
        code = ""
        if isinstance(e, ClientError):
            code = e.response.get("Error", {}).get("Code", "")
        logger.error("DynamoDB %s failed on %s (%s): %s params=%s", op, self.table_name, code or "-", e, params)
        return StoreError(f"{op} failed: {code or type(e).__name__}")

    def put_social_post(
        self,
        tenant_id: str,
        issue_id: str,
        platform: str,
        copy: str,
        *,
        ttl_seconds: int,
        now: float | None = None,
    ) -> dict[str, Any]:
        """Store (or overwrite) the social post draft for an issue and platform."""
        ts = int(now if now is not None else time.time())
        item = {
            "pk": partition_key(tenant_id, issue_id),
            "sk": social_sort_key(platform),
            "platform": platform,
            "copy": copy,
            "ttl": ts + int(ttl_seconds),
            "createdAt": _now_iso(),
        }
        try:
            self.table.put_item(Item=item)
        except (ClientError, BotoCoreError) as e:
            raise self._fail("put_item", {"pk": item["pk"], "sk": item["sk"], "platform": platform}, e) from e
        return {"pk": item["pk"], "sk": item["sk"], "ttl": item["ttl"]}

    def set_insights(self, tenant_id: str, issue_id: str, insights: list[str]) -> dict[str, Any]:
        """Attach insights to the existing analytics record for an issue.

        The update is conditional: `updated` is False when no analytics record exists.
        """
        params: dict[str, Any] = {
            "Key": {"pk": partition_key(tenant_id, issue_id), "sk": ANALYTICS_SORT_KEY},
            "UpdateExpression": "SET #insights = :insights",
            "ConditionExpression": "attribute_exists(pk)",
            "ExpressionAttributeNames": {"#insights": "insights"},
            "ExpressionAttributeValues": {":insights": list(insights)},
        }
        try:
            self.table.update_item(**params)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                logger.warning("No analytics record to update for %s", params["Key"]["pk"])
                return {"updated": False, **params["Key"]}
            raise self._fail("update_item", {k: v for k, v in params.items() if k != "ExpressionAttributeValues"}, e) from e
        except BotoCoreError as e:
            raise self._fail("update_item", {k: v for k, v in params.items() if k != "ExpressionAttributeValues"}, e) from e
        return {"updated": True, **params["Key"]}

    def _get(self, pk: str, sk: str) -> dict[str, Any] | None:
        try:
            resp = self.table.get_item(Key={"pk": pk, "sk": sk}, ConsistentRead=True)
        except (ClientError, BotoCoreError) as e:
            raise self._fail("get_item", {"pk": pk, "sk": sk}, e) from e
        item = resp.get("Item")
        return _from_dynamodb(item) if item else None

    def get_social_post(self, tenant_id: str, issue_id: str, platform: str = "linkedin") -> dict[str, Any] | None:
        return self._get(partition_key(tenant_id, issue_id), social_sort_key(platform))

    def get_analytics(self, tenant_id: str, issue_id: str) -> dict[str, Any] | None:
        return self._get(partition_key(tenant_id, issue_id), ANALYTICS_SORT_KEY)

    def recent_analytics(self, tenant_id: str, limit: int = 4) -> list[dict[str, Any]]:
        """Newest analytics records for a tenant via GSI1."""
        gsi_pk = analytics_index_key(tenant_id)
        try:
            resp = self.table.query(
                IndexName=ANALYTICS_INDEX,
                KeyConditionExpression=Key("GSI1PK").eq(gsi_pk),
                ScanIndexForward=False,
                Limit=int(limit),
            )
        except (ClientError, BotoCoreError) as e:
            raise self._fail("query", {"IndexName": ANALYTICS_INDEX, "GSI1PK": gsi_pk, "Limit": limit}, e) from e
        return [_from_dynamodb(item) for item in resp.get("Items") or []]

    def put_analytics(self, tenant_id: str, issue_id: str, data: dict[str, Any], *, delivered_date: str) -> None:
        """Write an analytics record. Used by tooling and tests to seed history."""
        item = {
            **_sanitize_for_dynamodb(data),
            "pk": partition_key(tenant_id, issue_id),
            "sk": ANALYTICS_SORT_KEY,
            "GSI1PK": analytics_index_key(tenant_id),
            "GSI1SK": delivered_date,
        }
        try:
            self.table.put_item(Item=item)
        except (ClientError, BotoCoreError) as e:
            raise self._fail("put_item", {"pk": item["pk"], "sk": item["sk"]}, e) from e

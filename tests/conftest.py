from __future__ import annotations

import copy
import os
import sys
from pathlib import Path
from typing import Any

import pytest
from botocore.exceptions import ClientError

# Make the Lambda layers importable without installing the package.
repo_root = Path(__file__).resolve().parents[1]
for layer in (repo_root / "layers" / "shared" / "python", repo_root / "layers" / "config" / "python"):
    if str(layer) not in sys.path:
        sys.path.insert(0, str(layer))

os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("TABLE_NAME", "newsletter-test")
os.environ.setdefault("MODEL_ID", "test-model")

from newsletter_ai.bedrock import ModelReply, ToolCall  # noqa: E402


class FakeTable:
    """In-memory stand-in for a boto3 DynamoDB Table keyed by (pk, sk)."""

    def __init__(self) -> None:
        self.items: dict[tuple[str, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.fail_with: str | None = None

    def _maybe_fail(self, op: str) -> None:
        if self.fail_with:
            raise ClientError({"Error": {"Code": self.fail_with, "Message": "boom"}}, op)

    def put_item(self, **kwargs):
        self.calls.append(("put_item", kwargs))
        self._maybe_fail("PutItem")
        item = copy.deepcopy(kwargs["Item"])
        self.items[(item["pk"], item["sk"])] = item
        return {}

    def get_item(self, **kwargs):
        self.calls.append(("get_item", kwargs))
        self._maybe_fail("GetItem")
        key = kwargs["Key"]
        item = self.items.get((key["pk"], key["sk"]))
        return {"Item": copy.deepcopy(item)} if item else {}

    def update_item(self, **kwargs):
        self.calls.append(("update_item", kwargs))
        self._maybe_fail("UpdateItem")
        key = kwargs["Key"]
        item = self.items.get((key["pk"], key["sk"]))
        if item is None:
            if kwargs.get("ConditionExpression"):
                raise ClientError(
                    {"Error": {"Code": "ConditionalCheckFailedException", "Message": "condition failed"}},
                    "UpdateItem",
                )
            item = {"pk": key["pk"], "sk": key["sk"]}
            self.items[(key["pk"], key["sk"])] = item
        names = kwargs.get("ExpressionAttributeNames") or {}
        values = kwargs.get("ExpressionAttributeValues") or {}
        # Only "SET #a = :a[, #b = :b]" is supported.
        assignments = kwargs["UpdateExpression"].removeprefix("SET ").split(",")
        for assignment in assignments:
            left, right = (p.strip() for p in assignment.split("="))
            item[names.get(left, left)] = copy.deepcopy(values[right])
        return {}

    def query(self, **kwargs):
        self.calls.append(("query", kwargs))
        self._maybe_fail("Query")
        expr = kwargs["KeyConditionExpression"].get_expression()
        attr, value = expr["values"][0].name, expr["values"][1]
        matches = [copy.deepcopy(i) for i in self.items.values() if i.get(attr) == value]
        matches.sort(key=lambda i: str(i.get("GSI1SK", "")), reverse=not kwargs.get("ScanIndexForward", True))
        return {"Items": matches[: kwargs.get("Limit", len(matches))]}

    def writes(self) -> list[tuple[str, dict[str, Any]]]:
        return [c for c in self.calls if c[0] in ("put_item", "update_item")]


class FakeModelClient:
    """ModelClient that replays a canned reply and records requests."""

    def __init__(self, reply: ModelReply | None = None, error: Exception | None = None) -> None:
        self.reply = reply or ModelReply(text="")
        self.error = error
        self.calls: list[dict[str, Any]] = []

    @classmethod
    def calling(cls, name: str, arguments: Any) -> "FakeModelClient":
        return cls(ModelReply(tool_calls=[ToolCall(name=name, arguments=arguments, tool_use_id="tu-1")]))

    def invoke(self, model_id, system_prompt, user_prompt, signatures):
        self.calls.append(
            {
                "model_id": model_id,
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "signatures": list(signatures),
            }
        )
        if self.error is not None:
            raise self.error
        return self.reply


LINKEDIN_COPY = (
    "Most engineers treat document formats and edge performance as implementation details. "
    "They quietly shape latency and cost."
)


@pytest.fixture
def fake_table() -> FakeTable:
    return FakeTable()


@pytest.fixture
def store(fake_table):
    from newsletter_ai.store import ArtifactStore

    return ArtifactStore(table_name="newsletter-test", table=fake_table)


@pytest.fixture
def linkedin_copy() -> str:
    assert 100 <= len(LINKEDIN_COPY) <= 1500
    return LINKEDIN_COPY

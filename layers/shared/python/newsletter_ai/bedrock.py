from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from newsletter_ai.tools.registry import ToolSignature

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 10000

_THINKING_RE = re.compile(r"<thinking>[\s\S]*?</thinking>\s*")


class ModelInvocationError(RuntimeError):
    """The model endpoint could not be called (throttling, timeout, access)."""


class ModelResponseError(RuntimeError):
    """The model endpoint answered with something we cannot interpret."""


@dataclass(frozen=True)
class ToolCall:
    name: str
    arguments: Any
    tool_use_id: str | None = None


@dataclass
class ModelReply:
    tool_calls: list[ToolCall] = field(default_factory=list)
    text: str = ""
    stop_reason: str | None = None


class ModelClient(Protocol):
    def invoke(
        self,
        model_id: str,
        system_prompt: str,
        user_prompt: str,
        signatures: Sequence[ToolSignature],
    ) -> ModelReply: ...


def sanitize_response(text: str) -> str:
    """Drop <thinking> blocks some models emit before their answer."""
    return _THINKING_RE.sub("", text or "").strip()


def build_tool_config(signatures: Sequence[ToolSignature]) -> dict[str, Any] | None:
    if not signatures:
        return None
    return {
        "tools": [
            {
                "toolSpec": {
                    "name": s.name,
                    "description": s.description,
                    "inputSchema": {"json": s.schema},
                }
            }
            for s in signatures
        ]
    }


def parse_reply(resp: dict[str, Any]) -> ModelReply:
    """Turn a Bedrock Converse response into tool calls and text."""
    try:
        content = resp["output"]["message"]["content"]
    except (KeyError, TypeError) as e:
        raise ModelResponseError(f"Converse response has no output message: {e}") from e
    if not isinstance(content, list):
        raise ModelResponseError("Converse message content is not a list")

    calls: list[ToolCall] = []
    texts: list[str] = []
    for block in content:
        if not isinstance(block, dict):
            continue
        tool_use = block.get("toolUse")
        if isinstance(tool_use, dict):
            name = tool_use.get("name")
            if not isinstance(name, str) or not name:
                raise ModelResponseError("toolUse block without a name")
            calls.append(ToolCall(name=name, arguments=tool_use.get("input"), tool_use_id=tool_use.get("toolUseId")))
        elif "text" in block:
            texts.append(str(block["text"]))

    return ModelReply(tool_calls=calls, text=sanitize_response("".join(texts)), stop_reason=resp.get("stopReason"))


class BedrockModelClient:
    """Wrapper for AWS Bedrock Runtime.

    Uses Bedrock's `converse` API (uniform tool-use across models). One request,
    one reply: no tool results are sent back and nothing is retried here.
    """

    def __init__(self, region: str | None = None, *, max_tokens: int = DEFAULT_MAX_TOKENS, client: Any = None):
        self.region = region
        self.max_tokens = int(max_tokens)
        if client is not None:
            self.bedrock = client
        elif region:
            self.bedrock = boto3.client("bedrock-runtime", region_name=region)
        else:
            self.bedrock = boto3.client("bedrock-runtime")

    @classmethod
    def from_env(cls) -> "BedrockModelClient":
        region = (os.environ.get("AWS_REGION") or os.environ.get("REGION") or "").strip() or None
        max_tokens = int(os.environ.get("MAX_TOKENS") or DEFAULT_MAX_TOKENS)
        return cls(region=region, max_tokens=max_tokens)

    def invoke(
        self,
        model_id: str,
        system_prompt: str,
        user_prompt: str,
        signatures: Sequence[ToolSignature],
    ) -> ModelReply:
        """Call Bedrock Converse and return the parsed reply."""
        if not model_id:
            raise ModelInvocationError("MODEL_ID must be set (empty model_id).")

        request: dict[str, Any] = {
            "modelId": model_id,
            "system": [{"text": system_prompt}],
            "messages": [{"role": "user", "content": [{"text": user_prompt}]}],
            "inferenceConfig": {"maxTokens": self.max_tokens},
        }
        tool_config = build_tool_config(signatures)
        if tool_config:
            request["toolConfig"] = tool_config

        try:
            resp = self.bedrock.converse(**request)
        except (ClientError, BotoCoreError) as e:
            logger.warning("Bedrock.converse failed (model=%s): %s", model_id, e)
            raise ModelInvocationError(str(e)) from e

        return parse_reply(resp)

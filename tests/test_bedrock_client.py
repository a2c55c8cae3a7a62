"""Tests for the Bedrock Converse client wrapper."""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from newsletter_ai.bedrock import (
    BedrockModelClient,
    ModelInvocationError,
    ModelResponseError,
    build_tool_config,
    parse_reply,
    sanitize_response,
)
from newsletter_ai.tools.registry import ToolSignature

SIG = ToolSignature(name="createInsights", description="Saves insights", schema={"type": "object"})


def _response(*blocks, stop_reason="tool_use"):
    return {"output": {"message": {"role": "assistant", "content": list(blocks)}}, "stopReason": stop_reason}


class TestSanitizeResponse:
    def test_removes_thinking_tags(self):
        assert sanitize_response("<thinking>This is internal reasoning</thinking>Final response") == "Final response"

    def test_removes_multiple_blocks(self):
        text = "<thinking>First thought</thinking>Some text<thinking>Second thought</thinking>More text"
        assert sanitize_response(text) == "Some textMore text"

    def test_plain_text_untouched(self):
        assert sanitize_response("  Just a normal response ") == "Just a normal response"


class TestParseReply:
    def test_tool_use_block(self):
        reply = parse_reply(
            _response(
                {"text": "<thinking>pick tool</thinking>"},
                {"toolUse": {"toolUseId": "tu-9", "name": "createInsights", "input": {"issueId": "1"}}},
            )
        )
        assert len(reply.tool_calls) == 1
        call = reply.tool_calls[0]
        assert (call.name, call.arguments, call.tool_use_id) == ("createInsights", {"issueId": "1"}, "tu-9")
        assert reply.text == ""
        assert reply.stop_reason == "tool_use"

    def test_text_only(self):
        reply = parse_reply(_response({"text": "Hello "}, {"text": "there"}, stop_reason="end_turn"))
        assert reply.tool_calls == []
        assert reply.text == "Hello there"

    @pytest.mark.parametrize("resp", [{}, {"output": {}}, {"output": {"message": {"content": "x"}}}, None])
    def test_malformed_response(self, resp):
        with pytest.raises(ModelResponseError):
            parse_reply(resp)

    def test_tool_use_without_name(self):
        with pytest.raises(ModelResponseError):
            parse_reply(_response({"toolUse": {"toolUseId": "x", "input": {}}}))


class TestBuildToolConfig:
    def test_empty(self):
        assert build_tool_config([]) is None

    def test_tool_spec_shape(self):
        cfg = build_tool_config([SIG])
        assert cfg == {
            "tools": [
                {
                    "toolSpec": {
                        "name": "createInsights",
                        "description": "Saves insights",
                        "inputSchema": {"json": {"type": "object"}},
                    }
                }
            ]
        }


class TestBedrockModelClient:
    def test_invoke_sends_converse_request(self):
        runtime = MagicMock()
        runtime.converse.return_value = _response({"toolUse": {"toolUseId": "1", "name": "createInsights", "input": {}}})
        client = BedrockModelClient(max_tokens=512, client=runtime)

        reply = client.invoke("model-x", "system text", "user text", [SIG])

        kwargs = runtime.converse.call_args.kwargs
        assert kwargs["modelId"] == "model-x"
        assert kwargs["system"] == [{"text": "system text"}]
        assert kwargs["messages"] == [{"role": "user", "content": [{"text": "user text"}]}]
        assert kwargs["inferenceConfig"] == {"maxTokens": 512}
        assert kwargs["toolConfig"]["tools"][0]["toolSpec"]["name"] == "createInsights"
        assert reply.tool_calls[0].name == "createInsights"
        runtime.converse.assert_called_once()

    def test_no_tool_config_without_tools(self):
        runtime = MagicMock()
        runtime.converse.return_value = _response({"text": "hi"})

        BedrockModelClient(client=runtime).invoke("m", "s", "u", [])

        assert "toolConfig" not in runtime.converse.call_args.kwargs

    def test_client_error_is_wrapped(self):
        runtime = MagicMock()
        runtime.converse.side_effect = ClientError({"Error": {"Code": "ThrottlingException"}}, "Converse")

        with pytest.raises(ModelInvocationError):
            BedrockModelClient(client=runtime).invoke("m", "s", "u", [SIG])
        runtime.converse.assert_called_once()

    def test_empty_model_id(self):
        with pytest.raises(ModelInvocationError):
            BedrockModelClient(client=MagicMock()).invoke("", "s", "u", [])

    @patch("newsletter_ai.bedrock.boto3.client")
    def test_from_env(self, mock_client, monkeypatch):
        monkeypatch.setenv("AWS_REGION", "eu-west-1")
        monkeypatch.setenv("MAX_TOKENS", "2048")

        client = BedrockModelClient.from_env()

        mock_client.assert_called_once_with("bedrock-runtime", region_name="eu-west-1")
        assert client.max_tokens == 2048

"""Tests for tool registry and dispatch."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from newsletter_ai.schema import FailureKind, TenantContext, ToolResult
from newsletter_ai.tools.registry import DuplicateToolError, PreparedCall, ToolRegistry, ToolSpec

NOTE_SCHEMA = {
    "type": "object",
    "properties": {
        "issueId": {"type": "string", "minLength": 1},
        "note": {"type": "string", "maxLength": 20},
    },
    "required": ["issueId"],
}


def _tool(name: str = "recordNote", handler=None, **kwargs) -> ToolSpec:
    return ToolSpec(
        name=name,
        description="Record a note",
        schema=kwargs.pop("schema", NOTE_SCHEMA),
        handler=handler or MagicMock(return_value=ToolResult(ok=True, data={"saved": True})),
        **kwargs,
    )


TENANT = TenantContext(tenant_id="t1", trace_id="trace-1")


class TestToolSpec:
    """Tests for the ToolSpec descriptor."""

    def test_signature_excludes_handler(self):
        sig = _tool().signature()
        assert sig.to_dict().keys() == {"name", "description", "schema"}
        assert sig.schema["additionalProperties"] is False

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            _tool(name=" ")

    def test_is_immutable(self):
        tool = _tool()
        with pytest.raises(AttributeError):
            tool.name = "other"  # type: ignore[misc]

    def test_decode_without_args_type_returns_dict(self):
        assert _tool().decode({"issueId": "1"}) == {"issueId": "1"}


class TestToolRegistry:
    """Tests for the ToolRegistry class."""

    def test_register_and_get_tool(self):
        """Tools can be registered and retrieved."""
        registry = ToolRegistry([_tool()])

        tool = registry.get("recordNote")
        assert tool is not None
        assert tool.name == "recordNote"
        assert "recordNote" in registry
        assert len(registry) == 1

    def test_list_tools(self):
        """list_tools returns all registered tool names."""
        registry = ToolRegistry([_tool("tool_a"), _tool("tool_b")])

        assert registry.list_tools() == ["tool_a", "tool_b"]
        assert [s.name for s in registry.signatures()] == ["tool_a", "tool_b"]

    def test_duplicate_names_rejected_at_construction(self):
        with pytest.raises(DuplicateToolError):
            ToolRegistry([_tool("same"), _tool("same")])

    def test_duplicate_register_rejected(self):
        registry = ToolRegistry([_tool("same")])
        with pytest.raises(DuplicateToolError):
            registry.register(_tool("same"))
        assert len(registry) == 1

    def test_registries_do_not_share_tools(self):
        a = ToolRegistry([_tool("only_in_a")])
        b = ToolRegistry()
        assert "only_in_a" in a
        assert "only_in_a" not in b


class TestDispatch:
    """Tests for ToolRegistry.dispatch."""

    def test_unknown_tool_returns_error(self):
        handler = MagicMock()
        registry = ToolRegistry([_tool(handler=handler)])

        result = registry.dispatch("deleteEverything", {}, TENANT)

        assert result.ok is False
        assert result.failure == FailureKind.UNKNOWN_TOOL
        assert "unknown_tool" in result.error
        handler.assert_not_called()

    @pytest.mark.parametrize("tenant_id", [None, "", "   "])
    def test_multi_tenant_tool_requires_tenant(self, tenant_id):
        handler = MagicMock()
        registry = ToolRegistry([_tool(handler=handler)])

        result = registry.dispatch("recordNote", {"issueId": "1"}, TenantContext(tenant_id=tenant_id))

        assert result.ok is False
        assert result.failure == FailureKind.MISSING_TENANT_SCOPE
        handler.assert_not_called()

    def test_single_tenant_tool_runs_without_tenant(self):
        handler = MagicMock(return_value=ToolResult(ok=True))
        registry = ToolRegistry([_tool(handler=handler, is_multi_tenant=False)])

        ctx = TenantContext(tenant_id=None)
        result = registry.dispatch("recordNote", {"issueId": "1"}, ctx)

        assert result.ok is True
        handler.assert_called_once_with(ctx, {"issueId": "1"})

    @pytest.mark.parametrize(
        "args",
        [
            {},
            {"issueId": 5},
            {"issueId": ""},
            {"issueId": "1", "note": "x" * 21},
            {"issueId": "1", "extra": True},
            "not json",
        ],
    )
    def test_invalid_arguments_never_reach_handler(self, args):
        handler = MagicMock()
        registry = ToolRegistry([_tool(handler=handler)])

        result = registry.dispatch("recordNote", args, TENANT)

        assert result.ok is False
        assert result.failure == FailureKind.INVALID_ARGUMENTS
        assert result.violations
        handler.assert_not_called()

    def test_valid_dispatch_calls_handler_once_and_returns_result_unchanged(self):
        expected = ToolResult(ok=True, data={"result": "success"})
        handler = MagicMock(return_value=expected)
        registry = ToolRegistry([_tool(handler=handler)])

        result = registry.dispatch("recordNote", {"issueId": "1", "note": "hi"}, TENANT)

        assert result is expected
        handler.assert_called_once_with(TENANT, {"issueId": "1", "note": "hi"})

    def test_handler_receives_typed_arguments(self):
        class NoteArgs:
            def __init__(self, issue_id, note):
                self.issue_id = issue_id
                self.note = note

            @classmethod
            def from_dict(cls, data):
                return cls(data["issueId"], data.get("note"))

        seen = []

        def handler(ctx, args):
            seen.append(args)
            return ToolResult(ok=True)

        registry = ToolRegistry([_tool(handler=handler, args_type=NoteArgs)])
        registry.dispatch("recordNote", {"issueId": "9"}, TENANT)

        assert isinstance(seen[0], NoteArgs)
        assert seen[0].issue_id == "9"
        assert seen[0].note is None

    def test_decode_error_is_invalid_arguments(self):
        class Broken:
            @classmethod
            def from_dict(cls, data):
                raise ValueError("nope")

        handler = MagicMock()
        registry = ToolRegistry([_tool(handler=handler, args_type=Broken)])

        result = registry.dispatch("recordNote", {"issueId": "9"}, TENANT)

        assert result.failure == FailureKind.INVALID_ARGUMENTS
        assert result.violations[0].code == "decode_failed"
        handler.assert_not_called()

    def test_handler_exception_becomes_handler_failure(self):
        handler = MagicMock(side_effect=RuntimeError("db down"))
        registry = ToolRegistry([_tool(handler=handler)])

        result = registry.dispatch("recordNote", {"issueId": "1"}, TENANT)

        assert result.ok is False
        assert result.failure == FailureKind.HANDLER_FAILURE
        assert "db down" in result.error
        handler.assert_called_once()

    def test_handler_reported_failure_is_tagged(self):
        handler = MagicMock(return_value=ToolResult(ok=False, error="save_failed"))
        registry = ToolRegistry([_tool(handler=handler)])

        result = registry.dispatch("recordNote", {"issueId": "1"}, TENANT)

        assert result.failure == FailureKind.HANDLER_FAILURE
        assert result.error == "save_failed"

    def test_non_result_return_is_handler_failure(self):
        handler = MagicMock(return_value={"ok": True})
        registry = ToolRegistry([_tool(handler=handler)])

        result = registry.dispatch("recordNote", {"issueId": "1"}, TENANT)

        assert result.failure == FailureKind.HANDLER_FAILURE
        assert result.error == "invalid_handler_result"


class TestPrepareExecute:
    """Validation and execution as separate steps."""

    def test_prepare_does_not_run_handler(self):
        handler = MagicMock(return_value=ToolResult(ok=True))
        registry = ToolRegistry([_tool(handler=handler)])

        call = registry.prepare("recordNote", {"issueId": "198", "note": "hi"}, TENANT)

        assert isinstance(call, PreparedCall)
        assert call.tool.name == "recordNote"
        assert call.args == {"issueId": "198", "note": "hi"}
        handler.assert_not_called()

    def test_prepare_failure_is_a_result(self):
        registry = ToolRegistry([_tool()])

        call = registry.prepare("recordNote", {"note": "hi"}, TENANT)

        assert isinstance(call, ToolResult)
        assert call.failure == FailureKind.INVALID_ARGUMENTS

    def test_execute_runs_prepared_call(self):
        handler = MagicMock(side_effect=RuntimeError("disk full"))
        registry = ToolRegistry([_tool(handler=handler)])
        call = registry.prepare("recordNote", {"issueId": "198"}, TENANT)

        result = registry.execute(call, TENANT)

        handler.assert_called_once_with(TENANT, {"issueId": "198"})
        assert result.failure == FailureKind.HANDLER_FAILURE
        assert result.error == "execution_error: disk full"


class TestToolResult:
    """Tests for the ToolResult class."""

    def test_to_dict_success(self):
        """to_dict returns correct format for success."""
        d = ToolResult(ok=True, data={"key": "value"}).to_dict()

        assert d["success"] is True
        assert d["data"] == {"key": "value"}
        assert "error" not in d

    def test_to_dict_error(self):
        """to_dict returns correct format for error."""
        d = ToolResult.fail(FailureKind.UNKNOWN_TOOL, "unknown_tool: x").to_dict()

        assert d["success"] is False
        assert d["error"] == "unknown_tool: x"
        assert d["failure"] == "UnknownTool"
        assert "data" not in d

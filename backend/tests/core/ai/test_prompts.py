"""Tests for system prompt builders and file context."""

from datetime import datetime
from types import SimpleNamespace

import pytest

from app.core.ai.file_context import build_file_context_prompt, truncate_file_context
from app.core.ai.prompts import (
    TOOL_CALL_UNSUPPORTED_MODEL_SYSTEM_PROMPT,
    build_mcp_server_customizations_system_prompt,
    build_user_system_prompt,
    merge_system_prompt,
)


@pytest.mark.unit
class TestUserSystemPrompt:
    """Test cases for build_user_system_prompt."""

    def test_without_user(self):
        prompt = build_user_system_prompt(None)

        assert "<user_information>" not in prompt
        assert "<general_capabilities>" in prompt

    def test_user_and_preferences(self):
        user = SimpleNamespace(name="Ada", email="ada@example.com")
        prompt = build_user_system_prompt(
            user, {"display_name": "Countess", "profession": "Mathematician", "response_style": "Terse."}
        )

        assert "- System Name: Ada" in prompt
        assert "- System Email: ada@example.com" in prompt
        assert "- Preferred Name: Countess" in prompt
        assert "- Profession: Mathematician" in prompt
        assert "<response_style>\nTerse.\n</response_style>" in prompt
        assert "<general_capabilities>" not in prompt


@pytest.mark.unit
class TestMcpCustomizationsPrompt:
    """Test cases for MCP customization prompts."""

    def test_empty(self):
        assert build_mcp_server_customizations_system_prompt(None) is None
        assert build_mcp_server_customizations_system_prompt({}) is None
        assert build_mcp_server_customizations_system_prompt({"s": {"prompt": None, "tools": {}}}) is None

    def test_server_and_tool_instructions(self):
        prompt = build_mcp_server_customizations_system_prompt(
            {"github": {"prompt": "Use the main repo.", "tools": {"create_issue": "Label as bug."}}}
        )

        assert '<mcp_server name="github">' in prompt
        assert "<server_instructions>Use the main repo.</server_instructions>" in prompt
        assert '<tool_instructions name="create_issue">Label as bug.</tool_instructions>' in prompt


@pytest.mark.unit
class TestMergeSystemPrompt:
    """Test cases for merge_system_prompt."""

    def test_skips_empty_sections(self):
        merged = merge_system_prompt("base", None, "", "  ", TOOL_CALL_UNSUPPORTED_MODEL_SYSTEM_PROMPT)

        assert merged.startswith("base\n\n### Tool Call Limitation")

    def test_keeps_order(self):
        assert merge_system_prompt("a", "b", "c") == "a\n\nb\n\nc"


@pytest.mark.unit
class TestFileContext:
    """Test cases for project file context."""

    def test_no_files(self):
        assert build_file_context_prompt([]) is None
        assert build_file_context_prompt(None) is None

    def test_files_rendered_escaped(self):
        file = SimpleNamespace(
            name="notes & todo.md",
            content="<b>bold</b>",
            size=11,
            updated_at=datetime(2025, 1, 2, 3, 4, 5),
        )
        context = build_file_context_prompt([file])

        assert context.startswith("<project_files>")
        assert 'name="notes &amp; todo.md"' in context
        assert 'updated="2025-01-02T03:04:05"' in context
        assert 'size="11"' in context
        assert "<content>&lt;b&gt;bold&lt;/b&gt;</content>" in context

    def test_truncation(self):
        context = "x" * 50

        assert truncate_file_context(context, 100) == context

        truncated = truncate_file_context(context, 10)
        assert truncated.startswith("x" * 10 + "\n\n")
        assert "Showing first 10 characters" in truncated

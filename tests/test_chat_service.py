"""
Unit Tests for Chat Service

Tests the chat coordinator and conversation flow on top of a real kernel with
scripted tools.
"""

import pytest
from unittest.mock import MagicMock, patch

from core import ExecutorConfig, Kernel
from services.chat_service import ChatService, build_kernel, process_user_message
from tools.base import ToolRegistry

from tests.fakes import ScriptedTool, fail, ok


def make_service(*results):
    fs = ScriptedTool("fs", list(results) or None)
    kernel = Kernel(ToolRegistry([fs]), executor_config=ExecutorConfig(max_retries=1))
    return ChatService(kernel=kernel), fs


class TestChatService:
    """Test ChatService class."""

    @pytest.mark.asyncio
    async def test_process_message_success(self):
        service, fs = make_service(ok(["a.md", "src/"]))

        response = await service.process_message("list ./", session_id="test_session_123")

        assert response.success is True
        assert response.message == "a.md\nsrc/"
        assert response.metadata["session_id"] == "test_session_123"
        assert response.metadata["route"] == "direct"
        assert response.suggestions == ["Read one of these files", "Search for *.py files"]
        assert fs.calls == [{"directory": "./", "operation": "list"}]

    @pytest.mark.asyncio
    async def test_progress_is_collected_and_forwarded(self):
        service, _ = make_service(ok("text"))
        forwarded = []

        async def on_progress(update):
            forwarded.append(update.type)

        response = await service.process_message("read notes.md", on_progress=on_progress)

        statuses = [p.get("status") for p in response.metadata["progress"] if p["type"] == "progress"]
        assert statuses == ["running", "complete"]
        assert forwarded == ["progress", "progress", "complete"]

    @pytest.mark.asyncio
    async def test_conversation_history_kept_per_session(self):
        service, _ = make_service(ok("one"), ok("two"))

        await service.process_message("read a.md", session_id="s1")
        await service.process_message("read b.md", session_id="s1")
        await service.process_message("hello", session_id="s2")

        assert len(service.get_context("s1").history) == 4
        assert len(service.get_context("s2").history) == 2

    @pytest.mark.asyncio
    async def test_reset_session(self):
        service, _ = make_service()
        await service.process_message("read a.md", session_id="s1")

        service.reset_session("s1")

        assert service.get_context("s1").history == []

    @pytest.mark.asyncio
    async def test_session_id_generated(self):
        service, _ = make_service()
        response = await service.process_message("read a.md")
        assert response.metadata["session_id"]

    @pytest.mark.asyncio
    async def test_empty_message(self):
        service, fs = make_service()

        response = await service.process_message("   ")

        assert response.success is False
        assert response.suggestions == ["list ./", "read README.md", "fetch https://example.com"]
        assert fs.calls == []


class TestSuggestions:
    """Test follow-up suggestions."""

    @pytest.mark.asyncio
    async def test_clarification_questions_become_suggestions(self):
        service, _ = make_service()

        response = await service.process_message("fetch?")

        assert response.success is True
        assert response.suggestions == ["Which URL should I fetch?"]

    @pytest.mark.asyncio
    async def test_error_suggestions(self):
        service, _ = make_service(fail("Permission denied"))

        response = await service.process_message("read secret.md")

        assert response.success is False
        assert "Permission denied" in response.message
        assert response.suggestions == ["List the files in the workspace", "What can you do?"]

    @pytest.mark.asyncio
    async def test_respond_route_suggestions(self):
        service, _ = make_service()
        response = await service.process_message("explain what you can do for me")
        assert response.suggestions == service._default_suggestions()


class TestWiring:

    def test_build_kernel_without_api_key(self):
        with patch("services.chat_service.GOOGLE_API_KEY", None):
            kernel = build_kernel()

        assert kernel.model_adapter is None
        assert kernel.tool_registry.names() == ["fs", "web", "process"]

    @patch("services.chat_service.build_kernel")
    def test_default_kernel(self, mock_build):
        mock_build.return_value = MagicMock(spec=Kernel)
        service = ChatService()
        assert service.kernel is mock_build.return_value

    def test_process_user_message_sync_helper(self):
        service, _ = make_service(ok("content"))

        response = process_user_message("read notes.md", session_id="cli", service=service)

        assert response.success is True
        assert response.message == "content"

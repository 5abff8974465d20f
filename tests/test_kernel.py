"""
Unit Tests for the Kernel

Drives full requests through parser, router, planner and executor with
scripted tools and a scripted model.
"""

import asyncio
import json

import pytest

from core.executor import ExecutorConfig
from core.kernel import CAPABILITIES_MESSAGE, Kernel, format_output
from core.message_bus import (
    AGENT_COMPLETED,
    AGENT_STARTED,
    ERROR_OCCURRED,
    INTENT_PARSED,
    MEMORY_UPDATED,
    TOOL_CALLED,
    TOOL_COMPLETED,
    MessageBus,
)
from core.state_store import COMPLETED, FAILED
from core.types import Context, ResponseType
from tools.base import ToolRegistry

from tests.fakes import ScriptedModel, ScriptedTool, fail, ok


READ_THEN_WRITE_PLAN = json.dumps({
    "steps": [
        {"id": 1, "action": "read", "tool": "fs", "inputs": {"path": "a.md"}},
        {"id": 2, "action": "write", "tool": "fs",
         "inputs": {"path": "b.md", "content": "${step_1.content}"}, "dependsOn": [1]},
    ],
})

COMPLEX_INTENT = json.dumps({
    "action": "read", "target": "a.md", "complexity": "complex", "confidence": 0.9,
})


def make_kernel(tool, model=None, bus=None):
    return Kernel(
        ToolRegistry([tool]),
        model_adapter=model,
        message_bus=bus,
        executor_config=ExecutorConfig(max_retries=2, base_delay_ms=1, timeout_ms=1000),
    )


class TestDirectRoute:

    @pytest.mark.asyncio
    async def test_single_tool_call(self):
        fs = ScriptedTool("fs", [ok("hello world")])
        kernel = make_kernel(fs)
        context = Context()

        response = await kernel.process("read notes.md", context)

        assert response.type == ResponseType.SUCCESS
        assert response.content == "hello world"
        assert response.metadata["route"] == "direct"
        assert response.metadata["intent"]["action"] == "read"
        assert response.execution.success is True
        assert fs.calls == [{"path": "notes.md", "operation": "read"}]

        task = kernel.state_store.get(response.metadata["task_id"])
        assert task.status == COMPLETED
        assert task.data["input"] == "read notes.md"

    @pytest.mark.asyncio
    async def test_tool_failure_becomes_error_response(self):
        kernel = make_kernel(ScriptedTool("fs", [fail("Permission denied", "FS_ACCESS_DENIED")]))

        response = await kernel.process("read secret.md")

        assert response.type == ResponseType.ERROR
        assert "Permission denied" in response.content
        assert kernel.state_store.get(response.metadata["task_id"]).status == FAILED

    @pytest.mark.asyncio
    async def test_lifecycle_events(self):
        bus = MessageBus()
        seen = []
        for event_type in (AGENT_STARTED, INTENT_PARSED, TOOL_CALLED, TOOL_COMPLETED,
                           MEMORY_UPDATED, AGENT_COMPLETED, ERROR_OCCURRED):
            bus.on(event_type, lambda event: seen.append(event.type))

        await make_kernel(ScriptedTool("fs"), bus=bus).process("read notes.md")

        assert seen == [AGENT_STARTED, INTENT_PARSED, TOOL_CALLED, TOOL_COMPLETED,
                        MEMORY_UPDATED, AGENT_COMPLETED]

    @pytest.mark.asyncio
    async def test_broken_observer_does_not_fail_request(self):
        bus = MessageBus()

        def broken(event):
            raise RuntimeError("observer crashed")

        bus.on(AGENT_STARTED, broken)

        response = await make_kernel(ScriptedTool("fs", [ok("fine")]), bus=bus).process("read notes.md")

        assert response.type == ResponseType.SUCCESS
        assert response.content == "fine"

    @pytest.mark.asyncio
    async def test_broken_tool_observer_does_not_fail_request(self):
        bus = MessageBus()

        def broken(event):
            raise RuntimeError("observer crashed")

        bus.on(TOOL_CALLED, broken)
        fs = ScriptedTool("fs", [ok("fine")])

        response = await make_kernel(fs, bus=bus).process("read notes.md")

        assert response.type == ResponseType.SUCCESS
        assert response.content == "fine"
        assert len(fs.calls) == 1


class TestClarifyAndRespond:

    @pytest.mark.asyncio
    async def test_clarification(self):
        fs = ScriptedTool("fs")
        response = await make_kernel(fs).process("read?")

        assert response.type == ResponseType.CLARIFICATION
        assert response.content == "I need a bit more information:\n- Which file or directory should I read?"
        assert response.execution is None
        assert fs.calls == []

    @pytest.mark.asyncio
    async def test_builtin_reply_without_model(self):
        response = await make_kernel(ScriptedTool("fs")).process("explain what a monad is in plain words")

        assert response.type == ResponseType.SUCCESS
        assert response.metadata["route"] == "respond"
        assert response.content == CAPABILITIES_MESSAGE

    @pytest.mark.asyncio
    async def test_model_reply(self):
        model = ScriptedModel('{"action": "hello", "confidence": 0.95}', "Hi! How can I help?")

        response = await make_kernel(ScriptedTool("fs"), model).process("hey there")

        assert response.content == "Hi! How can I help?"
        assert '"hey there"' in model.prompts[1].messages[-1].content

    @pytest.mark.asyncio
    async def test_model_reply_failure_uses_greeting(self):
        model = ScriptedModel('{"action": "hello", "confidence": 0.95}', RuntimeError("quota"))

        response = await make_kernel(ScriptedTool("fs"), model).process("hey there")

        assert response.type == ResponseType.SUCCESS
        assert response.content == f"Hello! {CAPABILITIES_MESSAGE}"


class TestPlanRoute:

    @pytest.mark.asyncio
    async def test_planned_steps_share_outputs(self):
        fs = ScriptedTool("fs", [ok({"content": "alpha"}), ok("saved")])
        model = ScriptedModel(COMPLEX_INTENT, READ_THEN_WRITE_PLAN)

        response = await make_kernel(fs, model).process("read a.md and then copy it to b.md")

        assert response.type == ResponseType.SUCCESS
        assert response.metadata["route"] == "plan"
        assert response.content.startswith("Executed 2 steps: 2 successful, 0 failed")
        assert response.content.endswith("saved")
        assert fs.calls[1] == {"path": "b.md", "content": "alpha", "operation": "write"}

    @pytest.mark.asyncio
    async def test_planning_without_model_is_an_error_response(self):
        bus = MessageBus()
        errors = []
        bus.subscribe(ERROR_OCCURRED, errors.append)
        kernel = make_kernel(ScriptedTool("fs"), bus=bus)

        response = await kernel.process("read a.md and then summarize it")

        assert response.type == ResponseType.ERROR
        assert response.content.startswith("Error: Planning requires a language model")
        assert kernel.state_store.get(response.metadata["task_id"]).status == FAILED
        assert len(errors) == 1

    @pytest.mark.asyncio
    async def test_cancel_stops_remaining_steps(self):
        fs = ScriptedTool("fs", [ok({"content": "alpha"})], delay=0.05)
        kernel = make_kernel(fs, ScriptedModel(COMPLEX_INTENT, READ_THEN_WRITE_PLAN))

        running = asyncio.create_task(kernel.process("read a.md and then copy it", task_id="t1"))
        await asyncio.sleep(0.01)

        assert kernel.cancel("t1") is True
        response = await running

        assert len(fs.calls) == 1
        assert "Cancelled before step 2" in response.execution.summary
        assert response.type == ResponseType.ERROR
        assert kernel.state_store.get("t1").status == FAILED
        assert kernel.cancel("t1") is False

    def test_cancel_unknown_task(self):
        assert make_kernel(ScriptedTool("fs")).cancel("nope") is False


class TestMemory:

    @pytest.mark.asyncio
    async def test_turns_are_recorded(self):
        kernel = make_kernel(ScriptedTool("fs", [ok("one"), ok("two")]))
        context = Context(thread_id="s1")

        await kernel.process("read a.md", context)
        await kernel.process("read b.md", context)

        assert [(m.role, m.content) for m in context.history] == [
            ("user", "read a.md"), ("assistant", "one"),
            ("user", "read b.md"), ("assistant", "two"),
        ]

    def test_planner_gets_tool_descriptions(self):
        kernel = make_kernel(ScriptedTool("fs"))
        assert kernel.planner.tool_descriptions == {"fs": "scripted fs tool"}


class TestFormatOutput:

    @pytest.mark.parametrize("output,expected", [
        (None, ""),
        ("text", "text"),
        (["a.md", "b/"], "a.md\nb/"),
        ([], "(empty)"),
        ({"stdout": "hi\n", "stderr": "", "exitCode": 0}, "hi\n"),
        ({"url": "u", "content": "<html>"}, "<html>"),
        ({"a": 1}, '{\n  "a": 1\n}'),
    ])
    def test_rendering(self, output, expected):
        assert format_output(output) == expected

    def test_truncates_long_output(self):
        text = format_output("x" * 5000)
        assert text.startswith("x" * 4000)
        assert text.endswith("(1000 more characters)")

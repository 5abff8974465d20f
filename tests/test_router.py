"""
Unit Tests for the Intent Router
"""

import pytest

from core.intent_parser import GENERIC_QUESTION
from core.router import Router, ToolKind
from core.types import (
    ClarifyRoute,
    Complexity,
    Context,
    DirectRoute,
    Intent,
    Message,
    PlanRoute,
    RespondRoute,
)
from tools.base import ToolRegistry

from tests.fakes import ScriptedTool


def make_intent(action, target=None, complexity=Complexity.SIMPLE, confidence=0.9, **kwargs):
    return Intent(action=action, target=target, complexity=complexity, confidence=confidence, **kwargs)


@pytest.fixture
def registry():
    return ToolRegistry([ScriptedTool("fs"), ScriptedTool("web"), ScriptedTool("process")])


@pytest.fixture
def router(registry):
    return Router(registry)


@pytest.fixture
def ctx():
    return Context()


class TestClarify:

    def test_needs_clarification(self, router, ctx):
        intent = make_intent("read", needs_clarification=True, clarification_questions=["Which file?"])
        assert router.route(intent, ctx) == ClarifyRoute(questions=["Which file?"])

    def test_generic_question_when_none_given(self, router, ctx):
        intent = make_intent("read", "a.md", needs_clarification=True)
        assert router.route(intent, ctx) == ClarifyRoute(questions=[GENERIC_QUESTION])


class TestRespond:

    @pytest.mark.parametrize("action", ["hello", "thanks", "explain", "define"])
    def test_conversational_actions(self, router, ctx, action):
        decision = router.route(make_intent(action, "recursion"), ctx)
        assert isinstance(decision, RespondRoute)
        assert decision.message == f"{action} recursion"

    def test_target_about_the_assistant(self, router, ctx):
        decision = router.route(make_intent("show", "your capabilities"), ctx)
        assert decision == RespondRoute(message="show your capabilities")

    def test_missing_target(self, router, ctx):
        assert router.route(make_intent("list"), ctx) == RespondRoute(message="list")


class TestDirect:

    def test_fetch_url(self, router, ctx):
        intent = make_intent("fetch", "http://x.com")
        assert router.route(intent, ctx) == DirectRoute(tool="web", operation="fetch", inputs={"url": "http://x.com"})

    @pytest.mark.parametrize("action,tool,operation,key", [
        ("read", "fs", "read", "path"),
        ("write", "fs", "write", "path"),
        ("create", "fs", "write", "path"),
        ("delete", "fs", "delete", "path"),
        ("list", "fs", "list", "directory"),
        ("search", "fs", "search", "pattern"),
        ("find", "fs", "search", "pattern"),
        ("copy", "fs", "copy", "target"),
        ("download", "web", "fetch", "url"),
        ("run", "process", "exec", "command"),
        ("execute", "process", "exec", "command"),
    ])
    def test_action_table(self, router, ctx, action, tool, operation, key):
        decision = router.route(make_intent(action, "thing.txt"), ctx)
        assert decision == DirectRoute(tool=tool, operation=operation, inputs={key: "thing.txt"})

    def test_parameters_carried_and_target_wins(self, router, ctx):
        intent = make_intent("read", "a.md", parameters={"limit": 5, "path": "ignored.md"})
        decision = router.route(intent, ctx)
        assert decision.inputs == {"limit": 5, "path": "a.md"}
        assert intent.parameters == {"limit": 5, "path": "ignored.md"}

    @pytest.mark.parametrize("target,tool,operation,key", [
        ("https://docs.python.org", "web", "fetch", "url"),
        ("report.csv", "fs", "read", "path"),
        ("src/", "fs", "list", "directory"),
        ("the build directory", "fs", "list", "directory"),
    ])
    def test_inferred_from_target(self, router, ctx, target, tool, operation, key):
        decision = router.route(make_intent("summarize", target), ctx)
        assert decision == DirectRoute(tool=tool, operation=operation, inputs={key: target})

    def test_unresolvable_goes_to_plan(self, router, ctx):
        assert isinstance(router.route(make_intent("summarize", "the meeting"), ctx), PlanRoute)

    def test_without_registry_every_kind_available(self, ctx):
        decision = Router().route(make_intent("run", "ls"), ctx)
        assert decision == DirectRoute(tool="process", operation="exec", inputs={"command": "ls"})


class TestPlan:

    def test_complex_intent(self, router, registry, ctx):
        intent = make_intent("read", "a.md", complexity=Complexity.COMPLEX, parameters={"limit": 2})
        decision = router.route(intent, ctx)

        assert isinstance(decision, PlanRoute)
        assert decision.goal == 'read a.md with parameters {"limit": 2}'
        assert decision.available_tools == registry.names()

    def test_goal_includes_last_assistant_turn(self, router):
        reply = "x" * 150
        ctx = Context(history=[
            Message(role="user", content="list ./"),
            Message(role="assistant", content=reply),
            Message(role="user", content="now summarize them"),
        ])
        decision = router.route(make_intent("summarize", "them", complexity=Complexity.COMPLEX), ctx)

        assert decision.goal == f"summarize them (context: {'x' * 100})"

    def test_direct_disabled(self, registry, ctx):
        decision = Router(registry, prefer_direct=False).route(make_intent("read", "a.md"), ctx)
        assert isinstance(decision, PlanRoute)

    def test_unregistered_tool_falls_back_to_plan(self, ctx):
        router = Router(ToolRegistry([ScriptedTool("fs")]))
        decision = router.route(make_intent("fetch", "https://x.com"), ctx)

        assert isinstance(decision, PlanRoute)
        assert decision.available_tools == ["fs"]


class TestCatalog:

    def test_has_tools(self, router):
        assert router.has_tools(["fs", "web"]) is True
        assert router.has_tools(["fs", "email"]) is False

    def test_descriptions(self, router):
        assert router.get_tool_descriptions().splitlines() == [
            "- fs: scripted fs tool",
            "- web: scripted web tool",
            "- process: scripted process tool",
        ]

    def test_tool_kind_values(self):
        assert [kind.value for kind in ToolKind] == ["fs", "web", "process"]

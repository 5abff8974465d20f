"""
Unit Tests for the Planner
"""

import json

import pytest

from ai.types import LLMOutput
from core.errors import PlanningError, PlanValidationError
from core.planner import Planner
from core.types import Context, Message, Plan, PlanStep

from tests.fakes import ScriptedModel


TWO_STEP_PLAN = {
    "steps": [
        {"id": 1, "action": "fetch", "tool": "web", "inputs": {"url": "https://x.com"},
         "dependsOn": [], "estimatedTimeMs": 800},
        {"id": 2, "action": "write", "tool": "fs",
         "inputs": {"path": "page.html", "content": "${step_1.content}"},
         "dependsOn": [1], "estimatedTimeMs": 200, "rationale": "save the page"},
    ],
    "totalEstimatedCost": 0.001,
    "parallelizable": False,
    "risks": ["page may be large"],
}


def step(step_id, tool="fs", depends_on=None, estimate=0):
    return PlanStep(id=step_id, action="read", tool=tool, depends_on=depends_on, estimated_time_ms=estimate)


class TestCreatePlan:

    @pytest.mark.asyncio
    async def test_parses_fenced_plan(self):
        model = ScriptedModel(f"Here is the plan:\n```json\n{json.dumps(TWO_STEP_PLAN)}\n```")
        planner = Planner(model)

        plan = await planner.create_plan("download x.com to page.html", ["fs", "web"])

        assert [s.id for s in plan.steps] == [1, 2]
        assert plan.steps[0].depends_on is None
        assert plan.steps[1].depends_on == [1]
        assert plan.steps[1].inputs["content"] == "${step_1.content}"
        assert plan.steps[1].rationale == "save the page"
        assert plan.total_estimated_time_ms == 1000
        assert plan.risks == ["page may be large"]

    @pytest.mark.asyncio
    async def test_prompt_lists_goal_tools_and_context(self):
        model = ScriptedModel(json.dumps(TWO_STEP_PLAN))
        planner = Planner(model, tool_descriptions={"fs": "Sandboxed files"})
        context = Context(history=[
            Message(role="user", content="hi"),
            Message(role="assistant", content="hello there"),
        ])

        await planner.create_plan("save the page", ["fs", "web"], context)

        user_prompt = model.prompts[0].messages[-1].content
        assert "**Goal:** save the page" in user_prompt
        assert "- fs: Sandboxed files" in user_prompt
        assert "- web\n" in user_prompt
        assert "assistant: hello there" in user_prompt
        assert "${step_<id>.<field>}" in user_prompt

    @pytest.mark.asyncio
    async def test_without_model(self):
        with pytest.raises(PlanningError):
            await Planner().create_plan("anything", ["fs"])

    @pytest.mark.asyncio
    async def test_model_error(self):
        planner = Planner(ScriptedModel(LLMOutput(text="quota", finish_reason="error")))
        with pytest.raises(PlanningError):
            await planner.create_plan("anything", ["fs"])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", [
        "Sorry, I cannot help with that.",
        '{"steps": "not a list"}',
        '{"steps": [{"action": "read", "tool": "fs"}]}',
    ])
    async def test_unparseable_reply(self, reply):
        with pytest.raises(PlanningError):
            await Planner(ScriptedModel(reply)).create_plan("anything", ["fs"])

    @pytest.mark.asyncio
    async def test_plan_using_unavailable_tool(self):
        planner = Planner(ScriptedModel(json.dumps(TWO_STEP_PLAN)))
        with pytest.raises(PlanValidationError, match="unavailable tool 'web'"):
            await planner.create_plan("download", ["fs"])


class TestValidatePlan:

    def test_valid(self):
        plan = Plan(steps=[step(1), step(2, depends_on=[1])])
        Planner().validate_plan(plan, ["fs"])

    def test_collects_every_problem(self):
        plan = Plan(steps=[
            step(1, depends_on=[1]),
            step(1, tool="email"),
            step(3, depends_on=[9], estimate=-5),
        ])

        with pytest.raises(PlanValidationError) as exc_info:
            Planner().validate_plan(plan, ["fs"])

        problems = exc_info.value.problems
        assert "duplicate step ids: [1]" in problems
        assert "step 1 depends on itself" in problems
        assert "step 1 uses unavailable tool 'email'" in problems
        assert "step 3 depends on unknown step 9" in problems
        assert "step 3 has a negative time estimate" in problems
        assert str(exc_info.value).startswith("Invalid plan: ")

    def test_empty_plan(self):
        with pytest.raises(PlanValidationError, match="no steps"):
            Planner().validate_plan(Plan(), ["fs"])

    def test_too_many_steps(self):
        plan = Plan(steps=[step(i) for i in range(1, 5)])
        with pytest.raises(PlanValidationError, match="max 3"):
            Planner(max_steps=3).validate_plan(plan, ["fs"])

"""
Planner Agent

Decomposes a goal into an executable Plan using the language model:
1. Build the planner prompt (goal, tool catalog, conversation context)
2. Ask the model for a JSON plan
3. Parse it into Plan / PlanStep
4. Validate ids, dependencies and tools before handing it to the executor
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from ai.types import GenOptions, ModelAdapter, Prompt
from config.prompts import PLANNER_PROMPT, SYSTEM_PROMPT, format_prompt

from .errors import PlanningError, PlanValidationError
from .intent_parser import extract_json_object
from .types import Context, Plan

logger = logging.getLogger(__name__)

HISTORY_TURNS = 4


class Planner:
    """
    Args:
        model_adapter: Model used to draft plans
        tool_descriptions: Optional ``name -> description`` map for the prompt
        max_steps: Plans longer than this are rejected
    """

    def __init__(
        self,
        model_adapter: Optional[ModelAdapter] = None,
        tool_descriptions: Optional[Dict[str, str]] = None,
        max_steps: int = 10,
    ):
        self.model_adapter = model_adapter
        self.tool_descriptions = tool_descriptions or {}
        self.max_steps = max_steps

    async def create_plan(
        self,
        goal: str,
        available_tools: Sequence[str],
        context: Optional[Context] = None,
    ) -> Plan:
        """
        Draft and validate a plan for ``goal``.

        Raises:
            PlanningError: No model configured, or the reply is not a plan
            PlanValidationError: The plan references unknown steps or tools
        """
        if self.model_adapter is None:
            raise PlanningError("Planning requires a language model; set GOOGLE_API_KEY to enable it")

        logger.info(f"📋 Planning: {goal[:80]}")
        prompt = self.build_prompt(goal, available_tools, context)
        output = await self.model_adapter.generate(
            Prompt.of(SYSTEM_PROMPT, prompt),
            GenOptions(temperature=0.2),
        )
        if output.finish_reason == "error":
            raise PlanningError(f"Model failed while planning: {output.text[:200]}")

        try:
            plan = Plan.from_dict(extract_json_object(output.text))
        except (ValueError, KeyError, TypeError) as e:
            raise PlanningError(f"Model did not return a valid plan: {e}") from e

        self.validate_plan(plan, available_tools)
        logger.info(f"✅ Plan ready: {len(plan.steps)} step(s), ~{plan.total_estimated_time_ms}ms")
        return plan

    def build_prompt(self, goal: str, available_tools: Sequence[str], context: Optional[Context] = None) -> str:
        tools = "\n".join(
            f"- {name}: {self.tool_descriptions[name]}" if name in self.tool_descriptions else f"- {name}"
            for name in available_tools
        ) or "- (none)"
        return format_prompt(
            PLANNER_PROMPT,
            goal=goal,
            tools=tools,
            context=_format_context(context),
        )

    def validate_plan(self, plan: Plan, available_tools: Sequence[str]) -> None:
        """
        Raises:
            PlanValidationError: Listing every problem found
        """
        problems: List[str] = []

        if not plan.steps:
            problems.append("plan has no steps")
        if len(plan.steps) > self.max_steps:
            problems.append(f"plan has {len(plan.steps)} steps (max {self.max_steps})")

        ids = [step.id for step in plan.steps]
        duplicates = sorted({step_id for step_id in ids if ids.count(step_id) > 1})
        if duplicates:
            problems.append(f"duplicate step ids: {duplicates}")

        known = set(ids)
        tools = set(available_tools)
        for step in plan.steps:
            for dep in step.depends_on or []:
                if dep not in known:
                    problems.append(f"step {step.id} depends on unknown step {dep}")
                elif dep == step.id:
                    problems.append(f"step {step.id} depends on itself")
            if step.tool not in tools:
                problems.append(f"step {step.id} uses unavailable tool '{step.tool}'")
            if step.estimated_time_ms < 0:
                problems.append(f"step {step.id} has a negative time estimate")

        if problems:
            raise PlanValidationError(problems)


def _format_context(context: Optional[Context]) -> str:
    if context is None or not context.history:
        return "(no prior conversation)"
    turns: List[Dict[str, Any]] = [
        {"role": m.role, "content": m.content[:200]} for m in context.history[-HISTORY_TURNS:]
    ]
    return "\n".join(f"{t['role']}: {t['content']}" for t in turns)

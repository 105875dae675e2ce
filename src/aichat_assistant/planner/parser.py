"""Ask the model for a plan and decode its JSON answer."""

import json
import logging
import re

from pydantic import ValidationError

from ..api_client import ChatAPIClient
from ..exceptions import PlanParseError
from .models import Plan, StepStatus

logger = logging.getLogger(__name__)

PLANNING_TEMPERATURE = 0.3

_FENCE_RE = re.compile(r"^```(?:json)?\s*\n(.*)\n```$", re.DOTALL)

_PROMPT_TEMPLATE = """\
Create a detailed plan for carrying out the following task: "{task}"

Reply STRICTLY with a single JSON object in this format:
{{
  "title": "Plan title",
  "description": "Short summary of what will be done",
  "steps": [
    {{
      "id": "step_1",
      "title": "Step title",
      "description": "Detailed description of what this step does",
      "type": "code-generation | api-request | info-request | analysis",
      "requiredInput": {{
        "type": "api-key | info | confirmation",
        "prompt": "What to ask the user",
        "placeholder": "Example answer",
        "required": true
      }}
    }}
  ]
}}

Create between 3 and 8 logical steps. Each step must be concrete and achievable.
Omit "requiredInput" for steps that need nothing from the user.
"""


def build_planning_prompt(task: str) -> str:
    return _PROMPT_TEMPLATE.format(task=task.strip())


def parse_plan(text: str) -> Plan:
    """Decode a model response into a Plan with every step pending.

    The response must be one JSON object, optionally wrapped in a single
    markdown code fence. Anything else raises PlanParseError.
    """
    body = text.strip()
    m = _FENCE_RE.match(body)
    if m:
        body = m.group(1).strip()

    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise PlanParseError(f"Plan response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise PlanParseError("Plan response must be a JSON object")

    try:
        plan = Plan.model_validate(data)
    except ValidationError as e:
        raise PlanParseError(f"Plan response has the wrong shape: {e}") from e

    for step in plan.steps:
        step.status = StepStatus.PENDING
        step.result = None
        step.code = None
    return plan


async def generate_plan(client: ChatAPIClient, task: str, model: str) -> Plan:
    """Turn a free-text task into a Plan via the text-generation API."""
    if not task.strip():
        raise ValueError("Task description must not be empty")
    response = await client.ask(build_planning_prompt(task), model=model, temperature=PLANNING_TEMPERATURE)
    plan = parse_plan(response)
    logger.info("Generated plan %r with %d steps", plan.title, len(plan.steps))
    return plan

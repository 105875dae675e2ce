"""Plan generation and sequential step execution."""

from .executor import PlanExecutor, RunState
from .models import Plan, RequiredInput, StepStatus, StepType, TaskStep
from .parser import build_planning_prompt, generate_plan, parse_plan

__all__ = [
    "Plan",
    "PlanExecutor",
    "RequiredInput",
    "RunState",
    "StepStatus",
    "StepType",
    "TaskStep",
    "build_planning_prompt",
    "generate_plan",
    "parse_plan",
]

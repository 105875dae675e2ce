"""Type-specific step actions.

Each handler takes the step and the run context and returns a StepOutcome,
or raises to fail the step. Dispatch is by StepType; steps with no
recognised type run the generic handler.
"""

from dataclasses import dataclass, field
from typing import Callable

from ..exceptions import StepExecutionError
from .codegen import generate_code
from .models import StepType, TaskStep

API_KEY = "api-key"

DEFAULT_RESULT = "Step completed successfully"
DEFAULT_SETTINGS_RESULT = "Used default settings"

# keyword -> default used when an info-request step gets no input
_INFO_DEFAULTS: list[tuple[tuple[str, ...], str]] = [
    (("color", "colour", "theme", "palette"), "Used the default color scheme"),
    (("name", "title", "brand"), "Used a placeholder project name"),
    (("language", "locale"), "Used English as the default language"),
    (("audience", "target", "customer"), "Targeted a general audience"),
    (("budget", "price", "cost"), "Assumed a standard budget"),
    (("deadline", "date", "schedule", "timeline"), "Assumed a flexible timeline"),
]


@dataclass
class StepContext:
    """What a step can see of the run: collected inputs and its own answer."""

    inputs: dict[str, str] = field(default_factory=dict)
    step_input: str | None = None


@dataclass
class StepOutcome:
    result: str
    code: str | None = None
    files: dict[str, str] = field(default_factory=dict)


def run_code_generation(step: TaskStep, ctx: StepContext) -> StepOutcome:
    generated = generate_code(step.title, step.description)
    names = ", ".join(generated.files)
    return StepOutcome(
        result=f"Generated {len(generated.files)} file(s): {names}",
        code=generated.code,
        files=generated.files,
    )


def run_api_request(step: TaskStep, ctx: StepContext) -> StepOutcome:
    key = ctx.inputs.get(API_KEY)
    if not key:
        raise StepExecutionError(f"Missing credential: step {step.title!r} needs an API key")
    return StepOutcome(result=f"API request configured with key {_mask(key)}")


def run_analysis(step: TaskStep, ctx: StepContext) -> StepOutcome:
    summary = " ".join(step.description.split())
    if len(summary) > 160:
        summary = summary[:157] + "..."
    return StepOutcome(result=f"Analysis complete: {summary or step.title}")


def run_info_request(step: TaskStep, ctx: StepContext) -> StepOutcome:
    if ctx.step_input:
        if step.required_input and step.required_input.type == "confirmation":
            return StepOutcome(result="Confirmed by user")
        if step.required_input and step.required_input.type == API_KEY:
            return StepOutcome(result=f"API key received ({_mask(ctx.step_input)})")
        return StepOutcome(result=f"Received: {ctx.step_input}")

    text = f"{step.title} {step.description}".lower()
    for keywords, result in _INFO_DEFAULTS:
        if any(k in text for k in keywords):
            return StepOutcome(result=result)
    return StepOutcome(result=DEFAULT_SETTINGS_RESULT)


def run_default(step: TaskStep, ctx: StepContext) -> StepOutcome:
    return StepOutcome(result=DEFAULT_RESULT)


HANDLERS: dict[StepType, Callable[[TaskStep, StepContext], StepOutcome]] = {
    StepType.CODE_GENERATION: run_code_generation,
    StepType.API_REQUEST: run_api_request,
    StepType.ANALYSIS: run_analysis,
    StepType.INFO_REQUEST: run_info_request,
}


def execute_step(step: TaskStep, ctx: StepContext) -> StepOutcome:
    handler = HANDLERS.get(step.type, run_default)
    return handler(step, ctx)


def _mask(secret: str) -> str:
    if len(secret) <= 4:
        return "****"
    return "****" + secret[-4:]

"""Sequential plan runner.

Step lifecycle:

    pending -> in-progress -> completed
    pending -> waiting-input -> in-progress -> completed
    in-progress -> failed            (action raised; the run carries on)
    pending | waiting-input -> skipped

A run walks the steps in order from a start index, passing over completed
and skipped steps, and halts only when a step needs input the run does not
have yet. The API key is collected once per run and shared by every step;
other inputs belong to the step that asked for them.
"""

import logging
from enum import Enum

from ..exceptions import PlanStateError
from .actions import API_KEY, StepContext, execute_step
from .models import Plan, StepStatus, TaskStep

logger = logging.getLogger(__name__)

SKIPPED_RESULT = "Step skipped by user"

_PASS_OVER = (StepStatus.COMPLETED, StepStatus.SKIPPED)


class RunState(str, Enum):
    WAITING_INPUT = "waiting-input"
    FINISHED = "finished"


class PlanExecutor:
    def __init__(self, plan: Plan):
        self.plan = plan
        self.inputs: dict[str, str] = {}
        self.files: dict[str, str] = {}
        self.waiting_index: int | None = None

    @property
    def is_finished(self) -> bool:
        terminal = (StepStatus.COMPLETED, StepStatus.SKIPPED, StepStatus.FAILED)
        return self.waiting_index is None and all(s.status in terminal for s in self.plan.steps)

    def run(self, start_index: int = 0) -> RunState:
        """Execute steps from ``start_index`` until done or input is needed."""
        if not 0 <= start_index <= len(self.plan.steps):
            raise IndexError(f"Start index {start_index} out of range")
        if self.waiting_index is not None and start_index > self.waiting_index:
            raise PlanStateError(
                f"Step {self.plan.steps[self.waiting_index].id} is still waiting for input"
            )

        for index in range(start_index, len(self.plan.steps)):
            step = self.plan.steps[index]
            if step.status in _PASS_OVER:
                continue
            if self._needs_input(step):
                step.status = StepStatus.WAITING_INPUT
                self.waiting_index = index
                logger.info("Step %s waiting for %s input", step.id, step.required_input.type)
                return RunState.WAITING_INPUT
            self._execute(step)

        # A step before start_index can still be paused on input.
        for index, step in enumerate(self.plan.steps):
            if step.status == StepStatus.WAITING_INPUT:
                self.waiting_index = index
                return RunState.WAITING_INPUT

        self.waiting_index = None
        return RunState.FINISHED

    def supply_input(self, step_index: int, value: str) -> RunState:
        """Provide the input a paused step asked for, run it, then continue."""
        step = self._step(step_index)
        if self.waiting_index != step_index or step.status != StepStatus.WAITING_INPUT:
            raise PlanStateError(f"Step {step.id} is not waiting for input")
        if not value.strip():
            raise ValueError("Input must not be empty")

        self.inputs[self._input_key(step)] = value.strip()
        self.waiting_index = None
        self._execute(step)
        return self.run(step_index + 1)

    def skip(self, step_index: int) -> RunState | None:
        """Skip a pending or waiting step. Resumes the run if it was paused there."""
        step = self._step(step_index)
        if step.status not in (StepStatus.PENDING, StepStatus.WAITING_INPUT):
            raise PlanStateError(f"Cannot skip step {step.id} in status {step.status.value}")

        step.status = StepStatus.SKIPPED
        step.result = SKIPPED_RESULT
        logger.info("Skipped step %s", step.id)

        if self.waiting_index == step_index:
            self.waiting_index = None
            return self.run(step_index + 1)
        return None

    def edit(self, step_index: int, description: str) -> TaskStep:
        """Rewrite a step's instructions. Status is left alone."""
        step = self._step(step_index)
        if step.status == StepStatus.IN_PROGRESS:
            raise PlanStateError(f"Cannot edit step {step.id} while it is running")
        if not description.strip():
            raise ValueError("Description must not be empty")
        step.description = description.strip()
        return step

    def to_dict(self) -> dict:
        return {
            "plan": self.plan.to_dict(),
            "waiting_index": self.waiting_index,
            "finished": self.is_finished,
            "files": dict(self.files),
        }

    # ── Private helpers ──────────────────────────────────────────────

    def _step(self, index: int) -> TaskStep:
        if not 0 <= index < len(self.plan.steps):
            raise IndexError(f"Step index {index} out of range")
        return self.plan.steps[index]

    def _input_key(self, step: TaskStep) -> str:
        if step.required_input.type == API_KEY:
            return API_KEY
        return f"{step.id}:{step.required_input.type}"

    def _needs_input(self, step: TaskStep) -> bool:
        if step.required_input is None or not step.required_input.required:
            return False
        return self._input_key(step) not in self.inputs

    def _execute(self, step: TaskStep) -> None:
        step.status = StepStatus.IN_PROGRESS
        ctx = StepContext(
            inputs=self.inputs,
            step_input=self.inputs.get(self._input_key(step)) if step.required_input else None,
        )
        try:
            outcome = execute_step(step, ctx)
        except Exception as e:
            step.status = StepStatus.FAILED
            step.result = str(e) or type(e).__name__
            logger.warning("Step %s failed: %s", step.id, step.result)
            return

        step.status = StepStatus.COMPLETED
        step.result = outcome.result
        step.code = outcome.code
        self.files.update(outcome.files)
        logger.debug("Step %s completed: %s", step.id, outcome.result)

"""Typed plan and step models.

Plans arrive as JSON from the model, so these are pydantic models: decoding
either yields a complete Plan or fails, never a half-filled object.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class StepType(str, Enum):
    CODE_GENERATION = "code-generation"
    API_REQUEST = "api-request"
    INFO_REQUEST = "info-request"
    ANALYSIS = "analysis"


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    WAITING_INPUT = "waiting-input"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class RequiredInput(BaseModel):
    """Input a step needs from the user before it can run.

    ``required`` is true unless explicitly set to false.
    """

    type: Literal["api-key", "info", "confirmation"] = "info"
    prompt: str = ""
    placeholder: str = ""
    required: bool = True

    @field_validator("required", mode="before")
    @classmethod
    def _absent_means_required(cls, v):
        return True if v is None else v


class TaskStep(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    description: str = ""
    type: StepType | None = None  # None runs the generic handler
    status: StepStatus = StepStatus.PENDING
    result: str | None = None
    code: str | None = None
    required_input: RequiredInput | None = Field(default=None, alias="requiredInput")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v):
        return str(v) if isinstance(v, int) else v

    @field_validator("type", mode="before")
    @classmethod
    def _unknown_type(cls, v):
        if isinstance(v, StepType):
            return v
        if isinstance(v, str) and v in {t.value for t in StepType}:
            return v
        return None


class Plan(BaseModel):
    title: str
    description: str = ""
    steps: list[TaskStep] = Field(min_length=1)

    @model_validator(mode="after")
    def _unique_step_ids(self):
        ids = [s.id for s in self.steps]
        if len(ids) != len(set(ids)):
            raise ValueError("step ids must be unique")
        return self

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

"""Pydantic models for YAML plan files.

A plan file declares an ordered list of generation steps. Each step names the
plan key(s) it produces, its prompt template and the JSON schema its response
must follow.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TierName = Literal["pro", "flash", "flash_lite"]


class PlanInput(BaseModel):
    """A named value made available to every step prompt.

    Values come from ``env_var`` or ``default`` at load time, or from the
    command line (``--var name=value``) at run time.
    """

    name: str = Field(..., description="Variable name used in {{name}} placeholders")
    env_var: Optional[str] = Field(None, description="Environment variable to read value from")
    default: Optional[str] = Field(None, description="Default value if env_var not set")
    description: Optional[str] = Field(None, description="Human-readable description")
    required: bool = Field(True, description="Whether a value must be present before running")


class PlanStep(BaseModel):
    """One generation step."""

    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(..., description="Step identifier and default plan key")
    prompt: str = Field(..., description="Prompt template with {{name}} placeholders")
    description: Optional[str] = Field(
        None, description="Label shown in progress messages and errors"
    )
    response_schema: Optional[Dict[str, Any]] = Field(
        None, alias="schema", description="JSON schema of the step's response"
    )
    output_keys: List[str] = Field(
        default_factory=list,
        description="Top-level response keys merged into the plan (fan-out)",
    )
    context_keys: List[str] = Field(
        default_factory=list,
        description="Variables or earlier plan keys sent as separate context parts",
    )
    repeat: Optional[int] = Field(
        None, ge=1, description="Run the step this many times, collecting a list"
    )
    tier: Optional[TierName] = Field(None, description="Model tier override")
    max_output_tokens: Optional[int] = Field(None, gt=0)
    thinking_budget: Optional[int] = Field(None, ge=0)
    use_plan_attachments: bool = Field(
        True, description="Send the run's --attach files with this step"
    )
    free_text: bool = Field(
        False, description="Store the response text as-is instead of parsing JSON"
    )

    @field_validator("key")
    @classmethod
    def _key_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("step key must not be blank")
        return value

    @model_validator(mode="after")
    def _check_step_shape(self) -> "PlanStep":
        if self.repeat is not None and self.output_keys:
            raise ValueError(
                f"step '{self.key}': 'repeat' collects into one key and cannot be combined "
                "with 'output_keys'"
            )
        if self.free_text and (self.response_schema is not None or self.output_keys):
            raise ValueError(
                f"step '{self.key}': free-text steps cannot declare 'schema' or 'output_keys'"
            )
        return self


class PlanDefinition(BaseModel):
    """Complete plan loaded from YAML."""

    name: str = Field(..., description="Unique plan identifier")
    description: str = Field(..., description="What this plan produces")
    version: str = Field("1.0", description="Plan definition version")
    author: Optional[str] = Field(None, description="Plan author")
    tags: List[str] = Field(default_factory=list, description="Categorization tags")

    tier: TierName = Field("pro", description="Default model tier for steps")
    max_output_tokens: Optional[int] = Field(
        None, gt=0, description="Default response cap for steps"
    )
    thinking_budget: Optional[int] = Field(
        None, ge=0, description="Default reasoning allowance for steps"
    )

    inputs: List[PlanInput] = Field(default_factory=list)
    steps: List[PlanStep] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _unique_step_keys(self) -> "PlanDefinition":
        seen = set()
        for step in self.steps:
            if step.key in seen:
                raise ValueError(f"duplicate step key '{step.key}'")
            seen.add(step.key)
        return self

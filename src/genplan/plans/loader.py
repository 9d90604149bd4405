"""YAML plan loader with validation.

Loads plan definitions from YAML files, validates them against the schema and
converts them into the step objects the plan assembler runs.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import yaml
from pydantic import ValidationError

from genplan.ai_providers.base import ModelTier
from genplan.ai_providers.schema import SchemaError, SchemaNode
from genplan.execution.planner import PlanConfigurationError, RepeatedStep, StepSpec
from genplan.plans.schema import PlanDefinition, PlanStep
from genplan.utils.substitution import substitute_env_variables

logger = logging.getLogger(__name__)


class PlanLoadError(Exception):
    """Raised when a plan definition cannot be loaded."""

    pass


class PlanLoader:
    """Loads and validates YAML plan definitions."""

    def __init__(self, base_path: Optional[Union[str, Path]] = None):
        """Initialize the plan loader.

        Args:
            base_path: Base directory for resolving relative plan file paths.
                       Defaults to current working directory.
        """
        self.base_path = Path(base_path) if base_path else Path.cwd()

    def load(
        self, plan_file: Union[str, Path]
    ) -> Tuple[PlanDefinition, Dict[str, Optional[str]]]:
        """Load a plan definition from a YAML file.

        Args:
            plan_file: Path to the YAML plan file (absolute or relative to base_path)

        Returns:
            Tuple of (validated PlanDefinition, resolved input values dict).

        Raises:
            PlanLoadError: If the file cannot be loaded or validated
        """
        file_path = self._resolve_path(plan_file)

        if not file_path.exists():
            raise PlanLoadError(f"Plan file not found: {file_path}")

        if file_path.suffix.lower() not in (".yaml", ".yml"):
            raise PlanLoadError(f"Plan file must be YAML (.yaml or .yml): {file_path}")

        try:
            raw_content = file_path.read_text(encoding="utf-8")
        except OSError as e:
            raise PlanLoadError(f"Failed to read plan file {file_path}: {e}") from e

        try:
            data = yaml.safe_load(raw_content)
        except yaml.YAMLError as e:
            raise PlanLoadError(f"Invalid YAML in plan file {file_path}: {e}") from e

        if not isinstance(data, dict):
            raise PlanLoadError(
                f"Plan file must contain a YAML mapping, got {type(data).__name__}"
            )

        # Substituted after parsing so env values cannot break the YAML structure
        data = self._substitute_in_data(data)

        try:
            plan = PlanDefinition(**data)
        except ValidationError as e:
            raise PlanLoadError(f"Invalid plan definition in {file_path}: {e}") from e

        resolved = self._resolve_inputs(plan)

        logger.info(
            f"Loaded plan definition: {plan.name} ({len(plan.steps)} steps)",
            extra={"plan_name": plan.name, "steps": len(plan.steps), "inputs": len(plan.inputs)},
        )
        return plan, resolved

    def _resolve_path(self, plan_file: Union[str, Path]) -> Path:
        path = Path(plan_file)
        if path.is_absolute():
            return path
        return self.base_path / path

    @staticmethod
    def _substitute_in_data(data: Any) -> Any:
        """Recursively substitute {{VAR}} placeholders in string leaves of parsed YAML."""
        if isinstance(data, dict):
            return {k: PlanLoader._substitute_in_data(v) for k, v in data.items()}
        if isinstance(data, list):
            return [PlanLoader._substitute_in_data(item) for item in data]
        if isinstance(data, str):
            return substitute_env_variables(data)
        return data

    def _resolve_inputs(self, plan: PlanDefinition) -> Dict[str, Optional[str]]:
        """Resolve input values from environment variables and defaults.

        Raises:
            PlanLoadError: If a required input with an env_var has no value.
        """
        resolved: Dict[str, Optional[str]] = {}

        for input_spec in plan.inputs:
            value = input_spec.default
            if input_spec.env_var:
                env_value = os.getenv(input_spec.env_var)
                if env_value is not None:
                    value = env_value
                    logger.debug(f"Resolved input {input_spec.name} from {input_spec.env_var}")
            resolved[input_spec.name] = value

            # Inputs without env_var may still be supplied on the command line
            if input_spec.required and input_spec.env_var and value is None:
                raise PlanLoadError(
                    f"Required input '{input_spec.name}' has no value "
                    f"(env_var: {input_spec.env_var}) and no default provided."
                )

        return resolved

    @staticmethod
    def missing_inputs(plan: PlanDefinition, values: Mapping[str, Any]) -> List[str]:
        """Names of required inputs still without a value."""
        return [
            spec.name
            for spec in plan.inputs
            if spec.required and values.get(spec.name) in (None, "")
        ]

    def build_steps(self, plan: PlanDefinition) -> List[StepSpec]:
        """Convert a validated plan into runnable steps.

        Raises:
            PlanLoadError: If a step schema or step combination is invalid
        """
        return [self._build_step(plan, step) for step in plan.steps]

    @staticmethod
    def _build_step(plan: PlanDefinition, step: PlanStep) -> StepSpec:
        try:
            schema = (
                SchemaNode.from_dict(step.response_schema)
                if step.response_schema is not None
                else None
            )
        except SchemaError as e:
            raise PlanLoadError(f"Invalid schema for step '{step.key}': {e}") from e

        kwargs: Dict[str, Any] = dict(
            key=step.key,
            prompt=step.prompt,
            schema=schema,
            output_keys=tuple(step.output_keys),
            context_keys=tuple(step.context_keys),
            use_plan_attachments=step.use_plan_attachments,
            free_text=step.free_text,
            tier=ModelTier(step.tier or plan.tier),
            max_output_tokens=step.max_output_tokens or plan.max_output_tokens,
            thinking_budget=step.thinking_budget
            if step.thinking_budget is not None
            else plan.thinking_budget,
            description=step.description,
        )
        try:
            if step.repeat is not None:
                return RepeatedStep(count=step.repeat, **kwargs)
            return StepSpec(**kwargs)
        except PlanConfigurationError as e:
            raise PlanLoadError(str(e)) from e

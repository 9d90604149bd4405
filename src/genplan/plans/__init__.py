"""Plan definitions: YAML plan files and built-in presets."""

from typing import Any, Callable, Dict, List, Mapping, Optional

from genplan.execution.planner import StepSpec

from .campaign import ANALYSIS_VARIABLE, build_analysis_step, build_campaign_steps, campaign_preset
from .loader import PlanLoader, PlanLoadError
from .schema import PlanDefinition, PlanInput, PlanStep

# Each preset builds its steps from the run variables and whether files are attached
PRESETS: Dict[str, Callable[[Mapping[str, Any], bool], List[StepSpec]]] = {
    "campaign": campaign_preset,
}


def get_preset(
    name: str, variables: Optional[Mapping[str, Any]] = None, has_attachments: bool = False
) -> List[StepSpec]:
    """Build the steps of a built-in plan.

    Raises:
        PlanLoadError: If the preset is unknown
        ValueError: If the preset's inputs are missing
    """
    try:
        factory = PRESETS[name]
    except KeyError:
        raise PlanLoadError(
            f"Unknown preset '{name}'. Available presets: {', '.join(sorted(PRESETS))}"
        ) from None
    return factory(variables or {}, has_attachments)


__all__ = [
    "ANALYSIS_VARIABLE",
    "PRESETS",
    "PlanDefinition",
    "PlanInput",
    "PlanLoadError",
    "PlanLoader",
    "PlanStep",
    "build_analysis_step",
    "build_campaign_steps",
    "campaign_preset",
    "get_preset",
]

"""CLI argument to environment variable mappings."""

from dataclasses import dataclass
from typing import Any, List, Optional

from genplan.config.settings import SENSITIVE_ENV_VAR_NAMES


@dataclass
class ArgMapping:
    """Mapping between CLI argument and environment variable."""

    cli_arg: str  # CLI argument name (e.g., "--model-pro")
    env_var: str  # Environment variable name (e.g., "AI_MODEL_PRO")
    arg_type: type = str
    choices: Optional[List[str]] = None
    help_text: str = ""
    short_arg: Optional[str] = None
    default: Any = None


# CLI argument mappings for the 'run' command
RUN_ARG_MAPPINGS: List[ArgMapping] = [
    ArgMapping(
        cli_arg="--model-pro",
        env_var="AI_MODEL_PRO",
        help_text="Model used for the 'pro' tier (e.g., gemini-2.5-pro)",
    ),
    ArgMapping(
        cli_arg="--model-flash",
        env_var="AI_MODEL_FLASH",
        help_text="Model used for the 'flash' tier (e.g., gemini-2.5-flash)",
    ),
    ArgMapping(
        cli_arg="--max-output-tokens",
        env_var="DEFAULT_MAX_OUTPUT_TOKENS",
        arg_type=int,
        help_text="Default response cap per step",
    ),
    ArgMapping(
        cli_arg="--thinking-budget",
        env_var="DEFAULT_THINKING_BUDGET",
        arg_type=int,
        help_text="Default reasoning allowance per step",
    ),
    ArgMapping(
        cli_arg="--poll-max-attempts",
        env_var="POLL_MAX_ATTEMPTS",
        arg_type=int,
        help_text="Give up on asynchronous jobs after this many status checks",
    ),
    ArgMapping(
        cli_arg="--log-level",
        env_var="LOG_LEVEL",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help_text="Logging level",
        default="INFO",
    ),
]

# Never exposed as CLI arguments; must come from a .env file or the environment
SENSITIVE_ENV_VARS: frozenset = SENSITIVE_ENV_VAR_NAMES


def get_arg_mapping_by_env_var(env_var: str) -> Optional[ArgMapping]:
    """Get an ArgMapping by its environment variable name."""
    for mapping in RUN_ARG_MAPPINGS:
        if mapping.env_var == env_var:
            return mapping
    return None


def get_arg_mapping_by_cli_arg(cli_arg: str) -> Optional[ArgMapping]:
    """Get an ArgMapping by its CLI argument name."""
    normalized = cli_arg.lstrip("-").replace("-", "_")
    for mapping in RUN_ARG_MAPPINGS:
        if mapping.cli_arg.lstrip("-").replace("-", "_") == normalized:
            return mapping
    return None

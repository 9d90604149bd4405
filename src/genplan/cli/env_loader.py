"""Environment file loader using python-dotenv."""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import dotenv_values, load_dotenv

from genplan.cli.arg_mapping import RUN_ARG_MAPPINGS

# Shown by `config show` in addition to the mapped run arguments
ADDITIONAL_CONFIG_VARS = [
    "GEMINI_API_KEY",
    "API_KEY",
    "AI_MODEL_FLASH_LITE",
    "AI_MODEL_IMAGE",
    "AI_MODEL_IMAGEN",
    "AI_MODEL_VIDEO",
    "AI_MODEL_SPEECH",
    "RETRY_MAX_ATTEMPTS",
    "RETRY_INITIAL_DELAY",
    "RETRY_BACKOFF_FACTOR",
    "POLL_INTERVAL_SECONDS",
    "JSON_LOGS",
]


def load_env_file(env_file: str, override: bool = False) -> Dict[str, str]:
    """
    Load environment variables from a .env file.

    Args:
        env_file: Path to the .env file
        override: If True, override existing environment variables

    Returns:
        Dictionary of loaded environment variables

    Raises:
        FileNotFoundError: If the env file doesn't exist
    """
    env_path = Path(env_file)
    if not env_path.exists():
        raise FileNotFoundError(f"Environment file not found: {env_file}")

    load_dotenv(env_path, override=override)

    return {k: v for k, v in dotenv_values(env_path).items() if v is not None}


def apply_cli_args_to_env(args: Dict[str, Any]) -> Dict[str, str]:
    """
    Apply CLI arguments to environment variables.

    CLI arguments take precedence over existing environment variables.

    Returns:
        Dictionary of environment variables that were set
    """
    applied: Dict[str, str] = {}

    for mapping in RUN_ARG_MAPPINGS:
        attr_name = mapping.cli_arg.lstrip("-").replace("-", "_")
        value = args.get(attr_name)

        if value is not None:
            str_value = str(value)
            os.environ[mapping.env_var] = str_value
            applied[mapping.env_var] = str_value

    if args.get("verbose"):
        os.environ["LOG_LEVEL"] = "DEBUG"
        applied["LOG_LEVEL"] = "DEBUG"

    return applied


def parse_variables(assignments: Optional[List[str]]) -> Dict[str, str]:
    """
    Parse ``NAME=VALUE`` pairs given with ``--var``.

    ``NAME=@path`` reads the value from a file.

    Raises:
        ValueError: If an assignment has no '=' or an empty name
        FileNotFoundError: If an @file reference does not exist
    """
    variables: Dict[str, str] = {}
    for assignment in assignments or []:
        name, sep, value = assignment.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ValueError(f"Invalid variable '{assignment}', expected NAME=VALUE")
        if value.startswith("@"):
            path = Path(value[1:])
            if not path.exists():
                raise FileNotFoundError(f"Variable file not found: {path}")
            value = path.read_text(encoding="utf-8")
        variables[name] = value
    return variables


def get_effective_config() -> Dict[str, Optional[str]]:
    """Get the effective configuration from the current environment."""
    config: Dict[str, Optional[str]] = {}

    for mapping in RUN_ARG_MAPPINGS:
        config[mapping.env_var] = os.environ.get(mapping.env_var)

    for var in ADDITIONAL_CONFIG_VARS:
        if var not in config:
            config[var] = os.environ.get(var)

    return config


def mask_sensitive_value(value: Optional[str], visible_chars: int = 4) -> str:
    """
    Mask a sensitive value for display.

    Returns:
        Masked string (e.g., "****abcd") or "(not set)"
    """
    if value is None:
        return "(not set)"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return "*" * (len(value) - visible_chars) + value[-visible_chars:]

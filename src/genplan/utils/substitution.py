"""Placeholder substitution for plan files and step prompts.

Two placeholder families share the ``{{...}}`` syntax:

- ``{{VAR_NAME}}`` / ``{{VAR_NAME:default}}`` (upper case) are environment
  variables, resolved once when a plan file is loaded.
- ``{{name}}`` / ``{{name.path.to.field}}`` are prompt placeholders, resolved
  when a step runs against the variables and prior step outputs available
  at that point.
"""

import json
import logging
import os
import re
from typing import Any, List, Mapping

logger = logging.getLogger(__name__)

ENV_VAR_PATTERN = re.compile(r"\{\{([A-Z_][A-Z0-9_]*?)(?::([^}]*))?\}\}")
PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z0-9_]+)*)\s*\}\}")


def substitute_env_variables(content: str) -> str:
    """Replace {{VAR_NAME}} or {{VAR_NAME:default}} placeholders with env values.

    Unset variables without a default are left untouched, so an upper-case
    prompt placeholder can still be resolved later by ``render_placeholders``.
    """
    replaced = 0

    def _replace(match: re.Match) -> str:
        nonlocal replaced
        value = os.getenv(match.group(1))
        if value is not None:
            replaced += 1
            return value
        if match.group(2) is not None:
            replaced += 1
            return match.group(2)
        return match.group(0)

    result = ENV_VAR_PATTERN.sub(_replace, content)
    if replaced:
        logger.debug(f"Completed {replaced} environment variable substitution(s)")
    return result


def find_placeholders(template: str) -> List[str]:
    """Return the root names referenced by prompt placeholders, in order of appearance."""
    return [match.group(1).split(".", 1)[0] for match in PLACEHOLDER_PATTERN.finditer(template)]


def format_value(value: Any) -> str:
    """Render a parsed document for embedding in a prompt."""
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, ensure_ascii=False)


def _lookup(values: Mapping[str, Any], dotted: str) -> Any:
    root, *path = dotted.split(".")
    current = values[root]
    for segment in path:
        if isinstance(current, list):
            current = current[int(segment)]
        else:
            current = current[segment]
    return current


def render_placeholders(template: str, values: Mapping[str, Any]) -> str:
    """Replace {{name}} placeholders with values, walking dotted paths into documents.

    Raises:
        KeyError: If a placeholder names a value (or path) that does not exist.
    """

    def _replace(match: re.Match) -> str:
        dotted = match.group(1)
        try:
            return format_value(_lookup(values, dotted))
        except (KeyError, IndexError, ValueError, TypeError) as e:
            raise KeyError(f"Unresolved placeholder '{{{{{dotted}}}}}'") from e

    return PLACEHOLDER_PATTERN.sub(_replace, template)

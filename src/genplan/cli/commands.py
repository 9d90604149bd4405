"""CLI command implementations."""

import asyncio
import json
import sys
from argparse import Namespace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from genplan.cli.arg_mapping import SENSITIVE_ENV_VARS
from genplan.cli.env_loader import (
    apply_cli_args_to_env,
    get_effective_config,
    load_env_file,
    mask_sensitive_value,
    parse_variables,
)

if TYPE_CHECKING:
    import structlog

    from genplan.ai_providers.base import Attachment
    from genplan.config.settings import CoreSettings
    from genplan.execution.planner import StepSpec

# Exit codes
EXIT_FAILURE = 1
EXIT_RATE_LIMITED = 2
EXIT_CREDENTIALS = 3


def get_version() -> str:
    """Get the package version."""
    from importlib.metadata import PackageNotFoundError, version

    try:
        return version("genplan")
    except PackageNotFoundError:
        return "unknown"


def cmd_version(args: Namespace) -> int:
    """Handle the 'version' command."""
    print(f"genplan version {get_version()}")
    return 0


def _load_env(args: Namespace) -> bool:
    env_file = getattr(args, "env_file", None)
    if not env_file:
        return True
    try:
        loaded = load_env_file(env_file)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return False
    print(
        f"Read {len(loaded)} variables from {env_file} (existing env vars preserved)",
        file=sys.stderr,
    )
    return True


def cmd_config_show(args: Namespace) -> int:
    """Handle the 'config show' command."""
    if not _load_env(args):
        return EXIT_FAILURE

    config = get_effective_config()

    print("Current Configuration:")
    print("=" * 50)

    sections = [
        ("Credentials", ["GEMINI_API_KEY", "API_KEY"]),
        (
            "Models",
            [
                "AI_MODEL_PRO",
                "AI_MODEL_FLASH",
                "AI_MODEL_FLASH_LITE",
                "AI_MODEL_IMAGE",
                "AI_MODEL_IMAGEN",
                "AI_MODEL_VIDEO",
                "AI_MODEL_SPEECH",
            ],
        ),
        ("Generation", ["DEFAULT_MAX_OUTPUT_TOKENS", "DEFAULT_THINKING_BUDGET"]),
        (
            "Retry / Polling",
            [
                "RETRY_MAX_ATTEMPTS",
                "RETRY_INITIAL_DELAY",
                "RETRY_BACKOFF_FACTOR",
                "POLL_INTERVAL_SECONDS",
                "POLL_MAX_ATTEMPTS",
            ],
        ),
        ("Logging", ["LOG_LEVEL", "JSON_LOGS"]),
    ]

    for title, variables in sections:
        print(f"\n[{title}]")
        for var in variables:
            value = config.get(var)
            if var in SENSITIVE_ENV_VARS:
                print(f"  {var}: {mask_sensitive_value(value)}")
            else:
                print(f"  {var}: {value or '(not set)'}")

    print("\nNote: Sensitive values (API keys) are masked with ****.")
    return 0


def _resolve_steps(
    args: Namespace, variables: Dict[str, str]
) -> Tuple[List["StepSpec"], Dict[str, Any]]:
    """Load the steps to run and merge plan inputs with --var values.

    Raises:
        ValueError: If the plan selection or the variables are incomplete
        PlanLoadError: If the plan file is invalid
    """
    from genplan.plans import PlanLoader, get_preset

    if bool(args.plan) == bool(args.preset):
        raise ValueError("Specify exactly one of PLAN or --preset")

    if args.preset:
        steps = get_preset(args.preset, variables, has_attachments=bool(args.attach))
        missing: List[str] = []
        values: Dict[str, Any] = dict(variables)
    else:
        loader = PlanLoader()
        plan, resolved = loader.load(args.plan)
        steps = loader.build_steps(plan)
        values = {name: value for name, value in resolved.items() if value is not None}
        values.update(variables)
        missing = loader.missing_inputs(plan, values)

    if missing:
        raise ValueError(
            f"Missing value(s) for: {', '.join(missing)} (use --var NAME=VALUE or NAME=@file)"
        )
    return steps, values


def cmd_run(args: Namespace) -> int:
    """Handle the 'run' command."""
    from genplan.config.settings import load_settings
    from genplan.plans import PlanLoadError
    from genplan.utils.logger import setup_logging

    if not _load_env(args):
        return EXIT_FAILURE

    applied = apply_cli_args_to_env(vars(args))
    if applied:
        print(f"Applied {len(applied)} CLI arguments to environment", file=sys.stderr)

    try:
        settings = load_settings()
    except ValueError as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        return EXIT_FAILURE

    # Plan loading logs too, so configure output before it
    setup_logging(level=settings.log_level, json_logs=settings.json_logs)

    try:
        variables = parse_variables(args.var)
        steps, values = _resolve_steps(args, variables)
    except (ValueError, FileNotFoundError, PlanLoadError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    if args.dry_run:
        print(f"\n[DRY RUN] Would run {len(steps)} step(s):")
        for index, step in enumerate(steps, start=1):
            keys = ", ".join(step.produced_keys)
            print(f"  {index}. {step.label} -> {keys}")
        print(f"Variables: {', '.join(sorted(values)) or '(none)'}")
        return 0

    return _run_plan(settings, steps, values, args.attach or [], args.output)


def _run_plan(
    settings: "CoreSettings",
    steps: List["StepSpec"],
    values: Dict[str, Any],
    attach: List[str],
    output: Optional[str],
) -> int:
    """Run a plan and write the composite document."""
    from genplan.ai_providers.base import Attachment
    from genplan.utils.logger import get_logger

    try:
        attachments = [Attachment.from_path(path) for path in attach]
    except OSError as e:
        print(f"Error: Failed to read attachment: {e}", file=sys.stderr)
        return EXIT_FAILURE

    logger = get_logger(__name__)
    logger.info(f"Starting plan with {len(steps)} step(s)")

    return asyncio.run(_run_plan_async(settings, steps, values, attachments, output, logger))


async def _run_plan_async(
    settings: "CoreSettings",
    steps: List["StepSpec"],
    values: Dict[str, Any],
    attachments: List["Attachment"],
    output: Optional[str],
    logger: "structlog.BoundLogger",
) -> int:
    from genplan.ai_providers.base import ProviderError
    from genplan.ai_providers.factory import create_provider
    from genplan.execution.errors import ErrorKind, GenerationError
    from genplan.execution.planner import PlanAssembler, PlanConfigurationError

    provider = create_provider(settings)
    try:
        await provider.initialize()
        assembler = PlanAssembler.from_settings(provider, settings)
        plan = await assembler.run_multi_step(
            steps,
            on_progress=lambda event: print(event.message, file=sys.stderr, flush=True),
            variables=values,
            attachments=attachments,
        )
    except GenerationError as e:
        logger.error("Plan failed", kind=e.kind.value, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        if e.kind is ErrorKind.RATE_LIMITED:
            return EXIT_RATE_LIMITED
        if e.kind is ErrorKind.INVALID_CREDENTIAL:
            return EXIT_CREDENTIALS
        return EXIT_FAILURE
    except ProviderError as e:
        logger.error("AI provider configuration error", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CREDENTIALS
    except PlanConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    finally:
        await provider.shutdown()

    document = json.dumps(plan.to_dict(), indent=2, ensure_ascii=False)
    if output:
        Path(output).write_text(document + "\n", encoding="utf-8")
        print(f"Wrote plan with keys {', '.join(plan.keys())} to {output}", file=sys.stderr)
    else:
        print(document)

    logger.info("Plan completed successfully", keys=plan.keys())
    return 0

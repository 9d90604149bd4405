#!/usr/bin/env python3
"""Main CLI entry point for genplan."""

import argparse
import sys
from typing import Any, Dict, List, Optional

from genplan.cli.arg_mapping import RUN_ARG_MAPPINGS
from genplan.cli.commands import cmd_config_show, cmd_run, cmd_version, get_version


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="genplan",
        description="genplan - multi-step structured generation with Gemini",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  genplan run plan.yaml --attach manuscript.pdf --output plan.json
  genplan run --preset campaign --attach manuscript.pdf
  genplan run --preset campaign --var analysis=@book_dna.md
  genplan config show --env-file .env
  genplan version
""",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {get_version()}",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands",
        metavar="COMMAND",
    )

    run_parser = subparsers.add_parser(
        "run",
        help="Run a generation plan",
        description="Run a YAML plan file or a built-in preset and print the composite plan",
    )
    _add_run_arguments(run_parser)

    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="View the effective configuration",
    )
    config_subparsers = config_parser.add_subparsers(
        dest="config_command",
        title="config commands",
        metavar="SUBCOMMAND",
    )
    config_show_parser = config_subparsers.add_parser(
        "show",
        help="Show current configuration",
        description="Display the effective configuration",
    )
    config_show_parser.add_argument(
        "--env-file",
        "-e",
        metavar="FILE",
        help="Load environment from a .env file",
    )

    subparsers.add_parser(
        "version",
        help="Show version information",
        description="Display the genplan version",
    )

    return parser


def _add_run_arguments(parser: argparse.ArgumentParser) -> None:
    """Add arguments for the 'run' subcommand."""
    parser.add_argument(
        "plan",
        nargs="?",
        metavar="PLAN",
        help="Path to a YAML plan file",
    )
    parser.add_argument(
        "--preset",
        choices=["campaign"],
        help="Run a built-in plan instead of a plan file",
    )
    parser.add_argument(
        "--attach",
        "-a",
        action="append",
        metavar="FILE",
        help="Attach a file to the plan (sent with every step that uses plan attachments, repeatable)",
    )
    parser.add_argument(
        "--var",
        action="append",
        metavar="NAME=VALUE",
        help="Set a plan variable; NAME=@file reads the value from a file (repeatable)",
    )
    parser.add_argument(
        "--output",
        "-o",
        metavar="FILE",
        help="Write the composite plan JSON to FILE instead of stdout",
    )
    parser.add_argument(
        "--env-file",
        "-e",
        metavar="FILE",
        help="Load environment from a .env file (lowest priority, CLI args override)",
    )

    for mapping in RUN_ARG_MAPPINGS:
        kwargs: Dict[str, Any] = {
            "help": mapping.help_text or f"Set {mapping.env_var}",
            "dest": mapping.cli_arg.lstrip("-").replace("-", "_"),
            # Left unset so env/settings decide the default
            "default": None,
        }
        if mapping.choices:
            kwargs["choices"] = mapping.choices
            kwargs["metavar"] = mapping.cli_arg.lstrip("-").upper().replace("-", "_")
        if mapping.arg_type is int:
            kwargs["type"] = int

        args = [mapping.cli_arg]
        if mapping.short_arg:
            args.insert(0, mapping.short_arg)
        parser.add_argument(*args, **kwargs)

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output (sets LOG_LEVEL=DEBUG)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the steps that would run without calling the model",
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "run":
        return cmd_run(args)
    elif args.command == "config":
        if args.config_command == "show":
            return cmd_config_show(args)
        parser.parse_args(["config", "--help"])
        return 0
    elif args.command == "version":
        return cmd_version(args)

    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Tutorial Runner command line entry point."""

import argparse
import asyncio
import sys
from collections.abc import Sequence

from pydantic import ValidationError

from tutorial_runner.config.settings import Settings
from tutorial_runner.tutorials.registry import get_tutorial, list_tutorials
from tutorial_runner.version import __version__
from tutorial_runner.workflow.runner import run_tutorial

EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tutorial-runner",
        description="Run AWS getting-started tutorials and clean up what they create",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List available tutorials")

    run = subparsers.add_parser("run", help="Run a tutorial")
    run.add_argument("slug", help="Tutorial to run (see 'list')")
    run.add_argument(
        "--auto-cleanup",
        action="store_true",
        help="Clean up created resources without prompting",
    )
    run.add_argument("--backend", choices=["cli", "sdk"], help="Use the AWS CLI or boto3")
    run.add_argument("--region", help="AWS region")
    run.add_argument("--profile", help="AWS named profile")
    run.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    )
    run.add_argument("--log-dir", help="Directory for the run log")
    run.add_argument("--transcript-dir", help="Write a markdown transcript to this directory")
    run.add_argument(
        "--option",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Tutorial option (repeatable)",
    )
    return parser


def parse_options(pairs: Sequence[str]) -> dict[str, str]:
    """Parse ``key=value`` pairs.

    Raises:
        ValueError: If a pair has no '=' or an empty key.
    """
    options: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid option '{pair}', expected KEY=VALUE")
        options[key.strip()] = value
    return options


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Settings from the environment, overridden by command line flags."""
    overrides = {
        "auto_cleanup": True if args.auto_cleanup else None,
        "backend": args.backend,
        "aws_region": args.region,
        "aws_profile": args.profile,
        "log_level": args.log_level,
        "log_dir": args.log_dir,
        "transcript_dir": args.transcript_dir,
    }
    return Settings(**{key: value for key, value in overrides.items() if value is not None})


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the application.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "list":
        for tutorial in list_tutorials():
            print(f"{tutorial.slug:<20} {tutorial.title}")
        return 0

    try:
        tutorial = get_tutorial(args.slug)
    except KeyError as e:
        print(e.args[0], file=sys.stderr)
        return EXIT_USAGE

    try:
        options = parse_options(args.option)
        settings = settings_from_args(args)
    except (ValueError, ValidationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE

    try:
        return asyncio.run(run_tutorial(tutorial, settings, options=options))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())

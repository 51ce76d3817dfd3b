#!/usr/bin/env python3
"""
nomad-deployer CLI.

Subcommands:
    deploy  Plan, submit and supervise a job; exits with the outcome's code
    plan    Dry-run a job and print the planned changes per task group
    stop    Stop a job without supervising it
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

from tabulate import tabulate  # type: ignore[import-untyped]

from nomad_deployer import __version__
from nomad_deployer.config.settings import DeployerConfig
from nomad_deployer.deployment import Deployer, FailedTaskGroupPlan, count_changes
from nomad_deployer.jobs import JobBuildError, JobBuilder
from nomad_deployer.logging_config import setup_logging
from nomad_deployer.models import JobPlan
from nomad_deployer.models.outcome import EXIT_GENERAL_ERROR, EXIT_SUCCESS
from nomad_deployer.nomad import NomadClient, NomadError

EXIT_INVALID_ARGS = 2

DEFAULT_CONFIG_PATH = "~/.config/nomad-deployer/config.yml"

logger = logging.getLogger(__name__)


def parse_variables(pairs: Optional[List[str]]) -> Dict[str, str]:
    """
    Parse repeated ``KEY=VALUE`` template variables.

    Raises:
        ValueError: If an entry has no ``=`` or an empty key
    """
    variables: Dict[str, str] = {}
    for pair in pairs or []:
        key, separator, value = pair.partition("=")
        if not separator or not key:
            raise ValueError(f"Invalid template variable '{pair}', expected KEY=VALUE")
        variables[key] = value
    return variables


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nomad-deployer",
        description="Supervised rolling deployments for Nomad jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Deploy a new image of a job
  nomad-deployer deploy --job-file app.hcl --image registry/app:1.4.2

  # See what a deploy would change
  nomad-deployer plan --job-file app.hcl --image registry/app:1.4.2

  # Stop and purge a job
  nomad-deployer stop --job-name app --purge
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        "-c",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--endpoint", help="Nomad address (default: $NOMAD_ADDR or http://127.0.0.1:4646)"
    )
    parser.add_argument("--token", help="Nomad ACL token (default: $NOMAD_TOKEN)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--generate-config",
        action="store_true",
        help="Write a default configuration file to --config and exit",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for name, help_text in (
        ("deploy", "Deploy a job and supervise it to completion"),
        ("plan", "Dry-run a job and show planned changes"),
    ):
        job_parser = subparsers.add_parser(name, help=help_text)
        job_parser.add_argument("--job-file", required=True, help="Job file (.hcl, .nomad, .json, .yml)")
        job_parser.add_argument("--image", required=True, help="Full image reference to deploy")
        job_parser.add_argument(
            "--var",
            action="append",
            metavar="KEY=VALUE",
            help="Template variable, may be repeated",
        )
        if name == "deploy":
            job_parser.add_argument(
                "--timeout", type=float, help="Manual-mode deploy timeout in seconds"
            )

    stop_parser = subparsers.add_parser("stop", help="Stop a job without supervision")
    stop_parser.add_argument("--job-name", required=True, help="Nomad job ID")
    stop_parser.add_argument("--purge", action="store_true", help="Purge the job from Nomad")

    return parser


def load_config(args: argparse.Namespace) -> DeployerConfig:
    """Read the config file if present, then apply environment and CLI overrides."""
    config_path = Path(os.path.expanduser(args.config))
    if config_path.exists():
        config = DeployerConfig.from_file(str(config_path))
    else:
        config = DeployerConfig().with_env_overrides()

    nomad_updates = {}
    if args.endpoint:
        nomad_updates["endpoint"] = args.endpoint
    if args.token:
        nomad_updates["token"] = args.token
    if nomad_updates:
        config = config.model_copy(update={"nomad": config.nomad.model_copy(update=nomad_updates)})

    timeout = getattr(args, "timeout", None)
    if timeout:
        config = config.model_copy(
            update={"deployment": config.deployment.model_copy(update={"deploy_timeout": timeout})}
        )

    return config


def create_client(config: DeployerConfig) -> NomadClient:
    return NomadClient(
        endpoint=config.nomad.endpoint,
        token=config.nomad.token,
        verify_tls=config.nomad.verify_tls,
        timeout=config.nomad.request_timeout,
    )


def format_plan(plan: JobPlan) -> str:
    """Render planned changes as a table, one row per task group."""
    columns = ["Group", "Place", "Stop", "Migrate", "Destructive", "Canary", "In-place", "Ignore"]
    rows = [
        [
            group_name,
            updates.place,
            updates.stop,
            updates.migrate,
            updates.destructive_update,
            updates.canary,
            updates.in_place_update,
            updates.ignore,
        ]
        for group_name, updates in sorted(plan.group_updates.items())
    ]
    result: str = tabulate(rows, headers=columns, tablefmt="simple")
    return result


def handle_deploy(args: argparse.Namespace, config: DeployerConfig) -> int:
    with create_client(config) as client:
        job = JobBuilder(client).build(args.job_file, args.image, parse_variables(args.var))
        deployer = Deployer(client, settings=config.deployment)
        outcome = deployer.deploy(job)

    logger.debug(f"Outcome for {outcome.job_name}: {outcome.kind.value}")
    return outcome.exit_code


def handle_plan(args: argparse.Namespace, config: DeployerConfig) -> int:
    with create_client(config) as client:
        job = JobBuilder(client).build(args.job_file, args.image, parse_variables(args.var))
        try:
            plan = Deployer(client, settings=config.deployment).plan(job)
        except FailedTaskGroupPlan as e:
            print(f"Error: {e}", file=sys.stderr)
            return e.exit_code

    print(format_plan(plan))
    print(f"\n{count_changes(plan)} change(s) planned for {job.name}")
    return EXIT_SUCCESS


def handle_stop(args: argparse.Namespace, config: DeployerConfig) -> int:
    with create_client(config) as client:
        evaluation_id = Deployer(client, settings=config.deployment).stop(
            args.job_name, purge=args.purge
        )
    print(evaluation_id)
    return EXIT_SUCCESS


HANDLERS = {
    "deploy": handle_deploy,
    "plan": handle_plan,
    "stop": handle_stop,
}


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.generate_config:
        config_path = os.path.expanduser(args.config)
        DeployerConfig().save(config_path)
        print(f"Generated default configuration at: {config_path}")
        return EXIT_SUCCESS

    if not args.command:
        parser.print_help()
        return EXIT_INVALID_ARGS

    try:
        config = load_config(args)
    except Exception as e:
        print(f"Configuration invalid: {e}", file=sys.stderr)
        return EXIT_INVALID_ARGS

    setup_logging(
        log_dir=config.logging.log_dir,
        console_level="DEBUG" if args.verbose else config.logging.console_level,
        file_level=config.logging.file_level,
        use_json=config.logging.use_json,
    )

    try:
        return HANDLERS[args.command](args, config)
    except ValueError as e:
        # JobBuildError and bad --var entries
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID_ARGS if not isinstance(e, JobBuildError) else EXIT_GENERAL_ERROR
    except NomadError as e:
        logger.error(f"Nomad request failed: {e}")
        return EXIT_GENERAL_ERROR
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_GENERAL_ERROR


if __name__ == "__main__":
    sys.exit(main())

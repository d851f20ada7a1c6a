"""Command-line interface for stackpilot."""

import argparse
import asyncio
import sys

from .core.config_loader import build_run_config, check_validation, load_manifest, load_settings
from .core.exceptions import ConfigurationError, DeclinedError, StackPilotError
from .core.logging_config import get_run_logger, setup_logging
from .core.settings import OrchestratorSettings
from .deployer.backend import load_backend
from .models.config import RunConfig
from .models.enums import Mode
from .runner import Runner
from .services.collector import LogCollector, NullCollector
from .services.notifier import LogNotifier


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stackpilot",
        description="Blue/green deployment orchestrator for autoscaling groups.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    parser.add_argument(
        "--backend",
        default=None,
        help="Cloud backend as 'module:factory' (default: STACKPILOT_BACKEND)",
    )
    parser.add_argument("--region", default=None, help="Default region of the stacks")
    parser.add_argument(
        "--auto-apply", action="store_true", help="Skip the confirmation prompt"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    for mode, help_text in (
        (Mode.DEPLOY, "Deploy a new version of the manifest's stacks"),
        (Mode.DELETE, "Delete every live version of the manifest's stacks"),
    ):
        sub = subparsers.add_parser(mode.value, help=help_text)
        sub.add_argument("--manifest", default=None, help="Path to the manifest file")
        sub.add_argument("--stack", default=None, help="Only run this stack")
        sub.add_argument("--timeout", type=int, default=None, help="Health timeout in minutes")
        sub.add_argument(
            "--polling-interval", type=int, default=None, help="Seconds between convergence checks"
        )
        sub.add_argument("--slack-off", action="store_true", help="Disable notifications")
        sub.add_argument("--disable-metrics", action="store_true", help="Skip metrics collection")
        if mode is Mode.DEPLOY:
            sub.add_argument(
                "--force-manifest-capacity",
                action="store_true",
                help="Use manifest capacity instead of the live version's",
            )

    status_parser = subparsers.add_parser(Mode.STATUS.value, help="Show the live group")
    status_parser.add_argument("application", help="Application (group name prefix)")

    update_parser = subparsers.add_parser(Mode.UPDATE.value, help="Resize the live group")
    update_parser.add_argument("application", help="Application (group name prefix)")
    update_parser.add_argument("--min", type=int, default=None, help="New minimum size")
    update_parser.add_argument("--max", type=int, default=None, help="New maximum size")
    update_parser.add_argument("--desired", type=int, default=None, help="New desired capacity")
    update_parser.add_argument("--timeout", type=int, default=None, help="Health timeout in minutes")
    update_parser.add_argument(
        "--polling-interval", type=int, default=None, help="Seconds between health checks"
    )

    return parser


def build_runner(
    mode: Mode, config: RunConfig, args: argparse.Namespace, settings: OrchestratorSettings
) -> Runner:
    """Load the manifest and collaborators a mode needs."""
    manifest = None
    if mode.needs_manifest:
        manifest = load_manifest(config.manifest)
        check_validation(manifest, config)
    elif not config.application:
        raise ConfigurationError(f"{mode.value} needs an application name")

    backend_path = args.backend or settings.backend
    if not backend_path:
        raise ConfigurationError("no backend configured, set --backend or STACKPILOT_BACKEND")
    backend = load_backend(backend_path, config)

    collector = NullCollector()
    if manifest is not None and manifest.metrics.enabled and not config.disable_metrics:
        collector = LogCollector(manifest.metrics)

    return Runner(
        config,
        manifest=manifest,
        backend=backend,
        collector=collector,
        notifier=LogNotifier(enabled=not config.slack_off),
    )


def main(argv: list[str] | None = None) -> int:
    """Entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)
    settings = load_settings()
    config = build_run_config(args, settings)
    setup_logging(config.log_level, settings.log_file)
    logger = get_run_logger(command=args.command)

    try:
        mode = Mode(args.command)
        runner = build_runner(mode, config, args, settings)
        asyncio.run(runner.run(mode))
    except DeclinedError as e:
        logger.warning("Run aborted by operator", reason=str(e))
        return 1
    except StackPilotError as e:
        logger.error("Run failed", error=str(e))
        return 1
    except Exception as e:
        logger.exception("Unexpected error during run", error=str(e))
        return 1

    return 0


def run() -> None:
    sys.exit(main())

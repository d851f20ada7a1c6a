"""Manifest and run configuration loading for stackpilot."""

import argparse
import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Any

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from ..constants import CAPACITY_NOT_SET
from ..models.config import RunConfig
from ..models.stack import Manifest
from .exceptions import ConfigurationError
from .settings import OrchestratorSettings

logger = structlog.get_logger()

# Environment variables that may be referenced from a manifest
ALLOWED_ENV_VARS = {
    "HOME",
    "USER",
    "AWS_REGION",
    "AWS_DEFAULT_REGION",
    "STACKPILOT_ENV",
    "STACKPILOT_AMI",
    "STACKPILOT_ACCOUNT",
}


def load_manifest(manifest_path: str | Path) -> Manifest:
    """Load and validate a manifest file.

    Args:
        manifest_path: Path to the YAML manifest

    Returns:
        Parsed manifest

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    path = Path(manifest_path)
    if not path.exists():
        raise ConfigurationError(f"manifest file does not exist: {path}")

    data = _load_yaml_manifest(path)
    try:
        manifest = Manifest(**data)
    except ValidationError as e:
        raise ConfigurationError(f"invalid manifest {path}: {e}") from e

    logger.debug("Manifest loaded", path=str(path), stacks=len(manifest.stacks))
    return manifest


def _load_yaml_manifest(path: Path) -> dict[str, Any]:
    """Load YAML manifest file."""
    try:
        content = path.read_text(encoding="utf-8")
        content = _expand_env_vars(content)
        loaded = yaml.safe_load(content)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"failed to load manifest from {path}: {e}") from e

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"manifest {path} must be a mapping")
    return loaded


def _expand_env_vars(content: str) -> str:
    """Expand ${VAR} references, restricted to an allowlist."""

    def replace_var(match: re.Match[str]) -> str:
        var_name = match.group(1)
        if var_name in ALLOWED_ENV_VARS:
            return os.getenv(var_name, match.group(0))
        logger.warning(
            "Environment variable not in allowlist, skipping expansion",
            variable=var_name,
        )
        return match.group(0)

    return re.sub(r"\$\{([^}]+)\}", replace_var, content)


def load_settings() -> OrchestratorSettings:
    """Load environment defaults (.env first)."""
    load_dotenv()
    return OrchestratorSettings()


def build_run_config(args: argparse.Namespace, settings: OrchestratorSettings) -> RunConfig:
    """Merge command line arguments over environment defaults."""
    # 0 is a value the operator passed; only a missing flag falls back
    timeout_minutes = getattr(args, "timeout", None)
    timeout = (
        timedelta(minutes=timeout_minutes) if timeout_minutes is not None else settings.timeout
    )
    interval_seconds = getattr(args, "polling_interval", None)
    polling_interval = (
        timedelta(seconds=interval_seconds)
        if interval_seconds is not None
        else settings.polling_interval
    )

    return RunConfig(
        manifest=getattr(args, "manifest", None) or settings.manifest,
        stack=getattr(args, "stack", None) or None,
        application=getattr(args, "application", None),
        region=getattr(args, "region", None) or "",
        timeout=timeout,
        polling_interval=polling_interval,
        min=_capacity_arg(args, "min"),
        max=_capacity_arg(args, "max"),
        desired=_capacity_arg(args, "desired"),
        force_manifest_capacity=getattr(args, "force_manifest_capacity", False),
        auto_apply=getattr(args, "auto_apply", False) or settings.auto_apply,
        slack_off=getattr(args, "slack_off", False),
        disable_metrics=getattr(args, "disable_metrics", False),
        log_level=getattr(args, "log_level", None) or settings.log_level,
    )


def _capacity_arg(args: argparse.Namespace, name: str) -> int:
    value = getattr(args, name, None)
    return CAPACITY_NOT_SET if value is None else value


def check_validation(manifest: Manifest, config: RunConfig) -> None:
    """Validate a manifest against the run configuration before any side effect.

    Raises:
        ConfigurationError: On the first invalid setting found
    """
    if config.timeout <= timedelta(0):
        raise ConfigurationError("timeout must be positive")

    if config.polling_interval <= timedelta(0):
        raise ConfigurationError("polling interval must be positive")

    if config.stack and not manifest.select_stacks(config.stack):
        raise ConfigurationError(f"stack does not exist in manifest: {config.stack}")

    for stack in manifest.select_stacks(config.stack):
        if not (stack.region or config.region):
            raise ConfigurationError(f"region is not specified for stack {stack.stack}")

        capacity = stack.capacity
        if capacity.min > capacity.max:
            raise ConfigurationError(
                f"minimum capacity cannot be larger than maximum: {stack.stack}"
            )
        if not capacity.min <= capacity.desired <= capacity.max:
            raise ConfigurationError(
                f"desired capacity must be between min and max: {stack.stack}"
            )

        if stack.api_test_enabled and manifest.find_template(stack.api_test_template) is None:
            raise ConfigurationError(
                f"api test template does not exist: {stack.api_test_template}"
            )

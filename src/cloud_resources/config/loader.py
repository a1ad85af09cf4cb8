"""Operator settings loading for cloud-resources."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from cloud_resources.config.models import OperatorSettings
from cloud_resources.core.logging import get_logger

logger = get_logger(__name__)

ENV_PREFIX = "CLOUD_RESOURCES_"
DEFAULT_SETTINGS_PATH = Path("cloud-resources.yaml")


def load_settings(settings_file: str = "") -> OperatorSettings:
    """Load operator settings from file and environment.

    Precedence is environment > settings file > built-in defaults.

    Args:
        settings_file: Path to a YAML settings file (optional)

    Returns:
        Loaded and validated settings

    Raises:
        ValueError: If the settings are invalid
        FileNotFoundError: If an explicit settings file doesn't exist
    """
    data: dict[str, Any] = {}

    if settings_file:
        data = _load_from_file(Path(settings_file))
    elif DEFAULT_SETTINGS_PATH.exists():
        data = _load_from_file(DEFAULT_SETTINGS_PATH)
    else:
        logger.debug("No settings file found, using defaults")

    _apply_env_overrides(data)

    try:
        return OperatorSettings.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid settings: {e}") from e


def _load_from_file(path: Path) -> dict[str, Any]:
    """Read the raw settings mapping from a YAML file.

    Args:
        path: Path to settings file

    Returns:
        Raw settings mapping

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If file is invalid YAML or not a mapping
    """
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    logger.info("Loading settings file", path=str(path))

    try:
        with path.open("r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in settings file: {e}") from e

    # Treat empty files as empty settings
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("Settings file must contain a YAML mapping")
    return data


def _apply_env_overrides(data: dict[str, Any]) -> None:
    """Overlay ``CLOUD_RESOURCES_*`` environment variables onto raw settings.

    Args:
        data: Raw settings mapping, modified in place
    """

    def get_str(key: str) -> str:
        return os.getenv(f"{ENV_PREFIX}{key.upper()}", "")

    for key, field in (
        ("backend", "backend"),
        ("config_namespace", "config-namespace"),
        ("provider_config_map", "provider-config-map"),
        ("aws_strategy_config_map", "aws-strategy-config-map"),
        ("aws_default_region", "aws-default-region"),
        ("openshift_strategy_config_map", "openshift-strategy-config-map"),
    ):
        value = get_str(key)
        if value:
            data[field] = value

    for key, field in (("poll_interval", "interval"), ("poll_timeout", "timeout")):
        value = get_str(key)
        if value:
            data.setdefault("poll", {})[field] = value

    verbose = get_str("verbose")
    if verbose:
        data["verbose"] = verbose.lower() in ("1", "true", "yes")

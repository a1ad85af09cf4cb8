"""Strategy command implementation."""

import typer

from cloud_resources.config.loader import load_settings
from cloud_resources.config.manager import ConfigMapConfigManager
from cloud_resources.config.models import ResourceType
from cloud_resources.core.logging import get_logger
from cloud_resources.core.manager import create_object_client

logger = get_logger(__name__)


async def run_strategy(settings_file: str, deployment_type: str) -> None:
    """Print the provider mapping of a deployment type.

    Args:
        settings_file: Path to operator settings file
        deployment_type: Deployment type to resolve
    """
    settings = load_settings(settings_file)
    client = create_object_client(settings)

    config_manager = ConfigMapConfigManager(
        client, settings.provider_config_map, settings.config_namespace
    )
    mapping = await config_manager.get_strategy_mapping_for_deployment_type(deployment_type)
    logger.debug("Resolved strategy mapping", deployment_type=deployment_type)

    typer.echo(f"Deployment type: {deployment_type}")
    for resource_type in ResourceType:
        typer.echo(f"  {resource_type.value}: {mapping.provider_for(resource_type)}")

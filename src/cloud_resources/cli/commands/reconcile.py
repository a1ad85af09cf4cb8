"""Create and delete command implementations."""

import typer

from cloud_resources.cluster.client import ObjectClient
from cloud_resources.cluster.models import ResourceRequest
from cloud_resources.config.loader import load_settings
from cloud_resources.core.errors import ObjectConflictError, ObjectNotFoundError
from cloud_resources.core.logging import get_logger
from cloud_resources.core.manager import ReconcileResult, ResourceManager

logger = get_logger(__name__)


async def _get_or_create_request(
    client: ObjectClient, kind: str, name: str, namespace: str, tier: str
) -> ResourceRequest:
    try:
        return await client.get(ResourceRequest, kind, name, namespace)
    except ObjectNotFoundError:
        pass

    request = ResourceRequest.new(kind, name, namespace, tier)
    try:
        await client.create(request)
        logger.info("Created resource request", kind=kind, name=name, namespace=namespace)
    except ObjectConflictError:
        logger.debug("Resource request created concurrently", kind=kind, name=name)
    return await client.get(ResourceRequest, kind, name, namespace)


def _print_result(result: ReconcileResult) -> None:
    typer.echo(f"Phase: {result.phase.value}")
    typer.echo(f"Provider: {result.provider}")
    typer.echo(f"Message: {result.message}")
    if result.data:
        # Values are secrets; only the keys are shown
        typer.echo(f"Deployment details: {', '.join(sorted(result.data))}")
    if result.requeue_after:
        typer.echo(f"Reconcile again in: {result.requeue_after.total_seconds():g}s")


async def run_create(settings_file: str, kind: str, name: str, namespace: str, tier: str) -> None:
    """Reconcile creation of a resource request, creating the request if needed.

    Args:
        settings_file: Path to operator settings file
        kind: Resource request kind
        name: Resource request name
        namespace: Resource request namespace
        tier: Deployment type of a newly created request
    """
    settings = load_settings(settings_file)
    manager = ResourceManager.from_settings(settings)

    request = await _get_or_create_request(manager.client, kind, name, namespace, tier)
    result = await manager.reconcile(request)
    _print_result(result)


async def run_delete(settings_file: str, kind: str, name: str, namespace: str) -> None:
    """Request deletion of a resource request and reconcile the teardown.

    Args:
        settings_file: Path to operator settings file
        kind: Resource request kind
        name: Resource request name
        namespace: Resource request namespace
    """
    settings = load_settings(settings_file)
    manager = ResourceManager.from_settings(settings)

    try:
        await manager.client.delete(kind, name, namespace)
        request = await manager.client.get(ResourceRequest, kind, name, namespace)
    except ObjectNotFoundError:
        typer.echo(f"{kind} {namespace}/{name} does not exist or is already deleted")
        return

    result = await manager.reconcile(request)
    _print_result(result)

"""Main CLI application for cloud-resources."""

import asyncio
from collections.abc import Coroutine
from typing import Annotated, Any

import typer

from cloud_resources.cli.commands.reconcile import run_create, run_delete
from cloud_resources.cli.commands.strategy import run_strategy
from cloud_resources.cluster.models import KIND_BLOB_STORAGE, RESOURCE_REQUEST_KINDS
from cloud_resources.config.presets import MANAGED_DEPLOYMENT_TYPE
from cloud_resources.core.errors import CloudResourcesError
from cloud_resources.core.logging import setup_logging

app = typer.Typer(
    name="cloud-resources",
    help="Provision and tear down cloud-backed resources for resource requests",
    no_args_is_help=True,
)

SettingsOption = Annotated[
    str,
    typer.Option("--settings", "-s", help="Path to operator settings file"),
]


def _validate_kind(kind: str) -> None:
    if kind not in RESOURCE_REQUEST_KINDS:
        typer.echo(
            f"Error: Unknown kind '{kind}'. Available kinds: {', '.join(RESOURCE_REQUEST_KINDS)}",
            err=True,
        )
        raise typer.Exit(code=1)


def _run(coro: Coroutine[Any, Any, None]) -> None:
    try:
        asyncio.run(coro)
    except CloudResourcesError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    """cloud-resources - cloud resource provisioning for resource requests."""
    setup_logging(verbose=verbose)


@app.command()
def strategy(
    deployment_type: Annotated[
        str, typer.Argument(help="Deployment type, e.g. 'managed' or 'workshop'")
    ] = MANAGED_DEPLOYMENT_TYPE,
    settings: SettingsOption = "",
) -> None:
    """Show which provider serves each resource kind for a deployment type."""
    _run(run_strategy(settings, deployment_type))


@app.command()
def create(
    name: Annotated[str, typer.Argument(help="Resource request name")],
    kind: Annotated[
        str, typer.Option("--kind", "-k", help="Resource request kind")
    ] = KIND_BLOB_STORAGE,
    namespace: Annotated[
        str, typer.Option("--namespace", "-n", help="Resource request namespace")
    ] = "default",
    tier: Annotated[
        str, typer.Option("--tier", "-t", help="Deployment type of the request")
    ] = MANAGED_DEPLOYMENT_TYPE,
    settings: SettingsOption = "",
) -> None:
    """Create (or converge) the resource behind a resource request."""
    _validate_kind(kind)
    _run(run_create(settings, kind, name, namespace, tier))


@app.command()
def delete(
    name: Annotated[str, typer.Argument(help="Resource request name")],
    kind: Annotated[
        str, typer.Option("--kind", "-k", help="Resource request kind")
    ] = KIND_BLOB_STORAGE,
    namespace: Annotated[
        str, typer.Option("--namespace", "-n", help="Resource request namespace")
    ] = "default",
    settings: SettingsOption = "",
) -> None:
    """Tear down the resource behind a resource request."""
    _validate_kind(kind)
    _run(run_delete(settings, kind, name, namespace))


if __name__ == "__main__":
    app()

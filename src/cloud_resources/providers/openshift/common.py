"""Constants and helpers shared by the OpenShift providers."""

from collections.abc import Callable
from datetime import timedelta
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from cloud_resources.cloud.base import CloudClient
from cloud_resources.config.models import StrategyConfig
from cloud_resources.config.presets import OPENSHIFT_DEPLOYMENT_STRATEGY
from cloud_resources.core.errors import ConfigDecodeError

DEFAULT_FINALIZER = "cloud-resources-operator.integreatly.org/openshift-finalizer"

PROVIDER_NAME = OPENSHIFT_DEPLOYMENT_STRATEGY

RECONCILE_TIME = timedelta(seconds=30)

# Builds a cloud client for the namespace a request lives in
NamespaceClientFactory = Callable[[str], CloudClient]


class WorkloadOptions(BaseModel):
    """Overrides an in-cluster workload strategy may set; unset fields keep defaults."""

    image: str | None = None
    port: int | None = Field(None, gt=0, lt=65536)
    user: str | None = None
    database: str | None = None


def decode_workload_strategy(strategy: StrategyConfig, description: str) -> WorkloadOptions:
    """Decode and validate the create strategy payload of an in-cluster workload.

    Raises:
        ConfigDecodeError: If the payload is not a JSON object or a field has
            the wrong type
    """
    try:
        return WorkloadOptions.model_validate(strategy.decode_strategy())
    except ValidationError as e:
        raise ConfigDecodeError(f"invalid {description} configuration: {e}") from e
    except ValueError as e:
        raise ConfigDecodeError(f"failed to unmarshal {description} configuration: {e}") from e


def workload_spec(
    name: str,
    image: str,
    port: int,
    env: list[dict[str, Any]],
    container_name: str,
) -> dict[str, Any]:
    """Build the service and single-replica deployment specs of a workload.

    Args:
        name: Workload name, shared by the deployment and the service
        image: Container image
        port: Port the container listens on and the service exposes
        env: Container environment
        container_name: Name of the container

    Returns:
        Create request for the deployment cloud client
    """
    selector = {"app": name}
    return {
        "name": name,
        "service": {
            "selector": selector,
            "ports": [{"name": container_name, "port": port, "targetPort": port}],
        },
        "deployment": {
            "replicas": 1,
            "selector": {"matchLabels": selector},
            "template": {
                "metadata": {"labels": selector},
                "spec": {
                    "containers": [
                        {
                            "name": container_name,
                            "image": image,
                            "ports": [{"containerPort": port}],
                            "env": env,
                        }
                    ]
                },
            },
        },
    }

"""In-cluster workloads exposed through the cloud client capability.

A "remote resource" here is a deployment plus the service in front of it,
both written through the object store.
"""

from typing import Any

from cloud_resources.cloud.base import RemoteResource
from cloud_resources.cluster.client import ObjectClient
from cloud_resources.cluster.models import KIND_DEPLOYMENT, KIND_SERVICE, KubeObject
from cloud_resources.core.errors import ObjectConflictError, ObjectNotFoundError
from cloud_resources.core.logging import get_logger
from cloud_resources.core.poll import PollPolicy, poll_until

logger = get_logger(__name__)

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "cloud-resources"

STATUS_AVAILABLE = "available"
STATUS_CREATING = "creating"


def is_object_not_found(error: BaseException) -> bool:
    """NotFoundPolicy recognising a missing object in the object store."""
    return isinstance(error, ObjectNotFoundError)


def is_object_already_exists(error: BaseException) -> bool:
    """AlreadyExistsPolicy recognising an object store name collision."""
    return isinstance(error, ObjectConflictError)


def service_host(name: str, namespace: str) -> str:
    """Cluster DNS name of a service."""
    return f"{name}.{namespace}.svc.cluster.local"


class DeploymentCloudClient:
    """CloudClient managing deployment/service pairs in one namespace."""

    def __init__(
        self, client: ObjectClient, namespace: str, poll: PollPolicy | None = None
    ) -> None:
        """Initialize the client.

        Args:
            client: Object store to write deployments and services to
            namespace: Namespace the workloads live in
            poll: Bounded wait for deletion
        """
        self.client = client
        self.namespace = namespace
        self.poll = poll or PollPolicy()

    async def list_resources(self) -> list[RemoteResource]:
        """List deployments managed by cloud-resources."""
        deployments = await self.client.list(
            KIND_DEPLOYMENT, self.namespace, {MANAGED_BY_LABEL: MANAGED_BY_VALUE}
        )
        return [self._to_resource(d) for d in deployments]

    async def create_resource(self, spec: dict[str, Any]) -> RemoteResource:
        """Create the service and deployment described by ``spec``.

        ``spec`` holds the workload ``name`` and the ``service`` and
        ``deployment`` object specs.
        """
        name = spec["name"]

        service = self._object(KIND_SERVICE, name, spec["service"])
        try:
            await self.client.create(service)
        except ObjectConflictError:
            logger.debug("Service already exists", name=name, namespace=self.namespace)

        deployment = self._object(KIND_DEPLOYMENT, name, spec["deployment"])
        await self.client.create(deployment)
        logger.info("Created deployment", name=name, namespace=self.namespace)
        stored = await self.client.get(KubeObject, KIND_DEPLOYMENT, name, self.namespace)
        return self._to_resource(stored)

    async def delete_resource(self, identifier: str) -> None:
        """Delete the service and the deployment.

        Raises:
            ObjectNotFoundError: If the deployment does not exist
        """
        try:
            await self.client.delete(KIND_SERVICE, identifier, self.namespace)
        except ObjectNotFoundError:
            logger.debug("Service already removed", name=identifier)
        await self.client.delete(KIND_DEPLOYMENT, identifier, self.namespace)

    async def wait_until_absent(self, identifier: str) -> None:
        """Wait for the deployment to disappear.

        Raises:
            PollTimeoutError: If the deployment still exists at the ceiling
        """

        async def _gone() -> bool | None:
            try:
                await self.client.get(KubeObject, KIND_DEPLOYMENT, identifier, self.namespace)
            except ObjectNotFoundError:
                return True
            return None

        await poll_until(_gone, f"deployment {self.namespace}/{identifier} deletion", self.poll)

    def _object(self, kind: str, name: str, spec: dict[str, Any]) -> KubeObject:
        obj = KubeObject.new(kind, name, self.namespace, spec=spec)
        obj.metadata.labels = {MANAGED_BY_LABEL: MANAGED_BY_VALUE, "app": name}
        return obj

    def _to_resource(self, deployment: KubeObject) -> RemoteResource:
        name = deployment.metadata.name
        available = deployment.status.get("availableReplicas") or 0
        return RemoteResource(
            identifier=name,
            status=STATUS_AVAILABLE if available > 0 else STATUS_CREATING,
            attributes={"host": service_host(name, self.namespace)},
        )

"""OpenShift redis provider running the cache in-cluster."""

from datetime import timedelta

from cloud_resources.cloud.openshift import (
    STATUS_AVAILABLE,
    DeploymentCloudClient,
    is_object_already_exists,
    is_object_not_found,
    service_host,
)
from cloud_resources.cluster.client import ObjectClient
from cloud_resources.cluster.models import ResourceRequest
from cloud_resources.config.manager import ProviderConfigManager
from cloud_resources.core.logging import get_logger
from cloud_resources.core.poll import PollPolicy
from cloud_resources.providers.base import (
    RedisDeploymentDetails,
    RedisInstance,
    StatusMessage,
    reconcile_time_for,
)
from cloud_resources.providers.openshift.common import (
    DEFAULT_FINALIZER,
    PROVIDER_NAME,
    RECONCILE_TIME,
    NamespaceClientFactory,
    decode_workload_strategy,
    workload_spec,
)
from cloud_resources.providers.workflow import ReconcileWorkflow, request_context

logger = get_logger(__name__)

DEFAULT_IMAGE = "registry.redhat.io/rhscl/redis-32-rhel7"
DEFAULT_PORT = 6379


class OpenShiftRedisProvider:
    """RedisProvider deploying redis next to the workload."""

    def __init__(
        self,
        client: ObjectClient,
        config_manager: ProviderConfigManager,
        cloud_factory: NamespaceClientFactory | None = None,
        poll: PollPolicy | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            client: Object store holding requests and workloads
            config_manager: Reads the OpenShift redis strategy
            cloud_factory: Builds the workload client for a namespace
            poll: Bounded wait for listing and deletion
        """
        self.client = client
        self.config_manager = config_manager
        self.poll = poll or PollPolicy()
        self.cloud_factory = cloud_factory or (
            lambda namespace: DeploymentCloudClient(client, namespace, self.poll)
        )
        self.log = logger.bind(provider="openshift_redis")
        self.workflow = ReconcileWorkflow(
            client,
            DEFAULT_FINALIZER,
            self.poll,
            is_object_not_found,
            is_object_already_exists,
            self.log,
        )

    def get_name(self) -> str:
        """Get the provider name."""
        return PROVIDER_NAME

    def supports_strategy(self, strategy: str) -> bool:
        """Check whether this provider serves ``strategy``."""
        return strategy == PROVIDER_NAME

    def get_reconcile_time(self, request: ResourceRequest) -> timedelta:
        """Get the interval before the next reconciliation."""
        return reconcile_time_for(request, RECONCILE_TIME)

    async def create_redis(
        self, request: ResourceRequest
    ) -> tuple[RedisInstance | None, StatusMessage]:
        """Deploy redis, returning None until a replica is available.

        Raises:
            CloudResourcesError: If any workflow step fails
        """
        with request_context(request):
            self.log.info("Creating redis", request=request.name)
            await self.workflow.attach_finalizer(request)

            strategy = await self.config_manager.read_redis_strategy(request.tier)
            options = decode_workload_strategy(strategy, "openshift redis")
            port = options.port or DEFAULT_PORT
            spec = workload_spec(
                request.name, options.image or DEFAULT_IMAGE, port, [], "redis"
            )

            workloads = self.cloud_factory(request.namespace)
            resource, _ = await self.workflow.ensure_created(
                workloads, request.name, spec, "redis deployment"
            )

        if resource.status != STATUS_AVAILABLE:
            return None, f"redis deployment {request.name} is {resource.status}"

        details = RedisDeploymentDetails(
            uri=service_host(request.name, request.namespace),
            port=port,
        )
        self.log.info("Redis creation finished", request=request.name)
        return RedisInstance(deployment_details=details), (
            f"redis deployment {request.name} available"
        )

    async def delete_redis(self, request: ResourceRequest) -> StatusMessage:
        """Remove the redis workload.

        Raises:
            CloudResourcesError: If any workflow step fails
        """
        with request_context(request):
            self.log.info("Deleting redis", request=request.name)
            await self.config_manager.read_redis_strategy(request.tier)

            workloads = self.cloud_factory(request.namespace)
            await self.workflow.ensure_deleted(workloads, request.name, "redis deployment")
            await self.workflow.release_finalizer(request)

        self.log.info("Redis deletion finished", request=request.name)
        return f"deleted redis deployment {request.name}"

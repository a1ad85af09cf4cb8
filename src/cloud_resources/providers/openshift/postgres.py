"""OpenShift postgres provider running the database in-cluster."""

from datetime import timedelta
from typing import Any

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
    PostgresDeploymentDetails,
    PostgresInstance,
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
from cloud_resources.providers.secrets import (
    SECRET_DATABASE_KEY,
    SECRET_PASSWORD_KEY,
    SECRET_USER_KEY,
    delete_secret,
    reconcile_password_secret,
)
from cloud_resources.providers.workflow import ReconcileWorkflow, request_context

logger = get_logger(__name__)

DEFAULT_IMAGE = "registry.redhat.io/rhscl/postgresql-10-rhel7"
DEFAULT_USERNAME = "user"
DEFAULT_DATABASE = "postgres"
DEFAULT_PORT = 5432


def credentials_secret_name(request: ResourceRequest) -> str:
    """Name of the secret holding the in-cluster database login."""
    return f"{request.name}-postgres-credentials"


def _secret_env(variable: str, secret: str, key: str) -> dict[str, Any]:
    return {"name": variable, "valueFrom": {"secretKeyRef": {"name": secret, "key": key}}}


class OpenShiftPostgresProvider:
    """PostgresProvider deploying postgres next to the workload."""

    def __init__(
        self,
        client: ObjectClient,
        config_manager: ProviderConfigManager,
        cloud_factory: NamespaceClientFactory | None = None,
        poll: PollPolicy | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            client: Object store holding requests, secrets and workloads
            config_manager: Reads the OpenShift postgres strategy
            cloud_factory: Builds the workload client for a namespace
            poll: Bounded wait for listing and deletion
        """
        self.client = client
        self.config_manager = config_manager
        self.poll = poll or PollPolicy()
        self.cloud_factory = cloud_factory or (
            lambda namespace: DeploymentCloudClient(client, namespace, self.poll)
        )
        self.log = logger.bind(provider="openshift_postgres")
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

    async def create_postgres(
        self, request: ResourceRequest
    ) -> tuple[PostgresInstance | None, StatusMessage]:
        """Deploy postgres, returning None until a replica is available.

        Raises:
            CloudResourcesError: If any workflow step fails
        """
        with request_context(request):
            self.log.info("Creating postgres", request=request.name)
            await self.workflow.attach_finalizer(request)

            strategy = await self.config_manager.read_postgres_strategy(request.tier)
            options = decode_workload_strategy(strategy, "openshift postgres")
            port = options.port or DEFAULT_PORT

            secret_name = credentials_secret_name(request)
            secret = await reconcile_password_secret(
                self.client,
                secret_name,
                request.namespace,
                options.user or DEFAULT_USERNAME,
                options.database or DEFAULT_DATABASE,
            )

            env = [
                _secret_env("POSTGRESQL_USER", secret_name, SECRET_USER_KEY),
                _secret_env("POSTGRESQL_PASSWORD", secret_name, SECRET_PASSWORD_KEY),
                _secret_env("POSTGRESQL_DATABASE", secret_name, SECRET_DATABASE_KEY),
            ]
            spec = workload_spec(
                request.name, options.image or DEFAULT_IMAGE, port, env, "postgres"
            )

            workloads = self.cloud_factory(request.namespace)
            resource, _ = await self.workflow.ensure_created(
                workloads, request.name, spec, "postgres deployment"
            )

        if resource.status != STATUS_AVAILABLE:
            return None, f"postgres deployment {request.name} is {resource.status}"

        details = PostgresDeploymentDetails(
            username=secret.data[SECRET_USER_KEY],
            password=secret.data[SECRET_PASSWORD_KEY],
            host=service_host(request.name, request.namespace),
            database=secret.data[SECRET_DATABASE_KEY],
            port=port,
        )
        self.log.info("Postgres creation finished", request=request.name)
        return PostgresInstance(deployment_details=details), (
            f"postgres deployment {request.name} available"
        )

    async def delete_postgres(self, request: ResourceRequest) -> StatusMessage:
        """Remove the postgres workload and its credentials secret.

        Raises:
            CloudResourcesError: If any workflow step fails
        """
        with request_context(request):
            self.log.info("Deleting postgres", request=request.name)
            await self.config_manager.read_postgres_strategy(request.tier)

            workloads = self.cloud_factory(request.namespace)
            await self.workflow.ensure_deleted(workloads, request.name, "postgres deployment")

            await delete_secret(self.client, credentials_secret_name(request), request.namespace)
            await self.workflow.release_finalizer(request)

        self.log.info("Postgres deletion finished", request=request.name)
        return f"deleted postgres deployment {request.name}"


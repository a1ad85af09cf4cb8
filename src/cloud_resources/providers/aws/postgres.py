"""AWS RDS postgres provider."""

from datetime import timedelta
from typing import Any

from cloud_resources.cloud.aws import RDSInstanceClient, is_aws_already_exists, is_aws_not_found
from cloud_resources.cloud.base import AlreadyExistsPolicy, NotFoundPolicy
from cloud_resources.cluster.client import ObjectClient
from cloud_resources.cluster.models import ResourceRequest
from cloud_resources.config.manager import ProviderConfigManager
from cloud_resources.config.models import StrategyConfig
from cloud_resources.core.logging import get_logger
from cloud_resources.core.poll import PollPolicy
from cloud_resources.credentials.base import CredentialManager
from cloud_resources.providers.aws.common import (
    DEFAULT_FINALIZER,
    PROVIDER_NAME,
    RECONCILE_TIME_COMPLETE,
    RECONCILE_TIME_IN_PROGRESS,
    STATUS_AVAILABLE,
    CloudFactory,
    decode_create_strategy,
    default_resource_name,
    sanitize_identifier,
    session_client_factory,
)
from cloud_resources.providers.base import (
    PostgresDeploymentDetails,
    PostgresInstance,
    StatusMessage,
    reconcile_time_for,
)
from cloud_resources.providers.secrets import (
    SECRET_PASSWORD_KEY,
    SECRET_USER_KEY,
    delete_secret,
    reconcile_password_secret,
)
from cloud_resources.providers.workflow import ReconcileWorkflow, request_context

logger = get_logger(__name__)

DEFAULT_ENGINE = "postgres"
DEFAULT_ENGINE_VERSION = "10.6"
DEFAULT_INSTANCE_CLASS = "db.t2.small"
DEFAULT_ALLOCATED_STORAGE = 20
DEFAULT_USERNAME = "postgres"
DEFAULT_DATABASE = "postgres"
DEFAULT_PORT = 5432

# RDS instance identifiers are at most 63 characters
MAX_IDENTIFIER_LENGTH = 63


def password_secret_name(request: ResourceRequest) -> str:
    """Name of the secret holding the generated master password."""
    return f"{request.name}-aws-rds-credentials"


class AWSPostgresProvider:
    """PostgresProvider creating RDS database instances."""

    def __init__(
        self,
        client: ObjectClient,
        config_manager: ProviderConfigManager,
        credential_manager: CredentialManager,
        cloud_factory: CloudFactory | None = None,
        poll: PollPolicy | None = None,
        is_not_found: NotFoundPolicy = is_aws_not_found,
        is_already_exists: AlreadyExistsPolicy = is_aws_already_exists,
    ) -> None:
        """Initialize the provider.

        Args:
            client: Object store holding the requests and password secrets
            config_manager: Reads the AWS postgres strategy
            credential_manager: Issues provider credentials
            cloud_factory: Builds the RDS client (boto3 by default)
            poll: Bounded wait for listing and deletion
            is_not_found: Classifies "instance does not exist" delete errors
            is_already_exists: Classifies "created concurrently" create errors
        """
        self.client = client
        self.config_manager = config_manager
        self.credential_manager = credential_manager
        self.poll = poll or PollPolicy()
        self.cloud_factory = cloud_factory or session_client_factory(RDSInstanceClient, self.poll)
        self.log = logger.bind(provider="aws_rds")
        self.workflow = ReconcileWorkflow(
            client, DEFAULT_FINALIZER, self.poll, is_not_found, is_already_exists, self.log
        )

    def get_name(self) -> str:
        """Get the provider name."""
        return PROVIDER_NAME

    def supports_strategy(self, strategy: str) -> bool:
        """Check whether this provider serves ``strategy``."""
        return strategy == PROVIDER_NAME

    def get_reconcile_time(self, request: ResourceRequest) -> timedelta:
        """Get the interval before the next reconciliation."""
        return reconcile_time_for(request, RECONCILE_TIME_COMPLETE, RECONCILE_TIME_IN_PROGRESS)

    async def create_postgres(
        self, request: ResourceRequest
    ) -> tuple[PostgresInstance | None, StatusMessage]:
        """Create an RDS instance, returning None until it is available.

        The master password is generated on the first call and stored in a
        secret; later calls reuse it.

        Raises:
            CloudResourcesError: If any workflow step fails
        """
        with request_context(request):
            self.log.info("Creating postgres", request=request.name)
            await self.workflow.attach_finalizer(request)

            instance_config, strategy = await self._instance_config(request)
            identifier = instance_config["DBInstanceIdentifier"]

            secret = await reconcile_password_secret(
                self.client,
                password_secret_name(request),
                request.namespace,
                instance_config["MasterUsername"],
                instance_config["DBName"],
            )
            password = secret.data[SECRET_PASSWORD_KEY]
            instance_config["MasterUserPassword"] = password

            provider_creds = await self.credential_manager.reconcile_provider_credentials(
                request.namespace
            )
            rds = self.cloud_factory(provider_creds, strategy.region)
            resource, _ = await self.workflow.ensure_created(
                rds, identifier, instance_config, "rds instance"
            )

        if resource.status != STATUS_AVAILABLE:
            self.log.info("RDS instance not yet available", identifier=identifier)
            state = resource.status or "creating"
            return None, f"rds instance {identifier} is {state}"

        details = PostgresDeploymentDetails(
            username=resource.attributes.get("username") or secret.data[SECRET_USER_KEY],
            password=password,
            host=resource.attributes.get("host", ""),
            database=resource.attributes.get("database") or instance_config["DBName"],
            port=int(resource.attributes.get("port") or DEFAULT_PORT),
        )
        self.log.info("Postgres creation finished", request=request.name, identifier=identifier)
        return PostgresInstance(deployment_details=details), f"rds instance {identifier} available"

    async def delete_postgres(self, request: ResourceRequest) -> StatusMessage:
        """Delete the RDS instance and its password secret.

        Raises:
            CloudResourcesError: If any workflow step fails
        """
        with request_context(request):
            self.log.info("Deleting postgres", request=request.name)
            instance_config, strategy = await self._instance_config(request)
            identifier = instance_config["DBInstanceIdentifier"]

            provider_creds = await self.credential_manager.reconcile_provider_credentials(
                request.namespace
            )
            rds = self.cloud_factory(provider_creds, strategy.region)
            await self.workflow.ensure_deleted(rds, identifier, "rds instance")

            await delete_secret(self.client, password_secret_name(request), request.namespace)
            await self.workflow.release_finalizer(request)

        self.log.info("Postgres deletion finished", request=request.name, identifier=identifier)
        return f"deleted rds instance {identifier}"

    async def _instance_config(
        self, request: ResourceRequest
    ) -> tuple[dict[str, Any], StrategyConfig]:
        strategy = await self.config_manager.read_postgres_strategy(request.tier)
        config = decode_create_strategy(strategy, "aws rds", "DBInstanceIdentifier")
        config.setdefault(
            "DBInstanceIdentifier",
            sanitize_identifier(default_resource_name(request), MAX_IDENTIFIER_LENGTH),
        )
        config.setdefault("Engine", DEFAULT_ENGINE)
        config.setdefault("EngineVersion", DEFAULT_ENGINE_VERSION)
        config.setdefault("DBInstanceClass", DEFAULT_INSTANCE_CLASS)
        config.setdefault("AllocatedStorage", DEFAULT_ALLOCATED_STORAGE)
        config.setdefault("MasterUsername", DEFAULT_USERNAME)
        config.setdefault("DBName", DEFAULT_DATABASE)
        config.setdefault("Port", DEFAULT_PORT)
        return config, strategy

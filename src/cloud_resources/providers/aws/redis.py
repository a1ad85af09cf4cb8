"""AWS ElastiCache redis provider."""

from datetime import timedelta
from typing import Any

from cloud_resources.cloud.aws import ElastiCacheClient, is_aws_already_exists, is_aws_not_found
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
    RedisDeploymentDetails,
    RedisInstance,
    StatusMessage,
    reconcile_time_for,
)
from cloud_resources.providers.workflow import ReconcileWorkflow, request_context

logger = get_logger(__name__)

DEFAULT_ENGINE = "redis"
DEFAULT_NODE_TYPE = "cache.t2.micro"
DEFAULT_NUM_CACHE_CLUSTERS = 1
DEFAULT_PORT = 6379

# ElastiCache replication group ids are at most 40 characters
MAX_IDENTIFIER_LENGTH = 40


class AWSRedisProvider:
    """RedisProvider creating ElastiCache replication groups."""

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
            client: Object store holding the requests
            config_manager: Reads the AWS redis strategy
            credential_manager: Issues provider credentials
            cloud_factory: Builds the ElastiCache client (boto3 by default)
            poll: Bounded wait for listing and deletion
            is_not_found: Classifies "group does not exist" delete errors
            is_already_exists: Classifies "created concurrently" create errors
        """
        self.client = client
        self.config_manager = config_manager
        self.credential_manager = credential_manager
        self.poll = poll or PollPolicy()
        self.cloud_factory = cloud_factory or session_client_factory(ElastiCacheClient, self.poll)
        self.log = logger.bind(provider="aws_elasticache")
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

    async def create_redis(
        self, request: ResourceRequest
    ) -> tuple[RedisInstance | None, StatusMessage]:
        """Create a replication group, returning None until it is available.

        Raises:
            CloudResourcesError: If any workflow step fails
        """
        with request_context(request):
            self.log.info("Creating redis", request=request.name)
            await self.workflow.attach_finalizer(request)

            group_config, strategy = await self._group_config(request)
            identifier = group_config["ReplicationGroupId"]

            provider_creds = await self.credential_manager.reconcile_provider_credentials(
                request.namespace
            )
            elasticache = self.cloud_factory(provider_creds, strategy.region)
            resource, _ = await self.workflow.ensure_created(
                elasticache, identifier, group_config, "elasticache replication group"
            )

        if resource.status != STATUS_AVAILABLE:
            self.log.info("Replication group not yet available", identifier=identifier)
            state = resource.status or "creating"
            return None, f"elasticache replication group {identifier} is {state}"

        details = RedisDeploymentDetails(
            uri=resource.attributes.get("host", ""),
            port=int(resource.attributes.get("port") or DEFAULT_PORT),
        )
        self.log.info("Redis creation finished", request=request.name, identifier=identifier)
        return RedisInstance(deployment_details=details), (
            f"elasticache replication group {identifier} available"
        )

    async def delete_redis(self, request: ResourceRequest) -> StatusMessage:
        """Delete the replication group.

        Raises:
            CloudResourcesError: If any workflow step fails
        """
        with request_context(request):
            self.log.info("Deleting redis", request=request.name)
            group_config, strategy = await self._group_config(request)
            identifier = group_config["ReplicationGroupId"]

            provider_creds = await self.credential_manager.reconcile_provider_credentials(
                request.namespace
            )
            elasticache = self.cloud_factory(provider_creds, strategy.region)
            await self.workflow.ensure_deleted(
                elasticache, identifier, "elasticache replication group"
            )
            await self.workflow.release_finalizer(request)

        self.log.info("Redis deletion finished", request=request.name, identifier=identifier)
        return f"deleted elasticache replication group {identifier}"

    async def _group_config(
        self, request: ResourceRequest
    ) -> tuple[dict[str, Any], StrategyConfig]:
        strategy = await self.config_manager.read_redis_strategy(request.tier)
        config = decode_create_strategy(strategy, "aws elasticache", "ReplicationGroupId")
        config.setdefault(
            "ReplicationGroupId",
            sanitize_identifier(default_resource_name(request), MAX_IDENTIFIER_LENGTH),
        )
        config.setdefault(
            "ReplicationGroupDescription",
            f"redis for {request.namespace}/{request.name}",
        )
        config.setdefault("Engine", DEFAULT_ENGINE)
        config.setdefault("CacheNodeType", DEFAULT_NODE_TYPE)
        config.setdefault("NumCacheClusters", DEFAULT_NUM_CACHE_CLUSTERS)
        config.setdefault("Port", DEFAULT_PORT)
        return config, strategy

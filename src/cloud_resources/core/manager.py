"""Resource manager dispatching resource requests to their provider."""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from cloud_resources.cluster.client import ObjectClient
from cloud_resources.cluster.kubernetes import KubernetesObjectClient
from cloud_resources.cluster.memory import MemoryObjectClient
from cloud_resources.cluster.models import Phase, ResourceRequest
from cloud_resources.config.manager import ConfigManager, ConfigMapConfigManager
from cloud_resources.config.models import Backend, OperatorSettings, ResourceType
from cloud_resources.core.errors import CloudResourcesError
from cloud_resources.core.logging import get_logger
from cloud_resources.credentials.base import CredentialManager
from cloud_resources.providers.factory import (
    RESOURCE_TYPE_FOR_KIND,
    Provider,
    ProviderRegistry,
    build_registry,
)
from cloud_resources.providers.workflow import request_context

logger = get_logger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation.

    Attributes:
        phase: Phase written to the request status
        message: Status message returned by the provider
        provider: Name of the provider that handled the request
        requeue_after: When the request should be reconciled again
        data: Deployment details of a completed create, for the caller to store
    """

    phase: Phase
    message: str
    provider: str
    requeue_after: timedelta
    data: dict[str, bytes] = field(default_factory=dict)


def create_object_client(settings: OperatorSettings) -> ObjectClient:
    """Create the object store selected in the settings.

    Args:
        settings: Operator settings

    Returns:
        Object client for the configured backend
    """
    if settings.backend == Backend.MEMORY:
        logger.debug("Using in-memory object store")
        return MemoryObjectClient()
    return KubernetesObjectClient()


class ResourceManager:
    """ResourceManager resolves the provider of a request and runs it.

    The deployment strategy mapping is re-read on every call. Create writes
    the resulting phase and message to the request status; errors mark the
    request failed and are raised again for the trigger to retry later.
    """

    def __init__(
        self,
        client: ObjectClient,
        config_manager: ConfigManager,
        registry: ProviderRegistry,
    ) -> None:
        """Initialize the ResourceManager.

        Args:
            client: Object store holding the requests
            config_manager: Resolves the provider per resource kind
            registry: Providers by resource kind and name
        """
        self.client = client
        self.config_manager = config_manager
        self.registry = registry

    @classmethod
    def from_settings(
        cls,
        settings: OperatorSettings,
        client: ObjectClient | None = None,
        credential_manager: CredentialManager | None = None,
    ) -> "ResourceManager":
        """Build a manager and its providers from operator settings.

        Args:
            settings: Operator settings
            client: Object store (created from the settings if omitted)
            credential_manager: Credential manager for the AWS providers

        Returns:
            Configured resource manager
        """
        client = client or create_object_client(settings)
        config_manager = ConfigMapConfigManager(
            client, settings.provider_config_map, settings.config_namespace
        )
        registry = build_registry(client, settings, credential_manager)
        return cls(client, config_manager, registry)

    async def resolve_provider(self, request: ResourceRequest) -> tuple[ResourceType, Provider]:
        """Resolve the provider handling a request.

        Raises:
            ValueError: If the request kind is unknown
            ConfigError: If the strategy mapping cannot be resolved
            ProviderNotFoundError: If no provider supports the mapped strategy
        """
        try:
            resource_type = RESOURCE_TYPE_FOR_KIND[request.kind]
        except KeyError:
            raise ValueError(f"Unknown resource request kind: {request.kind}") from None

        with request_context(request):
            mapping = await self.config_manager.get_strategy_mapping_for_deployment_type(
                request.tier
            )
            provider = self.registry.get(resource_type, mapping.provider_for(resource_type))
        return resource_type, provider

    async def reconcile(self, request: ResourceRequest) -> ReconcileResult:
        """Create or delete the resource behind a request.

        Deletion runs when the request carries a deletion timestamp.

        Args:
            request: Resource request

        Returns:
            Reconciliation outcome

        Raises:
            CloudResourcesError: If resolution or the provider workflow fails
        """
        try:
            resource_type, provider = await self.resolve_provider(request)
            request.status.strategy = provider.get_name()
            request.status.provider = provider.get_name()

            if request.is_deleting:
                message = await self._delete(resource_type, provider, request)
                logger.info("Reconciled deletion", kind=request.kind, name=request.name)
                return ReconcileResult(
                    phase=Phase.DELETED,
                    message=message,
                    provider=provider.get_name(),
                    requeue_after=timedelta(0),
                )

            instance, message = await self._create(resource_type, provider, request)
        except CloudResourcesError as e:
            logger.error("Reconcile failed", kind=request.kind, name=request.name, error=str(e))
            request.status.phase = Phase.FAILED
            request.status.message = str(e)
            await self._persist_status(request)
            raise

        request.status.phase = Phase.IN_PROGRESS if instance is None else Phase.COMPLETE
        request.status.message = message
        await self._persist_status(request)
        logger.info(
            "Reconciled creation",
            kind=request.kind,
            name=request.name,
            phase=request.status.phase.value,
        )

        return ReconcileResult(
            phase=request.status.phase,
            message=message,
            provider=provider.get_name(),
            requeue_after=provider.get_reconcile_time(request),
            data=instance.deployment_details.data() if instance is not None else {},
        )

    async def _create(
        self, resource_type: ResourceType, provider: Provider, request: ResourceRequest
    ) -> tuple[Any, str]:
        match resource_type:
            case ResourceType.BLOB_STORAGE:
                return await provider.create_storage(request)
            case ResourceType.POSTGRES:
                return await provider.create_postgres(request)
            case ResourceType.REDIS:
                return await provider.create_redis(request)
            case ResourceType.SMTP_CREDENTIALS:
                return await provider.create_smtp_credentials(request)
            case _:
                raise ValueError(f"Unsupported resource type: {resource_type}")

    async def _delete(
        self, resource_type: ResourceType, provider: Provider, request: ResourceRequest
    ) -> str:
        match resource_type:
            case ResourceType.BLOB_STORAGE:
                return await provider.delete_storage(request)
            case ResourceType.POSTGRES:
                return await provider.delete_postgres(request)
            case ResourceType.REDIS:
                return await provider.delete_redis(request)
            case ResourceType.SMTP_CREDENTIALS:
                return await provider.delete_smtp_credentials(request)
            case _:
                raise ValueError(f"Unsupported resource type: {resource_type}")

    async def _persist_status(self, request: ResourceRequest) -> None:
        try:
            await self.client.update(request)
        except Exception as e:
            logger.warning(
                "Failed to update request status",
                kind=request.kind,
                name=request.name,
                error=str(e),
            )

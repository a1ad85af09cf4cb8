"""Factory for the provider registry."""

from cloud_resources.cluster.client import ObjectClient
from cloud_resources.cluster.models import (
    KIND_BLOB_STORAGE,
    KIND_POSTGRES,
    KIND_REDIS,
    KIND_SMTP_CREDENTIAL_SET,
)
from cloud_resources.config.manager import ProviderConfigManager
from cloud_resources.config.models import OperatorSettings, ResourceType
from cloud_resources.config.presets import (
    AWS_DEPLOYMENT_STRATEGY,
    OPENSHIFT_DEPLOYMENT_STRATEGY,
    get_default_provider_strategies,
)
from cloud_resources.core.errors import ProviderNotFoundError
from cloud_resources.credentials.base import CredentialManager
from cloud_resources.credentials.minter import CredentialMinterCredentialManager
from cloud_resources.providers.aws.blobstorage import AWSBlobStorageProvider
from cloud_resources.providers.aws.postgres import AWSPostgresProvider
from cloud_resources.providers.aws.redis import AWSRedisProvider
from cloud_resources.providers.aws.smtp import AWSSMTPCredentialProvider
from cloud_resources.providers.base import (
    BlobStorageProvider,
    PostgresProvider,
    RedisProvider,
    SMTPCredentialsProvider,
)
from cloud_resources.providers.openshift.postgres import OpenShiftPostgresProvider
from cloud_resources.providers.openshift.redis import OpenShiftRedisProvider

SUPPORTED_PROVIDERS = [AWS_DEPLOYMENT_STRATEGY, OPENSHIFT_DEPLOYMENT_STRATEGY]

RESOURCE_TYPE_FOR_KIND: dict[str, ResourceType] = {
    KIND_BLOB_STORAGE: ResourceType.BLOB_STORAGE,
    KIND_POSTGRES: ResourceType.POSTGRES,
    KIND_REDIS: ResourceType.REDIS,
    KIND_SMTP_CREDENTIAL_SET: ResourceType.SMTP_CREDENTIALS,
}

Provider = BlobStorageProvider | PostgresProvider | RedisProvider | SMTPCredentialsProvider


class ProviderRegistry:
    """Maps (resource kind, provider name) to a provider instance."""

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._providers: dict[ResourceType, list[Provider]] = {rt: [] for rt in ResourceType}

    def register(self, resource_type: ResourceType, provider: Provider) -> None:
        """Register a provider for a resource kind.

        Raises:
            ValueError: If a provider with the same name is already registered
        """
        if any(p.get_name() == provider.get_name() for p in self._providers[resource_type]):
            raise ValueError(
                f"provider {provider.get_name()} already registered for {resource_type.value}"
            )
        self._providers[resource_type].append(provider)

    def get(self, resource_type: ResourceType, strategy: str) -> Provider:
        """Get the provider serving ``strategy`` for a resource kind.

        Raises:
            ProviderNotFoundError: If no registered provider supports it
        """
        for provider in self._providers[resource_type]:
            if provider.supports_strategy(strategy):
                return provider
        raise ProviderNotFoundError(
            f"unsupported deployment strategy {strategy} for {resource_type.value}"
        )

    def names(self, resource_type: ResourceType) -> list[str]:
        """Get the names of the providers registered for a resource kind."""
        return [p.get_name() for p in self._providers[resource_type]]


def create_aws_providers(
    client: ObjectClient,
    settings: OperatorSettings,
    credential_manager: CredentialManager | None = None,
) -> dict[ResourceType, Provider]:
    """Create the AWS provider of every resource kind.

    Args:
        client: Object store
        settings: Operator settings
        credential_manager: Credential manager (credential minter by default)

    Returns:
        Provider per resource kind
    """
    config_manager = ProviderConfigManager(
        client,
        settings.aws_strategy_config_map,
        settings.config_namespace,
        settings.aws_default_region,
        get_default_provider_strategies(),
    )
    credentials = credential_manager or CredentialMinterCredentialManager(
        client, settings.credential_poll.policy()
    )
    poll = settings.poll.policy()

    return {
        ResourceType.BLOB_STORAGE: AWSBlobStorageProvider(
            client, config_manager, credentials, poll=poll
        ),
        ResourceType.POSTGRES: AWSPostgresProvider(client, config_manager, credentials, poll=poll),
        ResourceType.REDIS: AWSRedisProvider(client, config_manager, credentials, poll=poll),
        ResourceType.SMTP_CREDENTIALS: AWSSMTPCredentialProvider(
            client, config_manager, credentials
        ),
    }


def create_openshift_providers(
    client: ObjectClient,
    settings: OperatorSettings,
) -> dict[ResourceType, Provider]:
    """Create the in-cluster providers.

    Args:
        client: Object store
        settings: Operator settings

    Returns:
        Provider per supported resource kind
    """
    config_manager = ProviderConfigManager(
        client,
        settings.openshift_strategy_config_map,
        settings.config_namespace,
        "",
        get_default_provider_strategies(),
    )
    poll = settings.poll.policy()

    return {
        ResourceType.POSTGRES: OpenShiftPostgresProvider(client, config_manager, poll=poll),
        ResourceType.REDIS: OpenShiftRedisProvider(client, config_manager, poll=poll),
    }


def build_registry(
    client: ObjectClient,
    settings: OperatorSettings,
    credential_manager: CredentialManager | None = None,
) -> ProviderRegistry:
    """Build the registry holding every supported provider.

    Args:
        client: Object store
        settings: Operator settings
        credential_manager: Credential manager for the AWS providers

    Returns:
        Populated provider registry
    """
    registry = ProviderRegistry()
    for providers in (
        create_aws_providers(client, settings, credential_manager),
        create_openshift_providers(client, settings),
    ):
        for resource_type, provider in providers.items():
            registry.register(resource_type, provider)
    return registry

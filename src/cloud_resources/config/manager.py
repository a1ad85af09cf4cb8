"""Strategy resolution backed by config map documents in the object store."""

import json
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError

from cloud_resources.cluster.client import ObjectClient
from cloud_resources.cluster.models import KIND_CONFIG_MAP, KubeObject
from cloud_resources.config.models import (
    DEFAULT_CONFIG_NAMESPACE,
    DEFAULT_PROVIDER_CONFIG_MAP_NAME,
    DeploymentStrategyMapping,
    ResourceType,
    StrategyConfig,
)
from cloud_resources.config.presets import get_default_deployment_strategies
from cloud_resources.core.errors import (
    ConfigDecodeError,
    ConfigReadError,
    ObjectConflictError,
    ObjectNotFoundError,
)
from cloud_resources.core.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class ConfigManager(Protocol):
    """Protocol for resolving which provider handles each resource kind."""

    async def get_strategy_mapping_for_deployment_type(
        self, deployment_type: str
    ) -> DeploymentStrategyMapping:
        """Get the provider mapping for a deployment type.

        Args:
            deployment_type: Deployment type name (e.g. 'managed', 'workshop')

        Returns:
            Provider name per resource kind

        Raises:
            ConfigReadError: If the strategy store cannot be read
            ConfigDecodeError: If the stored document is invalid
        """
        ...


async def get_config_map_or_default(client: ObjectClient, default: KubeObject) -> KubeObject:
    """Read a config map, creating it from ``default`` when it does not exist.

    Args:
        client: Object store
        default: Config map to seed when none exists

    Returns:
        The stored (or newly seeded) config map

    Raises:
        ConfigReadError: If the store cannot be read or seeded
    """
    name = default.metadata.name
    namespace = default.metadata.namespace

    try:
        try:
            return await client.get(KubeObject, KIND_CONFIG_MAP, name, namespace)
        except ObjectNotFoundError:
            logger.info("Seeding default strategy config", name=name, namespace=namespace)

        try:
            await client.create(default)
        except ObjectConflictError:
            # Seeded concurrently by another reconciliation
            return await client.get(KubeObject, KIND_CONFIG_MAP, name, namespace)
        return default.model_copy(deep=True)
    except Exception as e:
        raise ConfigReadError(
            f"failed to read provider config from configmap {name} in namespace {namespace}: {e}"
        ) from e


def _config_map(name: str, namespace: str, data: dict[str, str]) -> KubeObject:
    return KubeObject.new(KIND_CONFIG_MAP, name, namespace, data=dict(data))


class ConfigMapConfigManager:
    """ConfigManager reading deployment strategy mappings from a config map.

    The seed used when the config map is absent is injected, so callers (and
    tests) can replace the built-in ``managed``/``workshop`` defaults.
    """

    def __init__(
        self,
        client: ObjectClient,
        config_map_name: str = "",
        namespace: str = "",
        defaults: dict[str, str] | None = None,
    ) -> None:
        """Initialize the config manager.

        Args:
            client: Object store holding the config map
            config_map_name: Config map name (default 'cloud-resource-config')
            namespace: Config map namespace (default 'kube-system')
            defaults: Deployment type documents to seed when absent
        """
        self.client = client
        self.config_map_name = config_map_name or DEFAULT_PROVIDER_CONFIG_MAP_NAME
        self.namespace = namespace or DEFAULT_CONFIG_NAMESPACE
        self.defaults = defaults if defaults is not None else get_default_deployment_strategies()

    async def get_strategy_mapping_for_deployment_type(
        self, deployment_type: str
    ) -> DeploymentStrategyMapping:
        """Get high-level information about the strategy used in a deployment type."""
        config_map = await get_config_map_or_default(
            self.client, _config_map(self.config_map_name, self.namespace, self.defaults)
        )

        raw = config_map.data.get(deployment_type)
        if raw is None:
            raise ConfigDecodeError(f"no config found for deployment type {deployment_type}")

        try:
            return DeploymentStrategyMapping.model_validate_json(raw)
        except ValidationError as e:
            raise ConfigDecodeError(
                f"failed to unmarshal config for deployment type {deployment_type}: {e}"
            ) from e


class ProviderConfigManager:
    """Reads one cloud provider's per-kind, per-tier strategy documents.

    The config map holds one key per resource kind; each value is a JSON
    object keyed by tier whose entries decode into ``StrategyConfig``.
    """

    def __init__(
        self,
        client: ObjectClient,
        config_map_name: str,
        namespace: str,
        default_region: str,
        defaults: dict[str, str] | None = None,
    ) -> None:
        """Initialize the provider config manager.

        Args:
            client: Object store holding the config map
            config_map_name: Name of the provider strategy config map
            namespace: Namespace of the config map
            default_region: Region applied when a strategy leaves it empty
            defaults: Per-kind documents to seed when the config map is absent
        """
        self.client = client
        self.config_map_name = config_map_name
        self.namespace = namespace or DEFAULT_CONFIG_NAMESPACE
        self.default_region = default_region
        self.defaults = dict(defaults or {})

    async def read_strategy(self, resource_type: ResourceType, tier: str) -> StrategyConfig:
        """Read the strategy for one resource kind and tier.

        Args:
            resource_type: Resource kind
            tier: Tier / deployment type key

        Returns:
            Strategy config with the default region applied

        Raises:
            ConfigReadError: If the strategy store cannot be read
            ConfigDecodeError: If the kind or tier is missing or malformed
        """
        config_map = await get_config_map_or_default(
            self.client, _config_map(self.config_map_name, self.namespace, self.defaults)
        )

        raw = config_map.data.get(resource_type.value)
        if raw is None:
            raise ConfigDecodeError(
                f"strategy for resource type {resource_type.value} "
                f"is not defined in {self.config_map_name}"
            )

        try:
            tiers: dict[str, Any] = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigDecodeError(
                f"failed to unmarshal strategy mapping for resource type {resource_type.value}: {e}"
            ) from e

        if not isinstance(tiers, dict) or tier not in tiers:
            raise ConfigDecodeError(
                f"no strategy found for deployment type {resource_type.value} and tier {tier}"
            )

        try:
            strategy = StrategyConfig.model_validate(tiers[tier])
        except ValidationError as e:
            raise ConfigDecodeError(
                f"invalid strategy for resource type {resource_type.value} and tier {tier}: {e}"
            ) from e

        if not strategy.region:
            logger.debug(
                "Region not set in strategy, using default",
                resource_type=resource_type.value,
                region=self.default_region,
            )
            strategy.region = self.default_region
        return strategy

    async def read_blob_storage_strategy(self, tier: str) -> StrategyConfig:
        """Read the blob storage strategy for ``tier``."""
        return await self.read_strategy(ResourceType.BLOB_STORAGE, tier)

    async def read_postgres_strategy(self, tier: str) -> StrategyConfig:
        """Read the postgres strategy for ``tier``."""
        return await self.read_strategy(ResourceType.POSTGRES, tier)

    async def read_redis_strategy(self, tier: str) -> StrategyConfig:
        """Read the redis strategy for ``tier``."""
        return await self.read_strategy(ResourceType.REDIS, tier)

    async def read_smtp_credential_strategy(self, tier: str) -> StrategyConfig:
        """Read the SMTP credential strategy for ``tier``."""
        return await self.read_strategy(ResourceType.SMTP_CREDENTIALS, tier)

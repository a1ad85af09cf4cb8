"""Unit tests for the resource manager."""

import json
from datetime import timedelta
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest

from cloud_resources.cloud.base import RemoteResource
from cloud_resources.cluster.memory import MemoryObjectClient
from cloud_resources.cluster.models import (
    KIND_CONFIG_MAP,
    KIND_POSTGRES,
    KIND_REDIS,
    KubeObject,
    ObjectMeta,
    Phase,
    ResourceRequest,
)
from cloud_resources.config.manager import ConfigMapConfigManager, ProviderConfigManager
from cloud_resources.config.models import Backend, OperatorSettings, ResourceType
from cloud_resources.config.presets import get_default_provider_strategies
from cloud_resources.core.errors import (
    ConfigDecodeError,
    ObjectNotFoundError,
    ProviderNotFoundError,
    RemoteCallError,
)
from cloud_resources.core.manager import ResourceManager, create_object_client
from cloud_resources.core.poll import FORCE_RECONCILE_ENV, PollPolicy
from cloud_resources.credentials.base import Credentials
from cloud_resources.providers.aws.postgres import AWSPostgresProvider
from cloud_resources.providers.factory import ProviderRegistry
from cloud_resources.providers.openshift.postgres import OpenShiftPostgresProvider

FAST = PollPolicy(interval=0.01, timeout=0.2)


class FakeRDS:
    """CloudClient holding RDS-like instances that are available at once."""

    def __init__(self) -> None:
        self.resources: dict[str, RemoteResource] = {}

    async def list_resources(self) -> list[RemoteResource]:
        return list(self.resources.values())

    async def create_resource(self, spec: dict[str, Any]) -> RemoteResource:
        identifier = spec["DBInstanceIdentifier"]
        resource = RemoteResource(
            identifier, "available", {"host": f"{identifier}.rds", "port": 5432}
        )
        self.resources[identifier] = resource
        return resource

    async def delete_resource(self, identifier: str) -> None:
        self.resources.pop(identifier)

    async def wait_until_absent(self, identifier: str) -> None:
        return None


class StaticCredentials:
    """CredentialManager returning fixed provider credentials."""

    async def reconcile_provider_credentials(self, namespace: str) -> Credentials:
        return Credentials(access_key_id="AKIA", secret_access_key="secret")


def _registry(client: MemoryObjectClient, rds: FakeRDS) -> ProviderRegistry:
    aws_config = ProviderConfigManager(
        client, "aws-strategies", "kube-system", "eu-west-1", get_default_provider_strategies()
    )
    openshift_config = ProviderConfigManager(
        client, "openshift-strategies", "kube-system", "", get_default_provider_strategies()
    )
    registry = ProviderRegistry()
    registry.register(
        ResourceType.POSTGRES,
        AWSPostgresProvider(
            client,
            aws_config,
            StaticCredentials(),
            cloud_factory=lambda creds, region: rds,
            poll=FAST,
            is_not_found=lambda e: isinstance(e, KeyError),
        ),
    )
    registry.register(
        ResourceType.POSTGRES, OpenShiftPostgresProvider(client, openshift_config, poll=FAST)
    )
    return registry


def _manager(client: MemoryObjectClient, rds: FakeRDS | None = None) -> ResourceManager:
    registry = _registry(client, rds or FakeRDS())
    return ResourceManager(client, ConfigMapConfigManager(client), registry)


async def _request(
    client: MemoryObjectClient, kind: str = KIND_POSTGRES, tier: str = "managed"
) -> ResourceRequest:
    request = ResourceRequest.new(kind, "mydb", "ns1", tier=tier)
    await client.create(request)
    return request


async def _stored(client: MemoryObjectClient) -> ResourceRequest:
    return await client.get(ResourceRequest, KIND_POSTGRES, "mydb", "ns1")


def _mock_provider(name: str = "aws") -> Mock:
    provider = Mock()
    provider.get_name.return_value = name
    provider.supports_strategy.side_effect = lambda strategy: strategy == name
    provider.get_reconcile_time.return_value = timedelta(seconds=10)
    return provider


class TestCreateObjectClient:
    """Tests for create_object_client function."""

    def test_memory_backend(self) -> None:
        """Test selecting the in-memory store."""
        client = create_object_client(OperatorSettings(backend=Backend.MEMORY))
        assert isinstance(client, MemoryObjectClient)


class TestResourceManagerCreate:
    """Tests for ResourceManager.reconcile on live requests."""

    @pytest.mark.asyncio
    async def test_managed_postgres(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a managed request completes on AWS and records its status."""
        monkeypatch.delenv(FORCE_RECONCILE_ENV, raising=False)
        client = MemoryObjectClient()
        request = await _request(client)

        result = await _manager(client).reconcile(request)

        assert result.phase == Phase.COMPLETE
        assert result.provider == "aws"
        assert result.requeue_after == timedelta(minutes=5)
        assert result.data["host"] == b"ns1-mydb.rds"
        assert result.data["password"]
        stored = await _stored(client)
        assert stored.status.phase == Phase.COMPLETE
        assert stored.status.strategy == "aws"
        assert stored.status.message == "rds instance ns1-mydb available"
        assert stored.metadata.finalizers

    @pytest.mark.asyncio
    async def test_reconcile_is_idempotent(self) -> None:
        """Test that reconciling twice keeps one remote instance and one password."""
        client = MemoryObjectClient()
        rds = FakeRDS()
        manager = _manager(client, rds)
        request = await _request(client)

        first = await manager.reconcile(request)
        second = await manager.reconcile(await _stored(client))

        assert first.data == second.data
        assert list(rds.resources) == ["ns1-mydb"]

    @pytest.mark.asyncio
    async def test_workshop_postgres_in_progress(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a workshop request runs in-cluster and reports progress."""
        monkeypatch.delenv(FORCE_RECONCILE_ENV, raising=False)
        client = MemoryObjectClient()
        request = await _request(client, tier="workshop")

        result = await _manager(client).reconcile(request)

        assert result.phase == Phase.IN_PROGRESS
        assert result.provider == "openshift"
        assert result.data == {}
        assert result.requeue_after == timedelta(seconds=30)
        assert (await _stored(client)).status.phase == Phase.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_mapping_re_read(self) -> None:
        """Test that a changed deployment type mapping applies on the next call."""
        client = MemoryObjectClient()
        manager = _manager(client)
        request = await _request(client)
        await manager.reconcile(request)

        config_map = await client.get(
            KubeObject, KIND_CONFIG_MAP, "cloud-resource-config", "kube-system"
        )
        config_map.data["managed"] = json.dumps(
            {"blobstorage": "aws", "smtpCredentials": "aws", "redis": "aws", "postgres": "azure"}
        )
        await client.update(config_map)

        with pytest.raises(ProviderNotFoundError):
            await manager.reconcile(await _stored(client))

    @pytest.mark.asyncio
    async def test_unsupported_strategy_fails_request(self) -> None:
        """Test that resolution failures mark the request failed."""
        client = MemoryObjectClient()
        await client.create(
            KubeObject.new(
                KIND_CONFIG_MAP,
                "cloud-resource-config",
                "kube-system",
                data={
                    "managed": json.dumps(
                        {
                            "blobstorage": "aws",
                            "smtpCredentials": "aws",
                            "redis": "aws",
                            "postgres": "azure",
                        }
                    )
                },
            )
        )
        request = await _request(client)

        with pytest.raises(ProviderNotFoundError) as exc_info:
            await _manager(client).reconcile(request)

        stored = await _stored(client)
        assert stored.status.phase == Phase.FAILED
        assert stored.status.message == str(exc_info.value)
        assert stored.status.message.startswith("Postgres ns1/mydb (tier managed)")

    @pytest.mark.asyncio
    async def test_malformed_strategy_fails_request(self) -> None:
        """Test that an invalid in-cluster strategy marks the request failed."""
        client = MemoryObjectClient()
        await client.create(
            KubeObject.new(
                KIND_CONFIG_MAP,
                "openshift-strategies",
                "kube-system",
                data={"postgres": json.dumps({"workshop": {"createStrategy": {"port": "abc"}}})},
            )
        )
        request = await _request(client, tier="workshop")

        with pytest.raises(ConfigDecodeError):
            await _manager(client).reconcile(request)

        stored = await _stored(client)
        assert stored.status.phase == Phase.FAILED
        assert stored.status.message.startswith("Postgres ns1/mydb (tier workshop): invalid")

    @pytest.mark.asyncio
    async def test_unknown_kind(self) -> None:
        """Test that a request of an unknown kind is rejected."""
        client = MemoryObjectClient()
        request = ResourceRequest(kind="Queue", metadata=ObjectMeta(name="q", namespace="ns1"))

        with pytest.raises(ValueError, match="Unknown resource request kind"):
            await _manager(client).reconcile(request)

    @pytest.mark.asyncio
    async def test_provider_error_fails_request(self) -> None:
        """Test that provider errors are recorded and raised again."""
        client = MemoryObjectClient()
        provider = _mock_provider()
        provider.create_redis = AsyncMock(
            side_effect=RemoteCallError("quota exceeded", operation="create")
        )
        registry = ProviderRegistry()
        registry.register(ResourceType.REDIS, provider)
        manager = ResourceManager(client, ConfigMapConfigManager(client), registry)
        request = await _request(client, kind=KIND_REDIS)

        with pytest.raises(RemoteCallError):
            await manager.reconcile(request)

        stored = await client.get(ResourceRequest, KIND_REDIS, "mydb", "ns1")
        assert stored.status.phase == Phase.FAILED
        assert stored.status.message == "quota exceeded"

    @pytest.mark.asyncio
    async def test_status_write_failure_is_not_fatal(self) -> None:
        """Test that a failed status update does not fail the reconciliation."""
        client = AsyncMock()
        client.update.side_effect = RuntimeError("conflict")
        config_manager = AsyncMock()
        config_manager.get_strategy_mapping_for_deployment_type.return_value = Mock(
            provider_for=Mock(return_value="aws")
        )
        provider = _mock_provider()
        provider.create_redis = AsyncMock(return_value=(None, "creating"))
        registry = ProviderRegistry()
        registry.register(ResourceType.REDIS, provider)
        request = ResourceRequest.new(KIND_REDIS, "cache", "ns1")

        result = await ResourceManager(client, config_manager, registry).reconcile(request)

        assert result.phase == Phase.IN_PROGRESS
        assert result.message == "creating"
        client.update.assert_awaited_once()


class TestResourceManagerDelete:
    """Tests for ResourceManager.reconcile on requests being deleted."""

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        """Test that deleting a request removes the instance and then the request."""
        client = MemoryObjectClient()
        rds = FakeRDS()
        manager = _manager(client, rds)
        await manager.reconcile(await _request(client))
        await client.delete(KIND_POSTGRES, "mydb", "ns1")

        result = await manager.reconcile(await _stored(client))

        assert result.phase == Phase.DELETED
        assert result.message == "deleted rds instance ns1-mydb"
        assert rds.resources == {}
        with pytest.raises(ObjectNotFoundError):
            await _stored(client)


class TestFromSettings:
    """Tests for ResourceManager.from_settings."""

    def test_memory_backend(self) -> None:
        """Test building a manager over the in-memory store."""
        manager = ResourceManager.from_settings(OperatorSettings(backend=Backend.MEMORY))

        assert isinstance(manager.client, MemoryObjectClient)
        assert manager.registry.names(ResourceType.REDIS) == ["aws", "openshift"]

"""Unit tests for the in-cluster providers."""

import asyncio
import json

import pytest

from cloud_resources.cloud.base import RemoteResource
from cloud_resources.cloud.openshift import (
    MANAGED_BY_LABEL,
    DeploymentCloudClient,
    is_object_already_exists,
    is_object_not_found,
    service_host,
)
from cloud_resources.cluster.memory import MemoryObjectClient
from cloud_resources.cluster.models import (
    KIND_CONFIG_MAP,
    KIND_DEPLOYMENT,
    KIND_POSTGRES,
    KIND_REDIS,
    KIND_SECRET,
    KIND_SERVICE,
    KubeObject,
    ResourceRequest,
)
from cloud_resources.config.manager import ProviderConfigManager
from cloud_resources.config.presets import get_default_provider_strategies
from cloud_resources.core.errors import (
    ConfigDecodeError,
    ObjectConflictError,
    ObjectNotFoundError,
)
from cloud_resources.core.poll import PollPolicy
from cloud_resources.providers.base import PostgresProvider, RedisProvider
from cloud_resources.providers.openshift.common import DEFAULT_FINALIZER, workload_spec
from cloud_resources.providers.openshift.postgres import (
    OpenShiftPostgresProvider,
    credentials_secret_name,
)
from cloud_resources.providers.openshift.redis import OpenShiftRedisProvider

FAST = PollPolicy(interval=0.01, timeout=0.2)
CONFIG_MAP = "cloud-resources-openshift-strategies"
CONFIG_NAMESPACE = "kube-system"


def _config_manager(client: MemoryObjectClient) -> ProviderConfigManager:
    return ProviderConfigManager(
        client, CONFIG_MAP, CONFIG_NAMESPACE, "", get_default_provider_strategies()
    )


class InterleavedWorkloads(DeploymentCloudClient):
    """DeploymentCloudClient that yields to other tasks after every listing."""

    async def list_resources(self) -> list[RemoteResource]:
        resources = await super().list_resources()
        await asyncio.sleep(0)
        return resources


def _roll_out(client: MemoryObjectClient) -> None:
    """Mark every new deployment as having one available replica."""

    async def _ready(deployment: KubeObject) -> None:
        if deployment.status:
            return
        deployment.status = {"availableReplicas": 1}
        await client.update(deployment)

    client.watch(KIND_DEPLOYMENT, _ready)


async def _request(client: MemoryObjectClient, kind: str, name: str) -> ResourceRequest:
    request = ResourceRequest.new(kind, name, "ns1", tier="workshop")
    await client.create(request)
    return request


async def _stored(client: MemoryObjectClient, request: ResourceRequest) -> ResourceRequest:
    return await client.get(ResourceRequest, request.kind, request.name, request.namespace)


class TestDeploymentCloudClient:
    """Tests for DeploymentCloudClient class."""

    @pytest.mark.asyncio
    async def test_create_and_list(self) -> None:
        """Test that a workload is created as a labelled service and deployment."""
        client = MemoryObjectClient()
        workloads = DeploymentCloudClient(client, "ns1", FAST)

        spec = workload_spec("cache", "redis", 6379, [], "redis")
        created = await workloads.create_resource(spec)

        assert created.identifier == "cache"
        assert created.status == "creating"
        assert created.attributes["host"] == "cache.ns1.svc.cluster.local"
        service = await client.get(KubeObject, KIND_SERVICE, "cache", "ns1")
        assert service.metadata.labels[MANAGED_BY_LABEL] == "cloud-resources"
        assert [r.identifier for r in await workloads.list_resources()] == ["cache"]

    @pytest.mark.asyncio
    async def test_available_replicas(self) -> None:
        """Test that a rolled out deployment is reported available."""
        client = MemoryObjectClient()
        _roll_out(client)
        workloads = DeploymentCloudClient(client, "ns1", FAST)
        await workloads.create_resource(workload_spec("cache", "redis", 6379, [], "redis"))

        [resource] = await workloads.list_resources()

        assert resource.status == "available"

    @pytest.mark.asyncio
    async def test_unmanaged_deployments_ignored(self) -> None:
        """Test that deployments without the managed-by label are not listed."""
        client = MemoryObjectClient()
        await client.create(KubeObject.new(KIND_DEPLOYMENT, "other", "ns1"))

        assert await DeploymentCloudClient(client, "ns1", FAST).list_resources() == []

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        """Test that deletion removes both objects and reports a missing deployment."""
        client = MemoryObjectClient()
        workloads = DeploymentCloudClient(client, "ns1", FAST)
        await workloads.create_resource(workload_spec("cache", "redis", 6379, [], "redis"))

        await workloads.delete_resource("cache")
        await workloads.wait_until_absent("cache")

        with pytest.raises(ObjectNotFoundError) as exc_info:
            await workloads.delete_resource("cache")
        assert is_object_not_found(exc_info.value)
        with pytest.raises(ObjectNotFoundError):
            await client.get(KubeObject, KIND_SERVICE, "cache", "ns1")

    @pytest.mark.asyncio
    async def test_create_twice_is_a_collision(self) -> None:
        """Test that a second create of the same workload is a recognised collision."""
        client = MemoryObjectClient()
        workloads = DeploymentCloudClient(client, "ns1", FAST)
        spec = workload_spec("cache", "redis", 6379, [], "redis")
        await workloads.create_resource(spec)

        with pytest.raises(ObjectConflictError) as exc_info:
            await workloads.create_resource(spec)

        assert is_object_already_exists(exc_info.value)
        assert not is_object_already_exists(ObjectNotFoundError("gone"))

    def test_service_host(self) -> None:
        """Test the cluster DNS name of a service."""
        assert service_host("db", "ns") == "db.ns.svc.cluster.local"


class TestOpenShiftPostgresProvider:
    """Tests for OpenShiftPostgresProvider class."""

    def _provider(self, client: MemoryObjectClient) -> OpenShiftPostgresProvider:
        return OpenShiftPostgresProvider(client, _config_manager(client), poll=FAST)

    def test_protocol(self) -> None:
        """Test that the provider satisfies PostgresProvider."""
        provider = self._provider(MemoryObjectClient())
        assert isinstance(provider, PostgresProvider)
        assert provider.get_name() == "openshift"

    @pytest.mark.asyncio
    async def test_create_in_progress(self) -> None:
        """Test that a deployment without ready replicas yields no details."""
        client = MemoryObjectClient()
        request = await _request(client, KIND_POSTGRES, "mydb")

        instance, message = await self._provider(client).create_postgres(request)

        assert instance is None
        assert message == "postgres deployment mydb is creating"
        assert (await _stored(client, request)).metadata.finalizers == [DEFAULT_FINALIZER]

    @pytest.mark.asyncio
    async def test_create_available(self) -> None:
        """Test the connection details of a rolled out database."""
        client = MemoryObjectClient()
        _roll_out(client)
        request = await _request(client, KIND_POSTGRES, "mydb")

        instance, _ = await self._provider(client).create_postgres(request)

        assert instance is not None
        secret = await client.get(KubeObject, KIND_SECRET, credentials_secret_name(request), "ns1")
        assert instance.deployment_details.data() == {
            "username": b"user",
            "password": secret.data["password"].encode(),
            "host": b"mydb.ns1.svc.cluster.local",
            "database": b"postgres",
            "port": b"5432",
        }

    @pytest.mark.asyncio
    async def test_env_from_secret(self) -> None:
        """Test that the container reads its login from the secret."""
        client = MemoryObjectClient()
        request = await _request(client, KIND_POSTGRES, "mydb")

        await self._provider(client).create_postgres(request)

        deployment = await client.get(KubeObject, KIND_DEPLOYMENT, "mydb", "ns1")
        container = deployment.spec["template"]["spec"]["containers"][0]
        refs = {e["name"]: e["valueFrom"]["secretKeyRef"] for e in container["env"]}
        assert refs["POSTGRESQL_PASSWORD"] == {
            "name": "mydb-postgres-credentials",
            "key": "password",
        }
        assert container["image"] == "registry.redhat.io/rhscl/postgresql-10-rhel7"

    @pytest.mark.asyncio
    async def test_strategy_overrides(self) -> None:
        """Test that the strategy can change image, port and login."""
        client = MemoryObjectClient()
        _roll_out(client)
        await client.create(
            KubeObject.new(
                KIND_CONFIG_MAP,
                CONFIG_MAP,
                CONFIG_NAMESPACE,
                data={
                    "postgres": json.dumps(
                        {
                            "workshop": {
                                "createStrategy": {
                                    "image": "postgres:13",
                                    "port": 5433,
                                    "user": "app",
                                    "database": "appdb",
                                }
                            }
                        }
                    )
                },
            )
        )
        request = await _request(client, KIND_POSTGRES, "mydb")

        instance, _ = await self._provider(client).create_postgres(request)

        assert instance is not None
        data = instance.deployment_details.data()
        assert data["port"] == b"5433"
        assert data["username"] == b"app"
        assert data["database"] == b"appdb"
        deployment = await client.get(KubeObject, KIND_DEPLOYMENT, "mydb", "ns1")
        assert deployment.spec["template"]["spec"]["containers"][0]["image"] == "postgres:13"

    @pytest.mark.asyncio
    async def test_concurrent_creates(self) -> None:
        """Test that overlapping creates converge on one deployment."""
        client = MemoryObjectClient()
        provider = OpenShiftPostgresProvider(
            client,
            _config_manager(client),
            cloud_factory=lambda namespace: InterleavedWorkloads(client, namespace, FAST),
            poll=FAST,
        )
        request = await _request(client, KIND_POSTGRES, "mydb")

        results = await asyncio.gather(
            provider.create_postgres(request), provider.create_postgres(request)
        )

        assert results == [(None, "postgres deployment mydb is creating")] * 2
        deployments = await client.list(KIND_DEPLOYMENT, "ns1")
        assert [d.metadata.name for d in deployments] == ["mydb"]

    @pytest.mark.asyncio
    async def test_malformed_port(self) -> None:
        """Test that a strategy port that is not a number is a configuration error."""
        client = MemoryObjectClient()
        await client.create(
            KubeObject.new(
                KIND_CONFIG_MAP,
                CONFIG_MAP,
                CONFIG_NAMESPACE,
                data={"postgres": json.dumps({"workshop": {"createStrategy": {"port": "abc"}}})},
            )
        )
        request = await _request(client, KIND_POSTGRES, "mydb")

        with pytest.raises(ConfigDecodeError) as exc_info:
            await self._provider(client).create_postgres(request)

        assert str(exc_info.value).startswith("Postgres ns1/mydb (tier workshop): invalid")
        assert await client.list(KIND_DEPLOYMENT, "ns1") == []

    @pytest.mark.asyncio
    async def test_delete_twice(self) -> None:
        """Test that deletion removes the workload and secret and converges."""
        client = MemoryObjectClient()
        provider = self._provider(client)
        request = await _request(client, KIND_POSTGRES, "mydb")
        await provider.create_postgres(request)

        await provider.delete_postgres(request)
        message = await provider.delete_postgres(request)

        assert message == "deleted postgres deployment mydb"
        assert (await _stored(client, request)).metadata.finalizers == []
        for kind in (KIND_DEPLOYMENT, KIND_SERVICE, KIND_SECRET):
            assert await client.list(kind, "ns1") == []


class TestOpenShiftRedisProvider:
    """Tests for OpenShiftRedisProvider class."""

    @pytest.mark.asyncio
    async def test_create_and_delete(self) -> None:
        """Test deploying and removing an in-cluster cache."""
        client = MemoryObjectClient()
        _roll_out(client)
        provider = OpenShiftRedisProvider(client, _config_manager(client), poll=FAST)
        assert isinstance(provider, RedisProvider)
        request = await _request(client, KIND_REDIS, "cache")

        instance, message = await provider.create_redis(request)

        assert instance is not None
        assert instance.deployment_details.data() == {
            "uri": b"cache.ns1.svc.cluster.local",
            "port": b"6379",
        }
        assert message == "redis deployment cache available"

        await provider.delete_redis(request)

        assert await client.list(KIND_DEPLOYMENT, "ns1") == []
        assert (await _stored(client, request)).metadata.finalizers == []

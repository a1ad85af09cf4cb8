"""Unit tests for the in-memory object store."""

import pytest

from cloud_resources.cluster.memory import MemoryObjectClient
from cloud_resources.cluster.models import (
    KIND_CONFIG_MAP,
    KIND_REDIS,
    KIND_SECRET,
    KubeObject,
    Phase,
    ResourceRequest,
)
from cloud_resources.core.errors import ObjectConflictError, ObjectNotFoundError


class TestMemoryObjectClient:
    """Tests for MemoryObjectClient class."""

    @pytest.mark.asyncio
    async def test_create_and_get(self) -> None:
        """Test storing and reading back an object."""
        client = MemoryObjectClient()
        await client.create(KubeObject.new(KIND_SECRET, "s", "ns", data={"k": "v"}))

        secret = await client.get(KubeObject, KIND_SECRET, "s", "ns")

        assert secret.data == {"k": "v"}
        assert secret.api_version == "v1"
        assert secret.metadata.resource_version == "1"

    @pytest.mark.asyncio
    async def test_create_conflict(self) -> None:
        """Test that creating an existing object raises ObjectConflictError."""
        client = MemoryObjectClient()
        await client.create(KubeObject.new(KIND_SECRET, "s", "ns"))

        with pytest.raises(ObjectConflictError):
            await client.create(KubeObject.new(KIND_SECRET, "s", "ns"))

    @pytest.mark.asyncio
    async def test_get_missing(self) -> None:
        """Test that reading a missing object raises ObjectNotFoundError."""
        with pytest.raises(ObjectNotFoundError):
            await MemoryObjectClient().get(KubeObject, KIND_SECRET, "s", "ns")

    @pytest.mark.asyncio
    async def test_update_missing(self) -> None:
        """Test that updating a missing object raises ObjectNotFoundError."""
        with pytest.raises(ObjectNotFoundError):
            await MemoryObjectClient().update(KubeObject.new(KIND_SECRET, "s", "ns"))

    @pytest.mark.asyncio
    async def test_update_tracks_resource_version(self) -> None:
        """Test that writes bump the resource version of the written object."""
        client = MemoryObjectClient()
        request = ResourceRequest.new(KIND_REDIS, "cache", "ns")
        await client.create(request)
        request.status.phase = Phase.COMPLETE

        await client.update(request)

        stored = await client.get(ResourceRequest, KIND_REDIS, "cache", "ns")
        assert stored.status.phase == Phase.COMPLETE
        assert stored.metadata.resource_version == request.metadata.resource_version == "2"

    @pytest.mark.asyncio
    async def test_stale_update_conflicts(self) -> None:
        """Test that writing a copy read before another write is rejected."""
        client = MemoryObjectClient()
        await client.create(ResourceRequest.new(KIND_REDIS, "cache", "ns"))
        first = await client.get(ResourceRequest, KIND_REDIS, "cache", "ns")
        second = await client.get(ResourceRequest, KIND_REDIS, "cache", "ns")
        first.status.phase = Phase.COMPLETE
        await client.update(first)

        second.status.phase = Phase.FAILED
        with pytest.raises(ObjectConflictError):
            await client.update(second)

        stored = await client.get(ResourceRequest, KIND_REDIS, "cache", "ns")
        assert stored.status.phase == Phase.COMPLETE

    @pytest.mark.asyncio
    async def test_deletion_mark_bumps_version(self) -> None:
        """Test that a copy read before the deletion mark can no longer be written."""
        client = MemoryObjectClient()
        request = ResourceRequest.new(KIND_REDIS, "cache", "ns")
        request.metadata.finalizers = ["keep"]
        await client.create(request)

        await client.delete(KIND_REDIS, "cache", "ns")

        request.status.phase = Phase.COMPLETE
        with pytest.raises(ObjectConflictError):
            await client.update(request)
        assert (await client.get(ResourceRequest, KIND_REDIS, "cache", "ns")).is_deleting

    @pytest.mark.asyncio
    async def test_update_keeps_deletion_mark(self) -> None:
        """Test that an unversioned update without a deletion timestamp keeps the mark."""
        client = MemoryObjectClient()
        request = ResourceRequest.new(KIND_REDIS, "cache", "ns")
        request.metadata.finalizers = ["keep"]
        await client.create(request)
        await client.delete(KIND_REDIS, "cache", "ns")

        copy = ResourceRequest.new(KIND_REDIS, "cache", "ns")
        copy.metadata.finalizers = ["keep"]
        copy.status.phase = Phase.COMPLETE
        await client.update(copy)

        stored = await client.get(ResourceRequest, KIND_REDIS, "cache", "ns")
        assert stored.is_deleting
        assert stored.status.phase == Phase.COMPLETE

        copy.metadata.finalizers = []
        await client.update(copy)
        with pytest.raises(ObjectNotFoundError):
            await client.get(ResourceRequest, KIND_REDIS, "cache", "ns")

    @pytest.mark.asyncio
    async def test_delete_without_finalizers(self) -> None:
        """Test that objects without finalizers are removed at once."""
        client = MemoryObjectClient()
        await client.create(KubeObject.new(KIND_SECRET, "s", "ns"))

        await client.delete(KIND_SECRET, "s", "ns")

        with pytest.raises(ObjectNotFoundError):
            await client.get(KubeObject, KIND_SECRET, "s", "ns")

    @pytest.mark.asyncio
    async def test_delete_with_finalizers(self) -> None:
        """Test that finalizers hold an object until they are removed."""
        client = MemoryObjectClient()
        request = ResourceRequest.new(KIND_REDIS, "cache", "ns")
        request.metadata.finalizers = ["keep"]
        await client.create(request)

        await client.delete(KIND_REDIS, "cache", "ns")

        stored = await client.get(ResourceRequest, KIND_REDIS, "cache", "ns")
        assert stored.is_deleting

        stored.metadata.finalizers = []
        await client.update(stored)
        with pytest.raises(ObjectNotFoundError):
            await client.get(ResourceRequest, KIND_REDIS, "cache", "ns")

    @pytest.mark.asyncio
    async def test_delete_missing(self) -> None:
        """Test that deleting a missing object raises ObjectNotFoundError."""
        with pytest.raises(ObjectNotFoundError):
            await MemoryObjectClient().delete(KIND_SECRET, "s", "ns")

    @pytest.mark.asyncio
    async def test_list_filters(self) -> None:
        """Test listing by kind, namespace and labels."""
        client = MemoryObjectClient()
        labelled = KubeObject.new(KIND_CONFIG_MAP, "a", "ns")
        labelled.metadata.labels = {"app": "x"}
        await client.create(labelled)
        await client.create(KubeObject.new(KIND_CONFIG_MAP, "b", "ns"))
        await client.create(KubeObject.new(KIND_CONFIG_MAP, "c", "other"))
        await client.create(KubeObject.new(KIND_SECRET, "d", "ns"))

        assert [o.metadata.name for o in await client.list(KIND_CONFIG_MAP, "ns")] == ["a", "b"]
        selected = await client.list(KIND_CONFIG_MAP, "ns", {"app": "x"})
        assert [o.metadata.name for o in selected] == ["a"]

    @pytest.mark.asyncio
    async def test_watchers_called_on_write(self) -> None:
        """Test that watchers see creates and updates of their kind only."""
        client = MemoryObjectClient()
        seen: list[str] = []

        async def _watch(obj: KubeObject) -> None:
            seen.append(obj.metadata.name)

        client.watch(KIND_SECRET, _watch)
        secret = KubeObject.new(KIND_SECRET, "s", "ns")
        await client.create(secret)
        await client.update(secret)
        await client.create(KubeObject.new(KIND_CONFIG_MAP, "c", "ns"))

        assert seen == ["s", "s"]

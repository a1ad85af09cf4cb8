"""In-memory object store."""

from collections import defaultdict
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

from cloud_resources.cluster.models import KubeObject, ObjectBase, ObjectMeta
from cloud_resources.core.errors import ObjectConflictError, ObjectNotFoundError
from cloud_resources.core.logging import get_logger

T = TypeVar("T", bound=ObjectBase)

logger = get_logger(__name__)

Watcher = Callable[[KubeObject], Awaitable[None]]

_Key = tuple[str, str, str]


class MemoryObjectClient:
    """ObjectClient implementation that keeps objects in a dict.

    Deletion follows the cluster semantics the engine relies on: an object
    with finalizers is only stamped with a deletion timestamp and disappears
    once an update removes its last finalizer.

    Watchers registered per kind are awaited after every create or update of
    that kind, which lets local runs and tests stand in for controllers such
    as the credential minter.
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._objects: dict[_Key, dict[str, Any]] = {}
        self._watchers: dict[str, list[Watcher]] = defaultdict(list)
        self._version = 0

    def watch(self, kind: str, callback: Watcher) -> None:
        """Register a callback for writes to objects of ``kind``.

        Args:
            kind: Object kind to watch
            callback: Async callable receiving the written object
        """
        self._watchers[kind].append(callback)

    async def get(self, cls: type[T], kind: str, name: str, namespace: str) -> T:
        """Fetch an object and validate it into ``cls``."""
        stored = self._objects.get((kind, namespace, name))
        if stored is None:
            raise ObjectNotFoundError(f"{kind} {namespace}/{name} not found")
        return cls.model_validate(stored)

    async def create(self, obj: ObjectBase) -> None:
        """Create an object."""
        key = self._key(obj)
        if key in self._objects:
            raise ObjectConflictError(f"{obj.kind} {key[1]}/{key[2]} already exists")

        self._store(key, obj)
        logger.debug("Created object", kind=obj.kind, name=obj.metadata.name)
        await self._notify(key)

    async def update(self, obj: ObjectBase) -> None:
        """Replace an existing object, collecting it once fully finalized.

        A non-empty resource version must match the stored one. The deletion
        timestamp is owned by the store and survives updates that omit it.

        Raises:
            ObjectNotFoundError: If the object does not exist
            ObjectConflictError: If the object was written since ``obj`` was read
        """
        key = self._key(obj)
        stored = self._objects.get(key)
        if stored is None:
            raise ObjectNotFoundError(f"{obj.kind} {key[1]}/{key[2]} not found")

        stored_meta = ObjectMeta.model_validate(stored["metadata"])
        version = obj.metadata.resource_version
        if version and version != stored_meta.resource_version:
            raise ObjectConflictError(f"{obj.kind} {key[1]}/{key[2]} was modified concurrently")
        if obj.metadata.deletion_timestamp is None:
            obj.metadata.deletion_timestamp = stored_meta.deletion_timestamp

        if obj.metadata.deletion_timestamp is not None and not obj.metadata.finalizers:
            del self._objects[key]
            logger.debug("Removed finalized object", kind=obj.kind, name=obj.metadata.name)
            return

        self._store(key, obj)
        await self._notify(key)

    async def delete(self, kind: str, name: str, namespace: str) -> None:
        """Delete an object, or mark it for deletion if it has finalizers."""
        key = (kind, namespace, name)
        stored = self._objects.get(key)
        if stored is None:
            raise ObjectNotFoundError(f"{kind} {namespace}/{name} not found")

        metadata = stored["metadata"]
        if metadata.get("finalizers"):
            if "deletionTimestamp" not in metadata:
                self._version += 1
                metadata["deletionTimestamp"] = datetime.now(UTC).isoformat()
                metadata["resourceVersion"] = str(self._version)
            logger.debug("Marked object for deletion", kind=kind, name=name)
            return

        del self._objects[key]
        logger.debug("Deleted object", kind=kind, name=name)

    async def list(
        self, kind: str, namespace: str, labels: dict[str, str] | None = None
    ) -> list[KubeObject]:
        """List objects of a kind in a namespace."""
        selector = labels or {}
        result = []
        for (obj_kind, obj_namespace, _), stored in sorted(self._objects.items()):
            if obj_kind != kind or obj_namespace != namespace:
                continue
            obj_labels = stored["metadata"].get("labels", {})
            if all(obj_labels.get(k) == v for k, v in selector.items()):
                result.append(KubeObject.model_validate(stored))
        return result

    def _key(self, obj: ObjectBase) -> _Key:
        return (obj.kind, obj.metadata.namespace, obj.metadata.name)

    def _store(self, key: _Key, obj: ObjectBase) -> None:
        self._version += 1
        data = obj.to_dict()
        data["metadata"]["resourceVersion"] = str(self._version)
        obj.metadata.resource_version = str(self._version)
        self._objects[key] = data

    async def _notify(self, key: _Key) -> None:
        watchers = self._watchers.get(key[0], [])
        if not watchers:
            return
        obj = KubeObject.model_validate(self._objects[key])
        for callback in watchers:
            await callback(obj)

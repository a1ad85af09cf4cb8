"""Finalizer markers gating deletion of resource requests."""

from cloud_resources.cluster.client import ObjectClient
from cloud_resources.cluster.models import ObjectBase, ObjectMeta
from cloud_resources.core.errors import FinalizerUpdateError
from cloud_resources.core.logging import get_logger

logger = get_logger(__name__)


def has_finalizer(meta: ObjectMeta, finalizer: str) -> bool:
    """Check whether ``finalizer`` is present on the metadata."""
    return finalizer in meta.finalizers


def add_finalizer(meta: ObjectMeta, finalizer: str) -> bool:
    """Add ``finalizer`` to the metadata if missing.

    Returns:
        True if the metadata changed
    """
    if finalizer in meta.finalizers:
        return False
    meta.finalizers.append(finalizer)
    return True


def remove_finalizer(meta: ObjectMeta, finalizer: str) -> bool:
    """Remove every occurrence of ``finalizer`` from the metadata.

    Returns:
        True if the metadata changed
    """
    if finalizer not in meta.finalizers:
        return False
    meta.finalizers = [f for f in meta.finalizers if f != finalizer]
    return True


async def attach_finalizer(client: ObjectClient, obj: ObjectBase, finalizer: str) -> None:
    """Add ``finalizer`` to an object that is not being deleted and persist it.

    Does nothing for objects that already carry a deletion timestamp, so a
    request being torn down is never re-armed.

    Args:
        client: Object store the object lives in
        obj: Object to annotate
        finalizer: Finalizer marker

    Raises:
        FinalizerUpdateError: If the update cannot be persisted
    """
    if obj.metadata.deletion_timestamp is not None:
        return
    if not add_finalizer(obj.metadata, finalizer):
        return

    logger.info("Adding finalizer", finalizer=finalizer, name=obj.metadata.name)
    try:
        await client.update(obj)
    except Exception as e:
        raise FinalizerUpdateError(
            f"failed to add finalizer to {obj.kind} "
            f"{obj.metadata.namespace}/{obj.metadata.name}: {e}"
        ) from e


async def release_finalizer(client: ObjectClient, obj: ObjectBase, finalizer: str) -> None:
    """Remove ``finalizer`` from an object and persist it.

    Must be the final step of a teardown: once persisted, the object may be
    collected.

    Args:
        client: Object store the object lives in
        obj: Object to annotate
        finalizer: Finalizer marker

    Raises:
        FinalizerUpdateError: If the update cannot be persisted
    """
    if not remove_finalizer(obj.metadata, finalizer):
        return

    logger.info("Removing finalizer", finalizer=finalizer, name=obj.metadata.name)
    try:
        await client.update(obj)
    except Exception as e:
        raise FinalizerUpdateError(
            f"failed to update {obj.kind} {obj.metadata.namespace}/{obj.metadata.name} "
            f"as part of finalizer reconcile: {e}"
        ) from e

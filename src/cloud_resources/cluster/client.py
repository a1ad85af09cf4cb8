"""ObjectClient protocol for reading and writing cluster objects."""

from typing import Protocol, TypeVar, runtime_checkable

from cloud_resources.cluster.models import KubeObject, ObjectBase

T = TypeVar("T", bound=ObjectBase)


@runtime_checkable
class ObjectClient(Protocol):
    """Protocol for a namespaced object store.

    Implementations back the strategy store, credential requests, secrets and
    the resource requests themselves. Both a Kubernetes-backed and an
    in-memory implementation exist, the latter used for tests and local runs.
    """

    async def get(self, cls: type[T], kind: str, name: str, namespace: str) -> T:
        """Fetch an object and validate it into ``cls``.

        Args:
            cls: Model class to validate the object into
            kind: Object kind
            name: Object name
            namespace: Object namespace

        Returns:
            The stored object

        Raises:
            ObjectNotFoundError: If the object does not exist
        """
        ...

    async def create(self, obj: ObjectBase) -> None:
        """Create an object.

        Args:
            obj: Object to create

        Raises:
            ObjectConflictError: If the object already exists
        """
        ...

    async def update(self, obj: ObjectBase) -> None:
        """Replace an existing object.

        Args:
            obj: Object carrying the new state

        Raises:
            ObjectNotFoundError: If the object does not exist
        """
        ...

    async def delete(self, kind: str, name: str, namespace: str) -> None:
        """Delete an object.

        Objects carrying finalizers are only marked for deletion.

        Args:
            kind: Object kind
            name: Object name
            namespace: Object namespace

        Raises:
            ObjectNotFoundError: If the object does not exist
        """
        ...

    async def list(
        self, kind: str, namespace: str, labels: dict[str, str] | None = None
    ) -> list[KubeObject]:
        """List objects of a kind in a namespace.

        Args:
            kind: Object kind
            namespace: Namespace to list in
            labels: Optional label selector (all must match)

        Returns:
            Matching objects
        """
        ...

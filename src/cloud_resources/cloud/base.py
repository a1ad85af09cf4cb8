"""Cloud API client capability consumed by resource providers."""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

# Decides whether an error raised by a delete call means "already gone"
NotFoundPolicy = Callable[[BaseException], bool]

# Decides whether an error raised by a create call means "created concurrently"
AlreadyExistsPolicy = Callable[[BaseException], bool]


@dataclass
class RemoteResource:
    """A resource as reported by a cloud API.

    Attributes:
        identifier: Name or identifier of the resource
        status: Vendor status string ('available', 'creating', ...)
        attributes: Vendor-specific details such as endpoint host and port
    """

    identifier: str
    status: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class CloudClient(Protocol):
    """Protocol for listing, creating and deleting one kind of remote resource.

    Implementations are scoped to one set of credentials and one region.
    """

    async def list_resources(self) -> list[RemoteResource]:
        """List existing remote resources.

        Returns:
            Remote resources visible to the client

        Raises:
            Exception: Vendor error if the listing fails
        """
        ...

    async def create_resource(self, spec: dict[str, Any]) -> RemoteResource:
        """Create a remote resource.

        Args:
            spec: Vendor-specific creation request

        Returns:
            The resource as reported right after creation

        Raises:
            Exception: Vendor error if the creation fails
        """
        ...

    async def delete_resource(self, identifier: str) -> None:
        """Delete a remote resource.

        Args:
            identifier: Resource identifier

        Raises:
            Exception: Vendor error, including the vendor's "not found" error
        """
        ...

    async def wait_until_absent(self, identifier: str) -> None:
        """Block until the remote resource no longer exists.

        Args:
            identifier: Resource identifier

        Raises:
            Exception: If the resource does not disappear within the vendor's wait
        """
        ...


def never_not_found(error: BaseException) -> bool:
    """NotFoundPolicy that treats every error as a real failure."""
    return False


def never_already_exists(error: BaseException) -> bool:
    """AlreadyExistsPolicy that treats every error as a real failure."""
    return False

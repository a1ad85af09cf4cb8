"""Generic create/delete steps shared by every resource provider.

Create: attach the finalizer, look up the remote resource (bounded poll) and
create it only when absent. Delete: delete the remote resource treating "not
found" as success, wait until it is gone, then release the finalizer as the
very last step. Providers interleave their own strategy, credential and
cleanup steps between these.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from cloud_resources.cloud.base import (
    AlreadyExistsPolicy,
    CloudClient,
    NotFoundPolicy,
    RemoteResource,
    never_already_exists,
    never_not_found,
)
from cloud_resources.cluster.client import ObjectClient
from cloud_resources.cluster.models import ResourceRequest
from cloud_resources.core.errors import CloudResourcesError, RemoteCallError
from cloud_resources.core.finalizers import attach_finalizer, release_finalizer
from cloud_resources.core.logging import StructuredLoggerAdapter, get_logger
from cloud_resources.core.poll import PollPolicy, poll_until

logger = get_logger(__name__)


@contextmanager
def request_context(request: ResourceRequest) -> Iterator[None]:
    """Prefix errors raised inside the block with the request they concern."""
    try:
        yield
    except CloudResourcesError as e:
        e.with_context(f"{request.kind} {request.namespace}/{request.name} (tier {request.tier})")
        raise


def remote_error_code(error: BaseException) -> str:
    """Best-effort vendor error code of a remote failure."""
    response = getattr(error, "response", None)
    if isinstance(response, dict):
        return str(response.get("Error", {}).get("Code", ""))
    return ""


class ReconcileWorkflow:
    """Idempotent create/delete steps around one finalizer marker."""

    def __init__(
        self,
        client: ObjectClient,
        finalizer: str,
        poll: PollPolicy | None = None,
        is_not_found: NotFoundPolicy = never_not_found,
        is_already_exists: AlreadyExistsPolicy = never_already_exists,
        log: StructuredLoggerAdapter | None = None,
    ) -> None:
        """Initialize the workflow.

        Args:
            client: Object store the resource requests live in
            finalizer: Finalizer marker owned by the provider
            poll: Bounded wait for the existence check
            is_not_found: Decides whether a delete error means "already gone"
            is_already_exists: Decides whether a create error means another
                reconciliation created the resource first
            log: Logger carrying the provider context
        """
        self.client = client
        self.finalizer = finalizer
        self.poll = poll or PollPolicy()
        self.is_not_found = is_not_found
        self.is_already_exists = is_already_exists
        self.log = log or logger

    async def attach_finalizer(self, request: ResourceRequest) -> None:
        """Attach the finalizer before any remote side effect.

        Raises:
            FinalizerUpdateError: If the request cannot be persisted
        """
        self.log.info("Adding finalizer", request=request.name, namespace=request.namespace)
        await attach_finalizer(self.client, request, self.finalizer)

    async def release_finalizer(self, request: ResourceRequest) -> None:
        """Release the finalizer; must be the final step of a deletion.

        Raises:
            FinalizerUpdateError: If the request cannot be persisted
        """
        self.log.info("Removing finalizer", request=request.name, namespace=request.namespace)
        await release_finalizer(self.client, request, self.finalizer)

    async def find_existing(
        self, cloud: CloudClient, identifier: str, description: str
    ) -> RemoteResource | None:
        """Look up a remote resource by identifier.

        Listing errors are retried until the poll ceiling, since freshly
        issued credentials are not always accepted straight away.

        Args:
            cloud: Cloud client to list with
            identifier: Identifier of the wanted resource
            description: What is being listed, for errors and logs

        Returns:
            The matching remote resource, or None if it does not exist

        Raises:
            PollTimeoutError: If listing never succeeds within the ceiling
        """
        self.log.info("Listing existing resources", target=description)
        existing = await poll_until(
            cloud.list_resources,
            f"listing {description}",
            self.poll,
            transient=(Exception,),
        )
        for resource in existing:
            if resource.identifier == identifier:
                return resource
        return None

    async def ensure_created(
        self,
        cloud: CloudClient,
        identifier: str,
        spec: dict[str, Any],
        description: str,
    ) -> tuple[RemoteResource, bool]:
        """Create a remote resource unless it already exists.

        A create rejected because the resource appeared after the existence
        check is resolved by looking the resource up again.

        Args:
            cloud: Cloud client to create with
            identifier: Identifier of the resource
            spec: Vendor creation request
            description: What is being created, for errors and logs

        Returns:
            Tuple of (remote resource, whether it was created by this call)

        Raises:
            PollTimeoutError: If the existence check times out
            RemoteCallError: If the create call fails, or the resource it
                collided with cannot be found
        """
        found = await self.find_existing(cloud, identifier, description)
        if found is not None:
            self.log.info("Resource already exists, using that", identifier=identifier)
            return found, False

        self.log.info("Resource not found, creating", identifier=identifier)
        try:
            created = await cloud.create_resource(spec)
        except Exception as e:
            if self.is_already_exists(e):
                self.log.info("Resource created concurrently, using that", identifier=identifier)
                found = await self.find_existing(cloud, identifier, description)
                if found is not None:
                    return found, False
            raise RemoteCallError(
                f"failed to create {description} {identifier}: {e}",
                operation="create",
                code=remote_error_code(e),
            ) from e
        return created, True

    async def ensure_deleted(self, cloud: CloudClient, identifier: str, description: str) -> None:
        """Delete a remote resource and wait until it no longer exists.

        Args:
            cloud: Cloud client to delete with
            identifier: Identifier of the resource
            description: What is being deleted, for errors and logs

        Raises:
            RemoteCallError: If the delete call fails for any reason other
                than the resource being absent
            PollTimeoutError: If the resource does not disappear in time
        """
        self.log.info("Deleting remote resource", identifier=identifier)
        try:
            await cloud.delete_resource(identifier)
        except Exception as e:
            if not self.is_not_found(e):
                raise RemoteCallError(
                    f"failed to delete {description} {identifier}: {e}",
                    operation="delete",
                    code=remote_error_code(e),
                ) from e
            self.log.info("Remote resource already absent", identifier=identifier)

        await cloud.wait_until_absent(identifier)

"""Provider protocols and the instances they return.

One protocol exists per resource kind. Each concrete provider serves one
kind on one cloud vendor, advertises a single strategy name and answers
``supports_strategy`` only for that name.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol, runtime_checkable

from cloud_resources.cluster.models import Phase, ResourceRequest
from cloud_resources.core.poll import get_forced_reconcile_time_or_default

# Human-readable progress message reported on the request status
StatusMessage = str


@runtime_checkable
class DeploymentDetails(Protocol):
    """Connection data for a created resource."""

    def data(self) -> dict[str, bytes]:
        """Get the connection data as secret key/value pairs."""
        ...


@dataclass
class BlobStorageInstance:
    """Result of creating blob storage."""

    deployment_details: DeploymentDetails


@dataclass
class PostgresInstance:
    """Result of creating a postgres database."""

    deployment_details: DeploymentDetails


@dataclass
class RedisInstance:
    """Result of creating a redis cache."""

    deployment_details: DeploymentDetails


@dataclass
class SMTPCredentialSetInstance:
    """Result of creating SMTP credentials."""

    deployment_details: DeploymentDetails


@dataclass
class PostgresDeploymentDetails:
    """Connection details of a postgres database."""

    username: str
    password: str
    host: str
    database: str
    port: int

    def data(self) -> dict[str, bytes]:
        """Get the connection data as secret key/value pairs."""
        return {
            "username": self.username.encode(),
            "password": self.password.encode(),
            "host": self.host.encode(),
            "database": self.database.encode(),
            "port": str(self.port).encode(),
        }


@dataclass
class RedisDeploymentDetails:
    """Connection details of a redis cache."""

    uri: str
    port: int

    def data(self) -> dict[str, bytes]:
        """Get the connection data as secret key/value pairs."""
        return {
            "uri": self.uri.encode(),
            "port": str(self.port).encode(),
        }


def reconcile_time_for(
    request: ResourceRequest,
    default: timedelta,
    in_progress: timedelta | None = None,
) -> timedelta:
    """Get how long to wait before reconciling ``request`` again.

    Args:
        request: Resource request
        default: Interval once the request has settled
        in_progress: Shorter interval while creation is in progress

    Returns:
        Reconcile interval, forced through the environment if configured
    """
    interval = default
    if in_progress is not None and request.status.phase == Phase.IN_PROGRESS:
        interval = in_progress
    return get_forced_reconcile_time_or_default(interval)


@runtime_checkable
class BlobStorageProvider(Protocol):
    """Protocol for blob storage providers."""

    def get_name(self) -> str:
        """Get the provider name."""
        ...

    def supports_strategy(self, strategy: str) -> bool:
        """Check whether this provider serves ``strategy``."""
        ...

    def get_reconcile_time(self, request: ResourceRequest) -> timedelta:
        """Get the interval before the next reconciliation."""
        ...

    async def create_storage(
        self, request: ResourceRequest
    ) -> tuple[BlobStorageInstance | None, StatusMessage]:
        """Create blob storage for a request.

        Raises:
            CloudResourcesError: If any workflow step fails
        """
        ...

    async def delete_storage(self, request: ResourceRequest) -> StatusMessage:
        """Delete blob storage for a request.

        Raises:
            CloudResourcesError: If any workflow step fails
        """
        ...


@runtime_checkable
class PostgresProvider(Protocol):
    """Protocol for postgres providers."""

    def get_name(self) -> str:
        """Get the provider name."""
        ...

    def supports_strategy(self, strategy: str) -> bool:
        """Check whether this provider serves ``strategy``."""
        ...

    def get_reconcile_time(self, request: ResourceRequest) -> timedelta:
        """Get the interval before the next reconciliation."""
        ...

    async def create_postgres(
        self, request: ResourceRequest
    ) -> tuple[PostgresInstance | None, StatusMessage]:
        """Create a postgres database for a request.

        Returns None while the database is still being provisioned.
        """
        ...

    async def delete_postgres(self, request: ResourceRequest) -> StatusMessage:
        """Delete the postgres database of a request."""
        ...


@runtime_checkable
class RedisProvider(Protocol):
    """Protocol for redis providers."""

    def get_name(self) -> str:
        """Get the provider name."""
        ...

    def supports_strategy(self, strategy: str) -> bool:
        """Check whether this provider serves ``strategy``."""
        ...

    def get_reconcile_time(self, request: ResourceRequest) -> timedelta:
        """Get the interval before the next reconciliation."""
        ...

    async def create_redis(
        self, request: ResourceRequest
    ) -> tuple[RedisInstance | None, StatusMessage]:
        """Create a redis cache for a request.

        Returns None while the cache is still being provisioned.
        """
        ...

    async def delete_redis(self, request: ResourceRequest) -> StatusMessage:
        """Delete the redis cache of a request."""
        ...


@runtime_checkable
class SMTPCredentialsProvider(Protocol):
    """Protocol for SMTP credential providers."""

    def get_name(self) -> str:
        """Get the provider name."""
        ...

    def supports_strategy(self, strategy: str) -> bool:
        """Check whether this provider serves ``strategy``."""
        ...

    def get_reconcile_time(self, request: ResourceRequest) -> timedelta:
        """Get the interval before the next reconciliation."""
        ...

    async def create_smtp_credentials(
        self, request: ResourceRequest
    ) -> tuple[SMTPCredentialSetInstance | None, StatusMessage]:
        """Issue SMTP credentials for a request."""
        ...

    async def delete_smtp_credentials(self, request: ResourceRequest) -> StatusMessage:
        """Revoke the SMTP credentials of a request."""
        ...

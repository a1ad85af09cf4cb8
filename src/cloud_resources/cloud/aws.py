"""AWS implementations of the cloud client capability, built on boto3.

boto3 is blocking, so every call runs in a worker thread.
"""

import asyncio
import math
from typing import Any

import boto3
from botocore.exceptions import ClientError, WaiterError

from cloud_resources.cloud.base import RemoteResource
from cloud_resources.core.errors import PollTimeoutError, RemoteCallError
from cloud_resources.core.logging import get_logger
from cloud_resources.core.poll import PollPolicy
from cloud_resources.credentials.base import Credentials

logger = get_logger(__name__)

DEFAULT_REGION = "eu-west-1"

# Reason botocore gives when a waiter runs out of attempts
WAITER_EXHAUSTED = "Max attempts exceeded"

NOT_FOUND_CODES = {
    "404",
    "NotFound",
    "NoSuchBucket",
    "DBInstanceNotFound",
    "DBInstanceNotFoundFault",
    "ReplicationGroupNotFoundFault",
}

ALREADY_EXISTS_CODES = {
    "BucketAlreadyOwnedByYou",
    "DBInstanceAlreadyExists",
    "DBInstanceAlreadyExistsFault",
    "ReplicationGroupAlreadyExists",
    "ReplicationGroupAlreadyExistsFault",
}


def aws_error_code(error: BaseException) -> str:
    """Extract the AWS error code from a botocore error, if any."""
    if isinstance(error, ClientError):
        return str(error.response.get("Error", {}).get("Code", ""))
    return ""


def is_aws_not_found(error: BaseException) -> bool:
    """NotFoundPolicy recognising AWS "resource does not exist" error codes."""
    return aws_error_code(error) in NOT_FOUND_CODES


def is_aws_already_exists(error: BaseException) -> bool:
    """AlreadyExistsPolicy recognising AWS "resource already exists" error codes."""
    return aws_error_code(error) in ALREADY_EXISTS_CODES


def new_session(credentials: Credentials, region: str) -> boto3.session.Session:
    """Build a boto3 session from static credentials.

    Args:
        credentials: Provider credentials
        region: AWS region

    Returns:
        boto3 session scoped to the credentials and region
    """
    return boto3.session.Session(
        aws_access_key_id=credentials.access_key_id,
        aws_secret_access_key=credentials.secret_access_key,
        region_name=region,
    )


class _AWSClient:
    """Shared plumbing for boto3-backed clients."""

    service = ""
    waiter_name = ""

    def __init__(self, session: boto3.session.Session, poll: PollPolicy | None = None) -> None:
        """Initialize the client.

        Args:
            session: boto3 session carrying credentials and region
            poll: Delay and ceiling used for deletion waiters
        """
        self.region = session.region_name or DEFAULT_REGION
        self.poll = poll or PollPolicy()
        self._client = session.client(self.service)

    async def _call(self, method: str, **kwargs: Any) -> dict[str, Any]:
        return await asyncio.to_thread(getattr(self._client, method), **kwargs)

    async def _wait_absent(self, description: str, **kwargs: Any) -> None:
        waiter = self._client.get_waiter(self.waiter_name)
        config = {
            "Delay": max(1, int(self.poll.interval)),
            "MaxAttempts": max(1, math.ceil(self.poll.timeout / self.poll.interval)),
        }
        try:
            await asyncio.to_thread(waiter.wait, WaiterConfig=config, **kwargs)
        except WaiterError as e:
            reason = str(e.kwargs.get("reason", ""))
            if reason.startswith(WAITER_EXHAUSTED):
                raise PollTimeoutError(description, self.poll.timeout) from e
            error = (e.last_response or {}).get("Error", {})
            raise RemoteCallError(
                f"{description} failed: {reason}",
                operation="wait",
                code=str(error.get("Code", "")),
            ) from e


class S3BucketClient(_AWSClient):
    """CloudClient for S3 buckets."""

    service = "s3"
    waiter_name = "bucket_not_exists"

    async def list_resources(self) -> list[RemoteResource]:
        """List buckets owned by the account."""
        response = await self._call("list_buckets")
        return [
            RemoteResource(identifier=b["Name"], status="available")
            for b in response.get("Buckets", [])
        ]

    async def create_resource(self, spec: dict[str, Any]) -> RemoteResource:
        """Create a bucket from ``CreateBucket`` parameters."""
        params = dict(spec)
        # us-east-1 rejects an explicit location constraint
        if self.region != "us-east-1" and "CreateBucketConfiguration" not in params:
            params["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        await self._call("create_bucket", **params)
        return RemoteResource(identifier=params["Bucket"], status="available")

    async def delete_resource(self, identifier: str) -> None:
        """Delete an (empty) bucket."""
        await self._call("delete_bucket", Bucket=identifier)

    async def wait_until_absent(self, identifier: str) -> None:
        """Wait for the bucket to stop existing."""
        await self._wait_absent(f"s3 bucket {identifier} deletion", Bucket=identifier)


class RDSInstanceClient(_AWSClient):
    """CloudClient for RDS database instances."""

    service = "rds"
    waiter_name = "db_instance_deleted"

    async def list_resources(self) -> list[RemoteResource]:
        """List database instances."""

        def _describe() -> list[dict[str, Any]]:
            paginator = self._client.get_paginator("describe_db_instances")
            instances: list[dict[str, Any]] = []
            for page in paginator.paginate():
                instances.extend(page.get("DBInstances", []))
            return instances

        instances = await asyncio.to_thread(_describe)
        return [self._to_resource(i) for i in instances]

    async def create_resource(self, spec: dict[str, Any]) -> RemoteResource:
        """Create a database instance from ``CreateDBInstance`` parameters."""
        response = await self._call("create_db_instance", **spec)
        return self._to_resource(response["DBInstance"])

    async def delete_resource(self, identifier: str) -> None:
        """Delete a database instance without a final snapshot."""
        await self._call(
            "delete_db_instance",
            DBInstanceIdentifier=identifier,
            SkipFinalSnapshot=True,
        )

    async def wait_until_absent(self, identifier: str) -> None:
        """Wait for the database instance to be deleted."""
        await self._wait_absent(
            f"rds instance {identifier} deletion", DBInstanceIdentifier=identifier
        )

    @staticmethod
    def _to_resource(instance: dict[str, Any]) -> RemoteResource:
        endpoint = instance.get("Endpoint") or {}
        return RemoteResource(
            identifier=instance["DBInstanceIdentifier"],
            status=instance.get("DBInstanceStatus", ""),
            attributes={
                "host": endpoint.get("Address", ""),
                "port": endpoint.get("Port", 0),
                "username": instance.get("MasterUsername", ""),
                "database": instance.get("DBName", ""),
            },
        )


class ElastiCacheClient(_AWSClient):
    """CloudClient for ElastiCache replication groups."""

    service = "elasticache"
    waiter_name = "replication_group_deleted"

    async def list_resources(self) -> list[RemoteResource]:
        """List replication groups."""

        def _describe() -> list[dict[str, Any]]:
            paginator = self._client.get_paginator("describe_replication_groups")
            groups: list[dict[str, Any]] = []
            for page in paginator.paginate():
                groups.extend(page.get("ReplicationGroups", []))
            return groups

        groups = await asyncio.to_thread(_describe)
        return [self._to_resource(g) for g in groups]

    async def create_resource(self, spec: dict[str, Any]) -> RemoteResource:
        """Create a replication group from ``CreateReplicationGroup`` parameters."""
        response = await self._call("create_replication_group", **spec)
        return self._to_resource(response["ReplicationGroup"])

    async def delete_resource(self, identifier: str) -> None:
        """Delete a replication group."""
        await self._call("delete_replication_group", ReplicationGroupId=identifier)

    async def wait_until_absent(self, identifier: str) -> None:
        """Wait for the replication group to be deleted."""
        await self._wait_absent(
            f"elasticache replication group {identifier} deletion",
            ReplicationGroupId=identifier,
        )

    @staticmethod
    def _to_resource(group: dict[str, Any]) -> RemoteResource:
        endpoint: dict[str, Any] = {}
        node_groups = group.get("NodeGroups") or []
        if node_groups:
            endpoint = node_groups[0].get("PrimaryEndpoint") or {}
        return RemoteResource(
            identifier=group["ReplicationGroupId"],
            status=group.get("Status", ""),
            attributes={
                "host": endpoint.get("Address", ""),
                "port": endpoint.get("Port", 0),
            },
        )

"""Credential manager issuing AWS credentials through credential requests.

A ``CredentialsRequest`` object describes the IAM statements wanted; an
external credential minter fulfils it by writing an access key pair into the
secret named in the request and flagging the request as provisioned.
"""

from typing import Any

from cloud_resources.cluster.client import ObjectClient
from cloud_resources.cluster.models import (
    CREDENTIALS_API_VERSION,
    KIND_CREDENTIALS_REQUEST,
    KIND_SECRET,
    KubeObject,
)
from cloud_resources.core.errors import (
    CredentialProvisioningError,
    ObjectConflictError,
    ObjectNotFoundError,
    PollTimeoutError,
)
from cloud_resources.core.logging import get_logger
from cloud_resources.core.poll import PollPolicy, poll_until
from cloud_resources.credentials.base import Credentials

logger = get_logger(__name__)

PROVIDER_CREDENTIAL_NAME = "cloud-resources-aws-credentials"

SECRET_ACCESS_KEY_ID = "aws_access_key_id"
SECRET_SECRET_ACCESS_KEY = "aws_secret_access_key"

FAILURE_CONDITIONS = {"CredentialsProvisionFailure", "InsufficientCloudCreds"}

OPERATOR_ENTRIES: list[dict[str, Any]] = [
    {
        "effect": "Allow",
        "action": [
            "s3:CreateBucket",
            "s3:DeleteBucket",
            "s3:ListAllMyBuckets",
            "s3:ListBucket",
            "s3:PutBucketTagging",
            "rds:CreateDBInstance",
            "rds:DeleteDBInstance",
            "rds:DescribeDBInstances",
            "rds:AddTagsToResource",
            "elasticache:CreateReplicationGroup",
            "elasticache:DeleteReplicationGroup",
            "elasticache:DescribeReplicationGroups",
            "ec2:DescribeVpcs",
            "ec2:DescribeSubnets",
            "ec2:DescribeSecurityGroups",
            "iam:CreateServiceLinkedRole",
        ],
        "resource": "*",
    }
]


def _bucket_owner_entries(bucket: str) -> list[dict[str, Any]]:
    return [
        {
            "effect": "Allow",
            "action": [
                "s3:ListBucket",
                "s3:PutObject",
                "s3:GetObject",
                "s3:DeleteObject",
            ],
            "resource": f"arn:aws:s3:::{bucket}",
        },
        {
            "effect": "Allow",
            "action": ["s3:PutObject", "s3:GetObject", "s3:DeleteObject"],
            "resource": f"arn:aws:s3:::{bucket}/*",
        },
    ]


SES_ENTRIES: list[dict[str, Any]] = [
    {"effect": "Allow", "action": ["ses:SendRawEmail"], "resource": "*"},
]


def build_credentials_request(
    name: str, namespace: str, entries: list[dict[str, Any]]
) -> KubeObject:
    """Build a credential request whose secret shares its name.

    Args:
        name: Name of the request and of the secret it fills
        namespace: Namespace of both objects
        entries: IAM statement entries

    Returns:
        Credential request object
    """
    return KubeObject.new(
        KIND_CREDENTIALS_REQUEST,
        name,
        namespace,
        spec={
            "secretRef": {"name": name, "namespace": namespace},
            "providerSpec": {
                "apiVersion": CREDENTIALS_API_VERSION,
                "kind": "AWSProviderSpec",
                "statementEntries": entries,
            },
        },
    )


class CredentialMinterCredentialManager:
    """CredentialManager backed by credential requests in the object store."""

    def __init__(self, client: ObjectClient, poll: PollPolicy | None = None) -> None:
        """Initialize the credential manager.

        Args:
            client: Object store holding credential requests and secrets
            poll: Bounded wait for a request to be provisioned
        """
        self.client = client
        self.poll = poll or PollPolicy()

    async def reconcile_provider_credentials(self, namespace: str) -> Credentials:
        """Get the operator's credentials for a namespace."""
        creds, _ = await self._reconcile_credentials(
            PROVIDER_CREDENTIAL_NAME, namespace, OPERATOR_ENTRIES
        )
        return creds

    async def reconcile_bucket_owner_credentials(
        self, name: str, namespace: str, bucket: str
    ) -> tuple[Credentials, KubeObject]:
        """Get end-user credentials restricted to ``bucket``."""
        return await self._reconcile_credentials(name, namespace, _bucket_owner_entries(bucket))

    async def reconcile_ses_credentials(
        self, name: str, namespace: str
    ) -> tuple[Credentials, KubeObject]:
        """Get end-user credentials allowed to send raw email."""
        return await self._reconcile_credentials(name, namespace, SES_ENTRIES)

    async def delete_credentials(self, name: str, namespace: str) -> None:
        """Remove a credential request, ignoring one that is already gone."""
        logger.info("Deleting credential request", name=name, namespace=namespace)
        try:
            await self.client.delete(KIND_CREDENTIALS_REQUEST, name, namespace)
        except ObjectNotFoundError:
            logger.debug("Credential request already removed", name=name)
        except Exception as e:
            raise CredentialProvisioningError(
                f"failed to delete credential request {name} in namespace {namespace}: {e}"
            ) from e

    async def _reconcile_credentials(
        self, name: str, namespace: str, entries: list[dict[str, Any]]
    ) -> tuple[Credentials, KubeObject]:
        """Create or update a credential request and wait for its secret.

        Raises:
            CredentialProvisioningError: If the request cannot be written, is
                rejected, or is not fulfilled within the wait window
        """
        desired = build_credentials_request(name, namespace, entries)

        try:
            request = await self._create_or_update(desired)
        except Exception as e:
            raise CredentialProvisioningError(
                f"failed to reconcile credential request {name} in namespace {namespace}: {e}"
            ) from e

        try:
            creds = await poll_until(
                lambda: self._provisioned_credentials(name, namespace),
                f"credential request {namespace}/{name} to be provisioned",
                self.poll,
                transient=(ObjectNotFoundError,),
            )
        except PollTimeoutError as e:
            raise CredentialProvisioningError(
                f"credential request {name} in namespace {namespace} was not provisioned: {e}"
            ) from e

        return creds, request

    async def _create_or_update(self, desired: KubeObject) -> KubeObject:
        name = desired.metadata.name
        namespace = desired.metadata.namespace

        try:
            existing = await self.client.get(
                KubeObject, KIND_CREDENTIALS_REQUEST, name, namespace
            )
        except ObjectNotFoundError:
            try:
                await self.client.create(desired)
                logger.info("Created credential request", name=name, namespace=namespace)
                return desired
            except ObjectConflictError:
                existing = await self.client.get(
                    KubeObject, KIND_CREDENTIALS_REQUEST, name, namespace
                )

        if existing.spec != desired.spec:
            existing.spec = desired.spec
            await self.client.update(existing)
            logger.info("Updated credential request", name=name, namespace=namespace)
        return existing

    async def _provisioned_credentials(self, name: str, namespace: str) -> Credentials | None:
        request = await self.client.get(KubeObject, KIND_CREDENTIALS_REQUEST, name, namespace)

        for condition in request.status.get("conditions", []):
            if condition.get("type") in FAILURE_CONDITIONS and condition.get("status") == "True":
                raise CredentialProvisioningError(
                    f"credential request {name} in namespace {namespace} failed: "
                    f"{condition.get('message', condition.get('type'))}"
                )

        if not request.status.get("provisioned"):
            return None

        secret = await self.client.get(KubeObject, KIND_SECRET, name, namespace)
        key_id = secret.data.get(SECRET_ACCESS_KEY_ID, "")
        secret_key = secret.data.get(SECRET_SECRET_ACCESS_KEY, "")
        if not key_id or not secret_key:
            return None

        return Credentials(
            username=request.status.get("providerStatus", {}).get("user", ""),
            access_key_id=key_id,
            secret_access_key=secret_key,
        )

"""AWS S3 blob storage provider."""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from cloud_resources.cloud.aws import S3BucketClient, is_aws_already_exists, is_aws_not_found
from cloud_resources.cloud.base import AlreadyExistsPolicy, NotFoundPolicy
from cloud_resources.cluster.client import ObjectClient
from cloud_resources.cluster.models import ResourceRequest
from cloud_resources.config.manager import ProviderConfigManager
from cloud_resources.config.models import StrategyConfig
from cloud_resources.core.logging import get_logger
from cloud_resources.core.poll import PollPolicy
from cloud_resources.credentials.base import CredentialManager
from cloud_resources.providers.aws.common import (
    DEFAULT_FINALIZER,
    PROVIDER_NAME,
    RECONCILE_TIME_COMPLETE,
    RECONCILE_TIME_IN_PROGRESS,
    CloudFactory,
    decode_create_strategy,
    default_resource_name,
    session_client_factory,
)
from cloud_resources.providers.base import BlobStorageInstance, StatusMessage, reconcile_time_for
from cloud_resources.providers.workflow import ReconcileWorkflow, request_context

logger = get_logger(__name__)

DATA_BUCKET_NAME = "bucketName"
DATA_CREDENTIAL_KEY_ID = "credentialKeyID"
DATA_CREDENTIAL_SECRET_KEY = "credentialSecretKey"


@dataclass
class BlobStorageDeploymentDetails:
    """Connection details of an S3 bucket and the credentials owning it."""

    bucket_name: str
    credential_key_id: str
    credential_secret_key: str

    def data(self) -> dict[str, bytes]:
        """Get the connection data as secret key/value pairs."""
        return {
            DATA_BUCKET_NAME: self.bucket_name.encode(),
            DATA_CREDENTIAL_KEY_ID: self.credential_key_id.encode(),
            DATA_CREDENTIAL_SECRET_KEY: self.credential_secret_key.encode(),
        }


def end_user_credentials_name(request: ResourceRequest) -> str:
    """Name of the credential request handed to the owner of a bucket."""
    return f"cloud-resources-aws-s3-{request.name}-credentials"


class AWSBlobStorageProvider:
    """BlobStorageProvider creating S3 buckets."""

    def __init__(
        self,
        client: ObjectClient,
        config_manager: ProviderConfigManager,
        credential_manager: CredentialManager,
        cloud_factory: CloudFactory | None = None,
        poll: PollPolicy | None = None,
        is_not_found: NotFoundPolicy = is_aws_not_found,
        is_already_exists: AlreadyExistsPolicy = is_aws_already_exists,
    ) -> None:
        """Initialize the provider.

        Args:
            client: Object store holding the requests
            config_manager: Reads the AWS blob storage strategy
            credential_manager: Issues provider and bucket owner credentials
            cloud_factory: Builds the S3 client (boto3 by default)
            poll: Bounded wait for listing and deletion
            is_not_found: Classifies "bucket does not exist" delete errors
            is_already_exists: Classifies "created concurrently" create errors
        """
        self.client = client
        self.config_manager = config_manager
        self.credential_manager = credential_manager
        self.poll = poll or PollPolicy()
        self.cloud_factory = cloud_factory or session_client_factory(S3BucketClient, self.poll)
        self.log = logger.bind(provider="aws_s3")
        self.workflow = ReconcileWorkflow(
            client, DEFAULT_FINALIZER, self.poll, is_not_found, is_already_exists, self.log
        )

    def get_name(self) -> str:
        """Get the provider name."""
        return PROVIDER_NAME

    def supports_strategy(self, strategy: str) -> bool:
        """Check whether this provider serves ``strategy``."""
        return strategy == PROVIDER_NAME

    def get_reconcile_time(self, request: ResourceRequest) -> timedelta:
        """Get the interval before the next reconciliation."""
        return reconcile_time_for(request, RECONCILE_TIME_COMPLETE, RECONCILE_TIME_IN_PROGRESS)

    async def create_storage(
        self, request: ResourceRequest
    ) -> tuple[BlobStorageInstance | None, StatusMessage]:
        """Create an S3 bucket and the credentials to use it.

        Raises:
            CloudResourcesError: If any workflow step fails
        """
        with request_context(request):
            self.log.info("Creating blob storage", request=request.name)
            await self.workflow.attach_finalizer(request)

            bucket_config, strategy = await self._bucket_config(request)
            bucket = bucket_config["Bucket"]

            self.log.info("Reconciling bucket owner credentials", bucket=bucket)
            owner_creds, _ = await self.credential_manager.reconcile_bucket_owner_credentials(
                end_user_credentials_name(request), request.namespace, bucket
            )

            self.log.info("Reconciling provider credentials", namespace=request.namespace)
            provider_creds = await self.credential_manager.reconcile_provider_credentials(
                request.namespace
            )

            self.log.info("Creating aws session", region=strategy.region)
            s3 = self.cloud_factory(provider_creds, strategy.region)
            _, created = await self.workflow.ensure_created(s3, bucket, bucket_config, "s3 bucket")

        instance = BlobStorageInstance(
            deployment_details=BlobStorageDeploymentDetails(
                bucket_name=bucket,
                credential_key_id=owner_creds.access_key_id,
                credential_secret_key=owner_creds.secret_access_key,
            )
        )
        self.log.info("Blob storage creation finished", request=request.name, bucket=bucket)
        if created:
            return instance, f"created s3 bucket {bucket}"
        return instance, f"using existing s3 bucket {bucket}"

    async def delete_storage(self, request: ResourceRequest) -> StatusMessage:
        """Delete the S3 bucket and the bucket owner credentials.

        Raises:
            CloudResourcesError: If any workflow step fails
        """
        with request_context(request):
            self.log.info("Deleting blob storage", request=request.name)
            bucket_config, strategy = await self._bucket_config(request)
            bucket = bucket_config["Bucket"]

            provider_creds = await self.credential_manager.reconcile_provider_credentials(
                request.namespace
            )
            s3 = self.cloud_factory(provider_creds, strategy.region)
            await self.workflow.ensure_deleted(s3, bucket, "s3 bucket")

            self.log.info("Deleting bucket owner credentials", bucket=bucket)
            await self.credential_manager.delete_credentials(
                end_user_credentials_name(request), request.namespace
            )

            await self.workflow.release_finalizer(request)

        self.log.info("Blob storage deletion finished", request=request.name, bucket=bucket)
        return f"deleted s3 bucket {bucket}"

    async def _bucket_config(
        self, request: ResourceRequest
    ) -> tuple[dict[str, Any], StrategyConfig]:
        strategy = await self.config_manager.read_blob_storage_strategy(request.tier)
        bucket_config = decode_create_strategy(strategy, "aws s3", "Bucket")
        bucket_config.setdefault("Bucket", default_resource_name(request))
        return bucket_config, strategy

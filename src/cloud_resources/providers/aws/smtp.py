"""AWS SES SMTP credential provider.

SES accepts SMTP logins whose password is derived from an IAM secret access
key with a fixed SigV4 signing chain, so issuing SMTP credentials only needs
an IAM identity allowed to send raw email.
"""

import base64
import hashlib
import hmac
from dataclasses import dataclass
from datetime import timedelta

from cloud_resources.cluster.client import ObjectClient
from cloud_resources.cluster.models import ResourceRequest
from cloud_resources.config.manager import ProviderConfigManager
from cloud_resources.core.logging import get_logger
from cloud_resources.credentials.base import CredentialManager
from cloud_resources.providers.aws.common import (
    DEFAULT_FINALIZER,
    PROVIDER_NAME,
    RECONCILE_TIME_COMPLETE,
    RECONCILE_TIME_IN_PROGRESS,
    validate_region,
)
from cloud_resources.providers.base import (
    SMTPCredentialSetInstance,
    StatusMessage,
    reconcile_time_for,
)
from cloud_resources.providers.workflow import ReconcileWorkflow, request_context

logger = get_logger(__name__)

SMTP_PORT = 587
SMTP_TLS = True

_SIGNING_DATE = "11111111"
_SIGNING_SERVICE = "ses"
_SIGNING_MESSAGE = "SendRawEmail"
_SIGNING_TERMINAL = "aws4_request"
_SIGNING_VERSION = 0x04


@dataclass
class SMTPCredentialSetDetails:
    """SMTP login and server details."""

    username: str
    password: str
    host: str
    port: int
    tls: bool

    def data(self) -> dict[str, bytes]:
        """Get the connection data as secret key/value pairs."""
        return {
            "username": self.username.encode(),
            "password": self.password.encode(),
            "host": self.host.encode(),
            "port": str(self.port).encode(),
            "tls": str(self.tls).lower().encode(),
        }


def _sign(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def smtp_password(secret_access_key: str, region: str) -> str:
    """Derive the SES SMTP password for a secret access key.

    Args:
        secret_access_key: IAM secret access key
        region: SES region the password is valid in

    Returns:
        Base64 encoded SMTP password
    """
    signature = _sign(f"AWS4{secret_access_key}".encode("utf-8"), _SIGNING_DATE)
    for part in (region, _SIGNING_SERVICE, _SIGNING_TERMINAL, _SIGNING_MESSAGE):
        signature = _sign(signature, part)
    return base64.b64encode(bytes([_SIGNING_VERSION]) + signature).decode("utf-8")


def smtp_host(region: str) -> str:
    """Get the SES SMTP endpoint of a region."""
    return f"email-smtp.{region}.amazonaws.com"


def end_user_credentials_name(request: ResourceRequest) -> str:
    """Name of the credential request backing a set of SMTP credentials."""
    return f"cloud-resources-aws-smtp-{request.name}-credentials"


class AWSSMTPCredentialProvider:
    """SMTPCredentialsProvider issuing SES SMTP logins."""

    def __init__(
        self,
        client: ObjectClient,
        config_manager: ProviderConfigManager,
        credential_manager: CredentialManager,
    ) -> None:
        """Initialize the provider.

        Args:
            client: Object store holding the requests
            config_manager: Reads the AWS SMTP credential strategy
            credential_manager: Issues the SES sending identity
        """
        self.client = client
        self.config_manager = config_manager
        self.credential_manager = credential_manager
        self.log = logger.bind(provider="aws_ses")
        self.workflow = ReconcileWorkflow(client, DEFAULT_FINALIZER, log=self.log)

    def get_name(self) -> str:
        """Get the provider name."""
        return PROVIDER_NAME

    def supports_strategy(self, strategy: str) -> bool:
        """Check whether this provider serves ``strategy``."""
        return strategy == PROVIDER_NAME

    def get_reconcile_time(self, request: ResourceRequest) -> timedelta:
        """Get the interval before the next reconciliation."""
        return reconcile_time_for(request, RECONCILE_TIME_COMPLETE, RECONCILE_TIME_IN_PROGRESS)

    async def create_smtp_credentials(
        self, request: ResourceRequest
    ) -> tuple[SMTPCredentialSetInstance | None, StatusMessage]:
        """Issue SES credentials and derive the SMTP login from them.

        Raises:
            CloudResourcesError: If any workflow step fails
        """
        with request_context(request):
            self.log.info("Creating smtp credentials", request=request.name)
            await self.workflow.attach_finalizer(request)

            strategy = await self.config_manager.read_smtp_credential_strategy(request.tier)
            region = validate_region(strategy.region)
            creds, _ = await self.credential_manager.reconcile_ses_credentials(
                end_user_credentials_name(request), request.namespace
            )

        details = SMTPCredentialSetDetails(
            username=creds.access_key_id,
            password=smtp_password(creds.secret_access_key, region),
            host=smtp_host(region),
            port=SMTP_PORT,
            tls=SMTP_TLS,
        )
        self.log.info("SMTP credential creation finished", request=request.name)
        return SMTPCredentialSetInstance(deployment_details=details), (
            f"smtp credentials issued for {details.host}"
        )

    async def delete_smtp_credentials(self, request: ResourceRequest) -> StatusMessage:
        """Remove the SES credential request.

        Raises:
            CloudResourcesError: If any workflow step fails
        """
        with request_context(request):
            self.log.info("Deleting smtp credentials", request=request.name)
            await self.credential_manager.delete_credentials(
                end_user_credentials_name(request), request.namespace
            )
            await self.workflow.release_finalizer(request)

        self.log.info("SMTP credential deletion finished", request=request.name)
        return "smtp credentials removed"

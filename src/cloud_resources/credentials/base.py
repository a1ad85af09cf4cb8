"""Credential models and the CredentialManager protocol."""

from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from cloud_resources.cluster.models import KubeObject


class Credentials(BaseModel):
    """Access credentials issued by the identity system.

    Attributes:
        username: Identity the credentials belong to, if known
        access_key_id: Access key identifier
        secret_access_key: Secret key
    """

    model_config = {"frozen": True}

    username: str = ""
    access_key_id: str
    secret_access_key: str


@runtime_checkable
class CredentialManager(Protocol):
    """Protocol for issuing provider and end-user credentials.

    Every method converges: calling it again with the same name and namespace
    returns the same credential identity instead of minting another one.
    """

    async def reconcile_provider_credentials(self, namespace: str) -> Credentials:
        """Get the credentials the operator uses to manage resources in a namespace.

        Args:
            namespace: Scope the credentials are shared across

        Returns:
            Provider credentials

        Raises:
            CredentialProvisioningError: If the credentials cannot be issued
        """
        ...

    async def reconcile_bucket_owner_credentials(
        self, name: str, namespace: str, bucket: str
    ) -> tuple[Credentials, KubeObject]:
        """Get end-user credentials restricted to one bucket.

        Args:
            name: Name of the credential request
            namespace: Namespace of the credential request
            bucket: Bucket the credentials are scoped to

        Returns:
            Tuple of (credentials, credential request)

        Raises:
            CredentialProvisioningError: If the credentials cannot be issued
        """
        ...

    async def reconcile_ses_credentials(
        self, name: str, namespace: str
    ) -> tuple[Credentials, KubeObject]:
        """Get end-user credentials allowed to send email.

        Args:
            name: Name of the credential request
            namespace: Namespace of the credential request

        Returns:
            Tuple of (credentials, credential request)

        Raises:
            CredentialProvisioningError: If the credentials cannot be issued
        """
        ...

    async def delete_credentials(self, name: str, namespace: str) -> None:
        """Remove a credential request created for one resource.

        Already-removed requests are not an error.

        Args:
            name: Name of the credential request
            namespace: Namespace of the credential request

        Raises:
            CredentialProvisioningError: If the removal fails
        """
        ...

"""Generated credentials kept in secrets so they survive re-reconciliation."""

import secrets
import string

from cloud_resources.cluster.client import ObjectClient
from cloud_resources.cluster.models import KIND_SECRET, KubeObject
from cloud_resources.core.errors import (
    CredentialProvisioningError,
    ObjectConflictError,
    ObjectNotFoundError,
)
from cloud_resources.core.logging import get_logger

logger = get_logger(__name__)

SECRET_USER_KEY = "user"
SECRET_PASSWORD_KEY = "password"
SECRET_DATABASE_KEY = "database"

PASSWORD_LENGTH = 32
_PASSWORD_ALPHABET = string.ascii_letters + string.digits


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """Generate a random alphanumeric password."""
    return "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))


async def reconcile_password_secret(
    client: ObjectClient,
    name: str,
    namespace: str,
    username: str,
    database: str,
) -> KubeObject:
    """Get the credentials secret, generating the password on first use.

    An existing secret is returned untouched, so the password is generated
    exactly once per secret name.

    Args:
        client: Object store
        name: Secret name
        namespace: Secret namespace
        username: User stored alongside the password
        database: Database name stored alongside the password

    Returns:
        Secret holding user, password and database

    Raises:
        CredentialProvisioningError: If the secret cannot be read or written
    """
    try:
        try:
            return await client.get(KubeObject, KIND_SECRET, name, namespace)
        except ObjectNotFoundError:
            pass

        secret = KubeObject.new(
            KIND_SECRET,
            name,
            namespace,
            data={
                SECRET_USER_KEY: username,
                SECRET_PASSWORD_KEY: generate_password(),
                SECRET_DATABASE_KEY: database,
            },
        )
        try:
            await client.create(secret)
        except ObjectConflictError:
            return await client.get(KubeObject, KIND_SECRET, name, namespace)
        logger.info("Generated credentials secret", name=name, namespace=namespace)
        return secret
    except Exception as e:
        raise CredentialProvisioningError(
            f"failed to reconcile credentials secret {name} in namespace {namespace}: {e}"
        ) from e


async def delete_secret(client: ObjectClient, name: str, namespace: str) -> None:
    """Delete a generated secret, ignoring one that is already gone.

    Raises:
        CredentialProvisioningError: If the deletion fails
    """
    try:
        await client.delete(KIND_SECRET, name, namespace)
        logger.info("Deleted credentials secret", name=name, namespace=namespace)
    except ObjectNotFoundError:
        logger.debug("Credentials secret already removed", name=name)
    except Exception as e:
        raise CredentialProvisioningError(
            f"failed to delete credentials secret {name} in namespace {namespace}: {e}"
        ) from e

"""Unit tests for generated credential secrets."""

from unittest.mock import AsyncMock

import pytest

from cloud_resources.cluster.memory import MemoryObjectClient
from cloud_resources.cluster.models import KIND_SECRET, KubeObject
from cloud_resources.core.errors import (
    CredentialProvisioningError,
    ObjectConflictError,
    ObjectNotFoundError,
)
from cloud_resources.providers.secrets import (
    SECRET_DATABASE_KEY,
    SECRET_PASSWORD_KEY,
    SECRET_USER_KEY,
    delete_secret,
    generate_password,
    reconcile_password_secret,
)


class TestGeneratePassword:
    """Tests for generate_password function."""

    def test_alphanumeric(self) -> None:
        """Test the length and alphabet of generated passwords."""
        password = generate_password()

        assert len(password) == 32
        assert password.isalnum()

    def test_custom_length(self) -> None:
        """Test a custom password length."""
        assert len(generate_password(12)) == 12


class TestReconcilePasswordSecret:
    """Tests for reconcile_password_secret function."""

    @pytest.mark.asyncio
    async def test_generated_once(self) -> None:
        """Test that the password survives repeated reconciliation."""
        client = MemoryObjectClient()

        first = await reconcile_password_secret(client, "db-creds", "ns", "postgres", "app")
        second = await reconcile_password_secret(client, "db-creds", "ns", "postgres", "app")

        assert first.data[SECRET_PASSWORD_KEY] == second.data[SECRET_PASSWORD_KEY]
        assert second.data[SECRET_USER_KEY] == "postgres"
        assert second.data[SECRET_DATABASE_KEY] == "app"

    @pytest.mark.asyncio
    async def test_lost_race_reads_winner(self) -> None:
        """Test that a concurrent creation returns the stored secret."""
        winner = KubeObject.new(KIND_SECRET, "db-creds", "ns", data={SECRET_PASSWORD_KEY: "w"})
        client = AsyncMock()
        client.get.side_effect = [ObjectNotFoundError("missing"), winner]
        client.create.side_effect = ObjectConflictError("exists")

        secret = await reconcile_password_secret(client, "db-creds", "ns", "u", "d")

        assert secret.data[SECRET_PASSWORD_KEY] == "w"

    @pytest.mark.asyncio
    async def test_store_failure(self) -> None:
        """Test that store errors raise CredentialProvisioningError."""
        client = AsyncMock()
        client.get.side_effect = RuntimeError("forbidden")

        with pytest.raises(CredentialProvisioningError, match="db-creds"):
            await reconcile_password_secret(client, "db-creds", "ns", "u", "d")


class TestDeleteSecret:
    """Tests for delete_secret function."""

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self) -> None:
        """Test that deleting twice succeeds."""
        client = MemoryObjectClient()
        await reconcile_password_secret(client, "db-creds", "ns", "u", "d")

        await delete_secret(client, "db-creds", "ns")
        await delete_secret(client, "db-creds", "ns")

        with pytest.raises(ObjectNotFoundError):
            await client.get(KubeObject, KIND_SECRET, "db-creds", "ns")

    @pytest.mark.asyncio
    async def test_delete_failure(self) -> None:
        """Test that unexpected errors are wrapped."""
        client = AsyncMock()
        client.delete.side_effect = RuntimeError("forbidden")

        with pytest.raises(CredentialProvisioningError):
            await delete_secret(client, "db-creds", "ns")

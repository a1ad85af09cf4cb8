"""Unit tests for the command line interface."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from cloud_resources.cli.app import app

runner = CliRunner()


@pytest.fixture
def settings_file(tmp_path: Path) -> str:
    """Settings selecting the in-memory store and short credential waits."""
    path = tmp_path / "settings.yaml"
    path.write_text(
        "backend: memory\n"
        "credential-poll:\n"
        "  interval: 0.01\n"
        "  timeout: 0.05\n"
    )
    return str(path)


class TestStrategyCommand:
    """Tests for the strategy command."""

    def test_workshop(self, settings_file: str) -> None:
        """Test printing the workshop mapping."""
        result = runner.invoke(app, ["strategy", "workshop", "--settings", settings_file])

        assert result.exit_code == 0
        assert "Deployment type: workshop" in result.output
        assert "postgres: openshift" in result.output
        assert "blobstorage: aws" in result.output

    def test_unknown_deployment_type(self, settings_file: str) -> None:
        """Test that an unknown deployment type is reported as an error."""
        result = runner.invoke(app, ["strategy", "enterprise", "-s", settings_file])

        assert result.exit_code == 1
        assert "no config found for deployment type enterprise" in result.output


class TestCreateCommand:
    """Tests for the create command."""

    def test_unknown_kind(self, settings_file: str) -> None:
        """Test that unknown kinds are rejected before any work."""
        result = runner.invoke(app, ["create", "q", "--kind", "Queue", "-s", settings_file])

        assert result.exit_code == 1
        assert "Unknown kind 'Queue'" in result.output

    def test_workshop_postgres(self, settings_file: str) -> None:
        """Test reconciling an in-cluster database."""
        result = runner.invoke(
            app, ["create", "mydb", "-k", "Postgres", "-t", "workshop", "-s", settings_file]
        )

        assert result.exit_code == 0
        assert "Phase: in progress" in result.output
        assert "Provider: openshift" in result.output

    def test_failure_reports_request(self, settings_file: str) -> None:
        """Test that provider failures name the request and exit non-zero."""
        result = runner.invoke(app, ["create", "store", "-n", "ns1", "-s", settings_file])

        assert result.exit_code == 1
        assert "Error: BlobStorage ns1/store (tier managed)" in result.output


class TestDeleteCommand:
    """Tests for the delete command."""

    def test_missing_request(self, settings_file: str) -> None:
        """Test deleting a request that does not exist."""
        result = runner.invoke(app, ["delete", "mydb", "-k", "Redis", "-s", settings_file])

        assert result.exit_code == 0
        assert "Redis default/mydb does not exist or is already deleted" in result.output

"""Unit tests for built-in strategy presets."""

import json

from cloud_resources.config.models import DeploymentStrategyMapping, ResourceType, StrategyConfig
from cloud_resources.config.presets import (
    get_default_deployment_strategies,
    get_default_provider_strategies,
)


class TestDefaultDeploymentStrategies:
    """Tests for the seeded deployment type documents."""

    def test_available_types(self) -> None:
        """Test that managed and workshop are seeded."""
        assert set(get_default_deployment_strategies()) == {"managed", "workshop"}

    def test_managed_is_all_aws(self) -> None:
        """Test that managed maps every kind to aws."""
        mapping = DeploymentStrategyMapping.model_validate_json(
            get_default_deployment_strategies()["managed"]
        )
        for resource_type in ResourceType:
            assert mapping.provider_for(resource_type) == "aws"

    def test_workshop_runs_databases_in_cluster(self) -> None:
        """Test that workshop keeps blob storage and smtp on aws."""
        mapping = DeploymentStrategyMapping.model_validate_json(
            get_default_deployment_strategies()["workshop"]
        )
        assert mapping.blob_storage == "aws"
        assert mapping.smtp_credentials == "aws"
        assert mapping.redis == "openshift"
        assert mapping.postgres == "openshift"

    def test_returns_copy(self) -> None:
        """Test that callers cannot modify the built-in defaults."""
        defaults = get_default_deployment_strategies()
        defaults["managed"] = "{}"
        assert get_default_deployment_strategies()["managed"] != "{}"


class TestDefaultProviderStrategies:
    """Tests for the seeded per-kind strategy documents."""

    def test_every_kind_has_both_tiers(self) -> None:
        """Test that each kind has managed and workshop tiers."""
        defaults = get_default_provider_strategies()
        assert set(defaults) == {rt.value for rt in ResourceType}

        for raw in defaults.values():
            tiers = json.loads(raw)
            assert set(tiers) == {"managed", "workshop"}
            for tier in tiers.values():
                strategy = StrategyConfig.model_validate(tier)
                assert strategy.region == ""
                assert strategy.decode_strategy() == {}

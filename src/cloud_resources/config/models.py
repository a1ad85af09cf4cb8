"""Configuration models for cloud-resources using Pydantic."""

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from cloud_resources.core.poll import PollPolicy

DEFAULT_CONFIG_NAMESPACE = "kube-system"
DEFAULT_PROVIDER_CONFIG_MAP_NAME = "cloud-resource-config"


class ResourceType(str, Enum):
    """Resource kinds a deployment strategy maps to a provider."""

    BLOB_STORAGE = "blobstorage"
    SMTP_CREDENTIALS = "smtpCredentials"
    REDIS = "redis"
    POSTGRES = "postgres"


class DeploymentStrategyMapping(BaseModel):
    """Provider name to use for each resource kind in one deployment type.

    Keys in the stored JSON document are matched case-insensitively, so both
    ``smtpCredentials`` and ``smtpcredentials`` decode.
    """

    model_config = {"populate_by_name": True, "frozen": True}

    blob_storage: str = Field(alias="blobstorage", min_length=1)
    smtp_credentials: str = Field(alias="smtpCredentials", min_length=1)
    redis: str = Field(alias="redis", min_length=1)
    postgres: str = Field(alias="postgres", min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        canonical = {rt.value.lower(): rt.value for rt in ResourceType}
        return {canonical.get(str(k).lower(), k): v for k, v in data.items()}

    def provider_for(self, resource_type: ResourceType) -> str:
        """Get the provider name configured for ``resource_type``."""
        return {
            ResourceType.BLOB_STORAGE: self.blob_storage,
            ResourceType.SMTP_CREDENTIALS: self.smtp_credentials,
            ResourceType.REDIS: self.redis,
            ResourceType.POSTGRES: self.postgres,
        }[resource_type]


class StrategyConfig(BaseModel):
    """Per-tier strategy for one resource kind.

    ``raw_strategy`` is kept as opaque JSON bytes; only the provider that
    owns it decodes it.
    """

    model_config = {"populate_by_name": True}

    region: str = ""
    raw_strategy: bytes = Field(b"{}", alias="createStrategy")

    @field_validator("raw_strategy", mode="before")
    @classmethod
    def _encode_raw_strategy(cls, value: Any) -> Any:
        if value is None:
            return b"{}"
        if isinstance(value, str):
            return value.encode("utf-8")
        if isinstance(value, bytes):
            return value
        return json.dumps(value).encode("utf-8")

    def decode_strategy(self) -> dict[str, Any]:
        """Decode the raw strategy payload into a mapping.

        Raises:
            ValueError: If the payload is not a JSON object
        """
        decoded = json.loads(self.raw_strategy or b"{}")
        if not isinstance(decoded, dict):
            raise ValueError("strategy payload must be a JSON object")
        return decoded


class Backend(str, Enum):
    """Object store backend."""

    MEMORY = "memory"
    KUBERNETES = "kubernetes"


class PollConfig(BaseModel):
    """Interval and ceiling of a bounded wait, in seconds."""

    interval: float = Field(5.0, gt=0)
    timeout: float = Field(300.0, gt=0)

    def policy(self) -> PollPolicy:
        """Convert to the policy used by the poller."""
        return PollPolicy(interval=self.interval, timeout=self.timeout)


class OperatorSettings(BaseModel):
    """Settings for running the reconciliation engine."""

    model_config = {"populate_by_name": True}

    backend: Backend = Backend.KUBERNETES
    config_namespace: str = Field(DEFAULT_CONFIG_NAMESPACE, alias="config-namespace")
    provider_config_map: str = Field(DEFAULT_PROVIDER_CONFIG_MAP_NAME, alias="provider-config-map")
    aws_strategy_config_map: str = Field(
        "cloud-resources-aws-strategies", alias="aws-strategy-config-map"
    )
    aws_default_region: str = Field("eu-west-1", alias="aws-default-region")
    openshift_strategy_config_map: str = Field(
        "cloud-resources-openshift-strategies", alias="openshift-strategy-config-map"
    )
    poll: PollConfig = Field(default_factory=PollConfig)
    credential_poll: PollConfig = Field(
        default_factory=lambda: PollConfig(interval=5.0, timeout=300.0),
        alias="credential-poll",
    )
    verbose: bool = False

"""Constants and helpers shared by the AWS providers."""

import re
from collections.abc import Callable
from datetime import timedelta
from typing import Any

from botocore.exceptions import BotoCoreError

from cloud_resources.cloud.aws import DEFAULT_REGION, new_session
from cloud_resources.cloud.base import CloudClient
from cloud_resources.cluster.models import ResourceRequest
from cloud_resources.config.models import StrategyConfig
from cloud_resources.config.presets import AWS_DEPLOYMENT_STRATEGY
from cloud_resources.core.errors import ConfigDecodeError
from cloud_resources.core.poll import PollPolicy
from cloud_resources.credentials.base import Credentials

DEFAULT_FINALIZER = "cloud-resources-operator.integreatly.org/finalizers"

PROVIDER_NAME = AWS_DEPLOYMENT_STRATEGY

RECONCILE_TIME_IN_PROGRESS = timedelta(seconds=10)
RECONCILE_TIME_COMPLETE = timedelta(minutes=5)

STATUS_AVAILABLE = "available"

# Builds a cloud client from provider credentials and a region
CloudFactory = Callable[[Credentials, str], CloudClient]

# Region names are DNS labels, the same rule botocore applies to endpoints
_REGION_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")


def session_client_factory(
    client_cls: Callable[..., CloudClient], poll: PollPolicy
) -> CloudFactory:
    """Get a factory building ``client_cls`` over a fresh boto3 session.

    The factory raises ConfigDecodeError when the region is malformed or
    botocore rejects it.

    Args:
        client_cls: Cloud client class taking a session and a poll policy
        poll: Delay and ceiling of deletion waits

    Returns:
        Cloud client factory
    """

    def _build(credentials: Credentials, region: str) -> CloudClient:
        region = validate_region(region or DEFAULT_REGION)
        try:
            return client_cls(new_session(credentials, region), poll)
        except BotoCoreError as e:
            raise ConfigDecodeError(f"failed to build aws client for region {region}: {e}") from e

    return _build


def validate_region(region: str) -> str:
    """Check that a strategy region is a well-formed AWS region name.

    Raises:
        ConfigDecodeError: If the region is not a valid name
    """
    if not _REGION_PATTERN.match(region):
        raise ConfigDecodeError(f"invalid aws region {region!r} in strategy")
    return region


def default_resource_name(request: ResourceRequest) -> str:
    """Name a remote resource after the request's namespace and name."""
    return f"{request.namespace}-{request.name}"


def sanitize_identifier(value: str, max_length: int) -> str:
    """Turn ``value`` into a valid RDS / ElastiCache identifier.

    Identifiers are lower-case letters, digits and single hyphens, start with
    a letter and do not end with a hyphen. The result depends only on
    ``value`` so every reconciliation targets the same resource.

    Args:
        value: Raw name
        max_length: Vendor limit on the identifier length

    Returns:
        Sanitised identifier
    """
    cleaned = re.sub(r"[^a-z0-9-]", "-", value.lower())
    cleaned = re.sub(r"-{2,}", "-", cleaned).strip("-")
    if not cleaned or not cleaned[0].isalpha():
        cleaned = f"cr-{cleaned}".rstrip("-")
    return cleaned[:max_length].rstrip("-")


def decode_create_strategy(
    strategy: StrategyConfig, description: str, identifier_key: str
) -> dict[str, Any]:
    """Decode the create strategy payload of a provider.

    Args:
        strategy: Strategy holding the raw vendor create parameters
        description: What is being configured, for errors
        identifier_key: Parameter naming the remote resource

    Returns:
        Vendor create parameters

    Raises:
        ConfigDecodeError: If the payload is not a JSON object or names the
            resource with anything but a non-empty string
    """
    try:
        config = strategy.decode_strategy()
    except ValueError as e:
        raise ConfigDecodeError(f"failed to unmarshal {description} configuration: {e}") from e

    identifier = config.get(identifier_key)
    if identifier_key in config and not (isinstance(identifier, str) and identifier):
        raise ConfigDecodeError(
            f"invalid {description} configuration: {identifier_key} must be a non-empty string"
        )
    return config

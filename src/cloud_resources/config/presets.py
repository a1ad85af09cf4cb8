"""Built-in strategy documents seeded into an empty strategy store."""

import json

from cloud_resources.config.models import ResourceType

AWS_DEPLOYMENT_STRATEGY = "aws"
OPENSHIFT_DEPLOYMENT_STRATEGY = "openshift"

MANAGED_DEPLOYMENT_TYPE = "managed"
WORKSHOP_DEPLOYMENT_TYPE = "workshop"


def _mapping(blobstorage: str, smtp: str, redis: str, postgres: str) -> str:
    # The original seed spells the key in lower case; decoding is case-insensitive
    return json.dumps(
        {
            "blobstorage": blobstorage,
            "smtpcredentials": smtp,
            "redis": redis,
            "postgres": postgres,
        }
    )


DEFAULT_DEPLOYMENT_STRATEGIES: dict[str, str] = {
    MANAGED_DEPLOYMENT_TYPE: _mapping(
        AWS_DEPLOYMENT_STRATEGY,
        AWS_DEPLOYMENT_STRATEGY,
        AWS_DEPLOYMENT_STRATEGY,
        AWS_DEPLOYMENT_STRATEGY,
    ),
    WORKSHOP_DEPLOYMENT_TYPE: _mapping(
        AWS_DEPLOYMENT_STRATEGY,
        AWS_DEPLOYMENT_STRATEGY,
        OPENSHIFT_DEPLOYMENT_STRATEGY,
        OPENSHIFT_DEPLOYMENT_STRATEGY,
    ),
}


def _tiers(*tiers: str) -> str:
    return json.dumps({tier: {"region": "", "createStrategy": {}} for tier in tiers})


DEFAULT_PROVIDER_STRATEGIES: dict[str, str] = {
    resource_type.value: _tiers(MANAGED_DEPLOYMENT_TYPE, WORKSHOP_DEPLOYMENT_TYPE)
    for resource_type in ResourceType
}


def get_default_deployment_strategies() -> dict[str, str]:
    """Get a copy of the default deployment-type documents.

    Returns:
        Mapping of deployment type to JSON strategy mapping
    """
    return dict(DEFAULT_DEPLOYMENT_STRATEGIES)


def get_default_provider_strategies() -> dict[str, str]:
    """Get a copy of the default per-kind strategy documents for a provider.

    Returns:
        Mapping of resource kind to JSON document keyed by tier
    """
    return dict(DEFAULT_PROVIDER_STRATEGIES)

"""Object models for the cluster object store.

Objects mirror the shape of Kubernetes resources: ``apiVersion``, ``kind``,
``metadata`` and a body. Generic objects (config maps, secrets, credential
requests, deployments) use ``KubeObject``; resource requests have a typed
spec and status.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

INTEGREATLY_API_VERSION = "integreatly.org/v1alpha1"
CREDENTIALS_API_VERSION = "cloudcredential.openshift.io/v1"

KIND_CONFIG_MAP = "ConfigMap"
KIND_SECRET = "Secret"
KIND_SERVICE = "Service"
KIND_DEPLOYMENT = "Deployment"
KIND_CREDENTIALS_REQUEST = "CredentialsRequest"
KIND_BLOB_STORAGE = "BlobStorage"
KIND_POSTGRES = "Postgres"
KIND_REDIS = "Redis"
KIND_SMTP_CREDENTIAL_SET = "SMTPCredentialSet"

KIND_API_VERSIONS: dict[str, str] = {
    KIND_CONFIG_MAP: "v1",
    KIND_SECRET: "v1",
    KIND_SERVICE: "v1",
    KIND_DEPLOYMENT: "apps/v1",
    KIND_CREDENTIALS_REQUEST: CREDENTIALS_API_VERSION,
    KIND_BLOB_STORAGE: INTEGREATLY_API_VERSION,
    KIND_POSTGRES: INTEGREATLY_API_VERSION,
    KIND_REDIS: INTEGREATLY_API_VERSION,
    KIND_SMTP_CREDENTIAL_SET: INTEGREATLY_API_VERSION,
}

RESOURCE_REQUEST_KINDS = [
    KIND_BLOB_STORAGE,
    KIND_POSTGRES,
    KIND_REDIS,
    KIND_SMTP_CREDENTIAL_SET,
]


def api_version_for(kind: str) -> str:
    """Get the API version objects of ``kind`` are served under.

    Args:
        kind: Object kind

    Returns:
        API version string

    Raises:
        ValueError: If the kind is unknown
    """
    try:
        return KIND_API_VERSIONS[kind]
    except KeyError:
        raise ValueError(f"Unknown object kind: {kind}") from None


class ObjectMeta(BaseModel):
    """Object metadata."""

    model_config = {"populate_by_name": True}

    name: str
    namespace: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    finalizers: list[str] = Field(default_factory=list)
    deletion_timestamp: datetime | None = Field(None, alias="deletionTimestamp")
    resource_version: str = Field("", alias="resourceVersion")


class ObjectBase(BaseModel):
    """Fields shared by every stored object."""

    model_config = {"populate_by_name": True}

    api_version: str = Field("v1", alias="apiVersion")
    kind: str
    metadata: ObjectMeta

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire representation (camelCase, JSON types)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class KubeObject(ObjectBase):
    """An untyped object: config map, secret, deployment, etc."""

    spec: dict[str, Any] = Field(default_factory=dict)
    status: dict[str, Any] = Field(default_factory=dict)
    data: dict[str, str] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize, leaving out empty body sections."""
        body = super().to_dict()
        for section in ("spec", "status", "data"):
            if not body.get(section):
                body.pop(section, None)
        return body

    @classmethod
    def new(
        cls,
        kind: str,
        name: str,
        namespace: str,
        **body: Any,
    ) -> "KubeObject":
        """Build an object of ``kind`` with the matching API version."""
        return cls(
            api_version=api_version_for(kind),
            kind=kind,
            metadata=ObjectMeta(name=name, namespace=namespace),
            **body,
        )


class Phase(str, Enum):
    """Lifecycle phase reported on a resource request."""

    NONE = ""
    IN_PROGRESS = "in progress"
    COMPLETE = "complete"
    FAILED = "failed"
    DELETED = "deleted"


class SecretRef(BaseModel):
    """Where the caller wants the deployment details written."""

    name: str
    namespace: str = ""


class ResourceRequestSpec(BaseModel):
    """Desired state of a resource request."""

    model_config = {"populate_by_name": True}

    tier: str = "managed"
    secret_ref: SecretRef | None = Field(None, alias="secretRef")


class ResourceRequestStatus(BaseModel):
    """Observed state of a resource request."""

    model_config = {"populate_by_name": True}

    phase: Phase = Phase.NONE
    message: str = ""
    strategy: str = ""
    provider: str = ""
    secret_ref: SecretRef | None = Field(None, alias="secretRef")


class ResourceRequest(ObjectBase):
    """A declarative request for one cloud-backed resource.

    The reconciliation engine only reads the spec and annotates metadata
    (finalizers) and status.
    """

    api_version: str = Field(INTEGREATLY_API_VERSION, alias="apiVersion")
    spec: ResourceRequestSpec = Field(default_factory=ResourceRequestSpec)
    status: ResourceRequestStatus = Field(default_factory=ResourceRequestStatus)

    @property
    def name(self) -> str:
        """Request name."""
        return self.metadata.name

    @property
    def namespace(self) -> str:
        """Request namespace."""
        return self.metadata.namespace

    @property
    def tier(self) -> str:
        """Deployment type / strategy tier requested."""
        return self.spec.tier

    @property
    def is_deleting(self) -> bool:
        """Whether deletion of the request has been requested."""
        return self.metadata.deletion_timestamp is not None

    @classmethod
    def new(cls, kind: str, name: str, namespace: str, tier: str = "managed") -> "ResourceRequest":
        """Build a resource request of ``kind``."""
        if kind not in RESOURCE_REQUEST_KINDS:
            raise ValueError(f"Unknown resource request kind: {kind}")
        return cls(
            kind=kind,
            metadata=ObjectMeta(name=name, namespace=namespace),
            spec=ResourceRequestSpec(tier=tier),
        )

"""Kubernetes-backed object store using the dynamic client."""

import asyncio
import base64
from typing import Any, TypeVar

from kubernetes import config as kube_config
from kubernetes.client import ApiClient
from kubernetes.config.config_exception import ConfigException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import ConflictError, NotFoundError

from cloud_resources.cluster.models import (
    KIND_SECRET,
    KubeObject,
    ObjectBase,
    api_version_for,
)
from cloud_resources.core.errors import ObjectConflictError, ObjectNotFoundError
from cloud_resources.core.logging import get_logger

T = TypeVar("T", bound=ObjectBase)

logger = get_logger(__name__)


def load_dynamic_client() -> DynamicClient:
    """Build a dynamic client from in-cluster config, falling back to kubeconfig.

    Returns:
        Configured dynamic client

    Raises:
        ConfigException: If no configuration can be loaded
    """
    try:
        kube_config.load_incluster_config()
        logger.debug("Loaded in-cluster kubernetes configuration")
    except ConfigException:
        kube_config.load_kube_config()
        logger.debug("Loaded kubeconfig")
    return DynamicClient(ApiClient())


def _encode_secret(body: dict[str, Any]) -> dict[str, Any]:
    data = body.get("data") or {}
    body["data"] = {k: base64.b64encode(v.encode()).decode() for k, v in data.items()}
    return body


def _decode_secret(body: dict[str, Any]) -> dict[str, Any]:
    data = body.get("data") or {}
    body["data"] = {k: base64.b64decode(v).decode() for k, v in data.items()}
    return body


class KubernetesObjectClient:
    """ObjectClient implementation talking to a Kubernetes API server.

    Calls into the (blocking) kubernetes client run in a worker thread.
    Secret values are stored base64 encoded on the server and exposed as plain
    strings in ``KubeObject.data``.
    """

    def __init__(self, dynamic: DynamicClient | None = None) -> None:
        """Initialize the client.

        Args:
            dynamic: Dynamic client to use (loaded from config if omitted)
        """
        self._dynamic = dynamic or load_dynamic_client()

    def _api(self, kind: str) -> Any:
        return self._dynamic.resources.get(api_version=api_version_for(kind), kind=kind)

    async def get(self, cls: type[T], kind: str, name: str, namespace: str) -> T:
        """Fetch an object and validate it into ``cls``."""

        def _get() -> dict[str, Any]:
            return self._api(kind).get(name=name, namespace=namespace).to_dict()

        try:
            body = await asyncio.to_thread(_get)
        except NotFoundError:
            raise ObjectNotFoundError(f"{kind} {namespace}/{name} not found") from None

        if kind == KIND_SECRET:
            body = _decode_secret(body)
        return cls.model_validate(body)

    async def create(self, obj: ObjectBase) -> None:
        """Create an object."""
        body = self._body(obj)

        def _create() -> None:
            self._api(obj.kind).create(body=body, namespace=obj.metadata.namespace)

        try:
            await asyncio.to_thread(_create)
        except ConflictError:
            raise ObjectConflictError(
                f"{obj.kind} {obj.metadata.namespace}/{obj.metadata.name} already exists"
            ) from None

    async def update(self, obj: ObjectBase) -> None:
        """Replace an existing object, including its status subresource."""
        body = self._body(obj)

        def _replace() -> str:
            api = self._api(obj.kind)
            replaced = api.replace(body=body, namespace=obj.metadata.namespace)
            version = replaced.metadata.resourceVersion
            if "status" in body and "status" in api.subresources:
                status_body = dict(body)
                status_body["metadata"] = {
                    k: v for k, v in body["metadata"].items() if k != "resourceVersion"
                }
                replaced = api.subresources["status"].replace(
                    body=status_body, namespace=obj.metadata.namespace
                )
                version = replaced.metadata.resourceVersion
            return version

        try:
            obj.metadata.resource_version = await asyncio.to_thread(_replace)
        except NotFoundError:
            raise ObjectNotFoundError(
                f"{obj.kind} {obj.metadata.namespace}/{obj.metadata.name} not found"
            ) from None
        except ConflictError:
            raise ObjectConflictError(
                f"{obj.kind} {obj.metadata.namespace}/{obj.metadata.name} was modified concurrently"
            ) from None

    async def delete(self, kind: str, name: str, namespace: str) -> None:
        """Delete an object."""

        def _delete() -> None:
            self._api(kind).delete(name=name, namespace=namespace)

        try:
            await asyncio.to_thread(_delete)
        except NotFoundError:
            raise ObjectNotFoundError(f"{kind} {namespace}/{name} not found") from None

    async def list(
        self, kind: str, namespace: str, labels: dict[str, str] | None = None
    ) -> list[KubeObject]:
        """List objects of a kind in a namespace."""
        selector = ",".join(f"{k}={v}" for k, v in sorted((labels or {}).items()))

        def _list() -> list[dict[str, Any]]:
            response = self._api(kind).get(namespace=namespace, label_selector=selector or None)
            return response.to_dict().get("items", [])

        items = await asyncio.to_thread(_list)

        result = []
        for item in items:
            item.setdefault("kind", kind)
            item.setdefault("apiVersion", api_version_for(kind))
            if kind == KIND_SECRET:
                item = _decode_secret(item)
            result.append(KubeObject.model_validate(item))
        return result

    def _body(self, obj: ObjectBase) -> dict[str, Any]:
        body = obj.to_dict()
        if not body["metadata"].get("resourceVersion"):
            body["metadata"].pop("resourceVersion", None)
        if obj.kind == KIND_SECRET:
            body = _encode_secret(body)
        return body

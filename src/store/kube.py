"""
Kubernetes Record Store - custom resources through the cluster API.

Wraps the synchronous ``kubernetes`` client's CustomObjectsApi. Blocking
calls run in worker threads so the reconciliation loop never stalls on
the API server. Optimistic concurrency is the API server's own: updates
carry ``metadata.resourceVersion`` and a stale one is rejected with 409.
"""

import asyncio
import copy
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from kubernetes import client
from kubernetes import config as kube_config
from kubernetes.client import ApiException

from store.base import (
    ConflictError,
    NotFoundError,
    RecordStore,
    ResourceType,
    StoreError,
)

logger = logging.getLogger(__name__)


def build_api_client(kubeconfig: Optional[str] = None) -> client.ApiClient:
    """
    Build an API client from in-cluster config or an explicit kubeconfig.

    Raises:
        StoreError: If no usable cluster configuration is found.
    """
    try:
        if kubeconfig:
            return kube_config.new_client_from_config(config_file=kubeconfig)
        configuration = client.Configuration()
        kube_config.load_incluster_config(client_configuration=configuration)
        return client.ApiClient(configuration)
    except (kube_config.ConfigException, OSError) as e:
        source = kubeconfig or "in-cluster config"
        raise StoreError(f"Failed to load cluster configuration from {source}: {e}") from e


def _translate(e: ApiException, what: str) -> StoreError:
    if e.status == 409:
        return ConflictError(f"{what}: conflict ({e.reason})")
    if e.status == 404:
        return NotFoundError(f"{what}: not found")
    return StoreError(f"{what}: API error {e.status} ({e.reason})")


class KubernetesStore(RecordStore):
    """RecordStore backed by Kubernetes custom objects."""

    def __init__(self, api_client: client.ApiClient):
        self._api_client = api_client
        self._api = client.CustomObjectsApi(api_client)

    @classmethod
    def from_config(cls, kubeconfig: Optional[str] = None) -> "KubernetesStore":
        return cls(build_api_client(kubeconfig))

    async def _call(self, what: str, fn: Callable[..., Any], **kwargs) -> Any:
        try:
            return await asyncio.to_thread(fn, **kwargs)
        except ApiException as e:
            raise _translate(e, what) from e
        except Exception as e:
            raise StoreError(f"{what}: {e}") from e

    async def list(
        self, resource_type: ResourceType, namespace: str
    ) -> List[Dict[str, Any]]:
        result = await self._call(
            f"list {resource_type} in {namespace}",
            self._api.list_namespaced_custom_object,
            group=resource_type.group,
            version=resource_type.version,
            namespace=namespace,
            plural=resource_type.plural,
        )
        items = result.get("items") or []
        logger.debug(f"Listed {len(items)} {resource_type.plural} in {namespace}")
        return items

    async def get(
        self, resource_type: ResourceType, namespace: str, name: str
    ) -> Tuple[Dict[str, Any], str]:
        record = await self._call(
            f"get {resource_type} {namespace}/{name}",
            self._api.get_namespaced_custom_object,
            group=resource_type.group,
            version=resource_type.version,
            namespace=namespace,
            plural=resource_type.plural,
            name=name,
        )
        version = (record.get("metadata") or {}).get("resourceVersion", "")
        return record, version

    async def update_whole(
        self,
        resource_type: ResourceType,
        namespace: str,
        name: str,
        record: Dict[str, Any],
        expected_version: str,
    ) -> Dict[str, Any]:
        body = copy.deepcopy(record)
        body.setdefault("metadata", {})["resourceVersion"] = expected_version
        return await self._call(
            f"update {resource_type} {namespace}/{name}",
            self._api.replace_namespaced_custom_object,
            group=resource_type.group,
            version=resource_type.version,
            namespace=namespace,
            plural=resource_type.plural,
            name=name,
            body=body,
        )

    async def close(self) -> None:
        await asyncio.to_thread(self._api_client.close)

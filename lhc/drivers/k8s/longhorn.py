"""Longhorn volume metadata from the volumes.longhorn.io custom objects."""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp
import structlog
from kubernetes_asyncio import client
from kubernetes_asyncio.client import ApiClient, ApiException

from lhc.config import LonghornConfig
from lhc.drivers.base import VolumeSource
from lhc.errors import ListFailedError
from lhc.models.volume import UNKNOWN_SIZE, Volume, VolumeRobustness, VolumeState

logger = structlog.get_logger()


def _volume_from_object(obj: dict[str, Any]) -> Volume:
    metadata = obj.get("metadata") or {}
    spec = obj.get("spec") or {}
    status = obj.get("status") or {}
    kube_status = status.get("kubernetesStatus") or {}

    size = spec.get("size")
    return Volume(
        name=metadata.get("name", ""),
        size=str(size) if size else UNKNOWN_SIZE,
        state=VolumeState.parse(status.get("state")),
        robustness=VolumeRobustness.parse(status.get("robustness")),
        pv_name=kube_status.get("pvName") or None,
    )


class LonghornVolumeSource(VolumeSource):
    """VolumeSource over CustomObjectsApi."""

    def __init__(self, api_client: ApiClient, longhorn_cfg: LonghornConfig) -> None:
        self._api_client = api_client
        self._cfg = longhorn_cfg
        self._log = logger.bind(driver="longhorn", namespace=longhorn_cfg.namespace)

    async def list_volumes(self) -> list[Volume]:
        api = client.CustomObjectsApi(self._api_client)
        try:
            result = await api.list_namespaced_custom_object(
                group=self._cfg.group,
                version=self._cfg.version,
                namespace=self._cfg.namespace,
                plural=self._cfg.plural,
            )
        except ApiException as e:
            raise ListFailedError(
                f"failed to list Longhorn volumes: {e.status} {e.reason}"
            ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ListFailedError(f"failed to list Longhorn volumes: {e}") from e

        volumes = [_volume_from_object(item) for item in result.get("items", [])]
        self._log.debug("longhorn.volumes.listed", count=len(volumes))
        return volumes

"""Kubernetes control-plane driver using kubernetes-asyncio.

Pods and PVCs are namespaced; PVs are cluster-scoped. Objects are
normalised into the small records from lhc.drivers.base so the core never
touches kubernetes client models.
"""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp
import structlog
from kubernetes_asyncio import client
from kubernetes_asyncio.client import ApiClient, ApiException

from lhc.drivers.base import (
    ClaimRecord,
    ClaimSpec,
    ContainerMount,
    ControlPlane,
    PersistentVolumeRecord,
    PersistentVolumeSpec,
    PodRecord,
    PodSpec,
)
from lhc.errors import DeleteFailedError, GetFailedError, ListFailedError, ProvisionFailedError

logger = structlog.get_logger()

_TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


def _parse_storage_size(size_str: str) -> str:
    """Normalize storage size string for K8s (e.g., '1g' -> '1Gi').

    K8s uses binary units (Ki, Mi, Gi) while users may input decimal (k, m, g).
    Plain byte counts (what Longhorn reports) are valid quantities as-is.
    """
    size_str = size_str.strip()
    # Already in K8s format
    if size_str.endswith(("Ki", "Mi", "Gi", "Ti")):
        return size_str
    # Convert common formats
    if size_str.lower().endswith("t"):
        return f"{size_str[:-1]}Ti"
    if size_str.lower().endswith("g"):
        return f"{size_str[:-1]}Gi"
    if size_str.lower().endswith("m"):
        return f"{size_str[:-1]}Mi"
    if size_str.lower().endswith("k"):
        return f"{size_str[:-1]}Ki"
    return size_str


def _reason(e: ApiException) -> str:
    return f"{e.status} {e.reason}" if e.reason else str(e.status)


def build_persistent_volume(spec: PersistentVolumeSpec) -> client.V1PersistentVolume:
    return client.V1PersistentVolume(
        metadata=client.V1ObjectMeta(name=spec.name, labels=spec.labels),
        spec=client.V1PersistentVolumeSpec(
            capacity={"storage": _parse_storage_size(spec.capacity)},
            access_modes=spec.access_modes,
            persistent_volume_reclaim_policy=spec.reclaim_policy,
            storage_class_name=spec.storage_class,
            csi=client.V1CSIPersistentVolumeSource(
                driver=spec.csi_driver,
                volume_handle=spec.volume_handle,
                fs_type=spec.fs_type,
                volume_attributes=spec.volume_attributes,
            ),
        ),
    )


def build_claim(spec: ClaimSpec) -> client.V1PersistentVolumeClaim:
    return client.V1PersistentVolumeClaim(
        metadata=client.V1ObjectMeta(
            name=spec.name,
            namespace=spec.namespace,
            labels=spec.labels,
        ),
        spec=client.V1PersistentVolumeClaimSpec(
            access_modes=spec.access_modes,
            resources=client.V1VolumeResourceRequirements(
                requests={"storage": _parse_storage_size(spec.size)},
            ),
            storage_class_name=spec.storage_class,
            # Bind to this exact PV instead of storage-class matching
            volume_name=spec.volume_name,
        ),
    )


def build_pod(spec: PodSpec) -> client.V1Pod:
    container = client.V1Container(
        name=spec.container_name,
        image=spec.image,
        command=spec.command,
        volume_mounts=[
            client.V1VolumeMount(
                name=spec.volume_name,
                mount_path=spec.mount_path,
            )
        ],
    )

    return client.V1Pod(
        metadata=client.V1ObjectMeta(
            name=spec.name,
            namespace=spec.namespace,
            labels=spec.labels,
        ),
        spec=client.V1PodSpec(
            containers=[container],
            volumes=[
                client.V1Volume(
                    name=spec.volume_name,
                    persistent_volume_claim=client.V1PersistentVolumeClaimVolumeSource(
                        claim_name=spec.claim_name,
                    ),
                )
            ],
            restart_policy="Never",
        ),
    )


def _pod_record(pod: Any) -> PodRecord:
    phase = "Unknown"
    if pod.status is not None and pod.status.phase:
        phase = pod.status.phase

    claim_volumes: dict[str, str] = {}
    mounts: list[ContainerMount] = []
    if pod.spec is not None:
        for volume in pod.spec.volumes or []:
            if volume.persistent_volume_claim is not None:
                claim_volumes[volume.name] = volume.persistent_volume_claim.claim_name
        for container in pod.spec.containers or []:
            for mount in container.volume_mounts or []:
                mounts.append(
                    ContainerMount(
                        container=container.name,
                        volume=mount.name,
                        mount_path=mount.mount_path,
                    )
                )

    return PodRecord(
        name=pod.metadata.name,
        namespace=pod.metadata.namespace,
        phase=phase,
        labels=pod.metadata.labels or {},
        claim_volumes=claim_volumes,
        mounts=mounts,
    )


def _claim_record(pvc: Any) -> ClaimRecord:
    return ClaimRecord(
        name=pvc.metadata.name,
        namespace=pvc.metadata.namespace,
        phase=(pvc.status.phase if pvc.status is not None else None) or "Pending",
        volume_name=pvc.spec.volume_name if pvc.spec is not None else None,
        labels=pvc.metadata.labels or {},
    )


def _pv_record(pv: Any) -> PersistentVolumeRecord:
    return PersistentVolumeRecord(
        name=pv.metadata.name,
        phase=(pv.status.phase if pv.status is not None else None) or "Unknown",
        labels=pv.metadata.labels or {},
    )


def _selector_kwargs(label_selector: str | None) -> dict[str, str]:
    return {"label_selector": label_selector} if label_selector else {}


class K8sControlPlane(ControlPlane):
    """ControlPlane over CoreV1Api."""

    def __init__(self, api_client: ApiClient) -> None:
        self._api_client = api_client
        self._log = logger.bind(driver="k8s")

    def _core(self) -> client.CoreV1Api:
        return client.CoreV1Api(self._api_client)

    # Pods

    async def get_pod(self, name: str, namespace: str) -> PodRecord | None:
        try:
            pod = await self._core().read_namespaced_pod(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise GetFailedError(f"failed to get pod {name}: {_reason(e)}") from e
        except _TRANSPORT_ERRORS as e:
            raise GetFailedError(f"failed to get pod {name}: {e}") from e
        return _pod_record(pod)

    async def create_pod(self, spec: PodSpec) -> bool:
        self._log.info(
            "k8s.create_pod",
            pod_name=spec.name,
            namespace=spec.namespace,
            image=spec.image,
            claim=spec.claim_name,
        )
        try:
            await self._core().create_namespaced_pod(
                namespace=spec.namespace,
                body=build_pod(spec),
            )
        except ApiException as e:
            if e.status == 409:  # Already exists
                self._log.warning("k8s.create_pod.already_exists", pod_name=spec.name)
                return False
            raise ProvisionFailedError(
                f"failed to create temporary pod {spec.name}: {_reason(e)}",
                reason="create pod",
            ) from e
        except _TRANSPORT_ERRORS as e:
            raise ProvisionFailedError(
                f"failed to create temporary pod {spec.name}: {e}",
                reason="create pod",
            ) from e
        return True

    async def delete_pod(self, name: str, namespace: str) -> None:
        self._log.info("k8s.delete_pod", pod_name=name, namespace=namespace)
        try:
            await self._core().delete_namespaced_pod(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                self._log.debug("k8s.delete_pod.not_found", pod_name=name)
                return
            raise DeleteFailedError(f"failed to delete pod {name}: {_reason(e)}") from e
        except _TRANSPORT_ERRORS as e:
            raise DeleteFailedError(f"failed to delete pod {name}: {e}") from e

    async def list_pods(
        self, namespace: str, *, label_selector: str | None = None
    ) -> list[PodRecord]:
        self._log.debug("k8s.list_pods", namespace=namespace, label_selector=label_selector)
        try:
            pod_list = await self._core().list_namespaced_pod(
                namespace=namespace,
                **_selector_kwargs(label_selector),
            )
        except ApiException as e:
            raise ListFailedError(f"failed to list pods: {_reason(e)}") from e
        except _TRANSPORT_ERRORS as e:
            raise ListFailedError(f"failed to list pods: {e}") from e
        return [_pod_record(pod) for pod in pod_list.items]

    # PersistentVolumeClaims

    async def get_claim(self, name: str, namespace: str) -> ClaimRecord | None:
        try:
            pvc = await self._core().read_namespaced_persistent_volume_claim(
                name=name,
                namespace=namespace,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise GetFailedError(f"failed to get PVC {name}: {_reason(e)}") from e
        except _TRANSPORT_ERRORS as e:
            raise GetFailedError(f"failed to get PVC {name}: {e}") from e
        return _claim_record(pvc)

    async def create_claim(self, spec: ClaimSpec) -> bool:
        self._log.info(
            "k8s.create_claim",
            name=spec.name,
            namespace=spec.namespace,
            volume_name=spec.volume_name,
            size=spec.size,
        )
        try:
            await self._core().create_namespaced_persistent_volume_claim(
                namespace=spec.namespace,
                body=build_claim(spec),
            )
        except ApiException as e:
            if e.status == 409:
                self._log.warning("k8s.create_claim.already_exists", name=spec.name)
                return False
            raise ProvisionFailedError(
                f"failed to create temporary PVC {spec.name}: {_reason(e)}",
                reason="create claim",
            ) from e
        except _TRANSPORT_ERRORS as e:
            raise ProvisionFailedError(
                f"failed to create temporary PVC {spec.name}: {e}",
                reason="create claim",
            ) from e
        return True

    async def delete_claim(self, name: str, namespace: str) -> None:
        self._log.info("k8s.delete_claim", name=name, namespace=namespace)
        try:
            await self._core().delete_namespaced_persistent_volume_claim(
                name=name,
                namespace=namespace,
            )
        except ApiException as e:
            if e.status == 404:
                self._log.debug("k8s.delete_claim.not_found", name=name)
                return
            raise DeleteFailedError(f"failed to delete PVC {name}: {_reason(e)}") from e
        except _TRANSPORT_ERRORS as e:
            raise DeleteFailedError(f"failed to delete PVC {name}: {e}") from e

    async def list_claims(
        self, namespace: str, *, label_selector: str | None = None
    ) -> list[ClaimRecord]:
        self._log.debug("k8s.list_claims", namespace=namespace, label_selector=label_selector)
        try:
            pvc_list = await self._core().list_namespaced_persistent_volume_claim(
                namespace=namespace,
                **_selector_kwargs(label_selector),
            )
        except ApiException as e:
            raise ListFailedError(f"failed to list PVCs: {_reason(e)}") from e
        except _TRANSPORT_ERRORS as e:
            raise ListFailedError(f"failed to list PVCs: {e}") from e
        return [_claim_record(pvc) for pvc in pvc_list.items]

    # PersistentVolumes (cluster-scoped)

    async def get_persistent_volume(self, name: str) -> PersistentVolumeRecord | None:
        try:
            pv = await self._core().read_persistent_volume(name=name)
        except ApiException as e:
            if e.status == 404:
                return None
            raise GetFailedError(f"failed to get PV {name}: {_reason(e)}") from e
        except _TRANSPORT_ERRORS as e:
            raise GetFailedError(f"failed to get PV {name}: {e}") from e
        return _pv_record(pv)

    async def create_persistent_volume(self, spec: PersistentVolumeSpec) -> bool:
        self._log.info(
            "k8s.create_persistent_volume",
            name=spec.name,
            volume_handle=spec.volume_handle,
            capacity=spec.capacity,
            reclaim_policy=spec.reclaim_policy,
        )
        try:
            await self._core().create_persistent_volume(body=build_persistent_volume(spec))
        except ApiException as e:
            if e.status == 409:
                self._log.warning("k8s.create_persistent_volume.already_exists", name=spec.name)
                return False
            raise ProvisionFailedError(
                f"failed to create temporary PV {spec.name}: {_reason(e)}",
                reason="create persistent volume",
            ) from e
        except _TRANSPORT_ERRORS as e:
            raise ProvisionFailedError(
                f"failed to create temporary PV {spec.name}: {e}",
                reason="create persistent volume",
            ) from e
        return True

    async def delete_persistent_volume(self, name: str) -> None:
        self._log.info("k8s.delete_persistent_volume", name=name)
        try:
            await self._core().delete_persistent_volume(name=name)
        except ApiException as e:
            if e.status == 404:
                self._log.debug("k8s.delete_persistent_volume.not_found", name=name)
                return
            raise DeleteFailedError(f"failed to delete PV {name}: {_reason(e)}") from e
        except _TRANSPORT_ERRORS as e:
            raise DeleteFailedError(f"failed to delete PV {name}: {e}") from e

    async def list_persistent_volumes(
        self, *, label_selector: str | None = None
    ) -> list[PersistentVolumeRecord]:
        self._log.debug("k8s.list_persistent_volumes", label_selector=label_selector)
        try:
            pv_list = await self._core().list_persistent_volume(
                **_selector_kwargs(label_selector),
            )
        except ApiException as e:
            raise ListFailedError(f"failed to list PVs: {_reason(e)}") from e
        except _TRANSPORT_ERRORS as e:
            raise ListFailedError(f"failed to list PVs: {e}") from e
        return [_pv_record(pv) for pv in pv_list.items]

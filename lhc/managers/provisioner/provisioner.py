"""EphemeralProvisioner - create-or-reuse the PV/PVC/Pod that exposes a volume.

Every step is get-or-create keyed on the deterministic names from
ResourceNaming, so calling provision() twice for the same volume returns
the same handle without creating anything the second time.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from lhc.config import LonghornConfig, ProvisionConfig
from lhc.drivers.base import (
    ClaimRecord,
    ClaimSpec,
    PersistentVolumeSpec,
    PodRecord,
    PodSpec,
)
from lhc.errors import LhcError, ProvisionFailedError
from lhc.models.access import AccessHandle, EphemeralResourceSet
from lhc.naming import ResourceNaming
from lhc.utils.wait import Clock, WaitCancelledError, WaitTimeoutError, poll_until

if TYPE_CHECKING:
    from lhc.drivers.base import ControlPlane

logger = structlog.get_logger()


def _cancelled(name: str, error: WaitCancelledError) -> ProvisionFailedError:
    return ProvisionFailedError(
        f"provisioning interrupted while waiting for {name}",
        details={"waiting_for": error.what},
        reason="cancelled",
    )


class ProvisionProfile(str, Enum):
    """Storage parameters for the temporary PersistentVolume.

    DIRECT re-exposes the Longhorn volume itself and must never delete it
    (reclaim Retain). INDIRECT backs a throwaway exposure with fewer
    replicas that Longhorn may delete with the PV.
    """

    DIRECT = "direct"
    INDIRECT = "indirect"


class EphemeralProvisioner:
    """Provisions and tears down ephemeral resource sets."""

    def __init__(
        self,
        control_plane: "ControlPlane",
        provision_cfg: ProvisionConfig,
        longhorn_cfg: LonghornConfig,
        *,
        clock: Clock | None = None,
        cancel: asyncio.Event | None = None,
    ) -> None:
        self._plane = control_plane
        self._cfg = provision_cfg
        self._longhorn = longhorn_cfg
        self._naming = ResourceNaming.from_config(provision_cfg)
        self._clock = clock
        self._cancel = cancel
        self._log = logger.bind(manager="provisioner")

    @property
    def naming(self) -> ResourceNaming:
        return self._naming

    def handle_for(self, volume_name: str, namespace: str) -> AccessHandle:
        return AccessHandle(
            namespace=namespace,
            pod=self._naming.pod_name(volume_name),
            container=self._cfg.container_name,
            mount_path=self._cfg.mount_path,
        )

    async def provision(
        self,
        volume_name: str,
        namespace: str,
        storage_class: str,
        size_hint: str | None,
        *,
        profile: ProvisionProfile = ProvisionProfile.DIRECT,
    ) -> AccessHandle:
        """Get or create the resource set for `volume_name` and wait until usable.

        Args:
            volume_name: Longhorn volume name, used as the CSI volume handle
            namespace: Namespace for the claim and pod
            storage_class: Storage class recorded on the PV and claim
            size_hint: Capacity for PV/claim; the configured default when unknown
            profile: DIRECT or INDIRECT storage parameters

        Returns:
            Handle to the running pod's mount

        Raises:
            ProvisionFailedError: Create failed or the pod never became Running
            GetFailedError: Status read failed while checking or polling
        """
        resources = self._naming.resource_set(volume_name, namespace)
        log = self._log.bind(
            volume=volume_name,
            namespace=namespace,
            profile=profile.value,
        )

        size = size_hint
        if not size:
            size = self._cfg.default_size
            log.warning("provision.size.unknown", fallback=size)

        await self._ensure_persistent_volume(resources, storage_class, size, profile, log)
        await self._ensure_claim(resources, storage_class, size, log)

        handle = self.handle_for(volume_name, namespace)
        await self._ensure_pod(resources, log)

        log.info("provision.ready", pod=handle.pod, mount_path=handle.mount_path)
        return handle

    async def teardown(self, resources: EphemeralResourceSet) -> list[str]:
        """Delete one resource set: pod, then claim, then PV.

        Failures are logged as warnings and returned, never raised.
        """
        log = self._log.bind(volume=resources.volume_name, namespace=resources.namespace)
        warnings: list[str] = []

        steps = (
            ("pod", resources.pod_name, lambda: self._plane.delete_pod(resources.pod_name, resources.namespace)),
            ("claim", resources.pvc_name, lambda: self._plane.delete_claim(resources.pvc_name, resources.namespace)),
            ("persistent_volume", resources.pv_name, lambda: self._plane.delete_persistent_volume(resources.pv_name)),
        )
        for kind, name, delete in steps:
            try:
                await delete()
                log.info("teardown.deleted", kind=kind, name=name)
            except LhcError as e:
                log.warning("teardown.delete_failed", kind=kind, name=name, error=str(e))
                warnings.append(f"failed to delete {kind} {name}: {e.message}")

        return warnings

    # Steps

    async def _ensure_persistent_volume(
        self,
        resources: EphemeralResourceSet,
        storage_class: str,
        size: str,
        profile: ProvisionProfile,
        log,
    ) -> None:
        existing = await self._plane.get_persistent_volume(resources.pv_name)
        if existing is not None:
            log.debug("provision.pv.reused", pv=resources.pv_name)
            return

        if profile is ProvisionProfile.INDIRECT:
            reclaim_policy = "Delete"
            replicas = self._longhorn.snapshot_replicas
        else:
            reclaim_policy = "Retain"
            replicas = self._longhorn.replicas

        spec = PersistentVolumeSpec(
            name=resources.pv_name,
            capacity=size,
            storage_class=storage_class,
            csi_driver=self._longhorn.csi_driver,
            volume_handle=resources.volume_name,
            fs_type=self._longhorn.fs_type,
            reclaim_policy=reclaim_policy,
            volume_attributes={
                "numberOfReplicas": str(replicas),
                "staleReplicaTimeout": str(self._longhorn.stale_replica_timeout),
            },
            labels=self._naming.labels,
        )
        created = await self._plane.create_persistent_volume(spec)
        log.info("provision.pv.created" if created else "provision.pv.raced", pv=spec.name)

    async def _ensure_claim(
        self,
        resources: EphemeralResourceSet,
        storage_class: str,
        size: str,
        log,
    ) -> None:
        claim = await self._plane.get_claim(resources.pvc_name, resources.namespace)
        if claim is None:
            spec = ClaimSpec(
                name=resources.pvc_name,
                namespace=resources.namespace,
                size=size,
                storage_class=storage_class,
                volume_name=resources.pv_name,
                labels=self._naming.labels,
            )
            created = await self._plane.create_claim(spec)
            log.info("provision.pvc.created" if created else "provision.pvc.raced", pvc=spec.name)
        elif claim.is_bound:
            log.debug("provision.pvc.reused", pvc=claim.name)
            return

        async def bound() -> ClaimRecord | None:
            current = await self._plane.get_claim(resources.pvc_name, resources.namespace)
            if current is not None and current.is_bound:
                return current
            return None

        try:
            claim = await poll_until(
                bound,
                timeout=self._cfg.claim_bind_timeout,
                interval=self._cfg.poll_interval,
                what=f"PVC {resources.pvc_name} bound",
                clock=self._clock,
                cancel=self._cancel,
            )
            log.info("provision.pvc.bound", pvc=claim.name, pv=claim.volume_name)
        except WaitTimeoutError as e:
            # The pod wait below is the real readiness gate
            log.warning("provision.pvc.bind_timeout", pvc=resources.pvc_name, error=str(e))
        except WaitCancelledError as e:
            raise _cancelled(resources.pvc_name, e) from e

    async def _ensure_pod(self, resources: EphemeralResourceSet, log) -> None:
        pod = await self._plane.get_pod(resources.pod_name, resources.namespace)
        if pod is not None and pod.is_running:
            log.debug("provision.pod.reused", pod=pod.name)
            return

        if pod is not None and pod.is_terminal:
            # restartPolicy Never: an exited pod cannot come back
            log.info("provision.pod.replace_terminal", pod=pod.name, phase=pod.phase)
            await self._plane.delete_pod(pod.name, pod.namespace)
            await self._wait_pod_gone(resources, log)
            pod = None

        if pod is None:
            spec = PodSpec(
                name=resources.pod_name,
                namespace=resources.namespace,
                container_name=self._cfg.container_name,
                image=self._cfg.image,
                command=["sleep", str(self._cfg.sleep_seconds)],
                claim_name=resources.pvc_name,
                mount_path=self._cfg.mount_path,
                labels=self._naming.labels,
            )
            created = await self._plane.create_pod(spec)
            log.info("provision.pod.created" if created else "provision.pod.raced", pod=spec.name)

        async def running() -> PodRecord | None:
            current = await self._plane.get_pod(resources.pod_name, resources.namespace)
            if current is not None and current.is_running:
                return current
            return None

        try:
            await poll_until(
                running,
                timeout=self._cfg.pod_ready_timeout,
                interval=self._cfg.poll_interval,
                what=f"pod {resources.pod_name} running",
                clock=self._clock,
                cancel=self._cancel,
            )
        except WaitTimeoutError as e:
            raise ProvisionFailedError(
                f"temporary pod {resources.pod_name} did not become ready in time",
                details={"pod": resources.pod_name, "timeout": e.timeout},
                reason="endpoint not ready",
            ) from e
        except WaitCancelledError as e:
            raise _cancelled(resources.pod_name, e) from e

    async def _wait_pod_gone(self, resources: EphemeralResourceSet, log) -> None:
        async def gone() -> bool | None:
            current = await self._plane.get_pod(resources.pod_name, resources.namespace)
            return True if current is None else None

        try:
            await poll_until(
                gone,
                timeout=self._cfg.pod_ready_timeout,
                interval=self._cfg.poll_interval,
                what=f"pod {resources.pod_name} deleted",
                clock=self._clock,
                cancel=self._cancel,
            )
        except WaitTimeoutError as e:
            raise ProvisionFailedError(
                f"exited pod {resources.pod_name} was not removed in time",
                details={"pod": resources.pod_name},
                reason="endpoint not ready",
            ) from e
        except WaitCancelledError as e:
            raise _cancelled(resources.pod_name, e) from e

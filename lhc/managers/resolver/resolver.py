"""VolumeAccessResolver - decide how to reach a volume's filesystem.

    unbound or not in use      -> provision directly
    in use, mount found        -> reuse that pod's container
    in use, no mount found     -> indirect (reduced-redundancy) exposure

The in-use check is a claim-to-pod join against live control-plane state.
Nothing is cached and the decision is not atomic: a workload that starts
or stops between the check and the exec is not noticed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from lhc.drivers.base import ClaimRecord
from lhc.errors import LhcError, NoAccessPathError
from lhc.managers.provisioner import EphemeralProvisioner, ProvisionProfile
from lhc.models.access import AccessHandle, AccessStrategy, Resolution

if TYPE_CHECKING:
    from lhc.drivers.base import ControlPlane, PodRecord, VolumeSource
    from lhc.models.volume import Volume

logger = structlog.get_logger()


class VolumeAccessResolver:
    """Resolves a volume name to an AccessHandle plus the strategy used."""

    def __init__(
        self,
        volume_source: "VolumeSource",
        control_plane: "ControlPlane",
        provisioner: EphemeralProvisioner,
    ) -> None:
        self._volumes = volume_source
        self._plane = control_plane
        self._provisioner = provisioner
        self._log = logger.bind(manager="resolver")

    async def resolve(
        self,
        volume_name: str,
        namespace: str,
        storage_class: str,
    ) -> Resolution:
        """Obtain access to `volume_name`.

        Raises:
            NotFoundError: Longhorn has no such volume
            ListFailedError: A control-plane or Longhorn listing failed
            ProvisionFailedError: Direct provisioning failed
            NoAccessPathError: Volume is in use, no existing mount was
                found and the indirect fallback failed too
        """
        log = self._log.bind(volume=volume_name, namespace=namespace)

        volume = await self._volumes.get_volume(volume_name)
        log.debug(
            "resolve.lookup",
            state=volume.state.value,
            size=volume.size,
            pv=volume.pv_name,
        )

        if volume.is_bound and await self.is_volume_in_use(volume.pv_name, namespace):
            log.info("resolve.in_use", pv=volume.pv_name)

            handle = await self.find_existing_mount(volume.pv_name, namespace)
            if handle is not None:
                log.info("resolve.reuse_existing", pod=handle.pod, container=handle.container)
                return Resolution(
                    volume_name=volume_name,
                    strategy=AccessStrategy.REUSE_EXISTING,
                    handle=handle,
                )

            return await self._indirect(volume, namespace, storage_class, log)

        return await self._direct(volume, namespace, storage_class, log)

    async def is_volume_in_use(self, pv_name: str, namespace: str) -> bool:
        """True if a Running pod in `namespace` mounts the claim bound to `pv_name`."""
        claim = await self._bound_claim(pv_name, namespace)
        if claim is None:
            return False
        return bool(await self._running_pods_using(claim, namespace))

    async def find_existing_mount(self, pv_name: str, namespace: str) -> AccessHandle | None:
        """Locate the container and path where a running pod mounts `pv_name`.

        Returns None when no bound claim, no running consumer, or no
        container mount for the claim's pod volume can be found.
        """
        claim = await self._bound_claim(pv_name, namespace)
        if claim is None:
            return None

        for pod, pod_volume in await self._running_pods_using(claim, namespace):
            for mount in pod.mounts:
                if mount.volume == pod_volume:
                    return AccessHandle(
                        namespace=pod.namespace,
                        pod=pod.name,
                        container=mount.container,
                        mount_path=mount.mount_path,
                    )
        return None

    # Strategies

    async def _direct(self, volume: "Volume", namespace: str, storage_class: str, log) -> Resolution:
        handle = await self._provisioner.provision(
            volume.name,
            namespace,
            storage_class,
            volume.size if volume.has_size else None,
            profile=ProvisionProfile.DIRECT,
        )
        log.info("resolve.direct_provision", pod=handle.pod)
        return Resolution(
            volume_name=volume.name,
            strategy=AccessStrategy.DIRECT_PROVISION,
            handle=handle,
            resources=self._provisioner.naming.resource_set(volume.name, namespace),
        )

    async def _indirect(
        self, volume: "Volume", namespace: str, storage_class: str, log
    ) -> Resolution:
        # Placeholder for snapshot+clone: a second, reduced-redundancy
        # exposure, not a point-in-time copy of the data
        exposed_name = self._provisioner.naming.indirect_volume_name(volume.name)
        log.warning(
            "resolve.indirect_access",
            exposed_as=exposed_name,
            note="volume is in use by a pod that cannot be reused; "
            "using a temporary best-effort exposure instead of a snapshot",
        )

        try:
            handle = await self._provisioner.provision(
                exposed_name,
                namespace,
                storage_class,
                volume.size if volume.has_size else None,
                profile=ProvisionProfile.INDIRECT,
            )
        except LhcError as e:
            raise NoAccessPathError(
                f"cannot access volume {volume.name}: in use and indirect access failed: {e.message}",
                details={"volume": volume.name, "cause": e.code},
            ) from e

        return Resolution(
            volume_name=volume.name,
            strategy=AccessStrategy.INDIRECT_SNAPSHOT,
            handle=handle,
            resources=self._provisioner.naming.resource_set(exposed_name, namespace),
        )

    # Claim-to-pod join

    async def _bound_claim(self, pv_name: str, namespace: str) -> ClaimRecord | None:
        for claim in await self._plane.list_claims(namespace):
            if claim.volume_name == pv_name and claim.is_bound:
                return claim
        return None

    async def _running_pods_using(
        self, claim: ClaimRecord, namespace: str
    ) -> list[tuple["PodRecord", str]]:
        """(pod, pod-level volume name) for each Running pod mounting `claim`."""
        matches = []
        for pod in await self._plane.list_pods(namespace):
            if not pod.is_running:
                continue
            for pod_volume, claim_name in pod.claim_volumes.items():
                if claim_name == claim.name:
                    matches.append((pod, pod_volume))
        return matches

"""TemporaryResourceSweeper - remove every labelled ephemeral object.

Only objects carrying the ephemeral label are ever considered; operator
resources without it are invisible to the sweep. Deletion goes pods ->
PVCs -> PVs so nothing still consumes a claim or a volume being removed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

import structlog

from lhc.errors import LhcError
from lhc.naming import ResourceNaming
from lhc.services.gc.base import ConfirmCallback, GCResult, GCTask, SweepCandidates

if TYPE_CHECKING:
    from lhc.drivers.base import ControlPlane

logger = structlog.get_logger()


class TemporaryResourceSweeper(GCTask):
    """Label-based GC for PV/PVC/Pod triples."""

    def __init__(
        self,
        control_plane: "ControlPlane",
        naming: ResourceNaming,
        *,
        echo: Callable[[str], None] | None = None,
    ) -> None:
        self._plane = control_plane
        self._naming = naming
        self._echo = echo or (lambda _: None)
        self._log = logger.bind(gc_task="temporary_resources")

    @property
    def name(self) -> str:
        return "temporary_resources"

    @property
    def naming(self) -> ResourceNaming:
        return self._naming

    async def discover(self, namespace: str) -> SweepCandidates:
        """List labelled pods and PVCs in `namespace` and labelled PVs cluster-wide.

        Raises:
            ListFailedError: Any of the three listings failed
        """
        selector = self._naming.label_selector
        return SweepCandidates(
            namespace=namespace,
            pods=await self._plane.list_pods(namespace, label_selector=selector),
            claims=await self._plane.list_claims(namespace, label_selector=selector),
            persistent_volumes=await self._plane.list_persistent_volumes(label_selector=selector),
        )

    async def sweep(self, namespace: str, confirm: ConfirmCallback) -> GCResult:
        result = GCResult(task_name=self.name)
        log = self._log.bind(namespace=namespace)

        candidates = await self.discover(namespace)
        result.found_count = candidates.total
        if candidates.is_empty:
            log.info("gc.nothing_found")
            return result

        if not confirm(candidates):
            log.info("gc.declined", found=candidates.total)
            result.skipped_count = candidates.total
            return result
        result.confirmed = True

        for pod in candidates.pods:
            await self._delete(
                result, "pod", pod.name, lambda: self._plane.delete_pod(pod.name, namespace)
            )
        for claim in candidates.claims:
            await self._delete(
                result, "PVC", claim.name, lambda: self._plane.delete_claim(claim.name, namespace)
            )
        for pv in candidates.persistent_volumes:
            await self._delete(
                result, "PV", pv.name, lambda: self._plane.delete_persistent_volume(pv.name)
            )

        log.info(
            "gc.completed",
            cleaned=result.cleaned_count,
            skipped=result.skipped_count,
            errors=len(result.errors),
        )
        return result

    async def _delete(self, result: GCResult, kind: str, name: str, delete) -> None:
        self._echo(f"Deleting {kind} {name}...")
        try:
            await delete()
            result.cleaned_count += 1
            self._log.info("gc.deleted", kind=kind, name=name)
        except LhcError as e:
            self._log.warning("gc.delete_failed", kind=kind, name=name, error=str(e))
            result.skipped_count += 1
            result.add_error(f"failed to delete {kind} {name}: {e.message}")
            self._echo(f"Warning: failed to delete {kind} {name}: {e.message}")

"""Access handles and the ephemeral resources behind them."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class AccessHandle:
    """(pod, container, mount path) through which a volume's files are reachable.

    Valid only while the pod keeps running; nothing re-checks it.
    """

    namespace: str
    pod: str
    container: str
    mount_path: str


@dataclass(frozen=True)
class EphemeralResourceSet:
    """Names of the PV/PVC/Pod triple that exposes one volume.

    `pv_name` is cluster-scoped; the claim and pod live in `namespace`.
    """

    volume_name: str
    namespace: str
    pv_name: str
    pvc_name: str
    pod_name: str
    label_selector: str


class AccessStrategy(str, Enum):
    """How the resolver obtained access to a volume."""

    DIRECT_PROVISION = "direct_provision"
    REUSE_EXISTING = "reuse_existing"
    # Placeholder for snapshot+clone: a reduced-redundancy second exposure
    INDIRECT_SNAPSHOT = "indirect_snapshot"


@dataclass(frozen=True)
class Resolution:
    """Result of resolving a volume: the chosen strategy and its handle.

    `resources` is set when lhc created (or reused) an ephemeral set for
    this access and is None for REUSE_EXISTING, which carries no cleanup
    obligation.
    """

    volume_name: str
    strategy: AccessStrategy
    handle: AccessHandle
    resources: EphemeralResourceSet | None = None

    @property
    def owns_resources(self) -> bool:
        return self.resources is not None

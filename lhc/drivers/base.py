"""Driver base classes - collaborator abstractions.

Three narrow contracts sit between lhc's core and the cluster:
- ControlPlane: create/get/list/delete for Pods, PVCs (namespaced) and
  PVs (cluster-scoped); list supports label selectors.
- VolumeSource: Longhorn volume metadata (name/state/size/bound PV).
- CommandRunner: run a command in a Pod container with redirected streams.

Drivers do NOT:
- retry (polling for state lives in the provisioner)
- decide which access strategy to use
- clean up after themselves
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, AsyncIterator, Sequence

from lhc.errors import NotFoundError

if TYPE_CHECKING:
    from lhc.models.access import AccessHandle
    from lhc.models.volume import Volume
    from lhc.streams import ByteSink


class PodPhase(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


class ClaimPhase(str, Enum):
    PENDING = "Pending"
    BOUND = "Bound"
    LOST = "Lost"


# Spec objects (what lhc asks the control plane to create)


@dataclass
class PersistentVolumeSpec:
    """A CSI-backed PV pointing at a Longhorn volume handle."""

    name: str
    capacity: str
    storage_class: str
    csi_driver: str
    volume_handle: str
    fs_type: str
    reclaim_policy: str  # Retain | Delete
    volume_attributes: dict[str, str] = field(default_factory=dict)
    access_modes: list[str] = field(default_factory=lambda: ["ReadWriteMany"])
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class ClaimSpec:
    """A PVC pre-bound to one PV by name."""

    name: str
    namespace: str
    size: str
    storage_class: str
    volume_name: str
    access_modes: list[str] = field(default_factory=lambda: ["ReadWriteMany"])
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class PodSpec:
    """A single-container idle Pod mounting one claim."""

    name: str
    namespace: str
    container_name: str
    image: str
    command: list[str]
    claim_name: str
    mount_path: str
    volume_name: str = "volume"
    labels: dict[str, str] = field(default_factory=dict)


# Records (what lhc reads back)


@dataclass
class ContainerMount:
    """One volumeMount of one container."""

    container: str
    volume: str  # Pod-level volume name
    mount_path: str


@dataclass
class PodRecord:
    name: str
    namespace: str
    phase: str = PodPhase.UNKNOWN.value
    labels: dict[str, str] = field(default_factory=dict)
    # Pod-level volume name -> PVC claim name (PVC-backed volumes only)
    claim_volumes: dict[str, str] = field(default_factory=dict)
    mounts: list[ContainerMount] = field(default_factory=list)

    @property
    def is_running(self) -> bool:
        return self.phase == PodPhase.RUNNING

    @property
    def is_terminal(self) -> bool:
        return self.phase in (PodPhase.SUCCEEDED, PodPhase.FAILED)


@dataclass
class ClaimRecord:
    name: str
    namespace: str
    phase: str = ClaimPhase.PENDING.value
    volume_name: str | None = None  # spec.volumeName
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def is_bound(self) -> bool:
        return self.phase == ClaimPhase.BOUND


@dataclass
class PersistentVolumeRecord:
    name: str
    phase: str = "Unknown"
    labels: dict[str, str] = field(default_factory=dict)


class ControlPlane(ABC):
    """Cluster control-plane client.

    Conventions:
    - get_* returns None when the object does not exist and raises
      GetFailedError for any other failure.
    - create_* returns True when created, False when an object with that
      name already exists; other failures raise ProvisionFailedError.
    - delete_* is a no-op for missing objects.
    - list_* raises ListFailedError.
    """

    @abstractmethod
    async def get_pod(self, name: str, namespace: str) -> PodRecord | None: ...

    @abstractmethod
    async def create_pod(self, spec: PodSpec) -> bool: ...

    @abstractmethod
    async def delete_pod(self, name: str, namespace: str) -> None: ...

    @abstractmethod
    async def list_pods(
        self, namespace: str, *, label_selector: str | None = None
    ) -> list[PodRecord]: ...

    @abstractmethod
    async def get_claim(self, name: str, namespace: str) -> ClaimRecord | None: ...

    @abstractmethod
    async def create_claim(self, spec: ClaimSpec) -> bool: ...

    @abstractmethod
    async def delete_claim(self, name: str, namespace: str) -> None: ...

    @abstractmethod
    async def list_claims(
        self, namespace: str, *, label_selector: str | None = None
    ) -> list[ClaimRecord]: ...

    @abstractmethod
    async def get_persistent_volume(self, name: str) -> PersistentVolumeRecord | None: ...

    @abstractmethod
    async def create_persistent_volume(self, spec: PersistentVolumeSpec) -> bool: ...

    @abstractmethod
    async def delete_persistent_volume(self, name: str) -> None: ...

    @abstractmethod
    async def list_persistent_volumes(
        self, *, label_selector: str | None = None
    ) -> list[PersistentVolumeRecord]: ...


class VolumeSource(ABC):
    """Storage-system metadata provider."""

    @abstractmethod
    async def list_volumes(self) -> list["Volume"]:
        """List all volumes. Raises ListFailedError."""
        ...

    async def get_volume(self, name: str) -> "Volume":
        """Get one volume by name.

        Raises:
            NotFoundError: If no volume has that name
            ListFailedError: If the listing fails
        """
        for volume in await self.list_volumes():
            if volume.name == name:
                return volume
        raise NotFoundError(f"Longhorn volume {name} not found", details={"volume": name})


class CommandRunner(ABC):
    """Remote command execution channel."""

    @abstractmethod
    async def run(
        self,
        handle: "AccessHandle",
        command: Sequence[str],
        *,
        stdin: AsyncIterator[bytes] | None = None,
        stdout: "ByteSink | None" = None,
        stderr: "ByteSink | None" = None,
    ) -> None:
        """Run `command` in the handle's pod/container and wait for it to exit.

        Args:
            handle: Target pod/container
            command: argv, no shell interpretation
            stdin: Optional source streamed to the command's stdin
            stdout: Sink for stdout (discarded if None)
            stderr: Sink for stderr (discarded if None)

        Raises:
            ExecFailedError: On transport failure or unsuccessful exit.
                No timeout is applied; a hung command hangs the caller.
        """
        ...

"""Driver layer - cluster abstraction."""

from lhc.drivers.base import (
    ClaimRecord,
    ClaimSpec,
    CommandRunner,
    ControlPlane,
    PersistentVolumeRecord,
    PersistentVolumeSpec,
    PodRecord,
    PodSpec,
    VolumeSource,
)

__all__ = [
    "ClaimRecord",
    "ClaimSpec",
    "CommandRunner",
    "ControlPlane",
    "PersistentVolumeRecord",
    "PersistentVolumeSpec",
    "PodRecord",
    "PodSpec",
    "VolumeSource",
]

"""Longhorn volume as seen by lhc (read-only)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class VolumeState(str, Enum):
    """Longhorn volume state (status.state)."""

    CREATING = "creating"
    ATTACHED = "attached"
    ATTACHING = "attaching"
    DETACHED = "detached"
    DETACHING = "detaching"
    DELETING = "deleting"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str | None) -> "VolumeState":
        if not raw:
            return cls.UNKNOWN
        try:
            return cls(raw.lower())
        except ValueError:
            return cls.UNKNOWN


class VolumeRobustness(str, Enum):
    """Longhorn volume robustness (status.robustness)."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    FAULTED = "faulted"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str | None) -> "VolumeRobustness":
        if not raw:
            return cls.UNKNOWN
        try:
            return cls(raw.lower())
        except ValueError:
            return cls.UNKNOWN


UNKNOWN_SIZE = "Unknown"


@dataclass
class Volume:
    """A Longhorn volume.

    `size` is the raw spec.size string (bytes, usually) or "Unknown".
    `pv_name` is the PersistentVolume Longhorn reports as bound to the
    volume, if any.
    """

    name: str
    size: str = UNKNOWN_SIZE
    state: VolumeState = VolumeState.UNKNOWN
    robustness: VolumeRobustness = VolumeRobustness.UNKNOWN
    pv_name: str | None = None

    @property
    def is_bound(self) -> bool:
        return bool(self.pv_name)

    @property
    def has_size(self) -> bool:
        return bool(self.size) and self.size != UNKNOWN_SIZE

"""Data models."""

from lhc.models.access import (
    AccessHandle,
    AccessStrategy,
    EphemeralResourceSet,
    Resolution,
)
from lhc.models.copy import CopyJob, CopyStatus
from lhc.models.volume import Volume, VolumeRobustness, VolumeState

__all__ = [
    "AccessHandle",
    "AccessStrategy",
    "CopyJob",
    "CopyStatus",
    "EphemeralResourceSet",
    "Resolution",
    "Volume",
    "VolumeRobustness",
    "VolumeState",
]

"""Manager layer - volume access orchestration."""

from lhc.managers.provisioner import EphemeralProvisioner, ProvisionProfile
from lhc.managers.resolver import VolumeAccessResolver
from lhc.managers.volume import VolumeManager

__all__ = [
    "EphemeralProvisioner",
    "ProvisionProfile",
    "VolumeAccessResolver",
    "VolumeManager",
]

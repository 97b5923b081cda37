"""Deterministic names and labels for ephemeral resources.

Names are a pure function of the volume name and a fixed prefix:

    lhc-temp-pv-<volume>     PersistentVolume (cluster-scoped)
    lhc-temp-pvc-<volume>    PersistentVolumeClaim
    lhc-temp-pod-<volume>    Pod
    lhc-temp-rwx-<volume>    volume name used by the indirect access path

Lookups by these names are what make provisioning idempotent, and the
shared label is what the GC selects on.
"""

from __future__ import annotations

from dataclasses import dataclass

from lhc.config import ProvisionConfig
from lhc.models.access import EphemeralResourceSet


@dataclass(frozen=True)
class ResourceNaming:
    prefix: str = "lhc-temp"
    label_key: str = "app"
    label_value: str = "lhc-temp"

    @classmethod
    def from_config(cls, cfg: ProvisionConfig) -> "ResourceNaming":
        return cls(prefix=cfg.name_prefix, label_key=cfg.label_key, label_value=cfg.label_value)

    def pv_name(self, volume_name: str) -> str:
        return f"{self.prefix}-pv-{volume_name}"

    def pvc_name(self, volume_name: str) -> str:
        return f"{self.prefix}-pvc-{volume_name}"

    def pod_name(self, volume_name: str) -> str:
        return f"{self.prefix}-pod-{volume_name}"

    def indirect_volume_name(self, volume_name: str) -> str:
        return f"{self.prefix}-rwx-{volume_name}"

    @property
    def labels(self) -> dict[str, str]:
        return {self.label_key: self.label_value}

    @property
    def label_selector(self) -> str:
        return f"{self.label_key}={self.label_value}"

    def resource_set(self, volume_name: str, namespace: str) -> EphemeralResourceSet:
        return EphemeralResourceSet(
            volume_name=volume_name,
            namespace=namespace,
            pv_name=self.pv_name(volume_name),
            pvc_name=self.pvc_name(volume_name),
            pod_name=self.pod_name(volume_name),
            label_selector=self.label_selector,
        )

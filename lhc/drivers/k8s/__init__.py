"""Kubernetes-backed drivers."""

from lhc.drivers.k8s.exec import K8sCommandRunner
from lhc.drivers.k8s.k8s import K8sControlPlane
from lhc.drivers.k8s.longhorn import LonghornVolumeSource
from lhc.drivers.k8s.session import KubeClientManager

__all__ = [
    "K8sCommandRunner",
    "K8sControlPlane",
    "KubeClientManager",
    "LonghornVolumeSource",
]

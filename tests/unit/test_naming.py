"""Unit tests for ResourceNaming."""

from __future__ import annotations

from lhc.config import ProvisionConfig
from lhc.naming import ResourceNaming


class TestResourceNames:
    def test_names_are_prefixed_per_kind(self):
        naming = ResourceNaming()

        assert naming.pv_name("pvc-12345") == "lhc-temp-pv-pvc-12345"
        assert naming.pvc_name("pvc-12345") == "lhc-temp-pvc-pvc-12345"
        assert naming.pod_name("pvc-12345") == "lhc-temp-pod-pvc-12345"

    def test_indirect_volume_name(self):
        assert ResourceNaming().indirect_volume_name("vol-a") == "lhc-temp-rwx-vol-a"

    def test_names_are_deterministic(self):
        a = ResourceNaming().resource_set("vol-a", "default")
        b = ResourceNaming().resource_set("vol-a", "default")
        assert a == b

    def test_resource_set_fields(self):
        resources = ResourceNaming().resource_set("vol-a", "apps")

        assert resources.volume_name == "vol-a"
        assert resources.namespace == "apps"
        assert resources.pv_name == "lhc-temp-pv-vol-a"
        assert resources.pvc_name == "lhc-temp-pvc-vol-a"
        assert resources.pod_name == "lhc-temp-pod-vol-a"
        assert resources.label_selector == "app=lhc-temp"


class TestLabels:
    def test_default_label(self):
        naming = ResourceNaming()
        assert naming.labels == {"app": "lhc-temp"}
        assert naming.label_selector == "app=lhc-temp"

    def test_from_config(self):
        cfg = ProvisionConfig(name_prefix="tmp", label_key="owner", label_value="tmp-tool")
        naming = ResourceNaming.from_config(cfg)

        assert naming.pod_name("v") == "tmp-pod-v"
        assert naming.label_selector == "owner=tmp-tool"

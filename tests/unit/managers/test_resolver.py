"""Unit tests for VolumeAccessResolver."""

from __future__ import annotations

import asyncio

import pytest

from lhc.config import LonghornConfig, ProvisionConfig
from lhc.drivers.base import ContainerMount
from lhc.errors import ListFailedError, NoAccessPathError, NotFoundError
from lhc.managers.provisioner import EphemeralProvisioner
from lhc.managers.resolver import VolumeAccessResolver
from lhc.models.access import AccessStrategy
from tests.fakes import FakeClock, FakeControlPlane, FakeVolumeSource, make_volume


@pytest.fixture
def plane():
    return FakeControlPlane()


@pytest.fixture
def source():
    return FakeVolumeSource()


@pytest.fixture
def provisioner(plane):
    return EphemeralProvisioner(plane, ProvisionConfig(), LonghornConfig(), clock=FakeClock())


@pytest.fixture
def resolver(source, plane, provisioner):
    return VolumeAccessResolver(source, plane, provisioner)


def _workload(plane, *, pv="pv-data", claim="app-data", pod="app-0", phase="Running", mounts=None):
    plane.add_claim(claim, volume_name=pv)
    plane.add_pod(
        pod,
        phase=phase,
        claim_volumes={"data": claim},
        mounts=mounts
        if mounts is not None
        else [
            ContainerMount(container="sidecar", volume="config", mount_path="/etc/app"),
            ContainerMount(container="app", volume="data", mount_path="/var/lib/app"),
        ],
    )


class TestResolveDirect:
    @pytest.mark.asyncio
    async def test_unbound_volume_is_provisioned(self, resolver, source, plane):
        source.volumes = [make_volume("pvc-12345")]

        resolution = await resolver.resolve("pvc-12345", "default", "longhorn")

        assert resolution.strategy == AccessStrategy.DIRECT_PROVISION
        assert resolution.handle.pod == "lhc-temp-pod-pvc-12345"
        assert resolution.handle.mount_path == "/mnt/volume"
        assert resolution.owns_resources
        assert resolution.resources.pv_name == "lhc-temp-pv-pvc-12345"
        assert plane.create_pv_calls[0].capacity == "2147483648"

    @pytest.mark.asyncio
    async def test_bound_but_idle_volume_never_goes_indirect(self, resolver, source, plane):
        source.volumes = [make_volume("vol-a", pv_name="pv-data")]
        # Claim bound, consumer pod exited
        _workload(plane, phase="Succeeded")

        resolution = await resolver.resolve("vol-a", "default", "longhorn")

        assert resolution.strategy == AccessStrategy.DIRECT_PROVISION
        assert all("rwx" not in spec.name for spec in plane.create_pv_calls)

    @pytest.mark.asyncio
    async def test_bound_without_claim_in_namespace_is_direct(self, resolver, source, plane):
        source.volumes = [make_volume("vol-a", pv_name="pv-data")]

        resolution = await resolver.resolve("vol-a", "default", "longhorn")

        assert resolution.strategy == AccessStrategy.DIRECT_PROVISION

    @pytest.mark.asyncio
    async def test_unknown_size_passes_no_hint(self, resolver, source, plane):
        source.volumes = [make_volume("vol-a", size="Unknown")]

        await resolver.resolve("vol-a", "default", "longhorn")

        assert plane.create_pv_calls[0].capacity == "1Gi"


class TestResolveInUse:
    @pytest.mark.asyncio
    async def test_reuses_existing_mount(self, resolver, source, plane):
        source.volumes = [make_volume("vol-a", pv_name="pv-data")]
        _workload(plane)

        resolution = await resolver.resolve("vol-a", "default", "longhorn")

        assert resolution.strategy == AccessStrategy.REUSE_EXISTING
        assert resolution.handle.pod == "app-0"
        assert resolution.handle.container == "app"
        assert resolution.handle.mount_path == "/var/lib/app"
        assert not resolution.owns_resources
        assert plane.create_pod_calls == []

    @pytest.mark.asyncio
    async def test_falls_back_to_indirect_when_mount_unresolvable(self, resolver, source, plane):
        source.volumes = [make_volume("vol-a", pv_name="pv-data")]
        # Pod references the claim but no container mounts it
        _workload(plane, mounts=[])

        resolution = await resolver.resolve("vol-a", "default", "longhorn")

        assert resolution.strategy == AccessStrategy.INDIRECT_SNAPSHOT
        assert resolution.handle.pod == "lhc-temp-pod-lhc-temp-rwx-vol-a"
        assert resolution.resources.volume_name == "lhc-temp-rwx-vol-a"
        pv = plane.create_pv_calls[0]
        assert pv.reclaim_policy == "Delete"
        assert pv.volume_attributes["numberOfReplicas"] == "1"

    @pytest.mark.asyncio
    async def test_indirect_failure_is_no_access_path(self, resolver, source, plane):
        source.volumes = [make_volume("vol-a", pv_name="pv-data")]
        _workload(plane, mounts=[])
        plane.pods_never_ready = True

        with pytest.raises(NoAccessPathError):
            await resolver.resolve("vol-a", "default", "longhorn")

    @pytest.mark.asyncio
    async def test_interrupted_indirect_wait_is_no_access_path(self, source, plane):
        cancel = asyncio.Event()
        cancel.set()
        provisioner = EphemeralProvisioner(
            plane, ProvisionConfig(), LonghornConfig(), clock=FakeClock(), cancel=cancel
        )
        resolver = VolumeAccessResolver(source, plane, provisioner)
        source.volumes = [make_volume("vol-a", pv_name="pv-data")]
        _workload(plane, mounts=[])

        with pytest.raises(NoAccessPathError) as exc_info:
            await resolver.resolve("vol-a", "default", "longhorn")

        assert exc_info.value.details["cause"] == "provision_failed"


class TestQueries:
    @pytest.mark.asyncio
    async def test_is_volume_in_use(self, resolver, plane):
        _workload(plane)
        assert await resolver.is_volume_in_use("pv-data", "default")
        assert not await resolver.is_volume_in_use("pv-other", "default")

    @pytest.mark.asyncio
    async def test_pending_claim_is_not_in_use(self, resolver, plane):
        plane.add_claim("app-data", volume_name="pv-data", phase="Pending")
        plane.add_pod("app-0", claim_volumes={"data": "app-data"})

        assert not await resolver.is_volume_in_use("pv-data", "default")

    @pytest.mark.asyncio
    async def test_find_existing_mount_none_without_claim(self, resolver):
        assert await resolver.find_existing_mount("pv-data", "default") is None


class TestErrors:
    @pytest.mark.asyncio
    async def test_missing_volume(self, resolver):
        with pytest.raises(NotFoundError):
            await resolver.resolve("nope", "default", "longhorn")

    @pytest.mark.asyncio
    async def test_list_failure_surfaces(self, resolver, source, plane):
        source.volumes = [make_volume("vol-a", pv_name="pv-data")]
        plane.list_error = ListFailedError("failed to list PVCs: 500")

        with pytest.raises(ListFailedError):
            await resolver.resolve("vol-a", "default", "longhorn")

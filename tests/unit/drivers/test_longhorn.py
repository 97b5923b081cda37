"""Unit tests for LonghornVolumeSource."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from kubernetes_asyncio.client import ApiException

from lhc.config import LonghornConfig
from lhc.drivers.k8s.longhorn import LonghornVolumeSource
from lhc.errors import ListFailedError, NotFoundError
from lhc.models.volume import UNKNOWN_SIZE, VolumeRobustness, VolumeState


def _source(items):
    mock_api = AsyncMock()
    mock_api.list_namespaced_custom_object.return_value = {"items": items}
    return LonghornVolumeSource(MagicMock(), LonghornConfig()), mock_api


class TestListVolumes:
    @pytest.mark.asyncio
    async def test_maps_custom_objects(self):
        source, mock_api = _source([
            {
                "metadata": {"name": "pvc-12345"},
                "spec": {"size": "2147483648"},
                "status": {
                    "state": "attached",
                    "robustness": "healthy",
                    "kubernetesStatus": {"pvName": "pvc-12345"},
                },
            }
        ])

        with patch("lhc.drivers.k8s.longhorn.client.CustomObjectsApi", return_value=mock_api):
            volumes = await source.list_volumes()

        mock_api.list_namespaced_custom_object.assert_called_once_with(
            group="longhorn.io",
            version="v1beta2",
            namespace="longhorn-system",
            plural="volumes",
        )
        volume = volumes[0]
        assert volume.name == "pvc-12345"
        assert volume.size == "2147483648"
        assert volume.state == VolumeState.ATTACHED
        assert volume.robustness == VolumeRobustness.HEALTHY
        assert volume.pv_name == "pvc-12345"
        assert volume.is_bound

    @pytest.mark.asyncio
    async def test_missing_fields_default(self):
        source, mock_api = _source([{"metadata": {"name": "bare"}}])

        with patch("lhc.drivers.k8s.longhorn.client.CustomObjectsApi", return_value=mock_api):
            volume = (await source.list_volumes())[0]

        assert volume.size == UNKNOWN_SIZE
        assert not volume.has_size
        assert volume.state == VolumeState.UNKNOWN
        assert volume.robustness == VolumeRobustness.UNKNOWN
        assert volume.pv_name is None
        assert not volume.is_bound

    @pytest.mark.asyncio
    async def test_unrecognised_state_is_unknown(self):
        source, mock_api = _source([
            {"metadata": {"name": "odd"}, "status": {"state": "migrating"}}
        ])

        with patch("lhc.drivers.k8s.longhorn.client.CustomObjectsApi", return_value=mock_api):
            volume = (await source.list_volumes())[0]

        assert volume.state == VolumeState.UNKNOWN

    @pytest.mark.asyncio
    async def test_api_error_is_list_failed(self):
        source = LonghornVolumeSource(MagicMock(), LonghornConfig())
        mock_api = AsyncMock()
        mock_api.list_namespaced_custom_object.side_effect = ApiException(status=403)

        with patch("lhc.drivers.k8s.longhorn.client.CustomObjectsApi", return_value=mock_api):
            with pytest.raises(ListFailedError):
                await source.list_volumes()


class TestGetVolume:
    @pytest.mark.asyncio
    async def test_not_found(self):
        source, mock_api = _source([{"metadata": {"name": "other"}}])

        with patch("lhc.drivers.k8s.longhorn.client.CustomObjectsApi", return_value=mock_api):
            with pytest.raises(NotFoundError):
                await source.get_volume("pvc-12345")

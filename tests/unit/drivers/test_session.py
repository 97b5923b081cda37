"""Unit tests for KubeClientManager credential loading."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from kubernetes_asyncio.config import ConfigException

from lhc.config import KubeConfig
from lhc.drivers.k8s.session import KubeClientManager
from lhc.errors import ConfigError


def _client_mock():
    mock = MagicMock()
    mock.close = AsyncMock()
    return mock


class TestKubeClientManager:
    def test_clients_require_startup(self):
        manager = KubeClientManager(KubeConfig())

        with pytest.raises(RuntimeError):
            manager.api_client

    @pytest.mark.asyncio
    async def test_incluster_first(self):
        api, ws = _client_mock(), _client_mock()
        with (
            patch("lhc.drivers.k8s.session.config.load_incluster_config") as incluster,
            patch("lhc.drivers.k8s.session.config.load_kube_config", new=AsyncMock()) as kubeconfig,
            patch("lhc.drivers.k8s.session.ApiClient", return_value=api),
            patch("lhc.drivers.k8s.session.WsApiClient", return_value=ws),
        ):
            async with KubeClientManager(KubeConfig()) as manager:
                assert manager.api_client is api
                assert manager.ws_client is ws

        incluster.assert_called_once()
        kubeconfig.assert_not_called()
        api.close.assert_awaited_once()
        ws.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_falls_back_to_kubeconfig(self):
        with (
            patch(
                "lhc.drivers.k8s.session.config.load_incluster_config",
                side_effect=ConfigException("not in cluster"),
            ),
            patch("lhc.drivers.k8s.session.config.load_kube_config", new=AsyncMock()) as kubeconfig,
            patch("lhc.drivers.k8s.session.ApiClient", return_value=_client_mock()),
            patch("lhc.drivers.k8s.session.WsApiClient", return_value=_client_mock()),
        ):
            async with KubeClientManager(KubeConfig(context="staging")):
                pass

        assert kubeconfig.await_args.kwargs["context"] == "staging"

    @pytest.mark.asyncio
    async def test_explicit_kubeconfig_skips_incluster(self):
        with (
            patch("lhc.drivers.k8s.session.config.load_incluster_config") as incluster,
            patch("lhc.drivers.k8s.session.config.load_kube_config", new=AsyncMock()) as kubeconfig,
            patch("lhc.drivers.k8s.session.ApiClient", return_value=_client_mock()),
            patch("lhc.drivers.k8s.session.WsApiClient", return_value=_client_mock()),
        ):
            async with KubeClientManager(KubeConfig(kubeconfig="/tmp/kubeconfig")):
                pass

        incluster.assert_not_called()
        assert kubeconfig.await_args.kwargs["config_file"] == "/tmp/kubeconfig"

    @pytest.mark.asyncio
    async def test_no_credentials(self):
        with (
            patch(
                "lhc.drivers.k8s.session.config.load_incluster_config",
                side_effect=ConfigException("not in cluster"),
            ),
            patch(
                "lhc.drivers.k8s.session.config.load_kube_config",
                new=AsyncMock(side_effect=ConfigException("no kubeconfig")),
            ),
        ):
            with pytest.raises(ConfigError):
                await KubeClientManager(KubeConfig()).startup()

"""Shared Kubernetes API clients for one lhc invocation.

Credentials are resolved once: in-cluster service account first (when
running inside a Pod), then the kubeconfig file ($KUBECONFIG or
~/.kube/config unless configured explicitly).
"""

from __future__ import annotations

import structlog
from kubernetes_asyncio import client, config
from kubernetes_asyncio.client import ApiClient
from kubernetes_asyncio.config import ConfigException
from kubernetes_asyncio.stream import WsApiClient

from lhc.config import KubeConfig
from lhc.errors import ConfigError

logger = structlog.get_logger()


class KubeClientManager:
    """Owns the REST and websocket API clients.

    Usage:
        async with KubeClientManager(settings.kube) as kube:
            plane = K8sControlPlane(kube.api_client)
            runner = K8sCommandRunner(kube.ws_client)
    """

    def __init__(self, kube_cfg: KubeConfig) -> None:
        self._kube_cfg = kube_cfg
        self._configuration: client.Configuration | None = None
        self._api_client: ApiClient | None = None
        self._ws_client: WsApiClient | None = None
        self._log = logger.bind(component="kube_client")

    @property
    def api_client(self) -> ApiClient:
        if self._api_client is None:
            raise RuntimeError("Kubernetes client not initialized. Call startup() first.")
        return self._api_client

    @property
    def ws_client(self) -> WsApiClient:
        if self._ws_client is None:
            raise RuntimeError("Kubernetes client not initialized. Call startup() first.")
        return self._ws_client

    async def _load_configuration(self) -> client.Configuration:
        configuration = client.Configuration()

        if self._kube_cfg.prefer_incluster and not self._kube_cfg.kubeconfig:
            try:
                config.load_incluster_config(client_configuration=configuration)
                self._log.info("k8s.config.loaded", source="incluster")
                return configuration
            except ConfigException:
                self._log.debug("k8s.config.incluster_unavailable")

        try:
            await config.load_kube_config(
                config_file=self._kube_cfg.kubeconfig,
                context=self._kube_cfg.context,
                client_configuration=configuration,
            )
        except (ConfigException, OSError) as e:
            raise ConfigError(f"failed to build config: {e}") from e

        self._log.info(
            "k8s.config.loaded",
            source="kubeconfig",
            path=self._kube_cfg.kubeconfig or "default",
        )
        return configuration

    async def startup(self) -> None:
        if self._api_client is not None:
            return
        self._configuration = await self._load_configuration()
        self._api_client = ApiClient(configuration=self._configuration)
        self._ws_client = WsApiClient(configuration=self._configuration)

    async def shutdown(self) -> None:
        if self._ws_client is not None:
            await self._ws_client.close()
            self._ws_client = None
        if self._api_client is not None:
            await self._api_client.close()
            self._api_client = None

    async def __aenter__(self) -> "KubeClientManager":
        await self.startup()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.shutdown()

"""lhc configuration management.

Configuration sources (in priority order):
1. Explicit keyword arguments
2. Environment variables (LHC_ prefix)
3. Config file (lhc.yaml)
4. Defaults
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)


class KubeConfig(BaseModel):
    """Control-plane credentials.

    In-cluster service account credentials are tried first when
    `prefer_incluster` is set; otherwise (or when not running in a Pod)
    the kubeconfig file is used. `kubeconfig=None` means the client's
    default lookup: $KUBECONFIG, then ~/.kube/config.
    """

    kubeconfig: str | None = None
    context: str | None = None
    prefer_incluster: bool = True


class LonghornConfig(BaseModel):
    """Longhorn storage system settings."""

    # Namespace holding the volumes.longhorn.io custom objects
    namespace: str = "longhorn-system"
    group: str = "longhorn.io"
    version: str = "v1beta2"
    plural: str = "volumes"

    # CSI attributes for the temporary PersistentVolumes
    csi_driver: str = "driver.longhorn.io"
    fs_type: str = "ext4"
    replicas: int = 3
    # Replica count for the indirect (snapshot placeholder) exposure
    snapshot_replicas: int = 1
    stale_replica_timeout: int = 2880


class ProvisionConfig(BaseModel):
    """Ephemeral resource settings.

    Every PV/PVC/Pod created by lhc carries `label_key=label_value` and a
    name starting with `name_prefix`, which is all the GC relies on.
    """

    name_prefix: str = "lhc-temp"
    label_key: str = "app"
    label_value: str = "lhc-temp"

    mount_path: str = "/mnt/volume"
    container_name: str = "temp-container"
    image: str = "busybox:latest"
    sleep_seconds: int = 3600

    # Wait bounds in seconds
    claim_bind_timeout: float = 60
    pod_ready_timeout: float = 120
    poll_interval: float = 1.0

    # Used when Longhorn does not report a size for the volume
    default_size: str = "1Gi"


class CopyConfig(BaseModel):
    """Streaming copy settings."""

    # Pipe capacity in chunks; bounds memory held between producer and consumer
    pipe_max_chunks: int = 16


class CliConfig(BaseModel):
    """Defaults for command-line flags."""

    namespace: str = "default"
    storage_class: str = "longhorn"


class LoggingConfig(BaseModel):
    """Log output (always stderr)."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    json_output: bool = False


class Settings(BaseSettings):
    """lhc settings."""

    model_config = SettingsConfigDict(
        env_prefix="LHC_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    kube: KubeConfig = Field(default_factory=KubeConfig)
    longhorn: LonghornConfig = Field(default_factory=LonghornConfig)
    provision: ProvisionConfig = Field(default_factory=ProvisionConfig)
    transfer: CopyConfig = Field(default_factory=CopyConfig)
    cli: CliConfig = Field(default_factory=CliConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources = [init_settings, env_settings]
        config_file = _find_config_file()
        if config_file is not None:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=config_file))
        return tuple(sources)


def _find_config_file() -> Path | None:
    """Locate the YAML config file, if any.

    Looks for config file in order:
    1. LHC_CONFIG_FILE environment variable
    2. ./lhc.yaml
    3. ~/.config/lhc/config.yaml
    """
    config_paths = [
        os.environ.get("LHC_CONFIG_FILE"),
        Path("lhc.yaml"),
        Path.home() / ".config" / "lhc" / "config.yaml",
    ]

    for path in config_paths:
        if path is None:
            continue
        path = Path(path)
        if path.exists():
            return path

    return None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Environment variables override the YAML config file, which overrides
    the defaults.
    """
    return Settings()

"""lhc - ephemeral access to Longhorn volumes."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version


def _get_version() -> str:
    """Get the installed distribution version."""
    try:
        return version("lhc")
    except PackageNotFoundError:
        return "unknown"


__version__ = _get_version()

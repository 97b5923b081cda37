from lhc.managers.resolver.resolver import VolumeAccessResolver

__all__ = ["VolumeAccessResolver"]

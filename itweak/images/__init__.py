"""Disk image module initialization."""

from .acquirer import AcquireResult, ImageStatus, ReleaseAcquirer
from .mounter import ImageMounter, MountResult
from .releases import ReleaseIndexClient
from .version import ReleaseDescriptor, Version, compare, resolve_best, resolve_best_release

__all__ = [
    # version
    "ReleaseDescriptor",
    "Version",
    "compare",
    "resolve_best",
    "resolve_best_release",
    # releases
    "ReleaseIndexClient",
    # acquirer
    "AcquireResult",
    "ImageStatus",
    "ReleaseAcquirer",
    # mounter
    "ImageMounter",
    "MountResult",
]

"""Device tool module initialization."""

from .gateway import Device, DeviceToolGateway, MountOutcome
from .location import LocationSimulator
from .tools import LibimobiledeviceGateway

__all__ = [
    # gateway
    "Device",
    "DeviceToolGateway",
    "MountOutcome",
    # tools
    "LibimobiledeviceGateway",
    # location
    "LocationSimulator",
]

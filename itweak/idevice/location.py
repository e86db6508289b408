"""Location simulation on a device with a mounted developer image."""

from ..errors import ITweakError
from ..util.logging import get_logger
from .gateway import DeviceToolGateway

logger = get_logger(__name__)


class LocationSimulator:
    """Sets or clears a simulated GPS location for one device."""

    def __init__(self, gateway: DeviceToolGateway, device_id: str) -> None:
        self.gateway = gateway
        self.device_id = device_id

    def set_location(self, latitude: float, longitude: float) -> bool:
        """Simulate ``latitude``/``longitude``. Returns whether it took effect."""
        if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 180.0:
            logger.error(f"Coordinates out of range: {latitude}, {longitude}")
            return False
        try:
            ok = self.gateway.set_location(self.device_id, str(latitude), str(longitude))
        except ITweakError as e:
            logger.error(f"Error setting location: {e}")
            return False
        if ok:
            logger.info(f"Location set to {latitude}, {longitude} on {self.device_id}")
        else:
            logger.error(f"Device tool rejected location {latitude}, {longitude}")
        return ok

    def reset_location(self) -> bool:
        """Return the device to its real location."""
        try:
            ok = self.gateway.reset_location(self.device_id)
        except ITweakError as e:
            logger.error(f"Error resetting location: {e}")
            return False
        if not ok:
            logger.error("Device tool rejected location reset")
        return ok

    def needs_mount(self) -> bool:
        """Whether a developer disk image must be mounted first."""
        return self.gateway.needs_mount(self.device_id)

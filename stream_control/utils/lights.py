"""
TP-Link Kasa smart outlet control for the studio and on-air lights.
"""

from dataclasses import dataclass, field

from kasa import Device, Discover

from .logger import get_logger

logger = get_logger("lights")


def parse_devices(value: str) -> dict[str, str]:
    """Parse "name=host,name=host" into a name -> host mapping."""
    devices = {}
    for entry in value.split(","):
        if not entry.strip():
            continue
        name, sep, host = entry.partition("=")
        if not sep or not name.strip() or not host.strip():
            raise ValueError(f"Invalid light entry: {entry!r} (expected name=host)")
        devices[name.strip()] = host.strip()
    return devices


@dataclass
class LightController:
    """Named Kasa outlets, connected on first use."""

    devices: dict[str, str]
    timeout: int = 10
    _connected: dict[str, Device] = field(default_factory=dict)

    async def _get_device(self, name: str) -> Device:
        host = self.devices[name]  # KeyError for unknown names
        try:
            if name not in self._connected:
                self._connected[name] = await Discover.discover_single(host, timeout=self.timeout)
            device = self._connected[name]
            await device.update()
        except Exception:
            # Rediscover next time
            self._connected.pop(name, None)
            raise
        return device

    async def set_power(self, name: str, on: bool) -> None:
        """Turn one light on or off."""
        device = await self._get_device(name)
        try:
            if on:
                await device.turn_on()
            else:
                await device.turn_off()
        except Exception:
            self._connected.pop(name, None)
            raise
        logger.info(f"{name} turned {'on' if on else 'off'}.")

    async def toggle(self, name: str) -> bool:
        """Flip one light. Returns True if it is now on."""
        device = await self._get_device(name)
        new_state = not device.is_on
        await self.set_power(name, new_state)
        return new_state

    async def set_all(self, on: bool) -> None:
        """Switch every light; failures are logged per device."""
        for name in self.devices:
            try:
                await self.set_power(name, on)
            except Exception as e:
                logger.error(f"Unable to turn {'on' if on else 'off'} {name}: {e}")

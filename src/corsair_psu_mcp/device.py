"""Owned device object tying the connection, protocol and sensor table together."""

from __future__ import annotations

import logging

from .protocol.engine import ProtocolEngine
from .protocol.rails import RailSelector
from .sensors import Category, SensorDescriptor, SensorReading, SensorRegistry, SensorValue
from .transport.usb_connection import PRODUCT_ID, VENDOR_ID, DeviceInfo, USBConnection

logger = logging.getLogger(__name__)

# Product IDs of the supported RMi / HXi models (vendor 0x1B1C)
KNOWN_MODELS: dict[int, str] = {
    0x1C0A: "RM650i",
    0x1C0B: "RM750i",
    0x1C0C: "RM850i",
    0x1C0D: "RM1000i",
    0x1C04: "HX650i",
    0x1C05: "HX750i",
    0x1C06: "HX850i",
    0x1C07: "HX1000i",
    0x1C08: "HX1200i",
}


def model_name(product_id: int) -> str:
    return KNOWN_MODELS.get(product_id, f"Unknown ({product_id:#06x})")


class PowerSupply:
    """A single attached power supply.

    Share one instance between all readers of the device; it serialises
    access through the connection's lock.

    Usage::

        with PowerSupply(USBConnection(product_id=0x1C0C)) as psu:
            psu.read("temperature", 0)
    """

    def __init__(self, connection: USBConnection | None = None) -> None:
        self._connection = connection or USBConnection(VENDOR_ID, PRODUCT_ID)
        self._engine = ProtocolEngine(self._connection)
        self._rails = RailSelector(self._engine)
        self._registry = SensorRegistry(self._engine, self._rails)

    @property
    def connection(self) -> USBConnection:
        return self._connection

    @property
    def registry(self) -> SensorRegistry:
        return self._registry

    @property
    def rails(self) -> RailSelector:
        return self._rails

    @property
    def attached(self) -> bool:
        return self._connection.connected

    @property
    def device_info(self) -> DeviceInfo:
        return self._connection.device_info

    def attach(self) -> DeviceInfo:
        """Open the connection and bring the device into a known state."""
        if not self._connection.connected:
            self._connection.open()
        info = self._connection.device_info
        info.model = model_name(info.product_id)
        self._rails.reset()
        self._engine.handshake()
        logger.info("Attached %s", info.model)
        return info

    def detach(self) -> None:
        self._connection.close()
        self._rails.reset()

    def __enter__(self) -> PowerSupply:
        self.attach()
        return self

    def __exit__(self, *exc_info) -> None:
        self.detach()

    def sensors(self, category: Category | str | None = None) -> list[SensorDescriptor]:
        return self._registry.sensors(category)

    def label(self, category: Category | str, channel: int) -> str:
        return self._registry.label(category, channel)

    def read(self, category: Category | str, channel: int) -> SensorValue:
        return self._registry.read(category, channel)

    def read_all(self) -> list[SensorReading]:
        return self._registry.read_all()

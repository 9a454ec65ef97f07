"""Sensor table and read dispatch.

Each sensor is a ``SensorDescriptor`` keyed by ``(category, channel)``.
Reading one is a table lookup followed by an optional rail select, a
single protocol exchange and a decode step chosen by the payload kind.
Adding a sensor means adding a row to ``SENSOR_TABLE``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Union

from .errors import PSUError, UnsupportedSensorError
from .protocol.commands import OCP_MODES, RAIL_LABELS, Address, Command, Rail
from .protocol.engine import MAX_PAYLOAD, ProtocolEngine
from .protocol.linear import linear11_from_payload
from .protocol.rails import RailSelector

logger = logging.getLogger(__name__)

SensorValue = Union[int, str]


class Category(str, Enum):
    """Sensor categories exposed to monitoring front ends."""

    TEMPERATURE = "temperature"
    FAN = "fan"
    VOLTAGE = "voltage"
    CURRENT = "current"
    POWER = "power"
    UPTIME = "uptime"
    MODE = "mode"
    INFO = "info"


class PayloadKind(Enum):
    """How a response payload is turned into a value."""

    LINEAR11 = "linear11-u16"
    RAW_U32 = "raw-u32"
    ASCII = "ascii-string"


PAYLOAD_WIDTHS: dict[PayloadKind, int] = {
    PayloadKind.LINEAR11: 2,
    PayloadKind.RAW_U32: 4,
    PayloadKind.ASCII: MAX_PAYLOAD,
}

MILLI = 1000
MICRO = 1_000_000


@dataclass(frozen=True)
class SensorDescriptor:
    """One readable quantity and how to fetch it."""

    category: Category
    channel: int
    label: str
    opcode: int
    kind: PayloadKind
    address: int = Address.PSU
    rail: Rail | None = None
    scale: int = 1
    unit: str = ""

    @property
    def key(self) -> tuple[Category, int]:
        return (self.category, self.channel)

    @property
    def width(self) -> int:
        return PAYLOAD_WIDTHS[self.kind]

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "channel": self.channel,
            "label": self.label,
            "opcode": f"0x{self.opcode:02X}",
            "rail": RAIL_LABELS[self.rail] if self.rail is not None else None,
            "unit": self.unit,
        }


def _rail_sensors(
    category: Category,
    first_channel: int,
    quantity: str,
    opcode: int,
    scale: int,
    unit: str,
) -> list[SensorDescriptor]:
    return [
        SensorDescriptor(
            category=category,
            channel=first_channel + i,
            label=f"{RAIL_LABELS[rail]} {quantity}",
            opcode=opcode,
            kind=PayloadKind.LINEAR11,
            rail=rail,
            scale=scale,
            unit=unit,
        )
        for i, rail in enumerate(Rail)
    ]


SENSOR_TABLE: tuple[SensorDescriptor, ...] = (
    SensorDescriptor(Category.TEMPERATURE, 0, "VRM temperature",
                     Command.TEMP1, PayloadKind.LINEAR11, scale=MILLI, unit="m°C"),
    SensorDescriptor(Category.TEMPERATURE, 1, "Case temperature",
                     Command.TEMP2, PayloadKind.LINEAR11, scale=MILLI, unit="m°C"),
    SensorDescriptor(Category.FAN, 0, "Fan speed",
                     Command.FAN_SPEED, PayloadKind.LINEAR11, unit="rpm"),
    SensorDescriptor(Category.VOLTAGE, 0, "Supply voltage",
                     Command.SUPPLY_VOLTAGE, PayloadKind.LINEAR11, scale=MILLI, unit="mV"),
    *_rail_sensors(Category.VOLTAGE, 1, "output voltage",
                   Command.RAIL_VOLTAGE, MILLI, "mV"),
    *_rail_sensors(Category.CURRENT, 0, "output current",
                   Command.RAIL_CURRENT, MILLI, "mA"),
    SensorDescriptor(Category.POWER, 0, "Total power",
                     Command.TOTAL_POWER, PayloadKind.LINEAR11, scale=MICRO, unit="µW"),
    *_rail_sensors(Category.POWER, 1, "output power",
                   Command.RAIL_POWER, MICRO, "µW"),
    SensorDescriptor(Category.UPTIME, 0, "Total uptime",
                     Command.TOTAL_UPTIME, PayloadKind.RAW_U32, unit="s"),
    SensorDescriptor(Category.UPTIME, 1, "Current uptime",
                     Command.CURRENT_UPTIME, PayloadKind.RAW_U32, unit="s"),
    SensorDescriptor(Category.MODE, 0, "OCP mode",
                     Command.OCP_MODE, PayloadKind.RAW_U32),
    SensorDescriptor(Category.MODE, 1, "Fan control mode",
                     Command.FAN_MODE, PayloadKind.RAW_U32),
    SensorDescriptor(Category.INFO, 0, "Name",
                     Command.NAME, PayloadKind.ASCII),
    SensorDescriptor(Category.INFO, 1, "Vendor",
                     Command.VENDOR, PayloadKind.ASCII),
    SensorDescriptor(Category.INFO, 2, "Product",
                     Command.PRODUCT, PayloadKind.ASCII),
)


@dataclass(frozen=True)
class SensorReading:
    """Outcome of reading one sensor: either a value or the error raised."""

    descriptor: SensorDescriptor
    value: SensorValue | None = None
    error: PSUError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        result = self.descriptor.to_dict()
        if self.error is None:
            result["value"] = self.value
            if self.descriptor.opcode == Command.OCP_MODE:
                result["description"] = OCP_MODES.get(self.value, "unknown")
        else:
            result["error"] = str(self.error)
            result["code"] = self.error.code
        return result


def decode_payload(descriptor: SensorDescriptor, payload: bytes) -> SensorValue:
    """Turn a response payload into a value according to the descriptor."""
    if descriptor.kind is PayloadKind.LINEAR11:
        return linear11_from_payload(payload, descriptor.scale)
    if descriptor.kind is PayloadKind.RAW_U32:
        return int.from_bytes(payload[:4], "little")
    return payload.split(b"\x00", 1)[0].decode("ascii", errors="replace").strip()


def _category(category: Category | str) -> Category | None:
    try:
        return Category(category)
    except ValueError:
        return None


class SensorRegistry:
    """Maps ``(category, channel)`` to descriptors and reads them."""

    def __init__(
        self,
        engine: ProtocolEngine,
        rails: RailSelector,
        table: Iterable[SensorDescriptor] = SENSOR_TABLE,
    ) -> None:
        self._engine = engine
        self._rails = rails
        self._order: tuple[SensorDescriptor, ...] = tuple(table)

        by_key: dict[tuple[Category, int], SensorDescriptor] = {}
        for descriptor in self._order:
            if descriptor.key in by_key:
                raise ValueError(
                    f"Duplicate sensor {descriptor.category.value}[{descriptor.channel}]"
                )
            by_key[descriptor.key] = descriptor
        self._table: Mapping[tuple[Category, int], SensorDescriptor] = (
            MappingProxyType(by_key)
        )

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[SensorDescriptor]:
        return iter(self._order)

    def sensors(self, category: Category | str | None = None) -> list[SensorDescriptor]:
        """List descriptors in table order, optionally for one category."""
        if category is None:
            return list(self._order)
        wanted = _category(category)
        return [d for d in self._order if d.category is wanted]

    def descriptor(self, category: Category | str, channel: int) -> SensorDescriptor:
        """Look up a descriptor without touching the device.

        Raises:
            UnsupportedSensorError: If no such sensor exists.
        """
        found = self._table.get((_category(category), channel))
        if found is None:
            name = category.value if isinstance(category, Category) else category
            raise UnsupportedSensorError(name, channel)
        return found

    def label(self, category: Category | str, channel: int) -> str:
        return self.descriptor(category, channel).label

    def read(self, category: Category | str, channel: int) -> SensorValue:
        """Read one sensor from the device.

        Rail-scoped sensors select their rail first; both exchanges run
        under one hold of the device lock.

        Raises:
            UnsupportedSensorError: Unknown sensor, nothing was sent.
            DeviceBusyError: The device is in use by another caller.
            TransportError: A send or receive failed.
            ProtocolDesyncError: The device could not be resynchronised.
        """
        descriptor = self.descriptor(category, channel)

        with self._engine.transport.exclusive():
            if descriptor.rail is not None:
                self._rails.select(descriptor.rail)
            payload = self._engine.exchange(
                descriptor.address,
                descriptor.opcode,
                width=descriptor.width,
            )

        value = decode_payload(descriptor, payload)
        logger.debug("%s = %r %s", descriptor.label, value, descriptor.unit)
        return value

    def read_all(self) -> list[SensorReading]:
        """Read every sensor, collecting per-sensor errors instead of raising."""
        readings = []
        for descriptor in self._order:
            try:
                value = self.read(descriptor.category, descriptor.channel)
            except PSUError as e:
                logger.debug("Reading %s failed: %s", descriptor.label, e)
                readings.append(SensorReading(descriptor, error=e))
            else:
                readings.append(SensorReading(descriptor, value=value))
        return readings
